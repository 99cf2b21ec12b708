"""
Unit Tests - Console
"""
import uuid

import pytest

from shopdb.cli import (
    ConsoleApp,
    build_parser,
    confirm_from_console,
    format_seed_result,
    format_statistics,
    main,
    parse_choice,
    parse_email,
    parse_positive_int,
    parse_status,
    parse_uuid,
    run_quick_test,
    run_stats,
)
from shopdb.config import SeedingSettings, Settings
from shopdb.database.connection import create_session_factory
from shopdb.database.models import User, UserStatus
from shopdb.exceptions import UserInputError
from shopdb.ingestion.seeder import SeedResult
from shopdb.lifecycle.manager import DatabaseLifecycleManager, DatabaseStatistics


def scripted(*answers):
    """Prompt replaying fixed answers"""
    remaining = iter(answers)
    return lambda _message: next(remaining)


@pytest.fixture
def cli_settings() -> Settings:
    return Settings(app_env="testing", seeding=SeedingSettings(record_count=3, random_seed=5))


@pytest.fixture
def manager(engine, session_factory, cli_settings) -> DatabaseLifecycleManager:
    return DatabaseLifecycleManager(engine, session_factory, settings=cli_settings)


class TestParsers:
    """Tests for console input parsing"""

    def test_parse_choice(self):
        """Test menu keys are trimmed and validated"""
        assert parse_choice(" 2 ", ["1", "2", "0"]) == "2"
        with pytest.raises(UserInputError):
            parse_choice("7", ["1", "2", "0"])

    def test_parse_uuid(self):
        """Test ids must be UUIDs"""
        value = uuid.uuid4()
        assert parse_uuid(f" {value} ") == value
        with pytest.raises(UserInputError):
            parse_uuid("not-an-id")

    @pytest.mark.parametrize("raw", ["0", "-3", "abc", ""])
    def test_parse_positive_int_rejects(self, raw):
        """Test counts must be positive integers"""
        with pytest.raises(UserInputError):
            parse_positive_int(raw)

    def test_parse_positive_int(self):
        """Test a valid count"""
        assert parse_positive_int(" 25 ") == 25

    def test_parse_email(self):
        """Test emails are normalised and checked"""
        assert parse_email(" Ada@Example.COM ") == "ada@example.com"
        for raw in ["ada", "@example.com", "ada@localhost"]:
            with pytest.raises(UserInputError):
                parse_email(raw)

    def test_parse_status(self):
        """Test statuses are matched case-insensitively"""
        assert parse_status("Suspended") == UserStatus.SUSPENDED
        with pytest.raises(UserInputError):
            parse_status("banned")

    def test_confirm_from_console(self):
        """Test only 'y' confirms seeding"""
        assert confirm_from_console(scripted("Y"))() is True
        assert confirm_from_console(scripted(""))() is False


class TestFormatting:
    """Tests for console output formatting"""

    def test_format_statistics(self):
        """Test one line per table plus header and total"""
        lines = format_statistics(DatabaseStatistics(accessible=True, database_name="shop", users=1200, orders=3))

        assert lines[0] == "Database: shop (accessible)"
        assert len(lines) == 11
        assert "1,200" in lines[1]
        assert lines[-1].strip().startswith("Total")
        assert "1,203" in lines[-1]

    def test_format_seed_result(self):
        """Test skipped and completed runs"""
        assert format_seed_result(None) == ["Seeding skipped: the database already contains data"]

        lines = format_seed_result(SeedResult(users=2, products=2, orders=2))
        assert lines[0].startswith("Seeded 6 records")
        assert len(lines) == 10


class TestParser:
    """Tests for command line parsing"""

    def test_defaults(self):
        """Test no command selects the interactive console"""
        args = build_parser().parse_args([])

        assert args.command is None
        assert args.log_level is None

    def test_setup_options(self):
        """Test setup flags"""
        args = build_parser().parse_args(["--log-format", "json", "setup", "--force", "--count", "5", "--atomic"])

        assert args.command == "setup"
        assert args.force is True
        assert args.count == 5
        assert args.atomic is True
        assert args.log_format == "json"

    def test_invalid_count_rejected(self):
        """Test a non-positive count exits with a usage error"""
        assert main(["setup", "--count", "0"]) == 2


class TestConsoleApp:
    """Tests for scripted console sessions"""

    async def test_create_user(self, manager, session_factory, uow_factory):
        """Test creating a user from the users menu"""
        output = []
        app = ConsoleApp(
            manager,
            session_factory,
            prompt=scripted("1", "3", "ada", "ada@example.com", "0", "0"),
            out=output.append,
        )

        assert await app.run() == 0

        assert any(line.startswith("Created user") for line in output)
        async with uow_factory() as uow:
            assert await uow.users.exists(User.username == "ada")

    async def test_invalid_choice_reprompts(self, manager, session_factory):
        """Test an unknown menu key is reported and the menu shown again"""
        output = []
        app = ConsoleApp(manager, session_factory, prompt=scripted("9", "0"), out=output.append)

        await app.run()

        assert any(line.startswith("Invalid input: Invalid choice '9'") for line in output)
        assert sum(1 for line in output if line == "\n== shopdb ==") == 2

    async def test_constraint_failure_is_reported(self, manager, session_factory):
        """Test a duplicate user is reported without ending the session"""
        output = []
        app = ConsoleApp(
            manager,
            session_factory,
            prompt=scripted(
                "1",
                "3", "ada", "ada@example.com",
                "3", "ada", "other@example.com",
                "0", "0",
            ),
            out=output.append,
        )

        await app.run()

        assert sum(1 for line in output if line.startswith("Created user")) == 1
        assert any(line.startswith("❌") for line in output)

    async def test_update_and_delete_user(self, manager, session_factory, uow_factory):
        """Test editing and removing a user by id"""
        async with uow_factory() as uow:
            user = await uow.users.add(User(username="grace", email="grace@example.com"))
            await uow.save_changes()
        user_id = str(user.id)

        output = []
        app = ConsoleApp(
            manager,
            session_factory,
            prompt=scripted(
                "1",
                "4", user_id, "grace@navy.mil", "suspended",
                "6",
                "5", user_id, "y",
                "0", "0",
            ),
            out=output.append,
        )
        await app.run()

        assert f"Updated user {user_id}" in output
        assert f"Deleted user {user_id}" in output
        assert any(line.split() == ["suspended", "1"] for line in output)
        async with uow_factory() as uow:
            assert await uow.users.count() == 0

    async def test_list_and_search(self, manager, session_factory, uow_factory, generator):
        """Test paging and searching users"""
        async with uow_factory() as uow:
            await uow.users.add_range(generator.generate_users(12))
            await uow.users.add(User(username="needle", email="needle@example.com"))
            await uow.save_changes()

        output = []
        app = ConsoleApp(
            manager,
            session_factory,
            prompt=scripted("1", "1", "2", "2", "NEEDLE", "1", "5", "0", "0"),
            out=output.append,
        )
        await app.run()

        assert "Page 2 of 2 (13 users)" in output
        assert any("needle@example.com" in line for line in output)
        assert any(line.startswith("Invalid input: Page 5 does not exist") for line in output)

    async def test_seed_and_statistics(self, manager, session_factory):
        """Test seeding from the database menu"""
        output = []
        app = ConsoleApp(
            manager,
            session_factory,
            prompt=scripted("2", "2", "", "2", "", "1", "0", "0"),
            out=output.append,
        )
        await app.run()

        assert any(line.startswith("Seeded") for line in output)
        assert "Seeding skipped: the database already contains data" in output
        assert any(line.strip().startswith("Users") and line.strip().endswith("3") for line in output)

    async def test_reports_need_provisioned_views(self, manager, session_factory):
        """Test reports run only after the scripts, then show customers and stock"""
        output = []
        app = ConsoleApp(
            manager,
            session_factory,
            prompt=scripted("2", "8", "2", "", "5", "8", "0", "0"),
            out=output.append,
        )
        await app.run()

        assert "Reporting views are not provisioned, run the database scripts first" in output
        assert "Executed 1 script files" in output
        assert "Top customers by spend:" in output
        assert "Stock levels:" in output

    async def test_clear_and_reseed_requires_confirmation(self, manager, session_factory):
        """Test anything but 'yes' cancels the reset"""
        output = []
        app = ConsoleApp(manager, session_factory, prompt=scripted("2", "4", "no", "0", "0"), out=output.append)

        await app.run()

        assert "Cancelled" in output


class TestCommands:
    """Tests for the non-interactive commands"""

    async def test_quick_test_on_blank_database(self, blank_engine, cli_settings):
        """Test the smoke test provisions and passes on an empty database"""
        session_factory = create_session_factory(blank_engine)
        manager = DatabaseLifecycleManager(blank_engine, session_factory, settings=cli_settings)
        output = []

        assert await run_quick_test(manager, session_factory, out=output.append) == 0
        assert output[-1] == "✅ Data integrity audit passed"

    async def test_stats(self, manager):
        """Test stats prints the table counts"""
        output = []

        assert await run_stats(manager, out=output.append) == 0
        assert output[0].endswith("(accessible)")
