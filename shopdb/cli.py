"""
shopdb console

Usage:
    shopdb setup --count 500        Provision the store and seed it if empty
    shopdb setup --force            Seed again even if data exists
    shopdb quick-test               Smoke test every layer against the store
    shopdb stats                    Print row counts
    shopdb interactive              Menu driven user and database management
"""

import argparse
import asyncio
from collections import Counter
import sys
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
import uuid

import structlog
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopdb import __version__
from shopdb.config import StartupSettings
from shopdb.config.logging import configure_logging
from shopdb.database.connection import close_database, get_engine, get_session_factory, init_database
from shopdb.database.models import User, UserStatus
from shopdb.exceptions import ShopDbError, UserInputError
from shopdb.ingestion.seeder import DataSeeder, SeedResult, summarize
from shopdb.lifecycle.manager import DatabaseLifecycleManager, DatabaseStatistics, LifecycleState
from shopdb.objects.service import DatabaseObjectsService
from shopdb.persistence.unit_of_work import UnitOfWork
from shopdb.quality.audit import DataIntegrityAuditor, audit_passed

logger = structlog.get_logger(__name__)

Prompt = Callable[[str], str]
Output = Callable[[str], None]

PAGE_SIZE = 10


def format_statistics(stats: DatabaseStatistics) -> List[str]:
    lines = [f"Database: {stats.database_name} ({'accessible' if stats.accessible else 'NOT accessible'})"]
    for table, count in stats.counts().items():
        lines.append(f"  {table.replace('_', ' ').title():<24}{count:>10,}")
    lines.append(f"  {'Total':<24}{stats.total_records:>10,}")
    return lines


def format_seed_result(result: Optional[SeedResult]) -> List[str]:
    if result is None:
        return ["Seeding skipped: the database already contains data"]
    lines = [f"Seeded {result.total:,} records in {result.duration_seconds:.2f}s"]
    lines.extend(f"  {label:<24}{count:>10,}" for label, count in summarize(result))
    return lines


def parse_choice(raw: str, options: Sequence[str]) -> str:
    """Validate a menu selection against the offered keys"""
    choice = raw.strip()
    if choice not in options:
        raise UserInputError(f"Invalid choice '{choice}', expected one of: {', '.join(options)}")
    return choice


def parse_uuid(raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw.strip())
    except ValueError:
        raise UserInputError(f"'{raw.strip()}' is not a valid id")


def parse_positive_int(raw: str) -> int:
    try:
        value = int(raw.strip())
    except ValueError:
        raise UserInputError(f"'{raw.strip()}' is not a number")
    if value < 1:
        raise UserInputError("Value must be at least 1")
    return value


def parse_email(raw: str) -> str:
    email = raw.strip()
    local, _, domain = email.partition("@")
    if not local or "." not in domain:
        raise UserInputError(f"'{email}' is not a valid email address")
    return email.lower()


def parse_status(raw: str) -> UserStatus:
    try:
        return UserStatus(raw.strip().lower())
    except ValueError:
        allowed = ", ".join(status.value for status in UserStatus)
        raise UserInputError(f"Unknown status '{raw.strip()}', expected one of: {allowed}")


class ConsoleApp:
    """
    Line based menus over the lifecycle manager and a unit of work.

    ``prompt`` and ``out`` default to input/print and are injectable so
    sessions can be scripted.
    """

    def __init__(
        self,
        manager: DatabaseLifecycleManager,
        session_factory: async_sessionmaker[AsyncSession],
        prompt: Prompt = input,
        out: Output = print,
    ):
        self.manager = manager
        self.session_factory = session_factory
        self.prompt = prompt
        self.out = out

    def _print_lines(self, lines: Sequence[str]) -> None:
        for line in lines:
            self.out(line)

    async def _menu(self, title: str, entries: Dict[str, Tuple[str, Callable[[], Awaitable[None]]]]) -> None:
        """Show a menu until '0' is chosen; invalid input re-prompts"""
        keys = list(entries) + ["0"]
        while True:
            self.out(f"\n== {title} ==")
            for key, (label, _) in entries.items():
                self.out(f"  {key}. {label}")
            self.out("  0. Back")
            try:
                choice = parse_choice(self.prompt("> "), keys)
                if choice == "0":
                    return
                await entries[choice][1]()
            except UserInputError as e:
                self.out(f"Invalid input: {e.message}")
            except ShopDbError as e:
                self.out(f"❌ {e.message}")

    async def run(self) -> int:
        await self._menu(
            "shopdb",
            {
                "1": ("Users", self.users_menu),
                "2": ("Database management", self.database_menu),
            },
        )
        return 0

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def users_menu(self) -> None:
        await self._menu(
            "Users",
            {
                "1": ("List users", self.list_users),
                "2": ("Search users", self.search_users),
                "3": ("Create user", self.create_user),
                "4": ("Update user", self.update_user),
                "5": ("Delete user", self.delete_user),
                "6": ("Users by status", self.count_users_by_status),
            },
        )

    def _show_users(self, users: Sequence[User]) -> None:
        if not users:
            self.out("No users found")
        for user in users:
            self.out(f"  {user.id}  {user.username:<40} {user.email:<40} {user.status.value}")

    async def list_users(self) -> None:
        page = parse_positive_int(self.prompt("Page [1]: ") or "1")
        async with UnitOfWork(self.session_factory) as uow:
            total = await uow.users.count()
            users = sorted(await uow.users.get_all(), key=lambda user: user.created_at)
        pages = max(1, -(-total // PAGE_SIZE))
        if page > pages:
            raise UserInputError(f"Page {page} does not exist, there are {pages}")
        self._show_users(users[(page - 1) * PAGE_SIZE:page * PAGE_SIZE])
        self.out(f"Page {page} of {pages} ({total:,} users)")

    async def search_users(self) -> None:
        term = self.prompt("Username or email contains: ").strip()
        if not term:
            raise UserInputError("Search term cannot be empty")
        pattern = f"%{term}%"
        async with UnitOfWork(self.session_factory) as uow:
            users = await uow.users.find(or_(User.username.ilike(pattern), User.email.ilike(pattern)))
        self._show_users(users)

    async def create_user(self) -> None:
        username = self.prompt("Username: ").strip()
        if not username:
            raise UserInputError("Username cannot be empty")
        email = parse_email(self.prompt("Email: "))
        async with UnitOfWork(self.session_factory) as uow:
            user = await uow.users.add(User(username=username, email=email))
            await uow.save_changes()
        self.out(f"Created user {user.id}")

    async def update_user(self) -> None:
        user_id = parse_uuid(self.prompt("User id: "))
        async with UnitOfWork(self.session_factory) as uow:
            user = await uow.users.get_by_id(user_id)
            if user is None:
                raise UserInputError(f"No user with id {user_id}")
            raw_email = self.prompt(f"Email [{user.email}]: ")
            raw_status = self.prompt(f"Status [{user.status.value}]: ")
            if raw_email.strip():
                user.email = parse_email(raw_email)
            if raw_status.strip():
                user.status = parse_status(raw_status)
            await uow.users.update(user)
            await uow.save_changes()
        self.out(f"Updated user {user_id}")

    async def delete_user(self) -> None:
        user_id = parse_uuid(self.prompt("User id: "))
        if self.prompt("Delete this user and all their data? [y/N]: ").strip().lower() != "y":
            self.out("Cancelled")
            return
        async with UnitOfWork(self.session_factory) as uow:
            user = await uow.users.get_by_id(user_id)
            if user is None:
                raise UserInputError(f"No user with id {user_id}")
            await uow.users.delete(user)
            await uow.save_changes()
        self.out(f"Deleted user {user_id}")

    async def count_users_by_status(self) -> None:
        async with UnitOfWork(self.session_factory) as uow:
            for status in UserStatus:
                self.out(f"  {status.value:<12}{await uow.users.count(User.status == status):>10,}")

    # -------------------------------------------------------------------------
    # Database management
    # -------------------------------------------------------------------------

    async def database_menu(self) -> None:
        await self._menu(
            "Database management",
            {
                "1": ("Statistics", self.show_statistics),
                "2": ("Seed (if empty)", self.seed),
                "3": ("Force seed", self.force_seed),
                "4": ("Clear and reseed", self.clear_and_reseed),
                "5": ("Run database scripts", self.run_scripts),
                "6": ("Apply migrations", self.apply_migrations),
                "7": ("Audit data integrity", self.audit),
                "8": ("Reporting views", self.show_reports),
            },
        )

    async def show_statistics(self) -> None:
        self._print_lines(format_statistics(await self.manager.statistics()))

    async def _ask_count(self) -> int:
        default = self.manager.settings.seeding.record_count
        return parse_positive_int(self.prompt(f"Records per entity [{default}]: ") or str(default))

    async def seed(self) -> None:
        self._print_lines(format_seed_result(await self.manager.seed_if_needed(count=await self._ask_count())))

    async def force_seed(self) -> None:
        count = await self._ask_count()
        self._print_lines(format_seed_result(await self.manager.seed_if_needed(force=True, count=count)))

    async def clear_and_reseed(self) -> None:
        if self.prompt("This deletes ALL data. Type 'yes' to continue: ").strip().lower() != "yes":
            self.out("Cancelled")
            return
        count = await self._ask_count()
        await self.manager.reset_schema()
        await self.manager.execute_database_scripts()
        self._print_lines(format_seed_result(await self.manager.seed_if_needed(force=True, count=count)))

    async def run_scripts(self) -> None:
        executed = await self.manager.execute_database_scripts()
        self.out(f"Executed {executed} script files")

    async def apply_migrations(self) -> None:
        applied = await self.manager.apply_pending_changes()
        self.out(f"Applied migrations: {', '.join(applied)}" if applied else "Schema is up to date")

    async def audit(self) -> None:
        results = await DataIntegrityAuditor(self.session_factory).audit()
        for table, result in results.items():
            self.out(f"  {table:<24}{result.status.value:<10}{result.passed_checks}/{result.total_checks}")
            for check in result.failures:
                self.out(f"      - {check.name}: {check.message}")

    async def show_reports(self) -> None:
        if not await self.manager.script_executor.objects_exist():
            self.out("Reporting views are not provisioned, run the database scripts first")
            return
        service = DatabaseObjectsService(self.session_factory)

        summaries = await service.get_user_profile_summaries()
        top = sorted(summaries, key=lambda row: row.total_spent or 0, reverse=True)[:PAGE_SIZE]
        self.out("Top customers by spend:")
        for row in top:
            self.out(f"  {row.username:<40}{row.total_orders:>6}{row.total_spent or 0:>14,.2f}")

        levels = Counter(row.stock_level for row in await service.get_product_inventory_status())
        self.out("Stock levels:")
        for level, count in sorted(levels.items()):
            self.out(f"  {level:<24}{count:>10,}")


# =============================================================================
# COMMANDS
# =============================================================================

async def run_setup(manager: DatabaseLifecycleManager, args: argparse.Namespace, out: Output = print) -> int:
    state = await manager.initialize(
        startup=manager.settings.startup.model_copy(update={"auto_seed": False, "prompt_for_seed": False})
    )
    if state == LifecycleState.INACCESSIBLE:
        out("❌ Database is not accessible")
        return 1
    logger.info("Provisioning finished", state=state.value)

    result = await manager.seed_if_needed(force=args.force, count=args.count, atomic=args.atomic)
    for line in format_seed_result(result) + format_statistics(await manager.statistics()):
        out(line)
    return 0


async def run_quick_test(
    manager: DatabaseLifecycleManager,
    session_factory: async_sessionmaker[AsyncSession],
    out: Output = print,
) -> int:
    """Exercise provisioning, seeding, CRUD and the audit; 0 on success"""
    state = await manager.initialize(startup=StartupSettings(auto_seed=False, prompt_for_seed=False))
    if state == LifecycleState.INACCESSIBLE:
        out("❌ Database is not accessible")
        return 1

    async with UnitOfWork(session_factory) as uow:
        sample = await DataSeeder(uow, manager.data_source).seed_sample_records()
    out(f"✅ Sample records created (user {sample.user_id})")

    async with UnitOfWork(session_factory) as uow:
        user = await uow.users.get_by_id(sample.user_id)
        if user is None:
            out("❌ Sample user could not be read back")
            return 1
        user.bio = "Updated by quick test"
        await uow.users.update(user)
        await uow.save_changes()

    async with UnitOfWork(session_factory) as uow:
        reloaded = await uow.users.get_by_id(sample.user_id)
        if reloaded is None or reloaded.bio != "Updated by quick test":
            out("❌ Update was not persisted")
            return 1

        token = uuid.uuid4().hex[:10]
        scratch = await uow.users.add(User(username=f"quicktest.{token}", email=f"quicktest.{token}@example.com"))
        await uow.save_changes()
        await uow.users.delete(scratch)
        await uow.save_changes()
        if await uow.users.exists(User.id == scratch.id):
            out("❌ Delete was not persisted")
            return 1
    out("✅ Create, read, update and delete round trips passed")

    results = await DataIntegrityAuditor(session_factory).audit()
    if not audit_passed(results):
        failed = [table for table, result in results.items() if result.failures]
        out(f"❌ Data integrity audit failed: {', '.join(failed)}")
        return 1
    out("✅ Data integrity audit passed")
    return 0


async def run_stats(manager: DatabaseLifecycleManager, out: Output = print) -> int:
    stats = await manager.statistics()
    for line in format_statistics(stats):
        out(line)
    return 0 if stats.accessible else 1


def confirm_from_console(prompt: Prompt = input) -> Callable[[], bool]:
    def confirm() -> bool:
        return prompt("The database is empty. Seed it with sample data? [y/N]: ").strip().lower() == "y"
    return confirm


async def run(args: argparse.Namespace) -> int:
    await init_database()
    try:
        engine, session_factory = get_engine(), get_session_factory()
        manager = DatabaseLifecycleManager(engine, session_factory)

        if args.command == "setup":
            return await run_setup(manager, args)
        if args.command == "quick-test":
            return await run_quick_test(manager, session_factory)
        if args.command == "stats":
            return await run_stats(manager)

        await manager.initialize(confirm_seed=confirm_from_console())
        return await ConsoleApp(manager, session_factory).run()
    finally:
        await close_database()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shopdb", description="E-commerce store persistence console")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--log-format", choices=["json", "text"], default=None, help="Override LOG_FORMAT")

    commands = parser.add_subparsers(dest="command")
    commands.add_parser("interactive", help="Menu driven console (default)")
    commands.add_parser("quick-test", help="Smoke test every layer against the store")
    commands.add_parser("stats", help="Print row counts")

    setup = commands.add_parser("setup", help="Provision the store and seed it if empty")
    setup.add_argument("--force", action="store_true", help="Seed even if data already exists")
    setup.add_argument("--count", type=int, default=None, help="Users, products and orders to generate")
    setup.add_argument("--atomic", action="store_true", help="Seed all stages in a single transaction")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    args.command = args.command or "interactive"
    if getattr(args, "count", None) is not None and args.count < 1:
        print("--count must be at least 1", file=sys.stderr)
        return 2

    configure_logging(args.log_level, args.log_format)
    try:
        return asyncio.run(run(args))
    except ShopDbError as e:
        logger.error("Command failed", command=args.command, **e.to_dict())
        print(f"❌ {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
