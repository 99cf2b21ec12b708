"""
Unit Tests - Unit of Work
"""
import uuid

import pytest

from shopdb.database.models import Order, ProductReview, User
from shopdb.exceptions import ConstraintViolation, PersistenceError
from shopdb.persistence.repository import Repository


class TestRepositoryAccess:
    """Tests for repository memoisation"""

    async def test_same_repository_instance_per_type(self, uow_factory):
        """Test each entity type gets exactly one repository"""
        async with uow_factory() as uow:
            assert uow.users is uow.users
            assert uow.repository(User) is uow.users
            assert uow.orders is uow.repository(Order)
            assert isinstance(uow.order_status_histories, Repository)

    async def test_units_of_work_do_not_share_repositories(self, uow_factory):
        """Test repositories are scoped to their unit of work"""
        async with uow_factory() as first, uow_factory() as second:
            assert first.users is not second.users


class TestSaveChanges:
    """Tests for save_changes"""

    async def test_returns_number_of_written_records(self, uow_factory, generator):
        """Test the affected count covers inserts"""
        async with uow_factory() as uow:
            await uow.users.add_range(generator.generate_users(3))
            assert await uow.save_changes() == 3

    async def test_duplicate_key_is_classified(self, uow_factory):
        """Test a unique violation surfaces as a duplicate_key ConstraintViolation"""
        async with uow_factory() as uow:
            await uow.users.add(User(username="dup", email="dup@example.com"))
            await uow.save_changes()

            await uow.users.add(User(username="dup", email="other@example.com"))
            with pytest.raises(ConstraintViolation) as exc_info:
                await uow.save_changes()

        assert exc_info.value.kind == ConstraintViolation.DUPLICATE_KEY
        assert exc_info.value.code == "CONSTRAINT_VIOLATION"

    async def test_invalid_foreign_key_is_classified(self, uow_factory):
        """Test a dangling reference surfaces as a foreign_key ConstraintViolation"""
        async with uow_factory() as uow:
            await uow.orders.add(Order(
                user_id=uuid.uuid4(),
                order_number="ORD-DANGLING",
                subtotal=0,
                tax_amount=0,
                shipping_cost=0,
                total=0,
            ))
            with pytest.raises(ConstraintViolation) as exc_info:
                await uow.save_changes()

        assert exc_info.value.kind == ConstraintViolation.FOREIGN_KEY

    async def test_check_constraint_is_classified(self, uow_factory, generator):
        """Test a rating outside 1-5 surfaces as a check ConstraintViolation"""
        async with uow_factory() as uow:
            users = generator.generate_users(1)
            products = generator.generate_products(1)
            await uow.users.add_range(users)
            await uow.products.add_range(products)
            await uow.save_changes()

            await uow.product_reviews.add(ProductReview(
                product_id=products[0].id,
                user_id=users[0].id,
                title="Too good",
                rating=7,
            ))
            with pytest.raises(ConstraintViolation) as exc_info:
                await uow.save_changes()

        assert exc_info.value.kind == ConstraintViolation.CHECK

    async def test_failed_save_applies_nothing_and_recovers(self, uow_factory):
        """Test a rejected batch is discarded and the unit of work stays usable"""
        async with uow_factory() as uow:
            await uow.users.add(User(username="first", email="same@example.com"))
            await uow.save_changes()

            await uow.users.add_range([
                User(username="second", email="second@example.com"),
                User(username="third", email="same@example.com"),
            ])
            with pytest.raises(ConstraintViolation):
                await uow.save_changes()

            await uow.users.add(User(username="fourth", email="fourth@example.com"))
            assert await uow.save_changes() == 1

        async with uow_factory() as uow:
            names = sorted(user.username for user in await uow.users.get_all())

        assert names == ["first", "fourth"]


class TestExplicitTransactions:
    """Tests for begin, commit and rollback"""

    async def test_begin_twice_raises(self, uow_factory):
        """Test nested explicit transactions are rejected"""
        async with uow_factory() as uow:
            await uow.begin_transaction()
            with pytest.raises(PersistenceError):
                await uow.begin_transaction()

    async def test_commit_makes_saves_durable(self, uow_factory, generator):
        """Test saves inside a transaction appear only after commit"""
        async with uow_factory() as uow:
            await uow.begin_transaction()
            assert uow.has_active_transaction
            await uow.users.add_range(generator.generate_users(2))
            await uow.save_changes()
            await uow.products.add_range(generator.generate_products(2))
            await uow.commit_transaction()
            assert not uow.has_active_transaction

        async with uow_factory() as uow:
            assert await uow.users.count() == 2
            assert await uow.products.count() == 2

    async def test_rollback_discards_saved_changes(self, uow_factory, generator):
        """Test rollback undoes saves made since begin"""
        async with uow_factory() as uow:
            await uow.begin_transaction()
            await uow.users.add_range(generator.generate_users(2))
            await uow.save_changes()
            await uow.rollback_transaction()
            assert not uow.has_active_transaction

        async with uow_factory() as uow:
            assert await uow.users.count() == 0

    async def test_failed_commit_rolls_back_whole_batch(self, uow_factory):
        """Test a violation at commit leaves none of the batch visible"""
        async with uow_factory() as uow:
            await uow.users.add(User(username="existing", email="existing@example.com"))
            await uow.save_changes()

        async with uow_factory() as uow:
            await uow.begin_transaction()
            await uow.users.add(User(username="new-one", email="new-one@example.com"))
            await uow.save_changes()
            await uow.users.add_range([
                User(username="new-two", email="new-two@example.com"),
                User(username="existing", email="clash@example.com"),
            ])
            with pytest.raises(ConstraintViolation):
                await uow.commit_transaction()
            assert not uow.has_active_transaction

        async with uow_factory() as uow:
            names = [user.username for user in await uow.users.get_all()]

        assert names == ["existing"]

    async def test_rejected_save_keeps_earlier_saves_and_transaction(self, uow_factory):
        """Test a failed save inside a transaction discards only its own changes"""
        async with uow_factory() as uow:
            await uow.users.add(User(username="taken", email="taken@example.com"))
            await uow.save_changes()

        async with uow_factory() as uow:
            await uow.begin_transaction()
            await uow.users.add(User(username="a", email="a@example.com"))
            await uow.save_changes()

            await uow.users.add(User(username="taken", email="other@example.com"))
            with pytest.raises(ConstraintViolation):
                await uow.save_changes()
            assert uow.has_active_transaction

            await uow.users.add(User(username="c", email="c@example.com"))
            await uow.save_changes()
            assert await uow.commit_transaction() == 0

        async with uow_factory() as uow:
            names = sorted(user.username for user in await uow.users.get_all())

        assert names == ["a", "c", "taken"]

    async def test_rejected_first_save_keeps_transaction_open(self, uow_factory):
        """Test later saves stay uncommitted after the first save in a transaction fails"""
        async with uow_factory() as uow:
            await uow.begin_transaction()
            await uow.users.add_range([
                User(username="dup", email="one@example.com"),
                User(username="dup", email="two@example.com"),
            ])
            with pytest.raises(ConstraintViolation):
                await uow.save_changes()
            assert uow.has_active_transaction

            await uow.users.add(User(username="later", email="later@example.com"))
            await uow.save_changes()
            await uow.rollback_transaction()

        async with uow_factory() as uow:
            assert await uow.users.count() == 0

    async def test_commit_without_transaction_saves(self, uow_factory):
        """Test commit_transaction falls back to save_changes"""
        async with uow_factory() as uow:
            await uow.users.add(User(username="solo", email="solo@example.com"))
            assert await uow.commit_transaction() == 1

        async with uow_factory() as uow:
            assert await uow.users.count() == 1

    async def test_rollback_without_transaction_is_noop(self, uow_factory):
        """Test rollback_transaction does nothing when no transaction is open"""
        async with uow_factory() as uow:
            await uow.rollback_transaction()
            assert not uow.has_active_transaction

    async def test_close_rolls_back_open_transaction(self, uow_factory, generator):
        """Test leaving the context discards uncommitted work"""
        async with uow_factory() as uow:
            await uow.begin_transaction()
            await uow.users.add_range(generator.generate_users(2))
            await uow.save_changes()

        async with uow_factory() as uow:
            assert await uow.users.count() == 0

    async def test_closed_unit_of_work_rejects_saves(self, uow_factory):
        """Test close is idempotent and blocks further use"""
        uow = uow_factory()
        await uow.close()
        await uow.close()

        with pytest.raises(PersistenceError):
            await uow.save_changes()


class TestConstraintClassification:
    """Tests for driver message classification"""

    @pytest.mark.parametrize(
        "message,kind",
        [
            ("UNIQUE constraint failed: users.email", ConstraintViolation.DUPLICATE_KEY),
            ('duplicate key value violates unique constraint "users_email_key"', ConstraintViolation.DUPLICATE_KEY),
            ("FOREIGN KEY constraint failed", ConstraintViolation.FOREIGN_KEY),
            ('insert or update on table "orders" violates foreign key constraint', ConstraintViolation.FOREIGN_KEY),
            ("CHECK constraint failed: ck_product_reviews_rating", ConstraintViolation.CHECK),
            ("NOT NULL constraint failed: users.username", ConstraintViolation.NOT_NULL),
            ('null value in column "username" violates not-null constraint', ConstraintViolation.NOT_NULL),
            ("something else entirely", ConstraintViolation.UNKNOWN),
        ],
    )
    def test_classify(self, message, kind):
        """Test SQLite and PostgreSQL messages map to the same kinds"""
        assert ConstraintViolation.classify(message) == kind
