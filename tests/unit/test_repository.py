"""
Unit Tests - Repository
"""
import uuid
from decimal import Decimal

import pytest

from shopdb.database.models import OrderItem, Product, User, UserProfile, UserStatus
from shopdb.exceptions import ConstraintViolation, EntityNotFoundError


async def persist_users(uow_factory, generator, count=3):
    async with uow_factory() as uow:
        users = generator.generate_users(count)
        await uow.users.add_range(users)
        await uow.save_changes()
    return users


class TestRepositoryReads:
    """Tests for get_by_id, get_all, find, count and exists"""

    async def test_get_by_id_returns_saved_entity(self, uow_factory, generator):
        """Test a saved entity can be read back in a new unit of work"""
        users = await persist_users(uow_factory, generator, 1)

        async with uow_factory() as uow:
            loaded = await uow.users.get_by_id(users[0].id)

        assert loaded is not None
        assert loaded.username == users[0].username
        assert loaded.created_at is not None

    async def test_get_by_id_accepts_string_id(self, uow_factory, generator):
        """Test identities may be passed as strings"""
        users = await persist_users(uow_factory, generator, 1)

        async with uow_factory() as uow:
            loaded = await uow.users.get_by_id(str(users[0].id))

        assert loaded is not None
        assert loaded.id == users[0].id

    async def test_get_by_id_missing_returns_none(self, uow_factory):
        """Test an unknown identity is absent rather than an error"""
        async with uow_factory() as uow:
            assert await uow.users.get_by_id(uuid.uuid4()) is None

    async def test_get_all_and_count(self, uow_factory, generator):
        """Test get_all returns every row and count agrees"""
        await persist_users(uow_factory, generator, 4)

        async with uow_factory() as uow:
            assert len(await uow.users.get_all()) == 4
            assert await uow.users.count() == 4

    async def test_find_with_criteria(self, uow_factory):
        """Test find filters on arbitrary mapped attributes"""
        async with uow_factory() as uow:
            await uow.users.add_range([
                User(username="alice", email="alice@example.com", status=UserStatus.ACTIVE),
                User(username="bob", email="bob@example.com", status=UserStatus.SUSPENDED),
                User(username="carol", email="carol@example.com", status=UserStatus.ACTIVE),
            ])
            await uow.save_changes()

        async with uow_factory() as uow:
            active = await uow.users.find(User.status == UserStatus.ACTIVE)
            suspended = await uow.users.count(User.status == UserStatus.SUSPENDED)
            has_bob = await uow.users.exists(User.username == "bob")
            has_dave = await uow.users.exists(User.username == "dave")

        assert sorted(user.username for user in active) == ["alice", "carol"]
        assert suspended == 1
        assert has_bob is True
        assert has_dave is False

    async def test_staged_entities_are_not_visible_before_save(self, uow_factory):
        """Test writes only reach readers after save_changes"""
        async with uow_factory() as uow:
            await uow.users.add(User(username="pending", email="pending@example.com"))

            async with uow_factory() as reader:
                assert await reader.users.count() == 0

            await uow.save_changes()

        async with uow_factory() as reader:
            assert await reader.users.count() == 1


class TestRepositoryWrites:
    """Tests for add, update and delete"""

    async def test_add_assigns_identity_and_creation_time(self, uow_factory):
        """Test add stamps id and created_at"""
        async with uow_factory() as uow:
            user = await uow.users.add(User(username="ada", email="ada@example.com"))

        assert user.id is not None
        assert user.created_at is not None

    async def test_add_none_raises(self, uow_factory):
        """Test adding None is rejected"""
        async with uow_factory() as uow:
            with pytest.raises(ValueError):
                await uow.users.add(None)
            with pytest.raises(ValueError):
                await uow.users.add_range(None)

    async def test_add_range_empty_is_noop(self, uow_factory):
        """Test an empty batch stages nothing"""
        async with uow_factory() as uow:
            await uow.users.add_range([])
            assert await uow.save_changes() == 0

    async def test_update_detached_entity(self, uow_factory, generator):
        """Test an entity loaded elsewhere is merged and persisted"""
        users = await persist_users(uow_factory, generator, 1)
        detached = users[0]
        detached.email = "changed@example.com"
        detached.balance = Decimal("12.50")

        async with uow_factory() as uow:
            await uow.users.update(detached)
            await uow.save_changes()

        async with uow_factory() as uow:
            loaded = await uow.users.get_by_id(detached.id)

        assert loaded.email == "changed@example.com"
        assert loaded.balance == Decimal("12.50")
        assert loaded.updated_at is not None
        assert loaded.updated_at >= loaded.created_at

    async def test_update_attached_entity(self, uow_factory, generator):
        """Test modifying an entity in its own unit of work refreshes updated_at"""
        users = await persist_users(uow_factory, generator, 1)

        async with uow_factory() as uow:
            user = await uow.users.get_by_id(users[0].id)
            user.bio = "Edited"
            await uow.users.update(user)
            assert await uow.save_changes() == 1

        async with uow_factory() as uow:
            loaded = await uow.users.get_by_id(users[0].id)

        assert loaded.bio == "Edited"
        assert loaded.updated_at >= loaded.created_at

    async def test_update_unknown_identity_raises(self, uow_factory):
        """Test updating a never-persisted entity fails"""
        ghost = User(id=uuid.uuid4(), username="ghost", email="ghost@example.com")

        async with uow_factory() as uow:
            with pytest.raises(EntityNotFoundError):
                await uow.users.update(ghost)

    async def test_update_staged_entity_raises(self, uow_factory):
        """Test an entity that was added but never saved cannot be updated"""
        async with uow_factory() as uow:
            staged = await uow.users.add(User(username="staged", email="staged@example.com"))

            with pytest.raises(EntityNotFoundError):
                await uow.users.update(staged)

            assert await uow.save_changes() == 1
            staged.bio = "Saved first"
            await uow.users.update(staged)
            assert await uow.save_changes() == 1

    async def test_delete_unknown_identity_raises(self, uow_factory):
        """Test deleting a never-persisted entity fails"""
        ghost = User(id=uuid.uuid4(), username="ghost", email="ghost@example.com")

        async with uow_factory() as uow:
            with pytest.raises(EntityNotFoundError):
                await uow.users.delete(ghost)

    async def test_delete_pending_entity_unstages_it(self, uow_factory):
        """Test deleting an entity that was only staged drops it"""
        async with uow_factory() as uow:
            user = await uow.users.add(User(username="temp", email="temp@example.com"))
            await uow.users.delete(user)
            assert await uow.save_changes() == 0

        async with uow_factory() as uow:
            assert await uow.users.count() == 0

    async def test_delete_detached_entity(self, uow_factory, generator):
        """Test an entity from another unit of work can be deleted by identity"""
        users = await persist_users(uow_factory, generator, 2)

        async with uow_factory() as uow:
            await uow.users.delete(users[0])
            await uow.save_changes()

        async with uow_factory() as uow:
            assert await uow.users.get_by_id(users[0].id) is None
            assert await uow.users.count() == 1

    async def test_update_range_and_delete_range(self, uow_factory, generator):
        """Test batch update and delete"""
        users = await persist_users(uow_factory, generator, 3)
        for user in users:
            user.status = UserStatus.INACTIVE

        async with uow_factory() as uow:
            await uow.users.update_range(users)
            await uow.save_changes()

        async with uow_factory() as uow:
            assert await uow.users.count(User.status == UserStatus.INACTIVE) == 3
            await uow.users.delete_range(await uow.users.get_all())
            await uow.save_changes()

        async with uow_factory() as uow:
            assert await uow.users.count() == 0


class TestDeleteRules:
    """Cascade and restrict behaviour enforced on save"""

    async def test_deleting_user_cascades_to_profile(self, uow_factory, generator):
        """Test a user's profile is removed in the same commit"""
        users = await persist_users(uow_factory, generator, 1)
        async with uow_factory() as uow:
            profiles = generator.generate_user_profiles(users, probability=1.0)
            await uow.user_profiles.add_range(profiles)
            await uow.save_changes()
        profile_id = profiles[0].id

        async with uow_factory() as uow:
            user = await uow.users.get_by_id(users[0].id)
            await uow.users.delete(user)
            await uow.save_changes()

        async with uow_factory() as uow:
            assert await uow.user_profiles.get_by_id(profile_id) is None
            assert await uow.user_profiles.count(UserProfile.user_id == users[0].id) == 0

    async def test_deleting_ordered_product_is_restricted(self, uow_factory, generator):
        """Test a product referenced by order items cannot be deleted"""
        async with uow_factory() as uow:
            users = generator.generate_users(2)
            products = generator.generate_products(3)
            await uow.users.add_range(users)
            await uow.products.add_range(products)
            await uow.save_changes()
            orders = generator.generate_orders(users, 4)
            await uow.orders.add_range(orders)
            await uow.save_changes()
            items = generator.generate_order_items(orders, products)
            await uow.order_items.add_range(items)
            await uow.save_changes()

        referenced = items[0].product_id
        async with uow_factory() as uow:
            items_before = await uow.order_items.count(OrderItem.product_id == referenced)
            product = await uow.products.get_by_id(referenced)
            await uow.products.delete(product)
            with pytest.raises(ConstraintViolation) as exc_info:
                await uow.save_changes()

        assert exc_info.value.kind == ConstraintViolation.FOREIGN_KEY
        async with uow_factory() as uow:
            assert await uow.products.exists(Product.id == referenced)
            assert await uow.order_items.count(OrderItem.product_id == referenced) == items_before
