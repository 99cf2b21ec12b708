"""
Database Lifecycle Management

Startup orchestration for the store: probe connectivity, create or migrate
the schema, provision database objects and seed an empty database.

Probes (is_accessible, has_existing_data, statistics) never raise; they log
and report. Schema work raises SchemaError so dependent seeding never runs
against a half-built store.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
import time
from typing import Callable, Dict, List, Optional, Union

import structlog
from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from alembic.util import CommandError
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from shopdb.config import Settings, StartupSettings, get_settings
from shopdb.data.generators import DataGenerator
from shopdb.database.connection import ping
from shopdb.database.models import ENTITY_MODELS, PRIMARY_MODELS, Base
from shopdb.exceptions import ConnectivityError, SchemaError
from shopdb.ingestion.seeder import DataSeeder, EntityDataSource, SeedResult
from shopdb.objects.executor import DatabaseScriptExecutor
from shopdb.persistence.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)

MIGRATIONS_PATH = Path(__file__).resolve().parent.parent / "database" / "migrations"


class LifecycleState(str, Enum):
    UNKNOWN = "unknown"
    ACCESSIBLE = "accessible"
    INACCESSIBLE = "inaccessible"
    PROVISIONED = "provisioned"
    SEEDED = "seeded"
    SKIPPED_SEEDING = "skipped_seeding"


@dataclass
class DatabaseStatistics:
    """Row counts per table; zero wherever a count could not be taken"""
    accessible: bool = False
    database_name: Optional[str] = None
    users: int = 0
    user_profiles: int = 0
    user_sessions: int = 0
    products: int = 0
    product_reviews: int = 0
    product_inventories: int = 0
    orders: int = 0
    order_items: int = 0
    order_status_histories: int = 0

    def counts(self) -> Dict[str, int]:
        return {model.__tablename__: getattr(self, model.__tablename__) for model in ENTITY_MODELS}

    @property
    def total_records(self) -> int:
        return sum(self.counts().values())

    @property
    def has_data(self) -> bool:
        return self.users + self.products + self.orders > 0


def alembic_config() -> Config:
    """Alembic configuration pointing at the packaged migrations"""
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    return config


class DatabaseLifecycleManager:
    """
    Provisions and seeds the store behind one engine.

    Example:
        manager = DatabaseLifecycleManager(engine, session_factory)
        await manager.initialize(confirm_seed=lambda: True)
        stats = await manager.statistics()
    """

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
        data_source: Optional[EntityDataSource] = None,
        script_executor: Optional[DatabaseScriptExecutor] = None,
        settings: Optional[Settings] = None,
    ):
        self.engine = engine
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.data_source = data_source or DataGenerator(random_seed=self.settings.seeding.random_seed)
        self.script_executor = script_executor or DatabaseScriptExecutor(engine)
        self.state = LifecycleState.UNKNOWN

    @property
    def database_name(self) -> Optional[str]:
        return self.engine.url.database

    # -------------------------------------------------------------------------
    # Probes
    # -------------------------------------------------------------------------

    async def is_accessible(self) -> bool:
        """True if a trivial round trip succeeds"""
        try:
            start = time.perf_counter()
            await ping(self.engine)
        except Exception as e:
            error = ConnectivityError(f"Database is not accessible: {e}", details={"database": self.database_name})
            logger.warning("Database not accessible", **error.to_dict())
            self.state = LifecycleState.INACCESSIBLE
            return False

        latency_ms = (time.perf_counter() - start) * 1000
        logger.info("Database accessible", database=self.database_name, latency_ms=round(latency_ms, 2))
        if self.state in (LifecycleState.UNKNOWN, LifecycleState.INACCESSIBLE):
            self.state = LifecycleState.ACCESSIBLE
        return True

    async def _primary_row_count(self) -> Optional[int]:
        """Users + products + orders; missing tables count as empty, None if unknown"""
        try:
            async with self.engine.connect() as conn:
                existing = await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))
            async with UnitOfWork(self.session_factory) as uow:
                total = 0
                for model in PRIMARY_MODELS:
                    if model.__tablename__ in existing:
                        total += await uow.repository(model).count()
        except SQLAlchemyError as e:
            logger.warning("Could not check for existing data", error=str(e))
            return None
        return total

    async def has_existing_data(self) -> bool:
        """True if any user, product or order exists"""
        return bool(await self._primary_row_count())

    async def statistics(self) -> DatabaseStatistics:
        """Best-effort row counts for every table"""
        stats = DatabaseStatistics(accessible=await self.is_accessible(), database_name=self.database_name)
        if not stats.accessible:
            return stats

        async with UnitOfWork(self.session_factory) as uow:
            for model in ENTITY_MODELS:
                try:
                    setattr(stats, model.__tablename__, await uow.repository(model).count())
                except SQLAlchemyError as e:
                    logger.warning("Count failed", table=model.__tablename__, error=str(e))
                    await uow.session.rollback()
        return stats

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    async def ensure_created(self) -> bool:
        """
        Create any missing tables.

        A schema created from nothing is stamped at the latest migration so
        apply_pending_changes has nothing left to do.

        Returns:
            True if tables were created, False if the schema was complete

        Raises:
            SchemaError: Creation failed
        """
        expected = set(Base.metadata.tables)
        try:
            async with self.engine.begin() as conn:
                existing = await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))
                missing = expected - existing
                if not missing:
                    logger.debug("Schema already present", tables=len(expected))
                    return False

                await conn.run_sync(Base.metadata.create_all)
                if not expected & existing:
                    await conn.run_sync(self._stamp_head)
        except (SQLAlchemyError, CommandError) as e:
            logger.error("Schema creation failed", error=str(e))
            raise SchemaError(f"Failed to create schema: {e}") from e

        logger.info("Schema created", tables=sorted(missing))
        return True

    @staticmethod
    def _stamp_head(sync_conn) -> None:
        config = alembic_config()
        config.attributes["connection"] = sync_conn
        command.stamp(config, "head")

    @staticmethod
    def _upgrade_head(sync_conn) -> None:
        config = alembic_config()
        config.attributes["connection"] = sync_conn
        command.upgrade(config, "head")

    async def pending_migrations(self) -> List[str]:
        """Revision ids not yet applied, oldest first"""
        script = ScriptDirectory.from_config(alembic_config())
        async with self.engine.connect() as conn:
            current = await conn.run_sync(
                lambda sync_conn: set(MigrationContext.configure(sync_conn).get_current_heads())
            )

        pending = []
        for revision in script.walk_revisions():
            if revision.revision in current:
                break
            pending.append(revision.revision)
        return list(reversed(pending))

    async def apply_pending_changes(self) -> List[str]:
        """
        Upgrade the schema to the latest migration.

        Returns:
            Applied revision ids, empty if the schema was current

        Raises:
            SchemaError: A migration failed
        """
        try:
            pending = await self.pending_migrations()
            if not pending:
                logger.info("No pending migrations")
                return []

            logger.info("Applying migrations", revisions=pending)
            async with self.engine.begin() as conn:
                await conn.run_sync(self._upgrade_head)
        except (SQLAlchemyError, CommandError) as e:
            logger.error("Migration failed", error=str(e))
            raise SchemaError(f"Failed to apply migrations: {e}") from e

        logger.info("Migrations applied", count=len(pending))
        return pending

    async def reset_schema(self) -> None:
        """
        Drop every view and table, then recreate the tables.

        WARNING: This is destructive and will delete all data!
        """
        try:
            async with self.engine.begin() as conn:
                views = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_view_names())
                for view in views:
                    if view.lower().startswith("vw_"):
                        await conn.execute(text(f"DROP VIEW IF EXISTS {view}"))
                await conn.run_sync(Base.metadata.drop_all)
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            logger.error("Schema reset failed", error=str(e))
            raise SchemaError(f"Failed to reset schema: {e}") from e
        logger.warning("Schema reset, all data removed", database=self.database_name)

    # -------------------------------------------------------------------------
    # Objects and data
    # -------------------------------------------------------------------------

    def scripts_directory(self) -> Path:
        return Path(self.settings.scripts_path) / self.engine.dialect.name

    async def execute_database_scripts(self, directory: Union[str, Path, None] = None) -> int:
        """Provision views, functions and procedures; returns scripts run"""
        return await self.script_executor.execute_scripts(directory or self.scripts_directory())

    async def seed_if_needed(
        self, force: bool = False, count: Optional[int] = None, atomic: bool = False
    ) -> Optional[SeedResult]:
        """
        Seed when forced or when no primary data exists.

        An unforced run is skipped when the existing data cannot be counted.

        Returns:
            The seeding result, or None if seeding was skipped

        Raises:
            ValueError: If ``count`` is not positive
        """
        if not force:
            existing = await self._primary_row_count()
            if existing is None:
                logger.warning("Existing data could not be checked, skipping seeding")
                self.state = LifecycleState.SKIPPED_SEEDING
                return None
            if existing:
                logger.info("Database already contains data, skipping seeding")
                self.state = LifecycleState.SKIPPED_SEEDING
                return None

        seeding = self.settings.seeding
        async with UnitOfWork(self.session_factory) as uow:
            seeder = DataSeeder(uow, self.data_source, profile_probability=seeding.profile_probability)
            result = await seeder.seed(
                count=seeding.record_count if count is None else count,
                atomic=atomic,
            )
        self.state = LifecycleState.SEEDED
        return result

    async def initialize(
        self,
        startup: Optional[StartupSettings] = None,
        confirm_seed: Optional[Callable[[], bool]] = None,
    ) -> LifecycleState:
        """
        Run the startup flow.

        Order: probe, create, migrate, scripts, seed. An inaccessible store
        stops the flow at once; a SchemaError propagates before seeding.
        Seeding runs when auto-seed is on, or when prompting is on, the
        store is empty and ``confirm_seed()`` agrees.
        """
        startup = startup or self.settings.startup
        logger.info("Initializing database", database=self.database_name, **startup.model_dump())

        if not await self.is_accessible():
            return self.state

        if startup.auto_create_database:
            await self.ensure_created()
        if startup.auto_apply_migrations:
            await self.apply_pending_changes()
        if startup.auto_execute_scripts:
            await self.execute_database_scripts()
        self.state = LifecycleState.PROVISIONED

        if not startup.auto_seed:
            wants_seed = (
                startup.prompt_for_seed
                and confirm_seed is not None
                and not await self.has_existing_data()
                and confirm_seed()
            )
            if not wants_seed:
                logger.info("Seeding skipped")
                self.state = LifecycleState.SKIPPED_SEEDING
                return self.state

        await self.seed_if_needed()
        logger.info("Database initialized", state=self.state.value)
        return self.state
