"""
shopdb Configuration Management

Pydantic settings with environment variable support for the database
connection, startup behaviour, synthetic data seeding and logging.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database Connection Configuration"""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    provider: Literal["postgresql", "sqlite"] = Field(default="sqlite", description="Storage engine")
    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    name: str = Field(default="shopdb", description="Database name")
    user: str = Field(default="shopdb", description="Database user")
    password: SecretStr = Field(default=SecretStr("shopdb_password"), description="Database password")
    sqlite_path: str = Field(default="./shopdb.sqlite3", description="SQLite database file")
    echo: bool = Field(default=False, description="Echo SQL statements")
    url: Optional[str] = Field(default=None, description="Full async URL (overrides the fields above)")

    @property
    def async_url(self) -> str:
        """Async database URL for the configured provider"""
        if self.url:
            return self.url
        if self.provider == "sqlite":
            return f"sqlite+aiosqlite:///{self.sqlite_path}"
        return (
            f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}"
            f"@{self.host}:{self.port}/{self.name}"
        )


class StartupSettings(BaseSettings):
    """Provisioning steps run when the application starts"""

    model_config = SettingsConfigDict(env_prefix="STARTUP_")

    auto_create_database: bool = Field(default=True, description="Create missing tables")
    auto_apply_migrations: bool = Field(default=True, description="Upgrade schema to the latest revision")
    auto_execute_scripts: bool = Field(default=True, description="Provision views, functions and procedures")
    auto_seed: bool = Field(default=False, description="Seed an empty database without asking")
    prompt_for_seed: bool = Field(default=True, description="Ask before seeding an empty database")


class SeedingSettings(BaseSettings):
    """Synthetic Data Configuration"""

    model_config = SettingsConfigDict(env_prefix="SEED_")

    record_count: int = Field(default=1000, ge=1, description="Users, products and orders per seeding run")
    profile_probability: float = Field(default=0.8, ge=0.0, le=1.0, description="Share of users given a profile")
    random_seed: Optional[int] = Field(default=None, description="Seed for reproducible generation")


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="text", alias="LOG_FORMAT", description="Log format: json or text")
    sql_log_level: str = Field(default="WARNING", alias="SQL_LOG_LEVEL", description="SQLAlchemy engine log level")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="shopdb", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")
    version: str = Field(default="1.0.0", description="Application version")

    # Location of the per-dialect database object scripts
    scripts_path: Path = Field(
        default=Path(__file__).resolve().parent.parent / "database" / "scripts",
        alias="SCRIPTS_PATH",
        description="Root directory of database object scripts",
    )

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    startup: StartupSettings = Field(default_factory=StartupSettings)
    seeding: SeedingSettings = Field(default_factory=SeedingSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
