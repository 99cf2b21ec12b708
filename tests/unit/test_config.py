"""
Unit Tests - Configuration
"""
import pytest
from pydantic import ValidationError

from shopdb.config import DatabaseSettings, Settings, StartupSettings
from shopdb.exceptions import ConstraintViolation, ShopDbError


class TestDatabaseSettings:
    """Tests for connection URL building"""

    def test_sqlite_url(self):
        """Test the SQLite file path becomes an aiosqlite URL"""
        settings = DatabaseSettings(provider="sqlite", sqlite_path="./data/shop.sqlite3")

        assert settings.async_url == "sqlite+aiosqlite:///./data/shop.sqlite3"

    def test_postgresql_url(self):
        """Test PostgreSQL fields become an asyncpg URL"""
        settings = DatabaseSettings(
            provider="postgresql", host="db", port=5433, name="shop", user="app", password="s3cret"
        )

        assert settings.async_url == "postgresql+asyncpg://app:s3cret@db:5433/shop"
        assert "s3cret" not in repr(settings)

    def test_url_override(self):
        """Test a full URL wins over the individual fields"""
        settings = DatabaseSettings(provider="postgresql", url="sqlite+aiosqlite:///:memory:")

        assert settings.async_url == "sqlite+aiosqlite:///:memory:"

    def test_environment_prefix(self, monkeypatch):
        """Test DATABASE_ variables are read"""
        monkeypatch.setenv("DATABASE_PROVIDER", "postgresql")
        monkeypatch.setenv("DATABASE_HOST", "envhost")

        settings = DatabaseSettings()

        assert settings.provider == "postgresql"
        assert settings.host == "envhost"


class TestSettings:
    """Tests for the aggregate settings"""

    def test_defaults(self, test_settings):
        """Test default startup and seeding behaviour"""
        assert test_settings.app_env == "testing"
        assert test_settings.startup.auto_create_database is True
        assert test_settings.startup.auto_seed is False
        assert test_settings.seeding.record_count == 1000
        assert test_settings.is_production is False

    def test_invalid_environment(self):
        """Test unknown environments are rejected"""
        with pytest.raises(ValidationError):
            Settings(app_env="moon")

    def test_invalid_provider(self):
        """Test only supported engines are accepted"""
        with pytest.raises(ValidationError):
            DatabaseSettings(provider="oracle")

    def test_startup_environment(self, monkeypatch):
        """Test STARTUP_ variables toggle steps"""
        monkeypatch.setenv("STARTUP_AUTO_SEED", "true")

        assert StartupSettings().auto_seed is True


class TestErrors:
    """Tests for the error hierarchy"""

    def test_to_dict(self):
        """Test errors serialise code, message and details"""
        error = ShopDbError("Something broke", code="BROKEN", details={"table": "users"})

        assert error.to_dict() == {"error": "BROKEN", "message": "Something broke", "details": {"table": "users"}}

    def test_constraint_violation_is_persistence_error(self):
        """Test constraint failures can be caught as persistence errors"""
        violation = ConstraintViolation("duplicate", kind=ConstraintViolation.DUPLICATE_KEY)

        assert isinstance(violation, ShopDbError)
        assert violation.kind == ConstraintViolation.DUPLICATE_KEY
