"""
Unit Tests - Data Quality
"""
import pytest
import polars as pl
from sqlalchemy import text

from shopdb.database.models import Order
from shopdb.ingestion.seeder import DataSeeder
from shopdb.quality.audit import AUDIT_COLUMNS, DataIntegrityAuditor, audit_passed, to_frame
from shopdb.quality.validators import (
    DataValidator,
    ValidationSeverity,
    ValidationStatus,
)


class TestDataValidator:
    """Tests for DataValidator"""

    def test_not_null_check_passes(self):
        """Test not null check with valid data"""
        df = pl.DataFrame({"id": [1, 2, 3], "name": ["a", "b", "c"]})

        result = DataValidator().add_not_null_check("id", "name").validate(df)

        assert result.status == ValidationStatus.PASSED
        assert result.passed_checks == 2

    def test_not_null_check_fails(self):
        """Test not null check with null values"""
        df = pl.DataFrame({"id": [1, None, 3], "name": ["a", "b", "c"]})

        result = DataValidator().add_not_null_check("id").validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.failed_checks == 1
        assert result.failures[0].failed_rows == 1

    def test_unique_check(self):
        """Test unique check with and without duplicates"""
        assert DataValidator().add_unique_check("id").validate(
            pl.DataFrame({"id": [1, 2, 3]})
        ).status == ValidationStatus.PASSED
        assert DataValidator().add_unique_check("id").validate(
            pl.DataFrame({"id": [1, 2, 1]})
        ).status == ValidationStatus.FAILED

    def test_composite_unique_check(self):
        """Test uniqueness over a column combination"""
        df = pl.DataFrame({"product": ["a", "a", "b"], "warehouse": ["x", "y", "x"]})

        assert DataValidator().add_unique_check("product", "warehouse").validate(df).status == ValidationStatus.PASSED
        assert DataValidator().add_unique_check("product").validate(df).status == ValidationStatus.FAILED

    def test_range_check(self):
        """Test range check"""
        df = pl.DataFrame({"price": [10.0, 50.0, -5.0, 200.0, None]})

        result = DataValidator().add_range_check("price", min_value=0, max_value=100).validate(df)

        assert result.status == ValidationStatus.FAILED
        # Two values outside range: -5 and 200
        assert result.checks[0].failed_rows == 2

    def test_enum_check(self):
        """Test allowed values"""
        df = pl.DataFrame({"status": ["active", "inactive", "unknown"]})

        result = DataValidator().add_enum_check("status", ["active", "inactive"]).validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].details["invalid_count"] == 1

    def test_rule_check_ignores_nulls(self):
        """Test rows where the rule is null are not violations"""
        df = pl.DataFrame({"price": [10.0, 20.0, 30.0], "sale_price": [8.0, None, 35.0]})

        result = (
            DataValidator()
            .add_rule_check("sale_not_above_price", pl.col("sale_price") <= pl.col("price"))
            .validate(df)
        )

        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].failed_rows == 1

    def test_referential_integrity(self):
        """Test orphaned references are counted"""
        df = pl.DataFrame({"user_id": ["u1", "u2", "u9", None]})

        result = DataValidator().add_referential_integrity_check("user_id", ["u1", "u2"], "user").validate(df)

        assert result.status == ValidationStatus.FAILED
        assert result.checks[0].details["orphan_count"] == 1

    def test_referential_integrity_without_parents(self):
        """Test every non-null reference is an orphan when no parents exist"""
        df = pl.DataFrame({"user_id": ["u1", None]}, schema={"user_id": pl.Utf8})

        result = DataValidator().add_referential_integrity_check("user_id", []).validate(df)

        assert result.checks[0].failed_rows == 1

    def test_missing_column(self):
        """Test a check on an absent column fails with a message"""
        result = DataValidator().add_not_null_check("missing").validate(pl.DataFrame({"id": [1]}))

        assert result.status == ValidationStatus.FAILED
        assert "missing" in result.checks[0].message

    def test_warnings_give_partial_status(self):
        """Test warnings only degrade the status, unless strict"""
        df = pl.DataFrame({"id": [1, 1]})

        lenient = DataValidator().add_unique_check("id", severity=ValidationSeverity.WARNING).validate(df)
        strict = (
            DataValidator(strict_mode=True)
            .add_unique_check("id", severity=ValidationSeverity.WARNING)
            .validate(df)
        )

        assert lenient.status == ValidationStatus.PARTIAL
        assert lenient.warning_count == 1
        assert strict.status == ValidationStatus.FAILED

    def test_success_rate(self):
        """Test success rate calculation"""
        df = pl.DataFrame({"id": [1, 2, 2]})

        result = DataValidator().add_not_null_check("id").add_unique_check("id").validate(df)

        assert result.success_rate == 50.0
        assert result.completed_at is not None


class TestToFrame:
    """Tests for loading rows into typed frames"""

    def test_empty_table_keeps_columns(self):
        """Test an empty result still has every column"""
        schema = {"id": pl.Utf8, "total": pl.Float64}

        df = to_frame([], schema)

        assert df.height == 0
        assert df.columns == ["id", "total"]
        assert df.schema["total"] == pl.Float64


class TestDataIntegrityAuditor:
    """Tests for the audit over persisted data"""

    async def test_seeded_data_passes(self, uow_factory, generator, session_factory):
        """Test generated data satisfies every check"""
        async with uow_factory() as uow:
            await DataSeeder(uow, generator).seed(count=6)

        results = await DataIntegrityAuditor(session_factory).audit()

        assert set(results) == {model.__tablename__ for model in AUDIT_COLUMNS}
        assert audit_passed(results), {t: [c.message for c in r.failures] for t, r in results.items()}

    async def test_empty_store_passes(self, session_factory):
        """Test an empty database has nothing to flag"""
        results = await DataIntegrityAuditor(session_factory).audit()

        assert audit_passed(results)

    async def test_tampered_totals_fail(self, uow_factory, generator, session_factory, engine):
        """Test order totals that no longer add up are reported"""
        async with uow_factory() as uow:
            await DataSeeder(uow, generator).seed(count=4)
        async with engine.begin() as conn:
            await conn.execute(text("UPDATE orders SET total = total + 5"))

        results = await DataIntegrityAuditor(session_factory).audit()

        assert results["orders"].status == ValidationStatus.FAILED
        assert [check.name for check in results["orders"].failures] == ["total_is_subtotal_plus_tax_plus_shipping"]
        assert results["orders"].failures[0].failed_rows == 4
        assert results["users"].status == ValidationStatus.PASSED
        assert not audit_passed(results)

    @pytest.mark.parametrize("model", [Order])
    async def test_frames_are_typed(self, session_factory, model):
        """Test frames carry the declared schema"""
        frames = await DataIntegrityAuditor(session_factory).load_frames()

        frame = frames[model.__tablename__]
        assert frame.schema["total"] == pl.Float64
        assert frame.schema["id"] == pl.Utf8
