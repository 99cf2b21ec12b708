"""
Data Validation Module

Rule-based checks over polars frames loaded from the store.

Checks:
- Null and uniqueness checks (single or composite columns)
- Range and allowed-value checks
- Row expressions for cross-column business rules
- Referential integrity against a set of parent keys
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Collection, Dict, List, Optional, Sequence

import polars as pl
import structlog

from shopdb.database.models import utcnow

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # Fails the table
    WARNING = "warning"  # Reported, table is PARTIAL
    INFO = "info"


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Outcome of one validator over one frame"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    @property
    def failures(self) -> List[ValidationCheck]:
        return [check for check in self.checks if not check.passed]


Check = Callable[[pl.DataFrame], ValidationCheck]


def _missing(df: pl.DataFrame, columns: Sequence[str]) -> List[str]:
    return [column for column in columns if column not in df.columns]


class DataValidator:
    """
    Chainable suite of checks run against a single frame.

    Example:
        result = (
            DataValidator("orders")
            .add_not_null_check("id", "user_id")
            .add_unique_check("order_number")
            .add_rule_check("total_matches", pl.col("total") == pl.col("subtotal") + ...)
            .validate(orders_df)
        )
    """

    def __init__(self, name: str = "frame", strict_mode: bool = False):
        self.name = name
        self.strict_mode = strict_mode  # Warnings fail the result too
        self._checks: List[Check] = []

    def reset(self) -> None:
        self._checks = []

    def _register(self, name: str, columns: Sequence[str], severity: ValidationSeverity,
                  evaluate: Callable[[pl.DataFrame], ValidationCheck]) -> "DataValidator":
        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = _missing(df, columns)
            if missing:
                return ValidationCheck(
                    name=name,
                    passed=False,
                    severity=severity,
                    message=f"Columns not found: {', '.join(missing)}",
                    total_rows=df.height,
                )
            return evaluate(df)

        self._checks.append(check)
        return self

    def add_not_null_check(
        self,
        *columns: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """One check per column: no null values"""
        for column in columns:
            def evaluate(df: pl.DataFrame, column: str = column) -> ValidationCheck:
                null_count = df[column].null_count()
                return ValidationCheck(
                    name=f"not_null_{column}",
                    passed=null_count == 0,
                    severity=severity,
                    message=f"Column '{column}' has {null_count} null values",
                    details={"null_count": null_count},
                    failed_rows=null_count,
                    total_rows=df.height,
                )

            self._register(f"not_null_{column}", [column], severity, evaluate)
        return self

    def add_unique_check(
        self,
        *columns: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """The combination of ``columns`` identifies at most one row"""
        name = f"unique_{'_'.join(columns)}"

        def evaluate(df: pl.DataFrame) -> ValidationCheck:
            distinct = df.select(list(columns)).unique().height
            duplicates = df.height - distinct
            return ValidationCheck(
                name=name,
                passed=duplicates == 0,
                severity=severity,
                message=f"{duplicates} duplicate rows over ({', '.join(columns)})",
                details={"duplicate_count": duplicates},
                failed_rows=duplicates,
                total_rows=df.height,
            )

        return self._register(name, columns, severity, evaluate)

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Non-null values lie within [min_value, max_value]"""
        name = f"range_{column}"

        def evaluate(df: pl.DataFrame) -> ValidationCheck:
            outside = pl.lit(False)
            if min_value is not None:
                outside = outside | (pl.col(column) < min_value)
            if max_value is not None:
                outside = outside | (pl.col(column) > max_value)
            out_of_range = df.filter(outside & pl.col(column).is_not_null()).height
            return ValidationCheck(
                name=name,
                passed=out_of_range == 0,
                severity=severity,
                message=f"Column '{column}' has {out_of_range} values outside [{min_value}, {max_value}]",
                details={"min": min_value, "max": max_value, "out_of_range_count": out_of_range},
                failed_rows=out_of_range,
                total_rows=df.height,
            )

        return self._register(name, [column], severity, evaluate)

    def add_enum_check(
        self,
        column: str,
        allowed_values: Collection[Any],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Non-null values belong to ``allowed_values``"""
        name = f"enum_{column}"
        allowed = list(allowed_values)

        def evaluate(df: pl.DataFrame) -> ValidationCheck:
            invalid = df.filter(~pl.col(column).is_in(allowed) & pl.col(column).is_not_null()).height
            return ValidationCheck(
                name=name,
                passed=invalid == 0,
                severity=severity,
                message=f"Column '{column}' has {invalid} invalid values",
                details={"allowed_values": allowed, "invalid_count": invalid},
                failed_rows=invalid,
                total_rows=df.height,
            )

        return self._register(name, [column], severity, evaluate)

    def add_rule_check(
        self,
        name: str,
        rule: pl.Expr,
        columns: Sequence[str] = (),
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """
        Every row satisfies ``rule``.

        Rows where the rule evaluates to null (a nullable operand) are not
        counted as violations.
        """
        def evaluate(df: pl.DataFrame) -> ValidationCheck:
            violations = df.filter(rule.not_()).height if df.height else 0
            return ValidationCheck(
                name=name,
                passed=violations == 0,
                severity=severity,
                message=f"Rule '{name}' violated by {violations} rows",
                details={"violations": violations},
                failed_rows=violations,
                total_rows=df.height,
            )

        return self._register(name, columns, severity, evaluate)

    def add_referential_integrity_check(
        self,
        column: str,
        reference_values: Collection[Any],
        reference_name: str = "parent",
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Non-null values of ``column`` exist among the parent keys"""
        name = f"ref_integrity_{column}"
        parents = list(set(reference_values))

        def evaluate(df: pl.DataFrame) -> ValidationCheck:
            if parents:
                orphans = df.filter(~pl.col(column).is_in(parents) & pl.col(column).is_not_null()).height
            else:
                orphans = df.height - df[column].null_count()
            return ValidationCheck(
                name=name,
                passed=orphans == 0,
                severity=severity,
                message=f"Column '{column}' has {orphans} rows without a {reference_name}",
                details={"orphan_count": orphans, "reference": reference_name},
                failed_rows=orphans,
                total_rows=df.height,
            )

        return self._register(name, [column], severity, evaluate)

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all checks against ``df``.

        Returns:
            ValidationResult: FAILED on any error-level failure, PARTIAL on
            warnings only (FAILED in strict mode), PASSED otherwise
        """
        started_at = utcnow()
        results = [check(df) for check in self._checks]

        for result in results:
            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    table=self.name,
                    message=result.message,
                    severity=result.severity.value,
                )

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0 or (warning_count > 0 and self.strict_mode):
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        logger.info(
            f"Validation complete: {status.value}",
            table=self.name,
            rows=df.height,
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
        )
        return ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=utcnow(),
        )
