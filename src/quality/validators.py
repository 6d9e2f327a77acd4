"""
Data Validation Module

Chainable rule checks over polars DataFrames. The reconciliation audit feeds
them customer rows joined with counters recomputed from orders, and the
product stock listing.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import polars as pl
import structlog

from src.database.models import utcnow

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    """How a failed check affects the overall status"""
    ERROR = "error"  # fails the suite
    WARNING = "warning"  # downgrades the suite to partial
    INFO = "info"


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Outcome of one rule"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Outcome of a whole suite"""
    status: ValidationStatus
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def total_checks(self) -> int:
        return len(self.checks)

    @property
    def passed_checks(self) -> int:
        return sum(1 for check in self.checks if check.passed)

    @property
    def failed_checks(self) -> int:
        return self._failures(ValidationSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        return self._failures(ValidationSeverity.WARNING)

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if not self.checks:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    def _failures(self, severity: ValidationSeverity) -> int:
        return sum(1 for check in self.checks if not check.passed and check.severity == severity)


Rule = Callable[[pl.DataFrame], ValidationCheck]


def _violations(
    df: pl.DataFrame,
    name: str,
    columns: List[str],
    violating: Callable[[], pl.Expr],
    severity: ValidationSeverity,
    ok_message: str,
    fail_message: str,
    details: Optional[Dict[str, Any]] = None,
) -> ValidationCheck:
    """Count rows matching ``violating``; a missing column fails the rule outright."""
    for column in columns:
        if column not in df.columns:
            return ValidationCheck(
                name=name,
                passed=False,
                severity=severity,
                message=f"Column '{column}' not found",
            )

    failed = df.filter(violating()).height
    return ValidationCheck(
        name=name,
        passed=failed == 0,
        severity=severity,
        message=ok_message if failed == 0 else fail_message.format(count=failed),
        details={**(details or {}), "failed_rows": failed},
        failed_rows=failed,
        total_rows=df.height,
    )


class DataValidator:
    """
    Ordered collection of rules.

    Example:
        result = (
            DataValidator()
            .add_not_null_check("customer_id")
            .add_match_check("visit_count", "expected_visit_count")
            .validate(df)
        )
    """

    def __init__(self, strict_mode: bool = False):
        self.strict_mode = strict_mode  # warnings fail the suite
        self._rules: List[Rule] = []

    def reset(self) -> None:
        self._rules = []

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        self._rules.append(lambda df: _violations(
            df,
            f"not_null_{column}",
            [column],
            lambda: pl.col(column).is_null(),
            severity,
            ok_message=f"Column '{column}' has no null values",
            fail_message=f"Column '{column}' has {{count}} null values",
        ))
        return self

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Values must lie within ``[min_value, max_value]``; either bound may be open."""
        def violating() -> pl.Expr:
            below = pl.col(column) < min_value if min_value is not None else pl.lit(False)
            above = pl.col(column) > max_value if max_value is not None else pl.lit(False)
            return below | above

        self._rules.append(lambda df: _violations(
            df,
            f"range_{column}",
            [column],
            violating,
            severity,
            ok_message="All values in range",
            fail_message=f"Column '{column}' has {{count}} values outside range [{min_value}, {max_value}]",
            details={"min": min_value, "max": max_value},
        ))
        return self

    def add_match_check(
        self,
        column: str,
        expected_column: str,
        tolerance: float = 0.0,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """``column`` must equal ``expected_column`` row by row, within ``tolerance``."""
        self._rules.append(lambda df: _violations(
            df,
            f"match_{column}",
            [column, expected_column],
            lambda: (pl.col(column) - pl.col(expected_column)).abs() > tolerance,
            severity,
            ok_message=f"Column '{column}' matches '{expected_column}'",
            fail_message=f"Column '{column}' differs from '{expected_column}' in {{count}} rows",
            details={"tolerance": tolerance},
        ))
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """Run every rule against ``df`` in the order they were added."""
        result = ValidationResult(status=ValidationStatus.PASSED)
        result.checks = [rule(df) for rule in self._rules]

        for check in result.checks:
            if not check.passed:
                logger.warning(
                    "Validation check failed",
                    check=check.name,
                    message=check.message,
                    severity=check.severity.value,
                )

        if result.failed_checks or (result.warning_count and self.strict_mode):
            result.status = ValidationStatus.FAILED
        elif result.warning_count:
            result.status = ValidationStatus.PARTIAL
        result.completed_at = utcnow()

        logger.info(
            "Validation complete",
            status=result.status.value,
            rows=df.height,
            passed=result.passed_checks,
            failed=result.failed_checks,
            warnings=result.warning_count,
        )
        return result


# Pre-built validators
def create_customer_counters_validator() -> DataValidator:
    """Stored customer counters must equal the values recomputed from orders"""
    return (
        DataValidator()
        .add_not_null_check("customer_id")
        .add_match_check("total_spent", "expected_total_spent", tolerance=0.005)
        .add_match_check("visit_count", "expected_visit_count")
        .add_match_check("loyalty_points", "expected_loyalty_points")
        .add_range_check("total_spent", min_value=0)
    )


def create_product_stock_validator() -> DataValidator:
    """Negative stock is tolerated as a backorder signal, so it only warns"""
    return (
        DataValidator()
        .add_not_null_check("product_id")
        .add_range_check("stock", min_value=0, severity=ValidationSeverity.WARNING)
    )
