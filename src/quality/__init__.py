"""
Data Quality Module
"""
from .validators import DataValidator, ValidationResult
from .reconciliation import ReconciliationReport, reconcile_customers

__all__ = [
    "DataValidator",
    "ValidationResult",
    "ReconciliationReport",
    "reconcile_customers",
]
