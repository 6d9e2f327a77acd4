"""
Data Ingestion Module
"""
from .aggregates import AggregateMaintainer
from .orders import ImportRecord, ImportResult, OrderIngestionService, OrderLine

__all__ = [
    "AggregateMaintainer",
    "ImportRecord",
    "ImportResult",
    "OrderIngestionService",
    "OrderLine",
]
