"""
Reporting Module
"""
from .engine import ReportingEngine, growth_percentage, profit_margin

__all__ = [
    "ReportingEngine",
    "growth_percentage",
    "profit_margin",
]
