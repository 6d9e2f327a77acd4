"""
Database Module
"""
from .connection import Database, get_database, get_db_dependency
from .models import Base

__all__ = [
    "Database",
    "get_database",
    "get_db_dependency",
    "Base",
]
