"""
Request-scoped dependencies shared by the routers.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.database.connection import get_db_dependency
from src.ingestion.orders import OrderIngestionService
from src.reporting.engine import ReportingEngine


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_ingestion_service(
    db: AsyncSession = Depends(get_db_dependency),
    settings: Settings = Depends(get_app_settings),
) -> OrderIngestionService:
    return OrderIngestionService(db, settings)


def get_reporting_engine(
    db: AsyncSession = Depends(get_db_dependency),
    settings: Settings = Depends(get_app_settings),
) -> ReportingEngine:
    return ReportingEngine(db, settings)
