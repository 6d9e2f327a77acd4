"""
Financial Metrics and Market Research Endpoints

Manually recorded business data shown next to the computed reports.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import AliasChoices, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.connection import get_db_dependency
from src.database.models import FinancialMetric, MarketResearch
from src.serving.api.routes.reports import FinancialMetricResponse
from src.serving.api.schemas import CamelModel
from src.serving.cache import reports_cache

logger = structlog.get_logger(__name__)

financial_metrics_router = APIRouter()
market_research_router = APIRouter()


class FinancialMetricCreate(CamelModel):
    metric_date: date = Field(validation_alias=AliasChoices("date", "metric_date"), serialization_alias="date")
    revenue: Decimal = Field(ge=0)
    expenses: Decimal = Field(ge=0)
    profit: Optional[Decimal] = None
    category: str = Field(default="monthly", min_length=1)
    notes: Optional[str] = None


class MarketResearchCreate(CamelModel):
    title: str = Field(min_length=1)
    category: str = Field(min_length=1)
    findings: str = Field(min_length=1)
    description: Optional[str] = None
    source: Optional[str] = None


class MarketResearchResponse(CamelModel):
    id: UUID
    title: str
    category: str
    description: Optional[str] = None
    findings: str
    source: Optional[str] = None
    created_at: datetime


@financial_metrics_router.get("", response_model=List[FinancialMetricResponse])
async def list_financial_metrics(
    limit: int = Query(12, ge=1, le=120),
    db: AsyncSession = Depends(get_db_dependency),
) -> List[FinancialMetricResponse]:
    """Recorded metrics, newest first."""
    result = await db.execute(
        select(FinancialMetric).order_by(FinancialMetric.metric_date.desc()).limit(limit)
    )
    return [FinancialMetricResponse.model_validate(metric) for metric in result.scalars().all()]


@financial_metrics_router.post("", response_model=FinancialMetricResponse, status_code=201)
async def create_financial_metric(
    payload: FinancialMetricCreate,
    db: AsyncSession = Depends(get_db_dependency),
) -> FinancialMetricResponse:
    """Record a metric; profit defaults to revenue minus expenses."""
    profit = payload.profit if payload.profit is not None else payload.revenue - payload.expenses
    metric = FinancialMetric(
        metric_date=payload.metric_date,
        revenue=payload.revenue,
        expenses=payload.expenses,
        profit=profit,
        category=payload.category,
        notes=payload.notes,
    )
    db.add(metric)
    await db.flush()

    logger.info("Financial metric recorded", metric_date=str(metric.metric_date), profit=str(profit))
    await reports_cache.invalidate_all()
    return FinancialMetricResponse.model_validate(metric)


@market_research_router.get("", response_model=List[MarketResearchResponse])
async def list_market_research(
    category: Optional[str] = None,
    db: AsyncSession = Depends(get_db_dependency),
) -> List[MarketResearchResponse]:
    query = select(MarketResearch)
    if category:
        query = query.where(MarketResearch.category == category)
    result = await db.execute(query.order_by(MarketResearch.created_at.desc()))
    return [MarketResearchResponse.model_validate(note) for note in result.scalars().all()]


@market_research_router.post("", response_model=MarketResearchResponse, status_code=201)
async def create_market_research(
    payload: MarketResearchCreate,
    db: AsyncSession = Depends(get_db_dependency),
) -> MarketResearchResponse:
    note = MarketResearch(**payload.model_dump())
    db.add(note)
    await db.flush()

    logger.info("Market research recorded", research_id=str(note.id), category=note.category)
    return MarketResearchResponse.model_validate(note)
