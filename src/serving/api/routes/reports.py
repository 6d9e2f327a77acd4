"""
Reports API Endpoints

Dashboard aggregations: financial summary, sales comparison, overview,
customer statistics and the counter reconciliation audit.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import AliasChoices, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.connection import get_db_dependency
from src.quality.reconciliation import reconcile_customers
from src.quality.validators import ValidationSeverity, ValidationStatus
from src.reporting.engine import ReportingEngine
from src.serving.api.dependencies import get_reporting_engine
from src.serving.api.schemas import CamelModel
from src.serving.cache import reports_cache

router = APIRouter()


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class MonthlyReportResponse(CamelModel):
    month: str
    revenue: float
    costs: float
    profit: float
    orders: int
    profit_margin: float


class TopProductResponse(CamelModel):
    id: UUID
    name: str
    category: str
    price: float
    total_sold: int
    total_revenue: float


class FinancialMetricResponse(CamelModel):
    id: UUID
    metric_date: date = Field(validation_alias=AliasChoices("date", "metric_date"), serialization_alias="date")
    revenue: float
    expenses: float
    profit: float
    category: str
    notes: Optional[str] = None


class FinancialSummaryResponse(CamelModel):
    total_revenue: float
    total_costs: float
    total_profit: float
    profit_margin: float
    average_order_value: float
    monthly_reports: List[MonthlyReportResponse]
    financial_metrics: List[FinancialMetricResponse]


class PaymentMethodSalesResponse(CamelModel):
    payment_method: str
    revenue: float
    orders: int


class SalesReportResponse(CamelModel):
    period_start: datetime
    period_end: datetime
    current_revenue: float
    previous_revenue: float
    revenue_growth: float
    current_order_count: int
    previous_order_count: int
    order_growth: float
    average_order_value: float
    sales_by_payment_method: List[PaymentMethodSalesResponse]
    top_products: List[TopProductResponse]


class RecentOrderResponse(CamelModel):
    id: UUID
    order_date: datetime
    total: float
    status: str
    payment_method: str
    customer_name: str
    customer_email: str


class OverviewResponse(CamelModel):
    revenue: float
    orders: int
    customers: int
    recent_orders: List[RecentOrderResponse]
    top_products: List[TopProductResponse]


class CustomerStatsResponse(CamelModel):
    total_customers: int
    active_customers: int
    vip_customers: int
    average_spending: float


class CheckResponse(CamelModel):
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int
    total_rows: int


class CustomerDriftResponse(CamelModel):
    customer_id: str
    email: str
    total_spent: float
    expected_total_spent: float
    visit_count: int
    expected_visit_count: int
    loyalty_points: int
    expected_loyalty_points: int


class ReconciliationResponse(CamelModel):
    status: ValidationStatus
    customers_checked: int
    products_checked: int
    checks: List[CheckResponse]
    drift: List[CustomerDriftResponse]
    negative_stock: List[str]


def _payload(model, value) -> dict:
    return model.model_validate(value).model_dump(mode="json", by_alias=True)


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/summary", response_model=FinancialSummaryResponse)
async def financial_summary(engine: ReportingEngine = Depends(get_reporting_engine)):
    """Revenue, cost of goods, profit and the last six months."""
    async def build():
        return _payload(FinancialSummaryResponse, await engine.financial_summary())

    return await reports_cache.get_or_set("summary", build)


@router.get("/sales", response_model=SalesReportResponse)
async def sales_report(
    days: int = Query(30, ge=1, le=365),
    engine: ReportingEngine = Depends(get_reporting_engine),
):
    """Current period against the previous period of equal length."""
    async def build():
        return _payload(SalesReportResponse, await engine.sales_report(days=days))

    return await reports_cache.get_or_set(f"sales:{days}", build)


@router.get("/overview", response_model=OverviewResponse)
async def overview(
    days: int = Query(30, ge=1, le=365),
    engine: ReportingEngine = Depends(get_reporting_engine),
):
    async def build():
        return _payload(OverviewResponse, await engine.overview(days=days))

    return await reports_cache.get_or_set(f"overview:{days}", build)


@router.get("/customers", response_model=CustomerStatsResponse)
async def customer_stats(engine: ReportingEngine = Depends(get_reporting_engine)):
    async def build():
        return _payload(CustomerStatsResponse, await engine.customer_stats())

    return await reports_cache.get_or_set("customers", build)


@router.get("/reconciliation", response_model=ReconciliationResponse)
async def reconciliation(db: AsyncSession = Depends(get_db_dependency)) -> ReconciliationResponse:
    """Stored customer counters and stock checked against the order history."""
    return ReconciliationResponse.model_validate(await reconcile_customers(db))
