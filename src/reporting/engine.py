"""
Reporting Engine

Read-only aggregation over orders, order items and products for the
financial, sales, overview and customer dashboards. Nothing here mutates
state, so repeated calls without intervening writes return identical
results.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

import polars as pl
import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.database.models import (
    Customer,
    FinancialMetric,
    Order,
    OrderItem,
    Product,
    utcnow,
)

logger = structlog.get_logger(__name__)

MONTHS_IN_REPORT = 6
OVERVIEW_TOP_PRODUCTS = 5
SALES_TOP_PRODUCTS = 10
RECENT_ORDERS = 5


def profit_margin(profit: float, revenue: float) -> float:
    """Profit as a percentage of revenue; 0 when there is no revenue."""
    if revenue > 0:
        return (profit / revenue) * 100
    return 0.0


def growth_percentage(current: float, previous: float) -> float:
    """Change from the previous period in percent; 0 without a previous value."""
    if previous > 0:
        return ((current - previous) / previous) * 100
    return 0.0


def month_label(value: datetime) -> str:
    """Bucket label such as ``Jan 2026``."""
    return value.strftime("%b %Y")


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class PeriodMetrics:
    revenue: float
    orders: int
    customers: int


@dataclass
class MonthlyReport:
    month: str
    revenue: float
    costs: float
    profit: float
    orders: int
    profit_margin: float


@dataclass
class TopProduct:
    id: UUID
    name: str
    category: str
    price: float
    total_sold: int
    total_revenue: float


@dataclass
class FinancialSummary:
    total_revenue: float
    total_costs: float
    total_profit: float
    profit_margin: float
    average_order_value: float
    monthly_reports: List[MonthlyReport]
    financial_metrics: List[FinancialMetric] = field(default_factory=list)


@dataclass
class PaymentMethodSales:
    payment_method: str
    revenue: float
    orders: int


@dataclass
class SalesReport:
    period_start: datetime
    period_end: datetime
    current_revenue: float
    previous_revenue: float
    revenue_growth: float
    current_order_count: int
    previous_order_count: int
    order_growth: float
    average_order_value: float
    sales_by_payment_method: List[PaymentMethodSales]
    top_products: List[TopProduct]


@dataclass
class RecentOrder:
    id: UUID
    order_date: datetime
    total: float
    status: str
    payment_method: str
    customer_name: str
    customer_email: str


@dataclass
class Overview:
    revenue: float
    orders: int
    customers: int
    recent_orders: List[RecentOrder]
    top_products: List[TopProduct]


@dataclass
class CustomerStats:
    total_customers: int
    active_customers: int
    vip_customers: int
    average_spending: float


# =============================================================================
# ENGINE
# =============================================================================

class ReportingEngine:
    """
    Dashboard aggregations.

    Example:
        engine = ReportingEngine(session, settings)
        summary = await engine.financial_summary()
    """

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()

    async def revenue_for_period(self, start: datetime, end: datetime) -> PeriodMetrics:
        """Revenue, order count and distinct customers for ``start <= order_date < end``."""
        row = (await self.session.execute(
            select(
                func.coalesce(func.sum(Order.total), 0).label("revenue"),
                func.count(Order.id).label("orders"),
                func.count(func.distinct(Order.customer_id)).label("customers"),
            ).where(Order.order_date >= start, Order.order_date < end)
        )).one()

        return PeriodMetrics(
            revenue=round(float(row.revenue or 0), 2),
            orders=row.orders or 0,
            customers=row.customers or 0,
        )

    def unit_cost(self) -> pl.Expr:
        """Per-unit cost of goods under the configured cost basis."""
        if self.settings.business.report_cost_basis == "snapshot":
            # Items recorded before cost snapshots fall back to the product
            return pl.coalesce(pl.col("item_cost"), pl.col("product_cost"))
        return pl.col("product_cost")

    async def order_costs(self) -> pl.DataFrame:
        """One row per order: ``order_date``, ``revenue`` and ``costs``."""
        rows = (await self.session.execute(
            select(
                Order.id,
                Order.order_date,
                Order.total,
                OrderItem.quantity,
                OrderItem.cost.label("item_cost"),
                Product.cost.label("product_cost"),
            )
            .outerjoin(OrderItem, OrderItem.order_id == Order.id)
            .outerjoin(Product, Product.id == OrderItem.product_id)
            .order_by(Order.order_date, Order.id)
        )).all()

        lines = pl.DataFrame(
            {
                "order_id": [str(row.id) for row in rows],
                "order_date": [row.order_date for row in rows],
                "revenue": [float(row.total) for row in rows],
                "quantity": [row.quantity for row in rows],
                "item_cost": [None if row.item_cost is None else float(row.item_cost) for row in rows],
                "product_cost": [None if row.product_cost is None else float(row.product_cost) for row in rows],
            },
            schema={
                "order_id": pl.Utf8,
                "order_date": pl.Datetime,
                "revenue": pl.Float64,
                "quantity": pl.Int64,
                "item_cost": pl.Float64,
                "product_cost": pl.Float64,
            },
        )

        return (
            lines.with_columns((self.unit_cost() * pl.col("quantity")).fill_null(0.0).alias("line_cost"))
            .group_by("order_id", maintain_order=True)
            .agg(
                pl.col("order_date").first(),
                pl.col("revenue").first(),
                pl.col("line_cost").sum().alias("costs"),
            )
            .select("order_date", "revenue", "costs")
        )

    async def financial_summary(self) -> FinancialSummary:
        """Totals, margin and the last six monthly buckets, most recent first."""
        frame = await self.order_costs()
        order_count = frame.height

        total_revenue = float(frame["revenue"].sum()) if order_count else 0.0
        total_costs = float(frame["costs"].sum()) if order_count else 0.0
        total_profit = total_revenue - total_costs

        metrics = (await self.session.execute(
            select(FinancialMetric)
            .order_by(FinancialMetric.metric_date.desc())
            .limit(MONTHS_IN_REPORT)
        )).scalars().all()

        logger.debug("Financial summary computed", orders=order_count, revenue=round(total_revenue, 2))

        return FinancialSummary(
            total_revenue=round(total_revenue, 2),
            total_costs=round(total_costs, 2),
            total_profit=round(total_profit, 2),
            profit_margin=round(profit_margin(total_profit, total_revenue), 2),
            average_order_value=round(total_revenue / order_count, 2) if order_count else 0.0,
            monthly_reports=self.monthly_breakdown(frame),
            financial_metrics=list(metrics),
        )

    @staticmethod
    def monthly_breakdown(frame: pl.DataFrame, months: int = MONTHS_IN_REPORT) -> List[MonthlyReport]:
        """Group per-order revenue/costs by calendar month, newest first."""
        if frame.is_empty():
            return []

        monthly = (
            frame.with_columns(pl.col("order_date").dt.truncate("1mo").alias("month"))
            .group_by("month")
            .agg(
                pl.col("revenue").sum(),
                pl.col("costs").sum(),
                pl.len().alias("orders"),
            )
            .with_columns((pl.col("revenue") - pl.col("costs")).alias("profit"))
            .sort("month", descending=True)
            .head(months)
        )

        return [
            MonthlyReport(
                month=month_label(row["month"]),
                revenue=round(row["revenue"], 2),
                costs=round(row["costs"], 2),
                profit=round(row["profit"], 2),
                orders=row["orders"],
                profit_margin=round(profit_margin(row["profit"], row["revenue"]), 2),
            )
            for row in monthly.iter_rows(named=True)
        ]

    async def top_products(self, limit: int = OVERVIEW_TOP_PRODUCTS) -> List[TopProduct]:
        """Best sellers by quantity sold."""
        total_sold = func.sum(OrderItem.quantity).label("total_sold")
        total_revenue = func.sum(OrderItem.price * OrderItem.quantity).label("total_revenue")

        result = await self.session.execute(
            select(Product, total_sold, total_revenue)
            .join(OrderItem, OrderItem.product_id == Product.id)
            .group_by(Product.id)
            .order_by(total_sold.desc(), Product.name)
            .limit(limit)
        )

        return [
            TopProduct(
                id=product.id,
                name=product.name,
                category=product.category,
                price=float(product.price),
                total_sold=int(sold or 0),
                total_revenue=round(float(revenue or 0), 2),
            )
            for product, sold, revenue in result.all()
        ]

    async def sales_report(self, days: int = 30, now: Optional[datetime] = None) -> SalesReport:
        """Current window against the previous window of equal length."""
        now = now or utcnow()
        period_start = now - timedelta(days=days)
        previous_start = period_start - timedelta(days=days)

        # Inclusive of orders stamped exactly "now"
        current = await self.revenue_for_period(period_start, now + timedelta(microseconds=1))
        previous = await self.revenue_for_period(previous_start, period_start)

        by_method = await self.session.execute(
            select(
                Order.payment_method,
                func.coalesce(func.sum(Order.total), 0).label("revenue"),
                func.count(Order.id).label("orders"),
            )
            .group_by(Order.payment_method)
            .order_by(Order.payment_method)
        )

        return SalesReport(
            period_start=period_start,
            period_end=now,
            current_revenue=current.revenue,
            previous_revenue=previous.revenue,
            revenue_growth=round(growth_percentage(current.revenue, previous.revenue), 2),
            current_order_count=current.orders,
            previous_order_count=previous.orders,
            order_growth=round(growth_percentage(current.orders, previous.orders), 2),
            average_order_value=round(current.revenue / current.orders, 2) if current.orders else 0.0,
            sales_by_payment_method=[
                PaymentMethodSales(
                    payment_method=getattr(row.payment_method, "value", row.payment_method),
                    revenue=round(float(row.revenue), 2),
                    orders=row.orders,
                )
                for row in by_method.all()
            ],
            top_products=await self.top_products(SALES_TOP_PRODUCTS),
        )

    async def overview(self, days: int = 30, now: Optional[datetime] = None) -> Overview:
        """Headline numbers for the landing dashboard."""
        now = now or utcnow()
        window = await self.revenue_for_period(now - timedelta(days=days), now + timedelta(microseconds=1))

        total_customers = (await self.session.execute(
            select(func.count(Customer.id))
        )).scalar() or 0

        recent = (await self.session.execute(
            select(
                Order.id,
                Order.order_date,
                Order.total,
                Order.status,
                Order.payment_method,
                Customer.name.label("customer_name"),
                Customer.email.label("customer_email"),
            )
            .join(Customer, Customer.id == Order.customer_id)
            .order_by(Order.order_date.desc())
            .limit(RECENT_ORDERS)
        )).all()

        return Overview(
            revenue=window.revenue,
            orders=window.orders,
            customers=total_customers,
            recent_orders=[
                RecentOrder(
                    id=row.id,
                    order_date=row.order_date,
                    total=float(row.total),
                    status=row.status.value,
                    payment_method=row.payment_method.value,
                    customer_name=row.customer_name,
                    customer_email=row.customer_email,
                )
                for row in recent
            ],
            top_products=await self.top_products(OVERVIEW_TOP_PRODUCTS),
        )

    async def customer_stats(self) -> CustomerStats:
        """Roster size, active and VIP counts, average spend."""
        threshold = self.settings.business.vip_spend_threshold
        row = (await self.session.execute(
            select(
                func.count(Customer.id).label("total"),
                func.count(Customer.id).filter(Customer.visit_count > 0).label("active"),
                func.count(Customer.id).filter(Customer.total_spent > threshold).label("vip"),
                func.coalesce(func.sum(Customer.total_spent), 0).label("spent"),
            )
        )).one()

        total = row.total or 0
        return CustomerStats(
            total_customers=total,
            active_customers=row.active or 0,
            vip_customers=row.vip or 0,
            average_spending=round(float(row.spent) / total, 2) if total else 0.0,
        )
