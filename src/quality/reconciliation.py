"""
Counter Reconciliation

Recomputes every customer's spend, visit count and loyalty points from the
stored orders and compares them with the hand-maintained counters. Drift
means some write path bypassed the aggregate maintainer.
"""

from dataclasses import dataclass, field
from typing import List

import polars as pl
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.models import Customer, Order, Product
from src.quality.validators import (
    ValidationCheck,
    ValidationResult,
    ValidationStatus,
    create_customer_counters_validator,
    create_product_stock_validator,
)

logger = structlog.get_logger(__name__)

CUSTOMER_SCHEMA = {
    "customer_id": pl.Utf8,
    "email": pl.Utf8,
    "total_spent": pl.Float64,
    "visit_count": pl.Int64,
    "loyalty_points": pl.Int64,
}
ORDER_SCHEMA = {"customer_id": pl.Utf8, "total": pl.Float64}
PRODUCT_SCHEMA = {"product_id": pl.Utf8, "name": pl.Utf8, "stock": pl.Int64}


@dataclass
class CustomerDrift:
    """Stored vs recomputed counters for one customer"""
    customer_id: str
    email: str
    total_spent: float
    expected_total_spent: float
    visit_count: int
    expected_visit_count: int
    loyalty_points: int
    expected_loyalty_points: int


@dataclass
class ReconciliationReport:
    status: ValidationStatus
    customers_checked: int
    products_checked: int
    checks: List[ValidationCheck] = field(default_factory=list)
    drift: List[CustomerDrift] = field(default_factory=list)
    negative_stock: List[str] = field(default_factory=list)


def expected_counters(orders: pl.DataFrame) -> pl.DataFrame:
    """Per-customer totals, order counts and loyalty points derived from orders."""
    return orders.group_by("customer_id").agg(
        pl.col("total").sum().alias("expected_total_spent"),
        pl.len().cast(pl.Int64).alias("expected_visit_count"),
        pl.col("total").floor().sum().cast(pl.Int64).alias("expected_loyalty_points"),
    )


def compare_counters(customers: pl.DataFrame, orders: pl.DataFrame) -> pl.DataFrame:
    """Customers joined with their expected counters; customers without orders expect zero."""
    return customers.join(expected_counters(orders), on="customer_id", how="left").with_columns(
        pl.col("expected_total_spent").fill_null(0.0),
        pl.col("expected_visit_count").fill_null(0),
        pl.col("expected_loyalty_points").fill_null(0),
    )


async def reconcile_customers(session: AsyncSession) -> ReconciliationReport:
    """Audit stored counters and stock levels."""
    customer_rows = (await session.execute(
        select(
            Customer.id,
            Customer.email,
            Customer.total_spent,
            Customer.visit_count,
            Customer.loyalty_points,
        )
    )).all()
    order_rows = (await session.execute(select(Order.customer_id, Order.total))).all()
    product_rows = (await session.execute(select(Product.id, Product.name, Product.stock))).all()

    customers = pl.DataFrame(
        {
            "customer_id": [str(row.id) for row in customer_rows],
            "email": [row.email for row in customer_rows],
            "total_spent": [float(row.total_spent) for row in customer_rows],
            "visit_count": [row.visit_count for row in customer_rows],
            "loyalty_points": [row.loyalty_points for row in customer_rows],
        },
        schema=CUSTOMER_SCHEMA,
    )
    orders = pl.DataFrame(
        {
            "customer_id": [str(row.customer_id) for row in order_rows],
            "total": [float(row.total) for row in order_rows],
        },
        schema=ORDER_SCHEMA,
    )
    products = pl.DataFrame(
        {
            "product_id": [str(row.id) for row in product_rows],
            "name": [row.name for row in product_rows],
            "stock": [row.stock for row in product_rows],
        },
        schema=PRODUCT_SCHEMA,
    )

    compared = compare_counters(customers, orders)
    counters_result: ValidationResult = create_customer_counters_validator().validate(compared)
    stock_result: ValidationResult = create_product_stock_validator().validate(products)

    drifted = compared.filter(
        ((pl.col("total_spent") - pl.col("expected_total_spent")).abs() > 0.005)
        | (pl.col("visit_count") != pl.col("expected_visit_count"))
        | (pl.col("loyalty_points") != pl.col("expected_loyalty_points"))
    )
    drift = [
        CustomerDrift(
            customer_id=row["customer_id"],
            email=row["email"],
            total_spent=row["total_spent"],
            expected_total_spent=round(row["expected_total_spent"], 2),
            visit_count=row["visit_count"],
            expected_visit_count=row["expected_visit_count"],
            loyalty_points=row["loyalty_points"],
            expected_loyalty_points=row["expected_loyalty_points"],
        )
        for row in drifted.iter_rows(named=True)
    ]
    negative_stock = products.filter(pl.col("stock") < 0)["name"].to_list()

    if counters_result.status == ValidationStatus.FAILED:
        status = ValidationStatus.FAILED
    elif stock_result.status != ValidationStatus.PASSED:
        status = ValidationStatus.PARTIAL
    else:
        status = ValidationStatus.PASSED

    if drift:
        logger.warning(
            "Customer counters drifted from orders",
            customers=len(drift),
            emails=[entry.email for entry in drift[:10]],
        )

    return ReconciliationReport(
        status=status,
        customers_checked=len(customers),
        products_checked=len(products),
        checks=counters_result.checks + stock_result.checks,
        drift=drift,
        negative_stock=negative_stock,
    )
