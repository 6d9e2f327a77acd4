"""
Demo Database Seeder

Wipes every table and loads the demo catalog, customers, a month of orders,
research notes and financial metrics. Orders go through the ingestion
service so customer counters and stock match the order history.

Usage:
    python -m src.ingestion.seed_db [--orders 50] [--extra-customers 0] [--seed 42]
"""

import argparse
import asyncio
from typing import Optional

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.config.logging import configure_logging
from src.data.generators import MARKET_RESEARCH, PRODUCTS, DemoDataGenerator
from src.database.connection import Database
from src.database.models import (
    Customer,
    FinancialMetric,
    MarketResearch,
    Order,
    OrderItem,
    Product,
)
from src.ingestion.orders import OrderIngestionService, OrderLine

logger = structlog.get_logger(__name__)


async def wipe(session: AsyncSession) -> None:
    """Delete all rows, children first."""
    for model in (OrderItem, Order, Customer, Product, MarketResearch, FinancialMetric):
        result = await session.execute(delete(model))
        logger.info("Table cleared", table=model.__tablename__, rows=result.rowcount)


async def seed(
    session: AsyncSession,
    settings: Settings,
    orders: int = 50,
    extra_customers: int = 0,
    random_seed: int = 42,
) -> dict:
    """Load the demo data set into an empty store."""
    generator = DemoDataGenerator(seed=random_seed)

    products = [Product(**record) for record in PRODUCTS]
    customers = [Customer(**record) for record in generator.customers(extra_customers)]
    session.add_all(products + customers)
    await session.flush()
    logger.info("Catalog seeded", products=len(products), customers=len(customers))

    service = OrderIngestionService(session, settings)
    for plan in generator.order_plans(orders, customer_count=len(customers)):
        await service.create_order(
            customers[plan.customer_index].id,
            [OrderLine(product_id=products[index].id, quantity=quantity) for index, quantity in plan.lines],
            payment_method=plan.payment_method,
            order_date=plan.order_date,
            source="seed",
        )
    logger.info("Orders seeded", orders=orders)

    session.add_all(MarketResearch(**record) for record in MARKET_RESEARCH)
    metrics = generator.financial_metrics()
    session.add_all(FinancialMetric(**record) for record in metrics)
    await session.flush()

    return {
        "products": len(products),
        "customers": len(customers),
        "orders": orders,
        "market_research": len(MARKET_RESEARCH),
        "financial_metrics": len(metrics),
    }


async def main(
    orders: int = 50,
    extra_customers: int = 0,
    random_seed: int = 42,
    settings: Optional[Settings] = None,
) -> None:
    settings = settings or get_settings()
    configure_logging(settings=settings)

    database = Database.from_settings(settings)
    try:
        await database.connect()
        await database.create_all()
        async with database.session() as session:
            await wipe(session)
            counts = await seed(session, settings, orders, extra_customers, random_seed)
        logger.info("Database seeded", **counts)
    finally:
        await database.dispose()


def cli() -> None:
    parser = argparse.ArgumentParser(description="Seed the coffee shop demo database")
    parser.add_argument("--orders", type=int, default=50, help="Random orders to create")
    parser.add_argument("--extra-customers", type=int, default=0, help="Generated customers beyond the regulars")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()

    asyncio.run(main(args.orders, args.extra_customers, args.seed))


if __name__ == "__main__":
    cli()
