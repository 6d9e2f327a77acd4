"""
Aggregate Maintainer

Single home for the rules that keep derived state in step with orders:

- customer ``total_spent`` / ``visit_count`` / ``loyalty_points`` / ``last_visit``
- product ``stock``

Every write path (single order, bulk import, bulk clear) goes through this
class. Counters are changed with relational ``SET col = col + :delta``
statements so concurrent requests cannot lose updates; the ORM keeps any
already loaded objects in step through ``synchronize_session="evaluate"``.
"""

import math
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, Protocol
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.models import Customer, Order, OrderItem, Product

logger = structlog.get_logger(__name__)


class StockLine(Protocol):
    product_id: UUID
    quantity: int


def loyalty_points_for(total: Decimal) -> int:
    """One point per whole currency unit spent."""
    return math.floor(total)


def _quantities_by_product(items: Iterable[StockLine]) -> Dict[UUID, int]:
    quantities: Dict[UUID, int] = defaultdict(int)
    for item in items:
        quantities[item.product_id] += item.quantity
    return quantities


class AggregateMaintainer:
    """
    Increment, decrement and reset rules for derived fields.

    Example:
        aggregates = AggregateMaintainer(session)
        await aggregates.apply_stock(order.items)
        await aggregates.apply_order(customer, order)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def apply_order(self, customer: Customer, order: Order) -> None:
        """Add one order to the customer's spend, visits and loyalty points."""
        points = loyalty_points_for(order.total)
        await self.session.execute(
            update(Customer)
            .where(Customer.id == customer.id)
            .values(
                total_spent=Customer.total_spent + order.total,
                visit_count=Customer.visit_count + 1,
                loyalty_points=Customer.loyalty_points + points,
                # Most recent write wins, even for back-dated orders
                last_visit=order.order_date,
            )
            .execution_options(synchronize_session="evaluate")
        )
        logger.debug(
            "Customer aggregates applied",
            customer_id=str(customer.id),
            order_total=str(order.total),
            loyalty_points=points,
        )

    async def apply_stock(self, items: Iterable[StockLine]) -> None:
        """Take ordered quantities out of stock."""
        for product_id, quantity in _quantities_by_product(items).items():
            await self._shift_stock(product_id, -quantity)

    async def reverse_order_stock(self, items: Iterable[StockLine]) -> int:
        """
        Put ordered quantities back into stock.

        Returns:
            Number of products restored. Lines whose product no longer exists
            are skipped.
        """
        restored = 0
        for product_id, quantity in _quantities_by_product(items).items():
            if await self._shift_stock(product_id, quantity):
                restored += 1
            else:
                logger.warning(
                    "Skipping stock restore for missing product",
                    product_id=str(product_id),
                    quantity=quantity,
                )
        return restored

    async def restore_all_stock(self) -> int:
        """Reverse the stock effect of every stored order item."""
        result = await self.session.execute(
            select(
                OrderItem.product_id,
                func.sum(OrderItem.quantity).label("quantity"),
            ).group_by(OrderItem.product_id)
        )
        return await self.reverse_order_stock(result.all())

    async def reset_customer(self, customer: Customer) -> None:
        """Return one customer to the zero state."""
        await self.session.execute(
            update(Customer)
            .where(Customer.id == customer.id)
            .values(**self._zero_state())
            .execution_options(synchronize_session="evaluate")
        )

    async def reset_all_customers(self) -> int:
        """Return every customer to the zero state in one statement."""
        result = await self.session.execute(
            update(Customer)
            .values(**self._zero_state())
            .execution_options(synchronize_session="evaluate")
        )
        logger.info("Customer aggregates reset", customers=result.rowcount)
        return result.rowcount

    async def _shift_stock(self, product_id: UUID, delta: int) -> bool:
        result = await self.session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + delta)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount > 0

    @staticmethod
    def _zero_state() -> dict:
        return {
            "total_spent": Decimal("0"),
            "visit_count": 0,
            "loyalty_points": 0,
            "last_visit": None,
        }
