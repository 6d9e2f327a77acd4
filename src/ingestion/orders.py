"""
Order Ingestion Service

Turns proposed orders into stored Order + OrderItem rows while keeping
customer counters and product stock consistent:

- create_order: one order with any number of line items
- import_orders: batch of one-line orders resolved by customer email and
  product name, with per-row failure isolation
- clear_orders: delete every order after restoring stock and resetting
  customer counters
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.database.models import (
    Customer,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    Product,
    utcnow,
)
from src.exceptions import AppError, InsufficientStockError, NotFoundError, ValidationError
from src.ingestion.aggregates import AggregateMaintainer
from src.metrics import BACKORDERS, IMPORT_ROWS, ORDER_REVENUE, ORDERS_CREATED

logger = structlog.get_logger(__name__)


@dataclass
class OrderLine:
    """Requested product and quantity"""
    product_id: UUID
    quantity: int


@dataclass
class ImportRecord:
    """One row of a bulk import, as received; any field may hold any JSON value"""
    customer_email: Any
    product_name: Any
    quantity: Any
    order_date: Any = None
    status: Any = None
    payment_method: Any = None


class ImportResult(BaseModel):
    """Tally of a bulk import"""
    success: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Imported {self.success} orders. {self.failed} failed."


class ImportRowError(Exception):
    """Row-level failure recorded in the import tally"""


def parse_quantity(value: Any) -> Optional[int]:
    """Positive integer from an int or numeric string, otherwise None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        quantity = value
    elif isinstance(value, float) and value.is_integer():
        quantity = int(value)
    elif isinstance(value, str):
        try:
            quantity = int(value.strip())
        except ValueError:
            return None
    else:
        return None
    return quantity if quantity > 0 else None


def parse_order_date(value: Any) -> datetime:
    """
    ISO date or datetime, normalised to naive UTC.

    Missing values default to now.

    Raises:
        ValueError: If the value is not a datetime or an ISO 8601 string
    """
    if value is None or value == "":
        return utcnow()
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
    else:
        raise ValueError(f"Unsupported order date: {value!r}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _lookup_key(value: Any) -> Optional[str]:
    """Email or product name as text; non-string JSON scalars never match a row."""
    if value is None or isinstance(value, (dict, list)):
        return None
    return value if isinstance(value, str) else str(value)


def _coerce_enum(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except (TypeError, ValueError):
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {field_name}: {value} (expected one of: {allowed})")


class OrderIngestionService:
    """
    Write side of the order history.

    The caller owns the transaction: the session is committed (or rolled back)
    by the request scope, so every public method is atomic as a unit.

    Example:
        service = OrderIngestionService(session, settings)
        order = await service.create_order(customer_id, [OrderLine(product_id, 2)])
    """

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.aggregates = AggregateMaintainer(session)

    # -------------------------------------------------------------------------
    # Single order
    # -------------------------------------------------------------------------

    async def create_order(
        self,
        customer_id: UUID,
        lines: Sequence[OrderLine],
        payment_method: Union[PaymentMethod, str, None] = None,
        status: Union[OrderStatus, str, None] = None,
        order_date: Optional[datetime] = None,
        source: str = "api",
    ) -> Order:
        """
        Create an order and apply its effects on stock and customer counters.

        Raises:
            NotFoundError: Unknown customer or product
            ValidationError: Empty order, non-positive quantity, bad enum value
            InsufficientStockError: Stock too low while negative stock is disallowed
        """
        business = self.settings.business
        payment_method = _coerce_enum(
            PaymentMethod, payment_method or business.default_payment_method, "payment method"
        )
        status = _coerce_enum(OrderStatus, status or business.default_order_status, "status")

        if not lines:
            raise ValidationError("Order must contain at least one item")
        for line in lines:
            if line.quantity <= 0:
                raise ValidationError(f"Invalid quantity for product {line.product_id}: {line.quantity}")

        customer = await self.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)

        products = await self._load_products([line.product_id for line in lines])
        self._check_stock(lines, products)

        order = Order(
            customer_id=customer.id,
            order_date=parse_order_date(order_date),
            status=status,
            payment_method=payment_method,
            items=[
                OrderItem(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    price=products[line.product_id].price,
                    cost=products[line.product_id].cost,
                )
                for line in lines
            ],
        )
        order.total = sum((item.line_total for item in order.items), Decimal("0"))

        self.session.add(order)
        await self.session.flush()

        await self.aggregates.apply_stock(order.items)
        await self.aggregates.apply_order(customer, order)

        ORDERS_CREATED.labels(source=source, payment_method=payment_method.value).inc()
        ORDER_REVENUE.labels(source=source).inc(float(order.total))
        logger.info(
            "Order created",
            order_id=str(order.id),
            customer_id=str(customer.id),
            items=len(order.items),
            total=str(order.total),
        )
        return order

    async def _load_products(self, product_ids: List[UUID]) -> Dict[UUID, Product]:
        result = await self.session.execute(
            select(Product).where(Product.id.in_(set(product_ids)))
        )
        products = {product.id: product for product in result.scalars().all()}
        for product_id in product_ids:
            if product_id not in products:
                raise NotFoundError("Product", product_id)
        return products

    def _check_stock(self, lines: Sequence[OrderLine], products: Dict[UUID, Product]) -> None:
        requested: Dict[UUID, int] = {}
        for line in lines:
            requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

        for product_id, quantity in requested.items():
            product = products[product_id]
            if product.stock >= quantity:
                continue
            if not self.settings.business.allow_negative_stock:
                raise InsufficientStockError(product.name, quantity, product.stock)
            BACKORDERS.inc()
            logger.warning(
                "Insufficient stock, recording backorder",
                product_id=str(product_id),
                product=product.name,
                requested=quantity,
                available=product.stock,
            )

    # -------------------------------------------------------------------------
    # Bulk import
    # -------------------------------------------------------------------------

    async def import_orders(self, records: Sequence[ImportRecord]) -> ImportResult:
        """
        Create one single-item order per record.

        A failing row is recorded in the result and never aborts the batch;
        each row runs in its own savepoint so a database error only discards
        that row.
        """
        if not records:
            raise ValidationError("No order data provided")

        result = ImportResult()
        for index, record in enumerate(records):
            try:
                async with self.session.begin_nested():
                    await self._import_record(record)
            except ImportRowError as e:
                error = str(e)
            except AppError as e:
                error = f"Order error: {e.message}"
            except SQLAlchemyError as e:
                logger.error("Import row failed", row=index, error=str(e), error_type=type(e).__name__)
                error = f"Order error: {e.__class__.__name__}"
            else:
                result.success += 1
                IMPORT_ROWS.labels(status="success").inc()
                continue

            result.failed += 1
            result.errors.append(error)
            IMPORT_ROWS.labels(status="failed").inc()

        logger.info(
            "Orders imported",
            rows=len(records),
            success=result.success,
            failed=result.failed,
        )
        return result

    async def _import_record(self, record: ImportRecord) -> Order:
        email = _lookup_key(record.customer_email)
        name = _lookup_key(record.product_name)

        customer = None
        if email:
            customer = (await self.session.execute(
                select(Customer).where(Customer.email == email)
            )).scalar_one_or_none()
        if customer is None:
            raise ImportRowError(f"{record.customer_email}: Customer not found")

        product = None
        if name:
            product = (await self.session.execute(
                select(Product)
                .where(Product.name == name)
                .order_by(Product.created_at)
                .limit(1)
            )).scalar_one_or_none()
        if product is None:
            raise ImportRowError(f"{record.product_name}: Product not found")

        quantity = parse_quantity(record.quantity)
        if quantity is None:
            raise ImportRowError(f"{record.product_name}: Invalid quantity")

        try:
            order_date = parse_order_date(record.order_date)
        except ValueError:
            raise ImportRowError(f"{record.customer_email}: Invalid order date")

        return await self.create_order(
            customer.id,
            [OrderLine(product_id=product.id, quantity=quantity)],
            payment_method=record.payment_method,
            status=record.status,
            order_date=order_date,
            source="import",
        )

    # -------------------------------------------------------------------------
    # Bulk clear
    # -------------------------------------------------------------------------

    async def clear_orders(self) -> int:
        """
        Delete all orders, restoring stock and resetting every customer.

        Returns:
            Number of orders deleted
        """
        restored = await self.aggregates.restore_all_stock()
        await self.aggregates.reset_all_customers()

        await self.session.execute(delete(OrderItem))
        deleted = await self.session.execute(delete(Order))
        count = deleted.rowcount

        logger.info("Orders cleared", orders=count, products_restored=restored)
        return count
