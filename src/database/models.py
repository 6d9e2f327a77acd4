"""
Database Models

Transactional schema for the coffee shop:

Catalog and roster:
- Product: menu items with price, unit cost and stock level
- Customer: roster with derived spend/visit/loyalty counters

Transactions:
- Order: one sale, owned line items cascade on delete
- OrderItem: line item with price and cost snapshots taken at order time

Back office:
- FinancialMetric: manually curated ledger entries
- MarketResearch: free-text research notes
"""

from datetime import datetime, date, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, List
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp, the storage convention for every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


# =============================================================================
# ENUMERATIONS
# =============================================================================

class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """Payment method enumeration"""
    CASH = "cash"
    CARD = "card"
    MOBILE = "mobile"


# =============================================================================
# CATALOG AND ROSTER
# =============================================================================

class Product(Base):
    """
    Product Table

    Menu items. ``stock`` is decremented by order ingestion and restored by
    the bulk clear; price and cost changes never touch historical orders.
    Stock has no database floor: orders may drive it negative as a
    backorder when ``ALLOW_NEGATIVE_STOCK`` is on. The catalog API only
    accepts ``stock >= 0``.
    """
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(100), nullable=False)

    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    image_url: Mapped[Optional[str]] = mapped_column(String(500))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Audit
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    order_items: Mapped[List["OrderItem"]] = relationship(back_populates="product")

    __table_args__ = (
        Index("ix_products_name", "name"),
        Index("ix_products_category", "category"),
        Index("ix_products_active", "is_active"),
        CheckConstraint("price > 0", name="ck_products_price_positive"),
        CheckConstraint("cost >= 0", name="ck_products_cost_non_negative"),
    )


class Customer(Base):
    """
    Customer Table

    ``total_spent``, ``visit_count``, ``loyalty_points`` and ``last_visit``
    are derived from the customer's orders and only change through
    :class:`src.ingestion.aggregates.AggregateMaintainer`.
    """
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50))

    # Derived counters
    total_spent: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    visit_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    loyalty_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_visit: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Audit
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    orders: Mapped[List["Order"]] = relationship(back_populates="customer")

    __table_args__ = (
        Index("ix_customers_total_spent", "total_spent"),
        CheckConstraint("total_spent >= 0", name="ck_customers_total_spent_non_negative"),
        CheckConstraint("visit_count >= 0", name="ck_customers_visit_count_non_negative"),
        CheckConstraint("loyalty_points >= 0", name="ck_customers_loyalty_points_non_negative"),
    )


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Order(Base):
    """
    Order Table

    ``total`` always equals the sum of its items' ``price * quantity``.
    """
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("customers.id"), nullable=False
    )
    order_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(OrderStatus, name="order_status", values_callable=_enum_values),
        default=OrderStatus.COMPLETED,
        nullable=False,
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod, name="payment_method", values_callable=_enum_values),
        default=PaymentMethod.CASH,
        nullable=False,
    )

    # Audit
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    customer: Mapped["Customer"] = relationship(back_populates="orders")
    items: Mapped[List["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_orders_customer", "customer_id"),
        Index("ix_orders_date", "order_date"),
        Index("ix_orders_payment_method", "payment_method"),
        CheckConstraint("total >= 0", name="ck_orders_total_non_negative"),
    )


class OrderItem(Base):
    """
    Order Item Table

    ``price`` and ``cost`` are copied from the product when the order is
    placed so historical totals and margins stay stable.
    """
    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id"), nullable=False
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))

    # Relationships
    order: Mapped["Order"] = relationship(back_populates="items")
    product: Mapped["Product"] = relationship(back_populates="order_items")

    __table_args__ = (
        Index("ix_order_items_order", "order_id"),
        Index("ix_order_items_product", "product_id"),
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        CheckConstraint("price > 0", name="ck_order_items_price_positive"),
        CheckConstraint("cost >= 0", name="ck_order_items_cost_non_negative"),
    )

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


# =============================================================================
# BACK OFFICE
# =============================================================================

class FinancialMetric(Base):
    """
    Financial Metric Table

    Manually curated ledger entries; not derived from orders.
    """
    __tablename__ = "financial_metrics"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    metric_date: Mapped[date] = mapped_column("date", Date, nullable=False, index=True)
    revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    expenses: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    profit: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, server_default=func.now())


class MarketResearch(Base):
    """Market Research Table"""
    __tablename__ = "market_research"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    findings: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[Optional[str]] = mapped_column(String(200))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, server_default=func.now())
