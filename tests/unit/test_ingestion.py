"""
Unit Tests - Order Ingestion
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from src.database.models import Order, OrderItem, OrderStatus, PaymentMethod
from src.exceptions import InsufficientStockError, NotFoundError, ValidationError
from src.ingestion.orders import (
    ImportRecord,
    OrderIngestionService,
    OrderLine,
    parse_order_date,
    parse_quantity,
)


@pytest.fixture
def service(session, test_settings) -> OrderIngestionService:
    return OrderIngestionService(session, test_settings)


async def count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar()


class TestParsing:
    """Tests for import value parsing"""

    @pytest.mark.parametrize("value,expected", [
        (3, 3),
        ("3", 3),
        (" 12 ", 12),
        (2.0, 2),
        (0, None),
        (-1, None),
        ("abc", None),
        ("1.5", None),
        (1.5, None),
        (None, None),
        (True, None),
    ])
    def test_parse_quantity(self, value, expected):
        assert parse_quantity(value) == expected

    def test_parse_order_date_normalises_to_naive_utc(self):
        parsed = parse_order_date("2026-03-01T10:00:00+02:00")
        assert parsed == datetime(2026, 3, 1, 8, 0)
        assert parsed.tzinfo is None

    def test_parse_order_date_accepts_plain_date(self):
        assert parse_order_date("2026-03-01") == datetime(2026, 3, 1)

    def test_parse_order_date_defaults_to_now(self):
        before = datetime.now(timezone.utc).replace(tzinfo=None)
        assert parse_order_date(None) >= before

    def test_parse_order_date_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_order_date("yesterday")

    @pytest.mark.parametrize("value", [20240101, 2024.5, True, {"day": 1}, ["2024-01-01"]])
    def test_parse_order_date_rejects_non_strings(self, value):
        with pytest.raises(ValueError):
            parse_order_date(value)


class TestCreateOrder:
    """Tests for single order creation"""

    async def test_espresso_order_updates_stock_and_counters(self, service, session, ada, espresso):
        order = await service.create_order(ada.id, [OrderLine(espresso.id, 2)])

        await session.refresh(espresso)
        await session.refresh(ada)

        assert order.total == Decimal("7.00")
        assert order.status == OrderStatus.COMPLETED
        assert order.payment_method == PaymentMethod.CASH
        assert espresso.stock == 498
        assert ada.total_spent == Decimal("7.00")
        assert ada.visit_count == 1
        assert ada.loyalty_points == 7
        assert ada.last_visit == order.order_date

    async def test_items_snapshot_price_and_cost(self, service, session, ada, espresso, croissant):
        order = await service.create_order(
            ada.id,
            [OrderLine(espresso.id, 1), OrderLine(croissant.id, 2)],
            payment_method="card",
            status="pending",
        )

        espresso.price = Decimal("9.99")
        espresso.cost = Decimal("5.00")
        await session.flush()

        items = (await session.execute(
            select(OrderItem).where(OrderItem.order_id == order.id).order_by(OrderItem.quantity)
        )).scalars().all()

        assert order.total == Decimal("10.50")
        assert order.payment_method == PaymentMethod.CARD
        assert order.status == OrderStatus.PENDING
        assert [(item.price, item.cost) for item in items] == [
            (Decimal("3.50"), Decimal("0.80")),
            (Decimal("3.50"), Decimal("1.00")),
        ]

    async def test_sum_of_orders_matches_counters(self, service, session, ada, espresso, croissant):
        await service.create_order(ada.id, [OrderLine(espresso.id, 1)])
        await service.create_order(ada.id, [OrderLine(croissant.id, 3)])
        await service.create_order(ada.id, [OrderLine(espresso.id, 2), OrderLine(croissant.id, 1)])
        await session.refresh(ada)

        totals = (await session.execute(
            select(Order.total).where(Order.customer_id == ada.id)
        )).scalars().all()

        assert ada.visit_count == len(totals) == 3
        assert ada.total_spent == sum(totals)
        assert ada.loyalty_points == sum(int(total) for total in totals)

    async def test_unknown_customer(self, service, espresso):
        with pytest.raises(NotFoundError) as exc:
            await service.create_order(uuid.uuid4(), [OrderLine(espresso.id, 1)])
        assert exc.value.message == "Customer not found"

    async def test_unknown_product(self, service, ada):
        with pytest.raises(NotFoundError) as exc:
            await service.create_order(ada.id, [OrderLine(uuid.uuid4(), 1)])
        assert exc.value.message == "Product not found"

    async def test_empty_order(self, service, ada):
        with pytest.raises(ValidationError):
            await service.create_order(ada.id, [])

    async def test_non_positive_quantity(self, service, ada, espresso):
        with pytest.raises(ValidationError):
            await service.create_order(ada.id, [OrderLine(espresso.id, 0)])

    async def test_invalid_payment_method(self, service, ada, espresso):
        with pytest.raises(ValidationError) as exc:
            await service.create_order(ada.id, [OrderLine(espresso.id, 1)], payment_method="cheque")
        assert "payment method" in exc.value.message

    async def test_backorder_allowed_by_default(self, service, session, ada, croissant):
        await service.create_order(ada.id, [OrderLine(croissant.id, 12)])
        await session.refresh(croissant)

        assert croissant.stock == -2

    async def test_insufficient_stock_when_floor_enforced(self, session, ada, croissant, settings_factory):
        service = OrderIngestionService(session, settings_factory(ALLOW_NEGATIVE_STOCK=False))

        with pytest.raises(InsufficientStockError) as exc:
            await service.create_order(ada.id, [OrderLine(croissant.id, 6), OrderLine(croissant.id, 5)])

        assert exc.value.status_code == 409
        assert exc.value.requested == 11
        assert exc.value.available == 10
        assert await count(session, Order) == 0


class TestImportOrders:
    """Tests for bulk import"""

    async def test_empty_batch_rejected(self, service):
        with pytest.raises(ValidationError) as exc:
            await service.import_orders([])
        assert exc.value.message == "No order data provided"

    async def test_one_valid_one_missing_customer(self, service, session, ada, espresso):
        result = await service.import_orders([
            ImportRecord(customer_email="ada@x.com", product_name="Espresso", quantity="3"),
            ImportRecord(customer_email="missing@x.com", product_name="Espresso", quantity="1"),
        ])
        await session.refresh(ada)
        await session.refresh(espresso)

        assert result.success == 1
        assert result.failed == 1
        assert result.errors == ["missing@x.com: Customer not found"]
        assert result.message == "Imported 1 orders. 1 failed."
        assert espresso.stock == 497
        assert ada.total_spent == Decimal("10.50")
        assert ada.visit_count == 1
        assert ada.loyalty_points == 10

    async def test_row_errors_name_the_offending_value(self, service, ada, espresso):
        result = await service.import_orders([
            ImportRecord(customer_email="ada@x.com", product_name="Flat White", quantity=1),
            ImportRecord(customer_email="ada@x.com", product_name="Espresso", quantity="two"),
            ImportRecord(customer_email="ada@x.com", product_name="Espresso", quantity=1, order_date="not-a-date"),
            ImportRecord(customer_email="ada@x.com", product_name="Espresso", quantity=1, payment_method="cheque"),
            ImportRecord(customer_email=None, product_name="Espresso", quantity=1),
        ])

        assert result.success == 0
        assert result.failed == 5
        assert result.errors[0] == "Flat White: Product not found"
        assert result.errors[1] == "Espresso: Invalid quantity"
        assert result.errors[2] == "ada@x.com: Invalid order date"
        assert result.errors[3].startswith("Order error: Invalid payment method")
        assert result.errors[4] == "None: Customer not found"

    async def test_wrongly_typed_values_fail_their_row_only(self, service, session, ada, espresso):
        result = await service.import_orders([
            ImportRecord(customer_email="ada@x.com", product_name="Espresso", quantity=1, order_date=20240101),
            ImportRecord(customer_email=["ada@x.com"], product_name="Espresso", quantity=1),
            ImportRecord(customer_email="ada@x.com", product_name=7, quantity=1),
            ImportRecord(customer_email="ada@x.com", product_name="Espresso", quantity=1, status=3),
            ImportRecord(customer_email="ada@x.com", product_name="Espresso", quantity=2),
        ])
        await session.refresh(espresso)

        assert result.success == 1
        assert result.errors[:3] == [
            "ada@x.com: Invalid order date",
            "['ada@x.com']: Customer not found",
            "7: Product not found",
        ]
        assert result.errors[3].startswith("Order error: Invalid status: 3")
        assert espresso.stock == 498

    async def test_optional_fields_are_applied(self, service, session, ada, espresso):
        result = await service.import_orders([
            ImportRecord(
                customer_email="ada@x.com",
                product_name="Espresso",
                quantity=1,
                order_date="2026-02-14T08:15:00",
                status="pending",
                payment_method="mobile",
            ),
        ])
        order = (await session.execute(select(Order))).scalar_one()

        assert result.success == 1
        assert order.order_date == datetime(2026, 2, 14, 8, 15)
        assert order.status == OrderStatus.PENDING
        assert order.payment_method == PaymentMethod.MOBILE

    async def test_failed_rows_leave_no_trace(self, session, ada, croissant, settings_factory):
        service = OrderIngestionService(session, settings_factory(ALLOW_NEGATIVE_STOCK=False))

        result = await service.import_orders([
            ImportRecord(customer_email="ada@x.com", product_name="Croissant", quantity=4),
            ImportRecord(customer_email="ada@x.com", product_name="Croissant", quantity=20),
            ImportRecord(customer_email="ada@x.com", product_name="Croissant", quantity=5),
        ])
        await session.refresh(croissant)
        await session.refresh(ada)

        assert result.success == 2
        assert result.failed == 1
        assert result.errors[0].startswith("Order error: Insufficient stock for Croissant")
        assert croissant.stock == 1
        assert ada.visit_count == 2
        assert await count(session, Order) == 2


class TestClearOrders:
    """Tests for bulk clear"""

    async def test_clear_restores_stock_and_resets_customers(self, service, session, ada, espresso):
        await service.create_order(ada.id, [OrderLine(espresso.id, 2)])

        deleted = await service.clear_orders()
        await session.refresh(espresso)
        await session.refresh(ada)

        assert deleted == 1
        assert espresso.stock == 500
        assert ada.total_spent == Decimal("0")
        assert ada.visit_count == 0
        assert ada.loyalty_points == 0
        assert ada.last_visit is None
        assert await count(session, Order) == 0
        assert await count(session, OrderItem) == 0

    async def test_clear_with_many_orders(self, service, session, ada, espresso, croissant):
        for _ in range(3):
            await service.create_order(ada.id, [OrderLine(espresso.id, 1), OrderLine(croissant.id, 2)])

        deleted = await service.clear_orders()
        await session.refresh(espresso)
        await session.refresh(croissant)

        assert deleted == 3
        assert espresso.stock == 500
        assert croissant.stock == 10

    async def test_clear_on_empty_store(self, service, ada):
        assert await service.clear_orders() == 0
