"""
Unit Tests - Store Client and Schema Constraints
"""
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from structlog.testing import capture_logs

from src.database.models import Customer, Product
from src.exceptions import ValidationError


class TestSessionScope:
    """Tests for commit, rollback and rollback logging"""

    async def test_commits_on_success(self, database):
        async with database.session() as session:
            session.add(Customer(name="Ada", email="ada@x.com"))

        async with database.session() as session:
            assert (await session.execute(select(Customer.email))).scalars().all() == ["ada@x.com"]

    async def test_domain_error_rolls_back_quietly(self, database):
        with capture_logs() as logs:
            with pytest.raises(ValidationError):
                async with database.session() as session:
                    session.add(Customer(name="Ada", email="ada@x.com"))
                    await session.flush()
                    raise ValidationError("Missing required fields: email")

        assert not [entry for entry in logs if entry["log_level"] == "error"]
        async with database.session() as session:
            assert (await session.execute(select(Customer))).first() is None

    async def test_database_error_is_logged(self, database):
        with capture_logs() as logs:
            with pytest.raises(OperationalError):
                async with database.session():
                    raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

        errors = [entry for entry in logs if entry["log_level"] == "error"]
        assert len(errors) == 1
        assert errors[0]["event"] == "Database session error, rolling back"
        assert errors[0]["error_type"] == "OperationalError"


class TestProductConstraints:
    """Tests for the price and cost floors on the products table"""

    @pytest.mark.parametrize("price, cost", [
        (Decimal("0"), Decimal("0.50")),
        (Decimal("-1.00"), Decimal("0.50")),
        (Decimal("2.00"), Decimal("-0.10")),
    ])
    async def test_rejects_out_of_range_rows(self, database, price, cost):
        with pytest.raises(IntegrityError):
            async with database.session() as session:
                session.add(Product(name="Free Refill", category="Coffee", price=price, cost=cost))

    async def test_negative_stock_is_stored(self, database):
        async with database.session() as session:
            session.add(Product(
                name="Muffin", category="Pastry", price=Decimal("2.75"), cost=Decimal("0.90"), stock=-2,
            ))

        async with database.session() as session:
            assert (await session.execute(select(Product.stock))).scalar_one() == -2
