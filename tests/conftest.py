"""
Test Suite Configuration
"""
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from src.config.settings import (
    BusinessSettings,
    DatabaseSettings,
    RedisSettings,
    SecuritySettings,
    Settings,
)
from src.database.connection import Database
from src.database.models import Customer, Product
from src.serving.api.main import create_api_app

TEST_DATABASE_URL = "sqlite+aiosqlite://"


def make_settings(**business) -> Settings:
    """Test settings; keyword arguments override business rules by env name"""
    return Settings(
        APP_ENV="testing",
        DEBUG=True,
        database=DatabaseSettings(DATABASE_URL=TEST_DATABASE_URL),
        redis=RedisSettings(enabled=False),
        security=SecuritySettings(RATE_LIMIT_REQUESTS=10_000),
        business=BusinessSettings(**business),
    )


def make_sqlite_engine():
    """In-memory SQLite shared by every session, with working SAVEPOINTs and FKs"""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself so nested transactions work
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture
def settings_factory():
    """Build settings with overridden business rules"""
    return make_settings


@pytest.fixture
async def database() -> AsyncGenerator[Database, None]:
    """Fresh schema per test"""
    database = Database(make_sqlite_engine())
    await database.create_all()
    yield database
    await database.dispose()


@pytest.fixture
async def session(database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session() as session:
        yield session


@pytest.fixture
async def espresso(session) -> Product:
    product = Product(
        name="Espresso",
        description="Rich and bold espresso shot",
        category="Coffee",
        price=Decimal("3.50"),
        cost=Decimal("0.80"),
        stock=500,
    )
    session.add(product)
    await session.flush()
    return product


@pytest.fixture
async def croissant(session) -> Product:
    product = Product(
        name="Croissant",
        category="Pastry",
        price=Decimal("3.50"),
        cost=Decimal("1.00"),
        stock=10,
    )
    session.add(product)
    await session.flush()
    return product


@pytest.fixture
async def ada(session) -> Customer:
    customer = Customer(name="Ada", email="ada@x.com")
    session.add(customer)
    await session.flush()
    return customer


# =============================================================================
# API
# =============================================================================

@pytest.fixture
def app(test_settings, database):
    return create_api_app(settings=test_settings, database=database)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
async def seeded(client) -> dict:
    """Espresso and Ada created through the API"""
    product = await client.post("/api/products", json={
        "name": "Espresso",
        "category": "Coffee",
        "price": 3.50,
        "cost": 0.80,
        "stock": 500,
    })
    customer = await client.post("/api/customers", json={"name": "Ada", "email": "ada@x.com"})
    assert product.status_code == 201
    assert customer.status_code == 201
    return {"product": product.json(), "customer": customer.json()}
