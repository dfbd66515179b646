"""Pytest configuration and fixtures for Stockbook tests.

Tests run against an in-memory SQLite database (aiosqlite) unless
TEST_DATABASE_URL points elsewhere.  Each test gets a fresh schema.
"""

import os

# Settings are read at import time, so the environment must be set first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("DEDUP_BACKEND", "memory")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from stockbook.auth.jwt import create_access_token
from stockbook.config import settings
from stockbook.database import Base, get_db
from stockbook.main import app
from stockbook.models.public.client import Client
from stockbook.models.public.user import User, UserRole
from stockbook.models.tenant.product import Product, ProductType
from stockbook.models.tenant.stock_entry import StockEntry
from stockbook.services.dedup import InMemoryDedupBackend, RequestDeduplicator, TTLCache

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    """Fresh database per test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)

        # pysqlite's own transaction handling breaks SAVEPOINT; take it over
        @event.listens_for(engine.sync_engine, "connect")
        def _do_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _do_begin(conn):
            conn.exec_driver_sql("BEGIN")
    else:
        engine = create_async_engine(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def dedup() -> RequestDeduplicator:
    return RequestDeduplicator(InMemoryDedupBackend())


@pytest_asyncio.fixture
async def client(db_session, dedup) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the test session (one transaction per request)."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    # ASGITransport does not run the lifespan, so wire app.state here
    app.state.deduplicator = dedup
    app.state.lookup_cache = TTLCache(ttl_seconds=300)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def test_client_org(db_session: AsyncSession) -> str:
    """A tenant.  Returns its id."""
    org = Client(name="Acme Batteries")
    db_session.add(org)
    await db_session.commit()
    return org.id


@pytest_asyncio.fixture
async def other_client_org(db_session: AsyncSession) -> str:
    org = Client(name="Other Traders")
    db_session.add(org)
    await db_session.commit()
    return org.id


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession, test_client_org: str) -> User:
    user = User(
        email="cashier@example.com",
        full_name="Test Admin",
        role=UserRole.ADMIN,
        is_active=True,
        client_id=test_client_org,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
def test_token(test_user: User, test_client_org: str) -> str:
    return create_access_token(
        user_id=test_user.id,
        role=test_user.role.value,
        client_id=test_client_org,
    )


@pytest.fixture
def auth_headers(test_token: str) -> dict:
    return {"Authorization": f"Bearer {test_token}"}


async def add_stocked_product(
    db: AsyncSession,
    client_id: str,
    *,
    brand_name: str,
    series_name: str,
    in_stock: int,
    sold_count: int = 0,
    product_type: ProductType = ProductType.BATTERY,
    product_cost: float = 0.0,
) -> dict:
    """Create a product with its stock entry and commit.  Returns plain ids."""
    product = Product(
        client_id=client_id,
        name=f"{brand_name} {series_name}",
        brand_name=brand_name,
        series_name=series_name,
        product_type=product_type,
        category="Batteries" if product_type == ProductType.BATTERY else "Tonic",
    )
    db.add(product)
    await db.flush()
    entry = StockEntry(
        client_id=client_id,
        product_id=product.id,
        brand_name=brand_name,
        series_name=series_name,
        in_stock=in_stock,
        sold_count=sold_count,
        product_cost=product_cost,
    )
    db.add(entry)
    await db.commit()
    return {
        "product_id": product.id,
        "entry_id": entry.id,
        "brand_name": brand_name,
        "series_name": series_name,
    }


@pytest_asyncio.fixture
async def battery(db_session: AsyncSession, test_client_org: str) -> dict:
    """Exide N70 with 10 units in stock."""
    return await add_stocked_product(
        db_session, test_client_org,
        brand_name="Exide", series_name="N70", in_stock=10, product_cost=12000.0,
    )


@pytest_asyncio.fixture
async def tonic(db_session: AsyncSession, test_client_org: str) -> dict:
    """Battery tonic (no warranty) with 20 units in stock."""
    return await add_stocked_product(
        db_session, test_client_org,
        brand_name="Exide", series_name="Tonic 1L", in_stock=20,
        product_type=ProductType.TONIC,
    )


async def fresh_stock(db: AsyncSession, entry_id: str) -> StockEntry:
    """Reload a stock entry, overwriting whatever the session holds."""
    result = await db.execute(
        select(StockEntry)
        .where(StockEntry.id == entry_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


def invoice_payload(product: dict, quantity: int = 1, **overrides) -> dict:
    """A valid create payload in wire (camelCase) form."""
    payload = {
        "customerName": "Jane Doe",
        "customerAddress": "12 Main Road",
        "customerContactNumber": "03001234567",
        "paymentMethod": ["Cash"],
        "receivedAmount": 0,
        "batteriesRate": 0,
        "productDetail": [{
            "productId": product["product_id"],
            "price": 15000,
            "quantity": quantity,
            "warrantyCode": "WX-1001",
            "warrantyStartDate": "2024-01-15",
            "warrantyDuration": 6,
        }],
    }
    payload.update(overrides)
    return payload


# ── Redis Fixtures ───────────────────────────────────────────────

@pytest_asyncio.fixture
async def redis_client():
    """Redis client for cache tests; skips when no server is reachable."""
    import redis.asyncio as redis

    from stockbook.utils import cache

    client = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await client.ping()
    except redis.RedisError:
        await client.aclose()
        pytest.skip("Redis not available")

    original = settings.cache_enabled
    settings.cache_enabled = True
    cache._redis_client = None

    yield client

    await client.flushdb()
    await client.aclose()
    await cache.close_redis()
    settings.cache_enabled = original


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP endpoint tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "cache: Redis cache tests")
    config.addinivalue_line("markers", "auth: Authentication tests")
