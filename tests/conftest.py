"""
Shared fixtures: a fresh SQLite database per test, the FastAPI app wired to
it, and a signed-in superuser.

Sessions opened in tests must be short-lived (`async with maker() as s:`):
every SQLite transaction holds the write lock until the session closes.
"""

import os
import tempfile
import uuid
from decimal import Decimal

# Settings are read at import time; never point the app at a real server.
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'inventory-tests-default.db')}",
)

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.auth import current_active_user
from db.database import (
    Ingredient,
    Product,
    ProductVariant,
    User,
    build_engine,
    create_db_and_tables,
    get_async_session,
)
from main import app


@pytest.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'inventory.db'}")
    await create_db_and_tables(bind=eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def user(maker):
    u = User(
        id=uuid.uuid4(),
        email="manager@example.com",
        hashed_password="not-a-real-hash",
        is_active=True,
        is_superuser=True,
        is_verified=True,
    )
    async with maker() as s:
        s.add(u)
        await s.commit()
    return u


@pytest.fixture
async def client(maker, user):
    async def _session():
        async with maker() as s:
            yield s

    app.dependency_overrides[get_async_session] = _session
    app.dependency_overrides[current_active_user] = lambda: user
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_ingredient(maker):
    async def _make(name="Flour", category="dry", unit="kg", cost_per_unit=None, active=True):
        ing = Ingredient(
            name=name,
            category=category,
            unit=unit,
            cost_per_unit=Decimal(str(cost_per_unit)) if cost_per_unit is not None else None,
            active=active,
        )
        async with maker() as s:
            s.add(ing)
            await s.commit()
        return ing

    return _make


@pytest.fixture
def make_variant(maker):
    async def _make(product_name="Burger", variant_name="Regular", sku=None):
        product = Product(name=product_name)
        variant = ProductVariant(name=variant_name, sku=sku)
        product.variants = [variant]
        async with maker() as s:
            s.add(product)
            await s.commit()
        return variant

    return _make
