import os

# Must be set before eshop.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("REDIS_URL", "")

import uuid
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from eshop import models  # noqa: F401
from eshop.config import settings
from eshop.database import Base, get_db
from eshop.main import app
from eshop.models.category import Category
from eshop.models.customer import Customer
from eshop.models.order import DeliveryMethod
from eshop.models.product import Product
from eshop.services.order_service import OrderLine, OrderService
from eshop.services.rate_limiter import InMemoryCounterStore, RateLimiters


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_product(db):
    async def _make(**overrides) -> Product:
        data = {
            "name": f"Product {uuid.uuid4().hex[:6]}",
            "price": Decimal("10.00"),
            "stock_bratislava": 10,
            "stock_ruzomberok": 0,
            "stock_bezo": 0,
        }
        data.update(overrides)
        product = Product(**data)
        db.add(product)
        await db.commit()
        return product
    return _make


@pytest.fixture
def make_customer(db):
    async def _make(**overrides) -> Customer:
        data = {
            "name": "Ján Novák",
            "email": f"jan.{uuid.uuid4().hex[:6]}@example.sk",
            "phone": "+421 900 123 456",
        }
        data.update(overrides)
        customer = Customer(**data)
        db.add(customer)
        await db.commit()
        return customer
    return _make


@pytest.fixture
def make_category(db):
    async def _make(**overrides) -> Category:
        data = {"name": f"Category {uuid.uuid4().hex[:6]}"}
        data.update(overrides)
        category = Category(**data)
        db.add(category)
        await db.commit()
        return category
    return _make


@pytest.fixture
def limiters():
    return RateLimiters.from_settings(settings, store=InMemoryCounterStore())


@pytest_asyncio.fixture
async def client(session_factory, limiters):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.rate_limiters = limiters
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def place_order(db):
    """Create an order through OrderService; lines are (product, quantity) pairs."""
    async def _place(customer, lines, delivery_method=DeliveryMethod.PERSONAL, **kwargs):
        return await OrderService(db).create_order(
            customer_id=customer.id,
            lines=[OrderLine(product.id, quantity) for product, quantity in lines],
            delivery_method=delivery_method,
            delivery_address=kwargs.pop("delivery_address", "Hlavná 1, Bratislava"),
            **kwargs,
        )
    return _place
