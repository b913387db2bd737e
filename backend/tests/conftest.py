"""
Pytest configuration and fixtures for tests.

Provides an in-memory SQLite database, a fake Stripe payment service and
an HTTP client wired to both.
"""

import itertools
import json
import os
from typing import Any

# Must be set before storefront.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("SHOP_CURRENCY", "EUR")

import httpx
import pytest
import pytest_asyncio
import stripe
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from storefront.core.database import Base, get_db
from storefront.models import shop as shop_models  # noqa: F401
from storefront.models.user import User
from storefront.modules.shop.items import ItemService
from storefront.modules.shop.orders import OrderService
from storefront.modules.shop.payment import PaymentService, get_payment_service
from storefront.modules.shop.schemas import ItemPayload


class FakePaymentService(PaymentService):
    """In-memory stand-in for Stripe that records every call."""

    def __init__(self) -> None:
        self.client = None
        self.currency = "eur"
        self.webhook_secret = "whsec_test"
        self.products: dict[str, dict[str, Any]] = {}
        self.prices: list[dict[str, Any]] = []
        self.sessions: dict[str, dict[str, Any]] = {}
        self.calls: list[str] = []
        self.fail: set[str] = set()
        self._ids = itertools.count(1)

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise stripe.APIError(f"{name} failed")

    async def create_product(self, name, description=None, picture=None):
        self._call("create_product")
        product_id = f"prod_{next(self._ids)}"
        self.products[product_id] = {
            "name": name,
            "description": description,
            "active": True,
        }
        return {"id": product_id, "name": name}

    async def update_product(self, product_id, name, description=None):
        self._call("update_product")
        self.products[product_id].update(name=name, description=description)
        return {"id": product_id, "name": name}

    async def archive_product(self, product_id):
        self._call("archive_product")
        self.products[product_id]["active"] = False

    async def create_price(self, product_id, unit_amount, lookup_key, transfer_lookup_key=False):
        self._call("create_price")
        price = {
            "id": f"price_{next(self._ids)}",
            "product": product_id,
            "unit_amount": unit_amount,
            "lookup_key": lookup_key,
            "transfer_lookup_key": transfer_lookup_key,
        }
        self.prices.append(price)
        return {"id": price["id"], "lookup_key": lookup_key}

    async def create_checkout_session(
        self, client_reference_id, items, success_url, cancel_url
    ):
        self._call("create_checkout_session")
        session_id = f"cs_test_{next(self._ids)}"
        self.sessions[session_id] = {
            "client_reference_id": client_reference_id,
            "line_items": [
                {
                    "product_id": item["product_id"],
                    "lookup_key": None,
                    "unit_amount": item["unit_amount"],
                    "quantity": item["quantity"],
                }
                for item in items
            ],
        }
        return {"session_id": session_id, "url": f"https://checkout.test/{session_id}"}

    async def list_session_line_items(self, session_id):
        self._call("list_session_line_items")
        return [dict(li) for li in self.sessions[session_id]["line_items"]]

    async def verify_webhook(self, payload, signature):
        if signature != "valid":
            return None
        event = json.loads(payload)
        return {"type": event["type"], "data": event["data"]["object"]}


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def engine():
    """Create test database engine (in-memory SQLite)."""
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
async def db(engine):
    """Create test database session."""
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session


@pytest.fixture
def payment() -> FakePaymentService:
    return FakePaymentService()


@pytest.fixture
def item_service(db, payment) -> ItemService:
    return ItemService(db, payment)


@pytest.fixture
def order_service(db, payment) -> OrderService:
    return OrderService(db, payment)


@pytest_asyncio.fixture
async def user(db) -> User:
    user = User(email="buyer@example.com", username="buyer")
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
def make_item(item_service):
    """Factory creating catalog items through the item service."""

    async def _make_item(**overrides):
        data = {
            "name": "Hull thruster",
            "price": 1999,
            "quantity": 10,
            "shippable": True,
        }
        data.update(overrides)
        return await item_service.create_item(ItemPayload(**data))

    return _make_item


# ============================================================================
# HTTP Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def client(db, payment):
    """HTTP client bound to the app with test database and fake Stripe."""
    from storefront.main import app

    async def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_service] = lambda: payment

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()
