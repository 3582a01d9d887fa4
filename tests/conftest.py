"""Shared fixtures: a throwaway SQLite store and scripted collaborators."""

from __future__ import annotations

import asyncio
import random
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from zynthra.assistant.engine import AssistantSession
from zynthra.assistant.handlers.base import HandlerContext
from zynthra.assistant.handlers.order import OrderHandler
from zynthra.assistant.handlers.registry import HandlerRegistry
from zynthra.assistant.handlers.search import SearchHandler
from zynthra.assistant.handlers.sos import SOSHandler
from zynthra.assistant.handlers.track import TrackHandler
from zynthra.config import AssistantConfig, SOSConfig, UserSeed
from zynthra.services.commerce import (
    CommerceService,
    OrderRequest,
    OrderResult,
    Product,
    SearchResult,
    TrackingResult,
)
from zynthra.services.location import LocationFix, LocationService
from zynthra.services.messaging import MessageReceipt, MessagingService
from zynthra.storage.database import Database
from zynthra.storage.document_repo import DocumentRepository
from zynthra.storage.models import Address, AddressBook, EmergencyContact, UserProfile

SF = LocationFix(success=True, latitude=37.7749, longitude=-122.4194, accuracy=10.0)


class StubCommerce(CommerceService):
    """Commerce double that records requests and can be told to misbehave."""

    def __init__(self, platforms=("amazon", "flipkart")):
        self._platforms = list(platforms)
        self.orders: list[OrderRequest] = []
        self.searches: list[tuple[str, str]] = []
        self.tracked: list[str] = []
        self.order_result = OrderResult(success=True, order_id="AMAZONK1X2Y3")
        self.raise_error: Exception | None = None
        self.delay = 0.0

    @property
    def platforms(self) -> list[str]:
        return self._platforms

    async def _misbehave(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raise_error is not None:
            raise self.raise_error

    async def search(self, query: str, platform: str) -> SearchResult:
        await self._misbehave()
        self.searches.append((query, platform))
        products = [
            Product(f"p{i}", f"{query} {i}", "stub", 10.0 + i, "USD", 4.0, True, "")
            for i in range(3)
        ]
        return SearchResult(success=True, platform=platform, query=query, results=products)

    async def order(self, request: OrderRequest) -> OrderResult:
        await self._misbehave()
        self.orders.append(request)
        return self.order_result

    async def track(self, order_id: str) -> TrackingResult:
        await self._misbehave()
        self.tracked.append(order_id)
        if order_id.upper() != "AMAZONK1X2Y3":
            return TrackingResult(success=False, order_id=order_id, error="Order not found")
        return TrackingResult(
            success=True,
            order_id="AMAZONK1X2Y3",
            status="shipped",
            status_text="Shipped",
            estimated_delivery=datetime(2025, 5, 30, tzinfo=timezone.utc),
            carrier="UPS",
            tracking_number="TRK42",
        )

    async def cancel(self, order_id: str) -> OrderResult:
        return OrderResult(success=True, order_id=order_id)


class StubMessaging(MessagingService):
    """Messaging double; numbers in ``failing`` raise, ``rejecting`` get success=False."""

    def __init__(self):
        self.texts: list[tuple[str, str]] = []
        self.shares: list[tuple[str, float, float, str]] = []
        self.failing: set[str] = set()
        self.rejecting: set[str] = set()

    async def send_message(self, to: str, text: str) -> MessageReceipt:
        if to in self.failing:
            raise ConnectionError(f"cannot reach {to}")
        self.texts.append((to, text))
        return MessageReceipt(success=to not in self.rejecting, message_id=f"m{len(self.texts)}")

    async def share_location(self, to: str, latitude: float, longitude: float, label: str) -> MessageReceipt:
        if to in self.failing:
            raise ConnectionError(f"cannot reach {to}")
        self.shares.append((to, latitude, longitude, label))
        return MessageReceipt(success=to not in self.rejecting, message_id=f"l{len(self.shares)}")


class StubLocation(LocationService):
    def __init__(self, fix: LocationFix = SF):
        self.fix = fix
        self.raise_error: Exception | None = None
        self.calls = 0

    async def get_current_location(self) -> LocationFix:
        self.calls += 1
        if self.raise_error is not None:
            raise self.raise_error
        return self.fix


class FlakyDocuments:
    """Wraps a user document store; every save raises while ``failing`` is set."""

    def __init__(self, inner):
        self._inner = inner
        self.failing = False

    async def load(self, key):
        return await self._inner.load(key)

    async def save(self, key, value):
        if self.failing:
            raise OSError("disk full")
        await self._inner.save(key, value)


def contact(name: str, phone: str, priority: int = 1) -> EmergencyContact:
    return EmergencyContact(id=f"id-{phone}", name=name, phone=phone, priority=priority)


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(str(tmp_path / "zynthra.db"))
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def repo(db):
    return DocumentRepository(db)


@pytest.fixture
def commerce():
    return StubCommerce()


@pytest.fixture
def messaging():
    return StubMessaging()


@pytest.fixture
def location():
    return StubLocation()


@pytest.fixture
def sos_config():
    return SOSConfig()


@pytest.fixture
def handlers(commerce, messaging, location, sos_config):
    registry = HandlerRegistry()
    registry.register(OrderHandler(commerce))
    registry.register(SOSHandler(messaging, location, sos_config))
    registry.register(TrackHandler(commerce))
    registry.register(SearchHandler(commerce))
    return registry


@pytest.fixture
def ctx():
    return HandlerContext(
        user_id="u1",
        profile=UserProfile(name="Sam"),
        addresses=AddressBook(home=Address(label="home", text="1 Main St")),
        contacts=[contact("Alex", "+1555000001", 1), contact("Jo", "+1555000002", 2)],
        timeout=1.0,
    )


@pytest.fixture
def seed():
    return UserSeed(
        name="Sam",
        addresses={"home": "1 Main St", "work": "9 Office Park"},
        emergency_contacts=[{"name": "Alex", "phone": "+1555000001"}],
    )


@pytest.fixture
def make_session(repo, handlers):
    """Factory for sessions sharing one repository, so reloads can be tested."""

    async def _make(user_id="u1", config=None, seed=None, store=None, initialize=True):
        session = AssistantSession(
            user_id=user_id,
            store=store or repo.for_user(user_id),
            handlers=handlers,
            config=config or AssistantConfig(),
            seed=seed,
            rng=random.Random(7),
        )
        if initialize:
            assert await session.initialize()
        return session

    return _make


@pytest.fixture
def flaky_store(repo):
    return FlakyDocuments(repo.for_user("u1"))
