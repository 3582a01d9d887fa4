"""Commerce collaborator: product search, ordering, tracking, carts and saved payment methods."""

from __future__ import annotations

import asyncio
import hashlib
import random
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable, Optional

from zynthra.config import CommerceConfig
from zynthra.core.types import PaymentMethod
from zynthra.log import get_logger

if TYPE_CHECKING:
    from zynthra.storage.document_repo import ServiceDocuments

logger = get_logger(__name__)

ORDERS_KEY = "orders"
CARTS_KEY = "carts"
PAYMENT_METHODS_KEY = "payment_methods"

ORDER_STATUSES = ("processing", "shipped", "out_for_delivery", "delivered")

STATUS_TEXT = {
    "placed": "Order Placed",
    "processing": "Processing",
    "shipped": "Shipped",
    "out_for_delivery": "Out for Delivery",
    "delivered": "Delivered",
    "cancelled": "Cancelled",
}

# (status, hours after placement, where)
_TRACKING_MILESTONES = (
    ("placed", 0, "Online"),
    ("processing", 12, "Seller Facility"),
    ("shipped", 24, "Distribution Center"),
    ("out_for_delivery", 48, "Local Delivery Facility"),
    ("delivered", 72, "Delivery Address"),
)

_CARRIERS = ("FedEx", "UPS", "DHL", "USPS")


@dataclass(frozen=True, slots=True)
class Product:
    id: str
    name: str
    description: str
    price: float
    currency: str
    rating: float
    in_stock: bool
    image_url: str


@dataclass(frozen=True, slots=True)
class SearchResult:
    success: bool
    platform: str
    query: str
    results: list[Product] = field(default_factory=list)
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class OrderRequest:
    platform: str
    product: str
    quantity: int
    address: str
    payment_method: str
    notes: str = ""


@dataclass(frozen=True, slots=True)
class OrderResult:
    success: bool
    order_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TrackingResult:
    success: bool
    order_id: str
    status: Optional[str] = None
    status_text: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    events: list[dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None


@dataclass(slots=True)
class OrderRecord:
    id: str
    request: OrderRequest
    placed_at: datetime
    estimated_delivery: datetime
    status: str = "placed"
    cancelled_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class CartItem:
    product_id: str
    quantity: int
    added_at: datetime


@dataclass(frozen=True, slots=True)
class CartResult:
    success: bool
    cart_count: int = 0
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SavedPaymentMethod:
    id: str
    type: PaymentMethod
    label: str = ""


class CommerceService(ABC):
    @property
    @abstractmethod
    def platforms(self) -> list[str]:
        ...

    def supports(self, platform: str) -> bool:
        return platform in self.platforms

    @abstractmethod
    async def search(self, query: str, platform: str) -> SearchResult:
        ...

    @abstractmethod
    async def order(self, request: OrderRequest) -> OrderResult:
        ...

    @abstractmethod
    async def track(self, order_id: str) -> TrackingResult:
        ...

    @abstractmethod
    async def cancel(self, order_id: str) -> OrderResult:
        ...

    async def restore(self) -> None:
        """Reload persisted state at startup. Platform-backed adapters keep none."""


def _base36(number: int) -> str:
    digits = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    if number == 0:
        return "0"
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


def _seeded_rng(*parts: str) -> random.Random:
    digest = hashlib.sha256(":".join(parts).encode("utf-8")).hexdigest()
    return random.Random(int(digest[:16], 16))


def _record_to_doc(record: OrderRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "request": asdict(record.request),
        "placed_at": record.placed_at.isoformat(),
        "estimated_delivery": record.estimated_delivery.isoformat(),
        "status": record.status,
        "cancelled_at": record.cancelled_at.isoformat() if record.cancelled_at else None,
    }


def _record_from_doc(doc: dict[str, Any]) -> OrderRecord:
    cancelled_at = doc.get("cancelled_at")
    return OrderRecord(
        id=doc["id"],
        request=OrderRequest(**doc["request"]),
        placed_at=datetime.fromisoformat(doc["placed_at"]),
        estimated_delivery=datetime.fromisoformat(doc["estimated_delivery"]),
        status=doc["status"],
        cancelled_at=datetime.fromisoformat(cancelled_at) if cancelled_at else None,
    )


class MockCommerceService(CommerceService):
    """In-process stand-in for the shopping platforms.

    Search results are derived from the query, so the same query on the same
    platform always returns the same products. With a ``store`` the order
    book, carts and saved payment methods are written through on every change
    and come back on ``restore()``; without one they last as long as the
    service.
    """

    def __init__(
        self,
        config: CommerceConfig,
        clock: Callable[[], datetime] | None = None,
        store: ServiceDocuments | None = None,
    ):
        self._config = config
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._store = store
        self._orders: dict[str, OrderRecord] = {}
        self._carts: dict[str, list[CartItem]] = {}
        self._payment_methods: list[SavedPaymentMethod] = []

    @property
    def platforms(self) -> list[str]:
        return list(self._config.platforms)

    async def restore(self) -> None:
        if self._store is None:
            return
        raw_orders = await self._store.load(ORDERS_KEY) or []
        raw_carts = await self._store.load(CARTS_KEY) or {}
        raw_methods = await self._store.load(PAYMENT_METHODS_KEY) or []

        self._orders = {doc["id"]: _record_from_doc(doc) for doc in raw_orders}
        self._carts = {
            platform: [
                CartItem(i["product_id"], i["quantity"], datetime.fromisoformat(i["added_at"]))
                for i in items
            ]
            for platform, items in raw_carts.items()
        }
        self._payment_methods = [
            SavedPaymentMethod(m["id"], PaymentMethod(m["type"]), m.get("label", ""))
            for m in raw_methods
        ]
        logger.info(
            "commerce_restored",
            orders=len(self._orders),
            cart_items=self.cart_item_count(),
            payment_methods=len(self._payment_methods),
        )

    async def _save(self, key: str, value: Any) -> None:
        if self._store is not None:
            await self._store.save(key, value)

    async def _commit_orders(self, orders: dict[str, OrderRecord]) -> None:
        # Stored first, so a failed write leaves the in-memory book unchanged.
        await self._save(ORDERS_KEY, [_record_to_doc(o) for o in orders.values()])
        self._orders = orders

    async def _delay(self) -> None:
        if self._config.simulated_delay:
            await asyncio.sleep(self._config.simulated_delay)

    async def search(self, query: str, platform: str) -> SearchResult:
        if not self.supports(platform):
            logger.warning("commerce_unknown_platform", platform=platform)
            return SearchResult(success=False, platform=platform, query=query, error="Unknown platform")

        await self._delay()
        platform_cfg = self._config.platforms[platform]
        rng = _seeded_rng(platform, query)
        results = []
        for i in range(rng.randint(3, 7)):
            product_id = f"{platform[0]}{rng.randrange(1_000_000)}"
            results.append(
                Product(
                    id=product_id,
                    name=f"{query} {i + 1}",
                    description=f"This is a {query} product with various features.",
                    price=round(rng.randrange(10_000) / 100 + 10, 2),
                    currency=platform_cfg.currency,
                    rating=round(rng.uniform(2.0, 5.0), 1),
                    in_stock=rng.random() > 0.2,
                    image_url=f"https://example.com/images/{product_id}.jpg",
                )
            )
        logger.info("commerce_search", platform=platform, query=query, count=len(results))
        return SearchResult(success=True, platform=platform, query=query, results=results)

    async def order(self, request: OrderRequest) -> OrderResult:
        if not self.supports(request.platform):
            return OrderResult(success=False, error="Unknown platform")
        if request.quantity < 1:
            return OrderResult(success=False, error="Quantity must be at least 1.")

        await self._delay()
        now = self._clock()
        stamp = int(now.timestamp() * 1000)
        order_id = f"{request.platform.upper()}{_base36(stamp)}"
        while order_id in self._orders:
            stamp += 1
            order_id = f"{request.platform.upper()}{_base36(stamp)}"

        record = OrderRecord(
            id=order_id,
            request=request,
            placed_at=now,
            estimated_delivery=now + timedelta(days=3),
        )
        await self._commit_orders({**self._orders, order_id: record})
        logger.info("commerce_order_placed", order_id=order_id, platform=request.platform)
        return OrderResult(success=True, order_id=order_id)

    async def track(self, order_id: str) -> TrackingResult:
        record = self._find(order_id)
        if record is None:
            return TrackingResult(success=False, order_id=order_id, error="Order not found")

        await self._delay()
        status = self._current_status(record)

        rng = _seeded_rng(record.id)
        return TrackingResult(
            success=True,
            order_id=record.id,
            status=status,
            status_text=STATUS_TEXT.get(status, status),
            estimated_delivery=record.estimated_delivery,
            carrier=rng.choice(_CARRIERS),
            tracking_number=f"TRK{rng.randrange(1_000_000)}",
            events=self._tracking_events(record.placed_at, status),
        )

    async def cancel(self, order_id: str) -> OrderResult:
        record = self._find(order_id)
        if record is None:
            return OrderResult(success=False, order_id=order_id, error="Order not found")
        status = self._current_status(record)
        if status in ("delivered", "cancelled"):
            return OrderResult(
                success=False,
                order_id=record.id,
                error=f"Cannot cancel order in {status} status",
            )

        await self._delay()
        cancelled = replace(record, status="cancelled", cancelled_at=self._clock())
        await self._commit_orders({**self._orders, record.id: cancelled})
        logger.info("commerce_order_cancelled", order_id=record.id)
        return OrderResult(success=True, order_id=record.id)

    async def add_to_cart(self, platform: str, product_id: str, quantity: int = 1) -> CartResult:
        """Add ``quantity`` of a product; a product already in the cart is topped up."""
        if not self.supports(platform):
            return CartResult(success=False, error="Unknown platform")
        if quantity < 1:
            return CartResult(success=False, error="Quantity must be at least 1.")

        items = list(self._carts.get(platform, []))
        for index, item in enumerate(items):
            if item.product_id == product_id:
                items[index] = replace(item, quantity=item.quantity + quantity)
                break
        else:
            items.append(CartItem(product_id, quantity, self._clock()))
        await self._commit_cart(platform, items)
        return CartResult(success=True, cart_count=len(items))

    async def remove_from_cart(self, platform: str, product_id: str) -> CartResult:
        if not self.supports(platform) or platform not in self._carts:
            return CartResult(success=False, error="Unknown platform or empty cart")

        items = [i for i in self._carts[platform] if i.product_id != product_id]
        await self._commit_cart(platform, items)
        return CartResult(success=True, cart_count=len(items))

    async def update_cart_quantity(self, platform: str, product_id: str, quantity: int) -> CartResult:
        """Set a cart line's quantity; zero or less removes the line."""
        if not self.supports(platform) or platform not in self._carts:
            return CartResult(success=False, error="Unknown platform or empty cart")

        items = list(self._carts[platform])
        index = next((i for i, item in enumerate(items) if item.product_id == product_id), None)
        if index is None:
            return CartResult(success=False, error="Product not in cart")
        if quantity <= 0:
            return await self.remove_from_cart(platform, product_id)

        items[index] = replace(items[index], quantity=quantity)
        await self._commit_cart(platform, items)
        return CartResult(success=True, cart_count=len(items))

    def cart(self, platform: str) -> list[CartItem]:
        return list(self._carts.get(platform, []))

    def cart_item_count(self, platform: str | None = None) -> int:
        """Distinct products in one platform's cart, or across all carts."""
        if platform:
            return len(self._carts.get(platform, []))
        return sum(len(items) for items in self._carts.values())

    async def _commit_cart(self, platform: str, items: list[CartItem]) -> None:
        carts = {**self._carts, platform: items}
        await self._save(
            CARTS_KEY,
            {
                name: [
                    {"product_id": i.product_id, "quantity": i.quantity, "added_at": i.added_at.isoformat()}
                    for i in cart
                ]
                for name, cart in carts.items()
            },
        )
        self._carts = carts

    async def add_payment_method(self, method: SavedPaymentMethod) -> None:
        """Save a payment method, replacing any saved one with the same id."""
        methods = list(self._payment_methods)
        for index, saved in enumerate(methods):
            if saved.id == method.id:
                methods[index] = method
                break
        else:
            methods.append(method)
        await self._commit_payment_methods(methods)

    async def remove_payment_method(self, method_id: str) -> bool:
        methods = [m for m in self._payment_methods if m.id != method_id]
        if len(methods) == len(self._payment_methods):
            return False
        await self._commit_payment_methods(methods)
        return True

    def saved_payment_methods(self) -> list[SavedPaymentMethod]:
        return list(self._payment_methods)

    async def _commit_payment_methods(self, methods: list[SavedPaymentMethod]) -> None:
        await self._save(PAYMENT_METHODS_KEY, [asdict(m) for m in methods])
        self._payment_methods = methods

    def order_history(self, platform: str | None = None, limit: int | None = None) -> list[OrderRecord]:
        orders = sorted(self._orders.values(), key=lambda o: o.placed_at, reverse=True)
        if platform:
            orders = [o for o in orders if o.request.platform == platform]
        return orders[:limit] if limit else orders

    def _current_status(self, record: OrderRecord) -> str:
        if record.status == "cancelled":
            return "cancelled"
        days = int((self._clock() - record.placed_at) / timedelta(days=1))
        return ORDER_STATUSES[max(0, min(days, len(ORDER_STATUSES) - 1))]

    def _find(self, order_id: str) -> OrderRecord | None:
        # Extracted ids arrive lower-cased.
        return self._orders.get(order_id) or self._orders.get(order_id.upper())

    @staticmethod
    def _tracking_events(placed_at: datetime, status: str) -> list[dict[str, Any]]:
        if status == "cancelled":
            reached = 1
        else:
            reached = 2 + ORDER_STATUSES.index(status)
        return [
            {
                "status": name,
                "status_text": STATUS_TEXT[name],
                "timestamp": (placed_at + timedelta(hours=hours)).isoformat(),
                "location": where,
            }
            for name, hours, where in _TRACKING_MILESTONES[:reached]
        ]
