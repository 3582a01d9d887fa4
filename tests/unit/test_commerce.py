"""Tests for the in-process commerce service."""

from datetime import datetime, timedelta, timezone

import pytest

from zynthra.config import CommerceConfig
from zynthra.core.types import PaymentMethod
from zynthra.services.commerce import MockCommerceService, OrderRequest, SavedPaymentMethod
from zynthra.storage.document_repo import ServiceDocuments


class Clock:
    def __init__(self):
        self.now = datetime(2025, 5, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def service(clock):
    return MockCommerceService(CommerceConfig(), clock=clock)


def request(platform="amazon", quantity=1):
    return OrderRequest(
        platform=platform,
        product="desk lamp",
        quantity=quantity,
        address="1 Main St",
        payment_method="COD",
    )


class TestSearch:
    """Test product search."""

    @pytest.mark.asyncio
    async def test_same_query_same_products(self, service):
        first = await service.search("desk lamp", "amazon")
        second = await service.search("desk lamp", "amazon")

        assert first.success
        assert first == second
        assert 3 <= len(first.results) <= 7

    @pytest.mark.asyncio
    async def test_currency_follows_platform(self, service):
        result = await service.search("kettle", "flipkart")

        assert {p.currency for p in result.results} == {"INR"}

    @pytest.mark.asyncio
    async def test_unknown_platform(self, service):
        result = await service.search("kettle", "ebay")

        assert not result.success
        assert result.error == "Unknown platform"
        assert result.results == []


class TestOrders:
    """Test placing, tracking and cancelling orders."""

    @pytest.mark.asyncio
    async def test_order_id_format(self, service):
        result = await service.order(request())

        assert result.success
        assert result.order_id.startswith("AMAZON")
        assert result.order_id.isalnum()

    @pytest.mark.asyncio
    async def test_ids_are_unique_within_one_instant(self, service):
        first = await service.order(request())
        second = await service.order(request())

        assert first.order_id != second.order_id

    @pytest.mark.asyncio
    async def test_rejects_bad_requests(self, service):
        assert (await service.order(request(platform="ebay"))).error == "Unknown platform"
        assert not (await service.order(request(quantity=0))).success

    @pytest.mark.asyncio
    async def test_status_progresses_with_time(self, service, clock):
        order_id = (await service.order(request())).order_id

        statuses = []
        for _ in range(5):
            statuses.append((await service.track(order_id)).status)
            clock.advance(days=1)

        assert statuses == ["processing", "shipped", "out_for_delivery", "delivered", "delivered"]

    @pytest.mark.asyncio
    async def test_tracking_details(self, service, clock):
        order_id = (await service.order(request())).order_id
        clock.advance(days=1)

        first = await service.track(order_id)
        second = await service.track(order_id)

        assert first == second
        assert first.status_text == "Shipped"
        assert first.estimated_delivery == datetime(2025, 5, 4, 9, 0, tzinfo=timezone.utc)
        assert [e["status"] for e in first.events] == ["placed", "processing", "shipped"]

    @pytest.mark.asyncio
    async def test_lowercase_id_is_found(self, service):
        order_id = (await service.order(request())).order_id

        result = await service.track(order_id.lower())

        assert result.success
        assert result.order_id == order_id

    @pytest.mark.asyncio
    async def test_unknown_order(self, service):
        result = await service.track("AMAZON0")

        assert not result.success
        assert result.error == "Order not found"

    @pytest.mark.asyncio
    async def test_cancel(self, service):
        order_id = (await service.order(request())).order_id

        assert (await service.cancel(order_id)).success
        tracked = await service.track(order_id)
        again = await service.cancel(order_id)

        assert tracked.status == "cancelled"
        assert len(tracked.events) == 1
        assert not again.success
        assert again.error == "Cannot cancel order in cancelled status"

    @pytest.mark.asyncio
    async def test_order_history(self, service, clock):
        await service.order(request())
        clock.advance(hours=1)
        await service.order(request(platform="flipkart"))

        history = service.order_history()

        assert [o.request.platform for o in history] == ["flipkart", "amazon"]
        assert len(service.order_history(platform="amazon")) == 1
        assert len(service.order_history(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_delivered_order_cannot_be_cancelled(self, service, clock):
        order_id = (await service.order(request())).order_id
        clock.advance(days=4)

        result = await service.cancel(order_id)

        assert not result.success
        assert result.error == "Cannot cancel order in delivered status"


class TestCart:
    """Test per-platform carts."""

    @pytest.mark.asyncio
    async def test_add_tops_up_existing_line(self, service):
        await service.add_to_cart("amazon", "a123")
        result = await service.add_to_cart("amazon", "a123", 2)

        assert result.success
        assert result.cart_count == 1
        assert service.cart("amazon")[0].quantity == 3

    @pytest.mark.asyncio
    async def test_update_and_remove(self, service):
        await service.add_to_cart("amazon", "a123")
        await service.add_to_cart("amazon", "a456")

        updated = await service.update_cart_quantity("amazon", "a123", 5)
        removed = await service.remove_from_cart("amazon", "a456")

        assert updated.success
        assert removed.cart_count == 1
        assert [(i.product_id, i.quantity) for i in service.cart("amazon")] == [("a123", 5)]

    @pytest.mark.asyncio
    async def test_zero_quantity_removes_line(self, service):
        await service.add_to_cart("amazon", "a123")

        result = await service.update_cart_quantity("amazon", "a123", 0)

        assert result.success
        assert service.cart_item_count("amazon") == 0

    @pytest.mark.asyncio
    async def test_errors(self, service):
        assert (await service.add_to_cart("ebay", "x")).error == "Unknown platform"
        assert (await service.remove_from_cart("amazon", "x")).error == "Unknown platform or empty cart"
        await service.add_to_cart("amazon", "a123")
        assert (await service.update_cart_quantity("amazon", "x", 2)).error == "Product not in cart"

    @pytest.mark.asyncio
    async def test_count_across_platforms(self, service):
        await service.add_to_cart("amazon", "a1")
        await service.add_to_cart("amazon", "a2")
        await service.add_to_cart("flipkart", "f1")

        assert service.cart_item_count("flipkart") == 1
        assert service.cart_item_count() == 3


class TestPaymentMethods:
    """Test saved payment methods."""

    @pytest.mark.asyncio
    async def test_add_replaces_same_id(self, service):
        await service.add_payment_method(SavedPaymentMethod("pm1", PaymentMethod.CARD, "Visa"))
        await service.add_payment_method(SavedPaymentMethod("pm2", PaymentMethod.UPI))
        await service.add_payment_method(SavedPaymentMethod("pm1", PaymentMethod.CARD, "Amex"))

        assert [(m.id, m.label) for m in service.saved_payment_methods()] == [
            ("pm1", "Amex"),
            ("pm2", ""),
        ]

    @pytest.mark.asyncio
    async def test_remove(self, service):
        await service.add_payment_method(SavedPaymentMethod("pm1", PaymentMethod.CARD))

        assert await service.remove_payment_method("pm1")
        assert not await service.remove_payment_method("pm1")
        assert service.saved_payment_methods() == []


class TestPersistence:
    """Test the order book, carts and payment methods outliving the service."""

    @pytest.mark.asyncio
    async def test_state_comes_back_after_restore(self, db, clock):
        store = ServiceDocuments(db, "commerce")
        first = MockCommerceService(CommerceConfig(), clock=clock, store=store)
        kept = (await first.order(request())).order_id
        dropped = (await first.order(request())).order_id
        await first.cancel(dropped)
        await first.add_to_cart("flipkart", "f1", 2)
        await first.add_payment_method(SavedPaymentMethod("pm1", PaymentMethod.UPI, "phone"))

        second = MockCommerceService(CommerceConfig(), clock=clock, store=store)
        await second.restore()

        assert (await second.track(kept.lower())).status == "processing"
        assert (await second.track(dropped)).status == "cancelled"
        assert second.cart("flipkart")[0].quantity == 2
        assert second.saved_payment_methods() == [
            SavedPaymentMethod("pm1", PaymentMethod.UPI, "phone")
        ]

    @pytest.mark.asyncio
    async def test_failed_write_leaves_order_book_unchanged(self, clock):
        class BrokenStore:
            async def load(self, key):
                return None

            async def save(self, key, value):
                raise OSError("disk full")

        service = MockCommerceService(CommerceConfig(), clock=clock, store=BrokenStore())

        with pytest.raises(OSError):
            await service.order(request())

        assert service.order_history() == []

    @pytest.mark.asyncio
    async def test_restore_without_store_is_a_no_op(self, service):
        await service.restore()

        assert service.order_history() == []
