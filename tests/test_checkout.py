import asyncio
import math
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.deliverycore.errors import CartBusyError, EmptyCartError, RemoteStoreError
from src.deliverycore.models.domain import Coordinate, CustomerInfo, OrderStatus, PaymentMethod, PickupLocation
from src.deliverycore.persistence.store import InMemoryDocumentStore
from src.deliverycore.services.cart.synchronizer import CartSynchronizer
from src.deliverycore.services.location import StaticLocationProvider
from src.deliverycore.services.orders.checkout import CheckoutService
from src.deliverycore.services.orders.lifecycle import OrderLifecycle
from src.deliverycore.services.pricing.fees import DeliveryFeeCalculator

FIXED_NOW = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
KM_PER_DEGREE = 6371.0 * math.pi / 180

STORE = PickupLocation("Duka HQ, Moi Avenue", Coordinate(-1.2864, 36.8172))
HALF_KM_NORTH = Coordinate(-1.2864 + 0.5 / KM_PER_DEGREE, 36.8172)


class UndeletableStore(InMemoryDocumentStore):
    async def delete(self, collection, doc_id):
        raise RemoteStoreError("delete rejected")


def _customer(position=HALF_KM_NORTH):
    return CustomerInfo(name="Wanjiku", address="Parliament Rd", phone="+254700000001", position=position)


def _service(store, pickup=STORE, write_timeout_seconds=None):
    fees = DeliveryFeeCalculator(rate_per_km=Decimal("100"))
    location = StaticLocationProvider(pickup)
    carts = CartSynchronizer(
        store,
        collection="carts",
        write_timeout_seconds=write_timeout_seconds,
        location_provider=location,
        fee_calculator=fees,
    )
    orders = OrderLifecycle(store, collection="orders", clock=lambda: FIXED_NOW)
    return CheckoutService(carts, orders, location_provider=location, fee_calculator=fees, clock=lambda: FIXED_NOW)


async def _fill_cart(service, user_id="user-1"):
    await service.carts.add_item(user_id, product_id="sugar", name="Sugar 1kg", unit_price=Decimal("10.00"), quantity=2)


def test_checkout_creates_pending_order_with_distance_fee():
    store = InMemoryDocumentStore()
    service = _service(store)

    async def scenario():
        await _fill_cart(service)
        return await service.place_order("user-1", _customer(), payment_method=PaymentMethod.MPESA)

    placed = asyncio.run(scenario())

    assert placed.cart_cleared is True
    assert placed.fee.determinable
    assert placed.order.status is OrderStatus.PENDING
    assert placed.order.subtotal == Decimal("20.00")
    assert placed.order.delivery_fee == Decimal("50.00")
    assert placed.order.total == Decimal("70.00")
    assert placed.order.payment_method is PaymentMethod.MPESA
    assert placed.order.store_location == STORE


def test_checkout_deletes_cart_and_persists_string_money():
    store = InMemoryDocumentStore()
    service = _service(store)

    async def scenario():
        await _fill_cart(service)
        placed = await service.place_order("user-1", _customer())
        return placed, await store.get("carts", "user-1"), await store.get("orders", placed.order.id)

    placed, cart_document, order_document = asyncio.run(scenario())

    assert cart_document is None
    assert service.carts.local("user-1").items == []
    assert order_document["deliveryFee"] == "50.00"
    assert order_document["total"] == "70.00"
    assert order_document["feeDeterminable"] is True
    assert order_document["items"][0]["price"] == "10.00"


def test_checkout_of_empty_cart_creates_nothing():
    store = InMemoryDocumentStore()
    service = _service(store)

    with pytest.raises(EmptyCartError):
        asyncio.run(service.place_order("user-1", _customer()))

    assert asyncio.run(store.query("orders")) == []


def test_unresolved_customer_position_gives_undeterminable_fee():
    store = InMemoryDocumentStore()
    service = _service(store)

    async def scenario():
        await _fill_cart(service)
        return await service.place_order("user-1", _customer(position=Coordinate.unresolved()))

    placed = asyncio.run(scenario())

    assert placed.fee.determinable is False
    assert placed.order.fee_determinable is False
    assert placed.order.delivery_fee == Decimal("0")
    assert placed.order.total == Decimal("20.00")


def test_missing_store_location_gives_undeterminable_fee():
    store = InMemoryDocumentStore()
    service = _service(store, pickup=None)

    async def scenario():
        await _fill_cart(service)
        return await service.place_order("user-1", _customer())

    placed = asyncio.run(scenario())

    assert placed.order.fee_determinable is False
    assert placed.order.store_location is None


def test_order_stands_when_cart_delete_fails():
    store = UndeletableStore()
    service = _service(store)

    async def scenario():
        await _fill_cart(service)
        placed = await service.place_order("user-1", _customer())
        return placed, await service.orders.get(placed.order.id), await store.get("carts", "user-1")

    placed, stored_order, cart_document = asyncio.run(scenario())

    assert placed.cart_cleared is False
    assert stored_order.status is OrderStatus.PENDING
    assert cart_document is not None
    assert not service.carts.is_busy("user-1")


class HangingOrderStore(InMemoryDocumentStore):
    async def add(self, collection, data):
        if collection == "orders":
            await asyncio.Event().wait()
        return await super().add(collection, data)


def test_hung_order_write_times_out_and_releases_cart():
    store = HangingOrderStore()
    service = _service(store, write_timeout_seconds=0.05)

    async def scenario():
        await _fill_cart(service)
        with pytest.raises(RemoteStoreError):
            await service.place_order("user-1", _customer())
        busy = service.carts.is_busy("user-1")
        line_id = service.carts.local("user-1").items[0].id
        cart = await service.carts.set_quantity("user-1", line_id, 5)
        return busy, cart, await store.get("carts", "user-1")

    busy, cart, cart_document = asyncio.run(scenario())

    assert busy is False
    assert cart.items[0].quantity == 5
    assert cart_document["items"][0]["quantity"] == 5
    assert asyncio.run(store.query("orders")) == []


def test_add_during_checkout_is_refused():
    store = InMemoryDocumentStore()
    service = _service(store)
    attempts = []

    async def scenario():
        await _fill_cart(service)

        async def place(cart):
            try:
                await service.carts.add_item("user-1", product_id="bread", name="Bread", unit_price=Decimal("55"))
            except CartBusyError as exc:
                attempts.append(exc)
            return [item.product_id for item in cart.items]

        result = await service.carts.checkout("user-1", place)
        return result, await store.get("carts", "user-1")

    result, cart_document = asyncio.run(scenario())

    assert len(attempts) == 1
    assert result.value == ["sugar"]
    assert result.cart_cleared is True
    assert cart_document is None


def test_line_added_elsewhere_during_checkout_stays_in_cart():
    store = InMemoryDocumentStore()
    service = _service(store)
    other_device = CartSynchronizer(store, collection="carts")

    async def scenario():
        await _fill_cart(service)

        async def place(cart):
            await other_device.add_item("user-1", product_id="bread", name="Bread", unit_price=Decimal("55"))
            return [item.product_id for item in cart.items]

        result = await service.carts.checkout("user-1", place)
        return result, await store.get("carts", "user-1")

    result, cart_document = asyncio.run(scenario())

    assert result.value == ["sugar"]
    assert result.cart_cleared is True
    assert [item["productId"] for item in cart_document["items"]] == ["bread"]
    assert [item.product_id for item in service.carts.local("user-1").items] == ["bread"]
