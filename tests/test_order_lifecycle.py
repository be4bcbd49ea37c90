import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.deliverycore.errors import InvalidTransitionError, OrderNotFoundError
from src.deliverycore.models.domain import (
    CartLineItem,
    Coordinate,
    CustomerInfo,
    DeliveryAssignment,
    OrderStatus,
    PickupLocation,
)
from src.deliverycore.persistence.store import InMemoryDocumentStore
from src.deliverycore.services.orders.lifecycle import (
    ALLOWED_TRANSITIONS,
    OrderLifecycle,
    build_order,
    can_transition,
)

FIXED_NOW = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)

CUSTOMER = CustomerInfo(
    name="Wanjiku",
    address="Westlands, Nairobi",
    phone="+254700000001",
    position=Coordinate(-1.2676, 36.8108),
)


def _items():
    return [
        CartLineItem(
            id="milk_1_1",
            product_id="milk",
            name="Fresh Milk 500ml",
            unit_price=Decimal("10.00"),
            quantity=2,
            added_at=FIXED_NOW,
        )
    ]


def _order(created_at=FIXED_NOW, user_id="user-1"):
    return build_order(
        user_id=user_id,
        items=_items(),
        delivery_fee=Decimal("50.00"),
        customer_info=CUSTOMER,
        created_at=created_at,
        delivery_note="  gate B  ",
    )


def _lifecycle(store):
    return OrderLifecycle(store, collection="orders", clock=lambda: FIXED_NOW + timedelta(hours=1))


def test_build_order_totals():
    order = _order()

    assert order.status is OrderStatus.PENDING
    assert order.subtotal == Decimal("20.00")
    assert order.delivery_fee == Decimal("50.00")
    assert order.total == Decimal("70.00")
    assert order.delivery_note == "gate B"


def test_build_order_copies_cart_lines():
    items = _items()
    order = build_order(
        user_id="user-1",
        items=items,
        delivery_fee=Decimal("0"),
        customer_info=CUSTOMER,
        created_at=FIXED_NOW,
    )

    items[0].quantity = 9

    assert order.items[0].quantity == 2


def test_create_and_get_round_trip():
    store = InMemoryDocumentStore()
    orders = _lifecycle(store)

    async def scenario():
        created = await orders.create(_order())
        return created, await orders.get(created.id)

    created, fetched = asyncio.run(scenario())

    assert created.id
    assert fetched.id == created.id
    assert fetched.status is OrderStatus.PENDING
    assert fetched.total == Decimal("70.00")
    assert fetched.items[0].product_id == "milk"
    assert fetched.customer_info.position == CUSTOMER.position


def test_persisted_money_is_stored_as_strings():
    store = InMemoryDocumentStore()
    orders = _lifecycle(store)

    async def scenario():
        created = await orders.create(_order())
        return await store.get("orders", created.id)

    document = asyncio.run(scenario())

    assert document["status"] == "pending"
    assert document["subtotal"] == "20.00"
    assert document["deliveryFee"] == "50.00"
    assert document["total"] == "70.00"


def test_get_unknown_order():
    orders = _lifecycle(InMemoryDocumentStore())

    with pytest.raises(OrderNotFoundError):
        asyncio.run(orders.get("missing"))


def test_create_rejects_non_pending_order():
    from dataclasses import replace

    orders = _lifecycle(InMemoryDocumentStore())

    with pytest.raises(ValueError):
        asyncio.run(orders.create(replace(_order(), status=OrderStatus.PROCESSING)))


@pytest.mark.parametrize(
    "current, requested, allowed",
    [
        (OrderStatus.PENDING, OrderStatus.PROCESSING, True),
        (OrderStatus.PENDING, OrderStatus.CANCELLED, True),
        (OrderStatus.PENDING, OrderStatus.DELIVERED, False),
        (OrderStatus.PROCESSING, OrderStatus.DELIVERED, True),
        (OrderStatus.PROCESSING, OrderStatus.CANCELLED, True),
        (OrderStatus.PROCESSING, OrderStatus.PENDING, False),
        (OrderStatus.DELIVERED, OrderStatus.CANCELLED, False),
        (OrderStatus.CANCELLED, OrderStatus.PENDING, False),
        (OrderStatus.PENDING, OrderStatus.PENDING, False),
    ],
)
def test_transition_table(current, requested, allowed):
    assert can_transition(current, requested) is allowed


def test_terminal_states_have_no_exits():
    for status in OrderStatus:
        assert (not ALLOWED_TRANSITIONS[status]) == status.is_terminal


def test_full_lifecycle_keeps_financials():
    store = InMemoryDocumentStore()
    orders = _lifecycle(store)

    async def scenario():
        created = await orders.create(_order())
        await orders.start_processing(created.id)
        delivered = await orders.mark_delivered(created.id)
        return delivered, await orders.get(created.id)

    delivered, fetched = asyncio.run(scenario())

    assert delivered.status is OrderStatus.DELIVERED
    assert fetched.status is OrderStatus.DELIVERED
    assert fetched.total == Decimal("70.00")
    assert fetched.delivery_fee == Decimal("50.00")
    assert fetched.updated_at == FIXED_NOW + timedelta(hours=1)


def test_invalid_transition_writes_nothing():
    store = InMemoryDocumentStore()
    orders = _lifecycle(store)

    async def scenario():
        created = await orders.create(_order())
        await orders.cancel(created.id)
        writes_before = store.write_count
        with pytest.raises(InvalidTransitionError) as excinfo:
            await orders.start_processing(created.id)
        return created, writes_before, excinfo.value

    created, writes_before, error = asyncio.run(scenario())

    assert store.write_count == writes_before
    assert error.current == "cancelled"
    assert error.requested == "processing"


def test_start_processing_records_assignment():
    store = InMemoryDocumentStore()
    orders = _lifecycle(store)
    assignment = DeliveryAssignment(
        driver_id="agent-7",
        driver_name="Otieno",
        assigned_at=FIXED_NOW,
        pickup_location="Duka HQ",
        delivery_location="Westlands, Nairobi",
    )

    async def scenario():
        created = await orders.create(_order())
        moved = await orders.start_processing(created.id, assignment)
        return moved, await store.get("orders", created.id), await orders.get(created.id)

    moved, document, fetched = asyncio.run(scenario())

    assert moved.assignment == assignment
    assert document["deliveryPersonnelId"] == "agent-7"
    assert document["deliveryAssignment"]["driverName"] == "Otieno"
    assert fetched.assignment == assignment


def test_list_for_customer_newest_first():
    store = InMemoryDocumentStore()
    orders = _lifecycle(store)

    async def scenario():
        older = await orders.create(_order(created_at=FIXED_NOW))
        newer = await orders.create(_order(created_at=FIXED_NOW + timedelta(minutes=10)))
        await orders.create(_order(user_id="someone-else"))
        return older, newer, await orders.list_for_customer("user-1")

    older, newer, listed = asyncio.run(scenario())

    assert [order.id for order in listed] == [newer.id, older.id]


def test_list_by_status_and_active():
    store = InMemoryDocumentStore()
    orders = _lifecycle(store)

    async def scenario():
        pending = await orders.create(_order())
        processing = await orders.create(_order(created_at=FIXED_NOW + timedelta(minutes=1)))
        done = await orders.create(_order(created_at=FIXED_NOW + timedelta(minutes=2)))
        await orders.start_processing(processing.id)
        await orders.cancel(done.id)
        return (
            pending,
            processing,
            await orders.list_by_status(OrderStatus.PROCESSING),
            await orders.list_active(),
        )

    pending, processing, by_status, active = asyncio.run(scenario())

    assert [order.id for order in by_status] == [processing.id]
    assert {order.id for order in active} == {pending.id, processing.id}


def test_count_processing_by_agent():
    store = InMemoryDocumentStore()
    orders = _lifecycle(store)
    assignment = DeliveryAssignment("agent-1", "Achieng", FIXED_NOW, "HQ", "Kilimani")

    async def scenario():
        for _ in range(2):
            created = await orders.create(_order())
            await orders.start_processing(created.id, assignment)
        await orders.create(_order())
        return await orders.count_processing_by_agent()

    assert asyncio.run(scenario()) == {"agent-1": 2}


def test_stamp_store_location_only_touches_active_orders():
    store = InMemoryDocumentStore()
    orders = _lifecycle(store)
    location = PickupLocation("Duka HQ, Moi Avenue", Coordinate(-1.2864, 36.8172))

    async def scenario():
        active = await orders.create(_order())
        closed = await orders.create(_order())
        await orders.cancel(closed.id)
        count = await orders.stamp_store_location(location)
        return count, await orders.get(active.id), await orders.get(closed.id)

    count, active, closed = asyncio.run(scenario())

    assert count == 1
    assert active.store_location == location
    assert closed.store_location is None


def test_subscribe_delivers_status_changes():
    store = InMemoryDocumentStore()
    orders = _lifecycle(store)
    seen = []

    async def scenario():
        created = await orders.create(_order())
        subscription = await orders.subscribe(created.id, seen.append)
        await orders.start_processing(created.id)
        await subscription.cancel()
        await orders.mark_delivered(created.id)

    asyncio.run(scenario())

    assert [order.status for order in seen] == [OrderStatus.PENDING, OrderStatus.PROCESSING]


def test_subscribe_to_missing_order_delivers_none():
    seen = []
    orders = _lifecycle(InMemoryDocumentStore())

    asyncio.run(orders.subscribe("missing", seen.append))

    assert seen == [None]
