"""Order creation and status transitions."""

from __future__ import annotations

import copy
import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional

from ...config import settings
from ...errors import InvalidTransitionError, OrderNotFoundError, RemoteStoreError
from ...models.domain import (
    CartLineItem,
    CustomerInfo,
    DeliveryAssignment,
    Order,
    OrderStatus,
    PaymentMethod,
    PickupLocation,
    utc_now,
)
from ...persistence.documents import (
    assignment_to_document,
    order_from_document,
    order_to_document,
    pickup_to_document,
    timestamp_to_document,
)
from ...persistence.store import ChangeCallback, DocumentStore, Subscription, deliver

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

ACTIVE_STATUSES = (OrderStatus.PENDING.value, OrderStatus.PROCESSING.value)


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


def build_order(
    *,
    user_id: str,
    items: Iterable[CartLineItem],
    delivery_fee: Decimal,
    customer_info: CustomerInfo,
    created_at: datetime,
    payment_method: PaymentMethod = PaymentMethod.CASH,
    delivery_note: str = "",
    fee_determinable: bool = True,
    store_location: Optional[PickupLocation] = None,
) -> Order:
    """Build a pending order from copies of the given cart lines."""

    snapshot = tuple(copy.deepcopy(item) for item in items)
    subtotal = sum((item.line_total for item in snapshot), Decimal("0"))
    return Order(
        id="",
        user_id=user_id,
        items=snapshot,
        status=OrderStatus.PENDING,
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        total=subtotal + delivery_fee,
        customer_info=customer_info,
        created_at=created_at,
        payment_method=payment_method,
        delivery_note=delivery_note.strip(),
        fee_determinable=fee_determinable,
        updated_at=created_at,
        store_location=store_location,
    )


class OrderLifecycle:
    """Persists orders and moves them through pending -> processing -> delivered/cancelled.

    Concurrent status writes from two operators are last-write-wins at the store.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        collection: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.collection = collection or settings.orders_collection
        self._clock = clock

    async def create(self, order: Order) -> Order:
        if order.status is not OrderStatus.PENDING:
            raise ValueError("New orders must start as pending.")
        order_id = await self.store.add(self.collection, order_to_document(order))
        logger.info(f"Created order '{order_id}' for user '{order.user_id}' (total {order.total})")
        return replace(order, id=order_id)

    async def get(self, order_id: str) -> Order:
        document = await self.store.get(self.collection, order_id)
        if document is None:
            raise OrderNotFoundError(order_id)
        return order_from_document(order_id, document)

    async def list_for_customer(self, user_id: str) -> list[Order]:
        rows = await self.store.query(
            self.collection, {"userId": user_id}, order_by="createdAt", descending=True
        )
        return [order_from_document(order_id, data) for order_id, data in rows]

    async def list_by_status(self, status: OrderStatus) -> list[Order]:
        rows = await self.store.query(
            self.collection, {"status": status.value}, order_by="createdAt", descending=True
        )
        return [order_from_document(order_id, data) for order_id, data in rows]

    async def list_active(self) -> list[Order]:
        rows = await self.store.query(self.collection, {"status": ACTIVE_STATUSES}, order_by="createdAt")
        return [order_from_document(order_id, data) for order_id, data in rows]

    async def transition(
        self,
        order_id: str,
        requested: OrderStatus,
        *,
        assignment: Optional[DeliveryAssignment] = None,
    ) -> Order:
        """Move an order to ``requested``; invalid moves raise before anything is written.

        Only status, timestamps and the optional assignment are written; the
        financial fields are never part of the patch.
        """

        order = await self.get(order_id)
        if not can_transition(order.status, requested):
            raise InvalidTransitionError(order_id, order.status.value, requested.value)

        now = self._clock()
        patch: dict = {"status": requested.value, "updatedAt": timestamp_to_document(now)}
        if assignment is not None:
            patch["deliveryPersonnelId"] = assignment.driver_id
            patch["assignedAt"] = timestamp_to_document(assignment.assigned_at)
            patch["deliveryAssignment"] = assignment_to_document(assignment)
        await self.store.update(self.collection, order_id, patch)
        logger.info(f"Order '{order_id}' moved from {order.status.value} to {requested.value}")
        return replace(
            order,
            status=requested,
            updated_at=now,
            assignment=assignment if assignment is not None else order.assignment,
        )

    async def start_processing(self, order_id: str, assignment: Optional[DeliveryAssignment] = None) -> Order:
        return await self.transition(order_id, OrderStatus.PROCESSING, assignment=assignment)

    async def mark_delivered(self, order_id: str) -> Order:
        return await self.transition(order_id, OrderStatus.DELIVERED)

    async def cancel(self, order_id: str) -> Order:
        return await self.transition(order_id, OrderStatus.CANCELLED)

    async def subscribe(self, order_id: str, on_update: ChangeCallback) -> Subscription:
        """Call ``on_update(order)`` on every change; ``None`` if the document disappears."""

        async def handle(document: Optional[dict]) -> None:
            order = order_from_document(order_id, document) if document is not None else None
            await deliver(on_update, order)

        return await self.store.on_change(self.collection, order_id, handle)

    async def count_processing_by_agent(self) -> dict[str, int]:
        rows = await self.store.query(self.collection, {"status": OrderStatus.PROCESSING.value})
        counts: dict[str, int] = {}
        for _, data in rows:
            agent_id = data.get("deliveryPersonnelId")
            if agent_id:
                counts[agent_id] = counts.get(agent_id, 0) + 1
        return counts

    async def stamp_store_location(self, location: PickupLocation) -> int:
        """Copy a new store location onto every active order.

        Best effort: failures are logged and skipped. Returns the number updated.
        """

        try:
            rows = await self.store.query(self.collection, {"status": ACTIVE_STATUSES})
        except RemoteStoreError as exc:
            logger.error(f"Error updating orders with store location: {exc}")
            return 0

        updated = 0
        patch = {
            "storeLocation": pickup_to_document(location),
            "updatedAt": timestamp_to_document(self._clock()),
        }
        for order_id, _ in rows:
            try:
                await self.store.update(self.collection, order_id, patch)
                updated += 1
            except RemoteStoreError as exc:
                logger.warning(f"Failed to stamp store location on order '{order_id}': {exc}")
        logger.info(f"Updated {updated} orders with new store location")
        return updated
