"""Local cart mirror kept in step with the remote cart document.

Mutations are applied to the local copy first and then written to the store as a
full item list. A failed (or timed out) write throws the optimistic change away
and re-reads the remote document. Each cart allows one mutation in flight at a
time; a second one is rejected with :class:`CartBusyError` rather than queued.

Two devices editing the same cart are not reconciled: whichever full-list write
lands last wins.
"""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar

from ...config import settings
from ...errors import CartBusyError, CartItemNotFoundError, EmptyCartError, RemoteStoreError
from ...models.domain import Cart, CartLineItem, Coordinate, utc_now
from ...persistence.documents import (
    cart_from_document,
    line_item_to_document,
    timestamp_to_document,
)
from ...persistence.store import ArrayUnion, ChangeCallback, DocumentStore, Subscription, deliver
from ..location import LocationProvider
from ..pricing.fees import DeliveryFeeCalculator, FeeQuote

logger = logging.getLogger(__name__)

T = TypeVar("T")


def make_line_id(product_id: str, now: datetime | None = None, rng: random.Random | None = None) -> str:
    """``<product>_<epoch millis>_<0..9999>`` so the same product can sit on several lines."""

    moment = now or utc_now()
    disambiguator = (rng or random).randrange(10000)
    return f"{product_id}_{int(moment.timestamp() * 1000)}_{disambiguator}"


@dataclass(frozen=True, slots=True)
class CartSummary:
    subtotal: Decimal
    fee: FeeQuote
    total: Decimal


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    value: Any
    cart_cleared: bool


class CartSynchronizer:
    def __init__(
        self,
        store: DocumentStore,
        *,
        collection: str | None = None,
        write_timeout_seconds: float | None = None,
        location_provider: LocationProvider | None = None,
        fee_calculator: DeliveryFeeCalculator | None = None,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.collection = collection or settings.carts_collection
        self.write_timeout_seconds = (
            write_timeout_seconds if write_timeout_seconds is not None else settings.store_write_timeout_seconds
        )
        self.location_provider = location_provider
        self.fee_calculator = fee_calculator or DeliveryFeeCalculator()
        self._clock = clock
        self._rng = rng
        self._carts: dict[str, Cart] = {}
        self._in_flight: set[str] = set()
        self._checkouts: set[str] = set()
        self._subscriptions: list[Subscription] = []

    # -- local mirror -----------------------------------------------------

    def local(self, cart_id: str) -> Optional[Cart]:
        cart = self._carts.get(cart_id)
        return cart.snapshot() if cart is not None else None

    def is_busy(self, cart_id: str) -> bool:
        return cart_id in self._in_flight

    def _accept_snapshot(self, cart_id: str, remote: Cart, deleted: bool) -> bool:
        local = self._carts.get(cart_id)
        if (
            not deleted
            and local is not None
            and local.updated_at is not None
            and remote.updated_at is not None
            and remote.updated_at < local.updated_at
        ):
            logger.debug(f"Ignoring stale snapshot for cart '{cart_id}'")
            return False
        self._carts[cart_id] = remote
        return True

    async def _ensure_local(self, cart_id: str) -> Cart:
        cart = self._carts.get(cart_id)
        if cart is None:
            await self.load(cart_id)
            cart = self._carts[cart_id]
        return cart

    # -- remote access ----------------------------------------------------

    async def _remote(self, operation: Awaitable[T], description: str) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self.write_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise RemoteStoreError(
                f"{description} did not complete within {self.write_timeout_seconds}s"
            ) from exc

    async def _persist_items(self, cart: Cart) -> None:
        patch = {
            "items": [line_item_to_document(item) for item in cart.items],
            "updatedAt": timestamp_to_document(cart.updated_at),
        }
        await self._remote(self.store.update(self.collection, cart.user_id, patch), f"Cart write for '{cart.user_id}'")

    async def _rollback(self, cart_id: str, previous: Cart, error: RemoteStoreError) -> None:
        logger.warning(f"Cart '{cart_id}' write failed, discarding local change: {error}")
        self._carts[cart_id] = previous
        try:
            await self.load(cart_id)
        except RemoteStoreError as exc:
            logger.warning(f"Could not re-read cart '{cart_id}' after failed write: {exc}")

    async def load(self, user_id: str) -> Cart:
        """Fetch the remote cart once; a missing document is an empty cart."""

        document = await self._remote(self.store.get(self.collection, user_id), f"Cart read for '{user_id}'")
        cart = cart_from_document(user_id, document)
        self._carts[user_id] = cart
        return cart.snapshot()

    async def subscribe(self, user_id: str, on_update: ChangeCallback) -> Subscription:
        """Call ``on_update(cart)`` for every remote change, own writes included."""

        async def handle(document: Optional[dict]) -> None:
            cart = cart_from_document(user_id, document)
            if self._accept_snapshot(user_id, cart, deleted=document is None):
                await deliver(on_update, cart.snapshot())

        subscription = await self.store.on_change(self.collection, user_id, handle)
        self._subscriptions.append(subscription)
        return subscription

    async def close(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            await subscription.cancel()

    # -- mutations --------------------------------------------------------

    @asynccontextmanager
    async def mutation(self, cart_id: str) -> AsyncIterator[None]:
        """Hold the cart's in-progress flag for the duration of the block."""

        if cart_id in self._in_flight:
            raise CartBusyError(cart_id)
        self._in_flight.add(cart_id)
        try:
            yield
        finally:
            self._in_flight.discard(cart_id)

    async def add_item(
        self,
        cart_id: str,
        *,
        product_id: str,
        name: str,
        unit_price: Decimal,
        quantity: int = 1,
        image_url: str | None = None,
        category: str | None = None,
    ) -> Optional[CartLineItem]:
        """Append a new line; returns None (and writes nothing) for quantity < 1.

        Adds do not take the mutation guard, but are refused while the cart is
        being checked out.
        """

        if quantity < 1:
            logger.debug(f"Ignoring add to cart '{cart_id}' with quantity {quantity}")
            return None
        if cart_id in self._checkouts:
            raise CartBusyError(cart_id)
        cart = await self._ensure_local(cart_id)
        now = self._clock()
        line_id = make_line_id(product_id, now, self._rng)
        while cart.find(line_id) is not None:
            line_id = make_line_id(product_id, now, self._rng)
        item = CartLineItem(
            id=line_id,
            product_id=product_id,
            name=name,
            unit_price=Decimal(str(unit_price)),
            quantity=quantity,
            image_url=image_url,
            category=category,
            added_at=now,
        )

        previous = cart.snapshot()
        cart.items.append(item)
        cart.updated_at = now
        try:
            existing = await self._remote(self.store.get(self.collection, cart_id), f"Cart read for '{cart_id}'")
            if existing is not None:
                patch = {
                    "items": ArrayUnion((line_item_to_document(item),)),
                    "updatedAt": timestamp_to_document(now),
                }
                await self._remote(self.store.update(self.collection, cart_id, patch), f"Cart write for '{cart_id}'")
            else:
                cart.created_at = now
                document = {
                    "userId": cart_id,
                    "items": [line_item_to_document(item)],
                    "createdAt": timestamp_to_document(now),
                    "updatedAt": timestamp_to_document(now),
                }
                await self._remote(self.store.set(self.collection, cart_id, document), f"Cart write for '{cart_id}'")
        except RemoteStoreError as exc:
            await self._rollback(cart_id, previous, exc)
            raise
        logger.info(f"Added product '{product_id}' to cart '{cart_id}' as line '{line_id}'")
        return item

    async def set_quantity(self, cart_id: str, line_id: str, new_quantity: int) -> Cart:
        if new_quantity < 1:
            # removal is remove_item's job
            logger.debug(f"Ignoring quantity {new_quantity} for line '{line_id}' in cart '{cart_id}'")
            return (await self._ensure_local(cart_id)).snapshot()

        async with self.mutation(cart_id):
            cart = await self._ensure_local(cart_id)
            item = cart.find(line_id)
            if item is None:
                raise CartItemNotFoundError(cart_id, line_id)
            if item.quantity == new_quantity:
                return cart.snapshot()

            previous = cart.snapshot()
            item.quantity = new_quantity
            cart.updated_at = self._clock()
            try:
                await self._persist_items(cart)
            except RemoteStoreError as exc:
                await self._rollback(cart_id, previous, exc)
                raise
            return cart.snapshot()

    async def remove_item(self, cart_id: str, line_id: str) -> Cart:
        """Drop a line; removing the last one deletes the remote document."""

        async with self.mutation(cart_id):
            cart = await self._ensure_local(cart_id)
            item = cart.find(line_id)
            if item is None:
                raise CartItemNotFoundError(cart_id, line_id)

            previous = cart.snapshot()
            cart.items.remove(item)
            cart.updated_at = self._clock()
            try:
                if cart.is_empty:
                    await self._remote(self.store.delete(self.collection, cart_id), f"Cart delete for '{cart_id}'")
                    self._carts[cart_id] = Cart(user_id=cart_id)
                    logger.info(f"Cart '{cart_id}' emptied and deleted")
                else:
                    await self._persist_items(cart)
            except RemoteStoreError as exc:
                await self._rollback(cart_id, previous, exc)
                raise
            return self._carts[cart_id].snapshot()

    async def checkout(self, cart_id: str, place_order: Callable[[Cart], Awaitable[T]]) -> CheckoutResult:
        """Turn the authoritative cart into an order and delete the cart document.

        ``place_order`` receives a snapshot of the freshly read cart and is bounded
        by the write timeout. If it raises (or times out), the cart is untouched.
        Only the lines that went into the order are cleared; lines that reached
        the remote cart in the meantime stay in it. If the order is placed but
        the cart cannot be cleared, the order stands and ``cart_cleared`` is False.
        """

        async with self.mutation(cart_id):
            self._checkouts.add(cart_id)
            try:
                cart = cart_from_document(cart_id, await self._remote(
                    self.store.get(self.collection, cart_id), f"Cart read for '{cart_id}'"
                ))
                self._carts[cart_id] = cart
                if cart.is_empty:
                    raise EmptyCartError(f"Cart '{cart_id}' is empty.")

                value = await self._remote(place_order(cart.snapshot()), f"Order placement for '{cart_id}'")

                try:
                    await self._clear_lines(cart_id, {item.id for item in cart.items})
                except RemoteStoreError as exc:
                    logger.error(f"Order placed but cart '{cart_id}' could not be cleared: {exc}")
                    return CheckoutResult(value=value, cart_cleared=False)
                return CheckoutResult(value=value, cart_cleared=True)
            finally:
                self._checkouts.discard(cart_id)

    async def _clear_lines(self, cart_id: str, line_ids: set[str]) -> None:
        remote = cart_from_document(cart_id, await self._remote(
            self.store.get(self.collection, cart_id), f"Cart read for '{cart_id}'"
        ))
        remaining = [item for item in remote.items if item.id not in line_ids]
        if not remaining:
            await self._remote(self.store.delete(self.collection, cart_id), f"Cart delete for '{cart_id}'")
            self._carts[cart_id] = Cart(user_id=cart_id)
            return

        logger.info(f"Cart '{cart_id}' keeps {len(remaining)} line(s) added during checkout")
        remote.items = remaining
        remote.updated_at = self._clock()
        await self._persist_items(remote)
        self._carts[cart_id] = remote

    # -- pricing ----------------------------------------------------------

    async def summary(self, cart_id: str, dropoff: Coordinate) -> CartSummary:
        """Subtotal, delivery fee quote and total for the cart as currently mirrored."""

        cart = await self._ensure_local(cart_id)
        pickup = None
        if self.location_provider is not None:
            pickup = await self.location_provider.current_location()
        origin = pickup.position if pickup is not None else Coordinate.unresolved()
        quote = self.fee_calculator.quote(origin, dropoff)
        subtotal = cart.subtotal
        return CartSummary(subtotal=subtotal, fee=quote, total=subtotal + quote.amount)
