"""Cart to order conversion."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from ...models.domain import Cart, Coordinate, CustomerInfo, Order, PaymentMethod, utc_now
from ..cart.synchronizer import CartSynchronizer
from ..location import LocationProvider
from ..pricing.fees import DeliveryFeeCalculator, FeeQuote
from .lifecycle import OrderLifecycle, build_order

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PlacedOrder:
    order: Order
    fee: FeeQuote
    cart_cleared: bool


class CheckoutService:
    def __init__(
        self,
        carts: CartSynchronizer,
        orders: OrderLifecycle,
        *,
        location_provider: LocationProvider,
        fee_calculator: DeliveryFeeCalculator | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.carts = carts
        self.orders = orders
        self.location_provider = location_provider
        self.fee_calculator = fee_calculator or carts.fee_calculator
        self._clock = clock

    async def place_order(
        self,
        user_id: str,
        customer: CustomerInfo,
        *,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        delivery_note: str = "",
    ) -> PlacedOrder:
        """Create a pending order from the user's cart, then delete the cart.

        The fee runs from the store pickup point to the customer's position. When
        either side is unresolved the order carries a zero fee flagged as not
        determinable.
        """

        pickup = await self.location_provider.current_location()
        origin = pickup.position if pickup is not None else Coordinate.unresolved()
        quote = self.fee_calculator.quote(origin, customer.position)

        async def create(cart: Cart) -> Order:
            order = build_order(
                user_id=user_id,
                items=cart.items,
                delivery_fee=quote.amount,
                customer_info=customer,
                created_at=self._clock(),
                payment_method=payment_method,
                delivery_note=delivery_note,
                fee_determinable=quote.determinable,
                store_location=pickup,
            )
            return await self.orders.create(order)

        result = await self.carts.checkout(user_id, create)
        order: Order = result.value
        if not quote.determinable:
            logger.warning(f"Order '{order.id}' placed without a determinable delivery fee")
        return PlacedOrder(order=order, fee=quote, cart_cleared=result.cart_cleared)
