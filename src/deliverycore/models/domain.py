"""Domain models for carts, orders, pickup points and delivery agents."""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A latitude/longitude pair with an explicit resolution flag.

    ``resolved=False`` marks a location nobody has supplied yet. Distance and fee
    code must check :attr:`is_usable` instead of comparing against ``(0, 0)``.
    """

    latitude: float
    longitude: float
    resolved: bool = True

    @classmethod
    def unresolved(cls) -> "Coordinate":
        return cls(0.0, 0.0, resolved=False)

    @property
    def is_usable(self) -> bool:
        return self.resolved and math.isfinite(self.latitude) and math.isfinite(self.longitude)


@dataclass(frozen=True, slots=True)
class PickupLocation:
    """Point a delivery is dispatched from."""

    address: str
    position: Coordinate


@dataclass(slots=True)
class DeliveryAgent:
    """A delivery agent as stored in the agent pool."""

    agent_id: str
    name: str
    position: Coordinate
    max_concurrent_orders: int = 0
    phone: Optional[str] = None
    available: bool = True


@dataclass(slots=True)
class CartLineItem:
    id: str
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    image_url: Optional[str] = None
    category: Optional[str] = None
    added_at: datetime = field(default_factory=utc_now)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(slots=True)
class Cart:
    """Per-user cart. ``user_id`` doubles as the cart id."""

    user_id: str
    items: list[CartLineItem] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def subtotal(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))

    def find(self, line_id: str) -> Optional[CartLineItem]:
        for item in self.items:
            if item.id == line_id:
                return item
        return None

    def snapshot(self) -> "Cart":
        return copy.deepcopy(self)


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


class PaymentMethod(str, Enum):
    CASH = "cash"
    MPESA = "mpesa"
    CARD = "card"


@dataclass(frozen=True, slots=True)
class CustomerInfo:
    name: str
    address: str
    phone: str
    position: Coordinate
    email: Optional[str] = None


@dataclass(frozen=True, slots=True)
class DeliveryAssignment:
    driver_id: str
    driver_name: str
    assigned_at: datetime
    pickup_location: str
    delivery_location: str


@dataclass(frozen=True, slots=True)
class Order:
    """An order snapshot. Status changes produce a new instance via OrderLifecycle."""

    id: str
    user_id: str
    items: tuple[CartLineItem, ...]
    status: OrderStatus
    subtotal: Decimal
    delivery_fee: Decimal
    total: Decimal
    customer_info: CustomerInfo
    created_at: datetime
    payment_method: PaymentMethod = PaymentMethod.CASH
    delivery_note: str = ""
    fee_determinable: bool = True
    updated_at: Optional[datetime] = None
    assignment: Optional[DeliveryAssignment] = None
    store_location: Optional[PickupLocation] = None
