"""Cart request/response schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import Cart, CartLineItem
from ..services.cart.synchronizer import CartSummary


class CartItemModel(BaseModel):
    id: str
    product_id: str
    name: str
    price: Decimal
    quantity: int
    image_url: Optional[str] = None
    category: Optional[str] = None
    added_at: datetime

    @classmethod
    def from_domain(cls, item: CartLineItem) -> "CartItemModel":
        return cls(
            id=item.id,
            product_id=item.product_id,
            name=item.name,
            price=item.unit_price,
            quantity=item.quantity,
            image_url=item.image_url,
            category=item.category,
            added_at=item.added_at,
        )


class CartModel(BaseModel):
    user_id: str
    items: List[CartItemModel]
    subtotal: Decimal
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, cart: Cart) -> "CartModel":
        return cls(
            user_id=cart.user_id,
            items=[CartItemModel.from_domain(item) for item in cart.items],
            subtotal=cart.subtotal,
            updated_at=cart.updated_at,
        )


class AddCartItemRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    name: str
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(default=1, description="Values below 1 are ignored.")
    image_url: Optional[str] = None
    category: Optional[str] = None


class SetQuantityRequest(BaseModel):
    quantity: int = Field(..., description="Values below 1 are ignored; use DELETE to remove a line.")


class CartSummaryModel(BaseModel):
    subtotal: Decimal
    delivery_fee: Decimal
    fee_determinable: bool
    distance_km: Optional[float] = None
    total: Decimal
    currency: str

    @classmethod
    def from_domain(cls, summary: CartSummary) -> "CartSummaryModel":
        return cls(
            subtotal=summary.subtotal,
            delivery_fee=summary.fee.amount,
            fee_determinable=summary.fee.determinable,
            distance_km=summary.fee.distance_km,
            total=summary.total,
            currency=summary.fee.currency,
        )
