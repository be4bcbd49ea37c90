"""Order request/response schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import CustomerInfo, DeliveryAssignment, Order, OrderStatus, PaymentMethod
from .carts import CartItemModel
from .common import PickupLocationModel, PositionModel, position_to_domain


class CustomerInfoModel(BaseModel):
    name: str
    address: str
    phone: str
    email: Optional[str] = None
    position: Optional[PositionModel] = Field(
        default=None, description="Drop-off coordinates; omit if the address is not geocoded."
    )

    def to_domain(self) -> CustomerInfo:
        return CustomerInfo(
            name=self.name,
            address=self.address,
            phone=self.phone,
            email=self.email,
            position=position_to_domain(self.position),
        )

    @classmethod
    def from_domain(cls, info: CustomerInfo) -> "CustomerInfoModel":
        return cls(
            name=info.name,
            address=info.address,
            phone=info.phone,
            email=info.email,
            position=PositionModel.from_domain(info.position),
        )


class DeliveryAssignmentModel(BaseModel):
    driver_id: str
    driver_name: str
    assigned_at: datetime
    pickup_location: str
    delivery_location: str

    @classmethod
    def from_domain(cls, assignment: DeliveryAssignment) -> "DeliveryAssignmentModel":
        return cls(
            driver_id=assignment.driver_id,
            driver_name=assignment.driver_name,
            assigned_at=assignment.assigned_at,
            pickup_location=assignment.pickup_location,
            delivery_location=assignment.delivery_location,
        )


class OrderModel(BaseModel):
    id: str
    user_id: str
    status: OrderStatus
    items: List[CartItemModel]
    subtotal: Decimal
    delivery_fee: Decimal
    total: Decimal
    fee_determinable: bool
    payment_method: PaymentMethod
    delivery_note: str
    customer_info: CustomerInfoModel
    created_at: datetime
    updated_at: Optional[datetime] = None
    assignment: Optional[DeliveryAssignmentModel] = None
    store_location: Optional[PickupLocationModel] = None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderModel":
        return cls(
            id=order.id,
            user_id=order.user_id,
            status=order.status,
            items=[CartItemModel.from_domain(item) for item in order.items],
            subtotal=order.subtotal,
            delivery_fee=order.delivery_fee,
            total=order.total,
            fee_determinable=order.fee_determinable,
            payment_method=order.payment_method,
            delivery_note=order.delivery_note,
            customer_info=CustomerInfoModel.from_domain(order.customer_info),
            created_at=order.created_at,
            updated_at=order.updated_at,
            assignment=DeliveryAssignmentModel.from_domain(order.assignment) if order.assignment else None,
            store_location=PickupLocationModel.from_domain(order.store_location) if order.store_location else None,
        )


class CheckoutRequest(BaseModel):
    customer: CustomerInfoModel
    payment_method: PaymentMethod = PaymentMethod.CASH
    delivery_note: str = ""


class CheckoutResponse(BaseModel):
    order: OrderModel
    cart_cleared: bool
    distance_km: Optional[float] = None


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
