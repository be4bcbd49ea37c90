"""Order endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...errors import DeliveryCoreError
from ...models.domain import OrderStatus
from ...schemas.orders import OrderModel, StatusUpdateRequest
from ..dependencies import Services, get_services
from ..errors import to_http_exception

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=list[OrderModel])
async def list_orders(
    user_id: str | None = Query(default=None, description="Orders placed by this customer, newest first"),
    order_status: OrderStatus | None = Query(default=None, alias="status", description="Filter by status"),
    active: bool = Query(default=False, description="Only orders that are not delivered or cancelled"),
    services: Services = Depends(get_services),
) -> list[OrderModel]:
    try:
        if user_id:
            orders = await services.orders.list_for_customer(user_id)
            if order_status is not None:
                orders = [order for order in orders if order.status is order_status]
        elif order_status is not None:
            orders = await services.orders.list_by_status(order_status)
        elif active:
            orders = await services.orders.list_active()
        else:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Provide user_id, status or active=true to list orders",
            )
    except DeliveryCoreError as exc:
        raise to_http_exception(exc) from exc
    if active and user_id:
        orders = [order for order in orders if not order.status.is_terminal]
    return [OrderModel.from_domain(order) for order in orders]


@router.get("/{order_id}", response_model=OrderModel)
async def get_order(order_id: str, services: Services = Depends(get_services)) -> OrderModel:
    try:
        order = await services.orders.get(order_id)
    except DeliveryCoreError as exc:
        raise to_http_exception(exc) from exc
    return OrderModel.from_domain(order)


@router.post("/{order_id}/status", response_model=OrderModel)
async def update_status(
    order_id: str,
    payload: StatusUpdateRequest,
    services: Services = Depends(get_services),
) -> OrderModel:
    try:
        order = await services.orders.transition(order_id, payload.status)
    except DeliveryCoreError as exc:
        raise to_http_exception(exc) from exc
    return OrderModel.from_domain(order)
