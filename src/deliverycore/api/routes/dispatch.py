"""Dispatch endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...errors import DeliveryCoreError
from ...schemas.dispatch import ConfirmDispatchRequest, DispatchPlanRequest, DispatchPlanResponse
from ...schemas.orders import OrderModel
from ..dependencies import Services, get_services
from ..errors import to_http_exception

router = APIRouter(prefix="/dispatch", tags=["dispatch"])


@router.post("/orders/{order_id}/candidates", response_model=DispatchPlanResponse)
async def plan_dispatch(
    order_id: str,
    payload: DispatchPlanRequest | None = None,
    services: Services = Depends(get_services),
) -> DispatchPlanResponse:
    """Rank the agents that can take the order, nearest to the pickup point first.

    An empty candidate list always comes with an outcome explaining why
    (no agents, no pickup location, or the order is no longer pending).
    """
    pickup = payload.pickup.to_domain() if payload and payload.pickup else None
    try:
        plan = await services.dispatch.plan(order_id, pickup)
    except DeliveryCoreError as exc:
        raise to_http_exception(exc) from exc
    return DispatchPlanResponse.from_domain(plan)


@router.post("/orders/{order_id}/confirm", response_model=OrderModel)
async def confirm_dispatch(
    order_id: str,
    payload: ConfirmDispatchRequest,
    services: Services = Depends(get_services),
) -> OrderModel:
    pickup = payload.pickup.to_domain() if payload.pickup else None
    try:
        order = await services.dispatch.confirm(order_id, payload.agent_id, pickup)
    except DeliveryCoreError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:
        logging.exception(f"Error assigning order: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to assign order: {str(exc)}",
        ) from exc
    return OrderModel.from_domain(order)
