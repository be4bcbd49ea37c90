"""Pickup selection, candidate ranking and agent assignment for an order."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Mapping, Optional, Sequence

from ...errors import AgentUnavailableError, InvalidTransitionError, PickupUnresolvedError
from ...models.domain import DeliveryAgent, DeliveryAssignment, Order, OrderStatus, PickupLocation, utc_now
from ...persistence.agents import AgentRepository
from ..location import LocationProvider
from ..orders.lifecycle import OrderLifecycle
from ..pricing.fees import DeliveryFeeCalculator, FeeQuote
from .ranker import RankedAgent, rank_agents

logger = logging.getLogger(__name__)


class DispatchOutcome(str, Enum):
    CANDIDATES_READY = "candidates_ready"
    NO_AGENTS_AVAILABLE = "no_agents_available"
    PICKUP_UNRESOLVED = "pickup_unresolved"
    ORDER_NOT_DISPATCHABLE = "order_not_dispatchable"


@dataclass(slots=True)
class DispatchPlan:
    order: Order
    outcome: DispatchOutcome
    pickup: Optional[PickupLocation] = None
    candidates: list[RankedAgent] = field(default_factory=list)
    fee: Optional[FeeQuote] = None

    def candidate(self, agent_id: str) -> Optional[RankedAgent]:
        for ranked in self.candidates:
            if ranked.agent_id == agent_id:
                return ranked
        return None


def filter_eligible(agents: Sequence[DeliveryAgent], active_loads: Mapping[str, int]) -> list[DeliveryAgent]:
    """Drop unavailable agents and those already at their order limit (0 means no limit)."""

    eligible = []
    for agent in agents:
        if not agent.available:
            continue
        if agent.max_concurrent_orders and active_loads.get(agent.agent_id, 0) >= agent.max_concurrent_orders:
            continue
        eligible.append(agent)
    return eligible


class DispatchWorkflow:
    def __init__(
        self,
        orders: OrderLifecycle,
        agents: AgentRepository,
        *,
        location_provider: LocationProvider,
        fee_calculator: DeliveryFeeCalculator | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.orders = orders
        self.agents = agents
        self.location_provider = location_provider
        self.fee_calculator = fee_calculator or DeliveryFeeCalculator()
        self._clock = clock

    async def resolve_pickup(self, pickup: Optional[PickupLocation] = None) -> Optional[PickupLocation]:
        """Use the operator's choice when it is resolved, otherwise the provider's location."""

        if pickup is not None and pickup.position.is_usable:
            return pickup
        fallback = await self.location_provider.current_location()
        if fallback is not None and fallback.position.is_usable:
            return fallback
        return None

    async def plan(self, order_id: str, pickup: Optional[PickupLocation] = None) -> DispatchPlan:
        """Rank eligible agents around the pickup point for a pending order."""

        order = await self.orders.get(order_id)
        if order.status is not OrderStatus.PENDING:
            return DispatchPlan(order=order, outcome=DispatchOutcome.ORDER_NOT_DISPATCHABLE)

        resolved = await self.resolve_pickup(pickup)
        if resolved is None:
            logger.warning(f"No resolved pickup location for order '{order_id}'")
            return DispatchPlan(order=order, outcome=DispatchOutcome.PICKUP_UNRESOLVED)

        pool = await self.agents.list_agents()
        loads = await self.orders.count_processing_by_agent()
        candidates = rank_agents(filter_eligible(pool, loads), resolved.position)
        fee = self.fee_calculator.quote(resolved.position, order.customer_info.position)
        if not candidates:
            logger.info(f"No delivery agents available for order '{order_id}' (pool size {len(pool)})")
            return DispatchPlan(
                order=order, outcome=DispatchOutcome.NO_AGENTS_AVAILABLE, pickup=resolved, fee=fee
            )
        return DispatchPlan(
            order=order,
            outcome=DispatchOutcome.CANDIDATES_READY,
            pickup=resolved,
            candidates=candidates,
            fee=fee,
        )

    async def confirm(
        self,
        order_id: str,
        agent_id: str,
        pickup: Optional[PickupLocation] = None,
    ) -> Order:
        """Assign ``agent_id`` to the order and move it to processing."""

        plan = await self.plan(order_id, pickup)
        if plan.outcome is DispatchOutcome.ORDER_NOT_DISPATCHABLE:
            raise InvalidTransitionError(order_id, plan.order.status.value, OrderStatus.PROCESSING.value)
        if plan.outcome is DispatchOutcome.PICKUP_UNRESOLVED:
            raise PickupUnresolvedError("Please set a pickup location first.")
        chosen = plan.candidate(agent_id)
        if chosen is None:
            raise AgentUnavailableError(agent_id, order_id)

        assignment = DeliveryAssignment(
            driver_id=chosen.agent_id,
            driver_name=chosen.agent.name or "Delivery Driver",
            assigned_at=self._clock(),
            pickup_location=plan.pickup.address or "Store Location",
            delivery_location=plan.order.customer_info.address or "Customer Address",
        )
        order = await self.orders.start_processing(order_id, assignment)
        logger.info(
            f"Assigned order '{order_id}' to agent '{chosen.agent_id}' "
            f"(rank {chosen.rank_index}, {chosen.distance_km:.2f} km from pickup)"
        )
        return order
