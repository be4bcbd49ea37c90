"""Dispatch request/response schemas."""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from ..services.dispatch.ranker import RankedAgent
from ..services.dispatch.workflow import DispatchOutcome, DispatchPlan
from ..services.pricing.fees import FeeQuote
from .common import PickupLocationModel, PositionModel


class FeeQuoteModel(BaseModel):
    amount: Decimal
    distance_km: Optional[float] = None
    rate_per_km: Decimal
    currency: str
    determinable: bool

    @classmethod
    def from_domain(cls, quote: FeeQuote) -> "FeeQuoteModel":
        return cls(
            amount=quote.amount,
            distance_km=quote.distance_km,
            rate_per_km=quote.rate_per_km,
            currency=quote.currency,
            determinable=quote.determinable,
        )


class RankedAgentModel(BaseModel):
    agent_id: str
    rank_index: int
    name: str
    phone: Optional[str] = None
    distance_km: Optional[float] = None
    position: Optional[PositionModel] = None

    @classmethod
    def from_domain(cls, ranked: RankedAgent) -> "RankedAgentModel":
        return cls(
            agent_id=ranked.agent_id,
            rank_index=ranked.rank_index,
            name=ranked.agent.name,
            phone=ranked.agent.phone,
            distance_km=ranked.distance_km,
            position=PositionModel.from_domain(ranked.agent.position),
        )


class DispatchPlanRequest(BaseModel):
    pickup: Optional[PickupLocationModel] = Field(
        default=None, description="Pickup override; the store location is used when omitted."
    )


class DispatchPlanResponse(BaseModel):
    order_id: str
    outcome: DispatchOutcome
    pickup: Optional[PickupLocationModel] = None
    candidates: List[RankedAgentModel]
    fee: Optional[FeeQuoteModel] = None

    @classmethod
    def from_domain(cls, plan: DispatchPlan) -> "DispatchPlanResponse":
        return cls(
            order_id=plan.order.id,
            outcome=plan.outcome,
            pickup=PickupLocationModel.from_domain(plan.pickup) if plan.pickup else None,
            candidates=[RankedAgentModel.from_domain(ranked) for ranked in plan.candidates],
            fee=FeeQuoteModel.from_domain(plan.fee) if plan.fee else None,
        )


class ConfirmDispatchRequest(BaseModel):
    agent_id: str = Field(..., min_length=1)
    pickup: Optional[PickupLocationModel] = None
