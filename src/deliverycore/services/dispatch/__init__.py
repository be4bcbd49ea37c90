"""Agent ranking and dispatch orchestration."""

from .ranker import RankedAgent, rank_agents
from .workflow import DispatchOutcome, DispatchPlan, DispatchWorkflow, filter_eligible

__all__ = [
    "RankedAgent",
    "rank_agents",
    "DispatchOutcome",
    "DispatchPlan",
    "DispatchWorkflow",
    "filter_eligible",
]
