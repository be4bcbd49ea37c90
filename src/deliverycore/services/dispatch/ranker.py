"""Distance ranking of delivery agents around a pickup point."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from ...models.domain import Coordinate, DeliveryAgent
from ..geospatial import distance_km

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RankedAgent:
    """An agent with its position in a ranking.

    ``agent_id`` is the durable identity; ``rank_index`` is only the display order
    for one ranking pass.
    """

    agent_id: str
    rank_index: int
    distance_km: Optional[float]
    agent: DeliveryAgent


def rank_agents(agents: Sequence[DeliveryAgent], origin: Optional[Coordinate]) -> list[RankedAgent]:
    """Order agents by great-circle distance from ``origin``, nearest first.

    Ties keep the input order. Agents without a usable position (or whose
    distance is NaN) are left out of the ranking. When the origin itself is not
    usable the agents come back in input order with no distances, and callers
    must not treat that order as meaningful.
    """

    if origin is None or not origin.is_usable:
        logger.warning("Ranking requested without a resolved origin; returning agents unsorted")
        return [
            RankedAgent(agent_id=agent.agent_id, rank_index=index, distance_km=None, agent=agent)
            for index, agent in enumerate(agents)
        ]

    measured: list[tuple[float, DeliveryAgent]] = []
    skipped = 0
    for agent in agents:
        if not agent.position.is_usable:
            skipped += 1
            continue
        distance = distance_km(agent.position, origin)
        if math.isnan(distance):
            skipped += 1
            continue
        measured.append((distance, agent))
    if skipped:
        logger.warning(f"Skipped {skipped} agent(s) without a usable position while ranking")

    # list.sort is stable, so equal distances keep their input order
    measured.sort(key=lambda item: item[0])
    return [
        RankedAgent(agent_id=agent.agent_id, rank_index=index, distance_km=distance, agent=agent)
        for index, (distance, agent) in enumerate(measured)
    ]
