import math

from src.deliverycore.models.domain import Coordinate, DeliveryAgent
from src.deliverycore.services.dispatch.ranker import rank_agents
from src.deliverycore.services.geospatial import distance_km

ORIGIN = Coordinate(-1.2864, 36.8172)
KM_PER_DEGREE = 6371.0 * math.pi / 180


def _agent(agent_id: str, km_north: float | None) -> DeliveryAgent:
    position = (
        Coordinate(ORIGIN.latitude + km_north / KM_PER_DEGREE, ORIGIN.longitude)
        if km_north is not None
        else Coordinate.unresolved()
    )
    return DeliveryAgent(agent_id=agent_id, name=f"Agent {agent_id}", position=position)


def test_rank_orders_by_distance_with_rank_indices():
    agents = [_agent("five", 5), _agent("one", 1), _agent("three", 3)]

    ranked = rank_agents(agents, ORIGIN)

    assert [r.agent_id for r in ranked] == ["one", "three", "five"]
    assert [r.rank_index for r in ranked] == [0, 1, 2]
    assert math.isclose(ranked[0].distance_km, 1.0, rel_tol=1e-6)


def test_rank_is_independent_of_input_order():
    agents = [_agent("five", 5), _agent("one", 1), _agent("three", 3)]

    forward = rank_agents(agents, ORIGIN)
    backward = rank_agents(list(reversed(agents)), ORIGIN)

    assert [r.agent_id for r in forward] == [r.agent_id for r in backward]


def test_rank_is_sorted_and_idempotent():
    agents = [_agent(f"A{i}", km) for i, km in enumerate([4.2, 0.3, 7.7, 0.3, 2.5, 9.1])]

    ranked = rank_agents(agents, ORIGIN)
    distances = [distance_km(r.agent.position, ORIGIN) for r in ranked]
    reranked = rank_agents([r.agent for r in ranked], ORIGIN)

    assert distances == sorted(distances)
    assert [(r.agent_id, r.rank_index) for r in reranked] == [(r.agent_id, r.rank_index) for r in ranked]


def test_ties_keep_input_order():
    agents = [_agent("first", 2), _agent("second", 2), _agent("third", 2)]

    ranked = rank_agents(agents, ORIGIN)

    assert [r.agent_id for r in ranked] == ["first", "second", "third"]


def test_ranking_does_not_touch_source_agents():
    agents = [_agent("five", 5), _agent("one", 1)]
    before = [(a.agent_id, a.position) for a in agents]

    rank_agents(agents, ORIGIN)

    assert [(a.agent_id, a.position) for a in agents] == before


def test_unresolved_origin_returns_input_order_without_distances():
    agents = [_agent("five", 5), _agent("one", 1)]

    ranked = rank_agents(agents, Coordinate.unresolved())

    assert [r.agent_id for r in ranked] == ["five", "one"]
    assert all(r.distance_km is None for r in ranked)
    assert rank_agents(agents, None)[0].agent_id == "five"


def test_agents_without_position_are_left_out():
    agents = [_agent("ghost", None), _agent("one", 1)]

    ranked = rank_agents(agents, ORIGIN)

    assert [r.agent_id for r in ranked] == ["one"]
    assert ranked[0].rank_index == 0


def test_empty_pool():
    assert rank_agents([], ORIGIN) == []
