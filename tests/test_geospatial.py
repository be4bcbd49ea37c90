import math

from src.deliverycore.models.domain import Coordinate
from src.deliverycore.services.geospatial import EARTH_RADIUS_KM, distance_km, haversine_km

NAIROBI_CBD = Coordinate(-1.2864, 36.8172)
WESTLANDS = Coordinate(-1.2676, 36.8108)
KAREN = Coordinate(-1.3197, 36.7073)


def test_distance_is_symmetric():
    for a, b in [(NAIROBI_CBD, WESTLANDS), (WESTLANDS, KAREN), (KAREN, NAIROBI_CBD)]:
        assert distance_km(a, b) == distance_km(b, a)


def test_distance_to_self_is_zero():
    assert distance_km(KAREN, KAREN) == 0.0


def test_one_degree_of_latitude():
    expected = EARTH_RADIUS_KM * math.pi / 180
    assert math.isclose(haversine_km(0.0, 36.0, 1.0, 36.0), expected, rel_tol=1e-9)


def test_cbd_to_westlands_is_a_couple_of_km():
    assert 2.0 < distance_km(NAIROBI_CBD, WESTLANDS) < 2.5


def test_nan_input_propagates():
    assert math.isnan(distance_km(Coordinate(float("nan"), 36.8), NAIROBI_CBD))
