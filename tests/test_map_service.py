import pytest

from trip_scheduler.api.services.map_service import MapService


@pytest.mark.parametrize("lat, lng, valid", [
    (48.85, 2.35, True),
    (-90, 180, True),
    (90.1, 0, False),
    (0, -180.5, False),
])
def test_validate_coordinates(lat, lng, valid):
    assert MapService.validate_coordinates(lat, lng) is valid


def test_bounds_skip_placeholder_positions():
    points = [(48.86, 2.29), (0.0, 0.0), (48.85, 2.35)]
    assert MapService.calculate_bounds(points) == ((48.85, 2.29), (48.86, 2.35))


def test_bounds_of_nothing_usable():
    assert MapService.calculate_bounds([]) is None
    assert MapService.calculate_bounds([(0.0, 0.0)]) is None


@pytest.mark.parametrize("distance, mode, minutes", [
    (2, "walking", 30),
    (5, "bicycling", 20),
    (10, "transit", 30),
    (20, "driving", 30),
    (2, "teleport", 30),
    (0.01, "driving", 1),
    (0, "walking", 0),
])
def test_estimate_travel_time(distance, mode, minutes):
    assert MapService.estimate_travel_time(distance, mode) == minutes


def test_route_legs_between_consecutive_points():
    points = [(48.8584, 2.2945), (48.8600, 2.3266), (48.8606, 2.3376)]

    legs = MapService.route_legs(points, "walking")

    assert len(legs) == 2
    assert legs[0]["from"] == [48.8584, 2.2945]
    assert legs[1]["to"] == [48.8606, 2.3376]
    assert legs[0]["distanceKm"] > legs[1]["distanceKm"] > 0
    assert legs[0]["minutes"] > legs[1]["minutes"] > 0


def test_single_point_has_no_legs():
    assert MapService.route_legs([(48.85, 2.35)]) == []
