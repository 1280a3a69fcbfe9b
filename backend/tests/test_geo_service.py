"""Haversine distance and geofence checks."""
import math

import pytest

from campus_attendance.services.geo_service import EARTH_RADIUS_METERS, GeoService

CENTER = (21.2500, 81.6300)


def offset_north(meters):
    """Point ``meters`` due north of CENTER."""
    return (CENTER[0] + math.degrees(meters / EARTH_RADIUS_METERS), CENTER[1])


def test_distance_to_self_is_zero():
    assert GeoService.distance_meters(*CENTER, *CENTER) == 0


def test_distance_is_symmetric():
    a, b = (21.25, 81.63), (21.26, 81.64)
    assert GeoService.distance_meters(*a, *b) == pytest.approx(GeoService.distance_meters(*b, *a))


def test_fifty_meters_north():
    point = offset_north(50)
    assert GeoService.distance_meters(*point, *CENTER) == pytest.approx(50, abs=0.01)


def test_one_degree_of_latitude():
    # 2 * pi * R / 360
    assert GeoService.distance_meters(0, 0, 1, 0) == pytest.approx(111194.93, rel=1e-4)


def test_boundary_is_inside():
    point = offset_north(15)
    distance = GeoService.distance_meters(*point, *CENTER)
    assert GeoService.within_geofence(point, CENTER, distance)


def test_outside_radius():
    assert not GeoService.within_geofence(offset_north(50), CENTER, 15)
    assert GeoService.within_geofence(offset_north(10), CENTER, 15)


def test_check_geofence_reports_distance():
    result = GeoService.check_geofence(offset_north(50), CENTER, 15)

    assert result['is_inside'] is False
    assert result['distance'] == pytest.approx(50, abs=0.01)
    assert result['radius'] == 15
    assert result['center'] == {'latitude': CENTER[0], 'longitude': CENTER[1]}


def test_nan_propagates():
    assert math.isnan(GeoService.distance_meters(float('nan'), 0, 0, 0))
