"""Geofence distance math."""
import math
from typing import Dict, Tuple

EARTH_RADIUS_METERS = 6371000

Point = Tuple[float, float]


class GeoService:
    """Great-circle distance and circular geofence checks.

    Inputs are not validated: NaN propagates, so request handlers reject
    malformed coordinates before calling in.
    """

    @staticmethod
    def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """Calculate haversine distance between two GPS points in meters."""
        lat1_rad = math.radians(lat1)
        lat2_rad = math.radians(lat2)
        delta_lat = math.radians(lat2 - lat1)
        delta_lon = math.radians(lon2 - lon1)

        a = (math.sin(delta_lat / 2) ** 2 +
             math.cos(lat1_rad) * math.cos(lat2_rad) *
             math.sin(delta_lon / 2) ** 2)
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

        return EARTH_RADIUS_METERS * c

    @staticmethod
    def within_geofence(point: Point, center: Point, radius_meters: float) -> bool:
        """Inclusive boundary: a point exactly ``radius_meters`` away is inside."""
        return GeoService.distance_meters(point[0], point[1], center[0], center[1]) <= radius_meters

    @staticmethod
    def check_geofence(point: Point, center: Point, radius_meters: float) -> Dict:
        """Distance plus verdict, for callers that report how far off a user is."""
        distance = GeoService.distance_meters(point[0], point[1], center[0], center[1])

        return {
            'is_inside': distance <= radius_meters,
            'distance': distance,
            'radius': radius_meters,
            'center': {
                'latitude': center[0],
                'longitude': center[1]
            }
        }
