# trip_scheduler/api/services/map_service.py
"""Service layer for map-related operations."""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from trip_scheduler.api.models import Coordinates
from trip_scheduler.api.sequencer import haversine_km

logger = logging.getLogger(__name__)

Point = Tuple[float, float]
Bounds = Tuple[Point, Point]


class MapService:
    """Handles map-related calculations for a day's route."""

    # Average speeds in km/h
    SPEEDS = {
        "walking": 4,
        "bicycling": 15,
        "transit": 20,
        "driving": 40,
    }

    @staticmethod
    def validate_coordinates(lat: float, lng: float) -> bool:
        """Validate that coordinates are within valid ranges.

        Args:
            lat: Latitude
            lng: Longitude

        Returns:
            True if valid, False otherwise
        """
        return -90 <= lat <= 90 and -180 <= lng <= 180

    @staticmethod
    def is_placeholder(lat: float, lng: float) -> bool:
        """True for the (0, 0) position given to places that could not be found."""
        return lat == 0 and lng == 0

    @staticmethod
    def calculate_bounds(points: Sequence[Point]) -> Optional[Bounds]:
        """Calculate the bounding box of real positions on a route.

        Args:
            points: (lat, lng) pairs

        Returns:
            ((south, west), (north, east)), or None if no usable point
        """
        usable = [
            (lat, lng) for lat, lng in points
            if MapService.validate_coordinates(lat, lng)
            and not MapService.is_placeholder(lat, lng)
        ]
        if not usable:
            return None

        lats = [p[0] for p in usable]
        lngs = [p[1] for p in usable]
        return (min(lats), min(lngs)), (max(lats), max(lngs))

    @staticmethod
    def estimate_travel_time(distance_km: float, mode: str = "walking") -> int:
        """Estimate travel time based on distance and mode.

        Args:
            distance_km: Distance in kilometres
            mode: Travel mode (walking, bicycling, transit, driving)

        Returns:
            Estimated time in minutes
        """
        speed = MapService.SPEEDS.get(mode, MapService.SPEEDS["walking"])
        return max(1, round(distance_km / speed * 60)) if distance_km > 0 else 0

    @staticmethod
    def route_legs(points: Sequence[Point], mode: str = "walking") -> List[Dict[str, float]]:
        """Straight-line legs between consecutive route points."""
        legs = []
        for (lat1, lng1), (lat2, lng2) in zip(points, points[1:]):
            distance = haversine_km(Coordinates(lat1, lng1), Coordinates(lat2, lng2))
            legs.append({
                "from": [lat1, lng1],
                "to": [lat2, lng2],
                "distanceKm": round(distance, 3),
                "minutes": MapService.estimate_travel_time(distance, mode),
            })
        return legs


# Export for use in other modules
__all__ = ['MapService']
