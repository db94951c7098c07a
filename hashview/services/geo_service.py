"""
Geo Service - Great-circle distance and geofence membership
"""
import logging
import math
from dataclasses import dataclass
from typing import Optional

from hashview.config import settings

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371000.0


@dataclass(frozen=True)
class GeofenceDecision:
    """Outcome of a geofence check; within_fence == (distance <= radius)"""
    radius_meters: float
    distance_meters: float

    @property
    def within_fence(self) -> bool:
        return self.distance_meters <= self.radius_meters


class GeoService:
    """Haversine distance on a spherical Earth"""

    def __init__(
        self,
        min_radius_meters: Optional[float] = None,
        max_radius_meters: Optional[float] = None
    ):
        self.min_radius = (
            settings.GEOFENCE_MIN_RADIUS_METERS if min_radius_meters is None else min_radius_meters
        )
        self.max_radius = (
            settings.GEOFENCE_MAX_RADIUS_METERS if max_radius_meters is None else max_radius_meters
        )

    @staticmethod
    def distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """
        Calculate distance between two GPS coordinates in meters.

        Coordinates are degrees. Non-finite input propagates NaN; callers
        reject such coordinates before getting here.
        """
        lat1_rad = math.radians(lat1)
        lat2_rad = math.radians(lat2)
        delta_lat = math.radians(lat2 - lat1)
        delta_lon = math.radians(lon2 - lon1)

        a = (math.sin(delta_lat / 2) ** 2 +
             math.cos(lat1_rad) * math.cos(lat2_rad) *
             math.sin(delta_lon / 2) ** 2)
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

        return EARTH_RADIUS_METERS * c

    def within_geofence(
        self,
        user_lat: float,
        user_lon: float,
        business_lat: float,
        business_lon: float,
        radius_meters: float
    ) -> bool:
        """Boundary is inclusive: exactly radius_meters away is inside."""
        return self.distance(user_lat, user_lon, business_lat, business_lon) <= radius_meters

    def clamp_radius(self, radius_meters: Optional[float]) -> float:
        """Keep a business-configured radius inside the allowed band."""
        if radius_meters is None:
            return self.min_radius
        return max(self.min_radius, min(float(radius_meters), self.max_radius))

    def evaluate(
        self,
        user_lat: float,
        user_lon: float,
        business_lat: float,
        business_lon: float,
        radius_meters: Optional[float]
    ) -> GeofenceDecision:
        radius = self.clamp_radius(radius_meters)
        distance = self.distance(user_lat, user_lon, business_lat, business_lon)
        decision = GeofenceDecision(radius_meters=radius, distance_meters=distance)

        logger.info(
            f"Geofence check: user=({user_lat}, {user_lon}) "
            f"business=({business_lat}, {business_lon}) radius={radius}m "
            f"distance={distance:.2f}m within={decision.within_fence}"
        )
        return decision


# Singleton instance
geo_service = GeoService()
