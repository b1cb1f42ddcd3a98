"""
Proximity search requests and great-circle distances.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping

from shared.errors import ValidationError

from .models import GeoPoint, GeoRequest


EARTH_RADIUS_KM = 6371
DEFAULT_RADIUS_KM = 5.0
DEFAULT_LIMIT = 20
LOCATION_FIELD = "location.coordinates"


def _to_radians(degrees: float) -> float:
    return degrees * math.pi / 180


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres between two lat/lng points."""
    d_lat = _to_radians(lat2 - lat1)
    d_lon = _to_radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) * math.sin(d_lat / 2)
        + math.cos(_to_radians(lat1)) * math.cos(_to_radians(lat2))
        * math.sin(d_lon / 2) * math.sin(d_lon / 2)
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


class GeoSearchEngine:
    """Builds nearby-restaurant requests and annotates results with distance."""

    def __init__(self, field: str = LOCATION_FIELD):
        self.field = field

    def build_request(self, params: Mapping[str, Any]) -> GeoRequest:
        latitude = params.get("latitude")
        longitude = params.get("longitude")
        if latitude in (None, "") or longitude in (None, ""):
            raise ValidationError("Latitude and longitude are required query parameters")

        radius = params.get("radius")
        radius_km = float(radius) if radius not in (None, "") else DEFAULT_RADIUS_KM
        limit = params.get("limit")

        return GeoRequest(
            center=GeoPoint.from_lat_lng(float(latitude), float(longitude)),
            max_distance_meters=radius_km * 1000,
            limit=int(limit) if limit not in (None, "") else DEFAULT_LIMIT,
            field=self.field,
        )

    def attach_distances(self, center: GeoPoint, documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Copy each document with a ``distance`` in km, rounded to 2 places.

        Order is preserved: the store already returns nearest first.
        """
        annotated = []
        for document in documents:
            point = GeoPoint.from_geojson(self._location(document))
            distance = haversine_km(center.latitude, center.longitude, point.latitude, point.longitude)
            annotated.append({**document, "distance": round(distance, 2)})
        return annotated

    def _location(self, document: Dict[str, Any]) -> Dict[str, Any]:
        value: Any = document
        for part in self.field.split("."):
            value = value[part]
        return value
