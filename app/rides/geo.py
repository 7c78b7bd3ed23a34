"""
Great-circle distance helpers for arrival checks.

Coordinates come straight from the driver's device; beyond range
checks nothing is smoothed or corrected.

Usage:
    from rides.geo import GeoPoint, haversine_distance

    pickup = GeoPoint(-4.3250, 15.3222)
    driver = GeoPoint.from_dict({"lat": -4.3251, "lng": 15.3223})
    haversine_distance(pickup, driver)  # meters
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from core.exceptions import ValidationError

EARTH_RADIUS_METERS = 6_371_000


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 position in decimal degrees."""

    lat: float
    lng: float

    def __post_init__(self) -> None:
        errors = {}
        if not -90 <= self.lat <= 90:
            errors["lat"] = ["Must be between -90 and 90."]
        if not -180 <= self.lng <= 180:
            errors["lng"] = ["Must be between -180 and 180."]
        if errors:
            raise ValidationError(
                "Coordinates are out of range",
                error_code="INVALID_COORDINATES",
                details=errors,
            )

    @classmethod
    def from_dict(cls, position: dict[str, Any] | None) -> GeoPoint:
        """
        Build a point from a ``{"lat": ..., "lng": ...}`` mapping.

        Raises:
            ValidationError: Missing, non-numeric or out-of-range coordinates
        """
        position = position or {}
        try:
            lat = float(Decimal(str(position["lat"])))
            lng = float(Decimal(str(position["lng"])))
        except (KeyError, InvalidOperation, ValueError, TypeError):
            raise ValidationError(
                "Position needs numeric lat and lng",
                error_code="INVALID_COORDINATES",
                details={"position": ["Expected {'lat': <number>, 'lng': <number>}."]},
            )
        if math.isnan(lat) or math.isnan(lng):
            raise ValidationError(
                "Position needs numeric lat and lng",
                error_code="INVALID_COORDINATES",
                details={"position": ["Coordinates must be numbers."]},
            )
        return cls(lat=lat, lng=lng)


def haversine_distance(a: GeoPoint, b: GeoPoint) -> float:
    """Distance in meters between two points on a spherical earth."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dlambda = math.radians(b.lng - a.lng)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(h)))
