"""
Ride-specific exceptions.

Exception Hierarchy:
    BusinessRuleError (core)
    ├── OutOfRange: Driver too far from the pickup point
    └── NoCreditsRemaining: Active subscription has no rides left

    ConflictError (core)
    └── AlreadyConfirmed: Arrival was already recorded for the booking
"""

from __future__ import annotations

from core.exceptions import BusinessRuleError, ConflictError


class OutOfRange(BusinessRuleError):
    """Driver is further than ARRIVAL_RADIUS_METERS from the pickup."""

    default_error_code: str = "OUT_OF_RANGE"

    def __init__(self, distance_meters: float, radius_meters: float, **kwargs):
        self.distance_meters = distance_meters
        self.radius_meters = radius_meters
        details = kwargs.pop("details", None) or {}
        details.update(
            distance_meters=round(distance_meters, 1),
            radius_meters=radius_meters,
        )
        super().__init__(
            f"Driver is {distance_meters:.0f} m from the pickup point "
            f"(maximum {radius_meters} m)",
            details=details,
            **kwargs,
        )


class NoCreditsRemaining(BusinessRuleError):
    default_error_code: str = "NO_CREDITS_REMAINING"


class AlreadyConfirmed(ConflictError):
    default_error_code: str = "ARRIVAL_ALREADY_CONFIRMED"
