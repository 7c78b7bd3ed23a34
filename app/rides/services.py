"""
Arrival credit gate: GPS-checked, at-most-once metering of driver rides.

A driver confirms arrival at the pickup point from the mobile client.
The call is accepted only within ARRIVAL_RADIUS_METERS of the pickup and
only once per booking. Accepting it consumes one ride from the driver's
active subscription.

Both writes are conditional updates in one transaction:

    UPDATE booking SET arrived_at = now ... WHERE arrived_at IS NULL
    UPDATE subscription SET rides_remaining = rides_remaining - 1 ...
        WHERE is_active AND rides_remaining > 0

A duplicated or retried call changes no row on the first update and
fails with AlreadyConfirmed; a driver out of credits changes no row on
the second and the whole transaction rolls back.

Usage:
    from rides.services import ArrivalCreditGate

    result = ArrivalCreditGate.confirm_arrival(
        booking_id,
        driver_id=request.user.id,
        position={"lat": -4.3250, "lng": 15.3222},
    )
    result.rides_remaining
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import F
from django.utils import timezone

from core.exceptions import ConflictError, NotFoundError
from core.services import BaseService

from custody.exceptions import NotAuthorized
from notifications.models import NotificationKind
from notifications.services import NotificationDispatcher
from rides.exceptions import AlreadyConfirmed, NoCreditsRemaining, OutOfRange
from rides.geo import GeoPoint, haversine_distance
from rides.models import DriverSubscription, RideBooking, RideStatus

if TYPE_CHECKING:
    from typing import Any


ARRIVABLE_STATUSES = (RideStatus.REQUESTED, RideStatus.ACCEPTED)


@dataclass
class ArrivalResult:
    """
    Outcome of a successful arrival confirmation.

    Attributes:
        success: Always True; failures raise
        rides_remaining: Credits left on the active subscription
        distance_meters: Measured distance to the pickup point
    """

    success: bool
    rides_remaining: int
    distance_meters: float
    booking_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "booking_id": self.booking_id,
            "rides_remaining": self.rides_remaining,
            "distance_meters": round(self.distance_meters, 1),
        }


class ArrivalCreditGate(BaseService):
    """
    Error Handling:
        - ValidationError: malformed position
        - NotFoundError: unknown booking
        - NotAuthorized: caller is not the assigned driver
        - OutOfRange: driver too far from the pickup
        - AlreadyConfirmed: arrival already recorded
        - ConflictError: booking cancelled or completed
        - NoCreditsRemaining: no active subscription with rides left
    """

    @classmethod
    def confirm_arrival(
        cls,
        booking_id: uuid.UUID,
        driver_id: uuid.UUID,
        position: dict[str, Any] | GeoPoint,
    ) -> ArrivalResult:
        point = position if isinstance(position, GeoPoint) else GeoPoint.from_dict(position)
        booking = cls._get_booking(booking_id)

        if booking.driver_id is None or str(booking.driver_id) != str(driver_id):
            cls.get_logger().warning(
                "Arrival refused: caller is not the assigned driver",
                extra={"booking_id": str(booking_id), "driver_id": str(driver_id)},
            )
            raise NotAuthorized(
                "Only the assigned driver can confirm arrival",
                details={"booking_id": str(booking_id)},
            )

        pickup = GeoPoint(
            lat=float(booking.pickup_latitude),
            lng=float(booking.pickup_longitude),
        )
        distance = haversine_distance(pickup, point)
        radius = settings.ARRIVAL_RADIUS_METERS
        if distance > radius:
            cls.get_logger().info(
                "Arrival refused: driver out of range",
                extra={"booking_id": str(booking_id), "distance_meters": round(distance, 1)},
            )
            raise OutOfRange(distance, radius, details={"booking_id": str(booking_id)})

        now = timezone.now()
        with cls.atomic():
            marked = RideBooking.objects.filter(
                pk=booking.pk,
                arrived_at__isnull=True,
                status__in=ARRIVABLE_STATUSES,
            ).update(
                arrived_at=now,
                status=RideStatus.DRIVER_ARRIVED,
                arrival_distance_meters=distance,
                updated_at=now,
            )
            if not marked:
                raise cls._not_arrivable(booking.pk)

            consumed = DriverSubscription.objects.filter(
                driver_id=booking.driver_id,
                is_active=True,
                rides_remaining__gt=0,
            ).update(
                rides_remaining=F("rides_remaining") - 1,
                rides_used=F("rides_used") + 1,
                updated_at=now,
            )
            if not consumed:
                cls.get_logger().warning(
                    "Arrival refused: no ride credits left",
                    extra={"booking_id": str(booking_id), "driver_id": str(driver_id)},
                )
                raise NoCreditsRemaining(
                    "No rides left on the active subscription",
                    details={"booking_id": str(booking_id), "rides_remaining": 0},
                )

            rides_remaining = (
                DriverSubscription.objects.filter(driver_id=booking.driver_id, is_active=True)
                .values_list("rides_remaining", flat=True)
                .get()
            )
            NotificationDispatcher.dispatch(
                booking.client_id,
                NotificationKind.DRIVER_ARRIVED,
                {"booking_id": str(booking.pk), "driver_id": str(booking.driver_id)},
            )

        cls.get_logger().info(
            "Driver arrival confirmed",
            extra={
                "booking_id": str(booking.pk),
                "driver_id": str(driver_id),
                "rides_remaining": rides_remaining,
                "distance_meters": round(distance, 1),
            },
        )
        return ArrivalResult(
            success=True,
            rides_remaining=rides_remaining,
            distance_meters=distance,
            booking_id=str(booking.pk),
        )

    @classmethod
    def _get_booking(cls, booking_id: uuid.UUID) -> RideBooking:
        try:
            return RideBooking.objects.get(pk=booking_id)
        except (RideBooking.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFoundError(
                f"Booking {booking_id} not found",
                error_code="BOOKING_NOT_FOUND",
                details={"booking_id": str(booking_id)},
            )

    @classmethod
    def _not_arrivable(cls, booking_id: uuid.UUID) -> ConflictError:
        booking = RideBooking.objects.get(pk=booking_id)
        if booking.arrived_at is not None:
            return AlreadyConfirmed(
                "Arrival was already confirmed for this booking",
                details={
                    "booking_id": str(booking_id),
                    "arrived_at": booking.arrived_at.isoformat(),
                },
            )
        return ConflictError(
            f"Booking is {booking.status}",
            error_code="BOOKING_NOT_ACTIVE",
            details={"booking_id": str(booking_id), "current_status": booking.status},
        )
