"""
Ride models used by the arrival credit gate.

Models:
    DriverSubscription: Prepaid ride allowance of a driver
    RideBooking: A client's ride request and its pickup point

Drivers pay for a plan that grants a number of rides. Each ride is
metered once, when the driver confirms arrival at the pickup point.
The counters are only ever changed by rides.services.ArrivalCreditGate
with conditional updates, never by read-modify-write.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class RideStatus(models.TextChoices):
    REQUESTED = "requested", "Requested"
    ACCEPTED = "accepted", "Accepted"
    DRIVER_ARRIVED = "driver_arrived", "Driver Arrived"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class DriverSubscription(UUIDPrimaryKeyMixin, BaseModel):
    """
    A driver's ride plan.

    Fields:
        driver: Subscribed driver
        plan_name: Display name of the plan
        rides_remaining: Rides left, never negative
        rides_used: Rides metered so far
        is_active: Only one active subscription per driver
        max_rides_per_day: Plan ceiling shown to the driver
    """

    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="ride_subscriptions",
    )
    plan_name = models.CharField(max_length=100)
    rides_remaining = models.PositiveIntegerField(default=0)
    rides_used = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True, db_index=True)
    max_rides_per_day = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Daily ceiling of the plan (informational)",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(rides_remaining__gte=0),
                name="subscription_rides_remaining_non_negative",
            ),
            models.UniqueConstraint(
                fields=["driver"],
                condition=Q(is_active=True),
                name="unique_active_subscription_per_driver",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.plan_name} ({self.rides_remaining} left)"


class RideBooking(UUIDPrimaryKeyMixin, BaseModel):
    """
    A ride requested by a client.

    ``arrived_at`` is set once, by the arrival gate; a booking with
    ``arrived_at`` set can never be metered again.
    """

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="ride_bookings",
    )
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="assigned_rides",
        null=True,
        blank=True,
    )
    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_address = models.CharField(max_length=255, blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=RideStatus.choices,
        default=RideStatus.REQUESTED,
        db_index=True,
    )
    arrived_at = models.DateTimeField(null=True, blank=True)
    arrival_distance_meters = models.FloatField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["driver", "status"], name="ride_driver_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Ride({self.id}, {self.status})"
