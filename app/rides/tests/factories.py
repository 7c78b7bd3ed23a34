"""
Factory Boy factories for ride tests.

Usage:
    subscription = DriverSubscriptionFactory(rides_remaining=3)
    booking = RideBookingFactory(driver=subscription.driver)
"""

from decimal import Decimal

import factory

from authentication.tests.factories import UserFactory
from rides.models import DriverSubscription, RideBooking, RideStatus

# Gombe, Kinshasa
PICKUP_LAT = Decimal("-4.325000")
PICKUP_LNG = Decimal("15.322200")


class DriverSubscriptionFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = DriverSubscription

    driver = factory.SubFactory(UserFactory)
    plan_name = "Standard 30"
    rides_remaining = 30
    rides_used = 0
    is_active = True


class RideBookingFactory(factory.django.DjangoModelFactory):
    """Accepted booking with a driver assigned."""

    class Meta:
        model = RideBooking

    client = factory.SubFactory(UserFactory)
    driver = factory.SubFactory(UserFactory)
    pickup_latitude = PICKUP_LAT
    pickup_longitude = PICKUP_LNG
    pickup_address = "Boulevard du 30 Juin"
    status = RideStatus.ACCEPTED
