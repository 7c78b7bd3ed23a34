"""
Tests for ArrivalCreditGate.

One credit is consumed per booking, only near the pickup point, and a
refused confirmation leaves both the booking and the subscription as
they were.
"""

import uuid

import pytest

from core.exceptions import ConflictError, NotFoundError, ValidationError
from custody.exceptions import NotAuthorized
from notifications.models import NotificationEvent, NotificationKind
from rides.exceptions import AlreadyConfirmed, NoCreditsRemaining, OutOfRange
from rides.models import DriverSubscription, RideBooking, RideStatus
from rides.services import ArrivalCreditGate
from rides.tests.factories import DriverSubscriptionFactory, RideBookingFactory

# About 55 m north of the pickup
NEAR = {"lat": "-4.324500", "lng": "15.322200"}
# About 1.1 km south of the pickup
FAR = {"lat": "-4.335000", "lng": "15.322200"}


@pytest.fixture
def subscription(db):
    return DriverSubscriptionFactory(rides_remaining=2)


@pytest.fixture
def booking(subscription):
    return RideBookingFactory(driver=subscription.driver)


def reload(model, pk):
    return model.objects.get(pk=pk)


@pytest.mark.django_db
class TestConfirmArrival:
    def test_consumes_one_credit(self, booking, subscription):
        result = ArrivalCreditGate.confirm_arrival(booking.id, subscription.driver_id, NEAR)

        assert result.success is True
        assert result.rides_remaining == 1
        assert result.distance_meters == pytest.approx(55.6, abs=1)
        assert result.to_dict()["booking_id"] == str(booking.id)

        booking = reload(RideBooking, booking.pk)
        assert booking.status == RideStatus.DRIVER_ARRIVED
        assert booking.arrived_at is not None
        subscription = reload(DriverSubscription, subscription.pk)
        assert subscription.rides_remaining == 1
        assert subscription.rides_used == 1

    def test_notifies_client(self, booking, subscription):
        ArrivalCreditGate.confirm_arrival(booking.id, subscription.driver_id, NEAR)

        assert NotificationEvent.objects.filter(
            recipient=booking.client, kind=NotificationKind.DRIVER_ARRIVED
        ).exists()

    def test_second_confirmation_consumes_nothing(self, booking, subscription):
        ArrivalCreditGate.confirm_arrival(booking.id, subscription.driver_id, NEAR)

        with pytest.raises(AlreadyConfirmed) as exc_info:
            ArrivalCreditGate.confirm_arrival(booking.id, subscription.driver_id, NEAR)

        assert exc_info.value.error_code == "ARRIVAL_ALREADY_CONFIRMED"
        assert exc_info.value.http_status == 409
        assert reload(DriverSubscription, subscription.pk).rides_remaining == 1

    def test_out_of_range(self, booking, subscription):
        with pytest.raises(OutOfRange) as exc_info:
            ArrivalCreditGate.confirm_arrival(booking.id, subscription.driver_id, FAR)

        assert exc_info.value.http_status == 422
        assert exc_info.value.details["radius_meters"] == 100
        assert exc_info.value.distance_meters > 1000
        assert reload(RideBooking, booking.pk).arrived_at is None
        assert reload(DriverSubscription, subscription.pk).rides_remaining == 2

    def test_radius_from_settings(self, booking, subscription, settings):
        settings.ARRIVAL_RADIUS_METERS = 50

        with pytest.raises(OutOfRange):
            ArrivalCreditGate.confirm_arrival(booking.id, subscription.driver_id, NEAR)

    def test_no_credits_rolls_back_booking(self, booking, subscription):
        DriverSubscription.objects.filter(pk=subscription.pk).update(rides_remaining=0)

        with pytest.raises(NoCreditsRemaining) as exc_info:
            ArrivalCreditGate.confirm_arrival(booking.id, subscription.driver_id, NEAR)

        assert exc_info.value.error_code == "NO_CREDITS_REMAINING"
        booking = reload(RideBooking, booking.pk)
        assert booking.arrived_at is None
        assert booking.status == RideStatus.ACCEPTED
        assert not NotificationEvent.objects.filter(kind=NotificationKind.DRIVER_ARRIVED).exists()

    def test_inactive_subscription_has_no_credits(self, booking, subscription):
        DriverSubscription.objects.filter(pk=subscription.pk).update(is_active=False)

        with pytest.raises(NoCreditsRemaining):
            ArrivalCreditGate.confirm_arrival(booking.id, subscription.driver_id, NEAR)

    def test_last_credit(self, subscription):
        DriverSubscription.objects.filter(pk=subscription.pk).update(rides_remaining=1)
        first = RideBookingFactory(driver=subscription.driver)
        second = RideBookingFactory(driver=subscription.driver)

        result = ArrivalCreditGate.confirm_arrival(first.id, subscription.driver_id, NEAR)
        with pytest.raises(NoCreditsRemaining):
            ArrivalCreditGate.confirm_arrival(second.id, subscription.driver_id, NEAR)

        assert result.rides_remaining == 0
        assert reload(DriverSubscription, subscription.pk).rides_remaining == 0

    def test_only_assigned_driver(self, booking):
        other = DriverSubscriptionFactory()

        with pytest.raises(NotAuthorized):
            ArrivalCreditGate.confirm_arrival(booking.id, other.driver_id, NEAR)

        assert reload(DriverSubscription, other.pk).rides_remaining == 30

    def test_booking_without_driver(self, subscription):
        booking = RideBookingFactory(driver=None, status=RideStatus.REQUESTED)

        with pytest.raises(NotAuthorized):
            ArrivalCreditGate.confirm_arrival(booking.id, subscription.driver_id, NEAR)

    @pytest.mark.parametrize("ride_status", [RideStatus.CANCELLED, RideStatus.COMPLETED])
    def test_inactive_booking(self, subscription, ride_status):
        booking = RideBookingFactory(driver=subscription.driver, status=ride_status)

        with pytest.raises(ConflictError) as exc_info:
            ArrivalCreditGate.confirm_arrival(booking.id, subscription.driver_id, NEAR)

        assert exc_info.value.error_code == "BOOKING_NOT_ACTIVE"
        assert reload(DriverSubscription, subscription.pk).rides_remaining == 2

    def test_unknown_booking(self, subscription):
        with pytest.raises(NotFoundError) as exc_info:
            ArrivalCreditGate.confirm_arrival(uuid.uuid4(), subscription.driver_id, NEAR)

        assert exc_info.value.error_code == "BOOKING_NOT_FOUND"

    def test_malformed_position(self, booking, subscription):
        with pytest.raises(ValidationError):
            ArrivalCreditGate.confirm_arrival(booking.id, subscription.driver_id, {"lat": 1})
