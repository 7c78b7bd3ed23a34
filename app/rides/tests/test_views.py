"""
Tests for the rides API views.
"""

import uuid

import pytest
from rest_framework import status
from rest_framework.test import APIClient

from authentication.tests.factories import UserFactory
from rides.models import DriverSubscription
from rides.tests.factories import DriverSubscriptionFactory, RideBookingFactory

NEAR = {"lat": "-4.324500", "lng": "15.322200"}
FAR = {"lat": "-4.335000", "lng": "15.322200"}


def arrival_url(booking_id) -> str:
    return f"/api/v1/rides/bookings/{booking_id}/confirm-arrival/"


def client_for(user) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def subscription(db):
    return DriverSubscriptionFactory(rides_remaining=1)


@pytest.fixture
def booking(subscription):
    return RideBookingFactory(driver=subscription.driver)


@pytest.mark.django_db
class TestConfirmArrivalEndpoint:
    def test_driver_confirms_arrival(self, booking, subscription):
        response = client_for(subscription.driver).post(
            arrival_url(booking.id), NEAR, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["success"] is True
        assert response.data["rides_remaining"] == 0
        assert str(response.data["booking_id"]) == str(booking.id)

    def test_second_confirmation_conflicts(self, booking, subscription):
        client = client_for(subscription.driver)
        client.post(arrival_url(booking.id), NEAR, format="json")

        response = client.post(arrival_url(booking.id), NEAR, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "ARRIVAL_ALREADY_CONFIRMED"

    def test_out_of_range(self, booking, subscription):
        response = client_for(subscription.driver).post(
            arrival_url(booking.id), FAR, format="json"
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.data["error_code"] == "OUT_OF_RANGE"
        assert DriverSubscription.objects.get(pk=subscription.pk).rides_remaining == 1

    def test_other_user_forbidden(self, booking):
        response = client_for(UserFactory()).post(arrival_url(booking.id), NEAR, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unknown_booking(self, subscription):
        response = client_for(subscription.driver).post(
            arrival_url(uuid.uuid4()), NEAR, format="json"
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "BOOKING_NOT_FOUND"

    def test_invalid_position(self, booking, subscription):
        response = client_for(subscription.driver).post(
            arrival_url(booking.id), {"lat": "95", "lng": "15"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_requires_authentication(self, booking):
        response = APIClient().post(arrival_url(booking.id), NEAR, format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
