"""
Views for the rides API.

Endpoints:
    POST /api/v1/rides/bookings/{id}/confirm-arrival/ - Driver arrival confirmation
"""

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from drf_spectacular.utils import OpenApiResponse, extend_schema

from core.api import DomainErrorMixin
from rides.serializers import ArrivalResultSerializer, ConfirmArrivalSerializer
from rides.services import ArrivalCreditGate


class RideBookingViewSet(DomainErrorMixin, viewsets.ViewSet):
    """Driver actions on a booking."""

    permission_classes = [IsAuthenticated]
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    @extend_schema(
        operation_id="confirm_ride_arrival",
        summary="Confirm arrival at pickup",
        description=(
            "The assigned driver confirms arrival. Accepted only near the pickup "
            "point and only once per booking; consumes one ride credit."
        ),
        request=ConfirmArrivalSerializer,
        responses={
            200: ArrivalResultSerializer,
            403: OpenApiResponse(description="Not the assigned driver"),
            409: OpenApiResponse(description="Arrival already confirmed"),
            422: OpenApiResponse(description="Out of range or no credits left"),
        },
        tags=["Rides"],
    )
    @action(detail=True, methods=["post"], url_path="confirm-arrival")
    def confirm_arrival(self, request, pk=None):
        serializer = ConfirmArrivalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ArrivalCreditGate.confirm_arrival(
            pk,
            driver_id=request.user.id,
            position=serializer.validated_data,
        )
        return Response(ArrivalResultSerializer(result.to_dict()).data)
