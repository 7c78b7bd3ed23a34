from decimal import Decimal

from rest_framework import serializers


class ConfirmArrivalSerializer(serializers.Serializer):
    """Driver position reported by the mobile client."""

    lat = serializers.DecimalField(
        max_digits=9,
        decimal_places=6,
        min_value=Decimal("-90"),
        max_value=Decimal("90"),
    )
    lng = serializers.DecimalField(
        max_digits=9,
        decimal_places=6,
        min_value=Decimal("-180"),
        max_value=Decimal("180"),
    )


class ArrivalResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    booking_id = serializers.UUIDField()
    rides_remaining = serializers.IntegerField()
    distance_meters = serializers.FloatField()
