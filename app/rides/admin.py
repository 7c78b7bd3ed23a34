from django.contrib import admin

from rides.models import DriverSubscription, RideBooking


@admin.register(DriverSubscription)
class DriverSubscriptionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "driver",
        "plan_name",
        "rides_remaining",
        "rides_used",
        "max_rides_per_day",
        "is_active",
        "created_at",
    ]
    list_filter = ["is_active", "plan_name"]
    search_fields = ["id", "driver__email", "plan_name"]
    raw_id_fields = ["driver"]
    # Consumed by the arrival gate only
    readonly_fields = ["id", "rides_used", "created_at", "updated_at"]
    ordering = ["-created_at"]


@admin.register(RideBooking)
class RideBookingAdmin(admin.ModelAdmin):
    list_display = ["id", "client", "driver", "status", "arrived_at", "created_at"]
    list_filter = ["status"]
    search_fields = ["id", "client__email", "driver__email", "pickup_address"]
    raw_id_fields = ["client", "driver"]
    readonly_fields = ["id", "arrived_at", "arrival_distance_meters", "created_at", "updated_at"]
    ordering = ["-created_at"]
