"""
Django admin configuration for notification events.
"""

from django.contrib import admin

from notifications.models import NotificationEvent


@admin.register(NotificationEvent)
class NotificationEventAdmin(admin.ModelAdmin):
    """Read-mostly view of the outbox for support staff."""

    list_display = ["id", "kind", "recipient", "status", "attempts", "created_at", "sent_at"]
    list_filter = ["kind", "status", "created_at"]
    search_fields = ["id", "recipient__email"]
    raw_id_fields = ["recipient"]
    readonly_fields = ["id", "created_at", "updated_at", "sent_at", "attempts", "last_error"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
