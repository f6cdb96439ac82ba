"""Admin configuration for the notifications app."""
from django.contrib import admin
from django.utils import timezone

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Admin for the Notification model."""

    list_display = (
        "notification_type",
        "user",
        "estimate",
        "is_read",
        "created_at",
    )
    list_filter = ("notification_type", "is_read", "created_at")
    search_fields = ("message", "user__email", "estimate__estimate_number")
    readonly_fields = ("id", "created_at", "updated_at", "read_at")
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ("mark_selected_as_read", "mark_selected_as_unread")
    list_select_related = ("user", "estimate")

    @admin.action(description="Mark selected as read")
    def mark_selected_as_read(self, request, queryset):
        queryset.update(is_read=True, read_at=timezone.now())

    @admin.action(description="Mark selected as unread")
    def mark_selected_as_unread(self, request, queryset):
        queryset.update(is_read=False, read_at=None)
