"""Models for the notifications app."""
from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import TimeStampedModel


class Notification(TimeStampedModel):
    """An in-app notification addressed to one staff member.

    Notifications are created by the post-acceptance fan-out and by the
    daily estimate jobs.  They are listed in the staff dashboard bell.
    """

    class Type(models.TextChoices):
        ESTIMATE_APPROVED = "estimate_approved", "Estimate approved"
        ESTIMATE_DECLINED = "estimate_declined", "Estimate declined"
        DECLINING_SOON = "declining_soon", "Estimate declining soon"
        ESTIMATE_VIEWED = "estimate_viewed", "Estimate viewed"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        verbose_name="recipient",
    )
    notification_type = models.CharField(
        "type",
        max_length=30,
        choices=Type.choices,
        db_index=True,
    )
    estimate = models.ForeignKey(
        "estimates.Estimate",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="notifications",
        verbose_name="estimate",
    )
    message = models.TextField("message")

    # Read tracking
    is_read = models.BooleanField("read", default=False)
    read_at = models.DateTimeField("read at", null=True, blank=True)

    class Meta:
        verbose_name = "notification"
        verbose_name_plural = "notifications"
        ordering = ["-created_at"]

    def __str__(self):
        return f"[{self.get_notification_type_display()}] {self.message[:60]}"

    def mark_as_read(self):
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=["is_read", "read_at", "updated_at"])
