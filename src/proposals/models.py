"""Models for the proposals app."""
from django.db import models

from core.models import TimeStampedModel


class ProposalEngagement(TimeStampedModel):
    """One customer interaction with a public proposal page."""

    class EventType(models.TextChoices):
        PAGE_OPEN = "page_open", "Page opened"
        OPTION_VIEW = "option_view", "Option viewed"
        CALCULATOR_OPEN = "calculator_open", "Financing calculator opened"
        PLAN_SELECTED = "plan_selected", "Financing plan selected"
        ADDON_CHECKED = "addon_checked", "Add-on checked"
        ADDON_UNCHECKED = "addon_unchecked", "Add-on unchecked"
        SIGNATURE_STARTED = "signature_started", "Signature started"
        SIGNED = "signed", "Signed"
        SESSION_END = "session_end", "Session ended"

    class DeviceType(models.TextChoices):
        MOBILE = "mobile", "Mobile"
        TABLET = "tablet", "Tablet"
        DESKTOP = "desktop", "Desktop"

    estimate = models.ForeignKey(
        "estimates.Estimate",
        on_delete=models.CASCADE,
        related_name="engagements",
        verbose_name="estimate",
    )
    event_type = models.CharField("event", max_length=30, choices=EventType.choices, db_index=True)
    option_group = models.PositiveSmallIntegerField("tier", null=True, blank=True)
    financing_plan = models.CharField("financing plan", max_length=50, blank=True, default="")
    session_seconds = models.PositiveIntegerField("session length (s)", null=True, blank=True)
    device_type = models.CharField(
        "device",
        max_length=10,
        choices=DeviceType.choices,
        default=DeviceType.DESKTOP,
    )

    class Meta:
        verbose_name = "proposal engagement"
        verbose_name_plural = "proposal engagements"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.estimate_id} {self.event_type}"
