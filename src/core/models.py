"""Shared abstract models and key/value settings."""
import uuid

from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base with a UUID primary key and audit timestamps."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField("created at", auto_now_add=True)
    updated_at = models.DateTimeField("updated at", auto_now=True)

    class Meta:
        abstract = True


class Setting(TimeStampedModel):
    """Key/value configuration row editable from the admin (company info, terms)."""

    key = models.CharField("key", max_length=100, unique=True)
    value = models.JSONField("value", default=dict, blank=True)
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="updated by",
    )

    class Meta:
        verbose_name = "setting"
        verbose_name_plural = "settings"
        ordering = ["key"]

    def __str__(self):
        return self.key
