"""Models for the customers app."""
from django.db import models

from core.models import TimeStampedModel


class Customer(TimeStampedModel):
    """A homeowner or business receiving proposals."""

    name = models.CharField("name", max_length=200)
    email = models.EmailField("email", blank=True, default="")
    phone = models.CharField("phone", max_length=30, blank=True, default="", db_index=True)
    address = models.TextField("address", blank=True, default="")
    hcp_customer_id = models.CharField(
        "field service customer id",
        max_length=100,
        blank=True,
        default="",
        db_index=True,
    )
    is_active = models.BooleanField("active", default=True)
    notes = models.TextField("notes", blank=True, default="")

    class Meta:
        verbose_name = "customer"
        verbose_name_plural = "customers"
        ordering = ["name"]

    def __str__(self):
        return self.name or self.email or self.phone
