"""Models for the estimates app."""
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.models import TimeStampedModel
from core.verification import generate_proposal_token
from estimates import pricing

DEFAULT_TIER_NAMES = {
    1: "Standard Comfort",
    2: "Enhanced Efficiency",
    3: "Premium Performance",
}
DEFAULT_TIERS = (1, 2, 3)


# ---------------------------------------------------------------------------
# FinancingPlan
# ---------------------------------------------------------------------------

class FinancingPlan(TimeStampedModel):
    """A consumer financing offer (dealer fee + term) shown on proposals."""

    plan_code = models.CharField("plan code", max_length=50, unique=True)
    label = models.CharField("label", max_length=150)
    fee_pct = models.DecimalField(
        "dealer fee",
        max_digits=6,
        decimal_places=4,
        default=Decimal("0"),
        help_text="Fraction withheld by the lender, e.g. 0.0300 for 3%.",
    )
    months = models.PositiveSmallIntegerField("term (months)", validators=[MinValueValidator(1)])
    apr = models.DecimalField("APR", max_digits=6, decimal_places=3, default=Decimal("0"))
    is_default = models.BooleanField("default plan", default=False)
    is_active = models.BooleanField("active", default=True, db_index=True)
    display_order = models.PositiveSmallIntegerField("display order", default=0)

    class Meta:
        verbose_name = "financing plan"
        verbose_name_plural = "financing plans"
        ordering = ["display_order", "months"]
        constraints = [
            models.CheckConstraint(
                condition=Q(months__gt=0),
                name="financing_plan_months_positive",
            ),
            models.CheckConstraint(
                condition=Q(fee_pct__gte=0) & Q(fee_pct__lt=1),
                name="financing_plan_fee_in_range",
            ),
        ]

    def __str__(self):
        return self.label

    def clean(self):
        super().clean()
        try:
            pricing.validate_financing_terms(self.fee_pct, self.months)
        except pricing.PricingError as exc:
            raise ValidationError(str(exc)) from exc

    def quote(self, total):
        return pricing.financing_quote(total, self.fee_pct, self.months)


# ---------------------------------------------------------------------------
# FollowUpSequence
# ---------------------------------------------------------------------------

class FollowUpSequence(TimeStampedModel):
    """Ordered list of follow-up touches sent while an estimate is open."""

    name = models.CharField("name", max_length=150)
    is_default = models.BooleanField("default sequence", default=False)
    is_active = models.BooleanField("active", default=True)
    steps = models.JSONField(
        "steps",
        default=list,
        blank=True,
        help_text='e.g. [{"day_offset": 1, "channel": "sms", "template": "..."}]',
    )

    class Meta:
        verbose_name = "follow-up sequence"
        verbose_name_plural = "follow-up sequences"
        ordering = ["name"]

    def __str__(self):
        return self.name

    @property
    def total_steps(self):
        return len(self.steps) if isinstance(self.steps, list) else 0


# ---------------------------------------------------------------------------
# Estimate
# ---------------------------------------------------------------------------

class Estimate(TimeStampedModel):
    """A tiered HVAC proposal sent to a customer."""

    class Status(models.TextChoices):
        SENT = "sent", "Sent"
        ACTIVE = "active", "Active"
        SNOOZED = "snoozed", "Snoozed"
        WON = "won", "Won"
        LOST = "lost", "Lost"
        DORMANT = "dormant", "Dormant"

    class PaymentSchedule(models.TextChoices):
        STANDARD = "standard", "Standard (50/50)"
        LARGE_JOB = "large_job", "Large job (50/25/25)"

    UNAVAILABLE_STATUSES = (Status.LOST, Status.DORMANT)
    OPEN_STATUSES = (Status.SENT, Status.ACTIVE, Status.SNOOZED)

    estimate_number = models.CharField("estimate number", max_length=50, unique=True)
    customer = models.ForeignKey(
        "customers.Customer",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="estimates",
        verbose_name="customer",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_estimates",
        verbose_name="comfort pro",
    )
    status = models.CharField(
        "status",
        max_length=20,
        choices=Status.choices,
        default=Status.SENT,
        db_index=True,
    )
    hcp_estimate_id = models.CharField("field service estimate id", max_length=100, blank=True, default="")
    proposal_token = models.CharField(
        "proposal token",
        max_length=64,
        unique=True,
        default=generate_proposal_token,
        editable=False,
    )

    # Money (recorded at acceptance)
    tax_rate = models.DecimalField(
        "tax rate",
        max_digits=6,
        decimal_places=5,
        null=True,
        blank=True,
        help_text="Fraction, e.g. 0.09200. Leave empty when the proposal is untaxed.",
    )
    subtotal = models.DecimalField("subtotal", max_digits=12, decimal_places=2, null=True, blank=True)
    tax_amount = models.DecimalField("tax amount", max_digits=12, decimal_places=2, null=True, blank=True)
    total_amount = models.DecimalField("total", max_digits=12, decimal_places=2, null=True, blank=True)
    payment_schedule_type = models.CharField(
        "payment schedule",
        max_length=20,
        choices=PaymentSchedule.choices,
        default=PaymentSchedule.STANDARD,
    )

    # Presentation
    tier_metadata = models.JSONField(
        "tier metadata",
        default=list,
        blank=True,
        help_text='e.g. [{"tier_number": 1, "tier_name": "Good", "tagline": "", "feature_bullets": [], "is_recommended": false}]',
    )

    # Lifecycle
    sent_date = models.DateField("sent on", null=True, blank=True)
    auto_decline_date = models.DateField("auto-decline on", null=True, blank=True, db_index=True)
    snooze_until = models.DateTimeField("snoozed until", null=True, blank=True)
    snooze_note = models.TextField("snooze note", blank=True, default="")
    sequence = models.ForeignKey(
        FollowUpSequence,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="estimates",
        verbose_name="follow-up sequence",
    )
    sequence_step_index = models.PositiveIntegerField("sequence step", default=0)

    # Acceptance
    selected_tier = models.PositiveSmallIntegerField("selected tier", null=True, blank=True)
    selected_financing_plan = models.ForeignKey(
        FinancingPlan,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="estimates",
        verbose_name="selected financing plan",
    )
    signed_at = models.DateTimeField("signed at", null=True, blank=True)
    signed_name = models.CharField("signed by", max_length=200, blank=True, default="")
    signature_data = models.TextField("signature image", blank=True, default="")
    signed_ip = models.CharField("signed from", max_length=64, blank=True, default="")
    proposal_pdf_url = models.TextField("signed proposal link", blank=True, default="")

    class Meta:
        verbose_name = "estimate"
        verbose_name_plural = "estimates"
        ordering = ["-created_at"]

    def __str__(self):
        return self.estimate_number

    @property
    def is_signed(self):
        return self.signed_at is not None

    def is_expired(self, today=None):
        """True once the auto-decline date has arrived."""
        if self.auto_decline_date is None:
            return False
        today = today or timezone.localdate()
        return self.auto_decline_date <= today

    @property
    def is_unavailable(self):
        return self.status in self.UNAVAILABLE_STATUSES

    def offered_tiers(self):
        """Tier numbers presented to the customer."""
        tiers = [
            entry.get("tier_number")
            for entry in self.tier_metadata or []
            if isinstance(entry, dict) and isinstance(entry.get("tier_number"), int)
        ]
        return tuple(sorted(set(tiers))) or DEFAULT_TIERS

    def tier_name(self, tier):
        for entry in self.tier_metadata or []:
            if isinstance(entry, dict) and entry.get("tier_number") == tier and entry.get("tier_name"):
                return entry["tier_name"]
        return DEFAULT_TIER_NAMES.get(tier, f"Option {tier}")


# ---------------------------------------------------------------------------
# EstimateLineItem
# ---------------------------------------------------------------------------

class EstimateLineItem(TimeStampedModel):
    """A priced line inside one tier (or an optional add-on)."""

    estimate = models.ForeignKey(
        Estimate,
        on_delete=models.CASCADE,
        related_name="line_items",
        verbose_name="estimate",
    )
    option_group = models.PositiveSmallIntegerField("tier", db_index=True)
    display_name = models.CharField("name", max_length=255)
    spec_line = models.CharField("spec line", max_length=255, blank=True, default="")
    description = models.TextField("description", blank=True, default="")
    quantity = models.DecimalField("quantity", max_digits=10, decimal_places=2, default=Decimal("1"))
    unit_price = models.DecimalField("unit price", max_digits=12, decimal_places=2)
    cost = models.DecimalField(
        "unit cost",
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Internal cost used for margin reporting.",
    )
    line_total = models.DecimalField("line total", max_digits=14, decimal_places=2, default=Decimal("0.00"))
    is_addon = models.BooleanField("add-on", default=False)
    is_selected = models.BooleanField("selected", default=False)
    sort_order = models.PositiveIntegerField("sort order", default=0)
    hcp_option_id = models.CharField("field service option id", max_length=100, blank=True, default="")

    class Meta:
        verbose_name = "estimate line item"
        verbose_name_plural = "estimate line items"
        ordering = ["option_group", "sort_order", "created_at"]

    def __str__(self):
        return f"{self.display_name} (tier {self.option_group})"

    def save(self, *args, **kwargs):
        self.line_total = pricing.round_cents(pricing.to_decimal(self.unit_price) * pricing.to_decimal(self.quantity))
        super().save(*args, **kwargs)


# ---------------------------------------------------------------------------
# FollowUpEvent
# ---------------------------------------------------------------------------

class FollowUpEvent(TimeStampedModel):
    """One scheduled or sent touch of a follow-up sequence."""

    class Channel(models.TextChoices):
        EMAIL = "email", "Email"
        SMS = "sms", "SMS"
        CALL = "call", "Call"

    class Status(models.TextChoices):
        SCHEDULED = "scheduled", "Scheduled"
        PENDING_REVIEW = "pending_review", "Pending review"
        SENT = "sent", "Sent"
        COMPLETED = "completed", "Completed"
        SNOOZED = "snoozed", "Snoozed"
        SKIPPED = "skipped", "Skipped"

    PENDING_STATUSES = (Status.SCHEDULED, Status.PENDING_REVIEW)

    estimate = models.ForeignKey(
        Estimate,
        on_delete=models.CASCADE,
        related_name="follow_up_events",
        verbose_name="estimate",
    )
    sequence_step_index = models.PositiveIntegerField("step")
    channel = models.CharField("channel", max_length=10, choices=Channel.choices, default=Channel.EMAIL)
    status = models.CharField(
        "status",
        max_length=20,
        choices=Status.choices,
        default=Status.SCHEDULED,
        db_index=True,
    )
    scheduled_at = models.DateTimeField("scheduled for", null=True, blank=True)
    sent_at = models.DateTimeField("sent at", null=True, blank=True)
    content = models.TextField("content", blank=True, default="")

    class Meta:
        verbose_name = "follow-up event"
        verbose_name_plural = "follow-up events"
        ordering = ["estimate", "sequence_step_index"]

    def __str__(self):
        return f"{self.estimate} step {self.sequence_step_index} ({self.status})"
