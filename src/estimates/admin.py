"""Admin configuration for the estimates app."""
from django.contrib import admin

from estimates.models import (
    Estimate,
    EstimateLineItem,
    FinancingPlan,
    FollowUpEvent,
    FollowUpSequence,
)


class EstimateLineItemInline(admin.TabularInline):
    model = EstimateLineItem
    extra = 0
    fields = (
        "option_group",
        "display_name",
        "quantity",
        "unit_price",
        "cost",
        "line_total",
        "is_addon",
        "is_selected",
        "sort_order",
        "hcp_option_id",
    )
    readonly_fields = ("line_total",)


class FollowUpEventInline(admin.TabularInline):
    model = FollowUpEvent
    extra = 0
    fields = ("sequence_step_index", "channel", "status", "scheduled_at", "sent_at")


@admin.register(Estimate)
class EstimateAdmin(admin.ModelAdmin):
    list_display = (
        "estimate_number",
        "customer",
        "assigned_to",
        "status",
        "total_amount",
        "auto_decline_date",
        "signed_at",
    )
    list_filter = ("status", "payment_schedule_type", "assigned_to")
    search_fields = ("estimate_number", "customer__name", "customer__email", "hcp_estimate_id")
    readonly_fields = (
        "id",
        "proposal_token",
        "signed_at",
        "signed_name",
        "signed_ip",
        "signature_data",
        "proposal_pdf_url",
        "created_at",
        "updated_at",
    )
    list_select_related = ("customer", "assigned_to")
    inlines = (EstimateLineItemInline, FollowUpEventInline)
    date_hierarchy = "created_at"

    fieldsets = (
        (None, {
            "fields": (
                "id",
                "estimate_number",
                "customer",
                "assigned_to",
                "status",
                "hcp_estimate_id",
                "proposal_token",
            ),
        }),
        ("Pricing", {
            "fields": (
                "tax_rate",
                "subtotal",
                "tax_amount",
                "total_amount",
                "payment_schedule_type",
                "tier_metadata",
            ),
        }),
        ("Lifecycle", {
            "fields": (
                "sent_date",
                "auto_decline_date",
                "snooze_until",
                "snooze_note",
                "sequence",
                "sequence_step_index",
            ),
        }),
        ("Acceptance", {
            "fields": (
                "selected_tier",
                "selected_financing_plan",
                "signed_at",
                "signed_name",
                "signed_ip",
                "signature_data",
                "proposal_pdf_url",
            ),
        }),
        ("Dates", {
            "fields": (
                "created_at",
                "updated_at",
            ),
        }),
    )


@admin.register(FinancingPlan)
class FinancingPlanAdmin(admin.ModelAdmin):
    list_display = ("label", "plan_code", "fee_pct", "months", "apr", "is_default", "is_active", "display_order")
    list_filter = ("is_active", "is_default")
    search_fields = ("label", "plan_code")
    ordering = ("display_order", "months")


@admin.register(FollowUpSequence)
class FollowUpSequenceAdmin(admin.ModelAdmin):
    list_display = ("name", "is_default", "is_active", "total_steps")
    list_filter = ("is_active", "is_default")
