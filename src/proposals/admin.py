from django.contrib import admin

from proposals.models import ProposalEngagement


@admin.register(ProposalEngagement)
class ProposalEngagementAdmin(admin.ModelAdmin):
    list_display = ("estimate", "event_type", "option_group", "financing_plan", "device_type", "created_at")
    list_filter = ("event_type", "device_type", "created_at")
    search_fields = ("estimate__estimate_number",)
    readonly_fields = ("id", "created_at", "updated_at")
    date_hierarchy = "created_at"
    list_select_related = ("estimate",)
