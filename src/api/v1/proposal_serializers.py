"""Serializers for the public proposal endpoints."""
from rest_framework import serializers

from proposals.models import ProposalEngagement


class EngagementEventSerializer(serializers.Serializer):
    event_type = serializers.ChoiceField(choices=ProposalEngagement.EventType.choices)
    option_group = serializers.IntegerField(min_value=1, required=False, allow_null=True, default=None)
    financing_plan = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True, default='')
    session_seconds = serializers.IntegerField(min_value=0, required=False, allow_null=True, default=None)


class QuoteSelectionSerializer(serializers.Serializer):
    selected_tier = serializers.IntegerField()
    selected_addon_ids = serializers.ListField(child=serializers.CharField(), required=False, default=list)

    def validate_selected_tier(self, value):
        offered = self.context['estimate'].offered_tiers()
        if value not in offered:
            raise serializers.ValidationError(
                f"Selected tier must be one of {', '.join(str(t) for t in offered)}"
            )
        return value
