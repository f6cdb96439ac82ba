"""Serializers for the staff-facing estimate endpoints."""
from rest_framework import serializers

from estimates import pricing
from estimates.models import Estimate, EstimateLineItem, FinancingPlan
from notifications.models import Notification


class EstimateLineItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = EstimateLineItem
        fields = [
            'id', 'option_group', 'display_name', 'spec_line', 'description',
            'quantity', 'unit_price', 'cost', 'line_total',
            'is_addon', 'is_selected', 'sort_order', 'hcp_option_id',
        ]
        read_only_fields = fields


class FinancingPlanSerializer(serializers.ModelSerializer):
    class Meta:
        model = FinancingPlan
        fields = [
            'id', 'plan_code', 'label', 'fee_pct', 'months', 'apr',
            'is_default', 'is_active', 'display_order',
        ]

    def validate(self, attrs):
        fee_pct = attrs.get('fee_pct', getattr(self.instance, 'fee_pct', 0))
        months = attrs.get('months', getattr(self.instance, 'months', None))
        try:
            pricing.validate_financing_terms(fee_pct, months)
        except pricing.PricingError as exc:
            raise serializers.ValidationError(str(exc)) from exc
        return attrs


class EstimateSerializer(serializers.ModelSerializer):
    """Read serializer for Estimate with nested line items."""

    line_items = EstimateLineItemSerializer(many=True, read_only=True)
    customer_name = serializers.CharField(source='customer.name', read_only=True, default=None)
    assigned_to_name = serializers.SerializerMethodField()
    is_expired = serializers.SerializerMethodField()
    proposal_url = serializers.SerializerMethodField()

    class Meta:
        model = Estimate
        fields = [
            'id', 'estimate_number', 'status',
            'customer', 'customer_name', 'assigned_to', 'assigned_to_name',
            'hcp_estimate_id', 'proposal_url',
            'tax_rate', 'subtotal', 'tax_amount', 'total_amount',
            'payment_schedule_type', 'tier_metadata',
            'sent_date', 'auto_decline_date', 'is_expired',
            'snooze_until', 'snooze_note', 'sequence', 'sequence_step_index',
            'selected_tier', 'selected_financing_plan',
            'signed_at', 'signed_name', 'proposal_pdf_url',
            'line_items', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_assigned_to_name(self, obj):
        if obj.assigned_to:
            return obj.assigned_to.get_full_name()
        return None

    def get_is_expired(self, obj):
        return obj.is_expired()

    def get_proposal_url(self, obj):
        from core.verification import build_proposal_url
        return build_proposal_url(obj.proposal_token)


class StatusOverrideSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['won', 'lost', 'active'])


class SnoozeSerializer(serializers.Serializer):
    snooze_until = serializers.DateTimeField()
    snooze_note = serializers.CharField(max_length=2000, trim_whitespace=True)


class QuoteItemInputSerializer(serializers.Serializer):
    quantity = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    cost = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    is_addon = serializers.BooleanField(default=False)
    is_selected = serializers.BooleanField(default=False)


class QuoteTierInputSerializer(serializers.Serializer):
    tier_number = serializers.IntegerField(min_value=1)
    items = QuoteItemInputSerializer(many=True)


class QuoteTotalsSerializer(serializers.Serializer):
    """Draft quote submitted by the quote builder."""

    tax_rate = serializers.DecimalField(max_digits=6, decimal_places=5, required=False, allow_null=True, default=None)
    financing_plan_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    tiers = QuoteTierInputSerializer(many=True)

    def validate_financing_plan_id(self, value):
        if value is None:
            return None
        plan = FinancingPlan.objects.filter(pk=value, is_active=True).first()
        if plan is None:
            raise serializers.ValidationError('Unknown or inactive financing plan.')
        return plan


class NotificationSerializer(serializers.ModelSerializer):
    estimate_number = serializers.CharField(source='estimate.estimate_number', read_only=True, default=None)

    class Meta:
        model = Notification
        fields = [
            'id', 'notification_type', 'estimate', 'estimate_number',
            'message', 'is_read', 'read_at', 'created_at',
        ]
        read_only_fields = fields
