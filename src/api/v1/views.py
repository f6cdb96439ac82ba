"""Staff-facing API views for estimates, financing plans and notifications."""
import logging

from django.db.models import Q
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from api.v1.pagination import StandardResultsSetPagination
from api.v1.permissions import IsAdmin, IsAssignedComfortProOrStaff, IsComfortProOrAdmin
from api.v1.serializers import (
    EstimateSerializer,
    FinancingPlanSerializer,
    NotificationSerializer,
    QuoteTotalsSerializer,
    SnoozeSerializer,
    StatusOverrideSerializer,
)
from estimates.models import Estimate, FinancingPlan
from estimates.services import override_status, snooze_estimate, summarize_tiers
from notifications.models import Notification
from proposals.engagement import engagement_summary

logger = logging.getLogger("pipeline")


def _money(value):
    return None if value is None else str(value)


class EstimateViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Estimates pipeline for staff.

    - list / retrieve: comfort pros see their own estimates, others see all
    - status: manual won / lost / active override (not once signed)
    - snooze: pause follow-up until a date
    - engagement: aggregated proposal page activity
    """

    serializer_class = EstimateSerializer
    queryset = Estimate.objects.select_related(
        'customer', 'assigned_to', 'selected_financing_plan',
    ).prefetch_related('line_items')
    filterset_fields = ['status', 'assigned_to', 'payment_schedule_type']
    search_fields = ['estimate_number', 'customer__name', 'customer__email', 'customer__phone']
    ordering_fields = ['created_at', 'total_amount', 'auto_decline_date', 'signed_at']
    pagination_class = StandardResultsSetPagination

    def get_permissions(self):
        if self.action == 'set_status':
            return [IsComfortProOrAdmin(), IsAssignedComfortProOrStaff()]
        return [IsAuthenticated(), IsAssignedComfortProOrStaff()]

    def get_queryset(self):
        qs = super().get_queryset()
        user = self.request.user
        if user.role == 'comfort_pro':
            qs = qs.filter(Q(assigned_to=user))
        return qs

    @action(detail=True, methods=['post'], url_path='status')
    def set_status(self, request, pk=None):
        """Override the estimate status."""
        estimate = self.get_object()
        serializer = StatusOverrideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            estimate = override_status(estimate, serializer.validated_data['status'], actor=request.user)
        except ValueError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(EstimateSerializer(estimate).data)

    @action(detail=True, methods=['post'], url_path='snooze')
    def snooze(self, request, pk=None):
        """Snooze the estimate until a given date with a note."""
        estimate = self.get_object()
        serializer = SnoozeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        until = serializer.validated_data['snooze_until']
        if until <= timezone.now():
            return Response({'detail': 'snooze_until must be in the future.'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            estimate = snooze_estimate(estimate, until, serializer.validated_data['snooze_note'], actor=request.user)
        except ValueError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(EstimateSerializer(estimate).data)

    @action(detail=True, methods=['get'], url_path='engagement')
    def engagement(self, request, pk=None):
        """Aggregated engagement for the proposal page."""
        return Response(engagement_summary(self.get_object()))


class FinancingPlanViewSet(viewsets.ModelViewSet):
    """Financing plans; anyone on staff can read, admins maintain them."""

    serializer_class = FinancingPlanSerializer
    queryset = FinancingPlan.objects.all()
    filterset_fields = ['is_active', 'is_default']
    pagination_class = None

    def get_permissions(self):
        if self.action in ('list', 'retrieve'):
            return [IsAuthenticated()]
        return [IsAdmin()]


class NotificationViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """The current user's notifications."""

    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ['notification_type', 'is_read']
    pagination_class = StandardResultsSetPagination

    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user).select_related('estimate')

    @action(detail=True, methods=['post'], url_path='read')
    def read(self, request, pk=None):
        notification = self.get_object()
        notification.mark_as_read()
        return Response(NotificationSerializer(notification).data)

    @action(detail=False, methods=['post'], url_path='read-all')
    def read_all(self, request):
        updated = self.get_queryset().filter(is_read=False).update(is_read=True, read_at=timezone.now())
        return Response({'updated': updated})


class QuoteTotalsAPIView(APIView):
    """Per-tier totals, cost and margin for a draft quote."""

    permission_classes = [IsComfortProOrAdmin]

    def post(self, request):
        serializer = QuoteTotalsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        summaries = summarize_tiers(
            data['tiers'],
            tax_rate=data.get('tax_rate'),
            financing_plan=data.get('financing_plan_id'),
        )
        return Response({
            'tiers': [
                {
                    'tier_number': summary['tier_number'],
                    **{
                        key: _money(summary[key])
                        for key in (
                            'tier_subtotal', 'addon_total', 'subtotal', 'tax_amount',
                            'total', 'cost', 'margin_percent', 'monthly_payment',
                        )
                    },
                }
                for summary in summaries
            ],
        })
