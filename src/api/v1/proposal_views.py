"""Public, token-gated proposal endpoints."""
import logging

from django.core import signing
from django.core.files.storage import default_storage
from django.http import FileResponse, Http404
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from api.throttling import SafeScopedRateThrottle
from api.v1.proposal_serializers import EngagementEventSerializer, QuoteSelectionSerializer
from core.http import DeferredResponse, get_client_ip
from core.storage import resolve_signed_document
from estimates.services import quote_selection
from proposals import guards
from proposals.engagement import detect_device_type, record_event
from proposals.exceptions import ProposalError
from proposals.fanout import dispatch_post_acceptance
from proposals.services import accept_proposal

logger = logging.getLogger("pipeline")


def _error_response(exc):
    body = {'error': exc.message}
    if exc.errors:
        body['errors'] = exc.errors
    return Response(body, status=exc.status_code)


def _money(value):
    return None if value is None else str(value)


class PublicProposalAPIView(APIView):
    """Base for endpoints reached through the customer's proposal link."""

    authentication_classes = []
    permission_classes = [permissions.AllowAny]
    throttle_classes = [SafeScopedRateThrottle]


class ProposalSignAPIView(PublicProposalAPIView):
    """Record the customer's signature on a proposal.

    Responds as soon as the acceptance and the signed document are
    persisted; integrations, email and notifications run after the
    response has been sent.
    """

    throttle_scope = 'proposal_sign'

    def post(self, request, token):
        client_ip = get_client_ip(request)
        try:
            # The body is only parsed once the lifecycle checks have passed.
            estimate, submission = guards.evaluate(token, lambda: request.data)
            result = accept_proposal(estimate, submission, client_ip=client_ip)
        except ProposalError as exc:
            return _error_response(exc)

        response = DeferredResponse(
            {'ok': True, 'proposal_pdf_url': result.proposal_pdf_url},
            status=status.HTTP_200_OK,
        )
        response.defer(dispatch_post_acceptance, result.context)
        return response


class ProposalEngageAPIView(PublicProposalAPIView):
    """Record one engagement event from the proposal page."""

    throttle_scope = 'proposal_engage'

    def post(self, request, token):
        try:
            estimate = guards.resolve_estimate(token)
        except ProposalError as exc:
            return _error_response(exc)

        serializer = EngagementEventSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        event = record_event(
            estimate.pk,
            data['event_type'],
            option_group=data.get('option_group'),
            financing_plan=data.get('financing_plan') or '',
            session_seconds=data.get('session_seconds'),
            device_type=detect_device_type(request.META.get('HTTP_USER_AGENT', '')),
        )
        return Response({'ok': True, 'recorded': event is not None}, status=status.HTTP_202_ACCEPTED)


class ProposalQuoteAPIView(PublicProposalAPIView):
    """Live totals and financing options for a selection; nothing is stored."""

    throttle_scope = 'proposal_engage'

    def post(self, request, token):
        try:
            estimate = guards.resolve_estimate(token)
        except ProposalError as exc:
            return _error_response(exc)

        serializer = QuoteSelectionSerializer(data=request.data, context={'estimate': estimate})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        totals, options = quote_selection(estimate, data['selected_tier'], data['selected_addon_ids'])
        return Response({
            'selected_tier': data['selected_tier'],
            'tier_name': estimate.tier_name(data['selected_tier']),
            'tier_subtotal': _money(totals.tier_subtotal),
            'addon_total': _money(totals.addon_total),
            'subtotal': _money(totals.subtotal),
            'tax_amount': _money(totals.tax_amount),
            'total': _money(totals.total),
            'financing': [
                {**option, 'fee_pct': str(option['fee_pct']), 'financed': _money(option['financed']),
                 'monthly': _money(option['monthly'])}
                for option in options
            ],
        })


class SignedDocumentAPIView(APIView):
    """Serve a stored document behind a signed, time-limited link."""

    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def get(self, request, token):
        try:
            path = resolve_signed_document(token)
        except signing.SignatureExpired:
            logger.info("Expired document link used.")
            return Response({'error': 'This link has expired'}, status=status.HTTP_410_GONE)
        except signing.BadSignature:
            raise Http404('Document not found')

        if not default_storage.exists(path):
            raise Http404('Document not found')
        return FileResponse(
            default_storage.open(path, 'rb'),
            content_type='application/pdf',
            filename=path.rsplit('/', 1)[-1],
        )
