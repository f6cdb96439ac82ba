from datetime import timedelta

import pytest
from django.core import mail
from django.core.signals import request_finished
from django.db import DatabaseError, close_old_connections, connection
from django.test.utils import CaptureQueriesContext
from django.utils import timezone
from rest_framework.test import APIRequestFactory

from api.v1.proposal_views import ProposalSignAPIView
from core.http import DeferredResponse
from estimates.models import Estimate
from notifications.models import Notification
from proposals.fanout import dispatch_post_acceptance


@pytest.mark.django_db
def test_sign_returns_ok_with_document_link(api_client, sign_url, sign_payload, estimate, field_service, admin_user):
    response = api_client.post(sign_url, sign_payload, format="json", HTTP_X_FORWARDED_FOR="203.0.113.9, 10.0.0.1")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["proposal_pdf_url"].startswith("http://testserver/api/v1/documents/")
    assert "no-store" in response["Cache-Control"]
    assert response["Referrer-Policy"] == "no-referrer"
    assert response["X-Robots-Tag"] == "noindex, nofollow"

    estimate.refresh_from_db()
    assert estimate.status == Estimate.Status.WON
    assert estimate.signed_ip == "203.0.113.9"
    assert estimate.proposal_pdf_url == body["proposal_pdf_url"]


@pytest.mark.django_db
def test_sign_triggers_post_acceptance_work(api_client, sign_url, sign_payload, field_service, admin_user):
    api_client.post(sign_url, sign_payload, format="json")

    assert len(mail.outbox) == 1
    assert field_service.call_names == ["approve", "decline", "attachment", "note"]
    assert Notification.objects.filter(notification_type=Notification.Type.ESTIMATE_APPROVED).count() == 2


@pytest.mark.django_db
def test_signed_document_link_serves_the_pdf(api_client, sign_url, sign_payload, field_service):
    document_url = api_client.post(sign_url, sign_payload, format="json").json()["proposal_pdf_url"]

    response = api_client.get(document_url.replace("http://testserver", ""))

    assert response.status_code == 200
    assert response["Content-Type"] == "application/pdf"
    assert b"".join(response.streaming_content) == b"%PDF-1.4 signed proposal"


@pytest.mark.django_db
def test_second_signature_is_rejected(api_client, sign_url, sign_payload, field_service):
    assert api_client.post(sign_url, sign_payload, format="json").status_code == 200

    response = api_client.post(sign_url, sign_payload, format="json")

    assert response.status_code == 409
    assert response.json() == {"error": "This proposal has already been signed"}


@pytest.mark.django_db
def test_unknown_token_is_404(api_client, sign_payload):
    response = api_client.post("/api/v1/proposals/nope/sign/", sign_payload, format="json")

    assert response.status_code == 404
    assert response.json() == {"error": "Invalid proposal token"}


@pytest.mark.django_db
def test_expired_proposal_is_410_even_with_valid_payload(api_client, sign_url, sign_payload, estimate):
    Estimate.objects.filter(pk=estimate.pk).update(auto_decline_date=timezone.localdate() - timedelta(days=1))

    response = api_client.post(sign_url, sign_payload, format="json")

    assert response.status_code == 410
    assert response.json() == {"error": "This proposal has expired"}


@pytest.mark.django_db
def test_lost_proposal_is_410(api_client, sign_url, sign_payload, estimate):
    Estimate.objects.filter(pk=estimate.pk).update(status=Estimate.Status.LOST)

    response = api_client.post(sign_url, sign_payload, format="json")

    assert response.status_code == 410
    assert response.json() == {"error": "This proposal is no longer available"}


@pytest.mark.django_db
def test_bad_signature_is_rejected_before_line_items_are_read(api_client, sign_url, sign_payload):
    sign_payload["signature_data"] = "not-an-image"

    with CaptureQueriesContext(connection) as queries:
        response = api_client.post(sign_url, sign_payload, format="json")

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Signature must be an image data URL"
    assert "signature_data" in body["errors"]
    assert not any("estimatelineitem" in query["sql"] for query in queries.captured_queries)


@pytest.mark.django_db
def test_malformed_json_is_400(api_client, sign_url):
    response = api_client.post(sign_url, "{not json", content_type="application/json")

    assert response.status_code == 400


@pytest.mark.django_db
def test_database_failure_is_500(api_client, sign_url, sign_payload, estimate, monkeypatch):
    def broken(*args, **kwargs):
        raise DatabaseError("connection lost")

    monkeypatch.setattr("proposals.services._record_signature", broken)

    response = api_client.post(sign_url, sign_payload, format="json")

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to record signature. Please try again."}
    estimate.refresh_from_db()
    assert estimate.signed_at is None


@pytest.mark.django_db
def test_pdf_failure_still_accepts_with_null_link(api_client, sign_url, sign_payload, field_service, monkeypatch):
    def explode(template_name, context):
        raise RuntimeError("renderer crashed")

    monkeypatch.setattr("proposals.documents.render_pdf_bytes", explode)

    response = api_client.post(sign_url, sign_payload, format="json")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "proposal_pdf_url": None}
    assert "attachment" not in field_service.call_names
    assert mail.outbox[0].attachments == []


@pytest.mark.django_db
def test_post_acceptance_work_waits_for_response_close(estimate, sign_payload, field_service, admin_user):
    request = APIRequestFactory().post(
        f"/api/v1/proposals/{estimate.proposal_token}/sign/", sign_payload, format="json",
    )

    response = ProposalSignAPIView.as_view()(request, token=estimate.proposal_token)

    assert response.status_code == 200
    assert isinstance(response, DeferredResponse)
    assert mail.outbox == []
    assert field_service.calls == []
    assert not Notification.objects.exists()

    request_finished.disconnect(close_old_connections)
    try:
        response.close()
    finally:
        request_finished.connect(close_old_connections)

    assert len(mail.outbox) == 1
    assert field_service.call_names == ["approve", "decline", "attachment", "note"]
    assert Notification.objects.count() == 2


@pytest.mark.django_db
def test_deferred_dispatch_is_registered_once(estimate, sign_payload, field_service):
    request = APIRequestFactory().post(
        f"/api/v1/proposals/{estimate.proposal_token}/sign/", sign_payload, format="json",
    )

    response = ProposalSignAPIView.as_view()(request, token=estimate.proposal_token)

    [(callback, args, kwargs)] = response._deferred
    assert callback is dispatch_post_acceptance
    assert args[0].estimate_number == "EST-1001"
