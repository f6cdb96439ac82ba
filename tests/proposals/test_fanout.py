import pytest
from django.core import mail
from django.db import DatabaseError

from estimates.models import Estimate, EstimateLineItem, FollowUpEvent
from notifications.models import Notification
from proposals import fanout, guards
from proposals.models import ProposalEngagement
from proposals.services import accept_proposal

SIGNATURE = "data:image/png;base64,AAAA"


@pytest.fixture
def accepted(estimate, line_items, financing_plan):
    estimate, submission = guards.evaluate(
        estimate.proposal_token,
        {
            "customer_name": "Jordan Miller",
            "signature_data": SIGNATURE,
            "selected_tier": 1,
            "selected_addon_ids": [str(line_items["thermostat"].pk)],
            "selected_financing_plan_id": str(financing_plan.pk),
        },
    )
    return accept_proposal(estimate, submission, client_ip="203.0.113.9").context


@pytest.mark.django_db
def test_every_task_runs_and_reports(accepted, field_service, admin_user, follow_up_events):
    outcomes = fanout.run_all(accepted)

    assert set(outcomes) == {"engagement", "field_service", "customer_email", "notifications", "follow_up"}
    assert outcomes["engagement"] == "ok"
    assert outcomes["field_service"] == "ok"
    assert outcomes["customer_email"] == "ok"
    assert outcomes["notifications"] == "ok: 2 notified"
    assert outcomes["follow_up"] == "ok: 2 skipped"


@pytest.mark.django_db
def test_signed_engagement_event_is_recorded(accepted):
    fanout.run_task("engagement", accepted)

    event = ProposalEngagement.objects.get(event_type=ProposalEngagement.EventType.SIGNED)
    assert str(event.estimate_id) == accepted.estimate_id
    assert event.option_group == 1


@pytest.mark.django_db
def test_field_service_steps_run_in_order(accepted, field_service):
    fanout.run_task("field_service", accepted)

    assert field_service.call_names == ["approve", "decline", "attachment", "note"]
    assert field_service.calls[0] == ("approve", "opt-1")
    assert field_service.calls[1] == ("decline", ["opt-2", "opt-3"])
    assert field_service.calls[2] == ("attachment", "hcp-est-1", "opt-1", "Genesis-Proposal-EST-1001-Signed.pdf")
    note = field_service.calls[3][3]
    assert note.startswith("Proposal signed by Jordan Miller on ")
    assert note.endswith(" via online proposal")


@pytest.mark.django_db
def test_field_service_step_failures_are_isolated(accepted, field_service, caplog):
    field_service.fail_on.update({"approve", "attachment"})

    outcome = fanout.run_task("field_service", accepted)

    assert field_service.call_names == ["approve", "decline", "attachment", "note"]
    assert outcome == "failed: approve, attachment"
    assert "Field service approve failed for estimate EST-1001" in caplog.text


@pytest.mark.django_db
def test_decline_list_is_deduplicated(estimate, line_items, field_service):
    EstimateLineItem.objects.create(
        estimate=estimate, option_group=3, display_name="Premium coil", unit_price=100, hcp_option_id="opt-3",
    )
    EstimateLineItem.objects.create(
        estimate=estimate, option_group=2, display_name="Shared coil", unit_price=100, hcp_option_id="opt-1",
    )
    estimate, submission = guards.evaluate(
        estimate.proposal_token,
        {"customer_name": "Jordan Miller", "signature_data": SIGNATURE, "selected_tier": 1},
    )
    context = accept_proposal(estimate, submission).context

    fanout.run_task("field_service", context)

    assert field_service.calls[0] == ("approve", "opt-1")
    assert field_service.calls[1] == ("decline", ["opt-2", "opt-3"])


@pytest.mark.django_db
def test_field_service_is_skipped_without_remote_estimate(estimate, line_items, field_service):
    Estimate.objects.filter(pk=estimate.pk).update(hcp_estimate_id="")
    estimate, submission = guards.evaluate(
        estimate.proposal_token,
        {"customer_name": "Jordan Miller", "signature_data": SIGNATURE, "selected_tier": 2},
    )
    context = accept_proposal(estimate, submission).context

    assert fanout.run_task("field_service", context) == "skipped"
    assert field_service.calls == []


@pytest.mark.django_db
def test_missing_option_id_warns_and_skips(estimate, line_items, field_service, caplog):
    EstimateLineItem.objects.filter(estimate=estimate, option_group=1).update(hcp_option_id="")
    estimate, submission = guards.evaluate(
        estimate.proposal_token,
        {"customer_name": "Jordan Miller", "signature_data": SIGNATURE, "selected_tier": 1},
    )
    context = accept_proposal(estimate, submission).context

    assert fanout.run_task("field_service", context) == "skipped"
    assert field_service.calls == []
    assert "No field service option id on tier 1" in caplog.text


@pytest.mark.django_db
def test_missing_option_id_fails_when_required(estimate, line_items, field_service, settings):
    settings.FIELD_SERVICE_REQUIRE_OPTION = True
    EstimateLineItem.objects.filter(estimate=estimate, option_group=1).update(hcp_option_id="")
    estimate, submission = guards.evaluate(
        estimate.proposal_token,
        {"customer_name": "Jordan Miller", "signature_data": SIGNATURE, "selected_tier": 1},
    )
    context = accept_proposal(estimate, submission).context

    assert fanout.run_task("field_service", context) == "failed"
    assert field_service.calls == []


@pytest.mark.django_db
def test_customer_confirmation_attaches_signed_pdf(accepted):
    fanout.run_task("customer_email", accepted)

    assert len(mail.outbox) == 1
    message = mail.outbox[0]
    assert message.to == ["jordan.miller@test.com"]
    assert message.reply_to == ["pro@test.com"]
    assert message.subject == "Your proposal has been accepted - EST-1001"
    assert "Good" in message.body
    assert "$84/month for 60 months" in message.body
    [(filename, content, mimetype)] = message.attachments
    assert filename == "Genesis-Proposal-EST-1001-Signed.pdf"
    assert content == b"%PDF-1.4 signed proposal"
    assert mimetype == "application/pdf"


@pytest.mark.django_db
def test_plain_text_confirmation_is_not_html_escaped(estimate, line_items, customer):
    customer.name = "O'Brien & Sons"
    customer.save()
    estimate, submission = guards.evaluate(
        estimate.proposal_token,
        {"customer_name": "Pat O'Brien", "signature_data": SIGNATURE, "selected_tier": 1},
    )
    context = accept_proposal(estimate, submission).context

    fanout.run_task("customer_email", context)

    message = mail.outbox[0]
    assert "Hi O'Brien & Sons," in message.body
    assert "Genesis Heating, Cooling & Refrigeration" in message.body
    assert "&amp;" not in message.body
    assert "&#x27;" not in message.body
    html_body = message.alternatives[0][0]
    assert "O&#x27;Brien &amp; Sons" in html_body


@pytest.mark.django_db
def test_customer_confirmation_skipped_without_email(estimate, line_items, customer):
    customer.email = ""
    customer.save()
    estimate, submission = guards.evaluate(
        estimate.proposal_token,
        {"customer_name": "Jordan Miller", "signature_data": SIGNATURE, "selected_tier": 1},
    )
    context = accept_proposal(estimate, submission).context

    assert fanout.run_task("customer_email", context) == "skipped"
    assert mail.outbox == []


@pytest.mark.django_db
def test_staff_notifications_go_to_assignee_and_admins(accepted, comfort_pro, admin_user, other_comfort_pro):
    fanout.run_task("notifications", accepted)

    notified = set(
        Notification.objects.filter(notification_type=Notification.Type.ESTIMATE_APPROVED)
        .values_list("user__email", flat=True)
    )
    assert notified == {comfort_pro.email, admin_user.email}
    message = Notification.objects.filter(user=admin_user).get().message
    assert message == "Proposal signed: Jordan Miller accepted Good - EST-1001"


@pytest.mark.django_db
def test_assignee_who_is_also_admin_is_notified_once(accepted, comfort_pro):
    comfort_pro.role = "admin"
    comfort_pro.save()

    fanout.run_task("notifications", accepted)

    assert Notification.objects.filter(user=comfort_pro).count() == 1


@pytest.mark.django_db
def test_follow_up_is_retired(accepted, follow_up_events):
    fanout.run_task("follow_up", accepted)

    statuses = list(
        FollowUpEvent.objects.order_by("sequence_step_index").values_list("status", flat=True)
    )
    assert statuses == [FollowUpEvent.Status.SENT, FollowUpEvent.Status.SKIPPED, FollowUpEvent.Status.SKIPPED]
    assert Estimate.objects.get(pk=accepted.estimate_id).sequence_step_index == 3


@pytest.mark.django_db
def test_one_failing_task_does_not_block_the_others(accepted, field_service, admin_user, monkeypatch, caplog):
    def broken_email(**kwargs):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr("proposals.fanout.send_branded_email", broken_email)

    outcomes = fanout.run_all(accepted)

    assert outcomes["customer_email"] == "failed"
    assert outcomes["field_service"] == "ok"
    assert Notification.objects.filter(notification_type=Notification.Type.ESTIMATE_APPROVED).exists()
    assert ProposalEngagement.objects.filter(event_type=ProposalEngagement.EventType.SIGNED).exists()
    assert "Post-acceptance task 'customer_email' failed for estimate EST-1001" in caplog.text


@pytest.mark.django_db
def test_dispatch_queues_each_task(accepted, field_service, admin_user):
    fanout.dispatch_post_acceptance(accepted)

    # Celery runs eagerly under test settings.
    assert len(mail.outbox) == 1
    assert field_service.call_names == ["approve", "decline", "attachment", "note"]
    assert Notification.objects.count() == 2


@pytest.mark.django_db
def test_dispatch_runs_inline_when_broker_is_down(accepted, field_service, monkeypatch):
    from proposals.tasks import run_post_acceptance_task

    def unreachable(*args, **kwargs):
        raise OSError("broker unreachable")

    monkeypatch.setattr(run_post_acceptance_task, "delay", unreachable)

    fanout.dispatch_post_acceptance(accepted)

    assert len(mail.outbox) == 1
    assert field_service.call_names == ["approve", "decline", "attachment", "note"]


@pytest.mark.django_db
def test_engagement_storage_failure_is_reported_not_raised(accepted, monkeypatch):
    def broken_create(**kwargs):
        raise DatabaseError("disk full")

    monkeypatch.setattr(ProposalEngagement.objects, "create", broken_create)

    assert fanout.run_task("engagement", accepted) == "failed"
