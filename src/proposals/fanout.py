"""Post-acceptance side effects.

Each task receives the :class:`~proposals.context.PostSignContext` and is
run through :func:`run_task`, which catches and logs any failure so one
broken integration never affects the others.  Tasks return a short
outcome string that is logged with the task name.
"""
from __future__ import annotations

import logging

from django.conf import settings
from django.utils import timezone

from accounts.models import User
from core.company import get_company_info
from core.email import send_branded_email
from estimates.models import Estimate, FollowUpEvent, FollowUpSequence
from fieldservice.client import FieldServiceError, get_client
from notifications.models import Notification
from notifications.services import notify_users
from proposals.documents import attachment_filename
from proposals.engagement import record_event
from proposals.models import ProposalEngagement

logger = logging.getLogger("pipeline")

OK = "ok"
SKIPPED = "skipped"
FAILED = "failed"


def _signed_on(context) -> str:
    signed_at = timezone.localtime(context.signed_at)
    return f"{signed_at:%B} {signed_at.day}, {signed_at.year}"


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

def record_signed_engagement(context):
    event = record_event(context.estimate_id, ProposalEngagement.EventType.SIGNED, option_group=context.selected_tier)
    return OK if event is not None else FAILED


def sync_field_service(context):
    """Mirror the decision on the field service platform.

    Approve the accepted tier's option, decline the other tiers' options,
    attach the signed document and leave a note.  The steps run in that
    order and each one is isolated from the others.
    """
    if not context.hcp_estimate_id:
        return SKIPPED

    option_id = context.selected_option_id
    if not option_id:
        message = (
            f"No field service option id on tier {context.selected_tier} "
            f"of estimate {context.estimate_number}"
        )
        if getattr(settings, "FIELD_SERVICE_REQUIRE_OPTION", False):
            raise FieldServiceError(message)
        logger.warning("%s; skipping field service sync.", message)
        return SKIPPED

    client = get_client()
    steps = [
        ("approve", lambda: client.approve_option(option_id)),
    ]
    if context.other_option_ids:
        steps.append(("decline", lambda: client.decline_options(context.other_option_ids)))
    if context.pdf_bytes:
        steps.append((
            "attachment",
            lambda: client.upload_option_attachment(
                context.hcp_estimate_id,
                option_id,
                context.pdf_bytes,
                attachment_filename(context.estimate_number),
            ),
        ))
    steps.append((
        "note",
        lambda: client.add_option_note(
            context.hcp_estimate_id,
            option_id,
            f"Proposal signed by {context.signed_name} on {_signed_on(context)} via online proposal",
        ),
    ))

    failed = []
    for name, step in steps:
        try:
            step()
        except Exception:
            failed.append(name)
            logger.exception(
                "Field service %s failed for estimate %s (option %s).",
                name, context.estimate_number, option_id,
            )
    if failed:
        return f"{FAILED}: {', '.join(failed)}"
    return OK


def send_customer_confirmation(context):
    if context.customer is None or not context.customer.email:
        return SKIPPED

    attachments = []
    if context.pdf_bytes:
        attachments.append((attachment_filename(context.estimate_number), context.pdf_bytes, "application/pdf"))

    send_branded_email(
        subject=f"Your proposal has been accepted - {context.estimate_number}",
        template_name="emails/proposal_accepted",
        context={
            "proposal": context,
            "customer_name": context.customer_label,
            "company": get_company_info(),
            "has_attachment": bool(attachments),
            "currency_symbol": getattr(settings, "CURRENCY_SYMBOL", "$"),
        },
        recipient_list=[context.customer.email],
        reply_to=[context.assigned_to.email] if context.assigned_to else None,
        attachments=attachments,
    )
    return OK


def notify_staff(context):
    """One ``estimate_approved`` notification for the assignee and each active admin."""
    recipients = []
    if context.assigned_to is not None:
        recipients.extend(User.objects.filter(pk=context.assigned_to.id, is_active=True))
    recipients.extend(User.objects.active_admins())

    message = (
        f"Proposal signed: {context.customer_label} accepted "
        f"{context.tier_name} - {context.estimate_number}"
    )
    created = notify_users(
        recipients,
        Notification.Type.ESTIMATE_APPROVED,
        message,
        estimate=context.estimate_id,
    )
    return f"{OK}: {len(created)} notified"


def retire_follow_up(context):
    """Skip pending follow-up touches and move the sequence pointer past the end."""
    skipped = FollowUpEvent.objects.filter(
        estimate_id=context.estimate_id,
        status__in=FollowUpEvent.PENDING_STATUSES,
    ).update(status=FollowUpEvent.Status.SKIPPED)

    if context.sequence_id:
        sequence = FollowUpSequence.objects.filter(pk=context.sequence_id).first()
        total_steps = sequence.total_steps if sequence else 0
        if total_steps > 0:
            Estimate.objects.filter(pk=context.estimate_id).update(sequence_step_index=total_steps)
    return f"{OK}: {skipped} skipped"


TASKS = {
    "engagement": record_signed_engagement,
    "field_service": sync_field_service,
    "customer_email": send_customer_confirmation,
    "notifications": notify_staff,
    "follow_up": retire_follow_up,
}


# ---------------------------------------------------------------------------
# Runners
# ---------------------------------------------------------------------------

def run_task(name, context) -> str:
    """Run one task by name; never raises."""
    task = TASKS[name]
    try:
        outcome = task(context) or OK
    except Exception as exc:
        logger.exception(
            "Post-acceptance task '%s' failed for estimate %s: %s",
            name, context.estimate_number, exc,
            extra={"estimate_number": context.estimate_number, "task": name},
        )
        return FAILED
    logger.info("Post-acceptance task '%s' for estimate %s: %s", name, context.estimate_number, outcome)
    return outcome


def run_all(context) -> dict:
    return {name: run_task(name, context) for name in TASKS}


def dispatch_post_acceptance(context) -> None:
    """Queue every post-acceptance task on Celery, one message per task.

    When the broker cannot be reached the task runs inline instead.
    """
    from proposals.tasks import run_post_acceptance_task

    payload = context.to_payload()
    for name in TASKS:
        try:
            run_post_acceptance_task.delay(name, payload)
        except Exception as exc:
            logger.warning(
                "Could not queue post-acceptance task '%s' for estimate %s (%s); running inline.",
                name, context.estimate_number, exc,
            )
            run_task(name, context)
