"""Service functions for the estimates app."""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from estimates import pricing
from estimates.models import Estimate, FinancingPlan, FollowUpEvent
from fieldservice.client import FieldServiceError, get_client
from notifications.models import Notification
from notifications.services import create_notification

logger = logging.getLogger("pipeline")

OVERRIDE_STATUSES = (Estimate.Status.WON, Estimate.Status.LOST, Estimate.Status.ACTIVE)
AUTO_DECLINE_STATUSES = (Estimate.Status.ACTIVE, Estimate.Status.SNOOZED)


# ---------------------------------------------------------------------------
# Quote builder
# ---------------------------------------------------------------------------

def summarize_tiers(tiers, tax_rate=None, financing_plan=None):
    """Totals, cost and margin for each tier of a draft quote.

    Parameters
    ----------
    tiers : list of dict
        ``{"tier_number": int, "items": [...]}`` where each item has
        ``quantity``, ``unit_price``, optional ``cost``, ``is_addon`` and
        ``is_selected``.  Only selected add-ons are counted.
    tax_rate : Decimal, optional
        Fraction applied to the subtotal; ``None`` means untaxed.
    financing_plan : FinancingPlan, optional
        Plan used for the monthly figure (the default plan when omitted).

    Returns
    -------
    list of dict
        One summary per tier in input order.
    """
    if financing_plan is None:
        financing_plan = FinancingPlan.objects.filter(is_active=True, is_default=True).first()

    summaries = []
    for tier in tiers:
        tier_number = tier["tier_number"]
        items = []
        selected_ids = []
        for index, raw in enumerate(tier.get("items", [])):
            quantity = pricing.to_decimal(raw.get("quantity", 1))
            item = pricing.PricedItem(
                id=str(index),
                option_group=tier_number,
                line_total=pricing.round_cents(pricing.to_decimal(raw["unit_price"]) * quantity),
                is_addon=bool(raw.get("is_addon", False)),
                cost=pricing.to_decimal(raw.get("cost")),
                quantity=quantity,
            )
            items.append(item)
            if item.is_addon and raw.get("is_selected", False):
                selected_ids.append(item.id)

        totals = pricing.compute_totals(items, tier_number, selected_ids, tax_rate=tax_rate)
        cost = pricing.selection_cost(items, tier_number, selected_ids)
        summary = {
            "tier_number": tier_number,
            "tier_subtotal": totals.tier_subtotal,
            "addon_total": totals.addon_total,
            "subtotal": totals.subtotal,
            "tax_amount": totals.tax_amount,
            "total": totals.total,
            "cost": cost,
            "margin_percent": pricing.margin_percent(totals.total, cost),
            "monthly_payment": None,
        }
        if financing_plan is not None:
            summary["monthly_payment"] = financing_plan.quote(totals.total).monthly
        summaries.append(summary)
    return summaries


def quote_selection(estimate, tier, selected_addon_ids=(), plans=None):
    """Live totals for a customer's selection and the monthly payment under each active plan."""
    line_items = list(estimate.line_items.all())
    totals = pricing.compute_totals(line_items, tier, selected_addon_ids, tax_rate=estimate.tax_rate)
    if plans is None:
        plans = FinancingPlan.objects.filter(is_active=True)
    options = []
    for plan in plans:
        quote = plan.quote(totals.total)
        options.append({
            "id": str(plan.pk),
            "plan_code": plan.plan_code,
            "label": plan.label,
            "months": quote.months,
            "fee_pct": quote.fee_pct,
            "financed": quote.financed,
            "monthly": quote.monthly,
            "is_default": plan.is_default,
        })
    return totals, options


# ---------------------------------------------------------------------------
# Staff actions
# ---------------------------------------------------------------------------

@transaction.atomic
def override_status(estimate, status, actor=None):
    """Manually move an open estimate to won, lost or active.

    Closing it (won or lost) skips every pending follow-up touch.
    Signed estimates cannot be overridden.
    """
    if status not in OVERRIDE_STATUSES:
        raise ValueError("Status must be won, lost, or active.")

    estimate = Estimate.objects.select_for_update().get(pk=estimate.pk)
    if estimate.is_signed:
        raise ValueError("A signed estimate cannot change status.")

    estimate.status = status
    estimate.save(update_fields=["status", "updated_at"])

    if status in (Estimate.Status.WON, Estimate.Status.LOST):
        FollowUpEvent.objects.filter(
            estimate=estimate,
            status__in=(*FollowUpEvent.PENDING_STATUSES, FollowUpEvent.Status.SNOOZED),
        ).update(status=FollowUpEvent.Status.SKIPPED)

    logger.info(
        "Estimate %s status set to %s by %s",
        estimate.estimate_number, status, getattr(actor, "email", "system"),
    )
    return estimate


@transaction.atomic
def snooze_estimate(estimate, until, note, actor=None):
    """Pause follow-up on an estimate until *until*."""
    note = (note or "").strip()
    if not until or not note:
        raise ValueError("Both snooze_until and snooze_note are required.")

    estimate = Estimate.objects.select_for_update().get(pk=estimate.pk)
    if estimate.is_signed or estimate.status not in Estimate.OPEN_STATUSES:
        raise ValueError("Only open estimates can be snoozed.")

    estimate.status = Estimate.Status.SNOOZED
    estimate.snooze_until = until
    estimate.snooze_note = note
    estimate.save(update_fields=["status", "snooze_until", "snooze_note", "updated_at"])

    FollowUpEvent.objects.filter(
        estimate=estimate,
        status__in=FollowUpEvent.PENDING_STATUSES,
    ).update(status=FollowUpEvent.Status.SNOOZED)

    logger.info(
        "Estimate %s snoozed until %s by %s",
        estimate.estimate_number, until, getattr(actor, "email", "system"),
    )
    return estimate


# ---------------------------------------------------------------------------
# Daily jobs
# ---------------------------------------------------------------------------

def _pending_option_ids(estimate):
    ids = []
    for option_id in estimate.line_items.filter(is_addon=False).exclude(hcp_option_id="").values_list("hcp_option_id", flat=True):
        if option_id not in ids:
            ids.append(option_id)
    return ids


def auto_decline_expired(today=None):
    """Close open estimates whose auto-decline date has arrived.

    Their field service options are declined on a best-effort basis and
    the assignee is notified.  Returns ``{"declined": n, "errors": n}``.
    """
    today = today or timezone.localdate()
    results = {"declined": 0, "errors": 0}
    expired = (
        Estimate.objects
        .filter(
            status__in=AUTO_DECLINE_STATUSES,
            signed_at__isnull=True,
            auto_decline_date__lte=today,
        )
        .select_related("assigned_to")
    )

    client = None
    for estimate in expired:
        try:
            option_ids = _pending_option_ids(estimate) if estimate.hcp_estimate_id else []
            if option_ids:
                try:
                    client = client or get_client()
                    client.decline_options(option_ids)
                except FieldServiceError:
                    logger.exception("Field service decline failed for estimate %s.", estimate.estimate_number)

            with transaction.atomic():
                updated = Estimate.objects.filter(
                    pk=estimate.pk,
                    status__in=AUTO_DECLINE_STATUSES,
                    signed_at__isnull=True,
                ).update(status=Estimate.Status.LOST, updated_at=timezone.now())
                if updated and estimate.assigned_to_id:
                    create_notification(
                        estimate.assigned_to,
                        Notification.Type.ESTIMATE_DECLINED,
                        f"Estimate {estimate.estimate_number} auto-declined: passed the auto-decline date.",
                        estimate=estimate,
                    )
            if updated:
                results["declined"] += 1
        except Exception:
            logger.exception("Error auto-declining estimate %s.", estimate.estimate_number)
            results["errors"] += 1

    logger.info("auto_decline_expired: %(declined)d declined, %(errors)d errors.", results)
    return results


def warn_declining_soon(today=None, warning_days=None):
    """Notify assignees once when an estimate will auto-decline within the warning window."""
    today = today or timezone.localdate()
    if warning_days is None:
        warning_days = getattr(settings, "DECLINING_SOON_WARNING_DAYS", 3)
    horizon = today + timedelta(days=warning_days)

    already_warned = Notification.objects.filter(
        notification_type=Notification.Type.DECLINING_SOON,
    ).values("estimate_id")
    candidates = (
        Estimate.objects
        .filter(
            status__in=AUTO_DECLINE_STATUSES,
            signed_at__isnull=True,
            assigned_to__isnull=False,
            auto_decline_date__gt=today,
            auto_decline_date__lte=horizon,
        )
        .exclude(pk__in=already_warned)
        .select_related("assigned_to", "customer")
    )

    warned = 0
    for estimate in candidates:
        customer_name = estimate.customer.name if estimate.customer else "Customer"
        days_left = (estimate.auto_decline_date - today).days
        try:
            create_notification(
                estimate.assigned_to,
                Notification.Type.DECLINING_SOON,
                f"Estimate for {customer_name} will auto-decline in {days_left} day(s).",
                estimate=estimate,
            )
            warned += 1
        except Exception:
            logger.exception("Error sending declining-soon warning for estimate %s.", estimate.estimate_number)

    logger.info("warn_declining_soon: %d warnings sent.", warned)
    return warned
