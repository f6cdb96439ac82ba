"""Service functions for accepting a proposal."""
import logging
from dataclasses import dataclass

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from estimates import pricing
from estimates.models import Estimate, EstimateLineItem, FinancingPlan
from proposals.context import PostSignContext
from proposals.documents import publish_signed_proposal
from proposals.exceptions import AcceptanceFailed, ProposalAlreadyAccepted
from proposals.guards import AcceptanceSubmission

logger = logging.getLogger("pipeline")


@dataclass(frozen=True)
class AcceptanceResult:
    context: PostSignContext

    @property
    def proposal_pdf_url(self):
        return self.context.proposal_pdf_url


def _reconcile_addon_selection(line_items, selected_addon_ids):
    """Bring every add-on's ``is_selected`` flag in line with the submission.

    Only add-ons whose stored flag disagrees are written, one UPDATE each.
    The in-memory items are updated as well so callers see final state.
    """
    changed = 0
    for item in line_items:
        if not item.is_addon:
            continue
        wanted = str(item.pk) in selected_addon_ids
        if item.is_selected != wanted:
            EstimateLineItem.objects.filter(pk=item.pk).update(is_selected=wanted)
            item.is_selected = wanted
            changed += 1
    return changed


def _resolve_financing_plan(plan_id):
    """Return the active plan with *plan_id*, or ``None`` when it cannot be resolved."""
    if not plan_id:
        return None
    try:
        return FinancingPlan.objects.filter(pk=plan_id, is_active=True).first()
    except (ValidationError, ValueError, TypeError):
        logger.warning("Ignoring malformed financing plan id %r.", plan_id)
        return None


def _record_signature(estimate, submission, totals, plan, signed_at, client_ip):
    """Conditionally mark the estimate as won.

    The update only matches while ``signed_at`` is still empty, so of two
    concurrent acceptances exactly one writes a row.
    """
    updated = Estimate.objects.filter(pk=estimate.pk, signed_at__isnull=True).update(
        signed_at=signed_at,
        signed_name=submission.signer_name,
        signature_data=submission.signature_data,
        signed_ip=client_ip,
        status=Estimate.Status.WON,
        selected_tier=submission.selected_tier,
        selected_financing_plan=plan,
        subtotal=totals.subtotal,
        tax_amount=totals.tax_amount,
        total_amount=totals.total,
        updated_at=signed_at,
    )
    if updated == 0:
        raise ProposalAlreadyAccepted()


def accept_proposal(estimate: Estimate, submission: AcceptanceSubmission, *, client_ip="unknown") -> AcceptanceResult:
    """Record the customer's acceptance and publish the signed document.

    Parameters
    ----------
    estimate : estimates.models.Estimate
        The estimate that passed every guard.
    submission : proposals.guards.AcceptanceSubmission
        Normalized request body.
    client_ip : str
        Best-effort client address recorded with the signature.

    Returns
    -------
    AcceptanceResult
        Wraps the post-acceptance snapshot, including the signed
        document bytes and link when they could be produced.

    Raises
    ------
    ProposalAlreadyAccepted
        A concurrent request signed the estimate first.  Add-on flag
        changes made by this request are rolled back.
    AcceptanceFailed
        The database rejected the acceptance; nothing was persisted.
    """
    line_items = list(estimate.line_items.all())
    signed_at = timezone.now()

    try:
        with transaction.atomic():
            _reconcile_addon_selection(line_items, submission.selected_addon_ids)
            totals = pricing.compute_totals(
                line_items,
                submission.selected_tier,
                submission.selected_addon_ids,
                tax_rate=estimate.tax_rate,
            )
            plan = _resolve_financing_plan(submission.financing_plan_id)
            _record_signature(estimate, submission, totals, plan, signed_at, client_ip)
    except ProposalAlreadyAccepted:
        logger.info("Estimate %s was accepted by a concurrent request.", estimate.estimate_number)
        raise
    except DatabaseError as exc:
        logger.exception("Failed to record acceptance for estimate %s.", estimate.estimate_number)
        raise AcceptanceFailed() from exc

    logger.info(
        "Estimate %s accepted: tier %s, total %s, signer '%s'.",
        estimate.estimate_number, submission.selected_tier, totals.total, submission.signer_name,
    )

    context = PostSignContext.from_acceptance(
        estimate, line_items, submission, totals, plan, signed_at, client_ip,
    )
    pdf_bytes, url = publish_signed_proposal(context)
    return AcceptanceResult(context=context.with_document(pdf_bytes, url))
