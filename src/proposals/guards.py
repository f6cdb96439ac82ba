"""Pre-acceptance checks for a public proposal.

Checks run in a fixed order and stop at the first failure: unknown token,
already signed, expired, no longer available, malformed submission.  Only
the estimate row is read; line items are left alone until every check
has passed.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from django.utils import timezone

from estimates.models import Estimate
from proposals.exceptions import (
    InvalidSubmission,
    ProposalAlreadyAccepted,
    ProposalExpired,
    ProposalNotFound,
    ProposalUnavailable,
)

logger = logging.getLogger("pipeline")

MIN_SIGNER_NAME_LENGTH = 2
SIGNATURE_PREFIX = "data:image"


@dataclass(frozen=True)
class AcceptanceSubmission:
    signer_name: str
    signature_data: str
    selected_tier: int
    selected_addon_ids: frozenset
    financing_plan_id: str | None = None


def resolve_estimate(token) -> Estimate:
    if not token or not isinstance(token, str):
        raise ProposalNotFound()
    estimate = (
        Estimate.objects
        .select_related("customer", "assigned_to", "sequence")
        .filter(proposal_token=token)
        .first()
    )
    if estimate is None:
        raise ProposalNotFound()
    return estimate


def check_lifecycle(estimate: Estimate, today=None) -> None:
    """Reject estimates that are signed, expired or closed, in that order."""
    if estimate.is_signed:
        raise ProposalAlreadyAccepted()
    if estimate.is_expired(today=today or timezone.localdate()):
        raise ProposalExpired()
    if estimate.is_unavailable:
        raise ProposalUnavailable()


def validate_submission(estimate: Estimate, data) -> AcceptanceSubmission:
    """Check the request body shape and return a normalized submission."""
    if not isinstance(data, Mapping):
        raise InvalidSubmission("Request body must be a JSON object")

    errors = {}

    signer_name = data.get("customer_name")
    if not isinstance(signer_name, str) or len(signer_name.strip()) < MIN_SIGNER_NAME_LENGTH:
        errors["customer_name"] = f"Name must be at least {MIN_SIGNER_NAME_LENGTH} characters"
        signer_name = ""

    signature = data.get("signature_data")
    if not isinstance(signature, str) or not signature.startswith(SIGNATURE_PREFIX):
        errors["signature_data"] = "Signature must be an image data URL"

    tier = data.get("selected_tier")
    offered = estimate.offered_tiers()
    if isinstance(tier, bool) or not isinstance(tier, int) or tier not in offered:
        errors["selected_tier"] = f"Selected tier must be one of {', '.join(str(t) for t in offered)}"

    addon_ids = data.get("selected_addon_ids")
    if addon_ids is None:
        addon_ids = []
    if not isinstance(addon_ids, list) or not all(isinstance(a, (str, int)) and not isinstance(a, bool) for a in addon_ids):
        errors["selected_addon_ids"] = "Add-on ids must be a list"
        addon_ids = []

    plan_id = data.get("selected_financing_plan_id")
    if plan_id is not None and (isinstance(plan_id, bool) or not isinstance(plan_id, (str, int))):
        errors["selected_financing_plan_id"] = "Financing plan id must be a string or null"
        plan_id = None

    if errors:
        logger.info("Rejected acceptance payload for estimate %s: %s", estimate.estimate_number, sorted(errors))
        raise InvalidSubmission(next(iter(errors.values())), errors=errors)

    return AcceptanceSubmission(
        signer_name=signer_name.strip(),
        signature_data=signature,
        selected_tier=tier,
        selected_addon_ids=frozenset(str(a) for a in addon_ids),
        financing_plan_id=str(plan_id) if plan_id not in (None, "") else None,
    )


def evaluate(token, data, today=None) -> tuple[Estimate, AcceptanceSubmission]:
    """Run every check in order.

    *data* may be a callable returning the body so that parsing happens
    only after the lifecycle checks have passed.
    """
    estimate = resolve_estimate(token)
    check_lifecycle(estimate, today=today)
    body = data() if callable(data) else data
    return estimate, validate_submission(estimate, body)
