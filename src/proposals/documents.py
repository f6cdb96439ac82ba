"""Signed proposal document: rendering, storage and the long-lived link."""
from __future__ import annotations

import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.company import get_company_info, get_proposal_terms
from core.pdf import render_pdf_bytes, safe_pdf_filename
from core.storage import build_signed_document_url, store_document
from estimates.models import Estimate

logger = logging.getLogger("pipeline")

SIGNED_PROPOSAL_TEMPLATE = "pdf/signed_proposal.html"
LARGE_JOB_FINAL_PAYMENT = Decimal("1000.00")


def signed_document_path(estimate_id, estimate_number) -> str:
    prefix = getattr(settings, "PROPOSAL_DOCUMENT_PREFIX", "proposal-pdfs").strip("/")
    return f"{prefix}/{estimate_id}/{estimate_number}-signed.pdf"


def attachment_filename(estimate_number) -> str:
    company = get_company_info().get("company_name", "")
    short_name = company.split()[0] if company else "Proposal"
    return safe_pdf_filename(f"{short_name}-Proposal-{estimate_number}-Signed", fallback="proposal-signed")


def payment_schedule(schedule_type, total) -> list[dict]:
    """Installments shown on the signed document.

    ``standard`` is a 50% deposit with the balance on installation;
    ``large_job`` is 50% deposit, 25% at rough-in, and the rest at
    completion less a fixed final payment due after inspection.
    """
    total = Decimal(total)
    half = (total / 2).quantize(Decimal("0.01"))
    if schedule_type == Estimate.PaymentSchedule.LARGE_JOB:
        quarter = (total / 4).quantize(Decimal("0.01"))
        final = min(LARGE_JOB_FINAL_PAYMENT, total - half - quarter)
        return [
            {"label": "Deposit due at signing (50%)", "amount": half},
            {"label": "Due at rough-in (25%)", "amount": quarter},
            {"label": "Due at completion", "amount": total - half - quarter - final},
            {"label": "Final payment after inspection", "amount": final},
        ]
    return [
        {"label": "Deposit due at signing (50%)", "amount": half},
        {"label": "Balance due at installation", "amount": total - half},
    ]


def build_document_context(context) -> dict:
    signed_at = timezone.localtime(context.signed_at)
    return {
        "proposal": context,
        "company": get_company_info(),
        "terms": get_proposal_terms(),
        "tier_items": context.tier_line_items,
        "addon_items": context.selected_addon_items,
        "payment_schedule": payment_schedule(context.payment_schedule_type, context.total_amount),
        "signed_at": signed_at,
        "currency_symbol": getattr(settings, "CURRENCY_SYMBOL", "$"),
    }


def render_signed_proposal(context) -> bytes:
    return render_pdf_bytes(SIGNED_PROPOSAL_TEMPLATE, build_document_context(context))


def publish_signed_proposal(context) -> tuple[bytes | None, str | None]:
    """Render, store and link the signed document.

    Returns ``(pdf_bytes, url)``.  Rendering failure yields ``(None, None)``;
    a storage failure keeps the bytes (they are still attached to the
    confirmation email) but yields no URL.  Nothing here raises.
    """
    try:
        pdf_bytes = render_signed_proposal(context)
    except Exception:
        logger.exception("Signed proposal rendering failed for estimate %s.", context.estimate_number)
        return None, None

    try:
        path = store_document(signed_document_path(context.estimate_id, context.estimate_number), pdf_bytes)
        url = build_signed_document_url(path)
        with transaction.atomic():
            Estimate.objects.filter(pk=context.estimate_id).update(proposal_pdf_url=url)
    except Exception:
        logger.exception("Signed proposal upload failed for estimate %s.", context.estimate_number)
        return pdf_bytes, None

    logger.info("Signed proposal stored for estimate %s.", context.estimate_number)
    return pdf_bytes, url
