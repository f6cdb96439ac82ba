"""Company profile and proposal terms, merged from defaults and stored settings."""
import logging

from django.db import DatabaseError

from core.models import Setting

logger = logging.getLogger("pipeline")

COMPANY_INFO_KEY = "company_info"
PROPOSAL_TERMS_KEY = "proposal_terms"

DEFAULT_COMPANY_INFO = {
    "company_name": "Genesis Heating, Cooling & Refrigeration",
    "phone": "(425) 261-9095",
    "email": "info@genesishvacr.com",
    "website": "genesishvacr.com",
    "address": "Monroe, WA",
    "license_number": "GENESRH862OP",
    "license_state": "WA",
}

DEFAULT_PROPOSAL_TERMS = {
    "authorization": (
        "By signing this proposal, the customer authorizes the company to perform "
        "the work described above at the agreed price."
    ),
    "labor_warranty": (
        "All installation labor is warranted for a period of one year from the "
        "date of completion unless otherwise stated."
    ),
    "financing": (
        "Financing is subject to credit approval. Monthly payment estimates are "
        "provided for convenience and may vary based on final approval terms."
    ),
    "cancellation": (
        "The customer may cancel this agreement within three business days of "
        "signing by providing written notice."
    ),
}


def _load_setting(key: str) -> dict:
    try:
        row = Setting.objects.filter(key=key).only("value").first()
    except DatabaseError:
        logger.warning("Could not load setting '%s'; using defaults.", key, exc_info=True)
        return {}
    if row is None or not isinstance(row.value, dict):
        return {}
    return row.value


def get_company_info() -> dict:
    """Return the company profile, stored values overriding non-empty defaults."""
    info = dict(DEFAULT_COMPANY_INFO)
    info.update({k: v for k, v in _load_setting(COMPANY_INFO_KEY).items() if v not in (None, "")})
    return info


def get_proposal_terms() -> dict:
    terms = dict(DEFAULT_PROPOSAL_TERMS)
    terms.update({k: v for k, v in _load_setting(PROPOSAL_TERMS_KEY).items() if v not in (None, "")})
    return terms
