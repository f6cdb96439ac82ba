"""Public proposal tokens and links."""
import secrets

from django.conf import settings


def generate_proposal_token() -> str:
    """Generate an unguessable URL-safe token (43 chars)."""
    return secrets.token_urlsafe(32)


def build_proposal_url(token: str) -> str:
    """Build the customer-facing proposal URL."""
    base = getattr(settings, "FRONTEND_URL", "http://localhost:3000").rstrip("/")
    return f"{base}/proposals/{token}"
