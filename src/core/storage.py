"""Document storage with signed, long-lived download links."""
import logging

from django.conf import settings
from django.core import signing
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.urls import reverse

logger = logging.getLogger("pipeline")

DOCUMENT_SIGNING_SALT = "core.storage.document"


def store_document(path: str, content: bytes) -> str:
    """Write *content* at *path*, replacing any previous document there."""
    if default_storage.exists(path):
        default_storage.delete(path)
    stored_path = default_storage.save(path, ContentFile(content))
    logger.info("Stored document %s (%d bytes).", stored_path, len(content))
    return stored_path


def sign_document_path(path: str) -> str:
    return signing.dumps(path, salt=DOCUMENT_SIGNING_SALT, compress=True)


def build_signed_document_url(path: str) -> str:
    """Return an absolute download URL for *path* carrying a timestamped signature."""
    token = sign_document_path(path)
    relative = reverse("api:signed-document", kwargs={"token": token})
    return f"{settings.BACKEND_URL.rstrip('/')}{relative}"


def resolve_signed_document(token: str, max_age: int | None = None) -> str:
    """Return the stored path behind *token*.

    Raises ``signing.BadSignature`` (or its ``SignatureExpired`` subclass)
    when the token was tampered with or is older than *max_age* seconds.
    """
    if max_age is None:
        max_age = settings.PROPOSAL_PDF_URL_MAX_AGE
    return signing.loads(token, salt=DOCUMENT_SIGNING_SALT, max_age=max_age)
