"""Templated customer emails: HTML body, plain-text fallback, optional attachments."""

from __future__ import annotations

import logging
from typing import Sequence

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

logger = logging.getLogger("pipeline")


def send_branded_email(
    *,
    subject: str,
    template_name: str,
    context: dict,
    recipient_list: Sequence[str],
    from_email: str | None = None,
    reply_to: Sequence[str] | None = None,
    attachments: Sequence[tuple[str, bytes, str]] | None = None,
    fail_silently: bool = False,
) -> int:
    """Render ``<template_name>.txt`` and ``<template_name>.html`` and send them.

    *template_name* has no extension, e.g. ``"emails/proposal_accepted"``.
    *attachments* holds ``(filename, content, mimetype)`` tuples and
    *reply_to* the addresses customer replies should reach.

    Returns the number of messages sent (0 or 1).  SMTP errors propagate
    unless *fail_silently* is set.
    """
    text_body = render_to_string(f"{template_name}.txt", context).strip()
    html_body = render_to_string(f"{template_name}.html", context)

    msg = EmailMultiAlternatives(
        subject=subject,
        body=text_body,
        from_email=from_email or settings.DEFAULT_FROM_EMAIL,
        to=list(recipient_list),
        reply_to=[address for address in reply_to or () if address],
    )
    msg.attach_alternative(html_body, "text/html")
    for filename, content, mimetype in attachments or ():
        msg.attach(filename, content, mimetype)

    sent = msg.send(fail_silently=fail_silently)
    logger.info(
        "Email '%s' sent to %s (%d attachment(s)).",
        subject, ", ".join(recipient_list), len(msg.attachments),
    )
    return sent
