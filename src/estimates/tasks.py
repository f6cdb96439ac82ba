"""Celery tasks for the estimates app."""
import logging

from celery import shared_task

logger = logging.getLogger("pipeline")


@shared_task(name="estimates.tasks.auto_decline_expired_estimates")
def auto_decline_expired_estimates():
    """Mark open estimates past their auto-decline date as lost."""
    from estimates.services import auto_decline_expired

    results = auto_decline_expired()
    return f"{results['declined']} declined, {results['errors']} errors"


@shared_task(name="estimates.tasks.warn_declining_soon")
def warn_declining_soon():
    """Warn comfort pros about estimates that will auto-decline soon.

    The window is ``settings.DECLINING_SOON_WARNING_DAYS`` (default 3).
    """
    from estimates.services import warn_declining_soon as _warn

    warned = _warn()
    return f"{warned} warnings sent"
