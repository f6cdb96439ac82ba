"""Service functions for the notifications app."""
import logging

from notifications.models import Notification

logger = logging.getLogger("pipeline")


def create_notification(user, notification_type, message, estimate=None):
    """Create and return a new Notification instance.

    Parameters
    ----------
    user : accounts.models.User
        The staff member receiving the notification.
    notification_type : str
        One of ``Notification.Type`` values.
    message : str
        Human-readable text shown in the dashboard.
    estimate : estimates.models.Estimate or its id, optional
        The estimate this notification refers to.

    Returns
    -------
    Notification
        The newly created ``Notification`` instance.
    """
    estimate_id = getattr(estimate, "pk", estimate)
    notification = Notification.objects.create(
        user=user,
        notification_type=notification_type,
        estimate_id=estimate_id,
        message=message,
    )
    logger.info(
        "Notification created: [%s] for user %s (estimate %s)",
        notification_type, getattr(user, "pk", user), estimate_id,
    )
    return notification


def notify_users(users, notification_type, message, estimate=None):
    """Notify each distinct user once; a failure for one recipient never blocks the others.

    Returns the list of notifications that were created.
    """
    created = []
    seen = set()
    for user in users:
        if user is None or user.pk in seen:
            continue
        seen.add(user.pk)
        try:
            created.append(create_notification(user, notification_type, message, estimate=estimate))
        except Exception:
            logger.exception(
                "Failed to create %s notification for user %s.",
                notification_type, user.pk,
            )
    return created
