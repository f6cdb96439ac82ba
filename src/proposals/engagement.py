"""Best-effort recording of customer activity on proposal pages."""
import logging
import re

from proposals.models import ProposalEngagement

logger = logging.getLogger("pipeline")

MOBILE_UA_RE = re.compile(r"mobile|android|iphone|ipad", re.IGNORECASE)
TABLET_UA_RE = re.compile(r"ipad|tablet", re.IGNORECASE)


def detect_device_type(user_agent) -> str:
    """Classify a user agent as mobile, tablet or desktop.

    Only handheld agents are considered; among those an iPad or tablet
    marker reports as a tablet.
    """
    user_agent = user_agent or ""
    if not MOBILE_UA_RE.search(user_agent):
        return ProposalEngagement.DeviceType.DESKTOP
    if TABLET_UA_RE.search(user_agent):
        return ProposalEngagement.DeviceType.TABLET
    return ProposalEngagement.DeviceType.MOBILE


def record_event(
    estimate_id,
    event_type,
    *,
    option_group=None,
    financing_plan="",
    session_seconds=None,
    device_type=ProposalEngagement.DeviceType.DESKTOP,
):
    """Append one engagement event.

    Returns the stored event, or ``None`` when it could not be written;
    failures are logged and never raised.
    """
    try:
        event = ProposalEngagement.objects.create(
            estimate_id=estimate_id,
            event_type=event_type,
            option_group=option_group,
            financing_plan=financing_plan or "",
            session_seconds=session_seconds,
            device_type=device_type,
        )
    except Exception:
        logger.exception("Failed to record %s engagement for estimate %s.", event_type, estimate_id)
        return None
    return event


def engagement_summary(estimate) -> dict:
    """Aggregate counts per event type plus the most viewed tier."""
    events = list(estimate.engagements.values_list("event_type", "option_group", "session_seconds"))
    counts = {}
    views_by_tier = {}
    total_seconds = 0
    for event_type, option_group, seconds in events:
        counts[event_type] = counts.get(event_type, 0) + 1
        if event_type == ProposalEngagement.EventType.OPTION_VIEW and option_group is not None:
            views_by_tier[option_group] = views_by_tier.get(option_group, 0) + 1
        if seconds:
            total_seconds += seconds
    most_viewed = max(views_by_tier, key=views_by_tier.get) if views_by_tier else None
    return {
        "total_events": len(events),
        "counts": counts,
        "most_viewed_tier": most_viewed,
        "total_session_seconds": total_seconds,
    }
