"""Throttles for the public proposal endpoints."""
import logging

from django.core.exceptions import ImproperlyConfigured
from rest_framework.throttling import ScopedRateThrottle

logger = logging.getLogger("pipeline")


class SafeScopedRateThrottle(ScopedRateThrottle):
    """Scoped throttle that falls back to a strict default if scope config is missing."""

    def get_rate(self):
        try:
            return super().get_rate()
        except ImproperlyConfigured:
            logger.warning("Throttle scope '%s' not configured, applying strict default 5/min.", self.scope)
            return "5/min"
