"""HTTP helpers shared by API views."""
import logging

from rest_framework.response import Response

logger = logging.getLogger("pipeline")


def get_client_ip(request) -> str:
    """Best-effort client address: first X-Forwarded-For hop, then X-Real-IP, then REMOTE_ADDR."""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.META.get("HTTP_X_REAL_IP", "").strip()
    if real_ip:
        return real_ip
    return request.META.get("REMOTE_ADDR") or "unknown"


class DeferredResponse(Response):
    """DRF response that runs callbacks once the server has finished sending it.

    WSGI servers call ``close()`` after the last byte has been written, so
    anything registered with :meth:`defer` never delays the client.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._deferred = []

    def defer(self, callback, *args, **kwargs):
        self._deferred.append((callback, args, kwargs))

    def close(self):
        super().close()
        deferred, self._deferred = self._deferred, []
        for callback, args, kwargs in deferred:
            try:
                callback(*args, **kwargs)
            except Exception:
                logger.exception("Deferred callback %r failed after response.", callback)
