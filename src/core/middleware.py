"""Core middleware."""
from django.utils.cache import patch_cache_control


class NoStoreAPIMiddleware:
    """Keep API responses, and the bearer tokens in public proposal URLs, out of caches and logs.

    Every ``/api/`` response is marked no-store.  Public proposal and signed
    document paths carry the token in the URL, so they additionally get
    ``Referrer-Policy: no-referrer`` and ``X-Robots-Tag: noindex``.
    """

    API_PREFIX = "/api/"
    TOKEN_PATH_MARKERS = ("/proposals/", "/documents/")

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)

        if not request.path.startswith(self.API_PREFIX):
            return response

        patch_cache_control(
            response,
            private=True,
            no_cache=True,
            no_store=True,
            must_revalidate=True,
            max_age=0,
        )
        response["Pragma"] = "no-cache"

        if any(marker in request.path for marker in self.TOKEN_PATH_MARKERS):
            response["Referrer-Policy"] = "no-referrer"
            response["X-Robots-Tag"] = "noindex, nofollow"
        return response
