"""Housecall Pro REST client used to mirror proposal decisions.

Auth: bearer token (``HCP_BEARER_TOKEN``)
Base URL: ``HCP_API_BASE_URL``
"""
import logging
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger("pipeline")


class FieldServiceError(Exception):
    """A field service call failed or returned an unexpected response."""


class FieldServiceNotConfigured(FieldServiceError):
    pass


class HousecallClient:
    """Thin REST client for the Housecall Pro estimates API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.base_url = (base_url or settings.HCP_API_BASE_URL or "").rstrip("/")
        self.token = token or settings.HCP_BEARER_TOKEN
        self.timeout = timeout or settings.FIELD_SERVICE_TIMEOUT
        if not self.base_url or not self.token:
            raise FieldServiceNotConfigured(
                "Field service API is not configured. Set HCP_API_BASE_URL and HCP_BEARER_TOKEN."
            )
        self.session = self._build_session()

    # ---------- session setup ----------
    def _build_session(self) -> requests.Session:
        s = requests.Session()
        s.headers.update({
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
        })
        # Connection failures only; approving an option is not idempotent.
        retries = Retry(total=3, connect=3, read=0, status=0, backoff_factor=1)
        adapter = HTTPAdapter(max_retries=retries)
        s.mount("https://", adapter)
        s.mount("http://", adapter)
        return s

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _post(self, path: str, payload: Optional[Dict] = None, files: Optional[Dict] = None) -> Dict:
        url = self._url(path)
        logger.info("POST %s", url)
        try:
            if files is not None:
                r = self.session.post(url, files=files, timeout=self.timeout)
            else:
                r = self.session.post(url, json=payload or {}, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as exc:
            raise FieldServiceError(f"POST {path} failed: {exc}") from exc
        if not r.content:
            return {}
        try:
            return r.json()
        except ValueError:
            return {}

    # ---------- estimate options ----------
    def approve_option(self, option_id: str) -> Optional[str]:
        """Approve one estimate option; returns the created job id when the API reports one."""
        data = self._post("estimates/options/approve", {"option_ids": [option_id]})
        job = data.get("job") if isinstance(data, dict) else None
        if isinstance(job, dict) and job.get("id"):
            return str(job["id"])
        if isinstance(data, dict) and data.get("job_id"):
            return str(data["job_id"])
        return None

    def decline_options(self, option_ids: List[str]) -> Dict[str, Any]:
        if not option_ids:
            return {}
        return self._post("estimates/options/decline", {"option_ids": list(option_ids)})

    def upload_option_attachment(
        self,
        estimate_id: str,
        option_id: str,
        content: bytes,
        filename: str,
        content_type: str = "application/pdf",
    ) -> Dict[str, Any]:
        return self._post(
            f"estimates/{estimate_id}/options/{option_id}/attachments",
            files={"file": (filename, content, content_type)},
        )

    def add_option_note(self, estimate_id: str, option_id: str, content: str) -> Dict[str, Any]:
        return self._post(
            f"estimates/{estimate_id}/options/{option_id}/notes",
            {"content": content},
        )


def get_client() -> HousecallClient:
    return HousecallClient()
