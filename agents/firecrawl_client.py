# agents/firecrawl_client.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from agents.errors import ConfigurationError, TransientServiceError
from backend.telemetry import log_vendor_call

logger = logging.getLogger("dealfinder.firecrawl")

# ---------------------------- Endpoints & config ---------------------------- #
FIRECRAWL_API_URL = "https://api.firecrawl.dev"
SCRAPE_PATH = "/v2/scrape"
SEARCH_PATH = "/v2/search"

# Added on top of the service-side timeout so the vendor gets to report its own timeout first.
HTTP_GRACE_S = 5.0

MISSING_KEY_MESSAGE = (
    "Firecrawl API key not configured. Please set FIRECRAWL_API_KEY environment variable."
)


def _error_text(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "")[:200]
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or "")[:200]
    return ""


def _raise_for_status(resp: requests.Response, path: str) -> None:
    """Turn HTTP failures into pipeline errors whose messages the classifier understands."""
    code = resp.status_code
    if code < 400:
        return
    detail = _error_text(resp)
    if code == 401:
        raise ConfigurationError(f"Unauthorized: Firecrawl rejected the API key (HTTP 401) {detail}".strip())
    if code in (402, 403):
        raise ConfigurationError(f"Forbidden: Firecrawl refused the request (HTTP {code}) {detail}".strip())
    if code == 408:
        raise TransientServiceError(f"Firecrawl timeout on {path} (HTTP 408) {detail}".strip())
    if code == 429:
        raise TransientServiceError(f"Rate limit exceeded on {path} (HTTP 429)")
    if code in (400, 422):
        raise TransientServiceError(f"Firecrawl rejected the request on {path} (HTTP {code}): {detail}")
    raise TransientServiceError(f"Firecrawl service error on {path} (HTTP {code}) {detail}".strip())


class FirecrawlClient:
    """
    Thin blocking client for the Firecrawl scrape/search endpoints.

    Build it once (see `from_settings`) and inject it; the async pipeline
    calls it from worker threads.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = FIRECRAWL_API_URL,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings) -> "FirecrawlClient":
        return cls(settings.firecrawl_api_key, base_url=settings.firecrawl_api_url)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _post(self, path: str, payload: Dict[str, Any], timeout_s: float) -> Dict[str, Any]:
        if not self.is_configured:
            raise ConfigurationError(MISSING_KEY_MESSAGE)

        url = f"{self.base_url}{path}"
        log_vendor_call({"endpoint": url, "payload": payload})
        try:
            resp = self.session.post(url, json=payload, headers=self._headers(), timeout=timeout_s)
        except requests.Timeout as exc:
            raise TransientServiceError(f"Request timeout after {timeout_s:.0f}s calling {path}") from exc
        except requests.ConnectionError as exc:
            raise TransientServiceError(f"Network connection error calling {path}: {exc}") from exc
        except requests.RequestException as exc:
            raise TransientServiceError(f"Request to {path} failed: {exc}") from exc

        _raise_for_status(resp, path)
        try:
            body = resp.json()
        except ValueError as exc:
            raise TransientServiceError(f"Firecrawl returned a non-JSON response on {path}") from exc

        if isinstance(body, dict) and body.get("success") is False:
            raise TransientServiceError(f"Firecrawl request failed: {body.get('error') or 'unknown error'}")
        return body

    def scrape_json(self, url: str, schema: Dict[str, Any], prompt: str, timeout_ms: int) -> Dict[str, Any]:
        """Structured extraction of one page. Returns the raw response body."""
        payload = {
            "url": url,
            "formats": [{"type": "json", "schema": schema, "prompt": prompt}],
            "onlyMainContent": True,
            "timeout": timeout_ms,
        }
        return self._post(SCRAPE_PATH, payload, timeout_ms / 1000.0 + HTTP_GRACE_S)

    def search(self, query: str, limit: int, timeout_ms: int = 20000) -> Dict[str, Any]:
        """Web search; the site filter travels inside `query`."""
        payload = {"query": query, "limit": limit, "timeout": timeout_ms}
        return self._post(SEARCH_PATH, payload, timeout_ms / 1000.0 + HTTP_GRACE_S)
