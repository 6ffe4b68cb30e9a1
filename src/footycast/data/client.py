"""
HTTP client for the API-Football v3 data provider.

NOTE:
- Requires an API key in the APIFOOTBALL_KEY environment variable.
- Always respect the provider's rate limits and terms of use; this client
  does not retry. Retry/backoff belongs to whoever schedules the calls.
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

import requests

from footycast.config import API_BASE_URL, API_KEY_ENV, API_TIMEOUT_SECONDS
from footycast.errors import ConfigurationError, UpstreamError
from footycast.utils.logging_utils import get_logger

logger = get_logger(__name__)

# Upper bound on pages followed by `get_all`
MAX_PAGES: int = 50


class ApiFootballClient:
    """Thin wrapper around `requests` for the provider's JSON endpoints."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = API_BASE_URL,
        timeout: float = API_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        api_key = api_key or os.getenv(API_KEY_ENV)
        if not api_key:
            raise ConfigurationError(f"Missing {API_KEY_ENV} env var")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"x-apisports-key": api_key, "Accept": "application/json"})

    def url_for(self, path: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Build the full request URL (used for the `sources` audit list)."""
        clean = _clean_params(params)
        query = "&".join(f"{k}={v}" for k, v in clean.items())
        url = f"{self.base_url}/{path.lstrip('/')}"
        return f"{url}?{query}" if query else url

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        GET one endpoint and return the decoded JSON body.

        Raises
        ------
        UpstreamError
            On transport failures, HTTP errors, or a non-JSON body.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        clean = _clean_params(params)
        logger.debug("GET %s %s", path, clean)

        try:
            response = self.session.get(url, params=clean, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UpstreamError(f"API request failed on {path}: {exc}") from exc

        if not response.ok:
            raise UpstreamError(
                f"API error {response.status_code} on {path}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(f"API returned non-JSON body on {path}") from exc

        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            # the provider reports quota/auth problems with HTTP 200
            logger.warning("API reported errors on %s: %s", path, errors)
        return payload

    def get_response(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET and return only the `response` field."""
        payload = self.get(path, params)
        return payload.get("response") if isinstance(payload, dict) else None

    def get_all(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
        """GET every page of a paginated endpoint and concatenate the responses."""
        page = 1
        rows: List[Any] = []
        while page <= MAX_PAGES:
            payload = self.get(path, {**(params or {}), "page": page})
            chunk = payload.get("response") or []
            rows.extend(chunk)
            paging = payload.get("paging") or {}
            current = paging.get("current", page)
            total = paging.get("total", page)
            if current >= total or not chunk:
                break
            page += 1
        return rows


def _clean_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {k: v for k, v in (params or {}).items() if v is not None}
