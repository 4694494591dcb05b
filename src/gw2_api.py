"""
gw2_api.py — Thin wrapper around the public Guild Wars 2 API.

GET requests only. Endpoint paths are passed explicitly by the caller
(e.g. "/v2/account") so every API call stays visible at the call site.

Errors:
  TransportError         → API unreachable, timed out, or non-2xx status
  MalformedPayloadError  → body is not JSON or not the expected shape
"""

import logging
from typing import Any, Optional

import requests

from config import GW2_API_BASE, HTTP_TIMEOUT, USER_AGENT

logger = logging.getLogger(__name__)


class Gw2ApiError(Exception):
    """Base class for failures talking to the GW2 API."""


class TransportError(Gw2ApiError):
    """Remote unreachable or answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedPayloadError(Gw2ApiError):
    """Response body could not be parsed into the expected shape."""


def get_json(session: requests.Session, url: str,
             params: Optional[dict] = None, headers: Optional[dict] = None,
             timeout: float = HTTP_TIMEOUT) -> Any:
    """GET a URL and decode its JSON body, raising Gw2ApiError subclasses."""
    try:
        resp = session.get(url, params=params, headers=headers, timeout=timeout)
    except requests.RequestException as e:
        raise TransportError(f"GET {url} failed: {e}") from e

    # 206 is normal for ?ids= queries that include unknown ids
    if not 200 <= resp.status_code < 300:
        raise TransportError(f"GET {url}: HTTP {resp.status_code}",
                             status_code=resp.status_code)

    try:
        return resp.json()
    except ValueError as e:
        raise MalformedPayloadError(f"GET {url}: response is not JSON") from e


class Gw2ApiClient:
    """Authenticated GET requests against the GW2 API."""

    def __init__(self, base_url: str = GW2_API_BASE,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": USER_AGENT})

    def get(self, endpoint: str, api_key: Optional[str] = None,
            params: Optional[dict] = None) -> Any:
        """GET `endpoint` (e.g. "/v2/account") and return the decoded JSON."""
        headers = {}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        logger.debug(f"GW2 API GET {endpoint}")
        return get_json(self._session, f"{self.base_url}{endpoint}",
                        params=params, headers=headers)

    def get_list(self, endpoint: str, api_key: Optional[str] = None,
                 params: Optional[dict] = None) -> list:
        """Like get(), but the payload must be a JSON array."""
        data = self.get(endpoint, api_key=api_key, params=params)
        if not isinstance(data, list):
            raise MalformedPayloadError(
                f"{endpoint}: expected a list, got {type(data).__name__}")
        return data

    def get_object(self, endpoint: str, api_key: Optional[str] = None,
                   params: Optional[dict] = None) -> dict:
        """Like get(), but the payload must be a JSON object."""
        data = self.get(endpoint, api_key=api_key, params=params)
        if not isinstance(data, dict):
            raise MalformedPayloadError(
                f"{endpoint}: expected an object, got {type(data).__name__}")
        return data
