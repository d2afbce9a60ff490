#!/usr/bin/env python3
"""
Environmental GIS Dashboard - Persistence API Client

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Thin HTTP client over the location/shape persistence API.
The session token is an explicit argument on every call; the client never
looks up an ambient session.

Key Features:
1. requests.Session with base URL + timeout from config
2. Bearer token header per call
3. Status mapping: 404 -> NotFoundError, 400 -> ValidationError,
   other failures -> NetworkError
4. retry_api_call for idempotent list calls (retries NetworkError only)

Backend Contract (duck-typed, also implemented by InMemoryBackend):
- list_locations(token) -> List[dict]
- create_location(token, payload) -> dict
- update_location(token, location_id, partial) -> dict
- delete_location(token, location_id) -> None
- list_shapes(token) -> List[dict]
- create_shape(token, payload) -> dict
- update_shape(token, shape_id, partial) -> dict
- delete_shape(token, shape_id) -> None

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from typing import Any, Callable, Dict, List, Optional, TypeVar
import logging
import time

import requests

from enviro_gis.config_types import CONFIG
from enviro_gis.errors import NetworkError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ═══════════════════════════════════════════════════════════════════════════
# 🔁 RETRY HELPER
# ═══════════════════════════════════════════════════════════════════════════


def retry_api_call(
    fn: Callable[[], T],
    retries: int = CONFIG.api.retries,
    delay_s: float = CONFIG.api.retry_delay_s,
) -> T:
    """
    Call fn, retrying on NetworkError with a linear backoff.

    Validation and not-found errors are not retried.

    Args:
        fn: Zero-arg callable performing one API call
        retries: Extra attempts after the first
        delay_s: Base delay between attempts (multiplied by attempt number)

    Returns:
        fn's return value

    Raises:
        NetworkError: If every attempt failed
    """
    attempt = 0
    while True:
        try:
            return fn()
        except NetworkError as e:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning(f"⚠️ API call failed ({e.message}), retry {attempt}/{retries}")
            time.sleep(delay_s * attempt)


_MISSING = object()


def _unwrap(data: Any, key: str, path: str, expected: type, default: Any = _MISSING) -> Any:
    """
    Pull one field out of a 2xx response envelope.

    Raises:
        NetworkError: Body is not an object, or the field is absent
            (with no default) or has the wrong JSON type
    """
    if not isinstance(data, dict):
        raise NetworkError(f"Invalid response from {path}: expected an object")
    if key not in data:
        if default is _MISSING:
            raise NetworkError(f"Invalid response from {path}: missing '{key}'")
        return default
    value = data[key]
    if not isinstance(value, expected):
        raise NetworkError(f"Invalid response from {path}: '{key}' is not {expected.__name__}")
    return value


# ═══════════════════════════════════════════════════════════════════════════
# 🌐 API CLIENT
# ═══════════════════════════════════════════════════════════════════════════


class ApiClient:
    """
    HTTP client for the persistence API.

    Endpoints:
        GET/POST   {base_url}/locations
        PUT/DELETE {base_url}/locations/<id>
        GET/POST   {base_url}/shapes
        PUT/DELETE {base_url}/shapes/<id>
    """

    def __init__(
        self,
        base_url: str = CONFIG.api.base_url,
        timeout_s: float = CONFIG.api.timeout_s,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValueError("ApiClient requires a base_url")
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        logger.info(f"ApiClient initialized for {self.base_url}")

    # ───────────────────────────────────────────────────────────────────────
    # Locations
    # ───────────────────────────────────────────────────────────────────────

    def list_locations(self, token: str) -> List[Dict[str, Any]]:
        data = retry_api_call(lambda: self._request("GET", "/locations", token))
        return _unwrap(data, "locations", "/locations", list, default=[])

    def create_location(self, token: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request("POST", "/locations", token, json=payload)
        return _unwrap(data, "location", "/locations", dict)

    def update_location(
        self, token: str, location_id: str, partial: Dict[str, Any]
    ) -> Dict[str, Any]:
        data = self._request("PUT", f"/locations/{location_id}", token, json=partial)
        return _unwrap(data, "location", f"/locations/{location_id}", dict)

    def delete_location(self, token: str, location_id: str) -> None:
        self._request("DELETE", f"/locations/{location_id}", token)

    # ───────────────────────────────────────────────────────────────────────
    # Shapes
    # ───────────────────────────────────────────────────────────────────────

    def list_shapes(self, token: str) -> List[Dict[str, Any]]:
        data = retry_api_call(lambda: self._request("GET", "/shapes", token))
        return _unwrap(data, "shapes", "/shapes", list, default=[])

    def create_shape(self, token: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request("POST", "/shapes", token, json=payload)
        return _unwrap(data, "shape", "/shapes", dict)

    def update_shape(
        self, token: str, shape_id: str, partial: Dict[str, Any]
    ) -> Dict[str, Any]:
        data = self._request("PUT", f"/shapes/{shape_id}", token, json=partial)
        return _unwrap(data, "shape", f"/shapes/{shape_id}", dict)

    def delete_shape(self, token: str, shape_id: str) -> None:
        self._request("DELETE", f"/shapes/{shape_id}", token)

    # ───────────────────────────────────────────────────────────────────────
    # Transport
    # ───────────────────────────────────────────────────────────────────────

    def _request(
        self,
        method: str,
        path: str,
        token: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Perform one request and map failures to the error taxonomy.

        Raises:
            NotFoundError: 404
            ValidationError: 400 (server-side validation)
            NetworkError: Transport failure, other non-2xx, or non-JSON body
        """
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = self.session.request(
                method, url, json=json, headers=headers, timeout=self.timeout_s
            )
        except requests.RequestException as e:
            logger.error(f"❌ {method} {path} failed: {e}")
            raise NetworkError(f"Network error: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(self._error_message(response, "Not found"))
        if response.status_code == 400:
            raise ValidationError(self._error_message(response, "Invalid request"))
        if not response.ok:
            message = self._error_message(response, f"HTTP {response.status_code}")
            logger.error(f"❌ {method} {path} -> {response.status_code}: {message}")
            raise NetworkError(message, status=response.status_code)

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"Invalid JSON from {path}", status=response.status_code) from e

    @staticmethod
    def _error_message(response: requests.Response, default: str) -> str:
        try:
            body = response.json()
        except ValueError:
            return default
        if isinstance(body, dict):
            return str(body.get("error") or body.get("message") or default)
        return default
