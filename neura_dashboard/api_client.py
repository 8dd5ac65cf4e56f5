"""Thin client for the insights backend HTTP API."""

from __future__ import annotations

from typing import Any, Optional, Protocol

import requests

from neura_dashboard.config import settings
from neura_dashboard.errors import ApiError
from utils.logging_utils import get_tagged_logger, mask_token

logger = get_tagged_logger(__name__, tag="api_client")


class TokenProvider(Protocol):
    """Source of the bearer token attached to backend requests."""

    def get_token(self) -> Optional[str]:
        """Return the current access token, or None when signed out."""

    def refresh(self) -> bool:
        """Try to obtain a new access token; True when one is available."""

    def on_unauthorized(self) -> None:
        """Called when a 401 could not be recovered by refreshing."""


class StaticTokenProvider:
    """Provider for server-side calls made with an explicit token (no refresh)."""

    def __init__(self, token: Optional[str]) -> None:
        self._token = token

    def get_token(self) -> Optional[str]:
        return self._token

    def refresh(self) -> bool:
        return False

    def on_unauthorized(self) -> None:
        logger.debug("Static token rejected by backend")


def backend_base_url() -> str:
    """Return the backend base URL without a trailing slash."""
    return str(settings.api_url).rstrip("/")


class ApiClient:
    """Authenticated JSON client for the insights backend.

    Every call reads the token from ``token_provider``. A 401 triggers exactly
    one refresh; if it succeeds the request is retried once, otherwise the
    provider is told the session is gone and ``ApiError(401)`` is raised.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        login_path: Optional[str] = None,
    ) -> None:
        self.token_provider = token_provider
        self.base_url = (base_url or backend_base_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self.session = session or requests.Session()
        self.login_path = login_path or settings.login_path

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith("http"):
            return endpoint
        return f"{self.base_url}{endpoint}"

    def _send(self, method: str, url: str, *, json: Any = None, params: Optional[dict] = None) -> requests.Response:
        headers = {"Content-Type": "application/json"}
        token = self.token_provider.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        logger.debug("%s %s (token=%s)", method, url, mask_token(token))
        try:
            return self.session.request(method, url, json=json, params=params, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            logger.warning("%s %s failed before a response: %s", method, url, exc)
            raise ApiError(str(exc) or "Network request failed", 0, "Network Error") from exc

    def request(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (``{}`` for non-JSON bodies)."""
        url = self._url(endpoint)
        response = self._send(method, url, json=json, params=params)

        if response.status_code == 401:
            logger.info("%s %s returned 401; refreshing session once", method, url)
            if not self.token_provider.refresh():
                self.token_provider.on_unauthorized()
                raise ApiError("Unauthorized", 401, "Unauthorized", login_redirect=self.login_path)
            response = self._send(method, url, json=json, params=params)
            if response.status_code == 401:
                self.token_provider.on_unauthorized()
                raise ApiError("Unauthorized", 401, "Unauthorized", login_redirect=self.login_path)

        if not 200 <= response.status_code < 300:
            error_text = response.text or ""
            logger.warning("%s %s failed with status %s: %s", method, url, response.status_code, error_text[:200])
            raise ApiError(error_text or "API request failed", response.status_code, response.reason or "")

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(f"Backend returned non-JSON response: {response.text[:200]}", 0, "Invalid JSON") from exc

    def get(self, endpoint: str, **kwargs) -> Any:
        return self.request(endpoint, "GET", **kwargs)

    def post(self, endpoint: str, **kwargs) -> Any:
        return self.request(endpoint, "POST", **kwargs)

    def put(self, endpoint: str, **kwargs) -> Any:
        return self.request(endpoint, "PUT", **kwargs)

    def patch(self, endpoint: str, **kwargs) -> Any:
        return self.request(endpoint, "PATCH", **kwargs)

    def close(self) -> None:
        """Release pooled connections."""
        self.session.close()


def request_with_token(endpoint: str, token: str, method: str = "GET", **kwargs) -> Any:
    """One-off server-side call with an explicit token (no refresh on 401)."""
    return ApiClient(StaticTokenProvider(token)).request(endpoint, method, **kwargs)
