"""Exception types shared by the backend client, stores and HTTP layer."""

from __future__ import annotations

from typing import Optional


class ApiError(Exception):
    """A backend request that did not produce a usable 2xx response.

    ``status`` is the HTTP status code, or 0 when the request never got a
    response (connection refused, timeout) or the body could not be decoded.
    """

    def __init__(self, message: str, status: int, status_text: str, *, login_redirect: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.status_text = status_text
        self.login_redirect = login_redirect

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401

    def __repr__(self) -> str:
        return f"ApiError(status={self.status}, status_text={self.status_text!r}, message={self.message!r})"


class FieldValidationError(ValueError):
    """Input rejected before it reaches the backend; reported inline per field."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class MutationInFlight(RuntimeError):
    """Another mutation for the same entity has not finished yet."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(f"A request for {entity_id} is already in progress")
        self.entity_id = entity_id


class AuthError(Exception):
    """Sign-in, sign-up or session sync rejected by the auth provider."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class XeroNotConnected(RuntimeError):
    """Insight generation requested without a connected Xero organisation."""

    def __init__(self) -> None:
        super().__init__("Connect your Xero account before generating insights")
