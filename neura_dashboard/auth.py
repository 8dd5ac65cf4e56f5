"""Supabase sign-in/sign-up glue and backend user lookups."""

from __future__ import annotations

from typing import Any, Callable, Optional

from supabase import AuthError as SupabaseAuthError
from supabase import Client, create_client

from neura_dashboard import session_manager
from neura_dashboard.api_client import ApiClient, request_with_token
from neura_dashboard.config import settings
from neura_dashboard.domain import AppUser, AuthSession
from neura_dashboard.errors import ApiError, AuthError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="auth")


def default_client_factory() -> Client:
    """Create a Supabase client from configured URL and anon key."""
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise AuthError("Supabase URL/anon key not configured")
    return create_client(settings.supabase_url, settings.supabase_anon_key)


def _to_auth_session(session: Any, user: Any = None) -> AuthSession:
    user = user or getattr(session, "user", None)
    return AuthSession(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        user_id=getattr(user, "id", None),
        email=getattr(user, "email", None),
    )


class AuthService:
    """Thin wrapper over ``supabase.auth``.

    A fresh Supabase client is used per operation; the Python client keeps the
    current session in memory, which must not leak between gateway users.
    """

    def __init__(self, client_factory: Optional[Callable[[], Any]] = None) -> None:
        self.client_factory = client_factory or default_client_factory

    def _auth(self):
        return self.client_factory().auth

    @staticmethod
    def _register_with_backend(auth: AuthSession) -> None:
        # the backend creates the user/organisation row on first /auth/me
        try:
            request_with_token("/auth/me", auth.access_token)
        except ApiError as exc:
            logger.debug("Backend /auth/me sync failed (ignored): %s", exc.message)

    def sign_in(self, email: str, password: str) -> AuthSession:
        if not email or not password:
            raise AuthError("Email and password required")
        try:
            response = self._auth().sign_in_with_password({"email": email, "password": password})
        except SupabaseAuthError as exc:
            logger.info("Sign-in rejected for %s", email)
            raise AuthError(exc.message) from exc
        if not response.session:
            raise AuthError("No session created")
        auth = _to_auth_session(response.session, response.user)
        self._register_with_backend(auth)
        return auth

    def sign_up(self, name: str, email: str, password: str, organization_name: str) -> Optional[AuthSession]:
        """Register a user; returns None when e-mail confirmation is pending."""
        if not email or not password:
            raise AuthError("Email and password required")
        try:
            response = self._auth().sign_up({
                "email": email,
                "password": password,
                "options": {"data": {"name": name or "", "organization_name": organization_name}},
            })
        except SupabaseAuthError as exc:
            raise AuthError(exc.message) from exc
        if response.user is None or response.session is None:
            logger.info("Sign-up for %s awaits e-mail confirmation", email)
            return None
        auth = _to_auth_session(response.session, response.user)
        self._register_with_backend(auth)
        return auth

    def oauth_url(self, provider: str, redirect_to: str) -> str:
        try:
            response = self._auth().sign_in_with_oauth({
                "provider": provider,
                "options": {"redirect_to": redirect_to},
            })
        except SupabaseAuthError as exc:
            raise AuthError(exc.message) from exc
        return response.url

    def sync_session(self, access_token: str, refresh_token: str) -> AuthSession:
        """Adopt tokens handed back by the OAuth callback after validating them."""
        if not access_token or not refresh_token:
            raise AuthError("Missing tokens")
        try:
            response = self._auth().set_session(access_token, refresh_token)
        except SupabaseAuthError as exc:
            raise AuthError(exc.message) from exc
        if not response.session:
            raise AuthError("No session created")
        return _to_auth_session(response.session, response.user)

    def refresh(self, refresh_token: str) -> Optional[AuthSession]:
        try:
            response = self._auth().refresh_session(refresh_token)
        except SupabaseAuthError as exc:
            logger.info("Session refresh failed: %s", exc.message)
            return None
        if not response.session:
            return None
        return _to_auth_session(response.session, response.user)

    def sign_out(self, access_token: Optional[str] = None) -> None:
        try:
            auth = self._auth()
            if access_token:
                auth.admin.sign_out(access_token)
        except (SupabaseAuthError, AuthError) as exc:
            logger.debug("Remote sign-out failed (ignored): %s", exc.message)


class SessionTokenProvider:
    """Token provider bound to one gateway session id."""

    def __init__(self, session_id: str, auth_service: AuthService, on_signed_out: Optional[Callable[[], None]] = None) -> None:
        self.session_id = session_id
        self.auth_service = auth_service
        self.on_signed_out = on_signed_out

    def get_token(self) -> Optional[str]:
        auth = session_manager.get_session(self.session_id)
        return auth.access_token if auth else None

    def refresh(self) -> bool:
        current = session_manager.get_session(self.session_id)
        if current is None:
            return False
        refreshed = self.auth_service.refresh(current.refresh_token)
        if refreshed is None:
            return False
        session_manager.update_session(self.session_id, refreshed)
        logger.debug("Refreshed tokens for session %s", self.session_id[:8])
        return True

    def on_unauthorized(self) -> None:
        logger.info("Session %s is no longer authorized; signing out", self.session_id[:8])
        session_manager.delete_session(self.session_id)
        if self.on_signed_out is not None:
            self.on_signed_out()


def fetch_app_user(client: ApiClient) -> Optional[AppUser]:
    """Return the backend's view of the user (with role), or None on failure."""
    try:
        return AppUser.model_validate(client.get("/auth/me"))
    except ApiError as exc:
        logger.debug("Failed to fetch app user: %s", exc.message)
        return None


def check_admin_access(client: ApiClient) -> bool:
    """Probe the admin dashboard endpoint.

    Only an explicit 403 denies access; other failures are left for the
    admin views themselves to report.
    """
    try:
        client.get("/api/admin/dashboard")
    except ApiError as exc:
        if exc.status == 403:
            return False
        logger.warning("Admin probe failed with status %s; allowing", exc.status)
    return True
