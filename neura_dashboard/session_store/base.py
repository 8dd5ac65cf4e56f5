"""Shared protocol for session storage backends."""

from typing import Optional, Protocol

from neura_dashboard.domain import AuthSession


class SessionStore(Protocol):
    """Protocol for session storage backends."""
    def create_session(self, auth: AuthSession) -> str:
        """Persist a new session and return its id."""

    def get_session(self, session_id: str) -> Optional[AuthSession]:
        """Fetch a session by id, returning None if missing or expired."""

    def update_session(self, session_id: str, auth: AuthSession) -> None:
        """Replace the tokens of an existing session, ignoring missing/expired ids."""

    def delete_session(self, session_id: str) -> None:
        """Delete a session without raising if it is absent."""

    def clear(self) -> None:
        """Clear all stored sessions."""
