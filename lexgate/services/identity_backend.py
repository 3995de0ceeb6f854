"""
Identity Backend Client.

Capability interface over the hosted identity provider plus its Supabase
Auth implementation.  The orchestrator only ever sees the normalised models
from ``lexgate.models.user`` and two failure shapes:

- ``IdentityBackendError`` — the backend answered and refused (bad
  credentials, expired token, weak password...).  The backend's own text
  travels on the exception for logging and must not reach callers.
- ``UpstreamUnavailableError`` — the backend could not be reached within
  the configured bound.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, TypeVar, runtime_checkable

from supabase import AuthError

from lexgate.database import DatabaseManager
from lexgate.logger import StructuredLogger
from lexgate.models.auth_models import IdentityBackendError
from lexgate.models.user import IdentityAuthResult, IdentitySession, IdentityUser
from lexgate.services.base_service import BaseService

T = TypeVar("T")


@runtime_checkable
class IdentityBackend(Protocol):
    """Operations the authentication flows need from the identity provider."""

    def sign_up(self, email: str, password: str, full_name: str) -> IdentityAuthResult:
        ...

    def sign_in_with_password(self, email: str, password: str) -> IdentityAuthResult:
        ...

    def get_user(self, access_token: str) -> Optional[IdentityUser]:
        ...

    def refresh_session(self, refresh_token: str) -> IdentityAuthResult:
        ...

    def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        ...

    def update_password(self, user_id: str, new_password: str) -> None:
        ...


class SupabaseIdentityBackend(BaseService):
    """``IdentityBackend`` implemented with Supabase Auth.

    Session-producing calls (signup, signin, refresh) run on a throwaway
    client from :meth:`DatabaseManager.new_session_client` so no session
    state is shared between requests.  Token validation, reset emails and
    admin password updates use the shared service-role client, which never
    signs in.
    """

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(logger)
        self._db: DatabaseManager = db

    # ------------------------------------------------------------------
    # Session-producing calls
    # ------------------------------------------------------------------

    def sign_up(self, email: str, password: str, full_name: str) -> IdentityAuthResult:
        credentials = {
            "email": email,
            "password": password,
            "options": {"data": {"full_name": full_name}},
        }
        response = self._run(
            "sign_up",
            lambda: self._db.new_session_client().auth.sign_up(credentials),
        )
        return self._to_auth_result(response)

    def sign_in_with_password(self, email: str, password: str) -> IdentityAuthResult:
        credentials = {"email": email, "password": password}
        response = self._run(
            "sign_in_with_password",
            lambda: self._db.new_session_client().auth.sign_in_with_password(credentials),
        )
        return self._to_auth_result(response)

    def refresh_session(self, refresh_token: str) -> IdentityAuthResult:
        response = self._run(
            "refresh_session",
            lambda: self._db.new_session_client().auth.refresh_session(refresh_token),
        )
        return self._to_auth_result(response)

    # ------------------------------------------------------------------
    # Service-role calls
    # ------------------------------------------------------------------

    def get_user(self, access_token: str) -> Optional[IdentityUser]:
        """Validate *access_token* and return its user, or None."""
        response = self._run(
            "get_user",
            lambda: self._db.supabase.auth.get_user(access_token),
        )
        if response is None or response.user is None:
            return None
        return self._to_identity_user(response.user)

    def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        self._run(
            "reset_password_for_email",
            lambda: self._db.supabase.auth.reset_password_for_email(
                email, {"redirect_to": redirect_to},
            ),
        )

    def update_password(self, user_id: str, new_password: str) -> None:
        self._run(
            "update_password",
            lambda: self._db.supabase.auth.admin.update_user_by_id(
                user_id, {"password": new_password},
            ),
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _run(self, operation: str, fn: Callable[[], T]) -> T:
        """Bounded call; backend refusals become ``IdentityBackendError``."""
        try:
            return self._db.call(f"auth.{operation}", fn)
        except AuthError as exc:
            raise IdentityBackendError(operation, getattr(exc, "message", str(exc))) from exc

    @classmethod
    def _to_auth_result(cls, response: Any) -> IdentityAuthResult:
        if response is None:
            return IdentityAuthResult()
        user = getattr(response, "user", None)
        session = getattr(response, "session", None)
        return IdentityAuthResult(
            user=cls._to_identity_user(user) if user is not None else None,
            session=cls._to_session(session) if session is not None else None,
        )

    @staticmethod
    def _to_identity_user(user: Any) -> IdentityUser:
        return IdentityUser(
            id=str(user.id),
            email=user.email or None,
            user_metadata=dict(user.user_metadata or {}),
        )

    @staticmethod
    def _to_session(session: Any) -> IdentitySession:
        return IdentitySession(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_at=session.expires_at,
        )
