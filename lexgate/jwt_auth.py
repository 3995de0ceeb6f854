"""
Bearer Token Authentication Guard.

Resolves the ``Authorization: Bearer <token>`` header of an incoming
request to an :class:`~lexgate.models.user.AuthUser`, and provides a
factory that produces a decorator for gating handlers behind it.

Usage::

    from lexgate.jwt_auth import require_auth

    auth_guard = require_auth(services["bearer_authenticator"])

    @auth_guard
    def me(current_user: AuthUser) -> dict[str, object]:
        return auth_service.get_current_user(current_user.id, current_user.email).to_payload()

    me(authorization=request.headers.get("Authorization"))
"""

from __future__ import annotations

from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar

from lexgate.logger import StructuredLogger
from lexgate.models.auth_models import (
    AuthServiceError,
    IdentityBackendError,
    InvalidOrExpiredTokenError,
    InvalidTokenError,
    ProfileNotFoundError,
)
from lexgate.models.enums import UserType
from lexgate.models.user import AuthUser
from lexgate.repositories.client_profile_repository import ClientProfileRepository
from lexgate.repositories.user_profile_repository import UserProfileRepository

if TYPE_CHECKING:
    from lexgate.services.identity_backend import IdentityBackend

R = TypeVar("R")

_BEARER_PREFIX: str = "bearer "


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the token of a ``Bearer`` authorization header.

    Raises:
        InvalidTokenError: The header is missing, uses another scheme, or
            carries an empty token.
    """
    if not authorization or not authorization.lower().startswith(_BEARER_PREFIX):
        raise InvalidTokenError("Missing or malformed authorization header")
    token = authorization[len(_BEARER_PREFIX):].strip()
    if not token:
        raise InvalidTokenError("Missing or malformed authorization header")
    return token


class BearerAuthenticator:
    """Validates access tokens and loads the caller's profile.

    Never provisions and never escalates: a token whose identity has no
    profile is rejected with ``ProfileNotFoundError``.

    Args:
        identity: Identity backend used to validate tokens.
        user_repo: Source of ``user_profiles`` rows.
        client_repo: Source of ``client_profiles`` rows.
        logger: Structured logger.
    """

    def __init__(
        self,
        identity: IdentityBackend,
        user_repo: UserProfileRepository,
        client_repo: ClientProfileRepository,
        logger: StructuredLogger,
    ) -> None:
        self._identity = identity
        self._user_repo = user_repo
        self._client_repo = client_repo
        self._logger: StructuredLogger = logger

    def authenticate(self, authorization: Optional[str]) -> AuthUser:
        """Resolve an ``Authorization`` header value to an :class:`AuthUser`.

        Raises:
            InvalidTokenError: Missing/malformed header, or any unexpected
                failure (reported generically as "Authentication failed").
            InvalidOrExpiredTokenError: The token was rejected.
            ProfileNotFoundError: The identity has no profile.
            UpstreamUnavailableError: A backend call timed out.
        """
        token = extract_bearer_token(authorization)

        try:
            return self._resolve(token)
        except AuthServiceError:
            raise
        except Exception as exc:
            self._logger.error(
                "Unexpected error while authenticating bearer token: %s", exc,
                exc_info=True,
                extra={"event": "BEARER_AUTH_ERROR"},
            )
            raise InvalidTokenError("Authentication failed") from exc

    def _resolve(self, token: str) -> AuthUser:
        try:
            user = self._identity.get_user(token)
        except IdentityBackendError as exc:
            self._logger.info(
                "Bearer token rejected: %s", exc.detail,
                extra={"event": "BEARER_AUTH_REJECTED"},
            )
            raise InvalidOrExpiredTokenError() from exc

        if user is None or not user.email:
            raise InvalidOrExpiredTokenError()

        profile = self._user_repo.get_by_id(user.id)
        if profile is None:
            raise ProfileNotFoundError()

        client_profile_id: Optional[str] = None
        if profile.user_type == UserType.CLIENT:
            client_profile = self._client_repo.get_by_user_profile_id(user.id)
            if client_profile is not None:
                client_profile_id = client_profile.id

        return AuthUser(
            id=user.id,
            email=user.email,
            user_type=profile.user_type,
            full_name=profile.full_name,
            phone_number=profile.phone_number,
            client_profile_id=client_profile_id,
        )


def require_auth(
    authenticator: BearerAuthenticator,
) -> Callable[[Callable[..., R]], Callable[..., R]]:
    """Return a decorator that authenticates the caller before each call.

    The wrapped function is called with an ``authorization`` keyword
    argument (the raw header value); the decorator consumes it and passes
    the resolved user as ``current_user`` instead.

    Args:
        authenticator: The ``BearerAuthenticator`` that resolves tokens.

    Returns:
        A decorator suitable for wrapping request handlers.
    """

    def decorator(func: Callable[..., R]) -> Callable[..., R]:
        @wraps(func)
        def wrapper(*args: Any, authorization: Optional[str] = None, **kwargs: Any) -> R:
            current_user = authenticator.authenticate(authorization)
            return func(*args, current_user=current_user, **kwargs)

        return wrapper

    return decorator
