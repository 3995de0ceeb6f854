"""
Authentication Service.

Single orchestrator for every authentication flow of the LexGate identity
service: email/password signup and signin, Google OAuth callback, token
refresh, password reset, signout and current-user lookup.

Sits between the transport layer and the identity backend / profile store
so request handlers stay thin: they validate a request model from
``lexgate.models.auth_models``, call one method here, and serialise either
the returned response model or the raised ``AuthServiceError``.

The service holds no per-request state; every method is an independent
entry point and may be called concurrently.
"""

from __future__ import annotations

from typing import Optional

from lexgate.config import AppConfig
from lexgate.logger import StructuredLogger
from lexgate.models.auth_models import (
    PASSWORD_RESET_CONFIRMED_MESSAGE,
    PASSWORD_RESET_REQUESTED_MESSAGE,
    SIGNED_OUT_MESSAGE,
    AuthMessage,
    AuthResponse,
    AuthResponseUser,
    ChannelViolationError,
    IdentityBackendError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidTokenError,
    PasswordUpdateError,
    UpstreamUnavailableError,
)
from lexgate.models.enums import ActivityAction, AuthProvider, UserType
from lexgate.models.user import IdentitySession, IdentityUser, UserProfile
from lexgate.services.activity_log import ActivityLogService
from lexgate.services.admin_whitelist import AdminWhitelist
from lexgate.services.identity_backend import IdentityBackend
from lexgate.services.profile_provisioning import ProfileProvisioningService


# ---------------------------------------------------------------------------
# Caller-facing failure messages
# ---------------------------------------------------------------------------

_SIGNUP_FAILED_MESSAGE: str = "Unable to create account. Please try again."
_REFRESH_FAILED_MESSAGE: str = "Invalid or expired refresh token"
_RESET_TOKEN_FAILED_MESSAGE: str = "Invalid or expired reset token"


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class AuthService:
    """Centralised authentication orchestrator.

    Receives all collaborators via ``__init__`` and exposes one
    request → response method per flow.  Failures are raised as
    ``AuthServiceError`` subclasses whose messages are safe to return to
    the caller; backend detail only ever goes to the log.

    Parameters
    ----------
    identity:
        Identity backend client (Supabase Auth in production).
    provisioning:
        First-login provisioning and whitelist escalation.
    whitelist:
        Admin whitelist policy (``email -> bool``).
    activity_log:
        Best-effort audit trail writer.
    config:
        Application configuration (password-reset redirect).
    logger:
        Structured JSON logger.
    """

    def __init__(
        self,
        identity: IdentityBackend,
        provisioning: ProfileProvisioningService,
        whitelist: AdminWhitelist,
        activity_log: ActivityLogService,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        self._identity: IdentityBackend = identity
        self._provisioning: ProfileProvisioningService = provisioning
        self._whitelist: AdminWhitelist = whitelist
        self._activity_log: ActivityLogService = activity_log
        self._config: AppConfig = config
        self._logger: StructuredLogger = logger

    @staticmethod
    def normalize_email(email: str) -> str:
        """Normalise an email address: strip whitespace and lowercase."""
        return email.strip().lower()

    # ==================================================================
    # Signup
    # ==================================================================

    def signup(
        self,
        email: str,
        password: str,
        full_name: str,
        phone_number: Optional[str] = None,
    ) -> AuthResponse:
        """Register a new client account with email and password.

        Whitelisted admin emails are rejected before the identity backend
        is contacted: administrators must come in through Google OAuth.

        Parameters
        ----------
        email:
            Address to register.
        password:
            Plaintext password; already checked against the password policy
            by ``SignupRequest``.
        full_name:
            Display name stored on the profile.
        phone_number:
            Optional contact number stored on the profile.

        Returns
        -------
        AuthResponse
            The new user plus the backend's session pair, or empty tokens
            when the backend requires email confirmation first.

        Raises
        ------
        ChannelViolationError
            *email* is on the admin whitelist.
        InvalidCredentialsError
            The backend refused the signup.
        ProvisioningError
            The profile rows could not be written.
        """
        email = self.normalize_email(email)

        if self._whitelist.is_admin_email(email):
            self._logger.warning(
                "Blocked email/password signup for whitelisted admin address.",
                extra={"event": "SIGNUP_CHANNEL_VIOLATION", "email": email},
            )
            raise ChannelViolationError()

        try:
            result = self._identity.sign_up(email, password, full_name)
        except IdentityBackendError as exc:
            self._logger.warning(
                "Signup rejected by identity backend: %s", exc.detail,
                extra={"event": "SIGNUP_FAILED", "email": email},
            )
            raise InvalidCredentialsError(_SIGNUP_FAILED_MESSAGE) from exc

        if result.user is None:
            self._logger.warning(
                "Signup returned no identity.",
                extra={"event": "SIGNUP_FAILED", "email": email},
            )
            raise InvalidCredentialsError(_SIGNUP_FAILED_MESSAGE)

        user = result.user
        profile, _ = self._provisioning.provision_profile(
            user_id=user.id,
            full_name=full_name,
            user_type=UserType.CLIENT,
            phone_number=phone_number,
        )

        self._activity_log.record(
            user.id, ActivityAction.SIGNUP, {"provider": str(AuthProvider.EMAIL)},
        )
        self._logger.info(
            "User signed up: %s", user.id,
            extra={"event": "SIGNUP", "user_id": user.id},
        )

        return self._build_response(user, email, profile, result.session)

    # ==================================================================
    # Signin
    # ==================================================================

    def signin(self, email: str, password: str) -> AuthResponse:
        """Authenticate an existing user with email and password.

        Signin never provisions: an identity without a profile is an error.
        A whitelisted user is escalated to admin on the way through.

        Raises
        ------
        InvalidCredentialsError
            The backend refused the credentials or issued no session.
        ProfileNotFoundError
            The identity has no profile.
        """
        email = self.normalize_email(email)

        try:
            result = self._identity.sign_in_with_password(email, password)
        except IdentityBackendError as exc:
            self._logger.warning(
                "Signin rejected by identity backend: %s", exc.detail,
                extra={"event": "SIGNIN_FAILED", "email": email},
            )
            raise InvalidCredentialsError() from exc

        if result.user is None or result.session is None:
            self._logger.warning(
                "Signin returned no identity or session.",
                extra={"event": "SIGNIN_FAILED", "email": email},
            )
            raise InvalidCredentialsError()

        user = result.user
        confirmed_email = user.email or email
        profile = self._provisioning.require_profile(user.id)
        profile = self._provisioning.escalate_if_whitelisted(profile, confirmed_email)

        self._activity_log.record(
            user.id, ActivityAction.SIGNIN, {"provider": str(AuthProvider.EMAIL)},
        )
        self._logger.info(
            "User authenticated: %s (type: %s)", user.id, profile.user_type,
            extra={"event": "SIGNIN", "user_id": user.id},
        )

        return self._build_response(user, confirmed_email, profile, result.session)

    # ==================================================================
    # OAuth
    # ==================================================================

    def process_oauth_callback(self, access_token: str, refresh_token: str) -> AuthResponse:
        """Validate a Google OAuth session and provision on first login.

        The tokens were issued by the identity backend during the OAuth
        redirect; this flow validates them and returns them unchanged.

        Raises
        ------
        InvalidTokenError
            The access token is invalid or carries no email.
        ProvisioningError
            First-login provisioning failed.
        """
        user = self._resolve_token_user(access_token, InvalidTokenError(), "OAUTH_FAILED")
        email = user.email or ""

        user_type = self._provisioning.initial_user_type(email)
        full_name = user.display_name() or email

        profile, created = self._provisioning.get_or_create_profile(
            user_id=user.id,
            full_name=full_name,
            user_type=user_type,
        )
        if not created:
            profile = self._provisioning.escalate_if_whitelisted(profile, email)

        self._activity_log.record(
            user.id, ActivityAction.OAUTH_LOGIN, {"provider": str(AuthProvider.GOOGLE)},
        )
        self._logger.info(
            "OAuth login: %s (type: %s, first login: %s)",
            user.id,
            profile.user_type,
            created,
            extra={"event": "OAUTH_LOGIN", "user_id": user.id},
        )

        return AuthResponse(
            user=self._response_user(user.id, email, profile),
            access_token=access_token,
            refresh_token=refresh_token,
        )

    # ==================================================================
    # Token refresh
    # ==================================================================

    def refresh_token(self, refresh_token: str) -> AuthResponse:
        """Exchange a refresh token for a new session pair.

        Unlike signin, no whitelist escalation happens here: a role change
        takes effect on the next explicit authentication.

        Raises
        ------
        InvalidOrExpiredTokenError
            The backend refused the refresh token.
        ProfileNotFoundError
            The identity has no profile.
        """
        try:
            result = self._identity.refresh_session(refresh_token)
        except IdentityBackendError as exc:
            self._logger.warning(
                "Token refresh rejected by identity backend: %s", exc.detail,
                extra={"event": "REFRESH_FAILED"},
            )
            raise InvalidOrExpiredTokenError(_REFRESH_FAILED_MESSAGE) from exc

        if result.user is None or result.session is None or not result.user.email:
            raise InvalidOrExpiredTokenError(_REFRESH_FAILED_MESSAGE)

        user = result.user
        profile = self._provisioning.require_profile(user.id)

        self._logger.info(
            "Session refreshed for %s", user.id,
            extra={"event": "TOKEN_REFRESH", "user_id": user.id},
        )
        return self._build_response(user, user.email, profile, result.session)

    # ==================================================================
    # Password reset
    # ==================================================================

    def request_password_reset(self, email: str) -> AuthMessage:
        """Ask the backend to email a reset link.

        Anti-enumeration: the same message is returned whether or not the
        address exists, and whether or not the backend call succeeded.
        """
        email = self.normalize_email(email)
        redirect_to = self._config.password_reset_redirect_url

        try:
            self._identity.reset_password_for_email(email, redirect_to)
            self._logger.info(
                "Password reset requested.",
                extra={"event": "PASSWORD_RESET_REQUESTED", "email": email},
            )
        except (IdentityBackendError, UpstreamUnavailableError) as exc:
            self._logger.warning(
                "Password reset request failed: %s", exc,
                extra={"event": "PASSWORD_RESET_REQUEST_FAILED", "email": email},
            )

        return AuthMessage(message=PASSWORD_RESET_REQUESTED_MESSAGE)

    def confirm_password_reset(self, access_token: str, new_password: str) -> AuthMessage:
        """Set a new password for the user the reset token belongs to.

        Raises
        ------
        InvalidOrExpiredTokenError
            The reset token is invalid.
        PasswordUpdateError
            The backend refused the password change.
        """
        user = self._resolve_token_user(
            access_token,
            InvalidOrExpiredTokenError(_RESET_TOKEN_FAILED_MESSAGE),
            "PASSWORD_RESET_FAILED",
        )

        try:
            self._identity.update_password(user.id, new_password)
        except IdentityBackendError as exc:
            self._logger.error(
                "Password update failed for %s: %s", user.id, exc.detail,
                extra={"event": "PASSWORD_RESET_FAILED", "user_id": user.id},
            )
            raise PasswordUpdateError() from exc

        self._activity_log.record(user.id, ActivityAction.PASSWORD_RESET)
        self._logger.info(
            "Password reset completed for %s", user.id,
            extra={"event": "PASSWORD_RESET", "user_id": user.id},
        )
        return AuthMessage(message=PASSWORD_RESET_CONFIRMED_MESSAGE)

    # ==================================================================
    # Signout / current user
    # ==================================================================

    def signout(self, user_id: str) -> AuthMessage:
        """Record a signout.  Token disposal is the caller's job."""
        self._activity_log.record(user_id, ActivityAction.SIGNOUT)
        self._logger.info(
            "User signed out: %s", user_id,
            extra={"event": "SIGNOUT", "user_id": user_id},
        )
        return AuthMessage(message=SIGNED_OUT_MESSAGE)

    def get_current_user(self, user_id: str, email: str) -> AuthResponseUser:
        """Return the profile of an already-authenticated user.

        Applies whitelist escalation, like signin.

        Raises
        ------
        ProfileNotFoundError
            The identity has no profile.
        """
        profile = self._provisioning.require_profile(user_id)
        profile = self._provisioning.escalate_if_whitelisted(profile, email)
        return self._response_user(user_id, email, profile)

    # ==================================================================
    # Private helpers
    # ==================================================================

    def _resolve_token_user(
        self,
        access_token: str,
        error: InvalidTokenError,
        event: str,
    ) -> IdentityUser:
        """Validate *access_token*; raise *error* unless it names a user with an email."""
        try:
            user = self._identity.get_user(access_token)
        except IdentityBackendError as exc:
            self._logger.warning(
                "Token validation rejected by identity backend: %s", exc.detail,
                extra={"event": event},
            )
            raise error from exc

        if user is None or not user.id or not user.email:
            self._logger.warning(
                "Token validation returned no usable identity.",
                extra={"event": event},
            )
            raise error
        return user

    @staticmethod
    def _response_user(user_id: str, email: str, profile: UserProfile) -> AuthResponseUser:
        return AuthResponseUser(
            id=user_id,
            email=email,
            full_name=profile.full_name,
            user_type=profile.user_type,
        )

    def _build_response(
        self,
        user: IdentityUser,
        email: str,
        profile: UserProfile,
        session: Optional[IdentitySession],
    ) -> AuthResponse:
        return AuthResponse(
            user=self._response_user(user.id, user.email or email, profile),
            access_token=session.access_token if session else "",
            refresh_token=session.refresh_token if session else "",
        )
