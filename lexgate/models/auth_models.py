"""
Authentication Pipeline Models.

Pydantic models, enumerations and exceptions for the auth request/response
contracts between ``AuthService`` and the transport layer.

- Request schemas are the validation step that runs before the
  orchestrator; the orchestrator assumes well-formed input.
- Responses always carry the same ``user`` shape
  (``id``, ``email``, ``fullName``, ``userType``) on every token-bearing flow.
- Failures are raised as ``AuthServiceError`` subclasses whose ``message``
  is safe to show the caller and whose ``status_code`` tells the transport
  which HTTP status to use.
"""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, Field

from lexgate.models.enums import UserType


# ---------------------------------------------------------------------------
# Caller-facing messages
# ---------------------------------------------------------------------------

PASSWORD_RESET_REQUESTED_MESSAGE: str = (
    "If an account with that email exists, a password reset link has been sent."
)
PASSWORD_RESET_CONFIRMED_MESSAGE: str = "Password has been reset successfully."
SIGNED_OUT_MESSAGE: str = "Signed out successfully."


# ---------------------------------------------------------------------------
# Field rules
# ---------------------------------------------------------------------------

_EMAIL_RE: re.Pattern[str] = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

PASSWORD_MIN_LENGTH: int = 8
PASSWORD_MAX_LENGTH: int = 72  # bcrypt input limit on the identity backend


def validate_email_address(value: str) -> str:
    """Strip *value* and check it against a simplified RFC 5322 pattern."""
    stripped = value.strip()
    if not stripped:
        raise ValueError("Email is required")
    if not _EMAIL_RE.match(stripped):
        raise ValueError("Please provide a valid email address")
    return stripped


def validate_password_strength(value: str) -> str:
    """Enforce the password policy: 8-72 chars, upper, lower and digit."""
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValueError("Password must be at least 8 characters")
    if len(value) > PASSWORD_MAX_LENGTH:
        raise ValueError("Password must not exceed 72 characters")
    if not (
        re.search(r"[a-z]", value)
        and re.search(r"[A-Z]", value)
        and re.search(r"\d", value)
    ):
        raise ValueError(
            "Password must contain at least one uppercase letter, "
            "one lowercase letter, and one number"
        )
    return value


EmailAddress = Annotated[str, AfterValidator(validate_email_address)]
Password = Annotated[str, AfterValidator(validate_password_strength)]


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class _RequestModel(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}


class SignupRequest(_RequestModel):
    """Client email/password registration."""

    email: EmailAddress
    password: Password
    full_name: str = Field(alias="fullName", min_length=1, max_length=255)
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber", max_length=20)


class SigninRequest(_RequestModel):
    """Email/password authentication."""

    email: EmailAddress
    password: str = Field(min_length=1)


class OAuthCallbackRequest(_RequestModel):
    """Session tokens handed over by the front end after the Google redirect."""

    access_token: str = Field(alias="accessToken", min_length=1)
    refresh_token: str = Field(alias="refreshToken", min_length=1)


class RefreshTokenRequest(_RequestModel):
    refresh_token: str = Field(alias="refreshToken", min_length=1)


class PasswordResetRequest(_RequestModel):
    email: EmailAddress


class PasswordResetConfirmRequest(_RequestModel):
    """Access token from the reset link plus the new password."""

    access_token: str = Field(alias="accessToken", min_length=1)
    new_password: Password = Field(alias="newPassword")


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class _ResponseModel(BaseModel):
    model_config = {"populate_by_name": True, "from_attributes": True}

    def to_payload(self) -> dict[str, object]:
        """Wire representation (camelCase keys, enum values as strings)."""
        return self.model_dump(by_alias=True, mode="json")


class AuthResponseUser(_ResponseModel):
    """Public-safe user information returned by every token-bearing flow."""

    id: str
    email: str
    full_name: str = Field(alias="fullName")
    user_type: UserType = Field(alias="userType")


class AuthResponse(_ResponseModel):
    """User info plus the session pair.

    Tokens are empty strings when the backend issued no session (signup
    pending email confirmation).
    """

    user: AuthResponseUser
    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")


class AuthMessage(_ResponseModel):
    """Response for operations that do not return tokens."""

    message: str


# ---------------------------------------------------------------------------
# Error taxonomy
# ---------------------------------------------------------------------------

class AuthErrorCode(StrEnum):
    """Exhaustive enumeration of authentication failure categories."""

    CHANNEL_VIOLATION = "channel_violation"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_TOKEN = "invalid_token"
    INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"
    PROFILE_NOT_FOUND = "profile_not_found"
    PROVISIONING_FAILED = "provisioning_failed"
    PASSWORD_UPDATE_FAILED = "password_update_failed"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"


class AuthServiceError(Exception):
    """Base class for every failure an auth flow reports to its caller.

    Attributes
    ----------
    code:
        Structured error category.
    message:
        Caller-safe text.  Never contains identity-backend detail.
    status_code:
        HTTP status the transport layer should answer with.
    retryable:
        ``True`` when the caller may safely repeat the request.
    """

    code: AuthErrorCode = AuthErrorCode.INVALID_CREDENTIALS
    status_code: int = 400
    retryable: bool = False
    default_message: str = "Authentication failed"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message: str = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> dict[str, object]:
        """Error body for the transport layer."""
        return {
            "statusCode": self.status_code,
            "error": str(self.code),
            "message": self.message,
        }


class ChannelViolationError(AuthServiceError):
    """Whitelisted admin email tried the email/password channel."""

    code = AuthErrorCode.CHANNEL_VIOLATION
    status_code = 403
    default_message = "Admin accounts must use Google OAuth. Please sign in with Google."


class InvalidCredentialsError(AuthServiceError):
    code = AuthErrorCode.INVALID_CREDENTIALS
    status_code = 401
    default_message = "Invalid email or password"


class InvalidTokenError(AuthServiceError):
    code = AuthErrorCode.INVALID_TOKEN
    status_code = 401
    default_message = "Invalid OAuth token"


class InvalidOrExpiredTokenError(InvalidTokenError):
    code = AuthErrorCode.INVALID_OR_EXPIRED_TOKEN
    default_message = "Invalid or expired token"


class ProfileNotFoundError(AuthServiceError):
    """Valid identity without a provisioned profile (signin/refresh never provision)."""

    code = AuthErrorCode.PROFILE_NOT_FOUND
    status_code = 401
    default_message = "User profile not found"


class ProvisioningError(AuthServiceError):
    """Profile or extension-table insert failed during first-login provisioning."""

    code = AuthErrorCode.PROVISIONING_FAILED
    status_code = 500
    default_message = "Unable to create user profile. Please try again."

    def __init__(
        self,
        message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.original_error: Optional[Exception] = original_error


class PasswordUpdateError(AuthServiceError):
    code = AuthErrorCode.PASSWORD_UPDATE_FAILED
    status_code = 500
    default_message = "Unable to update password. Please try again."


class UpstreamUnavailableError(AuthServiceError):
    """An identity-backend or profile-store call timed out or was unreachable."""

    code = AuthErrorCode.UPSTREAM_UNAVAILABLE
    status_code = 503
    retryable = True
    default_message = "Authentication service is temporarily unavailable. Please try again."

    def __init__(self, message: Optional[str] = None, operation: str = "") -> None:
        super().__init__(message)
        self.operation: str = operation


# ---------------------------------------------------------------------------
# Internal errors (never surfaced to callers as-is)
# ---------------------------------------------------------------------------

class IdentityBackendError(Exception):
    """The identity backend rejected a call.

    Carries the backend's own description for internal logging only; the
    orchestrator translates it into a generic ``AuthServiceError``.
    """

    def __init__(self, operation: str, detail: str) -> None:
        self.operation: str = operation
        self.detail: str = detail
        super().__init__(f"{operation}: {detail}")


class ProfileConflictError(Exception):
    """A profile-store insert hit a uniqueness constraint (PostgreSQL 23505)."""

    def __init__(self, table: str, entity_id: str) -> None:
        self.table: str = table
        self.entity_id: str = entity_id
        super().__init__(f"Duplicate row in {table} for {entity_id}")
