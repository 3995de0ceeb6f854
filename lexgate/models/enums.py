"""
Shared Enumerations for LexGate Models.

All string enumerations for type-safe field constraints.
StrEnum values compare equal to their string equivalents,
so rows read back from the profile store (``"client"``) match directly.
"""

from __future__ import annotations
from enum import StrEnum


class UserType(StrEnum):
    """Roles stored in ``user_profiles.user_type``.

    Matches the ``user_type`` enum of the profile store.  Only ``ADMIN``
    is ever assigned automatically after creation (whitelist escalation);
    no flow demotes a user.
    """

    CLIENT = "client"
    ATTORNEY = "attorney"
    STAFF = "staff"
    ADMIN = "admin"


class ActivityAction(StrEnum):
    """Actions written to ``activity_logs`` by the authentication flows."""

    SIGNUP = "SIGNUP"
    SIGNIN = "SIGNIN"
    OAUTH_LOGIN = "OAUTH_LOGIN"
    PASSWORD_RESET = "PASSWORD_RESET"
    SIGNOUT = "SIGNOUT"


class AuthProvider(StrEnum):
    """Credential channel recorded in audit metadata."""

    EMAIL = "email"
    GOOGLE = "google"


class EntityType(StrEnum):
    """Entity types referenced by audit entries."""

    USER = "user"
