"""
User Models.

Pydantic models for the two sides of a user record:

- ``IdentityUser`` / ``IdentitySession`` — what the identity backend
  (Supabase Auth) hands back, normalised so the orchestrator never touches
  raw SDK objects.
- ``UserProfile`` / ``ClientProfile`` — rows the service owns in the
  profile store (``user_profiles`` / ``client_profiles``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from lexgate.models.enums import UserType


class IdentityUser(BaseModel):
    """Raw identity record as issued by the identity backend."""

    id: str  # Supabase UUID
    email: Optional[str] = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}

    def display_name(self) -> Optional[str]:
        """Provider-supplied display name: ``full_name``, then ``name``."""
        for key in ("full_name", "name"):
            value = self.user_metadata.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None


class IdentitySession(BaseModel):
    """Access/refresh token pair issued by the identity backend."""

    access_token: str
    refresh_token: str
    expires_at: Optional[int] = None

    model_config = {"from_attributes": True}


class IdentityAuthResult(BaseModel):
    """Outcome of a session-producing backend call (signup, signin, refresh).

    Either part may be missing: signup returns no session when the backend
    requires email confirmation first.
    """

    user: Optional[IdentityUser] = None
    session: Optional[IdentitySession] = None


class UserProfile(BaseModel):
    """Row of ``user_profiles``; ``id`` equals the identity id (1:1)."""

    id: str
    full_name: str
    user_type: UserType = UserType.CLIENT
    phone_number: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ClientProfile(BaseModel):
    """Row of ``client_profiles``, the extension table for clients.

    Only ``user_profile_id`` is written by the authentication flows; the
    remaining attributes are filled in later by the client portal.
    """

    id: Optional[str] = None
    user_profile_id: str
    company_name: Optional[str] = None
    company_type: Optional[str] = None
    tax_id: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AuthUser(BaseModel):
    """Authenticated caller resolved from a bearer token.

    Attached to authenticated operations (current profile, sign-out).
    ``client_profile_id`` is present only for clients.
    """

    id: str
    email: str
    user_type: UserType
    full_name: str
    phone_number: Optional[str] = None
    client_profile_id: Optional[str] = None
