from __future__ import annotations

"""
Data Models Package.

Re-exports the Pydantic models and enumerations for short imports:
    from lexgate.models import UserProfile, ClientProfile, AuthUser
    from lexgate.models import UserType, ActivityAction, AuthProvider
"""

from lexgate.models.enums import ActivityAction, AuthProvider, EntityType, UserType
from lexgate.models.user import (
    AuthUser,
    ClientProfile,
    IdentityAuthResult,
    IdentitySession,
    IdentityUser,
    UserProfile,
)

__all__ = [
    "ActivityAction",
    "AuthProvider",
    "EntityType",
    "UserType",
    "AuthUser",
    "ClientProfile",
    "IdentityAuthResult",
    "IdentitySession",
    "IdentityUser",
    "UserProfile",
]
