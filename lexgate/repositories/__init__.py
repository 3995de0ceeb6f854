"""
Repository Layer Package.

Provides data-access abstractions over the Supabase profile store.
All database operations flow through repositories — services never
build PostgREST queries themselves.

Usage:
    from lexgate.repositories.user_profile_repository import UserProfileRepository
    from lexgate.repositories.activity_log_repository import ActivityLogRepository
"""

from lexgate.repositories.base_repository import BaseRepository
from lexgate.repositories.activity_log_repository import ActivityLogRepository
from lexgate.repositories.client_profile_repository import ClientProfileRepository
from lexgate.repositories.user_profile_repository import UserProfileRepository

__all__ = [
    "BaseRepository",
    "ActivityLogRepository",
    "ClientProfileRepository",
    "UserProfileRepository",
]
