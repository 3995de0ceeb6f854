"""
User Profile Repository.

Handles all ``user_profiles`` access via the shared service-role client
(row-level security is bypassed: profiles are written before the user has a
session the store would trust).
"""

from __future__ import annotations

from typing import Optional

from postgrest.exceptions import APIError

from lexgate.database import DatabaseManager
from lexgate.logger import StructuredLogger
from lexgate.models.auth_models import ProfileConflictError
from lexgate.models.enums import UserType
from lexgate.models.user import UserProfile
from lexgate.repositories.base_repository import BaseRepository


class UserProfileRepository(BaseRepository):
    """Data access layer for ``UserProfile`` rows.

    ``id`` is the primary key and equals the identity id, so the store's
    uniqueness constraint is what makes first-login provisioning safe under
    concurrency: a second insert for the same identity raises
    :class:`ProfileConflictError` instead of creating a duplicate.

    There is no demotion path here; :meth:`update_user_type` is only called
    by the whitelist escalation policy.
    """

    TABLE = "user_profiles"
    _COLUMNS = "id, full_name, phone_number, user_type, created_at, updated_at"

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(db, logger)

    def get_by_id(self, user_id: str) -> Optional[UserProfile]:
        """Fetch a profile by primary key.

        Returns None only when no row exists.  Any other store failure
        raises ``UpstreamUnavailableError``.
        """
        def _select() -> Optional[UserProfile]:
            response = (
                self.supabase.table(self.TABLE)
                .select(self._COLUMNS)
                .eq("id", user_id)
                .maybe_single()
                .execute()
            )
            if response is None or not response.data:
                return None
            return UserProfile(**response.data)

        return self._read(_select)

    def insert(self, profile: UserProfile) -> UserProfile:
        """Insert a new profile row.

        Raises:
            ProfileConflictError: A row with this ``id`` already exists.
            APIError: Any other store-side rejection.
        """
        data = {
            "id": profile.id,
            "full_name": profile.full_name,
            "user_type": str(profile.user_type),
            "phone_number": profile.phone_number or None,
        }

        def _insert() -> UserProfile:
            response = self.supabase.table(self.TABLE).insert(data).execute()
            if response.data:
                return UserProfile(**response.data[0])
            return profile

        try:
            created = self._execute("insert", _insert)
        except APIError as exc:
            if self._is_unique_violation(exc):
                raise ProfileConflictError(self.TABLE, profile.id) from exc
            raise

        self._logger.info(
            "User profile created: %s (%s)", created.id, created.user_type,
        )
        return created

    def update_user_type(self, user_id: str, user_type: UserType) -> Optional[UserProfile]:
        """Set ``user_type`` for *user_id*. Returns the updated row, or None if absent."""
        def _update() -> Optional[UserProfile]:
            response = (
                self.supabase.table(self.TABLE)
                .update({"user_type": str(user_type)})
                .eq("id", user_id)
                .execute()
            )
            return UserProfile(**response.data[0]) if response.data else None

        return self._execute("update", _update)

    def delete(self, user_id: str) -> None:
        """Remove a profile row.

        Only used to compensate a half-finished provisioning (profile
        inserted, client extension rejected); never part of a user-facing flow.
        """
        self._execute(
            "delete",
            lambda: self.supabase.table(self.TABLE).delete().eq("id", user_id).execute(),
        )
        self._logger.warning("User profile removed: %s", user_id)
