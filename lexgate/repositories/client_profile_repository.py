"""
Client Profile Repository.

Handles ``client_profiles``, the 1:1 extension of ``user_profiles`` for
users whose ``user_type`` is ``client``.
"""

from __future__ import annotations

from typing import Optional

from lexgate.database import DatabaseManager
from lexgate.logger import StructuredLogger
from lexgate.models.user import ClientProfile
from lexgate.repositories.base_repository import BaseRepository


class ClientProfileRepository(BaseRepository):
    """Data access layer for ``ClientProfile`` rows."""

    TABLE = "client_profiles"

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(db, logger)

    def get_by_user_profile_id(self, user_profile_id: str) -> Optional[ClientProfile]:
        """Fetch the extension row linked to *user_profile_id*, if any."""
        def _select() -> Optional[ClientProfile]:
            response = (
                self.supabase.table(self.TABLE)
                .select("*")
                .eq("user_profile_id", user_profile_id)
                .limit(1)
                .execute()
            )
            return ClientProfile(**response.data[0]) if response.data else None

        return self._read(_select)

    def insert(self, user_profile_id: str) -> ClientProfile:
        """Create the extension row for a freshly provisioned client.

        Raises:
            APIError: The store rejected the insert.
        """
        def _insert() -> ClientProfile:
            response = (
                self.supabase.table(self.TABLE)
                .insert({"user_profile_id": user_profile_id})
                .execute()
            )
            if response.data:
                return ClientProfile(**response.data[0])
            return ClientProfile(user_profile_id=user_profile_id)

        created = self._execute("insert", _insert)
        self._logger.info("Client profile created for %s", user_profile_id)
        return created
