"""
Activity Log Repository.

Append-only writer for ``activity_logs``.  There is deliberately no update
or delete method.
"""

from __future__ import annotations

from lexgate.database import DatabaseManager
from lexgate.logger import StructuredLogger
from lexgate.repositories.base_repository import BaseRepository
from lexgate.utils.audit import AuditEvent


class ActivityLogRepository(BaseRepository):
    """Data access layer for audit entries."""

    TABLE = "activity_logs"

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        super().__init__(db, logger)

    def insert(self, event: AuditEvent) -> None:
        """Append *event*; ``created_at`` is assigned by the store.

        Raises whatever the store raises — callers decide whether an audit
        failure matters (for the auth flows it never does).
        """
        row = {
            "user_id": event.user_id,
            "action": event.action,
            "entity_type": event.entity_type,
            "entity_id": event.entity_id,
            "metadata": event.details,
        }
        self._execute(
            "insert",
            lambda: self.supabase.table(self.TABLE).insert(row).execute(),
        )
