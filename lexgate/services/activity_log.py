"""
Activity Log Service.

Best-effort writer for the ``activity_logs`` audit trail.  Every entry is
first emitted as an ``AUDIT:`` log line, then persisted either inline or on
a small background executor so the store round-trip never sits on the
response path.  A failed write is logged and dropped; it never reaches the
caller of the authentication flow that produced it.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from lexgate.logger import StructuredLogger
from lexgate.models.enums import ActivityAction, EntityType
from lexgate.repositories.activity_log_repository import ActivityLogRepository
from lexgate.services.base_service import BaseService
from lexgate.utils.audit import AuditEvent, DetailValue, log_audit_event


class ActivityLogService(BaseService):
    """Records authentication events without ever failing the caller."""

    def __init__(
        self,
        repo: ActivityLogRepository,
        logger: StructuredLogger,
        in_background: bool = True,
        max_workers: int = 2,
    ) -> None:
        super().__init__(logger)
        self._repo = repo
        self._in_background: bool = in_background
        self._max_workers: int = max(1, max_workers)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._closed: bool = False

    def record(
        self,
        user_id: str,
        action: ActivityAction,
        details: Optional[dict[str, DetailValue]] = None,
    ) -> Optional[Future[None]]:
        """Emit and persist one audit entry about *user_id*.

        Returns the pending write when it was handed to the background
        executor (tests wait on it), otherwise None.
        """
        event = log_audit_event(
            logger=self._logger,
            action=action,
            entity_type=EntityType.USER,
            entity_id=user_id,
            user_id=user_id,
            details=details,
        )

        executor = self._get_executor() if self._in_background else None
        if executor is None:
            self._persist(event)
            return None

        try:
            return executor.submit(self._persist, event)
        except RuntimeError:
            # Executor shut down between the check and the submit.
            self._persist(event)
            return None

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting background writes and optionally drain pending ones."""
        with self._lock:
            self._closed = True
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _get_executor(self) -> Optional[ThreadPoolExecutor]:
        with self._lock:
            if self._closed:
                return None
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="lexgate-audit",
                )
            return self._executor

    def _persist(self, event: AuditEvent) -> None:
        try:
            self._repo.insert(event)
        except Exception as exc:
            self._logger.warning(
                "Failed to persist activity log %s for %s: %s",
                event.action,
                event.user_id,
                exc,
                extra={"event": "AUDIT_WRITE_FAILED", "user_id": event.user_id},
            )
