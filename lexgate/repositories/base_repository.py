"""
Base Repository.

Provides shared infrastructure for all repositories:
- DatabaseManager reference (shared service-role Supabase client)
- Logger reference
- Bounded execution of every PostgREST call
- Classification of uniqueness-constraint violations
- Read error mapping (empty result vs. unreachable store)
"""

from __future__ import annotations

from typing import Callable, Optional, TypeVar

from postgrest.exceptions import APIError
from supabase import Client as SupabaseClient

from lexgate.database import DatabaseManager
from lexgate.logger import StructuredLogger
from lexgate.models.auth_models import UpstreamUnavailableError

T = TypeVar("T")

# PostgreSQL SQLSTATE for unique_violation.
UNIQUE_VIOLATION: str = "23505"

# PostgREST replies meaning "no row" for a single-row select.
EMPTY_RESULT_CODES: frozenset[str] = frozenset({"204", "PGRST116"})

# PostgREST could not reach or load the database (PGRST000-PGRST003).
STORE_UNREACHABLE_PREFIX: str = "PGRST00"


class BaseRepository:
    """Base class for all repositories. Receives dependencies via __init__."""

    TABLE: str = ""

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    @property
    def supabase(self) -> SupabaseClient:
        """Returns the shared service-role Supabase client."""
        return self._db.supabase

    def _execute(self, operation: str, fn: Callable[[], T]) -> T:
        """Run one PostgREST call through the bounded upstream executor.

        The client is resolved inside the worker so a missing configuration
        surfaces as ``UpstreamUnavailableError`` like any other outage.

        Parameters
        ----------
        operation:
            Short verb for log messages (``"insert"``, ``"select"``...);
            the table name is appended automatically.
        fn:
            Zero-argument callable that builds and executes the query.
        """
        return self._db.call(f"{operation} ({self.TABLE})", fn)

    @staticmethod
    def _is_unique_violation(exc: BaseException) -> bool:
        """``True`` when *exc* is a PostgREST duplicate-key error."""
        return isinstance(exc, APIError) and str(exc.code or "") == UNIQUE_VIOLATION

    @staticmethod
    def _is_store_unreachable(exc: APIError) -> bool:
        """``True`` for PostgREST connection errors and gateway 5xx replies."""
        code = str(exc.code or "")
        return code.startswith(STORE_UNREACHABLE_PREFIX) or (
            code.isdigit() and code.startswith("5")
        )

    def _read(self, fn: Callable[[], Optional[T]]) -> Optional[T]:
        """Run a select that may legitimately find nothing.

        An empty result is ``None``.  Every other store error is raised as
        ``UpstreamUnavailableError`` so a failed lookup is never mistaken
        for a missing row.
        """
        operation = f"select ({self.TABLE})"
        try:
            return self._execute("select", fn)
        except APIError as exc:
            code = str(exc.code or "")
            if code in EMPTY_RESULT_CODES:
                return None
            if self._is_store_unreachable(exc):
                self._logger.warning(
                    "Profile store unreachable during %s: %s (%s)",
                    operation, exc.message, code,
                    extra={"event": "UPSTREAM_UNAVAILABLE", "operation": operation},
                )
            else:
                self._logger.error(
                    "Profile store rejected %s: %s (%s)",
                    operation, exc.message, code,
                    extra={"event": "STORE_READ_FAILED", "operation": operation},
                )
            raise UpstreamUnavailableError(operation=operation) from exc
