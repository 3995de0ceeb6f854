"""
Database Abstraction Layer.

Manages the connections to the hosted Supabase project, which plays two
roles for LexGate:

- **Identity backend** (Supabase Auth): credentials, tokens, raw users.
- **Profile store** (Supabase PostgreSQL via PostgREST): ``user_profiles``,
  ``client_profiles`` and ``activity_logs``.

Two kinds of client are handed out:

- ``supabase``: one long-lived service-role client.  It never signs in,
  so its headers stay on the service role and it is safe to share across
  requests.  Used for profile-store access, token validation and admin
  password updates.
- ``new_session_client()``: a fresh, non-persisting client per
  session-producing call (signup, signin, refresh).  Signing in mutates a
  client's auth state, so those calls never touch the shared client.

Every upstream call goes through :meth:`DatabaseManager.call`, which bounds
it with ``UPSTREAM_TIMEOUT_S`` and maps timeouts and transport failures to
``UpstreamUnavailableError``.  This module contains no query logic; data
access is performed through the Repository pattern.

Usage (dependency injection at startup)::

    from lexgate.database import DatabaseManager
    from lexgate.logger import StructuredLogger

    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        service_role_key=config.SUPABASE_SERVICE_ROLE_KEY.get_secret_value(),
        session_key=config.session_key,
        logger=StructuredLogger(name="lexgate.database"),
        upstream_timeout_s=config.UPSTREAM_TIMEOUT_S,
    )
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, TypeVar

import httpx
from supabase import AuthRetryableError, Client as SupabaseClient, ClientOptions, create_client

from lexgate.logger import StructuredLogger
from lexgate.models.auth_models import UpstreamUnavailableError

T = TypeVar("T")


class SupabaseNotConfiguredError(RuntimeError):
    """Raised when a Supabase client is requested but credentials are missing."""


# Failures that mean "the upstream could not be reached in time", as opposed
# to "the upstream answered and said no".
_UNAVAILABLE_ERRORS: tuple[type[BaseException], ...] = (
    TimeoutError,
    ConnectionError,
    httpx.TransportError,
    AuthRetryableError,
    SupabaseNotConfiguredError,
)


class DatabaseManager:
    """Owns the Supabase clients and the bounded upstream executor.

    Fully configured at construction time via dependency injection.

    When ``supabase_url`` or ``service_role_key`` is empty the shared client
    is **not** created; the ``supabase`` property then raises
    ``SupabaseNotConfiguredError``, which :meth:`call` reports as
    ``UpstreamUnavailableError``.

    Parameters
    ----------
    supabase_url:
        The Supabase project URL (e.g. ``https://xyz.supabase.co``).
    service_role_key:
        Service-role key for the shared client (bypasses row-level security).
    session_key:
        Key for per-call session clients (normally the anon key).
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    upstream_timeout_s:
        Upper bound, in seconds, on every call routed through :meth:`call`.
    max_workers:
        Threads available for concurrent upstream calls.
    """

    def __init__(
        self,
        supabase_url: str,
        service_role_key: str,
        session_key: str,
        logger: StructuredLogger,
        upstream_timeout_s: float = 10.0,
        max_workers: int = 8,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._url: str = supabase_url
        self._session_key: str = session_key
        self._timeout_s: float = upstream_timeout_s
        self._executor: ThreadPoolExecutor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="lexgate-upstream",
        )
        self._closed: bool = False
        self._close_lock: threading.Lock = threading.Lock()

        self._supabase: Optional[SupabaseClient] = None
        if supabase_url and service_role_key:
            try:
                self._supabase = create_client(
                    supabase_url,
                    service_role_key,
                    options=self._client_options(),
                )
                self._logger.info("Supabase service client initialized.")
            except (ValueError, TypeError) as exc:
                self._logger.warning(
                    "Supabase credential format error: %s. "
                    "Upstream calls will fail as unavailable.",
                    exc,
                )
            except Exception as exc:
                self._logger.error(
                    "Unexpected Supabase initialization failure: %s.",
                    exc,
                    exc_info=True,
                )
        else:
            self._logger.warning(
                "Supabase credentials not configured — upstream calls will "
                "fail as unavailable."
            )

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def supabase(self) -> SupabaseClient:
        """Return the shared service-role client.

        Raises
        ------
        SupabaseNotConfiguredError
            If the client was not initialised.
        """
        if self._supabase is None:
            raise SupabaseNotConfiguredError(
                "Supabase client is not initialised. "
                "Check SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY."
            )
        return self._supabase

    @property
    def is_configured(self) -> bool:
        """``True`` when the shared Supabase client is available."""
        return self._supabase is not None

    @property
    def upstream_timeout_s(self) -> float:
        return self._timeout_s

    def new_session_client(self) -> SupabaseClient:
        """Create a throwaway client for one session-producing auth call.

        Raises
        ------
        SupabaseNotConfiguredError
            If the URL or session key is missing, or ``create_client``
            rejects them (e.g. a malformed key).
        """
        if not self._url or not self._session_key:
            raise SupabaseNotConfiguredError(
                "Supabase session client cannot be created. "
                "Check SUPABASE_URL and SUPABASE_ANON_KEY."
            )
        try:
            return create_client(self._url, self._session_key, options=self._client_options())
        except Exception as exc:
            self._logger.error(
                "Supabase session client rejected its credentials: %s", exc,
                extra={"event": "SUPABASE_CLIENT_INIT_FAILED"},
            )
            raise SupabaseNotConfiguredError(
                "Supabase session client cannot be created. "
                "Check SUPABASE_URL and SUPABASE_ANON_KEY."
            ) from exc

    # ------------------------------------------------------------------
    # Bounded upstream calls
    # ------------------------------------------------------------------

    def call(self, operation: str, fn: Callable[[], T]) -> T:
        """Run *fn* against the upstream with a bounded wait.

        Parameters
        ----------
        operation:
            Human-readable label for log messages, e.g.
            ``"insert (user_profiles)"``.
        fn:
            Zero-argument callable that performs exactly one upstream call.

        Returns
        -------
        T
            Whatever *fn* returns.

        Raises
        ------
        UpstreamUnavailableError
            If *fn* does not finish within the timeout, the upstream is
            unreachable, or Supabase is not configured.  Any other exception
            raised by *fn* propagates unchanged.
        """
        try:
            future = self._executor.submit(fn)
        except RuntimeError as exc:
            # Executor already shut down.
            raise UpstreamUnavailableError(operation=operation) from exc

        try:
            return future.result(timeout=self._timeout_s)
        except _UNAVAILABLE_ERRORS as exc:
            future.cancel()
            self._logger.warning(
                "Upstream unavailable during %s: %s",
                operation,
                str(exc) or type(exc).__name__,
                extra={"event": "UPSTREAM_UNAVAILABLE", "operation": operation},
            )
            raise UpstreamUnavailableError(operation=operation) from exc

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop accepting upstream calls and release worker threads.

        Safe to call multiple times; subsequent calls are no-ops.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._logger.info("Upstream executor shut down.")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _client_options(self) -> ClientOptions:
        """Client options shared by every client this manager creates.

        Sessions are never persisted or auto-refreshed server-side, and the
        PostgREST timeout matches the upstream bound.
        """
        return ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
            postgrest_client_timeout=self._timeout_s,
        )
