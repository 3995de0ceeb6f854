"""
Application Configuration.

Pydantic Settings model for the LexGate identity service.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import SecretStr, model_validator


_DEFAULT_FRONTEND_ORIGIN: str = "http://localhost:3000"


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Supabase (identity backend + profile store) ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")
    SUPABASE_SERVICE_ROLE_KEY: SecretStr = SecretStr("")

    # --- Admin whitelist (comma-separated emails) ---
    ADMIN_EMAILS: str = ""

    # --- Front-end origins (first entry hosts the reset-password page) ---
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:4000"
    PASSWORD_RESET_PATH: str = "/auth/reset-password"

    # --- Upstream calls ---
    UPSTREAM_TIMEOUT_S: float = 10.0
    UPSTREAM_MAX_WORKERS: int = 8

    # --- Audit trail ---
    AUDIT_IN_BACKGROUND: bool = True
    AUDIT_MAX_WORKERS: int = 2

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when critical configuration is empty.

        Pydantic silently falls back to defaults when ``.env`` is missing.
        This validator logs a warning so operators know the service is
        running with placeholder values.
        """
        _log = logging.getLogger("lexgate.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found — all configuration loaded from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL:
            _log.warning(
                "SUPABASE_URL is empty — every identity and profile-store "
                "call will fail as upstream-unavailable."
            )

        if not self.SUPABASE_SERVICE_ROLE_KEY.get_secret_value():
            _log.warning(
                "SUPABASE_SERVICE_ROLE_KEY is empty — profile provisioning "
                "and password resets cannot run."
            )

        if not self.admin_emails:
            _log.warning(
                "ADMIN_EMAILS is empty — no account will be escalated to admin."
            )

        return self

    # --- Derived values ---
    @property
    def admin_emails(self) -> list[str]:
        """Whitelisted admin emails, trimmed and lower-cased, empties dropped."""
        return [
            email.strip().lower()
            for email in self.ADMIN_EMAILS.split(",")
            if email.strip()
        ]

    @property
    def cors_origins(self) -> list[str]:
        """Configured front-end origins in declaration order."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def password_reset_redirect_url(self) -> str:
        """Absolute URL the reset email links back to."""
        origins = self.cors_origins
        base: str = origins[0] if origins else _DEFAULT_FRONTEND_ORIGIN
        return f"{base.rstrip('/')}{self.PASSWORD_RESET_PATH}"

    @property
    def session_key(self) -> str:
        """Key used for session-producing auth calls.

        Falls back to the service-role key when no anon key is configured.
        """
        anon: str = self.SUPABASE_ANON_KEY.get_secret_value()
        return anon or self.SUPABASE_SERVICE_ROLE_KEY.get_secret_value()


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    On first call, creates an ``AppConfig`` instance (reading from ``.env``).
    Subsequent calls return the same instance.  Uses a check-lock-check
    pattern to avoid the lock overhead on the fast path while remaining
    thread-safe during first initialisation.

    Prefer direct constructor injection of ``AppConfig``; this factory
    exists for modules such as the logger that are created before the
    composition root runs.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
