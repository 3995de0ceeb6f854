"""
LexGate Identity Service Bootstrap.

Builds the entire dependency graph via constructor injection.  Every
subsystem is wired here — no module-level globals.  The transport layer
(an HTTP framework of the deployer's choice) calls :func:`build_application`
once at startup and routes requests to ``app.services["auth_service"]`` and
``app.services["bearer_authenticator"]``.

Running the module performs a startup check: it loads the configuration,
wires every service, reports readiness and exits non-zero when the
identity backend is not configured.

Usage::

    python -m lexgate.main
"""

from __future__ import annotations

import atexit
import sys
import traceback
from typing import Optional

from lexgate.config import AppConfig, get_config
from lexgate.database import DatabaseManager
from lexgate.logger import StructuredLogger, get_logger
from lexgate.services import ServiceContainer, create_database, create_services


class Application:
    """Fully wired service graph plus the resources it owns."""

    def __init__(
        self,
        config: AppConfig,
        db: DatabaseManager,
        services: ServiceContainer,
        logger: StructuredLogger,
    ) -> None:
        self.config: AppConfig = config
        self.db: DatabaseManager = db
        self.services: ServiceContainer = services
        self._logger: StructuredLogger = logger

    @property
    def is_ready(self) -> bool:
        return self.db.is_configured

    def close(self) -> None:
        """Drain pending audit writes, then release upstream workers.

        Safe to call multiple times.
        """
        self.services["activity_log_service"].shutdown(wait=True)
        self.db.close()
        self._logger.info("LexGate shut down.")


def build_application(config: Optional[AppConfig] = None) -> Application:
    """Wire configuration, database and services into an :class:`Application`."""
    logger: StructuredLogger = get_logger("main")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = config or get_config()

    # ------------------------------------------------------------------
    # 2. Database Manager (Supabase clients + bounded upstream executor)
    # ------------------------------------------------------------------
    db = create_database(config, StructuredLogger(name="database"))

    # ------------------------------------------------------------------
    # 3. Service Container (repositories + services, single composition root)
    # ------------------------------------------------------------------
    services = create_services(db=db, config=config)

    return Application(config=config, db=db, services=services, logger=logger)


def main() -> int:
    """Startup check entry point. Returns the process exit code."""
    logger: StructuredLogger = get_logger("main")
    logger.info("Starting LexGate...")

    app = build_application()
    # Ensure resources are released even on unclean exit.
    atexit.register(app.close)

    logger.info(
        "LexGate wired: identity backend %s, %d whitelisted admin(s), "
        "password reset redirect %s",
        "configured" if app.is_ready else "NOT configured",
        len(app.services["admin_whitelist"]),
        app.config.password_reset_redirect_url,
        extra={"event": "STARTUP", "ready": app.is_ready},
    )
    return 0 if app.is_ready else 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        detail = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        sys.stderr.write(f"FATAL: {type(exc).__name__}: {exc}\n{detail}")
        sys.exit(1)
