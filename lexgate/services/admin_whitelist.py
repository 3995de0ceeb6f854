"""
Admin Whitelist Service.

Answers one question: is this email pre-authorised for administrator
privileges?  The orchestrator depends only on the ``AdminWhitelist``
protocol, so the source of the list (environment variable today, a config
table tomorrow) stays out of the auth flows.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol, runtime_checkable

from lexgate.config import AppConfig
from lexgate.logger import StructuredLogger
from lexgate.services.base_service import BaseService


@runtime_checkable
class AdminWhitelist(Protocol):
    """Pure ``email -> bool`` policy lookup."""

    def is_admin_email(self, email: Optional[str]) -> bool:
        ...


class AdminWhitelistService(BaseService):
    """Whitelist backed by a fixed set of addresses.

    Entries are trimmed and lower-cased once at construction; lookups are
    case-insensitive and ignore surrounding whitespace.

    Example::

        whitelist = AdminWhitelistService(["Admin@Example.com "], logger)
        whitelist.is_admin_email("admin@example.com")   # True
        whitelist.is_admin_email("ADMIN@EXAMPLE.COM")   # True
        whitelist.is_admin_email("user@example.com")    # False
        whitelist.is_admin_email("")                    # False
    """

    def __init__(self, emails: Iterable[str], logger: StructuredLogger) -> None:
        super().__init__(logger)
        self._admin_emails: frozenset[str] = frozenset(
            email.strip().lower() for email in emails if email and email.strip()
        )
        self._logger.info(
            "Admin whitelist loaded with %d entr%s.",
            len(self._admin_emails),
            "y" if len(self._admin_emails) == 1 else "ies",
        )

    @classmethod
    def from_config(cls, config: AppConfig, logger: StructuredLogger) -> "AdminWhitelistService":
        """Build the whitelist from ``ADMIN_EMAILS``."""
        return cls(config.admin_emails, logger)

    def is_admin_email(self, email: Optional[str]) -> bool:
        if not email or not isinstance(email, str):
            return False
        return email.strip().lower() in self._admin_emails

    def __len__(self) -> int:
        return len(self._admin_emails)
