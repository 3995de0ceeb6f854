"""
Structured Audit Logging Utility.

Every authentication state change is logged as a structured JSON object.
Provides a Pydantic-validated model and a single function for consistent
audit trail entries; the same model is what ``ActivityLogRepository``
persists to ``activity_logs``.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, Field

from lexgate.logger import StructuredLogger

__all__ = ["AuditEvent", "DetailValue", "build_audit_event", "log_audit_event"]

# Flat scalars only inside ``details``; nested structures should be
# modelled explicitly, not smuggled through the audit log.
DetailValue = Union[str, int, float, bool, None]


class AuditEvent(BaseModel):
    """Schema-validated representation of a single audit trail entry.

    ``details`` is stored in the ``metadata`` column of ``activity_logs``
    (e.g. ``{"provider": "google"}``).
    """

    timestamp: str
    action: str
    entity_type: str
    entity_id: str
    user_id: str
    details: dict[str, DetailValue] = Field(default_factory=dict)


def build_audit_event(
    action: str,
    entity_type: str,
    entity_id: str,
    user_id: str,
    details: Optional[dict[str, DetailValue]] = None,
) -> AuditEvent:
    """Validate and timestamp an audit entry without emitting it."""
    return AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        action=str(action),
        entity_type=str(entity_type),
        entity_id=entity_id,
        user_id=user_id,
        details=details or {},
    )


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    entity_type: str,
    entity_id: str,
    user_id: str,
    details: Optional[dict[str, DetailValue]] = None,
) -> AuditEvent:
    """Log a structured JSON audit event and return it.

    The log line is emitted before any persistence is attempted, so an
    entry that later fails to reach ``activity_logs`` still leaves a trace.

    Args:
        logger: The logger instance to write to.
        action: What happened (e.g. ``"SIGNUP"``, ``"OAUTH_LOGIN"``).
        entity_type: Type of entity affected (e.g. ``"user"``).
        entity_id: Primary key of the affected entity.
        user_id: ID of the user who performed the action.
        details: Optional additional context (e.g. the auth provider).

    Returns:
        The validated :class:`AuditEvent`.
    """
    event = build_audit_event(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        details=details,
    )
    logger.info("AUDIT: %s", json.dumps(event.model_dump(), default=str))
    return event
