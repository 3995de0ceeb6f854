"""Shared utility functions and models for the LexGate service.

Convenience re-exports so consumers can import directly from
``lexgate.utils`` while full absolute imports remain supported.
"""

from lexgate.utils.audit import AuditEvent, build_audit_event, log_audit_event

__all__ = [
    "AuditEvent",
    "build_audit_event",
    "log_audit_event",
]
