"""Outcome vocabulary and the per-request ``AuditContext``.

Route handlers describe what they did by populating the request's
``AuditContext`` (``request.state.audit_context``).  Whatever a handler
does not declare is inferred by the recorder's fallbacks.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class AuditOutcome(StrEnum):
    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    CANCELLED = "cancelled"
    OTHER = "other"


STATUS_PHRASES: dict[AuditOutcome, str] = {
    AuditOutcome.SUCCESS: "Status: Completed successfully",
    AuditOutcome.VALIDATION_ERROR: "Status: Validation failed",
    AuditOutcome.CANCELLED: "Status: Action cancelled by user",
}


@dataclass
class AuditContext:
    """Explicit audit metadata declared by a route handler.

    ``should_log`` forces a redirect to be recorded even when the URL
    heuristics would skip it; ``outcome`` replaces the heuristics.
    ``fields`` are extra ``key: value`` pairs for the details string.
    """

    should_log: bool = False
    action: str | None = None
    entity_info: str | None = None
    outcome: AuditOutcome | None = None
    fields: dict[str, str | int | bool] = field(default_factory=dict)
