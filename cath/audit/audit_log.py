"""Append-only audit log storage and the audit-log viewer queries.

``record_action()`` persists one ``AuditLog`` row; ``DatabaseAuditLogWriter``
wraps it in its own session for use from the request middleware.  The
remaining functions back the ``/audit-log`` viewer.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from math import ceil

from sqlalchemy.orm import Session, sessionmaker

from cath.db.models import AuditLog
from cath.db.repositories import AuditLogFilters, AuditLogRepository

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]{1,253}@[^\s@]{1,253}\.[^\s@]{1,63}$")
_USER_ID_RE = re.compile(r"^[a-zA-Z0-9-]{1,50}$")


def record_action(
    db_session: Session,
    *,
    user_id: str,
    user_email: str,
    user_role: str,
    user_provenance: str,
    action: str,
    details: str | None = None,
) -> AuditLog:
    """Create and persist an ``AuditLog`` row.

    Raises ``ValueError`` for an empty action.  Flushes but does **not**
    commit; the caller controls the transaction boundary.
    """
    if not action or not action.strip():
        raise ValueError("action must be a non-empty string")

    entry = AuditLogRepository(db_session).create(
        user_id=user_id,
        user_email=user_email,
        user_role=str(user_role),
        user_provenance=user_provenance,
        action=action,
        details=details,
    )
    logger.info("Audit log recorded: action=%s user=%s", action, user_id)
    return entry


class DatabaseAuditLogWriter:
    """Audit writer that commits each entry in a session of its own."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def __call__(
        self,
        *,
        user_id: str,
        user_email: str,
        user_role: str,
        user_provenance: str,
        action: str,
        details: str | None,
    ) -> None:
        with self.session_factory() as db:
            record_action(
                db,
                user_id=user_id,
                user_email=user_email,
                user_role=user_role,
                user_provenance=user_provenance,
                action=action,
                details=details,
            )
            db.commit()


# ---------------------------------------------------------------------------
# Viewer
# ---------------------------------------------------------------------------

@dataclass
class FormattedAuditLog:
    id: str
    timestamp: str
    action: str
    user_email: str
    user_id: str
    user_role: str
    user_provenance: str
    details: str | None = None


@dataclass
class PaginatedAuditLogs:
    logs: list[FormattedAuditLog]
    total_count: int
    current_page: int
    page_size: int
    total_pages: int


def format_action_title_case(action: str) -> str:
    """``DELETE_COURT`` -> ``Delete Court``."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in action.split("_"))


def format_audit_log(entry: AuditLog) -> FormattedAuditLog:
    return FormattedAuditLog(
        id=str(entry.id),
        timestamp=entry.timestamp.strftime("%d/%m/%Y %H:%M:%S") if entry.timestamp else "",
        action=format_action_title_case(entry.action),
        user_email=entry.user_email,
        user_id=entry.user_id,
        user_role=entry.user_role,
        user_provenance=entry.user_provenance,
        details=entry.details or None,
    )


def get_audit_logs(
    db_session: Session,
    filters: AuditLogFilters | None = None,
    page: int = 1,
    page_size: int = 20,
) -> PaginatedAuditLogs:
    filters = filters or AuditLogFilters()
    repo = AuditLogRepository(db_session)
    entries = repo.find_all(filters, page, page_size)
    total = repo.count(filters)
    return PaginatedAuditLogs(
        logs=[format_audit_log(e) for e in entries],
        total_count=total,
        current_page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if page_size else 0,
    )


def get_audit_log_by_id(db_session: Session, log_id: str) -> FormattedAuditLog | None:
    entry = AuditLogRepository(db_session).find_by_id(log_id)
    return format_audit_log(entry) if entry else None


def get_available_actions(db_session: Session) -> list[dict[str, str]]:
    return [
        {"value": action, "text": format_action_title_case(action)}
        for action in AuditLogRepository(db_session).find_unique_actions()
    ]


def validate_email(email: str) -> bool:
    if not email or len(email) > 254:
        return False
    return bool(_EMAIL_RE.match(email))


def validate_user_id(user_id: str) -> bool:
    if len(user_id) > 50:
        return False
    return bool(_USER_ID_RE.match(user_id))


def parse_date(day: str, month: str, year: str) -> date | None:
    """Build a ``date`` from form fields, ``None`` when invalid."""
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None
