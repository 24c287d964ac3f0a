"""Audit log viewer routes: GET /audit-log, GET /audit-log/{log_id}.

System administrators only.  Requests under this prefix are never audited
themselves.
"""
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from cath.api.deps import get_db, require_system_admin
from cath.audit.audit_log import (
    get_audit_log_by_id,
    get_audit_logs,
    get_available_actions,
    parse_date,
    validate_email,
    validate_user_id,
)
from cath.core.auth import Principal
from cath.db.repositories import AuditLogFilters

router = APIRouter(prefix="/audit-log", tags=["audit"])


@router.get("", summary="List audit log entries")
def list_audit_logs(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    email: str | None = None,
    user_id: str | None = None,
    actions: list[str] | None = Query(default=None),
    day: str | None = None,
    month: str | None = None,
    year: str | None = None,
    _: Principal = Depends(require_system_admin),
    db: Session = Depends(get_db),
):
    errors: list[dict[str, str]] = []
    if email and not validate_email(email):
        errors.append({"text": "Enter a valid email address", "href": "#email"})
    if user_id and not validate_user_id(user_id):
        errors.append({"text": "User ID must be alphanumeric and 50 characters or fewer", "href": "#userId"})

    on_date = None
    if day or month or year:
        on_date = parse_date(day or "", month or "", year or "")
        if on_date is None:
            errors.append({"text": "Enter a valid date", "href": "#date"})

    if errors:
        raise HTTPException(status_code=400, detail=errors)

    filters = AuditLogFilters(email=email, user_id=user_id, actions=actions, on_date=on_date)
    result = get_audit_logs(db, filters, page, page_size)
    return {
        **asdict(result),
        "available_actions": get_available_actions(db),
    }


@router.get("/{log_id}", summary="Get a single audit log entry")
def get_audit_log(
    log_id: str,
    _: Principal = Depends(require_system_admin),
    db: Session = Depends(get_db),
):
    entry = get_audit_log_by_id(db, log_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"No audit log entry {log_id}")
    return asdict(entry)
