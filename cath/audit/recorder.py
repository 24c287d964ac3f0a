"""Audit trail recorder: classify how a mutating request completed.

One ``AuditTrailRecorder`` exists per audited request.  The framework
adapter reports how the handler finished through one of four completion
hooks; every hook funnels into ``on_complete`` which is latched so that
the first completion wins and later ones are ignored.

=========================  ==============================================
Hook                       Recorded when
=========================  ==============================================
``render(view, model)``    ``model["errors"]`` is non-empty
``redirect(url)``          outcome is validation_error or cancelled, or
                           the handler set ``AuditContext.should_log``
                           or ``AuditContext.outcome``
``json(body)``             always (success)
``send(body)``             always (success)
=========================  ==============================================

Redirect outcomes come from ``AuditContext.outcome`` when the handler
declared one (always recorded), otherwise from the URL/session heuristics in
``determine_redirect_outcome``.  The heuristics cannot tell a genuine
same-page success redirect from a cancellation; both are classified as
cancelled.

Failures while composing or writing an entry are logged and swallowed so
that auditing can never change the HTTP response.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from cath.audit.context import STATUS_PHRASES, AuditContext, AuditOutcome
from cath.core.auth import Principal
from cath.core.constants import AUDITED_METHODS, UserRole

logger = logging.getLogger(__name__)

_INTERMEDIATE_MARKERS = ("-confirm", "-summary", "-check")
_BODY_ID_FIELDS = (
    "id",
    "locationId",
    "jurisdictionId",
    "regionId",
    "userId",
    "caseId",
    "artefactId",
    "subscriptionId",
)
_SESSION_SKIP_KEYS = frozenset({"cookie", "passport"})
_CONTEXT_CONTROL_KEYS = frozenset({"shouldLog", "should_log", "action", "entityInfo", "entity_info"})


class ResponseObserver(Protocol):
    def on_complete(self, outcome: AuditOutcome, payload: Any = None) -> bool:
        ...


class AuditLogWriter(Protocol):
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
        ...


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    size: int | None = None


@dataclass
class AuditRequest:
    """The parts of an HTTP request the recorder looks at."""

    method: str
    path: str
    principal: Principal | None = None
    body: Mapping[str, Any] = field(default_factory=dict)
    path_params: Mapping[str, Any] = field(default_factory=dict)
    session: Mapping[str, Any] = field(default_factory=dict)
    context: AuditContext = field(default_factory=AuditContext)
    uploads: list[UploadedFile] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Applicability
# ---------------------------------------------------------------------------

def should_audit(method: str, path: str, principal: Principal | None, audit_log_path: str) -> bool:
    """Only mutating requests by system admins, never the audit viewer itself."""
    if method.upper() not in AUDITED_METHODS:
        return False
    if principal is None or principal.role != UserRole.SYSTEM_ADMIN:
        return False
    return not path.startswith(audit_log_path)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def find_session_errors(session: Mapping[str, Any] | None) -> list | None:
    """Return the first non-empty list stored under an ``*Errors`` session key."""
    if not isinstance(session, Mapping):
        return None
    for key, value in session.items():
        if (key.endswith("Errors") or key.endswith("errors")) and isinstance(value, list) and value:
            return value
    return None


def _strip_query(url: str) -> str:
    return url.split("?", 1)[0]


def determine_redirect_outcome(
    redirect_url: str, request_path: str, session: Mapping[str, Any] | None = None
) -> AuditOutcome:
    url = redirect_url.lower()

    if find_session_errors(session):
        return AuditOutcome.VALIDATION_ERROR

    if any(marker in url for marker in _INTERMEDIATE_MARKERS):
        return AuditOutcome.OTHER

    if "dashboard" in url:
        return AuditOutcome.CANCELLED

    if _strip_query(url) == _strip_query(request_path.lower()):
        return AuditOutcome.CANCELLED

    return AuditOutcome.OTHER


def has_render_errors(model: Any) -> bool:
    return isinstance(model, Mapping) and bool(model.get("errors"))


# ---------------------------------------------------------------------------
# Action name
# ---------------------------------------------------------------------------

def normalize_action(action: str) -> str:
    return re.sub(r"[^A-Z0-9_]", "_", action.upper())


def generate_action_name(request: AuditRequest) -> str:
    if request.context.action:
        return normalize_action(request.context.action)

    path_part = request.path.lstrip("/").replace("/", "_").replace("-", "_").upper()
    method = request.method.upper()
    if method == "POST":
        return path_part
    return f"{method}_{path_part}"


# ---------------------------------------------------------------------------
# Details
# ---------------------------------------------------------------------------

def _label(key: str) -> str:
    spaced = re.sub(r"([A-Z])", r" \1", key)
    return spaced[:1].upper() + spaced[1:]


def _text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _identifier(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    return _text(value)


def extract_entity_info(request: AuditRequest) -> str | None:
    """Describe the entity a request acted on.

    Sources in priority order; the first source to claim a normalised key
    keeps it:

    1. ``AuditContext.entity_info`` (returned as-is)
    2. ``AuditContext.fields``
    3. request body ``name``, ``welshName``, ``title``, id fields, ``email``
    4. route parameters
    5. session objects carrying ``name``, ``id``, ``locationId``, ``fileName``
    """
    context = request.context
    if context.entity_info:
        return context.entity_info

    entities: dict[str, str] = {}

    for key, value in context.fields.items():
        if key in _CONTEXT_CONTROL_KEYS or value is None or value == "":
            continue
        entities.setdefault(key.lower(), f"{key}: {value}")

    body = request.body if isinstance(request.body, Mapping) else {}
    for key, label in (("name", "Name"), ("welshName", "Welsh Name"), ("title", "Title")):
        text = _text(body.get(key))
        if text:
            entities.setdefault(key.lower(), f"{label}: {text}")
    for key in _BODY_ID_FIELDS:
        ident = _identifier(body.get(key))
        if ident:
            entities.setdefault(key.lower(), f"{_label(key)}: {ident}")
    email = _text(body.get("email"))
    if email:
        entities.setdefault("email", f"Email: {email}")

    for key, value in request.path_params.items():
        text = _identifier(value)
        if text:
            entities.setdefault(key.lower(), f"{_label(key)}: {text}")

    for key, value in request.session.items():
        if key in _SESSION_SKIP_KEYS or not isinstance(value, Mapping):
            continue
        name = _text(value.get("name"))
        if name:
            entities.setdefault(f"{key}_name".lower(), f"{_label(key)}: {name}")
        ident = _identifier(value.get("id"))
        if ident:
            entities.setdefault(f"{key}_id".lower(), f"{_label(key)} ID: {ident}")
        location_id = _identifier(value.get("locationId"))
        if location_id:
            entities.setdefault("locationid", f"Location ID: {location_id}")
        file_name = value.get("fileName")
        if isinstance(file_name, str):
            entities.setdefault(f"{key}_filename".lower(), f"File: {file_name}")

    return ", ".join(entities.values()) if entities else None


def _error_texts(errors: Any) -> list[str]:
    if isinstance(errors, Mapping):
        errors = list(errors.values())
    if not isinstance(errors, list):
        return []
    texts = []
    for error in errors:
        if isinstance(error, Mapping) and error.get("text"):
            texts.append(str(error["text"]))
        else:
            texts.append(str(error))
    return texts


def generate_details(request: AuditRequest, outcome: AuditOutcome, payload: Any = None) -> str | None:
    details: list[str] = []

    entity_info = extract_entity_info(request)
    if entity_info:
        details.append(entity_info)

    phrase = STATUS_PHRASES.get(outcome)
    if phrase:
        details.append(phrase)

    if len(request.uploads) == 1:
        upload = request.uploads[0]
        details.append(f"File uploaded: {upload.filename} ({upload.size} bytes)")
    elif request.uploads:
        details.append(f"Files uploaded: {', '.join(u.filename for u in request.uploads)}")

    if outcome == AuditOutcome.VALIDATION_ERROR:
        texts: list[str] = []
        if isinstance(payload, Mapping) and "errors" in payload:
            texts = _error_texts(payload["errors"])
        if not texts:
            texts = _error_texts(find_session_errors(request.session))
        if texts:
            details.append(f"Errors: {'; '.join(texts)}")

    return "; ".join(details) if details else None


# ---------------------------------------------------------------------------
# AuditTrailRecorder
# ---------------------------------------------------------------------------

class AuditTrailRecorder:
    """Per-request completion latch that writes at most one audit entry."""

    def __init__(self, request: AuditRequest, writer: AuditLogWriter) -> None:
        self.request = request
        self.writer = writer
        self.completed = False

    # -- completion hooks ---------------------------------------------------

    def redirect(self, url: str) -> bool:
        context = self.request.context
        if context.outcome is not None:
            return self.on_complete(context.outcome, url)

        outcome = determine_redirect_outcome(url, self.request.path, self.request.session)
        if outcome in (AuditOutcome.VALIDATION_ERROR, AuditOutcome.CANCELLED):
            return self.on_complete(outcome, url)
        if context.should_log:
            if outcome == AuditOutcome.OTHER:
                outcome = AuditOutcome.SUCCESS
            return self.on_complete(outcome, url)
        return False

    def render(self, view: str, model: Mapping[str, Any] | None = None) -> bool:
        if has_render_errors(model):
            return self.on_complete(AuditOutcome.VALIDATION_ERROR, model)
        return False

    def json(self, body: Any = None) -> bool:
        return self.on_complete(AuditOutcome.SUCCESS, body)

    def send(self, body: Any = None) -> bool:
        return self.on_complete(AuditOutcome.SUCCESS, body)

    # -- latch --------------------------------------------------------------

    def on_complete(self, outcome: AuditOutcome, payload: Any = None) -> bool:
        """Write the audit entry for this request; ``False`` if already done."""
        if self.completed:
            return False
        self.completed = True

        principal = self.request.principal or Principal()
        try:
            action = generate_action_name(self.request)
            details = generate_details(self.request, outcome, payload)
            self.writer(
                user_id=principal.id or "unknown",
                user_email=principal.email or "unknown",
                user_role=principal.role or UserRole.SYSTEM_ADMIN,
                user_provenance=principal.provenance or "azure-ad",
                action=action,
                details=details,
            )
        except Exception:
            logger.exception("Failed to create completion audit log entry")
            return False

        logger.info("Audit entry recorded: action=%s outcome=%s", action, outcome)
        return True
