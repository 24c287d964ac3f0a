"""FastAPI dependency injection: database sessions, principal and access gates."""
from __future__ import annotations

import logging
from collections.abc import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from cath.api.errors import PublicationAccessError
from cath.core.auth import Principal, principal_from_request
from cath.core.constants import UserRole
from cath.db.models import Artefact
from cath.db.repositories import ArtefactRepository
from cath.db.session import get_session_factory
from cath.notification.dispatcher import NotificationDispatcher
from cath.notification.log_writer import NotificationLogWriter
from cath.notification.notify_client import EmailProvider, NotifyEmailClient
from cath.publication.authorisation import (
    AccessDecision,
    can_access_publication_data,
    can_access_publication_metadata,
)
from cath.publication.pdf_renderer import PdfRendererRegistry
from cath.publication.processing import PublicationProcessor

logger = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    """Yield a SQLAlchemy session; commit on success, rollback on error."""
    db = get_session_factory()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_principal(request: Request) -> Principal | None:
    return principal_from_request(request)


def require_system_admin(principal: Principal | None = Depends(get_principal)) -> Principal:
    if principal is None or principal.role != UserRole.SYSTEM_ADMIN:
        raise HTTPException(status_code=403, detail="System administrator access required")
    return principal


def _load_artefact(publication_id: str | None, db: Session) -> Artefact:
    if not publication_id or not publication_id.strip():
        raise PublicationAccessError.bad_request()

    try:
        artefact = ArtefactRepository(db).find_by_id(publication_id.strip())
    except Exception:
        logger.exception("Publication lookup failed for %s", publication_id)
        raise PublicationAccessError.internal_error()

    if artefact is None:
        raise PublicationAccessError.not_found()
    return artefact


def _enforce(decision: AccessDecision, artefact: Artefact, principal: Principal | None) -> Artefact:
    if not decision:
        logger.info(
            "Access denied to publication %s (reason=%s role=%s)",
            artefact.artefact_id,
            decision.reason,
            principal.role if principal else None,
        )
        raise PublicationAccessError.forbidden(decision.reason or "sensitivity")
    return artefact


def require_publication_access(
    publication_id: str,
    principal: Principal | None = Depends(get_principal),
    db: Session = Depends(get_db),
) -> Artefact:
    """Gate for publication metadata."""
    artefact = _load_artefact(publication_id, db)
    return _enforce(can_access_publication_metadata(principal, artefact), artefact, principal)


def require_publication_data_access(
    publication_id: str,
    principal: Principal | None = Depends(get_principal),
    db: Session = Depends(get_db),
) -> Artefact:
    """Gate for publication content; narrower than ``require_publication_access``."""
    artefact = _load_artefact(publication_id, db)
    return _enforce(can_access_publication_data(principal, artefact), artefact, principal)


def get_email_provider() -> EmailProvider:
    """Return the GOV.UK Notify client configured from settings."""
    return NotifyEmailClient()


def get_notification_dispatcher(
    db: Session = Depends(get_db),
    email_provider: EmailProvider = Depends(get_email_provider),
) -> NotificationDispatcher:
    return NotificationDispatcher(db, email_provider, log_writer=NotificationLogWriter(get_session_factory()))


def get_pdf_renderers() -> PdfRendererRegistry:
    return PdfRendererRegistry.default()


def get_publication_processor(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    pdf_renderers: PdfRendererRegistry = Depends(get_pdf_renderers),
) -> PublicationProcessor:
    return PublicationProcessor(db, dispatcher, pdf_renderers)
