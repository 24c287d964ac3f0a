"""Post-save publication processing.

Runs after a publication has been stored:

1. Render a PDF for list types that have a registered renderer (only when
   the publication carries JSON data).
2. Resolve the list type display name and the location, then fan out
   subscriber notifications.  The JSON payload travels with them so list
   types with a case summary can include it in the email.

Neither step may fail the publish operation: renderer and notification
errors are logged and reported through ``ProcessingResult``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from cath.core.logging import redact_emails
from cath.db.repositories import LocationRepository
from cath.notification.dispatcher import NotificationDispatcher
from cath.publication.list_types import get_list_type_display_name, get_list_type_name
from cath.publication.pdf_renderer import PdfRendererRegistry

logger = logging.getLogger(__name__)


@dataclass
class GeneratedPdf:
    pdf_path: str | None = None
    size_bytes: int | None = None
    exceeds_max_size: bool | None = None


@dataclass
class NotificationSummary:
    success: bool
    sent: int | None = None
    failed: int | None = None


@dataclass
class ProcessingResult:
    pdf_path: str | None = None
    pdf_size_bytes: int | None = None
    pdf_exceeds_max_size: bool | None = None
    notifications_sent: int | None = None
    notifications_failed: int | None = None


class PublicationProcessor:
    """Finish processing a newly saved publication."""

    def __init__(
        self,
        db_session: Session,
        dispatcher: NotificationDispatcher,
        pdf_renderers: PdfRendererRegistry | None = None,
    ) -> None:
        self.locations = LocationRepository(db_session)
        self.dispatcher = dispatcher
        self.pdf_renderers = pdf_renderers if pdf_renderers is not None else PdfRendererRegistry.default()

    # -- PDF ----------------------------------------------------------------

    def generate_publication_pdf(
        self,
        *,
        artefact_id: str,
        list_type_id: int,
        content_date: datetime,
        locale: str,
        location_id: str,
        json_data: Any,
        provenance: str | None = None,
        display_from: datetime | None = None,
        display_to: datetime | None = None,
    ) -> GeneratedPdf:
        """Render the PDF for *artefact_id*; empty result when unsupported or failed."""
        renderer = self.pdf_renderers.get(get_list_type_name(list_type_id))
        if renderer is None:
            logger.debug("No PDF renderer for list type %s", list_type_id)
            return GeneratedPdf()

        try:
            pdf = renderer(
                artefact_id=artefact_id,
                content_date=content_date,
                locale=locale,
                location_id=location_id,
                json_data=json_data,
                provenance=provenance,
                list_type_id=list_type_id,
                display_from=display_from,
                display_to=display_to,
            )
        except Exception as exc:
            logger.error("PDF generation error for artefact %s: %s", artefact_id, exc)
            return GeneratedPdf()

        if pdf.success and pdf.pdf_path:
            return GeneratedPdf(
                pdf_path=pdf.pdf_path,
                size_bytes=pdf.size_bytes,
                exceeds_max_size=pdf.exceeds_max_size,
            )

        logger.warning("PDF generation failed for artefact %s: %s", artefact_id, pdf.error)
        return GeneratedPdf()

    # -- notifications ------------------------------------------------------

    def send_publication_notifications_for_artefact(
        self,
        *,
        artefact_id: str,
        location_id: str,
        list_type_id: int,
        content_date: datetime,
        pdf_file_path: str | None = None,
        json_data: Any = None,
    ) -> NotificationSummary:
        """Resolve names and hand off to the dispatcher.

        Returns ``success=False`` only when the location cannot be resolved
        or the dispatch as a whole could not run.
        """
        try:
            location_key = int(str(location_id).strip())
        except ValueError:
            logger.error("Invalid location ID for notifications: %r", location_id)
            return NotificationSummary(success=False)

        try:
            location = self.locations.get(location_key)
            if location is None:
                logger.warning("Location %s not found for notifications", location_key)
                return NotificationSummary(success=False)

            result = self.dispatcher.send_publication_notifications(
                publication_id=artefact_id,
                location_id=location_key,
                location_name=location.name,
                list_type_name=get_list_type_display_name(list_type_id),
                publication_date=content_date,
                pdf_file_path=pdf_file_path,
                list_type_key=get_list_type_name(list_type_id),
                json_data=json_data,
            )
        except Exception as exc:
            logger.error(
                "Failed to send notifications for artefact %s: %s",
                artefact_id,
                redact_emails(str(exc)),
            )
            return NotificationSummary(success=False)

        if result.errors:
            logger.error(
                "Notification errors for artefact %s: count=%d errors=%s",
                artefact_id,
                len(result.errors),
                [redact_emails(e.error) for e in result.errors],
            )

        return NotificationSummary(
            success=True,
            sent=result.sent_count,
            failed=result.failed_count,
        )

    # -- pipeline -----------------------------------------------------------

    def process_publication_after_save(
        self,
        artefact_id: str,
        location_id: str,
        list_type_id: int,
        content_date: datetime,
        locale: str,
        json_data: Any = None,
        provenance: str | None = None,
        skip_notifications: bool = False,
        display_from: datetime | None = None,
        display_to: datetime | None = None,
    ) -> ProcessingResult:
        artefact_id = str(artefact_id)
        result = ProcessingResult()

        if json_data:
            pdf = self.generate_publication_pdf(
                artefact_id=artefact_id,
                list_type_id=list_type_id,
                content_date=content_date,
                locale=locale,
                location_id=location_id,
                json_data=json_data,
                provenance=provenance,
                display_from=display_from,
                display_to=display_to,
            )
            result.pdf_path = pdf.pdf_path
            result.pdf_size_bytes = pdf.size_bytes
            result.pdf_exceeds_max_size = pdf.exceeds_max_size
            if pdf.exceeds_max_size:
                logger.info("PDF for artefact %s exceeds the attachment size limit", artefact_id)

        if not skip_notifications:
            summary = self.send_publication_notifications_for_artefact(
                artefact_id=artefact_id,
                location_id=location_id,
                list_type_id=list_type_id,
                content_date=content_date,
                pdf_file_path=result.pdf_path,
                json_data=json_data,
            )
            result.notifications_sent = summary.sent
            result.notifications_failed = summary.failed

        return result
