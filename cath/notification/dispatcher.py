"""Publication notification fan-out.

Resolves every subscription for a publication's location and sends one
GOV.UK Notify email per subscriber.  Each subscriber is handled as an
independent task that yields a ``RecipientOutcome`` (SENT / FAILED /
SKIPPED); the outcomes are aggregated into a ``NotificationResult`` once
every task has finished.  One subscriber's failure never stops the batch.

``NotificationLog`` rows are written through a ``NotificationLogWriter``,
which commits each change in a session of its own.  The ``Pending`` row is
committed before the provider call, so a crash mid-send leaves a
recoverable attempt behind.  The request session is only read from here.

List types with a registered ``SummaryBuilder`` get a case summary in the
email; if building it fails the plain email is sent instead.

Safety: subscriber email addresses are never logged, and are redacted
from any provider error text before it is stored.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from cath.core.logging import redact_emails
from cath.core.settings import Settings, get_settings
from cath.db.repositories import SubscriptionRepository, UserRepository
from cath.notification.case_summary import get_summary_builder
from cath.notification.log_writer import NotificationLogWriter
from cath.notification.notify_client import EmailProvider, fits_attachment_limit, prepare_file_link
from cath.notification.template_config import (
    build_enhanced_template_parameters,
    build_template_parameters,
    get_subscription_template_id,
)

logger = logging.getLogger(__name__)

NO_EMAIL_REASON = "No email address"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

class RecipientStatus(StrEnum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class RecipientOutcome:
    """Result of notifying a single subscriber."""

    user_id: str
    status: RecipientStatus
    error: str | None = None


@dataclass
class RecipientError:
    user_id: str
    error: str


@dataclass
class NotificationResult:
    success: bool
    total_subscribers: int = 0
    sent_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    errors: list[RecipientError] = field(default_factory=list)


@dataclass
class PublicationEvent:
    publication_id: str
    location_id: int
    location_name: str
    list_type_name: str
    publication_date: date | datetime
    pdf_file_path: str | None = None
    list_type_key: str | None = None
    json_data: Any = None

    def validate(self) -> None:
        """Raise ``ValueError`` listing every missing field."""
        missing = [
            name
            for name in ("publication_id", "location_name", "list_type_name")
            if not str(getattr(self, name) or "").strip()
        ]
        if self.location_id is None:
            missing.append("location_id")
        if self.publication_date is None:
            missing.append("publication_date")
        if missing:
            raise ValueError(f"Invalid publication event: missing {', '.join(missing)}")


@dataclass(frozen=True)
class _Recipient:
    subscription_id: UUID
    user_id: UUID


@dataclass
class _EmailData:
    template_id: str
    personalisation: dict


def aggregate_outcomes(outcomes: list[RecipientOutcome]) -> NotificationResult:
    """Collapse per-recipient outcomes into batch counts."""
    result = NotificationResult(success=True, total_subscribers=len(outcomes))
    for outcome in outcomes:
        if outcome.status == RecipientStatus.SENT:
            result.sent_count += 1
        elif outcome.status == RecipientStatus.SKIPPED:
            result.skipped_count += 1
        else:
            result.failed_count += 1
        if outcome.error:
            result.errors.append(RecipientError(user_id=outcome.user_id, error=outcome.error))
    return result


# ---------------------------------------------------------------------------
# NotificationDispatcher
# ---------------------------------------------------------------------------

class NotificationDispatcher:
    """Send publication notifications to all subscribers of a location."""

    def __init__(
        self,
        db_session: Session,
        email_provider: EmailProvider,
        settings: Settings | None = None,
        log_writer: NotificationLogWriter | None = None,
    ) -> None:
        self.email_provider = email_provider
        self.settings = settings or get_settings()
        self.subscriptions = SubscriptionRepository(db_session)
        self.users = UserRepository(db_session)
        self.log_writer = log_writer or NotificationLogWriter(
            sessionmaker(bind=db_session.get_bind(), autoflush=False)
        )

    # -- batch --------------------------------------------------------------

    def send_publication_notifications(
        self,
        publication_id: str,
        location_id: int,
        location_name: str,
        list_type_name: str,
        publication_date: date | datetime,
        pdf_file_path: str | None = None,
        list_type_key: str | None = None,
        json_data: Any = None,
    ) -> NotificationResult:
        event = PublicationEvent(
            publication_id=str(publication_id),
            location_id=location_id,
            location_name=location_name,
            list_type_name=list_type_name,
            publication_date=publication_date,
            pdf_file_path=pdf_file_path,
            list_type_key=list_type_key,
            json_data=json_data,
        )
        event.validate()

        recipients = [
            _Recipient(subscription_id=sub.subscription_id, user_id=sub.user_id)
            for sub in self.subscriptions.find_by_location(event.location_id)
        ]
        if not recipients:
            logger.info("No subscribers for location %s", event.location_id)
            return NotificationResult(success=True)

        email_data = self._build_email_data(event)
        outcomes = [self._run_isolated(recipient, event, email_data) for recipient in recipients]
        result = aggregate_outcomes(outcomes)

        logger.info(
            "Publication %s notifications: total=%d sent=%d failed=%d skipped=%d",
            event.publication_id,
            result.total_subscribers,
            result.sent_count,
            result.failed_count,
            result.skipped_count,
        )
        return result

    # -- per recipient ------------------------------------------------------

    def _run_isolated(
        self, recipient: _Recipient, event: PublicationEvent, email_data: _EmailData
    ) -> RecipientOutcome:
        user_id = str(recipient.user_id)
        try:
            return self._notify_subscriber(recipient, event, email_data)
        except Exception as exc:
            error = redact_emails(str(exc))
            logger.error("Notification for user %s failed unexpectedly: %s", user_id, error)
            return RecipientOutcome(user_id, RecipientStatus.FAILED, f"User {user_id}: {error}")

    def _notify_subscriber(
        self, recipient: _Recipient, event: PublicationEvent, email_data: _EmailData
    ) -> RecipientOutcome:
        user_id = str(recipient.user_id)
        user = self.users.find_by_id(recipient.user_id)
        email = user.email if user is not None else None

        if not email:
            logger.info("User %s has no email address, skipping", user_id)
            self.log_writer.create_failed(
                subscription_id=recipient.subscription_id,
                user_id=recipient.user_id,
                publication_id=event.publication_id,
                error_message=NO_EMAIL_REASON,
            )
            return RecipientOutcome(user_id, RecipientStatus.SKIPPED, f"User {user_id}: {NO_EMAIL_REASON}")

        notification_id = self.log_writer.create_pending(
            subscription_id=recipient.subscription_id,
            user_id=recipient.user_id,
            publication_id=event.publication_id,
        )

        try:
            message_id = self.email_provider.send_email(
                email_data.template_id,
                email,
                dict(email_data.personalisation),
            )
        except Exception as exc:
            error = redact_emails(str(exc))
            self.log_writer.mark_failed(notification_id, error)
            logger.warning("Notification for user %s failed: %s", user_id, error)
            return RecipientOutcome(user_id, RecipientStatus.FAILED, f"User {user_id}: {error}")

        self.log_writer.mark_sent(notification_id, message_id)
        logger.info("Notified user %s for publication %s", user_id, event.publication_id)
        return RecipientOutcome(user_id, RecipientStatus.SENT)

    # -- email content ------------------------------------------------------

    def _build_email_data(self, event: PublicationEvent) -> _EmailData:
        personalisation = self._build_personalisation(event)

        pdf_size = self._pdf_size(event.pdf_file_path)
        has_pdf = pdf_size is not None
        under_limit = has_pdf and fits_attachment_limit(pdf_size, self.settings.pdf_max_size_bytes)
        template_id = get_subscription_template_id(
            self.settings, has_pdf=has_pdf, pdf_under_limit=under_limit
        )

        if under_limit:
            personalisation["link_to_file"] = prepare_file_link(event.pdf_file_path)

        return _EmailData(template_id=template_id, personalisation=personalisation)

    def _build_personalisation(self, event: PublicationEvent) -> dict:
        common = dict(
            list_type_name=event.list_type_name,
            publication_date=event.publication_date,
            location_name=event.location_name,
            service_url=self.settings.service_url,
        )
        builder = get_summary_builder(event.list_type_key)
        if builder is None or event.json_data is None:
            return build_template_parameters(**common)

        try:
            case_summary = builder.build(event.json_data)
        except Exception as exc:
            logger.warning(
                "Case summary for publication %s could not be built, sending plain email: %s",
                event.publication_id,
                exc,
            )
            return build_template_parameters(**common)
        return build_enhanced_template_parameters(**common, case_summary=case_summary)

    @staticmethod
    def _pdf_size(pdf_file_path: str | None) -> int | None:
        if not pdf_file_path:
            return None
        try:
            return Path(pdf_file_path).stat().st_size
        except OSError as exc:
            logger.warning("PDF %s is not readable, sending without it: %s", pdf_file_path, exc)
            return None
