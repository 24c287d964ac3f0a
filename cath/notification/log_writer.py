"""Committed notification trail.

Every ``NotificationLog`` state change is written in a short-lived session
of its own and committed straight away, the way ``DatabaseAuditLogWriter``
records audit entries.  A ``Pending`` row is therefore visible to other
connections before the provider is called, and survives a crash or a
rollback of the request that triggered the fan-out.
"""
from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import sessionmaker

from cath.db.repositories import NotificationLogRepository


class NotificationLogWriter:
    """Writes notification attempts, one committed session per change."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def create_pending(self, *, subscription_id: UUID, user_id: UUID, publication_id: str) -> UUID:
        with self.session_factory() as db:
            entry = NotificationLogRepository(db).create_pending(
                subscription_id=subscription_id,
                user_id=user_id,
                publication_id=publication_id,
            )
            notification_id = entry.notification_id
            db.commit()
        return notification_id

    def create_failed(
        self, *, subscription_id: UUID, user_id: UUID, publication_id: str, error_message: str
    ) -> UUID:
        with self.session_factory() as db:
            entry = NotificationLogRepository(db).create_failed(
                subscription_id=subscription_id,
                user_id=user_id,
                publication_id=publication_id,
                error_message=error_message,
            )
            notification_id = entry.notification_id
            db.commit()
        return notification_id

    def mark_sent(self, notification_id: UUID, gov_notify_id: str | None) -> None:
        with self.session_factory() as db:
            repo = NotificationLogRepository(db)
            repo.mark_sent(self._load(repo, notification_id), gov_notify_id)
            db.commit()

    def mark_failed(self, notification_id: UUID, error_message: str) -> None:
        with self.session_factory() as db:
            repo = NotificationLogRepository(db)
            repo.mark_failed(self._load(repo, notification_id), error_message)
            db.commit()

    @staticmethod
    def _load(repo: NotificationLogRepository, notification_id: UUID):
        entry = repo.get(notification_id)
        if entry is None:
            raise LookupError(f"Notification {notification_id} not found")
        return entry
