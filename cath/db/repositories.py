from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from cath.db import models

ModelT = TypeVar("ModelT")

NOTIFICATION_PENDING = "Pending"
NOTIFICATION_SENT = "Sent"
NOTIFICATION_FAILED = "Failed"

TERMINAL_NOTIFICATION_STATUSES: frozenset[str] = frozenset({NOTIFICATION_SENT, NOTIFICATION_FAILED})


def _as_uuid(value: UUID | str) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class BaseRepository(Generic[ModelT]):
    model: type[ModelT]

    def __init__(self, db: Session):
        self.db = db

    def create(self, **kwargs) -> ModelT:
        entity = self.model(**kwargs)
        self.db.add(entity)
        self.db.flush()
        return entity

    def get(self, entity_id) -> ModelT | None:
        return self.db.get(self.model, entity_id)

    def list(self, limit: int = 100, offset: int = 0) -> list[ModelT]:
        stmt = select(self.model).offset(offset).limit(limit)
        return self.db.execute(stmt).scalars().all()

    def update(self, entity: ModelT, **kwargs) -> ModelT:
        for key, value in kwargs.items():
            setattr(entity, key, value)
        self.db.flush()
        return entity


class ArtefactRepository(BaseRepository[models.Artefact]):
    model = models.Artefact

    def find_by_id(self, artefact_id: UUID | str) -> models.Artefact | None:
        """Return the artefact, or ``None`` for unknown or malformed ids."""
        key = _as_uuid(artefact_id)
        if key is None:
            return None
        return self.get(key)


class LocationRepository(BaseRepository[models.Location]):
    model = models.Location


class UserRepository(BaseRepository[models.User]):
    model = models.User

    def find_by_id(self, user_id: UUID | str) -> models.User | None:
        key = _as_uuid(user_id)
        if key is None:
            return None
        return self.get(key)


class SubscriptionRepository(BaseRepository[models.Subscription]):
    model = models.Subscription

    def find_by_location(self, location_id: int) -> list[models.Subscription]:
        stmt = (
            select(models.Subscription)
            .where(models.Subscription.location_id == location_id)
            .order_by(models.Subscription.date_added.asc())
        )
        return list(self.db.execute(stmt).scalars().all())


class NotificationLogRepository(BaseRepository[models.NotificationLog]):
    """Writes the per-attempt notification trail.

    Rows in a terminal state are never transitioned again.
    """

    model = models.NotificationLog

    def create_pending(
        self, *, subscription_id: UUID, user_id: UUID, publication_id: str
    ) -> models.NotificationLog:
        return self.create(
            subscription_id=subscription_id,
            user_id=user_id,
            publication_id=publication_id,
            status=NOTIFICATION_PENDING,
        )

    def create_failed(
        self, *, subscription_id: UUID, user_id: UUID, publication_id: str, error_message: str
    ) -> models.NotificationLog:
        return self.create(
            subscription_id=subscription_id,
            user_id=user_id,
            publication_id=publication_id,
            status=NOTIFICATION_FAILED,
            error_message=error_message,
        )

    def mark_sent(self, entry: models.NotificationLog, gov_notify_id: str | None) -> models.NotificationLog:
        self._ensure_pending(entry)
        return self.update(
            entry,
            status=NOTIFICATION_SENT,
            gov_notify_id=gov_notify_id,
            sent_at=datetime.now(timezone.utc),
        )

    def mark_failed(self, entry: models.NotificationLog, error_message: str) -> models.NotificationLog:
        self._ensure_pending(entry)
        return self.update(entry, status=NOTIFICATION_FAILED, error_message=error_message)

    def find_by_publication(self, publication_id: str) -> list[models.NotificationLog]:
        stmt = select(models.NotificationLog).where(models.NotificationLog.publication_id == publication_id)
        return list(self.db.execute(stmt).scalars().all())

    @staticmethod
    def _ensure_pending(entry: models.NotificationLog) -> None:
        if entry.status in TERMINAL_NOTIFICATION_STATUSES:
            raise ValueError(
                f"Notification {entry.notification_id} is already {entry.status}"
            )


@dataclass(slots=True)
class AuditLogFilters:
    email: str | None = None
    user_id: str | None = None
    actions: list[str] | None = None
    on_date: date | None = None


class AuditLogRepository(BaseRepository[models.AuditLog]):
    model = models.AuditLog

    def _filtered(self, stmt, filters: AuditLogFilters):
        if filters.email:
            stmt = stmt.where(models.AuditLog.user_email.ilike(f"%{filters.email}%"))
        if filters.user_id:
            stmt = stmt.where(models.AuditLog.user_id == filters.user_id)
        if filters.actions:
            stmt = stmt.where(models.AuditLog.action.in_(filters.actions))
        if filters.on_date:
            start = datetime.combine(filters.on_date, time.min, tzinfo=timezone.utc)
            stmt = stmt.where(
                models.AuditLog.timestamp >= start,
                models.AuditLog.timestamp < start + timedelta(days=1),
            )
        return stmt

    def find_all(self, filters: AuditLogFilters, page: int = 1, page_size: int = 20) -> list[models.AuditLog]:
        stmt = self._filtered(select(models.AuditLog), filters)
        stmt = (
            stmt.order_by(models.AuditLog.timestamp.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(self.db.execute(stmt).scalars().all())

    def count(self, filters: AuditLogFilters) -> int:
        stmt = self._filtered(select(func.count()).select_from(models.AuditLog), filters)
        return self.db.execute(stmt).scalar_one()

    def find_unique_actions(self) -> list[str]:
        stmt = select(models.AuditLog.action).distinct().order_by(models.AuditLog.action.asc())
        return list(self.db.execute(stmt).scalars().all())

    def find_by_id(self, log_id: UUID | str) -> models.AuditLog | None:
        key = _as_uuid(log_id)
        if key is None:
            return None
        return self.get(key)
