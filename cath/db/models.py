from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func, text as sql_text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cath.db.base import Base


class Location(Base):
    __tablename__ = "locations"

    location_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    welsh_name: Mapped[str | None] = mapped_column(String(256), nullable=True)


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    surname: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_provenance: Mapped[str] = mapped_column(String(32), nullable=False)
    role: Mapped[str] = mapped_column(
        String(32), nullable=False, default="VERIFIED", server_default=sql_text("'VERIFIED'")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    subscriptions: Mapped[list[Subscription]] = relationship(back_populates="user")


class Subscription(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (UniqueConstraint("user_id", "location_id", name="uq_subscriptions_user_location"),)

    subscription_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    location_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    date_added: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user: Mapped[User] = relationship(back_populates="subscriptions")


class Artefact(Base):
    """A published hearing list.  Created by the ingest path, read-only here."""

    __tablename__ = "artefacts"

    artefact_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    location_id: Mapped[str] = mapped_column(String(32), nullable=False)
    list_type_id: Mapped[int] = mapped_column(Integer, nullable=False)
    content_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sensitivity: Mapped[str | None] = mapped_column(String(16), nullable=True)
    language: Mapped[str] = mapped_column(
        String(16), nullable=False, default="ENGLISH", server_default=sql_text("'ENGLISH'")
    )
    display_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    display_to: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    provenance: Mapped[str] = mapped_column(String(32), nullable=False)
    is_flat_file: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=sql_text("false")
    )
    last_received_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class NotificationLog(Base):
    """One notification attempt for a (publication, subscription) pair.

    ``Pending`` rows are written before the provider call; ``Sent`` and
    ``Failed`` are terminal.
    """

    __tablename__ = "notification_logs"

    notification_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    subscription_id: Mapped[UUID] = mapped_column(
        ForeignKey("subscriptions.subscription_id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(nullable=False)
    publication_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="Pending", server_default=sql_text("'Pending'")
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    gov_notify_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class AuditLog(Base):
    """Append-only record of an administrative mutation."""

    __tablename__ = "audit_logs"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    user_email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    user_role: Mapped[str] = mapped_column(String(32), nullable=False)
    user_provenance: Mapped[str] = mapped_column(String(32), nullable=False)
    action: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True,
    )
