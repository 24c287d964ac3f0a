"""Initial schema: locations, users, subscriptions, artefacts, notification logs, audit logs

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18

"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "locations",
        sa.Column("location_id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("welsh_name", sa.String(length=256), nullable=True),
        sa.PrimaryKeyConstraint("location_id"),
    )

    op.create_table(
        "users",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("first_name", sa.String(length=128), nullable=True),
        sa.Column("surname", sa.String(length=128), nullable=True),
        sa.Column("user_provenance", sa.String(length=32), nullable=False),
        sa.Column("role", sa.String(length=32), server_default=sa.text("'VERIFIED'"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "subscriptions",
        sa.Column("subscription_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("date_added", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("subscription_id"),
        sa.UniqueConstraint("user_id", "location_id", name="uq_subscriptions_user_location"),
    )
    op.create_index("ix_subscriptions_location_id", "subscriptions", ["location_id"])

    op.create_table(
        "artefacts",
        sa.Column("artefact_id", sa.Uuid(), nullable=False),
        sa.Column("location_id", sa.String(length=32), nullable=False),
        sa.Column("list_type_id", sa.Integer(), nullable=False),
        sa.Column("content_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sensitivity", sa.String(length=16), nullable=True),
        sa.Column("language", sa.String(length=16), server_default=sa.text("'ENGLISH'"), nullable=False),
        sa.Column("display_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("display_to", sa.DateTime(timezone=True), nullable=False),
        sa.Column("provenance", sa.String(length=32), nullable=False),
        sa.Column("is_flat_file", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("last_received_date", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("artefact_id"),
    )

    op.create_table(
        "notification_logs",
        sa.Column("notification_id", sa.Uuid(), nullable=False),
        sa.Column("subscription_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("publication_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), server_default=sa.text("'Pending'"), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("gov_notify_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.subscription_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("notification_id"),
    )
    op.create_index("ix_notification_logs_publication_id", "notification_logs", ["publication_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("user_email", sa.String(length=320), nullable=False),
        sa.Column("user_role", sa.String(length=32), nullable=False),
        sa.Column("user_provenance", sa.String(length=32), nullable=False),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_user_email", "audit_logs", ["user_email"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_timestamp", "audit_logs", ["timestamp"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("notification_logs")
    op.drop_table("artefacts")
    op.drop_table("subscriptions")
    op.drop_table("users")
    op.drop_table("locations")
