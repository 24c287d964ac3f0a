from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cath.db.base import Base
from cath.db.models import Artefact, Location, Subscription, User


@pytest.fixture()
def db_session():
    """In-memory SQLite session with all tables created."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    yield session
    session.close()


class PrincipalHolder:
    """Stands in for the upstream auth layer: puts a principal on request.state."""

    def __init__(self) -> None:
        self.principal = None

    def wrap(self, app):
        async def asgi(scope, receive, send):
            if scope["type"] == "http" and self.principal is not None:
                scope.setdefault("state", {})["principal"] = self.principal
            await app(scope, receive, send)

        return asgi


@pytest.fixture()
def principal_holder() -> PrincipalHolder:
    return PrincipalHolder()


@pytest.fixture()
def audit_writer() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def client(
    db_session: Session,
    principal_holder: PrincipalHolder,
    audit_writer: MagicMock,
    monkeypatch: pytest.MonkeyPatch,
) -> TestClient:
    """TestClient with get_db overridden to use the in-memory session."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")

    from cath.core.settings import get_settings

    get_settings.cache_clear()

    from cath.api.deps import get_db
    from cath.api.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    app.state.audit_writer = audit_writer
    with TestClient(principal_holder.wrap(app), raise_server_exceptions=False) as c:
        yield c
    app.dependency_overrides.clear()
    app.state.audit_writer = None
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_artefact(
    db_session: Session,
    *,
    sensitivity: str | None = "PUBLIC",
    provenance: str = "CFT_IDAM",
    list_type_id: int = 1,
    location_id: str = "9001",
    is_flat_file: bool = False,
) -> Artefact:
    now = datetime(2026, 3, 14, 9, 0, tzinfo=timezone.utc)
    artefact = Artefact(
        artefact_id=uuid4(),
        location_id=location_id,
        list_type_id=list_type_id,
        content_date=now,
        sensitivity=sensitivity,
        language="ENGLISH",
        display_from=now,
        display_to=datetime(2026, 3, 15, 9, 0, tzinfo=timezone.utc),
        provenance=provenance,
        is_flat_file=is_flat_file,
    )
    db_session.add(artefact)
    db_session.flush()
    return artefact


def make_location(db_session: Session, location_id: int = 9001, name: str = "Oxford Combined Court Centre") -> Location:
    location = Location(location_id=location_id, name=name, welsh_name=None)
    db_session.add(location)
    db_session.flush()
    return location


def make_subscriber(db_session: Session, *, location_id: int = 9001, email: str | None = "subscriber@example.com") -> Subscription:
    user = User(user_id=uuid4(), email=email, user_provenance="CFT_IDAM")
    db_session.add(user)
    db_session.flush()
    subscription = Subscription(subscription_id=uuid4(), user_id=user.user_id, location_id=location_id)
    db_session.add(subscription)
    db_session.flush()
    return subscription
