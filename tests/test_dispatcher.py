"""Tests for cath/notification/dispatcher.py.

The email provider is a MagicMock; no GOV.UK Notify calls are made.  The
database is a SQLite file so the committed notification trail can be read
from a second connection while a send is in progress.
"""
from __future__ import annotations

import logging
from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from conftest import make_subscriber

from cath.core.settings import Settings
from cath.db.base import Base
from cath.db.models import NotificationLog
from cath.db.repositories import NotificationLogRepository
from cath.notification.dispatcher import (
    NotificationDispatcher,
    PublicationEvent,
    RecipientOutcome,
    RecipientStatus,
    aggregate_outcomes,
)
from cath.notification.template_config import TemplateConfigurationError


PUBLICATION_ID = "0c6c3d3e-0000-4000-8000-000000000001"


def _settings(**overrides) -> Settings:
    values = {
        "GOVUK_NOTIFY_TEMPLATE_ID_SUBSCRIPTION": "tmpl-base",
        "GOVUK_NOTIFY_TEMPLATE_ID_SUBSCRIPTION_PDF_AND_SUMMARY": "tmpl-pdf",
        "GOVUK_NOTIFY_TEMPLATE_ID_SUBSCRIPTION_SUMMARY_ONLY": "tmpl-summary",
        "CATH_SERVICE_URL": "https://cath.example",
        "PDF_MAX_SIZE_BYTES": 1024,
    }
    values.update(overrides)
    return Settings(**values)


def _send(dispatcher: NotificationDispatcher, pdf_file_path: str | None = None):
    return dispatcher.send_publication_notifications(
        publication_id=PUBLICATION_ID,
        location_id=9001,
        location_name="Oxford Combined Court Centre",
        list_type_name="Civil Daily Cause List",
        publication_date=date(2026, 3, 14),
        pdf_file_path=pdf_file_path,
    )


@pytest.fixture()
def db_url(tmp_path) -> str:
    return f"sqlite+pysqlite:///{tmp_path / 'cath.db'}"


@pytest.fixture()
def db_session(db_url):
    """File-backed session; each dispatcher log write commits on its own connection."""
    engine = create_engine(db_url)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()
    engine.dispose()


def _subscribe(db_session, **kwargs):
    subscription = make_subscriber(db_session, **kwargs)
    db_session.commit()
    return subscription


def _log_rows(db_session):
    db_session.expire_all()
    return NotificationLogRepository(db_session).find_by_publication(PUBLICATION_ID)


@pytest.fixture()
def provider() -> MagicMock:
    mock = MagicMock()
    mock.send_email.return_value = "notify-msg-1"
    return mock


# ===========================================================================
# Fan-out
# ===========================================================================

class TestFanOut:
    def test_no_subscribers_is_successful_empty_result(self, db_session, provider):
        result = _send(NotificationDispatcher(db_session, provider, _settings()))

        assert result.success is True
        assert result.total_subscribers == 0
        assert (result.sent_count, result.failed_count, result.skipped_count) == (0, 0, 0)
        assert result.errors == []
        provider.send_email.assert_not_called()

    def test_counts_add_up_with_missing_emails(self, db_session, provider):
        for i in range(3):
            _subscribe(db_session, email=f"sub{i}@example.com")
        _subscribe(db_session, email=None)
        _subscribe(db_session, email=None)

        result = _send(NotificationDispatcher(db_session, provider, _settings()))

        assert result.success is True
        assert result.total_subscribers == 5
        assert result.sent_count == 3
        assert result.skipped_count == 2
        assert result.failed_count == 0
        assert result.sent_count + result.failed_count + result.skipped_count == result.total_subscribers
        assert provider.send_email.call_count == 3
        assert all("No email address" in e.error for e in result.errors)

    def test_other_locations_are_not_notified(self, db_session, provider):
        _subscribe(db_session, location_id=9001)
        _subscribe(db_session, location_id=42)

        result = _send(NotificationDispatcher(db_session, provider, _settings()))

        assert result.total_subscribers == 1

    def test_personalisation(self, db_session, provider):
        _subscribe(db_session, email="sub@example.com")

        _send(NotificationDispatcher(db_session, provider, _settings()))

        template_id, email, personalisation = provider.send_email.call_args.args
        assert template_id == "tmpl-summary"
        assert email == "sub@example.com"
        assert personalisation == {
            "ListType": "Civil Daily Cause List",
            "content_date": "14/03/2026",
            "locations": "Oxford Combined Court Centre",
            "display_locations": "yes",
            "case": "",
            "display_case": "",
            "summary_of_cases": "",
            "display_summary": "",
            "start_page_link": "https://cath.example",
            "subscription_page_link": "https://cath.example",
        }


# ===========================================================================
# Notification log trail
# ===========================================================================

class TestNotificationLog:
    def test_pending_row_committed_before_provider_call(self, db_session, db_url, provider):
        _subscribe(db_session)
        other_engine = create_engine(db_url)
        pending_counts: list[int] = []

        def _count_pending(*_args):
            with other_engine.connect() as conn:
                pending_counts.append(
                    conn.execute(
                        select(func.count())
                        .select_from(NotificationLog)
                        .where(NotificationLog.publication_id == PUBLICATION_ID, NotificationLog.status == "Pending")
                    ).scalar_one()
                )
            return "notify-msg-1"

        provider.send_email.side_effect = _count_pending

        _send(NotificationDispatcher(db_session, provider, _settings()))
        other_engine.dispose()

        assert pending_counts == [1]
        rows = _log_rows(db_session)
        assert [row.status for row in rows] == ["Sent"]
        assert rows[0].gov_notify_id == "notify-msg-1"
        assert rows[0].sent_at is not None

    def test_log_rows_survive_request_rollback(self, db_session, provider):
        _subscribe(db_session)

        _send(NotificationDispatcher(db_session, provider, _settings()))
        db_session.rollback()

        assert [row.status for row in _log_rows(db_session)] == ["Sent"]

    def test_missing_email_logged_as_failed_without_send(self, db_session, provider):
        _subscribe(db_session, email=None)

        _send(NotificationDispatcher(db_session, provider, _settings()))

        rows = _log_rows(db_session)
        assert [(row.status, row.error_message) for row in rows] == [("Failed", "No email address")]
        provider.send_email.assert_not_called()

    def test_terminal_rows_are_not_transitioned_again(self, db_session):
        subscription = make_subscriber(db_session)
        repo = NotificationLogRepository(db_session)
        entry = repo.create_pending(
            subscription_id=subscription.subscription_id,
            user_id=subscription.user_id,
            publication_id=PUBLICATION_ID,
        )
        repo.mark_sent(entry, "notify-msg-1")

        with pytest.raises(ValueError, match="already Sent"):
            repo.mark_failed(entry, "late failure")


# ===========================================================================
# Failure isolation
# ===========================================================================

class TestFailureIsolation:
    def test_provider_failure_for_one_recipient_does_not_stop_batch(self, db_session, provider):
        _subscribe(db_session, email="ok1@example.com")
        _subscribe(db_session, email="broken@example.com")
        _subscribe(db_session, email="ok2@example.com")

        def _send_email(template_id, email, personalisation):
            if email == "broken@example.com":
                raise RuntimeError("Provider rejected broken@example.com")
            return "notify-msg"

        provider.send_email.side_effect = _send_email

        result = _send(NotificationDispatcher(db_session, provider, _settings()))

        assert result.success is True
        assert result.sent_count == 2
        assert result.failed_count == 1
        assert len(result.errors) == 1
        assert "broken@example.com" not in result.errors[0].error
        assert "[REDACTED_EMAIL]" in result.errors[0].error

        failed = [row for row in _log_rows(db_session) if row.status == "Failed"]
        assert len(failed) == 1
        assert failed[0].error_message == "Provider rejected [REDACTED_EMAIL]"

    def test_log_write_error_for_one_recipient_does_not_stop_batch(self, db_session, provider):
        for i in range(3):
            _subscribe(db_session, email=f"sub{i}@example.com")
        message_ids = iter([{"id": "not-a-string"}, "notify-msg-2", "notify-msg-3"])
        provider.send_email.side_effect = lambda *_args: next(message_ids)

        result = _send(NotificationDispatcher(db_session, provider, _settings()))

        assert result.success is True
        assert result.sent_count == 2
        assert result.failed_count == 1
        assert provider.send_email.call_count == 3
        assert sorted(row.status for row in _log_rows(db_session)) == ["Pending", "Sent", "Sent"]

    def test_unexpected_error_in_user_lookup_is_isolated(self, db_session, provider):
        _subscribe(db_session)
        _subscribe(db_session)
        dispatcher = NotificationDispatcher(db_session, provider, _settings())
        original = dispatcher.users.find_by_id
        calls = {"n": 0}

        def _flaky(user_id):
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("lookup exploded")
            return original(user_id)

        dispatcher.users.find_by_id = _flaky

        result = _send(dispatcher)

        assert result.total_subscribers == 2
        assert result.failed_count == 1
        assert result.sent_count == 1

    def test_email_addresses_never_logged(self, db_session, provider, caplog):
        _subscribe(db_session, email="private.person@example.com")
        provider.send_email.side_effect = RuntimeError("bounce for private.person@example.com")

        with caplog.at_level(logging.DEBUG, logger="cath.notification.dispatcher"):
            _send(NotificationDispatcher(db_session, provider, _settings()))

        assert "private.person@example.com" not in caplog.text


# ===========================================================================
# Template selection
# ===========================================================================

class TestTemplateSelection:
    def test_small_pdf_uses_pdf_template_and_attaches_file(self, db_session, provider, tmp_path):
        _subscribe(db_session)
        pdf = tmp_path / "list.pdf"
        pdf.write_bytes(b"%PDF-1.4 small")

        with patch(
            "cath.notification.dispatcher.prepare_file_link",
            return_value={"file": "ZmFrZQ==", "filename": "list.pdf"},
        ) as prepare:
            _send(NotificationDispatcher(db_session, provider, _settings()), pdf_file_path=str(pdf))

        prepare.assert_called_once_with(str(pdf))
        template_id, _, personalisation = provider.send_email.call_args.args
        assert template_id == "tmpl-pdf"
        assert personalisation["link_to_file"] == {"file": "ZmFrZQ==", "filename": "list.pdf"}

    def test_oversized_pdf_uses_summary_template(self, db_session, provider, tmp_path):
        _subscribe(db_session)
        pdf = tmp_path / "big.pdf"
        pdf.write_bytes(b"x" * 2048)

        with patch("cath.notification.dispatcher.prepare_file_link") as prepare:
            _send(NotificationDispatcher(db_session, provider, _settings()), pdf_file_path=str(pdf))

        prepare.assert_not_called()
        template_id, _, personalisation = provider.send_email.call_args.args
        assert template_id == "tmpl-summary"
        assert "link_to_file" not in personalisation

    def test_pdf_of_exactly_the_limit_is_not_attached(self, db_session, provider, tmp_path):
        _subscribe(db_session)
        pdf = tmp_path / "limit.pdf"
        pdf.write_bytes(b"x" * 1024)

        with patch("cath.notification.dispatcher.prepare_file_link") as prepare:
            _send(NotificationDispatcher(db_session, provider, _settings()), pdf_file_path=str(pdf))

        prepare.assert_not_called()
        assert provider.send_email.call_args.args[0] == "tmpl-summary"

    def test_missing_pdf_file_falls_back_to_summary(self, db_session, provider, tmp_path):
        _subscribe(db_session)

        _send(NotificationDispatcher(db_session, provider, _settings()), pdf_file_path=str(tmp_path / "gone.pdf"))

        assert provider.send_email.call_args.args[0] == "tmpl-summary"

    def test_unconfigured_specific_template_falls_back_to_base(self, db_session, provider):
        _subscribe(db_session)
        settings = _settings(GOVUK_NOTIFY_TEMPLATE_ID_SUBSCRIPTION_SUMMARY_ONLY=None)

        _send(NotificationDispatcher(db_session, provider, settings))

        assert provider.send_email.call_args.args[0] == "tmpl-base"

    def test_no_templates_configured_raises(self, db_session, provider):
        _subscribe(db_session)
        settings = _settings(
            GOVUK_NOTIFY_TEMPLATE_ID_SUBSCRIPTION=None,
            GOVUK_NOTIFY_TEMPLATE_ID_SUBSCRIPTION_SUMMARY_ONLY=None,
        )

        with pytest.raises(TemplateConfigurationError):
            _send(NotificationDispatcher(db_session, provider, settings))
        provider.send_email.assert_not_called()


# ===========================================================================
# Case summary
# ===========================================================================

CAUSE_LIST = {
    "courtLists": [
        {
            "courtHouse": {
                "courtRoom": [
                    {
                        "session": [
                            {
                                "sittings": [
                                    {
                                        "hearing": [
                                            {
                                                "hearingType": "Trial",
                                                "case": [
                                                    {
                                                        "caseNumber": "12345",
                                                        "caseName": "Smith v Jones",
                                                        "caseType": "Civil",
                                                        "party": [],
                                                    }
                                                ],
                                            }
                                        ]
                                    }
                                ]
                            }
                        ]
                    }
                ]
            }
        }
    ]
}


class TestCaseSummary:
    def _send_list(self, dispatcher, list_type_key, json_data):
        return dispatcher.send_publication_notifications(
            publication_id=PUBLICATION_ID,
            location_id=9001,
            location_name="Oxford Combined Court Centre",
            list_type_name="Civil and Family Daily Cause List",
            publication_date=date(2026, 3, 14),
            list_type_key=list_type_key,
            json_data=json_data,
        )

    def test_summary_included_for_registered_list_type(self, db_session, provider):
        _subscribe(db_session)

        self._send_list(
            NotificationDispatcher(db_session, provider, _settings()),
            "CIVIL_AND_FAMILY_DAILY_CAUSE_LIST",
            CAUSE_LIST,
        )

        personalisation = provider.send_email.call_args.args[2]
        assert personalisation["display_summary"] == "yes"
        assert "Case reference - 12345" in personalisation["summary_of_cases"]
        assert "Hearing type - Trial" in personalisation["summary_of_cases"]
        assert personalisation["ListType"] == "Civil and Family Daily Cause List"

    def test_unbuildable_summary_falls_back_to_plain_email(self, db_session, provider, caplog):
        _subscribe(db_session)

        with caplog.at_level(logging.WARNING, logger="cath.notification.dispatcher"):
            result = self._send_list(
                NotificationDispatcher(db_session, provider, _settings()),
                "CIVIL_AND_FAMILY_DAILY_CAUSE_LIST",
                {"unexpected": "shape"},
            )

        assert result.sent_count == 1
        personalisation = provider.send_email.call_args.args[2]
        assert personalisation["display_summary"] == ""
        assert personalisation["summary_of_cases"] == ""
        assert "sending plain email" in caplog.text

    def test_list_type_without_builder_gets_plain_email(self, db_session, provider):
        _subscribe(db_session)

        self._send_list(
            NotificationDispatcher(db_session, provider, _settings()),
            "CRIME_DAILY_LIST",
            CAUSE_LIST,
        )

        assert provider.send_email.call_args.args[2]["display_summary"] == ""


# ===========================================================================
# Event validation and aggregation
# ===========================================================================

class TestPublicationEvent:
    def test_missing_fields_listed(self):
        event = PublicationEvent(
            publication_id="",
            location_id=9001,
            location_name=" ",
            list_type_name="Civil Daily Cause List",
            publication_date=None,
        )

        with pytest.raises(ValueError) as excinfo:
            event.validate()

        message = str(excinfo.value)
        assert "publication_id" in message
        assert "location_name" in message
        assert "publication_date" in message
        assert "list_type_name" not in message

    def test_dispatcher_validates_before_any_work(self, db_session, provider):
        dispatcher = NotificationDispatcher(db_session, provider, _settings())

        with pytest.raises(ValueError, match="list_type_name"):
            dispatcher.send_publication_notifications(
                publication_id=PUBLICATION_ID,
                location_id=9001,
                location_name="Oxford",
                list_type_name="",
                publication_date=date(2026, 3, 14),
            )


def test_aggregate_outcomes():
    result = aggregate_outcomes([
        RecipientOutcome("u1", RecipientStatus.SENT),
        RecipientOutcome("u2", RecipientStatus.FAILED, "User u2: boom"),
        RecipientOutcome("u3", RecipientStatus.SKIPPED, "User u3: No email address"),
    ])

    assert result.success is True
    assert (result.total_subscribers, result.sent_count, result.failed_count, result.skipped_count) == (3, 1, 1, 1)
    assert [e.user_id for e in result.errors] == ["u2", "u3"]
