import logging

from cath.core.logging import EmailRedactingFilter, redact_emails


def test_filter_redacts_email_in_message(caplog):
    logger = logging.getLogger("test.redact")
    logger.setLevel(logging.INFO)
    logger.filters = []
    logger.addFilter(EmailRedactingFilter())

    with caplog.at_level(logging.INFO, logger="test.redact"):
        logger.info("Provider rejected john.doe@example.com")

    assert "john.doe@example.com" not in caplog.text
    assert "[REDACTED_EMAIL]" in caplog.text


def test_filter_redacts_email_in_args(caplog):
    logger = logging.getLogger("test.redact_args")
    logger.setLevel(logging.INFO)
    logger.filters = []
    logger.addFilter(EmailRedactingFilter())

    with caplog.at_level(logging.INFO, logger="test.redact_args"):
        logger.info("Notification for %s failed: %s", "user-1", "bounce for jane+lists@court.gov.uk")

    assert "jane+lists@court.gov.uk" not in caplog.text
    assert "Notification for user-1 failed: bounce for [REDACTED_EMAIL]" in caplog.text


def test_redact_emails_leaves_other_text():
    assert redact_emails("User 42: timeout after 30s") == "User 42: timeout after 30s"
    assert redact_emails("a@b.co and c.d@e.org") == "[REDACTED_EMAIL] and [REDACTED_EMAIL]"
