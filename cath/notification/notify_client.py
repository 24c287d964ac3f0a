"""GOV.UK Notify email provider.

Wraps ``notifications_python_client`` behind the small ``EmailProvider``
interface used by the dispatcher: send one templated email, get back the
provider's message id, or raise ``EmailDeliveryError``.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from notifications_python_client import prepare_upload
from notifications_python_client.errors import HTTPError
from notifications_python_client.notifications import NotificationsAPIClient

from cath.core.settings import get_settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    """Raised when the provider rejects or fails to accept an email."""


class EmailProvider(Protocol):
    def send_email(self, template_id: str, email_address: str, personalisation: dict) -> str:
        ...


def fits_attachment_limit(size_bytes: int, max_size_bytes: int) -> bool:
    """Whether a file of *size_bytes* may be attached; the limit itself is too large."""
    return size_bytes < max_size_bytes


def prepare_file_link(pdf_path: str | Path) -> dict:
    """Return the ``link_to_file`` personalisation value for *pdf_path*."""
    path = Path(pdf_path)
    with path.open("rb") as fh:
        return prepare_upload(fh, filename=path.name)


class NotifyEmailClient:
    """Send transactional emails through GOV.UK Notify."""

    def __init__(self, api_key: str | None = None) -> None:
        api_key = api_key or get_settings().notify_api_key
        if not api_key:
            raise ValueError("GOVUK_NOTIFY_API_KEY environment variable is not set")
        self._client = NotificationsAPIClient(api_key)

    def send_email(self, template_id: str, email_address: str, personalisation: dict) -> str:
        try:
            response = self._client.send_email_notification(
                email_address=email_address,
                template_id=template_id,
                personalisation=personalisation,
            )
        except HTTPError as exc:
            raise EmailDeliveryError(f"GOV.UK Notify error {exc.status_code}: {exc.message}") from exc

        message_id = response.get("id")
        if not message_id:
            raise EmailDeliveryError("GOV.UK Notify response did not include a notification id")
        return message_id
