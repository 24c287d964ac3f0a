"""GOV.UK Notify template selection and personalisation."""
from __future__ import annotations

import logging
from datetime import date, datetime

from cath.core.settings import Settings

logger = logging.getLogger(__name__)


class TemplateConfigurationError(RuntimeError):
    """Raised when no usable Notify template id is configured."""


def format_publication_date(value: date | datetime) -> str:
    return value.strftime("%d/%m/%Y")


def build_template_parameters(
    *,
    list_type_name: str,
    publication_date: date | datetime,
    location_name: str,
    service_url: str,
) -> dict[str, str]:
    """Personalisation shared by every subscription template.

    The ``display_*`` flags switch optional sections of the Notify template
    on (``"yes"``) or off (``""``).  Location subscriptions always show the
    locations section; case sections are off.
    """
    return {
        "ListType": list_type_name,
        "content_date": format_publication_date(publication_date),
        "locations": location_name,
        "display_locations": "yes" if location_name else "",
        "case": "",
        "display_case": "",
        "summary_of_cases": "",
        "display_summary": "",
        "start_page_link": service_url,
        "subscription_page_link": service_url,
    }


def build_enhanced_template_parameters(
    *,
    list_type_name: str,
    publication_date: date | datetime,
    location_name: str,
    service_url: str,
    case_summary: str,
) -> dict[str, str]:
    """Plain personalisation plus the formatted case summary section."""
    parameters = build_template_parameters(
        list_type_name=list_type_name,
        publication_date=publication_date,
        location_name=location_name,
        service_url=service_url,
    )
    parameters["summary_of_cases"] = case_summary
    parameters["display_summary"] = "yes"
    return parameters


def get_base_template_id(settings: Settings) -> str:
    if not settings.notify_template_subscription:
        raise TemplateConfigurationError(
            "GOVUK_NOTIFY_TEMPLATE_ID_SUBSCRIPTION environment variable is not set"
        )
    return settings.notify_template_subscription


def get_subscription_template_id(settings: Settings, *, has_pdf: bool, pdf_under_limit: bool) -> str:
    """Pick the template for a subscription email.

    A PDF small enough to attach uses the PDF-and-summary template; anything
    else uses the summary-only template.  Either falls back to the base
    subscription template when not configured.
    """
    if has_pdf and pdf_under_limit:
        if settings.notify_template_pdf_and_summary:
            return settings.notify_template_pdf_and_summary
        logger.warning(
            "GOVUK_NOTIFY_TEMPLATE_ID_SUBSCRIPTION_PDF_AND_SUMMARY not set, falling back to base template"
        )
        return get_base_template_id(settings)

    if settings.notify_template_summary_only:
        return settings.notify_template_summary_only
    logger.warning(
        "GOVUK_NOTIFY_TEMPLATE_ID_SUBSCRIPTION_SUMMARY_ONLY not set, falling back to base template"
    )
    return get_base_template_id(settings)
