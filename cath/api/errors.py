"""Bilingual error views for the publication access gate."""
from __future__ import annotations

from fastapi import Request

from cath.api.views import ViewResponse
from cath.publication.authorisation import ACCESS_DENIED_MESSAGES, DenialReason

ERROR_MESSAGES: dict[int, dict[str, dict[str, str]]] = {
    400: {
        "en": {"title": "Bad Request", "message": "The publication ID is missing."},
        "cy": {"title": "Cais Gwael", "message": "Mae ID y cyhoeddiad ar goll."},
    },
    404: {
        "en": {"title": "Page not found", "message": "The publication could not be found."},
        "cy": {"title": "Heb ddod o hyd i'r dudalen", "message": "Nid oedd modd dod o hyd i'r cyhoeddiad."},
    },
    500: {
        "en": {"title": "Sorry, there is a problem with the service", "message": "Try again later."},
        "cy": {
            "title": "Mae'n ddrwg gennym, mae problem gyda'r gwasanaeth",
            "message": "Rhowch gynnig arall arni yn nes ymlaen.",
        },
    },
}


class PublicationAccessError(Exception):
    """A guarded publication request that must not reach its handler."""

    def __init__(self, status_code: int, messages: dict[str, dict[str, str]]) -> None:
        super().__init__(messages["en"]["message"])
        self.status_code = status_code
        self.messages = messages

    @classmethod
    def bad_request(cls) -> PublicationAccessError:
        return cls(400, ERROR_MESSAGES[400])

    @classmethod
    def not_found(cls) -> PublicationAccessError:
        return cls(404, ERROR_MESSAGES[404])

    @classmethod
    def internal_error(cls) -> PublicationAccessError:
        return cls(500, ERROR_MESSAGES[500])

    @classmethod
    def forbidden(cls, reason: DenialReason) -> PublicationAccessError:
        return cls(403, ACCESS_DENIED_MESSAGES[reason])


async def publication_access_error_handler(_: Request, exc: PublicationAccessError) -> ViewResponse:
    return ViewResponse(f"errors/{exc.status_code}", exc.messages, status_code=exc.status_code)
