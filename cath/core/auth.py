"""Authenticated principal as handed over by the external auth layer."""
from __future__ import annotations

from dataclasses import dataclass

from starlette.requests import Request


@dataclass(slots=True, frozen=True)
class Principal:
    id: str | None = None
    email: str | None = None
    role: str | None = None
    provenance: str | None = None


def principal_from_request(request: Request) -> Principal | None:
    """Return the principal attached to *request*, or ``None`` when anonymous."""
    return getattr(request.state, "principal", None)
