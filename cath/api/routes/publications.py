"""Publication routes.

- GET  /publications/{publication_id}          metadata (``require_publication_access``)
- GET  /publications/{publication_id}/data     content view (``require_publication_data_access``)
- POST /publications/{publication_id}/process  re-run post-save processing (system admin)
"""
from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from cath.api.deps import (
    get_publication_processor,
    require_publication_access,
    require_publication_data_access,
    require_system_admin,
)
from cath.api.middleware.audit_trail import AuditedRoute, get_audit_context
from cath.api.views import ViewResponse
from cath.core.auth import Principal
from cath.db.models import Artefact
from cath.publication.list_types import get_list_type_display_name
from cath.publication.processing import PublicationProcessor

router = APIRouter(prefix="/publications", tags=["publications"], route_class=AuditedRoute)


class ProcessBody(BaseModel):
    locale: str = "en"
    json_data: dict[str, Any] | list[Any] | None = None
    skip_notifications: bool = False


def _serialize_artefact(artefact: Artefact) -> dict:
    return {
        "artefact_id": str(artefact.artefact_id),
        "location_id": artefact.location_id,
        "list_type_id": artefact.list_type_id,
        "list_type": get_list_type_display_name(artefact.list_type_id),
        "content_date": artefact.content_date.isoformat(),
        "sensitivity": artefact.sensitivity,
        "language": artefact.language,
        "display_from": artefact.display_from.isoformat(),
        "display_to": artefact.display_to.isoformat(),
        "provenance": artefact.provenance,
        "is_flat_file": artefact.is_flat_file,
    }


@router.get("/{publication_id}", summary="Publication metadata")
def get_publication_metadata(artefact: Artefact = Depends(require_publication_access)):
    return _serialize_artefact(artefact)


@router.get("/{publication_id}/data", summary="Publication content view")
def get_publication_data(artefact: Artefact = Depends(require_publication_data_access)):
    view = "flat-file" if artefact.is_flat_file else "publication-data"
    return ViewResponse(view, {"publication": _serialize_artefact(artefact)})


@router.post("/{publication_id}/process", summary="Re-run post-save processing")
def process_publication(
    request: Request,
    body: ProcessBody,
    artefact: Artefact = Depends(require_publication_access),
    _: Principal = Depends(require_system_admin),
    processor: PublicationProcessor = Depends(get_publication_processor),
):
    context = get_audit_context(request)
    context.action = "reprocess_publication"
    context.entity_info = f"Artefact ID: {artefact.artefact_id}"

    result = processor.process_publication_after_save(
        artefact_id=str(artefact.artefact_id),
        location_id=artefact.location_id,
        list_type_id=artefact.list_type_id,
        content_date=artefact.content_date,
        locale=body.locale,
        json_data=body.json_data,
        provenance=artefact.provenance,
        skip_notifications=body.skip_notifications,
        display_from=artefact.display_from,
        display_to=artefact.display_to,
    )
    return asdict(result)
