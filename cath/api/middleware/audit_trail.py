"""Audit trail adapter: feed FastAPI response completion to the recorder.

``AuditedRoute`` is an ``APIRoute`` subclass.  For every request that
qualifies (mutating method, system admin, not the audit viewer) it:

1. creates the request's ``AuditContext`` on ``request.state.audit_context``
   and an ``AuditTrailRecorder`` on ``request.state.audit_recorder`` so the
   handler can declare intent or complete the audit itself;
2. runs the handler;
3. maps the returned response onto the recorder's completion hooks:
   ``ViewResponse`` -> ``render``, redirects -> ``redirect``,
   ``JSONResponse`` -> ``json``, anything else -> ``send``.

The response object is always returned unchanged.  Recorder failures are
logged by the recorder and never reach the client.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Callable, Coroutine
from typing import Any
from urllib.parse import parse_qsl

from fastapi import Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.routing import APIRoute
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from cath.api.views import ViewResponse
from cath.audit.audit_log import DatabaseAuditLogWriter
from cath.audit.context import AuditContext
from cath.audit.recorder import AuditLogWriter, AuditRequest, AuditTrailRecorder, UploadedFile, should_audit
from cath.core.auth import principal_from_request
from cath.core.settings import get_settings
from cath.db.session import get_session_factory

logger = logging.getLogger(__name__)


def get_audit_context(request: Request) -> AuditContext:
    """Return (creating if needed) the request's ``AuditContext``."""
    context = getattr(request.state, "audit_context", None)
    if context is None:
        context = AuditContext()
        request.state.audit_context = context
    return context


def _audit_writer(request: Request) -> AuditLogWriter:
    writer = getattr(request.app.state, "audit_writer", None)
    if writer is None:
        writer = DatabaseAuditLogWriter(get_session_factory())
        request.app.state.audit_writer = writer
    return writer


async def _read_body(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("application/json"):
            raw = await request.body()
            data = json.loads(raw) if raw else {}
            return data if isinstance(data, dict) else {}
        if content_type.startswith("application/x-www-form-urlencoded"):
            raw = await request.body()
            return dict(parse_qsl(raw.decode("utf-8"), keep_blank_values=True))
        if content_type.startswith("multipart/form-data"):
            form = await request.form()
            return {key: value for key, value in form.items() if isinstance(value, str)}
    except Exception as exc:
        logger.warning("Could not read request body for audit: %s", exc)
    return {}


async def _read_uploads(request: Request) -> list[UploadedFile]:
    if not request.headers.get("content-type", "").startswith("multipart/form-data"):
        return []
    try:
        form = await request.form()
    except Exception as exc:
        logger.warning("Could not read uploaded files for audit: %s", exc)
        return []
    return [
        UploadedFile(filename=value.filename or "", size=value.size)
        for _, value in form.multi_items()
        if isinstance(value, UploadFile)
    ]


def notify_completion(recorder: AuditTrailRecorder, response: Response) -> None:
    if isinstance(response, ViewResponse):
        recorder.render(response.view, response.model)
    elif isinstance(response, RedirectResponse) or (
        300 <= response.status_code < 400 and "location" in response.headers
    ):
        recorder.redirect(response.headers.get("location", ""))
    elif isinstance(response, JSONResponse):
        recorder.json(response.body)
    else:
        recorder.send(response.body)


class AuditedRoute(APIRoute):
    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original_handler = super().get_route_handler()

        async def audited_handler(request: Request) -> Response:
            principal = principal_from_request(request)
            settings = get_settings()
            if not should_audit(request.method, request.url.path, principal, settings.audit_log_path):
                return await original_handler(request)

            recorder = AuditTrailRecorder(
                AuditRequest(
                    method=request.method,
                    path=request.url.path,
                    principal=principal,
                    body=await _read_body(request),
                    path_params=request.path_params,
                    session=request.scope.get("session") or {},
                    context=get_audit_context(request),
                    uploads=await _read_uploads(request),
                ),
                _audit_writer(request),
            )
            request.state.audit_recorder = recorder

            response = await original_handler(request)
            await run_in_threadpool(notify_completion, recorder, response)
            return response

        return audited_handler
