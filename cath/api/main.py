"""FastAPI application factory.

Assembles the error-view handler and all API routers.
This module is the authoritative app object; cath/main.py re-exports it.
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from cath.api.errors import PublicationAccessError, publication_access_error_handler
from cath.api.routes.audit import router as audit_router
from cath.api.routes.health import router as health_router
from cath.api.routes.publications import router as publications_router
from cath.core.logging import setup_logging
from cath.core.settings import get_settings


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    yield


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_exception_handler(PublicationAccessError, publication_access_error_handler)

app.include_router(health_router)
app.include_router(publications_router)
app.include_router(audit_router)
