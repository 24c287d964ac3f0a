"""Rendered view responses.

Page templates live outside this service; a view is returned as its
name plus the model it would be rendered with.  Keeping the model on the
response lets the audit adapter see validation errors.
"""
from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


class ViewResponse(JSONResponse):
    def __init__(self, view: str, model: dict[str, Any] | None = None, status_code: int = 200, **kwargs) -> None:
        self.view = view
        self.model = dict(model or {})
        super().__init__(
            content=jsonable_encoder({"view": view, **self.model}),
            status_code=status_code,
            **kwargs,
        )
