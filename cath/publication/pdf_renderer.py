"""Hearing list PDF rendering.

Renders a publication's JSON payload to a PDF using WeasyPrint and keeps
a registry of renderers keyed by list type name.  List types without a
registered renderer simply produce no PDF.

Output is written to ``{output_dir}/{artefact_id}.pdf``.
"""
from __future__ import annotations

import html
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from string import Template
from typing import Any, Protocol

from cath.core.settings import get_settings
from cath.notification.notify_client import fits_attachment_limit
from cath.publication.list_types import get_list_type

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# PdfResult
# ---------------------------------------------------------------------------

@dataclass
class PdfResult:
    """Outcome of a single rendering attempt."""

    success: bool
    pdf_path: str | None = None
    size_bytes: int | None = None
    exceeds_max_size: bool | None = None
    error: str | None = None


class PdfRenderer(Protocol):
    def __call__(
        self,
        *,
        artefact_id: str,
        content_date: datetime,
        locale: str,
        location_id: str,
        json_data: Any,
        provenance: str | None,
        list_type_id: int,
        display_from: datetime | None = None,
        display_to: datetime | None = None,
    ) -> PdfResult:
        ...


# ---------------------------------------------------------------------------
# HTML rendering
# ---------------------------------------------------------------------------

_PAGE_TEMPLATE = Template(
    """<!DOCTYPE html>
<html lang="$lang">
<head><meta charset="utf-8"><title>$title</title></head>
<body>
<h1>$title</h1>
<p>$date_label: $content_date</p>
$period
$body
</body>
</html>
"""
)


def _rows_table(rows: list[dict]) -> str:
    columns: list[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)
    head = "".join(f"<th>{html.escape(str(c))}</th>" for c in columns)
    body = "".join(
        "<tr>" + "".join(f"<td>{html.escape(str(row.get(c, '')))}</td>" for c in columns) + "</tr>"
        for row in rows
    )
    return f"<table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>"


def _render_body(json_data: Any) -> str:
    if isinstance(json_data, dict):
        hearings = json_data.get("hearings")
        if isinstance(hearings, list) and all(isinstance(h, dict) for h in hearings):
            return _rows_table(hearings)
    if isinstance(json_data, list) and all(isinstance(h, dict) for h in json_data):
        return _rows_table(json_data)
    return f"<pre>{html.escape(json.dumps(json_data, indent=2, default=str))}</pre>"


def render_html(
    *,
    list_type_id: int,
    content_date: datetime,
    locale: str,
    json_data: Any,
    display_from: datetime | None = None,
    display_to: datetime | None = None,
) -> str:
    welsh = locale.lower().startswith("cy")
    list_type = get_list_type(list_type_id)
    if list_type is None:
        title = f"LIST_TYPE_{list_type_id}"
    else:
        title = list_type.welsh_friendly_name if welsh else list_type.english_friendly_name

    period = ""
    if display_from and display_to:
        period = f"<p>{display_from:%d/%m/%Y} – {display_to:%d/%m/%Y}</p>"

    return _PAGE_TEMPLATE.substitute(
        lang="cy" if welsh else "en",
        title=html.escape(title),
        date_label="Dyddiad" if welsh else "Date",
        content_date=f"{content_date:%d/%m/%Y}",
        period=period,
        body=_render_body(json_data),
    )


# ---------------------------------------------------------------------------
# HearingListPdfRenderer
# ---------------------------------------------------------------------------

class HearingListPdfRenderer:
    """Render hearing list PDFs via WeasyPrint."""

    def __init__(self, output_dir: str | Path, max_size_bytes: int) -> None:
        self.output_dir = Path(output_dir)
        self.max_size_bytes = max_size_bytes

    def __call__(
        self,
        *,
        artefact_id: str,
        content_date: datetime,
        locale: str,
        location_id: str,
        json_data: Any,
        provenance: str | None,
        list_type_id: int,
        display_from: datetime | None = None,
        display_to: datetime | None = None,
    ) -> PdfResult:
        try:
            html_content = render_html(
                list_type_id=list_type_id,
                content_date=content_date,
                locale=locale,
                json_data=json_data,
                display_from=display_from,
                display_to=display_to,
            )

            import weasyprint  # lazy import: native dependency

            self.output_dir.mkdir(parents=True, exist_ok=True)
            out_path = self.output_dir / f"{artefact_id}.pdf"
            weasyprint.HTML(string=html_content).write_pdf(str(out_path))
            size = out_path.stat().st_size
        except Exception as exc:
            logger.error("Failed to render PDF for artefact %s: %s", artefact_id, exc)
            return PdfResult(success=False, error=str(exc))

        logger.info("Rendered PDF for artefact %s (%d bytes)", artefact_id, size)
        return PdfResult(
            success=True,
            pdf_path=str(out_path),
            size_bytes=size,
            exceeds_max_size=not fits_attachment_limit(size, self.max_size_bytes),
        )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class PdfRendererRegistry:
    """Renderers keyed by list type name (e.g. ``CIVIL_DAILY_CAUSE_LIST``)."""

    def __init__(self, renderers: dict[str, PdfRenderer] | None = None) -> None:
        self._renderers: dict[str, PdfRenderer] = dict(renderers or {})

    def register(self, list_type_name: str, renderer: PdfRenderer) -> None:
        """Register (or replace) the renderer for *list_type_name*."""
        self._renderers[list_type_name] = renderer

    def get(self, list_type_name: str | None) -> PdfRenderer | None:
        if list_type_name is None:
            return None
        return self._renderers.get(list_type_name)

    @classmethod
    def default(cls) -> PdfRendererRegistry:
        """Return a registry with the WeasyPrint renderer for the strategic lists."""
        settings = get_settings()
        renderer = HearingListPdfRenderer(settings.pdf_output_dir, settings.pdf_max_size_bytes)
        return cls({
            "CIVIL_DAILY_CAUSE_LIST": renderer,
            "FAMILY_DAILY_CAUSE_LIST": renderer,
            "CIVIL_AND_FAMILY_DAILY_CAUSE_LIST": renderer,
            "CARE_STANDARDS_TRIBUNAL_WEEKLY_HEARING_LIST": renderer,
        })
