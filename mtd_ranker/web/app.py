"""
FastAPI query surface.

Routes:
  GET /              — HTML page rendered from the current snapshot
  GET /api/results   — ranked instruments as a JSON array ([] before the first refresh)
  GET /api/sectors   — ranked sector averages as a JSON array
  GET /api/mtd       — run one refresh synchronously; ?year=&month=&day= optional
  GET /health        — liveness plus whether a snapshot is installed

Read routes never fail: they serve whatever snapshot is installed. The
refresh route reports ``{"success": false, "error": ...}`` with HTTP 500 when
the refresh fails, and the previous snapshot stays in place.

Query parameters of ``/api/mtd`` are parsed leniently: a value that is
missing, non-numeric or out of range is ignored, which falls back to the
default window (previous calendar month) for year/month and to the 1st for day.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates

from mtd_ranker.pipeline.refresh import RefreshController
from mtd_ranker.utils.time_utils import resolve_window

logger = logging.getLogger(__name__)

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

# Inclusive bounds for the refresh query parameters.
_YEAR_RANGE  = (1, 9999)
_MONTH_RANGE = (1, 12)
_DAY_RANGE   = (1, 31)


def parse_int_param(value: Optional[str], low: int, high: int) -> Optional[int]:
    """Return ``value`` as an int within ``[low, high]``, else ``None``."""
    if value is None:
        return None
    try:
        number = int(value.strip())
    except ValueError:
        return None
    if not low <= number <= high:
        return None
    return number


def create_app(controller: RefreshController, templates_dir: Optional[Path] = None) -> FastAPI:
    """Create the FastAPI application bound to one ``RefreshController``.

    Args:
        controller:    Owns the result cache and runs refreshes.
        templates_dir: Override for the Jinja2 template directory.
    """
    app = FastAPI(title="S&P 500 MTD Ranker", version="0.1.0")
    templates = Jinja2Templates(directory=str(templates_dir or _TEMPLATES_DIR))
    app.state.controller = controller

    @app.get("/", response_class=HTMLResponse)
    def render_index(request: Request) -> HTMLResponse:
        snapshot = controller.get_snapshot()
        return templates.TemplateResponse(
            request,
            "index.html",
            {
                "items":        snapshot.items if snapshot else (),
                "categories":   snapshot.categories if snapshot else (),
                "generated_at": snapshot.generated_at if snapshot else None,
                "window_start": snapshot.window_start if snapshot else None,
                "window_end":   snapshot.window_end if snapshot else None,
            },
        )

    @app.get("/api/results")
    def list_results() -> JSONResponse:
        snapshot = controller.get_snapshot()
        rows = [r.to_api_dict() for r in snapshot.items] if snapshot else []
        return JSONResponse(rows)

    @app.get("/api/sectors")
    def list_sectors() -> JSONResponse:
        snapshot = controller.get_snapshot()
        rows = [c.to_api_dict() for c in snapshot.categories] if snapshot else []
        return JSONResponse(rows)

    # Plain ``def`` so the blocking pipeline runs in the threadpool, not on the loop.
    @app.get("/api/mtd")
    def trigger_refresh(
        year: Optional[str] = Query(default=None),
        month: Optional[str] = Query(default=None),
        day: Optional[str] = Query(default=None),
    ) -> JSONResponse:
        try:
            window = resolve_window(
                year=parse_int_param(year, *_YEAR_RANGE),
                month=parse_int_param(month, *_MONTH_RANGE),
                day=parse_int_param(day, *_DAY_RANGE),
            )
        except ValueError as exc:
            # December 9999 has no representable window end.
            logger.warning("Unusable refresh window (%s); using the previous month.", exc)
            window = resolve_window()
        result = controller.refresh(window)
        if not result.success:
            return JSONResponse(
                {"success": False, "error": f"Failed to refresh data: {result.error}"},
                status_code=500,
            )
        return JSONResponse({"success": True})

    @app.get("/health")
    def health() -> JSONResponse:
        return JSONResponse({"status": "ok", "populated": controller.get_snapshot() is not None})

    return app
