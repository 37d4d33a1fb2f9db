"""FastAPI application exposing the ingestion trigger and a health probe."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator, Callable

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from catalog_ingest.catalog import CkanCatalog
from catalog_ingest.config import Settings, configure_logging, settings
from catalog_ingest.context import IngestContext, build_context
from catalog_ingest.ingestion.service import run_ingestion
from catalog_ingest.models import RunReport

logger = logging.getLogger(__name__)


# ── Dependencies ──────────────────────────────────────────────────────
def get_settings() -> Settings:
    return settings


@lru_cache(maxsize=1)
def get_context() -> IngestContext:
    """Build the process-wide context on first use."""
    return build_context(settings)


def get_runner(cfg: Settings = Depends(get_settings)) -> Callable[[], RunReport]:
    """Return a callable performing one full ingestion run."""

    def _run() -> RunReport:
        ctx = get_context()
        catalog = CkanCatalog(
            cfg.catalog_base_url,
            session=ctx.session,
            timeout=cfg.request_timeout,
            max_retries=cfg.max_retries,
        )
        return run_ingestion(ctx, catalog, max_datasets=cfg.max_datasets)

    return _run


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_logging(settings.log_level)
    yield
    if get_context.cache_info().currsize:
        ctx = get_context()
        ctx.cancel()
        ctx.close()


app = FastAPI(
    title="Catalog Ingest",
    version="0.1.0",
    description="Triggers catalog ingestion into the vector and graph stores.",
    lifespan=lifespan,
)


@app.exception_handler(StarletteHTTPException)
async def not_found_for_other_methods(request: Request, exc: StarletteHTTPException) -> Response:
    """Only the documented method/path pairs exist; anything else is 404."""
    if exc.status_code == 405:
        exc = StarletteHTTPException(status_code=404, detail="Not Found")
    return await http_exception_handler(request, exc)


# ── Routes ────────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@app.post("/")
@app.post("/trigger")
@app.post("/ingest")
def trigger(
    x_api_key: str | None = Header(default=None),
    cfg: Settings = Depends(get_settings),
    runner: Callable[[], RunReport] = Depends(get_runner),
) -> JSONResponse:
    """Run a full ingestion and return its summary."""
    if cfg.api_secret and x_api_key != cfg.api_secret:
        return JSONResponse(status_code=401, content={"ok": False, "error": "unauthorized"})

    try:
        report = runner()
    except Exception as exc:
        logger.exception("Ingest failed")
        return JSONResponse(status_code=500, content={"ok": False, "error": str(exc)})

    return JSONResponse(status_code=200, content={"ok": True, **report.summary()})
