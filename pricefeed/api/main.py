from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pricefeed.config import Settings, settings
from pricefeed.errors import InvalidInputError, PriceFeedError
from pricefeed.ingestion.pipeline import CsvIngestionPipeline
from pricefeed.models import ErrorResponse, PageResult, UploadResponse
from pricefeed.query import PriceQueryService, parse_page_request
from pricefeed.storage import PriceStore, SqlPriceStore

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Bad request"},
    500: {"model": ErrorResponse, "description": "Storage failure"},
}


def _error_response(error: str, details: str, status: int) -> JSONResponse:
    payload = ErrorResponse(error=error, details=details, status=status)
    return JSONResponse(status_code=status, content=payload.model_dump())


async def price_feed_error_handler(_: Request, exc: PriceFeedError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed: %s", exc.details)
    return _error_response(exc.code, exc.details, exc.status_code)


async def http_exception_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    details = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error_response("request_failed", details, exc.status_code)


async def request_validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(i) for i in err.get("loc", []) if i != "body")
        parts.append(f"{loc}: {err.get('msg', 'Invalid value')}")
    return _error_response("validation_error", "; ".join(parts), 400)


def get_store(request: Request) -> PriceStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def create_app(store: Optional[PriceStore] = None, app_settings: Settings = settings) -> FastAPI:
    """Build the API. Without an injected store, one is created from settings at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.store is None:
            app.state.store = SqlPriceStore.from_url(app_settings.database_url)
        app.state.store.ensure_schema()
        try:
            yield
        finally:
            app.state.store.dispose()

    app = FastAPI(
        title="Price Feed API",
        version="0.1.0",
        description="CSV ingestion and paginated reads for OHLC price records.",
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.settings = app_settings

    app.add_exception_handler(PriceFeedError, price_feed_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.post(
        "/data",
        response_model=UploadResponse,
        responses=ERROR_RESPONSES,
    )
    def upload_csv(
        file: Optional[UploadFile] = File(None, description="CSV with header UNIX,SYMBOL,OPEN,HIGH,LOW,CLOSE"),
        store: PriceStore = Depends(get_store),
        cfg: Settings = Depends(get_settings),
    ) -> UploadResponse:
        """Ingest an uploaded CSV; malformed rows are skipped and reported, not fatal."""
        if file is None:
            raise InvalidInputError("file is required")

        pipeline = CsvIngestionPipeline(
            store=store,
            batch_size=cfg.ingest_batch_size,
            max_recorded_skips=cfg.max_reported_skips,
        )
        outcome = pipeline.ingest(file.file)

        logger.info("Upload %s: %s records inserted", file.filename, outcome.inserted)
        return UploadResponse.from_outcome(outcome, cfg.max_reported_skips)

    @app.get(
        "/data",
        response_model=PageResult,
        responses=ERROR_RESPONSES,
    )
    def get_data(
        symbol: Optional[str] = Query(None, description="Exact symbol to filter by"),
        page: Optional[str] = Query(None, description="1-based page number (default 1)"),
        limit: Optional[str] = Query(
            None,
            description=(
                f"Page size (default {app_settings.default_page_limit}). Values above "
                f"{app_settings.max_page_limit} are rejected with 400."
            ),
        ),
        store: PriceStore = Depends(get_store),
        cfg: Settings = Depends(get_settings),
    ) -> PageResult:
        request = parse_page_request(
            symbol,
            page,
            limit,
            default_limit=cfg.default_page_limit,
            max_limit=cfg.max_page_limit,
        )
        return PriceQueryService(store).fetch_page(request)

    return app


app = create_app()
