"""FastAPI entrypoint for the log rollup service."""

import hmac
import logging
from time import monotonic
from typing import Any

from fastapi import FastAPI, Header, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse

from logrollup.config import get_settings
from logrollup.metrics import IngestionStats
from logrollup.replay import replay_file
from logrollup.schemas import (
    AggregatedMetricsOut,
    AggregatesResponse,
    IngestRequest,
    IngestSummaryOut,
    StoreKeyOut,
)
from logrollup.service import MetricsService
from logrollup.store import MetricStore
from logrollup.window import create_window_selector

settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
app = FastAPI(title=settings.app_name, version=settings.app_version)
started_at_monotonic = monotonic()
request_logger = logging.getLogger("logrollup.request")
replay_logger = logging.getLogger("logrollup.replay")
metric_store = MetricStore()
ingestion_stats = IngestionStats(max_reasons=settings.ingestion_max_reason_labels)
metrics_service = MetricsService(
    store=metric_store,
    selector=create_window_selector(settings.window_selection_strategy),
    stats=ingestion_stats,
)


def _require_admin_token(admin_token: str | None) -> None:
    if settings.admin_api_token is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Endpoint not configured")
    if not hmac.compare_digest(admin_token or "", settings.admin_api_token):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token")


@app.on_event("startup")
async def startup_event() -> None:
    if not settings.access_log_path:
        return
    try:
        replay_file(
            metrics_service,
            settings.access_log_path,
            batch_size=settings.replay_batch_size,
            max_reported_errors=settings.max_reported_errors,
        )
    except OSError as exc:
        replay_logger.exception(
            "startup_replay_failed path=%s error=%s",
            settings.access_log_path,
            exc,
        )


@app.middleware("http")
async def request_size_limit_middleware(request: Request, call_next: Any) -> Response:
    limit = settings.max_request_body_bytes
    if limit > 0 and request.method.upper() not in {"GET", "HEAD", "OPTIONS"}:
        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                declared_size = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    content={"detail": "Invalid Content-Length header"},
                )
            if declared_size > limit:
                return JSONResponse(
                    status_code=status.HTTP_413_CONTENT_TOO_LARGE,
                    content={"detail": "Request payload too large"},
                )

    return await call_next(request)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next: Any) -> Response:
    started = monotonic()
    path = request.url.path
    method = request.method.upper()
    try:
        response = await call_next(request)
    except Exception:
        request_logger.exception(
            "request method=%s path=%s status=%s latency_ms=%s",
            method,
            path,
            500,
            int((monotonic() - started) * 1000),
        )
        raise

    request_logger.info(
        "request method=%s path=%s status=%s latency_ms=%s",
        method,
        path,
        response.status_code,
        int((monotonic() - started) * 1000),
    )
    return response


@app.get("/api/v1", tags=["meta"])
async def api_root() -> dict[str, str]:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "ok",
    }


@app.post("/api/v1/ingest", tags=["ingest"])
async def ingest_lines(payload: IngestRequest) -> IngestSummaryOut:
    summary = metrics_service.ingest_lines(
        payload.lines,
        max_reported_errors=settings.max_reported_errors,
    )
    return IngestSummaryOut.model_validate(summary)


async def _read_capped_body(request: Request, limit: int) -> bytes:
    # Chunked bodies carry no Content-Length, so the size middleware cannot see them.
    chunks: list[bytes] = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if limit > 0 and received > limit:
            raise HTTPException(
                status_code=status.HTTP_413_CONTENT_TOO_LARGE,
                detail="Request payload too large",
            )
        chunks.append(chunk)
    return b"".join(chunks)


@app.post("/api/v1/ingest/raw", tags=["ingest"])
async def ingest_raw(request: Request) -> IngestSummaryOut:
    body = await _read_capped_body(request, settings.max_request_body_bytes)
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body must be UTF-8 text",
        ) from exc

    lines = [line.rstrip("\r") for line in text.split("\n")]
    if lines and not lines[-1]:
        lines.pop()
    if len(lines) > settings.max_ingest_lines:
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=f"At most {settings.max_ingest_lines} lines per request",
        )

    summary = metrics_service.ingest_lines(lines, max_reported_errors=settings.max_reported_errors)
    return IngestSummaryOut.model_validate(summary)


@app.get("/api/v1/aggregates", tags=["aggregates"])
async def get_aggregates(
    method: str = Query(min_length=1),
    resource: str = Query(min_length=1),
    limit: int | None = Query(default=None, le=settings.max_query_limit),
) -> AggregatesResponse:
    effective_limit = settings.default_query_limit if limit is None else limit
    results = metrics_service.get_aggregated_metrics(method, resource, effective_limit)
    return AggregatesResponse(
        method=method,
        resource=resource,
        limit=effective_limit,
        buckets=[AggregatedMetricsOut.model_validate(item) for item in results],
    )


@app.get("/api/v1/keys", tags=["aggregates"])
async def list_keys() -> dict[str, list[StoreKeyOut]]:
    keys = sorted(metric_store.keys())
    return {"keys": [StoreKeyOut(method=key.method, resource=key.resource) for key in keys]}


@app.get("/api/v1/metrics", tags=["observability"])
async def metrics(
    admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
) -> dict[str, Any]:
    _require_admin_token(admin_token)
    store_stats = metric_store.stats()
    return {
        "ingestion": ingestion_stats.snapshot(),
        "store": {
            "keys": store_stats.keys,
            "buckets": store_stats.buckets,
            "records": store_stats.records,
        },
        "window_selection_strategy": settings.window_selection_strategy,
    }


@app.get("/api/v1/health", tags=["health"])
async def basic_health() -> dict[str, int | str]:
    store_stats = metric_store.stats()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "keys_count": store_stats.keys,
        "records_count": store_stats.records,
        "uptime_seconds": int(monotonic() - started_at_monotonic),
    }
