"""FastAPI application exposing keyword extraction over HTTP."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from .categories import CategorySchema
from .config import Settings
from .content_fetcher import ContentFetcher
from .errors import FetchErrorKind, OrchestrationError, OrchestrationErrorKind
from .keywords import FallbackKeywordExtractor
from .model_extractor import ModelKeywordExtractor
from .observability import MetricsRecorder
from .orchestrator import ExtractionOrchestrator, ExtractionRequest
from .store import InMemoryExtractionStore

logger = logging.getLogger(__name__)


_LOGGING_CONFIGURED = False


def _ensure_logging(level: str = "INFO") -> None:
    global _LOGGING_CONFIGURED
    package_logger = logging.getLogger("pressphrase")
    resolved = logging.getLevelName(level.strip().upper()) if level else logging.INFO
    if not isinstance(resolved, int):
        resolved = logging.INFO
    package_logger.setLevel(resolved)
    if _LOGGING_CONFIGURED:
        return

    uvicorn_logger = logging.getLogger("uvicorn.error")
    handlers = list(uvicorn_logger.handlers)
    if handlers:
        package_logger.handlers = []
        for handler in handlers:
            package_logger.addHandler(handler)
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        package_logger.addHandler(handler)

    package_logger.propagate = False
    _LOGGING_CONFIGURED = True


class ApplicationState:
    """Container for runtime dependencies used by the FastAPI app."""

    def __init__(
        self,
        *,
        settings: Settings,
        schema: CategorySchema,
        orchestrator: ExtractionOrchestrator,
        store: InMemoryExtractionStore,
        metrics: MetricsRecorder,
    ) -> None:
        self.settings = settings
        self.schema = schema
        self.orchestrator = orchestrator
        self.store = store
        self.metrics = metrics


def _status_for_error(exc: OrchestrationError) -> int:
    if exc.kind is OrchestrationErrorKind.FETCH_FAILED:
        fetch_error = exc.fetch_error
        if fetch_error is not None and fetch_error.kind is FetchErrorKind.TIMEOUT:
            return 408
        return 400
    if exc.kind in (OrchestrationErrorKind.INVALID_INPUT, OrchestrationErrorKind.TOO_SHORT):
        return 400
    return 500


def _error_response(exc: OrchestrationError) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=_status_for_error(exc))


async def _read_payload(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return payload if isinstance(payload, dict) else {}


def create_app(
    *,
    settings: Settings | None = None,
    fetcher: ContentFetcher | None = None,
    model_extractor: ModelKeywordExtractor | None = None,
    fallback_extractor: FallbackKeywordExtractor | None = None,
    store: InMemoryExtractionStore | None = None,
    metrics: MetricsRecorder | None = None,
    orchestrator: ExtractionOrchestrator | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""

    settings = settings or Settings.from_env()
    _ensure_logging(settings.log_level)

    schema = settings.resolve_category_schema()
    metrics = metrics or settings.build_metrics_recorder()
    store = store or InMemoryExtractionStore()
    if orchestrator is None:
        fetcher = fetcher or ContentFetcher(settings, metrics=metrics)
        orchestrator = ExtractionOrchestrator(
            settings,
            fetcher=fetcher,
            model_extractor=model_extractor or ModelKeywordExtractor(settings, schema),
            fallback_extractor=fallback_extractor or FallbackKeywordExtractor(settings, schema),
            store=store,
            metrics=metrics,
        )
    else:
        store = orchestrator.store

    app = FastAPI(title="PressPhrase")
    app.state.services = ApplicationState(
        settings=settings,
        schema=schema,
        orchestrator=orchestrator,
        store=store,
        metrics=metrics,
    )
    logger.info(
        "app.created schema=%s backend=%s prometheus=%s",
        schema.name,
        settings.model_backend,
        metrics.prometheus_enabled,
    )

    @app.on_event("shutdown")
    async def _close_fetcher() -> None:
        if fetcher is not None:
            fetcher.close()

    def get_settings_dependency(request: Request) -> Settings:
        return request.app.state.services.settings

    def get_orchestrator(request: Request) -> ExtractionOrchestrator:
        return request.app.state.services.orchestrator

    def get_store(request: Request) -> InMemoryExtractionStore:
        return request.app.state.services.store

    def get_metrics(request: Request) -> MetricsRecorder | None:
        return request.app.state.services.metrics

    @app.post("/api/extract-keywords")
    async def extract_keywords(
        request: Request,
        orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
    ) -> JSONResponse:
        payload = await _read_payload(request)
        extraction_request = ExtractionRequest.from_payload(payload)
        try:
            result = await asyncio.to_thread(orchestrator.run, extraction_request)
        except OrchestrationError as exc:
            return _error_response(exc)
        except Exception:
            logger.exception("api.extract.error input_type=%s", extraction_request.input_type)
            return JSONResponse({"error": "Internal server error"}, status_code=500)
        return JSONResponse(result.to_response())

    @app.post("/api/fetch-content")
    async def fetch_content(
        request: Request,
        orchestrator: ExtractionOrchestrator = Depends(get_orchestrator),
    ) -> JSONResponse:
        payload = await _read_payload(request)
        try:
            content, preview_text = await asyncio.to_thread(orchestrator.preview_url, payload.get("url"))
        except OrchestrationError as exc:
            return _error_response(exc)
        except Exception:
            logger.exception("api.fetch_content.error")
            return JSONResponse({"error": "Internal server error"}, status_code=500)
        return JSONResponse(
            {
                "content": preview_text,
                "wordCount": content.word_count,
                "fetchTime": content.fetch_time_ms,
                "isValid": content.is_valid,
            }
        )

    @app.get("/api/health")
    async def health(orchestrator: ExtractionOrchestrator = Depends(get_orchestrator)) -> JSONResponse:
        try:
            payload = await asyncio.to_thread(orchestrator.health)
        except Exception as exc:
            logger.exception("api.health.error")
            return JSONResponse(
                {
                    "status": "unhealthy",
                    "responseTime": 0,
                    "lastChecked": datetime.now(timezone.utc).isoformat(),
                    "modelStatus": "unavailable",
                    "error": str(exc),
                },
                status_code=500,
            )
        return JSONResponse(payload)

    @app.get("/api/stats")
    async def stats(
        store: InMemoryExtractionStore = Depends(get_store),
        settings: Settings = Depends(get_settings_dependency),
    ) -> JSONResponse:
        counters = store.get_stats()
        recent = store.get_recent(settings.recent_activity_limit)
        return JSONResponse(
            {
                "totalRequests": counters.total_requests,
                "successfulRequests": counters.successful_requests,
                "failedRequests": counters.failed_requests,
                "successRate": counters.success_rate,
                "avgResponseTime": round(counters.average_response_time_ms / 1000.0, 2),
                "recentActivity": [
                    {
                        "id": record.id,
                        "url": record.source_ref,
                        "inputType": record.input_type,
                        "timestamp": record.created_at,
                        "success": True,
                        "method": record.extraction_method,
                        "totalKeywords": record.total_keywords(),
                    }
                    for record in recent
                ],
            }
        )

    @app.get("/metrics")
    async def metrics_endpoint(metrics: MetricsRecorder | None = Depends(get_metrics)) -> Response:
        if metrics is None or not metrics.prometheus_enabled:
            raise HTTPException(status_code=404, detail="Metrics export disabled")
        try:
            payload = metrics.render_prometheus()
        except RuntimeError as exc:  # pragma: no cover
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return Response(content=payload, media_type=metrics.prometheus_content_type)

    return app


__all__ = ["create_app"]
