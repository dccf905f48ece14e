"""Request lifecycle: validate, acquire content, extract with degradation, persist, count."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from .config import Settings
from .content_fetcher import ContentFetcher, NormalizedContent, prepare_text, preview
from .errors import AiError, FetchError, OrchestrationError, OrchestrationErrorKind
from .keywords import CategorizedKeywords, FallbackKeywordExtractor
from .model_extractor import ModelKeywordExtractor
from .observability import MetricsRecorder
from .store import ExtractionRecord, InMemoryExtractionStore

logger = logging.getLogger(__name__)

INPUT_TYPES = ("url", "text")

_HEALTH_BY_MODEL_STATUS = {
    "available": "healthy",
    "rate_limited": "degraded",
    "disabled": "degraded",
}


@dataclass(slots=True)
class ExtractionRequest:
    input_type: str
    url: Any = None
    text: Any = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ExtractionRequest":
        """Build a request from an API body; ``inputType`` defaults to ``url`` when a URL is given."""

        url = payload.get("url")
        text = payload.get("text")
        input_type = payload.get("inputType")
        if input_type is None:
            input_type = "text" if url is None and text is not None else "url"
        return cls(input_type=input_type, url=url, text=text)


@dataclass(slots=True)
class ExtractionResult:
    record: ExtractionRecord
    word_count: int
    preview_chars: int = 1000

    def to_response(self) -> dict[str, Any]:
        record = self.record
        keywords = record.keywords
        payload: dict[str, Any] = {
            "id": record.id,
            "url": record.source_ref,
            "inputType": record.input_type,
            "content": preview(record.content, self.preview_chars),
        }
        for key, phrases in keywords.categories.items():
            payload[key] = list(phrases)
        payload.update(
            {
                "extractionMethod": record.extraction_method,
                "confidenceScore": record.confidence_score,
                "extractionTime": record.extraction_time_ms,
                "createdAt": record.created_at,
                "stats": {
                    "wordCount": self.word_count,
                    "totalKeywords": keywords.total_keywords(),
                    "keywordsByCategory": keywords.counts(),
                },
            }
        )
        return payload


class ExtractionOrchestrator:
    """Coordinate one extraction request end to end."""

    def __init__(
        self,
        settings: Settings,
        *,
        fetcher: ContentFetcher,
        model_extractor: ModelKeywordExtractor,
        fallback_extractor: FallbackKeywordExtractor,
        store: InMemoryExtractionStore,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._settings = settings
        self._fetcher = fetcher
        self._model = model_extractor
        self._fallback = fallback_extractor
        self._store = store
        self._metrics = metrics or MetricsRecorder(enabled=False)

    @property
    def store(self) -> InMemoryExtractionStore:
        return self._store

    def run(self, request: ExtractionRequest) -> ExtractionResult:
        """Serve one request; counters are updated exactly once whatever the outcome."""

        start = time.perf_counter()
        try:
            self._validate(request)
            content, source_ref = self._acquire(request)
            keywords, method = self._extract(content.text)
            elapsed_ms = _elapsed_ms(start)
            record = self._store.create_record(
                source_ref=source_ref,
                content=content.text,
                input_type=request.input_type,
                keywords=keywords,
                extraction_method=method,
                extraction_time_ms=elapsed_ms,
            )
        except OrchestrationError as exc:
            elapsed_ms = _elapsed_ms(start)
            self._store.record_request(success=False, response_time_ms=elapsed_ms)
            self._metrics.increment("extraction.requests", outcome=exc.kind.value)
            self._metrics.record_timing("extraction.duration", elapsed_ms / 1000.0, outcome="failed")
            logger.warning(
                "extraction.failed kind=%s input_type=%s error=%s",
                exc.kind.value,
                request.input_type,
                exc,
            )
            raise
        except Exception:
            elapsed_ms = _elapsed_ms(start)
            self._store.record_request(success=False, response_time_ms=elapsed_ms)
            self._metrics.increment("extraction.requests", outcome="error")
            self._metrics.record_timing("extraction.duration", elapsed_ms / 1000.0, outcome="failed")
            raise

        self._store.record_request(success=True, response_time_ms=elapsed_ms)
        self._metrics.increment("extraction.requests", outcome="success")
        self._metrics.record_timing("extraction.duration", elapsed_ms / 1000.0, outcome="success")
        logger.info(
            "extraction.completed id=%s method=%s input_type=%s words=%s keywords=%s confidence=%s elapsed_ms=%s",
            record.id,
            method,
            request.input_type,
            content.word_count,
            keywords.total_keywords(),
            keywords.confidence_score,
            elapsed_ms,
        )
        return ExtractionResult(
            record=record,
            word_count=content.word_count,
            preview_chars=self._settings.preview_chars,
        )

    def preview_url(self, url: str) -> tuple[NormalizedContent, str]:
        """Fetch a URL without extracting; returns the content and its preview."""

        if not isinstance(url, str) or not url.strip():
            raise OrchestrationError(OrchestrationErrorKind.INVALID_INPUT, "URL is required")
        try:
            content = self._fetcher.fetch(url)
        except FetchError as exc:
            raise OrchestrationError(OrchestrationErrorKind.FETCH_FAILED, exc.message) from exc
        return content, preview(content.text, self._settings.preview_chars)

    def health(self) -> dict[str, Any]:
        start = time.perf_counter()
        model_health = self._model.check_health()
        status = _HEALTH_BY_MODEL_STATUS.get(model_health.status, "unhealthy")
        logger.info("health.checked status=%s model_status=%s", status, model_health.status)
        payload: dict[str, Any] = {
            "status": status,
            "responseTime": _elapsed_ms(start),
            "lastChecked": datetime.now(timezone.utc).isoformat(),
            "modelStatus": model_health.status,
        }
        if model_health.error:
            payload["error"] = model_health.error
        return payload

    def _validate(self, request: ExtractionRequest) -> None:
        if request.input_type not in INPUT_TYPES:
            raise OrchestrationError(
                OrchestrationErrorKind.INVALID_INPUT,
                "inputType must be either 'url' or 'text'",
            )
        has_url = _present(request.url)
        has_text = _present(request.text)
        for name, value in (("url", request.url), ("text", request.text)):
            if value is not None and not isinstance(value, str):
                raise OrchestrationError(OrchestrationErrorKind.INVALID_INPUT, f"{name} must be a string")
        if has_url == has_text:
            raise OrchestrationError(
                OrchestrationErrorKind.INVALID_INPUT,
                "Please provide either a URL or text content, but not both",
            )
        if request.input_type == "url" and not has_url:
            raise OrchestrationError(OrchestrationErrorKind.INVALID_INPUT, "URL is required for inputType 'url'")
        if request.input_type == "text" and not has_text:
            raise OrchestrationError(OrchestrationErrorKind.INVALID_INPUT, "text is required for inputType 'text'")

    def _acquire(self, request: ExtractionRequest) -> tuple[NormalizedContent, str | None]:
        if request.input_type == "url":
            url = request.url.strip()
            try:
                return self._fetcher.fetch(url), url
            except FetchError as exc:
                raise OrchestrationError(OrchestrationErrorKind.FETCH_FAILED, exc.message) from exc

        settings = self._settings
        content = prepare_text(
            request.text,
            min_chars=settings.min_content_chars,
            min_words=settings.min_content_words,
            max_chars=settings.max_content_chars,
        )
        if not content.is_valid:
            raise OrchestrationError(
                OrchestrationErrorKind.TOO_SHORT,
                f"Please enter at least {settings.min_content_chars} characters "
                f"and {settings.min_content_words} words of text",
            )
        return content, None

    def _extract(self, text: str) -> tuple[CategorizedKeywords, str]:
        if self._model.enabled:
            try:
                return self._model.extract(text), "ai"
            except AiError as exc:
                self._metrics.increment("model.failures", kind=exc.kind.value)
                logger.warning("extraction.model_degraded kind=%s error=%s", exc.kind.value, exc)
        else:
            logger.debug("extraction.model_disabled backend=%s", self._settings.model_backend)
        return self._fallback.extract(text), "fallback"


def _present(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


__all__ = [
    "INPUT_TYPES",
    "ExtractionOrchestrator",
    "ExtractionRequest",
    "ExtractionResult",
]
