"""In-memory persistence for extraction records and request counters."""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from .keywords import CategorizedKeywords


@dataclass(frozen=True, slots=True)
class ExtractionRecord:
    id: str
    source_ref: Optional[str]
    content: str
    input_type: str
    keywords: CategorizedKeywords
    extraction_method: str
    confidence_score: int
    extraction_time_ms: int
    created_at: str

    def total_keywords(self) -> int:
        return self.keywords.total_keywords()


@dataclass(frozen=True, slots=True)
class ApiStats:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_response_time_ms: int = 0

    @property
    def success_rate(self) -> float:
        """Percentage of successful requests, rounded to one decimal; 100 before any traffic."""

        if self.total_requests <= 0:
            return 100.0
        return round(self.successful_requests / self.total_requests * 100, 1)

    @property
    def average_response_time_ms(self) -> float:
        if self.total_requests <= 0:
            return 0.0
        return self.total_response_time_ms / self.total_requests

    def to_dict(self) -> dict[str, float | int]:
        return {
            "totalRequests": self.total_requests,
            "successfulRequests": self.successful_requests,
            "failedRequests": self.failed_requests,
            "totalResponseTime": self.total_response_time_ms,
        }


class InMemoryExtractionStore:
    """Thread-safe, process-local store. Records are append-only."""

    def __init__(self) -> None:
        self._records: dict[str, ExtractionRecord] = {}
        self._order: list[str] = []
        self._stats = ApiStats()
        self._lock = threading.Lock()

    def create_record(
        self,
        *,
        source_ref: str | None,
        content: str,
        input_type: str,
        keywords: CategorizedKeywords,
        extraction_method: str,
        extraction_time_ms: int,
        confidence_score: int | None = None,
    ) -> ExtractionRecord:
        record = ExtractionRecord(
            id=uuid4().hex,
            source_ref=source_ref,
            content=content,
            input_type=input_type,
            keywords=keywords,
            extraction_method=extraction_method,
            confidence_score=keywords.confidence_score if confidence_score is None else confidence_score,
            extraction_time_ms=max(0, int(extraction_time_ms)),
            created_at=self._now(),
        )
        with self._lock:
            self._records[record.id] = record
            self._order.append(record.id)
        return record

    def get_record(self, record_id: str) -> ExtractionRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def get_recent(self, limit: int = 5) -> list[ExtractionRecord]:
        """Return up to ``limit`` records, newest first."""

        if limit <= 0:
            return []
        with self._lock:
            recent_ids = self._order[-limit:]
            return [self._records[record_id] for record_id in reversed(recent_ids)]

    def get_stats(self) -> ApiStats:
        with self._lock:
            return self._stats

    def update_stats(self, stats: ApiStats) -> None:
        """Replace the counters wholesale. Prefer :meth:`record_request` for per-request updates."""

        with self._lock:
            self._stats = stats

    def record_request(self, *, success: bool, response_time_ms: int) -> ApiStats:
        """Atomically count one finished request and return the new counters."""

        elapsed = max(0, int(response_time_ms))
        with self._lock:
            current = self._stats
            self._stats = replace(
                current,
                total_requests=current.total_requests + 1,
                successful_requests=current.successful_requests + (1 if success else 0),
                failed_requests=current.failed_requests + (0 if success else 1),
                total_response_time_ms=current.total_response_time_ms + elapsed,
            )
            return self._stats

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()


__all__ = ["ApiStats", "ExtractionRecord", "InMemoryExtractionStore"]
