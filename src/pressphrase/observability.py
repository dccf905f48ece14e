"""Metrics helpers that log structured events and optionally feed Prometheus."""

from __future__ import annotations

import logging
import re
import threading
import time
from contextlib import contextmanager
from typing import Any, Iterator

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

_PROM_NAME_RE = re.compile(r"[^a-zA-Z0-9_]")


class MetricsRecorder:
    """Emit counters and timings as log lines and, when enabled, Prometheus series."""

    def __init__(
        self,
        *,
        enabled: bool = True,
        namespace: str = "pressphrase",
        logger: logging.Logger | None = None,
        prometheus_enabled: bool = False,
        registry: CollectorRegistry | None = None,
    ) -> None:
        self._enabled = enabled
        self._namespace = namespace.strip() or "pressphrase"
        self._logger = logger or logging.getLogger("pressphrase.metrics")
        self._prom_registry: CollectorRegistry | None = None
        if prometheus_enabled:
            self._prom_registry = registry if registry is not None else CollectorRegistry()
        self._prom_series: dict[tuple[str, str, tuple[str, ...]], Counter | Histogram] = {}
        self._prom_lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def prometheus_enabled(self) -> bool:
        return self._prom_registry is not None

    @property
    def prometheus_content_type(self) -> str:
        return CONTENT_TYPE_LATEST

    def render_prometheus(self) -> bytes:
        if self._prom_registry is None:
            raise RuntimeError("Prometheus export is disabled")
        return generate_latest(self._prom_registry)

    def increment(self, metric: str, *, value: int = 1, **tags: Any) -> None:
        """Increment a counter metric."""

        if not self._enabled:
            return
        value = int(value)
        clean_tags = _clean(tags)
        self._emit(metric, {"value": value}, clean_tags)
        series = self._series("counter", metric, clean_tags)
        if series is not None:
            series.inc(float(max(value, 0)))

    def record_timing(self, metric: str, duration_seconds: float, **tags: Any) -> None:
        """Record a duration; logs carry milliseconds, Prometheus carries seconds."""

        if not self._enabled:
            return
        duration_seconds = max(duration_seconds, 0.0)
        clean_tags = _clean(tags)
        self._emit(metric, {"duration_ms": round(duration_seconds * 1000.0, 4)}, clean_tags)
        series = self._series("histogram", metric, clean_tags)
        if series is not None:
            series.observe(duration_seconds)

    @contextmanager
    def track_timing(self, metric: str, **tags: Any) -> Iterator[None]:
        """Record how long the wrapped block takes, even when it raises."""

        start = time.perf_counter()
        try:
            yield
        finally:
            self.record_timing(metric, time.perf_counter() - start, **tags)

    def _emit(self, metric: str, fields: dict[str, Any], tags: dict[str, Any]) -> None:
        segments = [f"{key}={_stringify(value)}" for key, value in sorted(fields.items())]
        segments.extend(f"{key}={_stringify(value)}" for key, value in sorted(tags.items()))
        message = f"{self._namespace}.{metric}"
        if segments:
            message = f"{message} {' '.join(segments)}"
        self._logger.info(message)

    def _series(self, kind: str, metric: str, tags: dict[str, Any]):
        if self._prom_registry is None:
            return None
        label_keys = tuple(sorted(tags))
        label_names = tuple(_PROM_NAME_RE.sub("_", key) or "label" for key in label_keys)
        key = (kind, metric, label_names)
        with self._prom_lock:
            series = self._prom_series.get(key)
            if series is None:
                factory = Counter if kind == "counter" else Histogram
                series = factory(
                    self._prom_metric_name(metric),
                    f"{metric} {kind}",
                    labelnames=list(label_names),
                    registry=self._prom_registry,
                )
                self._prom_series[key] = series
        if not label_names:
            return series
        values = {name: _stringify(tags[tag]) for name, tag in zip(label_names, label_keys)}
        return series.labels(**values)

    def _prom_metric_name(self, metric: str) -> str:
        cleaned = _PROM_NAME_RE.sub("_", metric)
        return f"{_PROM_NAME_RE.sub('_', self._namespace)}_{cleaned}".strip("_")


def _clean(tags: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in tags.items() if value is not None}


def _stringify(value: Any) -> str:
    if isinstance(value, float):
        return f"{int(value)}" if value.is_integer() else f"{value:.4f}"
    return str(value)


__all__ = ["MetricsRecorder"]
