"""Running usage telemetry for the orchestrator.

Counters only ever grow until ``reset()``; the average latency is a running
mean over every recorded attempt, successful or not.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .schemas import Backend

__all__ = ["UsageMetrics", "MetricsRecorder"]


@dataclass(frozen=True)
class UsageMetrics:
    total_queries: int
    queries_by_backend: Mapping[str, int]
    cached_queries: int
    average_latency_ms: float
    errors: int
    fallback_count: int
    last_reset: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_queries": self.total_queries,
            "queries_by_backend": dict(self.queries_by_backend),
            "cached_queries": self.cached_queries,
            "average_latency_ms": self.average_latency_ms,
            "errors": self.errors,
            "fallback_count": self.fallback_count,
            "last_reset": self.last_reset,
        }


class MetricsRecorder:
    """Thread-safe counters plus a rolling average latency.

    An optional *exporter* (see ``core.monitoring.PrometheusExporter``) gets a
    copy of every observation.
    """

    def __init__(self, exporter: Optional[Any] = None) -> None:
        self._lock = threading.Lock()
        self.exporter = exporter
        self._zero()

    def _zero(self) -> None:
        self._total = 0
        self._by_backend: Dict[str, int] = {b.value: 0 for b in Backend}
        self._cached = 0
        self._avg_latency = 0.0
        self._errors = 0
        self._fallbacks = 0
        self._last_reset = time.time()

    def record(self, backend: Backend, latency_ms: float, success: bool, was_fallback: bool) -> None:
        with self._lock:
            self._total += 1
            self._by_backend[backend.value] += 1
            if not success:
                self._errors += 1
            if was_fallback:
                self._fallbacks += 1
            n = self._total
            self._avg_latency = (self._avg_latency * (n - 1) + latency_ms) / n
        if self.exporter is not None:
            self.exporter.observe_attempt(backend.value, latency_ms, success)
            if was_fallback:
                self.exporter.observe_fallback()

    def record_cache_hit(self) -> None:
        with self._lock:
            self._cached += 1
        if self.exporter is not None:
            self.exporter.observe_cache_hit()

    def snapshot(self) -> UsageMetrics:
        with self._lock:
            return UsageMetrics(
                total_queries=self._total,
                queries_by_backend=MappingProxyType(dict(self._by_backend)),
                cached_queries=self._cached,
                average_latency_ms=self._avg_latency,
                errors=self._errors,
                fallback_count=self._fallbacks,
                last_reset=self._last_reset,
            )

    def reset(self) -> None:
        with self._lock:
            self._zero()
