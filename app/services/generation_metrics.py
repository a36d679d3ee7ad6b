"""In-memory generation metrics.

Implements ``GenerationObserver`` with plain counters behind a lock, so the
generator itself keeps no process-wide state. Swap for a Prometheus/StatsD
backed observer without touching the generator.
"""

from __future__ import annotations

import threading
from collections import Counter

from app.services.tracking_number_service import GenerationObserver


class GenerationMetrics(GenerationObserver):
    """Thread-safe counters for generated codes, fallbacks, errors and latency."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generated = 0
        self._fallbacks = 0
        self._errors = 0
        self._duration_total = 0.0
        self._duration_max = 0.0
        self._by_strategy: Counter[str] = Counter()

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"GenerationMetrics(generated={self._generated}, fallbacks={self._fallbacks}, "
            f"errors={self._errors})"
        )

    def record_generated(self, duration_seconds: float, strategy: str) -> None:
        with self._lock:
            self._generated += 1
            self._duration_total += duration_seconds
            self._duration_max = max(self._duration_max, duration_seconds)
            self._by_strategy[strategy] += 1

    def record_fallback(self) -> None:
        with self._lock:
            self._fallbacks += 1

    def record_failure(self) -> None:
        with self._lock:
            self._errors += 1

    def snapshot(self) -> dict[str, int | float | dict[str, int]]:
        """Return a point-in-time copy of all counters."""

        with self._lock:
            mean = self._duration_total / self._generated if self._generated else 0.0
            return {
                "generated_total": self._generated,
                "fallback_total": self._fallbacks,
                "errors_total": self._errors,
                "duration_seconds_total": self._duration_total,
                "duration_seconds_max": self._duration_max,
                "duration_seconds_mean": mean,
                "by_strategy": dict(self._by_strategy),
            }
