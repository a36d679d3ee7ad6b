"""Unit tests for the in-memory generation metrics observer."""

from concurrent.futures import ThreadPoolExecutor

from app.services.generation_metrics import GenerationMetrics


def test_snapshot_starts_empty() -> None:
    snapshot = GenerationMetrics().snapshot()

    assert snapshot["generated_total"] == 0
    assert snapshot["fallback_total"] == 0
    assert snapshot["errors_total"] == 0
    assert snapshot["duration_seconds_mean"] == 0.0
    assert snapshot["by_strategy"] == {}


def test_tracks_durations_and_strategies() -> None:
    metrics = GenerationMetrics()

    metrics.record_generated(0.002, "sha256")
    metrics.record_generated(0.004, "fallback")
    metrics.record_fallback()
    metrics.record_failure()

    snapshot = metrics.snapshot()
    assert snapshot["generated_total"] == 2
    assert snapshot["fallback_total"] == 1
    assert snapshot["errors_total"] == 1
    assert snapshot["duration_seconds_max"] == 0.004
    assert abs(snapshot["duration_seconds_mean"] - 0.003) < 1e-9
    assert snapshot["by_strategy"] == {"sha256": 1, "fallback": 1}


def test_counters_are_safe_under_concurrency() -> None:
    metrics = GenerationMetrics()

    with ThreadPoolExecutor(max_workers=16) as pool:
        list(pool.map(lambda _: metrics.record_generated(0.001, "sha256"), range(2000)))

    assert metrics.snapshot()["generated_total"] == 2000
