"""
Prometheus metrics for balance resolution runs.

This module centralizes counters and histograms for:
- Runs by outcome and end-to-end duration
- Per-stage durations (hash, scan, aggregate, output)
- Shard scan durations and scanned observations, by strategy
- Slot misses and value decode failures seen by the aggregator

Typical usage:

    from balances.metrics import get_metrics

    METRICS = get_metrics()

    with METRICS.time_stage("scan"):
        shards = run_scans(...)
    METRICS.note_shard(strategy="key-range", seconds=dt, observations=len(obs))

Tests pass their own `CollectorRegistry` to `BalancesMetrics` to keep the
default registry clean.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator, Optional

from prometheus_client import REGISTRY as _DEFAULT_REGISTRY
from prometheus_client import CollectorRegistry, Counter, Histogram

_STAGE_BUCKETS = (0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0)


class BalancesMetrics:
    """
    Concrete metrics backed by prometheus_client.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        reg = registry if registry is not None else _DEFAULT_REGISTRY

        self.runs_total = Counter(
            "balances_runs_total",
            "Balance resolution runs grouped by outcome",
            ["outcome"],
            registry=reg,
        )
        self.run_duration = Histogram(
            "balances_run_duration_seconds",
            "End-to-end resolution duration in seconds",
            registry=reg,
            buckets=_STAGE_BUCKETS,
        )
        self.stage_duration = Histogram(
            "balances_stage_duration_seconds",
            "Duration of a resolution stage in seconds",
            ["stage"],
            registry=reg,
            buckets=_STAGE_BUCKETS,
        )
        self.shard_duration = Histogram(
            "balances_shard_scan_seconds",
            "Duration of a single scanner shard in seconds",
            ["strategy"],
            registry=reg,
            buckets=_STAGE_BUCKETS,
        )
        self.observations_total = Counter(
            "balances_observations_total",
            "Observations returned by scanner shards",
            ["strategy"],
            registry=reg,
        )
        self.shard_failures_total = Counter(
            "balances_shard_failures_total",
            "Scanner shards that raised",
            ["strategy"],
            registry=reg,
        )
        self.slot_misses_total = Counter(
            "balances_slot_misses_total",
            "Observations discarded because their slot is not a requested account",
            registry=reg,
        )
        self.decode_failures_total = Counter(
            "balances_decode_failures_total",
            "Winning storage values that could not be decoded (recorded as zero)",
            registry=reg,
        )

    @contextmanager
    def time_stage(self, stage: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.stage_duration.labels(stage).observe(max(0.0, time.perf_counter() - start))

    def note_shard(self, *, strategy: str, seconds: float, observations: int) -> None:
        self.shard_duration.labels(strategy).observe(max(0.0, seconds))
        self.observations_total.labels(strategy).inc(observations)

    def note_shard_failure(self, *, strategy: str) -> None:
        self.shard_failures_total.labels(strategy).inc()

    def note_aggregate(self, *, slot_misses: int, decode_failures: int) -> None:
        if slot_misses:
            self.slot_misses_total.inc(slot_misses)
        if decode_failures:
            self.decode_failures_total.inc(decode_failures)

    def note_run(self, *, outcome: str, seconds: float) -> None:
        self.runs_total.labels(outcome).inc()
        self.run_duration.observe(max(0.0, seconds))


# ------------------------------- public API ----------------------------------

_METRICS_SINGLETON: Optional[BalancesMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> BalancesMetrics:
    """
    Return a process-wide BalancesMetrics singleton. The first call can inject a
    custom registry; subsequent calls ignore the registry parameter.
    """
    global _METRICS_SINGLETON
    if _METRICS_SINGLETON is None:
        _METRICS_SINGLETON = BalancesMetrics(registry=registry)
    return _METRICS_SINGLETON


__all__ = ["BalancesMetrics", "get_metrics"]
