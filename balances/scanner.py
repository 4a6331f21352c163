"""
Partitioned scans over the storage log.

A scan is split into shards according to a `ScanStrategy`:

- key-range : N shards over all requested contracts, shard i scanning update
              rows with `id % N == i`. Each shard's per-slot maximum is only
              provisional; the aggregator re-reduces across shards.
- per-token : one shard per contract id, full history, store-side grouping.
- grouped   : one shard over every requested contract.

Shards run on a bounded thread pool. Each shard opens its own read-only
handle and closes it on every exit path; nothing mutable is shared between
shards. All shards are joined before results are returned, and any failure
aborts the run with `ScanFailed` naming the lowest failing shard.
"""

from __future__ import annotations

import contextvars
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from contextlib import closing
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from . import logging as blog
from .constants import DEFAULT_DB_TIMEOUT_S, DEFAULT_WORKERS
from .errors import ScanFailed
from .metrics import BalancesMetrics
from .store import open_storage_log
from .types import Observation, Partition, ScanStrategy, ShardSpec

log = blog.get_logger(__name__)


@dataclass
class ShardResult:
    spec: ShardSpec
    observations: List[Observation]
    seconds: float


def plan_shards(
    strategy: ScanStrategy,
    contract_ids: Sequence[int],
    shards: int = 1,
) -> List[ShardSpec]:
    """
    Split the scan of `contract_ids` into shard work units.

    No contract ids means nothing to scan and an empty plan.
    """
    ids = tuple(sorted(set(int(c) for c in contract_ids)))
    if not ids:
        return []

    if strategy is ScanStrategy.KEY_RANGE:
        if shards < 1:
            raise ValueError("shards must be >= 1")
        return [
            ShardSpec(Partition(i, shards), ids, row_partition=True, label=f"rows%{shards}=={i}")
            for i in range(shards)
        ]
    if strategy is ScanStrategy.PER_TOKEN:
        return [
            ShardSpec(Partition(i, len(ids)), (cid,), label=f"contract_id={cid}")
            for i, cid in enumerate(ids)
        ]
    if strategy is ScanStrategy.GROUPED:
        return [ShardSpec(Partition(0, 1), ids, label="all")]
    raise ValueError(f"unsupported scan strategy: {strategy!r}")


def scan_shard(
    db_path: "str | os.PathLike[str]",
    spec: ShardSpec,
    *,
    strategy: ScanStrategy,
    timeout: float = DEFAULT_DB_TIMEOUT_S,
    metrics: Optional[BalancesMetrics] = None,
) -> ShardResult:
    """Run one shard to completion on its own read-only handle."""
    blog.bind(component="scanner", strategy=strategy.value, shard=str(spec.partition))
    t0 = time.perf_counter()
    with closing(open_storage_log(db_path, timeout=timeout)) as store:
        observations = list(
            store.scan_latest(
                spec.contract_ids,
                row_partition=spec.partition if spec.row_partition else None,
            )
        )
    dt = time.perf_counter() - t0

    if metrics is not None:
        metrics.note_shard(strategy=strategy.value, seconds=dt, observations=len(observations))
    log.info(
        "shard scanned",
        extra={
            "range": spec.label,
            "contracts": len(spec.contract_ids),
            "observations": len(observations),
            "elapsed_s": round(dt, 4),
        },
    )
    return ShardResult(spec=spec, observations=observations, seconds=dt)


def run_scans(
    db_path: "str | os.PathLike[str]",
    plan: Sequence[ShardSpec],
    *,
    strategy: ScanStrategy,
    workers: int = DEFAULT_WORKERS,
    timeout: float = DEFAULT_DB_TIMEOUT_S,
    metrics: Optional[BalancesMetrics] = None,
) -> List[ShardResult]:
    """
    Execute every shard in `plan` and join them.

    Results are returned in shard-index order. If any shard raises, the
    remaining shards still finish (nothing is cancelled) but their results are
    dropped and ScanFailed is raised for the lowest failing index.
    """
    if not plan:
        return []

    results: Dict[int, ShardResult] = {}
    failures: Dict[int, BaseException] = {}

    with ThreadPoolExecutor(
        max_workers=max(1, min(int(workers), len(plan))),
        thread_name_prefix="balances-scan",
    ) as tp:
        futs: Dict[Future, ShardSpec] = {}
        for spec in plan:
            # Each task runs in a copy of the caller's context so run_id carries
            # over and per-shard bindings stay local to the task.
            ctx = contextvars.copy_context()
            fut = tp.submit(
                ctx.run,
                scan_shard,
                db_path,
                spec,
                strategy=strategy,
                timeout=timeout,
                metrics=metrics,
            )
            futs[fut] = spec
        for fut in as_completed(futs):
            spec = futs[fut]
            try:
                results[spec.partition.index] = fut.result()
            except Exception as e:
                failures[spec.partition.index] = e
                if metrics is not None:
                    metrics.note_shard_failure(strategy=strategy.value)
                log.error(
                    "shard failed",
                    extra={
                        "shard": str(spec.partition),
                        "range": spec.label,
                        "err": f"{type(e).__name__}: {e}",
                    },
                )

    if failures:
        first = min(failures)
        spec = next(s for s in plan if s.partition.index == first)
        cause = failures[first]
        raise ScanFailed(
            f"shard {spec.partition} failed: {cause}",
            shard=spec.partition.index,
            shard_count=spec.partition.count,
            strategy=strategy.value,
            data={"range": spec.label, "failed_shards": len(failures)},
        ) from cause

    return [results[i] for i in sorted(results)]


__all__ = ["ShardResult", "plan_shards", "scan_shard", "run_scans"]
