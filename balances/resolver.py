"""
Balance resolution entry points.

    from balances.resolver import resolve_balances

    result = resolve_balances("storage.db", accounts, tokens)
    result.mapping[token][account]  # -> int balance

Stages, each timed and logged:
  hash      : slot -> account table for the requested accounts
  scan      : contract id lookup, then sharded scans of the storage log
  aggregate : global latest-wins merge into token -> account -> balance

Input and log-access errors propagate; decode failures and slot misses are
absorbed by the aggregator and only show up in the run statistics.
"""

from __future__ import annotations

import os
import time
from contextlib import closing, contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence

from . import logging as blog
from .aggregator import aggregate
from .config import ResolverConfig
from .errors import InputError, InvalidTokenEncoding
from .hasher import MapSelector, build_slot_table
from .metrics import BalancesMetrics, get_metrics
from .scanner import plan_shards, run_scans
from .store import open_storage_log
from .types import AccountKey, BalanceMapping, TokenKey
from .utils.felt import to_felt, to_hex

log = blog.get_logger(__name__)


@dataclass
class ResolutionStats:
    accounts: int = 0
    tokens: int = 0
    resolved_tokens: int = 0
    shards: int = 0
    observations: int = 0
    slot_misses: int = 0
    decode_failures: int = 0
    balances: int = 0
    stage_seconds: Dict[str, float] = field(default_factory=dict)

    @property
    def elapsed_s(self) -> float:
        return sum(self.stage_seconds.values())


@dataclass
class ResolutionResult:
    mapping: BalanceMapping
    stats: ResolutionStats
    selector: MapSelector
    run_id: str = ""


@contextmanager
def _stage(name: str, stats: ResolutionStats, m: BalancesMetrics) -> Iterator[None]:
    t0 = time.perf_counter()
    with m.time_stage(name):
        yield
    dt = time.perf_counter() - t0
    stats.stage_seconds[name] = dt
    log.info("stage done", extra={"stage": name, "elapsed_s": round(dt, 4)})


def _check_tokens(tokens: Sequence[TokenKey]) -> List[TokenKey]:
    out: List[TokenKey] = []
    seen = set()
    for i, raw in enumerate(tokens):
        try:
            t = to_felt(raw)
        except (TypeError, ValueError) as e:
            raise InvalidTokenEncoding(
                "token outside the 256-bit key domain", data={"index": i, "value": raw}
            ) from e
        if t not in seen:
            seen.add(t)
            out.append(t)
    return out


def resolve_balances(
    db_path: "str | os.PathLike[str]",
    accounts: Sequence[AccountKey],
    tokens: Sequence[TokenKey],
    *,
    config: Optional[ResolverConfig] = None,
    metrics: Optional[BalancesMetrics] = None,
    run_id: Optional[str] = None,
) -> ResolutionResult:
    """
    Resolve the latest balance of every account for every token.

    Raises:
      InputError / InvalidAccountEncoding / InvalidTokenEncoding before any scan
      LogAccessError when the log is missing or lacks the expected tables
      ScanFailed when a scanner shard fails
    """
    cfg = config or ResolverConfig()
    cfg.validate()
    m = metrics or get_metrics()
    t_run = time.perf_counter()

    with blog.run_scope(run_id) as rid:
        blog.bind(component="resolver", strategy=cfg.strategy.value)
        try:
            result = _resolve(db_path, accounts, tokens, cfg, m)
        except Exception:
            m.note_run(outcome="error", seconds=time.perf_counter() - t_run)
            raise
        m.note_run(outcome="ok", seconds=time.perf_counter() - t_run)
        result.run_id = rid
        return result


def _resolve(
    db_path: "str | os.PathLike[str]",
    accounts: Sequence[AccountKey],
    tokens: Sequence[TokenKey],
    cfg: ResolverConfig,
    m: BalancesMetrics,
) -> ResolutionResult:
    if not accounts:
        raise InputError("no accounts requested")
    token_list = _check_tokens(tokens)
    stats = ResolutionStats(accounts=len(accounts), tokens=len(token_list))

    selector = MapSelector.from_name(cfg.selector_name)
    log.info(
        "resolving balances",
        extra={
            "accounts": len(accounts),
            "tokens": len(token_list),
            "selector": str(selector),
            "db": os.fspath(db_path),
        },
    )

    with _stage("hash", stats, m):
        slot_table = build_slot_table(
            selector,
            accounts,
            workers=cfg.hash_workers,
            parallel_threshold=cfg.hash_parallel_threshold,
            chunk_size=cfg.hash_chunk,
            executor=cfg.hash_executor,
        )

    with _stage("scan", stats, m):
        with closing(open_storage_log(db_path, timeout=cfg.db_timeout_s)) as store:
            store.check_schema()
            contract_ids = store.contract_ids(token_list)
        for t in token_list:
            if t not in contract_ids:
                log.info("token has no storage history", extra={"token": to_hex(t)})
        plan = plan_shards(cfg.strategy, list(contract_ids.values()), cfg.effective_shards())
        shard_results = run_scans(
            db_path,
            plan,
            strategy=cfg.strategy,
            workers=cfg.workers,
            timeout=cfg.db_timeout_s,
            metrics=m,
        )
    stats.resolved_tokens = len(contract_ids)
    stats.shards = len(plan)
    stats.observations = sum(len(r.observations) for r in shard_results)

    with _stage("aggregate", stats, m):
        mapping, agg = aggregate(token_list, slot_table, (r.observations for r in shard_results))
    m.note_aggregate(slot_misses=agg.slot_misses, decode_failures=agg.decode_failures)
    stats.slot_misses = agg.slot_misses
    stats.decode_failures = agg.decode_failures
    stats.balances = sum(len(v) for v in mapping.values())

    for t in token_list:
        log.info("token resolved", extra={"token": to_hex(t), "balances": len(mapping[t])})
    log.info(
        "resolution complete",
        extra={
            "shards": stats.shards,
            "observations": stats.observations,
            "balances": stats.balances,
            "slot_misses": stats.slot_misses,
            "decode_failures": stats.decode_failures,
            "elapsed_s": round(stats.elapsed_s, 4),
        },
    )
    return ResolutionResult(mapping=mapping, stats=stats, selector=selector)


def get_balance_map(
    db_path: "str | os.PathLike[str]",
    accounts: Sequence[AccountKey],
    tokens: Sequence[TokenKey],
    *,
    config: Optional[ResolverConfig] = None,
    metrics: Optional[BalancesMetrics] = None,
) -> BalanceMapping:
    """Like `resolve_balances` but returns only the mapping."""
    return resolve_balances(db_path, accounts, tokens, config=config, metrics=metrics).mapping


__all__ = ["ResolutionStats", "ResolutionResult", "resolve_balances", "get_balance_map"]
