"""
Aggregation of scanner output into the final balance mapping.

Per-shard observations are folded locally into `PartialBalances`, partials
are merged with the same max-version rule, and the global winners are turned
into `token -> account -> balance`:

- Observations whose slot is not a requested account's slot are dropped
  (slot misses; most of a contract's storage belongs to other variables).
- For one (contract, slot) the highest version wins. Equal versions resolve
  to the larger raw value, so arrival order never changes the result.
- A winner that cannot be decoded is recorded as a zero balance and logged.
- Every requested token is present in the mapping, possibly empty.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Sequence, Tuple

from .errors import ValueDecodeError
from .logging import get_logger
from .types import BalanceMapping, Observation, SlotTable, TokenKey
from .utils.felt import decode_value, to_hex

log = get_logger(__name__)

WinnerKey = Tuple[int, int]  # (contract, slot)
Winner = Tuple[int, object]  # (version, raw value)


def _raw_order(raw: object) -> bytes:
    if raw is None:
        return b""
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw)
    return str(raw).encode("utf-8")


def _newer(a: Winner, b: Winner) -> bool:
    """True if `a` beats `b`."""
    if a[0] != b[0]:
        return a[0] > b[0]
    return _raw_order(a[1]) > _raw_order(b[1])


@dataclass
class PartialBalances:
    """
    Latest-write winners for a subset of observations.

    `merge` is commutative and associative, with the empty partial as
    identity, so shards can be folded in any order.
    """

    winners: Dict[WinnerKey, Winner] = field(default_factory=dict)
    slot_misses: int = 0

    def __len__(self) -> int:
        return len(self.winners)

    def offer(self, key: WinnerKey, version: int, raw: object) -> None:
        cand = (version, raw)
        cur = self.winners.get(key)
        if cur is None or _newer(cand, cur):
            self.winners[key] = cand

    def absorb(self, other: "PartialBalances") -> None:
        """In-place merge of `other` into this partial."""
        self.slot_misses += other.slot_misses
        for key, (version, raw) in other.winners.items():
            self.offer(key, version, raw)

    def merge(self, other: "PartialBalances") -> "PartialBalances":
        out = PartialBalances(dict(self.winners), self.slot_misses)
        out.absorb(other)
        return out


def fold_observations(observations: Iterable[Observation], slot_table: SlotTable) -> PartialBalances:
    """Local fold of one shard's observations, dropping slot misses."""
    part = PartialBalances()
    for obs in observations:
        if obs.slot not in slot_table:
            part.slot_misses += 1
            continue
        part.offer((obs.contract, obs.slot), obs.version, obs.value)
    return part


def merge_partials(partials: Iterable[PartialBalances]) -> PartialBalances:
    out = PartialBalances()
    for p in partials:
        out.absorb(p)
    return out


@dataclass
class AggregateStats:
    winners: int = 0
    slot_misses: int = 0
    decode_failures: int = 0
    foreign_contracts: int = 0


def build_mapping(
    tokens: Sequence[TokenKey],
    slot_table: SlotTable,
    merged: PartialBalances,
) -> Tuple[BalanceMapping, AggregateStats]:
    mapping: BalanceMapping = {t: {} for t in tokens}
    stats = AggregateStats(winners=len(merged), slot_misses=merged.slot_misses)

    for (contract, slot), (version, raw) in merged.winners.items():
        balances = mapping.get(contract)
        if balances is None:
            stats.foreign_contracts += 1
            continue
        account = slot_table[slot]
        try:
            value = decode_value(raw)
        except ValueDecodeError as e:
            stats.decode_failures += 1
            log.warning(
                "undecodable storage value, recording zero balance",
                extra={
                    "token": to_hex(contract),
                    "account": to_hex(account),
                    "version": version,
                    "err": str(e),
                },
            )
            value = 0
        balances[account] = value

    if stats.slot_misses:
        log.debug("discarded slot misses", extra={"slot_misses": stats.slot_misses})
    return mapping, stats


def aggregate(
    tokens: Sequence[TokenKey],
    slot_table: SlotTable,
    shards: Iterable[Iterable[Observation]],
) -> Tuple[BalanceMapping, AggregateStats]:
    """Fold each shard locally, merge globally and build the mapping."""
    merged = merge_partials(fold_observations(obs, slot_table) for obs in shards)
    return build_mapping(tokens, slot_table, merged)


__all__ = [
    "PartialBalances",
    "AggregateStats",
    "fold_observations",
    "merge_partials",
    "build_mapping",
    "aggregate",
]
