"""
Core value types shared by the hasher, scanner and aggregator.

Keys (accounts, tokens, storage slots) are plain ints in the 256-bit domain;
aliases below document intent only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, NamedTuple, Tuple

AccountKey = int
TokenKey = int
StorageSlot = int

# slot -> account, built once per run and read-only afterwards
SlotTable = Dict[StorageSlot, AccountKey]

# token -> account -> balance
BalanceMapping = Dict[TokenKey, Dict[AccountKey, int]]


class Observation(NamedTuple):
    """One historical write read from the storage log."""

    contract: int
    slot: StorageSlot
    value: object  # raw column value; decoded by the aggregator only
    version: int  # block number


class ScanStrategy(str, Enum):
    """How the storage log scan is split into shards."""

    KEY_RANGE = "key-range"  # update-row ordinal modulo N, all tokens per shard
    PER_TOKEN = "per-token"  # one shard per token contract, full history
    GROUPED = "grouped"  # single scan, store-side grouping

    @classmethod
    def parse(cls, raw: "str | ScanStrategy") -> "ScanStrategy":
        if isinstance(raw, ScanStrategy):
            return raw
        if not isinstance(raw, str):
            raise ValueError(f"scan strategy must be a string, got {type(raw).__name__}")
        norm = raw.strip().lower().replace("_", "-")
        for s in cls:
            if s.value == norm:
                return s
        raise ValueError(f"unknown scan strategy {raw!r} (choose from {', '.join(s.value for s in cls)})")


@dataclass(frozen=True)
class Partition:
    """Shard descriptor: this shard is `index` of `count`."""

    index: int
    count: int

    def __post_init__(self) -> None:
        if self.count < 1:
            raise ValueError("partition count must be >= 1")
        if not (0 <= self.index < self.count):
            raise ValueError(f"partition index {self.index} out of range for count {self.count}")

    def __str__(self) -> str:
        return f"{self.index}/{self.count}"


@dataclass(frozen=True)
class ShardSpec:
    """
    Work unit for one scanner shard.

    `contract_ids` are the log's internal ids (contract_addresses.id) the
    shard scans. `row_partition` is set only for key-range sharding, where the
    shard predicate is `storage_updates.id % count = index`.
    """

    partition: Partition
    contract_ids: Tuple[int, ...]
    row_partition: bool = False
    label: str = field(default="", compare=False)


__all__ = [
    "AccountKey",
    "TokenKey",
    "StorageSlot",
    "SlotTable",
    "BalanceMapping",
    "Observation",
    "ScanStrategy",
    "Partition",
    "ShardSpec",
]
