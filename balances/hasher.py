"""
Storage slot derivation for ERC20 balances.

Cairo contracts store `balances: LegacyMap<felt, Uint256>` entries at

    slot(account) = pedersen(starknet_keccak(var_name), account)

The selector half is fixed per storage variable and computed once per run;
it is passed around as an explicit `MapSelector` value rather than a module
global. The low limb of a Uint256 balance lives at `slot(account)` itself,
which is the slot the storage log is matched against.

`build_slot_table` inverts the derivation into slot -> account for every
requested account. Hashing is CPU bound and independent per account, so large
inputs are chunked across a bounded process (or thread) pool; order does not
matter because the output is a mapping.
"""

from __future__ import annotations

from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from starknet_py.hash.selector import get_selector_from_name
from starknet_py.hash.utils import pedersen_hash

from .constants import (
    BALANCES_VAR_NAME,
    DEFAULT_HASH_CHUNK,
    DEFAULT_HASH_PARALLEL_THRESHOLD,
    DEFAULT_WORKERS,
)
from .errors import InvalidAccountEncoding
from .logging import get_logger
from .types import AccountKey, SlotTable, StorageSlot
from .utils.felt import to_felt

log = get_logger(__name__)


@dataclass(frozen=True)
class MapSelector:
    """starknet_keccak of a storage variable name."""

    name: str
    value: int

    @classmethod
    def from_name(cls, name: str = BALANCES_VAR_NAME) -> "MapSelector":
        return cls(name=name, value=get_selector_from_name(name))

    def __str__(self) -> str:
        return f"{self.name}={self.value:#x}"


def derive_slot(selector: MapSelector, account: AccountKey) -> StorageSlot:
    return pedersen_hash(selector.value, to_felt(account))


def _hash_chunk(selector_value: int, accounts: Sequence[AccountKey]) -> List[Tuple[StorageSlot, AccountKey]]:
    # Module-level so process pools can pickle it.
    return [(pedersen_hash(selector_value, a), a) for a in accounts]


def _chunks(seq: Sequence[AccountKey], n: int) -> Iterable[Sequence[AccountKey]]:
    for i in range(0, len(seq), n):
        yield seq[i : i + n]


def _make_executor(kind: str, workers: int) -> Executor:
    if kind == "thread":
        return ThreadPoolExecutor(max_workers=workers, thread_name_prefix="balances-hash")
    return ProcessPoolExecutor(max_workers=workers)


def build_slot_table(
    selector: MapSelector,
    accounts: Sequence[AccountKey],
    *,
    workers: int = DEFAULT_WORKERS,
    parallel_threshold: int = DEFAULT_HASH_PARALLEL_THRESHOLD,
    chunk_size: int = DEFAULT_HASH_CHUNK,
    executor: str = "process",
) -> SlotTable:
    """
    Map every account's derived storage slot back to the account.

    Duplicate accounts collapse to one entry. Two distinct accounts hashing to
    the same slot are not guarded against; the later one wins.

    Accounts are reduced modulo STARK_PRIME first, so the table maps back to
    the reduced key. Raises InvalidAccountEncoding for keys outside the
    256-bit domain.
    """
    felts: List[AccountKey] = []
    for i, a in enumerate(accounts):
        try:
            felts.append(to_felt(a))
        except (TypeError, ValueError) as e:
            raise InvalidAccountEncoding(
                "account outside the 256-bit key domain", data={"index": i, "value": a}
            ) from e
    accounts = felts

    if len(accounts) <= parallel_threshold or workers <= 1:
        pairs: Iterable[Tuple[StorageSlot, AccountKey]] = _hash_chunk(selector.value, accounts)
        table: SlotTable = dict(pairs)
        log.debug("hashed accounts inline", extra={"accounts": len(accounts)})
        return table

    chunks = list(_chunks(accounts, chunk_size))
    table = {}
    with _make_executor(executor, min(workers, len(chunks))) as pool:
        # map() preserves chunk order, so "later wins" follows input order.
        for part in pool.map(_hash_chunk, [selector.value] * len(chunks), chunks):
            table.update(part)
    log.debug(
        "hashed accounts on pool",
        extra={"accounts": len(accounts), "chunks": len(chunks), "executor": executor},
    )
    return table


__all__ = ["MapSelector", "derive_slot", "build_slot_table"]
