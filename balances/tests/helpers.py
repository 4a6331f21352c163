"""Storage-log builder and shared constants for the test suite."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Dict, Optional

from balances.config import ResolverConfig
from balances.hasher import MapSelector, derive_slot
from balances.types import ScanStrategy

T1 = 0x049D36570D4E46F48E99674BD3FCC84644DDD6B96F7C741B1562B82F9E004DC7
T2 = 0x053C91253BC9682C04929CA02ED00B3E423F6710D2EE7E0D5EBB06F3ECF368A8
T_UNKNOWN = 0x0DEAD
A1 = 0x01176A1BD84444C89232EC27754698E5D2E7E1A7F1539F12027F28B23EC9F3D8
A2 = 0x0213C67ED78BC280887234FE5ED5E77272465317978AE86C25A71531D9332A2D
A3 = 0x03


_SCHEMA = """
CREATE TABLE contract_addresses (id INTEGER PRIMARY KEY, contract_address BLOB NOT NULL);
CREATE TABLE storage_addresses (id INTEGER PRIMARY KEY, storage_address BLOB NOT NULL);
CREATE TABLE storage_updates (
    id INTEGER PRIMARY KEY,
    contract_address_id INTEGER NOT NULL,
    storage_address_id INTEGER NOT NULL,
    storage_value BLOB,
    block_number INTEGER NOT NULL
);
"""


def be32(v: int) -> bytes:
    return v.to_bytes(32, "big")


class LogBuilder:
    """Writes a storage log with the node snapshot schema."""

    def __init__(self, path: Path, selector: MapSelector) -> None:
        self.path = path
        self.selector = selector
        self.conn = sqlite3.connect(str(path))
        self.conn.executescript(_SCHEMA)
        self._contracts: Dict[int, int] = {}
        self._slots: Dict[int, int] = {}

    def contract(self, token: int) -> int:
        if token not in self._contracts:
            cur = self.conn.execute(
                "INSERT INTO contract_addresses (contract_address) VALUES (?)", (be32(token),)
            )
            self._contracts[token] = int(cur.lastrowid)
        return self._contracts[token]

    def slot_id(self, slot: int) -> int:
        if slot not in self._slots:
            cur = self.conn.execute(
                "INSERT INTO storage_addresses (storage_address) VALUES (?)", (be32(slot),)
            )
            self._slots[slot] = int(cur.lastrowid)
        return self._slots[slot]

    def write_slot(
        self, token: int, slot: int, value: object, block: int, *, row_id: Optional[int] = None
    ) -> None:
        raw = be32(value) if isinstance(value, int) else value
        self.conn.execute(
            "INSERT INTO storage_updates "
            "(id, contract_address_id, storage_address_id, storage_value, block_number) "
            "VALUES (?, ?, ?, ?, ?)",
            (row_id, self.contract(token), self.slot_id(slot), raw, block),
        )

    def write(
        self, token: int, account: int, value: object, block: int, *, row_id: Optional[int] = None
    ) -> None:
        """Record a balance write for `account` at `block`."""
        self.write_slot(token, derive_slot(self.selector, account), value, block, row_id=row_id)

    def commit(self) -> Path:
        self.conn.commit()
        return self.path

    def close(self) -> None:
        self.conn.commit()
        self.conn.close()



def make_config(strategy: ScanStrategy = ScanStrategy.KEY_RANGE, **kw) -> ResolverConfig:
    kw.setdefault("workers", 4)
    kw.setdefault("hash_workers", 2)
    kw.setdefault("hash_executor", "thread")
    return ResolverConfig(strategy=strategy, **kw)
