"""
SQLite storage log (read-only)
==============================

The node snapshot keeps contract storage history in three tables:

    contract_addresses(id, contract_address BLOB)
    storage_addresses(id, storage_address BLOB)
    storage_updates(id, contract_address_id, storage_address_id,
                    storage_value BLOB, block_number INTEGER)

Keys and values are big-endian BLOBs. This module never writes: handles are
opened with `mode=ro` and `PRAGMA query_only=ON`.

Threading:
- A `StorageLog` handle belongs to one thread of control. Scanner shards each
  open their own handle for the shard's lifetime (`with open_storage_log(...)`).
"""

from __future__ import annotations

import json
import os
import sqlite3
from typing import Dict, Iterator, Optional, Sequence, Union
from urllib.parse import quote

from ..constants import DEFAULT_DB_TIMEOUT_S, FELT_BYTES, REQUIRED_TABLES
from ..errors import LogAccessError
from ..types import Observation, Partition, TokenKey
from ..utils.felt import to_be32
from . import queries

PathLike = Union[str, "os.PathLike[str]"]


def _open_connection(path: PathLike, *, timeout: float) -> sqlite3.Connection:
    path_str = os.fspath(path)
    if not os.path.isfile(path_str):
        raise LogAccessError(f"storage log not found at {path_str}", data={"path": path_str})
    uri = f"file:{quote(os.path.abspath(path_str))}?mode=ro"
    try:
        conn = sqlite3.connect(
            uri,
            uri=True,
            timeout=timeout,
            detect_types=0,
            isolation_level=None,  # autocommit; we only read
            check_same_thread=True,
        )
        conn.execute("PRAGMA query_only=ON")
    except sqlite3.Error as e:
        raise LogAccessError(f"cannot open storage log: {e}", data={"path": path_str}) from e
    return conn


def _key_from_column(v: object) -> Optional[int]:
    # Rows whose key column is not a felt-sized BLOB cannot match a requested key.
    if isinstance(v, (bytes, bytearray, memoryview)):
        b = bytes(v)
        if 0 < len(b) <= FELT_BYTES:
            return int.from_bytes(b, "big")
    return None


class StorageLog:
    """
    Read-only handle on the storage log.

    Use `open_storage_log(path)` to construct; close with `close()` or a
    `with` block.
    """

    __slots__ = ("_conn", "path")

    def __init__(self, conn: sqlite3.Connection, *, path: str = ":memory:") -> None:
        self._conn = conn
        self.path = path

    def __enter__(self) -> "StorageLog":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._conn.close()

    # --- schema ---

    def check_schema(self) -> None:
        """Raise LogAccessError if any storage-log table is missing."""
        try:
            rows = self._conn.execute(queries.TABLES_PRESENT, REQUIRED_TABLES).fetchall()
        except sqlite3.Error as e:
            raise LogAccessError(f"cannot inspect storage log schema: {e}") from e
        present = {r[0] for r in rows}
        missing = [t for t in REQUIRED_TABLES if t not in present]
        if missing:
            raise LogAccessError(
                "storage log is missing tables",
                data={"path": self.path, "missing": ",".join(missing)},
            )

    # --- point lookups ---

    def contract_id(self, token: TokenKey) -> Optional[int]:
        row = self._conn.execute(queries.CONTRACT_ID_BY_ADDRESS, (to_be32(token),)).fetchone()
        return int(row[0]) if row is not None else None

    def contract_ids(self, tokens: Sequence[TokenKey]) -> Dict[TokenKey, int]:
        """Resolve tokens to internal contract ids; unknown tokens are left out."""
        out: Dict[TokenKey, int] = {}
        for t in tokens:
            cid = self.contract_id(t)
            if cid is not None:
                out[t] = cid
        return out

    # --- scans ---

    def scan_latest(
        self,
        contract_ids: Sequence[int],
        *,
        row_partition: Optional[Partition] = None,
    ) -> Iterator[Observation]:
        """
        Latest write per (contract, slot) among the scanned rows.

        With `row_partition`, only update rows with `id % count == index` are
        scanned, so the result is a per-partition maximum, not the global one.
        """
        if not contract_ids:
            return
        ids_json = json.dumps([int(c) for c in contract_ids])
        if row_partition is None:
            cur = self._conn.execute(queries.SCAN_LATEST, (ids_json,))
        else:
            cur = self._conn.execute(
                queries.SCAN_LATEST_ROW_SHARD,
                (ids_json, row_partition.count, row_partition.index),
            )
        try:
            for contract_raw, slot_raw, value, version in cur:
                contract = _key_from_column(contract_raw)
                slot = _key_from_column(slot_raw)
                if contract is None or slot is None:
                    continue
                yield Observation(contract, slot, value, int(version))
        finally:
            cur.close()


def open_storage_log(path: PathLike, *, timeout: float = DEFAULT_DB_TIMEOUT_S) -> StorageLog:
    """
    Open the storage log at `path` read-only.

    Raises LogAccessError when the file does not exist or cannot be opened.
    """
    conn = _open_connection(path, timeout=timeout)
    return StorageLog(conn, path=os.fspath(path))


__all__ = ["StorageLog", "open_storage_log"]
