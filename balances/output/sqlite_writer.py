"""
SQLite writer.

Rows go to `token_map(token TEXT, account TEXT, balance TEXT)`; the table is
created when missing and all rows are inserted in one transaction. Values are
TEXT because balances can exceed SQLite's 64-bit INTEGER.
"""

from __future__ import annotations

import sqlite3
from contextlib import closing
from pathlib import Path

from ..errors import OutputError
from ..types import BalanceMapping
from ..utils.felt import to_padded_hex
from .rows import sorted_rows

TABLE = "token_map"

_CREATE = f"""
CREATE TABLE IF NOT EXISTS {TABLE} (
    token   TEXT NOT NULL,
    account TEXT NOT NULL,
    balance TEXT NOT NULL
)
"""
_INSERT = f"INSERT INTO {TABLE} (token, account, balance) VALUES (?, ?, ?)"


def write_sqlite(mapping: BalanceMapping, path: Path) -> Path:
    rows = [
        (to_padded_hex(token), to_padded_hex(account), str(balance))
        for token, account, balance in sorted_rows(mapping)
    ]
    try:
        with closing(sqlite3.connect(str(path))) as conn:
            with conn:  # one transaction; rolls back on error
                conn.execute(_CREATE)
                conn.executemany(_INSERT, rows)
    except sqlite3.Error as e:
        raise OutputError(
            f"cannot write SQLite output: {e}", data={"format": "sqlite", "path": str(path)}
        ) from e
    return path


__all__ = ["TABLE", "write_sqlite"]
