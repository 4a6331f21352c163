"""CSV writer: `Token,Account,Balance`, keys zero-padded hex, balances decimal."""

from __future__ import annotations

import csv
from pathlib import Path

from ..errors import OutputError
from ..types import BalanceMapping
from ..utils.felt import to_padded_hex
from .rows import sorted_rows

HEADER = ("Token", "Account", "Balance")


def write_csv(mapping: BalanceMapping, path: Path) -> Path:
    try:
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.writer(f)
            w.writerow(HEADER)
            for token, account, balance in sorted_rows(mapping):
                w.writerow((to_padded_hex(token), to_padded_hex(account), str(balance)))
    except OSError as e:
        raise OutputError(f"cannot write CSV: {e}", data={"format": "csv", "path": str(path)}) from e
    return path


__all__ = ["HEADER", "write_csv"]
