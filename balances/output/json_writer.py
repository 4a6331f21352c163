"""
JSON writer.

Shape: ``{token_hex: {account_hex: balance_hex}}`` using minimal 0x hex for
every field element. Keys are sorted; tokens without balances map to ``{}``.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Dict

from ..errors import OutputError
from ..types import BalanceMapping
from ..utils.felt import to_hex


def to_json_obj(mapping: BalanceMapping) -> Dict[str, Dict[str, str]]:
    return {
        to_hex(token): {to_hex(a): to_hex(mapping[token][a]) for a in sorted(mapping[token])}
        for token in sorted(mapping)
    }


def write_json(mapping: BalanceMapping, path: Path) -> Path:
    path = Path(path)
    data = json.dumps(to_json_obj(mapping), indent=2) + "\n"
    # sibling temp file, then atomic rename
    try:
        fd, tmp = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
    except OSError as e:
        raise OutputError(f"cannot write JSON: {e}", data={"format": "json", "path": str(path)}) from e
    return path


__all__ = ["to_json_obj", "write_json"]
