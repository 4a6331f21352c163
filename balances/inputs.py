"""
Loading of the accounts/tokens input file.

The file is a JSON object:

    {
      "accounts": ["0x0123...", "0x0456..."],
      "tokens":   ["0x049d36570d4e46f48e99674bd3fcc84644ddd6b96f7c741b1562b82f9e004dc7"]
    }

Entries are hex strings (with or without 0x) or non-negative integers.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Type

from .errors import InputError, InvalidAccountEncoding, InvalidTokenEncoding
from .types import AccountKey, TokenKey
from .utils.felt import parse_key


@dataclass(frozen=True)
class Addresses:
    accounts: List[AccountKey]
    tokens: List[TokenKey]


def _parse_list(
    doc: Mapping[str, Any], key: str, err: Type[InputError]
) -> List[int]:
    if key not in doc:
        raise InputError(f"input is missing the {key!r} list")
    raw = doc[key]
    if not isinstance(raw, list):
        raise InputError(f"{key!r} must be a list", data={"type": type(raw).__name__})
    out: List[int] = []
    for i, v in enumerate(raw):
        try:
            out.append(parse_key(v))
        except ValueError as e:
            raise err(str(e), data={"index": i, "value": v}) from e
    return out


def parse_addresses(doc: Any) -> Addresses:
    if not isinstance(doc, dict):
        raise InputError("input must be a JSON object with 'accounts' and 'tokens'")
    accounts = _parse_list(doc, "accounts", InvalidAccountEncoding)
    tokens = _parse_list(doc, "tokens", InvalidTokenEncoding)
    if not accounts:
        raise InputError("input lists no accounts")
    return Addresses(accounts=accounts, tokens=tokens)


def load_addresses(path: "str | os.PathLike[str]") -> Addresses:
    """Read and validate the input file at `path`."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise InputError(f"cannot read input file: {e}", data={"path": str(p)}) from e
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as e:
        raise InputError(f"input file is not valid JSON: {e}", data={"path": str(p)}) from e
    return parse_addresses(doc)


__all__ = ["Addresses", "parse_addresses", "load_addresses"]
