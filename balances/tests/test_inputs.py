from __future__ import annotations

import json
from pathlib import Path

import pytest

from balances.constants import STARK_PRIME
from balances.errors import InputError, InvalidAccountEncoding, InvalidTokenEncoding
from balances.inputs import load_addresses, parse_addresses


def _write(tmp_path: Path, doc) -> Path:
    p = tmp_path / "addresses.json"
    p.write_text(json.dumps(doc), encoding="utf-8")
    return p


def test_load_hex_and_ints(tmp_path: Path) -> None:
    p = _write(tmp_path, {"accounts": ["0x01", "ff", 3], "tokens": ["0X0a"]})
    got = load_addresses(p)
    assert got.accounts == [1, 255, 3]
    assert got.tokens == [10]


def test_empty_tokens_allowed() -> None:
    assert parse_addresses({"accounts": ["0x1"], "tokens": []}).tokens == []


def test_bad_account_names_index() -> None:
    with pytest.raises(InvalidAccountEncoding) as ei:
        parse_addresses({"accounts": ["0x1", "0xzz"], "tokens": []})
    assert ei.value.data == {"index": 1, "value": "0xzz"}
    assert ei.value.code == "invalid_account_encoding"


def test_bad_token() -> None:
    with pytest.raises(InvalidTokenEncoding):
        parse_addresses({"accounts": ["0x1"], "tokens": ["0x" + "f" * 65]})


@pytest.mark.parametrize(
    "doc",
    [
        [],
        {"tokens": []},
        {"accounts": "0x1", "tokens": []},
        {"accounts": [], "tokens": ["0x1"]},
    ],
)
def test_shape_errors(doc) -> None:
    with pytest.raises(InputError):
        parse_addresses(doc)


def test_unreadable_or_invalid_json(tmp_path: Path) -> None:
    with pytest.raises(InputError):
        load_addresses(tmp_path / "missing.json")
    p = tmp_path / "bad.json"
    p.write_text("{not json", encoding="utf-8")
    with pytest.raises(InputError):
        load_addresses(p)


def test_keys_reduced_to_field_elements() -> None:
    got = parse_addresses({"accounts": [hex(STARK_PRIME + 7)], "tokens": [STARK_PRIME]})
    assert got.accounts == [7]
    assert got.tokens == [0]
