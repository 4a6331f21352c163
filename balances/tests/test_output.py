from __future__ import annotations

import csv
import json
import sqlite3
from pathlib import Path

import pytest

from balances.config import OutputConfig
from balances.errors import OutputError
from balances.output import write_results

MAPPING = {
    0x20: {0x2: 5, 0x1: 2**200},
    0x10: {0xABC: 0},
    0x30: {},
}


def test_nothing_enabled_writes_nothing(tmp_path: Path) -> None:
    assert write_results(MAPPING, OutputConfig(dir=tmp_path)) == {}
    assert list(tmp_path.iterdir()) == []


def test_csv(tmp_path: Path) -> None:
    written = write_results(MAPPING, OutputConfig(csv=True, dir=tmp_path / "out"))
    with open(written["csv"], newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[0] == ["Token", "Account", "Balance"]
    assert rows[1] == ["0x" + "0" * 60 + "10", "0x" + "0" * 59 + "abc", "0"]
    assert [r[1][-1] for r in rows[2:]] == ["1", "2"]
    assert rows[2][2] == str(2**200)
    assert len(rows) == 4
    assert all(len(r[0]) == 64 for r in rows[1:])


def test_json(tmp_path: Path) -> None:
    written = write_results(MAPPING, OutputConfig(json=True, dir=tmp_path))
    doc = json.loads(written["json"].read_text(encoding="utf-8"))
    assert doc == {
        "0x10": {"0xabc": "0x0"},
        "0x20": {"0x1": hex(2**200), "0x2": "0x5"},
        "0x30": {},
    }
    assert list(doc) == ["0x10", "0x20", "0x30"]


def test_sqlite(tmp_path: Path) -> None:
    written = write_results(MAPPING, OutputConfig(sqlite=True, dir=tmp_path, sqlite_name="m.db"))
    assert written["sqlite"] == tmp_path / "m.db"
    conn = sqlite3.connect(str(written["sqlite"]))
    try:
        rows = conn.execute("SELECT token, account, balance FROM token_map ORDER BY rowid").fetchall()
    finally:
        conn.close()
    assert len(rows) == 3
    assert rows[0][2] == "0"
    assert rows[1][2] == str(2**200)
    assert int(rows[2][1], 16) == 2


def test_all_formats(tmp_path: Path) -> None:
    written = write_results(MAPPING, OutputConfig(csv=True, json=True, sqlite=True, dir=tmp_path))
    assert set(written) == {"csv", "json", "sqlite"}
    assert all(p.exists() for p in written.values())


def test_write_failure_names_format(tmp_path: Path) -> None:
    (tmp_path / "token_map.csv").mkdir()
    with pytest.raises(OutputError) as ei:
        write_results(MAPPING, OutputConfig(csv=True, dir=tmp_path))
    assert ei.value.data["format"] == "csv"
