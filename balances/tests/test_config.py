from __future__ import annotations

from pathlib import Path

import pytest

from balances.config import AppConfig, ResolverConfig
from balances.errors import ConfigError
from balances.types import ScanStrategy

_ENV = [
    "BALANCES_DB_PATH",
    "BALANCES_INPUT_FILE",
    "BALANCES_RPC_URL",
    "STARKNET_RPC_URL",
    "BALANCES_STRATEGY",
    "BALANCES_SHARDS",
    "BALANCES_WORKERS",
    "BALANCES_OUTPUT_CSV",
    "BALANCES_OUTPUT_DIR",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for k in _ENV:
        monkeypatch.delenv(k, raising=False)


def test_defaults() -> None:
    cfg = AppConfig.load()
    assert cfg.resolver.strategy is ScanStrategy.KEY_RANGE
    assert cfg.resolver.effective_shards() == cfg.resolver.workers
    assert not cfg.output.has_any_output()
    assert cfg.output.csv_path() == Path(".") / "token_map.csv"


def test_env_layer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BALANCES_DB_PATH", "/data/storage.db")
    monkeypatch.setenv("BALANCES_STRATEGY", "per_token")
    monkeypatch.setenv("BALANCES_WORKERS", "3")
    monkeypatch.setenv("BALANCES_OUTPUT_CSV", "yes")
    monkeypatch.setenv("STARKNET_RPC_URL", "http://node:9545")
    cfg = AppConfig.from_env()
    assert cfg.db_path == Path("/data/storage.db")
    assert cfg.resolver.strategy is ScanStrategy.PER_TOKEN
    assert cfg.resolver.workers == 3
    assert cfg.output.csv is True
    assert cfg.rpc_url == "http://node:9545"


def test_precedence_flags_over_file_over_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BALANCES_WORKERS", "2")
    monkeypatch.setenv("BALANCES_SHARDS", "9")
    cfg_file = tmp_path / "cfg.yaml"
    cfg_file.write_text(
        "db_path: ./from-file.db\nresolver:\n  workers: 5\n  strategy: grouped\noutput:\n  json: true\n",
        encoding="utf-8",
    )
    cfg = AppConfig.load(
        cfg_file,
        overrides={"resolver": {"strategy": "key-range", "workers": None}, "db_path": None},
    )
    assert cfg.db_path == Path("./from-file.db")
    assert cfg.resolver.workers == 5
    assert cfg.resolver.shards == 9
    assert cfg.resolver.strategy is ScanStrategy.KEY_RANGE
    assert cfg.output.json is True


def test_json_file(tmp_path: Path) -> None:
    p = tmp_path / "cfg.json"
    p.write_text('{"output": {"sqlite": true, "dir": "out"}}', encoding="utf-8")
    cfg = AppConfig.from_file(p)
    assert cfg.output.sqlite_path() == Path("out") / "token_map.db"


@pytest.mark.parametrize(
    "data",
    [
        {"bogus": 1},
        {"resolver": {"strategy": "sideways"}},
        {"resolver": {"strategy": 1}},
        {"resolver": {"workers": "many"}},
        {"resolver": {"hash_executor": "gpu"}},
        {"resolver": {"shards": 0}},
        {"rpc_url": "ftp://node"},
        {"output": {"csv_name": ""}},
    ],
)
def test_invalid_config(data) -> None:
    with pytest.raises(ConfigError):
        cfg = AppConfig.from_mapping(data)
        cfg.validate()


def test_unreadable_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        AppConfig.load(tmp_path / "missing.yaml")
    bad = tmp_path / "bad.yaml"
    bad.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        AppConfig.load(bad)


def test_to_dict_round_trips() -> None:
    cfg = AppConfig(resolver=ResolverConfig(strategy=ScanStrategy.GROUPED, shards=2))
    again = AppConfig.from_mapping(cfg.to_dict())
    assert again == cfg
