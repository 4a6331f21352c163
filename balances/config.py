"""
Balance snapshot configuration.

Typed configuration objects and loaders for:
- The resolution engine (scan strategy, shard/worker counts, hashing pool)
- Output writers (formats and destination directory)
- Run inputs (storage log path, input file, optional RPC pre-flight URL)

Layered with clear precedence:
    1) Explicit overrides passed to `AppConfig.load()` (CLI flags; highest)
    2) Config file (JSON or YAML)
    3) Environment variables (BALANCES_*)
    4) Built-in defaults (lowest)

Environment variables (all optional):

  BALANCES_DB_PATH=./data/storage.db
  BALANCES_INPUT_FILE=./addresses.json
  BALANCES_RPC_URL=https://starknet-mainnet.example/rpc   (falls back to STARKNET_RPC_URL)
  BALANCES_RPC_TIMEOUT_S=10

  BALANCES_STRATEGY=key-range            # key-range | per-token | grouped
  BALANCES_SHARDS=8                      # defaults to the worker count
  BALANCES_WORKERS=8                     # scanner pool size (default: CPU count)
  BALANCES_HASH_WORKERS=8
  BALANCES_HASH_THRESHOLD=4096           # accounts hashed inline below this
  BALANCES_HASH_CHUNK=2048
  BALANCES_HASH_EXECUTOR=process         # process | thread
  BALANCES_SELECTOR_NAME=ERC20_balances
  BALANCES_DB_TIMEOUT_S=30

  BALANCES_OUTPUT_CSV=true
  BALANCES_OUTPUT_JSON=false
  BALANCES_OUTPUT_SQLITE=false
  BALANCES_OUTPUT_DIR=.

File shape (YAML shown; JSON mirrors it):

    db_path: ./data/storage.db
    input_file: ./addresses.json
    resolver:
      strategy: per-token
      workers: 8
    output:
      csv: true
      dir: ./out
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .constants import (
    BALANCES_VAR_NAME,
    DEFAULT_CSV_NAME,
    DEFAULT_DB_TIMEOUT_S,
    DEFAULT_HASH_CHUNK,
    DEFAULT_HASH_PARALLEL_THRESHOLD,
    DEFAULT_JSON_NAME,
    DEFAULT_SQLITE_NAME,
    DEFAULT_WORKERS,
    ENV_PREFIX,
)
from .errors import ConfigError
from .types import ScanStrategy

_HASH_EXECUTORS = ("process", "thread")


# -------------------------
# Sub-configs
# -------------------------


@dataclass
class ResolverConfig:
    """
    Engine knobs.

    strategy: how the storage log scan is sharded (see balances.types.ScanStrategy)
    shards: number of key-range shards; None means one per scanner worker.
            Ignored by per-token (one shard per token) and grouped (one shard).
    workers: scanner pool size (independent read connections in flight)
    hash_workers: pool size for slot derivation
    hash_parallel_threshold: account count above which hashing fans out
    hash_chunk: accounts per hashing task
    hash_executor: "process" (CPU-bound default) or "thread"
    selector_name: storage variable whose map selector addresses balances
    db_timeout_s: SQLite busy timeout for read handles
    """

    strategy: ScanStrategy = ScanStrategy.KEY_RANGE
    shards: Optional[int] = None
    workers: int = DEFAULT_WORKERS
    hash_workers: int = DEFAULT_WORKERS
    hash_parallel_threshold: int = DEFAULT_HASH_PARALLEL_THRESHOLD
    hash_chunk: int = DEFAULT_HASH_CHUNK
    hash_executor: str = "process"
    selector_name: str = BALANCES_VAR_NAME
    db_timeout_s: float = DEFAULT_DB_TIMEOUT_S

    def effective_shards(self) -> int:
        return self.shards if self.shards is not None else self.workers

    def validate(self) -> None:
        if self.shards is not None and self.shards < 1:
            raise ConfigError("shards must be >= 1", data={"shards": self.shards})
        if self.workers < 1:
            raise ConfigError("workers must be >= 1", data={"workers": self.workers})
        if self.hash_workers < 1:
            raise ConfigError("hash_workers must be >= 1", data={"hash_workers": self.hash_workers})
        if self.hash_parallel_threshold < 0:
            raise ConfigError("hash_parallel_threshold must be >= 0")
        if self.hash_chunk < 1:
            raise ConfigError("hash_chunk must be >= 1")
        if self.hash_executor not in _HASH_EXECUTORS:
            raise ConfigError(
                f"hash_executor must be one of {', '.join(_HASH_EXECUTORS)}",
                data={"hash_executor": self.hash_executor},
            )
        if not self.selector_name or not self.selector_name.isascii():
            raise ConfigError("selector_name must be a non-empty ASCII string")
        if self.db_timeout_s <= 0:
            raise ConfigError("db_timeout_s must be > 0")


@dataclass
class OutputConfig:
    """Which writers run and where their files land."""

    csv: bool = False
    json: bool = False
    sqlite: bool = False
    dir: Path = field(default_factory=lambda: Path("."))
    csv_name: str = DEFAULT_CSV_NAME
    json_name: str = DEFAULT_JSON_NAME
    sqlite_name: str = DEFAULT_SQLITE_NAME

    def has_any_output(self) -> bool:
        return self.csv or self.json or self.sqlite

    def csv_path(self) -> Path:
        return Path(self.dir) / self.csv_name

    def json_path(self) -> Path:
        return Path(self.dir) / self.json_name

    def sqlite_path(self) -> Path:
        return Path(self.dir) / self.sqlite_name

    def validate(self) -> None:
        for name in ("csv_name", "json_name", "sqlite_name"):
            if not getattr(self, name):
                raise ConfigError(f"{name} must not be empty")


# -------------------------
# Top-level config
# -------------------------


@dataclass
class AppConfig:
    db_path: Optional[Path] = None
    input_file: Optional[Path] = None
    rpc_url: Optional[str] = None
    rpc_timeout_s: float = 10.0
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def validate(self) -> None:
        if self.rpc_timeout_s <= 0:
            raise ConfigError("rpc_timeout_s must be > 0")
        if self.rpc_url is not None and not self.rpc_url.startswith(("http://", "https://")):
            raise ConfigError("rpc_url must be http(s)", data={"rpc_url": self.rpc_url})
        self.resolver.validate()
        self.output.validate()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["resolver"]["strategy"] = self.resolver.strategy.value
        for k in ("db_path", "input_file"):
            if data[k] is not None:
                data[k] = str(data[k])
        data["output"]["dir"] = str(data["output"]["dir"])
        return data

    # -------------------------
    # Loaders
    # -------------------------

    @staticmethod
    def load(
        path: Optional[str | Path] = None,
        *,
        env_prefix: str = ENV_PREFIX,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> "AppConfig":
        """
        Build a validated config from env, an optional file, and overrides.

        `overrides` uses the file shape; None values are ignored so CLI flags
        that were not given do not clobber lower layers.
        """
        data = _env_layer(env_prefix)
        if path is not None:
            _deep_merge(data, _read_file(Path(path)))
        if overrides:
            _deep_merge(data, _drop_none(overrides))
        cfg = AppConfig.from_mapping(data)
        cfg.validate()
        return cfg

    @staticmethod
    def from_env(prefix: str = ENV_PREFIX) -> "AppConfig":
        cfg = AppConfig.from_mapping(_env_layer(prefix))
        cfg.validate()
        return cfg

    @staticmethod
    def from_file(path: str | Path) -> "AppConfig":
        cfg = AppConfig.from_mapping(_read_file(Path(path)))
        cfg.validate()
        return cfg

    @staticmethod
    def from_mapping(data: Mapping[str, Any]) -> "AppConfig":
        d = dict(data)
        r = dict(d.pop("resolver", None) or {})
        o = dict(d.pop("output", None) or {})
        try:
            resolver = ResolverConfig(
                strategy=ScanStrategy.parse(r.pop("strategy", ScanStrategy.KEY_RANGE)),
                shards=_opt_int(r.pop("shards", None)),
                workers=int(r.pop("workers", DEFAULT_WORKERS)),
                hash_workers=int(r.pop("hash_workers", DEFAULT_WORKERS)),
                hash_parallel_threshold=int(
                    r.pop("hash_parallel_threshold", DEFAULT_HASH_PARALLEL_THRESHOLD)
                ),
                hash_chunk=int(r.pop("hash_chunk", DEFAULT_HASH_CHUNK)),
                hash_executor=str(r.pop("hash_executor", "process")).lower(),
                selector_name=str(r.pop("selector_name", BALANCES_VAR_NAME)),
                db_timeout_s=float(r.pop("db_timeout_s", DEFAULT_DB_TIMEOUT_S)),
            )
            output = OutputConfig(
                csv=_as_bool(o.pop("csv", False)),
                json=_as_bool(o.pop("json", False)),
                sqlite=_as_bool(o.pop("sqlite", False)),
                dir=Path(o.pop("dir", ".")),
                csv_name=str(o.pop("csv_name", DEFAULT_CSV_NAME)),
                json_name=str(o.pop("json_name", DEFAULT_JSON_NAME)),
                sqlite_name=str(o.pop("sqlite_name", DEFAULT_SQLITE_NAME)),
            )
            cfg = AppConfig(
                db_path=_opt_path(d.pop("db_path", None)),
                input_file=_opt_path(d.pop("input_file", None)),
                rpc_url=d.pop("rpc_url", None) or None,
                rpc_timeout_s=float(d.pop("rpc_timeout_s", 10.0)),
                resolver=resolver,
                output=output,
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid configuration value: {e}") from e

        unknown = sorted(
            [*d.keys(), *(f"resolver.{k}" for k in r), *(f"output.{k}" for k in o)]
        )
        if unknown:
            raise ConfigError("unknown configuration keys", data={"keys": ",".join(unknown)})
        return cfg


# -------------------------
# Helpers
# -------------------------

# env name (after prefix) -> (section or None, key, cast)
_ENV_KEYS = {
    "DB_PATH": (None, "db_path", str),
    "INPUT_FILE": (None, "input_file", str),
    "RPC_URL": (None, "rpc_url", str),
    "RPC_TIMEOUT_S": (None, "rpc_timeout_s", float),
    "STRATEGY": ("resolver", "strategy", str),
    "SHARDS": ("resolver", "shards", int),
    "WORKERS": ("resolver", "workers", int),
    "HASH_WORKERS": ("resolver", "hash_workers", int),
    "HASH_THRESHOLD": ("resolver", "hash_parallel_threshold", int),
    "HASH_CHUNK": ("resolver", "hash_chunk", int),
    "HASH_EXECUTOR": ("resolver", "hash_executor", str),
    "SELECTOR_NAME": ("resolver", "selector_name", str),
    "DB_TIMEOUT_S": ("resolver", "db_timeout_s", float),
    "OUTPUT_CSV": ("output", "csv", bool),
    "OUTPUT_JSON": ("output", "json", bool),
    "OUTPUT_SQLITE": ("output", "sqlite", bool),
    "OUTPUT_DIR": ("output", "dir", str),
}


def _env_layer(prefix: str) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name, (section, key, cast) in _ENV_KEYS.items():
        raw = os.environ.get(prefix + name)
        if raw is None or raw.strip() == "":
            continue
        try:
            value = _as_bool(raw) if cast is bool else cast(raw.strip())
        except ValueError as e:
            raise ConfigError(f"invalid value for {prefix + name}: {raw!r}") from e
        target = out.setdefault(section, {}) if section else out
        target[key] = value
    if "rpc_url" not in out and os.environ.get("STARKNET_RPC_URL"):
        out["rpc_url"] = os.environ["STARKNET_RPC_URL"].strip()
    return out


def _read_file(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read config file {str(path)!r}: {e}") from e
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            # YAML is a superset of JSON, so anything else goes through it.
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot parse config file {str(path)!r}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {str(path)!r} must contain a mapping")
    return data


def _deep_merge(base: Dict[str, Any], upper: Mapping[str, Any]) -> Dict[str, Any]:
    for k, v in upper.items():
        if isinstance(v, Mapping) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        elif isinstance(v, Mapping):
            base[k] = _deep_merge({}, v)
        else:
            base[k] = v
    return base


def _drop_none(m: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in m.items():
        if isinstance(v, Mapping):
            v = _drop_none(v)
            if v:
                out[k] = v
        elif v is not None:
            out[k] = v
    return out


def _as_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        s = v.strip().lower()
        if s in {"1", "true", "yes", "on"}:
            return True
        if s in {"0", "false", "no", "off", ""}:
            return False
        raise ValueError(f"not a boolean: {v!r}")
    return bool(v)


def _opt_int(v: Any) -> Optional[int]:
    return None if v is None else int(v)


def _opt_path(v: Any) -> Optional[Path]:
    return None if v in (None, "") else Path(v)


__all__ = [
    "ResolverConfig",
    "OutputConfig",
    "AppConfig",
]
