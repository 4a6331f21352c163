"""
balances.logging
----------------

Structured logging for resolution runs:
- JSON or concise colored text formats
- Context-local fields via `contextvars` (run_id, component, shard, strategy)
- Safe field coercion (bytes → hex, Paths → str, big ints stay ints)

Usage
-----
    from balances import logging as blog

    blog.configure(json=False, level="INFO")  # once, from the CLI
    log = blog.get_logger(__name__)

    with blog.run_scope():
        blog.bind(component="scanner")
        log.info("shard done", extra={"shard": 3, "rows": 1200})

Worker threads do not inherit the caller's context automatically; pool tasks
bind their own `shard` field.

Environment
-----------
BALANCES_LOG_FORMAT=json|text   overrides the format choice
BALANCES_LOG_LEVEL=DEBUG|INFO|… default level used by `configure_from_env`
"""

from __future__ import annotations

import datetime as _dt
import io
import json
import logging
import os
import sys
import threading
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

# ----------------------------
# Context
# ----------------------------

_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("_BALANCES_LOG_CONTEXT", default={})

DEFAULT_CONTEXT_KEYS = (
    "run_id",
    "component",
    "strategy",
    "shard",
)

# LogRecord attributes that are never treated as structured fields.
_RECORD_ATTRS = frozenset(
    (
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
    )
)


def context() -> Dict[str, Any]:
    """Return a *copy* of the active logging context."""
    return dict(_LOG_CONTEXT.get())


def bind(**fields: Any) -> None:
    """Merge fields into the active context."""
    cur = dict(_LOG_CONTEXT.get())
    cur.update({k: _coerce_value(v) for k, v in fields.items()})
    _LOG_CONTEXT.set(cur)


def unbind(*keys: str) -> None:
    cur = dict(_LOG_CONTEXT.get())
    for k in keys:
        cur.pop(k, None)
    _LOG_CONTEXT.set(cur)


def clear_context() -> None:
    _LOG_CONTEXT.set({})


@contextmanager
def run_scope(run_id: Optional[str] = None) -> Iterator[str]:
    """
    Ensure a run_id is bound for the duration of the scope; restores the
    prior context on exit.
    """
    prev = dict(_LOG_CONTEXT.get())
    rid = run_id or short_uuid()
    try:
        bind(run_id=rid)
        yield rid
    finally:
        _LOG_CONTEXT.set(prev)


def short_uuid() -> str:
    return uuid.uuid4().hex[:12]


# ----------------------------
# Formatters
# ----------------------------


def _utcnow_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="milliseconds")


def _coerce_value(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str, list, dict)):
        return v
    if isinstance(v, (bytes, bytearray, memoryview)):
        return bytes(v).hex()
    if isinstance(v, Path):
        return str(v)
    if isinstance(v, _dt.datetime):
        if v.tzinfo is None:
            v = v.replace(tzinfo=_dt.timezone.utc)
        return v.isoformat()
    return str(v)


def _record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in record.__dict__.items():
        if k.startswith("_") or k in _RECORD_ATTRS:
            continue
        out[k] = _coerce_value(v)
    return out


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": _utcnow_iso(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "pid": os.getpid(),
            "tid": threading.get_ident(),
        }
        payload.update(context())
        for k, v in _record_fields(record).items():
            payload.setdefault(k, v)
        if record.exc_info:
            payload["err"] = "".join(traceback.format_exception(*record.exc_info)).rstrip()
        return json.dumps(payload, default=str, separators=(",", ":"))


_LEVEL_COLOR = {
    logging.DEBUG: "\x1b[90m",
    logging.INFO: "\x1b[32m",
    logging.WARNING: "\x1b[33m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[1m\x1b[35m",
}
_RESET = "\x1b[0m"


def _supports_color(stream: io.TextIOBase) -> bool:
    try:
        return stream.isatty() and os.environ.get("NO_COLOR") is None
    except Exception:
        return False


class TextFormatter(logging.Formatter):
    """
    Human-friendly one-liner:
      2026-01-05T12:34:56.789+00:00 | INFO  | balances.scanner | run_id=ab12cd shard=3 rows=1200 | shard done
    """

    def __init__(self, stream: io.TextIOBase):
        super().__init__()
        self._color = _supports_color(stream)

    def format(self, record: logging.LogRecord) -> str:
        ctx = context()
        parts = [f"{k}={ctx[k]}" for k in DEFAULT_CONTEXT_KEYS if ctx.get(k) is not None]
        parts += [
            f"{k}={v}" for k, v in _record_fields(record).items() if k not in ctx
        ]
        lvl = f"{record.levelname:<5}"
        if self._color:
            lvl = f"{_LEVEL_COLOR.get(record.levelno, '')}{lvl}{_RESET}"

        line = f"{_utcnow_iso()} | {lvl} | {record.name}"
        if parts:
            line += " | " + " ".join(parts)
        line += f" | {record.getMessage()}"
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info)).rstrip()
        return line


# ----------------------------
# Public setup API
# ----------------------------


def configure(
    *,
    json: Optional[bool] = None,
    level: str | int = "INFO",
    stream: io.TextIOBase = sys.stderr,
    file_path: Optional[Path | str] = None,
) -> None:
    """
    Configure the root logger.

    json=None picks the format from BALANCES_LOG_FORMAT, falling back to text
    on a TTY and JSON otherwise. `file_path` tees JSON lines to a file.
    """
    chosen_json = _decide_json(json, stream)
    lvl = _coerce_level(level)

    root = logging.getLogger()
    root.setLevel(lvl)
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler(stream)
    console.setLevel(lvl)
    console.setFormatter(JSONFormatter() if chosen_json else TextFormatter(stream))
    root.addHandler(console)

    if file_path:
        p = Path(file_path).expanduser()
        p.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(p, encoding="utf-8")
        fh.setLevel(lvl)
        fh.setFormatter(JSONFormatter())
        root.addHandler(fh)

    for noisy in ("httpx", "httpcore", "urllib3"):
        logging.getLogger(noisy).setLevel(max(lvl, logging.WARNING))


def configure_from_env(*, stream: io.TextIOBase = sys.stderr) -> None:
    configure(
        json=_env_json_override(),
        level=os.environ.get("BALANCES_LOG_LEVEL", "INFO"),
        stream=stream,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "balances")


# ----------------------------
# Internals
# ----------------------------


def _coerce_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _decide_json(json_flag: Optional[bool], stream: io.TextIOBase) -> bool:
    if json_flag is not None:
        return json_flag
    env = _env_json_override()
    if env is not None:
        return env
    return not _supports_color(stream)


def _env_json_override() -> Optional[bool]:
    env = os.environ.get("BALANCES_LOG_FORMAT", "").strip().lower()
    if env == "json":
        return True
    if env == "text":
        return False
    return None


__all__ = [
    "configure",
    "configure_from_env",
    "get_logger",
    "bind",
    "unbind",
    "clear_context",
    "context",
    "run_scope",
    "JSONFormatter",
    "TextFormatter",
]
