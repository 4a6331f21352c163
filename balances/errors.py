"""
Balance snapshot errors.

Lightweight, typed exception hierarchy with structured metadata suitable for
logs and the CLI.

Usage:

    from balances.errors import InvalidAccountEncoding, ScanFailed

    raise InvalidAccountEncoding("not a hex string", data={"index": 3, "value": "0xzz"})

All errors expose:
- .code   : stable machine-readable code (snake_case)
- .stage  : pipeline stage that failed (input, config, preflight, scan, output)
- .data   : optional structured payload (dict-like)
- .to_dict() : JSON-safe shape for structured logs

Hard errors (input, config, log access, scan, rpc, output) propagate and end
the run. `ValueDecodeError` is soft: the aggregator absorbs it and records a
zero balance.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class BalancesError(Exception):
    """
    Base class for balance snapshot errors.

    Subclasses set `default_code` and `default_stage`.
    """

    default_code = "balances_error"
    default_stage = "run"

    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        stage: Optional[str] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.stage = stage or self.default_stage
        self.data: Dict[str, Any] = dict(data) if data else {}

    def __str__(self) -> str:
        base = f"{self.code}: {self.message}" if self.message else self.code
        if self.data:
            preview = ", ".join(f"{k}={_preview(v)}" for k, v in self.data.items())
            return f"{base} [{preview}]"
        return base

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "data": {k: _preview(v) for k, v in self.data.items()},
        }
        if self.__cause__ is not None:
            out["cause"] = {
                "type": type(self.__cause__).__name__,
                "message": str(self.__cause__),
            }
        return out


# ---------------------------------------------------------------------------
# Input / configuration
# ---------------------------------------------------------------------------


class InputError(BalancesError):
    """The accounts/tokens input is malformed or missing."""

    default_code = "invalid_input"
    default_stage = "input"


class InvalidAccountEncoding(InputError):
    """An account identifier could not be parsed into a 256-bit key."""

    default_code = "invalid_account_encoding"


class InvalidTokenEncoding(InputError):
    """A token identifier could not be parsed into a 256-bit key."""

    default_code = "invalid_token_encoding"


class ConfigError(BalancesError):
    default_code = "invalid_config"
    default_stage = "config"


# ---------------------------------------------------------------------------
# Storage log
# ---------------------------------------------------------------------------


class LogAccessError(BalancesError):
    """
    The storage log could not be opened or does not have the expected shape.
    """

    default_code = "log_access_failed"
    default_stage = "scan"


class ScanFailed(LogAccessError):
    """
    A scanner shard failed. Any shard failure aborts the whole run.
    """

    default_code = "scan_failed"

    def __init__(
        self,
        message: str = "",
        *,
        shard: int,
        shard_count: int,
        strategy: str,
        data: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = {"shard": shard, "shard_count": shard_count, "strategy": strategy}
        d.update(data or {})
        super().__init__(message, data=d)
        self.shard = shard
        self.shard_count = shard_count
        self.strategy = strategy


class ValueDecodeError(BalancesError):
    """A storage value could not be interpreted as a field element."""

    default_code = "value_decode_failed"
    default_stage = "aggregate"


# ---------------------------------------------------------------------------
# Pre-flight / output
# ---------------------------------------------------------------------------


class RpcError(BalancesError):
    """The JSON-RPC pre-flight could not talk to the node."""

    default_code = "rpc_failed"
    default_stage = "preflight"


class TokenNotDeployed(RpcError):
    """A requested token has no class hash at the latest block."""

    default_code = "token_not_deployed"


class OutputError(BalancesError):
    default_code = "output_failed"
    default_stage = "output"


def _preview(v: Any, limit: int = 96) -> Any:
    if v is None or isinstance(v, (bool, int, float)):
        return v
    s = v.hex() if isinstance(v, (bytes, bytearray)) else str(v)
    return s if len(s) <= limit else s[: limit - 3] + "..."


__all__ = [
    "BalancesError",
    "InputError",
    "InvalidAccountEncoding",
    "InvalidTokenEncoding",
    "ConfigError",
    "LogAccessError",
    "ScanFailed",
    "ValueDecodeError",
    "RpcError",
    "TokenNotDeployed",
    "OutputError",
]
