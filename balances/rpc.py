"""
Token deployment pre-flight over Starknet JSON-RPC.

Before scanning, each token can be checked with `starknet_getClassHashAt` at
the latest block. An RPC error for a token means it is not deployed and aborts
the run; transport problems raise RpcError.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import httpx

from .errors import RpcError, TokenNotDeployed
from .logging import get_logger
from .types import TokenKey
from .utils.felt import to_hex

log = get_logger(__name__)

DEFAULT_TIMEOUT_S = 10.0

# RpcError code for a well-formed JSON-RPC error answer (as opposed to transport failures).
RPC_ERROR_RESPONSE = "rpc_error_response"


def rpc_call(
    client: httpx.Client,
    rpc_url: str,
    method: str,
    params: Optional[List[Any]] = None,
    *,
    req_id: int = 1,
) -> Any:
    """
    One JSON-RPC 2.0 request. Returns `result`; a JSON-RPC `error` object is
    raised as RpcError carrying its code and message.
    """
    payload: Dict[str, Any] = {"jsonrpc": "2.0", "id": req_id, "method": method, "params": params or []}
    try:
        response = client.post(rpc_url, json=payload)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as e:
        raise RpcError(f"{method} failed: {e}", data={"url": rpc_url}) from e
    except ValueError as e:
        raise RpcError(f"{method} returned a non-JSON body", data={"url": rpc_url}) from e
    if not isinstance(data, dict):
        raise RpcError(f"{method} returned a malformed response", data={"url": rpc_url})
    if data.get("error") is not None:
        err = data["error"]
        code = err.get("code") if isinstance(err, dict) else None
        msg = err.get("message") if isinstance(err, dict) else str(err)
        raise RpcError(
            f"{method}: {msg}",
            code=RPC_ERROR_RESPONSE,
            data={"rpc_code": code, "url": rpc_url},
        )
    return data.get("result")


def check_tokens_deployed(
    rpc_url: str,
    tokens: Sequence[TokenKey],
    *,
    timeout: float = DEFAULT_TIMEOUT_S,
    client: Optional[httpx.Client] = None,
) -> Dict[TokenKey, str]:
    """
    Return token -> class hash for every token, stopping at the first token
    that is not deployed (TokenNotDeployed).
    """
    owned = client is None
    http = client or httpx.Client(timeout=timeout)
    out: Dict[TokenKey, str] = {}
    try:
        for i, token in enumerate(tokens, start=1):
            token_hex = to_hex(token)
            try:
                class_hash = rpc_call(
                    http, rpc_url, "starknet_getClassHashAt", ["latest", token_hex], req_id=i
                )
            except RpcError as e:
                if e.code != RPC_ERROR_RESPONSE:
                    raise
                raise TokenNotDeployed(
                    f"token {token_hex} is not deployed", data={"token": token_hex, **e.data}
                ) from e
            out[token] = str(class_hash)
            log.info("token deployed", extra={"token": token_hex, "class_hash": str(class_hash)})
    finally:
        if owned:
            http.close()
    return out


__all__ = ["rpc_call", "check_tokens_deployed"]
