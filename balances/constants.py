"""
Balance snapshot constants.

This module centralizes:
- Starknet field parameters used to validate keys and decode storage values
- The storage variable name whose map selector addresses ERC20 balances
- Storage-log schema names (tables/columns of the node snapshot)
- Operational defaults mirrored by `balances.config`

Code that needs stable defaults can import from here; runs override the
operational knobs via `balances.config.ResolverConfig`.
"""

from __future__ import annotations

import os

# -----------------------------
# Starknet field
# -----------------------------
# Field prime of the Stark curve: every felt lies in [0, STARK_PRIME).
STARK_PRIME: int = 2**251 + 17 * 2**192 + 1

# Keys at the input boundary are accepted in the 256-bit domain.
MAX_KEY: int = 2**256 - 1

# Canonical on-disk width of keys and values in the storage log (big-endian).
FELT_BYTES: int = 32

# -----------------------------
# Balances storage variable
# -----------------------------
# Cairo ERC20 contracts store balances in `ERC20_balances: LegacyMap<felt, Uint256>`;
# the map selector is starknet_keccak of this name.
BALANCES_VAR_NAME: str = "ERC20_balances"

# -----------------------------
# Storage log schema
# -----------------------------
TABLE_CONTRACTS: str = "contract_addresses"
TABLE_STORAGE_KEYS: str = "storage_addresses"
TABLE_UPDATES: str = "storage_updates"

REQUIRED_TABLES = (TABLE_CONTRACTS, TABLE_STORAGE_KEYS, TABLE_UPDATES)

# -----------------------------
# Operational defaults
# -----------------------------
DEFAULT_WORKERS: int = os.cpu_count() or 1

# Below this many accounts hashing runs inline; above it fans out to a pool.
DEFAULT_HASH_PARALLEL_THRESHOLD: int = 4096

# Accounts per pool task when hashing in parallel.
DEFAULT_HASH_CHUNK: int = 2048

# SQLite busy timeout for read handles (seconds).
DEFAULT_DB_TIMEOUT_S: float = 30.0

# Output file names (relative to the output directory).
DEFAULT_CSV_NAME: str = "token_map.csv"
DEFAULT_JSON_NAME: str = "token_map.json"
DEFAULT_SQLITE_NAME: str = "token_map.db"

ENV_PREFIX: str = "BALANCES_"

__all__ = [
    "STARK_PRIME",
    "MAX_KEY",
    "FELT_BYTES",
    "BALANCES_VAR_NAME",
    "TABLE_CONTRACTS",
    "TABLE_STORAGE_KEYS",
    "TABLE_UPDATES",
    "REQUIRED_TABLES",
    "DEFAULT_WORKERS",
    "DEFAULT_HASH_PARALLEL_THRESHOLD",
    "DEFAULT_HASH_CHUNK",
    "DEFAULT_DB_TIMEOUT_S",
    "DEFAULT_CSV_NAME",
    "DEFAULT_JSON_NAME",
    "DEFAULT_SQLITE_NAME",
    "ENV_PREFIX",
]
