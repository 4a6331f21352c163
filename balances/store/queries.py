"""
Parameterized query templates for the storage log.

The shape of every statement is fixed: the contract-id membership list is
bound as a single JSON array parameter and expanded with `json_each`, so the
SQL text never depends on how many tokens were requested.

`MAX(block_number)` with bare columns makes SQLite return `storage_value` from
the row holding the maximum, i.e. the latest write per (contract, slot) within
the scanned partition.
"""

from __future__ import annotations

from ..constants import TABLE_CONTRACTS, TABLE_STORAGE_KEYS, TABLE_UPDATES

CONTRACT_ID_BY_ADDRESS = f"SELECT id FROM {TABLE_CONTRACTS} WHERE contract_address = ?"

TABLES_PRESENT = "SELECT name FROM sqlite_master WHERE type = 'table' AND name IN (?, ?, ?)"

_SCAN_HEAD = f"""
SELECT
    ca.contract_address,
    sa.storage_address,
    su.storage_value,
    MAX(su.block_number)
FROM
    {TABLE_UPDATES} su
    JOIN {TABLE_CONTRACTS} ca ON ca.id = su.contract_address_id
    JOIN {TABLE_STORAGE_KEYS} sa ON sa.id = su.storage_address_id
WHERE
    su.contract_address_id IN (SELECT value FROM json_each(?))
"""

_SCAN_TAIL = """
GROUP BY
    su.contract_address_id, su.storage_address_id
"""

# params: (contract_ids_json,)
SCAN_LATEST = _SCAN_HEAD + _SCAN_TAIL

# params: (contract_ids_json, shard_count, shard_index)
SCAN_LATEST_ROW_SHARD = _SCAN_HEAD + "    AND su.id % ? = ?\n" + _SCAN_TAIL

__all__ = [
    "CONTRACT_ID_BY_ADDRESS",
    "TABLES_PRESENT",
    "SCAN_LATEST",
    "SCAN_LATEST_ROW_SHARD",
]
