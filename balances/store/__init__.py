"""
Read-only access to the node's storage log (SQLite snapshot).

- `queries` : the fixed set of parameterized SQL templates
- `sqlite`  : connection opening, schema check, contract-id lookups, scans
"""

from __future__ import annotations

from .sqlite import StorageLog, open_storage_log

__all__ = ["StorageLog", "open_storage_log"]
