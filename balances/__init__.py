"""
Starknet ERC20 balance snapshot package.

Resolves the current balances of a set of token contracts for a set of
accounts straight from a local SQLite snapshot of node contract storage:

- storage slot derivation (`balances.hasher`),
- partitioned scans of the storage log (`balances.scanner`),
- latest-version-wins merge of shard results (`balances.aggregator`),
- orchestration (`balances.resolver`) and output writers (`balances.output`).

Only light, stable exports are surfaced here to avoid import cycles.
"""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__"]
