"""
Version helpers for the balance snapshot package.

Resolution order:
1) importlib.metadata (if the distribution is installed),
2) BALANCES_VERSION environment override,
3) the static BASE_VERSION below.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

# Bump this when making intentional, source-level releases.
BASE_VERSION = "0.3.0"

_DIST_NAME = "balance-snapshot"


@lru_cache(maxsize=1)
def get_version() -> str:
    try:
        return _pkg_version(_DIST_NAME)
    except PackageNotFoundError:
        pass
    return os.environ.get("BALANCES_VERSION") or BASE_VERSION


__version__ = get_version()

__all__ = ["__version__", "get_version", "BASE_VERSION"]
