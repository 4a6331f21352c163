"""
balances.utils
--------------

Small stdlib-only helpers shared across the package:

- `felt` : parse/format 256-bit keys, big-endian BLOB codecs, value decoding
"""

from __future__ import annotations

from . import felt

__all__ = ["felt"]
