from __future__ import annotations

from typing import Iterator, Tuple

from ..types import BalanceMapping


def sorted_rows(mapping: BalanceMapping) -> Iterator[Tuple[int, int, int]]:
    """(token, account, balance) in sorted (token, account) order."""
    for token in sorted(mapping):
        balances = mapping[token]
        for account in sorted(balances):
            yield token, account, balances[account]
