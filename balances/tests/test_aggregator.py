from __future__ import annotations

import itertools
import logging

import pytest

from balances.aggregator import (
    PartialBalances,
    aggregate,
    build_mapping,
    fold_observations,
    merge_partials,
)
from balances.constants import STARK_PRIME
from balances.types import Observation

T = 0xAAAA
U = 0xBBBB
SLOT_A, SLOT_B, SLOT_OTHER = 11, 22, 99
ACC_A, ACC_B = 0xA, 0xB
SLOTS = {SLOT_A: ACC_A, SLOT_B: ACC_B}


def be(v: int) -> bytes:
    return v.to_bytes(32, "big")


def obs(slot: int, value: object, version: int, contract: int = T) -> Observation:
    return Observation(contract, slot, be(value) if isinstance(value, int) else value, version)


# ---------------------------------------------------------------------------
# PartialBalances
# ---------------------------------------------------------------------------


def test_fold_keeps_highest_version() -> None:
    part = fold_observations([obs(SLOT_A, 1000, 100), obs(SLOT_A, 2000, 200), obs(SLOT_A, 5, 150)], SLOTS)
    assert part.winners[(T, SLOT_A)] == (200, be(2000))


def test_fold_drops_and_counts_slot_misses() -> None:
    part = fold_observations([obs(SLOT_OTHER, 1, 1), obs(SLOT_A, 2, 1), obs(SLOT_OTHER, 3, 2)], SLOTS)
    assert len(part) == 1
    assert part.slot_misses == 2


def test_merge_is_order_independent() -> None:
    shards = [
        [obs(SLOT_A, 1000, 100), obs(SLOT_B, 7, 300)],
        [obs(SLOT_A, 2000, 200)],
        [obs(SLOT_B, 8, 250), obs(SLOT_OTHER, 1, 1)],
        [],
    ]
    partials = [fold_observations(s, SLOTS) for s in shards]
    results = {
        tuple(sorted(merge_partials(p).winners.items())) for p in itertools.permutations(partials)
    }
    assert len(results) == 1
    merged = merge_partials(partials)
    assert merged.winners[(T, SLOT_A)] == (200, be(2000))
    assert merged.winners[(T, SLOT_B)] == (300, be(7))
    assert merged.slot_misses == 1


def test_merge_identity_and_associativity() -> None:
    a = fold_observations([obs(SLOT_A, 1, 1)], SLOTS)
    b = fold_observations([obs(SLOT_A, 2, 2)], SLOTS)
    c = fold_observations([obs(SLOT_B, 3, 3)], SLOTS)
    assert a.merge(PartialBalances()).winners == a.winners
    assert a.merge(b).merge(c).winners == a.merge(b.merge(c)).winners


def test_merge_leaves_operands_and_agrees_with_merge_partials() -> None:
    a = fold_observations([obs(SLOT_A, 1, 1), obs(SLOT_OTHER, 9, 9)], SLOTS)
    b = fold_observations([obs(SLOT_A, 2, 2)], SLOTS)
    before = dict(a.winners)
    merged = a.merge(b)
    assert a.winners == before and a.slot_misses == 1
    assert merged == merge_partials([a, b])
    assert merged.winners[(T, SLOT_A)][0] == 2
    assert merged.slot_misses == 1


def test_equal_versions_resolve_deterministically() -> None:
    x = obs(SLOT_A, 5, 100)
    y = obs(SLOT_A, 9, 100)
    assert fold_observations([x, y], SLOTS).winners == fold_observations([y, x], SLOTS).winners
    assert fold_observations([x, y], SLOTS).winners[(T, SLOT_A)] == (100, be(9))


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------


def test_every_token_is_seeded() -> None:
    mapping, stats = aggregate([T, U], SLOTS, [[]])
    assert mapping == {T: {}, U: {}}
    assert stats.winners == 0


def test_mapping_from_winners() -> None:
    mapping, stats = aggregate(
        [T, U],
        SLOTS,
        [[obs(SLOT_A, 1000, 100), obs(SLOT_B, 2000, 100)], [obs(SLOT_A, 2000, 200, contract=U)]],
    )
    assert mapping == {T: {ACC_A: 1000, ACC_B: 2000}, U: {ACC_A: 2000}}
    assert stats.decode_failures == 0


def test_winners_for_unrequested_contracts_are_ignored() -> None:
    mapping, stats = aggregate([T], SLOTS, [[obs(SLOT_A, 1, 1, contract=U)]])
    assert mapping == {T: {}}
    assert stats.foreign_contracts == 1


@pytest.mark.parametrize(
    "raw",
    [
        b"",
        b"\x01" * 33,
        be(STARK_PRIME),
        "not-hex",
        None,
    ],
)
def test_undecodable_value_becomes_zero(raw: object, caplog: pytest.LogCaptureFixture) -> None:
    merged = fold_observations([obs(SLOT_A, raw, 10), obs(SLOT_B, 42, 10)], SLOTS)
    with caplog.at_level(logging.WARNING, logger="balances.aggregator"):
        mapping, stats = build_mapping([T], SLOTS, merged)
    assert mapping == {T: {ACC_A: 0, ACC_B: 42}}
    assert stats.decode_failures == 1
    assert any("undecodable" in r.getMessage() for r in caplog.records)


def test_short_and_text_values_decode() -> None:
    mapping, _ = aggregate([T], SLOTS, [[obs(SLOT_A, b"\x03\xe8", 1), obs(SLOT_B, "0x7d0", 1)]])
    assert mapping == {T: {ACC_A: 1000, ACC_B: 2000}}


def test_newer_undecodable_value_still_wins() -> None:
    mapping, stats = aggregate([T], SLOTS, [[obs(SLOT_A, 1000, 100)], [obs(SLOT_A, b"\xff" * 40, 200)]])
    assert mapping == {T: {ACC_A: 0}}
    assert stats.decode_failures == 1
