from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest
from prometheus_client import CollectorRegistry

from balances.hasher import MapSelector
from balances.metrics import BalancesMetrics

from .helpers import LogBuilder


@pytest.fixture(autouse=True)
def _restore_root_logging() -> Iterator[None]:
    # CLI tests point the root handler at CliRunner's stream; put things back.
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture(scope="session")
def selector() -> MapSelector:
    return MapSelector.from_name()


@pytest.fixture
def storage_log(tmp_path: Path, selector: MapSelector) -> Iterator[LogBuilder]:
    b = LogBuilder(tmp_path / "storage.db", selector)
    try:
        yield b
    finally:
        b.close()


@pytest.fixture
def metrics() -> BalancesMetrics:
    return BalancesMetrics(registry=CollectorRegistry())
