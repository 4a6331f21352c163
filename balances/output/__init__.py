"""
Writers for the resolved balance mapping.

`write_results(mapping, config)` runs every writer enabled in `OutputConfig`
and returns the paths it wrote. Writers never mutate the mapping and emit rows
in sorted (token, account) order.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict

from ..config import OutputConfig
from ..errors import OutputError
from ..logging import get_logger
from ..types import BalanceMapping
from .csv_writer import write_csv
from .json_writer import write_json
from .rows import sorted_rows
from .sqlite_writer import write_sqlite

log = get_logger(__name__)


def write_results(mapping: BalanceMapping, config: OutputConfig) -> Dict[str, Path]:
    if not config.has_any_output():
        log.info("no output format selected; pass --csv, --json or --sqlite to write results")
        return {}

    try:
        Path(config.dir).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputError(f"cannot create output directory: {e}", data={"dir": str(config.dir)}) from e

    written: Dict[str, Path] = {}
    if config.csv:
        written["csv"] = write_csv(mapping, config.csv_path())
    if config.json:
        written["json"] = write_json(mapping, config.json_path())
    if config.sqlite:
        written["sqlite"] = write_sqlite(mapping, config.sqlite_path())
    for fmt, path in written.items():
        log.info("results written", extra={"format": fmt, "path": str(path)})
    return written


__all__ = ["write_results", "sorted_rows", "write_csv", "write_json", "write_sqlite"]
