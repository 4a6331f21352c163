"""
balance-snapshot - resolve ERC20 balances from a Starknet storage-log snapshot.

Examples:
  balance-snapshot resolve --db storage.db --input addresses.json --csv
  balance-snapshot resolve --db storage.db --input addresses.json \\
      --strategy per-token --workers 8 --json --output-dir out/
  balance-snapshot selector ERC20_balances
  balance-snapshot slot 0x0123...

Every `resolve` option can also come from a config file (--config, JSON or
YAML) or from BALANCES_* environment variables; flags win over the file, the
file wins over the environment.

Exit codes: 0 success, 2 bad input or configuration, 1 run failure.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from .. import logging as blog
from ..config import AppConfig
from ..constants import BALANCES_VAR_NAME
from ..errors import BalancesError, ConfigError, InputError
from ..hasher import MapSelector, derive_slot
from ..inputs import load_addresses
from ..output import write_results
from ..resolver import resolve_balances
from ..rpc import check_tokens_deployed
from ..utils.felt import parse_key, to_hex
from ..version import __version__

app = typer.Typer(
    name="balance-snapshot",
    help="Resolve ERC20 token balances from a Starknet storage-log snapshot.",
    no_args_is_help=True,
    add_completion=False,
)

log = blog.get_logger("balances.cli")

EXIT_RUN_FAILED = 1
EXIT_BAD_INPUT = 2


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"balance-snapshot {__version__}")
        raise typer.Exit(0)


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    pass


def _fail(e: BalancesError) -> None:
    code = EXIT_BAD_INPUT if isinstance(e, (InputError, ConfigError)) else EXIT_RUN_FAILED
    log.error("run failed", extra={"error": e.to_dict()})
    typer.echo(f"error [{e.stage}]: {e}", err=True)
    raise typer.Exit(code)


@app.command("resolve")
def cmd_resolve(
    db: Optional[Path] = typer.Option(None, "--db", help="Storage-log SQLite snapshot."),
    input_file: Optional[Path] = typer.Option(
        None, "--input", "-i", help="JSON file with 'accounts' and 'tokens' hex lists."
    ),
    csv: bool = typer.Option(False, "--csv", help="Write token_map.csv."),
    json_out: bool = typer.Option(False, "--json", help="Write token_map.json."),
    sqlite: bool = typer.Option(False, "--sqlite", help="Write token_map.db."),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Directory for outputs."),
    strategy: Optional[str] = typer.Option(
        None, "--strategy", help="Scan strategy: key-range, per-token or grouped."
    ),
    shards: Optional[int] = typer.Option(None, "--shards", help="Key-range shard count."),
    workers: Optional[int] = typer.Option(None, "--workers", help="Scanner pool size."),
    rpc_url: Optional[str] = typer.Option(
        None, "--rpc-url", help="Starknet JSON-RPC endpoint for the token deployment check."
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file (JSON or YAML)."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
    log_format: Optional[str] = typer.Option(None, "--log-format", help="json or text."),
) -> None:
    """
    Resolve the latest balance of every account for every token.
    """
    as_json = None if log_format is None else log_format.strip().lower() == "json"
    blog.configure(json=as_json, level=log_level, stream=sys.stderr)

    overrides: Dict[str, Any] = {
        "db_path": str(db) if db is not None else None,
        "input_file": str(input_file) if input_file is not None else None,
        "rpc_url": rpc_url,
        "resolver": {"strategy": strategy, "shards": shards, "workers": workers},
        # flags only switch formats on; absent flags leave file/env choices alone
        "output": {
            "csv": True if csv else None,
            "json": True if json_out else None,
            "sqlite": True if sqlite else None,
            "dir": str(output_dir) if output_dir is not None else None,
        },
    }

    try:
        cfg = AppConfig.load(config, overrides=overrides)
        if cfg.db_path is None:
            raise ConfigError("no storage log given (use --db or BALANCES_DB_PATH)")
        if cfg.input_file is None:
            raise ConfigError("no input file given (use --input or BALANCES_INPUT_FILE)")

        addresses = load_addresses(cfg.input_file)
        if cfg.rpc_url:
            check_tokens_deployed(cfg.rpc_url, addresses.tokens, timeout=cfg.rpc_timeout_s)

        result = resolve_balances(
            cfg.db_path, addresses.accounts, addresses.tokens, config=cfg.resolver
        )
        written = write_results(result.mapping, cfg.output)
    except BalancesError as e:
        _fail(e)
        return

    stats = result.stats
    typer.echo(
        f"resolved {stats.balances} balances for {stats.tokens} tokens "
        f"({stats.accounts} accounts, {stats.shards} shards, {stats.decode_failures} decode failures)"
    )
    for fmt, path in written.items():
        typer.echo(f"{fmt}: {path}")


@app.command("selector")
def cmd_selector(
    name: str = typer.Argument(BALANCES_VAR_NAME, help="Storage variable name."),
) -> None:
    """Print the map selector (starknet_keccak) of a storage variable."""
    typer.echo(to_hex(MapSelector.from_name(name).value))


@app.command("slot")
def cmd_slot(
    account: str = typer.Argument(..., help="Account address (hex)."),
    name: str = typer.Option(BALANCES_VAR_NAME, "--name", help="Storage variable name."),
) -> None:
    """Print the storage slot holding an account's balance."""
    try:
        key = parse_key(account)
    except ValueError as e:
        typer.echo(f"error [input]: invalid account encoding: {e}", err=True)
        raise typer.Exit(EXIT_BAD_INPUT)
    typer.echo(to_hex(derive_slot(MapSelector.from_name(name), key)))


def main() -> None:  # pragma: no cover
    try:
        app(prog_name="balance-snapshot")
    except KeyboardInterrupt:
        typer.echo("", err=True)
        sys.exit(130)


if __name__ == "__main__":  # pragma: no cover
    main()
