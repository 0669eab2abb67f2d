# src/columncrypt/cli.py
"""columncrypt Command Line Interface.

Entry point for the columncrypt CLI tool. An external scheduler (cron,
systemd timer, Kubernetes CronJob) invokes ``columncrypt run`` once per
period; each invocation is one full pass over the configured tables.
"""

from __future__ import annotations

import json
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from dotenv import load_dotenv

from columncrypt import __version__
from columncrypt.contracts import ColumnCryptError, ConfigError, CryptoError
from columncrypt.core.config import load_settings
from columncrypt.core.logging import configure_logging

if TYPE_CHECKING:
    from columncrypt.contracts import RunResult
    from columncrypt.core.config import ColumnCryptSettings

__all__ = [
    "app",
]

# Exit codes: 1 = could not start, 2 = ran but at least one table aborted
EXIT_STARTUP_ERROR = 1
EXIT_TABLES_ABORTED = 2


class OutputFormat(StrEnum):
    CONSOLE = "console"
    JSON = "json"


app = typer.Typer(
    name="columncrypt",
    help="columncrypt: resumable in-place encryption of database columns.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"columncrypt version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Read ENCRYPTION_KEY, ENCRYPTION_IV and DATABASE_URL from this file instead of a discovered .env.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Use only the process environment.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log every batch (DEBUG).",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit JSON log lines for log shippers.",
    ),
) -> None:
    """columncrypt: resumable in-place encryption of database columns."""
    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")

    if no_dotenv:
        return
    if env_file is not None and not env_file.exists():
        typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_STARTUP_ERROR)
    # Existing environment variables win over the file
    load_dotenv(env_file, override=False)


def _settings_option() -> Any:
    return typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    )


def _load_settings_or_exit(settings: str) -> ColumnCryptSettings:
    settings_path = Path(settings).expanduser()
    try:
        return load_settings(settings_path)
    except ConfigError as e:
        typer.secho(f"Configuration error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_STARTUP_ERROR) from None


def _run_result_to_dict(result: RunResult) -> dict[str, Any]:
    return {
        "run_id": result.run_id,
        "started_at": result.started_at.isoformat(),
        "finished_at": result.finished_at.isoformat() if result.finished_at else None,
        "skipped": result.skipped,
        "error": result.error,
        "tables": [
            {
                "table": t.table_name,
                "status": t.status.value,
                "rows_scanned": t.rows_scanned,
                "rows_updated": t.rows_updated,
                "values_encrypted": t.values_encrypted,
                "batches": t.batches,
                "checkpoint": t.checkpoint.describe(),
                "error": t.error,
            }
            for t in result.tables
        ],
    }


@app.command()
def run(
    settings: str = _settings_option(),
    output_format: OutputFormat = typer.Option(
        OutputFormat.CONSOLE,
        "--format",
        "-f",
        help="Output format: 'console' (human-readable) or 'json' (structured JSON).",
    ),
) -> None:
    """Run one encryption pass over every configured table.

    Resumes each table from its checkpoint. Exits 2 if any table aborted.
    """
    from columncrypt.engine import build_pipeline

    config = _load_settings_or_exit(settings)

    try:
        driver = build_pipeline(config)
    except ColumnCryptError as e:
        typer.secho(f"Error: cannot start pipeline: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_STARTUP_ERROR) from None

    try:
        result = driver.run_once()
    finally:
        driver.close()

    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps(_run_result_to_dict(result)))
    else:
        for table in result.tables:
            if table.completed:
                typer.echo(
                    f"  {table.table_name}: completed "
                    f"({table.rows_updated} rows updated in {table.batches} batches)"
                )
            else:
                typer.secho(
                    f"  {table.table_name}: aborted at {table.checkpoint.describe()}: {table.error}",
                    fg=typer.colors.RED,
                )
        typer.echo(f"Run {result.run_id}: {result.tables_completed} completed, {result.tables_aborted} aborted")

    if result.error is not None:
        raise typer.Exit(EXIT_STARTUP_ERROR)
    if result.tables_aborted:
        raise typer.Exit(EXIT_TABLES_ABORTED)


@app.command()
def encrypt(
    value: str = typer.Argument(..., help="Plaintext to encrypt."),
    settings: str = _settings_option(),
) -> None:
    """Encrypt a single value with the configured key."""
    from columncrypt.core.cipher import Cipher

    config = _load_settings_or_exit(settings)
    typer.echo(Cipher.from_settings(config.encryption).encrypt(value))


@app.command()
def decrypt(
    value: str = typer.Argument(..., help="Base64 ciphertext to decrypt."),
    settings: str = _settings_option(),
) -> None:
    """Decrypt a single value with the configured key."""
    from columncrypt.core.cipher import Cipher

    config = _load_settings_or_exit(settings)
    try:
        typer.echo(Cipher.from_settings(config.encryption).decrypt(value))
    except CryptoError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_STARTUP_ERROR) from None


@app.command()
def checkpoints(
    settings: str = _settings_option(),
) -> None:
    """List tables with an unfinished encryption pass. Read-only."""
    from columncrypt.core.checkpoint import checkpoints_loads

    config = _load_settings_or_exit(settings)
    path = config.checkpoint.path
    if not path.exists():
        typer.echo("No pending checkpoints.")
        return

    try:
        pending = checkpoints_loads(path.read_text(encoding="utf-8"))
    except (OSError, ColumnCryptError) as e:
        typer.secho(f"Error: cannot read checkpoint file {path}: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(EXIT_STARTUP_ERROR) from None

    if not pending:
        typer.echo("No pending checkpoints.")
        return
    for table_name in sorted(pending):
        typer.echo(f"  {table_name}: resumes after {pending[table_name].describe()}")


@app.command()
def validate(
    settings: str = _settings_option(),
) -> None:
    """Validate settings and table configuration without touching the database."""
    from columncrypt.core.tables import default_table_configs, parse_table_configs

    config = _load_settings_or_exit(settings)

    tables_path = config.tables.path
    if tables_path.exists():
        try:
            data = json.loads(tables_path.read_text(encoding="utf-8"))
            table_configs = parse_table_configs(data, source=str(tables_path))
        except (OSError, json.JSONDecodeError, ConfigError) as e:
            typer.secho(f"Table configuration error: {e}", fg=typer.colors.RED, err=True)
            raise typer.Exit(EXIT_STARTUP_ERROR) from None
    else:
        typer.echo(f"Table config {tables_path} not found; defaults will be written on first run.")
        table_configs = default_table_configs()

    typer.echo("Configuration valid.")
    typer.echo(f"  Database: {config.database.url.split('://', 1)[0]}")
    typer.echo(f"  Batch size: {config.batch_size}")
    typer.echo(f"  Table config: {tables_path}")
    for name, table in table_configs.items():
        typer.echo(f"  {name}: key {table.primary_key}, columns {', '.join(table.columns_to_encrypt)}")


if __name__ == "__main__":
    app()
