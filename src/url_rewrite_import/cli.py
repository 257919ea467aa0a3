"""url_rewrite_import.cli

Command-line entrypoint for URL-rewrite imports.

Usage (append):
    python -m url_rewrite_import.cli \\
        --db-dsn "$DB_DSN" \\
        --csv-path "exports/url_rewrites.csv" \\
        --behavior append

Usage (replace with a profile, rolled back):
    python -m url_rewrite_import.cli \\
        --db-dsn "$DB_DSN" \\
        --csv-path "exports/url_rewrites.csv" \\
        --config config/url_rewrite_import.yml \\
        --behavior replace \\
        --dry-run
"""

from __future__ import annotations

import csv
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

import click
import psycopg

from url_rewrite_import.bunch_source import CsvBunchSource
from url_rewrite_import.config import ImportProfile, load_profile
from url_rewrite_import.error_aggregator import VALID_STRATEGIES, ErrorAggregator
from url_rewrite_import.gateway import PsycopgGateway
from url_rewrite_import.shared import (
    ImportCounters,
    RejectWriter,
    build_import_report,
    write_run_report,
)
from url_rewrite_import.url_rewrite import (
    ENTITY_ID_COLUMN,
    UNIQUE_KEY_COLUMNS,
    VALID_BEHAVIORS,
    HeaderValidationError,
    ImportConfigError,
    UrlRewriteImport,
    validate_headers,
)


def _run_import(importer: UrlRewriteImport, conn: psycopg.Connection, dry_run: bool, run_id: str) -> None:
    if not dry_run:
        importer.import_data()
        return
    # Per-call transactions become savepoints inside this one.
    with conn.transaction(force_rollback=True):
        importer.import_data()
    click.echo(f"[{run_id}] [dry-run] All changes rolled back.")


@click.command()
@click.option("--db-dsn", required=True, envvar="DB_DSN", help="PostgreSQL DSN (or $DB_DSN)")
@click.option("--csv-path", required=True, type=click.Path(exists=True, dir_okay=False), help="Input CSV")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False), help="YAML import profile")
@click.option("--behavior", default=None, type=click.Choice(list(VALID_BEHAVIORS)), help="Import behavior [default: append]")
@click.option("--bunch-size", default=None, type=int, help="Rows per bunch [default: 100]")
@click.option("--validation-strategy", default=None, type=click.Choice(list(VALID_STRATEGIES)), help="Row error policy")
@click.option("--allowed-error-count", default=None, type=int, help="Errors tolerated before the run terminates [default: 10]")
@click.option("--table", default=None, help="Target table [default: url_rewrite]")
@click.option("--dry-run", is_flag=True, default=False)
@click.option(
    "--rejects-path",
    default="./artifacts/rejects/url_rewrite_rejects.csv",
    show_default=True,
)
@click.option("--run-id", default=None, help="Override UUID for log correlation")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    show_default=True,
)
def main(
    db_dsn: str,
    csv_path: str,
    config_path: str | None,
    behavior: str | None,
    bunch_size: int | None,
    validation_strategy: str | None,
    allowed_error_count: int | None,
    table: str | None,
    dry_run: bool,
    rejects_path: str,
    run_id: str | None,
    log_level: str,
) -> None:
    """Import URL rewrites from a CSV file."""
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_id = run_id or str(uuid.uuid4())
    started_at = datetime.now(timezone.utc).isoformat()

    try:
        base = load_profile(Path(config_path)) if config_path else ImportProfile()
        profile = base.with_overrides(
            behavior=behavior,
            bunch_size=bunch_size,
            validation_strategy=validation_strategy,
            allowed_error_count=allowed_error_count,
            table=table,
        )
    except ImportConfigError as e:
        click.echo(f"[{run_id}] FATAL: {e}", err=True)
        sys.exit(1)

    click.echo(f"[{run_id}] Starting {profile.behavior} run (dry_run={dry_run})")

    counters = ImportCounters()
    rejects = RejectWriter(Path(rejects_path))
    aggregator = ErrorAggregator(
        validation_strategy=profile.validation_strategy,
        allowed_error_count=profile.allowed_error_count,
    )
    try:
        source = CsvBunchSource(Path(csv_path), bunch_size=profile.bunch_size)
    except (UnicodeDecodeError, csv.Error) as e:
        click.echo(f"[{run_id}] FATAL: cannot read {csv_path}: {e}", err=True)
        sys.exit(1)

    try:
        validate_headers(source.fieldnames, aggregator)
    except HeaderValidationError as e:
        source.close()
        click.echo(f"[{run_id}] FATAL: bad header in {csv_path}: {e}", err=True)
        sys.exit(1)

    try:
        conn = psycopg.connect(db_dsn, autocommit=True)
    except psycopg.Error as e:
        source.close()
        click.echo(f"[{run_id}] FATAL: cannot connect: {e}", err=True)
        sys.exit(1)

    importer = UrlRewriteImport(
        source=source,
        gateway=PsycopgGateway(
            conn, key_column=ENTITY_ID_COLUMN, unique_columns=UNIQUE_KEY_COLUMNS,
        ),
        error_aggregator=aggregator,
        behavior=profile.behavior,
        table=profile.table,
        rejects=rejects,
        counters=counters,
    )
    try:
        _run_import(importer, conn, dry_run, run_id)
    except psycopg.Error as e:
        click.echo(f"[{run_id}] FATAL: run failed with DB error: {e}", err=True)
        sys.exit(1)
    except (UnicodeDecodeError, csv.Error) as e:
        click.echo(f"[{run_id}] FATAL: cannot read {csv_path}: {e}", err=True)
        sys.exit(1)
    finally:
        conn.close()
        source.close()
        rejects.close()

    errors_by_code = aggregator.errors_by_code()
    click.echo(build_import_report(counters, profile.behavior, errors_by_code, dry_run=dry_run))
    report_path = write_run_report(
        run_id, started_at, profile.behavior, dry_run,
        {"csv_path": csv_path, "rejects_path": rejects_path},
        counters, errors_by_code,
    )
    click.echo(f"[{run_id}] Run report: {report_path}")

    if aggregator.has_to_be_terminated():
        click.echo(
            f"[{run_id}] Error limit reached ({aggregator.get_errors_count()} error(s), "
            f"allowed {aggregator.allowed_error_count}); remaining rows were skipped.",
            err=True,
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
