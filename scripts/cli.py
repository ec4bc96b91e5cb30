#!/usr/bin/env python3
"""
Command line driver for the catalog importer.

Examples:
  PYTHONPATH=./src python scripts/cli.py init-db
  PYTHONPATH=./src python scripts/cli.py import catalog.json
"""
from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click
import orjson
import structlog

from Samplewatch.config import load_settings
from Samplewatch.db import dispose_engine, init_db
from Samplewatch.importer import ImporterError, load_catalog, run_catalog_import
from Samplewatch.logging import redact_settings, setup_logging

log = structlog.get_logger()


@click.group()
def cli() -> None:
    settings = load_settings()
    setup_logging(settings)
    log.debug("cli.settings", **redact_settings(settings))


@cli.command("init-db")
def init_db_command() -> None:
    """Create the catalog tables in the configured database."""

    async def _run() -> None:
        try:
            await init_db()
        finally:
            await dispose_engine()

    asyncio.run(_run())
    click.echo("tables created")


@cli.command("import")
@click.argument("catalog", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def import_command(catalog: Path) -> None:
    """Import CATALOG (a catalog JSON document) and print the pass report."""
    try:
        raw = load_catalog(catalog)
    except orjson.JSONDecodeError as exc:
        raise click.ClickException(f"{catalog}: not valid JSON ({exc})") from exc

    async def _run():
        try:
            await init_db()
            return await run_catalog_import(raw)
        finally:
            await dispose_engine()

    try:
        report = asyncio.run(_run())
    except ImporterError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(json.dumps(report.summary(), indent=2))
    if report.extraction_failure is not None:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
