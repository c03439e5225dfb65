"""CLI entry point for LearnLedger."""

from __future__ import annotations

import sys
from pathlib import Path

import click
import uvicorn

from learnledger.config import ConfigError, Settings, load_settings
from learnledger.logging import setup_logging
from learnledger.payments import PaymentProcessor
from learnledger.store import Database, InternalError


def _load(config_path: Path | None) -> Settings:
    try:
        return load_settings(config_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)


config_option = click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to learnledger.yaml (default: $LEARNLEDGER_CONFIG or ./learnledger.yaml)",
)


@click.group()
@click.version_option(package_name="learnledger")
def main() -> None:
    """LearnLedger - enrollments, payments and course access."""
    pass


@main.command()
@config_option
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address")
@click.option("--port", type=int, default=8000, show_default=True, help="Bind port")
def serve(config_path: Path | None, host: str, port: int) -> None:
    """Run the REST API."""
    from learnledger.api.app import create_app  # noqa: PLC0415

    settings = _load(config_path)
    setup_logging()
    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)


@main.command("init-db")
@config_option
def init_db(config_path: Path | None) -> None:
    """Create the database tables."""
    settings = _load(config_path)
    db = Database(settings.db_path)
    try:
        db.create_tables()
    finally:
        db.close()
    click.echo(f"Database ready: {settings.db_path}")


@main.command("expire-payments")
@config_option
def expire_payments(config_path: Path | None) -> None:
    """Cancel pending payments past their expiry date."""
    settings = _load(config_path)
    setup_logging(console=False)
    db = Database(settings.db_path)
    try:
        db.create_tables()
        expired = PaymentProcessor(db, currency=settings.currency).expire_stale_payments()
    except InternalError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        db.close()
    click.echo(f"Cancelled {expired} stale payment(s)")
