from __future__ import annotations

import subprocess
import sys
from datetime import datetime, timezone
from pathlib import Path

import typer
from dateutil import parser as dt_parser
from rich import print

from mail2line.config import (
    KEY_LAST_PROCESSED_TIME,
    OPTIONAL_KEYS,
    REQUIRED_KEYS,
    SECRET_KEYS,
    ConfigStore,
    Settings,
    mask_secret,
)
from mail2line.core.db import PropertyRepository
from mail2line.exceptions import ConfigError, Mail2LineError, RunAbortedError
from mail2line.main import process_emails
from mail2line.services import run_doctor_checks
from mail2line.sources.email_gmail import GmailAuthManager

app = typer.Typer(no_args_is_help=True, help="mail2line: email todos pushed to a LINE group")
config_app = typer.Typer(no_args_is_help=True, help="Inspect and edit stored configuration")
app.add_typer(config_app, name="config")


def _load_settings(base_dir: Path | None = None) -> Settings:
    settings = Settings.load(base_dir=base_dir)
    settings.ensure_directories()
    return settings


def _parse_since(value: str) -> int:
    parsed = dt_parser.parse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


@app.command("init")
def init_command(
    base_dir: Path | None = typer.Option(None, help="Project root (defaults to the current directory)"),
) -> None:
    settings = _load_settings(base_dir=base_dir)
    with PropertyRepository(settings.db_path) as repository:
        executed = repository.migrate()
        if repository.get(KEY_LAST_PROCESSED_TIME) is None:
            repository.set(KEY_LAST_PROCESSED_TIME, str(_now_ms()))
            print("Watermark initialised to now; older mail will not be processed")
    print(f"[green]Initialised[/green]. DB: {settings.db_path}")
    print(f"Migrations: {executed if executed else 'none pending'}")


@app.command("auth")
def auth_command() -> None:
    settings = _load_settings()
    manager = GmailAuthManager(settings.gmail_client_secret_path, settings.gmail_token_path)
    try:
        manager.ensure_credentials(interactive=True)
    except Mail2LineError as exc:
        print(f"[red]Gmail OAuth error[/red]: {exc}")
        raise typer.Exit(1) from exc
    print(f"[green]Gmail OAuth OK[/green]: {settings.gmail_token_path}")


@app.command("run")
def run_command() -> None:
    try:
        summary = process_emails(_load_settings())
    except RunAbortedError as exc:
        print(f"[red]Run aborted[/red]: {exc}")
        raise typer.Exit(1) from exc

    colour = "green" if summary.success else "yellow"
    print(f"[{colour}]Run finished[/{colour}]. correlation_id={summary.correlation_id}")
    for key, value in summary.as_dict().items():
        print(f"- {key}: {value}")


@app.command("doctor")
def doctor_command() -> None:
    settings = _load_settings()
    checks = run_doctor_checks(settings)

    print("Doctor results:")
    for check in checks:
        status = check["status"].upper()
        print(f"- [{status}] {check['check']}: {check['detail']}")


@app.command("tests")
def tests_command() -> None:
    result = subprocess.run([sys.executable, "-m", "pytest", "-q"], check=False)
    if result.returncode != 0:
        raise typer.Exit(result.returncode)
    print("[green]Tests passed[/green]")


@config_app.command("set")
def config_set_command(key: str, value: str) -> None:
    settings = _load_settings()
    with PropertyRepository(settings.db_path) as repository:
        repository.migrate()
        try:
            ConfigStore(repository).set_value(key, value)
        except ConfigError as exc:
            raise typer.BadParameter(str(exc)) from exc
    shown = mask_secret(value) if key in SECRET_KEYS else value
    print(f"[green]Saved[/green] {key}={shown}")


@config_app.command("unset")
def config_unset_command(key: str) -> None:
    """Remove a stored key, e.g. to fall back to an optional default."""
    settings = _load_settings()
    with PropertyRepository(settings.db_path) as repository:
        repository.migrate()
        try:
            removed = ConfigStore(repository).unset_value(key)
        except ConfigError as exc:
            raise typer.BadParameter(str(exc)) from exc
    if removed:
        print(f"[green]Removed[/green] {key}")
    else:
        print(f"[yellow]Not set[/yellow]: {key}")


@config_app.command("show")
def config_show_command() -> None:
    settings = _load_settings()
    with PropertyRepository(settings.db_path) as repository:
        repository.migrate()
        stored = repository.items()

    for key in REQUIRED_KEYS + OPTIONAL_KEYS:
        value = stored.get(key)
        if value is None:
            marker = "[red]missing[/red]" if key in REQUIRED_KEYS else "[dim]default[/dim]"
            print(f"- {key}: {marker}")
        else:
            print(f"- {key}: {mask_secret(value) if key in SECRET_KEYS else value}")


@config_app.command("watermark")
def config_watermark_command(
    since: str = typer.Argument(..., help="Date/time after which mail counts as new"),
) -> None:
    """Reset the watermark, e.g. to reprocess mail after an outage."""
    try:
        timestamp_ms = _parse_since(since)
    except (ValueError, OverflowError) as exc:
        raise typer.BadParameter(f"Cannot parse date: {since}") from exc

    settings = _load_settings()
    with PropertyRepository(settings.db_path) as repository:
        repository.migrate()
        # Operator override: may move the watermark backwards.
        repository.set(KEY_LAST_PROCESSED_TIME, str(timestamp_ms))
    print(f"[green]Watermark set[/green] to {timestamp_ms}")


if __name__ == "__main__":
    app()
