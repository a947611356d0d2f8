from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from drivemirror.config import DEFAULT_CONFIG_PATH, load_config
from drivemirror.errors import DriveMirrorError, user_message
from drivemirror.logging_setup import setup_logging
from drivemirror.manager import DriveMirror, Principal
from drivemirror.models import SyncReport

app = typer.Typer(add_completion=False)
console = Console()

# Rows created from the command line are owned by this id unless overridden.
DEFAULT_OPERATOR_ID = "cli"


def _open_mirror(config: Path, operator: Optional[str]) -> DriveMirror:
    cfg = load_config(config)
    setup_logging(cfg.logging.level, cfg.logging.file)
    principal = Principal(id=operator or os.environ.get("DRIVEMIRROR_OPERATOR", DEFAULT_OPERATOR_ID))
    return DriveMirror(cfg, principal_provider=lambda: principal)


def _print_report(report: SyncReport) -> None:
    table = Table(title=f"{report.kind} sync")
    table.add_column("Outcome")
    table.add_column("Count", justify="right")
    for key, value in report.summary.items():
        table.add_row(key, str(value))
    console.print(table)
    for failure in report.failures:
        console.print(f"[red]{failure['item_id']}[/red] {failure['error_type']}: {failure['error_message']}")


@app.command()
def sync(
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config"),
    operator: Optional[str] = typer.Option(None, "--operator", help="Owner id for created rows"),
):
    """Full sync of the whole Drive tree into the mirror."""
    mirror = _open_mirror(config, operator)
    try:
        report = mirror.sync_drive()
    except DriveMirrorError as e:
        console.print(f"[red]Sync failed:[/red] {user_message(e)} ({e})")
        raise typer.Exit(code=1)
    finally:
        mirror.close()
    _print_report(report)
    if report.summary.get("failed"):
        raise typer.Exit(code=2)


@app.command("quick-sync")
def quick_sync(
    google_id: str = typer.Argument(..., help="Remote id of a mirrored folder"),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config"),
    operator: Optional[str] = typer.Option(None, "--operator"),
):
    """Fold recent Drive changes of one folder into the mirror."""
    mirror = _open_mirror(config, operator)
    try:
        report = mirror.quick_sync(google_id)
    except DriveMirrorError as e:
        console.print(f"[red]Quick sync failed:[/red] {user_message(e)} ({e})")
        raise typer.Exit(code=1)
    finally:
        mirror.close()
    _print_report(report)


@app.command("repair-roots")
def repair_roots(
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config"),
    operator: Optional[str] = typer.Option(None, "--operator"),
):
    """Merge duplicate root folder rows into the oldest one."""
    mirror = _open_mirror(config, operator)
    try:
        removed = mirror.repair_duplicate_roots()
    finally:
        mirror.close()
    print(json.dumps({"ok": True, "removed": removed}, indent=2))


@app.command("config-show")
def config_show(config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config")):
    """Show the effective configuration."""
    cfg = load_config(config)
    print(json.dumps(cfg.model_dump(), ensure_ascii=False, indent=2))


@app.command()
def serve(config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config")):
    """Run the HTTP API."""
    from drivemirror.web.main import main as web_main

    web_main(config)


def main():
    app()


if __name__ == "__main__":
    main()
