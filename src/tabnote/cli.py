"""Command line interface for tabnote."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tabnote.config import AppConfig
from tabnote.errors import InvalidOperation, IoFailure, NotFound
from tabnote.models import SearchQuery
from tabnote.search.engine import MAX_HIGHLIGHTS, highlight_spans, replace_all
from tabnote.session.documents import DocumentSet
from tabnote.storage.autosave import AutosavePolicy
from tabnote.storage.settings import AppSettings, SettingsStore, resolve_field_name
from tabnote.storage.writer import read_text, write_atomic
from tabnote.utils.text import context_snippet, line_column

console = Console()
app = typer.Typer(help="tabnote - multi-document text editing core")
settings_app = typer.Typer(help="Inspect and change persisted settings.")
autosave_app = typer.Typer(help="Manage autosave recovery snapshots.")
app.add_typer(settings_app, name="settings")
app.add_typer(autosave_app, name="autosave")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _config(data_dir: Optional[Path]) -> AppConfig:
    return AppConfig(data_dir=data_dir)


def _read_or_fail(path: Path) -> str:
    try:
        return read_text(path)
    except NotFound as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command()
def find(
    pattern: str = typer.Argument(..., help="Text to search for"),
    file: Path = typer.Argument(..., help="File to search", resolve_path=True),
    case_sensitive: bool = typer.Option(False, "--case-sensitive", "-c", help="Match case"),
    whole_word: bool = typer.Option(False, "--whole-word", "-w", help="Match whole words only"),
    limit: int = typer.Option(MAX_HIGHLIGHTS, help="Maximum number of matches to list"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """List the matches of PATTERN in FILE."""
    _setup_logging(verbose)
    if not pattern:
        raise typer.BadParameter("Pattern must not be empty")

    text = _read_or_fail(file)
    query = SearchQuery(pattern, case_sensitive=case_sensitive, whole_word=whole_word)
    spans = highlight_spans(text, query, limit=limit)
    if not spans:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Offset")
    table.add_column("Line")
    table.add_column("Column")
    table.add_column("Context")

    for span in spans:
        line, column = line_column(text, span.start)
        snippet = escape(context_snippet(text, span.start, span.length))
        table.add_row(str(span.start), str(line), str(column), snippet)

    console.print(table)
    console.print(f"{len(spans)} match(es) in [bold]{file}[/bold]")


@app.command()
def replace(
    pattern: str = typer.Argument(..., help="Text to replace"),
    replacement: str = typer.Argument(..., help="Replacement text"),
    file: Path = typer.Argument(..., help="File to rewrite", resolve_path=True),
    case_sensitive: bool = typer.Option(False, "--case-sensitive", "-c", help="Match case"),
    whole_word: bool = typer.Option(False, "--whole-word", "-w", help="Match whole words only"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Count matches without writing"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Replace every match of PATTERN in FILE and save it atomically."""
    _setup_logging(verbose)
    if not pattern:
        raise typer.BadParameter("Pattern must not be empty")

    text = _read_or_fail(file)
    query = SearchQuery(pattern, case_sensitive=case_sensitive, whole_word=whole_word)
    new_text, count = replace_all(text, query, replacement)
    if count == 0:
        console.print("[yellow]No matches found.[/yellow]")
        return

    if dry_run:
        console.print(f"Would replace {count} occurrence(s) in [bold]{file}[/bold]")
        return

    try:
        write_atomic(file, new_text)
    except IoFailure as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    console.print(f"Replaced {count} occurrence(s) in [bold]{file}[/bold]")


@settings_app.command("show")
def settings_show(
    data_dir: Path = typer.Option(None, "--data-dir", help="Data directory"),
) -> None:
    """Show the persisted settings."""
    config = _config(data_dir)
    store = SettingsStore(config.settings_path)
    settings = store.load()

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in settings.model_dump(by_alias=True).items():
        table.add_row(key, str(value))

    console.print(f"Settings file: [bold]{config.settings_path}[/bold]")
    console.print(table)


@settings_app.command("set")
def settings_set(
    key: str = typer.Argument(..., help="Setting name, e.g. WindowOpacity or font_size"),
    value: str = typer.Argument(..., help="New value"),
    data_dir: Path = typer.Option(None, "--data-dir", help="Data directory"),
) -> None:
    """Change one setting and save it."""
    config = _config(data_dir)
    store = SettingsStore(config.settings_path)
    store.load()
    try:
        name = resolve_field_name(key)
        settings = store.set_value(name, value)
    except InvalidOperation as exc:
        raise typer.BadParameter(str(exc)) from exc

    alias = AppSettings.model_fields[name].alias or name
    console.print(f"{alias} = {getattr(settings, name)}")


@autosave_app.command("list")
def autosave_list(
    data_dir: Path = typer.Option(None, "--data-dir", help="Data directory"),
) -> None:
    """List autosave snapshots, newest first."""
    config = _config(data_dir)
    policy = AutosavePolicy(DocumentSet(), config.autosave_dir, enabled=False)
    snapshots = policy.list_snapshots()
    if not snapshots:
        console.print("[yellow]No autosave snapshots.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Snapshot")
    table.add_column("Written")
    table.add_column("Size")
    for path in snapshots:
        stat = path.stat()
        written = datetime.fromtimestamp(stat.st_mtime).strftime("%Y-%m-%d %H:%M:%S")
        table.add_row(path.name, written, str(stat.st_size))
    console.print(table)


@autosave_app.command("purge")
def autosave_purge(
    days: int = typer.Option(None, "--days", help="Keep snapshots newer than this many days"),
    data_dir: Path = typer.Option(None, "--data-dir", help="Data directory"),
) -> None:
    """Delete autosave snapshots older than the retention horizon."""
    config = _config(data_dir)
    keep_days = days if days is not None else config.snapshot_retention_days
    policy = AutosavePolicy(DocumentSet(), config.autosave_dir, enabled=False)
    removed = policy.purge_snapshots(timedelta(days=keep_days))
    console.print(f"Removed {removed} snapshot(s) older than {keep_days} day(s).")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    data_dir: Path = typer.Option(None, "--data-dir", help="Data directory"),
) -> None:
    """Serve the editing session API for a local UI."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    from tabnote.web.app import app as web_app, configure

    config = _config(data_dir)
    configure(config)
    console.print(f"Starting session API on http://{host}:{port} (data: {config.data_dir})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
