"""CLI command implementations"""

from pathlib import Path
from typing import Annotated, Optional

import typer

from wxrbook.config import Settings, load_config
from wxrbook.core.errors import MalformedDocument, SelectionError
from wxrbook.core.models import ImportSelection, ImportSummary
from wxrbook.core.pipeline import load_selection, run_commit, run_stage
from wxrbook.crud.database import init_db, make_engine, reset_db
from wxrbook.logs import setup_logging


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling, then configure logging."""
    try:
        settings = load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))
    setup_logging(settings.log_level, settings.log_file)
    return settings


def _parse_overrides(values: list[str]) -> dict[str, str]:
    """Turn ['12=chapter', ...] into {'12': 'chapter'}."""
    overrides = {}
    for v in values:
        post_id, sep, post_type = v.partition("=")
        if not sep or not post_id.strip() or not post_type.strip():
            _fail(f"Expected ID=TYPE, got {v!r}")
        overrides[post_id.strip()] = post_type.strip()
    return overrides


def _echo_selection(selection: ImportSelection) -> None:
    for post_id, title in selection.chapters.items():
        mark = "x" if post_id in selection.selected_ids else " "
        post_type = selection.effective_type(post_id)
        typer.echo(f"  [{mark}] {post_id:>6}  {post_type:<13} {title}")


def _echo_summary(summary: ImportSummary) -> None:
    for asset in summary.broken_images:
        typer.echo(f"  broken image ({asset.status.value}): {asset.source_url}")
    if summary.markup_errors:
        typer.echo(f"  {len(summary.markup_errors)} markup warning(s); see log for details")
    typer.echo(summary.message())


def _stage(path: str, settings: Settings, skip: list[str], as_type: list[str]) -> ImportSelection:
    staging_dir = Path(settings.staging_dir)
    try:
        selection, out_file = run_stage(path, settings, staging_dir, skip, _parse_overrides(as_type))
    except MalformedDocument as e:
        _fail("Import failed: the file could not be parsed", e)
    except SelectionError as e:
        _fail(str(e))
    typer.echo(f"Staged {len(selection.selected_ids)} of {len(selection.chapters)} post(s) -> {out_file}")
    return selection


def _commit(settings: Settings) -> ImportSummary:
    engine = make_engine(settings.db_url)
    init_db(engine)
    try:
        return run_commit(engine, settings, Path(settings.staging_dir))
    except SelectionError as e:
        _fail(f"{e}. Run 'wxrbook stage <file>' first.")
    except MalformedDocument as e:
        _fail("Import failed: the file could not be parsed", e)


def init_cmd(
    reset: Annotated[bool, typer.Option("--reset", help="Drop and recreate all tables")] = False,
    ):
    """Initialize database schema. Use --reset to clear existing data."""
    settings = _settings()
    engine = make_engine(settings.db_url)
    if reset:
        reset_db(engine)
        typer.echo("Existing data cleared.")
    else:
        init_db(engine)
    typer.echo(f"Database initialized at: {settings.db_url}")


def stage_cmd(
    path: Annotated[str, typer.Argument(help="WXR export file")],
    skip: Annotated[Optional[list[str]], typer.Option("--skip", help="Post id to leave out (repeatable)")] = None,
    as_type: Annotated[Optional[list[str]], typer.Option("--as", help="Import a post as another type: ID=TYPE")] = None,
    status: Annotated[Optional[str], typer.Option("--status", help="Status for imported records")] = None,
    staging: Annotated[Optional[str], typer.Option("--staging-dir", help="Staging directory")] = None,
    ):
    """Parse an export and stage its importable posts for review."""
    settings = _settings(overrides={"default_status": status, "staging_dir": staging})
    selection = _stage(path, settings, skip or [], as_type or [])
    _echo_selection(selection)


def list_cmd(
    staging: Annotated[Optional[str], typer.Option("--staging-dir", help="Staging directory")] = None,
    ):
    """Show the staged selection."""
    settings = _settings(overrides={"staging_dir": staging})
    selection = load_selection(Path(settings.staging_dir))
    if selection is None:
        typer.echo("Nothing staged.")
        raise typer.Exit(1)
    typer.echo(f"{selection.source_file} ({selection.default_status})")
    _echo_selection(selection)


def commit_cmd(
    staging: Annotated[Optional[str], typer.Option("--staging-dir", help="Staging directory")] = None,
    media: Annotated[Optional[str], typer.Option("--media-dir", help="Directory for imported images")] = None,
    ):
    """Import the staged selection into the database."""
    settings = _settings(overrides={"staging_dir": staging, "media_dir": media})
    _echo_summary(_commit(settings))


def import_cmd(
    path: Annotated[str, typer.Argument(help="WXR export file")],
    status: Annotated[Optional[str], typer.Option("--status", help="Status for imported records")] = None,
    media: Annotated[Optional[str], typer.Option("--media-dir", help="Directory for imported images")] = None,
    ):
    """Stage and commit every importable post in one step."""
    settings = _settings(overrides={"default_status": status, "media_dir": media})
    _stage(path, settings, [], [])
    _echo_summary(_commit(settings))
