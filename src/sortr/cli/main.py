"""CLI for sortr: estimate / inspect / clear commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from sortr.core.config import SortrSettings
from sortr.engine.battles import count_battles
from sortr.engine.keys import key_ids
from sortr.engine.progress import progress_percent
from sortr.exceptions import PersistenceError, ProgressDecodeError
from sortr.logging_config import setup_logging
from sortr.models import SortItem
from sortr.persistence import create_backend, decode_saved_state, progress_key
from sortr.session import clear_all_saves

app = typer.Typer(name="sortr", help="Inspect and manage interactive ranking sessions")
console = Console()


def _settings(verbose: bool) -> SortrSettings:
    settings = SortrSettings()
    if verbose:
        settings.observability.log_level = "DEBUG"
    setup_logging(settings.observability)
    return settings


def _load_items(items_path: Path) -> list[SortItem]:
    """Load items from a JSON array file."""
    try:
        raw = json.loads(items_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise typer.BadParameter(f"Cannot read items from {items_path}: {e}") from e
    if not isinstance(raw, list):
        raise typer.BadParameter(f"Expected JSON array in {items_path}")
    try:
        return [SortItem.model_validate(item) for item in raw]
    except ValidationError as e:
        raise typer.BadParameter(f"Invalid item in {items_path}: {e}") from e


@app.command()
def estimate(
    item_count: int = typer.Argument(..., min=0, help="Number of items to rank"),
) -> None:
    """Print the battle estimate that scales the progress bar."""
    console.print(f"{item_count} items -> [bold]{count_battles(item_count)}[/bold] battles")


@app.command()
def inspect(
    items_file: Path = typer.Argument(..., help="JSON file with the items being ranked"),
    sorter_id: str = typer.Option(..., "--sorter-id", help="Sorter identifier"),
    filters: Optional[list[str]] = typer.Option(None, "--filter", help="Filter slug (repeatable)"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Show saved progress for one sorter and filter combination."""
    settings = _settings(verbose)
    backend = create_backend(settings.persistence)
    items = _load_items(items_file)
    key = progress_key(sorter_id, filters or [])

    try:
        raw = backend.load(key)
        if raw is None:
            console.print(f"[yellow]No saved progress under {key}[/yellow]")
            raise typer.Exit(code=1)
        progress = decode_saved_state(raw, items)
    except (PersistenceError, ProgressDecodeError) as e:
        console.print(f"[red]Saved progress under {key} is unreadable: {e}[/red]")
        raise typer.Exit(code=2) from e

    percent = progress_percent(
        progress.sorted_no,
        progress.total_battles,
        cap=settings.engine.max_progress_percent,
    )
    console.print(f"[bold]Session:[/bold] {key}")
    console.print(f"[bold]Decisions:[/bold] {progress.comparison_count}")
    console.print(
        f"[bold]Placed:[/bold] {progress.sorted_no}/{progress.total_battles} ({percent}%)"
    )
    console.print(f"[bold]Undo available:[/bold] {'yes' if progress.state_history else 'no'}\n")

    titles = {item.id: item.title or item.id for item in items}
    table = Table(title="Cached Decisions")
    table.add_column("Pair", style="cyan")
    table.add_column("Winner", style="green")
    for key_, winner_id in sorted(progress.user_choices.items()):
        id_a, id_b = key_ids(key_)
        table.add_row(
            f"{titles.get(id_a, id_a)} vs {titles.get(id_b, id_b)}",
            titles.get(winner_id, winner_id),
        )
    console.print(table)


@app.command()
def clear(
    sorter_id: Optional[str] = typer.Option(None, "--sorter-id", help="Only this sorter"),
    filters: Optional[list[str]] = typer.Option(None, "--filter", help="Filter slug (repeatable)"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Delete saved progress for one sorter, or every saved session."""
    settings = _settings(verbose)
    backend = create_backend(settings.persistence)

    if sorter_id is None:
        removed = clear_all_saves(backend)
        console.print(f"[green]Cleared {removed} saved sorting sessions[/green]")
        return

    key = progress_key(sorter_id, filters or [])
    if backend.delete(key):
        console.print(f"[green]Cleared {key}[/green]")
    else:
        console.print(f"[yellow]Nothing saved under {key}[/yellow]")


if __name__ == "__main__":
    app()
