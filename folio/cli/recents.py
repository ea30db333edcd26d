"""Recent folders CLI commands."""

import typer
from rich.table import Table

from folio.config import load_config
from folio.session import RecentsStore

from .helpers import console

recents_app = typer.Typer(help="List and forget recently opened folders")


def _store() -> RecentsStore:
    return RecentsStore(load_config().resolved_data_dir() / "recents.json")


@recents_app.command("list")
def recents_list():
    """List recent folders, most recently opened first."""
    entries = _store().get_all()
    if not entries:
        console.print("[dim]No recent folders[/dim]")
        return

    table = Table(title="Recent folders")
    table.add_column("Name", style="cyan")
    table.add_column("Location", style="dim")
    table.add_column("Last opened")
    for entry in entries:
        table.add_row(entry.key, entry.location, entry.last_accessed.strftime("%Y-%m-%d %H:%M"))
    console.print(table)


@recents_app.command("remove")
def recents_remove(name: str = typer.Argument(..., help="Name of the recent folder")):
    """Forget a recent folder."""
    if not _store().remove(name):
        console.print(f"[red]No recent folder named '{name}'[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Removed[/green] {name}")
