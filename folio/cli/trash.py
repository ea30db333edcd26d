"""Trash CLI commands."""

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from .helpers import ROOT_OPTION_HELP, console, open_workspace, run

trash_app = typer.Typer(help="Inspect and manage the workspace trash")


@trash_app.command("list")
def trash_list(
    root: Optional[Path] = typer.Option(None, "--root", "-r", help=ROOT_OPTION_HELP),
):
    """List trashed entries."""

    async def _list():
        async with open_workspace(root) as workspace:
            return await workspace.show_recycle_bin(True)

    entries = run(_list())
    if not entries:
        console.print("[dim]Trash is empty[/dim]")
        return

    table = Table(title="Trash")
    table.add_column("Name", style="cyan")
    table.add_column("Kind")
    for entry in entries:
        table.add_row(entry.name, entry.kind.value)
    console.print(table)


@trash_app.command("restore")
def trash_restore(
    name: str = typer.Argument(..., help="Name of the trashed entry"),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help=ROOT_OPTION_HELP),
):
    """Move a trashed entry back to the workspace root."""

    async def _restore():
        async with open_workspace(root) as workspace:
            return await workspace.restore_entry(name)

    restored = run(_restore())
    console.print(f"[green]✓ Restored[/green] {restored}")


@trash_app.command("empty")
def trash_empty(
    yes: bool = typer.Option(False, "--yes", "-y", help="Don't ask for confirmation"),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help=ROOT_OPTION_HELP),
):
    """Permanently delete everything in the trash."""
    if not yes and not typer.confirm("Permanently delete everything in the trash?"):
        raise typer.Exit(0)

    async def _empty():
        async with open_workspace(root) as workspace:
            return await workspace.empty_trash()

    count = run(_empty())
    console.print(f"[green]✓ Deleted {count} trashed entr{'y' if count == 1 else 'ies'}[/green]")
