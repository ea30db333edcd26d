"""Folio CLI application - main entry point."""

from pathlib import Path
from typing import List, Optional

import typer
from rich.table import Table
from rich.traceback import install
from rich.tree import Tree

from folio.paths import is_same_or_descendant, normalize_path
from folio.tree import WorkspaceTree

from .config import config_app
from .helpers import ROOT_OPTION_HELP, console, make_controller, open_workspace, run
from .recents import recents_app
from .trash import trash_app

install(show_locals=False, width=None, word_wrap=True)

app = typer.Typer(
    name="folio",
    help="Keep Markdown documents in sync with a workspace folder",
    no_args_is_help=True,
)


@app.command()
def version():
    """Show version information."""
    from folio import __version__

    console.print(f"Folio version {__version__}")


@app.command()
def tree(
    path: str = typer.Argument("", help="Directory inside the workspace to start from"),
    depth: int = typer.Option(2, "--depth", "-d", min=1, help="How many directory levels to expand"),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help=ROOT_OPTION_HELP),
):
    """Show the workspace as a tree (directories first)."""

    async def _tree():
        async with open_workspace(root) as workspace:
            model = WorkspaceTree(workspace.entries, workspace.root)
            await model.load_root()
            start = normalize_path(path)
            base = 0
            if start:
                await model.expand(start)
                base = len(start.split("/"))
            for level in range(base, base + depth - 1):
                for row in model.visible_rows():
                    if not row.is_dir or row.expanded or row.depth != level:
                        continue
                    if is_same_or_descendant(row.path, start):
                        await model.expand(row.path)
            rows = [
                r for r in model.visible_rows() if r.path != start and is_same_or_descendant(r.path, start)
            ]
            return start or workspace.root_name, base, rows

    title, base, rows = run(_tree())
    rendered = Tree(f"[bold]{title}[/bold]")
    branches = {base - 1: rendered}
    for row in rows:
        label = f"[blue]{row.name}/[/blue]" if row.is_dir else row.name
        branches[row.depth] = branches[row.depth - 1].add(label)
    console.print(rendered)


@app.command("open")
def open_folder(
    folder: Optional[Path] = typer.Argument(None, help="Folder to open (prompted when omitted)"),
    recent: Optional[str] = typer.Option(None, "--recent", help="Re-open a recent folder by name"),
):
    """Open a folder, restore its last session and list the open documents."""

    async def _open():
        controller = make_controller(folder)
        try:
            if recent:
                result = await controller.open_recent(recent)
            else:
                result = await controller.open_folder()
            if result is None:
                return None, controller.permission_needed, []
            workspace = controller.workspace
            docs = [(d.name, d.path, d.id == workspace.active_document_id) for d in workspace.documents]
            return result, None, docs
        finally:
            await controller.shutdown()

    result, permission_needed, docs = run(_open())
    if permission_needed:
        console.print(f"[yellow]Permission needed to open '{permission_needed}'[/yellow]")
        raise typer.Exit(1)
    if result is None:
        return

    if result.fallback_path:
        console.print(f"[dim]No previous session, opened {result.fallback_path}[/dim]")
    if result.skipped:
        console.print(f"[dim]Skipped {len(result.skipped)} missing document(s)[/dim]")
    if not docs:
        console.print("[yellow]No documents open[/yellow]")
        return

    table = Table(title="Open documents")
    table.add_column("", width=1)
    table.add_column("Name", style="cyan")
    table.add_column("Path", style="dim")
    for name, doc_path, active in docs:
        table.add_row("*" if active else "", name, doc_path or "")
    console.print(table)


@app.command()
def new(
    name: str = typer.Argument(..., help="File name to create"),
    directory: str = typer.Option("", "--dir", help="Directory inside the workspace"),
    content: str = typer.Option("", "--content", "-c", help="Initial content"),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help=ROOT_OPTION_HELP),
):
    """Create a new document."""

    async def _new():
        async with open_workspace(root) as workspace:
            doc = await workspace.new_document(name, content=content, dir_path=directory)
            return doc.path

    created = run(_new())
    console.print(f"[green]✓ Created[/green] {created}")


@app.command()
def mv(
    source: str = typer.Argument(..., help="Entry to move"),
    destination: str = typer.Argument(..., help="Destination directory ('' for the root)"),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help=ROOT_OPTION_HELP),
):
    """Move a file or directory into another directory."""

    async def _mv():
        async with open_workspace(root) as workspace:
            return await workspace.move_entry(source, destination)

    moved = run(_mv())
    console.print(f"[green]✓ Moved[/green] {source} → {moved}")


@app.command()
def rename(
    path: str = typer.Argument(..., help="Entry to rename"),
    new_name: str = typer.Argument(..., help="New name (same directory)"),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help=ROOT_OPTION_HELP),
):
    """Rename a file or directory in place."""

    async def _rename():
        async with open_workspace(root) as workspace:
            return await workspace.rename_entry(path, new_name)

    renamed = run(_rename())
    console.print(f"[green]✓ Renamed[/green] {path} → {renamed}")


@app.command()
def rm(
    paths: List[str] = typer.Argument(..., help="Entries to delete"),
    permanent: bool = typer.Option(False, "--permanent", help="Delete instead of moving to the trash"),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help=ROOT_OPTION_HELP),
):
    """Move entries to the trash (or delete them permanently)."""

    async def _rm():
        results = []
        async with open_workspace(root) as workspace:
            for target in paths:
                results.append((target, await workspace.delete_entry(target, permanent=permanent)))
        return results

    for target, trashed in run(_rm()):
        if trashed:
            console.print(f"[green]✓ Moved to trash[/green] {target}")
        else:
            console.print(f"[green]✓ Deleted[/green] {target}")


@app.command()
def export(
    source: Path = typer.Argument(..., help="File to export"),
    destination: Path = typer.Argument(..., help="Target file, or a directory to keep the name"),
):
    """Write a document to another location, inside or outside any workspace."""

    async def _export():
        controller = make_controller(file=source, save_to=destination)
        try:
            doc = await controller.open_file()
            if doc is None or await controller.export_document(doc.id) is None:
                return None
            return doc.handle.location
        finally:
            await controller.shutdown()

    target = run(_export())
    if target is not None:
        console.print(f"[green]✓ Exported[/green] {source} → {target}")


app.add_typer(trash_app, name="trash")
app.add_typer(recents_app, name="recents")
app.add_typer(config_app, name="config")
