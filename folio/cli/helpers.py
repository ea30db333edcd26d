"""Shared plumbing for CLI commands."""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Awaitable, Optional, TypeVar

import typer
from rich.console import Console

from folio.config import load_config
from folio.controller import SessionController
from folio.exceptions import FolioError, InvalidPathError, OperationCancelledError
from folio.host.capability import LocalCapabilityStore
from folio.host.local import LocalAdapter
from folio.workspace import Workspace

T = TypeVar("T")

console = Console()
error_console = Console(stderr=True)

ROOT_OPTION_HELP = "Workspace root directory (defaults to the current directory)"


def run(coro: Awaitable[T]) -> T:
    """Run a coroutine, turning storage failures into a clean exit code."""
    try:
        return asyncio.run(coro)
    except OperationCancelledError:
        raise typer.Exit(0)
    except (FolioError, InvalidPathError) as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@asynccontextmanager
async def open_workspace(root: Optional[Path]) -> AsyncIterator[Workspace]:
    """Open root (or the current directory) as a workspace for one command."""
    config = load_config()
    adapter = LocalAdapter(atomic_moves=config.atomic_moves)
    workspace = Workspace(adapter, config=config)
    await workspace.open_root(adapter.open_directory(root or Path.cwd()))
    try:
        yield workspace
    finally:
        await workspace.aclose()


def make_controller(
    picked: Optional[Path] = None,
    file: Optional[Path] = None,
    save_to: Optional[Path] = None,
) -> SessionController:
    """Build a controller whose folder picker asks on the terminal unless a path is given.

    The file and save pickers answer with the given paths, or cancel without them.
    """
    config = load_config()
    adapter = LocalAdapter(atomic_moves=config.atomic_moves)

    def picker() -> Optional[str]:
        if picked is not None:
            return str(picked)
        answer = typer.prompt("Folder to open (empty to cancel)", default="", show_default=False)
        return answer.strip() or None

    def prompt(name: str) -> bool:
        return typer.confirm(f"Allow access to '{name}' again?", default=True)

    def file_picker() -> Optional[str]:
        return str(file) if file is not None else None

    def save_picker(suggested_name: str) -> Optional[str]:
        return str(save_to) if save_to is not None else None

    capabilities = LocalCapabilityStore(
        adapter, picker=picker, prompt=prompt, file_picker=file_picker, save_picker=save_picker
    )
    return SessionController(adapter, capabilities, config=config)
