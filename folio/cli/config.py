"""Configuration management CLI commands."""

import typer
from pydantic import ValidationError

from .helpers import console

config_app = typer.Typer(help="Manage Folio configuration")


@config_app.command("show")
def config_show():
    """Show current configuration."""
    from folio.config import get_config_path, load_config

    config_path = get_config_path()
    config = load_config()

    console.print(f"[cyan]Configuration file:[/cyan] [dim]{config_path}[/dim]\n")
    for key, value in config.model_dump().items():
        console.print(f"[bold]{key}:[/bold] {value}")
    console.print(f"\n[dim]Data directory: {config.resolved_data_dir()}[/dim]")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Configuration key (e.g. auto_save_delay_ms)"),
    value: str = typer.Argument(..., help="New value"),
):
    """Set a configuration value.

    Examples:
        folio config set auto_rename_enabled false

        folio config set auto_save_delay_ms 500
    """
    from folio.config import get_config_path, set_config_value

    try:
        set_config_value(key, value)
    except KeyError as e:
        console.print(f"[red]{e.args[0]}[/red]")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print(f"[red]Invalid value for {key}: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ {key} set to:[/green] {value}")
    console.print(f"[dim]Saved to: {get_config_path()}[/dim]")
