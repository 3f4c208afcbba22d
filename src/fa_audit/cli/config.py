"""CLI commands for configuration."""

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from fa_audit.cli.utils import console, err_console, load_settings

app = typer.Typer(help="Show or create fa-audit configuration.")


@app.command("show")
def show_cmd(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
    format: str = typer.Option("terminal", "--format", "-f", help="Output format (terminal, json)"),
) -> None:
    """Show the effective configuration, environment overrides included."""
    from fa_audit.utils.config import find_config_file

    settings = load_settings(config)

    if format == "json":
        print(settings.model_dump_json(indent=2))
        return

    source = config or find_config_file()
    console.print(f"[bold]Config file:[/bold] {source or '[dim]none (defaults)[/dim]'}")
    table = Table(title="Configuration")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for section, values in settings.model_dump(mode="json").items():
        for key, value in values.items():
            table.add_row(f"{section}.{key}", str(value))
    console.print(table)


@app.command("init")
def init_cmd(
    path: Optional[Path] = typer.Option(
        None,
        "--path",
        "-p",
        help="Where to write the config (default ~/.config/fa-audit/config.yaml)",
    ),
    rpc_url: Optional[str] = typer.Option(None, "--rpc-url", help="RPC endpoint"),
    environment: Optional[str] = typer.Option(None, "--environment", help="mainnet or testnet"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write a configuration file."""
    from fa_audit.utils.config import get_default_config, save_config

    target = path or Path.home() / ".config" / "fa-audit" / "config.yaml"
    if target.exists() and not force:
        err_console.print(f"[red]Error:[/red] {target} already exists (use --force)")
        raise typer.Exit(1)

    settings = get_default_config()
    if rpc_url:
        settings = settings.model_copy(update={"rpc": settings.rpc.model_copy(update={"url": rpc_url})})
    if environment:
        settings = settings.model_copy(
            update={"indexer": settings.indexer.model_copy(update={"environment": environment})}
        )

    written = save_config(settings, target)
    console.print(f"Config written to {written}")
