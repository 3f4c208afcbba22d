"""Main CLI entry point for fa-audit."""

import typer
from rich.console import Console

from fa_audit.cli import behavior, config, diff, scan

app = typer.Typer(
    name="fa-audit",
    help="Security-posture analysis for Supra Move fungible assets.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

# Register subcommands
app.add_typer(scan.app, name="scan")
app.command(name="diff")(diff.diff_cmd)
app.command(name="behavior")(behavior.behavior_cmd)
app.add_typer(config.app, name="config")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output"),
) -> None:
    """
    fa-audit: Security-posture analysis for Supra Move fungible assets.

    - [bold]scan[/bold]: Snapshot a coin or FA control surface
    - [bold]diff[/bold]: Compare two snapshots and escalate changes
    - [bold]behavior[/bold]: Compare invoked entry points with the pinned ABI
    - [bold]config[/bold]: Show or create configuration
    """
    from fa_audit.utils.logging import configure_logging

    if verbose:
        configure_logging(level="DEBUG", structured=True)
    elif quiet:
        configure_logging(level="WARNING")
    else:
        configure_logging(level="INFO")


@app.command()
def version() -> None:
    """Show the fa-audit version."""
    from fa_audit import __version__

    console.print(f"fa-audit version {__version__}")


if __name__ == "__main__":
    app()
