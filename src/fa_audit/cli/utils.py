"""Shared utilities for CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from rich.console import Console

if TYPE_CHECKING:
    from fa_audit.models.snapshot import Snapshot
    from fa_audit.rpc.indexer import SupraScanClient
    from fa_audit.rpc.supra import SupraRpcClient
    from fa_audit.utils.config import FaAuditConfig

# Shared console instance
console = Console()

# Diagnostics go to stderr so JSON on stdout stays parseable
err_console = Console(stderr=True)


def load_settings(config_path: Path | None = None) -> "FaAuditConfig":
    """Load configuration with environment overrides, exiting on errors.

    Args:
        config_path: Explicit config file, or None to search default locations

    Returns:
        Effective configuration
    """
    from fa_audit.utils.config import ConfigHandle
    from fa_audit.utils.errors import ConfigurationError

    try:
        handle = ConfigHandle.open(config_path)
    except (ConfigurationError, FileNotFoundError) as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    return handle.config.with_env_overrides()


def build_clients(
    config: "FaAuditConfig", use_indexer: bool = True
) -> tuple["SupraRpcClient", "SupraScanClient | None"]:
    """Create the RPC client and, when enabled, the indexer client."""
    from fa_audit.rpc.indexer import SupraScanClient
    from fa_audit.rpc.supra import SupraRpcClient

    client = SupraRpcClient.from_config(config.rpc)
    indexer = None
    if use_indexer and config.indexer.enabled:
        indexer = SupraScanClient.from_config(config.indexer)
    return client, indexer


def handle_result_errors(result: Any, error_message: str = "Operation failed") -> None:
    """Handle errors in a result object and exit if failed.

    Args:
        result: Result object with success and errors attributes
        error_message: Message to display on error
    """
    if not result.success:
        err_console.print(f"[red]Error:[/red] {error_message}")
        for error in result.errors:
            err_console.print(f"  {error.code}: {error.message}")
        raise typer.Exit(1)


def load_snapshot(path: Path) -> "Snapshot":
    """Load a snapshot written by ``scan --format json``.

    Accepts either a bare snapshot or a scan bundle with a ``snapshot`` key.

    Args:
        path: JSON file

    Returns:
        Parsed Snapshot
    """
    from pydantic import ValidationError as PydanticValidationError

    from fa_audit.models.snapshot import Snapshot

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        err_console.print(f"[red]Error:[/red] Cannot read snapshot {path}: {e}")
        raise typer.Exit(1)

    if isinstance(data, dict) and isinstance(data.get("snapshot"), dict):
        data = data["snapshot"]

    try:
        return Snapshot.model_validate(data)
    except PydanticValidationError as e:
        err_console.print(f"[red]Error:[/red] {path} is not a valid snapshot: {e.error_count()} error(s)")
        raise typer.Exit(1)


def emit(data: Any, format: str, output: Path | None = None, verbose: bool = False) -> None:
    """Render data in the requested format to the console or a file.

    Args:
        data: Model, or dict of models, to render
        format: terminal or json
        output: Optional output file path
        verbose: Show detail tables in terminal output
    """
    from fa_audit.renderers import get_renderer
    from fa_audit.renderers.base import RenderContext
    from fa_audit.renderers.terminal import TerminalRenderer

    try:
        renderer = get_renderer(format)
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if isinstance(renderer, TerminalRenderer):
        renderer = TerminalRenderer(console)

    context = RenderContext(format=renderer.format, output_path=output, verbose=verbose)
    if output:
        renderer.render_to_file(data, context)
        err_console.print(f"Report written to {output}")
    elif renderer.format.value == "json":
        # Plain print so rich does not re-wrap long lines
        print(renderer.render(data, context))
    else:
        renderer.render(data, context)

