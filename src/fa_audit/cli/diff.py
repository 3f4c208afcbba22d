"""CLI command for diffing two saved snapshots."""

from pathlib import Path
from typing import Optional

import typer

from fa_audit.cli.utils import emit, handle_result_errors, load_settings, load_snapshot


def diff_cmd(
    previous: Path = typer.Argument(..., help="Earlier snapshot JSON", exists=True, dir_okay=False),
    current: Path = typer.Argument(..., help="Later snapshot JSON", exists=True, dir_okay=False),
    format: Optional[str] = typer.Option(
        None,
        "--format",
        "-f",
        help="Output format (terminal, json)",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file path",
    ),
    ignore_supply: bool = typer.Option(
        False,
        "--ignore-supply",
        help="Do not report supply changes",
    ),
    fail_on: Optional[str] = typer.Option(
        None,
        "--fail-on",
        help="Exit with status 2 when a change reaches this severity (info, medium, high, critical)",
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
) -> None:
    """
    Compare two snapshots of the same asset.

    Runs the diff, escalates severities against the later snapshot and
    synthesizes a risk verdict. No network access is needed.

    Example:
        fa-audit diff monday.json tuesday.json --fail-on high
    """
    from fa_audit.core.diff import DiffEngine
    from fa_audit.core.risk import RiskSynthesizer, risk_input_from_snapshot
    from fa_audit.core.rules import SeverityEscalator
    from fa_audit.models.diff import Severity

    threshold = None
    if fail_on:
        try:
            threshold = Severity(fail_on.lower())
        except ValueError:
            typer.echo(f"Error: Invalid severity: {fail_on}", err=True)
            raise typer.Exit(1)

    settings = load_settings(config)
    before = load_snapshot(previous)
    after = load_snapshot(current)

    result = DiffEngine(ignore_supply=ignore_supply).diff(before, after)
    handle_result_errors(result, "Failed to diff snapshots")

    report = SeverityEscalator().apply(before, after, result.report)
    risk = RiskSynthesizer().synthesize(risk_input_from_snapshot(after, report=report))

    emit({"diff": report, "risk": risk}, format or settings.output.default_format, output)

    worst = report.max_severity
    if threshold is not None and worst is not None and worst.rank >= threshold.rank:
        raise typer.Exit(2)
