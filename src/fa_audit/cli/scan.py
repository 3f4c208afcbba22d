"""CLI commands for scanning coins and fungible assets."""

from pathlib import Path
from typing import Optional

import typer

from fa_audit.cli.utils import build_clients, emit, err_console, handle_result_errors, load_settings, load_snapshot

app = typer.Typer(help="Scan a coin or fungible asset and snapshot its control surface.")

FORMAT_OPTION = typer.Option(
    None,
    "--format",
    "-f",
    help="Output format (terminal, json). Defaults to the configured format.",
)
OUTPUT_OPTION = typer.Option(None, "--output", "-o", help="Output file path")
PREVIOUS_OPTION = typer.Option(
    None,
    "--previous",
    "-p",
    help="Earlier snapshot JSON to diff against",
    exists=True,
    dir_okay=False,
)
BEHAVIOR_OPTION = typer.Option(False, "--with-behavior", help="Sample recent transactions")
PROBE_OPTION = typer.Option(None, "--probe", help="Extra address to sample (repeatable)")
NO_INDEXER_OPTION = typer.Option(False, "--no-indexer", help="Skip indexer corroboration")
CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Config file path")
VERBOSE_OPTION = typer.Option(False, "--details", "-d", help="Show detail tables")


@app.command("coin")
def scan_coin(
    coin_type: str = typer.Argument(..., help="Coin type, e.g. 0x1::supra_coin::SupraCoin"),
    format: Optional[str] = FORMAT_OPTION,
    output: Optional[Path] = OUTPUT_OPTION,
    previous: Optional[Path] = PREVIOUS_OPTION,
    with_behavior: bool = BEHAVIOR_OPTION,
    probe: Optional[list[str]] = PROBE_OPTION,
    no_indexer: bool = NO_INDEXER_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    details: bool = VERBOSE_OPTION,
) -> None:
    """
    Scan a legacy coin.

    Example:
        fa-audit scan coin 0xabc::my_coin::MyCoin --format json -o snap.json
    """
    _run_scan("coin", coin_type, format, output, previous, with_behavior, probe or [], no_indexer, config, details)


@app.command("fa")
def scan_fa(
    fa_address: str = typer.Argument(..., help="FA object address"),
    format: Optional[str] = FORMAT_OPTION,
    output: Optional[Path] = OUTPUT_OPTION,
    previous: Optional[Path] = PREVIOUS_OPTION,
    with_behavior: bool = BEHAVIOR_OPTION,
    probe: Optional[list[str]] = PROBE_OPTION,
    no_indexer: bool = NO_INDEXER_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    details: bool = VERBOSE_OPTION,
) -> None:
    """
    Scan an object-based fungible asset.

    Example:
        fa-audit scan fa 0xabc... --previous snap.json --with-behavior
    """
    _run_scan("fa", fa_address, format, output, previous, with_behavior, probe or [], no_indexer, config, details)


def _run_scan(
    kind: str,
    target: str,
    format: Optional[str],
    output: Optional[Path],
    previous: Optional[Path],
    with_behavior: bool,
    probe: list[str],
    no_indexer: bool,
    config_path: Optional[Path],
    details: bool,
) -> None:
    """Scan, then optionally sample behavior and diff against a previous snapshot."""
    from fa_audit.core.behavior import BehaviorSampler
    from fa_audit.core.diff import DiffEngine
    from fa_audit.core.risk import RiskSynthesizer, risk_input_from_snapshot
    from fa_audit.core.rules import SeverityEscalator
    from fa_audit.core.scanner import AssetScanner, sample_snapshot_behavior

    settings = load_settings(config_path)
    client, indexer = build_clients(settings, use_indexer=not no_indexer)
    scanner = AssetScanner(client, indexer=indexer, rpc_url=settings.rpc.url)

    previous_snapshot = load_snapshot(previous) if previous else None

    with err_console.status(f"Scanning {target}..."):
        result = scanner.scan_coin(target) if kind == "coin" else scanner.scan_fa(target)
    handle_result_errors(result, "Scan failed")
    snapshot = result.snapshot

    behavior = None
    if with_behavior:
        sampler = BehaviorSampler.from_config(settings.sampler, client, indexer)
        with err_console.status("Sampling transactions..."):
            behavior = sample_snapshot_behavior(sampler, snapshot, probe_addresses=probe)

    report = None
    if previous_snapshot is not None:
        diff_result = DiffEngine().diff(previous_snapshot, snapshot)
        handle_result_errors(diff_result, "Diff failed")
        report = SeverityEscalator().apply(previous_snapshot, snapshot, diff_result.report)

    risk = RiskSynthesizer().synthesize(risk_input_from_snapshot(snapshot, behavior, report))

    bundle = {"snapshot": snapshot, "behavior": behavior, "diff": report, "risk": risk}
    emit(bundle, format or settings.output.default_format, output, verbose=details)
