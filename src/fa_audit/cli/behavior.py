"""CLI command for transaction behavior sampling."""

from pathlib import Path
from typing import Optional

import typer

from fa_audit.cli.utils import build_clients, emit, err_console, handle_result_errors, load_settings


def behavior_cmd(
    target: str = typer.Argument(..., help="FA object address or coin type (0xADDR::module::Struct)"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Transactions to keep"),
    probe: Optional[list[str]] = typer.Option(None, "--probe", help="Extra address to sample (repeatable)"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format (terminal, json)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
    details: bool = typer.Option(False, "--details", "-d", help="List every invoked entry point"),
) -> None:
    """
    Sample recent transactions for an asset.

    Scans the asset to learn its pinned ABI, then compares the entry
    points recent transactions actually invoked against it. Entry points
    missing from the ABI are reported as phantoms.

    Example:
        fa-audit behavior 0xabc... --probe 0xdef...
    """
    from fa_audit.core.behavior import BehaviorSampler
    from fa_audit.core.scanner import AssetScanner, sample_snapshot_behavior

    settings = load_settings(config)
    client, indexer = build_clients(settings)
    scanner = AssetScanner(client, indexer=indexer, rpc_url=settings.rpc.url)

    with err_console.status(f"Scanning {target}..."):
        result = scanner.scan_coin(target) if "::" in target else scanner.scan_fa(target)
    handle_result_errors(result, "Scan failed")

    sampler = BehaviorSampler.from_config(settings.sampler, client, indexer)
    with err_console.status("Sampling transactions..."):
        evidence = sample_snapshot_behavior(sampler, result.snapshot, probe_addresses=probe or [], limit=limit)

    emit(evidence, format or settings.output.default_format, output, verbose=details)
