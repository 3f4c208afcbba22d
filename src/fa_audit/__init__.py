"""fa-audit: Security-posture analysis for Supra Move fungible assets.

This package audits legacy coins and object-based fungible assets (FA)
on Supra, including:

- **Module Inventory**: Recover the modules that control an asset, with names
- **Surface Analysis**: Classify functions, reachability and invariants
- **Module Pinning**: Hash module bytecode or ABI for change detection
- **Behavior Sampling**: Compare invoked entry points against the pinned ABI
- **Snapshot Diff**: Detect control-surface changes between two scans
- **Risk Synthesis**: Reduce evidence into named signals and a verdict

Usage:
    # Library API
    from fa_audit import AssetScanner, DiffEngine, RiskInput, RiskSynthesizer, SeverityEscalator
    from fa_audit.rpc import SupraRpcClient

    # Scan
    scanner = AssetScanner(SupraRpcClient("https://rpc-mainnet.supra.com"))
    previous = scanner.scan_fa("0xabc...").snapshot
    current = scanner.scan_fa("0xabc...").snapshot

    # Diff and escalate
    report = DiffEngine().diff(previous, current).report
    report = SeverityEscalator().apply(previous, current, report)

    # Risk verdict
    synthesis = RiskSynthesizer().synthesize(RiskInput.from_snapshots(current, report=report))
    print(synthesis.risk_level)

CLI:
    fa-audit scan coin <coin_type>
    fa-audit scan fa <fa_address>
    fa-audit diff <previous.json> <current.json>
    fa-audit behavior fa <fa_address>
    fa-audit config show
"""

__version__ = "0.1.0"

# Core classes
from fa_audit.core.scanner import AssetScanner, sample_snapshot_behavior
from fa_audit.core.diff import DiffEngine
from fa_audit.core.rules import SeverityEscalator
from fa_audit.core.risk import RiskSynthesizer
from fa_audit.core.behavior import BehaviorSampler

# Models (commonly used)
from fa_audit.models.snapshot import Snapshot, SnapshotResult
from fa_audit.models.diff import ChangeItem, ChangeType, DiffReport, DiffResult, Severity
from fa_audit.models.behavior import BehaviorEvidence, BehaviorStatus
from fa_audit.models.risk import RiskInput, RiskLevel, RiskSignal, RiskSynthesis

# Renderers
from fa_audit.renderers.base import OutputFormat, RenderContext, Renderer

__all__ = [
    # Version
    "__version__",
    # Core
    "AssetScanner",
    "DiffEngine",
    "SeverityEscalator",
    "RiskSynthesizer",
    "BehaviorSampler",
    "sample_snapshot_behavior",
    # Models - Snapshot
    "Snapshot",
    "SnapshotResult",
    # Models - Diff
    "ChangeItem",
    "ChangeType",
    "DiffReport",
    "DiffResult",
    "Severity",
    # Models - Behavior
    "BehaviorEvidence",
    "BehaviorStatus",
    # Models - Risk
    "RiskInput",
    "RiskLevel",
    "RiskSignal",
    "RiskSynthesis",
    # Renderers
    "Renderer",
    "RenderContext",
    "OutputFormat",
]
