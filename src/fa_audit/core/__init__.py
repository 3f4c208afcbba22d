"""Core domain logic for fa-audit.

This module provides the main library API for scanning fungible assets
and comparing their snapshots.
"""

from fa_audit.core.behavior import BehaviorSampler
from fa_audit.core.classifier import classify_functions
from fa_audit.core.diff import DiffEngine
from fa_audit.core.evidence import EvidenceCollector
from fa_audit.core.inventory import InventoryBuilder
from fa_audit.core.pinning import aggregate_pin_hash, pin_modules
from fa_audit.core.risk import RiskSynthesizer, create_empty_risk_synthesis, risk_input_from_snapshot
from fa_audit.core.rules import SeverityEscalator
from fa_audit.core.scanner import AssetScanner, sample_snapshot_behavior
from fa_audit.core.snapshot import SnapshotAssembler
from fa_audit.core.surface import CoinSurfaceAnalyzer, FaSurfaceAnalyzer

__all__ = [
    "AssetScanner",
    "BehaviorSampler",
    "CoinSurfaceAnalyzer",
    "DiffEngine",
    "EvidenceCollector",
    "FaSurfaceAnalyzer",
    "InventoryBuilder",
    "RiskSynthesizer",
    "SeverityEscalator",
    "SnapshotAssembler",
    "aggregate_pin_hash",
    "classify_functions",
    "create_empty_risk_synthesis",
    "pin_modules",
    "risk_input_from_snapshot",
    "sample_snapshot_behavior",
]
