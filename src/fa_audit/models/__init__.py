"""Data models for fa-audit.

All models are Pydantic BaseModel with frozen=True for immutability.
"""

from fa_audit.models.common import AssetKind, AuditError, CoverageStatus
from fa_audit.models.inventory import (
    ModuleEntry,
    ModuleInventory,
    ModuleSource,
    RecoveredModule,
    RecoveryRecord,
)
from fa_audit.models.findings import (
    ClassifiedFunctions,
    EvidenceRef,
    Finding,
    FindingSeverity,
    InvariantItem,
    InvariantReport,
    InvariantStatus,
    PrivilegeClass,
    PrivilegeEvidence,
    PrivilegeFinding,
    PrivilegeReport,
)
from fa_audit.models.pins import HashBasis, ModuleArtifact, ModulePin, PinSet
from fa_audit.models.resources import CoinResourceFacts, FaResourceFacts, HookModule
from fa_audit.models.behavior import (
    BehaviorEvidence,
    BehaviorStatus,
    InvokedEntry,
    PhantomEntry,
)
from fa_audit.models.evidence import EvidenceBundle, EvidenceSource, ParityItem, ParityStatus
from fa_audit.models.surface import ModuleAnalysis, SurfaceAnalysis
from fa_audit.models.snapshot import (
    CoinCapabilities,
    CoinIdentity,
    ControlSurface,
    FaCapabilities,
    FaIdentity,
    FindingSummary,
    HookInfo,
    ModuleSurface,
    Snapshot,
    SnapshotCoverage,
    SnapshotHashes,
    SnapshotMeta,
    SnapshotResult,
    SupplyInfo,
)
from fa_audit.models.diff import (
    AgentHints,
    ChangeItem,
    ChangeType,
    DiffReport,
    DiffResult,
    Severity,
)
from fa_audit.models.risk import (
    Claim,
    ClaimStatus,
    Confidence,
    Discrepancy,
    EvidenceTier,
    IndexerParityStatus,
    ParitySummary,
    RiskInput,
    RiskLevel,
    RiskSignal,
    RiskSynthesis,
    RiskTarget,
    SurfaceScan,
    VerificationStatus,
)

__all__ = [
    # Common
    "AssetKind",
    "AuditError",
    "CoverageStatus",
    # Inventory
    "ModuleEntry",
    "ModuleInventory",
    "ModuleSource",
    "RecoveredModule",
    "RecoveryRecord",
    # Findings
    "ClassifiedFunctions",
    "EvidenceRef",
    "Finding",
    "FindingSeverity",
    "InvariantItem",
    "InvariantReport",
    "InvariantStatus",
    "PrivilegeClass",
    "PrivilegeEvidence",
    "PrivilegeFinding",
    "PrivilegeReport",
    # Pins
    "HashBasis",
    "ModuleArtifact",
    "ModulePin",
    "PinSet",
    # Resources
    "CoinResourceFacts",
    "FaResourceFacts",
    "HookModule",
    # Behavior
    "BehaviorEvidence",
    "BehaviorStatus",
    "InvokedEntry",
    "PhantomEntry",
    # Evidence
    "EvidenceBundle",
    "EvidenceSource",
    "ParityItem",
    "ParityStatus",
    # Surface
    "ModuleAnalysis",
    "SurfaceAnalysis",
    # Snapshot
    "CoinCapabilities",
    "CoinIdentity",
    "ControlSurface",
    "FaCapabilities",
    "FaIdentity",
    "FindingSummary",
    "HookInfo",
    "ModuleSurface",
    "Snapshot",
    "SnapshotCoverage",
    "SnapshotHashes",
    "SnapshotMeta",
    "SnapshotResult",
    "SupplyInfo",
    # Diff
    "AgentHints",
    "ChangeItem",
    "ChangeType",
    "DiffReport",
    "DiffResult",
    "Severity",
    # Risk
    "Claim",
    "ClaimStatus",
    "Confidence",
    "Discrepancy",
    "EvidenceTier",
    "IndexerParityStatus",
    "ParitySummary",
    "RiskInput",
    "RiskLevel",
    "RiskSignal",
    "RiskSynthesis",
    "RiskTarget",
    "SurfaceScan",
    "VerificationStatus",
]
