"""Risk synthesis models.

The JSON form of :class:`RiskSynthesis` is a fixed wire contract:
``signals`` from the closed :class:`RiskSignal` vocabulary, ``risk_level``
from :class:`RiskLevel`, and ordered ``rationale`` strings.
"""

from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from fa_audit.models.behavior import BehaviorEvidence
from fa_audit.models.common import AssetKind
from fa_audit.models.diff import ChangeItem
from fa_audit.models.evidence import ParityStatus

if TYPE_CHECKING:
    from fa_audit.models.diff import DiffReport
    from fa_audit.models.snapshot import Snapshot


class RiskSignal(str, Enum):
    """Named risk signal for agent consumption."""

    HASH_PINNED = "HASH_PINNED"
    HASH_CONFLICT = "HASH_CONFLICT"
    HASH_UNAVAILABLE = "HASH_UNAVAILABLE"
    INDEXER_CORROBORATED = "INDEXER_CORROBORATED"
    INDEXER_CONFLICT = "INDEXER_CONFLICT"
    INDEXER_UNSUPPORTED = "INDEXER_UNSUPPORTED"
    INDEXER_NOT_REQUESTED = "INDEXER_NOT_REQUESTED"
    BEHAVIOR_MATCHED = "BEHAVIOR_MATCHED"
    BEHAVIOR_NO_ACTIVITY = "BEHAVIOR_NO_ACTIVITY"
    BEHAVIOR_UNAVAILABLE = "BEHAVIOR_UNAVAILABLE"
    ABI_OPAQUE = "ABI_OPAQUE"
    ABI_OPAQUE_ACTIVE = "ABI_OPAQUE_ACTIVE"
    PHANTOM_ENTRYPOINTS = "PHANTOM_ENTRYPOINTS"
    HOOK_CONTROLLED = "HOOK_CONTROLLED"
    HOOK_UNVERIFIED = "HOOK_UNVERIFIED"
    PRIVILEGE_UNVERIFIED = "PRIVILEGE_UNVERIFIED"
    PRIVILEGE_ESCALATION_POSSIBLE = "PRIVILEGE_ESCALATION_POSSIBLE"
    MULTI_RPC_CONFIRMED = "MULTI_RPC_CONFIRMED"
    MULTI_RPC_CONFLICT = "MULTI_RPC_CONFLICT"
    SUPPLY_CONFLICT = "SUPPLY_CONFLICT"
    OWNER_CONFLICT = "OWNER_CONFLICT"
    CAPS_CONFLICT = "CAPS_CONFLICT"
    MINT_REACHABLE = "MINT_REACHABLE"
    BURN_REACHABLE = "BURN_REACHABLE"
    ADMIN_REACHABLE = "ADMIN_REACHABLE"

    @property
    def is_conflict(self) -> bool:
        return self.value.endswith("_CONFLICT")


class RiskLevel(str, Enum):
    """Overall risk verdict."""

    SAFE_STATIC = "SAFE_STATIC"
    SAFE_DYNAMIC = "SAFE_DYNAMIC"
    OPAQUE_BUT_ACTIVE = "OPAQUE_BUT_ACTIVE"
    ELEVATED_RISK = "ELEVATED_RISK"
    DANGEROUS = "DANGEROUS"


class EvidenceTier(str, Enum):
    """How many independent sources back the verification."""

    VIEW_ONLY = "view_only"
    MULTI_RPC_CONFIRMED = "multi_rpc_confirmed"
    MULTI_RPC_PLUS_INDEXER = "multi_rpc_plus_indexer"
    MULTI_SOURCE_CONFIRMED = "multi_source_confirmed"


class VerificationStatus(str, Enum):
    """Overall status of a cross-source verification."""

    OK = "OK"
    CONFLICT = "CONFLICT"
    INVALID_ARGS = "INVALID_ARGS"


class ClaimStatus(str, Enum):
    """Status of a single verified claim."""

    CONFIRMED = "CONFIRMED"
    CONFLICT = "CONFLICT"
    PARTIAL = "PARTIAL"
    UNAVAILABLE = "UNAVAILABLE"


class Confidence(str, Enum):
    """Confidence in a claim."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class IndexerParityStatus(str, Enum):
    """Whether the indexer could be used for corroboration."""

    SUPPORTED = "supported"
    PARTIAL = "partial"
    UNSUPPORTED = "unsupported"
    ERROR = "error"
    NOT_REQUESTED = "not_requested"


class RiskTarget(BaseModel):
    """The asset being assessed."""

    model_config = {"frozen": True}

    kind: AssetKind = Field(description="coin or fa")
    id: str = Field(description="Coin type or FA address")


class Claim(BaseModel):
    """A verified claim about the asset (e.g. MODULE_HASHES, HOOKS)."""

    model_config = {"frozen": True}

    claim_type: str = Field(description="Claim identifier")
    status: ClaimStatus = Field(description="Verification status")
    confidence: Confidence = Field(default=Confidence.MEDIUM, description="Confidence")


class Discrepancy(BaseModel):
    """A disagreement between sources (SUPPLY, OWNER, CAPS)."""

    model_config = {"frozen": True}

    claim_type: str = Field(description="Disputed claim")
    detail: str | None = Field(default=None, description="Explanation")
    sources: list[str] = Field(default_factory=list, description="Sources involved")
    values: dict[str, Any] = Field(default_factory=dict, description="Conflicting values")


class ParitySummary(BaseModel):
    """Indexer-vs-RPC parity per fact."""

    model_config = {"frozen": True}

    owner: ParityStatus | None = None
    supply: ParityStatus | None = None
    hooks: ParityStatus | None = None

    @property
    def has_mismatch(self) -> bool:
        return ParityStatus.MISMATCH in (self.owner, self.supply, self.hooks)


class SurfaceScan(BaseModel):
    """Surface-analysis facts relevant to risk."""

    model_config = {"frozen": True}

    has_opaque_abi: bool = False
    hook_controlled: bool = False
    mint_reachable: bool = False
    burn_reachable: bool = False
    admin_reachable: bool = False
    privilege_unverified: bool = False


class RiskInput(BaseModel):
    """Everything the risk synthesizer looks at."""

    model_config = {"frozen": True}

    target: RiskTarget
    overall_evidence_tier: EvidenceTier = EvidenceTier.VIEW_ONLY
    status: VerificationStatus | None = None
    discrepancies: list[Discrepancy] = Field(default_factory=list)
    claims: list[Claim] = Field(default_factory=list)
    parity: ParitySummary | None = None
    indexer_parity: IndexerParityStatus | None = None
    behavior: BehaviorEvidence | None = None
    surface_scan: SurfaceScan | None = None
    changes: list[ChangeItem] = Field(
        default_factory=list,
        description="Changes from the latest diff, if any",
    )

    @classmethod
    def from_snapshots(
        cls,
        snapshot: "Snapshot",
        behavior: BehaviorEvidence | None = None,
        report: "DiffReport | None" = None,
    ) -> "RiskInput":
        """Derive a RiskInput from a snapshot, behavior evidence and a diff."""
        from fa_audit.core.risk import risk_input_from_snapshot

        return risk_input_from_snapshot(snapshot, behavior, report)

    def claim(self, *claim_types: str) -> Claim | None:
        """First claim matching one of the given types."""
        for claim in self.claims:
            if claim.claim_type in claim_types:
                return claim
        return None


class RiskSynthesis(BaseModel):
    """Signals, verdict and rationale."""

    model_config = {"frozen": True}

    signals: list[RiskSignal] = Field(default_factory=list, description="Sorted, unique signals")
    risk_level: RiskLevel = Field(description="Overall verdict")
    rationale: list[str] = Field(default_factory=list, description="Ordered explanation")
