"""Snapshot data models.

A Snapshot is an immutable point-in-time capture of an asset's identity,
supply, capabilities, control surface, privileges and invariants. Two
snapshots are comparable only if their identities match.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from fa_audit.models.common import AuditError, CoverageStatus
from fa_audit.models.evidence import EvidenceBundle
from fa_audit.models.findings import InvariantReport, PrivilegeReport
from fa_audit.models.pins import ModulePin
from fa_audit.models.resources import HookModule

SCHEMA_VERSION = "3.0"


class SnapshotMeta(BaseModel):
    """Provenance of a snapshot."""

    model_config = {"frozen": True}

    schema_version: str = Field(default=SCHEMA_VERSION, description="Snapshot schema version")
    timestamp_iso: str = Field(description="Capture time (ISO 8601, UTC)")
    rpc_url: str = Field(description="RPC endpoint used")
    scanner_version: str = Field(description="fa-audit version that produced it")


class CoinIdentity(BaseModel):
    """Identity of a legacy coin."""

    model_config = {"frozen": True}

    kind: Literal["coin"] = "coin"
    coin_type: str = Field(description="Full coin type (0xADDR::module::Struct)")
    publisher_address: str = Field(description="Publisher address")
    module_name: str = Field(description="Defining module name")
    symbol: str | None = Field(default=None, description="Coin symbol")

    @property
    def key(self) -> str:
        return f"coin:{self.coin_type}"


class FaIdentity(BaseModel):
    """Identity of an object-based fungible asset."""

    model_config = {"frozen": True}

    kind: Literal["fa"] = "fa"
    fa_address: str = Field(description="FA object address")
    object_owner: str | None = Field(default=None, description="Object owner")
    symbol: str | None = Field(default=None, description="Asset symbol")

    @property
    def key(self) -> str:
        return f"fa:{self.fa_address}"


Identity = Annotated[Union[CoinIdentity, FaIdentity], Field(discriminator="kind")]


class SupplyInfo(BaseModel):
    """Supply facts, kept as base-unit strings to avoid precision loss."""

    model_config = {"frozen": True}

    supply_current_base: str | None = Field(default=None, description="Current supply")
    decimals: int | None = Field(default=None, description="Decimals")
    supply_current_formatted: str | None = Field(default=None, description="Human-scaled supply")
    supply_max_base: str | None = Field(default=None, description="Declared max supply")


class CoinCapabilities(BaseModel):
    """Resource-level capability flags of a coin."""

    model_config = {"frozen": True}

    kind: Literal["coin"] = "coin"
    has_mint_cap: bool = False
    has_burn_cap: bool = False
    has_freeze_cap: bool = False
    has_transfer_restrictions: bool = False
    owner: str | None = Field(default=None, description="Declared owner")
    admin: str | None = Field(default=None, description="Declared admin")


class FaCapabilities(BaseModel):
    """Resource-level ref and hook flags of a fungible asset."""

    model_config = {"frozen": True}

    kind: Literal["fa"] = "fa"
    has_mint_ref: bool = False
    has_burn_ref: bool = False
    has_transfer_ref: bool = False
    has_deposit_hook: bool = False
    has_withdraw_hook: bool = False
    has_derived_balance_hook: bool = False


Capabilities = Annotated[Union[CoinCapabilities, FaCapabilities], Field(discriminator="kind")]


class ModuleSurface(BaseModel):
    """Functions a relevant module exposes."""

    model_config = {"frozen": True}

    module_id: str = Field(description="addr::name")
    abi_fetched: bool = Field(description="Whether the ABI could be read")
    entry_fn_names: list[str] = Field(default_factory=list, description="Sorted entry functions")
    exposed_fn_names: list[str] = Field(default_factory=list, description="Sorted exposed functions")


class HookInfo(BaseModel):
    """A hook slot with its target and inherent risk."""

    model_config = {"frozen": True}

    hook_type: str = Field(description="Slot name (deposit, withdraw, ...)")
    target: str = Field(description="addr::module::function")
    risk: str = Field(description="low, medium or high")


class ControlSurface(BaseModel):
    """Everything that can control the asset."""

    model_config = {"frozen": True}

    relevant_modules: list[str] = Field(default_factory=list, description="Relevant module ids")
    modules: dict[str, ModuleSurface] = Field(default_factory=dict, description="Per-module surface")
    module_pins: list[ModulePin] = Field(default_factory=list, description="Coin module pins")
    hook_modules: list[HookModule] = Field(default_factory=list, description="FA hook modules")
    hooks: list[HookInfo] = Field(default_factory=list, description="FA hook slots")
    hook_module_pins: list[ModulePin] = Field(default_factory=list, description="FA hook pins")
    owner_modules_count: int | None = Field(default=None, description="Modules at FA owner")


class SnapshotCoverage(BaseModel):
    """How complete the snapshot's analysis was."""

    model_config = {"frozen": True}

    coverage: CoverageStatus = Field(description="complete or partial")
    reasons: list[str] = Field(default_factory=list, description="Why coverage is partial")


class FindingSummary(BaseModel):
    """Condensed finding kept in a snapshot."""

    model_config = {"frozen": True}

    id: str = Field(description="Rule code")
    severity: str = Field(description="info, medium or high")
    title: str = Field(description="Short title")


class SnapshotHashes(BaseModel):
    """Surface and pin hashes used for drift detection."""

    model_config = {"frozen": True}

    module_surface_hash: dict[str, str] = Field(
        default_factory=dict,
        description="Short hash of entry+exposed functions per module",
    )
    overall_surface_hash: str | None = Field(default=None, description="Hash of all module hashes")
    hook_modules_surface_hash: str | None = Field(default=None, description="FA hook pin aggregate")
    module_pins_hash: str | None = Field(default=None, description="Coin module pin aggregate")


class Snapshot(BaseModel):
    """Immutable capture of an asset's security posture."""

    model_config = {"frozen": True}

    meta: SnapshotMeta
    identity: Identity
    supply: SupplyInfo = Field(default_factory=SupplyInfo)
    capabilities: Capabilities
    control_surface: ControlSurface = Field(default_factory=ControlSurface)
    coverage: SnapshotCoverage
    findings: list[FindingSummary] = Field(default_factory=list)
    hashes: SnapshotHashes = Field(default_factory=SnapshotHashes)
    privileges: PrivilegeReport | None = Field(default=None)
    invariants: InvariantReport | None = Field(default=None)
    evidence: EvidenceBundle | None = Field(default=None)

    @property
    def identity_key(self) -> str:
        """Key that must match for two snapshots to be comparable."""
        return self.identity.key

    @property
    def owner(self) -> str | None:
        """Owner address, regardless of asset kind."""
        if isinstance(self.identity, FaIdentity):
            return self.identity.object_owner
        if isinstance(self.capabilities, CoinCapabilities):
            return self.capabilities.owner
        return None

    @property
    def pins(self) -> list[ModulePin]:
        """Pins relevant to drift detection for this asset kind."""
        if isinstance(self.identity, FaIdentity):
            return list(self.control_surface.hook_module_pins)
        return list(self.control_surface.module_pins)

    @property
    def pins_aggregate(self) -> str | None:
        """Aggregate pin hash for this asset kind."""
        if isinstance(self.identity, FaIdentity):
            return self.hashes.hook_modules_surface_hash
        return self.hashes.module_pins_hash


class SnapshotResult(BaseModel):
    """Result of a scan that produces a snapshot."""

    model_config = {"frozen": True}

    success: bool = Field(description="Whether the scan succeeded")
    snapshot: Snapshot | None = Field(default=None, description="The snapshot if successful")
    errors: list[AuditError] = Field(default_factory=list, description="Errors that occurred")

    @classmethod
    def ok(cls, snapshot: Snapshot) -> "SnapshotResult":
        """Create a successful result."""
        return cls(success=True, snapshot=snapshot)

    @classmethod
    def fail(cls, errors: list[AuditError]) -> "SnapshotResult":
        """Create a failed result."""
        return cls(success=False, errors=errors)
