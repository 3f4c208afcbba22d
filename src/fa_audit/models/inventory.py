"""Module inventory data models."""

from enum import Enum

from pydantic import BaseModel, Field

from fa_audit.models.common import CoverageStatus


class ModuleSource(str, Enum):
    """Where an inventory entry was discovered."""

    RPC_V3_LIST = "rpc_v3_list"
    RESOURCE_TYPES = "resource_types"
    HOOKS = "hooks"
    MANUAL = "manual"
    COIN_DEFINING = "coin_defining"
    FA_OWNER_MODULES = "fa_owner_modules"
    FA_REF_HOLDER = "fa_ref_holder"


class ModuleEntry(BaseModel):
    """A module known to exist at an address, possibly without a name yet."""

    model_config = {"frozen": True}

    module_address: str = Field(description="Lowercased 0x address")
    module_name: str | None = Field(default=None, description="Module name if resolved")
    source: ModuleSource = Field(description="How the entry was discovered")
    is_relevant: bool = Field(description="Whether the module can control the asset")

    @property
    def module_id(self) -> str | None:
        """The ``addr::name`` identifier, or None while unnamed."""
        if not self.module_name:
            return None
        return f"{self.module_address}::{self.module_name}"


class RecoveredModule(BaseModel):
    """A module name recovered by a fallback strategy."""

    model_config = {"frozen": True}

    address: str = Field(description="Module address")
    old_name: str | None = Field(default=None, description="Name before recovery")
    new_name: str = Field(description="Recovered name")
    strategy: str = Field(description="Strategy that produced the name")


class RecoveryRecord(BaseModel):
    """Audit trail of name-recovery attempts."""

    model_config = {"frozen": True}

    attempts: list[str] = Field(default_factory=list, description="Strategies tried, in order")
    recovered: list[RecoveredModule] = Field(
        default_factory=list,
        description="Names recovered and the strategy that produced each",
    )


class ModuleInventory(BaseModel):
    """The relevant-module set for an asset."""

    model_config = {"frozen": True}

    modules: list[ModuleEntry] = Field(default_factory=list, description="Ordered entries")
    status: CoverageStatus = Field(description="complete or partial")
    reasons: list[str] = Field(default_factory=list, description="Why coverage is partial")
    owner_modules_count: int | None = Field(
        default=None,
        description="Modules listed at the FA owner address",
    )
    publisher_modules_count: int | None = Field(
        default=None,
        description="Modules in the v3 listing at the coin publisher; None if the listing failed",
    )
    recovery: RecoveryRecord | None = Field(default=None, description="Name-recovery trail")

    @property
    def relevant_modules(self) -> list[ModuleEntry]:
        """Entries that can control the asset."""
        return [m for m in self.modules if m.is_relevant]

    @property
    def relevant_module_ids(self) -> list[str]:
        """Identifiers of named relevant entries, in inventory order."""
        return [m.module_id for m in self.relevant_modules if m.module_id]

    @property
    def is_complete(self) -> bool:
        """Check if coverage is complete."""
        return self.status == CoverageStatus.COMPLETE
