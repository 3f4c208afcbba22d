"""Surface analysis data models."""

from pydantic import BaseModel, Field

from fa_audit.models.common import CoverageStatus
from fa_audit.models.findings import Finding, InvariantReport, PrivilegeReport
from fa_audit.models.inventory import ModuleInventory


class ModuleAnalysis(BaseModel):
    """Function surface read from one relevant module's ABI."""

    model_config = {"frozen": True}

    module_address: str = Field(description="Module address")
    module_name: str | None = Field(default=None, description="Module name if resolved")
    source: str = Field(description="Inventory source tag")
    abi_fetched: bool = Field(description="Whether an ABI was obtained")
    abi_error: str | None = Field(default=None, description="Why the ABI is missing")
    entry_functions: list[str] = Field(default_factory=list, description="Entry function names")
    exposed_functions: list[str] = Field(default_factory=list, description="Exposed function names")

    @property
    def module_id(self) -> str:
        """``addr::name``, or the bare address while unnamed."""
        if not self.module_name:
            return self.module_address
        return f"{self.module_address}::{self.module_name}"

    @property
    def callable_functions(self) -> list[str]:
        """Union of entry and exposed names, entry first."""
        return list(dict.fromkeys([*self.entry_functions, *self.exposed_functions]))

    @property
    def is_opaque(self) -> bool:
        """True when the function list could not be read or is empty."""
        return not self.abi_fetched or not self.callable_functions


class SurfaceAnalysis(BaseModel):
    """Findings, privileges and invariants for one asset's control surface."""

    model_config = {"frozen": True}

    inventory: ModuleInventory = Field(description="Inventory the analysis ran over")
    modules: list[ModuleAnalysis] = Field(default_factory=list, description="Analyzed relevant modules")
    findings: list[Finding] = Field(default_factory=list, description="Rule findings")
    privileges: PrivilegeReport = Field(default_factory=PrivilegeReport, description="Privilege report")
    invariants: InvariantReport = Field(default_factory=InvariantReport, description="Invariant report")
    coverage: CoverageStatus = Field(description="complete or partial")
    reasons: list[str] = Field(default_factory=list, description="Coverage reasons")
