"""Findings, privileges and invariants produced by surface analysis."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class FindingSeverity(str, Enum):
    """Severity attached to an analysis finding."""

    INFO = "INFO"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class EvidenceRef(BaseModel):
    """A function that backs a finding."""

    model_config = {"frozen": True}

    module: str = Field(description="Module identifier (addr::name)")
    function: str = Field(description="Function name")


class Finding(BaseModel):
    """A rule-coded observation about an asset's control surface."""

    model_config = {"frozen": True}

    id: str = Field(description="Stable rule code, e.g. COIN-MINT-REACH-001")
    severity: FindingSeverity = Field(description="Finding severity")
    title: str = Field(description="Short title")
    detail: str = Field(description="Detailed explanation")
    evidence: list[EvidenceRef] = Field(
        default_factory=list,
        description="Functions that triggered the finding",
    )
    facts: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional facts the rule looked at",
    )
    recommendation: str = Field(default="", description="Suggested follow-up")


class ClassifiedFunctions(BaseModel):
    """Function names grouped by capability category (overlap allowed)."""

    model_config = {"frozen": True}

    mint: list[str] = Field(default_factory=list)
    burn: list[str] = Field(default_factory=list)
    admin: list[str] = Field(default_factory=list)
    freeze: list[str] = Field(default_factory=list)
    hook_config: list[str] = Field(default_factory=list)
    upgrade: list[str] = Field(default_factory=list)
    metadata: list[str] = Field(default_factory=list)


class PrivilegeClass(str, Enum):
    """Class of privileged operation a function exposes."""

    MINT = "MINT"
    BURN = "BURN"
    FREEZE_RESTRICT = "FREEZE_RESTRICT"
    ADMIN_OWNERSHIP = "ADMIN_OWNERSHIP"
    UPGRADE_PUBLISH = "UPGRADE_PUBLISH"
    METADATA_MUTATION = "METADATA_MUTATION"
    HOOK_CONFIG = "HOOK_CONFIG"
    UNKNOWN_PRIVILEGE = "UNKNOWN_PRIVILEGE"


class PrivilegeEvidence(BaseModel):
    """How a privileged function is exposed."""

    model_config = {"frozen": True}

    is_entry: bool = Field(description="Callable as a transaction entry point")
    is_exposed: bool = Field(description="Publicly callable from other modules")


class PrivilegeFinding(BaseModel):
    """A privileged function in a relevant module."""

    model_config = {"frozen": True}

    privilege_class: PrivilegeClass = Field(description="Privilege class")
    fn_name: str = Field(description="Function name")
    module_id: str = Field(description="Module identifier (addr::name)")
    evidence: PrivilegeEvidence = Field(description="Exposure evidence")

    @property
    def key(self) -> str:
        """``module_id::fn_name`` key used when comparing reports."""
        return f"{self.module_id}::{self.fn_name}"


def _empty_by_class() -> dict[PrivilegeClass, list[PrivilegeFinding]]:
    return {cls: [] for cls in PrivilegeClass}


class PrivilegeReport(BaseModel):
    """Privileged functions grouped by class."""

    model_config = {"frozen": True}

    by_class: dict[PrivilegeClass, list[PrivilegeFinding]] = Field(
        default_factory=_empty_by_class,
        description="Findings per privilege class (all classes present)",
    )
    all: list[PrivilegeFinding] = Field(default_factory=list, description="All findings")
    has_opaque_control: bool = Field(
        default=False,
        description="True if any relevant module surface was unreadable",
    )

    @classmethod
    def empty(cls, has_opaque_control: bool = False) -> "PrivilegeReport":
        """Create a report with no findings."""
        return cls(has_opaque_control=has_opaque_control)

    @classmethod
    def merge(cls, reports: "list[PrivilegeReport]") -> "PrivilegeReport":
        """Merge several reports into one."""
        by_class = _empty_by_class()
        everything: list[PrivilegeFinding] = []
        for report in reports:
            for privilege_class, findings in report.by_class.items():
                by_class[privilege_class].extend(findings)
            everything.extend(report.all)
        return cls(
            by_class=by_class,
            all=everything,
            has_opaque_control=any(r.has_opaque_control for r in reports),
        )


class InvariantStatus(str, Enum):
    """Status of an invariant check.

    Ordered unknown < ok < warning < violation.
    """

    UNKNOWN = "unknown"
    OK = "ok"
    WARNING = "warning"
    VIOLATION = "violation"

    @property
    def rank(self) -> int:
        return _INVARIANT_RANK[self]

    @classmethod
    def worst(cls, statuses: "list[InvariantStatus]") -> "InvariantStatus":
        """Fold statuses to the worst one; unknown when empty."""
        result = cls.UNKNOWN
        for status in statuses:
            if status.rank > result.rank:
                result = status
        return result


_INVARIANT_RANK = {
    InvariantStatus.UNKNOWN: 0,
    InvariantStatus.OK: 1,
    InvariantStatus.WARNING: 2,
    InvariantStatus.VIOLATION: 3,
}


class InvariantItem(BaseModel):
    """Result of a single invariant rule."""

    model_config = {"frozen": True}

    id: str = Field(description="Invariant identifier, e.g. COIN_SUPPLY_KNOWN")
    status: InvariantStatus = Field(description="Check status")
    title: str = Field(description="Short title")
    detail: str = Field(description="Explanation of the status")
    evidence: dict[str, Any] | None = Field(default=None, description="Supporting values")


class InvariantReport(BaseModel):
    """Ordered invariant results with the worst status as overall."""

    model_config = {"frozen": True}

    items: list[InvariantItem] = Field(default_factory=list, description="Ordered items")
    overall: InvariantStatus = Field(default=InvariantStatus.UNKNOWN, description="Worst status")

    @classmethod
    def from_items(cls, items: list[InvariantItem]) -> "InvariantReport":
        """Build a report, deriving the overall status from the items."""
        return cls(items=items, overall=InvariantStatus.worst([i.status for i in items]))

    def get(self, invariant_id: str) -> InvariantItem | None:
        """Look up an item by identifier."""
        for item in self.items:
            if item.id == invariant_id:
                return item
        return None
