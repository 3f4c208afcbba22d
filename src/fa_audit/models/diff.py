"""Diff-related data models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from fa_audit.models.common import AuditError


class ChangeType(str, Enum):
    """Type of change detected between two snapshots."""

    SUPPLY_CHANGED = "SUPPLY_CHANGED"
    SUPPLY_MAX_CHANGED = "SUPPLY_MAX_CHANGED"
    OWNER_CHANGED = "OWNER_CHANGED"
    ADMIN_CHANGED = "ADMIN_CHANGED"
    CAPABILITIES_CHANGED = "CAPABILITIES_CHANGED"
    PRIVILEGE_ESCALATION = "PRIVILEGE_ESCALATION"
    HOOKS_CHANGED = "HOOKS_CHANGED"
    HOOK_MODULE_CODE_CHANGED = "HOOK_MODULE_CODE_CHANGED"
    COIN_MODULE_CODE_CHANGED = "COIN_MODULE_CODE_CHANGED"
    MODULE_ADDED = "MODULE_ADDED"
    MODULE_REMOVED = "MODULE_REMOVED"
    ABI_SURFACE_CHANGED = "ABI_SURFACE_CHANGED"
    COVERAGE_CHANGED = "COVERAGE_CHANGED"
    FINDINGS_CHANGED = "FINDINGS_CHANGED"
    FINDING_ADDED = "FINDING_ADDED"
    FINDING_REMOVED = "FINDING_REMOVED"
    PRIVILEGES_CHANGED = "PRIVILEGES_CHANGED"
    INVARIANTS_CHANGED = "INVARIANTS_CHANGED"


class Severity(str, Enum):
    """Severity of a change.

    Ordered info < medium < high < critical.
    """

    INFO = "info"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def max(cls, *severities: "Severity") -> "Severity":
        """The most severe of the given severities."""
        result = cls.INFO
        for severity in severities:
            if severity.rank > result.rank:
                result = severity
        return result


_SEVERITY_RANK = {
    Severity.INFO: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class ChangeItem(BaseModel):
    """A single typed change between two snapshots."""

    model_config = {"frozen": True}

    type: ChangeType = Field(description="Change type")
    severity: Severity = Field(default=Severity.INFO, description="Change severity")
    before: Any = Field(default=None, description="Value in the previous snapshot")
    after: Any = Field(default=None, description="Value in the current snapshot")
    evidence: dict[str, Any] = Field(default_factory=dict, description="Supporting detail")


class AgentHints(BaseModel):
    """Follow-up work a monitoring agent should schedule."""

    model_config = {"frozen": True}

    requires_multi_rpc: bool = Field(default=False, description="Confirm with another RPC")
    requires_tx_correlation: bool = Field(default=False, description="Correlate with transactions")
    escalation_reason: str | None = Field(default=None, description="Why hints were raised")


class DiffReport(BaseModel):
    """Comparison of two snapshots of the same asset."""

    model_config = {"frozen": True}

    identity_key: str | None = Field(default=None, description="Identity compared")
    generated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Report generation timestamp",
    )
    changed: bool = Field(default=False, description="Whether anything changed")
    changes: list[ChangeItem] = Field(default_factory=list, description="Ordered changes")
    agent_hints: AgentHints = Field(default_factory=AgentHints)

    @property
    def max_severity(self) -> Severity | None:
        """Most severe change, or None when nothing changed."""
        if not self.changes:
            return None
        return Severity.max(*(c.severity for c in self.changes))

    def changes_by_type(self, change_type: ChangeType) -> list[ChangeItem]:
        """Filter changes by type."""
        return [c for c in self.changes if c.type == change_type]

    def changes_by_severity(self, severity: Severity) -> list[ChangeItem]:
        """Filter changes by severity."""
        return [c for c in self.changes if c.severity == severity]


class DiffResult(BaseModel):
    """Result of a diff operation."""

    model_config = {"frozen": True}

    success: bool = Field(description="Whether the diff operation succeeded")
    report: DiffReport | None = Field(default=None, description="The diff report if successful")
    errors: list[AuditError] = Field(default_factory=list, description="Errors that occurred")

    @classmethod
    def ok(cls, report: DiffReport) -> "DiffResult":
        """Create a successful result."""
        return cls(success=True, report=report)

    @classmethod
    def fail(cls, errors: list[AuditError]) -> "DiffResult":
        """Create a failed result."""
        return cls(success=False, errors=errors)
