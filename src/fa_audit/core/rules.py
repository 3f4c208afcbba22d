"""Asset-aware severity escalation for diff changes."""

from __future__ import annotations

from fa_audit.core.diff import parse_base_units
from fa_audit.models.diff import ChangeItem, ChangeType, DiffReport, Severity
from fa_audit.models.findings import InvariantStatus, PrivilegeClass
from fa_audit.models.snapshot import CoinCapabilities, FaCapabilities, Snapshot
from fa_audit.utils.logging import get_logger

logger = get_logger("core.rules")


class SeverityEscalator:
    """Raises change severities using the state of the current snapshot.

    Every rule result is folded with the change's existing severity through
    ``Severity.max``, so a severity is never lowered, and running the
    escalator again on its own output is a no-op.

    Example:
        report = SeverityEscalator().apply(previous, current, diff_report)
        worst = report.max_severity
    """

    def apply(self, previous: Snapshot | None, current: Snapshot, report: DiffReport) -> DiffReport:
        """Escalate every change in a diff report.

        Args:
            previous: The earlier snapshot
            current: The latest snapshot
            report: Diff of the two snapshots

        Returns:
            A new DiffReport with escalated severities
        """
        if previous is None or not report.changed:
            return report

        escalated = [self._escalate(change, current, report.changes) for change in report.changes]
        raised = sum(1 for old, new in zip(report.changes, escalated) if old.severity != new.severity)
        if raised:
            logger.debug(f"Escalated {raised} change(s) for {current.identity_key}")
        return report.model_copy(update={"changes": escalated})

    def _escalate(self, change: ChangeItem, current: Snapshot, changes: list[ChangeItem]) -> ChangeItem:
        rule = self.rule_severity(change, current, changes)
        if rule is None:
            return change
        severity = Severity.max(change.severity, rule)
        if severity == change.severity:
            return change
        return change.model_copy(update={"severity": severity})

    def rule_severity(
        self,
        change: ChangeItem,
        current: Snapshot,
        changes: list[ChangeItem],
    ) -> Severity | None:
        """Severity a rule assigns to a change, or None if no rule applies."""
        if change.type == ChangeType.SUPPLY_CHANGED:
            return self._supply_severity(change, current)

        if change.type == ChangeType.SUPPLY_MAX_CHANGED:
            return Severity.CRITICAL

        if change.type == ChangeType.ABI_SURFACE_CHANGED:
            if change.evidence.get("has_mint_like_function"):
                return Severity.CRITICAL
            return Severity.HIGH

        if change.type == ChangeType.OWNER_CHANGED:
            if any(c.type == ChangeType.HOOKS_CHANGED for c in changes):
                return Severity.CRITICAL
            return Severity.HIGH

        if change.type in (
            ChangeType.HOOKS_CHANGED,
            ChangeType.HOOK_MODULE_CODE_CHANGED,
            ChangeType.COIN_MODULE_CODE_CHANGED,
            ChangeType.MODULE_ADDED,
        ):
            return Severity.HIGH

        if change.type == ChangeType.COVERAGE_CHANGED:
            if change.before == "complete" and change.after == "partial":
                return Severity.HIGH
            return Severity.INFO

        if change.type == ChangeType.PRIVILEGES_CHANGED:
            return self._privileges_severity(change)

        if change.type == ChangeType.INVARIANTS_CHANGED:
            return self._invariants_severity(change)

        return None

    def _supply_severity(self, change: ChangeItem, current: Snapshot) -> Severity | None:
        """Unexplained supply increases are worse than capability-backed ones."""
        before = parse_base_units(change.before)
        after = parse_base_units(change.after)
        if before is None or after is None:
            return None
        if after <= before:
            return Severity.INFO

        max_supply = parse_base_units(current.supply.supply_max_base)
        if max_supply is not None and after > max_supply:
            return Severity.CRITICAL

        capabilities = current.capabilities
        if isinstance(capabilities, FaCapabilities):
            return Severity.HIGH if capabilities.has_mint_ref else Severity.INFO
        if isinstance(capabilities, CoinCapabilities):
            return Severity.MEDIUM if capabilities.has_mint_cap else Severity.HIGH
        return Severity.INFO

    def _privileges_severity(self, change: ChangeItem) -> Severity:
        added = change.evidence.get("added_privileges") or {}
        if added.get(PrivilegeClass.UPGRADE_PUBLISH.value):
            return Severity.CRITICAL
        if added:
            return Severity.HIGH
        if change.evidence.get("opaque_control_changed") and change.evidence.get("opaque_control_after"):
            return Severity.HIGH
        return Severity.MEDIUM

    def _invariants_severity(self, change: ChangeItem) -> Severity:
        if change.evidence.get("new_violations"):
            return Severity.CRITICAL
        if change.evidence.get("overall_after") == InvariantStatus.VIOLATION.value:
            return Severity.CRITICAL
        escalated = any(
            item.get("after") in (InvariantStatus.WARNING.value, InvariantStatus.VIOLATION.value)
            for item in change.evidence.get("status_changes") or []
        )
        return Severity.HIGH if escalated else Severity.MEDIUM
