"""DiffEngine for comparing two snapshots of the same asset."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

from fa_audit.models.common import AuditError, CoverageStatus
from fa_audit.models.diff import AgentHints, ChangeItem, ChangeType, DiffReport, DiffResult, Severity
from fa_audit.models.findings import InvariantStatus
from fa_audit.models.pins import ModulePin
from fa_audit.models.snapshot import CoinCapabilities, FaCapabilities, Snapshot
from fa_audit.utils.logging import get_logger

logger = get_logger("core.diff")

LARGE_SUPPLY_DELTA = 1_000_000
LARGE_SUPPLY_PCT = 0.01

MINT_LIKE_PATTERN = re.compile(r"(mint|issue|faucet|set_admin|set_minter)", re.IGNORECASE)

# Tie-break between changes of equal severity
TYPE_PRIORITY: dict[ChangeType, int] = {
    ChangeType.SUPPLY_MAX_CHANGED: 1,
    ChangeType.PRIVILEGE_ESCALATION: 2,
    ChangeType.OWNER_CHANGED: 3,
    ChangeType.HOOKS_CHANGED: 5,
    ChangeType.HOOK_MODULE_CODE_CHANGED: 6,
    ChangeType.COIN_MODULE_CODE_CHANGED: 6,
    ChangeType.CAPABILITIES_CHANGED: 7,
    ChangeType.ABI_SURFACE_CHANGED: 8,
    ChangeType.MODULE_ADDED: 9,
    ChangeType.MODULE_REMOVED: 10,
    ChangeType.FINDING_ADDED: 11,
    ChangeType.FINDINGS_CHANGED: 12,
    ChangeType.FINDING_REMOVED: 13,
    ChangeType.PRIVILEGES_CHANGED: 14,
    ChangeType.INVARIANTS_CHANGED: 15,
    ChangeType.COVERAGE_CHANGED: 16,
    ChangeType.SUPPLY_CHANGED: 17,
    ChangeType.ADMIN_CHANGED: 19,
}
# Rank of a SUPPLY_CHANGED whose evidence marks it large
LARGE_SUPPLY_PRIORITY = 4

_COIN_FLAGS = ("has_mint_cap", "has_burn_cap", "has_freeze_cap", "has_transfer_restrictions")
_FA_FLAGS = (
    "has_mint_ref",
    "has_burn_ref",
    "has_transfer_ref",
    "has_deposit_hook",
    "has_withdraw_hook",
    "has_derived_balance_hook",
)

# Flags whose appearance counts as a privilege escalation, in reporting priority
_ESCALATION_FLAGS = (
    "has_mint_ref",
    "has_mint_cap",
    "has_withdraw_hook",
    "has_freeze_cap",
    "has_transfer_restrictions",
    "has_transfer_ref",
)
_HIGH_SEVERITY_FLAGS = {"has_mint_ref", "has_burn_ref", "has_mint_cap", "has_freeze_cap"}


def parse_base_units(value: Any) -> int | None:
    """Parse a base-unit amount; None when absent or unparseable."""
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _summary_severity(value: str) -> Severity:
    try:
        return Severity(value)
    except ValueError:
        return Severity.INFO


def _hook_key(hook: dict[str, Any]) -> str:
    return f"{hook.get('module_address')}::{hook.get('module_name')}::{hook.get('function_name')}"


class DiffEngine:
    """Engine for comparing two snapshots of one asset.

    The DiffEngine compares supply, ownership, capabilities, hooks, module
    pins, the ABI surface, coverage, findings, privileges and invariants,
    and returns a typed, severity-ordered change list.

    Example:
        engine = DiffEngine()
        result = engine.diff(previous, current)

        if result.success:
            for change in result.report.changes:
                print(f"{change.type.value}: {change.severity.value}")
    """

    def __init__(self, ignore_supply: bool = False) -> None:
        """Initialize the diff engine.

        Args:
            ignore_supply: Skip supply and max-supply comparisons
        """
        self._ignore_supply = ignore_supply

    def diff(self, previous: Snapshot | None, current: Snapshot) -> DiffResult:
        """Compare two snapshots and generate a diff report.

        Args:
            previous: The earlier snapshot, or None for a first scan
            current: The latest snapshot

        Returns:
            DiffResult containing the comparison report or errors
        """
        if previous is None:
            logger.debug("No previous snapshot; nothing to diff")
            return DiffResult.ok(DiffReport(identity_key=current.identity_key))

        if previous.identity_key != current.identity_key:
            return DiffResult.fail(
                [
                    AuditError(
                        code="IDENTITY_MISMATCH",
                        message="Snapshots describe different assets",
                        details={"previous": previous.identity_key, "current": current.identity_key},
                    )
                ]
            )

        try:
            changes: list[ChangeItem] = []
            if not self._ignore_supply:
                changes.extend(self._diff_supply(previous, current))
            changes.extend(self._diff_owner(previous, current))
            changes.extend(self._diff_capabilities(previous, current))
            changes.extend(self._diff_hooks(previous, current))
            changes.extend(self._diff_pins(previous, current))
            changes.extend(self._diff_modules(previous, current))
            changes.extend(self._diff_abi_surface(previous, current))
            changes.extend(self._diff_coverage(previous, current))
            changes.extend(self._diff_findings(previous, current))
            changes.extend(self._diff_privileges(previous, current))
            changes.extend(self._diff_invariants(previous, current))

            ordered = sort_changes(changes)
            report = DiffReport(
                identity_key=current.identity_key,
                generated_at=datetime.now(timezone.utc),
                changed=bool(ordered),
                changes=ordered,
                agent_hints=build_agent_hints(ordered),
            )
            logger.debug(f"Diff of {current.identity_key}: {len(ordered)} change(s)")
            return DiffResult.ok(report)

        except Exception as e:
            return DiffResult.fail(
                [
                    AuditError(
                        code="DIFF_ERROR",
                        message=f"Failed to diff snapshots: {e}",
                        details={"identity": current.identity_key},
                    )
                ]
            )

    def _diff_supply(self, prev: Snapshot, curr: Snapshot) -> list[ChangeItem]:
        """Compare current and max supply as numeric magnitudes."""
        changes: list[ChangeItem] = []
        before = prev.supply.supply_current_base
        after = curr.supply.supply_current_base
        before_val, after_val = parse_base_units(before), parse_base_units(after)

        if before_val is not None and after_val is not None:
            changed = before_val != after_val
        else:
            changed = before != after

        if changed:
            delta_abs = None
            delta_pct = None
            large = False
            if before_val is not None and after_val is not None:
                delta_abs = abs(after_val - before_val)
                delta_pct = delta_abs / max(before_val, 1)
                large = delta_pct >= LARGE_SUPPLY_PCT or delta_abs >= LARGE_SUPPLY_DELTA
            changes.append(
                ChangeItem(
                    type=ChangeType.SUPPLY_CHANGED,
                    severity=Severity.HIGH if large else Severity.INFO,
                    before=before,
                    after=after,
                    evidence={
                        "formatted_before": prev.supply.supply_current_formatted,
                        "formatted_after": curr.supply.supply_current_formatted,
                        "decimals": curr.supply.decimals,
                        "delta_abs": str(delta_abs) if delta_abs is not None else None,
                        "delta_pct": delta_pct,
                        "large": large,
                    },
                )
            )

        prev_max, curr_max = prev.supply.supply_max_base, curr.supply.supply_max_base
        prev_max_val, curr_max_val = parse_base_units(prev_max), parse_base_units(curr_max)
        if prev_max_val is not None and curr_max_val is not None:
            max_changed = prev_max_val != curr_max_val
        else:
            max_changed = prev_max != curr_max
        if max_changed:
            changes.append(
                ChangeItem(
                    type=ChangeType.SUPPLY_MAX_CHANGED,
                    severity=Severity.CRITICAL,
                    before=prev_max,
                    after=curr_max,
                )
            )
        return changes

    def _diff_owner(self, prev: Snapshot, curr: Snapshot) -> list[ChangeItem]:
        """Compare owner and, for coins, admin."""
        changes: list[ChangeItem] = []
        if prev.owner != curr.owner:
            changes.append(
                ChangeItem(
                    type=ChangeType.OWNER_CHANGED,
                    severity=Severity.HIGH,
                    before=prev.owner,
                    after=curr.owner,
                )
            )

        if isinstance(prev.capabilities, CoinCapabilities) and isinstance(curr.capabilities, CoinCapabilities):
            if prev.capabilities.admin != curr.capabilities.admin:
                changes.append(
                    ChangeItem(
                        type=ChangeType.ADMIN_CHANGED,
                        severity=Severity.HIGH,
                        before=prev.capabilities.admin,
                        after=curr.capabilities.admin,
                    )
                )
        return changes

    def _diff_capabilities(self, prev: Snapshot, curr: Snapshot) -> list[ChangeItem]:
        """Compare capability flags and detect privilege escalation."""
        if isinstance(curr.capabilities, FaCapabilities):
            flags = _FA_FLAGS
        else:
            flags = _COIN_FLAGS
        if type(prev.capabilities) is not type(curr.capabilities):
            return []

        changed_fields: list[str] = []
        appeared: list[str] = []
        for flag in flags:
            before = getattr(prev.capabilities, flag)
            after = getattr(curr.capabilities, flag)
            if before != after:
                changed_fields.append(flag)
                if after and not before:
                    appeared.append(flag)

        if not changed_fields:
            return []

        changes = [
            ChangeItem(
                type=ChangeType.CAPABILITIES_CHANGED,
                severity=Severity.HIGH if _HIGH_SEVERITY_FLAGS & set(appeared) else Severity.MEDIUM,
                before=prev.capabilities.model_dump(mode="json"),
                after=curr.capabilities.model_dump(mode="json"),
                evidence={"changed_fields": changed_fields, "appeared": appeared},
            )
        ]

        escalated = [flag for flag in _ESCALATION_FLAGS if flag in appeared]
        if escalated:
            changes.append(
                ChangeItem(
                    type=ChangeType.PRIVILEGE_ESCALATION,
                    severity=Severity.HIGH,
                    before=False,
                    after=True,
                    evidence={"appeared": escalated},
                )
            )
        return changes

    def _diff_hooks(self, prev: Snapshot, curr: Snapshot) -> list[ChangeItem]:
        """Compare registered hook functions (FA only)."""
        if not isinstance(curr.capabilities, FaCapabilities):
            return []

        prev_hooks = {
            _hook_key(h): h for h in (m.model_dump(mode="json") for m in prev.control_surface.hook_modules)
        }
        curr_hooks = {
            _hook_key(h): h for h in (m.model_dump(mode="json") for m in curr.control_surface.hook_modules)
        }
        added = [curr_hooks[k] for k in sorted(curr_hooks) if k not in prev_hooks]
        removed = [prev_hooks[k] for k in sorted(prev_hooks) if k not in curr_hooks]
        if not added and not removed:
            return []

        touched = [str(h.get("function_name") or "").lower() for h in [*added, *removed]]
        sensitive = any("withdraw" in fn or "transfer" in fn for fn in touched)
        return [
            ChangeItem(
                type=ChangeType.HOOKS_CHANGED,
                severity=Severity.HIGH if sensitive else Severity.MEDIUM,
                before=[prev_hooks[k] for k in sorted(prev_hooks)],
                after=[curr_hooks[k] for k in sorted(curr_hooks)],
                evidence={"added": added, "removed": removed, "withdraw_or_transfer": sensitive},
            )
        ]

    def _diff_pins(self, prev: Snapshot, curr: Snapshot) -> list[ChangeItem]:
        """Detect module code changes behind an unchanged identity."""
        prev_pins, curr_pins = prev.pins, curr.pins
        if not prev_pins and not curr_pins:
            return []

        change_type = (
            ChangeType.HOOK_MODULE_CODE_CHANGED
            if isinstance(curr.capabilities, FaCapabilities)
            else ChangeType.COIN_MODULE_CODE_CHANGED
        )
        previous: dict[str, ModulePin] = {p.module_id: p for p in prev_pins}
        current: dict[str, ModulePin] = {p.module_id: p for p in curr_pins}

        changed_modules: list[dict[str, Any]] = []
        for module_id, pin in current.items():
            old = previous.get(module_id)
            if old is not None and old.code_hash != pin.code_hash:
                changed_modules.append(
                    {"module_id": module_id, "prev_hash": old.code_hash, "curr_hash": pin.code_hash, "role": pin.role}
                )
        for module_id, old in previous.items():
            if module_id not in current and old.code_hash is not None:
                changed_modules.append(
                    {"module_id": module_id, "prev_hash": old.code_hash, "curr_hash": None, "role": old.role}
                )

        prev_aggregate, curr_aggregate = prev.pins_aggregate, curr.pins_aggregate
        aggregate_changed = (
            prev_aggregate is not None and curr_aggregate is not None and prev_aggregate != curr_aggregate
        )
        if not changed_modules and not aggregate_changed:
            return []

        return [
            ChangeItem(
                type=change_type,
                severity=Severity.HIGH,
                before=[p.model_dump(mode="json") for p in prev_pins],
                after=[p.model_dump(mode="json") for p in curr_pins],
                evidence={
                    "changed_modules": changed_modules,
                    "prev_aggregate_hash": prev_aggregate,
                    "curr_aggregate_hash": curr_aggregate,
                },
            )
        ]

    def _diff_modules(self, prev: Snapshot, curr: Snapshot) -> list[ChangeItem]:
        """Detect relevant modules appearing or disappearing."""
        prev_modules = prev.control_surface.relevant_modules
        curr_modules = curr.control_surface.relevant_modules
        added = [m for m in curr_modules if m not in prev_modules]
        removed = [m for m in prev_modules if m not in curr_modules]

        changes: list[ChangeItem] = []
        if added:
            changes.append(
                ChangeItem(
                    type=ChangeType.MODULE_ADDED,
                    severity=Severity.HIGH,
                    after=added,
                    evidence={"modules": added, "count": len(added)},
                )
            )
        if removed:
            changes.append(
                ChangeItem(
                    type=ChangeType.MODULE_REMOVED,
                    severity=Severity.HIGH,
                    before=removed,
                    evidence={"modules": removed, "count": len(removed)},
                )
            )
        return changes

    def _diff_abi_surface(self, prev: Snapshot, curr: Snapshot) -> list[ChangeItem]:
        """Compare per-module entry and exposed function lists.

        Function lists are always compared directly; the surface hashes are
        reported but never trusted on their own.
        """
        prev_modules = prev.control_surface.modules
        curr_modules = curr.control_surface.modules
        prev_hashes = prev.hashes.module_surface_hash
        curr_hashes = curr.hashes.module_surface_hash

        module_changes: list[dict[str, Any]] = []
        for module_id in sorted(set(prev_modules) | set(curr_modules)):
            before = prev_modules.get(module_id)
            after = curr_modules.get(module_id)
            prev_entry = sorted(before.entry_fn_names) if before else []
            curr_entry = sorted(after.entry_fn_names) if after else []
            prev_exposed = sorted(before.exposed_fn_names) if before else []
            curr_exposed = sorted(after.exposed_fn_names) if after else []

            if before is not None and after is not None and prev_entry == curr_entry and prev_exposed == curr_exposed:
                continue

            module_changes.append(
                {
                    "module_id": module_id,
                    "added_entry_fns": [f for f in curr_entry if f not in prev_entry],
                    "removed_entry_fns": [f for f in prev_entry if f not in curr_entry],
                    "added_exposed_fns": [f for f in curr_exposed if f not in prev_exposed],
                    "removed_exposed_fns": [f for f in prev_exposed if f not in curr_exposed],
                    "before_module_hash": prev_hashes.get(module_id),
                    "after_module_hash": curr_hashes.get(module_id),
                }
            )

        hash_changed = prev.hashes.overall_surface_hash != curr.hashes.overall_surface_hash
        if not module_changes and not hash_changed:
            return []

        mint_like = sorted(
            {
                fn
                for change in module_changes
                for fn in [*change["added_entry_fns"], *change["added_exposed_fns"]]
                if MINT_LIKE_PATTERN.search(fn)
            }
        )
        return [
            ChangeItem(
                type=ChangeType.ABI_SURFACE_CHANGED,
                severity=Severity.HIGH,
                before={"overall_surface_hash": prev.hashes.overall_surface_hash, "module_surface_hash": prev_hashes},
                after={"overall_surface_hash": curr.hashes.overall_surface_hash, "module_surface_hash": curr_hashes},
                evidence={
                    "module_changes": module_changes,
                    "modules_added": [m for m in curr_modules if m not in prev_modules],
                    "modules_removed": [m for m in prev_modules if m not in curr_modules],
                    "has_mint_like_function": bool(mint_like),
                    "mint_like_functions": mint_like,
                },
            )
        ]

    def _diff_coverage(self, prev: Snapshot, curr: Snapshot) -> list[ChangeItem]:
        before, after = prev.coverage.coverage, curr.coverage.coverage
        if before == after:
            return []
        degraded = before == CoverageStatus.COMPLETE and after == CoverageStatus.PARTIAL
        return [
            ChangeItem(
                type=ChangeType.COVERAGE_CHANGED,
                severity=Severity.HIGH if degraded else Severity.INFO,
                before=before.value,
                after=after.value,
                evidence={"reasons_before": prev.coverage.reasons, "reasons_after": curr.coverage.reasons},
            )
        ]

    def _diff_findings(self, prev: Snapshot, curr: Snapshot) -> list[ChangeItem]:
        """Compare finding ids, then (id, severity) pairs."""
        changes: list[ChangeItem] = []
        prev_by_id = {f.id: f for f in prev.findings}
        curr_by_id = {f.id: f for f in curr.findings}

        for finding in curr.findings:
            if finding.id not in prev_by_id:
                changes.append(
                    ChangeItem(
                        type=ChangeType.FINDING_ADDED,
                        severity=_summary_severity(finding.severity),
                        after=finding.id,
                        evidence={"id": finding.id, "title": finding.title, "severity": finding.severity},
                    )
                )
        for finding in prev.findings:
            if finding.id not in curr_by_id:
                changes.append(
                    ChangeItem(
                        type=ChangeType.FINDING_REMOVED,
                        severity=Severity.INFO,
                        before=finding.id,
                        evidence={"id": finding.id, "title": finding.title},
                    )
                )

        prev_keys = {(f.id, f.severity) for f in prev.findings}
        curr_keys = {(f.id, f.severity) for f in curr.findings}
        new_findings = [f for f in curr.findings if (f.id, f.severity) not in prev_keys]
        gone_findings = [f for f in prev.findings if (f.id, f.severity) not in curr_keys]

        escalations = []
        for finding in curr.findings:
            old = prev_by_id.get(finding.id)
            if old and _summary_severity(finding.severity).rank > _summary_severity(old.severity).rank:
                escalations.append({"id": finding.id, "before": old.severity, "after": finding.severity})

        if new_findings or gone_findings or escalations:
            severity = Severity.max(*(_summary_severity(f.severity) for f in new_findings))
            if escalations:
                severity = Severity.max(severity, Severity.HIGH)
            changes.append(
                ChangeItem(
                    type=ChangeType.FINDINGS_CHANGED,
                    severity=severity,
                    before=[f.model_dump(mode="json") for f in prev.findings],
                    after=[f.model_dump(mode="json") for f in curr.findings],
                    evidence={
                        "new_findings": [f.model_dump(mode="json") for f in new_findings],
                        "removed_findings": [f.model_dump(mode="json") for f in gone_findings],
                        "severity_escalations": escalations,
                        "max_new_severity": severity.value,
                    },
                )
            )
        return changes

    def _diff_privileges(self, prev: Snapshot, curr: Snapshot) -> list[ChangeItem]:
        """Compare privilege reports by class."""
        before, after = prev.privileges, curr.privileges
        if before is None and after is None:
            return []
        before_json = before.model_dump(mode="json") if before else None
        after_json = after.model_dump(mode="json") if after else None
        if before_json == after_json:
            return []

        added: dict[str, list[str]] = {}
        removed: dict[str, list[str]] = {}
        classes = set(before.by_class if before else {}) | set(after.by_class if after else {})
        for privilege_class in sorted(classes, key=lambda c: c.value):
            prev_keys = [p.key for p in (before.by_class.get(privilege_class, []) if before else [])]
            curr_keys = [p.key for p in (after.by_class.get(privilege_class, []) if after else [])]
            new = [k for k in curr_keys if k not in prev_keys]
            gone = [k for k in prev_keys if k not in curr_keys]
            if new:
                added[privilege_class.value] = new
            if gone:
                removed[privilege_class.value] = gone

        opaque_before = before.has_opaque_control if before else False
        opaque_after = after.has_opaque_control if after else False
        return [
            ChangeItem(
                type=ChangeType.PRIVILEGES_CHANGED,
                severity=Severity.HIGH if added or (opaque_after and not opaque_before) else Severity.MEDIUM,
                before=before_json,
                after=after_json,
                evidence={
                    "added_privileges": added,
                    "removed_privileges": removed,
                    "opaque_control_changed": opaque_before != opaque_after,
                    "opaque_control_before": opaque_before,
                    "opaque_control_after": opaque_after,
                },
            )
        ]

    def _diff_invariants(self, prev: Snapshot, curr: Snapshot) -> list[ChangeItem]:
        """Compare invariant statuses item by item."""
        before, after = prev.invariants, curr.invariants
        if before is None and after is None:
            return []
        before_json = before.model_dump(mode="json") if before else None
        after_json = after.model_dump(mode="json") if after else None
        if before_json == after_json:
            return []

        prev_items = {i.id: i for i in before.items} if before else {}
        curr_items = {i.id: i for i in after.items} if after else {}
        status_changes: list[dict[str, str]] = []
        new_violations: list[str] = []
        resolved_violations: list[str] = []

        for item_id, item in curr_items.items():
            old = prev_items.get(item_id)
            if old is None:
                if item.status == InvariantStatus.VIOLATION:
                    new_violations.append(item_id)
                continue
            if old.status != item.status:
                status_changes.append({"id": item_id, "before": old.status.value, "after": item.status.value})
                if item.status == InvariantStatus.VIOLATION:
                    new_violations.append(item_id)
                elif old.status == InvariantStatus.VIOLATION:
                    resolved_violations.append(item_id)
        for item_id, old in prev_items.items():
            if item_id not in curr_items and old.status == InvariantStatus.VIOLATION:
                resolved_violations.append(item_id)

        overall_before = before.overall if before else InvariantStatus.UNKNOWN
        overall_after = after.overall if after else InvariantStatus.UNKNOWN
        if new_violations:
            severity = Severity.CRITICAL
        elif overall_before != overall_after:
            severity = Severity.HIGH
        else:
            severity = Severity.MEDIUM

        return [
            ChangeItem(
                type=ChangeType.INVARIANTS_CHANGED,
                severity=severity,
                before=before_json,
                after=after_json,
                evidence={
                    "status_changes": status_changes,
                    "new_violations": new_violations,
                    "resolved_violations": resolved_violations,
                    "overall_before": overall_before.value,
                    "overall_after": overall_after.value,
                },
            )
        ]


def sort_changes(changes: list[ChangeItem]) -> list[ChangeItem]:
    """Order by severity (critical first), then type priority, then detection order."""
    return sorted(changes, key=lambda c: (-c.severity.rank, change_priority(c)))


def change_priority(change: ChangeItem) -> int:
    if is_large_supply_change(change):
        return LARGE_SUPPLY_PRIORITY
    return TYPE_PRIORITY.get(change.type, 99)


def is_large_supply_change(change: ChangeItem) -> bool:
    """Whether a supply change crossed the large-change threshold."""
    return change.type == ChangeType.SUPPLY_CHANGED and bool(change.evidence.get("large"))


def build_agent_hints(changes: list[ChangeItem]) -> AgentHints:
    """Derive follow-up hints from an ordered change list."""
    multi_rpc = False
    tx_correlation = False
    reasons: list[str] = []

    for change in changes:
        if change.type == ChangeType.OWNER_CHANGED:
            multi_rpc = tx_correlation = True
            reasons.append("owner changed")
        elif change.type == ChangeType.PRIVILEGE_ESCALATION:
            multi_rpc = tx_correlation = True
            reasons.append("privilege escalation")
        elif change.type == ChangeType.HOOKS_CHANGED and change.evidence.get("withdraw_or_transfer"):
            multi_rpc = tx_correlation = True
            reasons.append("withdraw/transfer hook changed")
        elif is_large_supply_change(change):
            multi_rpc = True
            reasons.append("large supply change")

    return AgentHints(
        requires_multi_rpc=multi_rpc,
        requires_tx_correlation=tx_correlation,
        escalation_reason="; ".join(reasons) if reasons else None,
    )
