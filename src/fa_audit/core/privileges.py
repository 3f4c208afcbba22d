"""Privilege extraction from module function surfaces."""

from __future__ import annotations

from typing import Iterable

from fa_audit.core.classifier import CATEGORY_PATTERNS
from fa_audit.models.findings import (
    PrivilegeClass,
    PrivilegeEvidence,
    PrivilegeFinding,
    PrivilegeReport,
)

# First match wins, in this order
PRIVILEGE_ORDER: list[tuple[str, PrivilegeClass]] = [
    ("mint", PrivilegeClass.MINT),
    ("burn", PrivilegeClass.BURN),
    ("freeze", PrivilegeClass.FREEZE_RESTRICT),
    ("admin", PrivilegeClass.ADMIN_OWNERSHIP),
    ("upgrade", PrivilegeClass.UPGRADE_PUBLISH),
    ("metadata", PrivilegeClass.METADATA_MUTATION),
    ("hook_config", PrivilegeClass.HOOK_CONFIG),
]


def privilege_class_for(fn_name: str) -> PrivilegeClass | None:
    """Single privilege class for a function name, or None if unprivileged."""
    for category, privilege_class in PRIVILEGE_ORDER:
        if CATEGORY_PATTERNS[category].search(fn_name):
            return privilege_class
    return None


def extract_privileges(
    module_id: str,
    entry_functions: Iterable[str],
    exposed_functions: Iterable[str] = (),
) -> list[PrivilegeFinding]:
    """Privileged functions of one module.

    Args:
        module_id: Module identifier (addr::name)
        entry_functions: Transaction entry points
        exposed_functions: Publicly callable functions

    Returns:
        One finding per privileged function, in first-seen order
    """
    entry = list(entry_functions)
    exposed = list(exposed_functions)
    findings: list[PrivilegeFinding] = []
    for fn_name in dict.fromkeys([*entry, *exposed]):
        privilege_class = privilege_class_for(fn_name)
        if privilege_class is None:
            continue
        findings.append(
            PrivilegeFinding(
                privilege_class=privilege_class,
                fn_name=fn_name,
                module_id=module_id,
                evidence=PrivilegeEvidence(is_entry=fn_name in entry, is_exposed=fn_name in exposed),
            )
        )
    return findings


def build_privilege_report(findings: Iterable[PrivilegeFinding], has_opaque_control: bool) -> PrivilegeReport:
    """Group privilege findings by class."""
    everything = list(findings)
    by_class: dict[PrivilegeClass, list[PrivilegeFinding]] = {cls: [] for cls in PrivilegeClass}
    for finding in everything:
        by_class[finding.privilege_class].append(finding)
    return PrivilegeReport(by_class=by_class, all=everything, has_opaque_control=has_opaque_control)
