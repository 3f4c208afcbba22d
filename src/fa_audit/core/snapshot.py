"""Snapshot assembly from resource facts, surface analysis and pins."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from fa_audit.core.resources import format_supply, split_type
from fa_audit.models.common import CoverageStatus, normalize_address
from fa_audit.models.evidence import EvidenceBundle
from fa_audit.models.findings import Finding, FindingSeverity
from fa_audit.models.pins import PinSet
from fa_audit.models.resources import CoinResourceFacts, FaResourceFacts
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
    SupplyInfo,
)
from fa_audit.models.surface import SurfaceAnalysis
from fa_audit.utils.hashing import overall_hash_from_map, surface_hash_from_fn_names
from fa_audit.utils.logging import get_logger

logger = get_logger("core.snapshot")

NO_ANALYSIS_REASON = "Level-2 analysis not available"

# Inherent risk of each dispatch hook slot
HOOK_RISK = {
    "deposit": "medium",
    "withdraw": "high",
    "transfer": "high",
    "pre_transfer": "high",
    "post_transfer": "medium",
    "derived_balance": "low",
}

_SUMMARY_SEVERITY = {
    FindingSeverity.HIGH: "high",
    FindingSeverity.MEDIUM: "medium",
    FindingSeverity.LOW: "info",
    FindingSeverity.INFO: "info",
}


def summarize_findings(findings: Iterable[Finding]) -> list[FindingSummary]:
    """Condense findings to ``{id, severity, title}`` with lower-case severities."""
    return [FindingSummary(id=f.id, severity=_SUMMARY_SEVERITY[f.severity], title=f.title) for f in findings]


def module_surfaces(analysis: SurfaceAnalysis) -> dict[str, ModuleSurface]:
    """Per-module function surface, with sorted function names."""
    surfaces: dict[str, ModuleSurface] = {}
    for module in analysis.modules:
        surfaces[module.module_id] = ModuleSurface(
            module_id=module.module_id,
            abi_fetched=module.abi_fetched,
            entry_fn_names=sorted(module.entry_functions),
            exposed_fn_names=sorted(module.exposed_functions),
        )
    return surfaces


def surface_hashes(surfaces: dict[str, ModuleSurface]) -> tuple[dict[str, str], str]:
    """Short per-module surface hashes and their overall hash."""
    per_module = {
        module_id: surface_hash_from_fn_names([*s.entry_fn_names, *s.exposed_fn_names])
        for module_id, s in surfaces.items()
    }
    return per_module, overall_hash_from_map(per_module)


def _coverage(analysis: SurfaceAnalysis | None) -> SnapshotCoverage:
    if analysis is None:
        return SnapshotCoverage(coverage=CoverageStatus.PARTIAL, reasons=[NO_ANALYSIS_REASON])
    return SnapshotCoverage(coverage=analysis.coverage, reasons=list(analysis.reasons))


class SnapshotAssembler:
    """Composes scan results into an immutable Snapshot.

    Missing inputs degrade the snapshot rather than failing it: without
    resource facts the capabilities default to false, and without surface
    analysis coverage is partial.

    Example:
        assembler = SnapshotAssembler("https://rpc-mainnet.supra.com", "0.1.0")
        snapshot = assembler.assemble_coin(coin_type, facts, analysis, pins, evidence)
    """

    def __init__(self, rpc_url: str, scanner_version: str) -> None:
        """Initialize the assembler.

        Args:
            rpc_url: RPC endpoint recorded in snapshot metadata
            scanner_version: Version recorded in snapshot metadata
        """
        self._rpc_url = rpc_url
        self._scanner_version = scanner_version

    def _meta(self, timestamp: datetime | None) -> SnapshotMeta:
        moment = timestamp or datetime.now(timezone.utc)
        return SnapshotMeta(
            timestamp_iso=moment.isoformat(),
            rpc_url=self._rpc_url,
            scanner_version=self._scanner_version,
        )

    def assemble_coin(
        self,
        coin_type: str,
        facts: CoinResourceFacts | None = None,
        analysis: SurfaceAnalysis | None = None,
        pins: PinSet | None = None,
        evidence: EvidenceBundle | None = None,
        timestamp: datetime | None = None,
    ) -> Snapshot:
        """Assemble a legacy coin snapshot.

        Args:
            coin_type: Full coin type
            facts: Parsed resource facts, if resources were readable
            analysis: Surface analysis, if it ran
            pins: Publisher module pins
            evidence: Cross-source evidence bundle
            timestamp: Capture time (defaults to now)

        Returns:
            The assembled Snapshot
        """
        parts = split_type(coin_type)
        publisher = normalize_address(parts[0]) if parts else (facts.publisher_address if facts else "unknown")
        module_name = parts[1] if parts else (facts.module_name if facts else "unknown")

        identity = CoinIdentity(
            coin_type=coin_type,
            publisher_address=publisher,
            module_name=module_name,
            symbol=(facts.symbol if facts else None) or (parts[2] if parts else None),
        )

        supply = SupplyInfo()
        capabilities = CoinCapabilities()
        findings: list[Finding] = []
        if facts is not None:
            supply = SupplyInfo(
                supply_current_base=facts.supply_current_base,
                decimals=facts.decimals,
                supply_current_formatted=format_supply(facts.supply_current_base, facts.decimals),
                supply_max_base=facts.supply_max_base,
            )
            capabilities = CoinCapabilities(
                has_mint_cap=facts.has_mint_cap,
                has_burn_cap=facts.has_burn_cap,
                has_freeze_cap=facts.has_freeze_cap,
                has_transfer_restrictions=facts.has_transfer_restrictions,
                owner=facts.owner,
                admin=facts.admin,
            )
            findings.extend(facts.findings)

        surfaces: dict[str, ModuleSurface] = {}
        if analysis is not None:
            surfaces = module_surfaces(analysis)
            findings.extend(analysis.findings)

        control_surface = ControlSurface(
            relevant_modules=list(surfaces),
            modules=surfaces,
            module_pins=list(pins.pins) if pins else [],
        )
        per_module, overall = surface_hashes(surfaces)

        logger.debug(f"Assembled coin snapshot for {coin_type}")
        return Snapshot(
            meta=self._meta(timestamp),
            identity=identity,
            supply=supply,
            capabilities=capabilities,
            control_surface=control_surface,
            coverage=_coverage(analysis),
            findings=summarize_findings(findings),
            hashes=SnapshotHashes(
                module_surface_hash=per_module,
                overall_surface_hash=overall,
                module_pins_hash=pins.aggregate_hash if pins and pins.pins else None,
            ),
            privileges=analysis.privileges if analysis else None,
            invariants=analysis.invariants if analysis else None,
            evidence=evidence,
        )

    def assemble_fa(
        self,
        fa_address: str,
        facts: FaResourceFacts | None = None,
        analysis: SurfaceAnalysis | None = None,
        pins: PinSet | None = None,
        evidence: EvidenceBundle | None = None,
        timestamp: datetime | None = None,
    ) -> Snapshot:
        """Assemble a fungible-asset snapshot.

        Args:
            fa_address: FA object address
            facts: Parsed resource facts, if resources were readable
            analysis: Surface analysis, if it ran
            pins: Hook module pins
            evidence: Cross-source evidence bundle
            timestamp: Capture time (defaults to now)

        Returns:
            The assembled Snapshot
        """
        identity = FaIdentity(
            fa_address=normalize_address(fa_address),
            object_owner=facts.owner if facts else None,
            symbol=facts.symbol if facts else None,
        )

        supply = SupplyInfo()
        capabilities = FaCapabilities()
        findings: list[Finding] = []
        hooks: list[HookInfo] = []
        if facts is not None:
            supply = SupplyInfo(
                supply_current_base=facts.supply_current_base,
                decimals=facts.decimals,
                supply_current_formatted=format_supply(facts.supply_current_base, facts.decimals),
                supply_max_base=facts.supply_max_base,
            )
            capabilities = FaCapabilities(
                has_mint_ref=facts.has_mint_ref,
                has_burn_ref=facts.has_burn_ref,
                has_transfer_ref=facts.has_transfer_ref,
                has_deposit_hook=facts.has_deposit_hook,
                has_withdraw_hook=facts.has_withdraw_hook,
                has_derived_balance_hook=facts.has_derived_balance_hook,
            )
            hooks = [
                HookInfo(hook_type=slot, target=target, risk=HOOK_RISK.get(slot, "medium"))
                for slot, target in facts.hooks.items()
            ]
            findings.extend(facts.findings)

        surfaces: dict[str, ModuleSurface] = {}
        owner_modules_count = None
        if analysis is not None:
            surfaces = module_surfaces(analysis)
            findings.extend(analysis.findings)
            owner_modules_count = analysis.inventory.owner_modules_count

        control_surface = ControlSurface(
            relevant_modules=list(surfaces),
            modules=surfaces,
            hook_modules=list(facts.hook_modules) if facts else [],
            hooks=hooks,
            hook_module_pins=list(pins.pins) if pins else [],
            owner_modules_count=owner_modules_count,
        )
        per_module, overall = surface_hashes(surfaces)

        logger.debug(f"Assembled FA snapshot for {fa_address}")
        return Snapshot(
            meta=self._meta(timestamp),
            identity=identity,
            supply=supply,
            capabilities=capabilities,
            control_surface=control_surface,
            coverage=_coverage(analysis),
            findings=summarize_findings(findings),
            hashes=SnapshotHashes(
                module_surface_hash=per_module,
                overall_surface_hash=overall,
                hook_modules_surface_hash=pins.aggregate_hash if pins and pins.pins else None,
            ),
            privileges=analysis.privileges if analysis else None,
            invariants=analysis.invariants if analysis else None,
            evidence=evidence,
        )
