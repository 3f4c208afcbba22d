"""Risk synthesis: evidence in, named signals and one verdict out."""

from __future__ import annotations

import re

from fa_audit.core.evidence import MODULE_COUNT_PARITY, OWNER_PARITY, SUPPLY_PARITY
from fa_audit.models.behavior import BehaviorEvidence, BehaviorStatus
from fa_audit.models.common import AssetKind
from fa_audit.models.diff import ChangeType, DiffReport
from fa_audit.models.evidence import EvidenceSource, ParityStatus
from fa_audit.models.findings import PrivilegeClass
from fa_audit.models.risk import (
    Claim,
    ClaimStatus,
    Confidence,
    Discrepancy,
    EvidenceTier,
    IndexerParityStatus,
    ParitySummary,
    RiskInput,
    RiskLevel,
    RiskSignal,
    RiskSynthesis,
    RiskTarget,
    SurfaceScan,
    VerificationStatus,
)
from fa_audit.models.snapshot import FaIdentity, Snapshot
from fa_audit.utils.logging import get_logger

logger = get_logger("core.risk")

PRIVILEGED_PATTERN = re.compile(
    r"mint|burn|admin|upgrade|set_owner|transfer_ownership|freeze|pause",
    re.IGNORECASE,
)

HASH_CLAIMS = ("HOOK_MODULE_HASHES", "MODULE_HASHES")

RATIONALE: dict[RiskSignal, str] = {
    RiskSignal.HASH_PINNED: "Module code hashes are pinned.",
    RiskSignal.HASH_CONFLICT: "Module code hashes changed or conflict across sources.",
    RiskSignal.HASH_UNAVAILABLE: "Module code hashes could not be computed.",
    RiskSignal.MULTI_RPC_CONFIRMED: "Multiple RPC sources agree.",
    RiskSignal.MULTI_RPC_CONFLICT: "Multi-RPC sources returned conflicting data.",
    RiskSignal.INDEXER_CORROBORATED: "Indexer data corroborates RPC data.",
    RiskSignal.INDEXER_CONFLICT: "Indexer data conflicts with RPC data.",
    RiskSignal.INDEXER_UNSUPPORTED: "Indexer does not support this asset or the query failed.",
    RiskSignal.INDEXER_NOT_REQUESTED: "Indexer corroboration was not requested.",
    RiskSignal.SUPPLY_CONFLICT: "Supply values conflict across sources.",
    RiskSignal.OWNER_CONFLICT: "Owner values conflict across sources.",
    RiskSignal.CAPS_CONFLICT: "Capability flags conflict across sources.",
    RiskSignal.BEHAVIOR_MATCHED: "Sampled transactions only invoke pinned entry functions.",
    RiskSignal.BEHAVIOR_NO_ACTIVITY: "No entry function activity found in sampled transactions.",
    RiskSignal.BEHAVIOR_UNAVAILABLE: "Transaction behavior could not be sampled.",
    RiskSignal.ABI_OPAQUE_ACTIVE: "ABI is opaque but transaction activity exists.",
    RiskSignal.ABI_OPAQUE: "ABI of at least one relevant module is opaque.",
    RiskSignal.HOOK_CONTROLLED: "Transfers are subject to dispatch hooks.",
    RiskSignal.HOOK_UNVERIFIED: "Hook configuration changed since the previous snapshot.",
    RiskSignal.MINT_REACHABLE: "Public mint entry point detected.",
    RiskSignal.BURN_REACHABLE: "Public burn entry point detected.",
    RiskSignal.ADMIN_REACHABLE: "Public admin entry point detected.",
    RiskSignal.PRIVILEGE_UNVERIFIED: "Privilege model could not be fully verified.",
    RiskSignal.PRIVILEGE_ESCALATION_POSSIBLE: "Capabilities appeared since the previous snapshot.",
}

_QUIET_BEHAVIOR = (
    BehaviorStatus.UNAVAILABLE,
    BehaviorStatus.NO_ACTIVITY,
    BehaviorStatus.OK_EMPTY,
)


class RiskSynthesizer:
    """Folds verification evidence into risk signals and a verdict.

    Signals are collected in a fixed detection order; the verdict is the
    first matching level among DANGEROUS, ELEVATED_RISK, OPAQUE_BUT_ACTIVE,
    SAFE_DYNAMIC and SAFE_STATIC, falling back to ELEVATED_RISK whenever
    safety cannot be established.

    Example:
        synthesis = RiskSynthesizer().synthesize(risk_input)
        print(synthesis.risk_level.value)
    """

    def synthesize(self, risk_input: RiskInput) -> RiskSynthesis:
        """Derive signals, the risk level and the rationale.

        Args:
            risk_input: Verification evidence for one asset

        Returns:
            RiskSynthesis with sorted unique signals
        """
        signals = self.collect_signals(risk_input)
        level = self.determine_level(signals, risk_input)

        rationale: list[str] = []
        for signal in dict.fromkeys(signals):
            if signal == RiskSignal.PHANTOM_ENTRYPOINTS and risk_input.behavior:
                count = len(risk_input.behavior.phantom_entries)
                rationale.append(f"{count} phantom entry point(s) invoked but not in ABI.")
            elif signal in RATIONALE:
                rationale.append(RATIONALE[signal])
        rationale.append(f"Risk level: {level.value}")

        logger.debug(f"Risk for {risk_input.target.id}: {level.value}")
        return RiskSynthesis(
            signals=sorted(set(signals), key=lambda s: s.value),
            risk_level=level,
            rationale=rationale,
        )

    def collect_signals(self, risk_input: RiskInput) -> list[RiskSignal]:
        """Signals in detection order, possibly with repeats."""
        signals: list[RiskSignal] = []

        hash_claim = risk_input.claim(*HASH_CLAIMS)
        if hash_claim is not None:
            if hash_claim.status == ClaimStatus.CONFIRMED and hash_claim.confidence == Confidence.HIGH:
                signals.append(RiskSignal.HASH_PINNED)
            elif hash_claim.status == ClaimStatus.CONFLICT:
                signals.append(RiskSignal.HASH_CONFLICT)
            elif hash_claim.status == ClaimStatus.UNAVAILABLE:
                signals.append(RiskSignal.HASH_UNAVAILABLE)

        if risk_input.overall_evidence_tier in (
            EvidenceTier.MULTI_RPC_CONFIRMED,
            EvidenceTier.MULTI_RPC_PLUS_INDEXER,
        ):
            if risk_input.status == VerificationStatus.CONFLICT:
                signals.append(RiskSignal.MULTI_RPC_CONFLICT)
            else:
                signals.append(RiskSignal.MULTI_RPC_CONFIRMED)

        if risk_input.target.kind == AssetKind.FA and risk_input.indexer_parity is not None:
            parity = risk_input.indexer_parity
            if parity == IndexerParityStatus.SUPPORTED:
                if risk_input.parity is not None and risk_input.parity.has_mismatch:
                    signals.append(RiskSignal.INDEXER_CONFLICT)
                else:
                    signals.append(RiskSignal.INDEXER_CORROBORATED)
            elif parity in (IndexerParityStatus.UNSUPPORTED, IndexerParityStatus.ERROR):
                signals.append(RiskSignal.INDEXER_UNSUPPORTED)
            elif parity == IndexerParityStatus.NOT_REQUESTED:
                signals.append(RiskSignal.INDEXER_NOT_REQUESTED)

        for discrepancy in risk_input.discrepancies:
            if discrepancy.claim_type == "SUPPLY":
                signals.append(RiskSignal.SUPPLY_CONFLICT)
            elif discrepancy.claim_type == "OWNER":
                signals.append(RiskSignal.OWNER_CONFLICT)
            elif discrepancy.claim_type == "CAPS":
                signals.append(RiskSignal.CAPS_CONFLICT)

        behavior = risk_input.behavior
        if behavior is not None:
            if behavior.status == BehaviorStatus.SAMPLED:
                if behavior.has_phantoms:
                    signals.append(RiskSignal.PHANTOM_ENTRYPOINTS)
                elif behavior.invoked_entries:
                    signals.append(RiskSignal.BEHAVIOR_MATCHED)
                else:
                    signals.append(RiskSignal.BEHAVIOR_NO_ACTIVITY)
                if behavior.opaque_active:
                    signals.append(RiskSignal.ABI_OPAQUE_ACTIVE)
            elif behavior.status == BehaviorStatus.NO_ACTIVITY:
                signals.append(RiskSignal.BEHAVIOR_NO_ACTIVITY)
            elif behavior.status in (BehaviorStatus.UNAVAILABLE, BehaviorStatus.ERROR):
                signals.append(RiskSignal.BEHAVIOR_UNAVAILABLE)

        scan = risk_input.surface_scan
        if scan is not None:
            if scan.has_opaque_abi and RiskSignal.ABI_OPAQUE_ACTIVE not in signals:
                signals.append(RiskSignal.ABI_OPAQUE)
            if scan.hook_controlled:
                signals.append(RiskSignal.HOOK_CONTROLLED)
            if scan.mint_reachable:
                signals.append(RiskSignal.MINT_REACHABLE)
            if scan.burn_reachable:
                signals.append(RiskSignal.BURN_REACHABLE)
            if scan.admin_reachable:
                signals.append(RiskSignal.ADMIN_REACHABLE)
            if scan.privilege_unverified:
                signals.append(RiskSignal.PRIVILEGE_UNVERIFIED)

        hooks_claim = risk_input.claim("HOOKS")
        if hooks_claim is not None and hooks_claim.status == ClaimStatus.CONFIRMED:
            signals.append(RiskSignal.HOOK_CONTROLLED)

        for change in risk_input.changes:
            if change.type == ChangeType.PRIVILEGE_ESCALATION:
                signals.append(RiskSignal.PRIVILEGE_ESCALATION_POSSIBLE)
            elif change.type in (ChangeType.HOOK_MODULE_CODE_CHANGED, ChangeType.COIN_MODULE_CODE_CHANGED):
                signals.append(RiskSignal.HASH_CONFLICT)
            elif change.type == ChangeType.HOOKS_CHANGED:
                signals.append(RiskSignal.HOOK_UNVERIFIED)

        return signals

    def determine_level(self, signals: list[RiskSignal], risk_input: RiskInput) -> RiskLevel:
        """Pick the risk level; the first matching rule wins."""
        present = set(signals)
        behavior = risk_input.behavior
        sampled = behavior is not None and behavior.status == BehaviorStatus.SAMPLED

        if RiskSignal.PHANTOM_ENTRYPOINTS in present:
            return RiskLevel.DANGEROUS
        if sampled and behavior.invoked_entries:
            phantom_ids = {p.full_id for p in behavior.phantom_entries}
            for entry in behavior.invoked_entries:
                if PRIVILEGED_PATTERN.search(entry.function_name) and entry.full_id in phantom_ids:
                    return RiskLevel.DANGEROUS

        has_conflict = any(s.is_conflict for s in present)
        if has_conflict:
            return RiskLevel.ELEVATED_RISK
        if RiskSignal.HOOK_CONTROLLED in present and RiskSignal.PRIVILEGE_UNVERIFIED in present:
            return RiskLevel.ELEVATED_RISK
        if RiskSignal.BEHAVIOR_UNAVAILABLE in present and RiskSignal.ABI_OPAQUE in present:
            return RiskLevel.ELEVATED_RISK

        if RiskSignal.ABI_OPAQUE_ACTIVE in present:
            return RiskLevel.OPAQUE_BUT_ACTIVE
        if RiskSignal.INDEXER_UNSUPPORTED in present and sampled and behavior.tx_count > 10:
            return RiskLevel.OPAQUE_BUT_ACTIVE
        if RiskSignal.ABI_OPAQUE in present and sampled and behavior.tx_count > 0:
            return RiskLevel.OPAQUE_BUT_ACTIVE

        anchored = RiskSignal.HASH_PINNED in present or RiskSignal.MULTI_RPC_CONFIRMED in present
        if RiskSignal.BEHAVIOR_MATCHED in present and anchored:
            return RiskLevel.SAFE_DYNAMIC

        if anchored:
            if behavior is None or behavior.status in _QUIET_BEHAVIOR:
                return RiskLevel.SAFE_STATIC
            if sampled and not behavior.has_phantoms and not behavior.opaque_active:
                return RiskLevel.SAFE_DYNAMIC
            return RiskLevel.SAFE_STATIC

        if risk_input.overall_evidence_tier == EvidenceTier.VIEW_ONLY:
            return RiskLevel.ELEVATED_RISK
        if RiskSignal.MULTI_RPC_CONFIRMED in present:
            return RiskLevel.SAFE_STATIC
        return RiskLevel.ELEVATED_RISK


def create_empty_risk_synthesis(reason: str) -> RiskSynthesis:
    """Synthesis used when there is not enough data to assess risk."""
    return RiskSynthesis(
        signals=[],
        risk_level=RiskLevel.ELEVATED_RISK,
        rationale=[reason, "Risk level: ELEVATED_RISK (insufficient data)"],
    )


def _hash_claim(snapshot: Snapshot, report: DiffReport | None) -> Claim | None:
    pins = snapshot.pins
    claim_type = "HOOK_MODULE_HASHES" if isinstance(snapshot.identity, FaIdentity) else "MODULE_HASHES"
    if not pins:
        return None

    code_changed = report is not None and any(
        c.type in (ChangeType.HOOK_MODULE_CODE_CHANGED, ChangeType.COIN_MODULE_CODE_CHANGED)
        for c in report.changes
    )
    hashed = [p for p in pins if p.code_hash]
    if code_changed:
        return Claim(claim_type=claim_type, status=ClaimStatus.CONFLICT, confidence=Confidence.HIGH)
    if len(hashed) == len(pins):
        return Claim(claim_type=claim_type, status=ClaimStatus.CONFIRMED, confidence=Confidence.HIGH)
    if hashed:
        return Claim(claim_type=claim_type, status=ClaimStatus.PARTIAL, confidence=Confidence.MEDIUM)
    return Claim(claim_type=claim_type, status=ClaimStatus.UNAVAILABLE, confidence=Confidence.LOW)


def _surface_scan(snapshot: Snapshot) -> SurfaceScan:
    privileges = snapshot.privileges
    modules = snapshot.control_surface.modules.values()
    opaque_module = any(not m.abi_fetched for m in modules)

    def reachable(privilege_class: PrivilegeClass) -> bool:
        if privileges is None:
            return False
        return any(f.evidence.is_entry for f in privileges.by_class.get(privilege_class, []))

    return SurfaceScan(
        has_opaque_abi=opaque_module or bool(privileges and privileges.has_opaque_control),
        hook_controlled=bool(snapshot.control_surface.hooks),
        mint_reachable=reachable(PrivilegeClass.MINT),
        burn_reachable=reachable(PrivilegeClass.BURN),
        admin_reachable=reachable(PrivilegeClass.ADMIN_OWNERSHIP),
        privilege_unverified=privileges is None or privileges.has_opaque_control,
    )


def risk_input_from_snapshot(
    snapshot: Snapshot,
    behavior: BehaviorEvidence | None = None,
    report: DiffReport | None = None,
) -> RiskInput:
    """Build a RiskInput from a snapshot, optional behavior and optional diff.

    Args:
        snapshot: The latest snapshot
        behavior: Behavior evidence sampled for the same asset
        report: Escalated diff against the previous snapshot

    Returns:
        RiskInput ready for RiskSynthesizer
    """
    is_fa = isinstance(snapshot.identity, FaIdentity)
    target = RiskTarget(
        kind=AssetKind.FA if is_fa else AssetKind.COIN,
        id=snapshot.identity.fa_address if is_fa else snapshot.identity.coin_type,
    )

    claims: list[Claim] = []
    hash_claim = _hash_claim(snapshot, report)
    if hash_claim is not None:
        claims.append(hash_claim)
    if is_fa and snapshot.control_surface.hook_modules:
        claims.append(Claim(claim_type="HOOKS", status=ClaimStatus.CONFIRMED, confidence=Confidence.MEDIUM))

    evidence = snapshot.evidence
    sources = set(evidence.sources_used) if evidence else set()
    discrepancies: list[Discrepancy] = []
    parity = None
    status = VerificationStatus.OK

    if evidence is not None:
        for parity_id, claim_type in ((SUPPLY_PARITY, "SUPPLY"), (OWNER_PARITY, "OWNER"), (MODULE_COUNT_PARITY, None)):
            item = evidence.get(parity_id)
            if item is None or item.status != ParityStatus.MISMATCH:
                continue
            status = VerificationStatus.CONFLICT
            if claim_type is not None:
                discrepancies.append(
                    Discrepancy(
                        claim_type=claim_type,
                        detail=item.detail,
                        sources=[s.value for s in evidence.sources_used],
                        values=item.evidence,
                    )
                )
        supply_item = evidence.get(SUPPLY_PARITY)
        owner_item = evidence.get(OWNER_PARITY)
        parity = ParitySummary(
            supply=supply_item.status if supply_item else None,
            owner=owner_item.status if owner_item else None,
        )

    rpc_sources = sources & {EvidenceSource.RPC_V3, EvidenceSource.RPC_V1, EvidenceSource.RPC_V3_2}
    tier = EvidenceTier.VIEW_ONLY
    if len(rpc_sources) >= 2:
        tier = (
            EvidenceTier.MULTI_RPC_PLUS_INDEXER
            if EvidenceSource.SUPRASCAN in sources
            else EvidenceTier.MULTI_RPC_CONFIRMED
        )

    indexer_parity = None
    if is_fa:
        indexer_parity = (
            IndexerParityStatus.SUPPORTED
            if EvidenceSource.SUPRASCAN in sources
            else IndexerParityStatus.NOT_REQUESTED
        )

    return RiskInput(
        target=target,
        overall_evidence_tier=tier,
        status=status,
        discrepancies=discrepancies,
        claims=claims,
        parity=parity,
        indexer_parity=indexer_parity,
        behavior=behavior,
        surface_scan=_surface_scan(snapshot),
        changes=list(report.changes) if report else [],
    )
