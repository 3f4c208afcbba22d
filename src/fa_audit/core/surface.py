"""Capability reachability analysis over relevant module surfaces.

Resource-level capability flags say what an asset *could* do. These
analyzers check whether a relevant module exposes a function that can
actually do it, using keyword classification of function names. Findings
are heuristic: an empty match set is not proof that a path is restricted,
and an opaque surface is reported as unknown, never as safe.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fa_audit.core.classifier import classify_functions
from fa_audit.core.invariants import coin_invariants, fa_invariants
from fa_audit.core.privileges import build_privilege_report, extract_privileges
from fa_audit.models.common import is_system_address
from fa_audit.models.findings import EvidenceRef, Finding, FindingSeverity
from fa_audit.models.inventory import ModuleEntry, ModuleInventory
from fa_audit.models.resources import CoinResourceFacts, FaResourceFacts
from fa_audit.models.surface import ModuleAnalysis, SurfaceAnalysis
from fa_audit.rpc.base import RpcError
from fa_audit.utils.logging import get_logger

if TYPE_CHECKING:
    from fa_audit.rpc.base import ArtifactFetcher

logger = get_logger("core.surface")


def _fn_name(fn: Any) -> str | None:
    if isinstance(fn, str):
        return fn or None
    if isinstance(fn, dict) and isinstance(fn.get("name"), str):
        return fn["name"] or None
    return None


def _abi_layers(abi: dict[str, Any]) -> list[dict[str, Any]]:
    """The ABI itself plus a nested ``abi`` object if present."""
    layers = [abi]
    if isinstance(abi.get("abi"), dict):
        layers.append(abi["abi"])
    return layers


def extract_entry_functions(abi: dict[str, Any] | None) -> list[str]:
    """Entry function names from any supported ABI shape."""
    if not isinstance(abi, dict):
        return []

    names: list[str] = []
    for layer in _abi_layers(abi):
        for fn in layer.get("entry_functions") or []:
            name = _fn_name(fn)
            if name:
                names.append(name)
        for fn in layer.get("exposed_functions") or []:
            if isinstance(fn, dict) and fn.get("is_entry") is True:
                name = _fn_name(fn)
                if name:
                    names.append(name)
        for fn in layer.get("functions") or []:
            if not isinstance(fn, dict):
                continue
            if fn.get("is_entry") is True or fn.get("visibility") in ("entry", "public"):
                name = _fn_name(fn)
                if name:
                    names.append(name)
    return list(dict.fromkeys(names))


def extract_exposed_functions(abi: dict[str, Any] | None) -> list[str]:
    """Public, friend and entry function names from any supported ABI shape."""
    if not isinstance(abi, dict):
        return []

    names: list[str] = []
    for layer in _abi_layers(abi):
        for fn in layer.get("exposed_functions") or []:
            name = _fn_name(fn)
            if name:
                names.append(name)
        for fn in layer.get("functions") or []:
            if not isinstance(fn, dict):
                continue
            visibility = fn.get("visibility") or fn.get("visibility_type")
            is_entry = fn.get("is_entry") is True or fn.get("entry") is True
            if visibility in ("public", "friend") or is_entry:
                name = _fn_name(fn)
                if name:
                    names.append(name)
    return list(dict.fromkeys(names))


def reachable_functions(modules: list[ModuleAnalysis], category: str) -> list[EvidenceRef]:
    """Classifier matches for one category across the given modules."""
    matches: list[EvidenceRef] = []
    for module in modules:
        classified = classify_functions(module.callable_functions)
        for fn_name in getattr(classified, category):
            matches.append(EvidenceRef(module=module.module_id, function=fn_name))
    return matches


def _has_positive_supply(supply_base: str | None) -> bool:
    if supply_base is None:
        return False
    try:
        return int(supply_base) > 0
    except ValueError:
        return False


class _SurfaceAnalyzerBase:
    """Shared module-reading logic for the coin and FA analyzers."""

    # FA analysis considers entry functions only
    entry_only = False

    def __init__(self, artifacts: "ArtifactFetcher") -> None:
        """Initialize the analyzer.

        Args:
            artifacts: Per-module detail fetcher
        """
        self._artifacts = artifacts

    def _analyze_module(self, entry: ModuleEntry) -> ModuleAnalysis:
        """Read one module's ABI into entry/exposed function lists."""
        base = {
            "module_address": entry.module_address,
            "module_name": entry.module_name,
            "source": entry.source.value,
        }
        if not entry.module_name:
            return ModuleAnalysis(**base, abi_fetched=False, abi_error="Module name unknown, cannot fetch ABI")

        try:
            artifact = self._artifacts.fetch_module(entry.module_address, entry.module_name)
        except RpcError as e:
            return ModuleAnalysis(**base, abi_fetched=False, abi_error=str(e))

        if artifact.abi is None:
            error = f"RPC error: {artifact.error}" if artifact.error else "Module ABI not found in RPC response"
            return ModuleAnalysis(**base, abi_fetched=False, abi_error=error)

        entry_functions = extract_entry_functions(artifact.abi)
        exposed = [] if self.entry_only else extract_exposed_functions(artifact.abi)
        return ModuleAnalysis(
            **base,
            abi_fetched=True,
            entry_functions=entry_functions,
            exposed_functions=exposed,
        )

    def _privileges(self, modules: list[ModuleAnalysis]):
        findings = []
        for module in modules:
            if module.is_opaque:
                continue
            findings.extend(extract_privileges(module.module_id, module.entry_functions, module.exposed_functions))
        has_opaque = not modules or any(m.is_opaque for m in modules)
        return build_privilege_report(findings, has_opaque_control=has_opaque)

    @staticmethod
    def _opaque_abi_finding(rule_id: str, modules: list[ModuleAnalysis]) -> Finding | None:
        opaque = [m for m in modules if not m.abi_fetched]
        if not opaque:
            return None
        return Finding(
            id=rule_id,
            severity=FindingSeverity.MEDIUM,
            title="Relevant module ABI unavailable",
            detail=(
                f"{len(opaque)} relevant module(s) have unavailable ABIs. "
                "Cannot verify entry function reachability."
            ),
            facts={
                "opaque_modules": [
                    {
                        "address": m.module_address,
                        "name": m.module_name or "(unknown)",
                        "source": m.source,
                        "error": m.abi_error,
                    }
                    for m in opaque
                ]
            },
            recommendation=(
                "Verify modules are publicly accessible and ABIs are available. "
                "Opaque modules may hide privileged functions."
            ),
        )

    @staticmethod
    def _coverage_finding(rule_id: str, inventory: ModuleInventory) -> Finding | None:
        if inventory.is_complete:
            return None
        return Finding(
            id=rule_id,
            severity=FindingSeverity.MEDIUM,
            title="Module inventory coverage is partial",
            detail=f"Module inventory coverage is partial. {len(inventory.reasons)} issue(s) detected.",
            facts={
                "coverage_reasons": list(inventory.reasons),
                "modules_total": len(inventory.modules),
                "modules_with_names": sum(1 for m in inventory.modules if m.module_name),
            },
            recommendation=(
                "Review coverage gaps. Some modules may be missing from analysis, "
                "potentially hiding privileged functions."
            ),
        )


class CoinSurfaceAnalyzer(_SurfaceAnalyzerBase):
    """Reachability analysis for a legacy coin.

    Relevant modules are the publisher's modules. Both entry and exposed
    functions count as reachable.

    Example:
        analyzer = CoinSurfaceAnalyzer(rpc_client)
        analysis = analyzer.analyze(facts, inventory)
        for finding in analysis.findings:
            print(finding.id, finding.severity.value)
    """

    def analyze(self, facts: CoinResourceFacts, inventory: ModuleInventory) -> SurfaceAnalysis:
        """Analyze the coin's control surface.

        Args:
            facts: Parsed coin resource facts
            inventory: Module inventory for the publisher

        Returns:
            SurfaceAnalysis with findings, privileges and invariants
        """
        modules = [self._analyze_module(m) for m in inventory.relevant_modules]
        findings: list[Finding] = []

        opaque_abi = self._opaque_abi_finding("COIN-OPAQUE-ABI-001", modules)
        if opaque_abi:
            findings.append(opaque_abi)

        if facts.has_transfer_restrictions:
            defining = next(
                (m for m in modules if m.module_name == facts.module_name and m.abi_fetched),
                None,
            )
            if defining is not None and not defining.callable_functions:
                findings.append(
                    Finding(
                        id="COIN-OPAQUE-ABI-001",
                        severity=FindingSeverity.MEDIUM,
                        title="Opaque ABI: no exposed functions while transfer restrictions detected",
                        detail=(
                            "Transfer restrictions are present in resources, but the defining module ABI "
                            "has zero exposed/entry functions. Cannot verify restriction logic."
                        ),
                        facts={"has_transfer_restrictions": True, "module": defining.module_id},
                        recommendation="Review module bytecode or source to verify the restriction logic.",
                    )
                )

        if facts.has_mint_cap:
            findings.append(self._mint_finding(modules))

        if facts.has_burn_cap:
            burn = reachable_functions(modules, "burn")
            if burn:
                findings.append(
                    Finding(
                        id="COIN-BURN-REACH-001",
                        severity=FindingSeverity.MEDIUM,
                        title="BurnCap present AND burn-like entry function reachable",
                        detail=f"BurnCap exists in resources AND {len(burn)} burn-like function(s) found.",
                        evidence=burn,
                        facts={"has_burn_cap": True},
                        recommendation="Review burn authority controls and ensure burn operations are gated.",
                    )
                )
            else:
                findings.append(
                    Finding(
                        id="COIN-BURN-REACH-001",
                        severity=FindingSeverity.LOW,
                        title="BurnCap present but no public burn path detected (yet)",
                        detail=(
                            "BurnCap exists in resources but no exposed burn-like function was found. "
                            "This is not proof that burning is restricted."
                        ),
                        facts={"has_burn_cap": True, "modules_analyzed": len(modules)},
                        recommendation="Monitor for new modules or function additions.",
                    )
                )

        if facts.has_freeze_cap or facts.has_transfer_restrictions:
            freeze = reachable_functions(modules, "freeze")
            if freeze:
                findings.append(
                    Finding(
                        id="COIN-FREEZE-REACH-001",
                        severity=FindingSeverity.HIGH,
                        title="FreezeCap/restrictions present AND freeze/pause/denylist functions reachable",
                        detail=(
                            f"FreezeCap or transfer restrictions exist AND {len(freeze)} freeze/pause/denylist "
                            "function(s) found. Token transfers may be frozen or restricted."
                        ),
                        evidence=freeze,
                        facts={
                            "has_freeze_cap": facts.has_freeze_cap,
                            "has_transfer_restrictions": facts.has_transfer_restrictions,
                        },
                        recommendation="Review freeze/restriction authority. Unauthorized freezes could lock funds.",
                    )
                )
            else:
                findings.append(
                    Finding(
                        id="COIN-FREEZE-REACH-001",
                        severity=FindingSeverity.LOW,
                        title="Freeze capability present but no public freeze path detected (yet)",
                        detail=(
                            "FreezeCap or transfer restrictions exist but no exposed freeze-like function "
                            "was found. This is not proof that freezing is restricted."
                        ),
                        facts={
                            "has_freeze_cap": facts.has_freeze_cap,
                            "has_transfer_restrictions": facts.has_transfer_restrictions,
                        },
                        recommendation="Monitor for new modules or function additions.",
                    )
                )

        if facts.owner or facts.admin:
            admin = reachable_functions(modules, "admin")
            if admin:
                findings.append(
                    Finding(
                        id="COIN-ADMIN-ROTATE-001",
                        severity=FindingSeverity.HIGH,
                        title="Owner/admin present AND admin/owner rotation functions reachable",
                        detail=(
                            f"Coin has owner/admin ({facts.owner or facts.admin}) AND {len(admin)} rotation "
                            "function(s) found. Administrative privileges may be transferable."
                        ),
                        evidence=admin,
                        facts={"owner": facts.owner, "admin": facts.admin},
                        recommendation="Review ownership transfer controls.",
                    )
                )

        coverage = self._coverage_finding("COIN-MODULE-COVERAGE-001", inventory)
        if coverage:
            findings.append(coverage)

        has_any_cap = (
            facts.has_mint_cap or facts.has_burn_cap or facts.has_freeze_cap or facts.has_transfer_restrictions
        )
        if (
            _has_positive_supply(facts.supply_current_base)
            and not has_any_cap
            and all(m.is_opaque for m in modules)
        ):
            findings.append(
                Finding(
                    id="COIN-OPAQUE-CONTROL-001",
                    severity=FindingSeverity.MEDIUM,
                    title="Legacy coin has circulating supply but no detectable control surface",
                    detail=(
                        "Legacy coin has circulating supply but no detectable control surface under current "
                        "heuristics. Control paths may exist via non-matched patterns or an opaque ABI. "
                        "This is NOT proof of immutability."
                    ),
                    facts={
                        "coin_type": facts.coin_type,
                        "supply_current_base": facts.supply_current_base,
                        "coverage_status": inventory.status.value,
                        "relevant_modules_count": len(modules),
                    },
                    recommendation="Investigate alternative control mechanisms not captured by this analysis.",
                )
            )

        logger.debug(f"Coin surface for {facts.coin_type}: {len(modules)} module(s), {len(findings)} finding(s)")
        return SurfaceAnalysis(
            inventory=inventory,
            modules=modules,
            findings=findings,
            privileges=self._privileges(modules),
            invariants=coin_invariants(facts, modules),
            coverage=inventory.status,
            reasons=list(inventory.reasons),
        )

    @staticmethod
    def _mint_finding(modules: list[ModuleAnalysis]) -> Finding:
        mint = reachable_functions(modules, "mint")
        if mint:
            return Finding(
                id="COIN-MINT-REACH-001",
                severity=FindingSeverity.HIGH,
                title="MintCap present AND mint-like entry function reachable",
                detail=(
                    f"MintCap exists in resources AND {len(mint)} mint-like function(s) found in relevant "
                    "modules. Supply can be increased via public functions."
                ),
                evidence=mint,
                facts={"has_mint_cap": True},
                recommendation="Review mint authority controls. If public minting is not intended, restrict access.",
            )
        return Finding(
            id="COIN-MINT-REACH-001",
            severity=FindingSeverity.LOW,
            title="MintCap present but no public mint path detected (yet)",
            detail=(
                "MintCap exists in resources but no exposed mint-like function was found. "
                "This is not proof that minting is restricted."
            ),
            facts={"has_mint_cap": True, "modules_analyzed": len(modules)},
            recommendation="Monitor for new modules or function additions.",
        )


class FaSurfaceAnalyzer(_SurfaceAnalyzerBase):
    """Reachability analysis for an object-based fungible asset.

    Relevant modules come from the owner, hook and ref-holder addresses,
    excluding system modules. Only entry functions count as reachable.

    Example:
        analyzer = FaSurfaceAnalyzer(rpc_client)
        analysis = analyzer.analyze(facts, inventory)
    """

    entry_only = True

    def analyze(self, facts: FaResourceFacts, inventory: ModuleInventory) -> SurfaceAnalysis:
        """Analyze the FA's control surface.

        Args:
            facts: Parsed FA resource facts
            inventory: Module inventory for the asset

        Returns:
            SurfaceAnalysis with findings, privileges and invariants
        """
        relevant = [m for m in inventory.relevant_modules if not is_system_address(m.module_address)]
        modules = [self._analyze_module(m) for m in relevant]
        findings: list[Finding] = []

        opaque_abi = self._opaque_abi_finding("FA-OPAQUE-ABI-001", modules)
        if opaque_abi:
            findings.append(opaque_abi)

        if facts.has_mint_ref:
            findings.append(self._mint_finding(facts, modules))

        if facts.has_burn_ref:
            burn = reachable_functions(modules, "burn")
            if burn:
                has_burn_from = any("burn_from" in ref.function.lower() for ref in burn)
                findings.append(
                    Finding(
                        id="FA-BURN-REACH-001",
                        severity=FindingSeverity.HIGH if has_burn_from else FindingSeverity.MEDIUM,
                        title="Burn reference present AND burn-like entry function reachable",
                        detail=(
                            f"Burn reference exists in resources AND {len(burn)} burn-like entry function(s) found."
                            + (" burn_from-like function detected." if has_burn_from else "")
                        ),
                        evidence=burn,
                        facts={"has_burn_ref": True},
                        recommendation="Review burn authority controls and ensure burn operations are gated.",
                    )
                )

        if facts.has_deposit_hook or facts.has_withdraw_hook or facts.has_derived_balance_hook:
            hook_config = reachable_functions(modules, "hook_config")
            if hook_config:
                findings.append(
                    Finding(
                        id="FA-HOOK-CONFIG-001",
                        severity=FindingSeverity.HIGH,
                        title="Hook configuration/update/dispatch entry functions reachable",
                        detail=(
                            f"{len(hook_config)} hook configuration/update/dispatch entry function(s) found "
                            "in relevant modules. Hook behavior may be modifiable."
                        ),
                        evidence=hook_config,
                        facts={"hooks": dict(facts.hooks), "owner": facts.owner},
                        recommendation="Review hook configuration controls.",
                    )
                )

        if facts.owner:
            admin = reachable_functions(modules, "admin")
            if admin:
                findings.append(
                    Finding(
                        id="FA-ADMIN-ROTATE-001",
                        severity=FindingSeverity.HIGH,
                        title="Owner present AND admin/owner rotation entry functions reachable",
                        detail=(
                            f"FA has owner ({facts.owner}) AND {len(admin)} rotation entry function(s) found. "
                            "Ownership or administrative privileges may be transferable."
                        ),
                        evidence=admin,
                        facts={"owner": facts.owner},
                        recommendation="Review ownership transfer controls.",
                    )
                )

        coverage = self._coverage_finding("FA-MODULE-COVERAGE-001", inventory)
        if coverage:
            findings.append(coverage)

        has_any_ref = facts.has_mint_ref or facts.has_burn_ref or facts.has_transfer_ref
        if (
            _has_positive_supply(facts.supply_current_base)
            and not has_any_ref
            and not facts.hooks
            and all(m.is_opaque for m in modules)
        ):
            findings.append(
                Finding(
                    id="FA-OPAQUE-CONTROL-001",
                    severity=FindingSeverity.MEDIUM,
                    title="FA has circulating supply but no detectable control surface",
                    detail=(
                        "FA has circulating supply but no detectable control surface (no refs, no hooks, "
                        "no readable relevant modules). This is NOT proof of immutability."
                    ),
                    facts={
                        "supply_current_base": facts.supply_current_base,
                        "owner": facts.owner,
                        "relevant_modules_count": len(modules),
                    },
                    recommendation="Investigate alternative control mechanisms not captured by this analysis.",
                )
            )

        logger.debug(f"FA surface for {facts.fa_address}: {len(modules)} module(s), {len(findings)} finding(s)")
        return SurfaceAnalysis(
            inventory=inventory,
            modules=modules,
            findings=findings,
            privileges=self._privileges(modules),
            invariants=fa_invariants(facts, modules),
            coverage=inventory.status,
            reasons=list(inventory.reasons),
        )

    @staticmethod
    def _mint_finding(facts: FaResourceFacts, modules: list[ModuleAnalysis]) -> Finding:
        mint = reachable_functions(modules, "mint")
        holder = facts.ref_holders.get("mint")
        if mint:
            return Finding(
                id="FA-MINT-REACH-001",
                severity=FindingSeverity.HIGH,
                title="MintRef present AND mint-like entry functions reachable",
                detail=(
                    f"FA has MintRef AND {len(mint)} mint-like entry function(s) found in relevant modules. "
                    "Minting may be callable."
                ),
                evidence=mint,
                facts={"has_mint_ref": True, "owner": facts.owner, "mint_ref_holder": holder or "unknown"},
                recommendation="Review mint authority controls. If public minting is not intended, restrict access.",
            )
        if not holder:
            return Finding(
                id="FA-MINT-REACH-001",
                severity=FindingSeverity.MEDIUM,
                title="MintRef holder address unknown",
                detail=(
                    "MintRef holder address unknown (resource doesn't expose holder). "
                    "Mint capability may be restricted or accessed via other means."
                ),
                facts={"has_mint_ref": True, "mint_ref_holder": None, "modules_analyzed": len(modules)},
                recommendation="Monitor for new modules or function additions.",
            )
        return Finding(
            id="FA-MINT-REACH-001",
            severity=FindingSeverity.MEDIUM,
            title="Mint reference present but no public mint path detected (yet)",
            detail=(
                f"Mint reference exists in resources (holder: {holder}), but no entry functions matching "
                "mint patterns were found. This is not proof that minting is restricted."
            ),
            facts={"has_mint_ref": True, "mint_ref_holder": holder, "modules_analyzed": len(modules)},
            recommendation="Monitor for new modules or function additions.",
        )
