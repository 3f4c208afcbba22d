"""Invariant rules for coin and fungible-asset surfaces."""

from __future__ import annotations

from typing import Callable

from fa_audit.core.classifier import classify_functions
from fa_audit.core.resources import format_supply
from fa_audit.models.findings import InvariantItem, InvariantReport, InvariantStatus
from fa_audit.models.resources import CoinResourceFacts, FaResourceFacts
from fa_audit.models.surface import ModuleAnalysis

COIN_SUPPLY_KNOWN = "COIN_SUPPLY_KNOWN"
COIN_MINT_CAP_PRESENT = "COIN_MINT_CAP_PRESENT"
COIN_MINT_REACHABLE_WITH_CAP = "COIN_MINT_REACHABLE_WITH_CAP"
COIN_FREEZE_REACHABLE = "COIN_FREEZE_REACHABLE"

FA_OWNER_KNOWN = "FA_OWNER_KNOWN"
FA_OWNER_STABILITY_SIGNAL = "FA_OWNER_STABILITY_SIGNAL"
FA_HAS_WITHDRAW_HOOK = "FA_HAS_WITHDRAW_HOOK"
FA_UNKNOWN_HOOK_MODULE = "FA_UNKNOWN_HOOK_MODULE"
FA_MAX_SUPPLY_PRESENT = "FA_MAX_SUPPLY_PRESENT"
FA_MAX_SUPPLY_EXCEEDED = "FA_MAX_SUPPLY_EXCEEDED"


def _any_reachable(modules: list[ModuleAnalysis], category: str) -> bool:
    return any(getattr(classify_functions(m.callable_functions), category) for m in modules)


def _reachability_item(
    invariant_id: str,
    applicable: bool,
    reachable: Callable[[], bool],
    titles: tuple[str, str, str],
    details: tuple[str, str, str],
) -> InvariantItem:
    """ok if reachable, warning if not, unknown when the capability is absent."""
    if not applicable:
        return InvariantItem(id=invariant_id, status=InvariantStatus.UNKNOWN, title=titles[2], detail=details[2])
    if reachable():
        return InvariantItem(id=invariant_id, status=InvariantStatus.OK, title=titles[0], detail=details[0])
    return InvariantItem(id=invariant_id, status=InvariantStatus.WARNING, title=titles[1], detail=details[1])


def coin_invariants(facts: CoinResourceFacts, modules: list[ModuleAnalysis]) -> InvariantReport:
    """Evaluate the coin invariant catalogue.

    Args:
        facts: Parsed coin resource facts
        modules: Analyzed relevant modules

    Returns:
        InvariantReport in catalogue order
    """
    items: list[InvariantItem] = []

    if facts.supply_current_base is not None:
        shown = format_supply(facts.supply_current_base, facts.decimals) or facts.supply_current_base
        items.append(
            InvariantItem(
                id=COIN_SUPPLY_KNOWN,
                status=InvariantStatus.OK,
                title="Coin supply is known",
                detail=f"Current supply: {shown}",
            )
        )
    else:
        items.append(
            InvariantItem(
                id=COIN_SUPPLY_KNOWN,
                status=InvariantStatus.UNKNOWN,
                title="Coin supply not found",
                detail="No supply information available in resources",
            )
        )

    items.append(
        InvariantItem(
            id=COIN_MINT_CAP_PRESENT,
            status=InvariantStatus.OK if facts.has_mint_cap else InvariantStatus.WARNING,
            title="MintCap present" if facts.has_mint_cap else "MintCap not found",
            detail=(
                "MintCap capability exists in resources"
                if facts.has_mint_cap
                else "No MintCap capability detected. Supply may be immutable or controlled elsewhere."
            ),
        )
    )

    items.append(
        _reachability_item(
            COIN_MINT_REACHABLE_WITH_CAP,
            facts.has_mint_cap,
            lambda: _any_reachable(modules, "mint"),
            (
                "Mint function reachable with MintCap",
                "MintCap present but no reachable mint function",
                "Mint reachability not applicable",
            ),
            (
                "MintCap exists and mint-like functions are reachable",
                "MintCap exists but no public mint functions found. "
                "Minting may require private keys or external contracts.",
                "No MintCap present",
            ),
        )
    )

    items.append(
        _reachability_item(
            COIN_FREEZE_REACHABLE,
            facts.has_freeze_cap or facts.has_transfer_restrictions,
            lambda: _any_reachable(modules, "freeze"),
            (
                "Freeze function reachable",
                "FreezeCap/restrictions present but no reachable freeze function",
                "Freeze reachability not applicable",
            ),
            (
                "Freeze capabilities exist and freeze-like functions are reachable",
                "Freeze capabilities exist but no public freeze functions found.",
                "No FreezeCap or transfer restrictions present",
            ),
        )
    )

    return InvariantReport.from_items(items)


def fa_invariants(facts: FaResourceFacts, modules: list[ModuleAnalysis]) -> InvariantReport:
    """Evaluate the fungible-asset invariant catalogue.

    Args:
        facts: Parsed FA resource facts
        modules: Analyzed relevant modules

    Returns:
        InvariantReport in catalogue order
    """
    items: list[InvariantItem] = []

    if facts.owner:
        items.append(
            InvariantItem(
                id=FA_OWNER_KNOWN,
                status=InvariantStatus.OK,
                title="FA owner is known",
                detail=f"Owner address: {facts.owner}",
            )
        )
    else:
        items.append(
            InvariantItem(
                id=FA_OWNER_KNOWN,
                status=InvariantStatus.WARNING,
                title="FA owner not found",
                detail="No owner address detected in ObjectCore resources",
            )
        )

    # Needs a previous snapshot; owner drift is reported by the diff engine
    items.append(
        InvariantItem(
            id=FA_OWNER_STABILITY_SIGNAL,
            status=InvariantStatus.UNKNOWN,
            title="Owner stability signal",
            detail="Owner stability requires comparison against a previous snapshot",
        )
    )

    items.append(
        InvariantItem(
            id=FA_HAS_WITHDRAW_HOOK,
            status=InvariantStatus.OK if facts.has_withdraw_hook else InvariantStatus.WARNING,
            title="Withdraw hook present" if facts.has_withdraw_hook else "Withdraw hook not found",
            detail=(
                "Withdraw hook is configured"
                if facts.has_withdraw_hook
                else "No withdraw hook detected. Withdrawals may not be gated."
            ),
        )
    )

    readable = {m.module_id.lower() for m in modules if m.abi_fetched}
    unknown_hooks = [h for h in facts.hook_modules if h.module_id.lower() not in readable]
    if unknown_hooks:
        items.append(
            InvariantItem(
                id=FA_UNKNOWN_HOOK_MODULE,
                status=InvariantStatus.WARNING,
                title="Unknown hook module(s)",
                detail=f"{len(unknown_hooks)} hook module(s) have unknown ABIs",
                evidence={"unknown_modules": [h.model_dump() for h in unknown_hooks]},
            )
        )
    else:
        items.append(
            InvariantItem(
                id=FA_UNKNOWN_HOOK_MODULE,
                status=InvariantStatus.OK,
                title="All hook modules known",
                detail="All hook modules have accessible ABIs",
            )
        )

    if facts.supply_max_base is not None:
        items.append(
            InvariantItem(
                id=FA_MAX_SUPPLY_PRESENT,
                status=InvariantStatus.OK,
                title="Max supply is set",
                detail=f"Max supply: {facts.supply_max_base}",
            )
        )
    else:
        items.append(
            InvariantItem(
                id=FA_MAX_SUPPLY_PRESENT,
                status=InvariantStatus.WARNING,
                title="Max supply not found",
                detail="No max supply limit detected. Supply may be unbounded.",
            )
        )

    items.append(_max_supply_exceeded(facts.supply_current_base, facts.supply_max_base))

    return InvariantReport.from_items(items)


def _max_supply_exceeded(current_base: str | None, max_base: str | None) -> InvariantItem:
    if current_base is None or max_base is None:
        return InvariantItem(
            id=FA_MAX_SUPPLY_EXCEEDED,
            status=InvariantStatus.UNKNOWN,
            title="Max supply check not applicable",
            detail="Max supply or current supply not available",
        )

    try:
        current, maximum = int(current_base), int(max_base)
    except ValueError:
        return InvariantItem(
            id=FA_MAX_SUPPLY_EXCEEDED,
            status=InvariantStatus.UNKNOWN,
            title="Max supply check uncertain",
            detail="Could not parse supply values for comparison",
        )

    if current > maximum:
        return InvariantItem(
            id=FA_MAX_SUPPLY_EXCEEDED,
            status=InvariantStatus.VIOLATION,
            title="Max supply exceeded",
            detail=f"Current supply ({current}) exceeds max supply ({maximum})",
            evidence={"current": str(current), "max": str(maximum)},
        )
    return InvariantItem(
        id=FA_MAX_SUPPLY_EXCEEDED,
        status=InvariantStatus.OK,
        title="Max supply not exceeded",
        detail=f"Current supply ({current}) is within max supply ({maximum})",
    )
