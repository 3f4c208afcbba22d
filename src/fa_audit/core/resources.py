"""Resource-level capability parsing for coins and fungible assets.

Account resources arrive in several weakly-typed shapes (option vectors,
aggregators, nested value records). Everything here normalizes them into
:class:`CoinResourceFacts` / :class:`FaResourceFacts` so that later stages
only see canonical fields. Unparseable values become None, never zero.
"""

from __future__ import annotations

from typing import Any

from fa_audit.models.common import is_system_address, normalize_address
from fa_audit.models.findings import Finding, FindingSeverity
from fa_audit.models.resources import CoinResourceFacts, FaResourceFacts, HookModule
from fa_audit.utils.logging import get_logger

logger = get_logger("core.resources")

DEFAULT_COIN_DECIMALS = 6

# u128::MAX is how an unlimited aggregator reports its maximum
U128_MAX = 2**128 - 1

HOOK_SLOTS = ("deposit", "withdraw", "derived_balance", "transfer", "pre_transfer", "post_transfer")

_REF_KINDS = ("mint", "burn", "transfer")
_HOLDER_FIELDS = ("holder", "owner", "controller", "address", "account", "object_id", "id")

_COIN_FLAG_MARKERS: dict[str, tuple[str, ...]] = {
    "has_mint_cap": ("MintCapability", "MintCap"),
    "has_burn_cap": ("BurnCapability", "BurnCap"),
    "has_freeze_cap": ("FreezeCapability", "FreezeCap"),
    "has_transfer_restrictions": ("PauseCapability", "Pause", "Denylist", "Blacklist", "Restriction"),
}


def split_type(resource_type: str) -> tuple[str, str, str] | None:
    """Split ``0xADDR::module::Struct<...>`` into (address, module, struct)."""
    base = resource_type.split("<", 1)[0]
    parts = base.split("::")
    if len(parts) < 3 or not parts[0]:
        return None
    return normalize_address(parts[0]), parts[1], parts[2]


def struct_name(resource_type: str) -> str:
    """The struct name of a resource type, without generics."""
    parsed = split_type(resource_type)
    return parsed[2] if parsed else resource_type


def normalize_amount(value: Any) -> str | None:
    """Reduce a supply-like value to a base-unit integer string.

    Handles plain integers and numeric strings, option vectors
    (``{"vec": [x]}``) and aggregator wrappers (``aggregator``,
    ``integer``, ``value``, ``magnitude``).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        text = value.strip()
        return text if text.isdigit() else None
    if isinstance(value, list):
        return normalize_amount(value[0]) if value else None
    if isinstance(value, dict):
        for key in ("vec", "aggregator", "integer", "value", "magnitude"):
            if key in value:
                result = normalize_amount(value[key])
                if result is not None:
                    return result
    return None


def format_supply(base: str | None, decimals: int | None) -> str | None:
    """Scale a base-unit amount by its decimals, without float rounding."""
    if base is None or not base.isdigit():
        return None
    if not decimals:
        return base
    padded = base.rjust(decimals + 1, "0")
    whole, frac = padded[:-decimals], padded[-decimals:].rstrip("0")
    return f"{whole}.{frac}" if frac else whole


def _optional_str(value: Any) -> str | None:
    if isinstance(value, dict) and "vec" in value:
        vec = value["vec"]
        return _optional_str(vec[0]) if vec else None
    if isinstance(value, str) and value:
        return value
    return None


def _optional_int(value: Any) -> int | None:
    amount = normalize_amount(value)
    return int(amount) if amount is not None else None


# ---------------------------------------------------------------------------
# Coin
# ---------------------------------------------------------------------------


def parse_coin_resources(coin_type: str, resources: list[dict[str, Any]]) -> CoinResourceFacts:
    """Parse a coin publisher's resources into capability facts.

    Args:
        coin_type: Full coin type (0xADDR::module::Struct)
        resources: Resources stored at the publisher address

    Returns:
        CoinResourceFacts including resource-level findings
    """
    parsed = split_type(coin_type)
    publisher, module_name = (parsed[0], parsed[1]) if parsed else ("", "")
    coin_key = coin_type.lower()

    facts: dict[str, Any] = {
        "coin_type": coin_type,
        "publisher_address": publisher,
        "module_name": module_name,
        "decimals": DEFAULT_COIN_DECIMALS,
    }
    resource_types: list[str] = []

    for resource in resources:
        rtype = str(resource.get("type", ""))
        data = resource.get("data") or {}
        if not isinstance(data, dict):
            data = {}
        resource_types.append(rtype)
        name = struct_name(rtype)
        generic_matches = coin_key in rtype.lower()

        if name == "CoinInfo" and generic_matches:
            supply = None
            for key in ("supply", "total_supply", "value"):
                if key in data:
                    supply = normalize_amount(data[key])
                    if supply is not None:
                        break
            facts["supply_current_base"] = supply
            facts["supply_max_base"] = normalize_amount(data.get("max_supply"))
            decimals = _optional_int(data.get("decimals"))
            if decimals is not None:
                facts["decimals"] = decimals
            facts["name"] = _optional_str(data.get("name"))
            facts["symbol"] = _optional_str(data.get("symbol"))
            facts["owner"] = _optional_str(data.get("owner")) or facts.get("owner")
            facts["admin"] = _optional_str(data.get("admin")) or facts.get("admin")
            continue

        if name == "CoinStore" and generic_matches:
            if data.get("frozen") is True or data.get("denylist"):
                facts["has_transfer_restrictions"] = True
            continue

        for flag, markers in _COIN_FLAG_MARKERS.items():
            if any(marker in name for marker in markers):
                facts[flag] = True

        if "SignerCapability" in name or "AdminCapability" in name:
            facts["admin"] = facts.get("admin") or _optional_str(data.get("account")) or publisher
        if "OwnerCapability" in name:
            facts["owner"] = facts.get("owner") or _optional_str(data.get("owner")) or publisher

    findings: list[Finding] = []
    if facts.get("has_mint_cap"):
        findings.append(
            Finding(
                id="COIN-MINT-001",
                severity=FindingSeverity.MEDIUM,
                title="Mint capability present",
                detail="A mint capability resource is stored under the publisher account.",
                facts={"publisher_address": publisher},
                recommendation="Confirm who controls the mint capability and whether minting is bounded.",
            )
        )
    if facts.get("has_burn_cap"):
        findings.append(
            Finding(
                id="COIN-BURN-001",
                severity=FindingSeverity.INFO,
                title="Burn capability present",
                detail="A burn capability resource is stored under the publisher account.",
                facts={"publisher_address": publisher},
            )
        )

    logger.debug(
        f"Parsed {len(resources)} coin resource(s) for {coin_type}: "
        f"supply={facts.get('supply_current_base')} findings={len(findings)}"
    )
    return CoinResourceFacts(**facts, resource_types=resource_types, findings=findings)


# ---------------------------------------------------------------------------
# Fungible asset
# ---------------------------------------------------------------------------


def _ref_holder(value: Any) -> str | None:
    """Find the holder address inside a ref value, if the value names one."""
    if isinstance(value, str) and value.lower().startswith("0x"):
        return normalize_address(value)
    if isinstance(value, list):
        return _ref_holder(value[0]) if value else None
    if not isinstance(value, dict):
        return None
    for field in _HOLDER_FIELDS:
        if isinstance(value.get(field), str) and value[field]:
            return normalize_address(value[field])
    for key in ("inner", "vec"):
        if key in value:
            holder = _ref_holder(value[key])
            if holder:
                return holder
    return None


def _hook_from_slot(value: Any) -> HookModule | None:
    if isinstance(value, dict) and "vec" in value:
        vec = value["vec"]
        value = vec[0] if vec else None
    if not isinstance(value, dict):
        return None
    address = value.get("module_address")
    module = value.get("module_name")
    function = value.get("function_name")
    if not (address and module and function):
        return None
    return HookModule(
        module_address=normalize_address(str(address)),
        module_name=str(module),
        function_name=str(function),
    )


def parse_fa_resources(fa_address: str, resources: list[dict[str, Any]]) -> FaResourceFacts:
    """Parse an FA object's resources into ownership, ref and hook facts.

    Args:
        fa_address: FA object address
        resources: Resources stored at the object address

    Returns:
        FaResourceFacts including resource-level findings
    """
    fa_address = normalize_address(fa_address)
    facts: dict[str, Any] = {"fa_address": fa_address}
    ref_holders: dict[str, str] = {}
    hooks: dict[str, str] = {}
    hook_modules: list[HookModule] = []
    resource_types: list[str] = []

    for resource in resources:
        rtype = str(resource.get("type", ""))
        data = resource.get("data") or {}
        if not isinstance(data, dict):
            data = {}
        resource_types.append(rtype)
        parsed = split_type(rtype)
        name = parsed[2] if parsed else rtype
        type_address = parsed[0] if parsed else None

        if name == "ObjectCore":
            owner = _optional_str(data.get("owner"))
            facts["owner"] = normalize_address(owner) if owner else None

        elif name == "ConcurrentSupply":
            current = data.get("current")
            facts["supply_current_base"] = normalize_amount(current)
            if isinstance(current, dict):
                maximum = normalize_amount(current.get("max_value"))
                if maximum is not None and int(maximum) != U128_MAX:
                    facts["supply_max_base"] = maximum

        elif name == "Supply":
            facts["supply_current_base"] = normalize_amount(data.get("current"))
            facts["supply_max_base"] = normalize_amount(data.get("maximum"))

        elif name == "Metadata":
            facts["name"] = _optional_str(data.get("name"))
            facts["symbol"] = _optional_str(data.get("symbol"))
            facts["decimals"] = _optional_int(data.get("decimals"))

        elif name == "DispatchFunctionStore":
            for slot in HOOK_SLOTS:
                raw = data.get(f"{slot}_function", data.get(slot))
                hook = _hook_from_slot(raw)
                if hook is None:
                    continue
                hooks[slot] = f"{hook.module_id}::{hook.function_name}"
                hook_modules.append(hook)

        for kind in _REF_KINDS:
            field = f"{kind}_ref"
            ref_struct = f"{kind.capitalize()}Ref"
            if field in data:
                facts[f"has_{field}"] = True
                holder = _ref_holder(data[field])
                if holder is None and type_address and not is_system_address(type_address):
                    holder = type_address
                if holder:
                    ref_holders.setdefault(kind, holder)
            elif name == ref_struct:
                facts[f"has_{field}"] = True
                holder = _ref_holder(data)
                if holder is None and type_address and not is_system_address(type_address):
                    holder = type_address
                if holder:
                    ref_holders.setdefault(kind, holder)

    findings = _fa_findings(facts, hooks, resources)

    logger.debug(
        f"Parsed {len(resources)} FA resource(s) for {fa_address}: "
        f"owner={facts.get('owner')} hooks={sorted(hooks)} refs={sorted(ref_holders)}"
    )
    return FaResourceFacts(
        **facts,
        ref_holders=ref_holders,
        hooks=hooks,
        hook_modules=hook_modules,
        resource_types=resource_types,
        findings=findings,
    )


def _fa_findings(
    facts: dict[str, Any], hooks: dict[str, str], resources: list[dict[str, Any]]
) -> list[Finding]:
    findings: list[Finding] = []
    owner = facts.get("owner")
    supply = facts.get("supply_current_base")

    if facts.get("has_mint_ref"):
        findings.append(
            Finding(
                id="FA-MINT-001",
                severity=FindingSeverity.MEDIUM,
                title="Mint reference present",
                detail="A MintRef is stored for this asset; its holder can create new supply.",
                recommendation="Identify the MintRef holder and review who can invoke it.",
            )
        )
    if facts.get("has_burn_ref"):
        findings.append(
            Finding(
                id="FA-BURN-001",
                severity=FindingSeverity.INFO,
                title="Burn reference present",
                detail="A BurnRef is stored for this asset.",
            )
        )
    if hooks:
        findings.append(
            Finding(
                id="FA-HOOKS-001",
                severity=FindingSeverity.MEDIUM,
                title="Dispatch hooks registered",
                detail=f"Hooks registered for: {', '.join(sorted(hooks))}.",
                facts={"hooks": dict(hooks)},
                recommendation="Review hook module code; hooks run on every matching transfer.",
            )
        )
    if owner:
        findings.append(
            Finding(
                id="FA-OWNER-001",
                severity=FindingSeverity.INFO,
                title="Object owner identified",
                detail=f"Object owner: {owner}",
                facts={"owner": owner},
            )
        )
    if supply is not None:
        findings.append(
            Finding(
                id="FA-SUPPLY-001",
                severity=FindingSeverity.INFO,
                title="Supply tracked",
                detail=f"Current supply: {supply}",
                facts={"supply_current_base": supply, "supply_max_base": facts.get("supply_max_base")},
            )
        )

    strong_signal = owner or supply is not None or hooks or any(
        facts.get(f"has_{kind}_ref") for kind in _REF_KINDS
    )
    if not strong_signal and len(resources) > 5:
        findings.append(
            Finding(
                id="FA-OPAQUE-001",
                severity=FindingSeverity.MEDIUM,
                title="Opaque resource layout",
                detail=(
                    f"{len(resources)} resources found but none expose ownership, supply, "
                    "refs or hooks in a recognised shape."
                ),
                recommendation="Inspect the resources manually; control may be held by custom types.",
            )
        )
    return findings
