"""Cross-source parity checks.

The RPC node is the source of truth; the v1 listing and the indexer are
consulted only to corroborate it. A missing or unparseable source always
yields an ``unknown`` parity record, never a guessed match or mismatch.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from fa_audit.models.common import normalize_address
from fa_audit.models.evidence import EvidenceBundle, EvidenceSource, ParityItem, ParityStatus
from fa_audit.models.inventory import ModuleInventory
from fa_audit.models.resources import CoinResourceFacts, FaResourceFacts
from fa_audit.rpc.base import RpcError
from fa_audit.utils.logging import get_logger

if TYPE_CHECKING:
    from fa_audit.rpc.base import ModuleLister, ParityIndexer

logger = get_logger("core.evidence")

SUPPLY_PARITY = "SUPPLY_PARITY"
MODULE_COUNT_PARITY = "MODULE_COUNT_PARITY"
OWNER_PARITY = "OWNER_PARITY"

_SUPPLY_TOLERANCE = Decimal("0.0001")


def _decimal(value: str | None) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        return None


def supply_parity(rpc_supply: str | None, indexer_supply: str | None, decimals: int | None = None) -> ParityItem:
    """Compare RPC supply (base units) with the indexer's figure.

    The indexer may report either base units or a decimal-scaled amount;
    both readings are accepted as a match.
    """
    evidence = {"rpc_supply": rpc_supply, "indexer_supply": indexer_supply}
    if rpc_supply is None or indexer_supply is None:
        return ParityItem(
            id=SUPPLY_PARITY,
            status=ParityStatus.UNKNOWN,
            detail="One or both supply sources unavailable",
            evidence=evidence,
        )

    rpc_value, indexer_value = _decimal(rpc_supply), _decimal(indexer_supply)
    if rpc_value is None or indexer_value is None:
        return ParityItem(
            id=SUPPLY_PARITY,
            status=ParityStatus.UNKNOWN,
            detail="Could not parse supply values for comparison",
            evidence=evidence,
        )

    candidates = [rpc_value]
    if decimals:
        candidates.append(rpc_value.scaleb(-decimals))
    delta = min(abs(c - indexer_value) for c in candidates)
    matched = delta < _SUPPLY_TOLERANCE
    return ParityItem(
        id=SUPPLY_PARITY,
        status=ParityStatus.MATCH if matched else ParityStatus.MISMATCH,
        detail=(
            f"Supply matches: {rpc_supply}"
            if matched
            else f"Supply mismatch: RPC={rpc_supply}, SupraScan={indexer_supply}"
        ),
        evidence={**evidence, "delta": str(delta)},
    )


def module_count_parity(v3_count: int | None, v1_count: int | None) -> ParityItem:
    """Compare module counts from the v3 and v1 listings."""
    evidence = {"rpc_v3_count": v3_count, "rpc_v1_count": v1_count}
    if v3_count is None or v1_count is None:
        return ParityItem(
            id=MODULE_COUNT_PARITY,
            status=ParityStatus.UNKNOWN,
            detail=f"RPC {'v3' if v3_count is None else 'v1'} module count unavailable",
            evidence=evidence,
        )

    matched = v3_count == v1_count
    return ParityItem(
        id=MODULE_COUNT_PARITY,
        status=ParityStatus.MATCH if matched else ParityStatus.MISMATCH,
        detail=(
            f"Module count matches: {v3_count}"
            if matched
            else f"Module count mismatch: RPC v3={v3_count}, RPC v1={v1_count}"
        ),
        evidence=evidence,
    )


def owner_parity(
    rpc_owner: str | None, indexer_owner: str | None, indexer_creator: str | None = None
) -> ParityItem:
    """Compare owners case- and whitespace-insensitively.

    The indexer's creator address is recorded as evidence but is never
    compared: whoever deployed an FA need not own it now.
    """
    evidence = {"rpc_owner": rpc_owner, "indexer_owner": indexer_owner}
    if indexer_creator:
        evidence["indexer_creator"] = indexer_creator
    if not rpc_owner or not indexer_owner:
        return ParityItem(
            id=OWNER_PARITY,
            status=ParityStatus.UNKNOWN,
            detail=(
                "Indexer reports no owner (creator is informational only)"
                if rpc_owner and indexer_creator
                else "One or both owner sources unavailable"
            ),
            evidence=evidence,
        )

    matched = rpc_owner.strip().lower() == indexer_owner.strip().lower()
    return ParityItem(
        id=OWNER_PARITY,
        status=ParityStatus.MATCH if matched else ParityStatus.MISMATCH,
        detail=(
            f"Owner matches: {rpc_owner}"
            if matched
            else f"Owner mismatch: RPC={rpc_owner}, SupraScan={indexer_owner}"
        ),
        evidence=evidence,
    )


class EvidenceCollector:
    """Builds the evidence bundle for a scanned asset.

    Example:
        collector = EvidenceCollector(rpc_client, indexer)
        bundle = collector.collect_fa(facts, inventory)
        supply = bundle.get("SUPPLY_PARITY")
    """

    def __init__(self, lister: "ModuleLister | None" = None, indexer: "ParityIndexer | None" = None) -> None:
        """Initialize the collector.

        Args:
            lister: Module lister used for the v1 module count
            indexer: Independent indexer for supply/owner corroboration
        """
        self._lister = lister
        self._indexer = indexer

    def _v1_count(self, address: str | None) -> int | None:
        if self._lister is None or not address:
            return None
        try:
            return len(self._lister.list_modules_v1(address).names)
        except RpcError as e:
            logger.debug(f"v1 module count unavailable for {address}: {e}")
            return None

    def collect_coin(self, facts: CoinResourceFacts, inventory: ModuleInventory) -> EvidenceBundle:
        """Collect parity evidence for a legacy coin."""
        sources = [EvidenceSource.RPC_V3]
        publisher = normalize_address(facts.publisher_address)

        v1_count = self._v1_count(publisher)
        if v1_count is not None:
            sources.append(EvidenceSource.RPC_V1)

        indexer_facts = self._indexer.fetch_coin_details(facts.coin_type) if self._indexer else None
        if indexer_facts is not None:
            sources.append(EvidenceSource.SUPRASCAN)

        parity = [
            supply_parity(
                facts.supply_current_base,
                indexer_facts.total_supply if indexer_facts else None,
                facts.decimals,
            ),
            module_count_parity(inventory.publisher_modules_count, v1_count),
        ]
        return EvidenceBundle(sources_used=sources, parity=parity)

    def collect_fa(self, facts: FaResourceFacts, inventory: ModuleInventory) -> EvidenceBundle:
        """Collect parity evidence for a fungible asset."""
        sources = [EvidenceSource.RPC_V3]
        owner = normalize_address(facts.owner) if facts.owner else None

        v1_count = self._v1_count(owner)
        if v1_count is not None:
            sources.append(EvidenceSource.RPC_V1)

        indexer_facts = self._indexer.fetch_fa_details(facts.fa_address) if self._indexer else None
        if indexer_facts is not None:
            sources.append(EvidenceSource.SUPRASCAN)

        parity = [
            supply_parity(
                facts.supply_current_base,
                indexer_facts.total_supply if indexer_facts else None,
                facts.decimals,
            ),
            owner_parity(
                facts.owner,
                indexer_facts.owner_address if indexer_facts else None,
                indexer_facts.creator_address if indexer_facts else None,
            ),
        ]
        if inventory.owner_modules_count is not None:
            parity.append(module_count_parity(inventory.owner_modules_count, v1_count))
        return EvidenceBundle(sources_used=sources, parity=parity)
