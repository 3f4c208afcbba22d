"""Transaction behavior sampling and phantom entry detection.

Static analysis only sees what a module's ABI declares. The sampler looks
at what recent transactions actually invoked and flags entry points that
are missing from the pinned function set ("phantom" entries).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable

from fa_audit.models.behavior import BehaviorEvidence, BehaviorStatus, InvokedEntry, PhantomEntry
from fa_audit.models.common import normalize_address
from fa_audit.models.resources import HookModule
from fa_audit.models.snapshot import ModuleSurface
from fa_audit.rpc.base import RpcError
from fa_audit.utils.config import SamplerConfig
from fa_audit.utils.logging import get_logger

if TYPE_CHECKING:
    from fa_audit.rpc.base import TransactionIndexer, TransactionLister

logger = get_logger("core.behavior")

SOURCE_V3 = "rpc_accounts_v3"
SOURCE_V2 = "rpc_accounts_v2"
SOURCE_INDEXER = "suprascan"

_FULL_ADDRESS = re.compile(r"^0x[0-9a-f]{64}$")


# ----------------------------------------------------------------------
# Envelope normalization
# ----------------------------------------------------------------------


def normalize_v3_transactions(body: Any) -> list[dict[str, Any]]:
    """Canonical transaction list from a v3 response (list or ``{value: [...]}``)."""
    if isinstance(body, list):
        items = body
    elif isinstance(body, dict) and isinstance(body.get("value"), list):
        items = body["value"]
    else:
        items = []
    return [tx for tx in items if isinstance(tx, dict)]


def normalize_v2_transactions(body: Any) -> list[dict[str, Any]]:
    """Canonical transaction list from a v2 response.

    Accepts ``{record: [...]}`` and ``{record: {transactions|data: [...]}}``.
    A missing, null or empty record means no transactions. Any other
    record falls back to top-level ``transactions``/``data``.
    """
    if not isinstance(body, dict):
        return []

    record = body.get("record")
    if isinstance(record, list):
        return [tx for tx in record if isinstance(tx, dict)]
    if record is None or record == {}:
        return []

    for container in (record, body):
        if not isinstance(container, dict):
            continue
        for key in ("transactions", "data"):
            if isinstance(container.get(key), list):
                return [tx for tx in container[key] if isinstance(tx, dict)]
    return []


_NORMALIZERS = {
    SOURCE_V3: normalize_v3_transactions,
    SOURCE_V2: normalize_v2_transactions,
}


# ----------------------------------------------------------------------
# Transaction field extraction
# ----------------------------------------------------------------------


def extract_function_id(tx: dict[str, Any]) -> str | None:
    """The invoked function identifier, from whichever field carries it."""
    for key in ("function", "entry_function_id", "entryFunctionId"):
        if isinstance(tx.get(key), str) and tx[key]:
            return tx[key]

    payload = tx.get("payload")
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError:
            payload = None
    if isinstance(payload, dict):
        # Supra wraps Move payloads as {"Move": {...}}
        candidates = [payload]
        if isinstance(payload.get("Move"), dict):
            candidates.append(payload["Move"])
        for candidate in candidates:
            for key in ("function", "entry_function_id"):
                if isinstance(candidate.get(key), str) and candidate[key]:
                    return candidate[key]

    if isinstance(tx.get("functionName"), str) and tx["functionName"]:
        return tx["functionName"]
    return None


def parse_function_id(function_id: str) -> tuple[str, str, str]:
    """Split ``addr::module::fn``; a bare name maps to ``unknown::unknown::fn``."""
    parts = function_id.split("::")
    if len(parts) >= 3:
        return parts[0].strip().lower(), parts[1], "::".join(parts[2:])
    return "unknown", "unknown", function_id


def _tx_hash(tx: dict[str, Any]) -> str | None:
    for key in ("hash", "transactionHash", "txHash", "tx_hash"):
        if isinstance(tx.get(key), str) and tx[key]:
            return tx[key]
    return None


def _raw_timestamp(tx: dict[str, Any]) -> Any:
    for key in ("timestamp", "created_at", "block_timestamp", "confirmationTime"):
        if tx.get(key) not in (None, ""):
            return tx[key]
    header = tx.get("header")
    if isinstance(header, dict):
        return header.get("timestamp")
    return None


def _numeric(value: Any) -> float:
    """Sortable number from a timestamp/height of any shape; 0 when unknown."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, dict):
        for key in ("microseconds_since_unix_epoch", "height", "value"):
            if key in value:
                return _numeric(value[key])
        return 0
    if isinstance(value, str):
        text = value.strip()
        try:
            return float(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).timestamp()
        except ValueError:
            return 0
    return 0


def _height(tx: dict[str, Any]) -> float:
    for key in ("height", "block_height", "version"):
        if tx.get(key) is not None:
            return _numeric(tx[key])
    block_header = tx.get("block_header")
    if isinstance(block_header, dict):
        return _numeric(block_header.get("height"))
    return 0


def _display_timestamp(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, dict):
        for key in ("utc_date_time", "microseconds_since_unix_epoch"):
            if value.get(key) is not None:
                return str(value[key])
        return None
    return str(value)


def merge_transactions(
    batches: Iterable[list[dict[str, Any]]],
    limit: int,
) -> list[dict[str, Any]]:
    """Merge per-address batches, newest first, truncated to ``limit``.

    Ordered by timestamp, then block height, both descending; ties keep
    fetch order.
    """
    flat: list[dict[str, Any]] = [tx for batch in batches for tx in batch]
    indexed = list(enumerate(flat))
    indexed.sort(key=lambda item: (-_numeric(_raw_timestamp(item[1])), -_height(item[1]), item[0]))
    return [tx for _, tx in indexed[:limit]]


def extract_invoked_entries(transactions: list[dict[str, Any]]) -> list[InvokedEntry]:
    """Unique invoked entries, keeping the first transaction seen for each."""
    entries: dict[str, InvokedEntry] = {}
    for tx in transactions:
        function_id = extract_function_id(tx)
        if not function_id:
            continue
        address, module, function = parse_function_id(function_id)
        full_id = f"{address}::{module}::{function}"
        if full_id in entries:
            continue
        entries[full_id] = InvokedEntry(
            module_address=address,
            module_name=module,
            function_name=function,
            full_id=full_id,
            tx_hash=_tx_hash(tx),
            timestamp=_display_timestamp(_raw_timestamp(tx)),
        )
    return list(entries.values())


def detect_phantom_entries(
    invoked: list[InvokedEntry],
    transactions: list[dict[str, Any]],
    pinned: dict[str, list[str]],
) -> list[PhantomEntry]:
    """Invoked entries missing from the pinned function map.

    For a module present in ``pinned``, functions outside its list are
    phantom. For a module absent from ``pinned``, every invoked function
    is phantom. Each phantom carries every sampled transaction hash that
    invoked it.
    """
    hashes_by_id: dict[str, list[str]] = {}
    for tx in transactions:
        function_id = extract_function_id(tx)
        tx_hash = _tx_hash(tx)
        if not function_id or not tx_hash:
            continue
        address, module, function = parse_function_id(function_id)
        hashes_by_id.setdefault(f"{address}::{module}::{function}", []).append(tx_hash)

    pinned_lower = {module_id.lower(): {fn.lower() for fn in fns} for module_id, fns in pinned.items()}
    phantoms: list[PhantomEntry] = []
    for entry in invoked:
        module_id = entry.module_id.lower()
        allowed = pinned_lower.get(module_id)
        if allowed is None:
            reason = f"Module {module_id} not present in pinned ABI inventory"
        elif entry.function_name.lower() not in allowed:
            reason = (
                f'Entry function "{entry.function_name}" invoked in transactions '
                f"but not present in pinned ABI for module {module_id}"
            )
        else:
            continue
        phantoms.append(
            PhantomEntry(
                module=module_id,
                function=entry.function_name,
                full_id=entry.full_id,
                tx_hashes=list(dict.fromkeys(hashes_by_id.get(entry.full_id, []))),
                reason=reason,
            )
        )
    return phantoms


def build_pinned_entry_functions_map(
    abi_presence: Iterable[ModuleSurface] = (),
    hook_modules: Iterable[HookModule] = (),
) -> dict[str, list[str]]:
    """Allow-list of entry functions per module, keyed by lower-cased module id.

    Modules whose ABI was read contribute their entry functions; hook
    modules contribute their registered hook function.
    """
    pinned: dict[str, list[str]] = {}
    for surface in abi_presence:
        if not surface.abi_fetched:
            continue
        fns = pinned.setdefault(surface.module_id.lower(), [])
        for fn in surface.entry_fn_names:
            if fn not in fns:
                fns.append(fn)

    for hook in hook_modules:
        fns = pinned.setdefault(f"{hook.module_address.lower()}::{hook.module_name}".lower(), [])
        if hook.function_name not in fns:
            fns.append(hook.function_name)
    return pinned


# ----------------------------------------------------------------------
# Sampler
# ----------------------------------------------------------------------


@dataclass
class _FetchOutcome:
    """Accumulated per-source outcomes across all sampled addresses."""

    batches: list[list[dict[str, Any]]] = field(default_factory=list)
    sampled_addresses: list[str] = field(default_factory=list)
    # source -> address -> outcome
    source_details: dict[str, dict[str, Any]] = field(default_factory=dict)
    source: str | None = None

    @property
    def any_success(self) -> bool:
        return bool(self.sampled_addresses)


class BehaviorSampler:
    """Samples recent transactions for an asset's candidate addresses.

    Candidate addresses are sampled one at a time in a fixed order: owner
    or creator, then hook/module addresses, then ref holders, then the
    asset address, then caller-supplied probe addresses. Each address is
    fetched from the preferred RPC generation, retrying once without the
    limit parameter on a 404, then from the other generation. The indexer
    is queried only when every RPC attempt failed for every address.

    Example:
        sampler = BehaviorSampler(rpc_client, indexer=SupraScanClient())
        evidence = sampler.sample(
            owner_address="0xabc...",
            pinned_entry_functions={"0xabc::router": ["swap"]},
        )
        print(evidence.status.value, len(evidence.phantom_entries))
    """

    def __init__(
        self,
        transactions: "TransactionLister",
        indexer: "TransactionIndexer | None" = None,
        limit: int = 20,
        timeout: float = 8.0,
        prefer_v2: bool = False,
    ) -> None:
        """Initialize the sampler.

        Args:
            transactions: Account-transactions collaborator
            indexer: Optional last-resort indexer
            limit: Transactions to keep after merging
            timeout: Per-request timeout in seconds
            prefer_v2: Try the v2 endpoint before v3
        """
        self._transactions = transactions
        self._indexer = indexer
        self._limit = limit
        self._timeout = timeout
        self._prefer_v2 = prefer_v2

    @classmethod
    def from_config(
        cls,
        config: SamplerConfig,
        transactions: "TransactionLister",
        indexer: "TransactionIndexer | None" = None,
    ) -> "BehaviorSampler":
        """Create a sampler from configuration."""
        return cls(
            transactions,
            indexer=indexer,
            limit=config.limit,
            timeout=config.timeout,
            prefer_v2=config.prefer_v2,
        )

    @property
    def source_order(self) -> list[str]:
        """RPC sources in the order they are tried."""
        return [SOURCE_V2, SOURCE_V3] if self._prefer_v2 else [SOURCE_V3, SOURCE_V2]

    def candidate_addresses(
        self,
        owner_address: str | None = None,
        module_addresses: Iterable[str] = (),
        ref_holder_addresses: Iterable[str] = (),
        asset_address: str | None = None,
        probe_addresses: Iterable[str] = (),
    ) -> tuple[list[str], list[str]]:
        """Ordered, deduplicated candidate addresses plus probe warnings."""
        addresses: list[str] = []
        warnings: list[str] = []

        def add(address: str | None) -> None:
            if not address or not address.strip():
                return
            normalized = normalize_address(address)
            if normalized not in addresses:
                addresses.append(normalized)

        add(owner_address)
        for address in module_addresses:
            add(address)
        for address in ref_holder_addresses:
            add(address)
        add(asset_address)

        for address in probe_addresses:
            normalized = normalize_address(address) if address and address.strip() else ""
            if _FULL_ADDRESS.match(normalized):
                add(normalized)
            else:
                warnings.append(f"Invalid probe address (not a valid 0x hex address of length 66): {address}")
        return addresses, warnings

    def _fetch_source(self, address: str, source: str, limit: int) -> tuple[list[dict[str, Any]] | None, dict]:
        """One source for one address; None on failure."""
        version = "v3" if source == SOURCE_V3 else "v2"
        try:
            response = self._transactions.get_account_transactions(
                address, version, limit=limit, timeout=self._timeout
            )
            if response.status_code == 404:
                response = self._transactions.get_account_transactions(
                    address, version, limit=None, timeout=self._timeout
                )
        except RpcError as e:
            logger.debug(f"{source} failed for {address}: {e}")
            return None, {"error": str(e)}

        if not response.ok:
            return None, {"error": f"HTTP {response.status_code}", "httpStatus": response.status_code}

        transactions = _NORMALIZERS[source](response.body)
        return transactions[:limit], {"httpStatus": response.status_code, "normalizedCount": len(transactions)}

    def _fetch_all(self, addresses: list[str], limit: int) -> _FetchOutcome:
        outcome = _FetchOutcome()
        for address in addresses:
            for source in self.source_order:
                transactions, detail = self._fetch_source(address, source, limit)
                outcome.source_details.setdefault(source, {})[address] = detail
                if transactions is None:
                    continue
                outcome.batches.append(transactions)
                outcome.sampled_addresses.append(address)
                outcome.source = source
                break
        return outcome

    def sample(
        self,
        owner_address: str | None = None,
        module_addresses: Iterable[str] = (),
        ref_holder_addresses: Iterable[str] = (),
        asset_address: str | None = None,
        probe_addresses: Iterable[str] = (),
        pinned_entry_functions: dict[str, list[str]] | None = None,
        abi_opaque: bool = False,
        limit: int | None = None,
    ) -> BehaviorEvidence:
        """Sample recent transactions and build behavior evidence.

        Args:
            owner_address: FA owner/creator or coin publisher
            module_addresses: Hook and module addresses
            ref_holder_addresses: Mint/burn/transfer ref holders
            asset_address: FA object address
            probe_addresses: Extra full-length addresses to sample
            pinned_entry_functions: Allow-list per module id
            abi_opaque: Whether the static surface was unreadable
            limit: Override the configured sample size

        Returns:
            BehaviorEvidence; never raises for fetch failures
        """
        limit = self._limit if limit is None else limit
        addresses, warnings = self.candidate_addresses(
            owner_address, module_addresses, ref_holder_addresses, asset_address, probe_addresses
        )
        attempted = self.source_order

        if not addresses:
            logger.warning("No usable address for transaction sampling")
            return BehaviorEvidence(
                status=BehaviorStatus.ERROR,
                prefer_v2=self._prefer_v2,
                warnings=warnings,
                error="No address provided for transaction sampling",
            )

        outcome = self._fetch_all(addresses, limit * 2)
        rpc_success = outcome.any_success
        if rpc_success:
            transactions = merge_transactions(outcome.batches, limit)
            source = outcome.source
        else:
            if self._indexer is not None:
                attempted = [*attempted, SOURCE_INDEXER]
            transactions = self._indexer_fallback(addresses[0], limit, outcome)
            source = SOURCE_INDEXER if transactions else self.source_order[0]

        common = {
            "source": source,
            "attempted_sources": attempted,
            "prefer_v2": self._prefer_v2,
            "sampled_addresses": outcome.sampled_addresses,
            "sampled_address_count": len(outcome.sampled_addresses),
            "source_details": outcome.source_details,
            "warnings": warnings,
        }

        if rpc_success and not transactions:
            return BehaviorEvidence(status=BehaviorStatus.OK_EMPTY, **common)
        if not transactions:
            logger.info(f"Transaction sources unavailable for {len(addresses)} address(es)")
            return BehaviorEvidence(
                status=BehaviorStatus.UNAVAILABLE,
                error="RPC account transaction endpoints unavailable (network/parse/non-200 errors)",
                **common,
            )

        invoked = extract_invoked_entries(transactions)
        phantoms: list[PhantomEntry] = []
        if pinned_entry_functions:
            phantoms = detect_phantom_entries(invoked, transactions, pinned_entry_functions)

        opaque_reason = None
        if abi_opaque and transactions:
            opaque_reason = (
                f"ABI is opaque/empty but {len(transactions)} recent transactions found involving this address"
            )
        elif pinned_entry_functions is not None and not pinned_entry_functions and invoked:
            opaque_reason = (
                f"No modules in pinned ABI inventory but {len(invoked)} unique entry points "
                "invoked in recent transactions"
            )

        status = BehaviorStatus.SAMPLED if invoked else BehaviorStatus.NO_ACTIVITY
        logger.debug(
            f"Sampled {len(transactions)} tx(s): {len(invoked)} entr(ies), {len(phantoms)} phantom(s), {status.value}"
        )
        return BehaviorEvidence(
            status=status,
            tx_count=len(transactions),
            invoked_entries=invoked,
            phantom_entries=phantoms,
            opaque_active=opaque_reason is not None,
            opaque_reason=opaque_reason,
            **common,
        )

    def _indexer_fallback(self, address: str, limit: int, outcome: _FetchOutcome) -> list[dict[str, Any]]:
        """Query the indexer for the primary address; empty when it has nothing."""
        if self._indexer is None:
            return []
        transactions = self._indexer.fetch_transactions(address, limit)
        if not transactions:
            outcome.source_details[SOURCE_INDEXER] = {address: {"error": "No transactions from indexer"}}
            return []
        outcome.source_details[SOURCE_INDEXER] = {address: {"normalizedCount": len(transactions)}}
        outcome.sampled_addresses.append(address)
        return merge_transactions([transactions], limit)
