"""Module inventory construction and name recovery."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from fa_audit.models.common import CoverageStatus, is_system_address, normalize_address
from fa_audit.models.inventory import (
    ModuleEntry,
    ModuleInventory,
    ModuleSource,
    RecoveredModule,
    RecoveryRecord,
)
from fa_audit.models.resources import HookModule
from fa_audit.rpc.base import RpcError
from fa_audit.utils.logging import get_logger

if TYPE_CHECKING:
    from fa_audit.rpc.base import ArtifactFetcher, ModuleLister

logger = get_logger("core.inventory")

# Conventional module names probed when a coin publisher module stays unnamed
COMMON_MODULE_NAMES = ("coin", "token", "fa", "fungible")


def extract_modules_from_resource_types(resource_types: Iterable[str]) -> list[tuple[str, str]]:
    """Unique (address, module) pairs embedded in resource type strings."""
    seen: set[tuple[str, str]] = set()
    modules: list[tuple[str, str]] = []
    for resource_type in resource_types:
        parts = resource_type.split("<", 1)[0].split("::")
        if len(parts) < 2 or not parts[0].lower().startswith("0x"):
            continue
        key = (normalize_address(parts[0]), parts[1])
        if key not in seen:
            seen.add(key)
            modules.append(key)
    return modules


class _Entries:
    """Mutable working set of inventory entries keyed by (address, name)."""

    def __init__(self) -> None:
        self._entries: list[ModuleEntry] = []

    def __iter__(self):
        return iter(self._entries)

    def find(self, address: str, name: str | None) -> int | None:
        for index, entry in enumerate(self._entries):
            if entry.module_address == address and entry.module_name == name:
                return index
        return None

    def names_at(self, address: str) -> set[str]:
        return {e.module_name for e in self._entries if e.module_address == address and e.module_name}

    def add(self, address: str, name: str | None, source: ModuleSource, relevant: bool) -> bool:
        """Add an entry, upgrading a nameless one in place when possible.

        Returns:
            True if a nameless entry was upgraded
        """
        address = normalize_address(address)
        if self.find(address, name) is not None:
            if relevant:
                self.mark_relevant(address, name)
            return False

        if name:
            nameless = self.find(address, None)
            if nameless is not None:
                entry = self._entries[nameless]
                self._entries[nameless] = entry.model_copy(
                    update={"module_name": name, "is_relevant": entry.is_relevant or relevant}
                )
                return True

        self._entries.append(
            ModuleEntry(module_address=address, module_name=name, source=source, is_relevant=relevant)
        )
        return False

    def mark_relevant(self, address: str, name: str | None) -> None:
        index = self.find(address, name)
        if index is not None and not self._entries[index].is_relevant:
            self._entries[index] = self._entries[index].model_copy(update={"is_relevant": True})

    def rename(self, index: int, name: str) -> None:
        self._entries[index] = self._entries[index].model_copy(update={"module_name": name})

    def unnamed_relevant(self, address: str | None = None) -> list[int]:
        return [
            i
            for i, e in enumerate(self._entries)
            if e.is_relevant and not e.module_name and (address is None or e.module_address == address)
        ]

    def to_list(self) -> list[ModuleEntry]:
        return list(self._entries)


class InventoryBuilder:
    """Builds the relevant-module set for an asset.

    Entries are seeded from hooks (FA), the defining module (coin),
    resource-type strings and per-address module listings. Relevance is
    restricted to the owner/creator, hook and ref-holder addresses (FA) or
    the publisher (coin), never the reserved system addresses. Listing
    failures are recorded as coverage reasons and never abort the pass.

    Example:
        builder = InventoryBuilder(rpc_client, rpc_client)
        inventory = builder.build_coin("0xabc::my_coin::MyCoin")
        if not inventory.is_complete:
            for reason in inventory.reasons:
                print(reason)
    """

    def __init__(self, lister: "ModuleLister", artifacts: "ArtifactFetcher | None" = None) -> None:
        """Initialize the builder.

        Args:
            lister: Module listing collaborator
            artifacts: Per-module detail fetcher used for name probing
        """
        self._lister = lister
        self._artifacts = artifacts

    # ------------------------------------------------------------------
    # Coin
    # ------------------------------------------------------------------

    def build_coin(
        self,
        publisher_address: str,
        defining_module: str,
        resource_types: Iterable[str] = (),
    ) -> ModuleInventory:
        """Build the inventory for a legacy coin.

        Args:
            publisher_address: Address that published the coin type
            defining_module: Module that declares the coin struct
            resource_types: Resource type strings observed at the publisher

        Returns:
            ModuleInventory with coverage and name-recovery trail
        """
        publisher = normalize_address(publisher_address)
        entries = _Entries()
        reasons: list[str] = []
        listing_failed = False
        listed_count: int | None = None
        attempts: list[str] = []
        recovered: list[RecoveredModule] = []

        entries.add(publisher, defining_module, ModuleSource.COIN_DEFINING, True)

        for address, module in extract_modules_from_resource_types(resource_types):
            if address == publisher:
                entries.add(address, module, ModuleSource.RESOURCE_TYPES, True)

        try:
            listing = self._lister.list_modules(publisher)
        except RpcError as e:
            listing_failed = True
            reasons.append(f"RPC fetch failed for {publisher}: {e}")
            logger.warning(f"Module listing failed for {publisher}: {e}")
        else:
            listed_count = len(listing.names)
            for name in listing.names:
                upgraded = entries.add(publisher, name, ModuleSource.RPC_V3_LIST, True)
                if upgraded and name:
                    recovered.append(
                        RecoveredModule(address=publisher, old_name=None, new_name=name, strategy="rpc_v3_list")
                    )

        if entries.unnamed_relevant(publisher):
            self._recover_with_v1_listing(publisher, entries, attempts, recovered)
        if entries.unnamed_relevant(publisher):
            self._recover_with_name_probe(publisher, defining_module, entries, attempts, recovered)

        unnamed = entries.unnamed_relevant()
        if unnamed:
            if attempts:
                reasons.append(
                    f"{len(unnamed)} relevant module(s) have unknown names after "
                    f"{len(attempts)} recovery strategies: {', '.join(attempts)}"
                )
            else:
                reasons.append(f"{len(unnamed)} relevant module(s) have unknown names")

        status = CoverageStatus.fold(
            [
                CoverageStatus.PARTIAL if listing_failed else CoverageStatus.COMPLETE,
                CoverageStatus.PARTIAL if unnamed else CoverageStatus.COMPLETE,
                CoverageStatus.PARTIAL if reasons else CoverageStatus.COMPLETE,
            ]
        )
        recovery = RecoveryRecord(attempts=attempts, recovered=recovered) if attempts or recovered else None

        logger.debug(f"Coin inventory for {publisher}: {len(entries.to_list())} module(s), {status.value}")
        return ModuleInventory(
            modules=entries.to_list(),
            status=status,
            reasons=reasons,
            publisher_modules_count=listed_count,
            recovery=recovery,
        )

    def _recover_with_v1_listing(
        self,
        publisher: str,
        entries: _Entries,
        attempts: list[str],
        recovered: list[RecoveredModule],
    ) -> None:
        """Fill nameless publisher entries from the older listing endpoint."""
        try:
            listing = self._lister.list_modules_v1(publisher)
        except RpcError as e:
            logger.debug(f"v1 module listing failed for {publisher}: {e}")
            return

        attempts.append("rpc_v1_list")
        known = entries.names_at(publisher)
        for name in listing.names:
            if not name or name in known:
                continue
            known.add(name)
            upgraded = entries.add(publisher, name, ModuleSource.MANUAL, True)
            recovered.append(
                RecoveredModule(
                    address=publisher,
                    old_name=None,
                    new_name=name,
                    strategy="rpc_v1_list" if upgraded else "rpc_v1_list_added",
                )
            )

    def _recover_with_name_probe(
        self,
        publisher: str,
        defining_module: str,
        entries: _Entries,
        attempts: list[str],
        recovered: list[RecoveredModule],
    ) -> None:
        """Probe conventional module names against the per-module detail fetch.

        The nameless entry takes the name the returned ABI declares, even
        when it differs from the probed one, provided fetching that declared
        name answers with the same module. Such names are tagged
        ``common_name_probe`` so consumers can discount them. A declared name
        already present at the address is skipped.
        """
        if self._artifacts is None:
            return

        attempts.append("common_name_probe")
        candidates = [defining_module, *COMMON_MODULE_NAMES]
        known = entries.names_at(publisher)

        for index in entries.unnamed_relevant(publisher):
            for candidate in candidates:
                if not candidate or candidate in known:
                    continue
                artifact = self._artifacts.fetch_module(publisher, candidate)
                declared = (artifact.abi or {}).get("name")
                if not declared or declared in known:
                    continue
                if declared != candidate:
                    logger.info(f"Lookup of {publisher}::{candidate} returned module {declared}")
                    echoed = (self._artifacts.fetch_module(publisher, declared).abi or {}).get("name")
                    if echoed != declared:
                        continue
                entries.rename(index, declared)
                known.add(declared)
                recovered.append(
                    RecoveredModule(
                        address=publisher,
                        old_name=None,
                        new_name=declared,
                        strategy="common_name_probe",
                    )
                )
                logger.info(f"Recovered module name {publisher}::{declared} by probing")
                break

    # ------------------------------------------------------------------
    # Fungible asset
    # ------------------------------------------------------------------

    def build_fa(
        self,
        owner_address: str | None,
        hook_modules: Iterable[HookModule] = (),
        ref_holders: dict[str, str] | None = None,
        creator_address: str | None = None,
        resource_types: Iterable[str] = (),
    ) -> ModuleInventory:
        """Build the inventory for an object-based fungible asset.

        Args:
            owner_address: Object owner address
            hook_modules: Registered dispatch hooks
            ref_holders: Holder address per ref kind (mint, burn, transfer)
            creator_address: Creator address if different from the owner
            resource_types: Resource type strings observed at the object

        Returns:
            ModuleInventory with coverage and owner-module count
        """
        hooks = list(hook_modules)
        ref_holders = {kind: normalize_address(addr) for kind, addr in (ref_holders or {}).items() if addr}
        owner = normalize_address(owner_address) if owner_address else None
        creator = normalize_address(creator_address) if creator_address else None

        entries = _Entries()
        reasons: list[str] = []
        owner_modules_count: int | None = None

        for hook in hooks:
            entries.add(
                hook.module_address,
                hook.module_name,
                ModuleSource.HOOKS,
                not is_system_address(hook.module_address),
            )

        relevant_addresses = {normalize_address(h.module_address) for h in hooks}
        relevant_addresses.update(a for a in (owner, creator) if a)
        relevant_addresses.update(ref_holders.values())
        relevant_addresses = {a for a in relevant_addresses if not is_system_address(a)}

        for address, module in extract_modules_from_resource_types(resource_types):
            if address in relevant_addresses:
                entries.add(address, module, ModuleSource.RESOURCE_TYPES, True)

        listed: dict[str, list[str | None]] = {}
        to_list = [a for a in (owner, creator) if a]
        for address in dict.fromkeys(to_list):
            try:
                listing = self._lister.list_modules(address)
            except RpcError as e:
                reasons.append(f"RPC fetch failed for {address}: {e}")
                logger.warning(f"Module listing failed for {address}: {e}")
                continue

            listed[address] = list(listing.names)
            is_owner = address == owner
            if is_owner:
                owner_modules_count = len(listing.names)
            relevant = (is_owner or address in relevant_addresses) and not is_system_address(address)
            source = ModuleSource.FA_OWNER_MODULES if is_owner else ModuleSource.RPC_V3_LIST
            for name in listing.names:
                entries.add(address, name, source, relevant)

        for kind, address in ref_holders.items():
            if address in (owner, creator) or address in listed:
                continue
            try:
                listing = self._lister.list_modules(address)
            except RpcError as e:
                reasons.append(f"RPC fetch failed for {kind}Ref holder {address}: {e}")
                logger.warning(f"Module listing failed for {kind}Ref holder {address}: {e}")
                continue

            listed[address] = list(listing.names)
            for name in listing.names:
                entries.add(address, name, ModuleSource.FA_REF_HOLDER, not is_system_address(address))

        unnamed = entries.unnamed_relevant()
        if unnamed:
            current = entries.to_list()
            sources = ", ".join(sorted({current[i].source.value for i in unnamed}))
            reasons.append(f"{len(unnamed)} relevant module(s) have unknown names (from {sources})")

        hook_names_by_address: dict[str, set[str]] = {}
        for hook in hooks:
            hook_names_by_address.setdefault(normalize_address(hook.module_address), set()).add(hook.module_name)
        for address, hook_names in hook_names_by_address.items():
            if address not in listed:
                continue
            listed_names = {n for n in listed[address] if n}
            missing = sorted(hook_names - listed_names)
            if missing and listed_names:
                reasons.append(f"Hook modules {', '.join(missing)} not found in RPC module list for {address}")

        status = CoverageStatus.COMPLETE if not reasons else CoverageStatus.PARTIAL

        logger.debug(f"FA inventory: {len(entries.to_list())} module(s), {status.value}")
        return ModuleInventory(
            modules=entries.to_list(),
            status=status,
            reasons=reasons,
            owner_modules_count=owner_modules_count,
        )
