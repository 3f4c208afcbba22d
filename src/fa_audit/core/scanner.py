"""AssetScanner: one scan pass from chain reads to an immutable Snapshot."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from fa_audit.core.behavior import BehaviorSampler, build_pinned_entry_functions_map
from fa_audit.core.evidence import EvidenceCollector
from fa_audit.core.inventory import InventoryBuilder
from fa_audit.core.pinning import ArtifactCache, pin_modules
from fa_audit.core.resources import parse_coin_resources, parse_fa_resources, split_type
from fa_audit.core.snapshot import SnapshotAssembler
from fa_audit.core.surface import CoinSurfaceAnalyzer, FaSurfaceAnalyzer
from fa_audit.models.behavior import BehaviorEvidence
from fa_audit.models.common import AuditError, is_system_address, normalize_address
from fa_audit.models.snapshot import FaIdentity, Snapshot, SnapshotResult
from fa_audit.rpc.base import RpcError
from fa_audit.utils.errors import ValidationError, validate_address, validate_coin_type
from fa_audit.utils.logging import get_logger, get_logger_with_context

if TYPE_CHECKING:
    from fa_audit.rpc.base import ParityIndexer

logger = get_logger("core.scanner")


class AssetScanner:
    """Runs the scan pipeline for coins and fungible assets.

    Resources are parsed first, then the module inventory is built, the
    surface is analyzed, modules are pinned and cross-source evidence is
    collected, and everything is assembled into a Snapshot. Module
    artifacts are fetched at most once per scan.

    The ``client`` must provide module listing, module detail, resource
    listing and (for behavior sampling) account transactions; the
    bundled SupraRpcClient does all four.

    Example:
        scanner = AssetScanner(SupraRpcClient(url), indexer=SupraScanClient(), rpc_url=url)
        result = scanner.scan_fa("0xabc...")
        if result.success:
            print(result.snapshot.coverage.coverage.value)
    """

    def __init__(
        self,
        client,
        indexer: "ParityIndexer | None" = None,
        rpc_url: str = "unknown",
        scanner_version: str | None = None,
    ) -> None:
        """Initialize the scanner.

        Args:
            client: Chain data collaborator
            indexer: Optional indexer used only for corroboration
            rpc_url: RPC endpoint recorded in snapshot metadata
            scanner_version: Version recorded in snapshot metadata
        """
        if scanner_version is None:
            from fa_audit import __version__

            scanner_version = __version__
        self._client = client
        self._indexer = indexer
        self._assembler = SnapshotAssembler(rpc_url, scanner_version)

    def scan_coin(self, coin_type: str) -> SnapshotResult:
        """Scan a legacy coin.

        Args:
            coin_type: Full coin type, ``0xADDR::module::Struct``

        Returns:
            SnapshotResult with a possibly partial snapshot, or errors
            for invalid input
        """
        try:
            validate_coin_type(coin_type)
        except ValidationError as e:
            return SnapshotResult.fail([e.to_audit_error()])

        publisher, module_name, _ = split_type(coin_type)
        publisher = normalize_address(publisher)

        try:
            try:
                resources = self._client.list_resources(publisher)
            except RpcError as e:
                logger.warning(f"Resources unavailable for {publisher}: {e}")
                return SnapshotResult.ok(self._assembler.assemble_coin(coin_type))

            facts = parse_coin_resources(coin_type, resources)
            artifacts = ArtifactCache(self._client)

            inventory = InventoryBuilder(self._client, artifacts).build_coin(
                publisher, module_name, facts.resource_types
            )
            analysis = CoinSurfaceAnalyzer(artifacts).analyze(facts, inventory)

            to_pin = [
                (
                    entry.module_address,
                    entry.module_name,
                    "coin_defining" if entry.module_name == module_name else "publisher_module",
                )
                for entry in inventory.relevant_modules
                if entry.module_name
            ]
            pins = pin_modules(artifacts, to_pin)
            evidence = EvidenceCollector(self._client, self._indexer).collect_coin(facts, inventory)

            snapshot = self._assembler.assemble_coin(coin_type, facts, analysis, pins, evidence)
            get_logger_with_context("core.scanner", asset=snapshot.identity_key).info(
                f"Scanned coin: {snapshot.coverage.coverage.value} coverage, {len(snapshot.findings)} finding(s)"
            )
            return SnapshotResult.ok(snapshot)

        except Exception as e:
            return SnapshotResult.fail(
                [
                    AuditError(
                        code="SCAN_ERROR",
                        message=f"Failed to scan coin: {e}",
                        details={"coin_type": coin_type},
                    )
                ]
            )

    def scan_fa(self, fa_address: str) -> SnapshotResult:
        """Scan an object-based fungible asset.

        Args:
            fa_address: FA object address

        Returns:
            SnapshotResult with a possibly partial snapshot, or errors
            for invalid input
        """
        try:
            validate_address(fa_address)
        except ValidationError as e:
            return SnapshotResult.fail([e.to_audit_error()])

        address = normalize_address(fa_address)

        try:
            try:
                resources = self._client.list_resources(address)
            except RpcError as e:
                logger.warning(f"Resources unavailable for {address}: {e}")
                return SnapshotResult.ok(self._assembler.assemble_fa(address))

            facts = parse_fa_resources(address, resources)
            artifacts = ArtifactCache(self._client)

            inventory = InventoryBuilder(self._client, artifacts).build_fa(
                facts.owner,
                hook_modules=facts.hook_modules,
                ref_holders=facts.ref_holders,
                creator_address=facts.creator,
                resource_types=facts.resource_types,
            )
            analysis = FaSurfaceAnalyzer(artifacts).analyze(facts, inventory)

            pins = pin_modules(
                artifacts,
                ((hook.module_address, hook.module_name, "hook") for hook in facts.hook_modules),
            )
            evidence = EvidenceCollector(self._client, self._indexer).collect_fa(facts, inventory)

            snapshot = self._assembler.assemble_fa(address, facts, analysis, pins, evidence)
            get_logger_with_context("core.scanner", asset=snapshot.identity_key).info(
                f"Scanned FA: {snapshot.coverage.coverage.value} coverage, {len(snapshot.findings)} finding(s)"
            )
            return SnapshotResult.ok(snapshot)

        except Exception as e:
            return SnapshotResult.fail(
                [
                    AuditError(
                        code="SCAN_ERROR",
                        message=f"Failed to scan fungible asset: {e}",
                        details={"fa_address": fa_address},
                    )
                ]
            )


def sample_snapshot_behavior(
    sampler: BehaviorSampler,
    snapshot: Snapshot,
    probe_addresses: Iterable[str] = (),
    limit: int | None = None,
) -> BehaviorEvidence:
    """Sample transaction behavior for the asset a snapshot describes.

    The pinned allow-list comes from the snapshot's module surfaces and
    hook functions; candidate addresses are the owner, then the relevant
    module addresses, then the FA object itself.

    Args:
        sampler: Configured behavior sampler
        snapshot: Snapshot of the asset
        probe_addresses: Extra full-length addresses to sample
        limit: Override the sampler's sample size

    Returns:
        BehaviorEvidence for the asset
    """
    surface = snapshot.control_surface
    is_fa = isinstance(snapshot.identity, FaIdentity)
    owner = snapshot.owner if is_fa else snapshot.identity.publisher_address

    module_addresses = [
        module_id.split("::", 1)[0]
        for module_id in surface.relevant_modules
        if not is_system_address(module_id.split("::", 1)[0])
    ]
    module_addresses.extend(h.module_address for h in surface.hook_modules if not is_system_address(h.module_address))

    pinned = build_pinned_entry_functions_map(surface.modules.values(), surface.hook_modules)
    abi_opaque = bool(snapshot.privileges and snapshot.privileges.has_opaque_control)

    return sampler.sample(
        owner_address=owner,
        module_addresses=module_addresses,
        asset_address=snapshot.identity.fa_address if is_fa else None,
        probe_addresses=probe_addresses,
        pinned_entry_functions=pinned,
        abi_opaque=abi_opaque,
        limit=limit,
    )
