"""Content-addressed module pinning."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from fa_audit.models.common import normalize_module_id
from fa_audit.models.pins import HashBasis, ModuleArtifact, ModulePin, PinSet
from fa_audit.rpc.base import RpcError
from fa_audit.utils.hashing import compute_hash, stable_json
from fa_audit.utils.logging import get_logger

if TYPE_CHECKING:
    from fa_audit.rpc.base import ArtifactFetcher

logger = get_logger("core.pinning")


def compute_code_hash(artifact: ModuleArtifact) -> tuple[str | None, HashBasis]:
    """Hash a module artifact, preferring bytecode over ABI.

    Args:
        artifact: Fetched module artifact

    Returns:
        (hex digest or None, basis used)
    """
    if artifact.bytecode:
        text = artifact.bytecode.strip().lower()
        if text.startswith("0x"):
            text = text[2:]
        try:
            data = bytes.fromhex(text)
        except ValueError:
            data = text.encode("utf-8")
        return compute_hash(data), HashBasis.BYTECODE

    if artifact.abi:
        return compute_hash(stable_json(artifact.abi).encode("utf-8")), HashBasis.ABI

    return None, HashBasis.NONE


def aggregate_pin_hash(pins: Iterable[ModulePin]) -> str:
    """Order-independent aggregate over (module_id, code_hash, basis)."""
    ordered = sorted(pins, key=lambda p: p.module_id)
    payload = "|".join(f"{p.module_id}:{p.code_hash or 'none'}:{p.hash_basis.value}" for p in ordered)
    return compute_hash(payload.encode("utf-8"))


class ArtifactCache:
    """Per-scan memo in front of an artifact fetcher.

    Surface analysis and pinning read the same modules; the cache keeps a
    scan from fetching each one twice. Create one per scan.
    """

    def __init__(self, fetcher: "ArtifactFetcher") -> None:
        self._fetcher = fetcher
        self._artifacts: dict[tuple[str, str], ModuleArtifact] = {}

    def fetch_module(self, address: str, name: str) -> ModuleArtifact:
        key = (address.lower(), name)
        if key not in self._artifacts:
            self._artifacts[key] = self._fetcher.fetch_module(address, name)
        return self._artifacts[key]


def pin_module(fetcher: "ArtifactFetcher", address: str, name: str, role: str | None = None) -> ModulePin:
    """Pin one module; a failed fetch yields a pin with no hash."""
    module_id = normalize_module_id(f"{address}::{name}")
    try:
        artifact = fetcher.fetch_module(address, name)
    except RpcError as e:
        logger.warning(f"Artifact fetch failed for {module_id}: {e}")
        return ModulePin(
            module_address=address,
            module_name=name,
            module_id=module_id,
            role=role,
        )

    code_hash, basis = compute_code_hash(artifact)
    if code_hash is None:
        logger.debug(f"No hashable artifact for {module_id}")
    return ModulePin(
        module_address=address,
        module_name=name,
        module_id=module_id,
        code_hash=code_hash,
        hash_basis=basis,
        fetched_from=artifact.fetched_from,
        role=role,
    )


def pin_modules(
    fetcher: "ArtifactFetcher",
    modules: Iterable[tuple[str, str, str | None]],
) -> PinSet:
    """Pin a set of modules.

    Modules are fetched one at a time in the given order; duplicates (by
    normalized module id) are pinned once, keeping the first role.

    Args:
        fetcher: Module artifact collaborator
        modules: (address, name, role) triples

    Returns:
        PinSet with pins sorted by module_id and the aggregate hash
    """
    pins: dict[str, ModulePin] = {}
    for address, name, role in modules:
        module_id = normalize_module_id(f"{address}::{name}")
        if module_id in pins:
            continue
        pins[module_id] = pin_module(fetcher, address, name, role)

    ordered = sorted(pins.values(), key=lambda p: p.module_id)
    return PinSet(pins=ordered, aggregate_hash=aggregate_pin_hash(ordered))
