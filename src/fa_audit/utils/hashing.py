"""Hashes used for module pins and surface fingerprints.

Pins use full sha256 digests; surface hashes are truncated since they
only need to detect change between two snapshots.
"""

import hashlib
import json
from typing import Any, Iterable

SURFACE_HASH_LENGTH = 16


def compute_hash(data: bytes, algorithm: str = "sha256") -> str:
    """Hex digest of raw bytecode or serialized ABI bytes."""
    return hashlib.new(algorithm, data).hexdigest()


def stable_json(data: Any) -> str:
    """Canonical JSON for ABIs and invariant values: sorted keys, no whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def short_hash(data: bytes | str, length: int = SURFACE_HASH_LENGTH) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return compute_hash(data)[:length]


def surface_hash_from_fn_names(names: Iterable[str]) -> str:
    """Fingerprint of a module's callable surface; ordering of names is irrelevant."""
    return short_hash("|".join(sorted(names)))


def overall_hash_from_map(hashes: dict[str, str]) -> str:
    """Fingerprint of every module's surface hash, keyed by ``addr::module``."""
    return short_hash("|".join(f"{module_id}:{hashes[module_id]}" for module_id in sorted(hashes)))
