"""Module artifact and pin data models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class HashBasis(str, Enum):
    """What a module's code hash was computed over."""

    BYTECODE = "bytecode"
    ABI = "abi"
    NONE = "none"


class ModuleArtifact(BaseModel):
    """Raw ABI and bytecode fetched for one module."""

    model_config = {"frozen": True}

    module_address: str = Field(description="Module address")
    module_name: str = Field(description="Module name")
    abi: dict[str, Any] | None = Field(default=None, description="Module ABI if available")
    bytecode: str | None = Field(default=None, description="Hex bytecode if available")
    fetched_from: str = Field(default="unknown", description="rpc_v3, rpc_v1 or unknown")
    error: str | None = Field(default=None, description="Fetch error, if every source failed")


class ModulePin(BaseModel):
    """Content hash of a module at snapshot time."""

    model_config = {"frozen": True}

    module_address: str = Field(description="Module address")
    module_name: str = Field(description="Module name")
    module_id: str = Field(description="Normalized addr::name identifier")
    code_hash: str | None = Field(default=None, description="sha256 hex digest or None")
    hash_basis: HashBasis = Field(default=HashBasis.NONE, description="Hash input kind")
    fetched_from: str = Field(default="unknown", description="Source of the artifact")
    role: str | None = Field(default=None, description="Why the module was pinned")


class PinSet(BaseModel):
    """Pins for a module set plus their order-independent aggregate."""

    model_config = {"frozen": True}

    pins: list[ModulePin] = Field(default_factory=list, description="Pins sorted by module_id")
    aggregate_hash: str = Field(description="sha256 over sorted (id, hash, basis) triples")

    def by_id(self) -> dict[str, ModulePin]:
        """Index pins by module identifier."""
        return {pin.module_id: pin for pin in self.pins}
