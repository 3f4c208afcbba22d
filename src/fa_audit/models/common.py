"""Common model types shared across modules."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AuditError(BaseModel):
    """Represents an error that occurred during an audit operation."""

    model_config = {"frozen": True}

    code: str = Field(description="Error code for programmatic handling")
    message: str = Field(description="Human-readable error message")
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional error context",
    )

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class AssetKind(str, Enum):
    """Kind of fungible asset under analysis."""

    COIN = "coin"
    FA = "fa"


class CoverageStatus(str, Enum):
    """Coverage of an analysis pass.

    Ordered complete > partial; a pass is complete only if every
    check along the way was complete.
    """

    COMPLETE = "complete"
    PARTIAL = "partial"

    @classmethod
    def fold(cls, statuses: "list[CoverageStatus]") -> "CoverageStatus":
        """Combine several coverage statuses into one."""
        if all(s == cls.COMPLETE for s in statuses):
            return cls.COMPLETE
        return cls.PARTIAL


# Reserved framework addresses never considered part of an asset's surface
SYSTEM_ADDRESSES = frozenset({"0x1", "0x3"})


def normalize_address(address: str) -> str:
    """Lowercase an address and ensure it carries a 0x prefix."""
    address = address.strip().lower()
    if not address.startswith("0x"):
        address = f"0x{address}"
    return address


def is_system_address(address: str) -> bool:
    """Check whether an address is a reserved framework address."""
    return normalize_address(address) in SYSTEM_ADDRESSES


def normalize_module_id(module_id: str) -> str:
    """Lowercase the address part of an ``addr::module`` identifier."""
    if "::" not in module_id:
        return module_id
    address, rest = module_id.split("::", 1)
    return f"{address.lower()}::{rest}"
