"""Transaction behavior evidence models.

The JSON form of :class:`BehaviorEvidence` is a fixed wire contract:
``status`` and ``tx_count`` are always present, ``invoked_entries`` and
``phantom_entries`` are always arrays, and the diagnostic fields are
additive.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class BehaviorStatus(str, Enum):
    """Outcome of a behavior sampling pass."""

    SAMPLED = "sampled"
    OK_EMPTY = "ok_empty"
    UNAVAILABLE = "unavailable"
    NO_ACTIVITY = "no_activity"
    ERROR = "error"


class InvokedEntry(BaseModel):
    """An entry function observed in recent transactions."""

    model_config = {"frozen": True}

    module_address: str = Field(description="Lowercased module address")
    module_name: str = Field(description="Module name")
    function_name: str = Field(description="Function name")
    full_id: str = Field(description="addr::module::function")
    tx_hash: str | None = Field(default=None, description="A representative transaction hash")
    timestamp: str | None = Field(default=None, description="Timestamp of that transaction")

    @property
    def module_id(self) -> str:
        return f"{self.module_address}::{self.module_name}"


class PhantomEntry(BaseModel):
    """An invoked entry point missing from the pinned function set."""

    model_config = {"frozen": True}

    module: str = Field(description="Module identifier (addr::name)")
    function: str = Field(description="Function name")
    full_id: str = Field(description="addr::module::function")
    tx_hashes: list[str] = Field(
        default_factory=list,
        description="Every sampled transaction that invoked this entry",
    )
    reason: str = Field(description="Why the entry is considered phantom")


class BehaviorEvidence(BaseModel):
    """Result of sampling recent transactions for an asset."""

    model_config = {"frozen": True}

    status: BehaviorStatus = Field(description="Sampling outcome")
    tx_count: int = Field(default=0, ge=0, description="Transactions kept after merge")
    invoked_entries: list[InvokedEntry] = Field(default_factory=list)
    phantom_entries: list[PhantomEntry] = Field(default_factory=list)
    opaque_active: bool = Field(default=False, description="Opaque surface with live activity")
    opaque_reason: str | None = Field(default=None, description="Why opaque_active was set")
    source: str | None = Field(default=None, description="Source that supplied transactions")
    prefer_v2: bool = Field(default=False, description="Whether v2 was tried first")
    sampled_addresses: list[str] = Field(default_factory=list, description="Addresses sampled")
    sampled_address_count: int = Field(default=0, description="Number of addresses sampled")
    attempted_sources: list[str] = Field(default_factory=list, description="Sources in try order")
    source_details: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Outcome per source, then per address (httpStatus/normalizedCount or error)",
    )
    warnings: list[str] = Field(default_factory=list, description="Non-fatal problems")
    error: str | None = Field(default=None, description="Error for error/unavailable statuses")
    sampled_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Sampling timestamp",
    )

    @property
    def has_phantoms(self) -> bool:
        return len(self.phantom_entries) > 0
