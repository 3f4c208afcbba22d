"""Cross-source evidence and parity models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EvidenceSource(str, Enum):
    """Independent sources a fact can come from."""

    RPC_V3 = "rpc_v3"
    RPC_V1 = "rpc_v1"
    RPC_V3_2 = "rpc_v3_2"
    SUPRASCAN = "suprascan"


class ParityStatus(str, Enum):
    """Agreement between two sources on one fact."""

    MATCH = "match"
    MISMATCH = "mismatch"
    UNKNOWN = "unknown"


class ParityItem(BaseModel):
    """One parity comparison."""

    model_config = {"frozen": True}

    id: str = Field(description="Parity check identifier, e.g. SUPPLY_PARITY")
    status: ParityStatus = Field(description="match, mismatch or unknown")
    detail: str = Field(description="Explanation")
    evidence: dict[str, Any] = Field(default_factory=dict, description="Compared values")


class EvidenceBundle(BaseModel):
    """Sources consulted and parity between them."""

    model_config = {"frozen": True}

    sources_used: list[EvidenceSource] = Field(default_factory=list)
    parity: list[ParityItem] = Field(default_factory=list)

    def get(self, parity_id: str) -> ParityItem | None:
        """Look up a parity item by identifier."""
        for item in self.parity:
            if item.id == parity_id:
                return item
        return None
