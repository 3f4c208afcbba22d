"""Chain data collaborators."""

from fa_audit.rpc.base import (
    ArtifactFetcher,
    IndexerFacts,
    ModuleListing,
    ModuleLister,
    ParityIndexer,
    RawResponse,
    ResourceFetcher,
    RpcError,
    RpcNotFoundError,
    RpcTransientError,
    TransactionIndexer,
    TransactionLister,
)
from fa_audit.rpc.supra import SupraRpcClient
from fa_audit.rpc.indexer import SupraScanClient

__all__ = [
    "ArtifactFetcher",
    "IndexerFacts",
    "ModuleListing",
    "ModuleLister",
    "ParityIndexer",
    "RawResponse",
    "ResourceFetcher",
    "RpcError",
    "RpcNotFoundError",
    "RpcTransientError",
    "TransactionIndexer",
    "TransactionLister",
    "SupraRpcClient",
    "SupraScanClient",
]
