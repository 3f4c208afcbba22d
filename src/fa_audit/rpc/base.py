"""Collaborator protocols and types for chain data access."""

from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from fa_audit.models.pins import ModuleArtifact


class RpcError(Exception):
    """Base exception for RPC operations."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.url = url
        self.status_code = status_code


class RpcNotFoundError(RpcError):
    """The requested account, module or resource does not exist."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Not found: {url}", code="NOT_FOUND", url=url, status_code=404)


class RpcTransientError(RpcError):
    """A failure worth retrying: timeouts and non-2xx other than 404."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message, code="TRANSIENT", url=url, status_code=status_code)


class ModuleListing(BaseModel):
    """Modules listed at an address by one endpoint generation."""

    model_config = {"frozen": True}

    address: str = Field(description="Listed address")
    names: list[str | None] = Field(
        default_factory=list,
        description="Module names in listing order; None where the listing omitted a name",
    )
    source: str = Field(description="rpc_v3 or rpc_v1")


class RawResponse(BaseModel):
    """An HTTP response whose body shape is not yet normalized."""

    model_config = {"frozen": True}

    status_code: int = Field(description="HTTP status code")
    body: Any = Field(default=None, description="Decoded JSON body, or None")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class IndexerFacts(BaseModel):
    """Independent asset facts reported by the indexer."""

    model_config = {"frozen": True}

    name: str | None = None
    symbol: str | None = None
    decimals: int | None = None
    total_supply: str | None = None
    owner_address: str | None = Field(default=None, description="Owner from the indexer address detail")
    creator_address: str | None = Field(default=None, description="Deployer; informational, never an owner")
    holders: int | None = None


@runtime_checkable
class ModuleLister(Protocol):
    """Protocol for listing the modules published at an address.

    Example:
        class StaticLister:
            def __init__(self, listings: dict[str, list[str]]):
                self._listings = listings

            def list_modules(self, address: str) -> ModuleListing:
                return ModuleListing(address=address, names=self._listings[address], source="rpc_v3")

            def list_modules_v1(self, address: str) -> ModuleListing:
                return self.list_modules(address)
    """

    def list_modules(self, address: str) -> ModuleListing:
        """List modules with the current endpoint generation.

        Raises:
            RpcError: If the listing failed
        """
        ...

    def list_modules_v1(self, address: str) -> ModuleListing:
        """List modules with the older endpoint generation.

        Raises:
            RpcError: If the listing failed
        """
        ...


@runtime_checkable
class ArtifactFetcher(Protocol):
    """Protocol for fetching a single module's ABI and bytecode."""

    def fetch_module(self, address: str, name: str) -> ModuleArtifact:
        """Fetch one module. Never raises; failures are reported on the artifact."""
        ...


@runtime_checkable
class ResourceFetcher(Protocol):
    """Protocol for reading the resources stored under an address."""

    def list_resources(self, address: str) -> list[dict[str, Any]]:
        """List resources as ``{"type": ..., "data": ...}`` records.

        Raises:
            RpcError: If the resources could not be read
        """
        ...


@runtime_checkable
class TransactionLister(Protocol):
    """Protocol for the account-transactions endpoints."""

    def get_account_transactions(
        self, address: str, version: str, limit: int | None = None, timeout: float | None = None
    ) -> RawResponse:
        """Fetch an address's transactions from one endpoint generation.

        Args:
            address: Account address
            version: Endpoint generation, "v3" or "v2"
            limit: Result limit, or None to omit the parameter
            timeout: Per-request timeout in seconds

        Raises:
            RpcError: On network failure or timeout
        """
        ...


@runtime_checkable
class TransactionIndexer(Protocol):
    """Protocol for the third-party indexer used as a last resort."""

    def fetch_transactions(self, address: str, limit: int) -> list[dict[str, Any]] | None:
        """Fetch recent transactions, or None when the indexer has nothing."""
        ...


@runtime_checkable
class ParityIndexer(Protocol):
    """Protocol for independent asset facts used only for corroboration."""

    def fetch_fa_details(self, fa_address: str) -> IndexerFacts | None:
        """Facts about an FA object, or None if unavailable."""
        ...

    def fetch_coin_details(self, coin_type: str) -> IndexerFacts | None:
        """Facts about a coin type, or None if unavailable."""
        ...
