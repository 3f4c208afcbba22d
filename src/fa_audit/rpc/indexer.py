"""SupraScan GraphQL indexer client."""

from __future__ import annotations

from typing import Any

import httpx

from fa_audit.rpc.base import IndexerFacts
from fa_audit.utils.config import IndexerConfig
from fa_audit.utils.logging import get_logger

logger = get_logger("rpc.indexer")

_TRANSACTIONS_QUERY = """
query GetAllTransactions($blockchainEnvironment: BlockchainEnvironment, $page: Int, $rowsPerPage: Int, $address: String) {
  getAllTransactions(blockchainEnvironment: $blockchainEnvironment, page: $page, rowsPerPage: $rowsPerPage, address: $address) {
    transactions {
      transactionBasicInfo {
        senderAddress
        receiverAddress
        confirmationTime
        transactionHash
        transactionStatus
        functionName
        type
      }
      transactionAdvancedInfo {
        blockHeight
      }
    }
    isError
    errorType
  }
}
"""

_FA_DETAILS_QUERY = """
query GetFaDetails($faAddress: String, $blockchainEnvironment: BlockchainEnvironment) {
  getFaDetails(faAddress: $faAddress, blockchainEnvironment: $blockchainEnvironment) {
    faName
    faSymbol
    decimals
    totalSupply
    creatorAddress
    holders
  }
}
"""

_COIN_DETAILS_QUERY = """
query GetCoinDetails($coinAddress: String, $blockchainEnvironment: BlockchainEnvironment) {
  getCoinDetails(coinAddress: $coinAddress, blockchainEnvironment: $blockchainEnvironment) {
    name
    symbol
    decimals
    totalSupply
    creatorAddress
    holders
  }
}
"""

_ADDRESS_DETAIL_QUERY = """
query AddressDetail($address: String, $blockchainEnvironment: BlockchainEnvironment, $isAddressName: Boolean) {
  addressDetail(address: $address, blockchainEnvironment: $blockchainEnvironment, isAddressName: $isAddressName) {
    isError
    errorType
    addressDetailSupra {
      ownerAddress
    }
  }
}
"""

_VALID_ENVIRONMENTS = ("mainnet", "testnet")


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class SupraScanClient:
    """Client for the SupraScan GraphQL API.

    The indexer is a corroborating source only: every method returns None
    instead of raising when the indexer is unreachable or has no data.

    Example:
        indexer = SupraScanClient()
        facts = indexer.fetch_fa_details("0xabc...")
    """

    def __init__(
        self,
        graphql_url: str = "https://suprascan.io/api/graphql",
        environment: str = "mainnet",
        timeout: float = 8.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the indexer client.

        Args:
            graphql_url: GraphQL endpoint URL
            environment: mainnet or testnet
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self._graphql_url = graphql_url
        environment = environment.lower()
        self._environment = environment if environment in _VALID_ENVIRONMENTS else "mainnet"
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: IndexerConfig, transport: httpx.BaseTransport | None = None) -> "SupraScanClient":
        """Create a client from indexer configuration."""
        return cls(
            config.graphql_url,
            environment=config.environment,
            timeout=config.timeout,
            transport=transport,
        )

    def _get_client(self) -> httpx.Client:
        """Create an HTTP client."""
        return httpx.Client(
            timeout=self._timeout,
            transport=self._transport or httpx.HTTPTransport(retries=1),
            follow_redirects=True,
        )

    def _query(self, query: str, variables: dict[str, Any], field: str) -> Any:
        """Run a query and return ``data[field]``, or None on any failure."""
        payload = {
            "query": query,
            "variables": {**variables, "blockchainEnvironment": self._environment},
        }
        try:
            with self._get_client() as client:
                response = client.post(self._graphql_url, json=payload)
        except httpx.HTTPError as e:
            logger.debug(f"SupraScan request failed: {e}")
            return None

        if response.status_code != 200:
            logger.debug(f"SupraScan returned HTTP {response.status_code}")
            return None

        try:
            body = response.json()
        except ValueError:
            logger.debug("SupraScan returned invalid JSON")
            return None

        if not isinstance(body, dict):
            return None
        if body.get("errors"):
            messages = "; ".join(str(e.get("message", e)) for e in body["errors"] if isinstance(e, dict))
            logger.debug(f"SupraScan GraphQL errors: {messages}")
            return None

        data = body.get("data")
        if not isinstance(data, dict):
            return None
        return data.get(field)

    def fetch_transactions(self, address: str, limit: int) -> list[dict[str, Any]] | None:
        """Fetch recent transactions involving an address.

        Transactions are flattened to the basic-info record with
        ``blockHeight`` merged in.
        """
        result = self._query(
            _TRANSACTIONS_QUERY,
            {"address": address.lower(), "page": 1, "rowsPerPage": limit},
            "getAllTransactions",
        )
        if not isinstance(result, dict) or result.get("isError"):
            return None

        transactions: list[dict[str, Any]] = []
        for tx in result.get("transactions") or []:
            if not isinstance(tx, dict):
                continue
            basic = dict(tx.get("transactionBasicInfo") or {})
            advanced = tx.get("transactionAdvancedInfo") or {}
            if advanced.get("blockHeight") is not None:
                basic["block_height"] = advanced["blockHeight"]
            transactions.append(basic)

        logger.debug(f"SupraScan returned {len(transactions)} transaction(s) for {address}")
        return transactions or None

    def fetch_fa_owner(self, fa_address: str) -> str | None:
        """Owner of the FA object as the indexer's address detail reports it."""
        result = self._query(
            _ADDRESS_DETAIL_QUERY,
            {"address": fa_address.lower(), "isAddressName": False},
            "addressDetail",
        )
        if not isinstance(result, dict) or result.get("isError"):
            return None
        detail = result.get("addressDetailSupra") or {}
        return detail.get("ownerAddress") or None

    def fetch_fa_details(self, fa_address: str) -> IndexerFacts | None:
        """Fetch FA facts for parity checks.

        ``getFaDetails`` only knows the creator, so the owner comes from a
        separate address-detail lookup and stays None when that has nothing.
        """
        result = self._query(_FA_DETAILS_QUERY, {"faAddress": fa_address.lower()}, "getFaDetails")
        if not isinstance(result, dict):
            return None
        return IndexerFacts(
            name=result.get("faName") or None,
            symbol=result.get("faSymbol") or None,
            decimals=_optional_int(result.get("decimals")),
            total_supply=str(result["totalSupply"]) if result.get("totalSupply") is not None else None,
            owner_address=self.fetch_fa_owner(fa_address),
            creator_address=result.get("creatorAddress") or None,
            holders=_optional_int(result.get("holders")),
        )

    def fetch_coin_details(self, coin_type: str) -> IndexerFacts | None:
        """Fetch coin facts for parity checks."""
        result = self._query(_COIN_DETAILS_QUERY, {"coinAddress": coin_type.strip()}, "getCoinDetails")
        if not isinstance(result, dict):
            return None
        return IndexerFacts(
            name=result.get("name") or None,
            symbol=result.get("symbol") or None,
            decimals=_optional_int(result.get("decimals")),
            total_supply=str(result["totalSupply"]) if result.get("totalSupply") is not None else None,
            creator_address=result.get("creatorAddress") or None,
            holders=_optional_int(result.get("holders")),
        )
