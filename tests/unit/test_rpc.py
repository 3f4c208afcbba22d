"""Unit tests for the RPC and indexer clients."""

import json

import httpx
import pytest

from fa_audit.rpc.base import RpcError, RpcTransientError
from fa_audit.rpc.indexer import SupraScanClient
from fa_audit.rpc.supra import SupraRpcClient
from fa_audit.utils.config import IndexerConfig, RpcConfig

BASE_URL = "https://rpc.test"
GRAPHQL_URL = "https://indexer.test/graphql"


class Router:
    """MockTransport handler answering from a path table."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        answer = self.routes.get(request.url.path, (404, None))
        if callable(answer):
            answer = answer(request)
        status, body = answer
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def paths(self):
        return [r.url.path for r in self.requests]


def rpc_client(routes, **kwargs):
    router = Router(routes)
    kwargs.setdefault("retry_delay", 0)
    client = SupraRpcClient(BASE_URL + "/", transport=httpx.MockTransport(router), **kwargs)
    return client, router


class TestModuleListing:
    """Tests for module list parsing."""

    @pytest.mark.parametrize(
        "body",
        [
            ["0xabc::my_coin"],
            {"modules": [{"name": "my_coin"}]},
            {"data": {"modules": [["0xabc::my_coin", {"address": "0xabc", "name": "my_coin"}]]}},
            {"Modules": {"modules": [{"abi": {"name": "my_coin"}}]}},
            {"Modules": {"Modules": {"modules": [{"module_id": "0xabc::my_coin"}]}}},
        ],
    )
    def test_envelopes(self, body):
        """Test every known list envelope yields the module name."""
        client, _ = rpc_client({"/rpc/v3/accounts/0xabc/modules": (200, body)})

        listing = client.list_modules("0xabc")

        assert listing.names == ["my_coin"]
        assert listing.source == "rpc_v3"

    def test_nameless_items_kept(self):
        """Test items without a name are kept as None."""
        client, _ = rpc_client({"/rpc/v1/accounts/0xabc/modules": (200, [{"bytecode": "0x01"}])})

        listing = client.list_modules_v1("0xabc")

        assert listing.names == [None]
        assert listing.source == "rpc_v1"

    def test_not_found_is_empty(self):
        """Test a 404 listing is an empty list, not an error."""
        client, router = rpc_client({})

        assert client.list_modules("0xabc").names == []
        assert router.paths() == ["/rpc/v3/accounts/0xabc/modules"]

    def test_error_body(self):
        """Test an error object in the body raises."""
        client, _ = rpc_client({"/rpc/v3/accounts/0xabc/modules": (200, {"error": "account missing"})})

        with pytest.raises(RpcError) as exc_info:
            client.list_modules("0xabc")

        assert exc_info.value.code == "RPC_ERROR"


class TestRequests:
    """Tests for retries and response handling."""

    def test_base_url_normalized(self):
        """Test a trailing slash on the base URL is dropped."""
        client, _ = rpc_client({})
        assert client.base_url == BASE_URL

    def test_retry_transient(self):
        """Test a 5xx is retried."""
        answers = iter([(503, {"error": "busy"}), (200, ["0xabc::my_coin"])])
        client, router = rpc_client(
            {"/rpc/v3/accounts/0xabc/modules": lambda request: next(answers)},
            max_retries=2,
        )

        assert client.list_modules("0xabc").names == ["my_coin"]
        assert len(router.requests) == 2

    def test_retries_exhausted(self):
        """Test persistent 5xx raises a transient error after every attempt."""
        client, router = rpc_client({"/rpc/v3/accounts/0xabc/modules": (500, {})}, max_retries=3)

        with pytest.raises(RpcTransientError) as exc_info:
            client.list_modules("0xabc")

        assert exc_info.value.status_code == 500
        assert len(router.requests) == 3

    def test_not_found_not_retried(self):
        """Test a 404 comes back as a response on the first attempt."""
        client, router = rpc_client({}, max_retries=3)

        response = client.get("/rpc/v3/accounts/0xabc/resources")

        assert response.status_code == 404
        assert response.body is None
        assert len(router.requests) == 1

    def test_invalid_json(self):
        """Test an unparseable body is a parse error."""
        client, _ = rpc_client({"/rpc/v3/accounts/0xabc/modules": (200, "<html>")})

        with pytest.raises(RpcError) as exc_info:
            client.list_modules("0xabc")

        assert exc_info.value.code == "PARSE_ERROR"

    def test_transaction_limit(self):
        """Test the transaction limit is sent as a query parameter."""
        client, router = rpc_client({"/rpc/v3/accounts/0xabc/transactions": (200, [])})

        response = client.get_account_transactions("0xabc", "v3", limit=5)

        assert response.ok
        assert router.requests[0].url.params["limit"] == "5"

    def test_from_config(self):
        """Test the client picks up RPC configuration."""
        client = SupraRpcClient.from_config(RpcConfig(url="https://config.test/"))
        assert client.base_url == "https://config.test"


class TestFetchModule:
    """Tests for module artifact fetching."""

    def test_v1_fallback(self):
        """Test a module missing from v3 is fetched from v1."""
        module = {"module": {"bytecode": "0x0102", "abi": {"name": "my_coin", "exposed_functions": []}}}
        client, router = rpc_client({"/rpc/v1/accounts/0xabc/modules/my_coin": (200, module)})

        artifact = client.fetch_module("0xabc", "my_coin")

        assert artifact.fetched_from == "rpc_v1"
        assert artifact.bytecode == "0x0102"
        assert artifact.abi == {"name": "my_coin", "exposed_functions": []}
        assert artifact.error is None
        assert router.paths() == [
            "/rpc/v3/accounts/0xabc/modules/my_coin",
            "/rpc/v1/accounts/0xabc/modules/my_coin",
        ]

    def test_flat_abi(self):
        """Test function lists at the top level become an ABI."""
        body = {"data": {"exposed_functions": [{"name": "mint"}], "entry_functions": ["mint"]}}
        client, _ = rpc_client({"/rpc/v3/accounts/0xabc/modules/my_coin": (200, body)})

        artifact = client.fetch_module("0xabc", "my_coin")

        assert artifact.fetched_from == "rpc_v3"
        assert artifact.bytecode is None
        assert artifact.abi == {"exposed_functions": [{"name": "mint"}], "entry_functions": ["mint"]}

    def test_unavailable(self):
        """Test a module missing everywhere yields an error artifact."""
        client, _ = rpc_client({"/rpc/v3/accounts/0xabc/modules/my_coin": (200, {"module": {}})})

        artifact = client.fetch_module("0xabc", "my_coin")

        assert artifact.fetched_from == "unknown"
        assert artifact.abi is None
        assert artifact.error == "rpc_v3: no ABI or bytecode in response; rpc_v1: not found"


class TestListResources:
    """Tests for resource listing."""

    def test_resources_envelope(self):
        """Test non-object entries are dropped."""
        body = {"resources": [{"type": "0x1::coin::CoinInfo"}, "junk"]}
        client, _ = rpc_client({"/rpc/v3/accounts/0xabc/resources": (200, body)})

        assert client.list_resources("0xabc") == [{"type": "0x1::coin::CoinInfo"}]

    def test_not_found_is_empty(self):
        """Test a 404 means no resources."""
        client, _ = rpc_client({})
        assert client.list_resources("0xabc") == []

    def test_v1_fallback(self):
        """Test a failing v3 endpoint falls back to v1."""
        client, _ = rpc_client(
            {
                "/rpc/v3/accounts/0xabc/resources": (500, {}),
                "/rpc/v1/accounts/0xabc/resources": (200, [{"type": "0x1::coin::CoinInfo"}]),
            },
            max_retries=1,
        )

        assert client.list_resources("0xabc") == [{"type": "0x1::coin::CoinInfo"}]

    def test_both_fail(self):
        """Test the last error is raised when both generations fail."""
        client, _ = rpc_client(
            {
                "/rpc/v3/accounts/0xabc/resources": (500, {}),
                "/rpc/v1/accounts/0xabc/resources": (502, {}),
            },
            max_retries=1,
        )

        with pytest.raises(RpcTransientError) as exc_info:
            client.list_resources("0xabc")

        assert exc_info.value.status_code == 502


def indexer_client(handler, **kwargs):
    return SupraScanClient(GRAPHQL_URL, transport=httpx.MockTransport(handler), **kwargs)


def graphql(data, requests=None):
    def handler(request):
        if requests is not None:
            requests.append(json.loads(request.content))
        return httpx.Response(200, json={"data": data})

    return handler


class TestSupraScanClient:
    """Tests for SupraScanClient."""

    def test_fa_details(self):
        """Test FA details map onto IndexerFacts."""
        requests = []
        details = {
            "faName": "Token",
            "faSymbol": "TKN",
            "decimals": "8",
            "totalSupply": 5000,
            "creatorAddress": "0xB0B",
            "holders": "n/a",
        }
        client = indexer_client(graphql({"getFaDetails": details}, requests), environment="TESTNET")

        facts = client.fetch_fa_details("0xABC")

        assert facts.symbol == "TKN"
        assert facts.decimals == 8
        assert facts.total_supply == "5000"
        assert facts.creator_address == "0xB0B"
        assert facts.holders is None
        assert requests[0]["variables"] == {"faAddress": "0xabc", "blockchainEnvironment": "testnet"}
        assert facts.owner_address is None

    def test_fa_owner_from_address_detail(self):
        """Test the FA owner comes from the address detail, not the creator."""
        requests = []

        def handler(request):
            body = json.loads(request.content)
            requests.append(body)
            if "addressDetail" in body["query"]:
                detail = {"isError": False, "addressDetailSupra": {"ownerAddress": "0xOWNER"}}
                return httpx.Response(200, json={"data": {"addressDetail": detail}})
            return httpx.Response(200, json={"data": {"getFaDetails": {"creatorAddress": "0xB0B"}}})

        facts = indexer_client(handler).fetch_fa_details("0xABC")

        assert facts.owner_address == "0xOWNER"
        assert facts.creator_address == "0xB0B"
        assert requests[1]["variables"] == {
            "address": "0xabc",
            "isAddressName": False,
            "blockchainEnvironment": "mainnet",
        }

    def test_fa_owner_error_flag(self):
        """Test an address detail flagged as an error yields no owner."""
        client = indexer_client(graphql({"addressDetail": {"isError": True, "addressDetailSupra": None}}))
        assert client.fetch_fa_owner("0xabc") is None

    def test_coin_details(self):
        """Test coin details keep an absent supply as None."""
        client = indexer_client(graphql({"getCoinDetails": {"symbol": "MYC", "decimals": 6}}))

        facts = client.fetch_coin_details("0xabc::my_coin::MyCoin")

        assert facts.symbol == "MYC"
        assert facts.decimals == 6
        assert facts.total_supply is None

    def test_unknown_environment(self):
        """Test an unknown environment falls back to mainnet."""
        requests = []
        client = indexer_client(graphql({"getFaDetails": None}, requests), environment="devnet")

        assert client.fetch_fa_details("0xabc") is None
        assert requests[0]["variables"]["blockchainEnvironment"] == "mainnet"

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, json={}),
            httpx.Response(200, text="not json"),
            httpx.Response(200, json={"errors": [{"message": "bad query"}]}),
            httpx.Response(200, json=["unexpected"]),
        ],
    )
    def test_failures_return_none(self, response):
        """Test indexer failures are swallowed as None."""
        client = indexer_client(lambda request: response)
        assert client.fetch_fa_details("0xabc") is None

    def test_connection_error(self):
        """Test an unreachable indexer returns None."""

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert indexer_client(handler).fetch_transactions("0xabc", 10) is None

    def test_transactions_flattened(self):
        """Test transactions are flattened with the block height merged in."""
        requests = []
        result = {
            "isError": False,
            "transactions": [
                {
                    "transactionBasicInfo": {"transactionHash": "0x01", "functionName": "0xabc::m::f"},
                    "transactionAdvancedInfo": {"blockHeight": 42},
                },
                {"transactionBasicInfo": {"transactionHash": "0x02"}},
                "junk",
            ],
        }
        client = indexer_client(graphql({"getAllTransactions": result}, requests))

        transactions = client.fetch_transactions("0xABC", 10)

        assert transactions == [
            {"transactionHash": "0x01", "functionName": "0xabc::m::f", "block_height": 42},
            {"transactionHash": "0x02"},
        ]
        assert requests[0]["variables"]["address"] == "0xabc"
        assert requests[0]["variables"]["rowsPerPage"] == 10

    def test_transactions_error_flag(self):
        """Test an isError result is treated as no data."""
        client = indexer_client(graphql({"getAllTransactions": {"isError": True, "transactions": []}}))
        assert client.fetch_transactions("0xabc", 10) is None

    def test_from_config(self):
        """Test the client picks up indexer configuration."""
        requests = []
        config = IndexerConfig(graphql_url=GRAPHQL_URL, environment="testnet")
        client = SupraScanClient.from_config(
            config,
            transport=httpx.MockTransport(graphql({"getFaDetails": None}, requests)),
        )

        client.fetch_fa_details("0xabc")

        assert requests[0]["variables"]["blockchainEnvironment"] == "testnet"
