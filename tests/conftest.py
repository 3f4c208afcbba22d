"""Shared test fixtures for fa-audit tests."""

from typing import Any

import pytest

from fa_audit.models.common import CoverageStatus
from fa_audit.models.pins import ModuleArtifact
from fa_audit.models.resources import HookModule
from fa_audit.models.snapshot import (
    CoinCapabilities,
    CoinIdentity,
    ControlSurface,
    FaCapabilities,
    FaIdentity,
    HookInfo,
    ModuleSurface,
    Snapshot,
    SnapshotCoverage,
    SnapshotMeta,
    SupplyInfo,
)
from fa_audit.rpc.base import IndexerFacts, ModuleListing, RawResponse, RpcError

PUBLISHER = "0xabc"
COIN_TYPE = "0xabc::my_coin::MyCoin"
FA_ADDRESS = "0x" + "f" * 64
FA_OWNER = "0x" + "b" * 64


class FakeChain:
    """In-memory chain exposing the RPC collaborator methods.

    Every lookup is keyed by the lower-cased address. Addresses listed in
    ``failing`` raise RpcError from every method.
    """

    def __init__(
        self,
        resources: dict[str, list[dict[str, Any]]] | None = None,
        modules: dict[str, list[str | None]] | None = None,
        modules_v1: dict[str, list[str | None]] | None = None,
        artifacts: dict[tuple[str, str], dict[str, Any]] | None = None,
        transactions: dict[tuple[str, str], Any] | None = None,
        failing: tuple[str, ...] = (),
    ):
        self.resources = resources or {}
        self.modules = modules or {}
        self.modules_v1 = modules_v1
        self.artifacts = artifacts or {}
        self.transactions = transactions or {}
        self.failing = set(failing)
        self.fetch_calls: list[tuple[str, str]] = []
        self.tx_calls: list[tuple[str, str, int | None]] = []

    def _check(self, address: str) -> None:
        if address in self.failing:
            raise RpcError(f"connection refused for {address}", code="TRANSIENT")

    def list_modules(self, address: str) -> ModuleListing:
        self._check(address)
        return ModuleListing(address=address, names=list(self.modules.get(address, [])), source="rpc_v3")

    def list_modules_v1(self, address: str) -> ModuleListing:
        self._check(address)
        listings = self.modules if self.modules_v1 is None else self.modules_v1
        if address not in listings:
            raise RpcError(f"v1 listing unavailable for {address}")
        return ModuleListing(address=address, names=list(listings[address]), source="rpc_v1")

    def fetch_module(self, address: str, name: str) -> ModuleArtifact:
        self.fetch_calls.append((address, name))
        detail = self.artifacts.get((address, name))
        if detail is None:
            return ModuleArtifact(
                module_address=address,
                module_name=name,
                fetched_from="unknown",
                error="rpc_v3: not found; rpc_v1: not found",
            )
        return ModuleArtifact(
            module_address=address,
            module_name=name,
            abi=detail.get("abi"),
            bytecode=detail.get("bytecode"),
            fetched_from="rpc_v3",
        )

    def list_resources(self, address: str) -> list[dict[str, Any]]:
        self._check(address)
        return list(self.resources.get(address, []))

    def get_account_transactions(
        self, address: str, version: str, limit: int | None = None, timeout: float | None = None
    ) -> RawResponse:
        self.tx_calls.append((address, version, limit))
        value = self.transactions.get((address, version))
        if isinstance(value, Exception):
            raise value
        if isinstance(value, RawResponse):
            return value
        if value is None:
            return RawResponse(status_code=404)
        return RawResponse(status_code=200, body=value)


class FakeIndexer:
    """In-memory indexer for parity checks and the transaction fallback."""

    def __init__(
        self,
        fa_facts: IndexerFacts | None = None,
        coin_facts: IndexerFacts | None = None,
        transactions: list[dict[str, Any]] | None = None,
    ):
        self.fa_facts = fa_facts
        self.coin_facts = coin_facts
        self.transactions = transactions
        self.tx_calls: list[tuple[str, int]] = []

    def fetch_fa_details(self, fa_address: str) -> IndexerFacts | None:
        return self.fa_facts

    def fetch_coin_details(self, coin_type: str) -> IndexerFacts | None:
        return self.coin_facts

    def fetch_transactions(self, address: str, limit: int) -> list[dict[str, Any]] | None:
        self.tx_calls.append((address, limit))
        return self.transactions


def abi(name: str, entry: list[str] = (), exposed: list[str] = ()) -> dict[str, Any]:
    """Build a v3-style module ABI."""
    functions = [{"name": fn, "visibility": "public", "is_entry": True} for fn in entry]
    functions += [{"name": fn, "visibility": "public", "is_entry": False} for fn in exposed if fn not in entry]
    return {"address": "0x0", "name": name, "exposed_functions": functions}


@pytest.fixture
def make_chain():
    """Factory for FakeChain instances."""
    return FakeChain


@pytest.fixture
def make_indexer():
    """Factory for FakeIndexer instances."""
    return FakeIndexer


@pytest.fixture
def make_abi():
    """Factory for module ABIs."""
    return abi


@pytest.fixture
def coin_resources() -> list[dict[str, Any]]:
    """Resources of a coin publisher holding a mint capability."""
    return [
        {
            "type": f"0x1::coin::CoinInfo<{COIN_TYPE}>",
            "data": {
                "name": "My Coin",
                "symbol": "MYC",
                "decimals": 8,
                "supply": {"vec": [{"aggregator": {"vec": []}, "integer": {"vec": [{"value": "150000000000"}]}}]},
            },
        },
        {"type": f"{PUBLISHER}::my_coin::Capabilities<{COIN_TYPE}>", "data": {}},
        {"type": f"0x1::coin::MintCapability<{COIN_TYPE}>", "data": {"dummy_field": False}},
        {"type": f"0x1::coin::BurnCapability<{COIN_TYPE}>", "data": {"dummy_field": False}},
    ]


@pytest.fixture
def fa_resources() -> list[dict[str, Any]]:
    """Resources of an FA object with refs, a max supply and a withdraw hook."""
    return [
        {"type": "0x1::object::ObjectCore", "data": {"owner": FA_OWNER, "allow_ungated_transfer": False}},
        {
            "type": "0x1::fungible_asset::Metadata",
            "data": {"name": "Fancy Asset", "symbol": "FAT", "decimals": 2},
        },
        {
            "type": "0x1::fungible_asset::ConcurrentSupply",
            "data": {"current": {"value": "5000", "max_value": "1000000"}},
        },
        {
            "type": "0x1::fungible_asset::DispatchFunctionStore",
            "data": {
                "withdraw_function": {
                    "vec": [{"module_address": FA_OWNER, "module_name": "hooks", "function_name": "on_withdraw"}]
                },
                "deposit_function": {"vec": []},
                "derived_balance_function": {"vec": []},
            },
        },
        {
            "type": f"{FA_OWNER}::managed::Refs",
            "data": {"mint_ref": {"metadata": {"inner": FA_ADDRESS}}, "burn_ref": {"metadata": {"inner": FA_ADDRESS}}},
        },
    ]


@pytest.fixture
def coin_snapshot() -> Snapshot:
    """A minimal complete coin snapshot with no capabilities."""
    return Snapshot(
        meta=SnapshotMeta(
            timestamp_iso="2024-01-15T12:00:00+00:00",
            rpc_url="https://rpc.test",
            scanner_version="0.1.0",
        ),
        identity=CoinIdentity(
            coin_type=COIN_TYPE,
            publisher_address=PUBLISHER,
            module_name="my_coin",
            symbol="MYC",
        ),
        supply=SupplyInfo(supply_current_base="1000", decimals=0, supply_current_formatted="1000"),
        capabilities=CoinCapabilities(),
        coverage=SnapshotCoverage(coverage=CoverageStatus.COMPLETE),
    )


@pytest.fixture
def fa_snapshot() -> Snapshot:
    """A minimal complete FA snapshot with a mint ref and a deposit hook."""
    hook = HookModule(module_address=FA_OWNER, module_name="hooks", function_name="on_deposit")
    module_id = f"{FA_OWNER}::hooks"
    return Snapshot(
        meta=SnapshotMeta(
            timestamp_iso="2024-01-15T12:00:00+00:00",
            rpc_url="https://rpc.test",
            scanner_version="0.1.0",
        ),
        identity=FaIdentity(fa_address=FA_ADDRESS, object_owner=FA_OWNER, symbol="FAT"),
        supply=SupplyInfo(
            supply_current_base="5000",
            decimals=2,
            supply_current_formatted="50",
            supply_max_base="1000000",
        ),
        capabilities=FaCapabilities(has_mint_ref=True, has_deposit_hook=True),
        control_surface=ControlSurface(
            relevant_modules=[module_id],
            modules={
                module_id: ModuleSurface(
                    module_id=module_id,
                    abi_fetched=True,
                    entry_fn_names=["on_deposit", "transfer"],
                    exposed_fn_names=[],
                )
            },
            hook_modules=[hook],
            hooks=[HookInfo(hook_type="deposit", target=f"{module_id}::on_deposit", risk="medium")],
        ),
        coverage=SnapshotCoverage(coverage=CoverageStatus.COMPLETE),
    )
