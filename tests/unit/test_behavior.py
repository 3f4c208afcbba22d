"""Unit tests for transaction behavior sampling."""

import pytest

from fa_audit.core.behavior import (
    SOURCE_INDEXER,
    SOURCE_V2,
    SOURCE_V3,
    BehaviorSampler,
    build_pinned_entry_functions_map,
    extract_function_id,
    extract_invoked_entries,
    merge_transactions,
    normalize_v2_transactions,
    normalize_v3_transactions,
    parse_function_id,
)
from fa_audit.models.behavior import BehaviorStatus
from fa_audit.models.resources import HookModule
from fa_audit.models.snapshot import ModuleSurface
from fa_audit.rpc.base import RawResponse, RpcError
from fa_audit.utils.config import SamplerConfig

OWNER = "0x" + "b" * 64
HOOK_ADDRESS = "0x" + "d" * 64
FA_ADDRESS = "0x" + "f" * 64


def tx(function=None, tx_hash="0x01", timestamp="100", **extra):
    body = {"hash": tx_hash, "timestamp": timestamp, **extra}
    if function:
        body["payload"] = {"function": function}
    return body


class TestEnvelopes:
    """Tests for response envelope normalization."""

    def test_v3_shapes(self):
        """Test bare list and value-wrapped v3 bodies."""
        assert normalize_v3_transactions([{"hash": "a"}, "junk"]) == [{"hash": "a"}]
        assert normalize_v3_transactions({"value": [{"hash": "b"}]}) == [{"hash": "b"}]
        assert normalize_v3_transactions({"other": []}) == []

    @pytest.mark.parametrize(
        "body,count",
        [
            ({"record": [{"hash": "a"}]}, 1),
            ({"record": {"transactions": [{"hash": "a"}, {"hash": "b"}]}}, 2),
            ({"record": {"data": [{"hash": "a"}]}}, 1),
            ({"record": None, "data": [{"hash": "a"}]}, 0),
            ({"data": [{"hash": "a"}]}, 0),
            ({"record": {}}, 0),
            ({"record": {"cursor": "next"}, "transactions": [{"hash": "a"}, {"hash": "b"}]}, 2),
            ({"record": "opaque", "data": [{"hash": "a"}]}, 1),
            ({"record": {"cursor": "next"}}, 0),
            ([{"hash": "a"}], 0),
        ],
    )
    def test_v2_shapes(self, body, count):
        """Test the supported v2 envelopes."""
        assert len(normalize_v2_transactions(body)) == count


class TestFunctionIds:
    """Tests for function id extraction and parsing."""

    def test_direct_field(self):
        """Test a top-level function field."""
        assert extract_function_id({"function": "0x1::m::f"}) == "0x1::m::f"

    def test_move_wrapped_payload(self):
        """Test a payload wrapped in a Move envelope."""
        assert extract_function_id({"payload": {"Move": {"function": "0x2::m::g"}}}) == "0x2::m::g"

    def test_json_string_payload(self):
        """Test a JSON-encoded payload string."""
        assert extract_function_id({"payload": '{"entry_function_id": "0x3::m::h"}'}) == "0x3::m::h"

    def test_indexer_function_name(self):
        """Test the indexer's functionName field."""
        assert extract_function_id({"payload": "not json", "functionName": "0x4::m::i"}) == "0x4::m::i"
        assert extract_function_id({}) is None

    def test_parse(self):
        """Test splitting and the bare-name fallback."""
        assert parse_function_id("0xABC::router::swap") == ("0xabc", "router", "swap")
        assert parse_function_id("foo") == ("unknown", "unknown", "foo")

    def test_invoked_entries_unique(self):
        """Test each entry is kept once with its first transaction."""
        entries = extract_invoked_entries(
            [
                tx("0xA::m::f", tx_hash="0x01"),
                tx("0xa::m::f", tx_hash="0x02"),
                tx("0xa::m::g", tx_hash="0x03"),
                tx(None, tx_hash="0x04"),
            ]
        )

        assert [e.full_id for e in entries] == ["0xa::m::f", "0xa::m::g"]
        assert entries[0].tx_hash == "0x01"
        assert entries[0].module_id == "0xa::m"


class TestMerge:
    """Tests for merge_transactions."""

    def test_newest_first(self):
        """Test ordering by timestamp then height, truncated to the limit."""
        merged = merge_transactions(
            [
                [tx(tx_hash="old", timestamp="100")],
                [
                    tx(tx_hash="new_low", timestamp="200", height=1),
                    tx(tx_hash="new_high", timestamp="200", height=5),
                ],
            ],
            limit=2,
        )

        assert [t["hash"] for t in merged] == ["new_high", "new_low"]

    def test_iso_and_structured_timestamps(self):
        """Test ISO strings and microsecond dicts are comparable."""
        merged = merge_transactions(
            [
                [
                    tx(tx_hash="iso", timestamp="2020-01-01T00:00:00Z"),
                    tx(tx_hash="micro", timestamp={"microseconds_since_unix_epoch": 1_700_000_000_000_000}),
                ]
            ],
            limit=5,
        )

        assert [t["hash"] for t in merged] == ["micro", "iso"]


class TestPinnedMap:
    """Tests for build_pinned_entry_functions_map."""

    def test_surfaces_and_hooks(self):
        """Test readable surfaces and hook functions form the allow-list."""
        surfaces = [
            ModuleSurface(module_id="0xA::router", abi_fetched=True, entry_fn_names=["swap"]),
            ModuleSurface(module_id="0xA::opaque", abi_fetched=False),
        ]
        hooks = [HookModule(module_address="0xA", module_name="router", function_name="on_withdraw")]

        pinned = build_pinned_entry_functions_map(surfaces, hooks)

        assert pinned == {"0xa::router": ["swap", "on_withdraw"]}


class TestCandidateAddresses:
    """Tests for candidate address ordering."""

    def test_order_and_dedup(self, make_chain):
        """Test fixed ordering, normalization and deduplication."""
        sampler = BehaviorSampler(make_chain())
        addresses, warnings = sampler.candidate_addresses(
            owner_address=OWNER,
            module_addresses=[OWNER.upper().replace("0X", "0x"), HOOK_ADDRESS],
            asset_address=FA_ADDRESS,
            probe_addresses=["0x" + "e" * 64, "0xZZ"],
        )

        assert addresses == [OWNER, HOOK_ADDRESS, FA_ADDRESS, "0x" + "e" * 64]
        assert warnings == ["Invalid probe address (not a valid 0x hex address of length 66): 0xZZ"]


class TestBehaviorSampler:
    """Tests for BehaviorSampler.sample."""

    def test_phantom_entry(self, make_chain):
        """Test an invoked function outside the pinned set is phantom."""
        chain = make_chain(transactions={(OWNER, "v3"): [tx("0xA::m::withdraw", tx_hash="0xfeed")]})
        evidence = BehaviorSampler(chain).sample(
            owner_address=OWNER,
            pinned_entry_functions={"0xA::m": ["swap"]},
        )

        assert evidence.status == BehaviorStatus.SAMPLED
        assert evidence.source == SOURCE_V3
        assert evidence.tx_count == 1
        assert evidence.has_phantoms
        phantom = evidence.phantom_entries[0]
        assert phantom.module == "0xa::m"
        assert phantom.function == "withdraw"
        assert phantom.tx_hashes == ["0xfeed"]
        assert chain.tx_calls == [(OWNER, "v3", 40)]

    def test_module_missing_from_pinned_set(self, make_chain):
        """Test every function of an unpinned module is phantom."""
        chain = make_chain(transactions={(OWNER, "v3"): [tx("0xc::other::go")]})
        evidence = BehaviorSampler(chain).sample(owner_address=OWNER, pinned_entry_functions={"0xa::m": ["swap"]})

        assert evidence.phantom_entries[0].reason == "Module 0xc::other not present in pinned ABI inventory"

    def test_pinned_function_not_phantom(self, make_chain):
        """Test pinned functions match case-insensitively."""
        chain = make_chain(transactions={(OWNER, "v3"): [tx("0xA::m::Swap")]})
        evidence = BehaviorSampler(chain).sample(owner_address=OWNER, pinned_entry_functions={"0xa::m": ["swap"]})

        assert evidence.phantom_entries == []

    def test_retry_without_limit_then_other_version(self, make_chain):
        """Test a 404 retries without limit, then falls back to v2."""
        chain = make_chain(transactions={(OWNER, "v2"): {"record": [tx("0xa::m::f")]}})
        evidence = BehaviorSampler(chain, limit=5).sample(owner_address=OWNER)

        assert chain.tx_calls == [(OWNER, "v3", 10), (OWNER, "v3", None), (OWNER, "v2", 10)]
        assert evidence.source == SOURCE_V2
        assert evidence.source_details[SOURCE_V3] == {OWNER: {"error": "HTTP 404", "httpStatus": 404}}
        assert evidence.status == BehaviorStatus.SAMPLED

    def test_prefer_v2(self, make_chain):
        """Test v2 is tried first when preferred."""
        chain = make_chain(transactions={(OWNER, "v2"): {"record": []}})
        sampler = BehaviorSampler.from_config(SamplerConfig(prefer_v2=True), chain)
        evidence = sampler.sample(owner_address=OWNER)

        assert sampler.source_order == [SOURCE_V2, SOURCE_V3]
        assert evidence.attempted_sources == [SOURCE_V2, SOURCE_V3]
        assert evidence.prefer_v2 is True

    def test_ok_empty_skips_indexer(self, make_chain, make_indexer):
        """Test a successful empty RPC response never consults the indexer."""
        chain = make_chain(transactions={(OWNER, "v3"): []})
        indexer = make_indexer(transactions=[tx("0xa::m::f")])
        evidence = BehaviorSampler(chain, indexer=indexer).sample(owner_address=OWNER)

        assert evidence.status == BehaviorStatus.OK_EMPTY
        assert indexer.tx_calls == []
        assert evidence.attempted_sources == [SOURCE_V3, SOURCE_V2]

    def test_indexer_fallback(self, make_chain, make_indexer):
        """Test the indexer is used when every RPC attempt failed."""
        chain = make_chain(transactions={(OWNER, "v3"): RpcError("timed out")})
        indexer = make_indexer(transactions=[tx("0xa::m::f")])
        evidence = BehaviorSampler(chain, indexer=indexer).sample(owner_address=OWNER)

        assert evidence.status == BehaviorStatus.SAMPLED
        assert evidence.source == SOURCE_INDEXER
        assert evidence.attempted_sources == [SOURCE_V3, SOURCE_V2, SOURCE_INDEXER]
        assert evidence.source_details[SOURCE_V3] == {OWNER: {"error": "timed out"}}
        assert evidence.source_details[SOURCE_INDEXER] == {OWNER: {"normalizedCount": 1}}
        assert indexer.tx_calls == [(OWNER, 20)]

    def test_unavailable(self, make_chain):
        """Test total failure without an indexer."""
        chain = make_chain(transactions={(OWNER, "v3"): RawResponse(status_code=500)})
        evidence = BehaviorSampler(chain).sample(owner_address=OWNER)

        assert evidence.status == BehaviorStatus.UNAVAILABLE
        assert evidence.error.startswith("RPC account transaction endpoints unavailable")
        assert evidence.tx_count == 0
        assert evidence.source_details[SOURCE_V3][OWNER]["httpStatus"] == 500

    def test_details_kept_per_address(self, make_chain):
        """Test each candidate address keeps its own source diagnostics."""
        chain = make_chain(
            transactions={
                (OWNER, "v3"): RawResponse(status_code=500),
                (HOOK_ADDRESS, "v3"): RpcError("timed out"),
            }
        )
        evidence = BehaviorSampler(chain).sample(owner_address=OWNER, module_addresses=[HOOK_ADDRESS])

        assert evidence.source_details[SOURCE_V3] == {
            OWNER: {"error": "HTTP 500", "httpStatus": 500},
            HOOK_ADDRESS: {"error": "timed out"},
        }
        assert set(evidence.source_details[SOURCE_V2]) == {OWNER, HOOK_ADDRESS}

    def test_explicit_zero_limit(self, make_chain):
        """Test an explicit zero limit is honored instead of the default."""
        chain = make_chain(transactions={(OWNER, "v3"): [tx("0xa::m::f")]})
        evidence = BehaviorSampler(chain, limit=5).sample(owner_address=OWNER, limit=0)

        assert chain.tx_calls == [(OWNER, "v3", 0)]
        assert evidence.status == BehaviorStatus.OK_EMPTY
        assert evidence.tx_count == 0

    def test_no_activity(self, make_chain):
        """Test transactions without an entry function."""
        chain = make_chain(transactions={(OWNER, "v3"): [tx(None)]})
        evidence = BehaviorSampler(chain).sample(owner_address=OWNER)

        assert evidence.status == BehaviorStatus.NO_ACTIVITY
        assert evidence.tx_count == 1

    def test_no_address(self, make_chain):
        """Test sampling with only an invalid probe address is an error."""
        evidence = BehaviorSampler(make_chain()).sample(probe_addresses=["0xZZ"])

        assert evidence.status == BehaviorStatus.ERROR
        assert evidence.error == "No address provided for transaction sampling"
        assert evidence.warnings[0].endswith("0xZZ")

    def test_opaque_active_from_abi(self, make_chain):
        """Test an opaque ABI with activity sets opaque_active."""
        chain = make_chain(transactions={(OWNER, "v3"): [tx("0xa::m::f")]})
        evidence = BehaviorSampler(chain).sample(owner_address=OWNER, abi_opaque=True)

        assert evidence.opaque_active is True
        assert "1 recent transactions" in evidence.opaque_reason

    def test_opaque_active_from_empty_pins(self, make_chain):
        """Test an empty pinned inventory with invoked entries sets opaque_active."""
        chain = make_chain(transactions={(OWNER, "v3"): [tx("0xa::m::f")]})
        evidence = BehaviorSampler(chain).sample(owner_address=OWNER, pinned_entry_functions={})

        assert evidence.opaque_active is True
        assert evidence.opaque_reason.startswith("No modules in pinned ABI inventory")
        assert evidence.phantom_entries == []

    def test_merges_addresses(self, make_chain):
        """Test batches from several addresses are merged newest first."""
        chain = make_chain(
            transactions={
                (OWNER, "v3"): [tx("0xa::m::old", tx_hash="0x01", timestamp="1")],
                (HOOK_ADDRESS, "v3"): [tx("0xa::m::new", tx_hash="0x02", timestamp="2")],
            }
        )
        evidence = BehaviorSampler(chain).sample(owner_address=OWNER, module_addresses=[HOOK_ADDRESS])

        assert evidence.sampled_addresses == [OWNER, HOOK_ADDRESS]
        assert evidence.sampled_address_count == 2
        assert [e.function_name for e in evidence.invoked_entries] == ["new", "old"]
