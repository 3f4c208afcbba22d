"""Unit tests for the InventoryBuilder."""

from fa_audit.core.inventory import InventoryBuilder, extract_modules_from_resource_types
from fa_audit.models.common import CoverageStatus
from fa_audit.models.inventory import ModuleSource
from fa_audit.models.resources import HookModule

PUBLISHER = "0xabc"
FA_OWNER = "0x" + "b" * 64
HOOK_ADDRESS = "0x" + "d" * 64
REF_HOLDER = "0x" + "c" * 64


class TestExtractModules:
    """Tests for extract_modules_from_resource_types."""

    def test_unique_pairs(self):
        """Test (address, module) pairs are unique and normalized."""
        modules = extract_modules_from_resource_types(
            [
                "0xABC::vault::Store<0x1::a::B>",
                "0xabc::vault::Other",
                "0x1::coin::CoinInfo<0xabc::my_coin::MyCoin>",
                "not_a_type",
            ]
        )

        assert modules == [("0xabc", "vault"), ("0x1", "coin")]


class TestCoinInventory:
    """Tests for coin inventory construction."""

    def test_build_complete(self, make_chain):
        """Test a fully listed publisher yields complete coverage."""
        chain = make_chain(modules={PUBLISHER: ["my_coin", "helper"]})
        inventory = InventoryBuilder(chain, chain).build_coin(PUBLISHER, "my_coin")

        assert inventory.is_complete
        assert inventory.relevant_module_ids == ["0xabc::my_coin", "0xabc::helper"]
        assert inventory.modules[0].source == ModuleSource.COIN_DEFINING
        assert inventory.recovery is None
        assert inventory.publisher_modules_count == 2

    def test_resource_types_add_publisher_modules(self, make_chain):
        """Test publisher modules named in resource types are included."""
        chain = make_chain(modules={PUBLISHER: ["my_coin"]})
        inventory = InventoryBuilder(chain, chain).build_coin(
            PUBLISHER,
            "my_coin",
            ["0xabc::vault::Store", "0x1::coin::CoinInfo<0xabc::my_coin::MyCoin>"],
        )

        assert "0xabc::vault" in inventory.relevant_module_ids
        assert all(not m.module_address == "0x1" for m in inventory.modules)

    def test_listing_failure_is_partial(self, make_chain):
        """Test a failed listing is recorded as a coverage reason."""
        chain = make_chain(failing=(PUBLISHER,))
        inventory = InventoryBuilder(chain, chain).build_coin(PUBLISHER, "my_coin")

        assert inventory.status == CoverageStatus.PARTIAL
        assert inventory.reasons[0].startswith("RPC fetch failed for 0xabc")
        assert inventory.relevant_module_ids == ["0xabc::my_coin"]
        assert inventory.publisher_modules_count is None

    def test_recover_name_from_v1_listing(self, make_chain):
        """Test a nameless v3 entry is named from the v1 listing."""
        chain = make_chain(
            modules={PUBLISHER: ["my_coin", None]},
            modules_v1={PUBLISHER: ["my_coin", "helper"]},
        )
        inventory = InventoryBuilder(chain, chain).build_coin(PUBLISHER, "my_coin")

        assert inventory.is_complete
        assert inventory.relevant_module_ids == ["0xabc::my_coin", "0xabc::helper"]
        assert inventory.recovery.attempts == ["rpc_v1_list"]
        assert inventory.recovery.recovered[0].new_name == "helper"
        assert inventory.recovery.recovered[0].strategy == "rpc_v1_list"

    def test_recover_name_by_probe(self, make_chain, make_abi):
        """Test a nameless entry is named by probing conventional names."""
        chain = make_chain(
            modules={PUBLISHER: ["my_coin", None]},
            modules_v1={},
            artifacts={
                (PUBLISHER, "coin"): {"abi": make_abi("coin", ["mint"])},
                (PUBLISHER, "token"): {"abi": make_abi("token", ["mint"])},
            },
        )
        inventory = InventoryBuilder(chain, chain).build_coin(PUBLISHER, "my_coin")

        assert inventory.is_complete
        assert "0xabc::coin" in inventory.relevant_module_ids
        assert "0xabc::token" not in inventory.relevant_module_ids
        assert inventory.recovery.attempts == ["common_name_probe"]
        assert inventory.recovery.recovered[0].strategy == "common_name_probe"

    def test_name_lookup_takes_declared_name(self, make_chain, make_abi):
        """Test a conventional name answered by another module takes that module's name."""
        chain = make_chain(
            modules={PUBLISHER: [None]},
            modules_v1={},
            artifacts={
                (PUBLISHER, "coin"): {"abi": make_abi("something_else")},
                (PUBLISHER, "something_else"): {"abi": make_abi("something_else")},
            },
        )
        inventory = InventoryBuilder(chain, chain).build_coin(PUBLISHER, "my_coin")

        assert inventory.is_complete
        assert "0xabc::something_else" in inventory.relevant_module_ids
        assert inventory.recovery.recovered[0].new_name == "something_else"
        assert inventory.recovery.recovered[0].strategy == "common_name_probe"

    def test_name_lookup_requires_round_trip(self, make_chain, make_abi):
        """Test a declared name that does not resolve back to the same module is ignored."""
        chain = make_chain(
            modules={PUBLISHER: [None]},
            modules_v1={},
            artifacts={(PUBLISHER, "coin"): {"abi": make_abi("something_else")}},
        )
        inventory = InventoryBuilder(chain, chain).build_coin(PUBLISHER, "my_coin")

        assert inventory.status == CoverageStatus.PARTIAL
        assert (PUBLISHER, "something_else") in chain.fetch_calls
        assert inventory.recovery.recovered == []

    def test_name_lookup_skips_known_declared_name(self, make_chain, make_abi):
        """Test a declared name already at the publisher is not reused."""
        chain = make_chain(
            modules={PUBLISHER: ["my_coin", None]},
            modules_v1={},
            artifacts={
                (PUBLISHER, "coin"): {"abi": make_abi("my_coin")},
                (PUBLISHER, "token"): {"abi": make_abi("token")},
            },
        )
        inventory = InventoryBuilder(chain, chain).build_coin(PUBLISHER, "my_coin")

        assert inventory.relevant_module_ids == ["0xabc::my_coin", "0xabc::token"]

    def test_name_lookup_without_answer(self, make_chain):
        """Test an entry stays nameless when no conventional name resolves."""
        chain = make_chain(modules={PUBLISHER: [None]}, modules_v1={})
        inventory = InventoryBuilder(chain, chain).build_coin(PUBLISHER, "my_coin")

        assert inventory.status == CoverageStatus.PARTIAL
        assert "unknown names after 1 recovery strategies: common_name_probe" in inventory.reasons[0]


class TestFaInventory:
    """Tests for FA inventory construction."""

    def test_build_with_hooks_and_refs(self, make_chain):
        """Test owner, hook and ref-holder modules are relevant."""
        chain = make_chain(
            modules={
                FA_OWNER: ["managed", "hooks"],
                REF_HOLDER: ["vault"],
            }
        )
        hooks = [HookModule(module_address=FA_OWNER, module_name="hooks", function_name="on_withdraw")]
        inventory = InventoryBuilder(chain, chain).build_fa(
            FA_OWNER,
            hook_modules=hooks,
            ref_holders={"mint": REF_HOLDER},
        )

        assert inventory.is_complete
        assert inventory.owner_modules_count == 2
        assert set(inventory.relevant_module_ids) == {
            f"{FA_OWNER}::hooks",
            f"{FA_OWNER}::managed",
            f"{REF_HOLDER}::vault",
        }
        sources = {m.module_id: m.source for m in inventory.modules}
        assert sources[f"{FA_OWNER}::hooks"] == ModuleSource.HOOKS
        assert sources[f"{REF_HOLDER}::vault"] == ModuleSource.FA_REF_HOLDER

    def test_system_modules_not_relevant(self, make_chain):
        """Test hooks at reserved addresses are never relevant."""
        chain = make_chain(modules={FA_OWNER: []})
        hooks = [HookModule(module_address="0x1", module_name="primary_fungible_store", function_name="withdraw")]
        inventory = InventoryBuilder(chain, chain).build_fa(FA_OWNER, hook_modules=hooks)

        assert inventory.relevant_module_ids == []
        assert inventory.modules[0].is_relevant is False

    def test_hook_missing_from_listing(self, make_chain):
        """Test a hook module absent from its address listing is reported."""
        chain = make_chain(modules={FA_OWNER: ["managed"]})
        hooks = [HookModule(module_address=FA_OWNER, module_name="hooks", function_name="on_deposit")]
        inventory = InventoryBuilder(chain, chain).build_fa(FA_OWNER, hook_modules=hooks)

        assert inventory.status == CoverageStatus.PARTIAL
        assert f"Hook modules hooks not found in RPC module list for {FA_OWNER}" in inventory.reasons

    def test_ref_holder_listing_failure(self, make_chain):
        """Test a failed ref-holder listing is a coverage reason."""
        chain = make_chain(modules={FA_OWNER: ["managed"]}, failing=(REF_HOLDER,))
        inventory = InventoryBuilder(chain, chain).build_fa(FA_OWNER, ref_holders={"burn": REF_HOLDER})

        assert inventory.status == CoverageStatus.PARTIAL
        assert inventory.reasons[0].startswith(f"RPC fetch failed for burnRef holder {REF_HOLDER}")

    def test_no_owner(self, make_chain):
        """Test an FA without owner still builds from hooks."""
        chain = make_chain()
        hooks = [HookModule(module_address=HOOK_ADDRESS, module_name="gate", function_name="on_withdraw")]
        inventory = InventoryBuilder(chain, chain).build_fa(None, hook_modules=hooks)

        assert inventory.owner_modules_count is None
        assert inventory.relevant_module_ids == [f"{HOOK_ADDRESS}::gate"]
