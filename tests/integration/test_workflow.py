"""Integration tests for end-to-end workflows."""

import copy

import pytest

from fa_audit.core.behavior import BehaviorSampler
from fa_audit.core.diff import DiffEngine
from fa_audit.core.risk import RiskSynthesizer, risk_input_from_snapshot
from fa_audit.core.rules import SeverityEscalator
from fa_audit.core.scanner import AssetScanner, sample_snapshot_behavior
from fa_audit.models.behavior import BehaviorStatus
from fa_audit.models.diff import ChangeType, Severity
from fa_audit.models.evidence import ParityStatus
from fa_audit.models.risk import RiskLevel, RiskSignal, VerificationStatus
from fa_audit.models.snapshot import Snapshot
from fa_audit.rpc.base import IndexerFacts

PUBLISHER = "0xabc"
COIN_TYPE = "0xabc::my_coin::MyCoin"
FA_ADDRESS = "0x" + "f" * 64
FA_OWNER = "0x" + "b" * 64
CREATOR = "0x" + "c" * 64


def with_coin_supply(resources, value):
    resources = copy.deepcopy(resources)
    resources[0]["data"]["supply"]["vec"][0]["integer"]["vec"][0]["value"] = value
    return resources


class TestCoinWorkflow:
    """Scan, rescan, diff, escalate and synthesize risk for a coin."""

    @pytest.fixture
    def first_scan(self, make_chain, make_abi, make_indexer, coin_resources):
        """Snapshot of the coin before any drift."""
        chain = make_chain(
            resources={PUBLISHER: coin_resources},
            modules={PUBLISHER: ["my_coin"]},
            artifacts={(PUBLISHER, "my_coin"): {"abi": make_abi("my_coin", ["transfer"]), "bytecode": "0x0102"}},
        )
        indexer = make_indexer(coin_facts=IndexerFacts(total_supply="150000000000"))
        return AssetScanner(chain, indexer=indexer).scan_coin(COIN_TYPE).snapshot

    def test_unchanged_rescan(self, first_scan):
        """Test a snapshot reloaded from JSON diffs clean against itself."""
        reloaded = Snapshot.model_validate_json(first_scan.model_dump_json())

        result = DiffEngine().diff(first_scan, reloaded)

        assert result.success
        assert result.report.changed is False
        assert result.report.changes == []

    def test_code_and_surface_drift(self, first_scan, make_chain, make_abi, make_indexer, coin_resources):
        """Test new code with a minter setter is escalated to CRITICAL."""
        chain = make_chain(
            resources={PUBLISHER: with_coin_supply(coin_resources, "300000000000")},
            modules={PUBLISHER: ["my_coin"]},
            artifacts={
                (PUBLISHER, "my_coin"): {
                    "abi": make_abi("my_coin", ["transfer", "set_minter"]),
                    "bytecode": "0x0103",
                }
            },
        )
        indexer = make_indexer(coin_facts=IndexerFacts(total_supply="300000000000"))
        second_scan = AssetScanner(chain, indexer=indexer).scan_coin(COIN_TYPE).snapshot

        result = DiffEngine().diff(first_scan, second_scan)
        assert result.success
        report = SeverityEscalator().apply(first_scan, second_scan, result.report)

        assert report.changed is True
        surface = report.changes_by_type(ChangeType.ABI_SURFACE_CHANGED)[0]
        assert surface.evidence["mint_like_functions"] == ["set_minter"]
        assert surface.severity == Severity.CRITICAL
        assert report.changes_by_type(ChangeType.COIN_MODULE_CODE_CHANGED)[0].severity == Severity.HIGH
        assert report.changes_by_type(ChangeType.SUPPLY_CHANGED)[0].severity == Severity.HIGH
        assert report.max_severity == Severity.CRITICAL

        synthesis = RiskSynthesizer().synthesize(risk_input_from_snapshot(second_scan, report=report))

        assert RiskSignal.HASH_CONFLICT in synthesis.signals
        assert synthesis.risk_level == RiskLevel.ELEVATED_RISK

    def test_supply_only_drift(self, coin_snapshot):
        """Test an unexplained supply jump is the only, HIGH, change."""
        grown = coin_snapshot.model_copy(
            update={"supply": coin_snapshot.supply.model_copy(update={"supply_current_base": "1500"})}
        )

        report = SeverityEscalator().apply(coin_snapshot, grown, DiffEngine().diff(coin_snapshot, grown).report)

        assert [c.type for c in report.changes] == [ChangeType.SUPPLY_CHANGED]
        assert report.changes[0].severity == Severity.HIGH
        assert report.agent_hints.requires_multi_rpc is True


class TestFaWorkflow:
    """Scan an FA, sample its behavior and synthesize risk."""

    @pytest.fixture
    def fa_chain(self, make_chain, make_abi, fa_resources):
        """Chain holding the FA, its owner modules and recent transactions."""
        return make_chain(
            resources={FA_ADDRESS: fa_resources},
            modules={FA_OWNER: ["managed", "hooks"]},
            artifacts={
                (FA_OWNER, "hooks"): {"abi": make_abi("hooks", ["on_withdraw"]), "bytecode": "0xaa"},
                (FA_OWNER, "managed"): {"abi": make_abi("managed", ["mint", "transfer"])},
            },
            transactions={
                (FA_OWNER, "v3"): [
                    {"hash": "0x01", "timestamp": "3", "payload": {"function": f"{FA_OWNER}::managed::transfer"}},
                    {"hash": "0x02", "timestamp": "2", "payload": {"function": f"{FA_OWNER}::managed::drain_all"}},
                ]
            },
        )

    def test_phantom_is_dangerous(self, fa_chain):
        """Test an entry point missing from the pinned ABI makes the asset DANGEROUS."""
        snapshot = AssetScanner(fa_chain).scan_fa(FA_ADDRESS).snapshot

        behavior = sample_snapshot_behavior(BehaviorSampler(fa_chain), snapshot)
        synthesis = RiskSynthesizer().synthesize(risk_input_from_snapshot(snapshot, behavior))

        assert behavior.status == BehaviorStatus.SAMPLED
        assert [p.full_id for p in behavior.phantom_entries] == [f"{FA_OWNER}::managed::drain_all"]
        assert RiskSignal.PHANTOM_ENTRYPOINTS in synthesis.signals
        assert RiskSignal.HOOK_CONTROLLED in synthesis.signals
        assert RiskSignal.MINT_REACHABLE in synthesis.signals
        assert synthesis.risk_level == RiskLevel.DANGEROUS

    def test_hook_code_change(self, fa_chain, make_chain, make_abi, fa_resources):
        """Test swapped hook bytecode surfaces as a hook code change."""
        before = AssetScanner(fa_chain).scan_fa(FA_ADDRESS).snapshot
        swapped = make_chain(
            resources={FA_ADDRESS: fa_resources},
            modules={FA_OWNER: ["managed", "hooks"]},
            artifacts={
                (FA_OWNER, "hooks"): {"abi": make_abi("hooks", ["on_withdraw"]), "bytecode": "0xbb"},
                (FA_OWNER, "managed"): {"abi": make_abi("managed", ["mint", "transfer"])},
            },
        )
        after = AssetScanner(swapped).scan_fa(FA_ADDRESS).snapshot

        report = SeverityEscalator().apply(before, after, DiffEngine().diff(before, after).report)

        assert [c.type for c in report.changes] == [ChangeType.HOOK_MODULE_CODE_CHANGED]
        assert report.changes[0].severity == Severity.HIGH

        synthesis = RiskSynthesizer().synthesize(risk_input_from_snapshot(after, report=report))
        assert RiskSignal.HASH_CONFLICT in synthesis.signals
        assert synthesis.risk_level == RiskLevel.ELEVATED_RISK

    def test_creator_differs_from_owner(self, fa_chain, make_indexer):
        """Test an indexer that only knows the deployer never produces an owner conflict."""
        indexer = make_indexer(fa_facts=IndexerFacts(total_supply="5000", creator_address=CREATOR))

        snapshot = AssetScanner(fa_chain, indexer=indexer).scan_fa(FA_ADDRESS).snapshot
        risk_input = risk_input_from_snapshot(snapshot)

        assert snapshot.evidence.get("OWNER_PARITY").status == ParityStatus.UNKNOWN
        assert risk_input.status == VerificationStatus.OK
        assert risk_input.discrepancies == []
        assert not any(signal.is_conflict for signal in RiskSynthesizer().synthesize(risk_input).signals)
