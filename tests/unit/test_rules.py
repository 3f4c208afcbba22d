"""Unit tests for SeverityEscalator."""

from fa_audit.core.diff import DiffEngine
from fa_audit.core.rules import SeverityEscalator
from fa_audit.models.diff import ChangeItem, ChangeType, DiffReport, Severity


def with_supply(snapshot, **updates):
    return snapshot.model_copy(update={"supply": snapshot.supply.model_copy(update=updates)})


def with_caps(snapshot, **updates):
    return snapshot.model_copy(update={"capabilities": snapshot.capabilities.model_copy(update=updates)})


def escalate(previous, current):
    report = DiffEngine().diff(previous, current).report
    return SeverityEscalator().apply(previous, current, report)


class TestSupplyEscalation:
    """Tests for supply-change escalation."""

    def test_coin_increase_without_mint_cap(self, coin_snapshot):
        """Test an unexplained coin supply increase is HIGH."""
        previous = with_supply(coin_snapshot, supply_current_base="1000000000")
        current = with_supply(coin_snapshot, supply_current_base="1000000001")

        report = escalate(previous, current)

        assert report.changes[0].severity == Severity.HIGH

    def test_coin_increase_with_mint_cap(self, coin_snapshot):
        """Test a capability-backed coin supply increase is at least MEDIUM."""
        base = with_caps(coin_snapshot, has_mint_cap=True)
        previous = with_supply(base, supply_current_base="1000000000")
        current = with_supply(base, supply_current_base="1000000001")

        report = escalate(previous, current)

        assert report.changes[0].severity == Severity.MEDIUM

    def test_decrease_not_raised(self, coin_snapshot):
        """Test a small supply decrease stays INFO."""
        previous = with_supply(coin_snapshot, supply_current_base="1000000001")
        current = with_supply(coin_snapshot, supply_current_base="1000000000")

        report = escalate(previous, current)

        assert report.changes[0].severity == Severity.INFO

    def test_fa_increase_with_mint_ref(self, fa_snapshot):
        """Test an FA supply increase with a MintRef is HIGH."""
        base = with_supply(fa_snapshot, supply_max_base=None)
        previous = with_supply(base, supply_current_base="100000000")
        current = with_supply(base, supply_current_base="100000001")

        report = escalate(previous, current)

        assert report.changes[0].severity == Severity.HIGH

    def test_fa_increase_without_mint_ref(self, fa_snapshot):
        """Test an FA supply increase without a MintRef is left as is."""
        base = with_caps(with_supply(fa_snapshot, supply_max_base=None), has_mint_ref=False)
        previous = with_supply(base, supply_current_base="100000000")
        current = with_supply(base, supply_current_base="100000001")

        report = escalate(previous, current)

        assert report.changes[0].severity == Severity.INFO

    def test_exceeds_max_supply(self, fa_snapshot):
        """Test supply above the declared maximum is CRITICAL."""
        current = with_supply(fa_snapshot, supply_current_base="2000000")

        report = escalate(fa_snapshot, current)

        supply = report.changes_by_type(ChangeType.SUPPLY_CHANGED)[0]
        assert supply.severity == Severity.CRITICAL


class TestSurfaceEscalation:
    """Tests for ownership and surface escalation."""

    def test_owner_and_hooks_changed(self, fa_snapshot):
        """Test an owner change alongside a hook change is CRITICAL."""
        report = DiffReport(
            changed=True,
            changes=[
                ChangeItem(type=ChangeType.OWNER_CHANGED, severity=Severity.HIGH),
                ChangeItem(type=ChangeType.HOOKS_CHANGED, severity=Severity.MEDIUM),
            ],
        )

        escalated = SeverityEscalator().apply(fa_snapshot, fa_snapshot, report)

        assert [c.severity for c in escalated.changes] == [Severity.CRITICAL, Severity.HIGH]

    def test_mint_like_surface_change(self, fa_snapshot):
        """Test a new mint-like function is CRITICAL."""
        change = ChangeItem(
            type=ChangeType.ABI_SURFACE_CHANGED,
            severity=Severity.HIGH,
            evidence={"has_mint_like_function": True},
        )
        report = DiffReport(changed=True, changes=[change])

        escalated = SeverityEscalator().apply(fa_snapshot, fa_snapshot, report)

        assert escalated.changes[0].severity == Severity.CRITICAL

    def test_upgrade_privilege_added(self, coin_snapshot):
        """Test a new upgrade privilege is CRITICAL."""
        change = ChangeItem(
            type=ChangeType.PRIVILEGES_CHANGED,
            severity=Severity.HIGH,
            evidence={"added_privileges": {"UPGRADE_PUBLISH": ["0xabc::m::upgrade"]}},
        )
        report = DiffReport(changed=True, changes=[change])

        escalated = SeverityEscalator().apply(coin_snapshot, coin_snapshot, report)

        assert escalated.changes[0].severity == Severity.CRITICAL

    def test_invariant_warning(self, coin_snapshot):
        """Test an invariant moving to warning is HIGH."""
        change = ChangeItem(
            type=ChangeType.INVARIANTS_CHANGED,
            severity=Severity.MEDIUM,
            evidence={"status_changes": [{"id": "X", "before": "ok", "after": "warning"}]},
        )
        report = DiffReport(changed=True, changes=[change])

        escalated = SeverityEscalator().apply(coin_snapshot, coin_snapshot, report)

        assert escalated.changes[0].severity == Severity.HIGH


class TestEscalatorProperties:
    """Tests for escalator guarantees."""

    def test_never_lowers(self, coin_snapshot):
        """Test a rule asking for less than the current severity is ignored."""
        change = ChangeItem(
            type=ChangeType.COVERAGE_CHANGED,
            severity=Severity.CRITICAL,
            before="partial",
            after="complete",
        )
        report = DiffReport(changed=True, changes=[change])

        escalated = SeverityEscalator().apply(coin_snapshot, coin_snapshot, report)

        assert escalated.changes[0].severity == Severity.CRITICAL

    def test_idempotent(self, fa_snapshot):
        """Test applying the escalator twice changes nothing more."""
        current = with_supply(fa_snapshot, supply_current_base="2000000")
        report = DiffEngine().diff(fa_snapshot, current).report
        escalator = SeverityEscalator()

        once = escalator.apply(fa_snapshot, current, report)
        twice = escalator.apply(fa_snapshot, current, once)

        assert [c.severity for c in once.changes] == [c.severity for c in twice.changes]

    def test_no_previous(self, coin_snapshot):
        """Test a report without a previous snapshot is returned untouched."""
        report = DiffReport(identity_key=coin_snapshot.identity_key)

        assert SeverityEscalator().apply(None, coin_snapshot, report) is report
