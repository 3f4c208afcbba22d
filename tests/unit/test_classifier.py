"""Unit tests for function classification and privilege extraction."""

from fa_audit.core.classifier import categories_for, classify_functions
from fa_audit.core.privileges import build_privilege_report, extract_privileges, privilege_class_for
from fa_audit.models.findings import PrivilegeClass

MODULE_ID = "0xabc::my_coin"


class TestClassifyFunctions:
    """Tests for classify_functions."""

    def test_categories(self):
        """Test names land in the expected categories."""
        classified = classify_functions(
            ["mint", "burn_from", "set_admin", "pause", "set_hook", "upgrade", "set_symbol", "transfer"]
        )

        assert classified.mint == ["mint"]
        assert classified.burn == ["burn_from"]
        assert classified.admin == ["set_admin"]
        assert classified.freeze == ["pause"]
        assert classified.hook_config == ["set_hook"]
        assert classified.upgrade == ["upgrade"]
        assert classified.metadata == ["set_symbol"]

    def test_case_insensitive(self):
        """Test matching ignores case."""
        assert classify_functions(["MINT"]).mint == ["MINT"]

    def test_whole_words_only(self):
        """Test a keyword inside a longer identifier does not match."""
        assert categories_for("mintage") == []
        assert categories_for("transfer") == []

    def test_overlap_allowed(self):
        """Test a name may fall into several categories."""
        categories = categories_for("update_metadata")

        assert "metadata" in categories
        assert categories_for("update") == ["hook_config"]

    def test_order_preserved(self):
        """Test input order is kept within a category."""
        classified = classify_functions(["mint_to", "faucet", "mint"])

        assert classified.mint == ["mint_to", "faucet", "mint"]


class TestPrivileges:
    """Tests for privilege extraction."""

    def test_first_match_wins(self):
        """Test the fixed precedence of privilege classes."""
        assert privilege_class_for("mint") == PrivilegeClass.MINT
        assert privilege_class_for("freeze") == PrivilegeClass.FREEZE_RESTRICT
        assert privilege_class_for("set_owner") == PrivilegeClass.ADMIN_OWNERSHIP
        assert privilege_class_for("publish") == PrivilegeClass.UPGRADE_PUBLISH
        assert privilege_class_for("set_name") == PrivilegeClass.METADATA_MUTATION
        assert privilege_class_for("set_router") == PrivilegeClass.HOOK_CONFIG
        assert privilege_class_for("transfer") is None

    def test_extract_with_evidence(self):
        """Test entry and exposed evidence flags."""
        findings = extract_privileges(MODULE_ID, ["mint", "transfer"], ["mint", "burn"])

        assert [f.fn_name for f in findings] == ["mint", "burn"]
        mint, burn = findings
        assert mint.evidence.is_entry is True
        assert mint.evidence.is_exposed is True
        assert burn.evidence.is_entry is False
        assert burn.evidence.is_exposed is True
        assert mint.key == f"{MODULE_ID}::mint"

    def test_build_report(self):
        """Test findings are grouped with every class present."""
        findings = extract_privileges(MODULE_ID, ["mint", "set_admin"])
        report = build_privilege_report(findings, has_opaque_control=True)

        assert set(report.by_class) == set(PrivilegeClass)
        assert [f.fn_name for f in report.by_class[PrivilegeClass.MINT]] == ["mint"]
        assert [f.fn_name for f in report.by_class[PrivilegeClass.ADMIN_OWNERSHIP]] == ["set_admin"]
        assert report.by_class[PrivilegeClass.BURN] == []
        assert report.has_opaque_control is True
        assert len(report.all) == 2
