"""Tests for the heuristic compile check and scenario checks."""

import json

import pytest

from rulesmith.core.pipeline import analyze_drl, run_rule_tests

GOOD_DRL = """package com.example.rules;

import com.example.model.Quote;

rule "Loyalty discount"
when
    $quote : Quote(loyalCustomer == true)
then
    $quote.setDiscount(10);
end

rule "High premium flag"
when
    $quote : Quote(premium > 1000)
then
    $quote.setRequiresReview(true);
end
"""


@pytest.fixture
def fact_file(tmp_path):
    path = tmp_path / "quote.json"
    path.write_text(json.dumps({"premium": 1200, "loyalCustomer": True}))
    return path


class TestAnalyzeDrl:
    """Tests for analyze_drl."""

    def test_clean_document_passes(self):
        report = analyze_drl(GOOD_DRL)
        assert report.status == "passed"
        assert report.errors == []
        assert report.warnings == []

    def test_empty_document_fails(self):
        report = analyze_drl("")
        assert report.status == "failed"
        assert "Rule file is empty" in report.errors
        assert "No rule definitions were detected" in report.errors

    def test_missing_package_and_import_warn(self):
        report = analyze_drl('rule "x"\nwhen\nthen\nend')
        assert report.status == "passed"
        assert "Missing package declaration" in report.warnings
        assert any("Fact import for Quote" in w for w in report.warnings)

    def test_unterminated_rule_warns(self):
        report = analyze_drl(GOOD_DRL + '\nrule "Open"\nwhen\n')
        assert any('Rule "Open"' in w for w in report.warnings)

    def test_to_dict_uses_camel_case(self):
        data = analyze_drl(GOOD_DRL).to_dict()
        assert set(data) == {"status", "errors", "warnings", "durationMs"}


class TestRunRuleTests:
    """Tests for run_rule_tests."""

    def test_both_cases_pass(self, fact_file, tmp_path):
        bdd = tmp_path / "bdd.md"
        bdd.write_text("# scenarios")
        report = run_rule_tests(GOOD_DRL, fact_file, bdd)
        assert report.status == "passed"
        assert [c.name for c in report.cases] == ["Loyalty discount", "High premium flag"]
        assert "1200" in report.cases[0].details
        assert str(bdd) in report.summary

    def test_missing_threshold_fails(self, fact_file, tmp_path):
        report = run_rule_tests('rule "x"\nwhen\n    Quote(premium > 500)\nthen\nend', fact_file, tmp_path / "none.md")
        assert report.status == "failed"
        assert report.cases[1].details == "Rule missing premium threshold > 1000"
        assert report.summary.startswith("BDD scenarios not found")

    def test_missing_fact_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            run_rule_tests(GOOD_DRL, tmp_path / "missing.json", tmp_path / "bdd.md")
