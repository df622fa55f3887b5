"""Tests for the template library."""

from rulesmith.core.templates import HIGH_PREMIUM_TEMPLATE, RuleTemplate, TemplateLibrary, default_library


class TestTemplateLibrary:
    """Tests for TemplateLibrary operations."""

    def test_default_library(self):
        library = default_library()
        assert library.labels() == ["Flag high premium greater than 500"]
        assert "Quote(premium > 500)" in library.all()[0].body

    def test_find_by_label(self):
        library = default_library()
        assert library.find_by_label("Flag high premium greater than 500") is HIGH_PREMIUM_TEMPLATE
        assert library.find_by_label("missing") is None

    def test_upsert_replaces_existing_label(self):
        library = default_library()
        replacement = RuleTemplate(label=HIGH_PREMIUM_TEMPLATE.label, body="rule \"x\"\nwhen\nthen\nend")
        library.upsert(replacement)
        assert len(library) == 1
        assert library.all()[0].body == replacement.body

    def test_upsert_appends_in_order(self):
        library = TemplateLibrary()
        library.upsert(RuleTemplate(label="b", body="B"))
        library.upsert(RuleTemplate(label="a", body="A"))
        assert library.labels() == ["b", "a"]

    def test_filter(self):
        library = TemplateLibrary([RuleTemplate(label="x1", body=""), RuleTemplate(label="y1", body="")])
        assert [t.label for t in library.filter(lambda t: t.label.startswith("x"))] == ["x1"]

    def test_all_returns_copy(self):
        """Mutating the returned list must not change the library."""
        library = default_library()
        library.all().clear()
        assert len(library) == 1

    def test_duplicate_labels_collapse_on_construction(self):
        library = TemplateLibrary([RuleTemplate(label="a", body="1"), RuleTemplate(label="a", body="2")])
        assert len(library) == 1
        assert library.find_by_label("a").body == "2"
