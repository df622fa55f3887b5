"""Tests for inline pattern-matched suggestions."""

from lsprotocol.types import CompletionItemKind, InsertTextFormat

from rulesmith.lsp.inline import inline_suggestions, parse_cursor_context
from rulesmith.lsp.protocol import Position
from rulesmith.lsp.session import SessionStore

DOCUMENT = """rule "R1"
when
    $quote : Quote(
then
    $quote.
end
"""


def _session(document: str, fact: dict):
    store = SessionStore()
    store.create_session("c")
    return store.update_context("c", fact, document_text=document)


class TestParseCursorContext:
    """Tests for parse_cursor_context."""

    def test_after_constructor(self):
        context = parse_cursor_context(DOCUMENT, Position(line=2, character=19))
        assert context.before_cursor == "    $quote : Quote("
        assert context.after_constructor is True
        assert context.constructor_type == "Quote"
        assert context.in_when_clause is True
        assert context.in_then_clause is False

    def test_constructor_with_existing_arguments(self):
        context = parse_cursor_context("    Quote(premium > 5, ", Position(line=0, character=23))
        assert context.after_constructor is True

    def test_closed_constructor(self):
        context = parse_cursor_context("    Quote(premium > 5) ", Position(line=0, character=23))
        assert context.after_constructor is False

    def test_after_variable_dot(self):
        context = parse_cursor_context(DOCUMENT, Position(line=4, character=11))
        assert context.after_variable_dot is True
        assert context.variable == "$quote"
        assert context.in_then_clause is True

    def test_outside_rule(self):
        context = parse_cursor_context(DOCUMENT, Position(line=6, character=0))
        assert context.in_when_clause is False
        assert context.in_then_clause is False

    def test_position_past_document(self):
        context = parse_cursor_context("rule", Position(line=10, character=4))
        assert context.line_text == ""
        assert context.current_word == ""

    def test_current_word(self):
        context = parse_cursor_context("    $quote : Quo", Position(line=0, character=16))
        assert context.current_word == "Quo"

    def test_crlf_document(self):
        context = parse_cursor_context(DOCUMENT.replace("\n", "\r\n"), Position(line=2, character=19))
        assert context.line_text == "    $quote : Quote("
        assert context.after_cursor == ""
        assert context.in_when_clause is True


class TestInlineSuggestions:
    """Tests for inline_suggestions."""

    def test_constructor_suggests_field_comparisons(self):
        session = _session(DOCUMENT, {"premium": 600, "loyalCustomer": True})
        labels = [item.label for item in inline_suggestions(session, Position(line=2, character=19))]
        assert "premium > 0" in labels
        assert "loyalCustomer == true" in labels

    def test_comparisons_for_other_types(self):
        session = _session(DOCUMENT, {"state": "CA", "tags": ["vip"], "agent": None, "address": {}})
        items = inline_suggestions(session, Position(line=2, character=19))
        assert [item.insert_text for item in items] == [
            'state == "CA"',
            'tags contains "vip"',
            "agent != null",
            "address != null",
        ]
        assert all(item.kind == CompletionItemKind.Field for item in items)

    def test_variable_dot_suggests_methods(self):
        session = _session(DOCUMENT, {"premium": 600, "loyalCustomer": True})
        items = inline_suggestions(session, Position(line=4, character=11))
        labels = [item.label for item in items]
        assert labels == ["getPremium()", "setPremium(0)", "isLoyalCustomer()", "setLoyalCustomer(true)"]
        setter = items[1]
        assert setter.insert_text == "setPremium(${1:0})"
        assert setter.insert_text_format == InsertTextFormat.Snippet
        assert setter.kind == CompletionItemKind.Method

    def test_general_suggestions_outside_rule(self):
        session = _session(DOCUMENT, {"premium": 600})
        items = inline_suggestions(session, Position(line=6, character=0))
        labels = [item.label for item in items]
        assert labels[0] == 'rule "Rule Name"'
        assert {"when", "then", "end", "package", "import", "Quote", "$quote"} <= set(labels)
        assert "premium > 0" not in labels

    def test_general_suggestions_in_when_include_comparisons(self):
        document = 'rule "R"\nwhen\n    \nthen\nend'
        session = _session(document, {"premium": 600})
        labels = [item.label for item in inline_suggestions(session, Position(line=2, character=4))]
        assert "premium > 0" in labels

    def test_general_suggestions_in_then_include_qualified_methods(self):
        document = 'rule "R"\nwhen\nthen\n    \nend'
        session = _session(document, {"premium": 600})
        items = inline_suggestions(session, Position(line=3, character=4))
        setter = next(item for item in items if item.label == "$quote.setPremium(0)")
        assert setter.insert_text == "\\$quote.setPremium(${1:0})"

    def test_no_fact_fields(self):
        session = _session(DOCUMENT, {})
        assert inline_suggestions(session, Position(line=2, character=19)) == []
