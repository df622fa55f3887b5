"""
Deterministic inline completions.

Suggestions are keyed on the text immediately before the cursor and on the
session's fact fields:

- after ``Type(`` -> field comparisons (``premium > 0``, ``loyalCustomer == true``)
- after ``$var.`` -> getter/setter method names
- elsewhere -> rule skeleton, keywords, the fact type and its variable, plus
  field comparisons inside ``when`` and method calls inside ``then``
"""

import json
import re
from dataclasses import dataclass

from lsprotocol.types import CompletionItemKind, InsertTextFormat

from rulesmith.core.facts import FactField
from rulesmith.core.locator import RULE_END_RE, RULE_HEADER_RE, split_lines

from .protocol import Position, SuggestionItem
from .session import Session

CONSTRUCTOR_RE = re.compile(r"(?<![.\w])([A-Z]\w*)\s*\(([^()]*)$")
VARIABLE_DOT_RE = re.compile(r"(\$\w+)\.(\w*)$")
CLAUSE_KEYWORD_RE = re.compile(r"\b(when|then)\b")

DRL_KEYWORDS = (
    ("when", "when"),
    ("then", "then"),
    ("end", "end"),
    ("package", "package "),
    ("import", "import "),
)

RULE_SKELETON = SuggestionItem(
    label='rule "Rule Name"',
    kind=CompletionItemKind.Snippet,
    detail="DRL rule template",
    insert_text='rule "${1:Rule Name}"\nwhen\n    $2\nthen\n    $3\nend',
    insert_text_format=InsertTextFormat.Snippet,
)

_SETTER_DEFAULTS = {"boolean": "true", "number": "0"}


@dataclass(frozen=True)
class CursorContext:
    """What the user is typing, derived from the document and cursor."""

    line_text: str
    before_cursor: str
    after_cursor: str
    current_word: str
    after_constructor: bool = False
    constructor_type: str | None = None
    after_variable_dot: bool = False
    variable: str | None = None
    in_when_clause: bool = False
    in_then_clause: bool = False


def _clause_at_cursor(lines: list[str], before_cursor: str) -> str | None:
    """Return "when", "then" or None for the rule body containing the cursor."""
    clause = None
    for line in reversed(lines + [before_cursor]):
        if RULE_HEADER_RE.match(line):
            return clause
        if RULE_END_RE.match(line):
            return None
        if clause is None:
            keywords = CLAUSE_KEYWORD_RE.findall(line)
            if keywords:
                clause = keywords[-1]
    return None


def parse_cursor_context(document_text: str, position: Position) -> CursorContext:
    """Inspect the text around ``position``. Out-of-range positions yield an empty line."""
    lines = split_lines(document_text)
    line_text = lines[position.line] if position.line < len(lines) else ""
    before = line_text[: position.character]
    after = line_text[position.character :]
    words = before.strip().split()
    current_word = words[-1] if words else ""

    constructor = CONSTRUCTOR_RE.search(before)
    variable_dot = VARIABLE_DOT_RE.search(before)
    clause = _clause_at_cursor(lines[: min(position.line, len(lines))], before)

    return CursorContext(
        line_text=line_text,
        before_cursor=before,
        after_cursor=after,
        current_word=current_word,
        after_constructor=constructor is not None and variable_dot is None,
        constructor_type=constructor.group(1) if constructor else None,
        after_variable_dot=variable_dot is not None,
        variable=variable_dot.group(1) if variable_dot else None,
        in_when_clause=clause == "when",
        in_then_clause=clause == "then",
    )


def _comparison(field: FactField) -> str:
    if field.type == "number":
        return f"{field.name} > 0"
    if field.type == "boolean":
        return f"{field.name} == true"
    if field.type == "string":
        example = field.value if isinstance(field.value, str) else ""
        return f"{field.name} == {json.dumps(example)}"
    if field.type == "array":
        first = field.value[0] if isinstance(field.value, list) and field.value else ""
        return f"{field.name} contains {json.dumps(first)}"
    return f"{field.name} != null"


def field_comparisons(fields: list[FactField]) -> list[SuggestionItem]:
    """One comparison suggestion per fact field."""
    items = []
    for field in fields:
        text = _comparison(field)
        items.append(
            SuggestionItem(
                label=text,
                kind=CompletionItemKind.Field,
                detail=f"{field.type} field",
                insert_text=text,
            )
        )
    return items


def _snippet_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("$", "\\$").replace("}", "\\}")


def fact_methods(fields: list[FactField], receiver: str | None = None) -> list[SuggestionItem]:
    """
    Getter and setter suggestions for each fact field.

    With ``receiver`` (e.g. ``$quote``) the calls are fully qualified.
    """
    prefix = f"{receiver}." if receiver else ""
    items = []
    for field in fields:
        getter = f"is{field.capitalized}()" if field.type == "boolean" else f"get{field.capitalized}()"
        items.append(
            SuggestionItem(
                label=prefix + getter,
                kind=CompletionItemKind.Method,
                detail=field.type,
                insert_text=prefix + getter,
            )
        )
        default = _SETTER_DEFAULTS.get(field.type, '""')
        items.append(
            SuggestionItem(
                label=f"{prefix}set{field.capitalized}({default})",
                kind=CompletionItemKind.Method,
                detail="void",
                insert_text=f"{_snippet_escape(prefix)}set{field.capitalized}(${{1:{_snippet_escape(default)}}})",
                insert_text_format=InsertTextFormat.Snippet,
            )
        )
    return items


def _general_items(session: Session, context: CursorContext) -> list[SuggestionItem]:
    items = [RULE_SKELETON]
    items.extend(
        SuggestionItem(label=label, kind=CompletionItemKind.Keyword, detail="DRL keyword", insert_text=text)
        for label, text in DRL_KEYWORDS
    )
    items.append(
        SuggestionItem(
            label=session.fact_type,
            kind=CompletionItemKind.Class,
            detail=f"{session.fact_type} fact object",
            insert_text=session.fact_type,
        )
    )
    items.append(
        SuggestionItem(
            label=session.fact_variable,
            kind=CompletionItemKind.Variable,
            detail=f"{session.fact_type} variable",
            insert_text=session.fact_variable,
        )
    )
    if context.in_when_clause:
        items.extend(field_comparisons(session.fields))
    elif context.in_then_clause:
        items.extend(fact_methods(session.fields, receiver=session.fact_variable))
    return items


def inline_suggestions(session: Session, position: Position) -> list[SuggestionItem]:
    """Build inline suggestions for the cursor position in the session's document."""
    context = parse_cursor_context(session.document_text, position)
    if context.after_variable_dot:
        return fact_methods(session.fields)
    if context.after_constructor:
        return field_comparisons(session.fields)
    return _general_items(session, context)
