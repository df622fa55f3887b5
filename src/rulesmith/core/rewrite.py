"""
Deterministic stand-in for an AI rule modification.

Used when the generation service is unavailable: the user still gets a
block-replacement suggestion built from the original rule's own condition
and action bodies.
"""

import re
from dataclasses import dataclass

from rulesmith.core.locator import extract_rule_name

SAMPLE_RULE = """rule "Sample Rule"
when
    $quote : Quote(premium > 500)
then
    $quote.setRequiresReview(true);
end"""

DEFAULT_CONDITION = "$quote : Quote(premium > 750)"
DEFAULT_ACTION = "$quote.setRequiresReview(true);\n$quote.setEscalated(true);"
MODIFIED_SUFFIX = " (Modified)"

_HEADER_RE = re.compile(r'rule\s+"[^"]*"', re.IGNORECASE)
_CONDITION_RE = re.compile(r"\bwhen\b(.*?)\bthen\b", re.IGNORECASE | re.DOTALL)
_ACTION_LAST_END_RE = re.compile(
    r"\bthen\b(.*)^[ \t]*end[ \t]*$", re.IGNORECASE | re.DOTALL | re.MULTILINE
)
_ACTION_INLINE_END_RE = re.compile(r"\bthen\b(.*?)\bend\b", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class MockModification:
    rule_name: str
    rule_text: str


def indent_block(text: str, spaces: int = 4) -> str:
    """Trim every line, indent the non-empty ones and blank the rest."""
    pad = " " * spaces
    return "\n".join(pad + line.strip() if line.strip() else "" for line in text.split("\n"))


def _action_body(rule_text: str) -> str:
    match = _ACTION_LAST_END_RE.search(rule_text) or _ACTION_INLINE_END_RE.search(rule_text)
    return match.group(1).strip() if match else ""


def build_mock_modified_rule(existing_rule: str | None, user_prompt: str | None = None) -> MockModification:
    """
    Rename the rule with a "(Modified)" suffix and re-indent its bodies.

    ``user_prompt`` is not interpreted; it only exists so callers can pass
    the same arguments they would give the generation client.
    """
    base_rule = existing_rule if existing_rule and existing_rule.strip() else SAMPLE_RULE

    base_name = extract_rule_name(base_rule) or "Rule"
    new_name = f"{base_name}{MODIFIED_SUFFIX}"

    # Keywords inside the quoted name must not be taken as section markers
    body = _HEADER_RE.sub("", base_rule, count=1)
    condition_match = _CONDITION_RE.search(body)
    raw_condition = (condition_match.group(1).strip() if condition_match else "") or DEFAULT_CONDITION
    raw_action = _action_body(body) or DEFAULT_ACTION

    rule_text = "\n".join(
        [
            f'rule "{new_name}"',
            "",
            "when",
            indent_block(raw_condition),
            "",
            "then",
            indent_block(raw_action),
            "",
            "end",
        ]
    )
    return MockModification(rule_name=new_name, rule_text=rule_text)
