"""
Prompt construction for rule generation and modification.

Both modes ask for the same strict two-key JSON reply: ``drl`` (the rule
text) and ``reasoning`` (a short explanation).
"""

import json
from typing import Any

from rulesmith.core.facts import FactField, describe_type, fact_fields

RESPONSE_FORMAT_SPEC = """Response format (JSON):
{
  "drl": "rule \\"Rule Name\\"\\nwhen\\n    ...\\nthen\\n    ...\\nend",
  "reasoning": "brief explanation"
}"""

CREATE_SYSTEM_PROMPT = f"""You are an expert Drools Rule Language (DRL) developer. Write a new rule for the user's request.

IMPORTANT:
- Return ONLY the new rule (rule "name" ... end block)
- DO NOT include package or import statements
- DO NOT repeat rules that already exist in the file
- Use only fields that exist on the fact object
- Use getter/setter style method calls on bound variables in the then clause

{RESPONSE_FORMAT_SPEC}

Return ONLY the JSON object. Do not include any explanatory text before or after the JSON."""

MODIFY_SYSTEM_PROMPT = f"""You are an expert Drools Rule Language (DRL) developer. Modify the existing rule based on the user's request.

IMPORTANT:
- Return ONLY the modified rule (rule "name" ... end block)
- DO NOT include package, import, or other existing rules
- DO NOT repeat the entire DRL file
- Preserve the rule structure unless explicitly asked to change it
- Make only the modifications requested by the user

{RESPONSE_FORMAT_SPEC}

Return ONLY the JSON object. Do not include any explanatory text before or after the JSON."""


def _field_type(field: FactField, fact_schema: dict[str, str] | None) -> str:
    if (fact_schema or {}).get(field.name) or not isinstance(field.value, (dict, list, tuple)):
        return field.type
    return describe_type(field.value, indent=1)


def build_fact_context(fact_object: dict[str, Any] | None, fact_schema: dict[str, str] | None) -> str:
    """Describe the fact schema with one line per field (name, type, example value).

    Nested objects and arrays are expanded so the model sees their member types.
    """
    fields = fact_fields(fact_object, fact_schema)
    if not fields:
        return "No fact object available"
    lines = [
        f"  - {f.name} ({_field_type(f, fact_schema)}): {json.dumps(f.value, default=str)}" for f in fields
    ]
    return "Fact Object Schema:\n" + "\n".join(lines)


def _document_context(document_text: str) -> str:
    if document_text and document_text.strip():
        return (
            "Existing DRL file (for context only - DO NOT repeat this):\n"
            f"```\n{document_text}\n```"
        )
    return "No existing DRL code."


def build_create_message(
    instruction: str,
    document_text: str,
    fact_object: dict[str, Any] | None,
    fact_schema: dict[str, str] | None,
) -> str:
    """Build the user message for creating a new rule."""
    return f"""User Request: {instruction}

{build_fact_context(fact_object, fact_schema)}

{_document_context(document_text)}

IMPORTANT: Write ONE new rule for the request above. Return JSON with:
- "drl": Only the new rule block (rule "name" ... end), no package/import
- "reasoning": Brief explanation of what the rule does"""


def build_modify_message(
    instruction: str,
    existing_rule_text: str,
    document_text: str,
    fact_object: dict[str, Any] | None,
    fact_schema: dict[str, str] | None,
) -> str:
    """Build the user message for modifying an existing rule."""
    return f"""User Request: {instruction}

Existing Rule to Modify:
```
{existing_rule_text}
```

{build_fact_context(fact_object, fact_schema)}

{_document_context(document_text)}

IMPORTANT: Modify ONLY the rule shown above based on the user's request. Return JSON with:
- "drl": Only the modified rule block (rule "name" ... end), no package/import
- "reasoning": Brief explanation of the modifications made"""
