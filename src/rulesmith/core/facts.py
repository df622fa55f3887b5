"""
Fact schema extraction.

A fact object is an example record (parsed JSON) that the rules run against.
Its schema is a flat field-name -> type-name mapping used to make completions
and generation prompts field-aware.
"""

from dataclasses import dataclass
from typing import Any

SCHEMA_TYPES = ("string", "number", "boolean", "array", "null", "object")


def classify_value(value: Any) -> str:
    """Return the JSON type name of a single value."""
    if value is None:
        return "null"
    # bool is a subclass of int, so it has to be tested first
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return "object"


def extract_schema(fact_object: dict[str, Any] | None) -> dict[str, str]:
    """
    Derive a name -> type mapping from an example fact object.

    Only top-level keys are classified; array element types are not
    inspected. Absent or empty input yields an empty mapping.
    """
    if not fact_object:
        return {}
    return {key: classify_value(value) for key, value in fact_object.items()}


def describe_type(value: Any, indent: int = 0) -> str:
    """
    Render a nested type description of a value, for prompt context.

    >>> describe_type({"premium": 600, "tags": ["a"]})
    '{\\n  premium: number\\n  tags: array<string>\\n}'
    """
    spaces = "  " * indent
    if isinstance(value, (list, tuple)):
        if not value:
            return "array<unknown>"
        return f"array<{describe_type(value[0])}>"
    if isinstance(value, dict):
        if not value:
            return "object {}"
        lines = [f"{spaces}  {key}: {describe_type(item, indent + 1)}" for key, item in value.items()]
        return "{\n" + "\n".join(lines) + f"\n{spaces}}}"
    return classify_value(value)


@dataclass(frozen=True)
class FactField:
    """One field of the session's fact object."""

    name: str
    type: str
    value: Any

    @property
    def capitalized(self) -> str:
        return self.name[:1].upper() + self.name[1:]


def fact_fields(
    fact_object: dict[str, Any] | None,
    fact_schema: dict[str, str] | None = None,
) -> list[FactField]:
    """List fact fields; an explicit schema entry wins over the derived type."""
    fact_object = fact_object or {}
    fact_schema = fact_schema or {}
    names = list(fact_object)
    names.extend(name for name in fact_schema if name not in fact_object)
    return [
        FactField(
            name=name,
            type=fact_schema.get(name) or classify_value(fact_object.get(name)),
            value=fact_object.get(name),
        )
        for name in names
    ]
