"""Core Rulesmith functionality: fact schemas, rule-block location, templates, configuration, pipeline."""

from .errors import (
    ConfigurationError,
    ContentError,
    EmptyResponseError,
    ExecutionError,
    ExecutorUnavailableError,
    GenerationError,
    ProtocolError,
    RulesmithError,
    StateError,
    TransportError,
    UpstreamStatusError,
)
from .facts import FactField, describe_type, extract_schema, fact_fields
from .locator import RuleBlock, find_rule_blocks, locate_rule_block
from .rewrite import build_mock_modified_rule, indent_block
from .templates import RuleTemplate, TemplateLibrary, default_library

__all__ = [
    "RulesmithError",
    "ConfigurationError",
    "GenerationError",
    "TransportError",
    "UpstreamStatusError",
    "ContentError",
    "EmptyResponseError",
    "ProtocolError",
    "StateError",
    "ExecutionError",
    "ExecutorUnavailableError",
    "FactField",
    "describe_type",
    "extract_schema",
    "fact_fields",
    "RuleBlock",
    "find_rule_blocks",
    "locate_rule_block",
    "build_mock_modified_rule",
    "indent_block",
    "RuleTemplate",
    "TemplateLibrary",
    "default_library",
]
