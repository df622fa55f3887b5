"""
Text-generation integration for Rulesmith.

Turns a natural-language instruction (plus fact schema and document context)
into a DRL rule via OpenAI or Anthropic.
"""

from .api_client import LLMAPIClient, LLMProvider, build_client, parse_generated_rule
from .models import GeneratedRule, GenerationMode, GenerationUsage

__all__ = [
    "LLMAPIClient",
    "LLMProvider",
    "build_client",
    "parse_generated_rule",
    "GeneratedRule",
    "GenerationMode",
    "GenerationUsage",
]
