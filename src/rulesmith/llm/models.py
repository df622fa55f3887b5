"""
Data models for generation-service replies.

Replies are validated as soon as they arrive so a partially-shaped answer can
never reach the completion success path.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class GenerationMode(str, Enum):
    """What the generation service is asked to do."""

    CREATE = "create"
    MODIFY = "modify"


class GeneratedRule(BaseModel):
    """A rule produced by the generation service."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    drl: str = Field(..., min_length=1, description="Rule text (rule ... end)")
    reasoning: str = Field(..., description="Short explanation of the rule or change")

    @property
    def generated_text(self) -> str:
        return self.drl

    @property
    def rationale(self) -> str:
        return self.reasoning or "Rule generated successfully"


class GenerationUsage(BaseModel):
    """Token accounting for one call, when the provider reports it."""

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None
