"""
Wire models for the completion protocol.

Messages are JSON-RPC 2.0 objects, one per WebSocket text frame. Field names
on the wire are camelCase; the models accept either spelling.
"""

import json
from typing import Any, Literal

from lsprotocol.types import CompletionItemKind, InsertTextFormat
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from rulesmith.core.errors import ProtocolError

JSONRPC_VERSION = "2.0"

METHOD_INITIALIZE_CONTEXT = "initialize/context"
METHOD_DID_CHANGE = "textDocument/didChange"
METHOD_COMPLETION = "textDocument/completion"

CompletionMode = Literal["generate", "modify", "inline"]
CompletionTrigger = Literal["auto", "manual"]


class WireModel(BaseModel):
    """Base for camelCase wire models."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Position(WireModel):
    """Zero-based cursor location."""

    line: int = Field(default=0, ge=0)
    character: int = Field(default=0, ge=0)


class RuleRange(WireModel):
    """Zero-based span of text to replace, ends inclusive of the end line."""

    start_line: int = Field(ge=0)
    end_line: int = Field(ge=0)
    start_column: int = Field(default=0, ge=0)
    end_column: int = Field(default=0, ge=0)

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


class ContextParams(WireModel):
    """Params of ``initialize/context``."""

    fact_object: dict[str, Any] = Field(default_factory=dict)
    fact_schema: dict[str, str] | None = None
    bdd_narrative: str | None = Field(
        default=None,
        validation_alias=AliasChoices("bddNarrative", "bddTests", "bdd_narrative"),
    )
    current_document_text: str | None = Field(
        default=None,
        validation_alias=AliasChoices("currentDocumentText", "currentDrl", "current_document_text"),
    )
    fact_type: str | None = None

    @field_validator("fact_object", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class ContentChange(WireModel):
    text: str


class DidChangeParams(WireModel):
    """
    Params of ``textDocument/didChange``.

    The full document arrives either as ``contentChanges[0].text`` or as a
    top-level ``text``. There is no incremental sync.
    """

    content_changes: list[ContentChange] = Field(default_factory=list)
    text: str | None = None

    @property
    def full_text(self) -> str:
        if self.content_changes:
            return self.content_changes[0].text
        if self.text is not None:
            return self.text
        raise ProtocolError("Document change carries no text")


class CompletionParams(WireModel):
    """Params of ``textDocument/completion``."""

    mode: CompletionMode = "generate"
    position: Position = Field(default_factory=Position)
    user_prompt: str | None = None
    existing_rule: str | None = None
    rule_range: RuleRange | None = None
    trigger: CompletionTrigger = "auto"

    @field_validator("mode", mode="before")
    @classmethod
    def _default_mode(cls, value: Any) -> Any:
        return "generate" if value is None else value

    @field_validator("trigger", mode="before")
    @classmethod
    def _default_trigger(cls, value: Any) -> Any:
        return "auto" if value is None else value

    @field_validator("position", mode="before")
    @classmethod
    def _default_position(cls, value: Any) -> Any:
        return {} if value is None else value


class SuggestionItem(WireModel):
    """One completion suggestion returned to the editor."""

    label: str
    insert_text: str
    kind: CompletionItemKind = CompletionItemKind.Snippet
    detail: str | None = None
    documentation: str | None = None
    insert_text_format: InsertTextFormat | None = None
    range: RuleRange | None = None

    @property
    def is_block_replacement(self) -> bool:
        """A multi-line range replaces a whole block instead of inserting at the cursor."""
        return self.range is not None and self.range.end_line > self.range.start_line


class RpcMessage(BaseModel):
    """An incoming JSON-RPC request or notification."""

    model_config = ConfigDict(extra="ignore")

    jsonrpc: str = JSONRPC_VERSION
    id: int | str | None = None
    method: str
    params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def is_notification(self) -> bool:
        return self.id is None


def parse_message(raw: str | bytes | dict[str, Any]) -> RpcMessage:
    """
    Parse one incoming frame.

    Raises:
        ProtocolError: If the frame is not JSON, not an object, or lacks a method
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolError(f"Malformed JSON frame: {e}")
    if not isinstance(raw, dict):
        raise ProtocolError("JSON-RPC message must be an object")
    try:
        return RpcMessage.model_validate(raw)
    except ValidationError as e:
        raise ProtocolError(f"Invalid JSON-RPC message: {e.error_count()} error(s)", {"id": raw.get("id")})


def response(request_id: int | str | None, result: Any) -> dict[str, Any]:
    """Build a response envelope echoing ``request_id``."""
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def completion_result(items: list[SuggestionItem]) -> dict[str, Any]:
    return {"items": [item.to_wire() for item in items]}
