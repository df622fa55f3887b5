"""
Rulesmith Language Server implementation using pygls.

Serves one editor over stdio, so it owns exactly one orchestrator session.
Standard LSP completion maps to inline mode; generate and modify are exposed
as custom requests.
"""

import logging
from collections.abc import Mapping
from typing import Any

from lsprotocol.types import (
    INITIALIZE,
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DOCUMENT_SYMBOL,
    CompletionItem,
    CompletionList,
    CompletionOptions,
    CompletionParams,
    CompletionTriggerKind,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    DocumentSymbol,
    DocumentSymbolParams,
    InitializeParams,
    MarkupContent,
    MarkupKind,
    Position,
    Range,
    SymbolKind,
    TextEdit,
)
from pydantic import ValidationError
from pygls.lsp.server import LanguageServer

from rulesmith._version import get_version
from rulesmith.core.config import Settings, load_settings
from rulesmith.core.errors import StateError
from rulesmith.core.locator import find_rule_blocks

from . import protocol
from .orchestrator import CompletionOrchestrator, build_orchestrator

logger = logging.getLogger(__name__)

STDIO_CONNECTION_ID = "stdio"

METHOD_INITIALIZE_CONTEXT = "rulesmith/initializeContext"
METHOD_GENERATE_RULE = "rulesmith/generateRule"
METHOD_MODIFY_RULE = "rulesmith/modifyRule"

server = LanguageServer("rulesmith-lsp", f"v{get_version()}")
server.orchestrator = None


def attach_orchestrator(ls: LanguageServer, orchestrator: CompletionOrchestrator) -> None:
    """Bind an orchestrator to the server and open its single session."""
    ls.orchestrator = orchestrator
    orchestrator.open_connection(STDIO_CONNECTION_ID)


def _orchestrator(ls: LanguageServer) -> CompletionOrchestrator:
    if ls.orchestrator is None:
        attach_orchestrator(ls, build_orchestrator(load_settings()))
    return ls.orchestrator


def _as_dict(value: Any) -> Any:
    """Normalize custom-request params (dicts, namedtuples or attrs objects) to plain JSON data."""
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return {key: _as_dict(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)) and not hasattr(value, "_asdict"):
        return [_as_dict(item) for item in value]
    if hasattr(value, "_asdict"):
        return _as_dict(value._asdict())
    if hasattr(value, "__attrs_attrs__"):
        return {a.name: _as_dict(getattr(value, a.name)) for a in value.__attrs_attrs__}
    return value


def _to_lsp_item(item: protocol.SuggestionItem) -> CompletionItem:
    text_edit = None
    if item.range is not None:
        text_edit = TextEdit(
            range=Range(
                start=Position(line=item.range.start_line, character=item.range.start_column),
                end=Position(line=item.range.end_line, character=item.range.end_column),
            ),
            new_text=item.insert_text,
        )
    return CompletionItem(
        label=item.label,
        kind=item.kind,
        detail=item.detail,
        documentation=(
            MarkupContent(kind=MarkupKind.Markdown, value=item.documentation) if item.documentation else None
        ),
        insert_text=None if text_edit else item.insert_text,
        insert_text_format=item.insert_text_format,
        text_edit=text_edit,
    )


def _sync_document(ls: LanguageServer, uri: str) -> None:
    document = ls.workspace.get_text_document(uri)
    try:
        _orchestrator(ls).sessions.update_document(STDIO_CONNECTION_ID, document.source)
    except StateError as e:
        logger.warning(f"Document sync ignored: {e}")


@server.feature(INITIALIZE)
def initialize(ls: LanguageServer, params: InitializeParams):
    """Accept fact context passed as initialization options."""
    options = _as_dict(params.initialization_options)
    if isinstance(options, dict) and options.get("factObject") is not None:
        try:
            context = protocol.ContextParams.model_validate(options)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid initialization options: {e.error_count()} error(s)")
            return
        _orchestrator(ls).sessions.update_context(
            STDIO_CONNECTION_ID,
            fact_object=context.fact_object,
            fact_schema=context.fact_schema,
            bdd_narrative=context.bdd_narrative,
            document_text=context.current_document_text,
            fact_type=context.fact_type,
        )
        logger.info("Session initialized from initialization options")


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams):
    """Handle document open."""
    logger.info(f"Opened: {params.text_document.uri}")
    _sync_document(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams):
    """Handle document change; pygls has already applied the edits."""
    _sync_document(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_COMPLETION, CompletionOptions(trigger_characters=["(", ".", "$"]))
async def completion(ls: LanguageServer, params: CompletionParams) -> CompletionList:
    """Inline completion; an explicit invocation may use the generation service."""
    manual = params.context is not None and params.context.trigger_kind == CompletionTriggerKind.Invoked
    request = protocol.CompletionParams(
        mode="inline",
        position=protocol.Position(line=params.position.line, character=params.position.character),
        trigger="manual" if manual else "auto",
    )
    items = await _orchestrator(ls).complete(STDIO_CONNECTION_ID, request) or []
    return CompletionList(is_incomplete=False, items=[_to_lsp_item(item) for item in items])


@server.feature(TEXT_DOCUMENT_DOCUMENT_SYMBOL)
def document_symbol(ls: LanguageServer, params: DocumentSymbolParams) -> list[DocumentSymbol]:
    """List rule blocks for the outline view."""
    document = ls.workspace.get_text_document(params.text_document.uri)
    symbols = []
    for block in find_rule_blocks(document.source):
        header_end = len(block.full_text.split("\n", 1)[0])
        symbols.append(
            DocumentSymbol(
                name=block.name,
                kind=SymbolKind.Function,
                detail="rule",
                range=Range(
                    start=Position(line=block.start_line, character=block.start_column),
                    end=Position(line=block.end_line, character=block.end_column),
                ),
                selection_range=Range(
                    start=Position(line=block.start_line, character=block.start_column),
                    end=Position(line=block.start_line, character=header_end),
                ),
            )
        )
    return symbols


@server.feature(METHOD_INITIALIZE_CONTEXT)
def initialize_context(ls: LanguageServer, params: Any) -> dict[str, Any]:
    """Custom request: load fact object, schema and BDD narrative into the session."""
    try:
        context = protocol.ContextParams.model_validate(_as_dict(params))
    except ValidationError as e:
        logger.warning(f"Ignoring {METHOD_INITIALIZE_CONTEXT} with invalid params: {e.error_count()} error(s)")
        return {"initialized": False}
    _orchestrator(ls).sessions.update_context(
        STDIO_CONNECTION_ID,
        fact_object=context.fact_object,
        fact_schema=context.fact_schema,
        bdd_narrative=context.bdd_narrative,
        document_text=context.current_document_text,
        fact_type=context.fact_type,
    )
    return {"initialized": True}


async def _complete_with_mode(ls: LanguageServer, params: Any, mode: str) -> dict[str, Any]:
    data = _as_dict(params)
    data["mode"] = mode
    try:
        request = protocol.CompletionParams.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Invalid {mode} params: {e.error_count()} error(s); returning no items")
        return protocol.completion_result([])
    items = await _orchestrator(ls).complete(STDIO_CONNECTION_ID, request) or []
    return protocol.completion_result(items)


@server.feature(METHOD_GENERATE_RULE)
async def generate_rule(ls: LanguageServer, params: Any) -> dict[str, Any]:
    """Custom request: generate a new rule (templates on failure)."""
    return await _complete_with_mode(ls, params, "generate")


@server.feature(METHOD_MODIFY_RULE)
async def modify_rule(ls: LanguageServer, params: Any) -> dict[str, Any]:
    """Custom request: rewrite the rule block at the cursor or ``ruleRange``."""
    return await _complete_with_mode(ls, params, "modify")


def start_server(settings: Settings | None = None) -> None:
    """Start the Rulesmith language server on stdio."""
    logger.info("Starting Rulesmith Language Server...")
    if server.orchestrator is None:
        attach_orchestrator(server, build_orchestrator(settings or load_settings()))
    server.start_io()


if __name__ == "__main__":
    start_server()
