"""
Completion orchestration.

Routes JSON-RPC messages from one connection to its session, and completion
requests to the template library, the rule-block locator, the inline pattern
matcher, or the text-generation client. Whatever happens, a completion
request gets an answer: generation failures fall back to templates (generate)
or a deterministic rewrite (modify), and timeouts never leave the editor
waiting.

Session state machine::

    Uninitialized --initialize/context--> Initialized
    Initialized   --textDocument/didChange--> Initialized   (no response)
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from lsprotocol.types import CompletionItemKind
from pydantic import ValidationError

from rulesmith.core.config import Settings
from rulesmith.core.errors import ConfigurationError, GenerationError, ProtocolError, StateError
from rulesmith.core.locator import locate_rule_block
from rulesmith.core.logging import get_lsp_logger, log_with_context
from rulesmith.core.rewrite import build_mock_modified_rule
from rulesmith.core.templates import RuleTemplate, TemplateLibrary, default_library
from rulesmith.llm.api_client import LLMAPIClient, build_client
from rulesmith.llm.models import GeneratedRule

from .inline import inline_suggestions
from .protocol import (
    METHOD_COMPLETION,
    METHOD_DID_CHANGE,
    METHOD_INITIALIZE_CONTEXT,
    CompletionParams,
    ContextParams,
    DidChangeParams,
    RpcMessage,
    RuleRange,
    SuggestionItem,
    completion_result,
    parse_message,
    response,
)
from .session import Session, SessionStore

logger = get_lsp_logger()

DEFAULT_GENERATE_INSTRUCTION = "Generate a DRL rule"
DEFAULT_INLINE_INSTRUCTION = "Complete the rule at the cursor"
DEFAULT_MODIFY_INSTRUCTION = "user modification request"

Handler = Callable[[str, RpcMessage], Awaitable[dict[str, Any] | None]]


def _generated_item(result: GeneratedRule) -> SuggestionItem:
    return SuggestionItem(
        label="Generated DRL Rule",
        kind=CompletionItemKind.Snippet,
        detail=result.rationale,
        insert_text=result.generated_text,
        documentation=(
            f"**Reasoning:**\n{result.rationale}\n\n"
            f"**Generated DRL:**\n```drl\n{result.generated_text}\n```"
        ),
    )


class CompletionOrchestrator:
    """
    Protocol core shared by every connection.

    Args:
        sessions: Session store, one entry per live connection
        templates: Shared template library (the generate-mode fallback)
        llm_client: Generation client, or None to run fallback-only
        generation_timeout: Seconds to wait for a generate/modify call
        inline_timeout: Seconds to wait for the inline pattern matcher
    """

    def __init__(
        self,
        sessions: SessionStore,
        templates: TemplateLibrary,
        llm_client: LLMAPIClient | None = None,
        generation_timeout: float = 30.0,
        inline_timeout: float = 0.5,
    ):
        self.sessions = sessions
        self.templates = templates
        self.llm_client = llm_client
        self.generation_timeout = generation_timeout
        self.inline_timeout = inline_timeout
        self._handlers: dict[str, Handler] = {
            METHOD_INITIALIZE_CONTEXT: self._on_initialize_context,
            METHOD_DID_CHANGE: self._on_did_change,
            METHOD_COMPLETION: self._on_completion,
        }

    @property
    def generation_enabled(self) -> bool:
        return self.llm_client is not None

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    def open_connection(self, connection_id: str | None = None) -> str:
        """Start a fresh, uninitialized session and return its connection id."""
        connection_id = connection_id or str(uuid.uuid4())
        self.sessions.create_session(connection_id)
        logger.info(f"Connection opened: {connection_id} ({len(self.sessions)} active)")
        return connection_id

    def close_connection(self, connection_id: str) -> None:
        self.sessions.destroy_session(connection_id)
        logger.info(f"Connection closed: {connection_id} ({len(self.sessions)} active)")

    def status(self) -> dict[str, Any]:
        return {
            "sessions": len(self.sessions),
            "templates": len(self.templates),
            "generation": self.generation_enabled,
        }

    # =========================================================================
    # Message dispatch
    # =========================================================================

    async def handle_message(self, connection_id: str, raw: str | bytes | dict[str, Any]) -> dict[str, Any] | None:
        """
        Handle one incoming frame and return the response envelope, if any.

        Notifications, ignored messages and responses discarded because the
        connection went away all return None.
        """
        try:
            message = parse_message(raw)
        except ProtocolError as e:
            logger.warning(f"Ignoring malformed message on {connection_id}: {e}")
            return None

        handler = self._handlers.get(message.method)
        if handler is None:
            logger.warning(f"Ignoring unknown method {message.method} (id={message.id})")
            return None

        try:
            return await handler(connection_id, message)
        except Exception:
            logger.exception(f"Unhandled error in {message.method} on {connection_id}")
            if message.is_notification:
                return None
            empty = {"items": []} if message.method == METHOD_COMPLETION else None
            return response(message.id, empty)

    async def _on_initialize_context(self, connection_id: str, message: RpcMessage) -> dict[str, Any] | None:
        try:
            params = ContextParams.model_validate(message.params)
        except ValidationError as e:
            logger.warning(f"Ignoring {METHOD_INITIALIZE_CONTEXT} with invalid params: {e.error_count()} error(s)")
            return None

        try:
            session = self.sessions.update_context(
                connection_id,
                fact_object=params.fact_object,
                fact_schema=params.fact_schema,
                bdd_narrative=params.bdd_narrative,
                document_text=params.current_document_text,
                fact_type=params.fact_type,
            )
        except StateError as e:
            logger.warning(f"Ignoring {METHOD_INITIALIZE_CONTEXT}: {e}")
            return None

        log_with_context(
            logger,
            logging.INFO,
            f"Session {connection_id} initialized",
            fact_fields={f.name: f.type for f in session.fields},
            bdd_lines=len(session.bdd_narrative.split("\n")) if session.bdd_narrative else 0,
            document_chars=len(session.document_text),
        )
        if message.is_notification:
            return None
        return response(message.id, {"initialized": True})

    async def _on_did_change(self, connection_id: str, message: RpcMessage) -> None:
        try:
            text = DidChangeParams.model_validate(message.params).full_text
            session = self.sessions.update_document(connection_id, text)
        except (ValidationError, ProtocolError, StateError) as e:
            logger.warning(f"Ignoring {METHOD_DID_CHANGE} on {connection_id}: {e}")
            return None
        logger.debug(f"Document updated on {connection_id}: {len(session.document_text)} chars")
        return None

    async def _on_completion(self, connection_id: str, message: RpcMessage) -> dict[str, Any] | None:
        try:
            params = CompletionParams.model_validate(message.params)
        except ValidationError as e:
            logger.warning(f"Invalid completion params (id={message.id}): {e.error_count()} error(s); returning no items")
            items: list[SuggestionItem] | None = []
        else:
            items = await self.complete(connection_id, params)

        if items is None or message.is_notification:
            return None
        return response(message.id, completion_result(items))

    # =========================================================================
    # Completion
    # =========================================================================

    async def complete(self, connection_id: str, params: CompletionParams) -> list[SuggestionItem] | None:
        """
        Produce suggestions for a completion request.

        Returns None when the session disappeared while the request was being
        served; the result has nowhere to go and is dropped.
        """
        session = self.sessions.get(connection_id)
        if session is None:
            logger.warning(f"Dropping completion for unknown connection {connection_id}")
            return None
        if not session.initialized:
            logger.info(f"Completion before initialization on {connection_id}; returning no items")
            return []

        logger.info(
            f"Completion request on {connection_id}: mode={params.mode} "
            f"position={params.position.line}:{params.position.character} trigger={params.trigger}"
        )
        if params.mode == "inline":
            items = await self._complete_inline(session, params)
        elif params.mode == "modify":
            items = await self._complete_modify(session, params)
        else:
            items = await self._complete_generate(session, params)

        if self.sessions.get(connection_id) is not session:
            logger.info(f"Connection {connection_id} closed during {params.mode} request; discarding result")
            return None

        logger.info(f"Completion {params.mode} on {connection_id} -> {len(items)} item(s)")
        return items

    async def _generate(self, call: Callable[..., GeneratedRule], *args: Any) -> GeneratedRule:
        """Run a blocking generation call off the event loop, under the generation timeout."""
        return await asyncio.wait_for(asyncio.to_thread(call, *args), timeout=self.generation_timeout)

    def template_items(self) -> list[SuggestionItem]:
        return [
            SuggestionItem(
                label=template.label,
                kind=CompletionItemKind.Snippet,
                detail=template.detail,
                documentation=template.documentation or None,
                insert_text=template.body,
            )
            for template in self.templates.all()
        ]

    async def _complete_generate(self, session: Session, params: CompletionParams) -> list[SuggestionItem]:
        if self.llm_client is None:
            logger.info("Generation not configured; returning templates")
            return self.template_items()

        try:
            result = await self._generate(
                self.llm_client.generate_new_rule,
                params.user_prompt or DEFAULT_GENERATE_INSTRUCTION,
                session.document_text,
                session.fact_object,
                session.fact_schema,
            )
        except (GenerationError, asyncio.TimeoutError) as e:
            logger.warning(f"Rule generation failed, falling back to templates: {type(e).__name__}: {e}")
            return self.template_items()

        return [_generated_item(result)]

    async def _complete_modify(self, session: Session, params: CompletionParams) -> list[SuggestionItem]:
        existing_rule = params.existing_rule
        rule_range: RuleRange | None = params.rule_range

        if not (existing_rule and existing_rule.strip()) or rule_range is None:
            block = locate_rule_block(session.document_text, params.position.line)
            if block is not None:
                if not (existing_rule and existing_rule.strip()):
                    existing_rule = block.full_text
                if rule_range is None:
                    rule_range = block.to_range()

        if not (existing_rule and existing_rule.strip()):
            logger.info(f"No rule to modify at line {params.position.line}; returning no items")
            return []

        instruction = params.user_prompt or DEFAULT_MODIFY_INSTRUCTION
        if self.llm_client is not None:
            try:
                result = await self._generate(
                    self.llm_client.modify_existing_rule,
                    instruction,
                    existing_rule,
                    session.document_text,
                    session.fact_object,
                    session.fact_schema,
                )
            except (GenerationError, asyncio.TimeoutError) as e:
                logger.warning(f"Rule modification failed, using fallback rewrite: {type(e).__name__}: {e}")
            else:
                return [
                    SuggestionItem(
                        label="Modified Rule",
                        kind=CompletionItemKind.Snippet,
                        detail="Modified DRL Rule",
                        insert_text=result.generated_text,
                        documentation=f"Modified rule based on: {instruction}\n\nReasoning: {result.rationale}",
                        range=rule_range,
                    )
                ]
        else:
            logger.info("Generation not configured; using fallback rewrite")

        mock = build_mock_modified_rule(existing_rule, params.user_prompt)
        return [
            SuggestionItem(
                label="Modified Rule (Fallback)",
                kind=CompletionItemKind.Snippet,
                detail="Modified DRL Rule (Mock)",
                insert_text=mock.rule_text,
                documentation=f"Modified rule based on: {instruction} (fallback, generation unavailable)",
                range=rule_range,
            )
        ]

    async def _complete_inline(self, session: Session, params: CompletionParams) -> list[SuggestionItem]:
        if params.trigger == "manual" and self.llm_client is not None:
            try:
                result = await self._generate(
                    self.llm_client.generate_new_rule,
                    params.user_prompt or DEFAULT_INLINE_INSTRUCTION,
                    session.document_text,
                    session.fact_object,
                    session.fact_schema,
                )
            except (GenerationError, asyncio.TimeoutError) as e:
                logger.warning(f"Manual inline generation failed, using pattern matcher: {type(e).__name__}: {e}")
            else:
                return [_generated_item(result)]

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(inline_suggestions, session, params.position),
                timeout=self.inline_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Inline suggestions timed out after {self.inline_timeout}s")
            return []


def build_template_library(settings: Settings) -> TemplateLibrary:
    """Built-in templates overlaid with configured ones; a configured label replaces a built-in."""
    templates = default_library()
    for entry in settings.templates:
        templates.upsert(
            RuleTemplate(
                label=entry.label,
                body=entry.body,
                detail=entry.detail,
                documentation=entry.documentation,
            )
        )
    return templates


def build_orchestrator(settings: Settings) -> CompletionOrchestrator:
    """
    Wire an orchestrator from settings.

    A missing API key disables generation (fallbacks only) unless
    ``llm.required`` is set, in which case it is a startup failure.

    Raises:
        ConfigurationError: If generation is required but cannot be configured
    """
    templates = build_template_library(settings)

    llm_client: LLMAPIClient | None = None
    try:
        llm_client = build_client(settings)
    except ConfigurationError as e:
        if settings.llm.required:
            raise
        logger.error(f"Text generation disabled: {e}")
    else:
        logger.info(f"Text generation enabled: {llm_client.provider.value} ({llm_client.model})")

    return CompletionOrchestrator(
        sessions=SessionStore(default_fact_type=settings.completion.fact_type),
        templates=templates,
        llm_client=llm_client,
        generation_timeout=settings.completion.generation_timeout,
        inline_timeout=settings.completion.inline_timeout,
    )
