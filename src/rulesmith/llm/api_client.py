"""
API client for the rule text-generation service (OpenAI, Anthropic).

Handles authentication, request formatting, and strict reply parsing.
Every failure surfaces as a distinct GenerationError subclass so the caller
can fall back to deterministic behaviour.
"""

import json
import logging
import re
import time
from enum import Enum
from typing import Any

from pydantic import ValidationError

from rulesmith.core.config import DEFAULT_KEY_ENVS, DEFAULT_MODELS, Settings
from rulesmith.core.errors import (
    ConfigurationError,
    ContentError,
    EmptyResponseError,
    TransportError,
    UpstreamStatusError,
)
from rulesmith.core.logging import get_llm_logger, log_with_context

from .models import GeneratedRule, GenerationMode, GenerationUsage
from .prompts import (
    CREATE_SYSTEM_PROMPT,
    MODIFY_SYSTEM_PROMPT,
    build_create_message,
    build_modify_message,
)

logger = get_llm_logger()

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class LLMProvider(str, Enum):
    """Supported LLM providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


def parse_generated_rule(content: str | None) -> GeneratedRule:
    """
    Parse and validate a reply body into a GeneratedRule.

    Raises:
        EmptyResponseError: If the reply has no content
        ContentError: If the reply is not a JSON object with string
            "drl" and "reasoning" keys
    """
    if content is None or not content.strip():
        raise EmptyResponseError("No content in generation service response")

    text = content.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug(f"Raw output: {text[:500]}...")
        raise ContentError(f"Generation service returned invalid JSON: {e}")

    if not isinstance(payload, dict):
        raise ContentError("Generation service reply is not a JSON object")

    try:
        return GeneratedRule.model_validate(payload)
    except ValidationError as e:
        raise ContentError(
            "Generation service reply is missing required keys",
            {"errors": "; ".join(err["msg"] for err in e.errors())},
        )


class LLMAPIClient:
    """
    API client for rule generation.

    Supports OpenAI chat completions (strict ``json_object`` replies) and
    Anthropic messages.
    """

    def __init__(
        self,
        provider: LLMProvider | str = LLMProvider.OPENAI,
        model: str | None = None,
        api_key: str | None = None,
        api_key_env: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        timeout: float = 30.0,
    ):
        """
        Initialize LLM API client.

        Args:
            provider: LLM provider (openai or anthropic)
            model: Model name (defaults based on provider)
            api_key: API key (if not provided, read from env)
            api_key_env: Environment variable name for API key
            temperature: Sampling temperature; kept low but non-zero
            max_tokens: Output-length ceiling
            timeout: Per-request timeout in seconds, enforced by the SDK

        Raises:
            ConfigurationError: If no API key can be found
        """
        import os

        self.provider = LLMProvider(provider)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

        key_env = api_key_env or DEFAULT_KEY_ENVS[self.provider.value]
        self.api_key = api_key or os.environ.get(key_env)
        if not self.api_key:
            raise ConfigurationError(
                f"API key not found for {self.provider.value}. Set the {key_env} environment variable."
            )

        self.model = model or DEFAULT_MODELS[self.provider.value]
        self._init_client()

    def _init_client(self) -> None:
        """Initialize provider-specific client."""
        if self.provider == LLMProvider.OPENAI:
            try:
                from openai import OpenAI
            except ImportError:
                raise ImportError("OpenAI SDK not installed. Install with: pip install openai")
            self.client: Any = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=1)
        else:
            try:
                from anthropic import Anthropic
            except ImportError:
                raise ImportError("Anthropic SDK not installed. Install with: pip install anthropic")
            self.client = Anthropic(api_key=self.api_key, timeout=self.timeout, max_retries=1)

    def generate_new_rule(
        self,
        instruction: str,
        document_text: str,
        fact_object: dict[str, Any] | None,
        fact_schema: dict[str, str] | None,
    ) -> GeneratedRule:
        """
        Generate a new rule from a user instruction.

        The current document is sent as background only.

        Raises:
            TransportError, UpstreamStatusError, ContentError, EmptyResponseError
        """
        user_prompt = build_create_message(instruction, document_text, fact_object, fact_schema)
        return self._generate(GenerationMode.CREATE, CREATE_SYSTEM_PROMPT, user_prompt)

    def modify_existing_rule(
        self,
        instruction: str,
        existing_rule_text: str,
        document_text: str,
        fact_object: dict[str, Any] | None,
        fact_schema: dict[str, str] | None,
    ) -> GeneratedRule:
        """
        Modify one rule block according to a user instruction.

        Raises:
            TransportError, UpstreamStatusError, ContentError, EmptyResponseError
        """
        user_prompt = build_modify_message(
            instruction, existing_rule_text, document_text, fact_object, fact_schema
        )
        return self._generate(GenerationMode.MODIFY, MODIFY_SYSTEM_PROMPT, user_prompt)

    def _generate(self, mode: GenerationMode, system_prompt: str, user_prompt: str) -> GeneratedRule:
        log_with_context(
            logger,
            logging.INFO,
            f"Requesting {mode.value} via {self.provider.value} ({self.model})",
            system_chars=len(system_prompt),
            user_chars=len(user_prompt),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        start = time.perf_counter()

        if self.provider == LLMProvider.OPENAI:
            content, usage = self._call_openai(system_prompt, user_prompt)
        else:
            content, usage = self._call_anthropic(system_prompt, user_prompt)

        result = parse_generated_rule(content)
        elapsed_ms = round((time.perf_counter() - start) * 1000)
        log_with_context(
            logger,
            logging.INFO,
            f"Received {mode.value} reply in {elapsed_ms}ms ({len(result.drl)} chars of DRL)",
            elapsed_ms=elapsed_ms,
            usage=usage.model_dump() if usage else None,
        )
        return result

    def _call_openai(
        self, system_prompt: str, user_prompt: str
    ) -> tuple[str | None, GenerationUsage | None]:
        """Call OpenAI chat completions API; returns the reply text and token usage."""
        import openai

        logger.debug(f"Calling OpenAI API with model {self.model}")
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except openai.APIStatusError as e:
            logger.error(f"OpenAI API error: {e.status_code}")
            raise UpstreamStatusError(f"OpenAI API error: {e.status_code} - {e.message}", e.status_code)
        except openai.APIError as e:
            logger.error(f"OpenAI API call failed: {e}")
            raise TransportError(f"OpenAI API call failed: {e}")

        usage = None
        if getattr(response, "usage", None) is not None:
            usage = GenerationUsage(
                prompt_tokens=getattr(response.usage, "prompt_tokens", None),
                completion_tokens=getattr(response.usage, "completion_tokens", None),
                total_tokens=getattr(response.usage, "total_tokens", None),
            )

        if not response.choices:
            return None, usage
        return response.choices[0].message.content, usage

    def _call_anthropic(
        self, system_prompt: str, user_prompt: str
    ) -> tuple[str | None, GenerationUsage | None]:
        """Call Anthropic messages API."""
        import anthropic

        logger.debug(f"Calling Anthropic API with model {self.model}")
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIStatusError as e:
            logger.error(f"Anthropic API error: {e.status_code}")
            raise UpstreamStatusError(f"Anthropic API error: {e.status_code} - {e.message}", e.status_code)
        except anthropic.APIError as e:
            logger.error(f"Anthropic API call failed: {e}")
            raise TransportError(f"Anthropic API call failed: {e}")

        usage = None
        if getattr(response, "usage", None) is not None:
            prompt_tokens = getattr(response.usage, "input_tokens", None)
            completion_tokens = getattr(response.usage, "output_tokens", None)
            usage = GenerationUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=(prompt_tokens or 0) + (completion_tokens or 0),
            )

        texts = [block.text for block in response.content if getattr(block, "type", "") == "text"]
        return "".join(texts) or None, usage


def build_client(settings: Settings) -> LLMAPIClient:
    """
    Create the generation client described by ``settings``.

    Raises:
        ConfigurationError: If no API key is configured for the provider
    """
    llm = settings.llm
    return LLMAPIClient(
        provider=llm.provider,
        model=llm.resolved_model,
        api_key_env=llm.resolved_key_env,
        temperature=llm.temperature,
        max_tokens=llm.max_tokens,
        timeout=settings.completion.generation_timeout,
    )
