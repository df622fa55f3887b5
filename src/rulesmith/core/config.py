"""
Configuration loading for Rulesmith.

Settings come from an optional ``rulesmith.toml`` and are then overridden by
environment variables. API keys are never read from the file, only from the
environment (``OPENAI_API_KEY`` / ``ANTHROPIC_API_KEY`` or ``llm.api_key_env``).

Example rulesmith.toml:

    [server]
    host = "0.0.0.0"
    port = 4000

    [llm]
    provider = "openai"
    model = "gpt-4.1-mini"
    required = false

    [completion]
    fact_type = "Quote"

    [[templates]]
    label = "Loyalty discount"
    body = "rule \\"Loyalty discount\\"\\nwhen\\n    $quote : Quote(loyalCustomer == true)\\nthen\\n    ...\\nend"
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rulesmith.core.errors import ConfigurationError

CONFIG_FILE_NAME = "rulesmith.toml"

DEFAULT_MODELS = {
    "openai": "gpt-4.1-mini",
    "anthropic": "claude-3-5-sonnet-20241022",
}

DEFAULT_KEY_ENVS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


@dataclass
class ServerConfig:
    """HTTP/WebSocket server configuration."""

    host: str = "127.0.0.1"
    port: int = 4000
    ws_path: str = "/lsp"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    log_dir: str | None = None
    log_level: str = "INFO"


@dataclass
class LLMConfig:
    """Text-generation service configuration."""

    provider: str = "openai"
    model: str | None = None
    api_key_env: str | None = None
    temperature: float = 0.3
    max_tokens: int = 2000
    required: bool = False  # Fail startup instead of running fallback-only

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS.get(self.provider, DEFAULT_MODELS["openai"])

    @property
    def resolved_key_env(self) -> str:
        return self.api_key_env or DEFAULT_KEY_ENVS.get(self.provider, "OPENAI_API_KEY")

    def api_key(self) -> str | None:
        return os.environ.get(self.resolved_key_env) or None


@dataclass
class CompletionConfig:
    """Completion orchestration tuning."""

    generation_timeout: float = 30.0  # seconds, generate/modify calls
    inline_timeout: float = 0.5  # seconds, pattern-matcher calls
    fact_type: str = "Quote"


@dataclass
class PathsConfig:
    """Sample files served by the REST plumbing."""

    rule_path: str = "data/rules/sample.drl"
    fact_path: str = "data/facts/quote.json"
    bdd_path: str = "data/tests/bdd-tests.md"
    static_dir: str = "dist"


@dataclass
class ExecutorConfig:
    """Rule-execution collaborator (Drools runner jar)."""

    jar_path: str = "java/target/drools-executor-1.0.0-jar-with-dependencies.jar"
    java_cmd: str | None = None
    timeout: float = 60.0


@dataclass
class TemplateConfig:
    """A canned rule snippet declared in configuration."""

    label: str
    body: str
    detail: str = "DRL Rule Template"
    documentation: str = ""


@dataclass
class Settings:
    """Complete Rulesmith configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    templates: list[TemplateConfig] = field(default_factory=list)
    source: Path | None = None


def _section(data: dict[str, Any], name: str, cls: type) -> Any:
    raw = data.get(name, {})
    if not isinstance(raw, dict):
        raise ConfigurationError(f"[{name}] must be a table", {"file": CONFIG_FILE_NAME})
    known = set(cls.__dataclass_fields__)
    unknown = set(raw) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown keys in [{name}]: {', '.join(sorted(unknown))}",
        )
    return cls(**raw)


def _parse_templates(data: dict[str, Any]) -> list[TemplateConfig]:
    templates = []
    for index, raw in enumerate(data.get("templates", [])):
        if "label" not in raw or "body" not in raw:
            raise ConfigurationError(
                f"Template #{index + 1} needs both 'label' and 'body'",
            )
        templates.append(
            TemplateConfig(
                label=raw["label"],
                body=raw["body"],
                detail=raw.get("detail", "DRL Rule Template"),
                documentation=raw.get("documentation", ""),
            )
        )
    return templates


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(settings: Settings) -> None:
    env = os.environ
    if host := env.get("RULESMITH_HOST"):
        settings.server.host = host
    if port := env.get("RULESMITH_PORT"):
        try:
            settings.server.port = int(port)
        except ValueError:
            raise ConfigurationError(f"RULESMITH_PORT must be an integer, got '{port}'")
    if level := env.get("RULESMITH_LOG_LEVEL"):
        settings.server.log_level = level
    if provider := env.get("RULESMITH_LLM_PROVIDER"):
        settings.llm.provider = provider
    if model := env.get("RULESMITH_LLM_MODEL"):
        settings.llm.model = model
    if required := env.get("RULESMITH_LLM_REQUIRED"):
        settings.llm.required = _env_bool(required)


def load_settings(path: Path | str | None = None) -> Settings:
    """
    Load settings from a TOML file plus environment overrides.

    Args:
        path: Explicit config file. When None, ``rulesmith.toml`` in the
            current directory is used if it exists.

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If the file is missing (explicit path only),
            unparsable, or contains unknown keys
    """
    config_path: Path | None = None
    data: dict[str, Any] = {}

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
    elif (Path.cwd() / CONFIG_FILE_NAME).exists():
        config_path = Path.cwd() / CONFIG_FILE_NAME

    if config_path is not None:
        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}")

    settings = Settings(
        server=_section(data, "server", ServerConfig),
        llm=_section(data, "llm", LLMConfig),
        completion=_section(data, "completion", CompletionConfig),
        paths=_section(data, "paths", PathsConfig),
        executor=_section(data, "executor", ExecutorConfig),
        templates=_parse_templates(data),
        source=config_path,
    )
    _apply_env_overrides(settings)

    if settings.llm.provider not in DEFAULT_MODELS:
        raise ConfigurationError(
            f"Unknown LLM provider '{settings.llm.provider}'",
            {"supported": "/".join(DEFAULT_MODELS)},
        )

    return settings
