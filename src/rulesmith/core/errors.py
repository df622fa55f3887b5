"""
Error types for the Rulesmith completion server.

Only configuration failures are meant to reach the operator. Generation,
protocol and state failures are recovered by the orchestrator and never
surface to the editor as a hard error.
"""

from typing import Any


class RulesmithError(Exception):
    """Base exception for all Rulesmith errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with details if available."""
        if self.details:
            extra = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({extra})"
        return self.message


class ConfigurationError(RulesmithError):
    """
    Raised when the server is misconfigured.

    Examples:
    - Missing API key for the generation service
    - Unknown generation provider
    - Unreadable configuration file
    """

    pass


class GenerationError(RulesmithError):
    """Base class for failures of the external text-generation call."""

    pass


class TransportError(GenerationError):
    """
    Raised when the generation service cannot be reached.

    Examples:
    - Connection refused or DNS failure
    - Request timed out inside the SDK
    """

    pass


class UpstreamStatusError(TransportError):
    """Raised when the generation service answers with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message, {"status_code": status_code} if status_code else None)


class ContentError(GenerationError):
    """
    Raised when the generation service replies with unusable content.

    Examples:
    - Reply is not valid JSON
    - Reply is missing the "drl" or "reasoning" key
    - A required key has the wrong type
    """

    pass


class EmptyResponseError(ContentError):
    """Raised when the generation service reply carries no message content."""

    pass


class ProtocolError(RulesmithError):
    """
    Raised when an incoming message cannot be interpreted.

    Examples:
    - Frame is not valid JSON
    - Unknown method name
    - Params fail validation (e.g. unknown completion mode)
    """

    pass


class StateError(RulesmithError):
    """Raised when a message refers to a session that does not exist."""

    pass


class ExecutionError(RulesmithError):
    """Raised when the rule-execution collaborator fails or returns garbage."""

    pass


class ExecutorUnavailableError(ExecutionError):
    """Raised when the rule-execution collaborator cannot be started at all."""

    pass
