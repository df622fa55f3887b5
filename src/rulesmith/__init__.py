"""
Rulesmith - completion service for Drools Rule Language (DRL) editors.

Delivers template, pattern-matched and AI-generated rule suggestions to a
browser editor over a WebSocket JSON-RPC connection, plus a small
compile-and-test pipeline for the edited rules.
"""

from ._version import get_version
from .core.errors import (
    ConfigurationError,
    ContentError,
    GenerationError,
    ProtocolError,
    RulesmithError,
    StateError,
    TransportError,
)

__version__ = get_version()

__all__ = [
    "__version__",
    "RulesmithError",
    "ConfigurationError",
    "GenerationError",
    "TransportError",
    "ContentError",
    "ProtocolError",
    "StateError",
]
