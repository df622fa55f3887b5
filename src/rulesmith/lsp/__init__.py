"""
Rulesmith completion protocol.

- protocol: JSON-RPC wire models
- session: per-connection session store
- inline: deterministic pattern-matched suggestions
- orchestrator: mode dispatch with generation fallbacks
- server: pygls stdio language server
"""

from .orchestrator import CompletionOrchestrator, build_orchestrator
from .server import start_server
from .session import Session, SessionStore

__all__ = [
    "CompletionOrchestrator",
    "build_orchestrator",
    "Session",
    "SessionStore",
    "start_server",
]
