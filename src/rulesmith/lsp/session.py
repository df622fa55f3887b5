"""
Per-connection editing sessions.

A session holds everything the completion engine knows about one editor:
the example fact object and its schema, the BDD narrative, and the latest
full document text. Sessions live only as long as their connection.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from rulesmith.core.errors import StateError
from rulesmith.core.facts import FactField, extract_schema, fact_fields


@dataclass
class Session:
    """State of one editing connection."""

    id: str
    initialized: bool = False
    fact_object: dict[str, Any] = field(default_factory=dict)
    fact_schema: dict[str, str] = field(default_factory=dict)
    bdd_narrative: str = ""
    document_text: str = ""
    fact_type: str = "Quote"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def fields(self) -> list[FactField]:
        return fact_fields(self.fact_object, self.fact_schema)

    @property
    def fact_variable(self) -> str:
        """Conventional binding name for the fact type, e.g. ``$quote``."""
        return "$" + self.fact_type[:1].lower() + self.fact_type[1:]


class SessionStore:
    """
    Connection id -> Session map.

    Each session is only touched by messages from its own connection, so the
    lock only has to keep individual map operations atomic.
    """

    def __init__(self, default_fact_type: str = "Quote"):
        self.default_fact_type = default_fact_type
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def create_session(self, connection_id: str) -> Session:
        """Create (or reset) the session for a connection. It starts uninitialized."""
        session = Session(id=connection_id, fact_type=self.default_fact_type)
        with self._lock:
            self._sessions[connection_id] = session
        return session

    def get(self, connection_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(connection_id)

    def _require(self, connection_id: str) -> Session:
        session = self.get(connection_id)
        if session is None:
            raise StateError(f"No session for connection {connection_id}")
        return session

    def update_context(
        self,
        connection_id: str,
        fact_object: dict[str, Any] | None,
        fact_schema: dict[str, str] | None = None,
        bdd_narrative: str | None = None,
        document_text: str | None = None,
        fact_type: str | None = None,
    ) -> Session:
        """
        Fill the session from a context message and mark it initialized.

        A missing or empty schema is derived from the fact object. Optional
        fields that are None keep their current value.

        Raises:
            StateError: If the connection has no session
        """
        session = self._require(connection_id)
        session.fact_object = dict(fact_object or {})
        session.fact_schema = dict(fact_schema) if fact_schema else extract_schema(session.fact_object)
        if bdd_narrative is not None:
            session.bdd_narrative = bdd_narrative
        if document_text is not None:
            session.document_text = document_text
        if fact_type:
            session.fact_type = fact_type
        session.initialized = True
        return session

    def update_document(self, connection_id: str, text: str) -> Session:
        """
        Replace the document snapshot verbatim.

        Raises:
            StateError: If the connection has no session
        """
        session = self._require(connection_id)
        session.document_text = text
        return session

    def destroy_session(self, connection_id: str) -> None:
        """Discard a session. Unknown ids are ignored."""
        with self._lock:
            self._sessions.pop(connection_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, connection_id: object) -> bool:
        with self._lock:
            return connection_id in self._sessions
