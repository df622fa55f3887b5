"""Shared pytest fixtures for Rulesmith tests."""

from unittest.mock import MagicMock

import pytest

from rulesmith.core.templates import default_library
from rulesmith.llm.api_client import LLMAPIClient
from rulesmith.llm.models import GeneratedRule
from rulesmith.lsp.orchestrator import CompletionOrchestrator
from rulesmith.lsp.session import SessionStore

SAMPLE_DRL = """package com.example.rules;

import com.example.model.Quote;

rule "R1"
when
    $quote : Quote(premium > 500)
then
    $quote.setRequiresReview(true);
end
"""


@pytest.fixture
def sample_fact() -> dict:
    """Return the example quote fact."""
    return {"premium": 600, "loyalCustomer": True}


@pytest.fixture
def sample_drl() -> str:
    """Return a document with one rule "R1" on lines 4-9."""
    return SAMPLE_DRL


@pytest.fixture
def session_store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def llm_client() -> MagicMock:
    """Return a generation client double that succeeds."""
    client = MagicMock(spec=LLMAPIClient)
    client.generate_new_rule.return_value = GeneratedRule(
        drl='rule "Generated"\nwhen\n    $quote : Quote(premium > 900)\nthen\n    $quote.setRequiresReview(true);\nend',
        reasoning="Flags expensive quotes",
    )
    client.modify_existing_rule.return_value = GeneratedRule(
        drl='rule "R1"\nwhen\n    $quote : Quote(premium > 700)\nthen\n    $quote.setRequiresReview(true);\nend',
        reasoning="Raised the threshold",
    )
    return client


@pytest.fixture
def make_orchestrator(session_store):
    """Build an orchestrator with the default template library."""

    def _make(llm_client=None, **kwargs) -> CompletionOrchestrator:
        return CompletionOrchestrator(
            sessions=session_store,
            templates=default_library(),
            llm_client=llm_client,
            **kwargs,
        )

    return _make
