"""Tests for the FastAPI application: completion WebSocket and REST plumbing."""

import json
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from rulesmith.core.config import PathsConfig, Settings
from rulesmith.core.errors import ExecutionError, ExecutorUnavailableError
from rulesmith.core.executor import ExecutionResult, RuleExecutor
from rulesmith.server.app import create_app

PASSING_DRL = """rule "Loyalty discount"
when
    $quote : Quote(loyalCustomer == true)
then
    $quote.setDiscount($quote.getPremium() * 0.1);
end

rule "High premium flag"
when
    $quote : Quote(premium > 1000)
then
    $quote.setRequiresReview(true);
end
"""


@pytest.fixture
def settings(tmp_path):
    rules = tmp_path / "rules"
    rules.mkdir()
    (rules / "sample.drl").write_text(PASSING_DRL, encoding="utf-8")
    facts = tmp_path / "facts"
    facts.mkdir()
    (facts / "quote.json").write_text(json.dumps({"premium": 1200, "loyalCustomer": True}), encoding="utf-8")
    (tmp_path / "bdd.md").write_text("## Scenario: Loyalty discount\n", encoding="utf-8")
    return Settings(
        paths=PathsConfig(
            rule_path=str(rules / "sample.drl"),
            fact_path=str(facts / "quote.json"),
            bdd_path=str(tmp_path / "bdd.md"),
            static_dir=str(tmp_path / "dist"),
        )
    )


@pytest.fixture
def executor():
    return MagicMock(spec=RuleExecutor)


@pytest.fixture
def client(settings, make_orchestrator, executor):
    app = create_app(settings, orchestrator=make_orchestrator(), executor=executor)
    return TestClient(app)


def _send(ws, request_id, method, params):
    message = {"jsonrpc": "2.0", "method": method, "params": params}
    if request_id is not None:
        message["id"] = request_id
    ws.send_text(json.dumps(message))


class TestCompletionWebSocket:
    """End-to-end JSON-RPC exchanges over /lsp."""

    def test_initialize_then_generate_falls_back_to_templates(self, client):
        with client.websocket_connect("/lsp") as ws:
            _send(ws, 1, "initialize/context", {"factObject": {"premium": 600}})
            assert ws.receive_json() == {"jsonrpc": "2.0", "id": 1, "result": {"initialized": True}}

            _send(ws, 2, "textDocument/completion", {"mode": "generate", "userPrompt": "flag"})
            reply = ws.receive_json()

        assert reply["id"] == 2
        assert [item["label"] for item in reply["result"]["items"]] == ["Flag high premium greater than 500"]

    def test_completion_before_initialize_is_empty(self, client):
        with client.websocket_connect("/lsp") as ws:
            _send(ws, 7, "textDocument/completion", {"mode": "inline"})
            assert ws.receive_json() == {"jsonrpc": "2.0", "id": 7, "result": {"items": []}}

    def test_responses_follow_request_order(self, client):
        with client.websocket_connect("/lsp") as ws:
            _send(ws, 1, "initialize/context", {"factObject": {"premium": 600}})
            _send(ws, None, "textDocument/didChange", {"contentChanges": [{"text": 'rule "R"\nwhen\n    Quote('}]})
            _send(ws, 2, "textDocument/completion", {"mode": "inline", "position": {"line": 2, "character": 10}})
            _send(ws, 3, "textDocument/completion", {"mode": "generate"})
            ids = [ws.receive_json()["id"] for _ in range(3)]
        assert ids == [1, 2, 3]

    def test_did_change_feeds_inline_mode(self, client):
        with client.websocket_connect("/lsp") as ws:
            _send(ws, 1, "initialize/context", {"factObject": {"premium": 600, "loyalCustomer": True}})
            ws.receive_json()
            _send(ws, None, "textDocument/didChange", {"contentChanges": [{"text": 'rule "R"\nwhen\n    Quote('}]})
            _send(ws, 2, "textDocument/completion", {"mode": "inline", "position": {"line": 2, "character": 10}})
            reply = ws.receive_json()
        labels = [item["label"] for item in reply["result"]["items"]]
        assert labels == ["premium > 0", "loyalCustomer == true"]

    def test_malformed_frame_keeps_connection_open(self, client):
        with client.websocket_connect("/lsp") as ws:
            ws.send_text("not json")
            _send(ws, 4, "initialize/context", {"factObject": {}})
            assert ws.receive_json()["id"] == 4

    def test_each_connection_has_its_own_session(self, client):
        with client.websocket_connect("/lsp") as first, client.websocket_connect("/lsp") as second:
            _send(first, 1, "initialize/context", {"factObject": {"premium": 1}})
            first.receive_json()
            _send(second, 1, "textDocument/completion", {"mode": "generate"})
            assert second.receive_json()["result"] == {"items": []}


class TestRestRoutes:
    """Tests for the REST plumbing around the completion service."""

    def test_get_drl(self, client):
        response = client.get("/api/drl")
        assert response.status_code == 200
        assert response.text == PASSING_DRL

    def test_get_drl_missing_file(self, client, settings, tmp_path):
        settings.paths.rule_path = str(tmp_path / "missing.drl")
        response = client.get("/api/drl")
        assert response.status_code == 500
        assert response.json()["message"] == "Unable to load DRL"

    def test_save_drl(self, client, settings):
        response = client.post("/api/drl", content='rule "New"\nwhen\nthen\nend')
        assert response.status_code == 204
        with open(settings.paths.rule_path, encoding="utf-8") as f:
            assert f.read() == 'rule "New"\nwhen\nthen\nend'

    def test_get_fact(self, client):
        response = client.get("/api/fact")
        assert response.json() == {
            "fact": {"premium": 1200, "loyalCustomer": True},
            "schema": {"premium": "number", "loyalCustomer": "boolean"},
        }

    def test_run_pipeline(self, client):
        response = client.post("/api/run", json={"content": PASSING_DRL})
        body = response.json()
        assert response.status_code == 200
        assert "timestamp" in body
        assert body["tests"]["status"] == "passed"
        assert len(body["tests"]["cases"]) == 2

    def test_run_pipeline_reports_missing_threshold(self, client):
        body = client.post("/api/run", json={"content": 'rule "X"\nwhen\nthen\nend'}).json()
        assert body["tests"]["status"] == "failed"

    def test_health(self, client):
        response = client.get("/health")
        body = response.json()
        assert body["status"] == "healthy"
        assert body["sessions"] == 0
        assert body["templates"] == 1
        assert body["generation"] is False


class TestExecuteRoute:
    """Tests for /api/execute."""

    def test_execute_uses_supplied_fact(self, client, executor):
        executor.execute.return_value = ExecutionResult(status="success", fired_count=1)
        response = client.post("/api/execute", json={"content": PASSING_DRL, "fact": {"premium": 5}})
        assert response.status_code == 200
        assert response.json()["firedCount"] == 1
        executor.execute.assert_called_once_with(PASSING_DRL, json.dumps({"premium": 5}))

    def test_execute_defaults_to_sample_fact(self, client, executor):
        executor.execute.return_value = ExecutionResult(status="success")
        client.post("/api/execute", json={"content": PASSING_DRL})
        _, fact_json = executor.execute.call_args.args
        assert json.loads(fact_json) == {"premium": 1200, "loyalCustomer": True}

    def test_executor_unavailable(self, client, executor):
        executor.execute.side_effect = ExecutorUnavailableError("jar not found")
        response = client.post("/api/execute", json={"content": PASSING_DRL})
        assert response.status_code == 503
        assert response.json()["message"] == "Rule executor unavailable"

    def test_execution_failure(self, client, executor):
        executor.execute.side_effect = ExecutionError("exit code 1")
        response = client.post("/api/execute", json={"content": PASSING_DRL})
        assert response.status_code == 500
        assert response.json()["message"] == "Rule execution failed"
