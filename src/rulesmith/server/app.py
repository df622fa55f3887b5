"""
FastAPI application for Rulesmith.

Hosts the completion WebSocket endpoint and the REST plumbing around it
(sample rule/fact files, heuristic pipeline, rule execution, static UI).
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from rulesmith._version import get_version
from rulesmith.core.config import Settings
from rulesmith.core.errors import ExecutionError, ExecutorUnavailableError
from rulesmith.core.executor import RuleExecutor
from rulesmith.core.facts import extract_schema
from rulesmith.core.logging import get_api_logger
from rulesmith.core.pipeline import analyze_drl, load_fact, run_rule_tests
from rulesmith.lsp.orchestrator import CompletionOrchestrator, build_orchestrator

logger = get_api_logger()


class RunRequest(BaseModel):
    content: str = ""


class ExecuteRequest(BaseModel):
    content: str
    fact: dict[str, Any] | None = None


def _error(status_code: int, message: str, error: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, "error": str(error)})


def create_app(
    settings: Settings | None = None,
    orchestrator: CompletionOrchestrator | None = None,
    executor: RuleExecutor | None = None,
) -> FastAPI:
    """
    Create the Rulesmith application.

    Args:
        settings: Loaded settings (defaults when None)
        orchestrator: Completion orchestrator; built from settings when None
        executor: Rule-execution collaborator; built from settings when None

    Returns:
        Configured FastAPI app
    """
    settings = settings or Settings()
    if orchestrator is None:
        orchestrator = build_orchestrator(settings)
    if executor is None:
        executor = RuleExecutor(
            jar_path=settings.executor.jar_path,
            java_cmd=settings.executor.java_cmd,
            timeout=settings.executor.timeout,
        )

    app = FastAPI(title="Rulesmith", version=get_version())
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.state.executor = executor

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    paths = settings.paths

    # =========================================================================
    # Completion WebSocket
    # =========================================================================

    @app.websocket(settings.server.ws_path)
    async def completion_endpoint(websocket: WebSocket) -> None:
        """JSON-RPC completion channel; one session per connection."""
        await websocket.accept()
        connection_id = orchestrator.open_connection()
        try:
            # One message at a time keeps each connection's messages in arrival order
            while True:
                raw = await websocket.receive_text()
                reply = await orchestrator.handle_message(connection_id, raw)
                if reply is not None:
                    await websocket.send_text(json.dumps(reply))
        except WebSocketDisconnect:
            logger.info(f"Client disconnected: {connection_id}")
        except Exception as e:
            logger.warning(f"Connection {connection_id} dropped: {type(e).__name__}: {e}")
        finally:
            orchestrator.close_connection(connection_id)

    # =========================================================================
    # REST plumbing
    # =========================================================================

    @app.get("/api/drl", tags=["Rules"])
    async def get_drl() -> Response:
        try:
            return PlainTextResponse(Path(paths.rule_path).read_text(encoding="utf-8"))
        except OSError as e:
            logger.error(f"Unable to load DRL from {paths.rule_path}: {e}")
            return _error(500, "Unable to load DRL", e)

    @app.post("/api/drl", tags=["Rules"], status_code=204)
    async def save_drl(request: Request) -> Response:
        body = (await request.body()).decode("utf-8")
        try:
            target = Path(paths.rule_path)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(body, encoding="utf-8")
        except OSError as e:
            logger.error(f"Unable to save DRL to {paths.rule_path}: {e}")
            return _error(500, "Unable to save DRL", e)
        logger.info(f"Saved DRL ({len(body)} chars) to {paths.rule_path}")
        return Response(status_code=204)

    @app.get("/api/fact", tags=["Rules"])
    async def get_fact() -> Any:
        try:
            fact = load_fact(paths.fact_path)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Unable to load fact from {paths.fact_path}: {e}")
            return _error(500, "Unable to load fact", e)
        return {"fact": fact, "schema": extract_schema(fact)}

    @app.post("/api/run", tags=["Pipeline"])
    async def run_pipeline(payload: RunRequest) -> Any:
        compile_report = analyze_drl(payload.content, settings.completion.fact_type)
        try:
            test_report = run_rule_tests(payload.content, paths.fact_path, paths.bdd_path)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Scenario checks failed to start: {e}")
            return _error(500, "Unable to run scenario checks", e)
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "compile": compile_report.to_dict(),
            "tests": test_report.to_dict(),
        }

    @app.post("/api/execute", tags=["Pipeline"])
    async def execute_rules(payload: ExecuteRequest) -> Any:
        try:
            fact = payload.fact if payload.fact is not None else load_fact(paths.fact_path)
        except (OSError, json.JSONDecodeError) as e:
            return _error(500, "Unable to load fact", e)
        try:
            result = await asyncio.to_thread(executor.execute, payload.content, json.dumps(fact))
        except ExecutorUnavailableError as e:
            logger.error(f"Rule executor unavailable: {e}")
            return _error(503, "Rule executor unavailable", e)
        except ExecutionError as e:
            logger.error(f"Rule execution failed: {e}")
            return _error(500, "Rule execution failed", e)
        return result.to_dict()

    @app.get("/health", tags=["System"])
    async def health_check() -> dict[str, Any]:
        return {"status": "healthy", "version": get_version(), **orchestrator.status()}

    static_dir = Path(paths.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")

    return app
