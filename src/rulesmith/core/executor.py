"""
Adapter for the external rule-execution collaborator.

The collaborator is a Drools runner jar invoked as
``java -jar <jar> <base64 drl> <base64 fact json>``. It prints log lines
followed by one JSON result line on stdout.
"""

from __future__ import annotations

import base64
import json
import shutil
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rulesmith.core.errors import ExecutionError, ExecutorUnavailableError
from rulesmith.core.logging import get_pipeline_logger

logger = get_pipeline_logger()

COMMON_JAVA_PATHS = (
    "/usr/local/opt/openjdk@17/bin/java",
    "/usr/bin/java",
    "/usr/local/bin/java",
)


@dataclass
class ExecutionResult:
    """Outcome of running rules against one fact."""

    status: str
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    fired_count: int = 0
    fact_state_after: dict[str, Any] = field(default_factory=dict)
    log_lines: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @classmethod
    def from_payload(cls, payload: dict[str, Any], log_lines: list[str], duration_ms: int) -> ExecutionResult:
        return cls(
            status=payload.get("status", "failed"),
            errors=list(payload.get("errors", [])),
            warnings=list(payload.get("warnings", [])),
            fired_count=int(payload.get("firedCount", payload.get("rulesFired", 0)) or 0),
            fact_state_after=payload.get("factStateAfter", payload.get("fact", {})) or {},
            log_lines=log_lines + list(payload.get("logs", [])),
            duration_ms=duration_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "errors": self.errors,
            "warnings": self.warnings,
            "firedCount": self.fired_count,
            "factStateAfter": self.fact_state_after,
            "logLines": self.log_lines,
            "durationMs": self.duration_ms,
        }


def split_output(stdout: str) -> tuple[dict[str, Any], list[str]]:
    """
    Separate the JSON result line from preceding log lines.

    Raises:
        ExecutionError: If no line of stdout parses as a JSON object
    """
    lines = stdout.strip().split("\n")
    for index in range(len(lines) - 1, -1, -1):
        try:
            payload = json.loads(lines[index])
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            return payload, [line for line in lines[:index] if line.strip()]
    raise ExecutionError("Failed to parse rule execution result", {"stdout": stdout[:200]})


class RuleExecutor:
    """Runs DRL source against a fact via the Drools runner jar."""

    def __init__(self, jar_path: Path | str, java_cmd: str | None = None, timeout: float = 60.0):
        self.jar_path = Path(jar_path).resolve()
        self.java_cmd = java_cmd
        self.timeout = timeout

    def _resolve_java(self) -> str:
        if self.java_cmd:
            return self.java_cmd
        found = shutil.which("java")
        if found:
            return found
        for candidate in COMMON_JAVA_PATHS:
            if Path(candidate).exists():
                return candidate
        raise ExecutorUnavailableError("Java runtime not found; install a JDK or set executor.java_cmd")

    def execute(self, rule_source: str, fact_json: str) -> ExecutionResult:
        """
        Execute rules against a fact.

        Raises:
            ExecutorUnavailableError: If the jar or the java binary is missing
            ExecutionError: On non-zero exit, timeout or unparsable output
        """
        if not self.jar_path.exists():
            raise ExecutorUnavailableError(
                "Drools runner jar not found; build it with 'mvn clean package'",
                {"jar": str(self.jar_path)},
            )
        java = self._resolve_java()

        drl_b64 = base64.b64encode(rule_source.encode("utf-8")).decode("ascii")
        fact_b64 = base64.b64encode(fact_json.encode("utf-8")).decode("ascii")

        start = time.perf_counter()
        try:
            completed = subprocess.run(
                [java, "-jar", str(self.jar_path), drl_b64, fact_b64],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=self.jar_path.parent,
            )
        except subprocess.TimeoutExpired:
            raise ExecutionError("Rule execution timed out", {"timeout": self.timeout})
        except OSError as e:
            raise ExecutorUnavailableError(f"Failed to start Java process: {e}")
        duration_ms = round((time.perf_counter() - start) * 1000)

        if completed.returncode != 0:
            raise ExecutionError(
                f"Drools execution failed: {completed.stderr or completed.stdout}",
                {"exit_code": completed.returncode},
            )

        payload, log_lines = split_output(completed.stdout)
        if completed.stderr and completed.stderr.strip():
            log_lines.append(f"[STDERR] {completed.stderr.strip()}")

        result = ExecutionResult.from_payload(payload, log_lines, duration_ms)
        logger.info(f"Rules executed: status={result.status}, fired={result.fired_count}, {duration_ms}ms")
        return result
