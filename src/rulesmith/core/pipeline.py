"""
Heuristic compile check and scenario checks for DRL text.

This is not a compiler. It catches the obvious structural problems (empty
file, no rules, missing package/import, unterminated rules) and runs a couple
of scenario checks tied to the sample fact object, so the editor can show a
pass/fail status without a JVM.
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Literal

from rulesmith.core.locator import find_unterminated_headers
from rulesmith.core.logging import get_pipeline_logger

logger = get_pipeline_logger()

Status = Literal["passed", "failed"]


@dataclass
class CompileReport:
    status: Status
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "errors": self.errors,
            "warnings": self.warnings,
            "durationMs": self.duration_ms,
        }


@dataclass
class ScenarioCase:
    name: str
    status: Status
    details: str


@dataclass
class ScenarioReport:
    status: Status
    summary: str
    cases: list[ScenarioCase] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "summary": self.summary,
            "cases": [asdict(case) for case in self.cases],
            "durationMs": self.duration_ms,
        }


def _elapsed_ms(start: float) -> int:
    return round((time.perf_counter() - start) * 1000)


def analyze_drl(content: str, fact_type: str = "Quote") -> CompileReport:
    """Run the structural checks over a DRL document."""
    start = time.perf_counter()
    errors: list[str] = []
    warnings: list[str] = []

    if not content or not content.strip():
        errors.append("Rule file is empty")

    if not re.search(r"\brule\b", content or "", re.IGNORECASE):
        errors.append("No rule definitions were detected")

    if not re.search(r"package\s+.+;", content or "", re.IGNORECASE):
        warnings.append("Missing package declaration")

    if not re.search(rf"import\s+.+{re.escape(fact_type)}", content or "", re.IGNORECASE):
        warnings.append(
            f"Fact import for {fact_type} not found; update imports when changing fact types."
        )

    for line, name in find_unterminated_headers(content or ""):
        warnings.append(f'Rule "{name}" starting on line {line + 1} has no matching end')

    report = CompileReport(
        status="failed" if errors else "passed",
        errors=errors,
        warnings=warnings,
        duration_ms=_elapsed_ms(start),
    )
    logger.info(
        f"Compile check {report.status}: {len(errors)} error(s), {len(warnings)} warning(s)"
    )
    return report


def load_fact(fact_path: Path | str) -> dict[str, Any]:
    """Read the sample fact JSON file."""
    with open(fact_path, encoding="utf-8") as f:
        return json.load(f)


def run_rule_tests(content: str, fact_path: Path | str, bdd_path: Path | str) -> ScenarioReport:
    """
    Run the sample scenario checks against DRL text.

    Raises:
        FileNotFoundError: If the fact file does not exist
        json.JSONDecodeError: If the fact file is not valid JSON
    """
    start = time.perf_counter()
    fact = load_fact(fact_path)
    cases: list[ScenarioCase] = []

    loyalty = "loyalCustomer" in content
    cases.append(
        ScenarioCase(
            name="Loyalty discount",
            status="passed" if loyalty else "failed",
            details=(
                f"applies 10% when loyalCustomer=true (example premium {fact.get('premium')})"
                if loyalty
                else "No loyalty rule found"
            ),
        )
    )

    high_premium = re.search(r"premium\s*>\s*1000", content) is not None
    cases.append(
        ScenarioCase(
            name="High premium flag",
            status="passed" if high_premium else "failed",
            details=(
                "flags quotes requiring review"
                if high_premium
                else "Rule missing premium threshold > 1000"
            ),
        )
    )

    summary = (
        f"BDD scenarios documented in {bdd_path}"
        if Path(bdd_path).exists()
        else "BDD scenarios not found; add them under data/tests"
    )
    status: Status = "passed" if all(case.status == "passed" for case in cases) else "failed"

    report = ScenarioReport(status=status, summary=summary, cases=cases, duration_ms=_elapsed_ms(start))
    logger.info(f"Scenario checks {status}: {sum(c.status == 'passed' for c in cases)}/{len(cases)}")
    return report
