"""
Rule-block location inside DRL text.

This is a line-scanning heuristic, not a DRL parser: a block starts at a
``rule "<name>"`` header and ends at the first later line that is exactly
``end`` while brace depth is zero. Unbalanced braces, an ``end`` keyword
hidden inside a string, or nested rule headers can produce wrong boundaries;
such input is treated as best-effort and never raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rulesmith.lsp.protocol import RuleRange

RULE_HEADER_RE = re.compile(r'^\s*rule\s+"([^"]*)"')
RULE_END_RE = re.compile(r"^\s*end\s*$")


@dataclass(frozen=True)
class RuleBlock:
    """A contiguous span of one rule definition (zero-based lines)."""

    name: str
    full_text: str
    start_line: int
    end_line: int
    start_column: int
    end_column: int

    def contains(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line

    def to_range(self) -> RuleRange:
        from rulesmith.lsp.protocol import RuleRange

        return RuleRange(
            start_line=self.start_line,
            end_line=self.end_line,
            start_column=self.start_column,
            end_column=self.end_column,
        )


def _brace_delta(line: str) -> int:
    return line.count("{") - line.count("}")


def _find_end(lines: list[str], start: int) -> int | None:
    """Scan forward from a header line to its terminator."""
    depth = 0
    for index in range(start, len(lines)):
        line = lines[index]
        if index > start and depth == 0 and RULE_END_RE.match(line):
            return index
        depth += _brace_delta(line)
    return None


def split_lines(text: str) -> list[str]:
    """Split on newlines, dropping the carriage return of CRLF line endings."""
    return [line.removesuffix("\r") for line in text.split("\n")]


def _build_block(lines: list[str], start: int, end: int, name: str) -> RuleBlock:
    header = lines[start]
    return RuleBlock(
        name=name,
        full_text="\n".join(lines[start : end + 1]),
        start_line=start,
        end_line=end,
        start_column=len(header) - len(header.lstrip()),
        end_column=len(lines[end]),
    )


def locate_rule_block(document_text: str, cursor_line: int) -> RuleBlock | None:
    """
    Find the rule block enclosing ``cursor_line``.

    Returns None when the cursor is outside every rule, or when the nearest
    rule above the cursor is never terminated.
    """
    lines = split_lines(document_text)
    if cursor_line < 0 or cursor_line >= len(lines):
        return None

    start = None
    name = ""
    for index in range(cursor_line, -1, -1):
        match = RULE_HEADER_RE.match(lines[index])
        if match:
            start = index
            name = match.group(1)
            break
    if start is None:
        return None

    end = _find_end(lines, start)
    if end is None or not (start <= cursor_line <= end):
        return None

    return _build_block(lines, start, end, name)


def find_rule_blocks(document_text: str) -> list[RuleBlock]:
    """List every terminated rule block in document order."""
    lines = split_lines(document_text)
    blocks: list[RuleBlock] = []
    index = 0
    while index < len(lines):
        match = RULE_HEADER_RE.match(lines[index])
        if not match:
            index += 1
            continue
        end = _find_end(lines, index)
        if end is None:
            break
        blocks.append(_build_block(lines, index, end, match.group(1)))
        index = end + 1
    return blocks


def find_unterminated_headers(document_text: str) -> list[tuple[int, str]]:
    """Return (line, name) for each rule header with no matching ``end``."""
    lines = split_lines(document_text)
    blocks = find_rule_blocks(document_text)
    return [
        (index, match.group(1))
        for index, line in enumerate(lines)
        if (match := RULE_HEADER_RE.match(line))
        and not any(block.contains(index) for block in blocks)
    ]


def extract_rule_name(rule_text: str) -> str | None:
    """Return the quoted name of the first rule header in ``rule_text``."""
    match = re.search(r'rule\s+"([^"]+)"', rule_text, re.IGNORECASE)
    return match.group(1) if match else None
