"""
scenario_parser.py – Recover Gherkin-style scenarios from ticket prose.

Two passes:
  • **Marked** – blocks introduced by a "Scenario", "Scenario 1:" or
    "Scenario2 :" line.  Prose may precede the marker on its line when a
    colon follows it ("AC - Scenario 1: Login").  The lines between the
    marker and the first step form the title; step lines follow until the
    next marker.
  • **Unmarked** – used only when the first pass finds nothing.  Picks up
    bare When … Then … blocks and names them "Scenario N".

The parser never raises; text with no recognisable scenarios yields [].
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from models import Scenario

logger = logging.getLogger("jira-testrail-sync")

_MARKER_RE = re.compile(r"^scenario(?=[\s\d:]|$)\s*(\d+)?\s*:?(.*)$", re.IGNORECASE)
_INLINE_MARKER_RE = re.compile(r"\bscenario(?![a-z])\s*(\d+)?\s*:(.*)$", re.IGNORECASE)
_STEP_RE = re.compile(r"^(?:given|when|then|and|but)\s", re.IGNORECASE)
_KEYWORD_RE = re.compile(r"^(?:given|when|then|and|but)\s+", re.IGNORECASE)
_OUTCOME_RE = re.compile(r"^(?:then|and\s+then)\s", re.IGNORECASE)

_WHEN_RE = re.compile(r"^when\s", re.IGNORECASE)
_THEN_RE = re.compile(r"^then\s", re.IGNORECASE)
_CONTINUATION_RE = re.compile(r"^(?:and|but)\s", re.IGNORECASE)


def _is_step(line: str) -> bool:
    return bool(_STEP_RE.match(line.strip()))


def _split_expected(lines: list[str]) -> tuple[list[str], str]:
    """Separate the trailing outcome clause from the action steps.

    The last Then / And-then line and everything after it form the
    expected result.  Without one, the last step (minus its keyword) is
    used and no step is removed.
    """
    for idx in range(len(lines) - 1, -1, -1):
        if _OUTCOME_RE.match(lines[idx]):
            return lines[:idx], "\n".join(lines[idx:])
    return list(lines), _KEYWORD_RE.sub("", lines[-1], count=1).strip()


# ── Marked scenarios ────────────────────────────────────────────────────

@dataclass
class _Block:
    number: Optional[str]
    head: str
    body: list[str] = field(default_factory=list)


def _marker(line: str) -> Optional[re.Match]:
    """Match a marker at line start, or after leading prose when a colon follows."""
    match = _MARKER_RE.match(line)
    if match or _STEP_RE.match(line):
        return match
    return _INLINE_MARKER_RE.search(line)


def _marked_blocks(lines: list[str]) -> list[_Block]:
    blocks: list[_Block] = []
    for line in lines:
        match = _marker(line.strip())
        if match:
            blocks.append(_Block(number=match.group(1), head=match.group(2)))
        elif blocks:
            blocks[-1].body.append(line)
    return blocks


def _block_to_scenario(block: _Block, ordinal: int) -> Optional[Scenario]:
    title_lines = [block.head]
    steps: list[str] = []
    in_steps = False
    for line in block.body:
        if not in_steps and _is_step(line):
            in_steps = True
        if in_steps:
            if _is_step(line):
                steps.append(line.strip())
        else:
            title_lines.append(line)

    if not steps:
        logger.debug("Dropping scenario block with no steps (title=%r)", block.head.strip())
        return None

    name = " ".join(part.strip() for part in title_lines if part.strip())
    if not name:
        name = f"Scenario {block.number or ordinal}"

    action_steps, expected = _split_expected(steps)
    return Scenario(name=name, steps=action_steps, expected_result=expected, lines=steps)


def _parse_marked(lines: list[str]) -> list[Scenario]:
    scenarios: list[Scenario] = []
    for block in _marked_blocks(lines):
        scenario = _block_to_scenario(block, len(scenarios) + 1)
        if scenario is not None:
            scenarios.append(scenario)
    return scenarios


# ── Unmarked When/Then blocks ───────────────────────────────────────────

def _when_then_blocks(lines: list[str]) -> list[list[str]]:
    blocks: list[list[str]] = []
    current: Optional[list[str]] = None
    seen_then = False

    for raw in lines:
        line = raw.strip()
        if _WHEN_RE.match(line):
            if current and seen_then:
                blocks.append(current)
            current, seen_then = [line], False
        elif current is None:
            continue
        elif _THEN_RE.match(line) and not seen_then:
            current.append(line)
            seen_then = True
        elif _CONTINUATION_RE.match(line):
            current.append(line)
        else:
            # blank line, prose or a second Then closes the block
            if seen_then:
                blocks.append(current)
            current, seen_then = None, False

    if current and seen_then:
        blocks.append(current)
    return blocks


def _parse_unmarked(lines: list[str]) -> list[Scenario]:
    scenarios: list[Scenario] = []
    for idx, block in enumerate(_when_then_blocks(lines), start=1):
        scenarios.append(
            Scenario(
                name=f"Scenario {idx}",
                steps=_split_expected(block)[0],
                expected_result=block[-1],
                lines=block,
            )
        )
    return scenarios


# ── Public API ──────────────────────────────────────────────────────────

def parse_scenarios(text: Optional[str]) -> list[Scenario]:
    """Return every scenario found in *text*, in source order."""
    if not text or not text.strip():
        return []

    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")

    scenarios = _parse_marked(lines)
    if scenarios:
        logger.debug("Found %d marked scenario(s)", len(scenarios))
        return scenarios

    scenarios = _parse_unmarked(lines)
    if scenarios:
        logger.debug("No 'Scenario' markers; recovered %d When/Then block(s)", len(scenarios))
    return scenarios
