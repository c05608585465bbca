"""
models.py – Plain data-classes shared across every module.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union


@dataclass
class Ticket:
    """A Jira issue reduced to what the sync needs."""

    key: str
    summary: str
    description: str
    url: str


@dataclass
class Scenario:
    """A scenario recovered from a ticket description.

    `lines` holds every step line in source order. `steps` is the same list
    minus the trailing expected-result clause, which lives in
    `expected_result`.
    """

    name: str
    steps: list[str] = field(default_factory=list)
    expected_result: str = ""
    lines: list[str] = field(default_factory=list)


@dataclass
class TestStep:
    """A single action + expected-result pair inside a test case."""

    __test__ = False

    action: str
    expected_result: str = ""


@dataclass
class CasePayload:
    """Generic test-case fields; the store maps them to its own field names."""

    title: str
    preconditions: str = ""
    steps: list[TestStep] = field(default_factory=list)
    expected: str = ""
    refs: str = ""


@dataclass
class Suite:
    id: int
    name: str


@dataclass
class Section:
    id: int
    name: str
    suite_id: int
    parent_id: Optional[int] = None


@dataclass
class ExistingTestCase:
    """A test case that already exists in TestRail."""

    id: int
    title: str
    section_id: int = 0
    refs: str = ""


# ── Reconciliation plan ─────────────────────────────────────────────────

CREATE = "create"
UPDATE = "update"
DELETE = "delete"


@dataclass
class CaseAction:
    """One create / update / delete the sync intends to perform."""

    kind: str
    title: str
    payload: Optional[CasePayload] = None
    case_id: Optional[int] = None


@dataclass
class SyncPlan:
    actions: list[CaseAction] = field(default_factory=list)

    def _of(self, kind: str) -> list[CaseAction]:
        return [a for a in self.actions if a.kind == kind]

    @property
    def to_create(self) -> list[CaseAction]:
        return self._of(CREATE)

    @property
    def to_update(self) -> list[CaseAction]:
        return self._of(UPDATE)

    @property
    def to_delete(self) -> list[CaseAction]:
        return self._of(DELETE)


# ── Container references ────────────────────────────────────────────────

@dataclass(frozen=True)
class Resolved:
    """A suite or section that exists and has a real identifier."""

    id: int


@dataclass(frozen=True)
class WouldCreate:
    """A suite or section a dry run would have created."""

    name: str
    parent: Optional[ContainerRef] = None


ContainerRef = Union[Resolved, WouldCreate]


@dataclass
class Target:
    """Where the test cases of one sync run live."""

    section: ContainerRef
    suite: Optional[ContainerRef] = None
    path: list[str] = field(default_factory=list)

    @property
    def section_id(self) -> Optional[int]:
        return self.section.id if isinstance(self.section, Resolved) else None

    @property
    def suite_id(self) -> Optional[int]:
        return self.suite.id if isinstance(self.suite, Resolved) else None

    @property
    def pending(self) -> bool:
        """True when the section exists only in a dry-run simulation."""
        return isinstance(self.section, WouldCreate)


# ── Run summary ─────────────────────────────────────────────────────────

@dataclass
class SyncResult:
    """Summary returned after the full sync cycle."""

    jira_key: str
    ticket: Optional[Ticket] = None
    target: Optional[Target] = None
    dry_run: bool = False
    scenarios_found: int = 0
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    case_ids: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def parse_degraded(self) -> bool:
        """No scenarios were found; reported, not an error."""
        return self.ticket is not None and self.scenarios_found == 0

    @property
    def ok(self) -> bool:
        return not self.errors
