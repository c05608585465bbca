"""
Shared fixtures: in-memory stand-ins for Jira and TestRail.
"""

from __future__ import annotations

from typing import Optional

import pytest

from config import Settings
from errors import NotFound, ValidationError
from models import CasePayload, ExistingTestCase, Section, Suite, Ticket


class FakeJira:
    def __init__(self, tickets: Optional[dict[str, Ticket]] = None) -> None:
        self.tickets = dict(tickets or {})

    def fetch_ticket(self, key: str) -> Ticket:
        if key not in self.tickets:
            raise NotFound(f'Jira ticket "{key}" not found. Please check the ticket key.')
        return self.tickets[key]


class FakeTestRail:
    """Records every call; ids are handed out from a single counter."""

    def __init__(self) -> None:
        self.suites: list[Suite] = []
        self.sections: list[Section] = []
        self.cases: list[ExistingTestCase] = []
        self.payloads: dict[int, CasePayload] = {}
        self.calls: list[tuple] = []
        self.reject_titles: set[str] = set()
        self._next_id = 1000

    def _id(self) -> int:
        self._next_id += 1
        return self._next_id

    # seeding helpers
    def add_suite(self, name: str, suite_id: Optional[int] = None) -> Suite:
        suite = Suite(id=suite_id or self._id(), name=name)
        self.suites.append(suite)
        return suite

    def add_section(self, name: str, suite_id: int, parent_id: Optional[int] = None,
                    section_id: Optional[int] = None) -> Section:
        section = Section(id=section_id or self._id(), name=name, suite_id=suite_id, parent_id=parent_id)
        self.sections.append(section)
        return section

    def add_case(self, title: str, section_id: int, refs: str = "") -> ExistingTestCase:
        case = ExistingTestCase(id=self._id(), title=title, section_id=section_id, refs=refs)
        self.cases.append(case)
        return case

    # store interface
    def get_suites(self, project_id: int) -> list[Suite]:
        self.calls.append(("get_suites", project_id))
        return list(self.suites)

    def create_suite(self, project_id: int, name: str) -> Suite:
        self.calls.append(("create_suite", project_id, name))
        return self.add_suite(name)

    def delete_suite(self, suite_id: int) -> None:
        self.calls.append(("delete_suite", suite_id))
        self.suites = [s for s in self.suites if s.id != suite_id]

    def get_sections(self, project_id: int, suite_id: int) -> list[Section]:
        self.calls.append(("get_sections", project_id, suite_id))
        return [s for s in self.sections if s.suite_id == suite_id]

    def get_section(self, section_id: int) -> Section:
        self.calls.append(("get_section", section_id))
        for section in self.sections:
            if section.id == section_id:
                return section
        raise NotFound(f"Section with ID {section_id} not found.")

    def create_section(self, project_id: int, suite_id: int, name: str,
                       parent_id: Optional[int] = None) -> Section:
        self.calls.append(("create_section", project_id, suite_id, name, parent_id))
        return self.add_section(name, suite_id, parent_id)

    def get_cases(self, project_id: int, section_id: int,
                  suite_id: Optional[int] = None) -> list[ExistingTestCase]:
        self.calls.append(("get_cases", project_id, section_id, suite_id))
        return [c for c in self.cases if c.section_id == section_id]

    def create_case(self, section_id: int, payload: CasePayload) -> ExistingTestCase:
        self.calls.append(("create_case", section_id, payload.title))
        if payload.title in self.reject_titles:
            raise ValidationError("Failed to create test case: Field :title is invalid")
        case = self.add_case(payload.title, section_id, payload.refs)
        self.payloads[case.id] = payload
        return case

    def update_case(self, case_id: int, payload: CasePayload) -> ExistingTestCase:
        self.calls.append(("update_case", case_id, payload.title))
        if payload.title in self.reject_titles:
            raise ValidationError("Failed to update test case: Field :title is invalid")
        for case in self.cases:
            if case.id == case_id:
                case.title = payload.title
                case.refs = payload.refs
                self.payloads[case_id] = payload
                return case
        raise NotFound(f"Test case with ID {case_id} not found.")

    def delete_case(self, case_id: int) -> None:
        self.calls.append(("delete_case", case_id))
        before = len(self.cases)
        self.cases = [c for c in self.cases if c.id != case_id]
        if len(self.cases) == before:
            raise NotFound(f"Test case with ID {case_id} not found.")

    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0].startswith(("create_", "update_", "delete_"))]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jira_url="https://acme.atlassian.net",
        jira_email="qa@acme.test",
        jira_api_token="jira-token",
        testrail_url="https://acme.testrail.io",
        testrail_username="qa@acme.test",
        testrail_api_key="tr-key",
        testrail_project_id=7,
        http_timeout=5,
    )


@pytest.fixture
def ticket() -> Ticket:
    return Ticket(
        key="SHOP-42",
        summary="Login flow",
        description="",
        url="https://acme.atlassian.net/browse/SHOP-42",
    )


@pytest.fixture
def store() -> FakeTestRail:
    return FakeTestRail()


@pytest.fixture
def make_jira():
    return FakeJira
