"""
reconciler.py – Decide which TestRail cases to create, update or delete.

Only cases whose `refs` field mentions the ticket key are considered
"managed" by that ticket.  Each parsed scenario is matched to a managed
case by title (trimmed, case-insensitive): a hit becomes an update, a
miss a create.  Managed cases left without a matching scenario are
deleted.  Cases that do not reference the ticket are never touched.
"""

from __future__ import annotations

import logging

from models import (
    CREATE,
    DELETE,
    UPDATE,
    CaseAction,
    CasePayload,
    ExistingTestCase,
    Scenario,
    SyncPlan,
    TestStep,
    Ticket,
)

logger = logging.getLogger("jira-testrail-sync")


def normalize_title(title: str) -> str:
    """Reduce a title to the key used for matching."""
    return (title or "").strip().lower()


def is_managed_by(case: ExistingTestCase, ticket_key: str) -> bool:
    """A case belongs to a ticket when its refs contain the ticket key."""
    return ticket_key in str(case.refs or "")


def build_payload(scenario: Scenario, ticket: Ticket) -> CasePayload:
    """Fields written to TestRail for *scenario*."""
    return CasePayload(
        title=scenario.name,
        preconditions=f"Jira Ticket: {ticket.key}\n{ticket.url}",
        steps=[TestStep(action=line) for line in scenario.steps],
        expected=scenario.expected_result,
        refs=ticket.key,
    )


# ── Public API ──────────────────────────────────────────────────────────

class Reconciler:
    """Diff parsed scenarios against the cases a ticket already owns."""

    def __init__(self, ticket: Ticket, existing: list[ExistingTestCase]) -> None:
        self._ticket = ticket
        self._managed = [tc for tc in existing if is_managed_by(tc, ticket.key)]
        self._by_title: dict[str, ExistingTestCase] = {}
        for tc in self._managed:
            self._by_title[normalize_title(tc.title)] = tc
        logger.debug(
            "Reconciler loaded %d of %d existing case(s) linked to %s",
            len(self._managed),
            len(existing),
            ticket.key,
        )

    @property
    def managed(self) -> list[ExistingTestCase]:
        return list(self._managed)

    def match(self, scenario: Scenario) -> ExistingTestCase | None:
        """Return the managed case *scenario* maps onto, if any."""
        return self._by_title.get(normalize_title(scenario.name))

    def plan(self, scenarios: list[Scenario]) -> SyncPlan:
        """Creates and updates in scenario order, then deletes."""
        plan = SyncPlan()

        for scenario in scenarios:
            payload = build_payload(scenario, self._ticket)
            existing = self.match(scenario)
            if existing is not None:
                plan.actions.append(
                    CaseAction(UPDATE, scenario.name, payload, case_id=existing.id)
                )
            else:
                plan.actions.append(CaseAction(CREATE, scenario.name, payload))

        wanted = {normalize_title(s.name) for s in scenarios}
        for tc in self._managed:
            if normalize_title(tc.title) not in wanted:
                plan.actions.append(CaseAction(DELETE, tc.title, case_id=tc.id))

        logger.info(
            "Plan: %d to create, %d to update, %d to delete",
            len(plan.to_create),
            len(plan.to_update),
            len(plan.to_delete),
        )
        return plan
