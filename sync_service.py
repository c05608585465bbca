"""
sync_service.py – One sync run: Fetch → Parse → Resolve → Reconcile → Push.

Setup failures (ticket fetch, addressing, suite/section resolution) raise.
Once the plan is built every action is attempted; a failing action is
recorded in the result and the run moves on to the next one.
"""

from __future__ import annotations

import logging
from typing import Optional

from errors import SyncError
from hierarchy_resolver import HierarchyResolver, validate_addressing
from jira_client import JiraClient
from models import CREATE, DELETE, CaseAction, ExistingTestCase, SyncPlan, SyncResult, Target
from reconciler import Reconciler
from scenario_parser import parse_scenarios
from testrail_client import TestRailClient

logger = logging.getLogger("jira-testrail-sync")


class SyncService:
    """Syncs scenarios from one Jira ticket into one TestRail section."""

    def __init__(
        self,
        jira: JiraClient,
        testrail: TestRailClient,
        project_id: int,
        dry_run: bool = False,
    ) -> None:
        self._jira = jira
        self._testrail = testrail
        self._project_id = project_id
        self._dry_run = dry_run
        self.last_plan: Optional[SyncPlan] = None

    def sync(
        self,
        jira_key: str,
        suite_id: Optional[int] = None,
        suite_name: Optional[str] = None,
        section_id: Optional[int] = None,
        section_path: Optional[str] = None,
        create_suite: bool = False,
        create_sections: bool = False,
    ) -> SyncResult:
        result = SyncResult(jira_key=jira_key, dry_run=self._dry_run)
        validate_addressing(suite_id, suite_name, section_id, section_path)

        # ── Fetch ───────────────────────────────────────────────────
        logger.info("Fetching Jira ticket: %s", jira_key)
        ticket = self._jira.fetch_ticket(jira_key)
        result.ticket = ticket
        logger.info("Fetched ticket: %s - %s", ticket.key, ticket.summary)

        # ── Parse ───────────────────────────────────────────────────
        scenarios = parse_scenarios(ticket.description)
        result.scenarios_found = len(scenarios)
        if not scenarios:
            logger.warning("No Gherkin scenarios found in ticket description.")
            return result
        logger.info("Found %d scenario(s)", len(scenarios))

        # ── Resolve ─────────────────────────────────────────────────
        resolver = HierarchyResolver(
            self._testrail,
            self._project_id,
            create_suite=create_suite,
            create_sections=create_sections,
            dry_run=self._dry_run,
        )
        target = resolver.resolve(suite_id, suite_name, section_id, section_path)
        result.target = target

        # ── Reconcile ───────────────────────────────────────────────
        existing = self._existing_cases(target)
        plan = Reconciler(ticket, existing).plan(scenarios)
        self.last_plan = plan

        # ── Push ────────────────────────────────────────────────────
        if self._dry_run:
            logger.info("DRY RUN MODE - No changes will be made")
        for action in plan.actions:
            self._apply(action, target, result)

        logger.info(
            "Sync summary: found %d, created %d, updated %d, deleted %d, skipped %d",
            result.scenarios_found,
            result.created,
            result.updated,
            result.deleted,
            result.skipped,
        )
        if result.errors:
            logger.warning("Errors: %d", len(result.errors))
        return result

    def _existing_cases(self, target: Target) -> list[ExistingTestCase]:
        if target.pending:
            logger.debug("Target section does not exist yet; no existing cases to compare.")
            return []
        logger.info("Fetching existing test cases from TestRail section %s...", target.section_id)
        return self._testrail.get_cases(self._project_id, target.section_id, target.suite_id)

    def _apply(self, action: CaseAction, target: Target, result: SyncResult) -> None:
        try:
            if action.kind == CREATE:
                self._create(action, target, result)
            elif action.kind == DELETE:
                self._delete(action, result)
            else:
                self._update(action, result)
        except Exception as exc:
            if not isinstance(exc, SyncError):
                logger.debug("Unexpected error while applying %s:", action.kind, exc_info=True)
            if action.kind == DELETE:
                message = (
                    f"Failed to delete test case \"{action.title}\" (ID: {action.case_id}): {exc}"
                )
            else:
                message = f"Failed to sync scenario \"{action.title}\": {exc}"
            logger.error(message)
            result.errors.append(message)
            result.skipped += 1

    def _create(self, action: CaseAction, target: Target, result: SyncResult) -> None:
        if self._dry_run:
            logger.info("DRY RUN: would create test case \"%s\"", action.title)
        else:
            case = self._testrail.create_case(target.section_id, action.payload)
            result.case_ids.append(case.id)
        result.created += 1

    def _update(self, action: CaseAction, result: SyncResult) -> None:
        if self._dry_run:
            logger.info(
                "DRY RUN: would update test case \"%s\" (ID: %s)", action.title, action.case_id
            )
        else:
            case = self._testrail.update_case(action.case_id, action.payload)
            result.case_ids.append(case.id)
        result.updated += 1

    def _delete(self, action: CaseAction, result: SyncResult) -> None:
        if self._dry_run:
            logger.info(
                "DRY RUN: would delete test case \"%s\" (ID: %s)", action.title, action.case_id
            )
        else:
            self._testrail.delete_case(action.case_id)
        result.deleted += 1


# ── Suite deletion ──────────────────────────────────────────────────────

def delete_suite(testrail: TestRailClient, suite_id: int, dry_run: bool = False) -> None:
    """Delete a whole suite; failures propagate."""
    if dry_run:
        logger.info("DRY RUN: would delete suite %s", suite_id)
        return
    logger.info("Deleting suite %s...", suite_id)
    testrail.delete_suite(suite_id)
