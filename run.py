#!/usr/bin/env python3
"""
run.py – CLI entry-point for jira-testrail-sync.

Usage:
    python run.py sync PROJ-123 --suite-id 4
    python run.py sync PROJ-123 --suite-name "Checkout" --section-name "Cart/Coupons" --create-sections
    python run.py sync PROJ-123 --section-id 118 --dry-run
    python run.py delete-suite 9 --dry-run
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from config import Settings
from errors import AddressingError, SyncError
from hierarchy_resolver import validate_addressing
from jira_client import JiraClient
from models import SyncPlan, SyncResult, Ticket
from sync_service import SyncService, delete_suite
from testrail_client import TestRailClient

console = Console()
logger = logging.getLogger("jira-testrail-sync")

JIRA_KEY_RE = re.compile(r"^[A-Z][A-Z0-9_]*-\d+$")

# ── Logging ─────────────────────────────────────────────────────────────

def _configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
        force=True,
    )


# ── Pretty output helpers ──────────────────────────────────────────────

def _show_ticket(ticket: Ticket) -> None:
    console.print(
        Panel(
            f"[bold cyan]{escape(ticket.summary)}[/]\n\n"
            f"[dim]URL:[/] {escape(ticket.url)}  |  "
            f"[dim]Description:[/] {len(ticket.description)} chars",
            title=f"Jira Ticket {escape(ticket.key)}",
            border_style="blue",
        )
    )


def _show_plan(plan: SyncPlan, dry_run: bool) -> None:
    title = "Planned Changes (dry run)" if dry_run else "Applied Changes"
    table = Table(title=title, show_lines=True)
    table.add_column("#", style="dim", width=4)
    table.add_column("Action", width=8)
    table.add_column("Title", style="bold")
    table.add_column("Case", width=8, justify="right")
    table.add_column("Steps", width=6, justify="center")

    styles = {"create": "green", "update": "yellow", "delete": "red"}
    for i, action in enumerate(plan.actions, 1):
        table.add_row(
            str(i),
            f"[{styles[action.kind]}]{action.kind}[/]",
            escape(action.title),
            f"C{action.case_id}" if action.case_id else "—",
            str(len(action.payload.steps)) if action.payload else "—",
        )
    console.print(table)


def _show_results(result: SyncResult) -> None:
    target = "—"
    if result.target is not None:
        target = "/".join(result.target.path) or str(result.target.section)
    console.print()
    console.print(
        Panel(
            f"[bold]Scenarios found:[/]  {result.scenarios_found}\n"
            f"[green bold]Created:[/]  {result.created}\n"
            f"[yellow bold]Updated:[/]  {result.updated}\n"
            f"[red bold]Deleted:[/]  {result.deleted}\n"
            f"[dim]Skipped:[/]  {result.skipped}\n"
            f"[blue bold]Section:[/]  {escape(target)}",
            title="Sync Summary" + (" (dry run)" if result.dry_run else ""),
            border_style="red" if result.errors else "green",
        )
    )


def _show_format_hint() -> None:
    console.print(
        "[yellow]No scenarios were found in the Jira ticket description.[/]\n"
        "Make sure the ticket contains Gherkin-style scenarios like:\n"
        "  Scenario 1: User login\n"
        "  When user enters credentials\n"
        "  Then user is logged in"
    )


# ── Commands ────────────────────────────────────────────────────────────

def _project_id(args: argparse.Namespace, settings: Settings) -> int:
    project_id = args.project_id or settings.testrail_project_id
    if not project_id:
        raise AddressingError(
            "TestRail project ID is required. Provide it via --project-id or "
            "TESTRAIL_PROJECT_ID in .env"
        )
    return project_id


def run_sync(args: argparse.Namespace, settings: Settings) -> int:
    """Run the sync command; returns the process exit code."""
    project_id = _project_id(args, settings)

    if not JIRA_KEY_RE.match(args.jira_key):
        logger.warning(
            "Jira key \"%s\" doesn't match expected format (e.g., PROJ-123). Proceeding anyway...",
            args.jira_key,
        )
    logger.info("Starting sync: %s → TestRail project %s", args.jira_key, project_id)
    if args.dry_run:
        logger.warning("Running in DRY RUN mode - no changes will be made")

    console.rule("[bold blue]Sync · Jira → TestRail")
    service = SyncService(
        JiraClient(settings),
        TestRailClient(settings),
        project_id,
        dry_run=args.dry_run,
    )
    result = service.sync(
        args.jira_key,
        suite_id=args.suite_id,
        suite_name=args.suite_name,
        section_id=args.section_id,
        section_path=args.section_name,
        create_suite=args.create_suite,
        create_sections=args.create_sections,
    )

    if result.ticket is not None:
        _show_ticket(result.ticket)
    if result.parse_degraded:
        _show_format_hint()
        return 0

    console.rule("[bold blue]Results")
    if service.last_plan is not None and service.last_plan.actions:
        _show_plan(service.last_plan, result.dry_run)
    _show_results(result)

    if result.errors:
        console.print("\n[red bold]Errors occurred during sync:[/]")
        for error in result.errors:
            console.print(f"  - {escape(error)}")
        return 1

    if result.dry_run:
        console.print("\n[green]✓ Dry run completed successfully. Use without --dry-run to apply changes.[/]")
    else:
        console.print("\n[green bold]✓ Sync completed successfully![/]")
    return 0


def run_delete_suite(args: argparse.Namespace, settings: Settings) -> int:
    """Run the delete-suite command; returns the process exit code."""
    delete_suite(TestRailClient(settings), args.suite_id, dry_run=args.dry_run)
    if args.dry_run:
        console.print(f"\n[yellow bold]DRY RUN[/] – suite {args.suite_id} would be deleted.")
    else:
        console.print(f"\n[green bold]✓ Deleted suite {args.suite_id}.[/]")
    return 0


# ── CLI ─────────────────────────────────────────────────────────────────

def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Preview changes without applying them.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jira-testrail-sync",
        description="Sync Gherkin scenarios from Jira tickets to TestRail test cases.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    sync = commands.add_parser("sync", help="Sync scenarios from a Jira ticket to TestRail.")
    sync.add_argument("jira_key", help="Jira ticket key (e.g., PROJ-123).")
    sync.add_argument("--project-id", type=int, help="TestRail project ID (overrides TESTRAIL_PROJECT_ID).")
    sync.add_argument("--suite-id", type=int, help="TestRail suite ID.")
    sync.add_argument("--suite-name", help="TestRail suite name (case-insensitive).")
    sync.add_argument("--section-id", type=int, help="TestRail section ID (alternative to a suite).")
    sync.add_argument(
        "--section-name",
        help='Section inside the suite; use "Parent/Child" for subsections.',
    )
    sync.add_argument(
        "--create-suite",
        action="store_true",
        default=False,
        help="Create the suite named by --suite-name if it does not exist.",
    )
    sync.add_argument(
        "--create-sections",
        action="store_true",
        default=False,
        help="Create missing sections along --section-name.",
    )
    _add_common(sync)

    delete = commands.add_parser("delete-suite", help="Delete a TestRail suite.")
    delete.add_argument("suite_id", type=int, help="TestRail suite ID.")
    _add_common(delete)
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    console.print(
        Panel(
            "[bold white]jira-testrail-sync[/]  –  Gherkin scenarios → TestRail",
            border_style="bright_magenta",
        )
    )

    try:
        if args.command == "sync":
            validate_addressing(args.suite_id, args.suite_name, args.section_id, args.section_name)

        settings = Settings.from_env()
        settings.validate(jira=args.command == "sync")

        if args.command == "sync":
            code = run_sync(args, settings)
        else:
            code = run_delete_suite(args, settings)
    except KeyboardInterrupt:
        console.print("\n[red]Aborted by user.[/]")
        sys.exit(130)
    except SyncError as exc:
        console.print(f"\n[red bold]✗ Failed:[/] {escape(str(exc))}")
        logger.debug("Traceback:", exc_info=True)
        sys.exit(1)
    except Exception as exc:
        console.print(f"\n[red bold]Error:[/] {escape(str(exc))}")
        logger.debug("Traceback:", exc_info=True)
        sys.exit(1)

    sys.exit(code)


if __name__ == "__main__":
    main()
