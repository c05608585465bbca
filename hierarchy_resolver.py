"""
hierarchy_resolver.py – Turn a suite / section selection into one section.

Addressing is exactly one of:
  ├─ a section id      (used as-is; its suite is looked up best-effort)
  ├─ a suite id        (+ optional "Parent/Child/..." section path)
  └─ a suite name      (+ optional section path)

Missing suites and sections can be created on demand.  In a dry run
nothing is created; the missing container is returned as `WouldCreate`
so the caller can keep simulating.
"""

from __future__ import annotations

import logging
from typing import Optional

from errors import AddressingError, SyncError
from models import ContainerRef, Resolved, Section, Target, WouldCreate
from testrail_client import TestRailClient

logger = logging.getLogger("jira-testrail-sync")


def normalize_name(name: str) -> str:
    """Case-fold and collapse whitespace for container-name comparison."""
    return " ".join((name or "").split()).lower()


def split_section_path(text: Optional[str]) -> list[str]:
    """Split "A / B//C " into ["A", "B", "C"]."""
    return [part.strip() for part in (text or "").split("/") if part.strip()]


def validate_addressing(
    suite_id: Optional[int] = None,
    suite_name: Optional[str] = None,
    section_id: Optional[int] = None,
    section_path: Optional[str] = None,
) -> None:
    """Reject missing or conflicting selections before any network call."""
    chosen = [
        flag
        for flag, value in (
            ("--suite-id", suite_id),
            ("--suite-name", (suite_name or "").strip()),
            ("--section-id", section_id),
        )
        if value
    ]
    if not chosen:
        raise AddressingError(
            "One of --suite-id, --suite-name or --section-id must be provided."
        )
    if len(chosen) > 1:
        raise AddressingError(
            f"Cannot combine {' and '.join(chosen)}. Use only one of them."
        )
    if section_id and split_section_path(section_path):
        raise AddressingError(
            "--section-name can only be used with --suite-id or --suite-name."
        )


def _describe(section: Section) -> str:
    parent = f" (under section ID {section.parent_id})" if section.parent_id else ""
    return f"\"{section.name}\" (ID: {section.id}){parent}"


class HierarchyResolver:
    """Resolves (and optionally creates) the section cases are synced into."""

    def __init__(
        self,
        store: TestRailClient,
        project_id: int,
        create_suite: bool = False,
        create_sections: bool = False,
        dry_run: bool = False,
    ) -> None:
        self._store = store
        self._project_id = project_id
        self._create_suite = create_suite
        self._create_sections = create_sections
        self._dry_run = dry_run
        self._sections: list[Section] = []

    @property
    def sections(self) -> list[Section]:
        """Working set of the resolved suite's sections, including new ones."""
        return list(self._sections)

    def resolve(
        self,
        suite_id: Optional[int] = None,
        suite_name: Optional[str] = None,
        section_id: Optional[int] = None,
        section_path: Optional[str] = None,
    ) -> Target:
        validate_addressing(suite_id, suite_name, section_id, section_path)

        if section_id:
            return self._from_section_id(section_id)

        suite: ContainerRef = Resolved(suite_id) if suite_id else self._suite_by_name(suite_name or "", section_path)
        if isinstance(suite, Resolved):
            logger.info("Fetching sections from suite %s...", suite.id)
            self._sections = self._store.get_sections(self._project_id, suite.id)
        else:
            self._sections = []

        segments = split_section_path(section_path)
        if not segments:
            section, path = self._default_section(suite)
        elif len(segments) == 1:
            section, path = self._single_segment(suite, segments[0])
        else:
            section, path = self._walk(suite, segments)
        return Target(section=section, suite=suite, path=path)

    # ── Section id ──────────────────────────────────────────────────────

    def _from_section_id(self, section_id: int) -> Target:
        logger.info("Fetching section details for section ID %s...", section_id)
        try:
            section = self._store.get_section(section_id)
        except SyncError as exc:
            logger.warning(
                "Could not fetch section details: %s Proceeding without suite id...", exc
            )
            return Target(section=Resolved(section_id))
        logger.debug("Section %s belongs to suite %s", section_id, section.suite_id)
        suite = Resolved(section.suite_id) if section.suite_id else None
        return Target(section=Resolved(section_id), suite=suite, path=[section.name])

    # ── Suite by name ───────────────────────────────────────────────────

    def _suite_by_name(self, name: str, section_path: Optional[str] = None) -> ContainerRef:
        wanted = normalize_name(name)
        suites = self._store.get_suites(self._project_id)
        for suite in suites:
            if normalize_name(suite.name) == wanted:
                logger.info("Found suite \"%s\" (ID: %s)", suite.name, suite.id)
                return Resolved(suite.id)

        if not self._create_suite:
            available = ", ".join(f"\"{s.name}\" (ID: {s.id})" for s in suites) or "None"
            raise AddressingError(
                f"Suite \"{name}\" not found in project {self._project_id}.\n"
                f"Available suites: {available}\n"
                "Use --create-suite to create it."
            )

        clean = " ".join(name.split())
        if not split_section_path(section_path) or not self._create_sections:
            # a new suite has no sections to sync into
            raise AddressingError(
                f"Suite \"{clean}\" does not exist yet, so it has no sections.\n"
                "Use --section-name together with --create-sections when creating a suite."
            )
        if self._dry_run:
            logger.info("DRY RUN: would create suite \"%s\"", clean)
            return WouldCreate(clean)
        return Resolved(self._store.create_suite(self._project_id, clean).id)

    # ── Section selection ───────────────────────────────────────────────

    @staticmethod
    def _suite_label(suite: ContainerRef) -> str:
        if isinstance(suite, Resolved):
            return str(suite.id)
        return f"\"{suite.name}\" (not yet created)"

    def _default_section(self, suite: ContainerRef) -> tuple[ContainerRef, list[str]]:
        if not self._sections:
            raise AddressingError(
                f"No sections found in suite {self._suite_label(suite)}. "
                "Use --section-name to choose one (with --create-sections to create it)."
            )

        top_level = [s for s in self._sections if not s.parent_id]
        chosen = top_level[0] if top_level else self._sections[0]

        if not top_level:
            logger.warning("Using subsection \"%s\" (ID: %s)", chosen.name, chosen.id)
        elif len(top_level) > 1:
            logger.warning(
                "Found %d top-level sections in suite; using the first, \"%s\" (ID: %s). "
                "Use --section-name to select another.",
                len(top_level),
                chosen.name,
                chosen.id,
            )
        else:
            logger.info("Using section \"%s\" (ID: %s)", chosen.name, chosen.id)
        return Resolved(chosen.id), [chosen.name]

    def _single_segment(
        self, suite: ContainerRef, segment: str
    ) -> tuple[ContainerRef, list[str]]:
        wanted = normalize_name(segment)
        named = [s for s in self._sections if normalize_name(s.name) == wanted]
        top_level = [s for s in named if not s.parent_id]
        match = (top_level or named or [None])[0]

        if match is not None:
            logger.info("Found section \"%s\" (ID: %s)", match.name, match.id)
            return Resolved(match.id), [match.name]

        if not self._create_sections:
            available = ", ".join(_describe(s) for s in self._sections) or "None"
            raise AddressingError(
                f"Section \"{segment}\" not found in suite {self._suite_label(suite)}.\n"
                f"Available sections: {available}"
            )
        return self._create(suite, segment, None), [segment]

    def _children_of(self, parent: Optional[ContainerRef]) -> list[Section]:
        if parent is None:
            return [s for s in self._sections if not s.parent_id]
        if isinstance(parent, Resolved):
            return [s for s in self._sections if s.parent_id == parent.id]
        return []

    def _walk(
        self, suite: ContainerRef, segments: list[str]
    ) -> tuple[ContainerRef, list[str]]:
        """Descend "A/B/C" one level at a time from the suite root."""
        parent: Optional[ContainerRef] = None
        walked: list[str] = []

        for segment in segments:
            siblings = self._children_of(parent)
            wanted = normalize_name(segment)
            match = next((s for s in siblings if normalize_name(s.name) == wanted), None)

            if match is not None:
                parent = Resolved(match.id)
                walked.append(match.name)
                continue

            if not self._create_sections:
                context = "top-level" if parent is None else f"under \"{'/'.join(walked)}\""
                available = ", ".join(f"\"{s.name}\" (ID: {s.id})" for s in siblings) or "None"
                raise AddressingError(
                    f"Section \"{segment}\" not found {context} in suite "
                    f"{self._suite_label(suite)}.\n"
                    f"Path: {'/'.join(walked + [segment])}\n"
                    f"Available sections {context}: {available}"
                )

            parent = self._create(suite, segment, parent)
            walked.append(segment)

        if isinstance(parent, Resolved):
            logger.info("Using section ID %s at path \"%s\"", parent.id, "/".join(walked))
        return parent, walked

    def _create(
        self,
        suite: ContainerRef,
        name: str,
        parent: Optional[ContainerRef],
    ) -> ContainerRef:
        if self._dry_run or not isinstance(suite, Resolved) or isinstance(parent, WouldCreate):
            where = f" under \"{parent.name}\"" if isinstance(parent, WouldCreate) else ""
            logger.info("DRY RUN: would create section \"%s\"%s", name, where)
            return WouldCreate(name, parent)

        parent_id = parent.id if isinstance(parent, Resolved) else None
        section = self._store.create_section(self._project_id, suite.id, name, parent_id)
        self._sections.append(section)
        return Resolved(section.id)
