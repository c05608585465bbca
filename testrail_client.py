"""
testrail_client.py – All TestRail REST interactions.

Talks to the v2 API (`index.php?/api/v2/...`) through a single
`requests.Session`.  Every non-2xx response is turned into one of the
exceptions in `errors.py` by `classify_testrail_error`.

TestRail instances differ in which case fields their templates expose, so
the generic `CasePayload` is mapped onto whatever the instance reports from
`get_case_fields` (fetched once per client).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import requests

from config import Settings
from errors import (
    ApiError,
    AuthFailure,
    Forbidden,
    NetworkError,
    NotFound,
    SyncError,
    ValidationError,
)
from models import CasePayload, ExistingTestCase, Section, Suite

logger = logging.getLogger("jira-testrail-sync")

TEMPLATE_STEPS = 1
TEMPLATE_TEXT = 2
STEPS_FIELD_TYPE = 10

_SINGLE_SUITE_WORDING = {
    "create suite": ("single test suite", "only supports a single"),
    "delete suite": (
        "single",
        "not permitted",
        "not allowed",
        "master suite",
        "cannot be deleted",
    ),
}


def _error_text(body: Any) -> str:
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or "")
    return str(body or "")


def _details(body: Any) -> str:
    if isinstance(body, (dict, list)):
        return json.dumps(body, indent=2)
    return str(body or "")


# ── Error classification ────────────────────────────────────────────────

def classify_testrail_error(
    status: int,
    body: Any,
    action: str,
    subject: str = "",
    write: bool = False,
    reason: str = "",
) -> SyncError:
    """Map a failed TestRail response onto the error taxonomy.

    *action* is a short verb phrase ("create suite", "fetch sections").
    *write* distinguishes permission problems on mutations (Forbidden) from
    403s on reads, which TestRail returns for bad credentials.
    """
    message = _error_text(body)
    lowered = message.lower()

    if status == 401 or (status == 403 and not write):
        return AuthFailure(
            f"TestRail authentication failed ({status}). Please check your "
            "credentials (TESTRAIL_USERNAME, TESTRAIL_API_KEY)."
        )

    if status == 403:
        wording = _SINGLE_SUITE_WORDING.get(action, ())
        if any(w in lowered for w in wording):
            if action == "delete suite":
                return Forbidden(
                    "Cannot delete suite in Single Suite Mode.\n"
                    "TestRail projects configured in \"Single Suite Mode\" do not "
                    "allow suite deletion; the master suite cannot be deleted.\n"
                    "Switch the project to \"Multiple Test Suites\" mode in the "
                    "TestRail UI, or manage sections and cases instead.\n\n"
                    f"Error details: {message or 'Suite deletion not permitted'}",
                    single_suite_mode=True,
                )
            return Forbidden(
                "This TestRail project is configured in \"Single Suite Mode\" "
                "and only allows one test suite.\n"
                "You cannot create additional suites in this project; use the "
                "existing suite and create sections within it.",
                single_suite_mode=True,
            )
        return Forbidden(
            f"TestRail permission denied (403). You may not have permission to "
            f"{action}.\n"
            "Please check your TestRail role (Project Lead or Administrator) and "
            "the project's permissions.\n\n"
            f"Error details: {message or 'Permission denied'}"
        )

    if status == 400:
        return ValidationError(
            f"Failed to {action}: {message or 'Invalid request'}",
            details=_details(body),
        )

    if status == 404:
        return NotFound(f"{subject} not found." if subject else f"Failed to {action}: not found.")

    return ApiError(f"Failed to {action}: {status} {reason}".rstrip(), status=status)


def _body_of(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


def _steps_text(steps: list[dict[str, str]]) -> str:
    parts = []
    for idx, step in enumerate(steps, start=1):
        text = f"{idx}. {step['content']}"
        if step["expected"]:
            text += f"\n   Expected: {step['expected']}"
        parts.append(text)
    return "\n\n".join(parts)


def _require_id(data: Any, kind: str) -> int:
    """Return the id TestRail assigned, or fail if the response has none."""
    if not isinstance(data, dict) or not data.get("id"):
        raise ApiError(f"TestRail returned a {kind} without an id: {data!r}")
    return int(data["id"])


def _to_suite(data: dict[str, Any]) -> Suite:
    return Suite(id=_require_id(data, "suite"), name=data.get("name", ""))


def _to_section(data: dict[str, Any]) -> Section:
    section_id = _require_id(data, "section")
    parent = data.get("parent_id")
    return Section(
        id=section_id,
        name=data.get("name", ""),
        suite_id=int(data.get("suite_id") or 0),
        parent_id=int(parent) if parent else None,
    )


def _to_case(data: dict[str, Any]) -> ExistingTestCase:
    return ExistingTestCase(
        id=_require_id(data, "test case"),
        title=data.get("title", ""),
        section_id=int(data.get("section_id") or 0),
        refs=str(data.get("refs") or ""),
    )


# ── Main client ─────────────────────────────────────────────────────────

class TestRailClient:
    """Wraps every TestRail interaction needed by the sync."""

    __test__ = False

    def __init__(self, settings: Settings) -> None:
        self._root = settings.testrail_url
        self._base = f"{settings.testrail_url}/index.php?/api/v2"
        self._timeout = settings.http_timeout
        self._session = requests.Session()
        self._session.auth = (settings.testrail_username, settings.testrail_api_key)
        self._session.headers.update({"Content-Type": "application/json"})
        self._fields: Optional[dict[str, dict[str, Any]]] = None

    # ── Transport ───────────────────────────────────────────────────────

    def _request(
        self,
        method: str,
        url: str,
        action: str,
        subject: str = "",
        write: bool = False,
        body: Optional[dict[str, Any]] = None,
    ) -> Any:
        logger.debug("%s %s", method, url)
        try:
            resp = self._session.request(method, url, json=body, timeout=self._timeout)
        except requests.RequestException as exc:
            raise NetworkError(
                f"Network error: Could not reach TestRail at {self._root}. "
                "Please check your connection and TESTRAIL_URL."
            ) from exc

        if not resp.ok:
            payload = _body_of(resp)
            logger.debug("TestRail error response: %s %s", resp.status_code, payload)
            raise classify_testrail_error(
                resp.status_code, payload, action, subject=subject, write=write, reason=resp.reason
            )

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            raise ApiError(
                f"TestRail returned a non-JSON response while trying to {action}.",
                status=resp.status_code,
            ) from exc

    def _get_list(self, endpoint: str, key: str, action: str) -> list[dict[str, Any]]:
        """GET a list endpoint, following `_links.next` across pages."""
        items: list[dict[str, Any]] = []
        url: Optional[str] = f"{self._base}/{endpoint}"
        while url:
            data = self._request("GET", url, action)
            if isinstance(data, list):
                items.extend(data)
                break
            if not isinstance(data, dict) or not isinstance(data.get(key), list):
                raise ApiError(
                    f"Invalid response format from TestRail while trying to {action}. "
                    f"Expected a '{key}' array."
                )
            items.extend(data[key])
            next_link = (data.get("_links") or {}).get("next")
            url = f"{self._root}/index.php?{next_link}" if next_link else None
        return items

    # ── Suites ──────────────────────────────────────────────────────────

    def get_suites(self, project_id: int) -> list[Suite]:
        data = self._get_list(f"get_suites/{project_id}", "suites", "fetch suites")
        suites = [_to_suite(s) for s in data]
        logger.debug("Found %d suite(s) in project %s", len(suites), project_id)
        return suites

    def create_suite(self, project_id: int, name: str) -> Suite:
        """Create a suite; explains Single Suite Mode projects on refusal."""
        try:
            data = self._request(
                "POST",
                f"{self._base}/add_suite/{project_id}",
                "create suite",
                write=True,
                body={"name": name},
            )
        except Forbidden as exc:
            if not exc.single_suite_mode:
                raise
            raise Forbidden(
                f"{exc}{self._master_suite_hint(project_id)}", single_suite_mode=True
            ) from exc
        suite = _to_suite(data)
        logger.info("Created suite '%s' (id=%s)", suite.name, suite.id)
        return suite

    def _master_suite_hint(self, project_id: int) -> str:
        try:
            suites = self.get_suites(project_id)
        except SyncError as exc:
            logger.debug("Could not fetch suites for suggestions: %s", exc)
            return ""
        if not suites:
            return ""
        master = min(suites, key=lambda s: s.id)
        return (
            "\n\nAvailable suite in this project:\n"
            f"  - \"{master.name}\" (ID: {master.id})\n\n"
            "Use the existing suite instead, for example:\n"
            f"  --suite-name \"{master.name}\"  or  --suite-id {master.id}"
        )

    def delete_suite(self, suite_id: int) -> None:
        self._request(
            "POST",
            f"{self._base}/delete_suite/{suite_id}",
            "delete suite",
            subject=f"Suite with ID {suite_id}",
            write=True,
            body={},
        )
        logger.info("Deleted suite %s", suite_id)

    # ── Sections ────────────────────────────────────────────────────────

    def get_sections(self, project_id: int, suite_id: int) -> list[Section]:
        data = self._get_list(
            f"get_sections/{project_id}&suite_id={suite_id}", "sections", "fetch sections"
        )
        sections = [_to_section(s) for s in data]
        logger.debug("Found %d section(s) in suite %s", len(sections), suite_id)
        return sections

    def get_section(self, section_id: int) -> Section:
        data = self._request(
            "GET",
            f"{self._base}/get_section/{section_id}",
            "fetch section",
            subject=f"Section with ID {section_id}",
        )
        return _to_section(data)

    def create_section(
        self,
        project_id: int,
        suite_id: int,
        name: str,
        parent_id: Optional[int] = None,
    ) -> Section:
        body: dict[str, Any] = {"name": name, "suite_id": suite_id}
        if parent_id:
            body["parent_id"] = parent_id
        data = self._request(
            "POST", f"{self._base}/add_section/{project_id}", "create section", write=True, body=body
        )
        section = _to_section(data)
        logger.info(
            "Created section '%s' (id=%s)%s",
            section.name,
            section.id,
            f" under section {parent_id}" if parent_id else "",
        )
        return section

    # ── Cases ───────────────────────────────────────────────────────────

    def get_cases(
        self,
        project_id: int,
        section_id: int,
        suite_id: Optional[int] = None,
    ) -> list[ExistingTestCase]:
        endpoint = f"get_cases/{project_id}&section_id={section_id}"
        if suite_id:
            endpoint += f"&suite_id={suite_id}"
        cases = [_to_case(c) for c in self._get_list(endpoint, "cases", "fetch test cases")]
        logger.debug("Found %d existing test case(s) in section %s", len(cases), section_id)
        return cases

    def create_case(self, section_id: int, payload: CasePayload) -> ExistingTestCase:
        data = self._request(
            "POST",
            f"{self._base}/add_case/{section_id}",
            "create test case",
            write=True,
            body=self._case_body(payload),
        )
        case = _to_case(data)
        logger.info("Created Test Case #%s  →  '%s'", case.id, payload.title)
        return case

    def update_case(self, case_id: int, payload: CasePayload) -> ExistingTestCase:
        data = self._request(
            "POST",
            f"{self._base}/update_case/{case_id}",
            "update test case",
            subject=f"Test case with ID {case_id}",
            write=True,
            body=self._case_body(payload),
        )
        logger.info("Updated Test Case #%s  →  '%s'", case_id, payload.title)
        return _to_case(data) if data else ExistingTestCase(id=case_id, title=payload.title)

    def delete_case(self, case_id: int) -> None:
        self._request(
            "POST",
            f"{self._base}/delete_case/{case_id}",
            "delete test case",
            subject=f"Test case with ID {case_id}",
            write=True,
            body={},
        )
        logger.info("Deleted Test Case #%s", case_id)

    # ── Custom fields ───────────────────────────────────────────────────

    def case_fields(self) -> dict[str, dict[str, Any]]:
        """Return {system_name: field} for this instance, fetched once."""
        if self._fields is None:
            try:
                raw = self._request("GET", f"{self._base}/get_case_fields", "fetch case fields")
            except SyncError as exc:
                logger.debug("Could not fetch custom case fields: %s", exc)
                raw = []
            if not isinstance(raw, list):
                raw = []
            self._fields = {
                f["system_name"]: f for f in raw if isinstance(f, dict) and f.get("system_name")
            }
            logger.debug("Instance exposes %d case field(s)", len(self._fields))
        return self._fields

    def _case_body(self, payload: CasePayload) -> dict[str, Any]:
        """Translate the generic payload into this instance's field names."""
        steps = [{"content": s.action, "expected": s.expected_result} for s in payload.steps]
        body: dict[str, Any] = {
            "title": payload.title,
            "template_id": TEMPLATE_STEPS if steps else TEMPLATE_TEXT,
            "custom_preconds": payload.preconditions,
            "custom_expected": payload.expected,
            "refs": payload.refs,
        }
        if not steps:
            return body

        fields = self.case_fields()
        if "custom_steps_separated" in fields:
            body["custom_steps_separated"] = steps
        elif "custom_steps" in fields:
            if fields["custom_steps"].get("type_id") == STEPS_FIELD_TYPE:
                body["custom_steps"] = steps
            else:
                body["custom_steps"] = _steps_text(steps)
        else:
            body["custom_steps_separated"] = steps
            body["custom_steps"] = steps
        return body
