"""
jira_client.py – Read-only access to Jira issues.

Fetches a ticket's summary and description over the REST v3 API and
flattens Atlassian Document Format (ADF) descriptions into plain text so
the scenario parser only ever sees lines.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import requests

from config import Settings
from errors import ApiError, AuthFailure, NetworkError, NotFound, SyncError
from models import Ticket

logger = logging.getLogger("jira-testrail-sync")

_AUTH_KEYWORDS = (
    "authentication",
    "unauthorized",
    "forbidden",
    "credentials",
    "login",
    "basic auth",
)
_PERMISSION_DENIAL = ("you do not have permission", "do not have permission to")

_AUTH_MESSAGE = (
    "Authentication failed. Please check your Jira credentials "
    "(JIRA_EMAIL, JIRA_API_TOKEN)."
)


# ── ADF helpers ─────────────────────────────────────────────────────────

def _adf_node_text(node: Any) -> str:
    if not isinstance(node, dict):
        return ""
    kind = node.get("type")
    if kind == "text":
        return node.get("text", "")
    if kind == "hardBreak":
        return "\n"
    children = node.get("content") or []
    inner = "".join(_adf_node_text(child) for child in children)
    if kind in ("paragraph", "heading"):
        return inner + "\n"
    return inner


def adf_to_text(document: Any) -> str:
    """Flatten an ADF document into newline-separated plain text."""
    if not isinstance(document, dict) or not document.get("content"):
        return ""
    text = "".join(_adf_node_text(node) for node in document["content"])
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def description_text(field: Any) -> str:
    """Return the description as plain text whatever shape Jira sent."""
    if not field:
        return ""
    if isinstance(field, str):
        return field
    return adf_to_text(field)


# ── Error classification ────────────────────────────────────────────────

def _error_message(body: Any) -> str:
    if isinstance(body, dict):
        messages = body.get("errorMessages") or []
        if messages:
            return str(messages[0])
        return str(body.get("message") or "")
    return str(body or "")


def classify_jira_error(status: int, body: Any, issue_key: str, reason: str = "") -> SyncError:
    """Turn a failed issue fetch into the most specific error we can justify.

    Jira answers 404 both for missing issues and for issues the caller may
    not see, sometimes with wording that mentions both.  Unambiguous auth
    signals win; a message naming both causes gets a two-sided hint.
    """
    text = (_error_message(body) or reason or "").lower()

    if status in (401, 403) or any(k in text for k in _AUTH_KEYWORDS):
        return AuthFailure(_AUTH_MESSAGE)

    if status == 404:
        denied = any(p in text for p in _PERMISSION_DENIAL)
        if denied and "does not exist" in text:
            return NotFound(
                f"Jira ticket \"{issue_key}\" not found or you do not have permission "
                "to access it. Please check: (1) the ticket key is correct, (2) your "
                "Jira credentials (JIRA_EMAIL, JIRA_API_TOKEN) are correct."
            )
        if denied:
            return AuthFailure(_AUTH_MESSAGE)
        return NotFound(f"Jira ticket \"{issue_key}\" not found. Please check the ticket key.")

    return ApiError(f"Failed to fetch Jira ticket: {status} {reason}".rstrip(), status=status)


# ── Main client ─────────────────────────────────────────────────────────

class JiraClient:
    """Fetches tickets from a Jira Cloud / Server instance."""

    def __init__(self, settings: Settings) -> None:
        self._base = settings.jira_url
        self._timeout = settings.http_timeout
        self._session = requests.Session()
        self._session.auth = (settings.jira_email, settings.jira_api_token)
        self._session.headers.update(
            {"Accept": "application/json", "Content-Type": "application/json"}
        )

    def fetch_ticket(self, issue_key: str) -> Ticket:
        """Fetch a single issue by key."""
        url = f"{self._base}/rest/api/3/issue/{issue_key}"
        logger.debug("Fetching Jira ticket: %s", issue_key)
        try:
            resp = self._session.get(
                url, params={"fields": "summary,description"}, timeout=self._timeout
            )
        except requests.RequestException as exc:
            raise NetworkError(
                f"Network error: Could not reach Jira at {self._base}. "
                "Please check your connection and JIRA_URL."
            ) from exc

        if not resp.ok:
            try:
                body: Any = resp.json()
            except ValueError:
                body = {}
            logger.debug("Jira API error response: status %s, body %s", resp.status_code, body)
            if resp.status_code == 404 and not body:
                logger.debug("404 with an empty body can also mean rejected credentials")
            raise classify_jira_error(resp.status_code, body, issue_key, reason=resp.reason)

        issue = resp.json()
        fields: dict[str, Any] = issue.get("fields") or {}
        key = issue.get("key", issue_key)
        ticket = Ticket(
            key=key,
            summary=fields.get("summary") or "",
            description=description_text(fields.get("description")),
            url=f"{self._base}/browse/{key}",
        )
        logger.debug(
            "Fetched %s (description: %d chars)", ticket.key, len(ticket.description)
        )
        return ticket
