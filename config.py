"""
config.py – Settings loaded from environment variables (and an optional .env).

A single `Settings` value is built at start-up and handed to each client
constructor; nothing else reads the environment.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_HTTP_TIMEOUT = 30

JIRA_VARIABLES = ("JIRA_URL", "JIRA_EMAIL", "JIRA_API_TOKEN")

REQUIRED_VARIABLES = JIRA_VARIABLES + (
    "TESTRAIL_URL",
    "TESTRAIL_USERNAME",
    "TESTRAIL_API_KEY",
)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        sys.exit(f"[ERROR] {name} must be an integer, got '{raw}'.")


@dataclass(frozen=True)
class Settings:
    """Validated, read-only application settings."""

    # ── Jira ────────────────────────────────────────────────
    jira_url: str = ""
    jira_email: str = ""
    jira_api_token: str = ""

    # ── TestRail ────────────────────────────────────────────
    testrail_url: str = ""
    testrail_username: str = ""
    testrail_api_key: str = ""
    testrail_project_id: int = 0

    # ── Behaviour ───────────────────────────────────────────
    http_timeout: int = DEFAULT_HTTP_TIMEOUT

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """Read every setting from the process environment."""
        if dotenv:
            load_dotenv()
        return cls(
            jira_url=os.getenv("JIRA_URL", "").strip().rstrip("/"),
            jira_email=os.getenv("JIRA_EMAIL", "").strip(),
            jira_api_token=os.getenv("JIRA_API_TOKEN", "").strip(),
            testrail_url=os.getenv("TESTRAIL_URL", "").strip().rstrip("/"),
            testrail_username=os.getenv("TESTRAIL_USERNAME", "").strip(),
            testrail_api_key=os.getenv("TESTRAIL_API_KEY", "").strip(),
            testrail_project_id=_int_env("TESTRAIL_PROJECT_ID", 0),
            http_timeout=_int_env("HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        )

    def missing(self, jira: bool = True) -> list[str]:
        """Names of required variables that are empty.

        With *jira* False only the TestRail variables are checked.
        """
        values = {
            "JIRA_URL": self.jira_url,
            "JIRA_EMAIL": self.jira_email,
            "JIRA_API_TOKEN": self.jira_api_token,
            "TESTRAIL_URL": self.testrail_url,
            "TESTRAIL_USERNAME": self.testrail_username,
            "TESTRAIL_API_KEY": self.testrail_api_key,
        }
        required = REQUIRED_VARIABLES if jira else REQUIRED_VARIABLES[len(JIRA_VARIABLES):]
        return [name for name in required if not values[name]]

    def validate(self, jira: bool = True) -> None:
        """Halt early if required values are missing."""
        missing = self.missing(jira)
        if missing:
            sys.exit(
                f"[ERROR] Missing required environment variables: {', '.join(missing)}\n"
                "  → Copy .env.example to .env and fill in all values."
            )
