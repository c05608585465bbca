"""
Tests for environment-driven settings.
"""

import dataclasses

import pytest

from config import DEFAULT_HTTP_TIMEOUT, Settings

ALL_VARS = {
    "JIRA_URL": "https://acme.atlassian.net/",
    "JIRA_EMAIL": " qa@acme.test ",
    "JIRA_API_TOKEN": "jira-token",
    "TESTRAIL_URL": "https://acme.testrail.io//",
    "TESTRAIL_USERNAME": "qa@acme.test",
    "TESTRAIL_API_KEY": "tr-key",
}


@pytest.fixture
def env(monkeypatch):
    for name in list(ALL_VARS) + ["TESTRAIL_PROJECT_ID", "HTTP_TIMEOUT"]:
        monkeypatch.delenv(name, raising=False)
    for name, value in ALL_VARS.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


def test_reads_and_cleans_values(env):
    settings = Settings.from_env(dotenv=False)

    assert settings.jira_url == "https://acme.atlassian.net"
    assert settings.jira_email == "qa@acme.test"
    assert settings.testrail_url == "https://acme.testrail.io"
    assert settings.testrail_project_id == 0
    assert settings.http_timeout == DEFAULT_HTTP_TIMEOUT
    assert settings.missing() == []
    settings.validate()


def test_optional_integers(env):
    env.setenv("TESTRAIL_PROJECT_ID", "12")
    env.setenv("HTTP_TIMEOUT", " 45 ")

    settings = Settings.from_env(dotenv=False)

    assert settings.testrail_project_id == 12
    assert settings.http_timeout == 45


def test_bad_integer_exits(env):
    env.setenv("TESTRAIL_PROJECT_ID", "seven")

    with pytest.raises(SystemExit) as exc:
        Settings.from_env(dotenv=False)

    assert "TESTRAIL_PROJECT_ID must be an integer" in str(exc.value.code)


def test_validate_lists_every_missing_variable(env):
    env.delenv("JIRA_API_TOKEN")
    env.setenv("TESTRAIL_API_KEY", "   ")

    settings = Settings.from_env(dotenv=False)

    assert settings.missing() == ["JIRA_API_TOKEN", "TESTRAIL_API_KEY"]
    with pytest.raises(SystemExit) as exc:
        settings.validate()
    assert "JIRA_API_TOKEN, TESTRAIL_API_KEY" in str(exc.value.code)


def test_settings_are_read_only(settings):
    with pytest.raises(dataclasses.FrozenInstanceError):
        settings.jira_url = "https://elsewhere.test"


def test_testrail_only_validation(env):
    for name in ("JIRA_URL", "JIRA_EMAIL", "JIRA_API_TOKEN"):
        env.delenv(name)

    settings = Settings.from_env(dotenv=False)

    assert settings.missing(jira=False) == []
    settings.validate(jira=False)
    assert settings.missing() == ["JIRA_URL", "JIRA_EMAIL", "JIRA_API_TOKEN"]
