"""
Tests for the Jira client: ADF flattening and error classification.
"""

from unittest.mock import Mock, patch

import pytest
import requests

from errors import ApiError, AuthFailure, NetworkError, NotFound
from jira_client import JiraClient, adf_to_text, classify_jira_error, description_text


def _response(status=200, body=None, reason="OK"):
    resp = Mock()
    resp.ok = 200 <= status < 300
    resp.status_code = status
    resp.reason = reason
    if isinstance(body, Exception):
        resp.json.side_effect = body
    else:
        resp.json.return_value = body if body is not None else {}
    return resp


ADF_DESCRIPTION = {
    "type": "doc",
    "version": 1,
    "content": [
        {"type": "paragraph", "content": [{"type": "text", "text": "Scenario 1: User login"}]},
        {
            "type": "paragraph",
            "content": [
                {"type": "text", "text": "When user enters valid credentials"},
                {"type": "hardBreak"},
                {"type": "text", "text": "Then user is "},
                {"type": "text", "text": "logged in", "marks": [{"type": "strong"}]},
            ],
        },
        {"type": "paragraph", "content": []},
        {"type": "paragraph"},
        {"type": "paragraph"},
        {
            "type": "bulletList",
            "content": [
                {
                    "type": "listItem",
                    "content": [{"type": "paragraph", "content": [{"type": "text", "text": "note"}]}],
                }
            ],
        },
    ],
}


class TestAdf:
    def test_paragraphs_and_hard_breaks_become_lines(self):
        text = adf_to_text(ADF_DESCRIPTION)

        assert text == (
            "Scenario 1: User login\n"
            "When user enters valid credentials\n"
            "Then user is logged in\n"
            "\n"
            "note"
        )

    def test_empty_documents(self):
        assert adf_to_text({"type": "doc", "content": []}) == ""
        assert adf_to_text(None) == ""

    def test_description_text_accepts_strings(self):
        assert description_text("Scenario: x") == "Scenario: x"
        assert description_text(None) == ""


class TestClassification:
    def test_401_is_auth(self):
        assert isinstance(classify_jira_error(401, {}, "SHOP-1"), AuthFailure)

    def test_auth_keyword_in_404_is_auth(self):
        body = {"errorMessages": ["Basic auth with passwords is deprecated."]}
        assert isinstance(classify_jira_error(404, body, "SHOP-1"), AuthFailure)

    def test_plain_404_is_not_found(self):
        body = {"errorMessages": ["Issue does not exist."]}
        error = classify_jira_error(404, body, "SHOP-1")
        assert isinstance(error, NotFound)
        assert "SHOP-1" in str(error)
        assert "credentials" not in str(error)

    def test_ambiguous_404_mentions_both_causes(self):
        body = {"errorMessages": ["Issue does not exist or you do not have permission to see it."]}
        error = classify_jira_error(404, body, "SHOP-1")
        assert isinstance(error, NotFound)
        assert "ticket key is correct" in str(error)
        assert "JIRA_API_TOKEN" in str(error)

    def test_permission_only_404_is_auth(self):
        body = {"errorMessages": ["You do not have permission to view this issue."]}
        assert isinstance(classify_jira_error(404, body, "SHOP-1"), AuthFailure)

    def test_other_status_is_api_error(self):
        error = classify_jira_error(502, {}, "SHOP-1", reason="Bad Gateway")
        assert isinstance(error, ApiError)
        assert error.status == 502
        assert "502 Bad Gateway" in str(error)


class TestFetchTicket:
    def test_fetches_and_flattens(self, settings):
        client = JiraClient(settings)
        issue = {"key": "SHOP-42", "fields": {"summary": "Login", "description": ADF_DESCRIPTION}}

        with patch.object(client._session, "get", return_value=_response(body=issue)) as get:
            ticket = client.fetch_ticket("SHOP-42")

        assert ticket.key == "SHOP-42"
        assert ticket.summary == "Login"
        assert ticket.url == "https://acme.atlassian.net/browse/SHOP-42"
        assert ticket.description.startswith("Scenario 1: User login\n")
        url = get.call_args.args[0]
        assert url == "https://acme.atlassian.net/rest/api/3/issue/SHOP-42"
        assert get.call_args.kwargs["params"] == {"fields": "summary,description"}
        assert get.call_args.kwargs["timeout"] == 5

    def test_missing_description(self, settings):
        client = JiraClient(settings)
        issue = {"key": "SHOP-42", "fields": {"summary": "Login", "description": None}}

        with patch.object(client._session, "get", return_value=_response(body=issue)):
            assert client.fetch_ticket("SHOP-42").description == ""

    def test_uses_basic_auth(self, settings):
        client = JiraClient(settings)
        assert client._session.auth == ("qa@acme.test", "jira-token")

    def test_404_with_non_json_body(self, settings):
        client = JiraClient(settings)
        resp = _response(status=404, body=ValueError("no json"), reason="Not Found")

        with patch.object(client._session, "get", return_value=resp):
            with pytest.raises(NotFound):
                client.fetch_ticket("SHOP-404")

    def test_network_error(self, settings):
        client = JiraClient(settings)

        with patch.object(client._session, "get", side_effect=requests.ConnectionError("boom")):
            with pytest.raises(NetworkError, match="Could not reach Jira"):
                client.fetch_ticket("SHOP-42")
