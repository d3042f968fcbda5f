"""Tests for the Jira REST client and the credential probe."""

from unittest import mock

import pytest
import requests
from urllib3.connection import HTTPConnection
from urllib3.exceptions import NewConnectionError

from conftest import JIRA_URL, make_response
from jira_mcp.errors import AuthError
from jira_mcp.jira_client import JiraAPIError, JiraClient, JiraConfig, adf_document, validate_credentials


@pytest.fixture
def client():
    return JiraClient(JiraConfig(base_url=JIRA_URL + "/", email="dev@example.com", api_token="secret-api-token"),
                      timeout=7)


class TestJiraConfig:
    def test_trailing_slash_is_stripped(self):
        config = JiraConfig(base_url="https://example.atlassian.net///", email="a@b.c", api_token="t")
        assert config.base_url == "https://example.atlassian.net"

    def test_token_hidden_from_repr(self):
        config = JiraConfig(base_url=JIRA_URL, email="a@b.c", api_token="very-secret")
        assert "very-secret" not in repr(config)

    def test_basic_auth_pair(self):
        config = JiraConfig(base_url=JIRA_URL, email="a@b.c", api_token="t")
        assert config.auth == ("a@b.c", "t")


class TestRequests:
    """Tests for URL building, payloads and error mapping."""

    def test_get_issue_url_and_timeout(self, client):
        with mock.patch.object(client.session, "request", return_value=make_response(payload={"key": "DEMO-1"})) as req:
            issue = client.get_issue("DEMO-1")

        assert issue == {"key": "DEMO-1"}
        req.assert_called_once_with("GET", f"{JIRA_URL}/rest/api/3/issue/DEMO-1", timeout=7)

    def test_session_uses_basic_auth(self, client):
        assert client.session.auth == ("dev@example.com", "secret-api-token")
        assert client.session.headers["Accept"] == "application/json"

    def test_search_passes_jql_verbatim(self, client):
        jql = 'project = "DEMO" AND text ~ "a & b" ORDER BY created'
        payload = {"issues": [{"key": "DEMO-1"}, {"key": "DEMO-2"}]}
        with mock.patch.object(client.session, "request", return_value=make_response(payload=payload)) as req:
            result = client.search_issues(jql, 10)

        args, kwargs = req.call_args
        assert args == ("GET", f"{JIRA_URL}/rest/api/3/search/jql")
        assert kwargs["params"]["jql"] == jql
        assert kwargs["params"]["maxResults"] == 10
        assert result == {"issues": payload["issues"], "total": 2}

    def test_search_reports_remote_total(self, client):
        payload = {"issues": [{"key": "DEMO-1"}], "total": 40}
        with mock.patch.object(client.session, "request", return_value=make_response(payload=payload)):
            assert client.search_issues("project = DEMO")["total"] == 40

    def test_create_issue_wraps_description(self, client):
        echo = {"id": "10001", "key": "DEMO-1", "self": "..."}
        with mock.patch.object(client.session, "request", return_value=make_response(201, echo, "Created")) as req:
            result = client.create_issue("DEMO", "Task", "Title", "Some text", "High")

        fields = req.call_args.kwargs["json"]["fields"]
        assert result == echo
        assert fields["project"] == {"key": "DEMO"}
        assert fields["issuetype"] == {"name": "Task"}
        assert fields["description"] == adf_document("Some text")
        assert fields["priority"] == {"name": "High"}

    def test_create_issue_omits_empty_optionals(self, client):
        with mock.patch.object(client.session, "request", return_value=make_response(201, {"key": "DEMO-1"})) as req:
            client.create_issue("DEMO", "Task", "Title")

        fields = req.call_args.kwargs["json"]["fields"]
        assert "description" not in fields
        assert "priority" not in fields

    def test_add_comment_body_is_adf(self, client):
        with mock.patch.object(client.session, "request", return_value=make_response(201, {"id": "1"})) as req:
            client.add_comment("DEMO-1", "Looks good")

        assert req.call_args.args == ("POST", f"{JIRA_URL}/rest/api/3/issue/DEMO-1/comment")
        assert req.call_args.kwargs["json"] == {"body": adf_document("Looks good")}

    def test_transition_with_empty_response(self, client):
        with mock.patch.object(client.session, "request", return_value=make_response(204, reason="No Content")) as req:
            assert client.transition_issue("DEMO-1", "31") == {}

        assert req.call_args.kwargs["json"] == {"transition": {"id": "31"}}

    def test_get_issue_transitions_unwraps_list(self, client):
        payload = {"transitions": [{"id": "31", "name": "Done"}]}
        with mock.patch.object(client.session, "request", return_value=make_response(payload=payload)):
            assert client.get_issue_transitions("DEMO-1") == [{"id": "31", "name": "Done"}]

    def test_non_2xx_raises_with_status(self, client):
        response = make_response(404, reason="Not Found", text='{"errorMessages":["Issue does not exist"]}')
        with mock.patch.object(client.session, "request", return_value=response):
            with pytest.raises(JiraAPIError) as exc_info:
                client.get_issue("DEMO-404")

        assert exc_info.value.status_code == 404
        assert "404 Not Found" in str(exc_info.value)
        assert "Issue does not exist" in str(exc_info.value)

    def test_network_error_raises_jira_api_error(self, client):
        with mock.patch.object(client.session, "request", side_effect=requests.ConnectionError("refused")):
            with pytest.raises(JiraAPIError) as exc_info:
                client.get_projects()

        assert exc_info.value.status_code is None
        assert "ConnectionError" in str(exc_info.value)

    def test_non_json_success_raises_jira_api_error(self, client):
        response = make_response(200, text="<html>login</html>")
        with mock.patch.object(client.session, "request", return_value=response):
            with pytest.raises(JiraAPIError) as exc_info:
                client.get_projects()

        assert exc_info.value.status_code == 200
        assert "Invalid JSON response" in str(exc_info.value)


def _refuse_connection(conn):
    raise NewConnectionError(conn, "Connection refused")


@pytest.fixture
def refused():
    """Fail every outbound socket and count the attempts."""
    with mock.patch.object(HTTPConnection, "_new_conn", autospec=True, side_effect=_refuse_connection) as new_conn:
        yield new_conn


@pytest.fixture
def offline_client():
    client = JiraClient(JiraConfig(base_url="https://jira.example.invalid", email="dev@example.com",
                                   api_token="secret-api-token"), timeout=2)
    client.session.trust_env = False
    return client


class TestRetryPolicy:
    def test_get_attempted_twice(self, offline_client, refused):
        with pytest.raises(JiraAPIError):
            offline_client.get_projects()
        assert refused.call_count == 2

    @pytest.mark.parametrize("call", [
        lambda c: c.create_issue("DEMO", "Task", "x"),
        lambda c: c.update_issue("DEMO-1", {"summary": "x"}),
        lambda c: c.transition_issue("DEMO-1", "31"),
        lambda c: c.add_comment("DEMO-1", "hi"),
    ])
    def test_writes_attempted_once(self, offline_client, refused, call):
        with pytest.raises(JiraAPIError):
            call(offline_client)
        assert refused.call_count == 1

    def test_probe_attempted_once(self, refused):
        with pytest.raises(AuthError):
            validate_credentials("https://jira.example.invalid", "dev@example.com", "token")
        assert refused.call_count == 1

    def test_reads_retried_once(self, client):
        retry = client.session.get_adapter(JIRA_URL).max_retries
        assert retry.total == 1
        assert retry.allowed_methods == frozenset({"GET"})
        assert 503 in retry.status_forcelist

    def test_writes_not_retried_on_status(self, client):
        retry = client.session.get_adapter(JIRA_URL).max_retries
        assert "POST" not in retry.allowed_methods
        assert "PUT" not in retry.allowed_methods


class TestValidateCredentials:
    def test_success_makes_one_project_call(self):
        with mock.patch.object(requests.Session, "request", return_value=make_response(payload=[])) as req:
            validate_credentials(JIRA_URL, "dev@example.com", "token")

        req.assert_called_once()
        assert req.call_args.args == ("GET", f"{JIRA_URL}/rest/api/3/project")

    def test_unauthorized_is_auth_error(self):
        with mock.patch.object(requests.Session, "request", return_value=make_response(401, reason="Unauthorized")) as req:
            with pytest.raises(AuthError) as exc_info:
                validate_credentials(JIRA_URL, "dev@example.com", "bad-token")

        req.assert_called_once()
        assert "bad-token" not in exc_info.value.message

    def test_unreachable_is_auth_error(self):
        with mock.patch.object(requests.Session, "request", side_effect=requests.ConnectionError("dns")):
            with pytest.raises(AuthError):
                validate_credentials("https://nowhere.invalid", "dev@example.com", "token")

    def test_html_login_page_is_auth_error(self):
        response = make_response(200, text="<html>login</html>")
        with mock.patch.object(requests.Session, "request", return_value=response):
            with pytest.raises(AuthError):
                validate_credentials("https://sso.example.com", "dev@example.com", "token")
