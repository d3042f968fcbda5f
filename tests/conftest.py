"""Shared pytest fixtures."""

import json
import threading

import pytest
import requests

from jira_mcp.app import JiraMCPApp
from jira_mcp.config import Settings
from jira_mcp.dispatcher import ToolDispatcher
from jira_mcp.errors import AuthError
from jira_mcp.http_server import create_server
from jira_mcp.sessions import Session


JWT_SECRET = "test-signing-secret-with-enough-bytes-for-hs256"
GOOD_API_TOKEN = "good-api-token"
JIRA_URL = "https://example.atlassian.net"


def make_response(status: int = 200, payload=None, reason: str = "OK", text: str = None) -> requests.Response:
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.encoding = "utf-8"
    response.url = f"{JIRA_URL}/rest/api/3/"
    if text is not None:
        response._content = text.encode()
    elif payload is not None:
        response._content = json.dumps(payload).encode()
    else:
        response._content = b""
    return response


class FakeJiraClient:
    """Stand-in for JiraClient that records every outbound call."""

    def __init__(self):
        self.calls = []
        self.failures = {}
        self.closed = 0

    def _record(self, name, *args):
        self.calls.append((name, args))
        if name in self.failures:
            raise self.failures[name]

    def call_names(self):
        return [name for name, _ in self.calls]

    def get_projects(self):
        self._record("get_projects")
        return [{"id": "10000", "key": "DEMO", "name": "Demo"}]

    def get_project(self, project_key):
        self._record("get_project", project_key)
        return {"id": "10000", "key": project_key, "name": "Demo"}

    def search_issues(self, jql, max_results=50):
        self._record("search_issues", jql, max_results)
        return {"issues": [{"id": "10001", "key": "DEMO-1"}], "total": 1}

    def get_issue(self, issue_key):
        self._record("get_issue", issue_key)
        return {
            "id": "10001",
            "key": issue_key,
            "fields": {
                "summary": "Fetched summary",
                "created": "2024-01-01T10:00:00.000+0000",
                "updated": "2024-01-02T10:00:00.000+0000",
            },
        }

    def create_issue(self, project_key, issue_type, summary, description=None, priority=None):
        self._record("create_issue", project_key, issue_type, summary, description, priority)
        return {"id": "10001", "key": f"{project_key}-1", "self": f"{JIRA_URL}/rest/api/3/issue/10001"}

    def update_issue(self, issue_key, fields):
        self._record("update_issue", issue_key, fields)
        return {}

    def transition_issue(self, issue_key, transition_id):
        self._record("transition_issue", issue_key, transition_id)
        return {}

    def get_issue_transitions(self, issue_key):
        self._record("get_issue_transitions", issue_key)
        return [{"id": "31", "name": "Done"}]

    def add_comment(self, issue_key, comment):
        self._record("add_comment", issue_key, comment)
        return {"id": "20001"}

    def close(self):
        self.closed += 1


def fake_validator(jira_url, email, api_token):
    if api_token != GOOD_API_TOKEN:
        raise AuthError("Invalid Jira credentials or URL")


@pytest.fixture
def session():
    return Session(
        session_id="session_1700000000000_abc123xyz",
        user_id="user-1",
        jira_url=JIRA_URL,
        email="dev@example.com",
        api_token="secret-api-token",
        last_access=1700000000.0,
    )


@pytest.fixture
def fake_client():
    return FakeJiraClient()


@pytest.fixture
def dispatcher(fake_client):
    return ToolDispatcher(client_factory=lambda session: fake_client)


@pytest.fixture
def settings():
    return Settings(
        jwt_secret=JWT_SECRET,
        heartbeat_interval=0.05,
        sweep_interval=60,
        jira_url=JIRA_URL,
        jira_email="stdio@example.com",
        jira_api_token=GOOD_API_TOKEN,
    )


@pytest.fixture
def app(settings, fake_client):
    return JiraMCPApp(settings, validator=fake_validator, client_factory=lambda session: fake_client)


@pytest.fixture
def base_url(app):
    """Run the HTTP server on an ephemeral port for the duration of a test."""
    server = create_server(app, "127.0.0.1", 0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    yield f"http://{host}:{port}"
    server.shutdown()
    server.server_close()
    thread.join(timeout=5)
