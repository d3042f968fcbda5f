"""
Jira API Client - thin wrapper over the Jira Cloud REST API v3.

Every call carries a bounded timeout. Idempotent reads (GET) are retried once
on connection errors and gateway failures; writes are never retried.
"""
from dataclasses import dataclass, field
from typing import Optional

import requests
import structlog
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from jira_mcp.errors import AuthError


logger = structlog.get_logger(__name__)

SEARCH_FIELDS = "summary,description,status,priority,assignee,reporter,project,issuetype,created,updated"


@dataclass
class JiraConfig:
    """Configuration for Jira API connection."""
    base_url: str
    email: str
    api_token: str = field(repr=False)

    def __post_init__(self):
        self.base_url = (self.base_url or "").rstrip("/")

    @property
    def auth(self) -> tuple:
        return (self.email, self.api_token)

    @property
    def headers(self) -> dict:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json"
        }


class JiraAPIError(Exception):
    """Non-2xx response or transport failure talking to Jira."""

    def __init__(self, status_code: Optional[int], reason: str, body: str = ""):
        self.status_code = status_code
        self.reason = reason
        self.body = body
        super().__init__(str(self))

    def __str__(self) -> str:
        status = f"{self.status_code} {self.reason}" if self.status_code else self.reason
        return f"{status} - {self.body}" if self.body else status


def adf_document(text: str) -> dict:
    """Wrap plain text in an Atlassian Document Format envelope."""
    return {
        "type": "doc",
        "version": 1,
        "content": [{
            "type": "paragraph",
            "content": [{"type": "text", "text": text}]
        }]
    }


class ReadOnlyRetry(Retry):
    """Retry that never repeats a request whose method is not in allowed_methods.

    urllib3 checks allowed_methods for read and status retries only; connection
    errors are otherwise retried for every method, including POST and PUT.
    """

    def increment(self, method=None, url=None, *args, **kwargs):
        if method and method.upper() not in self.allowed_methods:
            return Retry.increment(self.new(total=0), method, url, *args, **kwargs)
        return super().increment(method, url, *args, **kwargs)


def _build_retry(read_retries: int) -> Retry:
    return ReadOnlyRetry(
        total=read_retries,
        connect=read_retries,
        read=read_retries,
        status=read_retries,
        allowed_methods=frozenset({"GET"}),
        status_forcelist=(502, 503, 504),
        raise_on_status=False,
    )


class JiraClient:
    """Client for interacting with Jira REST API."""

    def __init__(self, config: JiraConfig, timeout: float = 30, read_retries: int = 1):
        self.config = config
        self.timeout = timeout
        self.session = requests.Session()
        self.session.auth = config.auth
        self.session.headers.update(config.headers)
        adapter = HTTPAdapter(max_retries=_build_retry(read_retries))
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def _request(self, method: str, endpoint: str, **kwargs):
        """Make HTTP request to Jira API."""
        url = f"{self.config.base_url}/rest/api/3/{endpoint}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise JiraAPIError(None, type(e).__name__, str(e)) from e
        if not response.ok:
            raise JiraAPIError(response.status_code, response.reason, response.text)
        if not response.text:
            return {}
        try:
            return response.json()
        except ValueError as e:
            # e.g. an SSO login page served with 200 for a wrong base URL
            raise JiraAPIError(response.status_code, "Invalid JSON response") from e

    def close(self):
        self.session.close()

    # ==================== Project Operations ====================

    def get_projects(self) -> list:
        """Get list of all accessible projects."""
        return self._request("GET", "project")

    def get_project(self, project_key: str) -> dict:
        """Get a single project."""
        return self._request("GET", f"project/{project_key}")

    # ==================== Issue Operations ====================

    def search_issues(self, jql: str, max_results: int = 50) -> dict:
        """Search issues using JQL. The query is sent as given."""
        params = {"jql": jql, "maxResults": max_results, "fields": SEARCH_FIELDS}
        result = self._request("GET", "search/jql", params=params)
        issues = result.get("issues", [])
        return {"issues": issues, "total": result.get("total", len(issues))}

    def get_issue(self, issue_key: str) -> dict:
        """Get a specific issue with full details."""
        return self._request("GET", f"issue/{issue_key}")

    def create_issue(self, project_key: str, issue_type: str, summary: str,
                     description: Optional[str] = None, priority: Optional[str] = None) -> dict:
        """Create a new issue. Returns Jira's create echo ({id, key, self})."""
        fields = {
            "project": {"key": project_key},
            "issuetype": {"name": issue_type},
            "summary": summary,
        }
        if description:
            fields["description"] = adf_document(description)
        if priority:
            fields["priority"] = {"name": priority}
        return self._request("POST", "issue", json={"fields": fields})

    def update_issue(self, issue_key: str, fields: dict) -> dict:
        """Update an existing issue."""
        return self._request("PUT", f"issue/{issue_key}", json={"fields": fields})

    def get_issue_transitions(self, issue_key: str) -> list:
        result = self._request("GET", f"issue/{issue_key}/transitions")
        return result.get("transitions", [])

    def transition_issue(self, issue_key: str, transition_id: str) -> dict:
        payload = {"transition": {"id": transition_id}}
        return self._request("POST", f"issue/{issue_key}/transitions", json=payload)

    def add_comment(self, issue_key: str, comment: str) -> dict:
        return self._request("POST", f"issue/{issue_key}/comment", json={"body": adf_document(comment)})


def validate_credentials(base_url: str, email: str, api_token: str, timeout: float = 30) -> None:
    """Probe Jira once with the given credentials; raise AuthError if they don't work."""
    client = JiraClient(JiraConfig(base_url=base_url, email=email, api_token=api_token),
                        timeout=timeout, read_retries=0)
    try:
        client.get_projects()
    except JiraAPIError as e:
        logger.info("credential_probe_failed", jira_url=client.config.base_url, status=e.status_code)
        raise AuthError("Invalid Jira credentials or URL") from e
    finally:
        client.close()
