"""
Tool Dispatcher - routes a named tool call to the Jira REST API with the
calling session's credentials.
"""
from typing import Any, Callable, Optional

import structlog

from jira_mcp.errors import ToolExecutionError, redact
from jira_mcp.jira_client import JiraAPIError, JiraClient, JiraConfig, adf_document
from jira_mcp.sessions import Session
from jira_mcp.tools import (
    AddCommentRequest,
    CreateIssueRequest,
    GetIssueRequest,
    GetIssueTransitionsRequest,
    GetMyIssuesRequest,
    GetProjectRequest,
    GetRecentIssuesRequest,
    ListProjectsRequest,
    SearchIssuesRequest,
    TransitionIssueRequest,
    UpdateIssueRequest,
    parse_tool_request,
)


logger = structlog.get_logger(__name__)

RECENT_ISSUES_JQL = "ORDER BY updated DESC"


def my_issues_jql(email: str) -> str:
    return f'assignee = "{email}" ORDER BY updated DESC'


def client_for_session(session: Session, timeout: float = 30) -> JiraClient:
    config = JiraConfig(base_url=session.jira_url, email=session.email, api_token=session.api_token)
    return JiraClient(config, timeout=timeout)


class ToolDispatcher:
    """Executes tool invocations against Jira.

    client_factory builds a Jira client from a session; it is swapped out in
    tests to intercept outbound calls.
    """

    def __init__(self, client_factory: Optional[Callable[[Session], Any]] = None, timeout: float = 30):
        if client_factory is None:
            def client_factory(session):
                return client_for_session(session, timeout=timeout)
        self.client_factory = client_factory
        self._handlers = {
            SearchIssuesRequest: self._search_issues,
            GetIssueRequest: self._get_issue,
            CreateIssueRequest: self._create_issue,
            UpdateIssueRequest: self._update_issue,
            TransitionIssueRequest: self._transition_issue,
            GetIssueTransitionsRequest: self._get_issue_transitions,
            ListProjectsRequest: self._list_projects,
            GetProjectRequest: self._get_project,
            AddCommentRequest: self._add_comment,
            GetMyIssuesRequest: self._get_my_issues,
            GetRecentIssuesRequest: self._get_recent_issues,
        }

    def dispatch(self, session: Session, tool_name: str, arguments: Optional[dict] = None):
        """Validate and run one tool call.

        Raises UnknownToolError / MissingArgumentError / ValidationError before any
        outbound call, and ToolExecutionError when Jira rejects or cannot be reached.
        """
        request = parse_tool_request(tool_name, arguments)
        handler = self._handlers[type(request)]

        client = self.client_factory(session)
        try:
            result = handler(client, session, request)
        except JiraAPIError as e:
            message = redact(str(e), (session.api_token,))
            logger.warning("tool_call_failed", tool=tool_name, session_id=session.session_id,
                           status=e.status_code)
            raise ToolExecutionError(tool_name, message) from e
        finally:
            close = getattr(client, "close", None)
            if close:
                close()

        logger.debug("tool_call_completed", tool=tool_name, session_id=session.session_id)
        return result

    # ==================== Issue tools ====================

    def _search_issues(self, client, session: Session, request: SearchIssuesRequest):
        return client.search_issues(request.jql, request.max_results)

    def _get_issue(self, client, session: Session, request: GetIssueRequest):
        return client.get_issue(request.issue_key)

    def _create_issue(self, client, session: Session, request: CreateIssueRequest):
        created = client.create_issue(
            request.project_key,
            request.issue_type,
            request.summary,
            request.description,
            request.priority,
        )
        # The create echo only has id/key/self; return the stored issue instead
        return client.get_issue(created["key"])

    def _update_issue(self, client, session: Session, request: UpdateIssueRequest):
        fields = {}
        if request.summary:
            fields["summary"] = request.summary
        if request.description:
            fields["description"] = adf_document(request.description)
        if request.priority:
            fields["priority"] = {"name": request.priority}
        client.update_issue(request.issue_key, fields)
        return client.get_issue(request.issue_key)

    def _transition_issue(self, client, session: Session, request: TransitionIssueRequest):
        client.transition_issue(request.issue_key, request.transition_id)
        return client.get_issue(request.issue_key)

    def _get_issue_transitions(self, client, session: Session, request: GetIssueTransitionsRequest):
        return client.get_issue_transitions(request.issue_key)

    def _get_my_issues(self, client, session: Session, request: GetMyIssuesRequest):
        return client.search_issues(my_issues_jql(session.email), request.max_results)

    def _get_recent_issues(self, client, session: Session, request: GetRecentIssuesRequest):
        return client.search_issues(RECENT_ISSUES_JQL, request.max_results)

    # ==================== Project tools ====================

    def _list_projects(self, client, session: Session, request: ListProjectsRequest):
        return client.get_projects()

    def _get_project(self, client, session: Session, request: GetProjectRequest):
        return client.get_project(request.project_key)

    # ==================== Collaboration tools ====================

    def _add_comment(self, client, session: Session, request: AddCommentRequest):
        comment = client.add_comment(request.issue_key, request.comment)
        return {
            "message": f"Comment added to issue {request.issue_key} successfully",
            "issueKey": request.issue_key,
            "commentId": comment.get("id"),
        }
