"""
Tool catalog and typed request variants.

JIRA_TOOLS is the static catalog served to discovery endpoints. Each tool also
has a request dataclass that turns the caller's loose argument mapping into a
checked value: required keys must be present, unknown keys are rejected.
"""
from dataclasses import MISSING, dataclass, field, fields
from typing import ClassVar, Optional

from jira_mcp.errors import MissingArgumentError, UnknownToolError, ValidationError


CATALOG_VERSION = "1.0.0"
CATALOG_DESCRIPTION = "Jira MCP Server - Complete project management and issue tracking API with multitenant support"

_MAX_RESULTS_SCHEMA = {"type": "number", "description": "Maximum number of results to return (default: 50)"}

JIRA_TOOLS = [
    {
        "name": "search_issues",
        "description": "Search for issues in Jira using JQL (Jira Query Language)",
        "inputSchema": {
            "type": "object",
            "properties": {
                "jql": {"type": "string", "description": 'JQL query string (e.g., "project = PROJ AND status = Open")'},
                "maxResults": _MAX_RESULTS_SCHEMA
            },
            "required": ["jql"]
        }
    },
    {
        "name": "get_issue",
        "description": "Get detailed information about a specific Jira issue",
        "inputSchema": {
            "type": "object",
            "properties": {
                "issueKey": {"type": "string", "description": 'Jira issue key (e.g., "PROJ-123")'}
            },
            "required": ["issueKey"]
        }
    },
    {
        "name": "create_issue",
        "description": "Create a new issue in Jira",
        "inputSchema": {
            "type": "object",
            "properties": {
                "projectKey": {"type": "string", "description": "Project key where the issue will be created"},
                "issueType": {"type": "string", "description": 'Issue type (e.g., "Bug", "Task", "Story")'},
                "summary": {"type": "string", "description": "Issue summary/title"},
                "description": {"type": "string", "description": "Issue description (optional)"},
                "priority": {"type": "string", "description": 'Issue priority (e.g., "High", "Medium", "Low") (optional)'}
            },
            "required": ["projectKey", "issueType", "summary"]
        }
    },
    {
        "name": "update_issue",
        "description": "Update an existing Jira issue",
        "inputSchema": {
            "type": "object",
            "properties": {
                "issueKey": {"type": "string", "description": "Jira issue key to update"},
                "summary": {"type": "string", "description": "Updated summary (optional)"},
                "description": {"type": "string", "description": "Updated description (optional)"},
                "priority": {"type": "string", "description": "Updated priority (optional)"}
            },
            "required": ["issueKey"]
        }
    },
    {
        "name": "transition_issue",
        "description": "Transition an issue to a different status",
        "inputSchema": {
            "type": "object",
            "properties": {
                "issueKey": {"type": "string", "description": "Jira issue key to transition"},
                "transitionId": {"type": "string", "description": "Transition ID (use get_issue_transitions to find available transitions)"}
            },
            "required": ["issueKey", "transitionId"]
        }
    },
    {
        "name": "get_issue_transitions",
        "description": "Get available transitions for an issue",
        "inputSchema": {
            "type": "object",
            "properties": {
                "issueKey": {"type": "string", "description": "Jira issue key"}
            },
            "required": ["issueKey"]
        }
    },
    {
        "name": "list_projects",
        "description": "List all accessible Jira projects",
        "inputSchema": {"type": "object", "properties": {}}
    },
    {
        "name": "get_project",
        "description": "Get detailed information about a specific project",
        "inputSchema": {
            "type": "object",
            "properties": {
                "projectKey": {"type": "string", "description": "Project key"}
            },
            "required": ["projectKey"]
        }
    },
    {
        "name": "add_comment",
        "description": "Add a comment to a Jira issue",
        "inputSchema": {
            "type": "object",
            "properties": {
                "issueKey": {"type": "string", "description": "Jira issue key"},
                "comment": {"type": "string", "description": "Comment text"}
            },
            "required": ["issueKey", "comment"]
        }
    },
    {
        "name": "get_my_issues",
        "description": "Get issues assigned to the current user",
        "inputSchema": {"type": "object", "properties": {"maxResults": _MAX_RESULTS_SCHEMA}}
    },
    {
        "name": "get_recent_issues",
        "description": "Get recently updated issues",
        "inputSchema": {"type": "object", "properties": {"maxResults": _MAX_RESULTS_SCHEMA}}
    }
]

TOOL_CATEGORIES = {
    "Issue Management": ["search_issues", "get_issue", "create_issue", "update_issue", "get_my_issues", "get_recent_issues"],
    "Issue Workflow": ["transition_issue", "get_issue_transitions"],
    "Project Management": ["list_projects", "get_project"],
    "Collaboration": ["add_comment"]
}


def catalog() -> dict:
    """Payload for the tools discovery endpoint."""
    return {
        "tools": JIRA_TOOLS,
        "total": len(JIRA_TOOLS),
        "categories": TOOL_CATEGORIES,
        "version": CATALOG_VERSION,
        "description": CATALOG_DESCRIPTION,
    }


# ==================== Request variants ====================

def _arg(key: str, kind: type = str, default=MISSING):
    metadata = {"key": key, "kind": kind}
    if default is MISSING:
        return field(metadata=metadata)
    return field(default=default, metadata=metadata)


def _coerce(tool: str, key: str, value, kind: type):
    if kind is int:
        if isinstance(value, bool):
            raise ValidationError(f"{tool}: {key} must be a number")
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        elif isinstance(value, str) and value.strip().isascii() and value.strip().isdecimal():
            value = int(value.strip())
        if not isinstance(value, int):
            raise ValidationError(f"{tool}: {key} must be a number")
        if value < 1:
            raise ValidationError(f"{tool}: {key} must be positive")
        return value

    if isinstance(value, str):
        return value
    # Numeric ids (e.g. transitionId) are accepted and sent as strings
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ValidationError(f"{tool}: {key} must be a string")


class ToolRequest:
    """Base for the per-tool argument dataclasses."""

    tool: ClassVar[str] = ""

    @classmethod
    def required_arguments(cls) -> list:
        return [f.metadata["key"] for f in fields(cls) if f.default is MISSING]

    @classmethod
    def from_arguments(cls, arguments: Optional[dict]) -> "ToolRequest":
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ValidationError(f"{cls.tool}: arguments must be an object")

        declared = {f.metadata["key"]: f for f in fields(cls)}
        for key in cls.required_arguments():
            if arguments.get(key) is None:
                raise MissingArgumentError(cls.tool, key)

        unexpected = sorted(set(arguments) - set(declared))
        if unexpected:
            raise ValidationError(f"Unexpected arguments for {cls.tool}: {', '.join(unexpected)}")

        values = {}
        for key, f in declared.items():
            if arguments.get(key) is not None:
                values[f.name] = _coerce(cls.tool, key, arguments[key], f.metadata["kind"])
        return cls(**values)


@dataclass
class SearchIssuesRequest(ToolRequest):
    tool: ClassVar[str] = "search_issues"
    jql: str = _arg("jql")
    max_results: int = _arg("maxResults", int, 50)


@dataclass
class GetIssueRequest(ToolRequest):
    tool: ClassVar[str] = "get_issue"
    issue_key: str = _arg("issueKey")


@dataclass
class CreateIssueRequest(ToolRequest):
    tool: ClassVar[str] = "create_issue"
    project_key: str = _arg("projectKey")
    issue_type: str = _arg("issueType")
    summary: str = _arg("summary")
    description: Optional[str] = _arg("description", str, None)
    priority: Optional[str] = _arg("priority", str, None)


@dataclass
class UpdateIssueRequest(ToolRequest):
    tool: ClassVar[str] = "update_issue"
    issue_key: str = _arg("issueKey")
    summary: Optional[str] = _arg("summary", str, None)
    description: Optional[str] = _arg("description", str, None)
    priority: Optional[str] = _arg("priority", str, None)


@dataclass
class TransitionIssueRequest(ToolRequest):
    tool: ClassVar[str] = "transition_issue"
    issue_key: str = _arg("issueKey")
    transition_id: str = _arg("transitionId")


@dataclass
class GetIssueTransitionsRequest(ToolRequest):
    tool: ClassVar[str] = "get_issue_transitions"
    issue_key: str = _arg("issueKey")


@dataclass
class ListProjectsRequest(ToolRequest):
    tool: ClassVar[str] = "list_projects"


@dataclass
class GetProjectRequest(ToolRequest):
    tool: ClassVar[str] = "get_project"
    project_key: str = _arg("projectKey")


@dataclass
class AddCommentRequest(ToolRequest):
    tool: ClassVar[str] = "add_comment"
    issue_key: str = _arg("issueKey")
    comment: str = _arg("comment")


@dataclass
class GetMyIssuesRequest(ToolRequest):
    tool: ClassVar[str] = "get_my_issues"
    max_results: int = _arg("maxResults", int, 50)


@dataclass
class GetRecentIssuesRequest(ToolRequest):
    tool: ClassVar[str] = "get_recent_issues"
    max_results: int = _arg("maxResults", int, 50)


TOOL_REQUESTS = {
    cls.tool: cls
    for cls in (
        SearchIssuesRequest,
        GetIssueRequest,
        CreateIssueRequest,
        UpdateIssueRequest,
        TransitionIssueRequest,
        GetIssueTransitionsRequest,
        ListProjectsRequest,
        GetProjectRequest,
        AddCommentRequest,
        GetMyIssuesRequest,
        GetRecentIssuesRequest,
    )
}


def parse_tool_request(tool_name: str, arguments: Optional[dict]) -> ToolRequest:
    """Validate a tool invocation: known name first, then its arguments."""
    request_cls = TOOL_REQUESTS.get(tool_name)
    if request_cls is None:
        raise UnknownToolError(str(tool_name))
    return request_cls.from_arguments(arguments)
