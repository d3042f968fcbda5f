"""
Jira MCP HTTP Server - token-authenticated tool dispatch, discovery endpoints
and an SSE stream for remote MCP clients.

Endpoints:
    POST   /auth/token            exchange Jira credentials for a bearer token
    POST   /mcp/message           tools/list and tools/call
    GET    /mcp/sse               event stream (connection event + heartbeat)
    GET    /tools                 tool catalog
    GET    /health                liveness and session count
    GET    /sessions              active sessions (no credentials)
    DELETE /sessions/<id>         revoke a session
    GET    /jira/projects         passthrough to list_projects
    POST   /jira/issues/search    passthrough to search_issues
    POST   /jira/issues           passthrough to create_issue
    GET    /jira/issues/<key>     passthrough to get_issue

Each request runs in its own thread.
"""
import json
import threading
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import unquote, urlparse

import structlog

from jira_mcp.errors import AuthError, JiraMCPError, NotFoundError, ValidationError
from jira_mcp.tools import JIRA_TOOLS, catalog


logger = structlog.get_logger(__name__)

SEARCH_KEYS = ("jql", "maxResults")
CREATE_KEYS = ("projectKey", "issueType", "summary", "description", "priority")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class JiraMCPHTTPServer(ThreadingHTTPServer):
    """HTTP server that carries the shared application object for its handlers."""

    daemon_threads = True

    def __init__(self, server_address, app):
        self.app = app
        self.closing = threading.Event()
        super().__init__(server_address, JiraMCPHandler)

    def shutdown(self):
        # Wake up SSE streams so their threads exit promptly
        self.closing.set()
        super().shutdown()


class JiraMCPHandler(BaseHTTPRequestHandler):

    server: JiraMCPHTTPServer

    @property
    def app(self):
        return self.server.app

    # ===== Response helpers =====

    def _send_cors_headers(self):
        settings = self.app.settings
        allowed = ", ".join(("Content-Type", "Authorization") + settings.identity_headers)
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, PUT, DELETE, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", allowed)

    def _send_json(self, data, status: int = 200):
        body = json.dumps(data, indent=2, ensure_ascii=False).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self._send_cors_headers()
        self.end_headers()
        self.wfile.write(body)

    def _send_sse_event(self, data: dict, event: str = None):
        chunk = f"event: {event}\n" if event else ""
        chunk += f"data: {json.dumps(data)}\n\n"
        self.wfile.write(chunk.encode())
        self.wfile.flush()

    # ===== Request helpers =====

    def _path_parts(self) -> list:
        path = urlparse(self.path).path
        return [unquote(p) for p in path.strip("/").split("/") if p]

    def _read_json(self) -> dict:
        raw_length = (self.headers.get("Content-Length") or "0").strip()
        if not (raw_length.isascii() and raw_length.isdecimal()):
            self.close_connection = True
            raise ValidationError("Invalid Content-Length header")
        content_length = int(raw_length)
        if not content_length:
            return {}
        raw = self.rfile.read(content_length)
        try:
            body = json.loads(raw)
        except ValueError:
            raise ValidationError("Request body must be valid JSON")
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        return body

    def _bearer_token(self):
        auth_header = self.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            return auth_header[7:].strip() or None
        return None

    def _authenticated_session(self):
        token = self._bearer_token()
        if not token:
            raise AuthError("Authentication required")
        return self.app.authenticator.authenticate(token)

    def _missing_identity_headers(self) -> list:
        return [h for h in self.app.settings.identity_headers if not self.headers.get(h)]

    def _handle(self, route):
        """Run a route and turn raised errors into JSON error responses."""
        try:
            route()
        except JiraMCPError as e:
            self._send_json(e.to_dict(), e.status_code)
        except (BrokenPipeError, ConnectionResetError):
            logger.info("client_disconnected", path=self.path)
        except Exception:
            logger.exception("request_failed", method=self.command, path=urlparse(self.path).path)
            self._send_json({"error": "Internal server error"}, 500)

    # ===== Verbs =====

    def do_GET(self):
        self._handle(self._route_get)

    def do_POST(self):
        self._handle(self._route_post)

    def do_DELETE(self):
        self._handle(self._route_delete)

    def do_OPTIONS(self):
        self.send_response(200)
        self._send_cors_headers()
        self.send_header("Content-Length", "0")
        self.end_headers()

    def _route_get(self):
        parts = self._path_parts()

        if parts == ["health"]:
            self._send_json(self.app.health())
        elif parts == ["tools"]:
            self._send_json(catalog())
        elif parts == ["sessions"]:
            sessions = [s.to_dict() for s in self.app.store.list()]
            self._send_json({"sessions": sessions, "total": len(sessions)})
        elif parts == ["mcp", "sse"]:
            self._handle_sse()
        elif parts == ["jira", "projects"]:
            self._passthrough("list_projects", {})
        elif len(parts) == 3 and parts[:2] == ["jira", "issues"]:
            self._passthrough("get_issue", {"issueKey": parts[2]})
        else:
            raise NotFoundError()

    def _route_post(self):
        parts = self._path_parts()
        body = self._read_json()

        if parts == ["auth", "token"]:
            self._issue_token(body)
        elif parts == ["mcp", "message"]:
            self._handle_mcp_message(body)
        elif parts == ["jira", "issues", "search"]:
            self._passthrough("search_issues", {k: body[k] for k in SEARCH_KEYS if k in body})
        elif parts == ["jira", "issues"]:
            self._passthrough("create_issue", {k: body[k] for k in CREATE_KEYS if k in body})
        else:
            raise NotFoundError()

    def _route_delete(self):
        parts = self._path_parts()

        if len(parts) == 2 and parts[0] == "sessions":
            if not self.app.store.delete(parts[1]):
                raise NotFoundError("Session not found")
            self._send_json({"message": "Session deleted successfully"})
        else:
            raise NotFoundError()

    # ===== Auth =====

    def _issue_token(self, body: dict):
        grant = self.app.authenticator.login(
            body.get("userId"),
            body.get("jiraUrl"),
            body.get("email"),
            body.get("apiToken"),
        )
        self._send_json(grant.to_dict())

    # ===== MCP =====

    def _handle_mcp_message(self, body: dict):
        token = self._bearer_token()
        if not token or self._missing_identity_headers():
            raise AuthError("Missing authentication headers")

        session = self.app.authenticator.authenticate(token)
        header_user = self.headers.get(self.app.settings.user_id_header)
        if header_user != session.user_id:
            logger.warning("identity_header_mismatch", session_id=session.session_id)

        method = body.get("method")
        params = body.get("params") or {}

        if method == "tools/list":
            self._send_json({"tools": JIRA_TOOLS})
        elif method == "tools/call":
            if not isinstance(params, dict):
                raise ValidationError("params must be an object")
            result = self.app.dispatcher.dispatch(session, params.get("name"), params.get("arguments"))
            self._send_json({"result": result})
        else:
            raise ValidationError(f"Unknown method: {method}")

    def _passthrough(self, tool_name: str, arguments: dict):
        session = self._authenticated_session()
        self._send_json(self.app.dispatcher.dispatch(session, tool_name, arguments))

    def _handle_sse(self):
        missing = self._missing_identity_headers()
        if missing:
            raise ValidationError(f"Missing required headers: {', '.join(self.app.settings.identity_headers)}")

        interval = self.app.settings.heartbeat_interval
        user_id = self.headers.get(self.app.settings.user_id_header)

        self.send_response(200)
        self.send_header("Content-Type", "text/event-stream")
        self.send_header("Cache-Control", "no-cache")
        self.send_header("Connection", "keep-alive")
        self.send_header("X-Accel-Buffering", "no")
        self._send_cors_headers()
        self.end_headers()
        self.close_connection = True

        logger.info("sse_connected", user_id=user_id)
        try:
            self._send_sse_event({
                "type": "connection",
                "message": "Connected to Jira MCP Server",
                "timestamp": _now_iso(),
                "availableTools": len(JIRA_TOOLS)
            })
            while not self.server.closing.wait(interval):
                self._send_sse_event({"type": "ping", "timestamp": _now_iso()})
        except (BrokenPipeError, ConnectionResetError, OSError) as e:
            logger.info("sse_disconnected", user_id=user_id, reason=type(e).__name__)
        else:
            logger.info("sse_closed", user_id=user_id, reason="server_shutdown")

    def log_message(self, format, *args):
        logger.debug("http_request", client=self.client_address[0], message=format % args)


def create_server(app, host: str = "0.0.0.0", port: int = 3001) -> JiraMCPHTTPServer:
    return JiraMCPHTTPServer((host, port), app)


def run_http_server(app, host: str = None, port: int = None):
    """Serve until interrupted, with the session sweeper running alongside."""
    host = host or app.settings.host
    port = port if port is not None else app.settings.port
    server = create_server(app, host, port)
    app.start()
    logger.info("http_server_started", host=host, port=port, transport="sse",
                health=f"http://localhost:{port}/health", tools=f"http://localhost:{port}/tools")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("http_server_stopping")
    finally:
        server.closing.set()
        app.stop()
        server.server_close()
