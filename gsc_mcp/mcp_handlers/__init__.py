# gsc_mcp/mcp_handlers/__init__.py
"""
MCP protocol handling: the tool catalog, the session-scoped tool gateway,
the per-session MCP server and the SSE transport that carries it.
"""

from .tool_catalog import TOOL_CATALOG, TOOLS_BY_NAME, ToolDescriptor
from .gateway import DISPATCH_TABLE, ToolError, ToolErrorKind, ToolGateway, ToolOutcome
from .session_server import create_session_server
from .sse_transport import SessionSseTransport

__all__ = [
    "TOOL_CATALOG",
    "TOOLS_BY_NAME",
    "ToolDescriptor",
    "DISPATCH_TABLE",
    "ToolError",
    "ToolErrorKind",
    "ToolGateway",
    "ToolOutcome",
    "create_session_server",
    "SessionSseTransport",
]
