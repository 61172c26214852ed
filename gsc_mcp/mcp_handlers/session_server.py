# gsc_mcp/mcp_handlers/session_server.py
import logging

import mcp.types as mcp_types
from mcp.server.lowlevel import Server
from mcp.shared.exceptions import McpError

from .gateway import ToolGateway

logger = logging.getLogger(__name__)


def create_session_server(
    gateway: ToolGateway,
    session_id: str,
    name: str = "google-search-console-mcp",
    version: str = "0.1.0",
) -> Server:
    """
    Build the MCP server that answers one SSE session.

    Handlers are registered on the request table directly so that gateway
    errors reach the client as JSON-RPC errors carrying their own codes.
    """
    server: Server = Server(name, version=version)

    async def handle_list_tools(request: mcp_types.ListToolsRequest) -> mcp_types.ServerResult:
        tools = [tool.to_mcp_tool() for tool in gateway.list_tools()]
        return mcp_types.ServerResult(mcp_types.ListToolsResult(tools=tools))

    async def handle_call_tool(request: mcp_types.CallToolRequest) -> mcp_types.ServerResult:
        outcome = await gateway.call_tool(session_id, request.params.name, request.params.arguments)
        if outcome.error is not None:
            raise McpError(outcome.error.to_error_data())
        return mcp_types.ServerResult(
            mcp_types.CallToolResult(
                content=[mcp_types.TextContent(type="text", text=outcome.text or "")],
                isError=False,
            )
        )

    server.request_handlers[mcp_types.ListToolsRequest] = handle_list_tools
    server.request_handlers[mcp_types.CallToolRequest] = handle_call_tool
    logger.debug(f"create_session_server: MCP server created for session {session_id}.")
    return server
