# gsc_mcp/sessions/__init__.py
"""
Session management for the Search Console MCP server.

Sessions live only as long as their SSE stream and are tracked in memory by
the SessionRegistry.
"""

from .session_data import Session
from .session_registry import SessionRegistry

__all__ = [
    "Session",
    "SessionRegistry",
]
