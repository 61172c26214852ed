# gsc_mcp/external_services/__init__.py
# Clients for the external APIs the MCP tools are backed by.

from .interfaces import AnalyticsOperations
from .google import SearchConsoleService, SearchConsoleAPIError

__all__ = ["AnalyticsOperations", "SearchConsoleService", "SearchConsoleAPIError"]
