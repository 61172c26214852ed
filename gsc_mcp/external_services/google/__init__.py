# gsc_mcp/external_services/google/__init__.py
from .search_console_service import SearchConsoleService, SearchConsoleAPIError

__all__ = ["SearchConsoleService", "SearchConsoleAPIError"]
