# gsc_mcp/__init__.py
"""
Google Search Console operations exposed as MCP tools over SSE.

The application is built by gsc_mcp.main.create_app.
"""

__version__ = "0.1.0"
