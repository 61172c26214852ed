# gsc_mcp/cli/__init__.py
