"""membank: a persistent memory bank served as MCP tools."""

__version__ = "1.1.0"
