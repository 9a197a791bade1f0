"""Request routing and the stdio MCP transport."""
