"""MCP (model-context-protocol) stdio server for code-health."""
