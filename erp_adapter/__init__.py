"""ERP MCP adapter: JSON-RPC tool calls in, resilient ERP REST calls out."""

__version__ = "1.0.0"
