"""HTTP header names used by the streamable HTTP transport."""

SESSION_ID_HEADER = "Mcp-Session-Id"
