"""Message dispatcher that routes chat turns between MCP tool agents and a direct model."""

__version__ = "0.1.0"
