"""MCP gateway for the Immich photo and video server."""

__version__ = "0.1.0"
