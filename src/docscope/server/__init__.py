"""MCP server surface."""

from docscope.server.mcp_server import (
    create_mcp_server,
    format_chunk,
    format_extraction,
    format_sheet_data,
)

__all__ = ["create_mcp_server", "format_chunk", "format_extraction", "format_sheet_data"]
