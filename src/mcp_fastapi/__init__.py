"""mcp-fastapi - expose FastAPI application providers as an MCP server.

Decorate provider methods with @mcp_tool, @mcp_resource, @mcp_resource_template
or @mcp_prompt, hand the providers to McpIntegration and attach it to an app to
serve them over SSE and streamable HTTP.
"""

from .config import McpOptions, TransportType
from .context import Context
from .decorators import mcp_prompt, mcp_resource, mcp_resource_template, mcp_tool
from .integration import McpIntegration
from .registry import DuplicateRegistrationError, McpRegistry

__all__ = [
    "Context",
    "DuplicateRegistrationError",
    "McpIntegration",
    "McpOptions",
    "McpRegistry",
    "TransportType",
    "mcp_prompt",
    "mcp_resource",
    "mcp_resource_template",
    "mcp_tool",
]
