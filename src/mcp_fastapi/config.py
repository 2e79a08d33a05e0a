"""Configuration for MCP integrations.

Default values are read from environment variables (and a local .env file)
so deployments can override endpoints and server identity without code
changes. Explicit ``McpOptions`` arguments always win over the environment.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

MCP_SERVER_NAME = os.getenv("MCP_SERVER_NAME", "mcp-server")
MCP_SERVER_VERSION = os.getenv("MCP_SERVER_VERSION", "0.1.0")
MCP_SSE_ENDPOINT = os.getenv("MCP_SSE_ENDPOINT", "sse")
MCP_MESSAGES_ENDPOINT = os.getenv("MCP_MESSAGES_ENDPOINT", "messages")
MCP_HTTP_ENDPOINT = os.getenv("MCP_HTTP_ENDPOINT", "mcp")
MCP_GLOBAL_API_PREFIX = os.getenv("MCP_GLOBAL_API_PREFIX", "")
MCP_HOST = os.getenv("MCP_HOST", "127.0.0.1")
MCP_PORT = int(os.getenv("MCP_PORT", "3000"))
MCP_LOG_LEVEL = os.getenv("MCP_LOG_LEVEL", "INFO")


class TransportType(str, Enum):
    """Transports an integration can expose."""

    SSE = "sse"
    STREAMABLE_HTTP = "streamable-http"
    STDIO = "stdio"


def normalize_path(path: str) -> str:
    """Return ``path`` with a single leading slash and no trailing slash.

    An empty path normalizes to an empty string so it can be used as a prefix.
    """
    stripped = path.strip().strip("/")
    return f"/{stripped}" if stripped else ""


@dataclass
class McpOptions:
    """Options for a single MCP integration.

    Args:
        name: Server name reported during the MCP handshake
        version: Server version reported during the MCP handshake
        instructions: Optional usage instructions sent to clients
        transports: Transports to expose; HTTP transports become routes
        sse_endpoint: Path of the SSE stream endpoint
        messages_endpoint: Path clients POST SSE session messages to
        mcp_endpoint: Path of the streamable HTTP endpoint
        global_api_prefix: Prefix the host application mounts its routes under
        tool_prefix: Prefix added to every tool name (e.g. "calc_")
        stateless: Run streamable HTTP without sessions
        json_response: Answer streamable HTTP requests with JSON instead of SSE
    """

    name: str = MCP_SERVER_NAME
    version: str = MCP_SERVER_VERSION
    instructions: Optional[str] = None
    transports: List[TransportType] = field(
        default_factory=lambda: [TransportType.SSE, TransportType.STREAMABLE_HTTP]
    )
    sse_endpoint: str = MCP_SSE_ENDPOINT
    messages_endpoint: str = MCP_MESSAGES_ENDPOINT
    mcp_endpoint: str = MCP_HTTP_ENDPOINT
    global_api_prefix: str = MCP_GLOBAL_API_PREFIX
    tool_prefix: str = ""
    stateless: bool = False
    json_response: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("MCP server name must not be empty")
        if not self.transports:
            raise ValueError("At least one transport must be enabled")
        self.transports = [TransportType(t) for t in self.transports]

        for attr in ("sse_endpoint", "messages_endpoint", "mcp_endpoint"):
            value = normalize_path(getattr(self, attr))
            if not value:
                raise ValueError(f"{attr} must not be empty")
            setattr(self, attr, value)
        self.global_api_prefix = normalize_path(self.global_api_prefix)

        if self.sse_endpoint == self.messages_endpoint:
            raise ValueError("sse_endpoint and messages_endpoint must differ")

    def enabled(self, transport: TransportType) -> bool:
        return transport in self.transports
