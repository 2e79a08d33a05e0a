"""Exposes provider tools, resources and prompts over MCP from a FastAPI app."""

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Iterable, List, Optional, Sequence

import mcp.server.stdio
import uvicorn
from fastapi import APIRouter, FastAPI
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from . import config
from .config import McpOptions, TransportType
from .executor import McpExecutor
from .registry import McpRegistry
from .transports import SseTransport, StreamableHttpTransport

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"


class McpIntegration:
    """MCP server built from provider objects and mounted on a FastAPI app.

    Example:
        class OrderTools:
            @mcp_tool(name="find-order")
            async def find_order(self, order_id: int, context: Context) -> Dict[str, Any]:
                '''Look up an order by id.

                Args:
                    order_id: Numeric order identifier
                '''
                await context.report_progress(1, 1)
                return {"id": order_id}

        app = FastAPI()
        mcp = McpIntegration(McpOptions(name="orders"), providers=[OrderTools], guards=[require_token])
        mcp.attach(app)

    Guards are ordinary FastAPI dependencies; they run before every SSE,
    message and streamable HTTP request.
    """

    def __init__(
        self,
        options: Optional[McpOptions] = None,
        providers: Iterable[Any] = (),
        guards: Sequence[Callable] = (),
    ):
        self.options = options or McpOptions()
        self.guards = list(guards)
        self.registry = McpRegistry(providers, tool_prefix=self.options.tool_prefix)
        self.server = Server(
            self.options.name,
            version=self.options.version,
            instructions=self.options.instructions,
        )
        self.executor = McpExecutor(self.server, self.registry)

        self.sse: Optional[SseTransport] = None
        self.streamable_http: Optional[StreamableHttpTransport] = None
        if self.options.enabled(TransportType.SSE):
            self.sse = SseTransport(self.server, self.options)
        if self.options.enabled(TransportType.STREAMABLE_HTTP):
            self.streamable_http = StreamableHttpTransport(self.server, self.options)

        self._router: Optional[APIRouter] = None

        if self.registry.is_empty():
            logging.warning(f"MCP server {self.options.name} has no tools, resources or prompts")

    def add_provider(self, provider: Any) -> Any:
        return self.registry.add_provider(provider)

    def restrict_to(self, transport: TransportType) -> None:
        """Serve only ``transport`` over HTTP; must be called before the routes are built."""
        transport = TransportType(transport)
        if self._router is not None:
            raise RuntimeError("MCP routes are already built")
        if not self.options.enabled(transport):
            raise ValueError(f"Transport {transport.value} is not enabled for {self.options.name}")

        self.options.transports = [transport]
        if transport != TransportType.SSE:
            self.sse = None
        if transport != TransportType.STREAMABLE_HTTP:
            self.streamable_http = None

    def router(self) -> APIRouter:
        """Routes for every enabled HTTP transport, protected by the guards."""
        if self._router is None:
            router = APIRouter()
            if self.sse is not None:
                self.sse.register(router, self.guards)
            if self.streamable_http is not None:
                self.streamable_http.register(router, self.guards)
            self._router = router
        return self._router

    @asynccontextmanager
    async def lifespan(self) -> AsyncIterator[None]:
        """Keep transport background tasks running; no-op without streamable HTTP."""
        if self.streamable_http is None:
            yield
            return
        async with self.streamable_http.run():
            logging.info(f"MCP streamable HTTP session manager started for {self.options.name}")
            yield
        logging.info(f"MCP streamable HTTP session manager stopped for {self.options.name}")

    def attach(self, app: FastAPI) -> FastAPI:
        """Add the MCP routes to ``app`` and chain the transports into its lifespan."""
        app.include_router(self.router(), prefix=self.options.global_api_prefix)

        app_lifespan = app.router.lifespan_context

        @asynccontextmanager
        async def lifespan(app_: FastAPI) -> AsyncIterator[Any]:
            async with self.lifespan():
                async with app_lifespan(app_) as state:
                    yield state

        app.router.lifespan_context = lifespan

        for path in self.endpoints():
            logging.info(f"MCP server {self.options.name} listening on {path}")
        return app

    def create_app(self) -> FastAPI:
        """Standalone FastAPI application serving only this integration."""
        app = FastAPI(title=self.options.name, version=self.options.version)
        return self.attach(app)

    def endpoints(self) -> List[str]:
        prefix = self.options.global_api_prefix
        paths = []
        if self.sse is not None:
            paths.append(f"{prefix}{self.options.sse_endpoint}")
            paths.append(f"{prefix}{self.options.messages_endpoint}")
        if self.streamable_http is not None:
            paths.append(f"{prefix}{self.options.mcp_endpoint}")
        return paths

    async def run_stdio(self) -> None:
        """Run the MCP server over stdin/stdout."""
        logging.info(f"Starting {self.options.name} v{self.options.version} on stdio")

        async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name=self.options.name,
                    server_version=self.options.version,
                    instructions=self.options.instructions,
                    capabilities=self.server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                ),
            )

    def describe_tools(self) -> None:
        """Print human-readable descriptions of everything the server exposes."""
        print(f"\n{self.options.name} v{self.options.version}")
        print("=" * 60)
        print("\nAvailable Tools:\n")

        for tool_name, entry in sorted(self.registry.tools.items()):
            tool = entry.to_tool()
            print(f"Tool: {tool_name}")
            print(f"  Description: {tool.description or 'No description available'}")

            properties = tool.inputSchema.get("properties", {})
            if properties:
                print("  Parameters:")
                required_params = tool.inputSchema.get("required", [])

                for param_name, param_info in properties.items():
                    param_type = param_info.get("type", "any")
                    param_desc = param_info.get("description", "No description")
                    is_required = param_name in required_params

                    if param_type == "array" and "items" in param_info:
                        item_type = param_info["items"].get("type", "any")
                        param_type = f"array[{item_type}]"

                    if "enum" in param_info:
                        enum_values = ", ".join(f"'{v}'" for v in param_info["enum"])
                        param_type = f"{param_type} ({enum_values})"

                    print(f"    - {param_name}: {param_type} {'(required)' if is_required else '(optional)'}")
                    print(f"      {param_desc}")
            else:
                print("  Parameters: None")

            print()

        if self.registry.resources or self.registry.resource_templates:
            print("Resources:\n")
            for uri, resource in sorted(self.registry.resources.items()):
                print(f"  {uri} ({resource.mime_type}) - {resource.description or resource.name}")
            for template in self.registry.resource_templates.values():
                print(f"  {template.uri_template} ({template.mime_type}) - {template.description or template.name}")
            print()

        if self.registry.prompts:
            print("Prompts:\n")
            for name, prompt in sorted(self.registry.prompts.items()):
                print(f"  {name} - {prompt.description or 'No description available'}")
            print()

    def parse_args(self, args: Optional[List[str]] = None) -> argparse.Namespace:
        """Parse command line arguments.

        Args:
            args: Optional list of arguments to parse. If None, uses sys.argv.

        Returns:
            Parsed arguments namespace
        """
        parser = argparse.ArgumentParser(
            prog=self.options.name,
            description=f"{self.options.name} - MCP server",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        parser.add_argument(
            "--describe",
            action="store_true",
            help="Show available tools, resources and prompts",
        )
        parser.add_argument(
            "--transport",
            choices=[t.value for t in TransportType],
            default=None,
            help="Transport to serve (default: every enabled HTTP transport)",
        )
        parser.add_argument("--host", default=config.MCP_HOST, help="HTTP bind address")
        parser.add_argument("--port", type=int, default=config.MCP_PORT, help="HTTP port")
        parser.add_argument("--log-level", default=config.MCP_LOG_LEVEL, help="Python log level")

        return parser.parse_args(args)

    def main(self, args: Optional[List[str]] = None) -> None:
        """Main entry point for a standalone server.

        Args:
            args: Optional list of command line arguments. If None, uses sys.argv.
        """
        parsed_args = self.parse_args(args)

        logging.basicConfig(
            level=parsed_args.log_level.upper(),
            format=LOG_FORMAT,
            # stdout carries the protocol on stdio
            stream=sys.stderr,
        )

        if parsed_args.describe:
            self.describe_tools()
            sys.exit(0)

        transport = parsed_args.transport
        if transport is None and self.options.transports == [TransportType.STDIO]:
            transport = TransportType.STDIO.value

        if transport == TransportType.STDIO.value:
            asyncio.run(self.run_stdio())
            return

        if transport is not None:
            self.restrict_to(TransportType(transport))
        uvicorn.run(self.create_app(), host=parsed_args.host, port=parsed_args.port)
