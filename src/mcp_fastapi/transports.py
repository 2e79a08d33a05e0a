"""HTTP routes that hand MCP traffic to the SDK transports.

The SDK transports speak raw ASGI and write their own responses, so the
FastAPI endpoints only run the host's guards (route dependencies) and then
pass ``scope``/``receive``/``send`` through.
"""

import logging
from typing import AsyncContextManager, Callable, Sequence

from fastapi import APIRouter, Depends, Request, Response
from mcp.server.lowlevel import Server
from mcp.server.sse import SseServerTransport
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.types import Receive, Scope, Send

from .config import McpOptions


class SentByTransport(Response):
    """Placeholder returned by routes whose reply the MCP SDK already sent."""

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        return None


def guard_dependencies(guards: Sequence[Callable]) -> list:
    """Wrap host framework guards as FastAPI route dependencies."""
    return [Depends(guard) for guard in guards]


class SseTransport:
    """SSE stream endpoint plus the endpoint clients POST their messages to."""

    def __init__(self, server: Server, options: McpOptions):
        self.server = server
        self.options = options
        # Clients are told to POST here; the router is included under the global prefix
        self.messages_path = f"{options.global_api_prefix}{options.messages_endpoint}"
        self.transport = SseServerTransport(self.messages_path)

    async def handle_sse(self, request: Request) -> Response:
        logging.info(f"Opening SSE stream for {self.server.name} from {request.client}")
        async with self.transport.connect_sse(
            request.scope, request.receive, request._send
        ) as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )
        logging.info(f"SSE stream for {self.server.name} closed")
        return SentByTransport()

    async def handle_messages(self, request: Request) -> Response:
        await self.transport.handle_post_message(request.scope, request.receive, request._send)
        return SentByTransport()

    def register(self, router: APIRouter, guards: Sequence[Callable] = ()) -> None:
        dependencies = guard_dependencies(guards)
        router.add_api_route(
            self.options.sse_endpoint,
            self.handle_sse,
            methods=["GET"],
            dependencies=dependencies,
            include_in_schema=False,
        )
        router.add_api_route(
            self.options.messages_endpoint,
            self.handle_messages,
            methods=["POST"],
            dependencies=dependencies,
            include_in_schema=False,
        )


class StreamableHttpTransport:
    """Single endpoint answering GET, POST and DELETE for streamable HTTP sessions."""

    def __init__(self, server: Server, options: McpOptions):
        self.server = server
        self.options = options
        self.session_manager = StreamableHTTPSessionManager(
            app=server,
            event_store=None,
            json_response=options.json_response,
            stateless=options.stateless,
        )

    async def handle_request(self, request: Request) -> Response:
        await self.session_manager.handle_request(request.scope, request.receive, request._send)
        return SentByTransport()

    def run(self) -> AsyncContextManager[None]:
        """Context manager keeping the session manager alive; enter it in the app lifespan."""
        return self.session_manager.run()

    def register(self, router: APIRouter, guards: Sequence[Callable] = ()) -> None:
        router.add_api_route(
            self.options.mcp_endpoint,
            self.handle_request,
            methods=["GET", "POST", "DELETE"],
            dependencies=guard_dependencies(guards),
            include_in_schema=False,
        )
