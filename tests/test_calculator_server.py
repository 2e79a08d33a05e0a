"""Tests for the calculator example provider and its integration."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from mcp.server import NotificationOptions

from mcp_fastapi import Context, McpIntegration, McpOptions, TransportType
from mcp_fastapi.examples.calculator_server import CalculatorTools, Statistics, create_integration


def route_paths(app):
    return {getattr(route, "path", None) for route in app.routes}


class TestCalculatorTools:
    """Test suite for the calculator provider methods."""

    @pytest.fixture
    def tools(self):
        return CalculatorTools()

    @pytest.mark.asyncio
    async def test_add_operation(self, tools):
        assert await tools.add(5.0, 3.0) == 8.0
        assert await tools.add(-5.0, 3.0) == -2.0
        assert abs(await tools.add(0.1, 0.2) - 0.3) < 0.0001

    @pytest.mark.asyncio
    async def test_subtract_operation(self, tools):
        assert await tools.subtract(10.0, 4.0) == 6.0
        assert await tools.subtract(3.0, 5.0) == -2.0

    def test_multiply_operation(self, tools):
        assert tools.multiply(4.0, 3.0) == 12.0
        assert tools.multiply(0.0, 100.0) == 0.0

    @pytest.mark.asyncio
    async def test_divide_operation(self, tools):
        assert await tools.divide(7.0, 2.0) == 3.5

        with pytest.raises(ValueError, match="Cannot divide by zero"):
            await tools.divide(10.0, 0.0)

    @pytest.mark.asyncio
    async def test_average_operation(self, tools):
        assert await tools.average([1.0, 2.0, 3.0, 4.0, 5.0]) == 3.0

        with pytest.raises(ValueError, match="Cannot calculate average of empty list"):
            await tools.average([])

    @pytest.mark.asyncio
    async def test_statistics(self, tools):
        result = await tools.statistics([2.0, 4.0])
        assert result == Statistics(count=2, mean=3.0, minimum=2.0, maximum=4.0)

    @pytest.mark.asyncio
    async def test_running_total_with_detached_context(self, tools):
        # Outside an MCP request notifications are skipped
        assert await tools.running_total([1.0, 2.0], Context()) == 3.0


class TestIntegration:
    def test_tool_discovery(self, integration):
        expected_tools = [
            "add", "subtract", "multiply", "divide", "calculate-average",
            "statistics", "running-total", "whoami",
        ]
        assert sorted(integration.registry.tools) == sorted(expected_tools)

    def test_server_initialization(self, integration):
        assert integration.server.name == "calculator"
        assert integration.server.version == "1.0.0"
        assert integration.endpoints() == ["/sse", "/messages", "/mcp"]

    def test_capabilities(self, integration):
        capabilities = integration.server.get_capabilities(
            notification_options=NotificationOptions(),
            experimental_capabilities={},
        )
        assert capabilities.tools is not None
        assert capabilities.resources is not None
        assert capabilities.prompts is not None
        assert capabilities.logging is not None

    def test_empty_integration_logs_warning(self, caplog):
        McpIntegration(McpOptions(name="empty"))
        assert "has no tools, resources or prompts" in caplog.text

    def test_attach_keeps_application_lifespan(self):
        events = []

        @asynccontextmanager
        async def lifespan(app):
            events.append("startup")
            yield
            events.append("shutdown")

        app = FastAPI(lifespan=lifespan)
        McpIntegration(McpOptions(name="calculator"), providers=[CalculatorTools]).attach(app)

        with TestClient(app):
            assert events == ["startup"]
        assert events == ["startup", "shutdown"]

    def test_describe_tools(self, integration, capsys):
        integration.describe_tools()
        output = capsys.readouterr().out

        assert "calculator v1.0.0" in output
        assert "Tool: calculate-average" in output
        assert "- numbers: array[number] (required)" in output
        assert "calculator://tables/{number}" in output
        assert "explain-calculation" in output

    def test_main_describe_exits(self, integration, capsys):
        with pytest.raises(SystemExit) as exc_info:
            integration.main(["--describe"])

        assert exc_info.value.code == 0
        assert "Tool: add" in capsys.readouterr().out

    def test_main_serves_http_with_uvicorn(self, integration):
        with patch("mcp_fastapi.integration.uvicorn.run") as mock_run:
            integration.main(["--port", "4321", "--host", "0.0.0.0"])

        app = mock_run.call_args[0][0]
        assert isinstance(app, FastAPI)
        assert {"/sse", "/messages", "/mcp"} <= route_paths(app)
        assert mock_run.call_args[1] == {"host": "0.0.0.0", "port": 4321}

    @pytest.mark.parametrize(
        "transport, served, not_served",
        [
            ("sse", {"/sse", "/messages"}, {"/mcp"}),
            ("streamable-http", {"/mcp"}, {"/sse", "/messages"}),
        ],
    )
    def test_main_serves_only_the_chosen_transport(self, integration, transport, served, not_served):
        with patch("mcp_fastapi.integration.uvicorn.run") as mock_run:
            integration.main(["--transport", transport])

        paths = route_paths(mock_run.call_args[0][0])
        assert served <= paths
        assert not (not_served & paths)
        assert integration.options.transports == [TransportType(transport)]

    def test_main_rejects_unknown_transport(self, integration):
        with pytest.raises(SystemExit):
            integration.main(["--transport", "http"])

    def test_main_rejects_transport_that_is_not_enabled(self):
        sse_only = create_integration(transports=[TransportType.SSE])
        with patch("mcp_fastapi.integration.uvicorn.run") as mock_run:
            with pytest.raises(ValueError, match="streamable-http is not enabled"):
                sse_only.main(["--transport", "streamable-http"])

        mock_run.assert_not_called()

    def test_main_runs_stdio_when_chosen(self, integration):
        with patch.object(integration, "run_stdio", new_callable=AsyncMock) as mock_stdio:
            with patch("mcp_fastapi.integration.uvicorn.run") as mock_run:
                integration.main(["--transport", "stdio"])

        mock_stdio.assert_awaited_once()
        mock_run.assert_not_called()

    def test_main_defaults_to_stdio_for_stdio_only_integration(self):
        stdio_only = create_integration(transports=[TransportType.STDIO])
        with patch.object(stdio_only, "run_stdio", new_callable=AsyncMock) as mock_stdio:
            with patch("mcp_fastapi.integration.uvicorn.run") as mock_run:
                stdio_only.main([])

        mock_stdio.assert_awaited_once()
        mock_run.assert_not_called()
        assert route_paths(stdio_only.create_app()).isdisjoint({"/sse", "/messages", "/mcp"})


class TestStdioLifecycle:
    """Stdio transport with mocked streams."""

    @pytest.mark.asyncio
    async def test_run_stdio(self, integration):
        read_stream = AsyncMock()
        write_stream = AsyncMock()

        with patch.object(integration.server, "run", new_callable=AsyncMock) as mock_run:
            with patch("mcp.server.stdio.stdio_server") as mock_stdio:
                mock_stdio.return_value.__aenter__.return_value = (read_stream, write_stream)

                await integration.run_stdio()

                mock_run.assert_called_once()
                args = mock_run.call_args[0]

                assert args[0] is read_stream
                init_options = args[2]
                assert init_options.server_name == "calculator"
                assert init_options.server_version == "1.0.0"
                assert init_options.capabilities.tools is not None
