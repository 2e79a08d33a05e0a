"""Wires discovered providers into an MCP server's request handlers."""

import inspect
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.shared.exceptions import McpError
from pydantic import AnyUrl, BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from .context import Context, LogLevelState
from .registry import DiscoveredHandler, DiscoveredTool, McpRegistry
from .schema_generator import CONTEXT, REQUEST, injected_parameters, validate_arguments

CONTENT_TYPES = (
    types.TextContent,
    types.ImageContent,
    types.AudioContent,
    types.ResourceLink,
    types.EmbeddedResource,
)


def _to_json(value: Any) -> str:
    if isinstance(value, BaseModel):
        return value.model_dump_json(indent=2)
    return json.dumps(value, indent=2, default=str)


def to_content(result: Any) -> List[Any]:
    """Convert a handler's return value to a list of MCP content blocks."""
    if result is None:
        return []
    if isinstance(result, CONTENT_TYPES):
        return [result]
    if isinstance(result, (list, tuple)) and result and all(
        isinstance(item, CONTENT_TYPES) for item in result
    ):
        return list(result)
    if isinstance(result, str):
        return [types.TextContent(type="text", text=result)]
    if isinstance(result, (dict, list, tuple, BaseModel)):
        return [types.TextContent(type="text", text=_to_json(result))]
    return [types.TextContent(type="text", text=str(result))]


def to_structured(result: Any) -> Dict[str, Any]:
    """Convert a handler's return value to structured tool output."""
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if isinstance(result, dict):
        return result
    return {"result": result}


def to_resource_contents(result: Any, mime_type: str) -> List[ReadResourceContents]:
    """Convert a resource handler's return value to readable contents."""
    if isinstance(result, ReadResourceContents):
        return [result]
    if isinstance(result, list) and result and all(
        isinstance(item, ReadResourceContents) for item in result
    ):
        return result
    if isinstance(result, (str, bytes)):
        return [ReadResourceContents(content=result, mime_type=mime_type)]
    if result is None:
        return [ReadResourceContents(content="", mime_type=mime_type)]
    return [ReadResourceContents(content=_to_json(result), mime_type="application/json")]


def to_prompt_result(result: Any, description: Optional[str]) -> types.GetPromptResult:
    """Convert a prompt handler's return value to a ``GetPromptResult``."""
    if isinstance(result, types.GetPromptResult):
        return result
    if isinstance(result, str):
        messages = [
            types.PromptMessage(role="user", content=types.TextContent(type="text", text=result))
        ]
    elif isinstance(result, types.PromptMessage):
        messages = [result]
    elif isinstance(result, (list, tuple)):
        messages = [
            message if isinstance(message, types.PromptMessage) else types.PromptMessage.model_validate(message)
            for message in result
        ]
    else:
        raise TypeError(f"Prompt handlers must return str or prompt messages, got {type(result).__name__}")
    return types.GetPromptResult(description=description, messages=messages)


def _invalid_params(message: str) -> McpError:
    return McpError(types.ErrorData(code=types.INVALID_PARAMS, message=message))


class McpExecutor:
    """Registers list/call/read handlers for a registry on a low-level MCP server.

    The executor is transport agnostic: the same server instance is driven by
    SSE, streamable HTTP or stdio sessions.
    """

    def __init__(self, server: Server, registry: McpRegistry):
        self.server = server
        self.registry = registry
        self.log_level = LogLevelState()
        self._register_handlers()

    async def invoke(self, entry: DiscoveredHandler, arguments: Optional[Dict[str, Any]]) -> Any:
        """Validate ``arguments``, inject context and call the entry's handler.

        Raises:
            pydantic.ValidationError: If the arguments do not match the handler signature.
        """
        kwargs = validate_arguments(entry.handler, arguments, entry.arguments_model)

        injected = injected_parameters(entry.handler)
        if injected:
            context = Context.from_server(self.server, self.log_level)
            for param_name, kind in injected.items():
                if kind == CONTEXT:
                    kwargs[param_name] = context
                elif kind == REQUEST:
                    kwargs[param_name] = context.request

        if inspect.iscoroutinefunction(entry.handler):
            return await entry.handler(**kwargs)
        result = await run_in_threadpool(entry.handler, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def list_tools(self) -> List[types.Tool]:
        tools = [tool.to_tool() for tool in self.registry.tools.values()]
        logging.info(f"Listed {len(tools)} tools")
        return tools

    async def call_tool(
        self, name: str, arguments: Optional[Dict[str, Any]]
    ) -> Tuple[List[Any], Optional[Dict[str, Any]]]:
        """Run a tool and return its content and structured output.

        Exceptions propagate to the MCP server, which reports them to the
        client as an error result rather than a protocol error.
        """
        tool = self.registry.get_tool(name)
        if tool is None:
            raise ValueError(f"Unknown tool: {name}")

        logging.info(f"Calling tool: {name} with arguments: {arguments}")
        try:
            result = await self.invoke(tool, arguments)
        except ValidationError as e:
            logging.warning(f"Invalid arguments for tool {name}: {e}")
            raise ValueError(f"Invalid arguments for tool {name}: {e}") from e
        except Exception as e:
            logging.error(f"Error executing tool {name}: {e}", exc_info=True)
            raise

        return self._tool_result(tool, result)

    def _tool_result(
        self, tool: DiscoveredTool, result: Any
    ) -> Tuple[List[Any], Optional[Dict[str, Any]]]:
        if isinstance(result, dict) and isinstance(result.get("content"), list):
            result = types.CallToolResult.model_validate(result)

        if isinstance(result, types.CallToolResult):
            if result.isError:
                raise RuntimeError(
                    " ".join(block.text for block in result.content if isinstance(block, types.TextContent))
                )
            return list(result.content), result.structuredContent

        structured = to_structured(result) if tool.output_schema is not None else None
        return to_content(result), structured

    async def list_resources(self) -> List[types.Resource]:
        return [resource.to_resource() for resource in self.registry.resources.values()]

    async def list_resource_templates(self) -> List[types.ResourceTemplate]:
        return [template.to_resource_template() for template in self.registry.resource_templates.values()]

    async def read_resource(self, uri: AnyUrl) -> List[ReadResourceContents]:
        uri = str(uri)
        entry, variables = self.registry.find_resource(uri)
        if entry is None:
            raise _invalid_params(f"Resource not found: {uri}")

        arguments: Dict[str, Any] = dict(variables)
        if "uri" in entry.arguments_model.model_fields and "uri" not in arguments:
            arguments["uri"] = uri

        logging.info(f"Reading resource: {uri}")
        try:
            result = await self.invoke(entry, arguments)
        except ValidationError as e:
            raise _invalid_params(f"Invalid parameters for resource {uri}: {e}") from e

        return to_resource_contents(result, entry.mime_type)

    async def list_prompts(self) -> List[types.Prompt]:
        return [prompt.to_prompt() for prompt in self.registry.prompts.values()]

    async def get_prompt(self, name: str, arguments: Optional[Dict[str, str]]) -> types.GetPromptResult:
        prompt = self.registry.get_prompt(name)
        if prompt is None:
            raise _invalid_params(f"Unknown prompt: {name}")

        logging.info(f"Getting prompt: {name} with arguments: {arguments}")
        try:
            result = await self.invoke(prompt, arguments)
        except ValidationError as e:
            raise _invalid_params(f"Invalid arguments for prompt {name}: {e}") from e

        return to_prompt_result(result, prompt.description)

    async def set_logging_level(self, level: types.LoggingLevel) -> None:
        logging.info(f"Client set MCP log level to {level}")
        self.log_level.level = level

    def _register_handlers(self) -> None:
        """Register MCP protocol handlers."""
        self.server.list_tools()(self.list_tools)
        self.server.call_tool(validate_input=False)(self.call_tool)
        self.server.list_resources()(self.list_resources)
        self.server.list_resource_templates()(self.list_resource_templates)
        self.server.read_resource()(self.read_resource)
        self.server.list_prompts()(self.list_prompts)
        self.server.get_prompt()(self.get_prompt)
        self.server.set_logging_level()(self.set_logging_level)
