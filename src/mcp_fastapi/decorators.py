"""Decorators for marking provider methods as MCP tools, resources and prompts."""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from mcp import types

MCP_METADATA_ATTR = "_mcp_metadata"


@dataclass(frozen=True)
class ToolMetadata:
    name: Optional[str]
    description: Optional[str]
    output_schema: Optional[Dict[str, Any]]
    annotations: Optional[types.ToolAnnotations]


@dataclass(frozen=True)
class ResourceMetadata:
    uri: str
    name: Optional[str]
    description: Optional[str]
    mime_type: str


@dataclass(frozen=True)
class ResourceTemplateMetadata:
    uri_template: str
    name: Optional[str]
    description: Optional[str]
    mime_type: str


@dataclass(frozen=True)
class PromptMetadata:
    name: Optional[str]
    description: Optional[str]


McpMetadata = Union[ToolMetadata, ResourceMetadata, ResourceTemplateMetadata, PromptMetadata]


def get_metadata(func: Any) -> Optional[McpMetadata]:
    """Return the MCP metadata attached to ``func`` (bound methods included)."""
    target = getattr(func, "__func__", func)
    return getattr(target, MCP_METADATA_ATTR, None)


def _mark(func: Callable, metadata: McpMetadata) -> Callable:
    existing = getattr(func, MCP_METADATA_ATTR, None)
    if existing is not None:
        raise ValueError(
            f"{func.__qualname__} is already registered as {type(existing).__name__}; "
            "a method can only carry one MCP decorator"
        )
    setattr(func, MCP_METADATA_ATTR, metadata)
    return func


def mcp_tool(
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    output_schema: Optional[Dict[str, Any]] = None,
    annotations: Optional[Union[Dict[str, Any], types.ToolAnnotations]] = None,
) -> Callable[[Callable], Callable]:
    """Decorator to mark a method as an MCP tool.

    Args:
        name: Optional custom name for the tool. If not provided, uses the method name.
        description: Optional description override. If not provided, uses the method's docstring.
        output_schema: Optional JSON schema of the structured result.
        annotations: Optional behaviour hints (readOnlyHint, destructiveHint, ...).

    Example:
        @mcp_tool(name="search-orders", annotations={"readOnlyHint": True})
        async def search_orders(self, customer: str, context: Context) -> List[Dict[str, Any]]:
            '''Search orders placed by a customer.'''
            ...
    """
    if isinstance(annotations, dict):
        annotations = types.ToolAnnotations(**annotations)

    def decorator(func: Callable) -> Callable:
        return _mark(func, ToolMetadata(name, description, output_schema, annotations))

    return decorator


def mcp_resource(
    uri: str,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    mime_type: str = "text/plain",
) -> Callable[[Callable], Callable]:
    """Decorator to expose a method as a resource with a fixed URI."""
    if not uri:
        raise ValueError("Resource URI must not be empty")

    def decorator(func: Callable) -> Callable:
        return _mark(func, ResourceMetadata(uri, name, description, mime_type))

    return decorator


def mcp_resource_template(
    uri_template: str,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    mime_type: str = "text/plain",
) -> Callable[[Callable], Callable]:
    """Decorator to expose a method as a parameterised resource.

    Template variables use the ``{name}`` syntax and are passed to the
    method as keyword arguments:

        @mcp_resource_template("users://{user_id}/profile")
        async def user_profile(self, user_id: int) -> Dict[str, Any]:
            ...
    """
    if "{" not in uri_template:
        raise ValueError(
            f"Resource template {uri_template!r} has no variables; use mcp_resource instead"
        )

    def decorator(func: Callable) -> Callable:
        return _mark(func, ResourceTemplateMetadata(uri_template, name, description, mime_type))

    return decorator


def mcp_prompt(
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> Callable[[Callable], Callable]:
    """Decorator to mark a method as an MCP prompt."""

    def decorator(func: Callable) -> Callable:
        return _mark(func, PromptMetadata(name, description))

    return decorator
