"""Discovery of decorated provider methods."""

import inspect
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type
from urllib.parse import unquote

from mcp import types
from pydantic import AnyUrl, BaseModel, ValidationError

from .decorators import (
    PromptMetadata,
    ResourceMetadata,
    ResourceTemplateMetadata,
    ToolMetadata,
    get_metadata,
)
from .schema_generator import (
    build_arguments_model,
    describe_parameters,
    extract_parameter_schema,
    output_schema_for,
)

_TEMPLATE_VARIABLE = re.compile(r"{([A-Za-z_][A-Za-z0-9_]*)}")


class DuplicateRegistrationError(ValueError):
    """Raised when two providers expose the same tool, prompt or resource."""


def _first_doc_line(func: Callable) -> Optional[str]:
    if func.__doc__:
        return inspect.cleandoc(func.__doc__).split("\n")[0]
    return None


def _provider_name(provider: Any) -> str:
    return type(provider).__name__


def normalize_uri(uri: str) -> str:
    """Return ``uri`` in the form clients see once it has passed through ``AnyUrl``.

    ``https://example.com`` becomes ``https://example.com/``; strings that are
    not URLs are returned unchanged.
    """
    try:
        return str(AnyUrl(uri))
    except ValidationError:
        return uri


@dataclass
class DiscoveredHandler:
    """A bound provider method together with what is needed to call it."""

    name: str
    handler: Callable
    provider: Any
    description: Optional[str] = None
    arguments_model: Type[BaseModel] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.arguments_model = build_arguments_model(self.handler)
        if self.description is None:
            self.description = _first_doc_line(self.handler)


@dataclass
class DiscoveredTool(DiscoveredHandler):
    metadata: Optional[ToolMetadata] = None

    def to_tool(self) -> types.Tool:
        input_schema = describe_parameters(self.handler, extract_parameter_schema(self.handler))
        return types.Tool(
            name=self.name,
            description=self.description or f"Tool: {self.name}",
            inputSchema=input_schema,
            outputSchema=self.output_schema,
            annotations=self.metadata.annotations if self.metadata else None,
        )

    @property
    def output_schema(self) -> Optional[Dict[str, Any]]:
        if self.metadata and self.metadata.output_schema is not None:
            return self.metadata.output_schema
        return output_schema_for(self.handler)


@dataclass
class DiscoveredResource(DiscoveredHandler):
    metadata: Optional[ResourceMetadata] = None

    @property
    def uri(self) -> str:
        return normalize_uri(self.metadata.uri)

    @property
    def mime_type(self) -> str:
        return self.metadata.mime_type

    def to_resource(self) -> types.Resource:
        return types.Resource(
            uri=self.uri,
            name=self.name,
            description=self.description,
            mimeType=self.mime_type,
        )


@dataclass
class DiscoveredResourceTemplate(DiscoveredHandler):
    metadata: Optional[ResourceTemplateMetadata] = None
    pattern: "re.Pattern[str]" = field(init=False, repr=False)

    def __post_init__(self) -> None:
        super().__post_init__()
        self.pattern = compile_uri_template(self.metadata.uri_template)

    @property
    def uri_template(self) -> str:
        return self.metadata.uri_template

    @property
    def mime_type(self) -> str:
        return self.metadata.mime_type

    def match(self, uri: str) -> Optional[Dict[str, str]]:
        match = self.pattern.fullmatch(uri)
        if match is None:
            return None
        return {name: unquote(value) for name, value in match.groupdict().items()}

    def to_resource_template(self) -> types.ResourceTemplate:
        return types.ResourceTemplate(
            uriTemplate=self.uri_template,
            name=self.name,
            description=self.description,
            mimeType=self.mime_type,
        )


@dataclass
class DiscoveredPrompt(DiscoveredHandler):
    metadata: Optional[PromptMetadata] = None

    def to_prompt(self) -> types.Prompt:
        schema = describe_parameters(self.handler, extract_parameter_schema(self.handler))
        required = set(schema.get("required", []))
        arguments = [
            types.PromptArgument(
                name=param_name,
                description=param_schema.get("description"),
                required=param_name in required,
            )
            for param_name, param_schema in schema["properties"].items()
        ]
        return types.Prompt(name=self.name, description=self.description, arguments=arguments)


def compile_uri_template(uri_template: str) -> "re.Pattern[str]":
    """Compile a ``scheme://path/{var}`` template into a regular expression.

    Each variable matches one path segment (no ``/``).
    """
    parts = []
    position = 0
    for match in _TEMPLATE_VARIABLE.finditer(uri_template):
        parts.append(re.escape(uri_template[position:match.start()]))
        parts.append(f"(?P<{match.group(1)}>[^/]+)")
        position = match.end()
    parts.append(re.escape(uri_template[position:]))
    return re.compile("".join(parts))


class McpRegistry:
    """Collects tools, resources and prompts from provider objects.

    Providers may be instances or classes; classes are instantiated without
    arguments. Every public method carrying an MCP decorator is registered.
    """

    def __init__(self, providers: Iterable[Any] = (), tool_prefix: str = ""):
        self.tool_prefix = tool_prefix
        self.providers: List[Any] = []
        self.tools: Dict[str, DiscoveredTool] = {}
        self.resources: Dict[str, DiscoveredResource] = {}
        self.resource_templates: Dict[str, DiscoveredResourceTemplate] = {}
        self.prompts: Dict[str, DiscoveredPrompt] = {}

        for provider in providers:
            self.add_provider(provider)

    def add_provider(self, provider: Any) -> Any:
        """Register the decorated methods of ``provider`` and return the instance."""
        if inspect.isclass(provider):
            provider = provider()

        self.providers.append(provider)
        for attr_name, method in inspect.getmembers(provider, predicate=inspect.ismethod):
            metadata = get_metadata(method)
            if metadata is None:
                continue
            self._register(provider, attr_name, method, metadata)
        return provider

    def _register(self, provider: Any, attr_name: str, method: Callable, metadata: Any) -> None:
        default_name = attr_name.replace("_", "-")

        if isinstance(metadata, ToolMetadata):
            name = f"{self.tool_prefix}{metadata.name or default_name}"
            entry = DiscoveredTool(name, method, provider, metadata.description, metadata=metadata)
            self._store(self.tools, name, entry, "tool")
        elif isinstance(metadata, ResourceMetadata):
            name = metadata.name or default_name
            entry = DiscoveredResource(name, method, provider, metadata.description, metadata=metadata)
            self._store(self.resources, normalize_uri(metadata.uri), entry, "resource")
        elif isinstance(metadata, ResourceTemplateMetadata):
            name = metadata.name or default_name
            entry = DiscoveredResourceTemplate(
                name, method, provider, metadata.description, metadata=metadata
            )
            for existing in self.resource_templates.values():
                if existing.uri_template == metadata.uri_template:
                    raise DuplicateRegistrationError(
                        f"MCP resource template {metadata.uri_template!r} is registered by both "
                        f"{_provider_name(existing.provider)} and {_provider_name(provider)}"
                    )
            self._store(self.resource_templates, name, entry, "resource template")
        elif isinstance(metadata, PromptMetadata):
            name = metadata.name or default_name
            entry = DiscoveredPrompt(name, method, provider, metadata.description, metadata=metadata)
            self._store(self.prompts, name, entry, "prompt")

    def _store(self, table: Dict[str, Any], key: str, entry: DiscoveredHandler, kind: str) -> None:
        existing = table.get(key)
        if existing is not None:
            raise DuplicateRegistrationError(
                f"MCP {kind} {key!r} is registered by both "
                f"{_provider_name(existing.provider)} and {_provider_name(entry.provider)}"
            )
        table[key] = entry
        logging.info(f"Discovered MCP {kind}: {key} ({_provider_name(entry.provider)})")

    def get_tool(self, name: str) -> Optional[DiscoveredTool]:
        return self.tools.get(name)

    def get_prompt(self, name: str) -> Optional[DiscoveredPrompt]:
        return self.prompts.get(name)

    def find_resource(self, uri: str) -> Tuple[Optional[DiscoveredHandler], Dict[str, str]]:
        """Resolve ``uri`` to a static resource or a matching template.

        Returns:
            The matching entry (or None) and the extracted template variables
        """
        resource = self.resources.get(normalize_uri(uri))
        if resource is not None:
            return resource, {}

        for template in self.resource_templates.values():
            variables = template.match(uri)
            if variables is not None:
                return template, variables

        return None, {}

    def is_empty(self) -> bool:
        return not (self.tools or self.resources or self.resource_templates or self.prompts)
