"""Generate JSON schemas and argument validators from Python type annotations."""

import inspect
import types
import typing
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, create_model
from starlette.requests import Request

from .context import Context

CONTEXT = "context"
REQUEST = "request"

_CONTEXT_NAMES = ("context", "ctx")
_REQUEST_NAMES = ("request",)
_UNION_TYPES = (Union, types.UnionType)


def python_type_to_json_schema(type_hint: Any) -> Dict[str, Any]:
    """Convert a Python type hint to a JSON schema definition.

    Args:
        type_hint: The Python type annotation

    Returns:
        JSON schema dictionary
    """
    if type_hint is type(None):
        return {"type": "null"}

    if type_hint is Any or type_hint is inspect.Parameter.empty:
        return {}

    if type_hint is str:
        return {"type": "string"}
    elif type_hint is bool:
        return {"type": "boolean"}
    elif type_hint is int:
        return {"type": "integer"}
    elif type_hint is float:
        return {"type": "number"}
    elif type_hint is datetime:
        return {"type": "string", "format": "date-time"}
    elif type_hint is date:
        return {"type": "string", "format": "date"}

    origin = get_origin(type_hint)
    args = get_args(type_hint)

    # Optional[T] maps to T; optionality is expressed through "required"
    if origin in _UNION_TYPES:
        non_none_args = [arg for arg in args if arg is not type(None)]
        if len(non_none_args) == 1:
            return python_type_to_json_schema(non_none_args[0])
        return {"anyOf": [python_type_to_json_schema(arg) for arg in non_none_args]}

    elif origin in (list, set, frozenset, tuple):
        if args and args[0] is not Ellipsis:
            return {"type": "array", "items": python_type_to_json_schema(args[0])}
        return {"type": "array"}

    elif origin is dict:
        if len(args) >= 2 and args[0] is str:
            return {
                "type": "object",
                "additionalProperties": python_type_to_json_schema(args[1]),
            }
        return {"type": "object"}

    elif origin is typing.Literal:
        return {"enum": list(args)}

    elif inspect.isclass(type_hint) and issubclass(type_hint, Enum):
        return {"enum": [item.value for item in type_hint]}

    elif inspect.isclass(type_hint) and issubclass(type_hint, BaseModel):
        return type_hint.model_json_schema()

    elif type_hint in (list, set, tuple):
        return {"type": "array"}
    elif type_hint is dict:
        return {"type": "object"}

    # Default to string for unknown types
    return {"type": "string"}


def resolve_type_hints(func: Callable) -> Dict[str, Any]:
    """Return evaluated annotations of ``func``, tolerating unresolvable names."""
    try:
        return typing.get_type_hints(func)
    except (NameError, TypeError):
        return {
            name: param.annotation
            for name, param in inspect.signature(func).parameters.items()
            if param.annotation is not inspect.Parameter.empty
        }


def _unwrap_optional(type_hint: Any) -> Any:
    """``Optional[T]`` / ``T | None`` -> ``T``; other hints are returned unchanged."""
    if get_origin(type_hint) in _UNION_TYPES:
        non_none_args = [arg for arg in get_args(type_hint) if arg is not type(None)]
        if len(non_none_args) == 1:
            return non_none_args[0]
    return type_hint


def injected_parameters(func: Callable) -> Dict[str, str]:
    """Find parameters that are filled in by the framework rather than the client.

    A parameter annotated with ``Context`` or ``Optional[Context]`` (or named
    ``context``/``ctx`` and left unannotated or typed ``Any``) receives the MCP
    call context; ``Request`` and the name ``request`` work the same way for
    the HTTP request.
    """
    hints = resolve_type_hints(func)
    injected = {}
    for name in inspect.signature(func).parameters:
        hint = _unwrap_optional(hints.get(name))
        untyped = hint is None or hint is Any
        if inspect.isclass(hint) and issubclass(hint, Context):
            injected[name] = CONTEXT
        elif inspect.isclass(hint) and issubclass(hint, Request):
            injected[name] = REQUEST
        elif untyped and name in _CONTEXT_NAMES:
            injected[name] = CONTEXT
        elif untyped and name in _REQUEST_NAMES:
            injected[name] = REQUEST
    return injected


def _client_parameters(func: Callable):
    injected = injected_parameters(func)
    for param_name, param in inspect.signature(func).parameters.items():
        if param_name == "self" or param_name in injected:
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        yield param_name, param


def _is_optional(type_hint: Any) -> bool:
    return get_origin(type_hint) in _UNION_TYPES and type(None) in get_args(type_hint)


def extract_parameter_schema(func: Any) -> Dict[str, Any]:
    """Extract parameter schema from a function's type annotations.

    Args:
        func: The function to extract schema from

    Returns:
        JSON schema for the function's parameters
    """
    hints = resolve_type_hints(func)
    properties = {}
    definitions: Dict[str, Any] = {}
    required = []

    for param_name, param in _client_parameters(func):
        param_schema = dict(python_type_to_json_schema(hints.get(param_name, param.annotation)))
        definitions.update(param_schema.pop("$defs", {}))
        param_schema.setdefault("description", f"Parameter: {param_name}")

        if param.default is not inspect.Parameter.empty and _is_json_value(param.default):
            param_schema["default"] = _json_default(param.default)

        properties[param_name] = param_schema

        if param.default is inspect.Parameter.empty and not _is_optional(hints.get(param_name)):
            required.append(param_name)

    schema: Dict[str, Any] = {
        "type": "object",
        "properties": properties,
    }

    if required:
        schema["required"] = required
    if definitions:
        schema["$defs"] = definitions

    return schema


def _is_json_value(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool, Enum))


def _json_default(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def output_schema_for(func: Callable) -> Optional[Dict[str, Any]]:
    """Return the JSON schema of a pydantic return annotation, if any."""
    return_hint = resolve_type_hints(func).get("return")
    if inspect.isclass(return_hint) and issubclass(return_hint, BaseModel):
        return return_hint.model_json_schema()
    return None


def build_arguments_model(func: Callable) -> Type[BaseModel]:
    """Build a pydantic model that validates the client-supplied arguments of ``func``."""
    hints = resolve_type_hints(func)
    fields: Dict[str, Any] = {}

    for param_name, param in _client_parameters(func):
        annotation = hints.get(param_name, Any)
        if param.default is not inspect.Parameter.empty:
            default = param.default
        elif _is_optional(annotation):
            default = None
        else:
            default = ...
        fields[param_name] = (annotation, default)

    return create_model(
        f"{func.__name__}_arguments",
        __config__=ConfigDict(arbitrary_types_allowed=True, extra="ignore"),
        **fields,
    )


def validate_arguments(
    func: Callable,
    arguments: Optional[Dict[str, Any]],
    model: Optional[Type[BaseModel]] = None,
) -> Dict[str, Any]:
    """Validate and coerce ``arguments`` against the signature of ``func``.

    Raises:
        pydantic.ValidationError: If the arguments do not match the signature.
    """
    model = model or build_arguments_model(func)
    validated = model.model_validate(arguments or {})
    # Keep nested models as instances rather than dumping them back to dicts
    return {name: getattr(validated, name) for name in type(validated).model_fields}


_NUMPY_SECTIONS = ("Parameters", "Other Parameters", "Arguments", "Args")


def _is_underline(line: str) -> bool:
    return len(line) >= 3 and set(line) == {"-"}


def _parse_numpy_params(lines: List[str]) -> Dict[str, str]:
    """Parse a NumPy-style ``Parameters`` section (header underlined with dashes)."""
    params = {}
    in_params_section = False
    section_indent = 0
    current_param = None
    current_desc: List[str] = []

    def flush() -> None:
        if current_param and current_desc:
            params[current_param] = " ".join(current_desc).strip()

    for index, raw_line in enumerate(lines):
        line = raw_line.strip()
        indent = len(raw_line) - len(raw_line.lstrip())
        next_line = lines[index + 1].strip() if index + 1 < len(lines) else ""

        if _is_underline(line):
            continue
        if _is_underline(next_line):
            flush()
            in_params_section = line in _NUMPY_SECTIONS
            section_indent = indent
            current_param, current_desc = None, []
            continue
        if not in_params_section or not line:
            continue

        if indent <= section_indent:
            # "name : type" -> "name"
            flush()
            current_param = line.split(":")[0].strip()
            current_desc = []
        elif current_param:
            current_desc.append(line)

    flush()
    return params


def parse_docstring_params(docstring: Optional[str]) -> Dict[str, str]:
    """Parse parameter descriptions from a docstring.

    Supports Google-style ``Args:`` sections and NumPy-style
    ``Parameters`` sections underlined with dashes.

    Args:
        docstring: The function's docstring

    Returns:
        Dictionary mapping parameter names to descriptions
    """
    if not docstring:
        return {}

    params = {}
    lines = inspect.cleandoc(docstring).split("\n")

    in_params_section = False
    section_indent = 0
    current_param = None
    current_desc = []

    for raw_line in lines:
        line = raw_line.strip()
        indent = len(raw_line) - len(raw_line.lstrip())

        if line in ["Args:", "Arguments:", "Parameters:", "Params:"]:
            in_params_section = True
            section_indent = indent
            continue
        elif line and line.endswith(":") and indent <= section_indent:
            # Another section started
            in_params_section = False

        if not in_params_section or not line:
            continue

        if indent <= section_indent + 4 and ":" in line:
            if current_param and current_desc:
                params[current_param] = " ".join(current_desc).strip()

            param_part, desc_part = line.split(":", 1)
            # "name (type)" -> "name"
            current_param = param_part.split("(")[0].strip()
            current_desc = [desc_part.strip()] if desc_part.strip() else []
        elif current_param:
            current_desc.append(line)

    if current_param and current_desc:
        params[current_param] = " ".join(current_desc).strip()

    params.update(_parse_numpy_params(lines))
    return params


def describe_parameters(func: Callable, schema: Dict[str, Any]) -> Dict[str, Any]:
    """Merge docstring parameter descriptions into ``schema`` (modified in place)."""
    for param_name, param_desc in parse_docstring_params(func.__doc__).items():
        if param_name in schema.get("properties", {}):
            schema["properties"][param_name]["description"] = param_desc
    return schema
