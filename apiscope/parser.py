"""
API description -> list of ToolDefinition.

The compile pass is synchronous and runs once at startup:

    document
      -> iter_operations()      every non-deprecated HTTP operation
      -> describe_operation()   OperationDescriptor (typed, frozen)
      -> compile_tool()         validator + name + advertised JSON schema
      -> compile_tools()        unique names, skip-and-continue on errors

A malformed operation never aborts the pass: its SpecCompileError is logged
and the operation is left out.
"""

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Iterator, Sequence

from pydantic import ValidationError

from apiscope.errors import SpecCompileError
from apiscope.naming import DEFAULT_VERSION_PREFIX, MAX_TOOL_NAME_LENGTH, tool_name
from apiscope.schema import (
    FieldSchema,
    OperationDescriptor,
    Parameter,
    ParameterLocation,
    RequestBody,
)
from apiscope.validators import Validator, compile_input_validator

HTTP_METHODS = frozenset({"get", "put", "post", "delete", "options", "head", "patch", "trace"})
READ_ONLY_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

default_logger = logging.getLogger("apiscope.parser")


@dataclass(frozen=True)
class ToolDefinition:
    """
    One compiled, independently invocable tool.

    Attributes:
        name: Unique within the compiled set, <= 64 chars, no trailing "_"
        description: Operation summary, description, or "METHOD /path"
        validator: Checks and normalizes the whole tool input
        method: Upper-case HTTP method
        endpoint: Path template with {param} placeholders
        parameters: The operation's parameters (path-level ones merged in)
        request_body: The operation's request body, if any
        input_schema: JSON schema advertised to MCP clients
    """

    name: str
    description: str
    validator: Validator
    method: str
    endpoint: str
    parameters: tuple[Parameter, ...]
    request_body: RequestBody | None
    input_schema: dict[str, Any]

    @property
    def parameter_names(self) -> frozenset[str]:
        return frozenset(p.name for p in self.parameters)

    @property
    def body_schema(self) -> FieldSchema | None:
        return self.request_body.json_schema if self.request_body else None

    @property
    def read_only(self) -> bool:
        return self.method in READ_ONLY_METHODS


def load_document(path: Path) -> dict[str, Any]:
    return json.loads(Path(path).read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


def iter_operations(
    document: dict[str, Any],
) -> Iterator[tuple[str, str, dict[str, Any], list[Any]]]:
    """Yield (path, method, operation, path-level parameters) per live operation."""
    for path, path_item in (document.get("paths") or {}).items():
        if not isinstance(path_item, dict):
            continue
        shared_parameters = path_item.get("parameters") or []
        for method, operation in path_item.items():
            if method.lower() not in HTTP_METHODS or not isinstance(operation, dict):
                continue
            if operation.get("deprecated"):
                continue
            yield path, method, operation, shared_parameters


def describe_operation(
    path: str,
    method: str,
    operation: dict[str, Any],
    shared_parameters: Sequence[Any] = (),
) -> OperationDescriptor:
    """
    Parse one operation object into an OperationDescriptor.

    Path-level parameters come first; an operation-level parameter with the
    same name and location replaces its path-level counterpart.

    Raises:
        SpecCompileError: A parameter, schema or request body is malformed
    """
    label = operation.get("operationId") or f"{method.upper()} {path}"
    try:
        merged: dict[tuple[str, ParameterLocation], Parameter] = {}
        for raw in [*shared_parameters, *(operation.get("parameters") or [])]:
            param = Parameter.model_validate(raw)
            merged[(param.name, param.location)] = param

        raw_body = operation.get("requestBody")
        request_body = RequestBody.model_validate(raw_body) if raw_body else None

        return OperationDescriptor(
            method=method.upper(),
            path=path,
            operation_id=operation.get("operationId"),
            summary=operation.get("summary"),
            description=operation.get("description"),
            parameters=tuple(merged.values()),
            request_body=request_body,
            deprecated=bool(operation.get("deprecated", False)),
        )
    except ValidationError as e:
        raise SpecCompileError(f"malformed operation: {e}", operation=label) from e


def ingest_operations(
    document: dict[str, Any], logger: logging.Logger = default_logger
) -> list[OperationDescriptor]:
    descriptors = []
    for path, method, operation, shared in iter_operations(document):
        try:
            descriptors.append(describe_operation(path, method, operation, shared))
        except SpecCompileError as e:
            _log_skipped(logger, e)
    return descriptors


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


def compile_tool(
    operation: OperationDescriptor, version_prefix: str = DEFAULT_VERSION_PREFIX
) -> ToolDefinition:
    try:
        validator = compile_input_validator(operation)
    except SpecCompileError as e:
        raise SpecCompileError(e.reason, operation=operation.label) from e

    return ToolDefinition(
        name=tool_name(operation.method, operation.path, operation.operation_id, version_prefix),
        description=operation.summary
        or operation.description
        or f"{operation.method} {operation.path}",
        validator=validator,
        method=operation.method,
        endpoint=operation.path,
        parameters=operation.parameters,
        request_body=operation.request_body,
        input_schema=advertised_schema(operation),
    )


def compile_tools(
    document: dict[str, Any],
    logger: logging.Logger = default_logger,
    version_prefix: str = DEFAULT_VERSION_PREFIX,
) -> list[ToolDefinition]:
    """
    Compile every non-deprecated operation of `document` into a tool.

    Operations that fail to compile are logged and skipped. When two
    operations end up with the same name, the later one gets "_2", "_3", ...
    """
    tools: list[ToolDefinition] = []
    taken: set[str] = set()

    for operation in ingest_operations(document, logger):
        try:
            tool = compile_tool(operation, version_prefix)
        except SpecCompileError as e:
            _log_skipped(logger, e)
            continue

        name = unique_name(tool.name, taken)
        if name != tool.name:
            logger.warning(
                "Tool name collision resolved with a suffix",
                extra={
                    "event_data": {
                        "operation": operation.label,
                        "derived_name": tool.name,
                        "tool": name,
                    }
                },
            )
            tool = replace(tool, name=name)

        taken.add(name)
        tools.append(tool)

    logger.debug("Compiled %d tools", len(tools))
    return tools


def unique_name(name: str, taken: set[str]) -> str:
    if name not in taken:
        return name
    counter = 2
    while True:
        suffix = f"_{counter}"
        candidate = name[: MAX_TOOL_NAME_LENGTH - len(suffix)].removesuffix("_") + suffix
        if candidate not in taken:
            return candidate
        counter += 1


def advertised_schema(operation: OperationDescriptor) -> dict[str, Any]:
    """
    The JSON schema MCP clients see for a tool: one open object holding the
    parameters and the JSON body's declared properties.
    """
    properties: dict[str, Any] = {}
    required: set[str] = set()

    for param in operation.parameters:
        prop = param.field_schema.model_dump(exclude_none=True)
        if param.description and "description" not in prop:
            prop["description"] = param.description
        properties[param.name] = prop
        if param.required:
            required.add(param.name)

    body_schema = operation.request_body.json_schema if operation.request_body else None
    if body_schema is not None and body_schema.properties:
        body_required = set(body_schema.required or [])
        for prop_name, prop_schema in body_schema.properties.items():
            properties[prop_name] = prop_schema.model_dump(exclude_none=True)
            if prop_name in body_required:
                required.add(prop_name)
            else:
                required.discard(prop_name)

    schema: dict[str, Any] = {
        "type": "object",
        "properties": properties,
        "additionalProperties": True,
    }
    if required:
        schema["required"] = sorted(required)
    return schema


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


def filter_tools(
    tools: Sequence[ToolDefinition],
    *,
    read_only: bool = False,
    project: str | None = None,
    config: str | None = None,
    org_level_prefixes: Sequence[str] = (),
) -> list[ToolDefinition]:
    """
    Narrow the tool set to what the server configuration allows.

    - read_only: only GET tools remain
    - project set: org-level endpoints (e.g. /v3/workplace) are dropped
    - config set: only config/secret related tools remain
    """
    selected = list(tools)

    if read_only:
        selected = [t for t in selected if t.method == "GET"]

    if project:
        selected = [
            t for t in selected if not any(t.endpoint.startswith(p) for p in org_level_prefixes)
        ]

    if config:
        selected = [
            t
            for t in selected
            if "/configs/" in t.endpoint
            or "config" in t.name
            or "/secrets/" in t.endpoint
            or "secret" in t.name
        ]

    return selected


def _log_skipped(logger: logging.Logger, error: SpecCompileError) -> None:
    logger.warning(
        "Skipping operation that failed to compile",
        extra={"event_data": {"operation": error.operation, "reason": error.reason}},
    )
