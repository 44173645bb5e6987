"""
Tool invocation: scope guard, validation, request assembly, dispatch.

    caller input
      -> apply_scope()          reject contradicting project/config, auto-fill
      -> tool.validator.check() required params present, values normalized
      -> build_request()        path / query / body partition
      -> client.request()       the only await in the pipeline
      -> format_response()      pretty JSON or raw text

Every invocation is independent; the only shared state is the read-only
ScopeConfiguration. Errors (ScopeViolation, pydantic.ValidationError,
APIError, TransportError) propagate unchanged to the caller.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol
from urllib.parse import quote

from apiscope.client import MUTATING_METHODS
from apiscope.errors import APIError, ScopeViolation
from apiscope.parser import ToolDefinition
from apiscope.schema import ParameterLocation
from apiscope.scope import ScopeConfiguration, apply_scope

# Characters encodeURIComponent leaves alone, besides letters, digits and "-_.~".
_PATH_SAFE = "!*'()"

default_logger = logging.getLogger("apiscope.invoker")


class HttpCollaborator(Protocol):
    async def request(
        self,
        method: str,
        endpoint: str,
        query_params: Mapping[str, Any] | None = None,
        body: Any = None,
    ) -> Any: ...


@dataclass(frozen=True)
class PreparedRequest:
    method: str
    endpoint: str
    query_params: dict[str, Any]
    body: dict[str, Any] | None


def build_request(tool: ToolDefinition, arguments: Mapping[str, Any]) -> PreparedRequest:
    """
    Partition validated tool input into the parts of an HTTP request.

    - path parameters are URL-encoded into their {name} placeholder
    - query parameters go to the query map
    - for tools with a JSON body, every other key goes to the body verbatim,
      declared in the body schema or not
    - the body is only sent for mutating methods, and never as an empty {}
    """
    path_params: dict[str, Any] = {}
    query_params: dict[str, Any] = {}

    for param in tool.parameters:
        if param.name not in arguments:
            continue
        if param.location is ParameterLocation.PATH:
            path_params[param.name] = arguments[param.name]
        elif param.location is ParameterLocation.QUERY:
            query_params[param.name] = arguments[param.name]

    body: dict[str, Any] | None = None
    if tool.body_schema is not None:
        claimed = path_params.keys() | query_params.keys()
        body = {key: value for key, value in arguments.items() if key not in claimed}

    if tool.method not in MUTATING_METHODS or not body:
        body = None

    endpoint = tool.endpoint
    for name, value in path_params.items():
        endpoint = endpoint.replace(f"{{{name}}}", quote(_path_text(value), safe=_PATH_SAFE))

    return PreparedRequest(
        method=tool.method,
        endpoint=endpoint,
        query_params=query_params,
        body=body,
    )


class ToolInvoker:
    """
    Runs compiled tools against the upstream API.

    Args:
        client: The HTTP collaborator (normally an ApiClient)
        scope: The server's effective scope; empty means unscoped
        logger: Where per-call decisions are logged
    """

    def __init__(
        self,
        client: HttpCollaborator,
        scope: ScopeConfiguration | None = None,
        logger: logging.Logger = default_logger,
    ):
        self.client = client
        self.scope = scope or ScopeConfiguration()
        self.logger = logger

    async def invoke(self, tool: ToolDefinition, arguments: Mapping[str, Any] | None) -> str:
        try:
            scoped = apply_scope(self.scope, tool.parameter_names, arguments or {})
        except ScopeViolation as e:
            self.logger.warning(
                "Tool call rejected by scope",
                extra={"event_data": {"tool": tool.name, "decision": "denied", "reason": str(e)}},
            )
            raise

        validated = tool.validator.check(scoped)
        request = build_request(tool, validated)

        self.logger.debug(
            "Dispatching tool call",
            extra={
                "event_data": {
                    "tool": tool.name,
                    "method": request.method,
                    "endpoint": request.endpoint,
                }
            },
        )

        try:
            result = await self.client.request(
                request.method, request.endpoint, request.query_params, request.body
            )
        except APIError as e:
            self.logger.warning(
                "Upstream call failed",
                extra={
                    "event_data": {
                        "tool": tool.name,
                        "status_code": e.status_code,
                        "error": e.message,
                    }
                },
            )
            raise

        return format_response(result)


def format_response(response: Any) -> str:
    if isinstance(response, str):
        return response
    return json.dumps(response, indent=2)


def format_error(error: APIError) -> str:
    return f"Error {error.status_code}: {error.message}\n\nDetails: {error.details}"


def _path_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
