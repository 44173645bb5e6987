"""
MCP server exposing every operation of an API description as a tool.

This module wires the pieces together with FastMCP v2:

- The API description is compiled into ToolDefinitions (apiscope.parser)
- Each definition is registered as an ApiTool whose `run` delegates to the
  ToolInvoker (scope guard -> validation -> request -> response text)
- An AuditMiddleware logs every tools/call with a request id and outcome
- A `confirm_access` tool is added when the access summary has warnings
- Health and readiness HTTP endpoints exist for the streamable-http transport
- Structured JSON logging to stderr (apiscope.log)

Startup sequence (create_server):

    1. Check the token format and detect its type
    2. Make one authenticated call to verify the token works
    3. For service tokens, detect the implicit project/config scope
    4. Merge it with the explicit APISCOPE_PROJECT / APISCOPE_CONFIG settings
    5. Compile, then filter (read-only, org-level, config-related) the tools
    6. Log the access summary and register everything with FastMCP

Running the server:
    python -m apiscope.server

    stdio transport by default; set APISCOPE_TRANSPORT=streamable-http to
    serve on http://APISCOPE_HOST:APISCOPE_PORT/mcp with /health and /ready.
"""

import asyncio
import logging
import sys
import uuid
from typing import Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.tools.tool import Tool, ToolResult
from mcp.types import CallToolRequestParams, ToolAnnotations
from pydantic import PrivateAttr, ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from apiscope.access import (
    CONFIRM_ACCESS_DESCRIPTION,
    CONFIRM_ACCESS_TOOL_NAME,
    AccessContext,
    AccessLevel,
    confirmation_text,
    get_access_messages,
    needs_confirmation,
)
from apiscope.auth import AuthError, validate_token
from apiscope.client import ApiClient
from apiscope.config import Settings, settings
from apiscope.errors import APIError, ScopeConfigurationError, ScopeViolation
from apiscope.invoker import ToolInvoker, format_error
from apiscope.log import ROOT_LOGGER_NAME, configure_logging
from apiscope.parser import ToolDefinition, compile_tools, filter_tools, load_document
from apiscope.scope import (
    ScopeConfiguration,
    ScopeSelection,
    build_scope_configuration,
    detect_implicit_scope,
)

# ---------------------------------------------------------------------------
# Tool adapter
# ---------------------------------------------------------------------------


class ApiTool(Tool):
    """
    A FastMCP tool backed by a compiled ToolDefinition.

    FastMCP only sees the name, description and JSON schema; the call itself
    is handed to the ToolInvoker. Invocation errors become ToolError text so
    the MCP client receives them as an error result:

    - ScopeViolation: its message, unchanged
    - APIError / TransportError: "Error <status>: <message>\\n\\nDetails: ..."
    - invalid arguments: pydantic's description of what was wrong
    """

    _definition: ToolDefinition = PrivateAttr()
    _invoker: ToolInvoker = PrivateAttr()

    @classmethod
    def from_definition(
        cls,
        definition: ToolDefinition,
        invoker: ToolInvoker,
        scope: ScopeConfiguration | None = None,
    ) -> "ApiTool":
        tool = cls(
            name=definition.name,
            description=definition.description,
            parameters=scoped_input_schema(definition, scope),
            annotations=ToolAnnotations(
                readOnlyHint=definition.read_only,
                destructiveHint=definition.method == "DELETE",
            ),
        )
        tool._definition = definition
        tool._invoker = invoker
        return tool

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        try:
            text = await self._invoker.invoke(self._definition, arguments)
        except ScopeViolation as e:
            raise ToolError(str(e)) from e
        except APIError as e:
            raise ToolError(format_error(e)) from e
        except ValidationError as e:
            raise ToolError(f"Invalid arguments for {self.name}: {e}") from e
        return ToolResult(content=text)


def scoped_input_schema(
    definition: ToolDefinition, scope: ScopeConfiguration | None
) -> dict[str, Any]:
    """
    Drop project/config from "required" when the scope fills them in, so
    clients don't insist on a value the server supplies anyway. Only declared
    parameters are filled; a body field named "project" stays required.
    """
    schema = definition.input_schema
    if scope is None:
        return schema

    pinned = (("project", scope.project), ("config", scope.config))
    filled = {name for name, value in pinned if value and name in definition.parameter_names}
    required = [name for name in schema.get("required", []) if name not in filled]

    relaxed = {key: value for key, value in schema.items() if key != "required"}
    if required:
        relaxed["required"] = required
    return relaxed


# ---------------------------------------------------------------------------
# Audit middleware
# ---------------------------------------------------------------------------


class AuditMiddleware(Middleware):
    """
    Logs every tools/call with a short request id, the tool name and the
    outcome, so a rejected or failed call can be traced in the JSON logs.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    async def on_call_tool(
        self,
        context: MiddlewareContext[CallToolRequestParams],
        call_next: CallNext[CallToolRequestParams, ToolResult],
    ) -> ToolResult:
        request_id = str(uuid.uuid4())[:8]
        tool_name = context.message.name

        self.logger.info(
            "Tool call received",
            extra={
                "event_data": {
                    "request_id": request_id,
                    "tool": tool_name,
                    "arguments": sorted((context.message.arguments or {}).keys()),
                }
            },
        )

        try:
            result = await call_next(context)
        except ToolError as e:
            self.logger.warning(
                "Tool call failed",
                extra={
                    "event_data": {
                        "request_id": request_id,
                        "tool": tool_name,
                        "decision": "failed",
                        "reason": str(e).splitlines()[0] if str(e) else "",
                    }
                },
            )
            raise

        self.logger.info(
            "Tool call completed",
            extra={
                "event_data": {
                    "request_id": request_id,
                    "tool": tool_name,
                    "decision": "completed",
                }
            },
        )
        return result


# ---------------------------------------------------------------------------
# Server assembly
# ---------------------------------------------------------------------------


async def create_server(
    config: Settings,
    client: ApiClient,
    document: dict[str, Any] | None = None,
    logger: logging.Logger | None = None,
) -> FastMCP:
    """
    Build a ready-to-run FastMCP server.

    Args:
        config: Server settings (token, scope, read-only mode, ...)
        client: HTTP collaborator used for startup checks and every tool call
        document: The API description; loaded from config.spec_path if None
        logger: Parent logger; the parser and invoker log to its children

    Raises:
        AuthError: The token is missing or malformed
        APIError: The startup connection check failed
        ScopeConfigurationError: The explicit scope can't be satisfied
        OSError / ValueError: The API description can't be read or parsed
    """
    logger = logger or logging.getLogger(ROOT_LOGGER_NAME)

    token_info = validate_token(config.token)

    logger.debug("Testing API connection...")
    await client.check_connection()
    logger.debug("Connected to API at %s", client.base_url)

    if token_info.is_scoped:
        detected = await detect_implicit_scope(client)
    else:
        detected = ScopeSelection()

    if detected.project or detected.config:
        logger.info(
            "Auto-detected scope",
            extra={"event_data": {"project": detected.project, "config": detected.config}},
        )

    scope = build_scope_configuration(
        detected, ScopeSelection(project=config.project, config=config.config)
    )

    if document is None:
        logger.debug("Loading API description from %s", config.spec_path)
        document = load_document(config.spec_path)

    definitions = compile_tools(
        document, logger=logger.getChild("parser"), version_prefix=config.version_prefix
    )
    compiled_count = len(definitions)
    definitions = filter_tools(
        definitions,
        read_only=config.read_only,
        project=scope.project,
        config=scope.config,
        org_level_prefixes=config.org_level_prefixes,
    )
    logger.info(
        "Compiled API tools",
        extra={
            "event_data": {
                "compiled": compiled_count,
                "exposed": len(definitions),
                "read_only": config.read_only,
            }
        },
    )

    access_context = AccessContext(
        token_type=token_info.token_type,
        read_only=config.read_only,
        project=scope.project,
        config=scope.config,
    )
    for message in get_access_messages(access_context):
        level = logging.INFO if message.level is AccessLevel.INFO else logging.WARNING
        logger.log(level, message.render())

    mcp = FastMCP(
        name="apiscope-readonly" if config.read_only else "apiscope",
        instructions=(
            "Each tool calls one operation of the upstream REST API. "
            "Project and config parameters may be filled in automatically "
            "when the server is scoped."
        ),
        middleware=[AuditMiddleware(logger.getChild("audit"))],
    )

    if needs_confirmation(access_context):
        summary = confirmation_text(access_context)

        @mcp.tool(name=CONFIRM_ACCESS_TOOL_NAME, description=CONFIRM_ACCESS_DESCRIPTION)
        def confirm_access() -> str:
            return summary

    invoker = ToolInvoker(client, scope, logger=logger.getChild("invoker"))
    for definition in definitions:
        mcp.add_tool(ApiTool.from_definition(definition, invoker, scope))

    # -----------------------------------------------------------------------
    # Health and readiness endpoints (streamable-http transport only)
    # -----------------------------------------------------------------------

    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> Response:
        """Liveness probe: is the server process alive and responsive?"""
        return JSONResponse({"status": "healthy"})

    @mcp.custom_route("/ready", methods=["GET"])
    async def readiness_check(request: Request) -> Response:
        """Readiness probe: did the API description yield any tools?"""
        if not definitions:
            return JSONResponse(
                {"status": "not_ready", "reason": "no tools compiled"},
                status_code=503,
            )
        return JSONResponse({"status": "ready", "tools": len(definitions)})

    return mcp


async def serve(config: Settings, logger: logging.Logger) -> None:
    token_info = validate_token(config.token)

    async with ApiClient(
        token_info.token,
        config.base_url,
        timeout=config.request_timeout,
        connection_check_endpoint=config.connection_check_endpoint,
    ) as client:
        mcp = await create_server(config, client, logger=logger)

        logger.info(
            "Starting MCP server",
            extra={"event_data": {"transport": config.transport, "base_url": config.base_url}},
        )
        if config.transport == "stdio":
            await mcp.run_async(transport="stdio")
        else:
            await mcp.run_async(
                transport="streamable-http",
                host=config.host,
                port=config.port,
                log_level=config.effective_log_level,
            )


def main() -> None:
    logger = configure_logging(settings.effective_log_level)

    try:
        asyncio.run(serve(settings, logger))
    except AuthError as e:
        logger.error(e.message)
        sys.exit(1)
    except APIError as e:
        logger.error(
            "API connection check failed",
            extra={"event_data": {"status_code": e.status_code, "error": e.message}},
        )
        sys.exit(1)
    except ScopeConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)
    except (OSError, ValueError) as e:
        logger.error(
            "Failed to load API description",
            extra={"event_data": {"spec_path": str(settings.spec_path), "error": str(e)}},
        )
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
