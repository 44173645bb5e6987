"""
Shared test fixtures for the apiscope test suite.

Key fixtures:
- openapi_document: A small API description covering the interesting cases
  (query/path parameters, JSON bodies, action paths, a deprecated operation)
- make_tool: Compile a single operation object into a ToolDefinition
- recording_client: A fake HTTP collaborator that records every request
- make_api_client: An ApiClient wired to an httpx.MockTransport handler

Testing approach:
- Pure pieces (validators, naming, parser, scope) are tested directly.
- The invoker is tested against recording_client, so tests assert on the
  exact (method, endpoint, query, body) that would have gone out.
- ApiClient and the server are tested against httpx.MockTransport: real
  httpx request/response objects, no network.
"""

import copy
import json

import httpx
import pytest

from apiscope.client import ApiClient
from apiscope.parser import compile_tool, describe_operation

SERVICE_TOKEN = "dp.st.dev.abcdef123456"
PERSONAL_TOKEN = "dp.pt.abcdef123456"

_DOCUMENT = {
    "openapi": "3.0.0",
    "info": {"title": "Test API", "version": "1.0.0"},
    "servers": [{"url": "https://api.example.com"}],
    "paths": {
        "/v3/workplace": {
            "get": {
                "operationId": "workplace-get",
                "summary": "Get workplace",
                "parameters": [],
                "responses": {"200": {"description": "OK"}},
            }
        },
        "/v3/projects": {
            "get": {
                "operationId": "projects-list",
                "summary": "List projects",
                "parameters": [
                    {"name": "page", "in": "query", "schema": {"type": "integer"}},
                ],
                "responses": {"200": {"description": "OK"}},
            },
            "post": {
                "operationId": "projects-create",
                "summary": "Create project",
                "requestBody": {
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "required": ["name"],
                                "properties": {
                                    "name": {"type": "string"},
                                    "description": {"type": "string"},
                                },
                            }
                        }
                    }
                },
                "responses": {"200": {"description": "OK"}},
            },
        },
        "/v3/projects/project": {
            "get": {
                "operationId": "projects-get",
                "summary": "Retrieve project",
                "parameters": [
                    {"name": "project", "in": "query", "required": True, "schema": {"type": "string"}},
                ],
                "responses": {"200": {"description": "OK"}},
            },
            "delete": {
                "operationId": "projects-delete",
                "deprecated": True,
                "responses": {"200": {"description": "OK"}},
            },
        },
        "/v3/configs": {
            "get": {
                "operationId": "configs-list",
                "summary": "List configs",
                "parameters": [
                    {"name": "project", "in": "query", "required": True, "schema": {"type": "string"}},
                ],
                "responses": {"200": {"description": "OK"}},
            }
        },
        "/v3/configs/config/secrets": {
            "get": {
                "operationId": "secrets-list",
                "summary": "List secrets",
                "parameters": [
                    {"name": "project", "in": "query", "required": True, "schema": {"type": "string"}},
                    {"name": "config", "in": "query", "required": True, "schema": {"type": "string"}},
                ],
                "responses": {"200": {"description": "OK"}},
            },
            "post": {
                "operationId": "secrets-update",
                "summary": "Update secrets",
                "requestBody": {
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "required": ["project", "config", "secrets"],
                                "properties": {
                                    "project": {"type": "string"},
                                    "config": {"type": "string"},
                                    "secrets": {
                                        "type": "object",
                                        "properties": {"EXAMPLE_KEY": {"type": "string"}},
                                    },
                                },
                            }
                        }
                    }
                },
                "responses": {"200": {"description": "OK"}},
            },
        },
        "/v3/environments/{environment}": {
            "get": {
                "operationId": "get_v3environments{environment}",
                "summary": "Retrieve environment",
                "parameters": [
                    {"name": "environment", "in": "path", "required": True, "schema": {"type": "string"}},
                    {"name": "project", "in": "query", "required": True, "schema": {"type": "string"}},
                ],
                "responses": {"200": {"description": "OK"}},
            }
        },
        "/v3/configs/config/trusted_ips/review": {
            "post": {
                "operationId": "post_v3configsconfigtrusted_ipsreview",
                "summary": "Request review",
                "responses": {"200": {"description": "OK"}},
            },
            "delete": {
                "operationId": "delete_v3configsconfigtrusted_ipsreview",
                "summary": "Cancel review",
                "responses": {"200": {"description": "OK"}},
            },
        },
        "/v3/logs": {
            "get": {
                "operationId": "activity-logs-list",
                "summary": "List activity logs",
                "responses": {"200": {"description": "OK"}},
            }
        },
    },
}


@pytest.fixture
def openapi_document() -> dict:
    """A fresh deep copy of the sample API description for each test."""
    return copy.deepcopy(_DOCUMENT)


# ---------------------------------------------------------------------------
# Tool factory fixture
# ---------------------------------------------------------------------------
@pytest.fixture
def make_tool():
    """
    Factory fixture compiling one operation object into a ToolDefinition.

    Usage in tests:
        def test_something(make_tool):
            tool = make_tool("get", "/v3/configs", {"operationId": "configs-list", ...})
    """

    def _make_tool(method: str, path: str, operation: dict):
        return compile_tool(describe_operation(path, method, operation))

    return _make_tool


# ---------------------------------------------------------------------------
# Fake HTTP collaborator
# ---------------------------------------------------------------------------
class RecordingClient:
    """Records every request and answers with a canned response."""

    def __init__(self, response=None):
        self.response = {"ok": True} if response is None else response
        self.calls = []

    async def request(self, method, endpoint, query_params=None, body=None):
        self.calls.append(
            {
                "method": method,
                "endpoint": endpoint,
                "query_params": query_params,
                "body": body,
            }
        )
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.fixture
def recording_client():
    return RecordingClient()


# ---------------------------------------------------------------------------
# ApiClient over httpx.MockTransport
# ---------------------------------------------------------------------------
@pytest.fixture
async def make_api_client():
    """
    Factory fixture returning an ApiClient whose requests go to `handler`.

    The handler receives an httpx.Request and returns an httpx.Response.
    Every request is also appended to the returned list for inspection.
    Clients are closed on teardown.
    """
    clients = []

    def _make_api_client(handler, token: str = SERVICE_TOKEN):
        seen = []

        def _record(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        client = ApiClient(
            token,
            "https://api.example.com",
            transport=httpx.MockTransport(_record),
        )
        clients.append(client)
        return client, seen

    yield _make_api_client

    for client in clients:
        await client.aclose()


def fake_api(projects: list[str], configs: dict[str, list[str]] | None = None):
    """
    Build a MockTransport handler imitating the upstream API.

    - /v3/workplace answers 200
    - /v3/projects and /v3/configs list the given projects/configs
    - /v3/configs/config/secrets echoes the query it received
    - anything else is a 404 with a JSON error body
    """
    configs = configs or {}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/v3/workplace":
            return httpx.Response(200, json={"workplace": {"name": "Test Workplace"}})
        if path == "/v3/projects":
            return httpx.Response(200, json={"projects": [{"slug": p, "name": p} for p in projects]})
        if path == "/v3/configs":
            project = request.url.params.get("project", "")
            return httpx.Response(
                200,
                json={"configs": [{"slug": c, "name": c} for c in configs.get(project, [])]},
            )
        if path == "/v3/configs/config/secrets":
            return httpx.Response(200, json={"query": dict(request.url.params)})
        return httpx.Response(404, json={"messages": ["Not found"], "success": False})

    return handler


def request_json(request: httpx.Request):
    return json.loads(request.content) if request.content else None
