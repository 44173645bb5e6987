"""
HTTP collaborator: one upstream API call in, JSON/text or a typed error out.

    client = ApiClient(token, "https://api.example.com")
    data = await client.request("GET", "/v3/configs", {"project": "backend"})

Success:
    JSON responses are parsed; anything else comes back as text, or as
    {"success": True} when the body is empty.

Failure:
    A non-2xx status raises APIError carrying the status code, a short
    message pulled from the error body ("messages" list, "message" or
    "error"), and the full body for diagnostics. No response at all raises
    TransportError (status 0).

No retries and no caching: a failed call surfaces immediately.
"""

import json
from typing import Any, Mapping

import httpx

from apiscope.errors import APIError, TransportError

USER_AGENT = "apiscope-mcp/0.1.0"

# Only these methods carry a request body.
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class ApiClient:
    def __init__(
        self,
        token: str,
        base_url: str,
        *,
        timeout: float = 30.0,
        connection_check_endpoint: str = "/v3/workplace",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.connection_check_endpoint = connection_check_endpoint
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "User-Agent": USER_AGENT,
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(
        self,
        method: str,
        endpoint: str,
        query_params: Mapping[str, Any] | None = None,
        body: Any = None,
    ) -> Any:
        """
        Make one request and return the decoded response.

        Raises:
            APIError: The API answered with a non-success status
            TransportError: No response was obtained
        """
        method = method.upper()
        params = {k: v for k, v in (query_params or {}).items() if v is not None}
        json_body = body if body is not None and method in MUTATING_METHODS else None

        try:
            response = await self._http.request(
                method, endpoint, params=params or None, json=json_body
            )
        except httpx.HTTPError as e:
            raise TransportError(str(e) or type(e).__name__) from e

        if not response.is_success:
            raise _error_from_response(response)

        if "application/json" not in response.headers.get("content-type", ""):
            return response.text or {"success": True}

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON in response: {e}") from e

    async def check_connection(self) -> None:
        """Make one authenticated call; raises APIError if the token is rejected."""
        await self.request("GET", self.connection_check_endpoint)

    async def list_projects(self) -> list[dict[str, Any]]:
        response = await self.request("GET", "/v3/projects")
        return _list_field(response, "projects")

    async def list_configs(self, project: str) -> list[dict[str, Any]]:
        response = await self.request("GET", "/v3/configs", {"project": project})
        return _list_field(response, "configs")


def _list_field(response: Any, key: str) -> list[dict[str, Any]]:
    if not isinstance(response, dict):
        return []
    return response.get(key) or []


def _error_from_response(response: httpx.Response) -> APIError:
    message = f"HTTP {response.status_code} {response.reason_phrase}"
    details = message

    if "application/json" in response.headers.get("content-type", ""):
        try:
            data = response.json()
        except ValueError:
            details = f"Failed to parse error response: {response.reason_phrase}"
        else:
            message = _extract_message(data) or message
            details = json.dumps(data, indent=2)
    else:
        details = response.text

    return APIError(details, message, response.status_code)


def _extract_message(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    messages = data.get("messages")
    if isinstance(messages, list):
        return ", ".join(str(m) for m in messages)
    if data.get("message"):
        return str(data["message"])
    if data.get("error"):
        return str(data["error"])
    return None
