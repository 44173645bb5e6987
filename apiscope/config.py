"""
Application configuration loaded from environment variables.

Uses pydantic-settings to define typed configuration that reads from
environment variables (prefix APISCOPE_) and, for local development, a .env
file. For example:

    APISCOPE_TOKEN=dp.st.xxxx
    APISCOPE_SPEC_PATH=openapi.json
    APISCOPE_PROJECT=backend
    APISCOPE_READ_ONLY=true

A project or config set here is an explicit ("cli" origin) scope; see
apiscope/scope.py.
"""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Server configuration with environment variable bindings.

    Each field maps to an environment variable with the APISCOPE_ prefix:
    `token` reads APISCOPE_TOKEN, `read_only` reads APISCOPE_READ_ONLY, etc.
    """

    # --- Upstream API ---

    # Bearer token for the upstream API. Checked by apiscope.auth.validate_token.
    token: str | None = None

    base_url: str = "https://api.doppler.com"

    # Seconds before an upstream request is abandoned (surfaces as a
    # TransportError with status 0).
    request_timeout: float = 30.0

    # Cheap authenticated GET used to verify the token at startup.
    connection_check_endpoint: str = "/v3/workplace"

    # --- API description ---

    spec_path: Path = Path("openapi.json")

    # Version token of the API's paths. Operation ids containing it are
    # treated as auto-generated; see apiscope/naming.py.
    version_prefix: str = "v3"

    # Endpoints that act on the whole workspace. Hidden once a project scope
    # is in effect.
    org_level_prefixes: list[str] = ["/v3/workplace", "/v3/logs"]

    # --- Scope and exposure ---

    project: str | None = None
    config: str | None = None

    # Only expose GET operations.
    read_only: bool = False

    # --- Server settings ---

    # "stdio" for local MCP clients; "streamable-http" to serve over HTTP.
    transport: Literal["stdio", "streamable-http"] = "stdio"
    host: str = "127.0.0.1"
    port: int = 8080

    log_level: str = "info"

    # Shortcut for log_level=debug: startup progress and per-call detail.
    verbose: bool = False

    model_config = {
        "env_prefix": "APISCOPE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @property
    def effective_log_level(self) -> str:
        return "debug" if self.verbose else self.log_level


# Singleton instance: import this from other modules.
settings = Settings()
