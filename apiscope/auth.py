"""
API token checks and token type detection.

The server authenticates to the upstream API with a single bearer token taken
from the environment (APISCOPE_TOKEN). Nothing here talks to the network; this
module only answers two questions before the server starts:

- Does the token look like an API token at all? (validate_token)
- What kind of token is it? (detect_token_type)

Token prefixes:

    dp.st.*    service token     scoped to a project/config by the API
    dp.sa.*    service account   workspace automation
    dp.pt.*    personal token
    dp.ct.*    CLI token
    dp.scim.*  SCIM token        user provisioning

Only service tokens are genuinely scoped, so only they trigger implicit scope
detection at startup. For any other token type, seeing a single project just
means the workspace currently has one project.
"""

from dataclasses import dataclass
from enum import Enum

TOKEN_PREFIX = "dp."


class AuthError(Exception):
    """
    Raised when the configured token is missing or malformed.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TokenType(str, Enum):
    SERVICE_TOKEN = "service_token"
    SERVICE_ACCOUNT = "service_account"
    PERSONAL = "personal"
    CLI = "cli"
    SCIM = "scim"
    UNKNOWN = "unknown"


_TYPE_BY_SEGMENT = {
    "st": TokenType.SERVICE_TOKEN,
    "sa": TokenType.SERVICE_ACCOUNT,
    "pt": TokenType.PERSONAL,
    "ct": TokenType.CLI,
    "scim": TokenType.SCIM,
}


@dataclass(frozen=True)
class TokenInfo:
    """
    A token that passed the format check.

    Attributes:
        token: The raw token, sent as "Authorization: Bearer <token>"
        token_type: What kind of token it is (see module docstring)
    """

    token: str
    token_type: TokenType

    @property
    def is_scoped(self) -> bool:
        return self.token_type is TokenType.SERVICE_TOKEN


def detect_token_type(token: str | None) -> TokenType:
    if not token or not token.strip() or not token.startswith(TOKEN_PREFIX):
        return TokenType.UNKNOWN

    parts = token.split(".")
    if len(parts) < 3 or not parts[2]:
        return TokenType.UNKNOWN

    return _TYPE_BY_SEGMENT.get(parts[1], TokenType.UNKNOWN)


def validate_token(token: str | None) -> TokenInfo:
    """
    Check that a token is present and has the API token format.

    Raises:
        AuthError: The token is missing, blank, or lacks the "dp." prefix
    """
    if not token or not token.strip():
        raise AuthError(
            "Not authenticated. Set the APISCOPE_TOKEN environment variable to an API token."
        )

    token = token.strip()
    if not token.startswith(TOKEN_PREFIX):
        raise AuthError(
            f"Token does not appear to be a valid API token format (expected '{TOKEN_PREFIX}' prefix)"
        )

    return TokenInfo(token=token, token_type=detect_token_type(token))
