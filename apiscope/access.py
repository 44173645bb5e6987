"""
Startup access summary and the `confirm_access` tool.

Before an agent touches secrets it should know what it is holding: which kind
of token, which project/config, whether writes are possible, and whether the
config looks like production. `get_access_messages` builds that summary as
info / warning / critical messages. The server logs them at startup and, when
any warning or critical message exists, registers a `confirm_access` tool
whose output asks the user to confirm before anything else is called.
"""

import re
from dataclasses import dataclass
from enum import Enum

from apiscope.auth import TokenType

CONFIRM_ACCESS_TOOL_NAME = "confirm_access"

CONFIRM_ACCESS_DESCRIPTION = (
    "REQUIRED FIRST STEP: Call before any other API tool. "
    "Returns access level warnings that must be shown to the user for confirmation."
)

_PRODUCTION_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^prod$",
        r"^prd$",
        r"^production$",
        r"^live$",
        r"[_-]prod$",
        r"[_-]prd$",
        r"[_-]production$",
    )
]

TOKEN_TYPE_LABELS = {
    TokenType.SERVICE_TOKEN: "service token (project-scoped)",
    TokenType.SERVICE_ACCOUNT: "service account",
    TokenType.PERSONAL: "personal token",
    TokenType.CLI: "CLI token",
    TokenType.SCIM: "SCIM token",
    TokenType.UNKNOWN: "unknown",
}


class AccessLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


_MARKERS = {
    AccessLevel.INFO: "ℹ️",
    AccessLevel.WARNING: "⚠️",
    AccessLevel.CRITICAL: "🚨",
}


@dataclass(frozen=True)
class AccessContext:
    token_type: TokenType
    read_only: bool
    project: str | None = None
    config: str | None = None


@dataclass(frozen=True)
class AccessMessage:
    level: AccessLevel
    message: str

    @property
    def marker(self) -> str:
        return _MARKERS[self.level]

    def render(self) -> str:
        return f"{self.marker} {self.message}"


def is_production_config(config: str | None) -> bool:
    """True for prod, prd, production, live, and *_prod / *-prod style names."""
    if not config or not config.strip():
        return False
    return any(pattern.search(config) for pattern in _PRODUCTION_PATTERNS)


def get_access_messages(ctx: AccessContext) -> list[AccessMessage]:
    messages = [AccessMessage(AccessLevel.INFO, f"Token type: {TOKEN_TYPE_LABELS[ctx.token_type]}")]

    if ctx.project:
        messages.append(AccessMessage(AccessLevel.INFO, f"Project: {ctx.project}"))
    if ctx.config:
        messages.append(AccessMessage(AccessLevel.INFO, f"Config: {ctx.config}"))
    if ctx.read_only:
        messages.append(AccessMessage(AccessLevel.INFO, "Mode: read-only"))

    if ctx.token_type is TokenType.UNKNOWN:
        messages.append(
            AccessMessage(AccessLevel.CRITICAL, "UNKNOWN TOKEN TYPE - exercise extreme caution")
        )
    elif ctx.token_type is TokenType.SCIM:
        messages.append(
            AccessMessage(
                AccessLevel.CRITICAL,
                "SCIM TOKEN - intended for user provisioning, not secrets access",
            )
        )

    if ctx.config and is_production_config(ctx.config):
        messages.append(AccessMessage(AccessLevel.CRITICAL, f"PRODUCTION CONFIG: {ctx.config}"))

    if not ctx.read_only:
        messages.append(
            AccessMessage(
                AccessLevel.WARNING, "Write tools exposed - use caution when modifying secrets"
            )
        )
    if not ctx.project:
        messages.append(AccessMessage(AccessLevel.WARNING, "No project filter applied"))

    return messages


def needs_confirmation(ctx: AccessContext) -> bool:
    return any(m.level is not AccessLevel.INFO for m in get_access_messages(ctx))


def confirmation_text(ctx: AccessContext) -> str:
    """The payload returned by the confirm_access tool."""
    messages = get_access_messages(ctx)
    scope_lines = "\n".join(f"  {m.render()}" for m in messages if m.level is AccessLevel.INFO)
    warning_lines = "\n".join(
        f"  {m.render()}" for m in messages if m.level is not AccessLevel.INFO
    )

    return f"""<security_confirmation required="true">
<instructions>
Before proceeding with any API operations, you must obtain explicit user consent.
Display the access summary below to the user VERBATIM - do not summarize or rephrase.
</instructions>

<display_to_user>
Current access scope:
{scope_lines}

Warnings requiring confirmation:
{warning_lines}
</display_to_user>

<then>
Ask the user: "Do you want me to proceed?"
Wait for explicit confirmation (e.g., "yes", "proceed", "go ahead") before calling any other API tools.
</then>
</security_confirmation>"""
