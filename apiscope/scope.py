"""
Project/config scoping of tool calls.

A server can be pinned to one project and optionally one config. Each pin has
an origin:

- "cli":   set explicitly in the server configuration (APISCOPE_PROJECT /
           APISCOPE_CONFIG)
- "token": inferred at startup because the service token can only see one
           project (and one config in it)

At call time `apply_scope` does two things with a tool's input:

1. Rejects an explicit project/config that contradicts the pin. The
   ScopeViolation message depends on the origin, since the fix is different
   (a token can't be widened, a configuration can be changed).
2. Fills in project/config when the tool takes them and the caller left them
   out.

Startup helpers (`detect_implicit_scope`, `merge_scope`, `validate_scope`,
`build_scope_configuration`) turn detected + explicit values into the single
read-only ScopeConfiguration shared by every call.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Collection, Mapping, Protocol

from apiscope.errors import ScopeConfigurationError, ScopeViolation


class ScopeSource(str, Enum):
    CLI = "cli"
    TOKEN = "token"


@dataclass(frozen=True)
class ScopeConfiguration:
    """The effective scope of a running server. Read-only after startup."""

    project: str | None = None
    project_source: ScopeSource | None = None
    config: str | None = None
    config_source: ScopeSource | None = None


@dataclass(frozen=True)
class ScopeSelection:
    """A project/config pair, either detected from the token or set explicitly."""

    project: str | None = None
    config: str | None = None


class ScopeClient(Protocol):
    async def list_projects(self) -> list[dict[str, Any]]: ...

    async def list_configs(self, project: str) -> list[dict[str, Any]]: ...


# ---------------------------------------------------------------------------
# Call time
# ---------------------------------------------------------------------------


def apply_scope(
    scope: ScopeConfiguration,
    parameter_names: Collection[str],
    arguments: Mapping[str, Any],
) -> dict[str, Any]:
    """
    Check `arguments` against `scope` and fill in omitted scoped parameters.

    Returns a new dict; `arguments` is left untouched.

    Raises:
        ScopeViolation: The caller explicitly targets another project/config
    """
    _check_dimension("project", scope.project, scope.project_source, arguments.get("project"))
    _check_dimension("config", scope.config, scope.config_source, arguments.get("config"))

    scoped = dict(arguments)

    if scope.config and "config" in parameter_names and not scoped.get("config"):
        scoped["config"] = scope.config

    if scope.project and "project" in parameter_names and not scoped.get("project"):
        scoped["project"] = scope.project

    return scoped


def _check_dimension(
    dimension: str,
    configured: str | None,
    source: ScopeSource | None,
    requested: Any,
) -> None:
    if not configured or not requested or requested == configured:
        return

    title = dimension.capitalize()
    if source is ScopeSource.TOKEN:
        message = (
            f'{title} scope violation: Your token only has access to {dimension} "{configured}", '
            f'but the request targets {dimension} "{requested}".'
        )
    else:
        message = (
            f'{title} scope violation: This server is configured for {dimension} "{configured}" '
            f'but the request targets {dimension} "{requested}". '
            f"Remove the {dimension} parameter to use the configured {dimension}, "
            f"or reconfigure the server."
        )
    raise ScopeViolation(message)


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


async def detect_implicit_scope(client: ScopeClient) -> ScopeSelection:
    """
    Infer the scope a token is limited to.

    Exactly one visible project pins the project; exactly one config inside
    it then pins the config. Anything else pins nothing.
    """
    projects = await client.list_projects()
    if len(projects) != 1:
        return ScopeSelection()

    project = projects[0]["slug"]

    configs = await client.list_configs(project)
    if len(configs) == 1:
        return ScopeSelection(project=project, config=configs[0]["name"])

    return ScopeSelection(project=project)


def merge_scope(detected: ScopeSelection, explicit: ScopeSelection) -> ScopeSelection:
    """
    Explicit values win. An explicit project that differs from the detected
    one drops the detected config, which belonged to the other project.
    """
    project = explicit.project if explicit.project is not None else detected.project
    project_changed = explicit.project is not None and explicit.project != detected.project

    if explicit.config is not None:
        config = explicit.config
    elif not project_changed:
        config = detected.config
    else:
        config = None

    return ScopeSelection(project=project, config=config)


def validate_scope(detected: ScopeSelection, explicit: ScopeSelection) -> None:
    if explicit.config is None:
        return
    if explicit.project is None and detected.project is None:
        raise ScopeConfigurationError(
            "A config scope requires a project scope (the token has access to multiple projects)"
        )


def build_scope_configuration(
    detected: ScopeSelection, explicit: ScopeSelection
) -> ScopeConfiguration:
    """Validate, merge and attach an origin to each pinned dimension."""
    validate_scope(detected, explicit)
    effective = merge_scope(detected, explicit)

    return ScopeConfiguration(
        project=effective.project,
        project_source=_source(explicit.project, effective.project),
        config=effective.config,
        config_source=_source(explicit.config, effective.config),
    )


def _source(explicit: str | None, detected: str | None) -> ScopeSource | None:
    if explicit:
        return ScopeSource.CLI
    if detected:
        return ScopeSource.TOKEN
    return None
