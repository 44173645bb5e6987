"""
Deterministic tool names for API operations.

MCP tool names must be short (at most 64 characters) and stable across
restarts, so they are derived purely from the operation: no counters, no
randomness, no I/O.

Two sources:

- A "clean" operationId is used almost as-is:
      "secrets-list"      -> "secrets_list"
- An "ugly" (auto-generated looking) operationId is ignored and the name is
  built from the method and path instead:
      GET /v3/workplace/change_requests  -> "workplace_change_requests_list"
      POST /v3/configs/config/clone      -> "configs_config_clone"

An operationId is ugly when it contains the API version token ("v3"), a path
template ("{slug}"), or starts with an HTTP method and an underscore
("get_...", "post_...").
"""

import re

MAX_TOOL_NAME_LENGTH = 64

DEFAULT_VERSION_PREFIX = "v3"

# A trailing path segment that is really a verb: it replaces the CRUD action.
ACTION_WORDS = frozenset(
    {
        "clone",
        "lock",
        "unlock",
        "rollback",
        "download",
        "rename",
        "close",
        "apply",
        "review",
        "status",
        "enable",
        "disable",
    }
)

_PATH_TEMPLATE = re.compile(r"\{[^}]+\}")
_METHOD_PREFIX = re.compile(r"^(get|post|put|patch|delete)_", re.IGNORECASE)
_UNDERSCORE_RUN = re.compile(r"_+")


def tool_name(
    method: str,
    path: str,
    operation_id: str | None,
    version_prefix: str = DEFAULT_VERSION_PREFIX,
) -> str:
    """Name an operation: its operationId when clean, else its method and path."""
    if operation_id and is_clean_operation_id(operation_id, version_prefix):
        name = sanitize_operation_id(operation_id)
        if name:
            return name
    return name_from_path(method, path, version_prefix)


def is_clean_operation_id(operation_id: str, version_prefix: str = DEFAULT_VERSION_PREFIX) -> bool:
    if version_prefix and version_prefix.lower() in operation_id.lower():
        return False
    if _PATH_TEMPLATE.search(operation_id):
        return False
    if _METHOD_PREFIX.match(operation_id):
        return False
    return True


def sanitize_operation_id(operation_id: str) -> str:
    name = operation_id.replace("-", "_")
    name = _PATH_TEMPLATE.sub("", name)
    name = _UNDERSCORE_RUN.sub("_", name)
    name = name.lstrip("_").removesuffix("_")
    return truncate(name)


def name_from_path(method: str, path: str, version_prefix: str = DEFAULT_VERSION_PREFIX) -> str:
    """
    Build "<resource_segments>_<action>" from a method and path.

    Path parameters are dropped, dashes become underscores and the version
    segment is stripped. The action comes from the method (see
    `default_action`) unless the last segment is one of ACTION_WORDS, in
    which case that word is the action. A DELETE on such a path becomes
    "<word>_delete" so it doesn't share a name with the POST next to it.
    """
    if version_prefix:
        path_without_version = re.sub(rf"^/{re.escape(version_prefix)}/", "", path)
    else:
        path_without_version = path

    parts = [
        segment.replace("-", "_")
        for segment in path_without_version.split("/")
        if segment and not segment.startswith("{")
    ]

    action = default_action(method, ends_with_param=path.endswith("}"))

    if parts and parts[-1] in ACTION_WORDS:
        word = parts.pop()
        action = f"{word}_delete" if method.upper() == "DELETE" else word

    name = "_".join(parts)
    if not name.endswith(action):
        name = f"{name}_{action}"

    name = _UNDERSCORE_RUN.sub("_", name).strip("_")
    return truncate(name)


def default_action(method: str, ends_with_param: bool) -> str:
    method = method.upper()
    if method == "GET":
        return "get" if ends_with_param else "list"
    if method == "POST":
        return "create"
    if method in ("PUT", "PATCH"):
        return "update"
    if method == "DELETE":
        return "delete"
    return method.lower()


def truncate(name: str) -> str:
    """Cut to MAX_TOOL_NAME_LENGTH without leaving an underscore at the cut."""
    if len(name) > MAX_TOOL_NAME_LENGTH:
        name = name[:MAX_TOOL_NAME_LENGTH].removesuffix("_")
    return name
