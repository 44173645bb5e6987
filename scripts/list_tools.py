"""
CLI utility to preview the tools an API description compiles to.

No token or network access needed: the document is compiled exactly as the
server would compile it, then the resulting tool names are printed. Useful to
check naming and filtering before pointing an MCP client at the server.

Usage examples:

    # Every tool in the description
    python -m scripts.list_tools openapi.json

    # What a read-only server would expose
    python -m scripts.list_tools openapi.json --read-only

    # What a project-scoped server would expose
    python -m scripts.list_tools openapi.json --project backend
"""

import argparse
import logging
from pathlib import Path

from apiscope.config import Settings
from apiscope.log import configure_logging
from apiscope.parser import ToolDefinition, compile_tools, filter_tools, load_document


def list_tools(
    spec_path: Path,
    read_only: bool = False,
    project: str | None = None,
    config: str | None = None,
    logger: logging.Logger | None = None,
) -> list[ToolDefinition]:
    """
    Compile and filter the tools of an API description.

    Args:
        spec_path: Path to the JSON API description
        read_only: Keep only GET tools
        project: Pretend a project scope is set (drops org-level tools)
        config: Pretend a config scope is set (keeps config/secret tools)
        logger: Receives skipped-operation and collision warnings

    Returns:
        The tool definitions the server would register
    """
    defaults = Settings()
    tools = compile_tools(
        load_document(spec_path),
        logger=logger or logging.getLogger("apiscope.parser"),
        version_prefix=defaults.version_prefix,
    )
    return filter_tools(
        tools,
        read_only=read_only,
        project=project,
        config=config,
        org_level_prefixes=defaults.org_level_prefixes,
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        description="List the MCP tools compiled from an API description.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  All tools:
    %(prog)s openapi.json

  Read-only server:
    %(prog)s openapi.json --read-only

  Project-scoped server:
    %(prog)s openapi.json --project backend
        """,
    )

    parser.add_argument("spec_path", type=Path, help="Path to the JSON API description")
    parser.add_argument("--read-only", action="store_true", help="Only GET operations")
    parser.add_argument("--project", help="Simulate a project scope")
    parser.add_argument("--config", help="Simulate a config scope")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log compile warnings")

    args = parser.parse_args()

    logger = configure_logging("debug" if args.verbose else "error")
    tools = list_tools(
        args.spec_path,
        read_only=args.read_only,
        project=args.project,
        config=args.config,
        logger=logger.getChild("parser"),
    )

    width = max((len(t.name) for t in tools), default=0)
    for tool in tools:
        print(f"{tool.name:<{width}}  {tool.method:<6} {tool.endpoint}")
    print()
    print(f"{len(tools)} tools")


if __name__ == "__main__":
    main()
