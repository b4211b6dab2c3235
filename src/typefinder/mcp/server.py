"""
typefinder MCP Server

Exposes type search as a tool that AI agents (Claude, Cursor, Windsurf)
can invoke natively via the Model Context Protocol, plus a resource
describing the ``kind`` vocabulary used in results.

Start with::

    typefinder mcp                  # stdio transport (default for Cursor)
    typefinder mcp --transport sse  # SSE transport

Or programmatically::

    from typefinder.mcp.server import create_server
    server = create_server()
    server.run()
"""

from __future__ import annotations

import json
import logging
import os
from typing import Annotated

# FastMCP uses pydantic for validation, so Field should be available
from pydantic import Field  # type: ignore[import-untyped]

from typefinder.core.config import TypeFinderConfig
from typefinder.core.engine import SymbolKind

logger = logging.getLogger(__name__)


def _resolve_path(path: str) -> str:
    """When path is '.', use TYPEFINDER_DEFAULT_PATH if set (e.g. /data in Docker)."""
    if path == ".":
        default = os.environ.get("TYPEFINDER_DEFAULT_PATH", "").strip()
        if default:
            return default
    return path


def create_server(config: TypeFinderConfig | None = None):
    """
    Build and return a configured FastMCP server instance.

    All tool invocations share one config.  Each call is an independent,
    stateless search.

    Raises ``ImportError`` if ``fastmcp`` is not installed (install via
    ``pip install 'typefinder[mcp]'``).
    """
    from fastmcp import FastMCP  # type: ignore[import-untyped]

    from typefinder.client import TypeFinder
    from typefinder.core.search import ResultFormatter

    cfg = config or TypeFinderConfig.from_env()
    finder = TypeFinder(config=cfg)

    mcp = FastMCP("typefinder")

    # ==================================================================
    # Tool: find_type
    # ==================================================================

    @mcp.tool()
    def find_type(
        query: Annotated[
            str,
            Field(description="Type or symbol name to look for, e.g. 'UserService'. In substring mode any name containing it matches.")
        ],
        path: Annotated[
            str,
            Field(default=".", description="Workspace root directory to search. Defaults to the current working directory ('.').")
        ] = ".",
        exact_match: Annotated[
            bool,
            Field(default=False, description="If True, report only declarations whose name equals the query (word-boundary aware). Use when you know the exact type name.")
        ] = False,
        case_sensitive: Annotated[
            bool,
            Field(default=False, description="If True, compare names ordinally; otherwise ignore case.")
        ] = False,
        file_types: Annotated[
            list[str] | None,
            Field(default=None, description="Extensions to search with text matching, e.g. ['.cs', '.ts']. Defaults to eight common source extensions.")
        ] = None,
        max_results: Annotated[
            int | None,
            Field(default=None, description="Maximum number of results to return (default 50). total_count always reports every match.")
        ] = None,
        include_references: Annotated[
            bool,
            Field(default=False, description="If True and the workspace has a Python project descriptor, also return every usage of each matched symbol with kind 'reference'.")
        ] = False,
    ) -> str:
        """Locate where a type is declared (and optionally used) in a workspace.

        Python projects (pyproject.toml / setup.py / setup.cfg) are
        resolved symbol by symbol; everything else is matched line by
        line across .cs, .ts, .js, .py, .java, .go, .rs and .php files.

        **When to use this tool:**
        - "Where is class X defined?" without opening files one by one
        - Listing every usage of a Python class or function before editing it

        Returns:
            JSON object with total_count, shown, strategy (solution,
            project or text), results (file_path, line_number, type_name,
            kind, context) and warnings.
        """
        try:
            outcome = finder.search(
                _resolve_path(path),
                str(query),
                exact_match=exact_match,
                case_sensitive=case_sensitive,
                file_types=file_types,
                max_results=max_results,
                include_references=include_references,
            )
            return ResultFormatter.format_json(outcome)
        except Exception as e:
            return json.dumps({"error": str(e), "results": []}, allow_nan=False)

    # ==================================================================
    # Resource: kind vocabulary
    # ==================================================================

    @mcp.resource("typefinder://kinds")
    def kinds() -> str:
        """The closed set of ``kind`` values that results can carry."""
        return json.dumps([str(k) for k in SymbolKind])

    return mcp
