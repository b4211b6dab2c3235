"""
typefinder CLI

Unified command-line interface for finding types.

Usage::

    typefinder search ./src UserService              # substring search
    typefinder search ./src UserService --exact-match
    typefinder search . Controller --file-types .cs,.ts
    find-type UserService --include-references       # workspace defaults to .
    typefinder mcp                                   # start the MCP server

Exit codes: 0 on success (including zero matches), 1 on invalid input or
an unhandled failure.
"""

import dataclasses
import logging
import sys
from typing import List, Optional

import click

from typefinder.core.config import (
    STRUCTURED_BACKENDS, TypeFinderConfig, parse_extension_list,
)
from typefinder.core.diagnostics import CollectingSink, DiagnosticSink
from typefinder.core.engine import SearchRequest
from typefinder.core.search import ResultFormatter, SearchOrchestrator
from typefinder.core.structured import create_structured_index


# ---------------------------------------------------------------------------
# Logging helpers
# ---------------------------------------------------------------------------

def _configure_logging(verbose: bool, config: TypeFinderConfig) -> None:
    """Set up logging for the CLI session (stderr, never mixed into results)."""
    level = logging.DEBUG if verbose else getattr(logging, config.log_level, logging.WARNING)
    logging.basicConfig(level=level, format=config.log_format)


class _EchoSink(DiagnosticSink):
    """Prints recoverable problems inline with the results."""

    def warning(self, message: str) -> None:
        click.echo(f"Warning: {message}")


# ---------------------------------------------------------------------------
# Shared search options
# ---------------------------------------------------------------------------

_FORMATTERS = {
    "console": ResultFormatter.format_console,
    "json": ResultFormatter.format_json,
    "compact": ResultFormatter.format_compact,
    "ide": ResultFormatter.format_ide,
}

_SEARCH_OPTIONS = [
    click.option("--exact-match", is_flag=True,
                 help="Report only declarations whose name equals QUERY."),
    click.option("--case-sensitive", is_flag=True,
                 help="Compare names ordinally instead of ignoring case."),
    click.option("--file-types", default=None, metavar="CSV",
                 help="Comma-separated extensions to search "
                      "(default: .cs,.ts,.js,.py,.java,.go,.rs,.php)."),
    click.option("--max-results", type=click.IntRange(min=1), default=None,
                 help="Maximum number of results to print (default: 50)."),
    click.option("--include-references", is_flag=True,
                 help="Also report usages when a project model is available."),
    click.option("-f", "--format", "fmt", type=click.Choice(list(_FORMATTERS)),
                 default="console", help="Output format."),
    click.option("--structured", type=click.Choice(list(STRUCTURED_BACKENDS)),
                 default=None, help="Structured backend (default: $TYPEFINDER_STRUCTURED or 'python')."),
    click.option("--exclude-dir", "exclude_dirs", multiple=True,
                 help="Directory name to skip while walking (repeatable)."),
    click.option("--workers", type=click.IntRange(min=1), default=None,
                 help="Threads used to read files and compile units."),
    click.option("--progress", is_flag=True, help="Show a progress bar on stderr."),
    click.option("-v", "--verbose", is_flag=True, help="Enable debug logging."),
]


def _search_options(func):
    for option in reversed(_SEARCH_OPTIONS):
        func = option(func)
    return func


def _run_search(workspace: str, query: str, *, exact_match: bool, case_sensitive: bool,
                file_types: Optional[str], max_results: Optional[int],
                include_references: bool, fmt: str, structured: Optional[str],
                exclude_dirs: tuple, workers: Optional[int], progress: bool,
                verbose: bool) -> None:
    """Build config and request, run the orchestrator, print the outcome."""
    try:
        config = TypeFinderConfig.from_env()
        overrides = {"show_progress": progress}
        if structured:
            overrides["structured_backend"] = structured
        if workers:
            overrides["max_workers"] = workers
        if exclude_dirs:
            overrides["exclude_dirs"] = config.exclude_dirs | frozenset(exclude_dirs)
        config = dataclasses.replace(config, **overrides)
        config.validate()
    except ValueError as exc:
        click.echo(f"Error: {exc}")
        raise SystemExit(1)

    _configure_logging(verbose, config)

    # JSON carries its warnings inside the document; other formats print inline.
    sink = CollectingSink() if fmt == "json" else _EchoSink()

    try:
        request = SearchRequest(
            workspace_root=workspace,
            query=query,
            exact_match=exact_match,
            case_sensitive=case_sensitive,
            file_extensions=(
                parse_extension_list(file_types) if file_types else config.file_extensions
            ),
            max_results=max_results or config.max_results,
            include_references=include_references,
        )
        orchestrator = SearchOrchestrator(
            config=config,
            structured_index=create_structured_index(config=config),
            sink=sink,
        )
        outcome = orchestrator.search(request)
    except Exception as exc:
        click.echo(f"Error: {exc}")
        raise SystemExit(1)

    click.echo(_FORMATTERS[fmt](outcome))


# ---------------------------------------------------------------------------
# Top-level group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(package_name="typefinder")
def cli():
    """typefinder: locate type declarations and usages across a source tree."""


# ---------------------------------------------------------------------------
# typefinder search
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("workspace")
@click.argument("query")
@_search_options
def search(workspace: str, query: str, **options):
    """Search WORKSPACE for types named (or containing) QUERY."""
    _run_search(workspace, query, **options)


# ---------------------------------------------------------------------------
# find-type (wrapper: type first, workspace optional)
# ---------------------------------------------------------------------------

@click.command(name="find-type")
@click.argument("query")
@click.option("--workspace", default=".", show_default=True,
              help="Workspace root to search.")
@_search_options
def find_type(query: str, workspace: str, **options):
    """Find QUERY in the current (or --workspace) directory."""
    _run_search(workspace, query, **options)


# ---------------------------------------------------------------------------
# typefinder mcp
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--transport", type=click.Choice(["stdio", "sse"]),
              default="stdio", help="MCP transport (default: stdio).")
@click.option("-v", "--verbose", is_flag=True)
def mcp(transport: str, verbose: bool):
    """Start the typefinder MCP server for agent integration."""
    _configure_logging(verbose, TypeFinderConfig.from_env())
    try:
        from typefinder.mcp.server import create_server  # noqa: E402
    except ImportError:
        click.echo(
            "Error: MCP dependencies not installed.\n"
            "Install with:  pip install 'typefinder[mcp]'",
            err=True,
        )
        raise SystemExit(1)

    server = create_server()
    server.run(transport=transport)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def _invoke(command: click.Command, argv: Optional[List[str]], prog_name: str) -> int:
    """Run *command*, mapping every usage error to exit code 1."""
    try:
        rv = command.main(args=argv, prog_name=prog_name, standalone_mode=False)
    except click.ClickException as exc:
        exc.show()
        return 1
    except click.Abort:
        click.echo("Aborted!", err=True)
        return 1
    return rv if isinstance(rv, int) else 0


def main(argv: Optional[List[str]] = None) -> int:
    """``typefinder`` console script."""
    return _invoke(cli, argv, "typefinder")


def find_type_main(argv: Optional[List[str]] = None) -> int:
    """``find-type`` console script."""
    return _invoke(find_type, argv, "find-type")


if __name__ == "__main__":
    sys.exit(main())
