"""
typefinder: locate type declarations and usages across a source tree.

The ``typefinder`` package answers "where is type X defined / used" for
automated coding agents.  Python projects get symbol-level answers from
an ``ast``-backed project model; every other language (and any tree
without a project descriptor) falls back to heuristic line matching.

Quick start (programmatic API)::

    from typefinder import TypeFinder

    finder = TypeFinder()
    outcome = finder.search("./src", "UserService", exact_match=True)

Quick start (CLI)::

    typefinder search ./src UserService --exact-match
    find-type UserService --include-references
"""

__version__ = "1.0.0"

# Primary public API (the TypeFinder facade)
from typefinder.client import TypeFinder

# Configuration
from typefinder.core.config import DEFAULT_FILE_EXTENSIONS, TypeFinderConfig

# Core data types that callers interact with
from typefinder.core.engine import SearchOutcome, SearchRequest, SymbolKind, TypeResult

# Exception hierarchy
from typefinder.exceptions import (
    BinaryFileError,
    ConfigError,
    StructuredIndexError,
    TypeFinderError,
    WorkspaceNotFoundError,
)


def health(config: TypeFinderConfig | None = None) -> dict:
    """
    Return a small status dict for agents or health checks (no filesystem access).

    When *config* is None, uses :meth:`TypeFinderConfig.from_env()`.
    """
    cfg = config or TypeFinderConfig.from_env()
    return {
        "version": __version__,
        "structured_backend": cfg.structured_backend,
        "file_extensions": list(cfg.file_extensions),
    }


__all__ = [
    "__version__",
    # Facade
    "TypeFinder",
    # Config
    "TypeFinderConfig",
    "DEFAULT_FILE_EXTENSIONS",
    # Data types
    "SearchRequest",
    "SearchOutcome",
    "SymbolKind",
    "TypeResult",
    # Exceptions
    "TypeFinderError",
    "ConfigError",
    "WorkspaceNotFoundError",
    "StructuredIndexError",
    "BinaryFileError",
    # Status
    "health",
]
