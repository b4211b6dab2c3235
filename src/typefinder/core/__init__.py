"""
typefinder Core: configuration, matching, structured index, and search.

Re-exports the primary classes for convenience::

    from typefinder.core import SearchOrchestrator, SearchRequest, Matcher
"""

from typefinder.core.config import DEFAULT_FILE_EXTENSIONS, TypeFinderConfig
from typefinder.core.diagnostics import CollectingSink, DiagnosticSink, LoggingSink
from typefinder.core.engine import (
    ContextExtractor,
    Matcher,
    SearchOutcome,
    SearchRequest,
    SymbolKind,
    TypeResult,
    walk_files,
)
from typefinder.core.search import ResultFormatter, SearchOrchestrator, TextSearchEngine
from typefinder.core.structured import (
    NullStructuredIndex,
    PythonAstIndex,
    StructuredIndex,
    create_structured_index,
)

__all__ = [
    "DEFAULT_FILE_EXTENSIONS",
    "TypeFinderConfig",
    "CollectingSink",
    "DiagnosticSink",
    "LoggingSink",
    "ContextExtractor",
    "Matcher",
    "SearchOutcome",
    "SearchRequest",
    "SymbolKind",
    "TypeResult",
    "walk_files",
    "ResultFormatter",
    "SearchOrchestrator",
    "TextSearchEngine",
    "NullStructuredIndex",
    "PythonAstIndex",
    "StructuredIndex",
    "create_structured_index",
]
