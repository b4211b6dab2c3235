"""
typefinder Client Facade

Single entry point for programmatic use of typefinder.  Wraps request
construction, the tiered search and health reporting behind an
instance-based API with async variants.

Usage::

    from typefinder import TypeFinder

    finder = TypeFinder()                        # reads env vars
    outcome = finder.search("./myproject", "UserService", exact_match=True)
    print(f"{outcome.total_count} found via {outcome.strategy}")
    for hit in outcome.displayed:
        print(f"{hit.kind} {hit.type_name} @ {hit.file_path}:{hit.line_number}")

    # Async variant (for FastAPI / agent loops)
    outcome = await finder.asearch("./myproject", "UserService")
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional

from typefinder.core.config import TypeFinderConfig
from typefinder.core.diagnostics import DiagnosticSink
from typefinder.core.engine import SearchOutcome, SearchRequest
from typefinder.core.search import SearchOrchestrator
from typefinder.core.structured import StructuredIndex

logger = logging.getLogger(__name__)


class TypeFinder:
    """
    High-level typefinder client.

    Each instance carries its own :class:`TypeFinderConfig` and never
    touches global state.  Searches are stateless: nothing is cached
    between calls.

    Args:
        config: Explicit configuration object.  When *None*, a config
            is built from environment variables or keyword overrides.
        structured_index: Backend override (e.g. a test double).  When
            *None*, the backend named by ``config.structured_backend``.
        sink: Receives per-file and per-unit warnings as they happen.
        **kwargs: Forwarded to :class:`TypeFinderConfig` when *config* is
            ``None`` (e.g. ``max_workers=1``).
    """

    def __init__(
        self,
        config: TypeFinderConfig | None = None,
        *,
        structured_index: StructuredIndex | None = None,
        sink: DiagnosticSink | None = None,
        **kwargs,
    ):
        if config is not None:
            self._config = config
        elif kwargs:
            # Build a config from env, then overlay keyword overrides
            base = TypeFinderConfig.from_env()
            merged = {
                f.name: kwargs.get(f.name, getattr(base, f.name))
                for f in base.__dataclass_fields__.values()
            }
            self._config = TypeFinderConfig(**merged)
        else:
            self._config = TypeFinderConfig.from_env()

        self._config.validate()
        self._orchestrator = SearchOrchestrator(
            config=self._config,
            structured_index=structured_index,
            sink=sink,
        )

    @property
    def config(self) -> TypeFinderConfig:
        """The active configuration for this client."""
        return self._config

    # ── Search ────────────────────────────────────────────────────

    def search(
        self,
        workspace: str | Path,
        query: str,
        *,
        exact_match: bool = False,
        case_sensitive: bool = False,
        file_types: Optional[Iterable[str]] = None,
        max_results: int | None = None,
        include_references: bool = False,
    ) -> SearchOutcome:
        """
        Find declarations (and optionally usages) of *query* under *workspace*.

        Args:
            workspace: Root directory to search.
            query: Type or symbol name.
            exact_match: Only declaration sites whose name equals *query*.
            case_sensitive: Ordinal instead of ignore-case comparison.
            file_types: Extensions for text search; config default when empty.
            max_results: Display cap; the outcome still holds every match.
            include_references: Also report usages when a project model exists.

        Returns:
            :class:`SearchOutcome` with the full ordered result list.

        Raises:
            ConfigError: If *query* is empty or *max_results* not positive.
            WorkspaceNotFoundError: If *workspace* is not a directory.
        """
        request = SearchRequest(
            workspace_root=Path(workspace),
            query=query,
            exact_match=exact_match,
            case_sensitive=case_sensitive,
            file_extensions=tuple(file_types or self._config.file_extensions),
            max_results=max_results if max_results is not None else self._config.max_results,
            include_references=include_references,
        )
        return self._orchestrator.search(request)

    async def asearch(
        self,
        workspace: str | Path,
        query: str,
        **options,
    ) -> SearchOutcome:
        """Async variant of :meth:`search`. Raises same exceptions as sync."""
        return await asyncio.to_thread(self.search, workspace, query, **options)

    # ── Health (for agents / status endpoints) ─────────────────────

    def health(self) -> Dict[str, object]:
        """
        Return a small status dict for agents or readiness checks.

        Touches neither the filesystem nor any workspace.
        """
        return {
            "version": __import__("typefinder", fromlist=["__version__"]).__version__,
            "structured_backend": self._orchestrator.structured_index.name,
            "file_extensions": list(self._config.file_extensions),
            "max_results": self._config.max_results,
        }
