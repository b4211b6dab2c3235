"""
typefinder Search Engine

Tiered type search over a workspace:

- Structured lookup per solution-level unit, then per project-level unit,
  through the configured :class:`~typefinder.core.structured.StructuredIndex`
- Line-oriented text matching over every candidate file as the final
  fallback
- Result formatting for console, JSON, compact and IDE output

Ordering is always discovery order (units, then files, then lines); no
global re-sorting happens anywhere.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from tqdm import tqdm

from typefinder.core.config import TypeFinderConfig
from typefinder.core.diagnostics import CallbackSink, DiagnosticSink, LoggingSink
from typefinder.core.engine import (
    ContextExtractor, Matcher, SearchOutcome, SearchRequest, SymbolKind,
    TypeResult, read_source_lines, walk_files,
)
from typefinder.core.structured import (
    PROJECT, SOLUTION, Location, StructuredIndex, create_structured_index,
)
from typefinder.exceptions import BinaryFileError

logger = logging.getLogger(__name__)

# (path, results, error message or None) for one scanned file
_FileBatch = Tuple[Path, List[TypeResult], Optional[str]]


# =============================================================================
# Text search (fallback path)
# =============================================================================

class TextSearchEngine:
    """
    Heuristic, language-agnostic line scanner.

    Exact mode reports declaration-shaped lines only; substring mode
    reports every line containing the query.  A file that cannot be read
    is reported to the sink and skipped; it never aborts the run.
    """

    def __init__(
        self,
        config: TypeFinderConfig | None = None,
        sink: DiagnosticSink | None = None,
    ):
        self._config = config or TypeFinderConfig.from_env()
        self._sink = sink or LoggingSink()

    def search(self, request: SearchRequest,
               sink: DiagnosticSink | None = None) -> List[TypeResult]:
        """Scan every candidate file under the workspace root."""
        sink = sink or self._sink
        compiled = (
            Matcher.compile_definition_rules(request.query)
            if request.exact_match else None
        )
        files = walk_files(
            request.workspace_root, request.file_extensions, self._config.exclude_dirs,
        )

        results: List[TypeResult] = []
        scanned = 0
        # map() yields in submission order, so output never depends on
        # which worker finishes first.
        with ThreadPoolExecutor(max_workers=self._config.max_workers) as executor:
            batches = executor.map(lambda p: self._scan_file(p, request, compiled), files)
            for path, batch, error in tqdm(
                batches, desc="Searching files", unit="file",
                disable=not self._config.show_progress,
            ):
                scanned += 1
                if error is not None:
                    sink.warning(f"Could not search file {path}: {error}")
                    continue
                results.extend(batch)

        logger.debug(f"Text search scanned {scanned} files, {len(results)} matches")
        return results

    def _scan_file(self, path: Path, request: SearchRequest, compiled) -> _FileBatch:
        """Read and scan one file; failures come back as an error string."""
        try:
            max_bytes = self._config.max_file_size_bytes
            if max_bytes and path.stat().st_size > max_bytes:
                return path, [], f"larger than {self._config.max_file_size_mb}MB"
            lines = read_source_lines(path)
        except (OSError, BinaryFileError) as exc:
            return path, [], str(exc)
        return path, self.scan_lines(lines, str(path), request, compiled), None

    @staticmethod
    def scan_lines(
        lines: Sequence[str],
        file_path: str,
        request: SearchRequest,
        compiled=None,
    ) -> List[TypeResult]:
        """Produce at most one result per line of *lines*."""
        results: List[TypeResult] = []
        for i, line in enumerate(lines):
            if request.exact_match:
                kind = Matcher.classify_definition_line(
                    line, request.query, request.case_sensitive, compiled,
                )
            elif Matcher.matches(line, request.query, False, request.case_sensitive):
                kind = Matcher.classify_any_line(line)
            else:
                kind = None
            if kind is None:
                continue
            results.append(TypeResult(
                file_path=file_path,
                line_number=i + 1,
                type_name=request.query,
                kind=kind,
                context=ContextExtractor.extract(lines, i),
            ))
        return results


# =============================================================================
# Orchestrator
# =============================================================================

class SearchOrchestrator:
    """
    Three-tier search policy.

    1. Solution-level units through the structured index.
    2. If that produced nothing, project-level units.
    3. If that produced nothing, text search over the whole root.

    Units of one tier are compiled concurrently; their result batches are
    concatenated in discovery order and overlapping units are
    de-duplicated.  Any exception from a unit is a warning for that unit
    only.
    """

    def __init__(
        self,
        config: TypeFinderConfig | None = None,
        structured_index: StructuredIndex | None = None,
        sink: DiagnosticSink | None = None,
        text_engine: TextSearchEngine | None = None,
    ):
        self._config = config or TypeFinderConfig.from_env()
        self._index = structured_index or create_structured_index(config=self._config)
        self._sink = sink or LoggingSink()
        self._text = text_engine or TextSearchEngine(self._config, self._sink)

    @property
    def structured_index(self) -> StructuredIndex:
        return self._index

    # ── Public API ────────────────────────────────────────────────

    def search(self, request: SearchRequest) -> SearchOutcome:
        """
        Run *request* through every tier until one yields results.

        Raises:
            WorkspaceNotFoundError: If the workspace root is not a directory.
        """
        request.validate()
        run_sink = CallbackSink(self._sink.warning)

        levels = (SOLUTION, PROJECT)
        if not self._index.covers(request.file_extensions):
            logger.debug(
                f"'{self._index.name}' handles none of {', '.join(request.file_extensions)}; "
                f"skipping structured tiers"
            )
            levels = ()

        for level in levels:
            units = self._index.discover(request.workspace_root, level)
            if not units:
                logger.debug(f"No {level}-level units under {request.workspace_root}")
                continue
            logger.info(f"Searching {len(units)} {level}-level unit(s) with '{self._index.name}'")
            results = self._search_units(units, request, run_sink)
            if results:
                return self._outcome(request, results, level, run_sink)
            logger.info(f"No {level}-level matches for '{request.query}'")

        logger.info(f"Falling back to text search for '{request.query}'")
        results = self._text.search(request, sink=run_sink)
        return self._outcome(request, results, "text", run_sink)

    # ── Structured tiers ──────────────────────────────────────────

    def _search_units(self, units: List[Path], request: SearchRequest,
                      sink: DiagnosticSink) -> List[TypeResult]:
        workers = max(1, min(self._config.max_workers, len(units)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(lambda u: self._run_unit(u, request), units))

        merged: List[TypeResult] = []
        seen: set = set()
        for unit, (batch, error) in zip(units, outcomes):
            if error is not None:
                sink.warning(f"Could not analyze {unit}: {error}")
                continue
            for result in batch:
                # one entry per site; the first unit's qualified name wins
                key = (result.file_path, result.line_number, result.kind)
                if key not in seen:
                    seen.add(key)
                    merged.append(result)
        return merged

    def _run_unit(self, unit: Path,
                  request: SearchRequest) -> Tuple[List[TypeResult], Optional[str]]:
        """Compile, query and release one unit; never raises."""
        try:
            handle = self._index.compile(unit)
        except Exception as exc:
            logger.debug(f"Compilation of {unit} failed", exc_info=True)
            return [], str(exc) or type(exc).__name__
        try:
            return self._query_unit(handle, request), None
        except Exception as exc:
            logger.debug(f"Query of {unit} failed", exc_info=True)
            return [], str(exc) or type(exc).__name__
        finally:
            self._index.release(handle)

    def _query_unit(self, handle, request: SearchRequest) -> List[TypeResult]:
        file_lines: Dict[str, List[str]] = {}

        def lines_for(path: str) -> List[str]:
            if path not in file_lines:
                file_lines[path] = read_source_lines(path)
            return file_lines[path]

        results: List[TypeResult] = []
        symbols = self._index.find_type_symbols(
            handle, request.query, request.exact_match, request.case_sensitive,
        )
        for symbol in symbols:
            kind = self._index.classify_kind(symbol)
            for location in self._index.declaration_locations(symbol):
                results.append(self._make_result(location, symbol.qualified_name, kind, lines_for))
            if request.include_references:
                for location in self._index.find_references(symbol, handle):
                    results.append(self._make_result(
                        location, symbol.qualified_name, SymbolKind.REFERENCE, lines_for,
                    ))
        return results

    @staticmethod
    def _make_result(location: Location, name: str, kind: SymbolKind,
                     lines_for: Callable[[str], List[str]]) -> TypeResult:
        lines = lines_for(location.file_path)
        context = ContextExtractor.extract(lines, location.line - 1)
        return TypeResult(
            file_path=location.file_path,
            line_number=location.line,
            type_name=name,
            kind=kind,
            context=context,
        )

    @staticmethod
    def _outcome(request: SearchRequest, results: List[TypeResult], strategy: str,
                 sink: CallbackSink) -> SearchOutcome:
        return SearchOutcome(
            request=request,
            results=tuple(results),
            strategy=strategy,
            warnings=tuple(sink.messages),
        )


# =============================================================================
# Formatting
# =============================================================================

class ResultFormatter:
    """Format a :class:`SearchOutcome` for different output modes.

    Every mode shows at most ``request.max_results`` entries while still
    reporting the full match count.
    """

    @staticmethod
    def _trailer(outcome: SearchOutcome) -> List[str]:
        if not outcome.hidden_count:
            return []
        return [
            f"... and {outcome.hidden_count} more results "
            f"(use --max-results to see more)"
        ]

    @staticmethod
    def _no_results(outcome: SearchOutcome) -> str:
        request = outcome.request
        return (
            f"No types found matching '{request.query}' "
            f"in workspace '{request.workspace_root}'"
        )

    # ── Console (agent-friendly, fixed field order) ───────────────

    @staticmethod
    def format_console(outcome: SearchOutcome) -> str:
        if not outcome.results:
            return ResultFormatter._no_results(outcome)

        out: List[str] = [
            f"Found {outcome.total_count} result(s) for type '{outcome.request.query}':",
            "",
        ]
        for r in outcome.displayed:
            out.append(f"File: {r.file_path}")
            out.append(f"Line: {r.line_number}")
            out.append(f"Type: {r.type_name}")
            out.append(f"Kind: {r.kind}")
            out.append(f"Context: {r.context}")
            out.append("")
        out.extend(ResultFormatter._trailer(outcome))
        return "\n".join(out)

    # ── JSON ──────────────────────────────────────────────────────

    @staticmethod
    def format_json(outcome: SearchOutcome) -> str:
        """Shown results plus total count, tier and warnings as one JSON object."""
        return json.dumps(outcome.to_dict(), indent=2, allow_nan=False)

    # ── Compact (grep-like, one line per result) ──────────────────

    @staticmethod
    def format_compact(outcome: SearchOutcome) -> str:
        """``file:line  name  [kind]`` so terminals can make it clickable."""
        if not outcome.results:
            return ResultFormatter._no_results(outcome)
        lines = [
            f"{r.file_path}:{r.line_number}  {r.type_name}  [{r.kind}]"
            for r in outcome.displayed
        ]
        lines.extend(ResultFormatter._trailer(outcome))
        return "\n".join(lines)

    # ── IDE (clickable file(line) format) ─────────────────────────

    @staticmethod
    def format_ide(outcome: SearchOutcome) -> str:
        """
        ``file(line): message`` format recognised by most editors and
        CI tools for click-to-jump navigation.
        """
        if not outcome.results:
            return ResultFormatter._no_results(outcome)
        lines = [
            f"{r.file_path}({r.line_number}): {r.type_name} [{r.kind}]"
            for r in outcome.displayed
        ]
        lines.extend(ResultFormatter._trailer(outcome))
        return "\n".join(lines)
