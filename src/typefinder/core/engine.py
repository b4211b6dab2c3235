"""
typefinder Core Engine

Data models, name matching, line classification, context extraction and
file traversal.  Everything here is pure or read-only so that the search
layers (:mod:`typefinder.core.search`) can compose it freely.
"""

import logging
import os
import re
from dataclasses import dataclass, asdict, field
from enum import StrEnum
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

from typefinder.core.config import (
    DEFAULT_MAX_RESULTS,
    normalize_extensions,
)
from typefinder.exceptions import BinaryFileError, ConfigError, WorkspaceNotFoundError

# The library never configures logging; the CLI does.
logger = logging.getLogger(__name__)


# =============================================================================
# Data Models
# =============================================================================

class SymbolKind(StrEnum):
    """Closed vocabulary of match classifications.

    ``REFERENCE`` is the fallback for unclassifiable text matches and
    ``SYMBOL`` for structured symbols with no more specific category.
    """
    CLASS = "class"
    INTERFACE = "interface"
    STRUCT = "struct"
    ENUM = "enum"
    RECORD = "record"
    NAMESPACE = "namespace"
    METHOD = "method"
    PROPERTY = "property"
    FIELD = "field"
    EVENT = "event"
    TYPE = "type"
    TYPEDEF = "typedef"
    FUNCTION = "function"
    REFERENCE = "reference"
    SYMBOL = "symbol"


@dataclass(frozen=True)
class SearchRequest:
    """One validated search, immutable for the whole run."""
    workspace_root: Path
    query: str
    exact_match: bool = False
    case_sensitive: bool = False
    file_extensions: Tuple[str, ...] = ()
    max_results: int = DEFAULT_MAX_RESULTS
    include_references: bool = False

    def __post_init__(self):
        if not self.query or not self.query.strip():
            raise ConfigError("query must be a non-empty name")
        if self.max_results <= 0:
            raise ConfigError(f"max_results must be positive, got {self.max_results}")
        # frozen: bypass __setattr__ to store the normalized values
        object.__setattr__(self, "workspace_root", Path(self.workspace_root))
        object.__setattr__(self, "file_extensions", normalize_extensions(self.file_extensions))

    def validate(self) -> None:
        """Raise :class:`WorkspaceNotFoundError` unless the root is a directory."""
        if not self.workspace_root.is_dir():
            raise WorkspaceNotFoundError(
                f"Workspace path '{self.workspace_root}' does not exist."
            )


@dataclass(frozen=True)
class TypeResult:
    """A single match: where it is, what it is, and a short preview."""
    file_path: str
    line_number: int
    type_name: str
    kind: SymbolKind
    context: str

    def to_dict(self) -> dict:
        """Return a JSON-serializable dict for API/agent pipelines."""
        data = asdict(self)
        data["kind"] = str(self.kind)
        return data


@dataclass(frozen=True)
class SearchOutcome:
    """Full result list of a run plus what the presentation layer needs.

    :attr:`results` is never truncated; :attr:`displayed` applies the
    request's ``max_results`` cap so callers can report "N found, M shown".
    """
    request: SearchRequest
    results: Tuple[TypeResult, ...] = ()
    strategy: str = "text"
    """Tier that produced the results: ``solution``, ``project`` or ``text``."""
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_count(self) -> int:
        return len(self.results)

    @property
    def displayed(self) -> Tuple[TypeResult, ...]:
        return self.results[:self.request.max_results]

    @property
    def hidden_count(self) -> int:
        return self.total_count - len(self.displayed)

    def to_dict(self) -> dict:
        return {
            "query": self.request.query,
            "workspace": str(self.request.workspace_root),
            "strategy": self.strategy,
            "total_count": self.total_count,
            "shown": len(self.displayed),
            "results": [r.to_dict() for r in self.displayed],
            "warnings": list(self.warnings),
        }


# =============================================================================
# Matcher: name matching and heuristic kind classification
# =============================================================================

@dataclass(frozen=True)
class DefinitionRule:
    """One declaration shape.

    ``template`` is a regex with a ``{name}`` slot that receives the
    escaped query wrapped in a ``name`` group.  The rule only decides
    whether a line declares the name; the kind always comes from
    :meth:`Matcher.classify_any_line`, so ``type Worker struct`` is a struct.
    """
    label: str
    template: str

    def compile(self, query: str) -> re.Pattern:
        name = f"(?P<name>{re.escape(query)})"
        return re.compile(self.template.format(name=name), re.IGNORECASE)


class Matcher:
    """
    Pure predicates over names and source lines.

    The two rule tables below are ordered: the first rule that matches
    decides the outcome, so keyword declarations always beat the looser
    structural shapes.
    """

    DEFINITION_RULES: Tuple[DefinitionRule, ...] = (
        DefinitionRule("type-keyword",
                       r"\b(?:class|interface|struct|enum|record)\s+{name}\b"),
        DefinitionRule("alias-keyword",
                       r"\b(?:type|typedef)\s+{name}\b"),
        DefinitionRule("assignment", r"\b{name}\s*[:=]"),
        DefinitionRule("call", r"\b{name}\s*\("),
        DefinitionRule("generic", r"\b{name}\s*<"),
        DefinitionRule("index", r"\b{name}\s*\["),
    )

    # Literal, case-sensitive substring tests in priority order.
    LINE_KEYWORDS: Tuple[Tuple[str, SymbolKind], ...] = (
        ("class ", SymbolKind.CLASS),
        ("interface ", SymbolKind.INTERFACE),
        ("struct ", SymbolKind.STRUCT),
        ("enum ", SymbolKind.ENUM),
        ("record ", SymbolKind.RECORD),
        ("type ", SymbolKind.TYPE),
        ("typedef ", SymbolKind.TYPEDEF),
        ("function ", SymbolKind.FUNCTION),
        ("def ", SymbolKind.FUNCTION),
        ("func ", SymbolKind.FUNCTION),
    )

    @staticmethod
    def matches(candidate: str, query: str, exact_match: bool, case_sensitive: bool) -> bool:
        """
        Ordinal name test: equality in exact mode, containment otherwise.

        Case folding uses ``str.lower`` on both sides, never locale rules,
        so results are identical on every machine.
        """
        if not case_sensitive:
            candidate = candidate.lower()
            query = query.lower()
        if exact_match:
            return candidate == query
        return query in candidate

    @classmethod
    def compile_definition_rules(cls, query: str) -> List[Tuple[DefinitionRule, re.Pattern]]:
        """Pre-compile :attr:`DEFINITION_RULES` for one query (reused per line)."""
        return [(rule, rule.compile(query)) for rule in cls.DEFINITION_RULES]

    @classmethod
    def classify_definition_line(
        cls,
        line: str,
        query: str,
        case_sensitive: bool = False,
        compiled: Optional[Sequence[Tuple[DefinitionRule, re.Pattern]]] = None,
    ) -> Optional[SymbolKind]:
        """
        Return the kind of declaration *line* makes for *query*, or ``None``.

        Shapes are matched case-insensitively.  With *case_sensitive* the
        matched name must also equal *query* exactly, so ``Class myclass``
        counts as a shape but not as a name match for ``MyClass``.
        """
        rules = compiled if compiled is not None else cls.compile_definition_rules(query)
        for rule, pattern in rules:
            for m in pattern.finditer(line):
                if case_sensitive and not cls.matches(m.group("name"), query, True, True):
                    continue
                return cls.classify_any_line(line)
        return None

    @classmethod
    def classify_any_line(cls, line: str) -> SymbolKind:
        """Coarse keyword sniffing; comments and strings can fool it."""
        for keyword, kind in cls.LINE_KEYWORDS:
            if keyword in line:
                return kind
        return SymbolKind.REFERENCE


# =============================================================================
# Context extraction
# =============================================================================

class ContextExtractor:
    """Builds the fixed ±2 line preview around a match."""

    RADIUS = 2
    MATCH_MARKER = ">>> "
    LINE_MARKER = "    "

    @classmethod
    def extract(cls, lines: Sequence[str], target_index: int) -> str:
        """
        Return the annotated window around ``lines[target_index]``.

        The window clamps at both ends of the file and never pads, so a
        one-line file yields a one-line context.
        """
        if not 0 <= target_index < len(lines):
            raise IndexError(
                f"target_index {target_index} out of range for {len(lines)} lines"
            )
        start = max(0, target_index - cls.RADIUS)
        end = min(len(lines) - 1, target_index + cls.RADIUS)
        window = []
        for i in range(start, end + 1):
            prefix = cls.MATCH_MARKER if i == target_index else cls.LINE_MARKER
            window.append(f"{prefix}{lines[i]}")
        return os.linesep.join(window)


# =============================================================================
# File access
# =============================================================================

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def split_lines(text: str) -> List[str]:
    """Split on ``\\r\\n``, ``\\r`` and ``\\n`` only; a trailing break adds no line."""
    if not text:
        return []
    lines = _LINE_BREAK.split(text)
    if lines[-1] == "":
        lines.pop()
    return lines


def read_source_lines(path: Union[str, Path]) -> List[str]:
    """
    Read a whole source file into lines.

    Raises :class:`BinaryFileError` for content with NUL bytes and lets
    ``OSError`` propagate; undecodable bytes are replaced, not fatal.
    """
    data = Path(path).read_bytes()
    if b"\x00" in data:
        raise BinaryFileError("binary content")
    return split_lines(data.decode("utf-8-sig", errors="replace"))


def walk_files(
    root: Union[str, Path],
    extensions: Sequence[str],
    exclude_dirs: frozenset = frozenset(),
) -> Iterator[Path]:
    """
    Lazily yield files under *root* whose name ends with one of *extensions*.

    Traversal is depth-first: within each directory the matching files
    come first, sorted by name, then each subdirectory in name order.
    Directories that cannot be listed (``PermissionError`` and other
    ``OSError``) are skipped and the walk continues with their siblings.
    Symlinked directories are not followed.
    """
    suffixes = tuple(ext.lower() for ext in extensions)

    def _walk(directory: str) -> Iterator[Path]:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            logger.debug(f"Skipping unreadable directory {directory}: {exc}")
            return

        subdirs = []
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    if entry.name not in exclude_dirs:
                        subdirs.append(entry.path)
                    continue
                is_file = entry.is_file()
            except OSError:
                continue
            if is_file and entry.name.lower().endswith(suffixes):
                yield Path(entry.path)

        for sub in subdirs:
            yield from _walk(sub)

    yield from _walk(os.fspath(root))
