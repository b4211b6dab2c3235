"""
typefinder Structured Index

Symbol-level lookup for source ecosystems that have a real project model.
The orchestrator only talks to the :class:`StructuredIndex` interface;
which backend sits behind it is chosen by :func:`create_structured_index`.

Two backends ship:

- :class:`NullStructuredIndex` discovers nothing, so every search falls
  through to text matching.
- :class:`PythonAstIndex` treats ``pyproject.toml`` (solution level) and
  ``setup.py`` / ``setup.cfg`` (project level) as unit descriptors and
  builds a symbol table for every module under the unit with Python's
  ``ast`` module.
"""

import ast
import configparser
import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from typefinder.core.config import TypeFinderConfig
from typefinder.core.engine import Matcher, SymbolKind, walk_files
from typefinder.exceptions import ConfigError, StructuredIndexError

logger = logging.getLogger(__name__)

SOLUTION = "solution"
PROJECT = "project"


# =============================================================================
# Data Models
# =============================================================================

@dataclass(frozen=True)
class Location:
    """Source position of a declaration or usage.

    :attr:`line` is 1-based, :attr:`column` 0-based (as reported by ``ast``).
    """
    file_path: str
    line: int
    column: int


@dataclass(frozen=True)
class Symbol:
    """A named declaration inside a compiled unit."""
    name: str
    qualified_name: str
    category: str
    """Backend category: module, package, class, function, method,
    property, field, alias or record."""
    location: Location
    bases: Tuple[str, ...] = ()
    decorators: Tuple[str, ...] = ()


# =============================================================================
# Interface
# =============================================================================

class StructuredIndex:
    """
    Abstract base for compiler-grade symbol backends.

    A backend advertises which descriptor files bound a unit at each
    level, compiles one unit at a time into an opaque handle and answers
    symbol and reference queries against that handle.  Every method may
    raise; the orchestrator turns failures into per-unit warnings.
    """

    name: str = "abstract"
    SOLUTION_FILENAMES: Tuple[str, ...] = ()
    PROJECT_FILENAMES: Tuple[str, ...] = ()
    SOURCE_SUFFIXES: Tuple[str, ...] = ()
    SKIP_DIRS: frozenset = frozenset()

    def __init__(self, exclude_dirs: frozenset = frozenset()):
        self._exclude_dirs = frozenset(exclude_dirs) | self.SKIP_DIRS

    def covers(self, extensions: Sequence[str]) -> bool:
        """Whether results from this backend can satisfy a search limited to *extensions*.

        A backend without :attr:`SOURCE_SUFFIXES` is not restricted.
        """
        if not self.SOURCE_SUFFIXES:
            return True
        wanted = {ext.lower() for ext in extensions}
        return any(suffix in wanted for suffix in self.SOURCE_SUFFIXES)

    def discover(self, root: Path, level: str) -> List[Path]:
        """Return unit descriptors under *root* for *level*, in walk order."""
        names = self.SOLUTION_FILENAMES if level == SOLUTION else self.PROJECT_FILENAMES
        if not names:
            return []
        return [
            path for path in walk_files(root, names, self._exclude_dirs)
            if path.name in names
        ]

    def compile(self, unit: Path):
        """Build the symbol model for *unit*; raise on malformed input."""
        raise NotImplementedError

    def find_type_symbols(self, handle, query: str, exact_match: bool,
                          case_sensitive: bool) -> List[Symbol]:
        raise NotImplementedError

    def declaration_locations(self, symbol: Symbol) -> List[Location]:
        raise NotImplementedError

    def find_references(self, symbol: Symbol, handle) -> List[Location]:
        raise NotImplementedError

    def classify_kind(self, symbol: Symbol) -> SymbolKind:
        raise NotImplementedError

    def release(self, handle) -> None:
        """Drop the per-unit model once its queries are done."""


class NullStructuredIndex(StructuredIndex):
    """Backend for when no project model is available; finds no units."""

    name = "none"

    def compile(self, unit: Path):
        raise StructuredIndexError("no structured backend is configured")

    def find_type_symbols(self, handle, query, exact_match, case_sensitive):
        return []

    def declaration_locations(self, symbol):
        return []

    def find_references(self, symbol, handle):
        return []

    def classify_kind(self, symbol):
        return SymbolKind.SYMBOL


# =============================================================================
# Python backend
# =============================================================================

_TYPE_ALIAS_NODE = getattr(ast, "TypeAlias", None)  # ``type X = ...`` (3.12+)

ENUM_BASES = frozenset({"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"})
INTERFACE_BASES = frozenset({"Protocol", "ABC", "ABCMeta"})
RECORD_BASES = frozenset({"NamedTuple", "TypedDict"})
RECORD_DECORATORS = frozenset({"dataclass"})
STRUCT_BASES = frozenset({"Structure", "Union", "LittleEndianStructure", "BigEndianStructure"})
PROPERTY_DECORATORS = frozenset({"property", "cached_property"})
ALIAS_FACTORIES = frozenset({"NewType", "TypeVar", "ParamSpec", "TypeVarTuple"})
RECORD_FACTORIES = frozenset({"namedtuple", "NamedTuple", "TypedDict"})

_CATEGORY_KINDS: Dict[str, SymbolKind] = {
    "module": SymbolKind.NAMESPACE,
    "package": SymbolKind.NAMESPACE,
    "function": SymbolKind.FUNCTION,
    "method": SymbolKind.METHOD,
    "property": SymbolKind.PROPERTY,
    "field": SymbolKind.FIELD,
    "alias": SymbolKind.TYPE,
    "record": SymbolKind.RECORD,
}


def _tail_name(expr: Optional[ast.expr]) -> str:
    """Last identifier of a dotted/called/subscripted expression (``abc.ABC`` → ``ABC``)."""
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        return expr.attr
    if isinstance(expr, ast.Call):
        return _tail_name(expr.func)
    if isinstance(expr, ast.Subscript):
        return _tail_name(expr.value)
    return ""


@dataclass
class ParsedModule:
    path: Path
    module_name: str
    tree: ast.Module
    empty: bool = False


@dataclass
class PythonCompilation:
    """Handle returned by :meth:`PythonAstIndex.compile`."""
    unit: Path
    root: Path
    modules: List[ParsedModule] = field(default_factory=list)
    symbols: List[Symbol] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


class _SymbolCollector:
    """Walks one module's AST in source order and records every declaration."""

    def __init__(self, module: ParsedModule):
        self.module = module
        self.file_path = str(module.path)
        self.symbols: List[Symbol] = []

    def collect(self) -> List[Symbol]:
        is_package = self.module.path.name == "__init__.py"
        qualified = self.module.module_name
        # a zero-byte file has no line 1 to point at
        if not self.module.empty:
            self._add(qualified.rsplit(".", 1)[-1], qualified,
                      "package" if is_package else "module", 1, 0)
        self._visit_body(self.module.tree.body, qualified, "module")
        return self.symbols

    def _add(self, name: str, qualified: str, category: str, line: int, column: int,
             bases: Tuple[str, ...] = (), decorators: Tuple[str, ...] = ()) -> None:
        self.symbols.append(Symbol(
            name=name,
            qualified_name=qualified,
            category=category,
            location=Location(self.file_path, line, column),
            bases=bases,
            decorators=decorators,
        ))

    def _visit_body(self, body: List[ast.stmt], prefix: str, scope: str) -> None:
        for node in body:
            if isinstance(node, ast.ClassDef):
                qualified = f"{prefix}.{node.name}"
                bases = [_tail_name(b) for b in node.bases]
                # metaclass=ABCMeta marks an interface just like subclassing ABC
                bases += [_tail_name(k.value) for k in node.keywords if k.arg == "metaclass"]
                decorators = tuple(_tail_name(d) for d in node.decorator_list)
                self._add(node.name, qualified, "class", node.lineno, node.col_offset,
                          tuple(b for b in bases if b), decorators)
                self._visit_body(node.body, qualified, "class")
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                qualified = f"{prefix}.{node.name}"
                decorators = tuple(_tail_name(d) for d in node.decorator_list)
                if scope == "class":
                    category = "property" if PROPERTY_DECORATORS & set(decorators) else "method"
                else:
                    category = "function"
                self._add(node.name, qualified, category, node.lineno, node.col_offset,
                          decorators=decorators)
                self._visit_body(node.body, qualified, "function")
            elif isinstance(node, (ast.AnnAssign, ast.Assign)):
                self._visit_assignment(node, prefix, scope)
            elif _TYPE_ALIAS_NODE is not None and isinstance(node, _TYPE_ALIAS_NODE):
                self._add(node.name.id, f"{prefix}.{node.name.id}", "alias",
                          node.lineno, node.col_offset)
            elif isinstance(node, ast.If):
                self._visit_body(node.body, prefix, scope)
                self._visit_body(node.orelse, prefix, scope)
            elif isinstance(node, ast.Try):
                self._visit_body(node.body, prefix, scope)
                for handler in node.handlers:
                    self._visit_body(handler.body, prefix, scope)
                self._visit_body(node.orelse, prefix, scope)
                self._visit_body(node.finalbody, prefix, scope)
            elif isinstance(node, (ast.With, ast.AsyncWith)):
                self._visit_body(node.body, prefix, scope)

    def _visit_assignment(self, node, prefix: str, scope: str) -> None:
        if isinstance(node, ast.AnnAssign):
            targets = [node.target]
            annotation = _tail_name(node.annotation)
        else:
            targets = node.targets
            annotation = ""
        factory = _tail_name(node.value) if isinstance(node.value, ast.Call) else ""

        if scope == "class":
            category = "field"
        elif annotation == "TypeAlias" or factory in ALIAS_FACTORIES:
            category = "alias"
        elif factory in RECORD_FACTORIES:
            category = "record"
        else:
            return  # plain module/function variables are not declarations

        for target in targets:
            if isinstance(target, ast.Name):
                self._add(target.id, f"{prefix}.{target.id}", category,
                          target.lineno, target.col_offset)


class PythonAstIndex(StructuredIndex):
    """
    Python project model built from the standard ``ast`` module.

    A unit is the directory holding a descriptor.  Compiling it validates
    the descriptor, parses every ``.py`` file beneath it (modules with
    syntax errors are skipped, as a compiler would still produce a model
    for the rest) and records classes, functions, methods, properties,
    class fields, type aliases and the modules themselves.
    """

    name = "python"
    SOLUTION_FILENAMES = ("pyproject.toml",)
    PROJECT_FILENAMES = ("setup.py", "setup.cfg")
    SOURCE_SUFFIXES = (".py",)
    SKIP_DIRS = frozenset((
        "__pycache__", ".git", ".hg", ".svn", ".venv", "venv", ".tox", ".nox",
        ".mypy_cache", ".pytest_cache", "build", "dist", "node_modules",
    ))

    # ── Compilation ──────────────────────────────────────────────

    def compile(self, unit: Path) -> PythonCompilation:
        unit = Path(unit)
        self._check_descriptor(unit)
        handle = PythonCompilation(unit=unit, root=unit.parent)

        for path in walk_files(handle.root, self.SOURCE_SUFFIXES, self._exclude_dirs):
            try:
                source = path.read_bytes()
                tree = ast.parse(source, filename=str(path))
            except (SyntaxError, ValueError, OSError) as exc:
                logger.debug(f"Skipping {path} in {unit}: {exc}")
                handle.skipped.append(str(path))
                continue
            handle.modules.append(
                ParsedModule(path, self._module_name(handle.root, path), tree, empty=not source)
            )

        for module in handle.modules:
            handle.symbols.extend(_SymbolCollector(module).collect())

        logger.debug(
            f"Compiled {unit}: {len(handle.modules)} modules, "
            f"{len(handle.symbols)} symbols, {len(handle.skipped)} skipped"
        )
        return handle

    @staticmethod
    def _check_descriptor(unit: Path) -> None:
        """Parse the descriptor itself so malformed projects fail the unit."""
        try:
            if unit.suffix == ".toml":
                with unit.open("rb") as fh:
                    tomllib.load(fh)
            elif unit.suffix == ".cfg":
                parser = configparser.ConfigParser(interpolation=None)
                with unit.open(encoding="utf-8") as fh:
                    parser.read_file(fh)
            elif unit.suffix == ".py":
                ast.parse(unit.read_bytes(), filename=str(unit))
        except (OSError, ValueError, SyntaxError, configparser.Error) as exc:
            raise StructuredIndexError(f"malformed project file {unit.name}: {exc}") from exc

    @staticmethod
    def _module_name(root: Path, path: Path) -> str:
        """Dotted module path relative to the unit (``src/`` layouts unwrapped)."""
        parts = list(path.relative_to(root).with_suffix("").parts)
        if len(parts) > 1 and parts[0] == "src":
            parts = parts[1:]
        if parts and parts[-1] == "__init__":
            parts = parts[:-1]
        return ".".join(parts) or root.name

    # ── Queries ──────────────────────────────────────────────────

    def find_type_symbols(self, handle: PythonCompilation, query: str,
                          exact_match: bool, case_sensitive: bool) -> List[Symbol]:
        return [
            s for s in handle.symbols
            if Matcher.matches(s.name, query, exact_match, case_sensitive)
        ]

    def declaration_locations(self, symbol: Symbol) -> List[Location]:
        return [symbol.location]

    def find_references(self, symbol: Symbol, handle: PythonCompilation) -> List[Location]:
        """
        Every use of *symbol*'s name within the unit, in file then position order.

        Resolution is by name: bare names, attribute accesses and import
        clauses all count.  The declaration site itself is excluded.
        """
        name = symbol.name
        found: List[Location] = []
        for module in handle.modules:
            path = str(module.path)
            positions = set()
            for node in ast.walk(module.tree):
                if isinstance(node, ast.Name) and node.id == name:
                    positions.add((node.lineno, node.col_offset))
                elif isinstance(node, ast.Attribute) and node.attr == name:
                    positions.add((node.end_lineno, node.end_col_offset - len(name)))
                elif isinstance(node, ast.alias) and name in node.name.split("."):
                    positions.add((node.lineno, node.col_offset))
                elif (isinstance(node, ast.ImportFrom) and node.module
                        and name in node.module.split(".")):
                    positions.add((node.lineno, node.col_offset))
            for line, column in sorted(positions):
                location = Location(path, line, column)
                if location != symbol.location:
                    found.append(location)
        return found

    def classify_kind(self, symbol: Symbol) -> SymbolKind:
        if symbol.category == "class":
            bases = set(symbol.bases)
            if bases & ENUM_BASES:
                return SymbolKind.ENUM
            if bases & INTERFACE_BASES:
                return SymbolKind.INTERFACE
            if bases & RECORD_BASES or RECORD_DECORATORS & set(symbol.decorators):
                return SymbolKind.RECORD
            if bases & STRUCT_BASES:
                return SymbolKind.STRUCT
            return SymbolKind.CLASS
        return _CATEGORY_KINDS.get(symbol.category, SymbolKind.SYMBOL)

    def release(self, handle: PythonCompilation) -> None:
        handle.modules.clear()
        handle.symbols.clear()


# =============================================================================
# Registry
# =============================================================================

_INDEX_REGISTRY: Dict[str, type] = {
    "python": PythonAstIndex,
    "none": NullStructuredIndex,
}


def create_structured_index(
    name: str | None = None,
    config: TypeFinderConfig | None = None,
) -> StructuredIndex:
    """
    Factory that instantiates the configured :class:`StructuredIndex`.

    *name* overrides ``config.structured_backend``; the config's
    ``exclude_dirs`` are honoured during unit discovery and compilation.
    """
    cfg = config or TypeFinderConfig.from_env()
    backend = (name or cfg.structured_backend).lower()
    if backend not in _INDEX_REGISTRY:
        raise ConfigError(
            f"Unknown structured backend '{backend}'. "
            f"Supported: {', '.join(_INDEX_REGISTRY)}"
        )
    return _INDEX_REGISTRY[backend](exclude_dirs=cfg.exclude_dirs)
