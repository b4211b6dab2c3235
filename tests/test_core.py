"""
Tests for typefinder.core.engine: data models, Matcher, ContextExtractor,
file reading and walk_files.
"""

import dataclasses
import inspect
import os
from pathlib import Path

import pytest
from typefinder.core import engine
from typefinder.core.config import DEFAULT_FILE_EXTENSIONS
from typefinder.core.engine import (
    ContextExtractor,
    Matcher,
    SearchOutcome,
    SearchRequest,
    SymbolKind,
    TypeResult,
    read_source_lines,
    split_lines,
    walk_files,
)
from typefinder.exceptions import BinaryFileError, ConfigError, WorkspaceNotFoundError


# =============================================================================
# SearchRequest / TypeResult / SearchOutcome
# =============================================================================

class TestSearchRequest:
    """Validation and normalization of incoming requests."""

    def test_defaults(self, tmp_path):
        req = SearchRequest(workspace_root=tmp_path, query="User")
        assert req.max_results == 50
        assert req.file_extensions == DEFAULT_FILE_EXTENSIONS
        assert not req.exact_match and not req.case_sensitive

    def test_workspace_root_coerced_to_path(self, tmp_path):
        req = SearchRequest(workspace_root=str(tmp_path), query="User")
        assert isinstance(req.workspace_root, Path)

    @pytest.mark.parametrize("query", ["", "   "])
    def test_empty_query_rejected(self, tmp_path, query):
        with pytest.raises(ConfigError):
            SearchRequest(workspace_root=tmp_path, query=query)

    @pytest.mark.parametrize("limit", [0, -3])
    def test_non_positive_max_results_rejected(self, tmp_path, limit):
        with pytest.raises(ConfigError, match="max_results"):
            SearchRequest(workspace_root=tmp_path, query="X", max_results=limit)

    def test_extensions_normalized(self, tmp_path):
        req = SearchRequest(workspace_root=tmp_path, query="X",
                            file_extensions=("cs", ".TS", ".cs", " "))
        assert req.file_extensions == (".cs", ".TS")

    def test_validate_missing_workspace(self, tmp_path):
        req = SearchRequest(workspace_root=tmp_path / "nope", query="X")
        with pytest.raises(WorkspaceNotFoundError, match="does not exist"):
            req.validate()

    def test_validate_rejects_file_as_workspace(self, tmp_path):
        f = tmp_path / "file.txt"
        f.write_text("x", encoding="utf-8")
        with pytest.raises(WorkspaceNotFoundError):
            SearchRequest(workspace_root=f, query="X").validate()

    def test_request_is_immutable(self, tmp_path):
        req = SearchRequest(workspace_root=tmp_path, query="X")
        with pytest.raises(dataclasses.FrozenInstanceError):
            req.query = "Y"


class TestTypeResultAndOutcome:

    def _result(self, n: int) -> TypeResult:
        return TypeResult("a.cs", n, "X", SymbolKind.CLASS, ">>> class X")

    def test_to_dict_uses_plain_kind_string(self):
        data = self._result(1).to_dict()
        assert data["kind"] == "class"
        assert type(data["kind"]) is str
        assert data["line_number"] == 1

    def test_outcome_truncates_only_for_display(self, tmp_path):
        req = SearchRequest(workspace_root=tmp_path, query="X", max_results=10)
        outcome = SearchOutcome(req, tuple(self._result(i) for i in range(1, 26)))
        assert outcome.total_count == 25
        assert len(outcome.displayed) == 10
        assert outcome.hidden_count == 15

    def test_outcome_without_truncation(self, tmp_path):
        req = SearchRequest(workspace_root=tmp_path, query="X")
        outcome = SearchOutcome(req, (self._result(1),))
        assert outcome.hidden_count == 0
        assert outcome.to_dict()["shown"] == 1


# =============================================================================
# Matcher: name matching
# =============================================================================

class TestMatcherMatches:

    def test_exact_ignore_case(self):
        assert Matcher.matches("MyClass", "myclass", exact_match=True, case_sensitive=False)

    def test_exact_case_sensitive(self):
        assert not Matcher.matches("MyClass", "myclass", exact_match=True, case_sensitive=True)
        assert Matcher.matches("MyClass", "MyClass", exact_match=True, case_sensitive=True)

    def test_exact_rejects_longer_name(self):
        assert not Matcher.matches("MyClassExtended", "MyClass", True, False)

    @pytest.mark.parametrize("candidate", ["UserService", "ServiceBase", "class service_impl"])
    def test_substring_ignore_case(self, candidate):
        assert Matcher.matches(candidate, "Service", exact_match=False, case_sensitive=False)

    def test_substring_case_sensitive(self):
        assert not Matcher.matches("Service", "service", exact_match=False, case_sensitive=True)


# =============================================================================
# Matcher: definition shapes
# =============================================================================

class TestClassifyDefinitionLine:
    """Ordered declaration rules used by exact-match text search."""

    def test_class_declaration(self):
        assert Matcher.classify_definition_line("public class MyClass", "MyClass") == SymbolKind.CLASS

    def test_prefix_of_longer_identifier_does_not_match(self):
        assert Matcher.classify_definition_line("class MyClassExtended", "MyClass") is None

    def test_suffix_of_longer_identifier_does_not_match(self):
        assert Matcher.classify_definition_line("class BaseMyClass(", "MyClass") is None

    @pytest.mark.parametrize("line,name,kind", [
        ("public interface IRepo<T>", "IRepo", SymbolKind.INTERFACE),
        ("struct Point {", "Point", SymbolKind.STRUCT),
        ("enum Color { Red }", "Color", SymbolKind.ENUM),
        ("public record Person(string Name);", "Person", SymbolKind.RECORD),
    ])
    def test_type_keywords(self, line, name, kind):
        assert Matcher.classify_definition_line(line, name) == kind

    def test_keyword_rule_beats_generic_shape(self):
        # "IRepo<" also fits the generic rule; the keyword rule comes first
        assert Matcher.classify_definition_line("interface IRepo<T>", "IRepo") == SymbolKind.INTERFACE

    def test_alias_keywords(self):
        assert Matcher.classify_definition_line("type Id = string", "Id") == SymbolKind.TYPE
        assert Matcher.classify_definition_line("typedef Node Tree;", "Node") == SymbolKind.TYPEDEF

    @pytest.mark.parametrize("line,name,kind", [
        ("type Worker struct {", "Worker", SymbolKind.STRUCT),
        ("type Reader interface {", "Reader", SymbolKind.INTERFACE),
        ("type Handler func(w Writer)", "Handler", SymbolKind.TYPE),
        ("type Celsius float64", "Celsius", SymbolKind.TYPE),
    ])
    def test_go_type_declarations_take_kind_from_line(self, line, name, kind):
        assert Matcher.classify_definition_line(line, name) == kind

    def test_call_shape_uses_line_keywords(self):
        kind = Matcher.classify_definition_line("def make_order(order_id):", "make_order")
        assert kind == SymbolKind.FUNCTION

    def test_assignment_shape_defaults_to_reference(self):
        assert Matcher.classify_definition_line("  retries: number;", "retries") == SymbolKind.REFERENCE

    @pytest.mark.parametrize("line,name", [
        ("Map<K, V> cache", "Map"),
        ("cache[key] = 1", "cache"),
        ("Widget = build()", "Widget"),
    ])
    def test_structural_shapes(self, line, name):
        assert Matcher.classify_definition_line(line, name) is not None

    def test_plain_mention_is_not_a_definition(self):
        assert Matcher.classify_definition_line("// see MyClass for details", "MyClass") is None

    def test_shapes_ignore_case_by_default(self):
        # the shape matches; the literal keyword sniff does not
        assert Matcher.classify_definition_line("CLASS myclass", "MyClass") == SymbolKind.REFERENCE

    def test_case_sensitive_requires_exact_name(self):
        assert Matcher.classify_definition_line("class myclass", "MyClass", case_sensitive=True) is None
        assert Matcher.classify_definition_line("Class MyClass", "MyClass", case_sensitive=True) is not None

    def test_case_sensitive_finds_later_occurrence(self):
        line = "x = myclass(MyClass())"
        assert Matcher.classify_definition_line(line, "MyClass", case_sensitive=True) == SymbolKind.REFERENCE

    def test_query_is_regex_escaped(self):
        assert Matcher.classify_definition_line("class A.B", "A.B") == SymbolKind.CLASS
        assert Matcher.classify_definition_line("class AxB", "A.B") is None

    def test_rule_table_order(self):
        labels = [rule.label for rule in Matcher.DEFINITION_RULES]
        assert labels == ["type-keyword", "alias-keyword", "assignment", "call", "generic", "index"]

    def test_precompiled_rules_give_same_answer(self):
        compiled = Matcher.compile_definition_rules("Order")
        for line in ("class Order:", "x = Order(1)", "nothing here"):
            assert (Matcher.classify_definition_line(line, "Order", compiled=compiled)
                    == Matcher.classify_definition_line(line, "Order"))


# =============================================================================
# Matcher: coarse line classification
# =============================================================================

class TestClassifyAnyLine:

    @pytest.mark.parametrize("line,kind", [
        ("public class UserService", SymbolKind.CLASS),
        ("export interface ServiceOptions {", SymbolKind.INTERFACE),
        ("typedef struct node node_t;", SymbolKind.STRUCT),
        ("enum Level { Low }", SymbolKind.ENUM),
        ("record Point(int X, int Y);", SymbolKind.RECORD),
        ("type Id = string", SymbolKind.TYPE),
        ("typedef int Id;", SymbolKind.TYPEDEF),
        ("function start() {", SymbolKind.FUNCTION),
        ("def start():", SymbolKind.FUNCTION),
        ("func main() {", SymbolKind.FUNCTION),
        ("return new UserService(opts);", SymbolKind.REFERENCE),
    ])
    def test_keyword_priority(self, line, kind):
        assert Matcher.classify_any_line(line) == kind

    def test_class_beats_function(self):
        assert Matcher.classify_any_line("function class X") == SymbolKind.CLASS

    def test_keywords_are_case_sensitive(self):
        assert Matcher.classify_any_line("Class Foo") == SymbolKind.REFERENCE

    def test_keyword_in_comment_is_accepted_misclassification(self):
        assert Matcher.classify_any_line("// the class of UserService") == SymbolKind.CLASS


# =============================================================================
# ContextExtractor
# =============================================================================

class TestContextExtractor:

    LINES = ["a", "b", "c", "d", "e", "f"]

    def test_interior_window(self):
        ctx = ContextExtractor.extract(self.LINES, 3)
        assert ctx.split(os.linesep) == ["    b", "    c", ">>> d", "    e", "    f"]

    def test_window_clamps_at_start(self):
        ctx = ContextExtractor.extract(self.LINES, 0)
        assert ctx.split(os.linesep) == [">>> a", "    b", "    c"]

    def test_window_clamps_at_end(self):
        ctx = ContextExtractor.extract(self.LINES, 5)
        assert ctx.split(os.linesep) == ["    d", "    e", ">>> f"]

    def test_single_line_file(self):
        assert ContextExtractor.extract(["only"], 0) == ">>> only"

    @pytest.mark.parametrize("count", [1, 2, 3, 5, 8])
    def test_marker_exactly_once_and_never_padded(self, count):
        lines = [f"line {i}" for i in range(count)]
        for i in range(count):
            window = ContextExtractor.extract(lines, i).split(os.linesep)
            assert len(window) <= min(5, count)
            assert sum(1 for w in window if w.startswith(">>> ")) == 1
            assert f">>> line {i}" in window

    def test_out_of_range_index(self):
        with pytest.raises(IndexError):
            ContextExtractor.extract(["a"], 1)


# =============================================================================
# File reading
# =============================================================================

class TestReadSourceLines:

    def test_mixed_line_endings(self, tmp_path):
        f = tmp_path / "a.cs"
        f.write_bytes(b"one\r\ntwo\rthree\nfour\n")
        assert read_source_lines(f) == ["one", "two", "three", "four"]

    def test_blank_lines_preserved(self):
        assert split_lines("a\n\nb") == ["a", "", "b"]

    def test_form_feed_is_not_a_line_break(self):
        assert split_lines("a\x0cb\nc") == ["a\x0cb", "c"]

    def test_empty_file(self, tmp_path):
        f = tmp_path / "empty.py"
        f.write_bytes(b"")
        assert read_source_lines(f) == []

    def test_bom_is_stripped(self, tmp_path):
        f = tmp_path / "bom.cs"
        f.write_bytes("\ufeffclass A {}\n".encode("utf-8"))
        assert read_source_lines(f) == ["class A {}"]

    def test_binary_rejected(self, tmp_path):
        f = tmp_path / "blob.js"
        f.write_bytes(b"\x00\x01\x02class")
        with pytest.raises(BinaryFileError):
            read_source_lines(f)

    def test_invalid_utf8_replaced(self, tmp_path):
        f = tmp_path / "latin.php"
        f.write_bytes(b"class Caf\xe9 {}\n")
        lines = read_source_lines(f)
        assert len(lines) == 1 and lines[0].startswith("class Caf")


# =============================================================================
# walk_files
# =============================================================================

class TestWalkFiles:

    @pytest.fixture
    def tree(self, tmp_path) -> Path:
        (tmp_path / "b.cs").write_text("", encoding="utf-8")
        (tmp_path / "a.py").write_text("", encoding="utf-8")
        (tmp_path / "notes.md").write_text("", encoding="utf-8")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "z.py").write_text("", encoding="utf-8")
        (tmp_path / "alpha").mkdir()
        (tmp_path / "alpha" / "Y.PY").write_text("", encoding="utf-8")
        return tmp_path

    def test_is_lazy(self, tree):
        assert inspect.isgenerator(walk_files(tree, (".py",)))

    def test_deterministic_order(self, tree):
        found = [p.relative_to(tree).as_posix() for p in walk_files(tree, (".py", ".cs"))]
        assert found == ["a.py", "b.cs", "alpha/Y.PY", "sub/z.py"]

    def test_extension_filter_is_case_insensitive(self, tree):
        names = [p.name for p in walk_files(tree, (".py",))]
        assert "Y.PY" in names
        assert "b.cs" not in names
        assert "notes.md" not in names

    def test_exclude_dirs_pruned(self, tree):
        names = [p.name for p in walk_files(tree, (".py",), exclude_dirs=frozenset({"sub"}))]
        assert names == ["a.py", "Y.PY"]

    def test_no_qualifying_files(self, tmp_path):
        assert list(walk_files(tmp_path, (".rs",))) == []

    def test_permission_denied_branch_skipped(self, tree, monkeypatch):
        locked = tree / "locked"
        locked.mkdir()
        (locked / "hidden.py").write_text("", encoding="utf-8")
        real_scandir = os.scandir

        def fake_scandir(path):
            if os.path.basename(os.fspath(path)) == "locked":
                raise PermissionError(13, "Permission denied", os.fspath(path))
            return real_scandir(path)

        monkeypatch.setattr(engine.os, "scandir", fake_scandir)
        names = [p.name for p in walk_files(tree, (".py",))]
        assert "hidden.py" not in names
        assert names == ["a.py", "Y.PY", "z.py"]

    def test_unreadable_root_yields_nothing(self, tmp_path, monkeypatch):
        def fake_scandir(path):
            raise PermissionError(13, "Permission denied", os.fspath(path))

        monkeypatch.setattr(engine.os, "scandir", fake_scandir)
        assert list(walk_files(tmp_path, (".py",))) == []
