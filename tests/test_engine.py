"""Batch engine and reporter tests."""

import pytest

from huffstyle import (
    Config,
    Diagnostic,
    OverlappingFixError,
    Replacement,
    format_files,
    lint_files,
    render_diagnostics,
)
from huffstyle.ast import Span
from huffstyle.report import apply_fixes, group_by_file, sort_diagnostics

LIBRARY = "\n".join(
    [
        "#define macro ADD_ONE() = takes (1) returns (1) {",
        "    // takes:  [x]",
        "    0x01",
        "    add",
        "}",
        "",
    ]
)

CONTRACT = "\n".join(
    [
        '#include "./Math.huff"',
        "",
        "#define macro MAIN() = takes (0) returns (0) {",
        "    stop",
        "}",
        "",
    ]
)

BROKEN = "#define macro A() = takes (0) returns (0) {\n    stop\n"


def only(rule: str) -> Config:
    return Config(enabled_rules=frozenset([rule]))


def test_include_of_library_needs_prefix():
    sources = {"src/Token.huff": CONTRACT, "src/Math.huff": LIBRARY}
    includes = {"src/Token.huff": ["src/Math.huff"]}
    diagnostics = lint_files(sources, includes, only("include-naming"))
    assert render_diagnostics(diagnostics) == (
        "src/Token.huff:1:10: warning [include-naming] "
        "included library file 'Math.huff' should be named '_Math.huff'"
    )


def test_prefixed_library_include_is_fine():
    contract = CONTRACT.replace("./Math.huff", "./_Math.huff")
    sources = {"src/Token.huff": contract, "src/_Math.huff": LIBRARY}
    includes = {"src/Token.huff": ["src/_Math.huff"]}
    assert lint_files(sources, includes, only("include-naming")) == []


def test_include_of_contract_needs_no_prefix():
    sources = {"src/A.huff": CONTRACT.replace("./Math.huff", "./B.huff"), "src/B.huff": CONTRACT}
    includes = {"src/A.huff": ["src/B.huff"]}
    assert lint_files(sources, includes, only("include-naming")) == []


def test_custom_library_prefix():
    sources = {"src/Token.huff": CONTRACT, "src/Math.huff": LIBRARY}
    includes = {"src/Token.huff": ["src/Math.huff"]}
    config = Config(enabled_rules=frozenset(["include-naming"]), library_file_prefix="lib_")
    diagnostics = lint_files(sources, includes, config)
    assert diagnostics[0].message == "included library file 'Math.huff' should be named 'lib_Math.huff'"


def test_constant_roles_span_files():
    sources = {
        "a.huff": "#define constant THING = 0x00\n",
        "b.huff": "#define macro SET() = takes (1) returns (0) {\n    [THING]\n    sstore\n}\n",
    }
    diagnostics = lint_files(sources, None, only("naming-by-role"))
    assert [(d.file, d.line, d.col) for d in diagnostics] == [("a.huff", 1, 18)]


def test_malformed_file_does_not_block_batch():
    sources = {"bad.huff": BROKEN, "good.huff": LIBRARY, "lex.huff": "#include 'x\n"}
    diagnostics = lint_files(sources, None, only("takes-comment"), max_workers=2)
    assert render_diagnostics(diagnostics) == "\n".join(
        [
            "bad.huff:1:43: fatal [parse-error] mismatched-braces: unclosed '{' of 'A'",
            "lex.huff:1:10: fatal [lex-error] unterminated-string: unterminated string literal",
        ]
    )


def test_fatal_file_reports_nothing_else():
    source = "#define macro A() = takes returns (0) {\n  0x01 0x02 add\n}\n"
    diagnostics = lint_files({"x.huff": source})
    assert [(d.rule, d.severity) for d in diagnostics] == [("parse-error", "fatal")]


def test_lint_results_are_sorted():
    sources = {
        "b.huff": "#define macro A() = {\n}\n",
        "a.huff": "#define macro A() = {\n}\n",
    }
    diagnostics = lint_files(sources, None, only("stack-counts"))
    assert [(d.file, d.message) for d in diagnostics] == [
        ("a.huff", "macro 'A' must declare 'returns (N)'"),
        ("a.huff", "macro 'A' must declare 'takes (N)'"),
        ("b.huff", "macro 'A' must declare 'returns (N)'"),
        ("b.huff", "macro 'A' must declare 'takes (N)'"),
    ]


def test_format_files_reports_changes_per_file():
    sources = {
        "clean.huff": LIBRARY,
        "messy.huff": LIBRARY.replace("    add", "  add"),
        "bad.huff": BROKEN,
    }
    results = format_files(sources)
    assert not results["clean.huff"].changed
    assert results["messy.huff"].changed
    assert results["messy.huff"].text == LIBRARY
    assert results["bad.huff"].text == BROKEN
    assert results["bad.huff"].errors != []


def test_overlapping_fix_aborts_only_that_file(monkeypatch):
    import huffstyle.engine

    def overlapping(text, diagnostics):
        raise OverlappingFixError("replacement overlaps an earlier replacement", 1, 1)

    monkeypatch.setattr(huffstyle.engine, "apply_fixes", overlapping)
    source = LIBRARY.replace("    add", "  add")
    result = format_files({"m.huff": source})["m.huff"]
    assert result.text == source
    assert not result.changed
    assert result.errors == ["replacement overlaps an earlier replacement at line 1 col 1"]


def _fix(line: int, col: int, end_line: int, end_col: int, text: str) -> Diagnostic:
    span = Span(line, col, end_line, end_col)
    return Diagnostic("f", "alignment", "warning", span, "m", Replacement(span, text))


def test_apply_fixes_uses_original_spans():
    text = "ab\ncd\nef\n"
    fixes = [_fix(3, 1, 3, 3, "EF"), _fix(1, 2, 2, 2, "X")]
    assert apply_fixes(text, fixes) == "aXd\nEF\n"


def test_apply_fixes_rejects_overlap():
    text = "abcdef\n"
    with pytest.raises(OverlappingFixError):
        apply_fixes(text, [_fix(1, 1, 1, 4, "x"), _fix(1, 3, 1, 6, "y")])


def test_sort_and_group():
    def diag(file: str, line: int, rule: str) -> Diagnostic:
        return Diagnostic(file, rule, "warning", Span(line, 1, line, 2), "m")

    diagnostics = [diag("b", 1, "x"), diag("a", 2, "x"), diag("a", 1, "z"), diag("a", 1, "y")]
    ordered = sort_diagnostics(diagnostics)
    assert [(d.file, d.line, d.rule) for d in ordered] == [
        ("a", 1, "y"),
        ("a", 1, "z"),
        ("a", 2, "x"),
        ("b", 1, "x"),
    ]
    grouped = group_by_file(diagnostics)
    assert list(grouped) == ["a", "b"]
    assert len(grouped["a"]) == 3
