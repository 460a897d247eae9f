"""Alignment calculator tests."""

from huffstyle import Config, parse
from huffstyle.align import layout_scope, render_code, render_header, stack_column
from huffstyle.ast import MacroDecl
from huffstyle.nest import nest_scope
from huffstyle.tokens import tokenize


def body_tokens(code: str):
    return tokenize("{ " + code + " }")[1:-2]


def first_macro(source: str) -> MacroDecl:
    return parse(source).macros()[0]


def test_render_code_spacing():
    assert render_code(body_tokens("[ X ]   sload")) == "[X] sload"
    assert render_code(body_tokens("__FUNC_SIG ( transfer )")) == "__FUNC_SIG(transfer)"
    assert render_code(body_tokens("< ptr >  mload")) == "<ptr> mload"
    assert render_code(body_tokens("ADD(0x01 , <b>)")) == "ADD(0x01, <b>)"


def test_stack_column_rounds_to_tab_stop():
    assert stack_column([], 4) is None
    assert stack_column([7], 4) == 8
    assert stack_column([8], 4) == 12
    assert stack_column([10, 22, 15], 4) == 24
    assert stack_column([5], 2) == 6


def test_layout_shares_one_column_across_depths():
    source = "\n".join(
        [
            "#define macro A() = takes (1) returns (0) {",
            "// takes: [x]",
            "done jumpi // []",
            "done:",
            "0x01 // [one]",
            "}",
        ]
    )
    decl = first_macro(source)
    layout = layout_scope(decl.scope, nest_scope(decl.scope), Config())
    assert layout.indents == [4, 4, 4, 8]
    assert layout.column == 16
    assert layout.rendered == [
        "    // takes:      [x]",
        "    done jumpi  // []",
        "    done:",
        "        0x01    // [one]",
    ]


def test_layout_without_stack_comments_has_no_column():
    decl = first_macro("#define macro A() = takes (0) returns (0) {\n stop // halt\n}\n")
    layout = layout_scope(decl.scope, nest_scope(decl.scope), Config())
    assert layout.column is None
    assert layout.rendered == ["    stop // halt"]


def test_returns_marker_lines_up_with_stack_lists():
    source = "\n".join(
        [
            "#define macro A() = takes (0) returns (1) {",
            "0x01 // [one]",
            "// returns: [one]",
            "}",
        ]
    )
    decl = first_macro(source)
    layout = layout_scope(decl.scope, nest_scope(decl.scope), Config())
    assert layout.column == 16
    assert layout.rendered == ["    0x01        // [one]", "    // returns:    [one]"]


def test_render_header_single_line():
    decl = first_macro("#define macro  A( x ,y )=takes(2) returns(1) {\n}\n")
    assert render_header(decl, Config()) == ["#define macro A(x, y) = takes (2) returns (1) {"]


def test_render_header_wraps_past_max_width():
    decl = first_macro("#define macro LONG_NAME(first, second) = takes (0) returns (0) {\n}\n")
    assert render_header(decl, Config(max_line_width=40)) == [
        "#define macro LONG_NAME(",
        "    first,",
        "    second,",
        ") = takes (0) returns (0) {",
    ]


def test_render_header_never_wraps_without_arguments():
    decl = first_macro("#define macro A_VERY_LONG_NAME() = takes (0) returns (0) {\n}\n")
    assert render_header(decl, Config(max_line_width=10)) == [
        "#define macro A_VERY_LONG_NAME() = takes (0) returns (0) {"
    ]


def test_render_header_keeps_missing_counts_missing():
    decl = first_macro("#define test T() = {\n}\n")
    assert render_header(decl, Config()) == ["#define test T() = {"]
