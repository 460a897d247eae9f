"""Formatter tests driven by tests/format/*.tests, plus formatting properties."""

import pytest

from huffstyle import Config, format_source, parse, tokenize
from huffstyle.align import STACK_LIST_OFFSET, layout_scope
from huffstyle.nest import nest_scope
from huffstyle.tokens import TK_EOF

SAMPLES = [
    "\n".join(
        [
            "#define constant VALUE_SLOT = FREE_STORAGE_POINTER()",
            "",
            "#define macro MAIN() = takes (0) returns (0) {",
            "  0x00 calldataload 0xe0 shr // [sig]",
            "    dup1 __FUNC_SIG(get) eq get jumpi   // [sig]",
            "      0x00 dup1 revert",
            "get:",
            "  [VALUE_SLOT] sload // [value]",
            "       0x00 mstore // []",
            "    0x01 done jumpi",
            "   stop",
            "  done:",
            "  0x20 0x00 return   // []",
            "}",
        ]
    ),
    "\n".join(
        [
            "#define macro TRANSFER_WITH_CALLBACK(sender_address, receiver_address, token_amount, callback_target, callback_data) = takes(1) returns(0) {",
            "// takes: [amount]",
            "<token_amount>     // [value, amount]",
            "  add // [sum]",
            "pop",
            "    }",
        ]
    ),
    "\n".join(
        [
            "#define macro A(",
            "    x,",
            ") = takes (2) returns (1) {",
            "        // takes: [a, b]",
            "  /* multi",
            "     line */",
            "    add // [c]",
            "      // returns: [c]",
            "}",
        ]
    ),
]


def test_format(format_input: str, format_expected: str):
    """Format a case, then check the output is a fixed point."""
    result = format_source(format_input + "\n")
    assert result.errors == []
    assert result.text == format_expected + "\n"
    assert result.changed == (format_input != format_expected)
    again = format_source(result.text)
    assert again.text == result.text
    assert not again.changed


def _code_tokens(source: str) -> list[tuple[str, str]]:
    result: list[tuple[str, str]] = []
    for tok in tokenize(source):
        if tok.type != TK_EOF and not tok.is_comment():
            result.append((tok.type, tok.value))
    return result


@pytest.mark.parametrize("source", SAMPLES)
def test_format_preserves_code_tokens(source: str):
    formatted = format_source(source + "\n").text
    assert _code_tokens(formatted) == _code_tokens(source)


@pytest.mark.parametrize("source", SAMPLES)
def test_format_is_idempotent(source: str):
    once = format_source(source + "\n").text
    assert format_source(once).text == once


@pytest.mark.parametrize("source", SAMPLES)
def test_formatted_stack_comments_share_the_derived_column(source: str):
    formatted = format_source(source + "\n").text
    config = Config()
    for decl in parse(formatted).macros():
        layout = layout_scope(decl.scope, nest_scope(decl.scope), config)
        starts: set[int] = set()
        for line in decl.scope.lines:
            if line.verbatim or line.comment is None or line.stack_comment is None:
                continue
            if line.marker is not None:
                bracket = line.comment.col - 1 + line.comment.value.find("[")
                starts.add(bracket - STACK_LIST_OFFSET)
            else:
                starts.add(line.comment.col - 1)
        if starts:
            assert starts == {layout.column}


def test_wide_header_is_wrapped_with_trailing_commas():
    formatted = format_source(SAMPLES[1] + "\n").text
    lines = formatted.split("\n")
    assert lines[0] == "#define macro TRANSFER_WITH_CALLBACK("
    assert lines[1:6] == [
        "    sender_address,",
        "    receiver_address,",
        "    token_amount,",
        "    callback_target,",
        "    callback_data,",
    ]
    assert lines[6] == ") = takes (1) returns (0) {"


def test_indent_width_is_configurable():
    source = "#define macro A() = takes (0) returns (0) {\n    0x01 // [x]\n}\n"
    result = format_source(source, "<input>", Config(base_indent_width=2))
    assert result.text == "#define macro A() = takes (0) returns (0) {\n  0x01  // [x]\n}\n"


def test_unparseable_file_is_returned_unchanged():
    source = "#define macro A() = takes (0) returns (0) {\n  stop\n"
    result = format_source(source)
    assert result.text == source
    assert not result.changed
    assert len(result.errors) == 1
    assert "parse-error" in result.errors[0]


def test_carriage_returns_are_kept():
    source = "#define macro A() = takes (0) returns (0) {\r\n  stop\r\n}\r\n"
    result = format_source(source)
    assert result.text == "#define macro A() = takes (0) returns (0) {\r\n    stop\r\n}\r\n"
