"""Alignment calculator — canonical indentation and stack-comment column.

The layout of a scope is derived in two passes: first every line's code is
rendered under its computed indentation, then the widest stack-carrying line
fixes one comment column for the whole scope, regardless of nesting depth.
"""

from __future__ import annotations

from dataclasses import dataclass

from .ast import CodeLine, MacroDecl, Scope
from .config import Config
from .nest import NestResult
from .tokens import TK_IDENT, TK_PUNCT, Token

NO_SPACE_AFTER: set[str] = {"(", "[", "<"}
NO_SPACE_BEFORE: set[str] = {")", "]", ">", ","}

# `// [` puts the stack list three columns past the comment start
STACK_LIST_OFFSET = 3


@dataclass
class ScopeLayout:
    """Derived layout of one scope.

    `column` is the 0-based offset where every stack comment starts, or None
    when the scope carries no stack comments. `rendered` holds the canonical
    text of each line, or None for lines that must be left verbatim.
    """

    indents: list[int]
    column: int | None
    rendered: list[str | None]


def _needs_space(prev: Token, tok: Token) -> bool:
    if prev.type == TK_PUNCT and prev.value in NO_SPACE_AFTER:
        return False
    if tok.type == TK_PUNCT and tok.value in NO_SPACE_BEFORE:
        return False
    # Invocation: NAME(...)
    if tok.type == TK_PUNCT and tok.value == "(" and prev.type == TK_IDENT:
        return False
    return True


def render_code(tokens: list[Token]) -> str:
    """Render code tokens with canonical inter-token spacing."""
    out = ""
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if i > 0 and _needs_space(tokens[i - 1], tok):
            out += " "
        out += tok.value
        i += 1
    return out


def line_indent(line: CodeLine, depth: int, unit: int) -> int:
    """Indentation in spaces; labels hang one level out from their block."""
    if line.label is not None:
        return unit * max(depth, 1)
    return unit * (1 + depth)


def _marker_prefix(marker: str) -> str:
    return "// " + marker + ":"


def stack_width(line: CodeLine, indent: int) -> int | None:
    """Width that must fit left of the stack-comment column, if the line has one."""
    if line.marker is not None:
        return indent + len(_marker_prefix(line.marker)) - STACK_LIST_OFFSET
    if line.stack_comment is not None and line.has_code():
        return indent + len(render_code(line.tokens))
    return None


def stack_column(widths: list[int], unit: int) -> int | None:
    """Round the widest line plus a one-space gap up to the next tab stop."""
    if len(widths) == 0:
        return None
    needed = max(widths) + 1
    return ((needed + unit - 1) // unit) * unit


def render_line(line: CodeLine, indent: int, column: int | None) -> str:
    pad = " " * indent
    if not line.has_code():
        if line.comment is None:
            return ""
        if line.marker is not None and line.stack_comment is not None and column is not None:
            prefix = pad + _marker_prefix(line.marker)
            gap = column + STACK_LIST_OFFSET - len(prefix)
            return prefix + " " * gap + line.stack_comment
        return pad + line.comment.value.rstrip()
    code = pad + render_code(line.tokens)
    if line.comment is None:
        return code
    if line.stack_comment is not None and column is not None:
        return code + " " * (column - len(code)) + "// " + line.stack_comment
    return code + " " + line.comment.value.rstrip()


def layout_scope(scope: Scope, nest: NestResult, config: Config) -> ScopeLayout:
    """Compute indentation, the shared comment column, and canonical line text."""
    unit = config.base_indent_width
    indents: list[int] = []
    widths: list[int] = []
    i = 0
    while i < len(scope.lines):
        line = scope.lines[i]
        indent = line_indent(line, nest.depths[i], unit)
        indents.append(indent)
        if not line.verbatim:
            width = stack_width(line, indent)
            if width is not None:
                widths.append(width)
        i += 1
    column = stack_column(widths, unit)
    rendered: list[str | None] = []
    i = 0
    while i < len(scope.lines):
        line = scope.lines[i]
        if line.verbatim:
            rendered.append(None)
        else:
            rendered.append(render_line(line, indents[i], column))
        i += 1
    return ScopeLayout(indents, column, rendered)


# ── Headers ──────────────────────────────────────────────────


def _header_tail(decl: MacroDecl) -> str:
    tail = " ="
    if decl.takes_token is not None:
        tail += " takes (" + decl.takes_token.value + ")"
    if decl.returns_token is not None:
        tail += " returns (" + decl.returns_token.value + ")"
    return tail + " {"


def render_header(decl: MacroDecl, config: Config) -> list[str]:
    """Canonical header lines, from `#define` through the opening brace.

    Template arguments stay on one line while the header fits within
    `max_line_width`; otherwise they go one per line with trailing commas.
    """
    head = "#define " + decl.keyword() + " " + decl.name + "("
    names: list[str] = []
    for p in decl.template_params:
        names.append(p.value)
    tail = _header_tail(decl)
    single = head + ", ".join(names) + ")" + tail
    if len(names) == 0 or len(single) <= config.max_line_width:
        return [single]
    pad = " " * config.base_indent_width
    lines = [head]
    for name in names:
        lines.append(pad + name + ",")
    lines.append(")" + tail)
    return lines
