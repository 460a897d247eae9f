"""Reporter and formatter — renders diagnostics and applies suggested fixes."""

from __future__ import annotations

from .ast import Span
from .diagnostics import Diagnostic, Replacement


class OverlappingFixError(Exception):
    """Two suggested replacements cover the same source text."""

    def __init__(self, msg: str, line: int, col: int):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


def sort_diagnostics(diagnostics: list[Diagnostic]) -> list[Diagnostic]:
    """Order by file, line, column, rule id, then message."""
    return sorted(diagnostics, key=lambda d: d.sort_key())


def render_diagnostics(diagnostics: list[Diagnostic]) -> str:
    lines: list[str] = []
    for d in sort_diagnostics(diagnostics):
        lines.append(repr(d))
    return "\n".join(lines)


def group_by_file(diagnostics: list[Diagnostic]) -> dict[str, list[Diagnostic]]:
    result: dict[str, list[Diagnostic]] = {}
    for d in sort_diagnostics(diagnostics):
        if d.file not in result:
            result[d.file] = []
        result[d.file].append(d)
    return result


def _line_starts(text: str) -> list[int]:
    starts = [0]
    i = 0
    while i < len(text):
        if text[i] == "\n":
            starts.append(i + 1)
        i += 1
    return starts


def _offset(starts: list[int], text: str, line: int, col: int) -> int:
    if line > len(starts):
        return len(text)
    return min(starts[line - 1] + col - 1, len(text))


def apply_fixes(text: str, diagnostics: list[Diagnostic]) -> str:
    """Apply every suggested replacement in one pass over the original text.

    Spans refer to the original text, so edits are collected first and then
    spliced in order. Overlapping replacements raise OverlappingFixError.
    """
    starts = _line_starts(text)
    edits: list[tuple[int, int, Replacement]] = []
    for d in diagnostics:
        if d.fix is None:
            continue
        span: Span = d.fix.span
        begin = _offset(starts, text, span.line, span.col)
        end = _offset(starts, text, span.end_line, span.end_col)
        edits.append((begin, end, d.fix))
    edits.sort(key=lambda e: (e[0], e[1]))
    out: list[str] = []
    pos = 0
    for begin, end, fix in edits:
        if begin < pos:
            raise OverlappingFixError(
                "replacement overlaps an earlier replacement", fix.span.line, fix.span.col
            )
        out.append(text[pos:begin])
        out.append(fix.text)
        pos = end
    out.append(text[pos:])
    return "".join(out)
