"""Per-file structural results shared by every rule checker."""

from __future__ import annotations

from .align import ScopeLayout
from .ast import CodeLine, HuffFile, Span
from .config import Config
from .diagnostics import Diagnostic, Replacement
from .nest import NestResult
from .roles import ProjectIndex


class FileContext:
    """Read-only inputs of the rule engine for one file."""

    def __init__(
        self,
        file: HuffFile,
        config: Config,
        nests: dict[str, NestResult],
        layouts: dict[str, ScopeLayout],
        index: ProjectIndex | None = None,
        included: list[HuffFile | None] | None = None,
    ):
        self.file: HuffFile = file
        self.config: Config = config
        self.nests: dict[str, NestResult] = nests
        self.layouts: dict[str, ScopeLayout] = layouts
        self.index: ProjectIndex = index if index is not None else ProjectIndex.build([file])
        self.included: list[HuffFile | None] = included if included is not None else []

    def line_text(self, line: int) -> str:
        """Source text of a 1-based line, without its line terminator."""
        if line < 1 or line > len(self.file.lines):
            return ""
        return self.file.lines[line - 1].rstrip("\r")

    def line_span(self, line: int) -> Span:
        return Span(line, 1, line, len(self.line_text(line)) + 1)

    def code_span(self, line: CodeLine) -> Span:
        """Span from the first to the last token of a body line."""
        first = line.tokens[0] if line.has_code() else line.comment
        last = line.comment if line.comment is not None else line.tokens[-1]
        if first is None or last is None:
            return self.line_span(line.line)
        return Span(first.line, first.col, last.end_line, last.end_col)

    def diag(
        self,
        rule: str,
        default_severity: str,
        span: Span,
        message: str,
        fix: Replacement | None = None,
    ) -> Diagnostic:
        severity = self.config.severity_for(rule, default_severity)
        return Diagnostic(self.file.file_id, rule, severity, span, message, fix)
