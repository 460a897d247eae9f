"""Diagnostics emitted by the rule engine."""

from __future__ import annotations

from .ast import Span


class Replacement:
    """Text that replaces a source span in format mode."""

    def __init__(self, span: Span, text: str):
        self.span: Span = span
        self.text: str = text

    def __repr__(self) -> str:
        return "Replacement(" + repr(self.span) + ", " + repr(self.text) + ")"


class Diagnostic:
    """A style finding with location, severity, and an optional fix."""

    def __init__(
        self,
        file: str,
        rule: str,
        severity: str,
        span: Span,
        message: str,
        fix: Replacement | None = None,
    ):
        self.file: str = file
        self.rule: str = rule
        self.severity: str = severity
        self.span: Span = span
        self.message: str = message
        self.fix: Replacement | None = fix

    @property
    def line(self) -> int:
        return self.span.line

    @property
    def col(self) -> int:
        return self.span.col

    def sort_key(self) -> tuple[str, int, int, str, str]:
        return (self.file, self.span.line, self.span.col, self.rule, self.message)

    def __repr__(self) -> str:
        return (
            self.file
            + ":"
            + str(self.span.line)
            + ":"
            + str(self.span.col)
            + ": "
            + self.severity
            + " ["
            + self.rule
            + "] "
            + self.message
        )
