"""Huff style checker and formatter — public API."""

from __future__ import annotations

from pathlib import Path

from .ast import HuffFile
from .config import Config as Config, ConfigError as ConfigError, load_config as load_config
from .diagnostics import Diagnostic as Diagnostic, Replacement as Replacement
from .engine import (
    FormatResult as FormatResult,
    format_files as format_files,
    format_source as format_source,
    lint_files as lint_files,
    lint_source as lint_source,
)
from .parse import ParseError as ParseError, parse_tokens
from .report import (
    OverlappingFixError as OverlappingFixError,
    render_diagnostics as render_diagnostics,
    sort_diagnostics as sort_diagnostics,
)
from .rules import rule_ids as rule_ids
from .tokens import LexError as LexError, tokenize as tokenize


def parse(source: str, file_id: str = "<input>") -> HuffFile:
    """Tokenize and parse Huff source into a HuffFile model."""
    return parse_tokens(tokenize(source), file_id, source)


def lint(source: str, config: Config | None = None) -> list[Diagnostic]:
    """Lint one Huff source. Returns diagnostics sorted by position."""
    return lint_source(source, "<input>", config)


def format(source: str, config: Config | None = None) -> str:
    """Canonical form of one Huff source; the input unchanged if it cannot be analyzed."""
    return format_source(source, "<input>", config).text


def configure(path: Path | None = None) -> Config:
    """Load configuration, validating rule identifiers against the registry."""
    return load_config(path, rule_ids())
