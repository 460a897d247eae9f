"""Per-file pipeline and batch orchestration.

Each file runs lex, parse, nest, and layout on its own. The batch then builds
one read-only ProjectIndex from every parsed file and runs the rules per file.
Both phases fan out on a thread pool and are merged by concatenation.
"""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass, field

from .align import ScopeLayout, layout_scope
from .ast import HuffFile, Span
from .config import SEVERITY_FATAL, Config
from .context import FileContext
from .diagnostics import Diagnostic
from .nest import NestResult, nest_scope
from .parse import ParseError, parse_tokens
from .report import OverlappingFixError, apply_fixes, sort_diagnostics
from .roles import ProjectIndex
from .rules import RULE_LEX_ERROR, RULE_PARSE_ERROR, check_file
from .tokens import LexError, tokenize

logger = logging.getLogger(__name__)


@dataclass
class FileAnalysis:
    """Structural results for one file, or the fatal diagnostic that stopped it."""

    file_id: str
    text: str
    model: HuffFile | None = None
    nests: dict[str, NestResult] = field(default_factory=dict)
    layouts: dict[str, ScopeLayout] = field(default_factory=dict)
    fatal: Diagnostic | None = None


@dataclass
class FormatResult:
    text: str
    changed: bool
    errors: list[str] = field(default_factory=list)


def _fatal(file_id: str, rule: str, exc: LexError | ParseError) -> Diagnostic:
    span = Span(exc.line, exc.col, exc.line, exc.col + 1)
    return Diagnostic(file_id, rule, SEVERITY_FATAL, span, exc.kind + ": " + exc.msg)


def analyze_source(text: str, file_id: str, config: Config) -> FileAnalysis:
    """Run the per-file stages up to and including layout."""
    analysis = FileAnalysis(file_id, text)
    try:
        tokens = tokenize(text)
    except LexError as e:
        logger.info("%s: lex error: %s", file_id, e)
        analysis.fatal = _fatal(file_id, RULE_LEX_ERROR, e)
        return analysis
    try:
        model = parse_tokens(tokens, file_id, text)
    except ParseError as e:
        logger.info("%s: parse error: %s", file_id, e)
        analysis.fatal = _fatal(file_id, RULE_PARSE_ERROR, e)
        return analysis
    analysis.model = model
    for decl in model.macros():
        nest = nest_scope(decl.scope)
        analysis.nests[decl.name] = nest
        analysis.layouts[decl.name] = layout_scope(decl.scope, nest, config)
    logger.debug(
        "%s: %d tokens, %d declarations", file_id, len(tokens), len(model.decls)
    )
    return analysis


def _analyze_all(
    sources: dict[str, str], config: Config, max_workers: int | None
) -> dict[str, FileAnalysis]:
    analyses: dict[str, FileAnalysis] = {}
    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(analyze_source, text, file_id, config): file_id
            for file_id, text in sources.items()
        }
        for future in concurrent.futures.as_completed(futures):
            analyses[futures[future]] = future.result()
    return analyses


def _context(
    analysis: FileAnalysis,
    analyses: dict[str, FileAnalysis],
    includes: dict[str, list[str]],
    index: ProjectIndex,
    config: Config,
) -> FileContext:
    assert analysis.model is not None
    included: list[HuffFile | None] = []
    for target in includes.get(analysis.file_id, []):
        other = analyses.get(target)
        included.append(other.model if other is not None else None)
    return FileContext(analysis.model, config, analysis.nests, analysis.layouts, index, included)


def _check_all(
    analyses: dict[str, FileAnalysis],
    includes: dict[str, list[str]],
    config: Config,
    max_workers: int | None,
) -> dict[str, list[Diagnostic]]:
    models: list[HuffFile] = []
    for analysis in analyses.values():
        if analysis.model is not None:
            models.append(analysis.model)
    index = ProjectIndex.build(models)
    results: dict[str, list[Diagnostic]] = {}
    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {}
        for file_id, analysis in analyses.items():
            if analysis.fatal is not None:
                results[file_id] = [analysis.fatal]
                continue
            ctx = _context(analysis, analyses, includes, index, config)
            futures[executor.submit(check_file, ctx)] = file_id
        for future in concurrent.futures.as_completed(futures):
            results[futures[future]] = future.result()
    return results


def lint_files(
    sources: dict[str, str],
    includes: dict[str, list[str]] | None = None,
    config: Config | None = None,
    max_workers: int | None = None,
) -> list[Diagnostic]:
    """Lint a batch of files; returns every diagnostic, sorted."""
    if config is None:
        config = Config()
    if includes is None:
        includes = {}
    analyses = _analyze_all(sources, config, max_workers)
    per_file = _check_all(analyses, includes, config, max_workers)
    merged: list[Diagnostic] = []
    for diagnostics in per_file.values():
        merged.extend(diagnostics)
    logger.debug("linted %d files, %d diagnostics", len(sources), len(merged))
    return sort_diagnostics(merged)


def _format_one(file_id: str, text: str, diagnostics: list[Diagnostic]) -> FormatResult:
    for d in diagnostics:
        if d.severity == SEVERITY_FATAL and (d.rule == RULE_LEX_ERROR or d.rule == RULE_PARSE_ERROR):
            return FormatResult(text, False, [repr(d)])
    try:
        formatted = apply_fixes(text, diagnostics)
    except OverlappingFixError as e:
        logger.error("%s: formatting aborted: %s", file_id, e)
        return FormatResult(text, False, [str(e)])
    return FormatResult(formatted, formatted != text)


def format_files(
    sources: dict[str, str],
    includes: dict[str, list[str]] | None = None,
    config: Config | None = None,
    max_workers: int | None = None,
) -> dict[str, FormatResult]:
    """Rewrite a batch of files into canonical form."""
    if config is None:
        config = Config()
    if includes is None:
        includes = {}
    analyses = _analyze_all(sources, config, max_workers)
    per_file = _check_all(analyses, includes, config, max_workers)
    results: dict[str, FormatResult] = {}
    for file_id, text in sources.items():
        results[file_id] = _format_one(file_id, text, per_file.get(file_id, []))
    return results


def lint_source(text: str, file_id: str = "<input>", config: Config | None = None) -> list[Diagnostic]:
    return lint_files({file_id: text}, None, config, 1)


def format_source(text: str, file_id: str = "<input>", config: Config | None = None) -> FormatResult:
    return format_files({file_id: text}, None, config, 1)[file_id]
