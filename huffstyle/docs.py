"""Documentation structure checks.

File documentation (`//!`) opens every file with one level-1 title. Item
documentation (`///`) sits directly above its declaration with a level-2
title; subsections are level 3 or deeper. A few subsection names also fix
the list style of their bodies.
"""

from __future__ import annotations

from .ast import DocBlock, DocLine, Span, token_span
from .config import SEVERITY_WARNING
from .context import FileContext
from .diagnostics import Diagnostic

RULE_DOC_STRUCTURE = "doc-structure"


def _diag(ctx: FileContext, span: Span, message: str) -> Diagnostic:
    return ctx.diag(RULE_DOC_STRUCTURE, SEVERITY_WARNING, span, message)


# Recognized subsections and the list style their items must use
SECTION_LIST_STYLES: dict[str, str] = {
    "Directives": "ordered",
    "Panics": "unordered",
    "Template Arguments": "unordered",
}


def _list_style(text: str) -> str | None:
    stripped = text.lstrip()
    if stripped.startswith("- ") or stripped.startswith("* "):
        return "unordered"
    i = 0
    while i < len(stripped) and stripped[i].isdigit():
        i += 1
    if i > 0 and stripped[i : i + 2] == ". ":
        return "ordered"
    return None


def _doc_span(dl: DocLine) -> Span:
    return token_span(dl.token)


def _check_doc_block(ctx: FileContext, block: DocBlock) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    if block.file_level:
        if block.title_level != 1:
            out.append(
                _diag(
                    ctx,
                    block.span,
                    "file documentation must start with a level-1 heading",
                )
            )
    elif block.title_level != 2:
        out.append(
            _diag(
                ctx,
                block.span,
                "item documentation must start with a level-2 heading",
            )
        )
    for section in block.sections:
        if section.level == 2:
            out.append(
                _diag(
                    ctx,
                    _doc_span(section.heading),
                    "subsection heading '" + section.title + "' must be level 3 or deeper",
                )
            )
        style = SECTION_LIST_STYLES.get(section.title)
        if style is None:
            continue
        for dl in section.body:
            found = _list_style(dl.text)
            if found is not None and found != style:
                marker = "'1. '" if style == "ordered" else "'- '"
                out.append(
                    _diag(
                        ctx,
                        _doc_span(dl),
                        "items under '"
                        + section.title
                        + "' must use an "
                        + style
                        + " list ("
                        + marker
                        + ")",
                    )
                )
    lines = block.lines
    i = 0
    while i < len(lines):
        if lines[i].heading_level > 0:
            if i > 0 and lines[i - 1].text != "":
                out.append(
                    _diag(
                        ctx,
                        _doc_span(lines[i]),
                        "heading must be preceded by a blank documentation line",
                    )
                )
            if i < len(lines) - 1 and lines[i + 1].text != "":
                out.append(
                    _diag(
                        ctx,
                        _doc_span(lines[i]),
                        "heading must be followed by a blank documentation line",
                    )
                )
        i += 1
    return out


def check_doc_structure(ctx: FileContext) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    hf = ctx.file
    if len(hf.file_docs) == 0:
        out.append(
            _diag(
                ctx,
                Span(1, 1, 1, 1),
                "file is missing a '//!' documentation block",
            )
        )
    k = 0
    while k < len(hf.file_docs):
        block = hf.file_docs[k]
        if k > 0:
            out.append(
                _diag(
                    ctx,
                    block.span,
                    "file has more than one file-level documentation block",
                )
            )
        if hf.file_doc_positions[k] > 0:
            out.append(
                _diag(
                    ctx,
                    block.span,
                    "file-level documentation must precede all declarations",
                )
            )
        k += 1
    blocks: list[DocBlock] = []
    for block in hf.file_docs:
        blocks.append(block)
    for decl in hf.decls:
        if decl.doc is not None:
            blocks.append(decl.doc)
    for block in hf.dangling_docs:
        blocks.append(block)
    h1_seen = 0
    for block in blocks:
        for dl in block.lines:
            if dl.heading_level == 1:
                h1_seen += 1
                if h1_seen > 1:
                    out.append(
                        _diag(
                            ctx,
                            _doc_span(dl),
                            "file has more than one level-1 heading",
                        )
                    )
    for block in hf.dangling_docs:
        out.append(
            _diag(
                ctx,
                block.span,
                "documentation comment is not attached to a declaration",
            )
        )
    for block in blocks:
        out.extend(_check_doc_block(ctx, block))
    return out
