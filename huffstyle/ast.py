"""Huff declaration model — parse-time node definitions."""

from __future__ import annotations

from dataclasses import dataclass, field

from .tokens import Token


# ============================================================
# POSITION
# ============================================================


@dataclass(frozen=True)
class Span:
    """Source range, 1-indexed; the end is exclusive."""

    line: int
    col: int
    end_line: int
    end_col: int


def token_span(tok: Token) -> Span:
    return Span(tok.line, tok.col, tok.end_line, tok.end_col)


def join_spans(first: Span, last: Span) -> Span:
    return Span(first.line, first.col, last.end_line, last.end_col)


# ============================================================
# DOCUMENTATION
# ============================================================


@dataclass
class DocLine:
    """One documentation comment line with its prefix removed."""

    token: Token
    text: str
    heading_level: int  # 0 when not a heading


@dataclass
class DocSection:
    """A heading and the documentation lines under it."""

    heading: DocLine
    title: str
    level: int
    body: list[DocLine]


@dataclass
class DocBlock:
    """Contiguous run of `///` (item) or `//!` (file) comment lines."""

    file_level: bool
    lines: list[DocLine]
    span: Span
    title: str = ""
    title_level: int = 0
    sections: list[DocSection] = field(default_factory=list)


# ============================================================
# SCOPES
# ============================================================


@dataclass
class CodeLine:
    """Tokens of one physical line inside a macro body.

    `tokens` excludes the trailing comment. A comment-only line has no tokens
    and carries its comment in `comment`.
    """

    line: int
    tokens: list[Token]
    comment: Token | None = None
    label: Token | None = None
    stack_comment: str | None = None  # "[a, b]" for `// [a, b]`
    marker: str | None = None  # "takes" / "returns" for marker lines
    verbatim: bool = False

    def has_code(self) -> bool:
        return len(self.tokens) > 0

    def label_only(self) -> bool:
        return self.label is not None and len(self.tokens) == 1


@dataclass
class Label:
    name: str
    token: Token
    line_index: int


@dataclass
class Scope:
    """Body of one macro, fn, test, constructor, or main declaration."""

    name: str
    open_brace: Token
    close_brace: Token
    lines: list[CodeLine]
    labels: dict[str, Label] = field(default_factory=dict)
    duplicate_labels: list[Label] = field(default_factory=list)


# ============================================================
# DECLARATIONS
# ============================================================


@dataclass
class Declaration:
    """Base for all top-level declarations."""

    span: Span
    name: str
    start: int  # token index of the leading directive
    end: int  # token index one past the last token
    doc: DocBlock | None


@dataclass
class IncludeDecl(Declaration):
    path: str
    path_token: Token


@dataclass
class AbiDecl(Declaration):
    """`function`, `event`, or `error` interface item."""

    kind: str
    params: list[str]
    mutability: str
    return_types: list[str]


@dataclass
class ConstantDecl(Declaration):
    name_token: Token
    value: str
    builtin_call: bool


@dataclass
class TableDecl(Declaration):
    kind: str
    entries: list[Token]


@dataclass
class MacroDecl(Declaration):
    """`#define macro` with its header and body."""

    name_token: Token
    template_params: list[Token]
    takes: int | None
    returns: int | None
    scope: Scope
    header_span: Span
    header_has_comments: bool = False
    template_multiline: bool = False
    template_trailing_comma: bool = False
    takes_token: Token | None = None
    returns_token: Token | None = None

    def keyword(self) -> str:
        return "macro"


@dataclass
class FnDecl(MacroDecl):
    def keyword(self) -> str:
        return "fn"


@dataclass
class TestDecl(MacroDecl):
    decorator: Token | None = None  # `#[calldata(...), value(...)]`

    def keyword(self) -> str:
        return "test"


@dataclass
class ConstructorDecl(MacroDecl):
    pass


@dataclass
class MainDecl(MacroDecl):
    pass


# ============================================================
# FILE
# ============================================================


@dataclass
class HuffFile:
    """Parsed model of one source file."""

    file_id: str
    text: str
    lines: list[str]
    tokens: list[Token]
    decls: list[Declaration]
    file_docs: list[DocBlock] = field(default_factory=list)
    # Number of declarations preceding each file doc block
    file_doc_positions: list[int] = field(default_factory=list)
    dangling_docs: list[DocBlock] = field(default_factory=list)

    def macros(self) -> list[MacroDecl]:
        result: list[MacroDecl] = []
        for d in self.decls:
            if isinstance(d, MacroDecl):
                result.append(d)
        return result

    def includes(self) -> list[IncludeDecl]:
        result: list[IncludeDecl] = []
        for d in self.decls:
            if isinstance(d, IncludeDecl):
                result.append(d)
        return result

    def is_library(self) -> bool:
        """A file with neither MAIN nor CONSTRUCTOR is only meant to be included."""
        for d in self.decls:
            if isinstance(d, MainDecl) or isinstance(d, ConstructorDecl):
                return False
        return True
