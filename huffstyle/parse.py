"""Huff declaration parser — groups tokens into top-level declarations."""

from __future__ import annotations

from .ast import (
    AbiDecl,
    CodeLine,
    ConstantDecl,
    ConstructorDecl,
    Declaration,
    DocBlock,
    DocLine,
    DocSection,
    FnDecl,
    HuffFile,
    IncludeDecl,
    Label,
    MacroDecl,
    MainDecl,
    Scope,
    Span,
    TableDecl,
    TestDecl,
    join_spans,
    token_span,
)
from .tokens import (
    TK_COMMENT,
    TK_DECORATOR,
    TK_DIRECTIVE,
    TK_DOC,
    TK_EOF,
    TK_FILE_DOC,
    TK_IDENT,
    TK_LABEL,
    TK_NUMBER,
    TK_PUNCT,
    TK_STRING,
    Token,
    number_value,
)

# ParseError kinds
PARSE_UNEXPECTED_TOKEN = "unexpected-token"
PARSE_MISMATCHED_BRACES = "mismatched-braces"
PARSE_MISSING_STACK_COUNTS = "missing-stack-counts"
PARSE_DUPLICATE_NAME = "duplicate-declaration-name"

ABI_KINDS: set[str] = {"function", "event", "error"}
MACRO_KINDS: set[str] = {"macro", "fn", "test"}
TABLE_KINDS: set[str] = {"table", "jumptable", "jumptable__packed"}
MUTABILITY_WORDS: set[str] = {"view", "pure", "payable", "nonpayable"}

MAIN_NAME = "MAIN"
CONSTRUCTOR_NAME = "CONSTRUCTOR"


class ParseError(Exception):
    """Parse error with location info."""

    def __init__(self, kind: str, msg: str, line: int, col: int):
        self.kind: str = kind
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


# ── Documentation ────────────────────────────────────────────


def _heading_level(text: str) -> int:
    level = 0
    while level < len(text) and text[level] == "#":
        level += 1
    if level == 0 or level > 6:
        return 0
    if level < len(text) and text[level] != " ":
        return 0
    return level


def _doc_text(tok: Token) -> str:
    body = tok.value[3:]
    if body.startswith(" "):
        body = body[1:]
    return body.rstrip()


def build_doc_block(tokens: list[Token]) -> DocBlock:
    """Build a DocBlock from a contiguous run of documentation comments."""
    lines: list[DocLine] = []
    for tok in tokens:
        text = _doc_text(tok)
        lines.append(DocLine(tok, text, _heading_level(text)))
    block = DocBlock(
        file_level=tokens[0].type == TK_FILE_DOC,
        lines=lines,
        span=join_spans(token_span(tokens[0]), token_span(tokens[-1])),
    )
    first_text = -1
    i = 0
    while i < len(lines):
        if lines[i].text != "":
            first_text = i
            break
        i += 1
    current: DocSection | None = None
    i = 0
    while i < len(lines):
        dl = lines[i]
        if dl.heading_level > 0:
            title = dl.text[dl.heading_level :].strip()
            if i == first_text:
                block.title = title
                block.title_level = dl.heading_level
                current = None
            else:
                current = DocSection(dl, title, dl.heading_level, [])
                block.sections.append(current)
        elif current is not None:
            current.body.append(dl)
        i += 1
    return block


# ── Scopes ───────────────────────────────────────────────────


def _classify_comment(comment: Token, has_code: bool) -> tuple[str | None, str | None]:
    """Returns (stack_comment, marker) for a line's comment."""
    if comment.type != TK_COMMENT or not comment.value.startswith("//"):
        return None, None
    body = comment.value[2:].strip()
    if has_code:
        if body.startswith("["):
            return body, None
        return None, None
    for marker in ("takes", "returns"):
        if body.startswith(marker + ":"):
            rest = body[len(marker) + 1 :].strip()
            if rest.startswith("["):
                return rest, marker
    return None, None


def build_scope(name: str, open_brace: Token, close_brace: Token, body: list[Token]) -> Scope:
    """Group body tokens into CodeLines, one per physical line."""
    groups: list[list[Token]] = []
    for tok in body:
        if len(groups) > 0 and groups[-1][0].line == tok.line:
            groups[-1].append(tok)
        else:
            groups.append([tok])
    scope = Scope(name, open_brace, close_brace, [])
    covered_until = 0
    for group in groups:
        line_no = group[0].line
        code: list[Token] = []
        comments: list[Token] = []
        comment_first = False
        for tok in group:
            if tok.is_comment():
                comments.append(tok)
            else:
                if len(comments) > 0:
                    comment_first = True
                code.append(tok)
        comment = comments[-1] if len(comments) > 0 else None
        verbatim = (
            line_no == open_brace.line
            or line_no == close_brace.line
            or line_no <= covered_until
            or len(comments) > 1
            or comment_first
        )
        for c in comments:
            if c.end_line > c.line:
                verbatim = True
                covered_until = c.end_line
        label = code[0] if len(code) > 0 and code[0].type == TK_LABEL else None
        stack_comment: str | None = None
        marker: str | None = None
        if comment is not None:
            stack_comment, marker = _classify_comment(comment, len(code) > 0)
        index = len(scope.lines)
        scope.lines.append(
            CodeLine(line_no, code, comment, label, stack_comment, marker, verbatim)
        )
        if label is not None:
            entry = Label(label.label_name(), label, index)
            if entry.name in scope.labels:
                scope.duplicate_labels.append(entry)
            else:
                scope.labels[entry.name] = entry
    return scope


# ── Parser ───────────────────────────────────────────────────


class Parser:
    """Top-level declaration parser for one Huff file."""

    def __init__(self, tokens: list[Token], file_id: str = "<input>", text: str = ""):
        self.tokens: list[Token] = tokens
        self.pos: int = 0
        self.file_id: str = file_id
        self.text: str = text
        self.skip_comments: bool = False
        self.skipped_comment: bool = False
        self.names: dict[str, dict[str, Token]] = {"abi": {}, "code": {}}

    # ── Helpers ──────────────────────────────────────────────

    def current(self) -> Token:
        while self.skip_comments and self.tokens[self.pos].is_comment():
            self.skipped_comment = True
            self.pos += 1
        return self.tokens[self.pos]

    def advance(self) -> Token:
        tok = self.current()
        self.pos += 1
        return tok

    def at(self, value: str) -> bool:
        tok = self.current()
        return tok.type != TK_STRING and tok.type != TK_EOF and tok.value == value

    def at_type(self, type_: str) -> bool:
        return self.current().type == type_

    def expect(self, value: str) -> Token:
        tok = self.current()
        if tok.type == TK_EOF and value in ("}", ")"):
            raise self.error(PARSE_MISMATCHED_BRACES, "expected '" + value + "' before end of file")
        if not self.at(value):
            raise self.error(
                PARSE_UNEXPECTED_TOKEN, "expected '" + value + "', got '" + tok.value + "'"
            )
        return self.advance()

    def expect_ident(self) -> Token:
        tok = self.current()
        if tok.type != TK_IDENT:
            raise self.error(
                PARSE_UNEXPECTED_TOKEN, "expected identifier, got '" + tok.value + "'"
            )
        return self.advance()

    def error(self, kind: str, msg: str) -> ParseError:
        tok = self.current()
        return ParseError(kind, msg, tok.line, tok.col)

    def previous(self) -> Token:
        return self.tokens[self.pos - 1]

    def declare(self, namespace: str, tok: Token) -> None:
        seen = self.names[namespace]
        if tok.value in seen:
            first = seen[tok.value]
            raise ParseError(
                PARSE_DUPLICATE_NAME,
                "'"
                + tok.value
                + "' already declared at line "
                + str(first.line),
                tok.line,
                tok.col,
            )
        seen[tok.value] = tok

    # ── Top Level ────────────────────────────────────────────

    def parse_file(self) -> HuffFile:
        lines = self.text.split("\n")
        hf = HuffFile(self.file_id, self.text, lines, self.tokens, [])
        while not self.at_type(TK_EOF):
            tok = self.current()
            if tok.type == TK_FILE_DOC:
                hf.file_docs.append(self.parse_doc_block(TK_FILE_DOC))
                hf.file_doc_positions.append(len(hf.decls))
                continue
            if tok.type == TK_DOC:
                block = self.parse_doc_block(TK_DOC)
                nxt = self.current()
                starts_decl = nxt.type == TK_DIRECTIVE or nxt.type == TK_DECORATOR
                if starts_decl and nxt.line == block.span.end_line + 1:
                    hf.decls.append(self.parse_decl(block))
                else:
                    hf.dangling_docs.append(block)
                continue
            if tok.type == TK_COMMENT:
                self.advance()
                continue
            hf.decls.append(self.parse_decl(None))
        return hf

    def parse_doc_block(self, kind: str) -> DocBlock:
        run: list[Token] = [self.advance()]
        while self.at_type(kind) and self.current().line == run[-1].line + 1:
            run.append(self.advance())
        return build_doc_block(run)

    def parse_decl(self, doc: DocBlock | None) -> Declaration:
        start = self.pos
        self.skip_comments = True
        self.skipped_comment = False
        try:
            tok = self.current()
            if tok.type == TK_DECORATOR:
                return self.parse_decorated_test(doc)
            if tok.type == TK_DIRECTIVE and tok.value == "#include":
                return self.parse_include(start, doc)
            if tok.type == TK_DIRECTIVE and tok.value == "#define":
                self.advance()
                kind_tok = self.current()
                if kind_tok.type != TK_DIRECTIVE:
                    raise self.error(
                        PARSE_UNEXPECTED_TOKEN,
                        "expected declaration kind after #define, got '" + kind_tok.value + "'",
                    )
                self.advance()
                if kind_tok.value in ABI_KINDS:
                    return self.parse_abi(start, kind_tok.value, doc)
                if kind_tok.value == "constant":
                    return self.parse_constant(start, doc)
                if kind_tok.value in MACRO_KINDS:
                    return self.parse_macro(start, kind_tok.value, doc)
                if kind_tok.value in TABLE_KINDS:
                    return self.parse_table(start, kind_tok.value, doc)
                raise ParseError(
                    PARSE_UNEXPECTED_TOKEN,
                    "unknown declaration kind '" + kind_tok.value + "'",
                    kind_tok.line,
                    kind_tok.col,
                )
            if tok.type == TK_PUNCT and (tok.value == "}" or tok.value == ")"):
                raise self.error(PARSE_MISMATCHED_BRACES, "unmatched '" + tok.value + "'")
            raise self.error(
                PARSE_UNEXPECTED_TOKEN,
                "expected declaration (#define, #include), got '" + tok.value + "'",
            )
        finally:
            self.skip_comments = False

    def parse_decorated_test(self, doc: DocBlock | None) -> MacroDecl:
        decorator = self.advance()
        start = self.pos
        define_tok = self.current()
        if define_tok.type == TK_DIRECTIVE and define_tok.value == "#define":
            self.advance()
            kind_tok = self.current()
            if kind_tok.type == TK_DIRECTIVE and kind_tok.value == "test":
                self.advance()
                decl = self.parse_macro(start, "test", doc)
                if isinstance(decl, TestDecl):
                    decl.decorator = decorator
                return decl
        raise ParseError(
            PARSE_UNEXPECTED_TOKEN,
            "decorator must be followed by '#define test'",
            decorator.line,
            decorator.col,
        )

    def _span_from(self, start: int) -> Span:
        return join_spans(token_span(self.tokens[start]), token_span(self.previous()))

    def parse_include(self, start: int, doc: DocBlock | None) -> IncludeDecl:
        self.advance()
        path_tok = self.current()
        if path_tok.type != TK_STRING:
            raise self.error(PARSE_UNEXPECTED_TOKEN, "expected include path string")
        self.advance()
        path = path_tok.value[1:-1]
        return IncludeDecl(self._span_from(start), path, start, self.pos, doc, path, path_tok)

    def parse_balanced(self) -> list[Token]:
        """Consume `( ... )` and return the tokens strictly inside."""
        open_tok = self.expect("(")
        inner: list[Token] = []
        depth = 0
        while True:
            tok = self.current()
            if tok.type == TK_EOF:
                raise ParseError(
                    PARSE_MISMATCHED_BRACES, "unclosed '('", open_tok.line, open_tok.col
                )
            if tok.type == TK_PUNCT and tok.value == "(":
                depth += 1
            elif tok.type == TK_PUNCT and tok.value == ")":
                if depth == 0:
                    self.advance()
                    return inner
                depth -= 1
            inner.append(self.advance())

    def _split_types(self, inner: list[Token]) -> list[str]:
        result: list[str] = []
        buf: list[str] = []
        depth = 0
        for tok in inner:
            if tok.type == TK_PUNCT and tok.value == "(":
                depth += 1
            elif tok.type == TK_PUNCT and tok.value == ")":
                depth -= 1
            if depth == 0 and tok.type == TK_PUNCT and tok.value == ",":
                result.append(" ".join(buf))
                buf = []
                continue
            buf.append(tok.value)
        if len(buf) > 0:
            result.append(" ".join(buf))
        return result

    def parse_abi(self, start: int, kind: str, doc: DocBlock | None) -> AbiDecl:
        name_tok = self.expect_ident()
        self.declare("abi", name_tok)
        params = self._split_types(self.parse_balanced())
        mutability = ""
        return_types: list[str] = []
        if kind == "function":
            while self.at_type(TK_DIRECTIVE) and self.current().value in MUTABILITY_WORDS:
                mutability = self.advance().value
            if self.at_type(TK_DIRECTIVE) and self.current().value == "returns":
                self.advance()
                return_types = self._split_types(self.parse_balanced())
        return AbiDecl(
            self._span_from(start),
            name_tok.value,
            start,
            self.pos,
            doc,
            kind,
            params,
            mutability,
            return_types,
        )

    def parse_constant(self, start: int, doc: DocBlock | None) -> ConstantDecl:
        name_tok = self.expect_ident()
        self.declare("code", name_tok)
        self.expect("=")
        value_tok = self.current()
        builtin_call = False
        if value_tok.type == TK_NUMBER:
            self.advance()
            value = value_tok.value
        elif value_tok.type == TK_IDENT:
            self.advance()
            value = value_tok.value
            if self.at("(") and self.current().line == value_tok.line:
                args = self.parse_balanced()
                arg_text = ""
                for tok in args:
                    arg_text += tok.value
                value = value + "(" + arg_text + ")"
                builtin_call = True
        else:
            raise self.error(
                PARSE_UNEXPECTED_TOKEN, "expected constant value, got '" + value_tok.value + "'"
            )
        return ConstantDecl(
            self._span_from(start),
            name_tok.value,
            start,
            self.pos,
            doc,
            name_tok,
            value,
            builtin_call,
        )

    def parse_table(self, start: int, kind: str, doc: DocBlock | None) -> TableDecl:
        name_tok = self.expect_ident()
        self.declare("code", name_tok)
        if self.at("("):
            self.parse_balanced()
        open_tok = self.expect("{")
        entries: list[Token] = []
        while not self.at("}"):
            if self.at_type(TK_EOF):
                raise ParseError(
                    PARSE_MISMATCHED_BRACES, "unclosed '{'", open_tok.line, open_tok.col
                )
            entries.append(self.advance())
        self.advance()
        return TableDecl(self._span_from(start), name_tok.value, start, self.pos, doc, kind, entries)

    def parse_template_params(self, name_tok: Token) -> tuple[list[Token], bool, bool]:
        """Returns (params, multiline, trailing_comma)."""
        open_tok = self.expect("(")
        params: list[Token] = []
        trailing = False
        while not self.at(")"):
            if self.at_type(TK_EOF):
                raise ParseError(
                    PARSE_MISMATCHED_BRACES, "unclosed '('", open_tok.line, open_tok.col
                )
            params.append(self.expect_ident())
            if self.at(","):
                self.advance()
                trailing = self.at(")")
            elif not self.at(")"):
                raise self.error(
                    PARSE_UNEXPECTED_TOKEN,
                    "expected ',' or ')' in template arguments, got '"
                    + self.current().value
                    + "'",
                )
        close_tok = self.advance()
        multiline = close_tok.line != name_tok.line
        for p in params:
            if p.line != name_tok.line:
                multiline = True
        return params, multiline, trailing

    def parse_stack_count(self, word: str) -> Token | None:
        tok = self.current()
        if tok.type != TK_DIRECTIVE or tok.value != word:
            return None
        self.advance()
        if not self.at("("):
            raise self.error(
                PARSE_MISSING_STACK_COUNTS, "expected '(N)' after '" + word + "'"
            )
        self.advance()
        count_tok = self.current()
        if count_tok.type != TK_NUMBER:
            raise self.error(
                PARSE_MISSING_STACK_COUNTS,
                "expected stack count after '" + word + " (', got '" + count_tok.value + "'",
            )
        self.advance()
        if not self.at(")"):
            raise self.error(
                PARSE_MISSING_STACK_COUNTS, "expected ')' after " + word + " count"
            )
        self.advance()
        return count_tok

    def parse_macro(self, start: int, kind: str, doc: DocBlock | None) -> MacroDecl:
        name_tok = self.expect_ident()
        self.declare("code", name_tok)
        params, multiline, trailing = self.parse_template_params(name_tok)
        self.expect("=")
        takes_tok = self.parse_stack_count("takes")
        returns_tok = self.parse_stack_count("returns")
        if takes_tok is None and self.parse_stack_count("takes") is not None:
            raise self.error(
                PARSE_UNEXPECTED_TOKEN, "'takes' must come before 'returns'"
            )
        open_tok = self.expect("{")
        header_has_comments = self.skipped_comment
        self.skip_comments = False
        body: list[Token] = []
        depth = 0
        while True:
            tok = self.current()
            if tok.type == TK_EOF:
                raise ParseError(
                    PARSE_MISMATCHED_BRACES,
                    "unclosed '{' of '" + name_tok.value + "'",
                    open_tok.line,
                    open_tok.col,
                )
            if tok.type == TK_PUNCT and tok.value == "{":
                depth += 1
            elif tok.type == TK_PUNCT and tok.value == "}":
                if depth == 0:
                    break
                depth -= 1
            body.append(self.advance())
        close_tok = self.advance()
        scope = build_scope(name_tok.value, open_tok, close_tok, body)
        header_span = join_spans(token_span(self.tokens[start]), token_span(open_tok))
        cls = MacroDecl
        if kind == "fn":
            cls = FnDecl
        elif kind == "test":
            cls = TestDecl
        elif name_tok.value == MAIN_NAME:
            cls = MainDecl
        elif name_tok.value == CONSTRUCTOR_NAME:
            cls = ConstructorDecl
        return cls(
            self._span_from(start),
            name_tok.value,
            start,
            self.pos,
            doc,
            name_tok,
            params,
            number_value(takes_tok) if takes_tok is not None else None,
            number_value(returns_tok) if returns_tok is not None else None,
            scope,
            header_span,
            header_has_comments,
            multiline,
            trailing,
            takes_tok,
            returns_tok,
        )


def parse_tokens(tokens: list[Token], file_id: str = "<input>", text: str = "") -> HuffFile:
    """Group a token stream into a HuffFile model."""
    return Parser(tokens, file_id, text).parse_file()
