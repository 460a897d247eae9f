"""Huff tokenizer — lexes source into a flat token list.

Comments are kept as tokens; whitespace is not, since every token carries its
exact source position and the original text is kept alongside the tokens.
"""

from __future__ import annotations


# Token type constants
TK_OPCODE = "OPCODE"
TK_IDENT = "IDENT"
TK_NUMBER = "NUMBER"
TK_STRING = "STRING"
TK_PUNCT = "PUNCT"
TK_LABEL = "LABEL"
TK_JUMP_REF = "JUMP_REF"
TK_COMMENT = "COMMENT"
TK_DOC = "DOC"
TK_FILE_DOC = "FILE_DOC"
TK_DIRECTIVE = "DIRECTIVE"
TK_DECORATOR = "DECORATOR"
TK_EOF = "EOF"

COMMENT_TYPES: set[str] = {TK_COMMENT, TK_DOC, TK_FILE_DOC}

# LexError kinds
LEX_UNTERMINATED_STRING = "unterminated-string"
LEX_UNTERMINATED_COMMENT = "unterminated-comment"
LEX_INVALID_CHARACTER = "invalid-character"
LEX_UNTERMINATED_DECORATOR = "unterminated-decorator"

# Words following `#define`, plus header and ABI keywords. Only recognized
# outside of braces; inside a body the same words are ordinary identifiers.
DIRECTIVE_WORDS: set[str] = {
    "macro",
    "fn",
    "test",
    "function",
    "event",
    "error",
    "constant",
    "table",
    "jumptable",
    "jumptable__packed",
    "takes",
    "returns",
    "view",
    "pure",
    "payable",
    "nonpayable",
    "indexed",
}

JUMP_OPCODES: set[str] = {"jump", "jumpi"}


def _opcode_set() -> set[str]:
    ops: set[str] = {
        "stop",
        "add",
        "mul",
        "sub",
        "div",
        "sdiv",
        "mod",
        "smod",
        "addmod",
        "mulmod",
        "exp",
        "signextend",
        "lt",
        "gt",
        "slt",
        "sgt",
        "eq",
        "iszero",
        "and",
        "or",
        "xor",
        "not",
        "byte",
        "shl",
        "shr",
        "sar",
        "sha3",
        "keccak256",
        "address",
        "balance",
        "origin",
        "caller",
        "callvalue",
        "calldataload",
        "calldatasize",
        "calldatacopy",
        "codesize",
        "codecopy",
        "gasprice",
        "extcodesize",
        "extcodecopy",
        "returndatasize",
        "returndatacopy",
        "extcodehash",
        "blockhash",
        "coinbase",
        "timestamp",
        "number",
        "difficulty",
        "prevrandao",
        "gaslimit",
        "chainid",
        "selfbalance",
        "basefee",
        "blobhash",
        "blobbasefee",
        "pop",
        "mload",
        "mstore",
        "mstore8",
        "sload",
        "sstore",
        "tload",
        "tstore",
        "mcopy",
        "jump",
        "jumpi",
        "pc",
        "msize",
        "gas",
        "jumpdest",
        "create",
        "call",
        "callcode",
        "return",
        "delegatecall",
        "create2",
        "staticcall",
        "revert",
        "invalid",
        "selfdestruct",
    }
    for i in range(0, 33):
        ops.add("push" + str(i))
    for i in range(1, 17):
        ops.add("dup" + str(i))
        ops.add("swap" + str(i))
    for i in range(0, 5):
        ops.add("log" + str(i))
    return ops


OPCODES: set[str] = _opcode_set()

PUNCTUATION: set[str] = {"(", ")", "{", "}", "[", "]", "<", ">", ",", "=", ":"}


class LexError(Exception):
    """Error during tokenization."""

    def __init__(self, kind: str, msg: str, line: int, col: int):
        self.kind: str = kind
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


class Token:
    """A token with type, raw text, and position.

    `end_line`/`end_col` point one past the last character; they differ from
    `line` only for block comments.
    """

    def __init__(
        self,
        type_: str,
        value: str,
        line: int,
        col: int,
        end_line: int = 0,
        end_col: int = 0,
    ):
        self.type: str = type_
        self.value: str = value
        self.line: int = line
        self.col: int = col
        self.end_line: int = end_line if end_line > 0 else line
        self.end_col: int = end_col if end_col > 0 else col + len(value)

    def is_comment(self) -> bool:
        return self.type in COMMENT_TYPES

    def is_punct(self, value: str) -> bool:
        return self.type == TK_PUNCT and self.value == value

    def label_name(self) -> str:
        """Name of a label definition token, without the trailing colon."""
        return self.value[:-1]

    def __repr__(self) -> str:
        return (
            "Token("
            + self.type
            + ", "
            + repr(self.value)
            + ", "
            + str(self.line)
            + ", "
            + str(self.col)
            + ")"
        )


def _is_digit(c: str) -> bool:
    return c >= "0" and c <= "9"


def _is_hex(c: str) -> bool:
    return (c >= "0" and c <= "9") or (c >= "a" and c <= "f") or (c >= "A" and c <= "F")


def _is_alpha(c: str) -> bool:
    return (c >= "a" and c <= "z") or (c >= "A" and c <= "Z") or c == "_"


def _is_alnum(c: str) -> bool:
    return _is_alpha(c) or _is_digit(c)


def tokenize(source: str) -> list[Token]:
    """Tokenize Huff source into a flat list ending with TK_EOF."""
    tokens: list[Token] = []
    pos = 0
    line = 1
    col = 1
    length = len(source)
    brace_depth = 0

    while pos < length:
        c = source[pos]

        # Newlines
        if c == "\n":
            pos += 1
            line += 1
            col = 1
            continue

        # Whitespace
        if c == " " or c == "\t" or c == "\r":
            pos += 1
            col += 1
            continue

        start_pos = pos
        start_line = line
        start_col = col

        # Line comments: //!, ///, //
        if c == "/" and pos + 1 < length and source[pos + 1] == "/":
            while pos < length and source[pos] != "\n":
                pos += 1
            raw = source[start_pos:pos].rstrip("\r")
            col += pos - start_pos
            if raw.startswith("//!"):
                kind = TK_FILE_DOC
            elif raw.startswith("///") and not raw.startswith("////"):
                kind = TK_DOC
            else:
                kind = TK_COMMENT
            tokens.append(Token(kind, raw, start_line, start_col))
            continue

        # Block comment: /* ... */
        if c == "/" and pos + 1 < length and source[pos + 1] == "*":
            pos += 2
            col += 2
            closed = False
            while pos < length:
                if source[pos] == "*" and pos + 1 < length and source[pos + 1] == "/":
                    pos += 2
                    col += 2
                    closed = True
                    break
                if source[pos] == "\n":
                    line += 1
                    col = 1
                else:
                    col += 1
                pos += 1
            if not closed:
                raise LexError(
                    LEX_UNTERMINATED_COMMENT,
                    "unterminated block comment",
                    start_line,
                    start_col,
                )
            raw = source[start_pos:pos]
            tokens.append(Token(TK_COMMENT, raw, start_line, start_col, line, col))
            continue

        # Test decorator: #[calldata("0x..."), value(0x01)]
        if c == "#" and brace_depth == 0 and pos + 1 < length and source[pos + 1] == "[":
            depth = 0
            quote = ""
            while pos < length and source[pos] != "\n":
                ch = source[pos]
                pos += 1
                col += 1
                if quote != "":
                    if ch == quote:
                        quote = ""
                elif ch == '"' or ch == "'":
                    quote = ch
                elif ch == "[":
                    depth += 1
                elif ch == "]":
                    depth -= 1
                    if depth == 0:
                        break
            if depth != 0 or quote != "":
                raise LexError(
                    LEX_UNTERMINATED_DECORATOR,
                    "unterminated test decorator",
                    start_line,
                    start_col,
                )
            tokens.append(Token(TK_DECORATOR, source[start_pos:pos], start_line, start_col))
            continue

        # Directive: #define, #include
        if c == "#":
            pos += 1
            col += 1
            while pos < length and _is_alnum(source[pos]):
                pos += 1
                col += 1
            raw = source[start_pos:pos]
            if raw == "#":
                raise LexError(
                    LEX_INVALID_CHARACTER,
                    "expected directive name after '#'",
                    start_line,
                    start_col,
                )
            tokens.append(Token(TK_DIRECTIVE, raw, start_line, start_col))
            continue

        # Number: 0x hex or decimal
        if _is_digit(c):
            if (
                c == "0"
                and pos + 1 < length
                and (source[pos + 1] == "x" or source[pos + 1] == "X")
            ):
                pos += 2
                col += 2
                hex_start = pos
                while pos < length and _is_hex(source[pos]):
                    pos += 1
                    col += 1
                if pos == hex_start:
                    raise LexError(
                        LEX_INVALID_CHARACTER,
                        "hex literal needs at least one digit",
                        start_line,
                        start_col,
                    )
            else:
                while pos < length and _is_digit(source[pos]):
                    pos += 1
                    col += 1
            if pos < length and _is_alpha(source[pos]):
                raise LexError(
                    LEX_INVALID_CHARACTER,
                    "unexpected character in number: " + repr(source[pos]),
                    line,
                    col,
                )
            raw = source[start_pos:pos]
            tokens.append(Token(TK_NUMBER, raw, start_line, start_col))
            continue

        # String literal: "..." or '...'
        if c == '"' or c == "'":
            quote = c
            pos += 1
            col += 1
            while pos < length and source[pos] != quote:
                if source[pos] == "\n":
                    raise LexError(
                        LEX_UNTERMINATED_STRING,
                        "unterminated string literal",
                        start_line,
                        start_col,
                    )
                if source[pos] == "\\" and pos + 1 < length and source[pos + 1] != "\n":
                    pos += 1
                    col += 1
                pos += 1
                col += 1
            if pos >= length:
                raise LexError(
                    LEX_UNTERMINATED_STRING,
                    "unterminated string literal",
                    start_line,
                    start_col,
                )
            pos += 1  # skip closing quote
            col += 1
            raw = source[start_pos:pos]
            tokens.append(Token(TK_STRING, raw, start_line, start_col))
            continue

        # Identifier, opcode, keyword, or label definition
        if _is_alpha(c):
            while pos < length and _is_alnum(source[pos]):
                pos += 1
                col += 1
            word = source[start_pos:pos]
            if brace_depth > 0 and pos < length and source[pos] == ":":
                pos += 1
                col += 1
                tokens.append(Token(TK_LABEL, word + ":", start_line, start_col))
                continue
            if brace_depth == 0 and word in DIRECTIVE_WORDS:
                tokens.append(Token(TK_DIRECTIVE, word, start_line, start_col))
                continue
            if brace_depth > 0 and word in OPCODES:
                if word in JUMP_OPCODES and len(tokens) > 0:
                    prev = tokens[-1]
                    if prev.type == TK_IDENT and prev.line == start_line:
                        prev.type = TK_JUMP_REF
                tokens.append(Token(TK_OPCODE, word, start_line, start_col))
                continue
            tokens.append(Token(TK_IDENT, word, start_line, start_col))
            continue

        if c in PUNCTUATION:
            if c == "{":
                brace_depth += 1
            elif c == "}" and brace_depth > 0:
                brace_depth -= 1
            tokens.append(Token(TK_PUNCT, c, start_line, start_col))
            pos += 1
            col += 1
            continue

        raise LexError(
            LEX_INVALID_CHARACTER, "unexpected character: " + repr(c), line, col
        )

    tokens.append(Token(TK_EOF, "", line, col))
    return tokens


def number_value(tok: Token) -> int:
    """Integer value of a TK_NUMBER token."""
    raw = tok.value
    if raw.startswith("0x") or raw.startswith("0X"):
        return int(raw[2:], 16)
    return int(raw, 10)
