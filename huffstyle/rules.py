"""Rule engine — independent style checks over the structural model.

Every checker takes a FileContext and returns its diagnostics. Checkers do not
depend on each other's output, so any subset may run in any order.
"""

from __future__ import annotations

from typing import Callable

from .align import STACK_LIST_OFFSET, render_header
from .ast import (
    AbiDecl,
    CodeLine,
    ConstantDecl,
    ConstructorDecl,
    Declaration,
    FnDecl,
    IncludeDecl,
    MacroDecl,
    MainDecl,
    Span,
    TestDecl,
    token_span,
)
from .config import SEVERITY_ERROR, SEVERITY_WARNING
from .context import FileContext
from .diagnostics import Diagnostic, Replacement
from .docs import RULE_DOC_STRUCTURE, check_doc_structure
from .roles import (
    ROLE_DESCRIPTIONS,
    STATUS_AMBIGUOUS,
    STATUS_RESOLVED,
    conventional_name,
    infer_constant_role,
    infer_macro_role,
)
from .tokens import (
    JUMP_OPCODES,
    TK_EOF,
    TK_IDENT,
    TK_JUMP_REF,
    TK_LABEL,
    TK_NUMBER,
    TK_OPCODE,
    TK_STRING,
    Token,
)

RULE_ONE_OPCODE = "one-opcode-per-line"
RULE_NAMING = "naming-by-role"
RULE_STACK_COUNTS = "stack-counts"
RULE_TAKES_COMMENT = "takes-comment"
RULE_INCLUDE_NAMING = "include-naming"
RULE_ALIGNMENT = "alignment"
RULE_HEADER = "header-format"
RULE_DECL_ORDER = "declaration-order"
RULE_UNRESOLVED_LABEL = "unresolved-label"
RULE_UNREFERENCED_LABEL = "unreferenced-label"
RULE_DUPLICATE_LABEL = "duplicate-label"

# Reported by the engine for files that cannot be analyzed
RULE_LEX_ERROR = "lex-error"
RULE_PARSE_ERROR = "parse-error"

DEFAULT_SEVERITIES: dict[str, str] = {
    RULE_ONE_OPCODE: SEVERITY_WARNING,
    RULE_NAMING: SEVERITY_WARNING,
    RULE_STACK_COUNTS: SEVERITY_ERROR,
    RULE_TAKES_COMMENT: SEVERITY_ERROR,
    RULE_INCLUDE_NAMING: SEVERITY_WARNING,
    RULE_ALIGNMENT: SEVERITY_WARNING,
    RULE_HEADER: SEVERITY_WARNING,
    RULE_DOC_STRUCTURE: SEVERITY_WARNING,
    RULE_DECL_ORDER: SEVERITY_WARNING,
    RULE_UNRESOLVED_LABEL: SEVERITY_ERROR,
    RULE_UNREFERENCED_LABEL: SEVERITY_WARNING,
    RULE_DUPLICATE_LABEL: SEVERITY_ERROR,
}


def _diag(
    ctx: FileContext, rule: str, span: Span, message: str, fix: Replacement | None = None
) -> Diagnostic:
    return ctx.diag(rule, DEFAULT_SEVERITIES[rule], span, message, fix)


def _describe(decl: MacroDecl) -> str:
    return decl.keyword() + " '" + decl.name + "'"


# ============================================================
# ONE OPCODE PER LINE
# ============================================================

LOAD_OPCODES: set[str] = {"mload", "sload", "calldataload", "tload"}
# Instruction kinds that only push an operand
OPERAND_KINDS: set[str] = {"push", "const", "template"}


def instruction_units(tokens: list[Token]) -> list[tuple[str, str]]:
    """Split a line into (kind, value) instruction units.

    `[CONST]`, `<arg>`, `NAME(...)`, and `label jump(i)` each count as one.
    """
    units: list[tuple[str, str]] = []
    n = len(tokens)
    i = 0
    while i < n:
        tok = tokens[i]
        if tok.type == TK_LABEL:
            i += 1
            continue
        if tok.is_punct("[") and i + 2 < n and tokens[i + 2].is_punct("]"):
            units.append(("const", tokens[i + 1].value))
            i += 3
            continue
        if tok.is_punct("<") and i + 2 < n and tokens[i + 2].is_punct(">"):
            units.append(("template", tokens[i + 1].value))
            i += 3
            continue
        if tok.type == TK_IDENT and i + 1 < n and tokens[i + 1].is_punct("("):
            depth = 0
            i += 1
            while i < n:
                if tokens[i].is_punct("("):
                    depth += 1
                elif tokens[i].is_punct(")"):
                    depth -= 1
                    if depth == 0:
                        break
                i += 1
            units.append(("call", tok.value))
            i += 1
            continue
        if tok.type == TK_JUMP_REF:
            units.append(("jumpref", tok.value))
        elif tok.type == TK_OPCODE:
            if tok.value in JUMP_OPCODES and len(units) > 0 and units[-1][0] == "jumpref":
                units[-1] = ("jump", tok.value)
            else:
                units.append(("op", tok.value))
        elif tok.type == TK_NUMBER or tok.type == TK_IDENT or tok.type == TK_STRING:
            units.append(("push", tok.value))
        i += 1
    return units


def _is_zero(unit: tuple[str, str]) -> bool:
    kind, value = unit
    if kind == "op":
        return value == "push0"
    if kind != "push":
        return False
    if value.startswith("0x") or value.startswith("0X"):
        digits = value[2:]
        return len(digits) > 0 and digits.strip("0") == ""
    return value.isdigit() and int(value) == 0


def _is_dup(unit: tuple[str, str]) -> bool:
    return unit[0] == "op" and unit[1].startswith("dup")


def _is_selector_extraction(units: list[tuple[str, str]]) -> bool:
    # 0x00 calldataload 0xe0 shr
    if len(units) != 4:
        return False
    return (
        units[0][0] in OPERAND_KINDS
        and units[1] == ("op", "calldataload")
        and units[2][0] in OPERAND_KINDS
        and units[3] == ("op", "shr")
    )


def _is_selector_dispatch(units: list[tuple[str, str]]) -> bool:
    # [dupN] __FUNC_SIG(name) eq label jumpi
    rest = units
    if len(rest) > 0 and _is_dup(rest[0]):
        rest = rest[1:]
    if len(rest) != 3:
        return False
    return (
        (rest[0][0] == "call" or rest[0][0] in OPERAND_KINDS)
        and rest[1] == ("op", "eq")
        and rest[2] == ("jump", "jumpi")
    )


def _is_bare_halt(units: list[tuple[str, str]]) -> bool:
    # 0x00 dup1 revert / 0x00 0x00 return
    if len(units) != 3:
        return False
    if units[2][0] != "op" or (units[2][1] != "revert" and units[2][1] != "return"):
        return False
    return _is_zero(units[0]) and (_is_zero(units[1]) or units[1] == ("op", "dup1"))


def is_exempt(units: list[tuple[str, str]]) -> bool:
    if len(units) <= 1:
        return True
    if len(units) == 2 and _is_dup(units[1]):
        return True
    if (
        len(units) == 2
        and units[0][0] in OPERAND_KINDS
        and units[1][0] == "op"
        and units[1][1] in LOAD_OPCODES
    ):
        return True
    if _is_selector_extraction(units) or _is_selector_dispatch(units):
        return True
    return _is_bare_halt(units)


def check_one_opcode_per_line(ctx: FileContext) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    for decl in ctx.file.macros():
        for line in decl.scope.lines:
            units = instruction_units(line.tokens)
            if is_exempt(units):
                continue
            first = line.tokens[0]
            last = line.tokens[-1]
            out.append(
                _diag(
                    ctx,
                    RULE_ONE_OPCODE,
                    Span(first.line, first.col, last.end_line, last.end_col),
                    str(len(units)) + " instructions on one line; write one instruction per line",
                )
            )
    return out


# ============================================================
# NAMING BY ROLE
# ============================================================


def check_naming_by_role(ctx: FileContext) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    for decl in ctx.file.decls:
        if isinstance(decl, ConstantDecl):
            status, role = infer_constant_role(decl, ctx.index)
            span = token_span(decl.name_token)
            if status == STATUS_RESOLVED and role is not None:
                wanted = conventional_name(decl.name, role)
                if wanted is not None:
                    out.append(
                        _diag(
                            ctx,
                            RULE_NAMING,
                            span,
                            "constant '"
                            + decl.name
                            + "' is used as "
                            + ROLE_DESCRIPTIONS[role]
                            + "; rename it to '"
                            + wanted
                            + "'",
                        )
                    )
            elif ctx.config.role_inference_strict:
                reason = "conflicting usages" if status == STATUS_AMBIGUOUS else "no role-bearing usage"
                out.append(
                    ctx.diag(
                        RULE_NAMING,
                        SEVERITY_ERROR,
                        span,
                        "cannot infer the role of constant '" + decl.name + "' (" + reason + ")",
                    )
                )
        elif isinstance(decl, MacroDecl):
            role = infer_macro_role(decl)
            if role is None:
                continue
            wanted = conventional_name(decl.name, role)
            if wanted is not None:
                out.append(
                    _diag(
                        ctx,
                        RULE_NAMING,
                        token_span(decl.name_token),
                        _describe(decl)
                        + " acts as "
                        + ROLE_DESCRIPTIONS[role]
                        + "; rename it to '"
                        + wanted
                        + "'",
                    )
                )
    return out


# ============================================================
# STACK COUNTS AND TAKES COMMENT
# ============================================================


def check_stack_counts(ctx: FileContext) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    for decl in ctx.file.macros():
        if isinstance(decl, TestDecl):
            continue
        span = token_span(decl.name_token)
        if decl.takes is None:
            out.append(
                _diag(ctx, RULE_STACK_COUNTS, span, _describe(decl) + " must declare 'takes (N)'")
            )
        if decl.returns is None:
            out.append(
                _diag(ctx, RULE_STACK_COUNTS, span, _describe(decl) + " must declare 'returns (N)'")
            )
    return out


def check_takes_comment(ctx: FileContext) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    for decl in ctx.file.macros():
        if isinstance(decl, TestDecl) or decl.takes is None or decl.takes == 0:
            continue
        lines = decl.scope.lines
        if len(lines) == 0:
            out.append(
                _diag(
                    ctx,
                    RULE_TAKES_COMMENT,
                    decl.header_span,
                    _describe(decl) + " declares takes (" + str(decl.takes) + ") but its body is empty",
                )
            )
            continue
        if lines[0].marker != "takes":
            out.append(
                _diag(
                    ctx,
                    RULE_TAKES_COMMENT,
                    ctx.code_span(lines[0]),
                    "first line of " + _describe(decl) + " must be a '// takes: [...]' stack comment",
                )
            )
    return out


# ============================================================
# INCLUDE NAMING
# ============================================================


def check_include_naming(ctx: FileContext) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    prefix = ctx.config.library_file_prefix
    k = 0
    for inc in ctx.file.includes():
        target = ctx.included[k] if k < len(ctx.included) else None
        k += 1
        if target is None or not target.is_library():
            continue
        base = inc.path.rsplit("/", 1)[-1]
        if base.startswith(prefix):
            continue
        out.append(
            _diag(
                ctx,
                RULE_INCLUDE_NAMING,
                token_span(inc.path_token),
                "included library file '" + base + "' should be named '" + prefix + base + "'",
            )
        )
    return out


# ============================================================
# ALIGNMENT AND HEADERS
# ============================================================


def _leading_whitespace(text: str) -> str:
    return text[: len(text) - len(text.lstrip())]


def _alignment_message(line: CodeLine, observed: str, indent: int, column: int | None) -> str:
    lead = _leading_whitespace(observed)
    if "\t" in lead:
        return "indent with spaces, not tabs"
    if len(lead) != indent:
        return "expected indentation of " + str(indent) + " spaces, found " + str(len(lead))
    if line.comment is not None and line.stack_comment is not None and column is not None:
        if line.marker is not None:
            bracket = line.comment.value.find("[")
            found = line.comment.col + bracket
            expected = column + STACK_LIST_OFFSET + 1
        else:
            found = line.comment.col
            expected = column + 1
        if found != expected:
            return "stack comment should start at column " + str(expected) + ", found " + str(found)
    return "spacing differs from canonical form"


def check_alignment(ctx: FileContext) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    for decl in ctx.file.macros():
        layout = ctx.layouts.get(decl.name)
        if layout is None:
            continue
        i = 0
        while i < len(decl.scope.lines):
            line = decl.scope.lines[i]
            rendered = layout.rendered[i]
            i += 1
            if rendered is None:
                continue
            observed = ctx.line_text(line.line)
            if observed == rendered:
                continue
            span = ctx.line_span(line.line)
            out.append(
                _diag(
                    ctx,
                    RULE_ALIGNMENT,
                    span,
                    _alignment_message(line, observed, layout.indents[i - 1], layout.column),
                    Replacement(span, rendered),
                )
            )
        close = decl.scope.close_brace
        observed = ctx.line_text(close.line)
        if close.line != decl.scope.open_brace.line and observed.strip() == "}" and observed != "}":
            span = ctx.line_span(close.line)
            out.append(
                _diag(
                    ctx,
                    RULE_ALIGNMENT,
                    span,
                    "closing brace of " + _describe(decl) + " belongs in column 1",
                    Replacement(span, "}"),
                )
            )
    return out


def _token_index(tokens: list[Token], target: Token, start: int) -> int:
    i = start
    while i < len(tokens):
        if tokens[i] is target:
            return i
        i += 1
    return -1


def check_header_format(ctx: FileContext) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    tokens = ctx.file.tokens
    config = ctx.config
    for decl in ctx.file.macros():
        if decl.header_has_comments:
            continue
        first = tokens[decl.start]
        if decl.start > 0 and tokens[decl.start - 1].end_line >= first.line:
            continue
        open_brace = decl.scope.open_brace
        open_index = _token_index(tokens, open_brace, decl.start)
        if open_index < 0:
            continue
        after = tokens[open_index + 1]
        suffix = ""
        if after.line == open_brace.line:
            close = decl.scope.close_brace
            if after is not close or len(decl.scope.lines) > 0:
                continue
            nxt = tokens[open_index + 2]
            if nxt.type != TK_EOF and nxt.line == close.line:
                continue
            suffix = "}"
        canonical = render_header(decl, config)
        canonical[-1] = canonical[-1] + suffix
        observed_lines: list[str] = []
        n = first.line
        while n <= open_brace.line:
            observed_lines.append(ctx.line_text(n))
            n += 1
        if canonical == observed_lines:
            continue
        if len(canonical) > 1 and not decl.template_multiline:
            message = (
                "template arguments of "
                + _describe(decl)
                + " exceed "
                + str(config.max_line_width)
                + " columns; place one argument per line"
            )
        elif len(canonical) == 1 and decl.template_multiline:
            message = (
                "template arguments of "
                + _describe(decl)
                + " fit within "
                + str(config.max_line_width)
                + " columns; keep them on one line"
            )
        elif len(canonical) > 1 and not decl.template_trailing_comma:
            message = "wrapped template arguments of " + _describe(decl) + " need a trailing comma"
        else:
            message = "header of " + _describe(decl) + " differs from canonical spacing"
        span = Span(first.line, 1, open_brace.line, len(observed_lines[-1]) + 1)
        out.append(_diag(ctx, RULE_HEADER, span, message, Replacement(span, "\n".join(canonical))))
    return out


# ============================================================
# DECLARATION ORDER
# ============================================================

CATEGORY_NAMES: list[str] = ["include", "ABI", "constant", "constructor", "main", "macro", "fn"]


def declaration_rank(decl: Declaration) -> int | None:
    if isinstance(decl, IncludeDecl):
        return 0
    if isinstance(decl, AbiDecl):
        return 1
    if isinstance(decl, ConstantDecl):
        return 2
    if isinstance(decl, ConstructorDecl):
        return 3
    if isinstance(decl, MainDecl):
        return 4
    if isinstance(decl, FnDecl):
        return 6
    if isinstance(decl, TestDecl):
        return None
    if isinstance(decl, MacroDecl):
        return 5
    return None


def check_declaration_order(ctx: FileContext) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    highest = -1
    for decl in ctx.file.decls:
        rank = declaration_rank(decl)
        if rank is None:
            continue
        if rank < highest:
            out.append(
                _diag(
                    ctx,
                    RULE_DECL_ORDER,
                    decl.span,
                    CATEGORY_NAMES[rank]
                    + " declaration '"
                    + decl.name
                    + "' should come before "
                    + CATEGORY_NAMES[highest]
                    + " declarations",
                )
            )
        else:
            highest = rank
    return out


# ============================================================
# LABELS
# ============================================================


def check_unresolved_labels(ctx: FileContext) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    for decl in ctx.file.macros():
        nest = ctx.nests.get(decl.name)
        if nest is None:
            continue
        for tok in nest.unresolved:
            out.append(
                _diag(
                    ctx,
                    RULE_UNRESOLVED_LABEL,
                    token_span(tok),
                    "jump to undefined label '" + tok.value + "' in " + _describe(decl),
                )
            )
    return out


def check_unreferenced_labels(ctx: FileContext) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    for decl in ctx.file.macros():
        nest = ctx.nests.get(decl.name)
        if nest is None:
            continue
        for label in nest.unreferenced:
            out.append(
                _diag(
                    ctx,
                    RULE_UNREFERENCED_LABEL,
                    token_span(label.token),
                    "label '" + label.name + "' is not the target of any preceding jump",
                )
            )
    return out


def check_duplicate_labels(ctx: FileContext) -> list[Diagnostic]:
    out: list[Diagnostic] = []
    for decl in ctx.file.macros():
        for label in decl.scope.duplicate_labels:
            first = decl.scope.labels[label.name]
            out.append(
                _diag(
                    ctx,
                    RULE_DUPLICATE_LABEL,
                    token_span(label.token),
                    "label '"
                    + label.name
                    + "' is already defined at line "
                    + str(first.token.line),
                )
            )
    return out


# ============================================================
# REGISTRY
# ============================================================


class Rule:
    """A named checker with its default severity."""

    def __init__(
        self,
        rule_id: str,
        checker: Callable[[FileContext], list[Diagnostic]],
        description: str,
    ):
        self.rule_id: str = rule_id
        self.checker: Callable[[FileContext], list[Diagnostic]] = checker
        self.description: str = description
        self.severity: str = DEFAULT_SEVERITIES[rule_id]


RULES: list[Rule] = [
    Rule(RULE_ONE_OPCODE, check_one_opcode_per_line, "one instruction per line"),
    Rule(RULE_NAMING, check_naming_by_role, "names carry their inferred role"),
    Rule(RULE_STACK_COUNTS, check_stack_counts, "explicit takes/returns counts"),
    Rule(RULE_TAKES_COMMENT, check_takes_comment, "takes comment opens non-zero-takes bodies"),
    Rule(RULE_INCLUDE_NAMING, check_include_naming, "library include file prefix"),
    Rule(RULE_ALIGNMENT, check_alignment, "indentation and stack-comment column"),
    Rule(RULE_HEADER, check_header_format, "canonical macro headers"),
    Rule(RULE_DOC_STRUCTURE, check_doc_structure, "documentation headings and lists"),
    Rule(RULE_DECL_ORDER, check_declaration_order, "declaration category order"),
    Rule(RULE_UNRESOLVED_LABEL, check_unresolved_labels, "jumps target defined labels"),
    Rule(RULE_UNREFERENCED_LABEL, check_unreferenced_labels, "labels follow their jumps"),
    Rule(RULE_DUPLICATE_LABEL, check_duplicate_labels, "labels are unique per scope"),
]


def rule_ids() -> set[str]:
    ids: set[str] = set()
    for rule in RULES:
        ids.add(rule.rule_id)
    return ids


def check_file(ctx: FileContext) -> list[Diagnostic]:
    """Run every enabled rule over one file."""
    out: list[Diagnostic] = []
    for rule in RULES:
        if ctx.config.rule_enabled(rule.rule_id):
            out.extend(rule.checker(ctx))
    return out
