"""Block nesting inference from label and jump structure.

Huff has no block syntax. A label that is the target of an earlier `jumpi`
opens an implicit block one level deeper than that jump; the block lasts until
the next label definition. Depth therefore changes only on label lines.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .ast import CodeLine, Label, Scope
from .tokens import TK_IDENT, TK_JUMP_REF, TK_OPCODE, TK_PUNCT, Token


@dataclass
class NestResult:
    """Depth per CodeLine index plus the label findings of one scope."""

    depths: list[int]
    label_depths: dict[str, int] = field(default_factory=dict)
    unresolved: list[Token] = field(default_factory=list)
    unreferenced: list[Label] = field(default_factory=list)


def _references(line: CodeLine, defined: dict[str, Label]) -> list[Token]:
    """Label references on a line: explicit jump refs and pushed label names.

    Names inside `[...]`, `<...>` and builtin calls such as `__FUNC_SIG(x)`
    name constants, arguments or functions, never labels.
    """
    refs: list[Token] = []
    nested = 0  # open brackets that hide names
    calls: list[bool] = []  # per open paren: does it hide names
    prev: Token | None = None
    for tok in line.tokens:
        if tok.type == TK_PUNCT:
            if tok.value == "[" or tok.value == "<":
                nested += 1
            elif (tok.value == "]" or tok.value == ">") and nested > 0:
                nested -= 1
            elif tok.value == "(":
                hides = prev is not None and prev.type == TK_IDENT and prev.value.startswith("__")
                calls.append(hides)
                if hides:
                    nested += 1
            elif tok.value == ")" and len(calls) > 0:
                if calls.pop():
                    nested -= 1
        elif tok.type == TK_JUMP_REF:
            refs.append(tok)
        elif tok.type == TK_IDENT and nested == 0 and tok.value in defined:
            refs.append(tok)
        prev = tok
    return refs


def _conditional_targets(line: CodeLine) -> set[str]:
    """Labels named directly before a `jumpi` on this line."""
    targets: set[str] = set()
    toks = line.tokens
    i = 0
    while i < len(toks) - 1:
        nxt = toks[i + 1]
        if toks[i].type == TK_JUMP_REF and nxt.type == TK_OPCODE and nxt.value == "jumpi":
            targets.add(toks[i].value)
        i += 1
    return targets


def _run_end(lines: list[CodeLine], i: int) -> int:
    """Last label line of the run starting at i; comment-only lines do not break it."""
    run_end = i
    k = i
    while lines[k].label_only():
        k += 1
        while k < len(lines) and not lines[k].has_code():
            k += 1
        if k >= len(lines) or lines[k].label is None:
            break
        run_end = k
    return run_end


def nest_scope(scope: Scope) -> NestResult:
    """Assign a nesting depth to every line of a scope."""
    result = NestResult([])
    defined = scope.labels
    cond_depth: dict[str, int] = {}  # label -> depth of nearest preceding jumpi
    jumped: set[str] = set()  # labels referenced by any preceding jump
    current = 0
    lines = scope.lines
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.label is not None:
            # A run of labels with no code between them shares the deepest depth
            run_end = _run_end(lines, i)
            run_depth = 0
            j = i
            while j <= run_end:
                if lines[j].label is None:
                    j += 1
                    continue
                depth = _label_depth(lines, j, cond_depth, jumped, current, result)
                run_depth = max(run_depth, depth)
                j += 1
            j = i
            while j <= run_end:
                label_tok = lines[j].label
                if label_tok is not None and label_tok.label_name() not in result.label_depths:
                    result.label_depths[label_tok.label_name()] = run_depth
                if j < run_end:
                    result.depths.append(run_depth)
                j += 1
            current = run_depth
            i = run_end
            line = lines[i]
        result.depths.append(current)
        conditional = _conditional_targets(line)
        for ref in _references(line, defined):
            if ref.value not in defined:
                result.unresolved.append(ref)
                continue
            if ref.value in conditional:
                cond_depth[ref.value] = current
            jumped.add(ref.value)
        i += 1
    return result


def _label_depth(
    lines: list[CodeLine],
    index: int,
    cond_depth: dict[str, int],
    jumped: set[str],
    current: int,
    result: NestResult,
) -> int:
    label_tok = lines[index].label
    if label_tok is None:
        return current
    name = label_tok.label_name()
    if name in result.label_depths:
        # Redefinition; the first definition's depth stands
        return result.label_depths[name]
    if name in cond_depth:
        return cond_depth[name] + 1
    if name in jumped:
        return current
    result.unreferenced.append(Label(name, label_tok, index))
    return 0
