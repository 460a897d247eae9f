"""Role inference for naming checks.

A constant's role comes from how bodies use it: the opcode that immediately
consumes a `[NAME]` reference decides. Macros get a role from the shape of
their body. Inference never guesses: a name whose usages disagree, or that
has no role-bearing usage at all, is left unresolved.
"""

from __future__ import annotations

from .ast import ConstantDecl, ConstructorDecl, HuffFile, MacroDecl, MainDecl, Scope, TestDecl
from .tokens import TK_IDENT, TK_LABEL, TK_NUMBER, TK_OPCODE, Token

ROLE_STORAGE_SLOT = "storage-slot"
ROLE_SELECTOR = "selector"
ROLE_POINTER = "pointer"
ROLE_TYPE_CAST = "type-cast"
ROLE_ABI_DISPATCH = "abi-dispatch"
# A usage that does not point at any role
ROLE_NEUTRAL = "neutral"

ROLE_SUFFIXES: dict[str, str] = {
    ROLE_STORAGE_SLOT: "_SLOT",
    ROLE_SELECTOR: "_SELECTOR",
    ROLE_POINTER: "_PTR",
    ROLE_ABI_DISPATCH: "_DISPATCHER",
}

ROLE_PREFIXES: dict[str, str] = {
    ROLE_TYPE_CAST: "TO_",
}

ROLE_DESCRIPTIONS: dict[str, str] = {
    ROLE_STORAGE_SLOT: "a storage slot",
    ROLE_SELECTOR: "a function selector",
    ROLE_POINTER: "a memory pointer",
    ROLE_TYPE_CAST: "a type cast",
    ROLE_ABI_DISPATCH: "an ABI dispatcher",
}

STORAGE_OPCODES: set[str] = {"sload", "sstore", "tload", "tstore"}
MEMORY_OPCODES: set[str] = {"mload", "mstore", "mstore8"}
CAST_OPCODES: set[str] = {"and", "or", "xor", "not", "shl", "shr", "sar", "signextend", "byte", "iszero"}

STORAGE_BUILTIN = "FREE_STORAGE_POINTER"

STATUS_RESOLVED = "resolved"
STATUS_AMBIGUOUS = "ambiguous"
STATUS_UNKNOWN = "unknown"


def code_tokens(scope: Scope) -> list[Token]:
    """All code tokens of a scope in order, without label definitions."""
    result: list[Token] = []
    for line in scope.lines:
        for tok in line.tokens:
            if tok.type != TK_LABEL:
                result.append(tok)
    return result


def has_selector_extraction(tokens: list[Token]) -> bool:
    """True when a `calldataload` is later shifted right (selector extraction)."""
    seen_load = False
    for tok in tokens:
        if tok.type != TK_OPCODE:
            continue
        if tok.value == "calldataload":
            seen_load = True
        elif tok.value == "shr" and seen_load:
            return True
    return False


def _usage_role(consumer: Token | None, selector_context: bool) -> str:
    if consumer is None or consumer.type != TK_OPCODE:
        return ROLE_NEUTRAL
    if consumer.value in STORAGE_OPCODES:
        return ROLE_STORAGE_SLOT
    if consumer.value in MEMORY_OPCODES:
        return ROLE_POINTER
    if consumer.value == "eq" and selector_context:
        return ROLE_SELECTOR
    return ROLE_NEUTRAL


def constant_usages(scope: Scope) -> list[tuple[str, str]]:
    """(constant name, usage role) for every `[NAME]` reference in a scope."""
    toks = code_tokens(scope)
    selector_context = has_selector_extraction(toks)
    usages: list[tuple[str, str]] = []
    i = 0
    while i + 2 < len(toks):
        if toks[i].is_punct("[") and toks[i + 1].type == TK_IDENT and toks[i + 2].is_punct("]"):
            consumer = toks[i + 3] if i + 3 < len(toks) else None
            usages.append((toks[i + 1].value, _usage_role(consumer, selector_context)))
            i += 3
            continue
        i += 1
    return usages


class ProjectIndex:
    """Read-only usage facts gathered across every file of a batch."""

    def __init__(self) -> None:
        self.constant_roles: dict[str, dict[str, int]] = {}

    def add_usage(self, name: str, role: str) -> None:
        if name not in self.constant_roles:
            self.constant_roles[name] = {}
        counts = self.constant_roles[name]
        counts[role] = counts.get(role, 0) + 1

    @staticmethod
    def build(files: list[HuffFile]) -> ProjectIndex:
        index = ProjectIndex()
        for hf in files:
            for decl in hf.macros():
                for name, role in constant_usages(decl.scope):
                    index.add_usage(name, role)
        return index


def infer_constant_role(decl: ConstantDecl, index: ProjectIndex) -> tuple[str, str | None]:
    """Returns (status, role) for a constant declaration."""
    roles: set[str] = set()
    counts = index.constant_roles.get(decl.name, {})
    for role in counts:
        roles.add(role)
    if decl.builtin_call and decl.value.startswith(STORAGE_BUILTIN + "("):
        roles.add(ROLE_STORAGE_SLOT)
    if len(roles) == 0:
        return STATUS_UNKNOWN, None
    if len(roles) > 1:
        return STATUS_AMBIGUOUS, None
    only = roles.pop()
    if only == ROLE_NEUTRAL:
        return STATUS_UNKNOWN, None
    return STATUS_RESOLVED, only


def infer_macro_role(decl: MacroDecl) -> str | None:
    if isinstance(decl, MainDecl) or isinstance(decl, ConstructorDecl) or isinstance(decl, TestDecl):
        return None
    toks = code_tokens(decl.scope)
    if has_selector_extraction(toks):
        for tok in toks:
            if tok.type == TK_OPCODE and tok.value == "jumpi":
                return ROLE_ABI_DISPATCH
        return None
    if decl.takes != 1 or decl.returns != 1 or len(toks) == 0:
        return None
    casts = 0
    for tok in toks:
        if tok.type == TK_OPCODE and tok.value in CAST_OPCODES:
            casts += 1
        elif tok.type != TK_NUMBER:
            return None
    if casts == 0:
        return None
    return ROLE_TYPE_CAST


def conventional_name(name: str, role: str) -> str | None:
    """The name the role calls for, or None when `name` already conforms."""
    if role in ROLE_SUFFIXES:
        suffix = ROLE_SUFFIXES[role]
        if name.endswith(suffix):
            return None
        base = name
        for other in ROLE_SUFFIXES.values():
            if base.endswith(other):
                base = base[: len(base) - len(other)]
                break
        return base + suffix
    prefix = ROLE_PREFIXES[role]
    if name.startswith(prefix):
        return None
    return prefix + name
