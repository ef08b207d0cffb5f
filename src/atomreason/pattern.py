"""
atomreason/pattern.py - Pattern trees and the s-expression grammar

Implements the template structures matched against the AtomStore:
- VariablePattern: free variable ($X), binds to any atom
- NodePattern: literal node, e.g. (Concept "Animal")
- LinkPattern: link with child patterns, e.g. (Inheritance $X (Concept "Animal"))

Grammar:
    expr     := variable | "(" KIND child* ")"
    node     := "(" NODEKIND STRING ")"
    variable := "$" NAME | "(" "Variable" STRING ")"

Kind keywords accept both the short spelling (Inheritance) and the suffixed
one (InheritanceLink, ConceptNode). Patterns are ephemeral; they never live
in the store.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Union

from .atoms import LinkKind, NodeKind, parse_kind
from .errors import InvalidArity, InvalidPatternError


class PatternBase(ABC):
    """Base class for all pattern nodes."""

    @abstractmethod
    def is_ground(self) -> bool:
        """Return True if pattern contains no variables."""

    @abstractmethod
    def variables(self) -> list[str]:
        """Variable names in order of first appearance."""

    def __str__(self) -> str:
        return to_text(self)


@dataclass(frozen=True)
class VariablePattern(PatternBase):
    """Free variable. Names always carry the leading '$'."""
    name: str

    def __post_init__(self):
        object.__setattr__(self, "name", normalize_variable(self.name))

    def is_ground(self) -> bool:
        return False

    def variables(self) -> list[str]:
        return [self.name]


@dataclass(frozen=True)
class NodePattern(PatternBase):
    """Literal node: matches atoms of the same node kind and name."""
    kind: NodeKind
    name: str

    def is_ground(self) -> bool:
        return True

    def variables(self) -> list[str]:
        return []


@dataclass(frozen=True)
class LinkPattern(PatternBase):
    """Link template whose children are matched slot by slot."""
    kind: LinkKind
    children: tuple[Pattern, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "children", tuple(self.children))

    @property
    def arity(self) -> int:
        return len(self.children)

    def is_ground(self) -> bool:
        return all(child.is_ground() for child in self.children)

    def variables(self) -> list[str]:
        seen: list[str] = []
        for child in self.children:
            for name in child.variables():
                if name not in seen:
                    seen.append(name)
        return seen


Pattern = Union[VariablePattern, NodePattern, LinkPattern]


def normalize_variable(name: str) -> str:
    if not name or not isinstance(name, str):
        raise InvalidPatternError(f"invalid variable name: {name!r}")
    name = name if name.startswith("$") else f"${name}"
    if len(name) < 2:
        raise InvalidPatternError("variable name cannot be empty")
    return name


def Var(name: str) -> VariablePattern:
    return VariablePattern(name)


def Concept(name: str) -> NodePattern:
    return NodePattern(NodeKind.CONCEPT, name)


def Predicate(name: str) -> NodePattern:
    return NodePattern(NodeKind.PREDICATE, name)


def Link(kind: LinkKind | str, *children: Pattern) -> LinkPattern:
    """Build a link pattern, checking the arity of its kind."""
    kind = parse_kind(kind)
    if not isinstance(kind, LinkKind):
        raise InvalidPatternError(f"{kind.value} is not a link kind")
    try:
        kind.check_arity(len(children))
    except InvalidArity as exc:
        raise InvalidPatternError(str(exc)) from None
    return LinkPattern(kind, children)


# =============================================================================
# PARSING
# =============================================================================

_TOKEN_RE = re.compile(r'\s*(?:(\()|(\))|"((?:[^"\\]|\\.)*)"|(")|([^\s()"]+))')
_ESCAPE_RE = re.compile(r"\\(.)")


@dataclass
class _Token:
    kind: str  # "(", ")", "str", "sym"
    value: str
    pos: int


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    end = len(text.rstrip())
    while pos < end:
        m = _TOKEN_RE.match(text, pos)
        if m is None:  # pragma: no cover - the regex accepts any non-space run
            raise InvalidPatternError(f"unexpected character at {pos}", text)
        open_, close, string, stray_quote, symbol = m.groups()
        start = m.start(m.lastindex)
        if open_:
            tokens.append(_Token("(", open_, start))
        elif close:
            tokens.append(_Token(")", close, start))
        elif string is not None:
            tokens.append(_Token("str", _ESCAPE_RE.sub(r"\1", string), start))
        elif stray_quote:
            raise InvalidPatternError(f"unterminated string at {start}", text)
        else:
            tokens.append(_Token("sym", symbol, start))
        pos = m.end()
    return tokens


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.index = 0

    def fail(self, message: str) -> InvalidPatternError:
        return InvalidPatternError(message, self.text)

    def peek(self) -> _Token | None:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def take(self) -> _Token:
        token = self.peek()
        if token is None:
            raise self.fail("unbalanced parentheses: unexpected end of pattern")
        self.index += 1
        return token

    def parse(self) -> Pattern:
        if not self.tokens:
            raise self.fail("empty pattern")
        expr = self.expr()
        extra = self.peek()
        if extra is not None:
            if extra.kind == ")":
                raise self.fail(f"unbalanced parentheses: stray ')' at {extra.pos}")
            raise self.fail(f"unexpected trailing input at {extra.pos}")
        return expr

    def expr(self) -> Pattern:
        token = self.take()
        if token.kind == "sym":
            if token.value.startswith("$"):
                return VariablePattern(token.value)
            raise self.fail(f"bare symbol {token.value!r} at {token.pos}; expected '(' or a $variable")
        if token.kind == "str":
            raise self.fail(f"unexpected string at {token.pos}; names belong inside a node expression")
        if token.kind == ")":
            raise self.fail(f"unbalanced parentheses: stray ')' at {token.pos}")

        head = self.take()
        if head.kind != "sym":
            raise self.fail(f"expected a kind keyword at {head.pos}")
        try:
            kind = parse_kind(head.value)
        except ValueError:
            raise self.fail(f"unknown kind keyword {head.value!r} at {head.pos}") from None

        if isinstance(kind, NodeKind):
            name = self.take()
            if name.kind != "str":
                raise self.fail(f"{kind.value} at {head.pos} expects one quoted name")
            self.close(kind.value, head.pos)
            if kind is NodeKind.VARIABLE:
                return VariablePattern(name.value)
            return NodePattern(kind, name.value)

        children: list[Pattern] = []
        while True:
            nxt = self.peek()
            if nxt is None:
                raise self.fail(f"unbalanced parentheses: {kind.value} at {head.pos} is never closed")
            if nxt.kind == ")":
                self.index += 1
                break
            children.append(self.expr())
        if not kind.accepts(len(children)):
            raise self.fail(
                f"{kind.value} expects {kind.describe_arity()} children, got {len(children)}"
            )
        return LinkPattern(kind, tuple(children))

    def close(self, what: str, pos: int) -> None:
        token = self.take()
        if token.kind != ")":
            raise self.fail(f"{what} at {pos} expects one quoted name")


def parse_pattern(text: str | Pattern) -> Pattern:
    """Parse pattern text into a pattern tree.

    Already-built patterns pass through unchanged.

    Raises:
        InvalidPatternError: on malformed syntax, unknown kinds or arity mismatch
    """
    if isinstance(text, (VariablePattern, NodePattern, LinkPattern)):
        return text
    if not isinstance(text, str):
        raise InvalidPatternError(f"pattern must be text, got {type(text).__name__}")
    return _Parser(text).parse()


# =============================================================================
# PRINTING
# =============================================================================

def _quote(name: str) -> str:
    return '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'


def to_text(pattern: Pattern) -> str:
    """Render a pattern back to grammar text (parse_pattern round-trips it)."""
    if isinstance(pattern, VariablePattern):
        return pattern.name
    if isinstance(pattern, NodePattern):
        return f"({pattern.kind.value} {_quote(pattern.name)})"
    if isinstance(pattern, LinkPattern):
        if not pattern.children:
            return f"({pattern.kind.value})"
        inner = " ".join(to_text(child) for child in pattern.children)
        return f"({pattern.kind.value} {inner})"
    raise InvalidPatternError(f"not a pattern: {pattern!r}")
