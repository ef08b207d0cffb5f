"""
atomreason/atoms.py - Atom kinds and the Atom record

Atoms come in two families:
- Nodes (Concept, Predicate, Variable): identified by kind and name
- Links (Inheritance, Similarity, Evaluation, List): identified by kind
  and an ordered outgoing set of atom ids

Links never hold other atoms directly, only their ids; resolution always
goes through the AtomStore, so cycles in the graph are harmless.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NewType, Union

from .errors import InvalidArity
from .truth import DEFAULT_TRUTH, TruthValue

AtomId = NewType("AtomId", int)


class NodeKind(Enum):
    CONCEPT = "Concept"
    PREDICATE = "Predicate"
    VARIABLE = "Variable"

    @property
    def is_link(self) -> bool:
        return False


class LinkKind(Enum):
    INHERITANCE = "Inheritance"
    SIMILARITY = "Similarity"
    EVALUATION = "Evaluation"
    LIST = "List"

    @property
    def is_link(self) -> bool:
        return True

    @property
    def arity(self) -> tuple[int, int | None]:
        """(minimum, maximum) outgoing length; None means unbounded."""
        return _ARITY[self]

    def accepts(self, n: int) -> bool:
        low, high = self.arity
        return n >= low and (high is None or n <= high)

    def describe_arity(self) -> str:
        low, high = self.arity
        if high is None:
            return f"at least {low}" if low else "any number of"
        if low == high:
            return str(low)
        return f"{low} to {high}"

    def check_arity(self, n: int) -> None:
        if not self.accepts(n):
            raise InvalidArity(self.value, self.describe_arity(), n)


AtomKind = Union[NodeKind, LinkKind]

_ARITY: dict[LinkKind, tuple[int, int | None]] = {
    LinkKind.INHERITANCE: (2, 2),
    LinkKind.SIMILARITY: (2, 2),
    # predicate followed by one or more arguments
    LinkKind.EVALUATION: (2, None),
    LinkKind.LIST: (0, None),
}

_KEYWORDS: dict[str, AtomKind] = {}
for _kind in NodeKind:
    _KEYWORDS[_kind.value] = _kind
    _KEYWORDS[_kind.value + "Node"] = _kind
for _kind in LinkKind:
    _KEYWORDS[_kind.value] = _kind
    _KEYWORDS[_kind.value + "Link"] = _kind
# generic N-ary link
_KEYWORDS["Link"] = LinkKind.LIST


def parse_kind(value: AtomKind | str) -> AtomKind:
    """Resolve a kind keyword ("Concept", "ConceptNode", "InheritanceLink"...).

    Raises:
        ValueError: if the keyword names no known kind
    """
    if isinstance(value, (NodeKind, LinkKind)):
        return value
    try:
        return _KEYWORDS[value]
    except (KeyError, TypeError):
        raise ValueError(f"unknown atom kind: {value!r}") from None


def is_kind_keyword(value: str) -> bool:
    return value in _KEYWORDS


@dataclass(frozen=True)
class Atom:
    """A stored node or link. Immutable; the store swaps records on update."""
    id: AtomId
    kind: AtomKind
    name: str | None = None
    outgoing: tuple[AtomId, ...] = ()
    truth: TruthValue = field(default=DEFAULT_TRUTH)

    @property
    def is_node(self) -> bool:
        return not self.kind.is_link

    @property
    def is_link(self) -> bool:
        return self.kind.is_link

    @property
    def arity(self) -> int:
        return len(self.outgoing)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "atomId": self.id,
            "atomType": self.kind.value,
            "truthValue": self.truth.to_dict(),
        }
        if self.is_node:
            data["atomName"] = self.name
        else:
            data["outgoing"] = list(self.outgoing)
        return data
