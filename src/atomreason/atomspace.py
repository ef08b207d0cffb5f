"""
atomreason/atomspace.py - Hypergraph atom store

The AtomStore owns every atom and is the only way to reach one: links
reference other atoms by id, never by object, so the graph can contain
cycles without any ownership cycle.

Features:
- Integer ids handed out in insertion order (stable for the store lifetime)
- Name, kind, incoming and exact-structure indexes
- Validated truth values, replaced only through set_truth_value
- Snapshots for readers that must not see a concurrent writer
- Round-trip assertion of ground patterns (inference conclusions)

Concurrency contract: writes (add_atom, set_truth_value, assert_pattern)
serialize on an internal lock. Reads are lock-free and are only safe while
no writer is active (lookup counters are the one exception and are
locked); concurrent readers should work on snapshot().
"""
from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Iterable, Iterator
from typing import Any

from .atoms import Atom, AtomId, AtomKind, LinkKind, NodeKind, parse_kind
from .errors import (
    AtomSpaceError,
    DanglingReference,
    InvalidArity,
    InvalidPatternError,
    NotFound,
)
from .pattern import LinkPattern, NodePattern, Pattern, VariablePattern, parse_pattern, to_text
from .truth import DEFAULT_TRUTH, TruthValue

logger = logging.getLogger(__name__)


class AtomStore:
    """Arena of typed nodes and links with probabilistic truth values.

    Example:
        store = AtomStore()
        human = store.add_atom("Concept", "Human", truth=(0.9, 0.8))
        animal = store.add_atom("Concept", "Animal")
        store.add_atom("Inheritance", outgoing=[human, animal], truth=(0.95, 0.9))

        store.find_by_name("Human")  # [human]
    """

    def __init__(self):
        self._atoms: dict[AtomId, Atom] = {}
        self._next_id = 1

        # name -> ids (nodes only), insertion order
        self._by_name: dict[str, list[AtomId]] = defaultdict(list)

        # kind -> ids, insertion order
        self._by_kind: dict[AtomKind, list[AtomId]] = defaultdict(list)

        # atom id -> ids of links that reference it, insertion order
        self._incoming: dict[AtomId, list[AtomId]] = defaultdict(list)

        # (kind, outgoing) -> ids, for exact structural lookup
        self._by_structure: dict[tuple[LinkKind, tuple[AtomId, ...]], list[AtomId]] = defaultdict(list)

        self._lock = threading.RLock()

        self._stats = {
            "atoms_added": 0,
            "truth_updates": 0,
            "lookups": 0,
        }

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def add_atom(
        self,
        kind: AtomKind | str,
        name: str | None = None,
        outgoing: Iterable[int] | None = None,
        truth: Any = None,
    ) -> AtomId:
        """Add a node or link and return its fresh id.

        Args:
            kind: NodeKind/LinkKind or a kind keyword ("Concept", "InheritanceLink")
            name: Node name (nodes only)
            outgoing: Ordered atom ids (links only)
            truth: TruthValue, (strength, confidence) pair or mapping;
                defaults to (0.8, 0.9)

        Raises:
            InvalidArity: outgoing length does not fit the kind
            InvalidTruthValue: strength or confidence outside [0, 1]
            DanglingReference: an outgoing id is not in the store
        """
        try:
            kind = parse_kind(kind)
        except ValueError as exc:
            raise AtomSpaceError(str(exc)) from None
        out = tuple(outgoing) if outgoing is not None else ()

        if isinstance(kind, NodeKind):
            if out:
                raise InvalidArity(kind.value, "0", len(out))
            if not isinstance(name, str) or not name:
                raise AtomSpaceError(f"{kind.value} atoms require a non-empty name")
        else:
            kind.check_arity(len(out))
            if name is not None:
                raise AtomSpaceError(f"{kind.value} links do not take a name")

        tv = DEFAULT_TRUTH if truth is None else TruthValue.coerce(truth)

        with self._lock:
            for ref in out:
                if ref not in self._atoms:
                    raise DanglingReference(ref)

            atom_id = AtomId(self._next_id)
            self._next_id += 1
            atom = Atom(id=atom_id, kind=kind, name=name, outgoing=out, truth=tv)
            self._index(atom)
            self._stats["atoms_added"] += 1

        logger.debug("Added atom %s %s", atom_id, kind.value)
        return atom_id

    def _index(self, atom: Atom) -> None:
        self._atoms[atom.id] = atom
        self._by_kind[atom.kind].append(atom.id)
        if atom.is_node:
            self._by_name[atom.name].append(atom.id)
        else:
            for ref in dict.fromkeys(atom.outgoing):
                self._incoming[ref].append(atom.id)
            self._by_structure[(atom.kind, atom.outgoing)].append(atom.id)

    def set_truth_value(self, atom_id: int, truth: Any) -> TruthValue:
        """Replace an atom's truth value and return the previous one.

        Raises:
            NotFound: unknown id
            InvalidTruthValue: strength or confidence outside [0, 1]
        """
        tv = TruthValue.coerce(truth)
        with self._lock:
            atom = self.get_atom(atom_id)
            self._atoms[atom.id] = Atom(
                id=atom.id, kind=atom.kind, name=atom.name, outgoing=atom.outgoing, truth=tv
            )
            self._stats["truth_updates"] += 1
        return atom.truth

    def assert_pattern(self, pattern: Pattern | str, truth: Any = None) -> AtomId:
        """Add a ground pattern tree, reusing atoms that already exist.

        Missing nodes and links are created; only the root receives `truth`
        (existing roots have their truth replaced when `truth` is given).
        Used to write inference conclusions back into the store.

        Raises:
            InvalidPatternError: the pattern still contains variables
            InvalidTruthValue: strength or confidence outside [0, 1]
        """
        pattern = parse_pattern(pattern)
        if not pattern.is_ground():
            raise InvalidPatternError(f"cannot assert non-ground pattern {to_text(pattern)}")
        # Validated before any child is created, so a bad truth adds nothing
        tv = TruthValue.coerce(truth) if truth is not None else None
        with self._lock:
            root = self._ensure(pattern, tv)
            if tv is not None and self._atoms[root].truth != tv:
                self.set_truth_value(root, tv)
        return root

    def _ensure(self, pattern: Pattern, truth: TruthValue | None) -> AtomId:
        if isinstance(pattern, NodePattern):
            existing = self.find_node(pattern.kind, pattern.name)
            if existing is not None:
                return existing
            return self.add_atom(pattern.kind, pattern.name, truth=truth)
        assert isinstance(pattern, LinkPattern)
        children = [self._ensure(child, None) for child in pattern.children]
        existing = self.find_link(pattern.kind, children)
        if existing is not None:
            return existing
        return self.add_atom(pattern.kind, outgoing=children, truth=truth)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_atom(self, atom_id: int) -> Atom:
        """Return the atom record for an id.

        Raises:
            NotFound: unknown id
        """
        try:
            return self._atoms[atom_id]
        except (KeyError, TypeError):
            raise NotFound(atom_id) from None

    def get_truth_value(self, atom_id: int) -> TruthValue:
        return self.get_atom(atom_id).truth

    def _count_lookup(self) -> None:
        # shared by concurrent readers
        with self._lock:
            self._stats["lookups"] += 1

    def find_by_name(self, name: str) -> list[AtomId]:
        """Ids of nodes carrying this name, in insertion order."""
        self._count_lookup()
        return list(self._by_name.get(name, ()))

    def find_node(self, kind: NodeKind | str, name: str) -> AtomId | None:
        """First node of the given kind and name, or None."""
        kind = parse_kind(kind)
        for atom_id in self._by_name.get(name, ()):
            if self._atoms[atom_id].kind is kind:
                return atom_id
        return None

    def find_link(self, kind: LinkKind | str, outgoing: Iterable[int]) -> AtomId | None:
        """First link with exactly this kind and outgoing set, or None."""
        ids = self._by_structure.get((parse_kind(kind), tuple(outgoing)))
        return ids[0] if ids else None

    def query_atoms(
        self,
        text: str = "",
        kind: AtomKind | str | None = None,
        max_results: int = 100,
    ) -> list[Atom]:
        """Search nodes whose name contains `text`, optionally of one kind.

        An empty `text` with a link kind lists links of that kind.
        """
        if max_results < 0:
            raise ValueError("max_results must be >= 0")
        try:
            wanted = parse_kind(kind) if kind is not None else None
        except ValueError as exc:
            raise AtomSpaceError(str(exc)) from None
        self._count_lookup()
        results: list[Atom] = []
        for atom_id in self.ids(wanted):
            if len(results) >= max_results:
                break
            atom = self._atoms[atom_id]
            if atom.is_node:
                if text in atom.name:
                    results.append(atom)
            elif not text:
                results.append(atom)
        return results

    def incoming(self, atom_id: int) -> list[AtomId]:
        """Ids of links that reference the atom, in insertion order."""
        self.get_atom(atom_id)
        return list(self._incoming.get(atom_id, ()))

    def ids(self, kind: AtomKind | str | None = None) -> list[AtomId]:
        """All ids (or ids of one kind) in insertion order."""
        if kind is None:
            return list(self._atoms)
        return list(self._by_kind.get(parse_kind(kind), ()))

    def atoms(self, kind: AtomKind | str | None = None) -> Iterator[Atom]:
        for atom_id in self.ids(kind):
            yield self._atoms[atom_id]

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def to_pattern(self, atom_id: int) -> NodePattern | LinkPattern:
        """Literal pattern tree describing a stored atom.

        Variable nodes render as variables. Self-referencing structures are
        impossible because ids are only handed out after their targets exist.
        """
        atom = self.get_atom(atom_id)
        if atom.is_node:
            if atom.kind is NodeKind.VARIABLE:
                return VariablePattern(atom.name)
            return NodePattern(atom.kind, atom.name)
        return LinkPattern(atom.kind, tuple(self.to_pattern(ref) for ref in atom.outgoing))

    def to_sexpr(self, atom_id: int) -> str:
        """Grammar text for a stored atom, e.g. (Inheritance (Concept "A") (Concept "B"))."""
        return to_text(self.to_pattern(atom_id))

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def snapshot(self) -> AtomStore:
        """Independent copy of the store; ids are preserved."""
        with self._lock:
            return self.subset(self._atoms)

    def subset(self, atom_ids: Iterable[int]) -> AtomStore:
        """Copy of the given atoms plus everything they reference; ids are preserved."""
        keep: set[AtomId] = set()
        stack = list(atom_ids)
        while stack:
            atom = self.get_atom(stack.pop())
            if atom.id in keep:
                continue
            keep.add(atom.id)
            stack.extend(atom.outgoing)

        copy = AtomStore()
        for atom_id in sorted(keep):
            copy._index(self._atoms[atom_id])
        copy._next_id = self._next_id
        copy._stats["atoms_added"] = len(keep)
        return copy

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._atoms)

    def __contains__(self, atom_id: object) -> bool:
        return atom_id in self._atoms

    def __iter__(self) -> Iterator[Atom]:
        return iter(list(self._atoms.values()))

    @property
    def node_count(self) -> int:
        return sum(1 for atom in self._atoms.values() if atom.is_node)

    @property
    def link_count(self) -> int:
        return len(self._atoms) - self.node_count

    @property
    def stats(self) -> dict[str, int]:
        return dict(self._stats)
