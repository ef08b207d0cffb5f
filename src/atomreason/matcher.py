"""
atomreason/matcher.py - Structural pattern matching against the AtomStore

Given a pattern with free variables, the matcher enumerates stored atoms
and returns every consistent binding set (variable name -> atom id).

Algorithm (recursive structural unification):
- literal node: candidate must have the same kind and name
- link: same kind, same outgoing length, then each slot recursively
- variable: binds on first sight, must agree with its binding afterwards

Candidates are visited in insertion order and enumeration stops as soon as
max_results bindings are found, so a capped query never scans the rest of
the store. The matcher is read-only.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from .atoms import AtomId
from .atomspace import AtomStore
from .pattern import LinkPattern, NodePattern, Pattern, VariablePattern, parse_pattern
from .unification import substitute

logger = logging.getLogger(__name__)

BindingSet = dict[str, AtomId]


@dataclass(frozen=True)
class Match:
    """One successful unification: the bindings and the matched root atom."""
    bindings: BindingSet
    atom_id: AtomId


@dataclass(frozen=True)
class ConjunctionMatch:
    """Bindings satisfying every pattern of a conjunction."""
    bindings: BindingSet
    atom_ids: tuple[AtomId, ...] = field(default_factory=tuple)


def _check_limit(max_results: int | None) -> None:
    if max_results is not None and max_results < 0:
        raise ValueError("max_results must be >= 0")


class PatternMatcher:
    """Read-only unification engine over an AtomStore.

    Example:
        matcher = PatternMatcher(store)
        matcher.match('(Inheritance $X (Concept "Animal"))')
        # [{"$X": 1}]
    """

    def __init__(self, store: AtomStore):
        self.store = store

    def match(self, pattern: Pattern | str, max_results: int | None = None) -> list[BindingSet]:
        """All binding sets for the pattern, capped at max_results.

        Raises:
            InvalidPatternError: malformed pattern text
            ValueError: negative max_results
        """
        return [m.bindings for m in self.find(pattern, max_results)]

    def find(self, pattern: Pattern | str, max_results: int | None = None) -> list[Match]:
        """Like match() but keeps the matched root atom of every result."""
        pattern = parse_pattern(pattern)
        _check_limit(max_results)
        results: list[Match] = []
        if max_results == 0:
            return results
        for m in self.iter_matches(pattern):
            results.append(m)
            if max_results is not None and len(results) >= max_results:
                break
        logger.debug("Pattern %s matched %d atom(s)", pattern, len(results))
        return results

    def iter_matches(
        self,
        pattern: Pattern,
        bindings: BindingSet | None = None,
    ) -> Iterator[Match]:
        """Lazily yield matches, extending the given partial bindings."""
        bindings = bindings or {}
        for atom_id in self._candidates(pattern, bindings):
            extended = self.unify(pattern, atom_id, bindings)
            if extended is not None:
                yield Match(extended, atom_id)

    def unify(self, pattern: Pattern, atom_id: AtomId, bindings: BindingSet) -> BindingSet | None:
        """Unify a pattern with one stored atom.

        Returns the extended bindings (a new dict) or None on mismatch.
        """
        if isinstance(pattern, VariablePattern):
            bound = bindings.get(pattern.name)
            if bound is not None:
                return bindings if bound == atom_id else None
            extended = dict(bindings)
            extended[pattern.name] = atom_id
            return extended

        atom = self.store.get_atom(atom_id)

        if isinstance(pattern, NodePattern):
            if atom.kind is pattern.kind and atom.name == pattern.name:
                return bindings
            return None

        if isinstance(pattern, LinkPattern):
            if atom.kind is not pattern.kind or len(atom.outgoing) != len(pattern.children):
                return None
            current: BindingSet | None = bindings
            for child, ref in zip(pattern.children, atom.outgoing):
                current = self.unify(child, ref, current)
                if current is None:
                    return None
            return current

        return None

    def _candidates(self, pattern: Pattern, bindings: BindingSet) -> list[AtomId]:
        """Root candidates in insertion order."""
        if isinstance(pattern, VariablePattern):
            bound = bindings.get(pattern.name)
            if bound is not None:
                return [bound] if bound in self.store else []
            return self.store.ids()

        if isinstance(pattern, NodePattern):
            return self.store.find_by_name(pattern.name)

        # Narrow links through the incoming set of the first resolvable child.
        # Link ids grow with insertion, so sorting keeps insertion order.
        for child in pattern.children:
            anchors = self._resolve(child, bindings)
            if anchors is None:
                continue
            found: set[AtomId] = set()
            for anchor in anchors:
                for link_id in self.store.incoming(anchor):
                    if self.store.get_atom(link_id).kind is pattern.kind:
                        found.add(link_id)
            return sorted(found)
        return self.store.ids(pattern.kind)

    def _resolve(self, pattern: Pattern, bindings: BindingSet) -> list[AtomId] | None:
        """Atom ids a child pattern can denote, or None when unconstrained."""
        if isinstance(pattern, VariablePattern):
            bound = bindings.get(pattern.name)
            return [bound] if bound is not None else None
        if isinstance(pattern, NodePattern):
            return [
                atom_id for atom_id in self.store.find_by_name(pattern.name)
                if self.store.get_atom(atom_id).kind is pattern.kind
            ]
        return None

    def instantiate(self, pattern: Pattern, bindings: BindingSet) -> Pattern:
        """Replace bound variables with the literal patterns of their atoms."""
        theta = {name: self.store.to_pattern(atom_id) for name, atom_id in bindings.items()}
        return substitute(pattern, theta)

    def lookup(self, pattern: Pattern) -> AtomId | None:
        """Id of the first stored atom matching the pattern, or None."""
        for m in self.iter_matches(pattern):
            return m.atom_id
        return None

    # -------------------------------------------------------------------------
    # Conjunctions
    # -------------------------------------------------------------------------

    def iter_conjunction(
        self,
        patterns: Sequence[Pattern],
        bindings: BindingSet | None = None,
    ) -> Iterator[ConjunctionMatch]:
        """Yield bindings that satisfy every pattern, sharing variables.

        Each result carries the atom matched by each pattern, in order.
        """
        yield from self._conjoin(list(patterns), bindings or {}, ())

    def _conjoin(
        self,
        patterns: list[Pattern],
        bindings: BindingSet,
        consumed: tuple[AtomId, ...],
    ) -> Iterator[ConjunctionMatch]:
        if not patterns:
            yield ConjunctionMatch(bindings, consumed)
            return

        first, *rest = patterns
        for m in self.iter_matches(first, bindings):
            yield from self._conjoin(rest, m.bindings, consumed + (m.atom_id,))

    def match_all(
        self,
        patterns: Sequence[Pattern | str],
        max_results: int | None = None,
        bindings: BindingSet | None = None,
    ) -> list[ConjunctionMatch]:
        """All solutions of a conjunction, capped at max_results."""
        parsed = [parse_pattern(p) for p in patterns]
        _check_limit(max_results)
        results: list[ConjunctionMatch] = []
        if max_results == 0:
            return results
        for m in self.iter_conjunction(parsed, bindings):
            results.append(m)
            if max_results is not None and len(results) >= max_results:
                break
        return results


def match_pattern(store: AtomStore, pattern_text: str, max_results: int | None = 100) -> list[BindingSet]:
    """Boundary operation: parse pattern text and match it against a store.

    Raises:
        InvalidPatternError: malformed syntax, unknown kind, arity mismatch
    """
    return PatternMatcher(store).match(pattern_text, max_results)
