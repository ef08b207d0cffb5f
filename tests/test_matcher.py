"""
Tests for the structural pattern matcher.

Validates:
- Variable binding against stored atoms
- Insertion order and early exit at max_results
- Consistency of shared variables and conjunctions
"""

import pytest

from atomreason import AtomStore, PatternMatcher, match_pattern
from atomreason.errors import InvalidPatternError
from atomreason.pattern import parse_pattern


class TestMatch:
    """Test suite for single-pattern matching."""

    def test_human_animal_scenario(self, human_store):
        store, ids = human_store
        results = match_pattern(store, '(Inheritance $X (Concept "Animal"))')
        assert results == [{"$X": ids["human"]}]

    def test_max_results_in_insertion_order(self, store):
        animal = store.add_atom("Concept", "Animal")
        kinds = [store.add_atom("Concept", f"K{i}") for i in range(5)]
        for k in kinds:
            store.add_atom("Inheritance", outgoing=[k, animal])
        results = match_pattern(store, '(Inheritance $X (Concept "Animal"))', max_results=2)
        assert results == [{"$X": kinds[0]}, {"$X": kinds[1]}]

    def test_zero_max_results(self, human_store):
        store, _ = human_store
        assert match_pattern(store, '(Inheritance $X $Y)', max_results=0) == []

    def test_negative_max_results(self, human_store):
        store, _ = human_store
        with pytest.raises(ValueError):
            match_pattern(store, '(Inheritance $X $Y)', max_results=-1)

    def test_malformed_pattern(self, human_store):
        store, _ = human_store
        with pytest.raises(InvalidPatternError):
            match_pattern(store, '(Inheritance $X')

    def test_literal_node(self, human_store):
        store, ids = human_store
        assert match_pattern(store, '(Concept "Human")') == [{}]
        assert match_pattern(store, '(Predicate "Human")') == []

    def test_bare_variable_enumerates_everything(self, human_store):
        store, ids = human_store
        results = match_pattern(store, "$X")
        assert [r["$X"] for r in results] == [ids["human"], ids["animal"], ids["link"]]

    def test_kind_and_length_must_match(self, store):
        a = store.add_atom("Concept", "A")
        b = store.add_atom("Concept", "B")
        store.add_atom("Similarity", outgoing=[a, b])
        store.add_atom("List", outgoing=[a, b, b])
        assert match_pattern(store, "(Inheritance $X $Y)") == []
        assert match_pattern(store, "(List $X $Y)") == []
        assert match_pattern(store, "(List $X $Y $Y)") == [{"$X": a, "$Y": b}]

    def test_repeated_variable_must_agree(self, store):
        a = store.add_atom("Concept", "A")
        b = store.add_atom("Concept", "B")
        store.add_atom("Similarity", outgoing=[a, b])
        loop = store.add_atom("Similarity", outgoing=[a, a])
        matcher = PatternMatcher(store)
        found = matcher.find("(Similarity $X $X)")
        assert [(m.bindings, m.atom_id) for m in found] == [({"$X": a}, loop)]

    def test_nested_link(self, store):
        likes = store.add_atom("Predicate", "likes")
        ann = store.add_atom("Concept", "Ann")
        bob = store.add_atom("Concept", "Bob")
        pair = store.add_atom("List", outgoing=[ann, bob])
        store.add_atom("Evaluation", outgoing=[likes, pair])
        results = match_pattern(store, '(Evaluation (Predicate "likes") (List $A $B))')
        assert results == [{"$A": ann, "$B": bob}]

    def test_variable_matching_link(self, human_store):
        store, ids = human_store
        store.add_atom("List", outgoing=[ids["link"]])
        results = match_pattern(store, "(List $L)")
        assert results == [{"$L": ids["link"]}]

    def test_read_only(self, human_store):
        store, _ = human_store
        before = store.stats["atoms_added"]
        match_pattern(store, "(Inheritance $X $Y)")
        assert len(store) == 3
        assert store.stats["atoms_added"] == before

    def test_deterministic(self, taxonomy):
        store, _ = taxonomy
        first = match_pattern(store, "(Inheritance $X $Y)")
        second = match_pattern(store, "(Inheritance $X $Y)")
        assert first == second


class TestConjunction:
    """Test suite for conjunctive matching."""

    def test_shared_variables(self, taxonomy):
        store, ids = taxonomy
        matcher = PatternMatcher(store)
        results = matcher.match_all(["(Inheritance $A $B)", "(Inheritance $B $C)"])
        assert [r.bindings for r in results] == [
            {"$A": ids["Cat"], "$B": ids["Mammal"], "$C": ids["Animal"]},
            {"$A": ids["Dog"], "$B": ids["Mammal"], "$C": ids["Animal"]},
        ]
        assert results[0].atom_ids == (ids["cat_mammal"], ids["mammal_animal"])

    def test_initial_bindings(self, taxonomy):
        store, ids = taxonomy
        matcher = PatternMatcher(store)
        results = matcher.match_all(
            ["(Inheritance $A $B)"], bindings={"$A": ids["Dog"]}
        )
        assert [r.bindings["$B"] for r in results] == [ids["Mammal"]]

    def test_conjunction_cap(self, taxonomy):
        store, _ = taxonomy
        matcher = PatternMatcher(store)
        assert len(matcher.match_all(["(Inheritance $A $B)", "(Inheritance $B $C)"], 1)) == 1


class TestHelpers:
    """Test suite for instantiate and lookup."""

    def test_instantiate(self, human_store):
        store, ids = human_store
        matcher = PatternMatcher(store)
        pattern = parse_pattern("(Similarity $X $Y)")
        result = matcher.instantiate(pattern, {"$X": ids["human"]})
        assert str(result) == '(Similarity (Concept "Human") $Y)'

    def test_lookup(self, human_store):
        store, ids = human_store
        matcher = PatternMatcher(store)
        assert matcher.lookup(parse_pattern('(Inheritance (Concept "Human") $Y)')) == ids["link"]
        assert matcher.lookup(parse_pattern('(Inheritance (Concept "Animal") $Y)')) is None

    def test_matcher_on_empty_store(self):
        assert PatternMatcher(AtomStore()).match("(Inheritance $X $Y)") == []
