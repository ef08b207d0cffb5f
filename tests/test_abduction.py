"""
Tests for abductive reasoning.

Validates:
- Only hypotheses predicting the observation are scored
- plausibility = prior * consistency, sorted non-increasing
- Hypothesis sources: explicit, generator function, rules
"""

import math

import pytest

from atomreason import AtomStore
from atomreason.abduction import abduce
from atomreason.errors import InvalidInferenceInput, InvalidPatternError

WET_LAWN = '(Evaluation (Predicate "wet") (Concept "lawn"))'

HYPOTHESES = [
    {
        "name": "rain",
        "statement": '(Evaluation (Predicate "rained") $P)',
        "predicts": '(Evaluation (Predicate "wet") $P)',
        "prior": 0.6,
        "requires": ['(Evaluation (Predicate "cloudy") $P)'],
    },
    {
        "name": "sprinkler",
        "statement": '(Evaluation (Predicate "sprinkler_on") $P)',
        "predicts": '(Evaluation (Predicate "wet") $P)',
        "prior": 0.5,
    },
    {
        "name": "flood",
        "statement": '(Evaluation (Predicate "river_high") $P)',
        "predicts": '(Evaluation (Predicate "flooded") $P)',
        "prior": 0.9,
    },
]


@pytest.fixture
def garden() -> AtomStore:
    store = AtomStore()
    lawn = store.add_atom("Concept", "lawn")
    wet = store.add_atom("Predicate", "wet")
    cloudy = store.add_atom("Predicate", "cloudy")
    store.add_atom("Evaluation", outgoing=[wet, lawn], truth=(1.0, 0.9))
    store.add_atom("Evaluation", outgoing=[cloudy, lawn], truth=(0.5, 0.9))
    return store


class TestAbduction:
    """Test suite for abduce."""

    def test_ranking(self, garden):
        result = abduce(garden, WET_LAWN, HYPOTHESES)
        assert [h.name for h in result.hypotheses] == ["sprinkler", "rain"]
        assert math.isclose(result.hypotheses[0].plausibility, 0.5)
        assert math.isclose(result.hypotheses[1].plausibility, 0.3)
        assert result.best_explanation.name == "sprinkler"

    def test_non_increasing(self, garden):
        result = abduce(garden, WET_LAWN, HYPOTHESES)
        scores = [h.plausibility for h in result.hypotheses]
        assert scores == sorted(scores, reverse=True)

    def test_requires_supports(self, garden):
        rain = abduce(garden, WET_LAWN, HYPOTHESES[:1]).hypotheses[0]
        assert rain.consistency == 0.5
        assert rain.supporting_evidence == ['(Evaluation (Predicate "cloudy") (Concept "lawn"))']
        assert rain.statement == '(Evaluation (Predicate "rained") (Concept "lawn"))'

    def test_missing_requirement_scores_zero(self, garden):
        hypothesis = dict(HYPOTHESES[0], requires=['(Evaluation (Predicate "windy") $P)'])
        result = abduce(garden, WET_LAWN, [hypothesis])
        assert result.hypotheses[0].plausibility == 0.0

    def test_known_statement_scales_consistency(self, garden):
        lawn = garden.find_node("Concept", "lawn")
        sprinkler = garden.add_atom("Predicate", "sprinkler_on")
        garden.add_atom("Evaluation", outgoing=[sprinkler, lawn], truth=(0.4, 0.9))
        result = abduce(garden, WET_LAWN, HYPOTHESES)
        assert [h.name for h in result.hypotheses] == ["rain", "sprinkler"]
        assert math.isclose(result.hypotheses[1].plausibility, 0.2)

    def test_stable_ties(self, garden):
        twins = [
            dict(HYPOTHESES[1], name="first"),
            dict(HYPOTHESES[1], name="second"),
        ]
        result = abduce(garden, WET_LAWN, twins)
        assert [h.name for h in result.hypotheses] == ["first", "second"]

    def test_max_results(self, garden):
        extra = dict(HYPOTHESES[1], name="dew", prior=0.2)
        result = abduce(garden, WET_LAWN, HYPOTHESES + [extra], params={"maxResults": 2})
        assert len(result.hypotheses) == 2
        assert result.bound_reached is True

    def test_generator_source(self, garden):
        def generate(observation):
            yield HYPOTHESES[1]
        result = abduce(garden, WET_LAWN, generate)
        assert [h.name for h in result.hypotheses] == ["sprinkler"]

    def test_rules_as_source(self, taxonomy, transitivity):
        store, _ = taxonomy
        result = abduce(
            store, '(Inheritance (Concept "Cat") (Concept "Animal"))', rules=transitivity
        )
        assert [h.name for h in result.hypotheses] == ["transitivity"]
        assert result.hypotheses[0].plausibility == 0.9
        assert " AND " in result.hypotheses[0].statement

    def test_no_candidates(self, garden):
        result = abduce(garden, WET_LAWN)
        assert result.hypotheses == []
        assert result.best_explanation is None
        assert result.to_dict()["bestExplanation"] is None

    def test_malformed_observation(self, garden):
        with pytest.raises(InvalidPatternError):
            abduce(garden, "(Evaluation", HYPOTHESES)

    def test_malformed_hypothesis(self, garden):
        with pytest.raises(InvalidInferenceInput):
            abduce(garden, WET_LAWN, [{"name": "x", "statement": "$A"}])

    def test_store_untouched(self, garden):
        before = len(garden)
        abduce(garden, WET_LAWN, HYPOTHESES)
        assert len(garden) == before

    def test_wire_format(self, garden):
        data = abduce(garden, WET_LAWN, HYPOTHESES).to_dict()
        assert data["reasoningType"] == "abductiveReasoning"
        assert data["bestExplanation"]["hypothesis"] == "sprinkler"
        assert data["observation"] == WET_LAWN
