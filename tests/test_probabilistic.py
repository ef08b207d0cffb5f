"""
Tests for probabilistic propagation.

Validates:
- Independent products and conditional tables
- One round per level of the dependency graph
- Store-backed priors, cycles and bounds
"""

import pytest

from atomreason import AtomStore
from atomreason.errors import InvalidInferenceInput
from atomreason.probabilistic import coerce_facts, propagate

SPRINKLER_GRAPH = [
    {"statement": "rain", "probability": 0.3},
    {"statement": "sprinkler", "probability": 0.5},
    {"statement": "wet", "dependencies": ["rain", "sprinkler"]},
    {
        "statement": "slippery",
        "dependencies": ["wet"],
        "conditional": {"true": 0.9, "false": 0.1},
    },
]


class TestPropagation:
    """Test suite for propagate."""

    def test_independent_and_conditional(self, store):
        result = propagate(store, SPRINKLER_GRAPH)
        assert [i.statement for i in result.inferences] == ["wet", "slippery"]
        assert result.inferences[0].probability == pytest.approx(0.15)
        # 0.9 * 0.15 + 0.1 * 0.85
        assert result.inferences[1].probability == pytest.approx(0.22)
        assert result.inferences[1].derived_from == ["wet"]

    def test_rounds_follow_depth(self, store):
        result = propagate(store, SPRINKLER_GRAPH)
        assert result.steps_taken == 3
        assert result.bound_reached is False
        assert result.unresolved == []

    def test_modes(self, store):
        result = propagate(store, SPRINKLER_GRAPH)
        modes = {f.fact: f.mode for f in result.probabilistic_facts}
        assert modes == {
            "rain": "prior",
            "sprinkler": "prior",
            "wet": "independent",
            "slippery": "conditional",
        }

    def test_own_probability_scales_product(self, store):
        result = propagate(store, [
            {"statement": "rain", "probability": 0.3},
            {"statement": "flood", "dependencies": ["rain"], "probability": 0.5},
        ])
        assert result.inferences[0].probability == pytest.approx(0.15)

    def test_uncertainty_metrics(self, store):
        metrics = propagate(store, SPRINKLER_GRAPH).uncertainty_metrics
        assert metrics["totalUncertainty"] == pytest.approx((0.85 + 0.78) / 2)
        assert metrics["avgConfidence"] == pytest.approx((0.15 + 0.22) / 2)
        assert metrics["perFact"]["wet"] == pytest.approx(0.85)

    def test_store_prior(self, store):
        store.add_atom("Concept", "Cloudy", truth=(0.7, 0.9))
        result = propagate(store, [
            {"statement": '(Concept "Cloudy")'},
            {"statement": "rain", "dependencies": ['(Concept "Cloudy")'], "probability": 0.5},
        ])
        assert result.probabilistic_facts[0].mode == "store"
        assert result.probabilistic_facts[0].probability == 0.7
        assert result.inferences[0].probability == pytest.approx(0.35)

    def test_root_without_prior(self, store):
        with pytest.raises(InvalidInferenceInput):
            propagate(store, [{"statement": '(Concept "Nowhere")'}])

    def test_cycle_reported_unresolved(self, store):
        result = propagate(store, [
            {"statement": "a", "dependencies": ["b"]},
            {"statement": "b", "dependencies": ["a"]},
            {"statement": "c", "probability": 0.5},
        ])
        assert result.unresolved == ["a", "b"]
        assert result.bound_reached is False
        assert result.inferences == []
        modes = {f.fact: (f.mode, f.probability) for f in result.probabilistic_facts}
        assert modes["a"] == ("unresolved", None)

    def test_round_bound(self, store):
        result = propagate(store, SPRINKLER_GRAPH, params={"maxSteps": 2})
        assert result.bound_reached is True
        assert result.unresolved == ["slippery"]
        assert [i.statement for i in result.inferences] == ["wet"]

    def test_max_results(self, store):
        result = propagate(store, SPRINKLER_GRAPH, params={"maxResults": 1})
        assert len(result.inferences) == 1
        assert result.bound_reached is True

    def test_only_roots(self, store):
        result = propagate(store, [{"statement": "rain", "probability": 0.3}])
        assert result.inferences == []
        assert result.uncertainty_metrics["totalUncertainty"] == 0.0

    def test_wire_format(self, store):
        data = propagate(store, SPRINKLER_GRAPH).to_dict()
        assert data["reasoningType"] == "probabilisticReasoning"
        assert data["inferences"][0]["derivedFrom"] == ["rain", "sprinkler"]
        assert data["inferences"][0]["uncertainty"] == pytest.approx(0.85)


class TestGraphValidation:
    """Test suite for coerce_facts."""

    @pytest.mark.parametrize("facts", [
        [{"statement": "a", "probability": 0.5}, {"statement": "a", "probability": 0.2}],
        [{"statement": "a", "dependencies": ["missing"]}],
        [{"statement": "a", "probability": 0.5, "conditional": {"true": 0.9}}],
        [
            {"statement": "a", "probability": 0.5},
            {"statement": "b", "dependencies": ["a"], "probability": 0.5,
             "conditional": {"true": 0.9}},
        ],
        [{"statement": "a", "probability": 1.5}],
        [{"statement": "", "probability": 0.5}],
        [{"statement": "a", "probability": 0.5, "weight": 2}],
    ])
    def test_invalid(self, facts):
        with pytest.raises(InvalidInferenceInput):
            coerce_facts(facts)

    def test_false_defaults_to_zero(self):
        facts = coerce_facts([
            {"statement": "a", "probability": 0.5},
            {"statement": "b", "dependencies": ["a"], "conditional": {"true": 0.8}},
        ])
        assert facts[1].conditional.if_false == 0.0

    def test_propagation_without_store_atoms(self):
        result = propagate(AtomStore(), SPRINKLER_GRAPH)
        assert len(result.inferences) == 2
