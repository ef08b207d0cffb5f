"""
Tests for the inference engine.

Validates:
- Strategy name resolution
- Validation of params and strategy inputs
- Dispatch of every strategy through infer()
- Construction from a YAML config
"""

import textwrap

import pytest

from atomreason import InferenceEngine
from atomreason.engine import BackwardChainingInputs, Strategy
from atomreason.errors import InvalidInferenceInput, InvalidPatternError, UnknownStrategy
from atomreason.results import (
    AbductiveResult,
    AnalogicalResult,
    BackwardChainingResult,
    ForwardChainingResult,
    ProbabilisticResult,
    TemporalResult,
)

CAT_ANIMAL = '(Inheritance (Concept "Cat") (Concept "Animal"))'


class TestStrategy:
    """Test suite for Strategy.parse."""

    @pytest.mark.parametrize("name, expected", [
        ("forwardChaining", Strategy.FORWARD_CHAINING),
        ("forward_chaining", Strategy.FORWARD_CHAINING),
        ("backwardChaining", Strategy.BACKWARD_CHAINING),
        ("abductive", Strategy.ABDUCTIVE),
        ("abductiveReasoning", Strategy.ABDUCTIVE),
        ("analogical_reasoning", Strategy.ANALOGICAL),
        (" probabilistic ", Strategy.PROBABILISTIC),
        ("temporalReasoning", Strategy.TEMPORAL),
        (Strategy.TEMPORAL, Strategy.TEMPORAL),
    ])
    def test_accepted_names(self, name, expected):
        assert Strategy.parse(name) is expected

    @pytest.mark.parametrize("name", ["deductive", "forwardChainingReasoning", "", 42])
    def test_unknown(self, name):
        with pytest.raises(UnknownStrategy):
            Strategy.parse(name)


class TestDispatch:
    """Test suite for InferenceEngine.infer."""

    def test_forward(self, engine):
        result = engine.infer("forwardChaining")
        assert isinstance(result, ForwardChainingResult)
        assert len(result.conclusions) == 2

    def test_backward(self, engine):
        result = engine.infer("backwardChaining", {"maxSteps": 5}, {"goal": CAT_ANIMAL})
        assert isinstance(result, BackwardChainingResult)
        assert result.goal_proven is True

    def test_inputs_model_instance(self, engine):
        result = engine.infer("backwardChaining", None, BackwardChainingInputs(goal=CAT_ANIMAL))
        assert result.goal_proven is True

    def test_input_rules_replace_engine_rules(self, engine):
        result = engine.infer("backwardChaining", None, {"goal": CAT_ANIMAL, "rules": []})
        assert result.goal_proven is False

    def test_abductive(self, engine):
        result = engine.infer("abductive", None, {"observation": CAT_ANIMAL})
        assert isinstance(result, AbductiveResult)
        assert result.best_explanation.name == "transitivity"

    def test_abductive_without_rules(self, engine):
        result = engine.infer("abductive", None, {"observation": CAT_ANIMAL, "useRules": False})
        assert result.hypotheses == []

    def test_analogical(self, engine, taxonomy):
        _, ids = taxonomy
        result = engine.infer("analogical", None, {
            "sourceDomain": [ids["cat_mammal"]],
            "targetDomain": [ids["dog_mammal"]],
        })
        assert isinstance(result, AnalogicalResult)
        assert result.analogies[0].similarity == 1.0
        assert result.predictions == []

    def test_probabilistic(self, engine):
        result = engine.infer("probabilistic", None, {"facts": [
            {"statement": "rain", "probability": 0.3},
            {"statement": "wet", "dependencies": ["rain"]},
        ]})
        assert isinstance(result, ProbabilisticResult)
        assert result.inferences[0].probability == pytest.approx(0.3)

    def test_temporal(self, engine):
        result = engine.infer("temporal", None, {
            "facts": [
                {"label": "a", "start": "2024-01-01T00:00:00Z", "duration": 600},
                {"label": "b", "start": "2024-01-01T01:00:00Z", "duration": 600},
            ],
            "relations": [{"event1": "a", "event2": "b", "relation": "before"}],
            "timeWindow": "1d",
        })
        assert isinstance(result, TemporalResult)
        assert result.temporal_relations[0].relation == "before"
        assert result.consistency_check.is_consistent is True

    def test_engine_default_params(self, taxonomy, transitivity):
        store, _ = taxonomy
        engine = InferenceEngine(store, rules=transitivity, params={"confidenceThreshold": 0.75})
        assert [c.statement for c in engine.infer("forwardChaining").conclusions] == [CAT_ANIMAL]

    def test_store_untouched(self, engine):
        before = len(engine.store)
        engine.infer("forwardChaining")
        engine.infer("backwardChaining", None, {"goal": CAT_ANIMAL})
        assert len(engine.store) == before

    def test_match_pattern(self, engine, taxonomy):
        _, ids = taxonomy
        results = engine.match_pattern('(Inheritance $X (Concept "Mammal"))')
        assert results == [{"$X": ids["Cat"]}, {"$X": ids["Dog"]}]


class TestValidation:
    """Test suite for rejected requests."""

    def test_unknown_strategy(self, engine):
        with pytest.raises(UnknownStrategy):
            engine.infer("deductive")

    @pytest.mark.parametrize("strategy, inputs", [
        ("backwardChaining", {}),
        ("backwardChaining", {"goal": CAT_ANIMAL, "depth": 3}),
        ("abductive", {"observation": ""}),
        ("analogical", {"sourceDomain": [0]}),
        ("analogical", {"sourceDomain": [0], "targetDomain": [1], "similarityFloor": 2}),
        ("probabilistic", {"facts": [{"statement": "a", "probability": 7}]}),
        ("temporal", {"facts": [{"label": "a"}]}),
    ])
    def test_invalid_inputs(self, engine, strategy, inputs):
        with pytest.raises(InvalidInferenceInput):
            engine.infer(strategy, None, inputs)

    def test_invalid_params(self, engine):
        with pytest.raises(InvalidInferenceInput):
            engine.infer("forwardChaining", {"maxSteps": 0})

    def test_malformed_goal(self, engine):
        with pytest.raises(InvalidPatternError):
            engine.infer("backwardChaining", None, {"goal": "(Inheritance"})


class TestFromConfig:
    """Test suite for InferenceEngine.from_config."""

    def test_yaml(self, tmp_path, taxonomy):
        store, _ = taxonomy
        path = tmp_path / "reasoning.yaml"
        path.write_text(textwrap.dedent("""
            params:
              maxSteps: 4
              confidenceThreshold: 0.75
            rules:
              - name: transitivity
                premises:
                  - (Inheritance $A $B)
                  - (Inheritance $B $C)
                conclusion: (Inheritance $A $C)
                reliability: 0.9
        """))
        engine = InferenceEngine.from_config(path, store)
        assert engine.params.max_steps == 4
        assert [r.name for r in engine.rules] == ["transitivity"]
        assert [c.statement for c in engine.forward_chain().conclusions] == [CAT_ANIMAL]

    def test_default_store(self):
        engine = InferenceEngine()
        assert len(engine.store) == 0
        assert engine.infer("forwardChaining").conclusions == []
