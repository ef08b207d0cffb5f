"""
atomreason/engine.py - Inference engine: strategy dispatch over one AtomStore

The engine owns nothing but references: the store it reasons over, the
rule base and the hypotheses supplied by the caller. Each call to infer()
validates parameters and inputs, then dispatches through a fixed table
keyed by Strategy. Adding a strategy means one enum member, one input
model and one handler.

Usage:
    engine = InferenceEngine(store, rules=[...])
    result = engine.infer("backwardChaining", {"maxSteps": 5},
                          {"goal": '(Inheritance (Concept "Cat") (Concept "Animal"))'})
    result.to_dict()["goalProven"]
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .abduction import HypothesisSource, abduce
from .analogy import DEFAULT_SIMILARITY_FLOOR, reason_by_analogy
from .atomspace import AtomStore
from .chaining import backward_chain, forward_chain
from .config import InferenceParams, ReasoningConfig, load_config
from .errors import InvalidInferenceInput, UnknownStrategy
from .matcher import BindingSet, PatternMatcher
from .probabilistic import ProbabilisticFact, propagate
from .results import (
    AbductiveResult,
    AnalogicalResult,
    BackwardChainingResult,
    ForwardChainingResult,
    ProbabilisticResult,
    StrategyResult,
    TemporalResult,
)
from .rules import Hypothesis, RuleBase, coerce_hypothesis, coerce_rules
from .temporal import RelationAssertion, TemporalFact, reason_temporally

logger = logging.getLogger(__name__)


class Strategy(Enum):
    """Inference strategies, valued by their wire names."""
    FORWARD_CHAINING = "forwardChaining"
    BACKWARD_CHAINING = "backwardChaining"
    ABDUCTIVE = "abductive"
    ANALOGICAL = "analogical"
    PROBABILISTIC = "probabilistic"
    TEMPORAL = "temporal"

    @classmethod
    def parse(cls, value: Strategy | str) -> Strategy:
        """Accept the wire name, the snake_case name or the "...Reasoning" name.

        Raises:
            UnknownStrategy: nothing matches
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            found = _STRATEGY_NAMES.get(value.strip())
            if found is not None:
                return found
        raise UnknownStrategy(value)


_STRATEGY_NAMES: dict[str, Strategy] = {}
for _member in Strategy:
    _STRATEGY_NAMES[_member.value] = _member
    _STRATEGY_NAMES[_member.name.lower()] = _member
    if _member not in (Strategy.FORWARD_CHAINING, Strategy.BACKWARD_CHAINING):
        _STRATEGY_NAMES[f"{_member.value}Reasoning"] = _member
        _STRATEGY_NAMES[f"{_member.value}_reasoning"] = _member
del _member


# =============================================================================
# INPUT MODELS
# =============================================================================

class _Inputs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class ForwardChainingInputs(_Inputs):
    premises: list[int] | None = None
    rules: list[Any] | None = None


class BackwardChainingInputs(_Inputs):
    goal: str = Field(..., min_length=1)
    rules: list[Any] | None = None


class AbductiveInputs(_Inputs):
    observation: str = Field(..., min_length=1)
    hypotheses: list[Any] | None = None
    rules: list[Any] | None = None
    use_rules: bool = Field(default=True, alias="useRules")


class AnalogicalInputs(_Inputs):
    source: list[int] = Field(..., alias="sourceDomain")
    target: list[int] = Field(..., alias="targetDomain")
    similarity_floor: float = Field(
        default=DEFAULT_SIMILARITY_FLOOR, ge=0.0, le=1.0, alias="similarityFloor"
    )


class ProbabilisticInputs(_Inputs):
    facts: list[ProbabilisticFact]


class TemporalInputs(_Inputs):
    facts: list[TemporalFact]
    relations: list[RelationAssertion] = Field(default_factory=list)
    time_window: str | None = Field(default=None, alias="timeWindow")
    reference_time: datetime | None = Field(default=None, alias="referenceTime")


# =============================================================================
# ENGINE
# =============================================================================

class InferenceEngine:
    """Runs the six reasoning strategies against one AtomStore.

    Strategies never write to the store. Callers that want to keep derived
    conclusions assert them with AtomStore.assert_pattern().
    """

    def __init__(
        self,
        store: AtomStore | None = None,
        rules: RuleBase | Iterable[Any] | None = None,
        hypotheses: Iterable[Any] | None = None,
        params: InferenceParams | dict | None = None,
    ):
        self.store = store if store is not None else AtomStore()
        self.rules = coerce_rules(rules)
        self.hypotheses: list[Hypothesis] = [coerce_hypothesis(h) for h in hypotheses or ()]
        self.params = InferenceParams.coerce(params)
        self.matcher = PatternMatcher(self.store)

    @classmethod
    def from_config(
        cls,
        config: ReasoningConfig | str | Path,
        store: AtomStore | None = None,
    ) -> InferenceEngine:
        """Build an engine from a ReasoningConfig or a YAML file path."""
        if not isinstance(config, ReasoningConfig):
            config = load_config(config)
        return cls(store, rules=config.rules, hypotheses=config.hypotheses, params=config.params)

    # -------------------------------------------------------------------------
    # Boundary operations
    # -------------------------------------------------------------------------

    def match_pattern(self, pattern_text: str, max_results: int | None = 100) -> list[BindingSet]:
        """Structural match of pattern text against the store."""
        return self.matcher.match(pattern_text, max_results)

    def infer(
        self,
        strategy: Strategy | str,
        params: InferenceParams | dict | None = None,
        inputs: BaseModel | dict[str, Any] | None = None,
    ) -> StrategyResult:
        """Validate and dispatch one inference request.

        Args:
            strategy: Strategy or any accepted strategy name
            params: Parameters (default: the engine's)
            inputs: Strategy-specific inputs (see the *Inputs models)

        Raises:
            UnknownStrategy: unrecognised strategy name
            InvalidInferenceInput: params or inputs fail validation
            InvalidPatternError: malformed pattern in the inputs
        """
        strategy = Strategy.parse(strategy)
        params = self.params if params is None else InferenceParams.coerce(params)
        model, handler = _HANDLERS[strategy]
        parsed = _validate_inputs(model, inputs)
        logger.debug("Dispatching %s with %s", strategy.value, params.to_dict())
        return handler(self, parsed, params)

    # -------------------------------------------------------------------------
    # Per-strategy entry points
    # -------------------------------------------------------------------------

    def forward_chain(
        self,
        premises: Iterable[int] | None = None,
        params: InferenceParams | dict | None = None,
        rules: RuleBase | Iterable[Any] | None = None,
    ) -> ForwardChainingResult:
        return forward_chain(self.store, self._rules(rules), premises, self._params(params))

    def backward_chain(
        self,
        goal: str,
        params: InferenceParams | dict | None = None,
        rules: RuleBase | Iterable[Any] | None = None,
    ) -> BackwardChainingResult:
        return backward_chain(self.store, self._rules(rules), goal, self._params(params))

    def abduce(
        self,
        observation: str,
        params: InferenceParams | dict | None = None,
        hypotheses: HypothesisSource | None = None,
        use_rules: bool = True,
        rules: RuleBase | Iterable[Any] | None = None,
    ) -> AbductiveResult:
        if hypotheses is None:
            hypotheses = self.hypotheses
        return abduce(
            self.store,
            observation,
            hypotheses=hypotheses,
            rules=self._rules(rules) if use_rules else None,
            params=self._params(params),
        )

    def analogize(
        self,
        source: Iterable[int],
        target: Iterable[int],
        params: InferenceParams | dict | None = None,
        similarity_floor: float = DEFAULT_SIMILARITY_FLOOR,
    ) -> AnalogicalResult:
        return reason_by_analogy(self.store, source, target, self._params(params), similarity_floor)

    def propagate(
        self,
        facts: Iterable[Any],
        params: InferenceParams | dict | None = None,
    ) -> ProbabilisticResult:
        return propagate(self.store, facts, self._params(params))

    def reason_temporally(
        self,
        facts: Iterable[Any],
        relations: Iterable[Any] = (),
        params: InferenceParams | dict | None = None,
        time_window: str | None = None,
        reference_time: datetime | None = None,
    ) -> TemporalResult:
        return reason_temporally(
            self.store, facts, relations, self._params(params), time_window, reference_time
        )

    def _params(self, params: InferenceParams | dict | None) -> InferenceParams:
        return self.params if params is None else InferenceParams.coerce(params)

    def _rules(self, rules: RuleBase | Iterable[Any] | None) -> RuleBase:
        return self.rules if rules is None else coerce_rules(rules)


def _validate_inputs(model: type[BaseModel], inputs: BaseModel | dict[str, Any] | None) -> BaseModel:
    if isinstance(inputs, model):
        return inputs
    try:
        return model.model_validate(inputs if inputs is not None else {})
    except ValidationError as exc:
        raise InvalidInferenceInput(f"invalid {model.__name__}: {exc}") from exc


# =============================================================================
# DISPATCH TABLE
# =============================================================================

def _run_forward(engine: InferenceEngine, inputs: ForwardChainingInputs, params: InferenceParams):
    return engine.forward_chain(inputs.premises, params, inputs.rules)


def _run_backward(engine: InferenceEngine, inputs: BackwardChainingInputs, params: InferenceParams):
    return engine.backward_chain(inputs.goal, params, inputs.rules)


def _run_abductive(engine: InferenceEngine, inputs: AbductiveInputs, params: InferenceParams):
    return engine.abduce(
        inputs.observation, params, inputs.hypotheses, inputs.use_rules, inputs.rules
    )


def _run_analogical(engine: InferenceEngine, inputs: AnalogicalInputs, params: InferenceParams):
    return engine.analogize(inputs.source, inputs.target, params, inputs.similarity_floor)


def _run_probabilistic(engine: InferenceEngine, inputs: ProbabilisticInputs, params: InferenceParams):
    return engine.propagate(inputs.facts, params)


def _run_temporal(engine: InferenceEngine, inputs: TemporalInputs, params: InferenceParams):
    return engine.reason_temporally(
        inputs.facts, inputs.relations, params, inputs.time_window, inputs.reference_time
    )


_Handler = Callable[[InferenceEngine, Any, InferenceParams], StrategyResult]

_HANDLERS: dict[Strategy, tuple[type[BaseModel], _Handler]] = {
    Strategy.FORWARD_CHAINING: (ForwardChainingInputs, _run_forward),
    Strategy.BACKWARD_CHAINING: (BackwardChainingInputs, _run_backward),
    Strategy.ABDUCTIVE: (AbductiveInputs, _run_abductive),
    Strategy.ANALOGICAL: (AnalogicalInputs, _run_analogical),
    Strategy.PROBABILISTIC: (ProbabilisticInputs, _run_probabilistic),
    Strategy.TEMPORAL: (TemporalInputs, _run_temporal),
}
