"""
atomreason/probabilistic.py - Probability propagation over a fact dependency graph

Each fact names the facts it depends on:

    root fact         probability given, or the strength of the first stored
                      atom matching its statement
    independent fact  product of its dependencies, times its own probability
                      when one is given
    conditional fact  total probability over its parents:
                      P = p(true) * P(parents) + p(false) * (1 - P(parents))

Propagation runs in rounds: a fact resolves in the first round where all of
its dependencies are resolved, so the number of rounds equals the depth of
the graph. Facts in a dependency cycle never become ready and are reported
as unresolved.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .atomspace import AtomStore
from .config import InferenceParams
from .errors import InvalidInferenceInput
from .matcher import PatternMatcher
from .pattern import parse_pattern
from .results import ProbabilisticInference, ProbabilisticResult, ResolvedFact

logger = logging.getLogger(__name__)


class ConditionalTable(BaseModel):
    """P(fact | parents) and P(fact | not parents)."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    if_true: float = Field(..., alias="true", ge=0.0, le=1.0)
    if_false: float = Field(default=0.0, alias="false", ge=0.0, le=1.0)


class ProbabilisticFact(BaseModel):
    """One node of the dependency graph."""

    model_config = ConfigDict(extra="forbid")

    statement: str = Field(..., min_length=1)
    probability: float | None = Field(default=None, ge=0.0, le=1.0)
    dependencies: list[str] = Field(default_factory=list)
    conditional: ConditionalTable | None = None

    @property
    def is_root(self) -> bool:
        return not self.dependencies


def coerce_facts(facts: Iterable[ProbabilisticFact | dict[str, Any]]) -> list[ProbabilisticFact]:
    """Validate facts and the shape of the graph they form.

    Raises:
        InvalidInferenceInput: malformed fact, duplicate statement, unknown
            dependency, or a conditional table without dependencies
    """
    parsed: list[ProbabilisticFact] = []
    for fact in facts:
        if isinstance(fact, ProbabilisticFact):
            parsed.append(fact)
            continue
        try:
            parsed.append(ProbabilisticFact.model_validate(fact))
        except ValidationError as exc:
            raise InvalidInferenceInput(f"invalid probabilistic fact: {exc}") from exc

    statements = [f.statement for f in parsed]
    seen: set[str] = set()
    for statement in statements:
        if statement in seen:
            raise InvalidInferenceInput(f"duplicate fact {statement!r}")
        seen.add(statement)

    for fact in parsed:
        for dependency in fact.dependencies:
            if dependency not in seen:
                raise InvalidInferenceInput(
                    f"fact {fact.statement!r} depends on undeclared fact {dependency!r}"
                )
        if fact.conditional is not None:
            if fact.is_root:
                raise InvalidInferenceInput(
                    f"conditional fact {fact.statement!r} has no dependencies"
                )
            if fact.probability is not None:
                raise InvalidInferenceInput(
                    f"conditional fact {fact.statement!r} takes its probability from the table"
                )
    return parsed


def _store_prior(matcher: PatternMatcher, fact: ProbabilisticFact) -> float:
    atom_id = matcher.lookup(parse_pattern(fact.statement))
    if atom_id is None:
        raise InvalidInferenceInput(
            f"root fact {fact.statement!r} has no probability and matches no stored atom"
        )
    return matcher.store.get_atom(atom_id).truth.strength


def propagate(
    store: AtomStore,
    facts: Iterable[ProbabilisticFact | dict[str, Any]],
    params: InferenceParams | dict | None = None,
) -> ProbabilisticResult:
    """Compute the probability of every derived fact.

    Args:
        store: Atom store supplying priors for root facts without one
        facts: Dependency graph, one entry per fact
        params: Inference parameters; max_steps bounds the rounds,
            max_results bounds the reported inferences

    Returns:
        ProbabilisticResult with one inference per derived fact

    Raises:
        InvalidInferenceInput: malformed graph or a root fact without a prior
        InvalidPatternError: a store-backed root statement is not a pattern
    """
    params = InferenceParams.coerce(params)
    graph = coerce_facts(facts)
    matcher = PatternMatcher(store)

    # Roots are resolved up front so bad input fails before propagation
    priors: dict[str, tuple[float, str]] = {}
    for fact in graph:
        if not fact.is_root:
            continue
        if fact.probability is not None:
            priors[fact.statement] = (fact.probability, "prior")
        else:
            priors[fact.statement] = (_store_prior(matcher, fact), "store")

    result = ProbabilisticResult()
    resolved: dict[str, float] = {}
    modes: dict[str, str] = {}
    order: list[str] = []
    pending = {f.statement: f for f in graph}

    rounds = 0
    while pending and rounds < params.max_steps:
        ready = [f for f in pending.values() if all(d in resolved for d in f.dependencies)]
        if not ready:
            break
        rounds += 1
        updates = {}
        for fact in ready:
            if fact.is_root:
                updates[fact.statement], modes[fact.statement] = priors[fact.statement]
            else:
                updates[fact.statement], modes[fact.statement] = _combine(fact, resolved)
            del pending[fact.statement]
            order.append(fact.statement)
        resolved.update(updates)
        logger.debug("Propagation round %d resolved %d fact(s)", rounds, len(updates))

    result.steps_taken = rounds
    if pending:
        result.unresolved = list(pending)
        if rounds >= params.max_steps:
            result.bound_reached = True
            logger.warning("Propagation stopped after %d round(s) with %d fact(s) pending",
                           rounds, len(pending))
        else:
            logger.warning("Dependency cycle among %s", sorted(pending))

    result.probabilistic_facts = [
        ResolvedFact(
            fact=f.statement,
            probability=resolved.get(f.statement),
            dependencies=list(f.dependencies),
            mode=modes.get(f.statement, "unresolved"),
        )
        for f in graph
    ]

    by_statement = {f.statement: f for f in graph}
    for statement in order:
        fact = by_statement[statement]
        if fact.is_root:
            continue
        if len(result.inferences) >= params.max_results:
            result.bound_reached = True
            break
        result.inferences.append(ProbabilisticInference(
            statement=statement,
            probability=resolved[statement],
            derived_from=list(fact.dependencies),
        ))

    logger.info("Probabilistic propagation: %d inference(s) in %d round(s)",
                len(result.inferences), rounds)
    return result


def _combine(fact: ProbabilisticFact, resolved: dict[str, float]) -> tuple[float, str]:
    parents = math.prod(resolved[d] for d in fact.dependencies)
    if fact.conditional is not None:
        table = fact.conditional
        return table.if_true * parents + table.if_false * (1.0 - parents), "conditional"
    own = fact.probability if fact.probability is not None else 1.0
    return parents * own, "independent"
