"""
atomreason/abduction.py - Abductive reasoning (inference to the best explanation)

Given an observation, enumerate candidate hypotheses whose predicted
consequence unifies with it and rank them by plausibility:

    plausibility = prior * consistency

Consistency measures how well the store agrees with the hypothesis: the
mean support of its required conditions (support is the strength of the
best matching stored fact, 0.0 when nothing matches), scaled by the stored
strength of the explanation itself when it is already a known fact.

Candidates come from an explicit list, a generator function, and rules
(a rule explains its conclusion by its premises).
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from statistics import fmean
from typing import Union

from .atomspace import AtomStore
from .config import InferenceParams
from .matcher import PatternMatcher
from .pattern import Pattern, parse_pattern, to_text
from .results import AbductiveResult, ScoredHypothesis
from .rules import (
    Hypothesis,
    HypothesisSpec,
    Rule,
    RuleBase,
    coerce_hypothesis,
    coerce_rules,
    hypotheses_from_rules,
)
from .unification import Substitution, resolve, substitute, unify

logger = logging.getLogger(__name__)

HypothesisLike = Union[Hypothesis, HypothesisSpec, dict]
HypothesisSource = Union[
    Iterable[HypothesisLike],
    Callable[[Pattern], Iterable[HypothesisLike]],
]


def _candidates(
    observation: Pattern,
    hypotheses: HypothesisSource | None,
    rules: RuleBase | Iterable[Rule] | None,
) -> Iterator[Hypothesis]:
    if callable(hypotheses):
        hypotheses = hypotheses(observation)
    for hypothesis in hypotheses or ():
        yield coerce_hypothesis(hypothesis)
    if rules is not None:
        yield from hypotheses_from_rules(coerce_rules(rules))


def _best_support(
    matcher: PatternMatcher,
    condition: Pattern,
    use_uncertainty: bool,
) -> tuple[float, int | None]:
    """Strength of the strongest stored fact matching the condition."""
    best, best_id = 0.0, None
    for m in matcher.iter_matches(condition):
        strength = matcher.store.get_atom(m.atom_id).truth.strength if use_uncertainty else 1.0
        if best_id is None or strength > best:
            best, best_id = strength, m.atom_id
    return best, best_id


def _score(
    matcher: PatternMatcher,
    hypothesis: Hypothesis,
    theta: Substitution,
    observation: Pattern,
    use_uncertainty: bool,
) -> ScoredHypothesis:
    store = matcher.store
    statements = [substitute(s, theta) for s in hypothesis.statements]
    evidence: list[str] = []

    supports = []
    for condition in hypothesis.requires:
        support, atom_id = _best_support(matcher, substitute(condition, theta), use_uncertainty)
        supports.append(support)
        if atom_id is not None:
            evidence.append(store.to_sexpr(atom_id))
    consistency = fmean(supports) if supports else 1.0

    for statement in statements:
        if not statement.is_ground():
            continue
        atom_id = matcher.lookup(statement)
        if atom_id is None:
            continue
        if use_uncertainty:
            consistency *= store.get_atom(atom_id).truth.strength
        evidence.append(store.to_sexpr(atom_id))

    statement_text = " AND ".join(to_text(s) for s in statements)
    return ScoredHypothesis(
        name=hypothesis.name,
        statement=statement_text,
        plausibility=hypothesis.prior * consistency,
        prior=hypothesis.prior,
        consistency=consistency,
        explanation=f"{statement_text} would explain {to_text(observation)}",
        supporting_evidence=evidence,
        bindings={
            name: to_text(value)
            for name, value in resolve(theta, observation.variables()).items()
        },
    )


def abduce(
    store: AtomStore,
    observation: Pattern | str,
    hypotheses: HypothesisSource | None = None,
    rules: RuleBase | Iterable[Rule] | None = None,
    params: InferenceParams | dict | None = None,
) -> AbductiveResult:
    """Rank explanations for an observation.

    Args:
        store: Atom store consulted for consistency (read only)
        observation: Observed pattern
        hypotheses: Hypotheses, or a function returning hypotheses for the
            observation
        rules: Rules used as an additional hypothesis source
        params: Inference parameters

    Returns:
        AbductiveResult sorted by non-increasing plausibility; at most
        max_results hypotheses are generated

    Raises:
        InvalidPatternError: malformed observation or hypothesis pattern
        InvalidInferenceInput: malformed hypothesis spec
    """
    observation_pattern = parse_pattern(observation)
    params = InferenceParams.coerce(params)
    matcher = PatternMatcher(store)
    result = AbductiveResult(observation=to_text(observation_pattern))

    scored: list[ScoredHypothesis] = []
    for index, hypothesis in enumerate(_candidates(observation_pattern, hypotheses, rules)):
        if len(scored) >= params.max_results:
            result.bound_reached = True
            break
        result.steps_taken += 1

        renamed = hypothesis.renamed(f"_h{index}")
        theta = unify(observation_pattern, renamed.predicts)
        if theta is None:
            logger.debug("Hypothesis %s does not predict %s", hypothesis.name, result.observation)
            continue
        scored.append(_score(matcher, renamed, theta, observation_pattern, params.use_uncertainty))

    scored.sort(key=lambda h: -h.plausibility)
    result.hypotheses = scored

    best = result.best_explanation
    logger.info(
        "Abduction for %s: %d hypothesis(es), best=%s",
        result.observation, len(scored), best.name if best else None
    )
    return result
