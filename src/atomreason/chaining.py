"""
atomreason/chaining.py - Forward and backward chaining over the AtomStore

FORWARD CHAINING (data-driven):
    Start from premise atoms and apply rules iteratively, deriving new
    conclusions until an iteration yields nothing new at or above the
    confidence threshold, or max_steps iterations have run.

    A firing's confidence is the minimum confidence of the atoms it
    consumed, multiplied by the rule's reliability.

BACKWARD CHAINING (goal-driven):
    Start from a goal pattern, match it against stored facts or decompose
    it through rules whose conclusion unifies with it, proving each premise
    as a subgoal (depth-first, backtracking). Depth is bounded by max_steps.

    Overall confidence is the minimum over the proof, the goal itself
    included (conjunctive semantics, with each rule's reliability applied
    to the node it proves). A proof below the confidence threshold does
    not end the search; the most confident proof found is reported.

Neither strategy writes to the store: forward chaining derives into a
private copy of the premises, and conclusions are returned to the caller,
who decides whether to assert them.
"""
from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from .atomspace import AtomStore
from .bounds import Deadline
from .config import InferenceParams
from .matcher import PatternMatcher
from .pattern import LinkPattern, Pattern, VariablePattern, parse_pattern, to_text
from .results import (
    PROVEN,
    UNPROVEN,
    BackwardChainingResult,
    Conclusion,
    ForwardChainingResult,
    InferenceStep,
    ProofStep,
    Subgoal,
)
from .rules import Rule, RuleBase, coerce_rules
from .truth import TruthValue, conjoin
from .unification import Substitution, resolve, substitute, unify

logger = logging.getLogger(__name__)


def _fire_truth(rule: Rule, consumed: list[TruthValue], use_uncertainty: bool) -> TruthValue:
    """Truth of a rule firing: conjunction of its inputs, discounted by reliability."""
    combined = conjoin(consumed)
    if not use_uncertainty:
        return TruthValue(combined.strength, rule.reliability)
    return combined.discount(rule.reliability)


# =============================================================================
# FORWARD CHAINING
# =============================================================================


def forward_chain(
    store: AtomStore,
    rules: RuleBase | Iterable[Rule] | None,
    premises: Iterable[int] | None = None,
    params: InferenceParams | dict | None = None,
) -> ForwardChainingResult:
    """Forward chaining inference.

    Args:
        store: Atom store holding the facts (read only)
        rules: Rules to apply
        premises: Atom ids to reason from (default: every atom in the store)
        params: Inference parameters

    Returns:
        ForwardChainingResult with every firing as a step and the accepted
        conclusions in derivation order

    Raises:
        NotFound: a premise id is not in the store
    """
    params = InferenceParams.coerce(params)
    rules = coerce_rules(rules)
    deadline = Deadline(params.timeout_seconds)

    if premises is None:
        premise_ids = store.ids()
        facts = store.snapshot()
    else:
        premise_ids = list(dict.fromkeys(premises))
        facts = store.subset(premise_ids)

    matcher = PatternMatcher(facts)
    result = ForwardChainingResult(premises=[store.to_sexpr(i) for i in premise_ids])
    step_number = 0
    rejected: dict[str, float] = {}

    for iteration in range(1, params.max_steps + 1):
        if deadline.expired():
            result.incomplete = True
            break
        result.steps_taken = iteration

        # Rules see the facts as they stood at the start of the iteration.
        pending: dict[str, tuple[Pattern, Conclusion]] = {}

        for rule in rules:
            for cm in matcher.iter_conjunction(rule.premises):
                conclusion = matcher.instantiate(rule.conclusion, cm.bindings)
                if not conclusion.is_ground():
                    continue

                consumed = [facts.get_atom(i) for i in cm.atom_ids]
                truth = _fire_truth(rule, [a.truth for a in consumed], params.use_uncertainty)
                statement = to_text(conclusion)

                if _already_known(matcher, conclusion, truth):
                    continue
                if statement in pending and pending[statement][1].confidence >= truth.confidence:
                    continue
                if rejected.get(statement, -1.0) >= truth.confidence:
                    continue

                step_number += 1
                accepted = truth.confidence >= params.confidence_threshold
                premise_texts = [facts.to_sexpr(a.id) for a in consumed]
                result.steps.append(InferenceStep(
                    step_number=step_number,
                    iteration=iteration,
                    rule=rule.name,
                    premises=premise_texts,
                    conclusion=statement,
                    confidence=truth.confidence,
                    accepted=accepted,
                ))
                if accepted:
                    pending[statement] = (
                        conclusion,
                        Conclusion(statement, truth, rule.name, premise_texts, step_number),
                    )
                else:
                    rejected[statement] = truth.confidence

        if not pending:
            break

        truncated = False
        for conclusion, record in pending.values():
            if len(result.conclusions) >= params.max_results:
                truncated = True
                break
            facts.assert_pattern(conclusion, record.truth)
            result.conclusions.append(record)

        if truncated:
            result.bound_reached = True
            break
    else:
        result.bound_reached = True

    logger.info(
        "Forward chaining: %d conclusion(s) from %d firing(s) in %d iteration(s)",
        len(result.conclusions), len(result.steps), result.steps_taken
    )
    if result.bound_reached:
        logger.warning("Forward chaining stopped at its bound (max_steps=%d, max_results=%d)",
                       params.max_steps, params.max_results)
    return result


def _already_known(matcher: PatternMatcher, conclusion: Pattern, truth: TruthValue) -> bool:
    """True if the fact set holds the conclusion with at least this confidence."""
    atom_id = matcher.lookup(conclusion)
    if atom_id is None:
        return False
    return matcher.store.get_atom(atom_id).truth.confidence >= truth.confidence


# =============================================================================
# BACKWARD CHAINING
# =============================================================================


def variant_key(pattern: Pattern) -> str:
    """Text of the pattern with variables renamed by first appearance.

    Two goals share a key exactly when they differ only in variable names.
    """
    order = {name: i for i, name in enumerate(pattern.variables())}

    def render(p: Pattern) -> str:
        if isinstance(p, VariablePattern):
            return f"$#{order[p.name]}"
        if isinstance(p, LinkPattern):
            return "(" + " ".join([p.kind.value, *map(render, p.children)]) + ")"
        return to_text(p)

    return render(pattern)


@dataclass
class ProofNode:
    """Node in a proof tree."""

    goal: str
    confidence: float
    depth: int
    source: str
    children: list[ProofNode] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return len(self.children) == 0

    def walk(self) -> Iterator[ProofNode]:
        """Pre-order traversal."""
        yield self
        for child in self.children:
            yield from child.walk()

    def walk_postorder(self) -> Iterator[ProofNode]:
        for child in self.children:
            yield from child.walk_postorder()
        yield self

    def describe(self) -> str:
        if self.source == "fact":
            return "Matched stored fact"
        premises = "; ".join(child.goal for child in self.children)
        return f"Proven by {self.source} from {premises}"


class _BackwardSolver:
    """Depth-first prover yielding every proof lazily (backtracking)."""

    def __init__(
        self,
        store: AtomStore,
        rules: RuleBase,
        params: InferenceParams,
        deadline: Deadline,
    ):
        self.store = store
        self.matcher = PatternMatcher(store)
        self.rules = rules
        self.params = params
        self.deadline = deadline
        self.bound_reached = False
        self.incomplete = False
        self.expansions = 0
        self._fresh = itertools.count(1)

    def _confidence(self, atom_id: int) -> float:
        if not self.params.use_uncertainty:
            return 1.0
        return self.store.get_atom(atom_id).truth.confidence

    def solve(
        self,
        goal: Pattern,
        theta: Substitution,
        depth: int,
        ancestors: frozenset[str],
    ) -> Iterator[tuple[Substitution, ProofNode]]:
        """Yield (substitution, proof) for every way to prove the goal."""
        if self.deadline.expired():
            self.incomplete = True
            return
        if depth > self.params.max_steps:
            self.bound_reached = True
            return
        self.expansions += 1

        current = substitute(goal, theta)
        key = variant_key(current)

        # Facts first, most confident first (stable on insertion order)
        matches = self.matcher.find(current, self.params.max_results)
        matches.sort(key=lambda m: -self._confidence(m.atom_id))
        for m in matches:
            extended = dict(theta)
            for name, atom_id in m.bindings.items():
                extended[name] = self.store.to_pattern(atom_id)
            node = ProofNode(
                goal=to_text(substitute(current, extended)),
                confidence=self._confidence(m.atom_id),
                depth=depth,
                source="fact",
            )
            yield extended, node

        # A goal already open higher up cannot help prove itself
        if key in ancestors:
            return

        for rule in self.rules.rules_for(current, tag=f"{next(self._fresh)}_"):
            head_theta = unify(current, rule.conclusion, theta)
            if head_theta is None:
                continue
            for body_theta, children in self.solve_all(
                list(rule.premises), head_theta, depth + 1, ancestors | {key}
            ):
                confidence = min(child.confidence for child in children) * rule.reliability
                node = ProofNode(
                    goal=to_text(substitute(current, body_theta)),
                    confidence=confidence,
                    depth=depth,
                    source=f"rule:{rule.name}",
                    children=children,
                )
                yield body_theta, node

    def solve_all(
        self,
        goals: list[Pattern],
        theta: Substitution,
        depth: int,
        ancestors: frozenset[str],
    ) -> Iterator[tuple[Substitution, list[ProofNode]]]:
        """Generate all solutions for a conjunction of goals."""
        if not goals:
            yield theta, []
            return

        first, *rest = goals
        for theta1, node in self.solve(first, theta, depth, ancestors):
            for theta2, nodes in self.solve_all(rest, theta1, depth, ancestors):
                yield theta2, [node, *nodes]

    def explain_failure(self, goal: Pattern) -> tuple[list[Subgoal], list[ProofNode]]:
        """Unproven subgoals of the first applicable rule, plus the premises it did prove."""
        text = to_text(goal)
        unproven = [Subgoal(text, UNPROVEN, 0.0, 0, None)]
        partial: list[ProofNode] = []

        for rule in self.rules.rules_for(goal, tag="why_"):
            theta = unify(goal, rule.conclusion)
            if theta is None:
                continue
            for premise in rule.premises:
                solution = next(self.solve(premise, theta, 1, frozenset({variant_key(goal)})), None)
                if solution is None:
                    unproven.append(Subgoal(
                        to_text(substitute(premise, theta)), UNPROVEN, 0.0, 1, f"rule:{rule.name}"
                    ))
                    break
                theta, node = solution
                partial.append(node)
            break

        return unproven, partial


def backward_chain(
    store: AtomStore,
    rules: RuleBase | Iterable[Rule] | None,
    goal: Pattern | str,
    params: InferenceParams | dict | None = None,
) -> BackwardChainingResult:
    """Backward chaining inference.

    Args:
        store: Atom store holding the facts (read only)
        rules: Rules available for decomposition
        goal: Goal pattern; free variables are reported in `bindings`
        params: Inference parameters

    Returns:
        BackwardChainingResult. Proofs are drawn in search order until one
        reaches the confidence threshold or max_results proofs have been
        seen (which sets `bound_reached`); the most confident one is kept.
        Its `subgoals` list every node of the proof below the goal (or the
        goal itself when a stored fact proves it directly) and
        `overall_confidence` is the minimum over the whole proof, the goal
        included. When no proof exists, `subgoals` lists the unproven goals,
        the premises that were proven appear only in `proof_steps`, and
        `overall_confidence` is 0.0.

    Raises:
        InvalidPatternError: malformed goal pattern
    """
    goal_pattern = parse_pattern(goal)
    params = InferenceParams.coerce(params)
    rules = coerce_rules(rules)
    solver = _BackwardSolver(store, rules, params, Deadline(params.timeout_seconds))
    result = BackwardChainingResult(goal_query=to_text(goal_pattern))

    # Weak proofs do not stop the search: keep the most confident one seen
    proof: tuple[Substitution, ProofNode] | None = None
    best = 0.0
    for count, (theta, root) in enumerate(solver.solve(goal_pattern, {}, 0, frozenset()), start=1):
        confidence = _proof_confidence(root)
        if proof is None or confidence > best:
            proof, best = (theta, root), confidence
        if best >= params.confidence_threshold:
            break
        if count >= params.max_results:
            solver.bound_reached = True
            break

    if proof is not None:
        theta, root = proof
        nodes = list(root.walk())[1:] if not root.is_leaf else [root]
        result.subgoals = [
            Subgoal(n.goal, PROVEN, n.confidence, n.depth, n.source) for n in nodes
        ]
        result.proof_steps = _proof_steps(root.walk_postorder())
        result.overall_confidence = best
        result.bindings = {
            name: to_text(value)
            for name, value in resolve(theta, goal_pattern.variables()).items()
        }
    else:
        result.subgoals, partial = solver.explain_failure(goal_pattern)
        result.proof_steps = _proof_steps(
            node for tree in partial for node in tree.walk_postorder()
        )
        result.overall_confidence = 0.0

    result.goal_proven = proof is not None and result.overall_confidence >= params.confidence_threshold
    result.bound_reached = solver.bound_reached
    result.incomplete = solver.incomplete
    result.steps_taken = solver.expansions

    logger.info(
        "Backward chaining %s: proven=%s confidence=%.3f (%d expansions)",
        result.goal_query, result.goal_proven, result.overall_confidence, solver.expansions
    )
    return result


def _proof_steps(nodes: Iterable[ProofNode]) -> list[ProofStep]:
    return [
        ProofStep(step=i, goal=node.goal, proof=node.describe(), confidence=node.confidence)
        for i, node in enumerate(nodes, start=1)
    ]


def _proof_confidence(root: ProofNode) -> float:
    """Minimum confidence over the whole proof, the goal itself included."""
    return min(node.confidence for node in root.walk())
