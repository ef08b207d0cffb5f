"""
atomreason/rules.py - Rules and hypotheses supplied to the inference engine

Rules are never learned; callers supply them as Python objects, dicts or
YAML documents. A rule is a Horn-style implication over patterns:

    premises (conjunction, shared variables)  =>  conclusion

with a reliability in [0, 1] that discounts the confidence of everything
it derives. Hypotheses feed abductive reasoning: a candidate explanation
(statement) that predicts a consequence, with a prior confidence and
optional conditions expected to hold in the store.

Example:
    rules = RuleBase()
    rules.rule("transitivity") \\
        .when("(Inheritance $A $B)") \\
        .and_("(Inheritance $B $C)") \\
        .then("(Inheritance $A $C)") \\
        .reliability(0.9) \\
        .done()
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import InvalidInferenceInput, InvalidPatternError
from .pattern import Pattern, parse_pattern, to_text
from .unification import rename_apart, unify

logger = logging.getLogger(__name__)


# =============================================================================
# SPECS (wire / file format)
# =============================================================================

class RuleSpec(BaseModel):
    """Rule as written in config files and request payloads."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    premises: list[str] = Field(..., min_length=1)
    conclusion: str
    reliability: float = Field(default=1.0, ge=0.0, le=1.0)
    description: str | None = None
    priority: int = 0
    enabled: bool = True


class HypothesisSpec(BaseModel):
    """Candidate explanation for abductive reasoning."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    statement: str
    predicts: str
    prior: float = Field(default=0.5, ge=0.0, le=1.0)
    requires: list[str] = Field(default_factory=list)


def _validate(model: type[BaseModel], data: Any) -> Any:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise InvalidInferenceInput(f"invalid {model.__name__}: {exc}") from exc


# =============================================================================
# COMPILED FORMS
# =============================================================================

@dataclass(frozen=True)
class Rule:
    """Compiled rule with parsed patterns."""
    name: str
    premises: tuple[Pattern, ...]
    conclusion: Pattern
    reliability: float = 1.0
    description: str | None = None
    priority: int = 0
    enabled: bool = True

    def __post_init__(self):
        if not self.premises:
            raise InvalidPatternError(f"rule {self.name!r} has no premises")
        if not 0.0 <= self.reliability <= 1.0:
            raise InvalidInferenceInput(
                f"rule {self.name!r}: reliability must be in [0, 1], got {self.reliability}"
            )
        premise_vars = {v for p in self.premises for v in p.variables()}
        unbound = [v for v in self.conclusion.variables() if v not in premise_vars]
        if unbound:
            raise InvalidPatternError(
                f"rule {self.name!r}: conclusion variables {unbound} do not occur in its premises"
            )

    @classmethod
    def from_spec(cls, spec: RuleSpec | dict) -> Rule:
        spec = _validate(RuleSpec, spec)
        return cls(
            name=spec.name,
            premises=tuple(parse_pattern(p) for p in spec.premises),
            conclusion=parse_pattern(spec.conclusion),
            reliability=spec.reliability,
            description=spec.description,
            priority=spec.priority,
            enabled=spec.enabled,
        )

    def renamed(self, suffix: str) -> Rule:
        """Copy with fresh variable names (for resolution)."""
        renamed, _ = rename_apart([self.conclusion, *self.premises], suffix)
        return Rule(
            name=self.name,
            premises=tuple(renamed[1:]),
            conclusion=renamed[0],
            reliability=self.reliability,
            description=self.description,
            priority=self.priority,
            enabled=self.enabled,
        )

    def to_spec(self) -> RuleSpec:
        return RuleSpec(
            name=self.name,
            premises=[to_text(p) for p in self.premises],
            conclusion=to_text(self.conclusion),
            reliability=self.reliability,
            description=self.description,
            priority=self.priority,
            enabled=self.enabled,
        )

    def __str__(self) -> str:
        body = ", ".join(to_text(p) for p in self.premises)
        return f"{to_text(self.conclusion)} :- {body}"


@dataclass(frozen=True)
class Hypothesis:
    """Compiled hypothesis."""
    name: str
    statement: Pattern | tuple[Pattern, ...]
    predicts: Pattern
    prior: float = 0.5
    requires: tuple[Pattern, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not 0.0 <= self.prior <= 1.0:
            raise InvalidInferenceInput(
                f"hypothesis {self.name!r}: prior must be in [0, 1], got {self.prior}"
            )

    @classmethod
    def from_spec(cls, spec: HypothesisSpec | dict) -> Hypothesis:
        spec = _validate(HypothesisSpec, spec)
        return cls(
            name=spec.name,
            statement=parse_pattern(spec.statement),
            predicts=parse_pattern(spec.predicts),
            prior=spec.prior,
            requires=tuple(parse_pattern(r) for r in spec.requires),
        )

    @property
    def statements(self) -> tuple[Pattern, ...]:
        if isinstance(self.statement, tuple):
            return self.statement
        return (self.statement,)

    def renamed(self, suffix: str) -> Hypothesis:
        parts = [self.predicts, *self.statements, *self.requires]
        renamed, _ = rename_apart(parts, suffix)
        n = len(self.statements)
        statements = tuple(renamed[1:1 + n])
        return Hypothesis(
            name=self.name,
            statement=statements if isinstance(self.statement, tuple) else statements[0],
            predicts=renamed[0],
            prior=self.prior,
            requires=tuple(renamed[1 + n:]),
        )


def coerce_rule(value: Rule | RuleSpec | dict) -> Rule:
    if isinstance(value, Rule):
        return value
    return Rule.from_spec(value)


def coerce_hypothesis(value: Hypothesis | HypothesisSpec | dict) -> Hypothesis:
    if isinstance(value, Hypothesis):
        return value
    return Hypothesis.from_spec(value)


def hypotheses_from_rules(rules: Iterable[Rule]) -> Iterator[Hypothesis]:
    """Hypothesis generator derived from rules.

    A rule "premises => conclusion" explains an observation matching its
    conclusion by hypothesising its premises; its reliability is the prior.
    """
    for rule in rules:
        if not rule.enabled:
            continue
        yield Hypothesis(
            name=rule.name,
            statement=rule.premises,
            predicts=rule.conclusion,
            prior=rule.reliability,
        )


# =============================================================================
# RULE BASE
# =============================================================================

class RuleBuilder:
    """Fluent builder for rules."""

    def __init__(self, rules: RuleBase, name: str):
        self.rules = rules
        self.name = name
        self.premises: list[Pattern] = []
        self._conclusion: Pattern | None = None
        self._reliability = 1.0
        self._description: str | None = None
        self._priority = 0

    def when(self, pattern: Pattern | str) -> RuleBuilder:
        """Add first premise."""
        self.premises.append(parse_pattern(pattern))
        return self

    def and_(self, pattern: Pattern | str) -> RuleBuilder:
        """Add another premise (AND)."""
        self.premises.append(parse_pattern(pattern))
        return self

    def then(self, pattern: Pattern | str) -> RuleBuilder:
        """Set the conclusion template."""
        self._conclusion = parse_pattern(pattern)
        return self

    def reliability(self, value: float) -> RuleBuilder:
        self._reliability = value
        return self

    def described(self, description: str) -> RuleBuilder:
        self._description = description
        return self

    def priority(self, value: int) -> RuleBuilder:
        self._priority = value
        return self

    def done(self) -> Rule:
        """Finalize and add the rule to the rule base."""
        if self._conclusion is None:
            raise InvalidPatternError(f"rule {self.name!r} has no conclusion")
        return self.rules.add(Rule(
            name=self.name,
            premises=tuple(self.premises),
            conclusion=self._conclusion,
            reliability=self._reliability,
            description=self._description,
            priority=self._priority,
        ))


class RuleBase:
    """Ordered collection of rules.

    Iteration yields enabled rules by descending priority, then insertion.
    """

    def __init__(self, rules: Iterable[Rule | RuleSpec | dict] | None = None):
        self._rules: list[Rule] = []
        for rule in rules or ():
            self.add(rule)

    def add(self, rule: Rule | RuleSpec | dict) -> Rule:
        compiled = coerce_rule(rule)
        self._rules.append(compiled)
        logger.debug("Added rule %s", compiled.name)
        return compiled

    def add_rule(
        self,
        name: str,
        premises: list[str],
        conclusion: str,
        reliability: float = 1.0,
        description: str | None = None,
        priority: int = 0,
    ) -> Rule:
        return self.add(RuleSpec(
            name=name,
            premises=premises,
            conclusion=conclusion,
            reliability=reliability,
            description=description,
            priority=priority,
        ))

    def rule(self, name: str) -> RuleBuilder:
        """Start building a rule.

        Example:
            rules.rule("r1").when("(Inheritance $X $Y)").then("(Similarity $X $Y)").done()
        """
        return RuleBuilder(self, name)

    def rules_for(self, goal: Pattern, tag: str = "") -> Iterator[Rule]:
        """Rules whose conclusion unifies with the goal.

        Variables are renamed with a suffix built from `tag` and the rule
        position; callers resolving recursively pass a fresh tag per goal.
        """
        for i, rule in enumerate(self):
            renamed = rule.renamed(f"_{tag}{i}")
            if unify(goal, renamed.conclusion) is not None:
                yield renamed

    def __iter__(self) -> Iterator[Rule]:
        enabled = [r for r in self._rules if r.enabled]
        return iter(sorted(enabled, key=lambda r: -r.priority))

    def __len__(self) -> int:
        return len(self._rules)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {"rules": [r.to_spec().model_dump() for r in self._rules]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RuleBase:
        return cls(data.get("rules", []))

    @classmethod
    def from_yaml(cls, path: str | Path) -> RuleBase:
        """Load rules from a YAML document with a top-level `rules` list."""
        with open(path) as f:
            return cls.from_dict(yaml.safe_load(f) or {})


def coerce_rules(value: RuleBase | Iterable[Rule | RuleSpec | dict] | None) -> RuleBase:
    if isinstance(value, RuleBase):
        return value
    return RuleBase(value)
