"""
atomreason - Typed hypergraph knowledge store with multi-strategy inference

Stores semantic assertions with (strength, confidence) truth values,
matches them structurally with patterns, and reasons over them:
- Forward chaining (data-driven)
- Backward chaining (goal-driven, with proof trees)
- Abductive reasoning (best explanation)
- Analogical reasoning (structural similarity)
- Probabilistic propagation
- Temporal interval reasoning

Example:
    from atomreason import AtomStore, InferenceEngine, RuleBase

    store = AtomStore()
    cat = store.add_atom("Concept", "Cat", truth=(0.9, 0.9))
    mammal = store.add_atom("Concept", "Mammal")
    animal = store.add_atom("Concept", "Animal")
    store.add_atom("Inheritance", outgoing=[cat, mammal], truth=(0.95, 0.9))
    store.add_atom("Inheritance", outgoing=[mammal, animal], truth=(0.95, 0.9))

    rules = RuleBase()
    rules.rule("transitivity") \\
        .when("(Inheritance $A $B)") \\
        .and_("(Inheritance $B $C)") \\
        .then("(Inheritance $A $C)") \\
        .reliability(0.9) \\
        .done()

    engine = InferenceEngine(store, rules)
    result = engine.infer("backwardChaining", {"maxSteps": 5},
                          {"goal": '(Inheritance (Concept "Cat") (Concept "Animal"))'})
    print(result.goal_proven)
"""

from .atoms import Atom, AtomId, LinkKind, NodeKind, parse_kind
from .atomspace import AtomStore
from .batch import BatchReport, BatchRunner, ErrorMode, Operation
from .config import InferenceParams, ReasoningConfig, load_config
from .engine import InferenceEngine, Strategy
from .errors import (
    AtomSpaceError,
    DanglingReference,
    InvalidArity,
    InvalidInferenceInput,
    InvalidPatternError,
    InvalidTruthValue,
    NotFound,
    UnknownStrategy,
)
from .matcher import BindingSet, Match, PatternMatcher, match_pattern
from .pattern import (
    LinkPattern,
    NodePattern,
    Pattern,
    VariablePattern,
    parse_pattern,
    to_text,
)
from .results import (
    AbductiveResult,
    AnalogicalResult,
    BackwardChainingResult,
    ForwardChainingResult,
    ProbabilisticResult,
    StrategyResult,
    TemporalResult,
)
from .rules import Hypothesis, HypothesisSpec, Rule, RuleBase, RuleSpec
from .truth import DEFAULT_TRUTH, TruthValue
from .unification import substitute, unify

__version__ = "0.1.0"

__all__ = [
    # Atoms
    "Atom",
    "AtomId",
    "NodeKind",
    "LinkKind",
    "parse_kind",
    "TruthValue",
    "DEFAULT_TRUTH",
    # Store
    "AtomStore",
    # Patterns
    "Pattern",
    "NodePattern",
    "LinkPattern",
    "VariablePattern",
    "parse_pattern",
    "to_text",
    "unify",
    "substitute",
    # Matching
    "PatternMatcher",
    "Match",
    "BindingSet",
    "match_pattern",
    # Rules
    "Rule",
    "RuleSpec",
    "RuleBase",
    "Hypothesis",
    "HypothesisSpec",
    # Inference
    "InferenceEngine",
    "InferenceParams",
    "Strategy",
    "StrategyResult",
    "ForwardChainingResult",
    "BackwardChainingResult",
    "AbductiveResult",
    "AnalogicalResult",
    "ProbabilisticResult",
    "TemporalResult",
    # Configuration
    "ReasoningConfig",
    "load_config",
    # Batch
    "BatchRunner",
    "BatchReport",
    "ErrorMode",
    "Operation",
    # Errors
    "AtomSpaceError",
    "InvalidArity",
    "InvalidTruthValue",
    "DanglingReference",
    "NotFound",
    "InvalidPatternError",
    "UnknownStrategy",
    "InvalidInferenceInput",
]
