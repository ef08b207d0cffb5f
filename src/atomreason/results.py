"""
atomreason/results.py - Result structures returned by inference strategies

Each strategy returns a StrategyResult subclass. Field names are Pythonic;
to_dict() emits the camelCase payload collaborators depend on:

    forwardChaining      steps, conclusions
    backwardChaining     subgoals, proofSteps, goalProven, overallConfidence
    abductiveReasoning   hypotheses, bestExplanation
    analogicalReasoning  analogies, structuralSimilarity
    probabilisticReasoning  inferences, uncertaintyMetrics
    temporalReasoning    temporalRelations, consistencyCheck

Every payload also carries reasoningType, boundReached (a bound cut the
search short), incomplete (the caller's timeout aborted between steps) and
a timestamp.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar

from .truth import TruthValue


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StrategyResult:
    """Fields shared by every strategy result."""
    reasoning_type: ClassVar[str] = ""

    bound_reached: bool = False
    incomplete: bool = False
    steps_taken: int = 0
    timestamp: datetime = field(default_factory=_utcnow)

    def payload(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"reasoningType": self.reasoning_type}
        data.update(self.payload())
        data["boundReached"] = self.bound_reached
        data["incomplete"] = self.incomplete
        data["stepsTaken"] = self.steps_taken
        data["timestamp"] = self.timestamp.isoformat()
        return data


# =============================================================================
# FORWARD CHAINING
# =============================================================================

@dataclass
class InferenceStep:
    """One rule firing."""
    step_number: int
    iteration: int
    rule: str
    premises: list[str]
    conclusion: str
    confidence: float
    accepted: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "stepNumber": self.step_number,
            "iteration": self.iteration,
            "rule": self.rule,
            "premise": "; ".join(self.premises),
            "premises": list(self.premises),
            "conclusion": self.conclusion,
            "confidence": self.confidence,
            "accepted": self.accepted,
        }


@dataclass
class Conclusion:
    """An accepted derived statement. Not written to the store."""
    statement: str
    truth: TruthValue
    rule: str
    premises: list[str]
    step_number: int

    @property
    def confidence(self) -> float:
        return self.truth.confidence

    @property
    def derivation(self) -> str:
        return f"Derived from {'; '.join(self.premises)} using {self.rule}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "statement": self.statement,
            "confidence": self.truth.confidence,
            "strength": self.truth.strength,
            "derivation": self.derivation,
            "rule": self.rule,
            "step": self.step_number,
        }


@dataclass
class ForwardChainingResult(StrategyResult):
    reasoning_type: ClassVar[str] = "forwardChaining"

    premises: list[str] = field(default_factory=list)
    steps: list[InferenceStep] = field(default_factory=list)
    conclusions: list[Conclusion] = field(default_factory=list)

    def payload(self) -> dict[str, Any]:
        return {
            "inputKnowledge": list(self.premises),
            "steps": [s.to_dict() for s in self.steps],
            "conclusions": [c.to_dict() for c in self.conclusions],
            "totalSteps": len(self.steps),
            "validConclusions": len(self.conclusions),
        }


# =============================================================================
# BACKWARD CHAINING
# =============================================================================

PROVEN = "proven"
UNPROVEN = "unproven"


@dataclass
class Subgoal:
    goal: str
    status: str
    confidence: float
    depth: int
    source: str | None = None

    @property
    def proven(self) -> bool:
        return self.status == PROVEN

    def to_dict(self) -> dict[str, Any]:
        return {
            "goal": self.goal,
            "status": self.status,
            "confidence": self.confidence,
            "depth": self.depth,
            "source": self.source,
        }


@dataclass
class ProofStep:
    step: int
    goal: str
    proof: str
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "goal": self.goal,
            "proof": self.proof,
            "confidence": self.confidence,
        }


@dataclass
class BackwardChainingResult(StrategyResult):
    reasoning_type: ClassVar[str] = "backwardChaining"

    goal_query: str = ""
    subgoals: list[Subgoal] = field(default_factory=list)
    proof_steps: list[ProofStep] = field(default_factory=list)
    goal_proven: bool = False
    overall_confidence: float = 0.0
    bindings: dict[str, str] = field(default_factory=dict)

    def payload(self) -> dict[str, Any]:
        return {
            "goalQuery": self.goal_query,
            "subgoals": [s.to_dict() for s in self.subgoals],
            "proofSteps": [p.to_dict() for p in self.proof_steps],
            "goalProven": self.goal_proven,
            "overallConfidence": self.overall_confidence,
            "bindings": dict(self.bindings),
        }


# =============================================================================
# ABDUCTION
# =============================================================================

@dataclass
class ScoredHypothesis:
    name: str
    statement: str
    plausibility: float
    prior: float
    consistency: float
    explanation: str
    supporting_evidence: list[str] = field(default_factory=list)
    bindings: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "hypothesis": self.name,
            "statement": self.statement,
            "explanation": self.explanation,
            "plausibility": self.plausibility,
            "prior": self.prior,
            "consistency": self.consistency,
            "supportingEvidence": list(self.supporting_evidence),
            "bindings": dict(self.bindings),
        }


@dataclass
class AbductiveResult(StrategyResult):
    reasoning_type: ClassVar[str] = "abductiveReasoning"

    observation: str = ""
    hypotheses: list[ScoredHypothesis] = field(default_factory=list)

    @property
    def best_explanation(self) -> ScoredHypothesis | None:
        return self.hypotheses[0] if self.hypotheses else None

    def payload(self) -> dict[str, Any]:
        best = self.best_explanation
        return {
            "observation": self.observation,
            "hypotheses": [h.to_dict() for h in self.hypotheses],
            "bestExplanation": best.to_dict() if best else None,
        }


# =============================================================================
# ANALOGY
# =============================================================================

@dataclass
class Analogy:
    source_id: int
    target_id: int
    source_element: str
    target_element: str
    similarity: float
    confidence: float
    mapping: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sourceElement": self.source_element,
            "targetElement": self.target_element,
            "sourceId": self.source_id,
            "targetId": self.target_id,
            "similarity": self.similarity,
            "mapping": dict(self.mapping),
            "confidence": self.confidence,
        }


@dataclass
class AnalogicalPrediction:
    prediction: str
    confidence: float
    based_on: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "prediction": self.prediction,
            "confidence": self.confidence,
            "basedOn": self.based_on,
        }


@dataclass
class AnalogicalResult(StrategyResult):
    reasoning_type: ClassVar[str] = "analogicalReasoning"

    source_domain: list[str] = field(default_factory=list)
    target_domain: list[str] = field(default_factory=list)
    analogies: list[Analogy] = field(default_factory=list)
    predictions: list[AnalogicalPrediction] = field(default_factory=list)
    structural_similarity: float = 0.0

    def payload(self) -> dict[str, Any]:
        return {
            "sourceDomain": list(self.source_domain),
            "targetDomain": list(self.target_domain),
            "analogies": [a.to_dict() for a in self.analogies],
            "predictions": [p.to_dict() for p in self.predictions],
            "structuralSimilarity": self.structural_similarity,
        }


# =============================================================================
# PROBABILISTIC
# =============================================================================

@dataclass
class ResolvedFact:
    fact: str
    probability: float | None
    dependencies: list[str] = field(default_factory=list)
    mode: str = "prior"

    def to_dict(self) -> dict[str, Any]:
        return {
            "fact": self.fact,
            "probability": self.probability,
            "dependencies": list(self.dependencies),
            "mode": self.mode,
        }


@dataclass
class ProbabilisticInference:
    statement: str
    probability: float
    derived_from: list[str] = field(default_factory=list)

    @property
    def uncertainty(self) -> float:
        return 1.0 - self.probability

    def to_dict(self) -> dict[str, Any]:
        return {
            "statement": self.statement,
            "probability": self.probability,
            "uncertainty": self.uncertainty,
            "derivedFrom": list(self.derived_from),
        }


@dataclass
class ProbabilisticResult(StrategyResult):
    reasoning_type: ClassVar[str] = "probabilisticReasoning"
    uncertainty_handling: ClassVar[str] = "independent product / total probability"

    probabilistic_facts: list[ResolvedFact] = field(default_factory=list)
    inferences: list[ProbabilisticInference] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)

    @property
    def uncertainty_metrics(self) -> dict[str, Any]:
        if not self.inferences:
            return {"totalUncertainty": 0.0, "avgConfidence": 0.0, "perFact": {}}
        n = len(self.inferences)
        return {
            "totalUncertainty": sum(i.uncertainty for i in self.inferences) / n,
            "avgConfidence": sum(i.probability for i in self.inferences) / n,
            "perFact": {i.statement: i.uncertainty for i in self.inferences},
        }

    def payload(self) -> dict[str, Any]:
        return {
            "probabilisticFacts": [f.to_dict() for f in self.probabilistic_facts],
            "inferences": [i.to_dict() for i in self.inferences],
            "uncertaintyHandling": self.uncertainty_handling,
            "uncertaintyMetrics": self.uncertainty_metrics,
            "unresolved": list(self.unresolved),
        }


# =============================================================================
# TEMPORAL
# =============================================================================

@dataclass
class TemporalFactRecord:
    label: str
    start: datetime
    end: datetime
    ongoing: bool = False
    confidence: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "fact": self.label,
            "timestamp": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration": "ongoing" if self.ongoing else (self.end - self.start).total_seconds(),
            "confidence": self.confidence,
        }


@dataclass
class TemporalRelation:
    event1: str
    event2: str
    relation: str
    confidence: float
    type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "event1": self.event1,
            "event2": self.event2,
            "relation": self.relation,
            "confidence": self.confidence,
            "type": self.type,
        }


@dataclass
class ConsistencyCheck:
    violations: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.violations

    def to_dict(self) -> dict[str, Any]:
        return {
            "isConsistent": self.is_consistent,
            "violations": list(self.violations),
            "warnings": list(self.warnings),
        }


@dataclass
class TemporalPrediction:
    event: str
    predicted_time: datetime
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event,
            "predictedTime": self.predicted_time.isoformat(),
            "confidence": self.confidence,
        }


@dataclass
class TemporalResult(StrategyResult):
    reasoning_type: ClassVar[str] = "temporalReasoning"

    time_window: str | None = None
    temporal_facts: list[TemporalFactRecord] = field(default_factory=list)
    temporal_relations: list[TemporalRelation] = field(default_factory=list)
    consistency_check: ConsistencyCheck = field(default_factory=ConsistencyCheck)
    predictions: list[TemporalPrediction] = field(default_factory=list)

    def payload(self) -> dict[str, Any]:
        return {
            "timeWindow": self.time_window,
            "temporalFacts": [f.to_dict() for f in self.temporal_facts],
            "temporalRelations": [r.to_dict() for r in self.temporal_relations],
            "consistencyCheck": self.consistency_check.to_dict(),
            "predictions": [p.to_dict() for p in self.predictions],
        }
