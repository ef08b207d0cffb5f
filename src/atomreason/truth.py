"""
atomreason/truth.py - Truth values

A TruthValue is an immutable (strength, confidence) pair:
- strength: how true the atom is believed to be (probability-like)
- confidence: how much evidence backs that belief

Combination operators used by the inference strategies:
- conjunction: product of strengths, minimum of confidences
- discount: scale confidence by a reliability factor
"""
from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .errors import InvalidTruthValue


def _check_unit(label: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidTruthValue(f"{label} must be a number in [0, 1], got {value!r}")
    value = float(value)
    if math.isnan(value) or value < 0.0 or value > 1.0:
        raise InvalidTruthValue(f"{label} must be in [0, 1], got {value!r}")
    return value


@dataclass(frozen=True)
class TruthValue:
    """Probabilistic belief attached to an atom.

    Example:
        tv = TruthValue(0.9, 0.8)
        tv.conjunction(TruthValue(0.5, 0.95))  # TruthValue(0.45, 0.8)
    """
    strength: float
    confidence: float

    def __post_init__(self):
        object.__setattr__(self, "strength", _check_unit("strength", self.strength))
        object.__setattr__(self, "confidence", _check_unit("confidence", self.confidence))

    @classmethod
    def coerce(cls, value: Any) -> TruthValue:
        """Build a TruthValue from a TruthValue, (s, c) pair or mapping."""
        if isinstance(value, TruthValue):
            return value
        if isinstance(value, Mapping):
            try:
                return cls(value["strength"], value["confidence"])
            except KeyError as exc:
                raise InvalidTruthValue(f"truth value missing {exc.args[0]!r}") from None
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return cls(value[0], value[1])
        raise InvalidTruthValue(f"cannot interpret {value!r} as a truth value")

    def conjunction(self, *others: TruthValue) -> TruthValue:
        """Combine with other truth values as independent conjuncts."""
        return conjoin([self, *others])

    def discount(self, reliability: float) -> TruthValue:
        """Scale confidence by a reliability factor in [0, 1]."""
        reliability = _check_unit("reliability", reliability)
        return TruthValue(self.strength, self.confidence * reliability)

    def as_tuple(self) -> tuple[float, float]:
        return (self.strength, self.confidence)

    def to_dict(self) -> dict[str, float]:
        return {"strength": self.strength, "confidence": self.confidence}

    def __repr__(self) -> str:
        return f"TruthValue({self.strength:.3f}, {self.confidence:.3f})"


def conjoin(values: Iterable[TruthValue]) -> TruthValue:
    """Conjunction of truth values: strengths multiply, confidence is the weakest.

    An empty conjunction is certain truth.
    """
    strength = 1.0
    confidence = 1.0
    for tv in values:
        strength *= tv.strength
        confidence = min(confidence, tv.confidence)
    return TruthValue(strength, confidence)


DEFAULT_TRUTH = TruthValue(0.8, 0.9)
CERTAIN = TruthValue(1.0, 1.0)
