"""
Tests for truth values.

Validates:
- Range validation on construction
- Coercion from pairs and mappings
- Conjunction and discount operators
"""

import dataclasses
import math

import pytest

from atomreason.errors import InvalidTruthValue
from atomreason.truth import CERTAIN, DEFAULT_TRUTH, TruthValue, conjoin


class TestValidation:
    """Test suite for construction checks."""

    def test_accepts_unit_interval(self):
        tv = TruthValue(0.0, 1.0)
        assert tv.strength == 0.0
        assert tv.confidence == 1.0

    @pytest.mark.parametrize("strength,confidence", [
        (1.5, 0.5),
        (-0.1, 0.5),
        (0.5, 1.01),
        (float("nan"), 0.5),
        (True, 0.5),
        ("0.5", 0.5),
    ])
    def test_rejects_out_of_range(self, strength, confidence):
        with pytest.raises(InvalidTruthValue):
            TruthValue(strength, confidence)

    def test_invalid_truth_is_value_error(self):
        with pytest.raises(ValueError):
            TruthValue(2.0, 0.5)

    def test_immutable(self):
        tv = TruthValue(0.5, 0.5)
        with pytest.raises(dataclasses.FrozenInstanceError):
            tv.strength = 0.9

    def test_default(self):
        assert DEFAULT_TRUTH.as_tuple() == (0.8, 0.9)


class TestCoerce:
    """Test suite for TruthValue.coerce."""

    def test_pair(self):
        assert TruthValue.coerce((0.9, 0.8)) == TruthValue(0.9, 0.8)

    def test_mapping(self):
        tv = TruthValue.coerce({"strength": 0.3, "confidence": 0.4})
        assert tv.to_dict() == {"strength": 0.3, "confidence": 0.4}

    def test_missing_key(self):
        with pytest.raises(InvalidTruthValue, match="confidence"):
            TruthValue.coerce({"strength": 0.3})

    def test_garbage(self):
        with pytest.raises(InvalidTruthValue):
            TruthValue.coerce("high")

    def test_passthrough(self):
        tv = TruthValue(0.1, 0.2)
        assert TruthValue.coerce(tv) is tv


class TestOperators:
    """Test suite for conjunction and discount."""

    def test_conjunction(self):
        tv = TruthValue(0.9, 0.8).conjunction(TruthValue(0.5, 0.6))
        assert math.isclose(tv.strength, 0.45)
        assert tv.confidence == 0.6

    def test_empty_conjunction_is_certain(self):
        assert conjoin([]) == CERTAIN

    def test_discount(self):
        tv = TruthValue(0.9, 0.8).discount(0.5)
        assert tv.strength == 0.9
        assert math.isclose(tv.confidence, 0.4)

    def test_discount_rejects_bad_reliability(self):
        with pytest.raises(InvalidTruthValue):
            TruthValue(0.9, 0.8).discount(1.2)
