"""
atomreason/config.py - Inference parameters and YAML configuration

Uses Pydantic v2 for validation. Parameters accept both snake_case and the
camelCase names used on the wire (maxSteps, confidenceThreshold, ...).

A reasoning config file bundles parameters, rules and hypotheses:

    params:
      maxSteps: 20
      confidenceThreshold: 0.6
    rules:
      - name: transitivity
        premises:
          - (Inheritance $A $B)
          - (Inheritance $B $C)
        conclusion: (Inheritance $A $C)
        reliability: 0.9
    hypotheses:
      - name: rain
        statement: (Evaluation (Predicate "rained") (Concept "lawn"))
        predicts: (Evaluation (Predicate "wet") (Concept "lawn"))
        prior: 0.6
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import InvalidInferenceInput
from .rules import HypothesisSpec, RuleSpec

logger = logging.getLogger(__name__)


class InferenceParams(BaseModel):
    """Parameters shared by every inference strategy."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    max_steps: int = Field(
        default=10, ge=1, alias="maxSteps",
        description="Execution bound: iterations, depth, rounds or pair checks"
    )
    confidence_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0, alias="confidenceThreshold",
        description="Minimum confidence for accepted conclusions"
    )
    max_results: int = Field(
        default=10, ge=1, alias="maxResults",
        description="Output bound"
    )
    use_uncertainty: bool = Field(
        default=True, alias="useUncertainty",
        description="When False, atom confidences count as 1.0"
    )
    timeout_seconds: float | None = Field(
        default=None, gt=0.0, alias="timeoutSeconds",
        description="Optional wall-clock budget checked between steps"
    )

    @classmethod
    def coerce(cls, value: Any) -> InferenceParams:
        """Build params from None, a mapping or an existing instance.

        Raises:
            InvalidInferenceInput: values fail validation
        """
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        try:
            return cls.model_validate(value)
        except ValidationError as exc:
            raise InvalidInferenceInput(f"invalid inference parameters: {exc}") from exc

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ReasoningConfig(BaseModel):
    """Top-level reasoning configuration file."""

    model_config = ConfigDict(extra="forbid")

    params: InferenceParams = Field(default_factory=InferenceParams)
    rules: list[RuleSpec] = Field(default_factory=list)
    hypotheses: list[HypothesisSpec] = Field(default_factory=list)


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_config(path: str | Path) -> ReasoningConfig:
    """Load a reasoning config from YAML.

    Raises:
        FileNotFoundError: the file does not exist
        InvalidInferenceInput: the document fails validation
    """
    path = Path(path)
    raw = _load_yaml(path)
    try:
        config = ReasoningConfig.model_validate(raw)
    except ValidationError as exc:
        raise InvalidInferenceInput(f"invalid reasoning config {path}: {exc}") from exc
    logger.info(
        "Loaded reasoning config %s (%d rules, %d hypotheses)",
        path, len(config.rules), len(config.hypotheses)
    )
    return config
