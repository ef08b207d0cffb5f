"""
atomreason/batch.py - Request shell for lists of store, match and infer operations

Each request is a mapping with an `operation` key and camelCase fields:

    {"operation": "addAtom", "atomType": "Concept", "atomName": "Human",
     "truthValue": {"strength": 0.9, "confidence": 0.8}}
    {"operation": "patternMatch", "pattern": "(Inheritance $X (Concept \\"Animal\\"))"}
    {"operation": "infer", "strategy": "forwardChaining", "params": {"maxSteps": 5}}

Error modes:
- STRICT: the first failing request raises its AtomSpaceError
- TOLERANT: a failure becomes {"error", "errorType", "index"} and the batch
  continues with the next request

Example:
    runner = BatchRunner(InferenceEngine(store), mode=ErrorMode.TOLERANT)
    report = runner.run(requests)
    report.errors   # number of failed requests
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .engine import InferenceEngine
from .errors import AtomSpaceError, InvalidInferenceInput

logger = logging.getLogger(__name__)


class ErrorMode(Enum):
    STRICT = "strict"
    TOLERANT = "tolerant"


class Operation(Enum):
    ADD_ATOM = "addAtom"
    QUERY_ATOMS = "queryAtoms"
    PATTERN_MATCH = "patternMatch"
    GET_TRUTH_VALUE = "getTruthValue"
    SET_TRUTH_VALUE = "setTruthValue"
    INFER = "infer"


# =============================================================================
# REQUEST MODELS
# =============================================================================

class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    operation: Operation


class AddAtomRequest(_Request):
    atom_type: str = Field(..., alias="atomType")
    atom_name: str | None = Field(default=None, alias="atomName")
    outgoing: list[int] | None = None
    truth_value: Any = Field(default=None, alias="truthValue")


class QueryAtomsRequest(_Request):
    query: str = ""
    atom_type: str | None = Field(default=None, alias="atomType")
    max_results: int = Field(default=100, ge=0, alias="maxResults")


class PatternMatchRequest(_Request):
    pattern: str
    max_results: int = Field(default=100, ge=0, alias="maxResults")


class GetTruthValueRequest(_Request):
    atom_id: int = Field(..., alias="atomId")


class SetTruthValueRequest(_Request):
    atom_id: int = Field(..., alias="atomId")
    truth_value: Any = Field(..., alias="truthValue")


class InferRequest(_Request):
    strategy: str
    params: dict[str, Any] | None = None
    inputs: dict[str, Any] | None = None


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class BatchReport:
    """Outcome of one batch: one entry per request, in request order."""
    results: list[dict[str, Any]] = field(default_factory=list)
    errors: int = 0
    elapsed_ms: float = 0.0

    @property
    def succeeded(self) -> int:
        return len(self.results) - self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": list(self.results),
            "errors": self.errors,
            "succeeded": self.succeeded,
            "elapsedMs": self.elapsed_ms,
        }


# =============================================================================
# RUNNER
# =============================================================================

class BatchRunner:
    """Executes request lists against one InferenceEngine.

    Requests run sequentially and in order, so later requests see atoms
    added by earlier ones.
    """

    def __init__(self, engine: InferenceEngine, mode: ErrorMode | str = ErrorMode.STRICT):
        self.engine = engine
        self.mode = ErrorMode(mode)

    def run(self, requests: Iterable[dict[str, Any]]) -> BatchReport:
        """Execute every request.

        Raises:
            AtomSpaceError: first failure, in STRICT mode only
        """
        report = BatchReport()
        start = time.perf_counter()

        for index, request in enumerate(requests):
            try:
                report.results.append(self.execute(request))
            except AtomSpaceError as exc:
                if self.mode is ErrorMode.STRICT:
                    logger.error("Batch request %d failed: %s", index, exc)
                    raise
                logger.warning("Batch request %d failed (continuing): %s", index, exc)
                report.errors += 1
                report.results.append({
                    "error": str(exc),
                    "errorType": type(exc).__name__,
                    "index": index,
                })

        report.elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Batch complete: %d request(s), %d error(s) in %.1fms",
            len(report.results), report.errors, report.elapsed_ms
        )
        return report

    def execute(self, request: dict[str, Any]) -> dict[str, Any]:
        """Execute a single request and return its response payload.

        Raises:
            InvalidInferenceInput: unknown operation or malformed request
            AtomSpaceError: the operation itself failed
        """
        operation = _parse_operation(request)
        model, handler = _OPERATIONS[operation]
        try:
            parsed = model.model_validate(request)
        except ValidationError as exc:
            raise InvalidInferenceInput(f"invalid {operation.value} request: {exc}") from exc
        return handler(self.engine, parsed)


def _parse_operation(request: Any) -> Operation:
    if not isinstance(request, dict):
        raise InvalidInferenceInput(f"request must be a mapping, got {type(request).__name__}")
    try:
        return Operation(request.get("operation"))
    except ValueError:
        raise InvalidInferenceInput(f"unknown operation {request.get('operation')!r}") from None


# =============================================================================
# OPERATIONS
# =============================================================================

def _add_atom(engine: InferenceEngine, req: AddAtomRequest) -> dict[str, Any]:
    store = engine.store
    atom_id = store.add_atom(req.atom_type, req.atom_name, req.outgoing, req.truth_value)
    atom = store.get_atom(atom_id)
    return {
        "atomId": atom.id,
        "atomType": atom.kind.value,
        "atomName": atom.name,
        "outgoing": list(atom.outgoing),
        "truthValue": atom.truth.to_dict(),
        "success": True,
    }


def _query_atoms(engine: InferenceEngine, req: QueryAtomsRequest) -> dict[str, Any]:
    atoms = engine.store.query_atoms(req.query, req.atom_type, req.max_results)
    return {
        "query": req.query,
        "atoms": [a.to_dict() for a in atoms],
        "count": len(atoms),
    }


def _pattern_match(engine: InferenceEngine, req: PatternMatchRequest) -> dict[str, Any]:
    store = engine.store
    matches = engine.matcher.find(req.pattern, req.max_results)
    return {
        "pattern": req.pattern,
        "matches": [
            {
                "matchId": i,
                "atomId": m.atom_id,
                "atom": store.to_sexpr(m.atom_id),
                "bindings": dict(m.bindings),
                "truthValue": store.get_truth_value(m.atom_id).to_dict(),
            }
            for i, m in enumerate(matches, start=1)
        ],
        "matchCount": len(matches),
    }


def _get_truth_value(engine: InferenceEngine, req: GetTruthValueRequest) -> dict[str, Any]:
    return {
        "atomId": req.atom_id,
        "truthValue": engine.store.get_truth_value(req.atom_id).to_dict(),
    }


def _set_truth_value(engine: InferenceEngine, req: SetTruthValueRequest) -> dict[str, Any]:
    old = engine.store.set_truth_value(req.atom_id, req.truth_value)
    return {
        "atomId": req.atom_id,
        "previousTruthValue": old.to_dict(),
        "truthValue": engine.store.get_truth_value(req.atom_id).to_dict(),
        "success": True,
    }


def _infer(engine: InferenceEngine, req: InferRequest) -> dict[str, Any]:
    return engine.infer(req.strategy, req.params, req.inputs).to_dict()


_OPERATIONS: dict[Operation, tuple[type[_Request], Callable[[InferenceEngine, Any], dict[str, Any]]]] = {
    Operation.ADD_ATOM: (AddAtomRequest, _add_atom),
    Operation.QUERY_ATOMS: (QueryAtomsRequest, _query_atoms),
    Operation.PATTERN_MATCH: (PatternMatchRequest, _pattern_match),
    Operation.GET_TRUTH_VALUE: (GetTruthValueRequest, _get_truth_value),
    Operation.SET_TRUTH_VALUE: (SetTruthValueRequest, _set_truth_value),
    Operation.INFER: (InferRequest, _infer),
}
