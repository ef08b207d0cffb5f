"""
atomreason/temporal.py - Interval algebra over timestamped facts

Every fact occupies the interval [start, start + duration]; a fact without
a duration is ongoing up to the reference time. For each pair of facts the
Allen relation is computed:

    before / after          a ends before b starts
    meets / met_by          a ends exactly when b starts
    overlaps / overlapped_by
    starts / started_by     same start, a ends first
    during / contains       a lies strictly inside b
    finishes / finished_by  same end, a starts later
    equals

Asserted relations are checked against each other and against the
computed ones; contradictions are violations, soft problems (ongoing
facts, facts outside the window, unknown labels) are warnings.
Labels seen at least twice also yield a prediction of their next start.
"""
from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from statistics import fmean, pstdev
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .atomspace import AtomStore
from .bounds import Deadline
from .config import InferenceParams
from .errors import InvalidInferenceInput
from .results import (
    ConsistencyCheck,
    TemporalFactRecord,
    TemporalPrediction,
    TemporalRelation,
    TemporalResult,
)

logger = logging.getLogger(__name__)


INVERSE = {
    "before": "after",
    "after": "before",
    "meets": "met_by",
    "met_by": "meets",
    "overlaps": "overlapped_by",
    "overlapped_by": "overlaps",
    "starts": "started_by",
    "started_by": "starts",
    "during": "contains",
    "contains": "during",
    "finishes": "finished_by",
    "finished_by": "finishes",
    "equals": "equals",
}

RELATION_TYPES = {
    "before": "temporal_precedence",
    "after": "temporal_precedence",
    "meets": "temporal_precedence",
    "met_by": "temporal_precedence",
    "overlaps": "temporal_overlap",
    "overlapped_by": "temporal_overlap",
    "starts": "temporal_containment",
    "started_by": "temporal_containment",
    "during": "temporal_containment",
    "contains": "temporal_containment",
    "finishes": "temporal_containment",
    "finished_by": "temporal_containment",
    "equals": "temporal_equality",
}

_WINDOW_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhdw])\s*$")
_WINDOW_UNITS = {
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}
_CAMEL_RE = re.compile(r"(?<=[a-z])(?=[A-Z])")


# =============================================================================
# INPUT MODELS
# =============================================================================

class TemporalFact(BaseModel):
    """A labelled interval. Naive datetimes are taken as UTC."""

    model_config = ConfigDict(extra="forbid")

    label: str = Field(..., min_length=1)
    start: datetime
    duration: timedelta | None = None
    atom: int | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    @field_validator("start")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)

    @field_validator("duration")
    @classmethod
    def _non_negative(cls, v: timedelta | None) -> timedelta | None:
        if v is not None and v < timedelta(0):
            raise ValueError("duration must not be negative")
        return v


class RelationAssertion(BaseModel):
    """A caller's claim that event1 stands in `relation` to event2."""

    model_config = ConfigDict(extra="forbid")

    event1: str
    event2: str
    relation: str

    @field_validator("relation")
    @classmethod
    def _known(cls, v: str) -> str:
        name = normalize_relation(v)
        if name not in INVERSE:
            raise ValueError(f"unknown interval relation {v!r}")
        return name


def normalize_relation(name: str) -> str:
    """'metBy', 'met-by' and 'MET_BY' all become 'met_by'."""
    name = _CAMEL_RE.sub("_", name.strip())
    return name.replace("-", "_").replace(" ", "_").lower()


def parse_window(window: str) -> timedelta:
    """'30m', '1h', '1d', '1w' (also seconds, and decimals like '1.5h').

    Raises:
        InvalidInferenceInput: unrecognised window
    """
    m = _WINDOW_RE.match(window)
    if not m:
        raise InvalidInferenceInput(f"invalid time window {window!r}")
    return float(m.group(1)) * _WINDOW_UNITS[m.group(2)]


def _validate_all(model: type[BaseModel], items: Iterable[Any]) -> list[Any]:
    parsed = []
    for item in items:
        if isinstance(item, model):
            parsed.append(item)
            continue
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as exc:
            raise InvalidInferenceInput(f"invalid {model.__name__}: {exc}") from exc
    return parsed


# =============================================================================
# INTERVAL ALGEBRA
# =============================================================================

def allen_relation(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> str:
    """Allen relation of interval a to interval b.

    A zero-length interval sharing an endpoint with a longer one is placed
    by that endpoint: [t, t] starts [t, t+d] and finishes [t-d, t].
    """
    if a_end < b_start:
        return "before"
    if b_end < a_start:
        return "after"
    if a_start == b_start and a_end == b_end:
        return "equals"
    if a_start == b_start:
        return "starts" if a_end < b_end else "started_by"
    if a_end == b_end:
        return "finishes" if a_start > b_start else "finished_by"
    if a_end == b_start:
        return "meets"
    if b_end == a_start:
        return "met_by"
    if a_start > b_start and a_end < b_end:
        return "during"
    if a_start < b_start and a_end > b_end:
        return "contains"
    return "overlaps" if a_start < b_start else "overlapped_by"


def _relation_between(first: TemporalFactRecord, second: TemporalFactRecord) -> str:
    return allen_relation(first.start, first.end, second.start, second.end)


def _precedence_cycle(edges: dict[str, set[str]]) -> list[str] | None:
    """A cycle in the "happens before" graph, or None."""
    WHITE, GREY, BLACK = 0, 1, 2
    color: dict[str, int] = defaultdict(int)
    path: list[str] = []

    def visit(node: str) -> list[str] | None:
        color[node] = GREY
        path.append(node)
        for nxt in sorted(edges.get(node, ())):
            if color[nxt] == GREY:
                return path[path.index(nxt):] + [nxt]
            if color[nxt] == WHITE:
                found = visit(nxt)
                if found:
                    return found
        path.pop()
        color[node] = BLACK
        return None

    for node in sorted(edges):
        if color[node] == WHITE:
            found = visit(node)
            if found:
                return found
    return None


# =============================================================================
# STRATEGY
# =============================================================================

def reason_temporally(
    store: AtomStore,
    facts: Iterable[TemporalFact | dict[str, Any]],
    relations: Iterable[RelationAssertion | dict[str, Any]] = (),
    params: InferenceParams | dict | None = None,
    time_window: str | None = None,
    reference_time: datetime | None = None,
) -> TemporalResult:
    """Relate, check and extrapolate timestamped facts.

    Args:
        store: Atom store; facts naming an atom take its confidence
        facts: Labelled intervals
        relations: Asserted relations between labels
        params: Inference parameters; max_steps caps the fact pairs compared
        time_window: Only facts intersecting [reference - window, reference]
            are considered
        reference_time: "Now" (default: latest start or end among the facts)

    Returns:
        TemporalResult

    Raises:
        InvalidInferenceInput: malformed fact, relation or window
        NotFound: a fact names an atom that is not stored
    """
    params = InferenceParams.coerce(params)
    parsed = _validate_all(TemporalFact, facts)
    assertions = _validate_all(RelationAssertion, relations)
    window = parse_window(time_window) if time_window is not None else None
    deadline = Deadline(params.timeout_seconds)

    if reference_time is None and parsed:
        moments = [f.start for f in parsed]
        moments += [f.start + f.duration for f in parsed if f.duration is not None]
        reference_time = max(moments)
    elif reference_time is not None and reference_time.tzinfo is None:
        reference_time = reference_time.replace(tzinfo=timezone.utc)

    result = TemporalResult(time_window=time_window)
    check = result.consistency_check

    # Materialize intervals
    for fact in parsed:
        ongoing = fact.duration is None
        end = max(fact.start, reference_time) if ongoing else fact.start + fact.duration
        if window is not None and (end < reference_time - window or fact.start > reference_time):
            check.warnings.append(f"fact {fact.label!r} lies outside the {time_window} window")
            continue
        if ongoing:
            check.warnings.append(f"fact {fact.label!r} is ongoing")
        result.temporal_facts.append(TemporalFactRecord(
            label=fact.label,
            start=fact.start,
            end=end,
            ongoing=ongoing,
            confidence=_fact_confidence(store, fact, params.use_uncertainty),
        ))

    # Pairwise relations, capped at max_steps pairs
    records = result.temporal_facts
    compared = 0
    for i, first in enumerate(records):
        if result.bound_reached or result.incomplete:
            break
        for second in records[i + 1:]:
            if compared >= params.max_steps:
                result.bound_reached = True
                break
            if deadline.expired():
                result.incomplete = True
                break
            compared += 1
            relation = _relation_between(first, second)
            result.temporal_relations.append(TemporalRelation(
                event1=first.label,
                event2=second.label,
                relation=relation,
                confidence=min(first.confidence, second.confidence),
                type=RELATION_TYPES[relation],
            ))
    result.steps_taken = compared

    _check_assertions(records, assertions, check)
    result.predictions = _predict_recurrences(records, params.max_results)

    logger.info(
        "Temporal reasoning: %d fact(s), %d relation(s), consistent=%s",
        len(records), len(result.temporal_relations), check.is_consistent
    )
    if check.violations:
        logger.warning("Temporal violations: %s", check.violations)
    return result


def _fact_confidence(store: AtomStore, fact: TemporalFact, use_uncertainty: bool) -> float:
    if fact.confidence is not None:
        return fact.confidence
    if fact.atom is not None:
        atom = store.get_atom(fact.atom)
        return atom.truth.confidence if use_uncertainty else 1.0
    return 1.0


def _check_assertions(
    records: list[TemporalFactRecord],
    assertions: list[RelationAssertion],
    check: ConsistencyCheck,
) -> None:
    by_label: dict[str, list[TemporalFactRecord]] = defaultdict(list)
    for record in records:
        by_label[record.label].append(record)

    # Same pair, mutually exclusive claims
    claims: dict[tuple[str, str], list[str]] = defaultdict(list)
    for a in assertions:
        if a.event1 <= a.event2:
            key, relation = (a.event1, a.event2), a.relation
        else:
            key, relation = (a.event2, a.event1), INVERSE[a.relation]
        if relation not in claims[key]:
            claims[key].append(relation)
    for (e1, e2), relations in claims.items():
        if len(relations) > 1:
            check.violations.append(
                f"conflicting relations between {e1!r} and {e2!r}: {', '.join(relations)}"
            )

    # Claims against the computed intervals
    for a in assertions:
        missing = [label for label in (a.event1, a.event2) if label not in by_label]
        if missing:
            for label in missing:
                check.warnings.append(f"relation refers to unknown or excluded fact {label!r}")
            continue
        if a.event1 == a.event2:
            check.warnings.append(f"relation of {a.event1!r} to itself ignored")
            continue
        computed = {
            _relation_between(x, y)
            for x in by_label[a.event1]
            for y in by_label[a.event2]
        }
        if a.relation not in computed:
            check.violations.append(
                f"asserted {a.event1!r} {a.relation} {a.event2!r} but intervals give "
                f"{', '.join(sorted(computed))}"
            )

    # Precedence cycle among claims
    edges: dict[str, set[str]] = defaultdict(set)
    for a in assertions:
        if a.relation in ("before", "meets"):
            edges[a.event1].add(a.event2)
        elif a.relation in ("after", "met_by"):
            edges[a.event2].add(a.event1)
    cycle = _precedence_cycle(edges)
    if cycle:
        check.violations.append(f"precedence cycle: {' -> '.join(cycle)}")


def _predict_recurrences(
    records: list[TemporalFactRecord],
    max_results: int,
) -> list[TemporalPrediction]:
    starts: dict[str, list[datetime]] = defaultdict(list)
    for record in records:
        starts[record.label].append(record.start)

    predictions: list[TemporalPrediction] = []
    for label, times in starts.items():
        if len(times) < 2:
            continue
        times.sort()
        gaps = [(b - a).total_seconds() for a, b in zip(times, times[1:])]
        mean_gap = fmean(gaps)
        if mean_gap <= 0:
            continue
        if len(predictions) >= max_results:
            break
        predictions.append(TemporalPrediction(
            event=label,
            predicted_time=times[-1] + timedelta(seconds=mean_gap),
            confidence=max(0.0, 1.0 - pstdev(gaps) / mean_gap),
        ))
    return predictions
