"""
atomreason/analogy.py - Analogical reasoning by structural similarity

Compares a source domain with a target domain (both given as atom ids)
and maps elements that play the same structural role.

Similarity of a pair:
- link vs link: 0.5 for the same kind, 0.25 for the same arity, 0.25 times
  the fraction of slots whose children have the same kind
- node vs node: 0.5 for the same kind, 0.5 times the Jaccard overlap of
  their relation signatures (kind and slot of every link referencing them)
- node vs link: 0.0

Pairs at or above the similarity floor are assigned greedily, one to one,
in descending similarity. Source relations are then projected onto the
target through the node correspondences to predict missing facts.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from statistics import fmean

from .atoms import Atom, AtomId, NodeKind
from .atomspace import AtomStore
from .config import InferenceParams
from .errors import InvalidInferenceInput
from .pattern import LinkPattern, to_text
from .results import AnalogicalPrediction, AnalogicalResult, Analogy

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_FLOOR = 0.5


def relation_signature(store: AtomStore, atom_id: int) -> frozenset[tuple[str, int]]:
    """(link kind, slot) for every position at which a link references the atom."""
    signature = set()
    for link_id in store.incoming(atom_id):
        link = store.get_atom(link_id)
        for slot, ref in enumerate(link.outgoing):
            if ref == atom_id:
                signature.add((link.kind.value, slot))
    return frozenset(signature)


def _jaccard(a: frozenset, b: frozenset) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def structural_similarity(store: AtomStore, source: Atom, target: Atom) -> float:
    """Similarity in [0, 1] of two stored atoms' relational shape."""
    if source.is_node != target.is_node:
        return 0.0

    if source.is_node:
        score = 0.5 if source.kind is target.kind else 0.0
        overlap = _jaccard(
            relation_signature(store, source.id),
            relation_signature(store, target.id),
        )
        return score + 0.5 * overlap

    score = 0.5 if source.kind is target.kind else 0.0
    if source.arity == target.arity:
        score += 0.25
    widest = max(source.arity, target.arity)
    if widest == 0:
        return score + 0.25
    agreeing = sum(
        1 for s, t in zip(source.outgoing, target.outgoing)
        if store.get_atom(s).kind is store.get_atom(t).kind
    )
    return score + 0.25 * agreeing / widest


def _atom_confidence(atom: Atom, use_uncertainty: bool) -> float:
    return atom.truth.confidence if use_uncertainty else 1.0


def _element_mapping(store: AtomStore, source: Atom, target: Atom) -> dict[str, str]:
    if source.is_node:
        return {source.name: target.name}
    return {
        store.to_sexpr(s): store.to_sexpr(t)
        for s, t in zip(source.outgoing, target.outgoing)
    }


def reason_by_analogy(
    store: AtomStore,
    source: Iterable[int],
    target: Iterable[int],
    params: InferenceParams | dict | None = None,
    similarity_floor: float = DEFAULT_SIMILARITY_FLOOR,
) -> AnalogicalResult:
    """Map a source domain onto a target domain.

    Args:
        store: Atom store holding both domains (read only)
        source: Source domain atom ids
        target: Target domain atom ids
        params: Inference parameters; max_steps caps the pairs compared,
            max_results caps analogies and predictions
        similarity_floor: Minimum similarity for a mapping (inclusive)

    Returns:
        AnalogicalResult with analogies in descending similarity

    Raises:
        NotFound: an id is not in the store
        InvalidInferenceInput: similarity floor outside [0, 1]
    """
    params = InferenceParams.coerce(params)
    if not 0.0 <= similarity_floor <= 1.0:
        raise InvalidInferenceInput(f"similarity floor must be in [0, 1], got {similarity_floor}")

    sources = [store.get_atom(i) for i in dict.fromkeys(source)]
    targets = [store.get_atom(i) for i in dict.fromkeys(target)]
    result = AnalogicalResult(
        source_domain=[store.to_sexpr(a.id) for a in sources],
        target_domain=[store.to_sexpr(a.id) for a in targets],
    )

    # Pairwise comparison, capped at max_steps pairs
    scored: list[tuple[float, int, int]] = []
    compared = 0
    for si, s in enumerate(sources):
        if result.bound_reached:
            break
        for ti, t in enumerate(targets):
            if compared >= params.max_steps:
                result.bound_reached = True
                break
            compared += 1
            similarity = structural_similarity(store, s, t)
            if similarity >= similarity_floor:
                scored.append((similarity, si, ti))
    result.steps_taken = compared

    # Greedy one-to-one assignment
    scored.sort(key=lambda item: (-item[0], item[1], item[2]))
    used_source: set[int] = set()
    used_target: set[int] = set()
    for similarity, si, ti in scored:
        if si in used_source or ti in used_target:
            continue
        if len(result.analogies) >= params.max_results:
            result.bound_reached = True
            break
        s, t = sources[si], targets[ti]
        used_source.add(si)
        used_target.add(ti)
        confidence = similarity * min(
            _atom_confidence(s, params.use_uncertainty),
            _atom_confidence(t, params.use_uncertainty),
        )
        result.analogies.append(Analogy(
            source_id=s.id,
            target_id=t.id,
            source_element=store.to_sexpr(s.id),
            target_element=store.to_sexpr(t.id),
            similarity=similarity,
            confidence=confidence,
            mapping=_element_mapping(store, s, t),
        ))

    if result.analogies:
        result.structural_similarity = fmean(a.similarity for a in result.analogies)

    result.predictions = _project(store, sources, result.analogies, params)

    logger.info(
        "Analogy: %d mapping(s), %d prediction(s), structural similarity %.3f",
        len(result.analogies), len(result.predictions), result.structural_similarity
    )
    return result


def _node_correspondences(
    store: AtomStore,
    analogies: list[Analogy],
) -> dict[AtomId, tuple[AtomId, float]]:
    """Source node -> (target node, similarity) from node and link mappings."""
    node_map: dict[AtomId, tuple[AtomId, float]] = {}
    for analogy in analogies:
        s = store.get_atom(analogy.source_id)
        if s.is_node:
            node_map[s.id] = (analogy.target_id, analogy.similarity)

    # Slot alignment of mapped links fills in the remaining nodes
    for analogy in analogies:
        s = store.get_atom(analogy.source_id)
        t = store.get_atom(analogy.target_id)
        if s.is_node or s.arity != t.arity:
            continue
        for s_child, t_child in zip(s.outgoing, t.outgoing):
            sc, tc = store.get_atom(s_child), store.get_atom(t_child)
            if sc.is_node and tc.is_node and sc.kind is tc.kind:
                node_map.setdefault(s_child, (t_child, analogy.similarity))
    return node_map


def _project(
    store: AtomStore,
    sources: list[Atom],
    analogies: list[Analogy],
    params: InferenceParams,
) -> list[AnalogicalPrediction]:
    node_map = _node_correspondences(store, analogies)
    predictions: list[AnalogicalPrediction] = []
    seen: set[str] = set()

    for link in sources:
        if link.is_node:
            continue
        projected: list[AtomId] = []
        similarities: list[float] = []
        for ref in link.outgoing:
            if ref in node_map:
                mapped, similarity = node_map[ref]
                projected.append(mapped)
                similarities.append(similarity)
                continue
            child = store.get_atom(ref)
            if child.is_node and child.kind is NodeKind.PREDICATE:
                # relations carry over unchanged
                projected.append(ref)
                continue
            break
        else:
            if not similarities or store.find_link(link.kind, projected) is not None:
                continue
            text = to_text(LinkPattern(link.kind, tuple(store.to_pattern(i) for i in projected)))
            if text in seen:
                continue
            if len(predictions) >= params.max_results:
                break
            seen.add(text)
            predictions.append(AnalogicalPrediction(
                prediction=text,
                confidence=_atom_confidence(link, params.use_uncertainty) * fmean(similarities),
                based_on=store.to_sexpr(link.id),
            ))

    return predictions
