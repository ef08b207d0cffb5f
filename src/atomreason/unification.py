"""
atomreason/unification.py - Unification of pattern trees

Implements the Martelli-Montanari unification algorithm over patterns.
Unification finds the most general substitution that makes two patterns
identical; the backward chainer uses it to select rules whose conclusion
fits a goal, and abduction uses it to test whether a hypothesis predicts an
observation.

Key operations:
- unify(p1, p2): find substitution θ such that p1θ = p2θ
- substitute(p, θ): apply substitution to a pattern
- occurs_check(var, p): check for circular references
- rename_apart(patterns, suffix): fresh variable names for rule reuse

Matching patterns against stored atoms lives in matcher.py.
"""
from __future__ import annotations

from .pattern import LinkPattern, NodePattern, Pattern, VariablePattern

# Type alias for substitution
Substitution = dict[str, Pattern]


def unify(
    p1: Pattern,
    p2: Pattern,
    theta: Substitution | None = None
) -> Substitution | None:
    """Unify two patterns and return the most general unifier (MGU).

    Args:
        p1: First pattern
        p2: Second pattern
        theta: Initial substitution (default: empty)

    Returns:
        Most general unifier, or None if unification fails

    Example:
        # (Inheritance $X (Concept "Animal")) with (Inheritance (Concept "Cat") $Y)
        theta = unify(parse_pattern(a), parse_pattern(b))
        # theta = {"$X": Concept("Cat"), "$Y": Concept("Animal")}
    """
    if theta is None:
        theta = {}

    p1 = substitute(p1, theta)
    p2 = substitute(p2, theta)

    if p1 == p2:
        return theta

    if isinstance(p1, VariablePattern):
        return _unify_var(p1, p2, theta)
    if isinstance(p2, VariablePattern):
        return _unify_var(p2, p1, theta)

    if isinstance(p1, NodePattern) and isinstance(p2, NodePattern):
        # equal nodes were handled above
        return None

    if isinstance(p1, LinkPattern) and isinstance(p2, LinkPattern):
        if p1.kind != p2.kind or p1.arity != p2.arity:
            return None

        for c1, c2 in zip(p1.children, p2.children):
            theta = unify(c1, c2, theta)
            if theta is None:
                return None

        return theta

    # node against link
    return None


def _unify_var(var: VariablePattern, pattern: Pattern, theta: Substitution) -> Substitution | None:
    """Unify a variable with a pattern."""
    if var.name in theta:
        return unify(theta[var.name], pattern, theta)

    if occurs_check(var, pattern, theta):
        return None

    theta = dict(theta)
    theta[var.name] = pattern
    return theta


def occurs_check(var: VariablePattern, pattern: Pattern, theta: Substitution) -> bool:
    """Return True if var occurs inside pattern (would build an infinite tree)."""
    pattern = substitute(pattern, theta)

    if isinstance(pattern, VariablePattern):
        return pattern.name == var.name
    if isinstance(pattern, LinkPattern):
        return any(occurs_check(var, child, theta) for child in pattern.children)
    return False


def substitute(pattern: Pattern, theta: Substitution) -> Pattern:
    """Apply substitution to a pattern.

    Variables bound to other variables are followed to the end of the chain.
    """
    if isinstance(pattern, VariablePattern):
        if pattern.name in theta:
            return substitute(theta[pattern.name], theta)
        return pattern

    if isinstance(pattern, LinkPattern):
        if pattern.is_ground():
            return pattern
        return LinkPattern(pattern.kind, tuple(substitute(c, theta) for c in pattern.children))

    return pattern


def rename_apart(
    patterns: list[Pattern],
    suffix: str
) -> tuple[list[Pattern], Substitution]:
    """Rename variables in patterns to avoid capture.

    Args:
        patterns: Patterns to rename (renamed consistently across the list)
        suffix: Suffix to add to variable names

    Returns:
        (renamed_patterns, renaming_substitution)
    """
    all_vars: list[str] = []
    for p in patterns:
        for name in p.variables():
            if name not in all_vars:
                all_vars.append(name)

    renaming: Substitution = {v: VariablePattern(f"{v}{suffix}") for v in all_vars}
    renamed = [substitute(p, renaming) for p in patterns]
    return renamed, renaming


def resolve(theta: Substitution, names: list[str]) -> Substitution:
    """Fully substituted bindings for the given variable names."""
    return {
        name: substitute(theta[name], theta)
        for name in names
        if name in theta
    }
