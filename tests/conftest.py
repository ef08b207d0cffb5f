"""
Pytest fixtures shared by the atomreason test suite.

Provides small knowledge graphs and rule bases used across modules.
"""

import pytest

from atomreason import AtomStore, InferenceEngine, RuleBase

# =============================================================================
# STORE FIXTURES
# =============================================================================


@pytest.fixture
def store() -> AtomStore:
    """Empty atom store."""
    return AtomStore()


@pytest.fixture
def human_store() -> tuple[AtomStore, dict[str, int]]:
    """Human -> Animal with explicit truth values."""
    store = AtomStore()
    ids = {}
    ids["human"] = store.add_atom("Concept", "Human", truth=(0.9, 0.8))
    ids["animal"] = store.add_atom("Concept", "Animal")
    ids["link"] = store.add_atom(
        "Inheritance", outgoing=[ids["human"], ids["animal"]], truth=(0.95, 0.9)
    )
    return store, ids


@pytest.fixture
def taxonomy() -> tuple[AtomStore, dict[str, int]]:
    """Cat -> Mammal -> Animal, plus Dog -> Mammal."""
    store = AtomStore()
    ids = {}
    for name in ("Cat", "Dog", "Mammal", "Animal"):
        ids[name] = store.add_atom("Concept", name, truth=(1.0, 1.0))
    ids["cat_mammal"] = store.add_atom(
        "Inheritance", outgoing=[ids["Cat"], ids["Mammal"]], truth=(0.95, 0.9)
    )
    ids["mammal_animal"] = store.add_atom(
        "Inheritance", outgoing=[ids["Mammal"], ids["Animal"]], truth=(0.9, 0.85)
    )
    ids["dog_mammal"] = store.add_atom(
        "Inheritance", outgoing=[ids["Dog"], ids["Mammal"]], truth=(0.95, 0.8)
    )
    return store, ids


# =============================================================================
# RULE FIXTURES
# =============================================================================


@pytest.fixture
def transitivity() -> RuleBase:
    """Inheritance is transitive (reliability 0.9)."""
    rules = RuleBase()
    rules.rule("transitivity") \
        .when("(Inheritance $A $B)") \
        .and_("(Inheritance $B $C)") \
        .then("(Inheritance $A $C)") \
        .reliability(0.9) \
        .done()
    return rules


@pytest.fixture
def engine(taxonomy, transitivity) -> InferenceEngine:
    store, _ = taxonomy
    return InferenceEngine(store, rules=transitivity)
