"""
atomreason/errors.py - Error taxonomy

Every failure raised by the store, the matcher and the inference engine
derives from AtomSpaceError so collaborators can catch the whole family
with one clause. Failed calls never leave partial state behind.
"""
from __future__ import annotations


class AtomSpaceError(Exception):
    """Base class for all atomreason errors."""


class InvalidArity(AtomSpaceError):
    """Raised when an outgoing set does not fit the arity of its kind."""

    def __init__(self, kind: str, expected: str, got: int):
        self.kind = kind
        self.expected = expected
        self.got = got
        super().__init__(f"{kind} expects {expected} outgoing atoms, got {got}")


class InvalidTruthValue(AtomSpaceError, ValueError):
    """Raised when strength or confidence fall outside [0, 1]."""


class DanglingReference(AtomSpaceError):
    """Raised when a link references an atom id the store does not hold."""

    def __init__(self, atom_id):
        self.atom_id = atom_id
        super().__init__(f"outgoing reference to unknown atom {atom_id!r}")


class NotFound(AtomSpaceError, LookupError):
    """Raised when an atom id is not in the store."""

    def __init__(self, atom_id):
        self.atom_id = atom_id
        super().__init__(f"atom {atom_id!r} not found")


class InvalidPatternError(AtomSpaceError, ValueError):
    """Raised for malformed pattern text or pattern trees."""

    def __init__(self, message: str, text: str | None = None):
        self.text = text
        super().__init__(message)


class UnknownStrategy(AtomSpaceError, ValueError):
    """Raised when an inference strategy name is not recognised."""

    def __init__(self, name):
        self.name = name
        super().__init__(f"unknown inference strategy: {name!r}")


class InvalidInferenceInput(AtomSpaceError, ValueError):
    """Raised when strategy inputs or parameters fail validation."""
