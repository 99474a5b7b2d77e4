"""Enumerations shared by the flow model and the engine."""

from enum import IntEnum, StrEnum
from typing import Self


class StrEnumWithDoc(StrEnum):
    """Base class for string enums whose members carry a docstring."""

    def __new__(cls, value: str, doc: str = "") -> Self:
        """Create a new enum member with a docstring."""
        obj = str.__new__(cls, value)
        obj._value_ = value
        obj.__doc__ = doc
        return obj


class RecommendationLevel(IntEnum):
    """How strongly an entry is expected to be connected."""

    BROKEN = -2
    DEPRECATED = -1
    NORMAL = 0
    RECOMMEND = 1
    SHOULD = 2
    MUST = 3


class EntryMode(StrEnumWithDoc):
    """Where an input entry takes its value from."""

    HANDLE = "handle", "The value arrives through an incoming edge."
    INPUT = "input", "The value is a literal stored in the entry config."


class EntryState(StrEnumWithDoc):
    """Runtime state of a single node entry."""

    INIT = "init", "Never evaluated in the current pass."
    DATA_READY = "data-ready", "A concrete value is known."
    TYPE_READY = "type-ready", "Only the type of the value is known."
    VALIDATE_FAILED = "validate-failed", "The value or type failed validation."
    UNAVAILABLE = "unavailable", "Nothing can be said about the entry."
    ERROR = "error", "The entry could not be evaluated."

    @property
    def is_known(self) -> bool:
        """Whether the entry carries a value or a type."""
        return self in (EntryState.DATA_READY, EntryState.TYPE_READY)


class NodeState(StrEnumWithDoc):
    """Aggregated readiness of the inputs or the outputs of a node."""

    DATA_READY = "data-ready", "All entries carry concrete values."
    TYPE_READY = "type-ready", "All entries are known, some only by type."
    NOT_READY = "not-ready", "A required entry is missing."
    VALIDATE_FAILED = "validate-failed", "An entry failed validation."
    UNAVAILABLE = "unavailable", "The node could not be evaluated."
    EXCEPTION = "exception", "An implementation raised an exception."


class NodeKind(StrEnumWithDoc):
    """Kind of a node definition."""

    BASE = "base", "A leaf node backed by an implementation."
    COMPOUND = "compound", "A node backed by an embedded sub-flow."


class ErrorLevel(StrEnum):
    """Severity of a recorded validation error."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
