"""Exception hierarchy for nodeflow.

Configuration errors signal an invalid graph or registry and are never caught by the
engine. ``ValidationFailed`` is the distinguished signal raised by verification code.
"""

from collections.abc import Sequence


class NodeflowError(Exception):
    """Base class of all nodeflow errors."""


class TypeModelError(NodeflowError, ValueError):
    """A raw entry type could not be parsed."""


class ConfigurationError(NodeflowError):
    """The flow, the registry or the capabilities are inconsistent."""


class UnknownCapabilityError(ConfigurationError, KeyError):
    """A code reference names an implementation that is not registered."""

    def __str__(self) -> str:
        # KeyError would quote the message
        return str(self.args[0]) if self.args else ""


class MissingNodeMetaError(ConfigurationError):
    """A node instance refers to a node definition that cannot be resolved."""


class MalformedResultError(ConfigurationError):
    """An implementation returned something that is not a mapping of entry names."""


class CycleError(ConfigurationError):
    """The flow contains a dependency cycle."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Cycle detected in flow: {' -> '.join(self.cycle)}")


class ValidationFailed(NodeflowError):  # noqa: N818
    """A value or type failed its declared type or verification code.

    Attributes:
        message: Human readable reason.
        entries: Names of the entries the failure refers to. Empty means the failure
            applies to every entry under validation.

    """

    def __init__(self, message: str, entries: Sequence[str] = ()) -> None:
        self.message = message
        self.entries = list(entries)
        super().__init__(message)
