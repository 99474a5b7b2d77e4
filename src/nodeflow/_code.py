"""User-supplied code: inline snippets, named implementations and their outcomes."""

from __future__ import annotations

import ast
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from ._errors import MalformedResultError, UnknownCapabilityError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Code:
    """Inline source code, run through a :class:`CodeEvaluator`."""

    source: str


@dataclass(frozen=True, slots=True)
class CodeRef:
    """Reference to an implementation registered in :class:`Capabilities`."""

    ref: str


type Implementation = Code | CodeRef


@dataclass(frozen=True, slots=True)
class Produced:
    """The implementation produced values (or types) for some outputs."""

    values: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Skip:
    """The implementation cannot produce anything yet; no output is written."""


@dataclass(frozen=True, slots=True)
class Unsupported:
    """This implementation path does not apply; the next strategy is tried."""


type Outcome = Produced | Skip | Unsupported


def as_outcome(result: object, *, source: str) -> Outcome:
    """Interpret the return value of an implementation.

    Mappings are produced values and ``NotImplemented`` means unsupported.

    Raises:
        MalformedResultError: If the result is neither a mapping nor an outcome.

    """
    match result:
        case Produced() | Skip() | Unsupported():
            return result
        case _ if result is NotImplemented:
            return Unsupported()
        case Mapping():
            return Produced(result)
        case _:
            msg = f"{source} returned {type(result).__name__}, expected a mapping of entry names"
            raise MalformedResultError(msg)


class CodeEvaluator(Protocol):
    """Runs a snippet of source code with the given bindings and returns its value."""

    def __call__(self, source: str, bindings: Mapping[str, Any]) -> Any: ...


def evaluate_python(source: str, bindings: Mapping[str, Any]) -> Any:
    """Evaluate Python source and return the value of its last expression.

    If the source does not end with an expression, the value bound to ``result`` is
    returned. This is not a sandbox: the code runs with full interpreter access.

    Example:
        >>> evaluate_python("x = a + 1\\nx * 2", {"a": 1})
        4

    """
    tree = ast.parse(source, mode="exec")
    namespace: dict[str, Any] = dict(bindings)
    last: ast.Expression | None = None
    if tree.body and isinstance(tree.body[-1], ast.Expr):
        last = ast.Expression(tree.body.pop().value)
    exec(compile(tree, "<nodeflow>", "exec"), namespace)  # noqa: S102
    if last is not None:
        return eval(compile(last, "<nodeflow>", "eval"), namespace)  # noqa: S307
    return namespace.get("result")


type DataApi = Callable[[Mapping[str, Any]], object]
type TypeApi = Callable[[Mapping[str, Any]], object]
type CheckApi = Callable[[Any, str | None], object]


@dataclass(frozen=True, slots=True)
class Capabilities:
    """Named implementations available to :class:`CodeRef` references.

    Attributes:
        apis: Data-producing implementations, called with the bound input values.
        type_apis: Type-inferring implementations, called with the bound input types.
        check_apis: Verification predicates, called with the value and the entry name.

    """

    apis: Mapping[str, DataApi] = field(default_factory=dict)
    type_apis: Mapping[str, TypeApi] = field(default_factory=dict)
    check_apis: Mapping[str, CheckApi] = field(default_factory=dict)

    def _lookup[F](self, table: Mapping[str, F], kind: str, name: str) -> F:
        try:
            return table[name]
        except KeyError:
            msg = f"Unknown {kind} implementation: '{name}'"
            raise UnknownCapabilityError(msg) from None

    def data_api(self, name: str) -> DataApi:
        return self._lookup(self.apis, "data", name)

    def type_api(self, name: str) -> TypeApi:
        return self._lookup(self.type_apis, "type", name)

    def check_api(self, name: str) -> CheckApi:
        return self._lookup(self.check_apis, "check", name)

    def merged(self, other: Capabilities) -> Capabilities:
        """Capabilities of ``self`` extended (and overridden) by ``other``."""
        return Capabilities(
            apis={**self.apis, **other.apis},
            type_apis={**self.type_apis, **other.type_apis},
            check_apis={**self.check_apis, **other.check_apis},
        )
