"""Built-in node definitions and their implementations."""

from collections.abc import Mapping
from typing import Any

from ._code import Capabilities, CodeRef, Unsupported
from ._combine import combine, combine_union
from ._engine import INPUT_CATEGORY, OUTPUT_CATEGORY, SINK_ENTRY, SOURCE_ENTRY
from ._enums import RecommendationLevel
from ._flow import NodeEntry, NodeMeta, NodeRegistry
from ._types import ANY, BoolType, DictType, NodeEntryType, NumberType, StringType, UnionType

BUILTIN_VERSION = "1.0.0"

FLOW_INPUT = NodeMeta(
    id="flow/input",
    version=BUILTIN_VERSION,
    title="Input",
    category=INPUT_CATEGORY,
    outputs=(NodeEntry(SOURCE_ENTRY, ANY, description="Value of the enclosing node's input"),),
    description="Publishes an input of the enclosing compound node, selected by the 'inputName' attribute.",
)

FLOW_OUTPUT = NodeMeta(
    id="flow/output",
    version=BUILTIN_VERSION,
    title="Output",
    category=OUTPUT_CATEGORY,
    inputs=(NodeEntry(SINK_ENTRY, ANY, RecommendationLevel.MUST, "Value to publish"),),
    description="Publishes a value as the enclosing node's output named by the 'outputName' attribute.",
)

MATH_PLUS = NodeMeta(
    id="math/plus",
    version=BUILTIN_VERSION,
    title="Plus",
    category="math",
    inputs=(
        NodeEntry("a", NumberType(), RecommendationLevel.MUST),
        NodeEntry("b", NumberType(), RecommendationLevel.MUST),
    ),
    outputs=(NodeEntry("output", NumberType()),),
    impl=CodeRef("math/plus"),
    type_code=CodeRef("math/plus"),
)

LOGIC_IF = NodeMeta(
    id="logic/if",
    version=BUILTIN_VERSION,
    title="If",
    category="logic",
    inputs=(
        NodeEntry("condition", BoolType(), RecommendationLevel.MUST),
        NodeEntry("if_true", ANY, RecommendationLevel.SHOULD),
        NodeEntry("if_false", ANY, RecommendationLevel.SHOULD),
    ),
    outputs=(NodeEntry("output", ANY),),
    impl=CodeRef("logic/if"),
    type_code=CodeRef("logic/if"),
)

LOGIC_SWITCH = NodeMeta(
    id="logic/switch",
    version=BUILTIN_VERSION,
    title="Switch",
    category="logic",
    inputs=(
        NodeEntry("selector", UnionType((NumberType(), StringType())), RecommendationLevel.MUST),
        NodeEntry("cases", DictType(), RecommendationLevel.SHOULD, "Values by selector"),
        NodeEntry("default", ANY, RecommendationLevel.NORMAL, "Value when no case matches"),
    ),
    outputs=(NodeEntry("output", ANY),),
    impl=CodeRef("logic/switch"),
    type_code=CodeRef("logic/switch"),
)

BUILTIN_METAS = (FLOW_INPUT, FLOW_OUTPUT, MATH_PLUS, LOGIC_IF, LOGIC_SWITCH)


def _plus(args: Mapping[str, Any]) -> dict[str, Any]:
    return {"output": args["a"] + args["b"]}


def _number_bounds(t: NumberType) -> tuple[float | None, float | None, bool]:
    # An enumeration is approximated by its range.
    enum = t.effective_enum()
    if enum:
        return min(enum), max(enum), all(isinstance(v, int) or float(v).is_integer() for v in enum)
    return t.min, t.max, t.integer


def _plus_type(args: Mapping[str, Any]) -> object:
    a, b = args["a"], args["b"]
    if not isinstance(a, NumberType) or not isinstance(b, NumberType):
        return Unsupported()
    ea, eb = a.effective_enum(), b.effective_enum()
    if ea and eb:
        return {"output": NumberType(enum=tuple(sorted({x + y for x in ea for y in eb})))}
    a_min, a_max, a_int = _number_bounds(a)
    b_min, b_max, b_int = _number_bounds(b)
    low = None if a_min is None or b_min is None else a_min + b_min
    high = None if a_max is None or b_max is None else a_max + b_max
    return {"output": NumberType(min=low, max=high, integer=a_int and b_int)}


def _if(args: Mapping[str, Any]) -> dict[str, Any]:
    return {"output": args["if_true"] if args["condition"] else args["if_false"]}


def _if_type(args: Mapping[str, Any]) -> dict[str, NodeEntryType]:
    condition = args["condition"]
    if isinstance(condition, BoolType) and condition.literal is not None:
        return {"output": args["if_true"] if condition.literal else args["if_false"]}
    return {"output": combine(args["if_true"], args["if_false"])}


def _case_key(selector: object) -> str:
    if isinstance(selector, float) and selector.is_integer():
        selector = int(selector)
    return str(selector)


def _switch(args: Mapping[str, Any]) -> dict[str, Any]:
    cases = args["cases"] or {}
    return {"output": cases.get(_case_key(args["selector"]), args["default"])}


def _switch_type(args: Mapping[str, Any]) -> dict[str, NodeEntryType]:
    cases, default = args["cases"], args["default"]
    if not isinstance(cases, DictType) or cases.keys is None:
        return {"output": ANY}
    return {"output": combine_union([*(field.type for field in cases.keys.values()), default])}


def builtin_registry() -> NodeRegistry:
    """Registry holding the built-in node definitions."""
    return NodeRegistry(BUILTIN_METAS)


def builtin_capabilities() -> Capabilities:
    """Implementations referenced by the built-in node definitions."""
    return Capabilities(
        apis={"math/plus": _plus, "logic/if": _if, "logic/switch": _switch},
        type_apis={"math/plus": _plus_type, "logic/if": _if_type, "logic/switch": _switch_type},
    )
