"""Build a flow in Python and infer its output types without concrete values.

The sensor node has no implementation, so only its declared type is known. The
engine propagates that type through math/plus instead of a value.
"""

from nodeflow import (
    EdgeData,
    EngineContext,
    EntryMode,
    FlowState,
    NodeEntry,
    NodeMeta,
    NumberType,
    builtin_capabilities,
    builtin_registry,
    create_node,
    dump_entry_type,
    prepare_flow,
)

# A source whose value is not known until the flow is deployed
sensor = NodeMeta(
    id="demo/sensor",
    title="Sensor",
    outputs=(NodeEntry("reading", NumberType(integer=True, min=0, max=1023)),),
)

registry = builtin_registry()
registry.register(sensor)

plus = next(meta for meta in registry if meta.id == "math/plus")
offset = create_node(plus, "offset")
offset.input("a").config.mode = EntryMode.HANDLE
offset.input("b").config.value = 100

flow = FlowState(
    nodes=[create_node(sensor, "sensor"), offset],
    edges=[EdgeData("sensor", "reading", "offset", "a")],
)

result = prepare_flow(EngineContext(registry, builtin_capabilities()), flow)

output = result.get_entry("offset", "output")
print(f"state: {output.state}")  # type-ready
print(f"type:  {dump_entry_type(output.type)}")  # {'name': 'number', 'min': 100, 'max': 1123, 'integer': True}
