"""Tests for preparing nodes and flows."""

import logging

import pytest

from nodeflow import (
    ANY,
    Code,
    Capabilities,
    CodeRef,
    ConfigurationError,
    CycleError,
    EdgeData,
    EngineContext,
    EntryMode,
    EntryState,
    FlowState,
    MalformedResultError,
    MissingNodeMetaError,
    NodeData,
    NodeEntry,
    NodeKind,
    NodeMeta,
    NodeMetaRef,
    NodeState,
    NumberType,
    RecommendationLevel,
    UnknownCapabilityError,
    ValidationFailed,
    builtin_capabilities,
    builtin_registry,
    create_node,
    execute_sub_flow,
    invalidate,
    prepare_flow,
    prepare_node,
)
from nodeflow._builtins import FLOW_INPUT, FLOW_OUTPUT, MATH_PLUS


def _plus(node_id: str, a: float | None = None, b: float | None = None) -> NodeData:
    """A plus node; inputs given as ``None`` read from edges."""
    node = create_node(MATH_PLUS, node_id)
    for name, value in (("a", a), ("b", b)):
        entry = node.input(name)
        if value is None:
            entry.config.mode = EntryMode.HANDLE
        else:
            entry.config.value = value
    return node


def _context(*metas: NodeMeta) -> EngineContext:
    registry = builtin_registry()
    for meta in metas:
        registry.register(meta)
    return EngineContext(registry, builtin_capabilities())


def _add_one_flow() -> FlowState:
    """Sub-flow publishing ``y = x + 1``."""
    return FlowState(
        nodes=[
            create_node(FLOW_INPUT, "in", attributes={"inputName": "x"}),
            _plus("p", b=1),
            create_node(FLOW_OUTPUT, "out", attributes={"outputName": "y"}),
        ],
        edges=[
            EdgeData("in", "input", "p", "a"),
            EdgeData("p", "output", "out", "output"),
        ],
    )


ADD_ONE = NodeMeta(
    id="demo/add_one",
    kind=NodeKind.COMPOUND,
    inputs=(NodeEntry("x", NumberType(), RecommendationLevel.MUST),),
    outputs=(NodeEntry("y", NumberType()),),
    flow=_add_one_flow(),
)


class TestPrepareData:
    """Tests for preparing nodes with concrete values."""

    def test_literal_inputs(self) -> None:
        flow = FlowState(nodes=[_plus("add", 1, 2)])

        result = prepare_flow(_context(), flow)

        node = result.get_result("add")
        assert result.success
        assert node.input_state == NodeState.DATA_READY
        assert node.output_state == NodeState.DATA_READY
        assert node.success is True
        assert result.get_entry("add", "output").data == 3

    def test_values_flow_along_edges(self) -> None:
        flow = FlowState(
            nodes=[_plus("p2", b=10), _plus("p1", 1, 2)],
            edges=[EdgeData("p1", "output", "p2", "a")],
        )

        result = prepare_flow(_context(), flow)

        assert result.get_entry("p2", "output").data == 13
        assert result.get_entry("p2", "a").state == EntryState.DATA_READY

    def test_prepare_node_by_id(self) -> None:
        flow = FlowState(
            nodes=[_plus("p1", 1, 2), _plus("p2", b=10)],
            edges=[EdgeData("p1", "output", "p2", "a")],
        )

        result = prepare_node(_context(), flow, "p2")

        assert result.outputs["output"].data == 13
        assert flow.get_node("p1").output("output").runtime.data == 3

    def test_missing_required_input(self) -> None:
        flow = FlowState(nodes=[_plus("p", a=1)])

        result = prepare_flow(_context(), flow)

        node = result.get_result("p")
        assert node.inputs["b"].state == EntryState.UNAVAILABLE
        assert node.input_state == NodeState.NOT_READY
        assert node.outputs["output"].state == EntryState.UNAVAILABLE
        assert node.success is None
        assert not node.failed


class TestPrepareTypes:
    """Tests for type inference when values are unknown."""

    def test_inferred_type_flows_downstream(self) -> None:
        source = NodeMeta(id="demo/range", outputs=(NodeEntry("value", NumberType(integer=True, min=0, max=5)),))
        flow = FlowState(
            nodes=[create_node(source, "r"), _plus("p", b=10)],
            edges=[EdgeData("r", "value", "p", "a")],
        )

        result = prepare_flow(_context(source), flow)

        assert result.get_entry("r", "value").state == EntryState.TYPE_READY
        assert result.get_result("p").input_state == NodeState.TYPE_READY
        output = result.get_entry("p", "output")
        assert output.state == EntryState.TYPE_READY
        assert output.type == NumberType(min=10, max=15, integer=True)
        assert result.get_result("p").output_state == NodeState.TYPE_READY

    def test_inline_type_code(self) -> None:
        meta = NodeMeta(
            id="demo/typed",
            outputs=(NodeEntry("y", ANY),),
            type_code=Code("{'y': NumberType(min=1)}"),
        )
        flow = FlowState(nodes=[create_node(meta, "t")])

        result = prepare_flow(_context(meta), flow)

        assert result.get_entry("t", "y").type == NumberType(min=1)
        assert result.get_result("t").success is True

    def test_inferred_type_outside_declared_type_fails(self) -> None:
        meta = NodeMeta(
            id="demo/typed",
            outputs=(NodeEntry("y", NumberType(max=0)),),
            type_code=Code("{'y': NumberType(min=1)}"),
        )
        flow = FlowState(nodes=[create_node(meta, "t")])

        result = prepare_flow(_context(meta), flow)

        assert result.get_entry("t", "y").state == EntryState.VALIDATE_FAILED
        assert result.get_result("t").success is False


class TestOutcomes:
    """Tests for skip and unsupported outcomes."""

    @staticmethod
    def _run(impl: Code) -> tuple[EntryState, bool | None]:
        meta = NodeMeta(id="demo/node", outputs=(NodeEntry("y", NumberType()),), impl=impl)
        flow = FlowState(nodes=[create_node(meta, "n")])
        result = prepare_flow(_context(meta), flow)
        return result.get_entry("n", "y").state, result.get_result("n").success

    def test_skip_leaves_outputs_unavailable(self) -> None:
        assert self._run(Code("Skip()")) == (EntryState.UNAVAILABLE, None)

    def test_unsupported_falls_back_to_declared_type(self) -> None:
        assert self._run(Code("Unsupported()")) == (EntryState.TYPE_READY, None)

    def test_not_implemented_error_is_unsupported(self) -> None:
        assert self._run(Code("raise NotImplementedError")) == (EntryState.TYPE_READY, None)

    def test_partial_result(self) -> None:
        meta = NodeMeta(
            id="demo/partial",
            outputs=(NodeEntry("y", NumberType()), NodeEntry("z", NumberType(integer=True))),
            impl=Code("{'y': 1, 'unknown': 2}"),
        )
        flow = FlowState(nodes=[create_node(meta, "n")])

        result = prepare_flow(_context(meta), flow)

        assert result.get_entry("n", "y").data == 1
        assert result.get_entry("n", "z").state == EntryState.TYPE_READY
        assert result.get_entry("n", "z").type == NumberType(integer=True)
        assert result.get_result("n").output_state == NodeState.TYPE_READY
        assert result.get_result("n").success is None


class TestValidation:
    """Tests for validation failures."""

    def test_literal_of_wrong_type(self) -> None:
        meta = NodeMeta(
            id="demo/int",
            inputs=(NodeEntry("x", NumberType(integer=True), RecommendationLevel.MUST),),
            outputs=(NodeEntry("y", NumberType()),),
            impl=Code("{'y': args['x']}"),
        )
        node = create_node(meta, "n")
        node.input("x").config.value = 3.5
        flow = FlowState(nodes=[node])

        result = prepare_flow(_context(meta), flow)

        n = result.get_result("n")
        assert n.inputs["x"].state == EntryState.VALIDATE_FAILED
        assert n.inputs["x"].data == 3.5
        assert n.input_state == NodeState.NOT_READY
        assert n.outputs["y"].state == EntryState.UNAVAILABLE
        assert n.success is False
        assert n.failed
        assert not result.success
        assert result.errors[0][0] == "n"
        assert "does not match the type of 'x'" in result.errors[0][1]

    def test_output_of_wrong_type(self) -> None:
        meta = NodeMeta(id="demo/text", outputs=(NodeEntry("y", NumberType()),), impl=Code("{'y': 'text'}"))
        flow = FlowState(nodes=[create_node(meta, "n")])

        result = prepare_flow(_context(meta), flow)

        n = result.get_result("n")
        assert n.outputs["y"].state == EntryState.VALIDATE_FAILED
        assert n.output_state == NodeState.VALIDATE_FAILED
        assert n.success is False
        assert len(result.errors) == 1

    def test_entry_check_code(self) -> None:
        meta = NodeMeta(
            id="demo/positive",
            inputs=(NodeEntry("x", NumberType(), RecommendationLevel.MUST, check_code=Code("data > 0")),),
        )
        node = create_node(meta, "n")
        node.input("x").config.value = -1
        flow = FlowState(nodes=[node])

        result = prepare_flow(_context(meta), flow)

        assert result.get_entry("n", "x").state == EntryState.VALIDATE_FAILED
        assert result.get_result("n").success is False

    def test_node_check_code(self) -> None:
        meta = NodeMeta(
            id="demo/ordered",
            inputs=(NodeEntry("a", NumberType()), NodeEntry("b", NumberType())),
            outputs=(NodeEntry("y", NumberType()),),
            impl=Code("{'y': args['b'] - args['a']}"),
            check_code=Code("ensure(data['a'] < data['b'], 'a must be below b', ['a'])"),
        )
        node = create_node(meta, "n")
        node.input("a").config.value = 2
        node.input("b").config.value = 1
        flow = FlowState(nodes=[node])

        result = prepare_flow(_context(meta), flow)

        n = result.get_result("n")
        assert n.input_state == NodeState.VALIDATE_FAILED
        assert n.inputs["a"].state == EntryState.VALIDATE_FAILED
        assert n.inputs["b"].state == EntryState.DATA_READY
        assert n.outputs["y"].state == EntryState.UNAVAILABLE
        assert result.errors == [("n", "a must be below b")]

    def test_huge_integer_literal(self) -> None:
        meta = NodeMeta(
            id="demo/int",
            inputs=(NodeEntry("x", NumberType(integer=True), RecommendationLevel.MUST),),
            outputs=(NodeEntry("y", NumberType(integer=True)),),
            impl=Code("{'y': args['x'] * 10}"),
        )
        node = create_node(meta, "n")
        node.input("x").config.value = 10**400
        flow = FlowState(nodes=[node, _plus("ok", 1, 1)])

        result = prepare_flow(_context(meta), flow)

        assert result.success
        assert result.get_entry("n", "y").data == 10**401
        assert result.get_entry("ok", "output").data == 2

    def test_raising_check_code_marks_entry_as_error(self) -> None:
        meta = NodeMeta(
            id="demo/broken_check",
            inputs=(NodeEntry("x", NumberType(), RecommendationLevel.MUST, check_code=Code("1 / 0")),),
            outputs=(NodeEntry("y", NumberType()),),
            impl=Code("{'y': args['x']}"),
        )
        node = create_node(meta, "n")
        node.input("x").config.value = 1
        flow = FlowState(nodes=[node, _plus("ok", 1, 1)])

        result = prepare_flow(_context(meta), flow)

        n = result.get_result("n")
        assert n.inputs["x"].state == EntryState.ERROR
        assert n.inputs["x"].error == "ZeroDivisionError: division by zero"
        assert n.input_state == NodeState.NOT_READY
        assert n.outputs["y"].state == EntryState.UNAVAILABLE
        assert n.success is False
        assert result.errors == [("n", "ZeroDivisionError: division by zero")]
        assert result.get_entry("ok", "output").data == 2


class TestExceptions:
    """Tests for implementations that raise."""

    def test_exception_is_recorded(self) -> None:
        meta = NodeMeta(
            id="demo/boom",
            outputs=(NodeEntry("y", NumberType()),),
            impl=Code("raise RuntimeError('boom')"),
        )
        flow = FlowState(nodes=[create_node(meta, "b"), _plus("ok", 1, 1)])

        result = prepare_flow(_context(meta), flow)

        boom = result.get_result("b")
        assert boom.output_state == NodeState.EXCEPTION
        assert boom.outputs["y"].state == EntryState.UNAVAILABLE
        assert boom.success is False
        assert ("b", "RuntimeError: boom") in result.errors
        assert result.get_entry("ok", "output").data == 2

    def test_downstream_of_exception_is_not_ready(self) -> None:
        meta = NodeMeta(id="demo/boom", outputs=(NodeEntry("y", NumberType()),), impl=Code("1 / 0"))
        flow = FlowState(
            nodes=[create_node(meta, "b"), _plus("p", b=1)],
            edges=[EdgeData("b", "y", "p", "a")],
        )

        result = prepare_flow(_context(meta), flow)

        assert result.get_result("p").input_state == NodeState.NOT_READY
        assert result.get_result("p").success is None

    def test_validation_failure_raised_by_implementation(self) -> None:
        def strict(_args: dict) -> dict:
            msg = "y is out of range"
            raise ValidationFailed(msg, ["y"])

        meta = NodeMeta(
            id="demo/strict",
            outputs=(NodeEntry("y", NumberType()), NodeEntry("z", NumberType())),
            impl=CodeRef("demo/strict"),
        )
        registry = builtin_registry()
        registry.register(meta)
        capabilities = builtin_capabilities().merged(Capabilities(apis={"demo/strict": strict}))
        flow = FlowState(nodes=[create_node(meta, "n")])

        result = prepare_flow(EngineContext(registry, capabilities), flow)

        n = result.get_result("n")
        assert n.output_state == NodeState.VALIDATE_FAILED
        assert n.outputs["y"].state == EntryState.VALIDATE_FAILED
        assert n.outputs["z"].state == EntryState.UNAVAILABLE
        assert n.output_error.exception is None
        assert n.success is False
        assert result.errors == [("n", "y is out of range")]


class TestCompound:
    """Tests for compound nodes and sub-flows."""

    def test_empty_compound_succeeds(self) -> None:
        meta = NodeMeta(id="demo/empty", kind=NodeKind.COMPOUND, flow=FlowState())
        flow = FlowState(nodes=[create_node(meta, "c")])

        result = prepare_flow(_context(meta), flow)

        node = result.get_result("c")
        assert node.success is True
        assert node.output_state == NodeState.DATA_READY

    def test_compound_without_sinks_has_unavailable_outputs(self) -> None:
        meta = NodeMeta(
            id="demo/empty",
            kind=NodeKind.COMPOUND,
            outputs=(NodeEntry("y", NumberType()),),
            flow=FlowState(),
        )
        flow = FlowState(nodes=[create_node(meta, "c")])

        result = prepare_flow(_context(meta), flow)

        assert result.get_entry("c", "y").state == EntryState.UNAVAILABLE
        assert result.get_result("c").success is True

    def test_sub_flow_is_evaluated(self) -> None:
        node = create_node(ADD_ONE, "c")
        node.input("x").config.value = 41
        flow = FlowState(nodes=[node])

        result = prepare_flow(_context(ADD_ONE), flow)

        assert result.get_entry("c", "y").data == 42
        assert result.get_result("c").success is True
        assert ADD_ONE.flow is not None
        assert ADD_ONE.flow.get_node("p").output("output").runtime.state == EntryState.INIT

    def test_compound_fed_by_edge(self) -> None:
        flow = FlowState(
            nodes=[_plus("src", 2, 3), create_node(ADD_ONE, "c")],
            edges=[EdgeData("src", "output", "c", "x")],
        )
        flow.get_node("c").input("x").config.mode = EntryMode.HANDLE

        result = prepare_flow(_context(ADD_ONE), flow)

        assert result.get_entry("c", "y").data == 6

    def test_execute_sub_flow(self) -> None:
        outputs = execute_sub_flow(_context(), _add_one_flow(), {"x": 1})

        assert list(outputs) == ["y"]
        assert outputs["y"].state == EntryState.DATA_READY
        assert outputs["y"].data == 2

    def test_execute_sub_flow_without_inputs(self) -> None:
        outputs = execute_sub_flow(_context(), _add_one_flow())

        assert outputs["y"].state == EntryState.UNAVAILABLE

    def test_template_overrides_flow(self) -> None:
        template = _add_one_flow()
        template.get_node("p").input("b").config.value = 10
        node = create_node(ADD_ONE, "c")
        node.input("x").config.value = 5
        node.template = template
        flow = FlowState(nodes=[node])

        result = prepare_flow(_context(ADD_ONE), flow)

        assert result.get_entry("c", "y").data == 15
        assert template.get_node("p").output("output").runtime.data == 15
        assert node.flow is not None
        assert node.flow.get_node("p").output("output").runtime.state == EntryState.INIT


class TestReevaluation:
    """Tests for caching, forcing and invalidation."""

    @staticmethod
    def _flow() -> FlowState:
        return FlowState(
            nodes=[_plus("p1", 1, 2), _plus("p2", b=10)],
            edges=[EdgeData("p1", "output", "p2", "a")],
        )

    def test_known_upstream_is_reused(self) -> None:
        ctx, flow = _context(), self._flow()
        prepare_flow(ctx, flow)
        flow.get_node("p1").input("a").config.value = 5

        assert prepare_node(ctx, flow, "p2").outputs["output"].data == 13

    def test_force_reevaluates_upstream(self) -> None:
        ctx, flow = _context(), self._flow()
        prepare_flow(ctx, flow)
        flow.get_node("p1").input("a").config.value = 5

        assert prepare_node(ctx, flow, "p2", force=True).outputs["output"].data == 17

    def test_invalidate_then_prepare(self) -> None:
        ctx, flow = _context(), self._flow()
        prepare_flow(ctx, flow)
        flow.get_node("p1").input("a").config.value = 5

        invalidate(flow, "p1")
        result = prepare_flow(ctx, flow)

        assert result.get_entry("p2", "output").data == 17


class TestConfigurationErrors:
    """Tests for errors that abort preparation."""

    def test_cycle(self) -> None:
        flow = FlowState(
            nodes=[_plus("x", b=1), _plus("y", b=1)],
            edges=[EdgeData("x", "output", "y", "a"), EdgeData("y", "output", "x", "a")],
        )

        with pytest.raises(CycleError, match="Cycle detected in flow") as excinfo:
            prepare_flow(_context(), flow)

        assert excinfo.value.cycle[0] == excinfo.value.cycle[-1]

    def test_dangling_edge(self) -> None:
        flow = FlowState(nodes=[_plus("p", b=1)], edges=[EdgeData("ghost", "output", "p", "a")])

        with pytest.raises(ConfigurationError, match="dangling source"):
            prepare_flow(_context(), flow)

    def test_unknown_definition(self) -> None:
        flow = FlowState(nodes=[NodeData(id="n", meta=NodeMetaRef("demo/unknown"))])

        with pytest.raises(MissingNodeMetaError, match="demo/unknown"):
            prepare_flow(_context(), flow)

    def test_unknown_capability(self) -> None:
        meta = NodeMeta(id="demo/ref", outputs=(NodeEntry("y"),), impl=CodeRef("nope"))
        flow = FlowState(nodes=[create_node(meta, "n")])

        with pytest.raises(UnknownCapabilityError):
            prepare_flow(_context(meta), flow)

    def test_malformed_result(self) -> None:
        meta = NodeMeta(id="demo/bad", outputs=(NodeEntry("y"),), impl=Code("42"))
        flow = FlowState(nodes=[create_node(meta, "n")])

        with pytest.raises(MalformedResultError, match="returned int"):
            prepare_flow(_context(meta), flow)


class TestDuplicateEdges:
    """Tests for inputs fed by several edges."""

    def test_first_edge_wins(self, caplog: pytest.LogCaptureFixture) -> None:
        flow = FlowState(
            nodes=[_plus("one", 1, 0), _plus("two", 2, 0), _plus("sum", b=0)],
            edges=[EdgeData("one", "output", "sum", "a"), EdgeData("two", "output", "sum", "a")],
        )

        with caplog.at_level(logging.WARNING):
            result = prepare_flow(_context(), flow)

        assert result.get_entry("sum", "output").data == 1
        assert "sum.a has 2 incoming edges" in caplog.text
