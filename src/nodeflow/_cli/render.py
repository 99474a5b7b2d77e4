"""Rendering utilities for prepared flows and static checks."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table

from nodeflow._enums import EntryState, NodeState
from nodeflow._types import dump_entry_type

if TYPE_CHECKING:
    from nodeflow._engine import FlowResult
    from nodeflow._flow import EntryRuntime


def _state_style(state: NodeState | EntryState | None) -> str:
    """Get Rich style for a node or entry state."""
    match state:
        case NodeState.DATA_READY | EntryState.DATA_READY:
            return "green"
        case NodeState.TYPE_READY | EntryState.TYPE_READY:
            return "cyan"
        case NodeState.VALIDATE_FAILED | EntryState.VALIDATE_FAILED | NodeState.EXCEPTION | EntryState.ERROR:
            return "red"
        case NodeState.NOT_READY | NodeState.UNAVAILABLE | EntryState.UNAVAILABLE:
            return "yellow"
        case _:
            return "dim"


def _state_symbol(state: NodeState | EntryState | None) -> str:
    """Get symbol for a node or entry state."""
    match _state_style(state):
        case "green":
            return "✓"
        case "cyan":
            return "○"
        case "red":
            return "✗"
        case "yellow":
            return "?"
        case _:
            return "-"


def format_state(state: NodeState | EntryState | None) -> str:
    """Format a state with color and symbol."""
    style = _state_style(state)
    label = state.value if state is not None else "init"
    return f"[{style}]{_state_symbol(state)} {label}[/{style}]"


def format_entry(runtime: EntryRuntime) -> str:
    """Format the content of an entry: its value, its type or its error."""
    match runtime.state:
        case EntryState.DATA_READY:
            return escape(repr(runtime.data))
        case EntryState.TYPE_READY if runtime.type is not None:
            return escape(json.dumps(dump_entry_type(runtime.type)))
        case EntryState.VALIDATE_FAILED | EntryState.ERROR:
            return f"[red]{escape(runtime.error or '')}[/red]"
        case _:
            return "[dim]-[/dim]"


def render_flow_result(result: FlowResult) -> Table:
    """Render node and entry states of a prepared flow as a table."""
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Node", style="bold")
    table.add_column("Entry")
    table.add_column("State")
    table.add_column("Value / Type")

    for node_id, node in result.node_results.items():
        table.add_row(escape(node_id), "[dim]inputs[/dim]", format_state(node.input_state), "")
        for name, runtime in node.inputs.items():
            table.add_row("", f"  {escape(name)}", format_state(runtime.state), format_entry(runtime))
        table.add_row("", "[dim]outputs[/dim]", format_state(node.output_state), "")
        for name, runtime in node.outputs.items():
            table.add_row("", f"  {escape(name)}", format_state(runtime.state), format_entry(runtime))
    return table


def render_errors(errors: list[tuple[str, str]], title: str = "Location") -> Table:
    """Render ``(location, message)`` pairs as a table."""
    table = Table(show_header=True, header_style="bold red", box=None)
    table.add_column(title, style="dim")
    table.add_column("Message")
    for location, message in errors:
        table.add_row(escape(location), f"[red]{escape(message)}[/red]")
    return table
