import json
import logging
from enum import StrEnum
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from nodeflow._builtins import builtin_capabilities, builtin_registry
from nodeflow._engine import EngineContext, prepare_flow
from nodeflow._enums import ErrorLevel
from nodeflow._errors import NodeflowError
from nodeflow._flow import NodeRegistry, check_flow
from nodeflow._io import FlowDocument, LibraryDocument, export_results_to_toml, load_flow, load_library
from nodeflow._normalize import normalize
from nodeflow._types import dump_entry_type

from .config import ConfigError, NodeflowConfig, get_config
from .render import render_errors, render_flow_result

app = typer.Typer()

logger = logging.getLogger(__name__)
# Console for stderr (info/errors)
err_console = Console(stderr=True)
# Console for stdout (results)
out_console = Console()


class DocumentKind(StrEnum):
    LIBRARY = "library"
    FLOW = "flow"


@app.callback()
def callback(
    *,
    verbose: bool = typer.Option(default=False, help="Enable verbose output"),
) -> None:
    """Nodeflow CLI."""
    log_level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=err_console,
                show_time=False,
                show_path=verbose,
                rich_tracebacks=True,
            ),
        ],
    )


def _load_config() -> NodeflowConfig:
    try:
        return get_config()
    except ConfigError as e:
        err_console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


def _fail(error: Exception) -> typer.Exit:
    err_console.print()
    err_console.print(f"[red]✗ {escape(str(error))}[/red]")
    err_console.print()
    return typer.Exit(code=1)


def _resolve_inputs(
    flow: Path | None,
    library: list[Path] | None,
) -> tuple[Path, list[Path], NodeflowConfig]:
    """Fill missing command-line arguments from [tool.nodeflow]."""
    config = _load_config()
    flow_path = flow or config.flow
    if flow_path is None:
        err_console.print(f"[red]✗ No flow given and no {escape('[tool.nodeflow].flow')} configured[/red]")
        raise typer.Exit(code=1)
    return flow_path, list(library) if library else list(config.library), config


def _load_registry(library: list[Path]) -> NodeRegistry:
    for path in library:
        err_console.print(f"[cyan]Loading library from:[/cyan] {path}")
    registry = load_library(library, base=builtin_registry())
    err_console.print(f"[cyan]Node definitions:[/cyan] [bold]{len(registry)}[/bold]")
    return registry


@app.command()
def run(
    flow: Annotated[
        Path | None,
        typer.Argument(help="Path to the flow document (TOML or JSON)"),
    ] = None,
    *,
    library: Annotated[
        list[Path] | None,
        typer.Option("-l", "--library", help="Path to a library document (repeatable)"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("-o", "--output", help="Path to output TOML file"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Re-evaluate every node even if its outputs are known"),
    ] = False,
) -> None:
    """Prepare a flow and show the state of every node."""
    err_console.print()
    flow_path, libraries, config = _resolve_inputs(flow, library)
    output = output or config.output

    try:
        registry = _load_registry(libraries)
        err_console.print(f"[cyan]Loading flow from:[/cyan] {flow_path}")
        flow_state = load_flow(flow_path, registry)
        err_console.print()

        err_console.print("[cyan]Preparing flow...[/cyan]")
        result = prepare_flow(EngineContext(registry, builtin_capabilities()), flow_state, force=force)
    except (NodeflowError, ValidationError, OSError) as e:
        raise _fail(e) from e
    err_console.print()

    err_console.print(
        Panel(
            render_flow_result(result),
            title=f"[bold]Flow: {escape(flow_path.name)}[/bold]",
            subtitle=f"[dim]{len(result.node_results)} nodes[/dim]",
            border_style="cyan",
        ),
    )
    if result.errors:
        err_console.print(Panel(render_errors(result.errors, "Node"), title="[bold]Errors[/bold]", border_style="red"))
    err_console.print()

    if output is not None:
        err_console.print(f"[cyan]Exporting results to:[/cyan] {output}")
        export_results_to_toml(flow_state, output)
        err_console.print()

    failed = [node_id for node_id, node in result.node_results.items() if node.failed]
    if failed:
        err_console.print(f"[red]✗ {len(failed)} node(s) failed: {escape(', '.join(failed))}[/red]")
        err_console.print()
        raise typer.Exit(code=1)

    err_console.print("[green]✓ Flow prepared[/green]")
    err_console.print()


@app.command()
def check(
    flow: Annotated[
        Path | None,
        typer.Argument(help="Path to the flow document (TOML or JSON)"),
    ] = None,
    *,
    library: Annotated[
        list[Path] | None,
        typer.Option("-l", "--library", help="Path to a library document (repeatable)"),
    ] = None,
) -> None:
    """Check a flow for structural problems without evaluating it."""
    err_console.print()
    flow_path, libraries, _ = _resolve_inputs(flow, library)

    try:
        registry = _load_registry(libraries)
        err_console.print(f"[cyan]Loading flow from:[/cyan] {flow_path}")
        flow_state = load_flow(flow_path, registry)
    except (NodeflowError, ValidationError, OSError) as e:
        raise _fail(e) from e
    err_console.print()

    err_console.print("[cyan]Checking flow...[/cyan]")
    issues = check_flow(flow_state, registry)
    err_console.print()

    errors = [issue for issue in issues if issue.level == ErrorLevel.ERROR]
    warnings = [issue for issue in issues if issue.level == ErrorLevel.WARNING]
    if warnings:
        table = render_errors([(issue.location, issue.message) for issue in warnings])
        err_console.print(Panel(table, title="[bold]Warnings[/bold]", border_style="yellow"))
    if errors:
        table = render_errors([(issue.location, issue.message) for issue in errors])
        err_console.print(Panel(table, title="[bold]Errors[/bold]", border_style="red"))
        err_console.print()
        err_console.print(f"[red]✗ Flow has {len(errors)} error(s)[/red]")
        err_console.print()
        raise typer.Exit(code=1)

    err_console.print(f"[green]✓ Flow is valid ({len(flow_state)} nodes, {len(flow_state.edges)} edges)[/green]")
    err_console.print()


@app.command("normalize")
def normalize_type(
    type_json: Annotated[
        str,
        typer.Argument(help='Entry type as JSON, e.g. \'{"name": "number", "min": 0}\''),
    ],
) -> None:
    """Print the canonical form of an entry type."""
    try:
        raw = json.loads(type_json)
        normalized = normalize(raw)
    except (json.JSONDecodeError, NodeflowError) as e:
        raise _fail(e) from e
    out_console.print(json.dumps(dump_entry_type(normalized)), soft_wrap=True, markup=False, highlight=False)


@app.command()
def schema(
    *,
    output: Annotated[
        Path,
        typer.Option("-o", "--output", help="Path to output JSON schema file"),
    ],
    document: Annotated[
        DocumentKind,
        typer.Option("--document", help="Document to describe"),
    ] = DocumentKind.LIBRARY,
    indent: Annotated[
        int,
        typer.Option("--indent", help="JSON indentation spaces"),
    ] = 2,
) -> None:
    """Generate JSON schema for library or flow documents."""
    err_console.print()

    err_console.print(f"[cyan]Generating {document} document JSON schema...[/cyan]")
    model = LibraryDocument if document == DocumentKind.LIBRARY else FlowDocument
    json_schema = model.model_json_schema()

    err_console.print(f"[cyan]Writing schema to:[/cyan] {output}")
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w") as f:
        json.dump(json_schema, f, indent=indent)

    err_console.print()
    err_console.print("[green]✓ Schema generation complete[/green]")
    err_console.print()


def main() -> None:
    app()
