"""flowbuilder CLI - typer application entry point.

A terminal edit surface over EditorSession. Each command loads the graph
from the configured storage, applies one intent, and exits; every
committed change is persisted before the process ends.
"""

from __future__ import annotations

import atexit
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from flowbuilder import __version__
from flowbuilder.config import (
    CONFIG_FILENAME,
    DEFAULT_BACKEND,
    STORAGE_BACKENDS,
    ConfigError,
    load_config,
    write_default_config,
)
from flowbuilder.graph.algorithms import (
    assert_invariants,
    disconnected_nodes,
    is_fully_connected,
    start_and_end_nodes,
)
from flowbuilder.graph.errors import GraphCorruptionError, Rejection
from flowbuilder.graph.models import ConnectionCandidate
from flowbuilder.observability import close_file_logging, configure_logging, get_logger
from flowbuilder.persistence.factory import create_writer
from flowbuilder.persistence.protocol import PersistedState
from flowbuilder.session import EditorSession

if TYPE_CHECKING:
    from flowbuilder.config import EditorConfig

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="flowbuilder",
    help="flowbuilder: build and validate chatbot message flows.",
    no_args_is_help=True,
)
console = Console()
log = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path(CONFIG_FILENAME)

# Global state set by the callback, used by commands
_config_path: Path = DEFAULT_CONFIG_PATH


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_to_file: Annotated[
        bool,
        typer.Option("--log", help="Append all events to {storage}/logs/events.jsonl."),
    ] = False,
    config: Annotated[
        Path,
        typer.Option(
            "--config",
            "-c",
            help="Path to flowbuilder.yaml.",
            envvar="FLOWBUILDER_CONFIG",
        ),
    ] = DEFAULT_CONFIG_PATH,
) -> None:
    """flowbuilder: build and validate chatbot message flows."""
    global _config_path
    _config_path = config

    configure_logging(verbosity=verbose)
    if log_to_file:
        storage = _load_config().storage_path
        log_dir = (storage.parent if storage.suffix == ".db" else storage) / "logs"
        configure_logging(verbosity=verbose, log_to_file=True, log_dir=log_dir)
        atexit.register(close_file_logging)


def _load_config() -> EditorConfig:
    try:
        return load_config(_config_path)
    except (ConfigError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _open_session() -> EditorSession:
    config = _load_config()
    writer = create_writer(config)
    log.debug("session_opened", backend=config.storage.backend, path=str(config.storage_path))
    return EditorSession.open(config, writer)


def _fail(rejection: Rejection) -> None:
    console.print(f"[red]Rejected:[/red] {escape(rejection.to_user_message())}")
    raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"flowbuilder v{__version__}")


@app.command()
def init(
    backend: Annotated[
        str,
        typer.Option("--backend", "-b", help=f"Storage backend ({', '.join(STORAGE_BACKENDS)})."),
    ] = DEFAULT_BACKEND,
    force: Annotated[
        bool, typer.Option("--force", help="Overwrite an existing config file.")
    ] = False,
) -> None:
    """Create flowbuilder.yaml with default settings."""
    if _config_path.exists() and not force:
        console.print(f"[red]Error:[/red] {_config_path} already exists (use --force)")
        raise typer.Exit(1)
    if backend not in STORAGE_BACKENDS:
        console.print(f"[red]Error:[/red] Unknown backend {backend!r}")
        raise typer.Exit(1)

    config = write_default_config(_config_path, backend=backend)
    console.print(f"[green]Created config[/green] {_config_path}")
    console.print(f"  storage: {config.storage.backend} at {config.storage_path}")


@app.command()
def show() -> None:
    """Show nodes, connections and save readiness."""
    session = _open_session()
    try:
        graph = session.graph

        nodes_table = Table(title="Nodes")
        nodes_table.add_column("ID", style="cyan")
        nodes_table.add_column("Message")
        nodes_table.add_column("Position", style="dim")
        for node in graph.nodes:
            position = f"({node.position.x:.0f}, {node.position.y:.0f})"
            nodes_table.add_row(escape(node.id), escape(node.message), position)
        console.print(nodes_table)

        if graph.edges:
            edges_table = Table(title="Connections")
            edges_table.add_column("ID", style="dim")
            edges_table.add_column("From", style="cyan")
            edges_table.add_column("To", style="cyan")
            for edge in graph.edges:
                source = edge.source_node_id
                if edge.source_handle_id:
                    source += f".{edge.source_handle_id}"
                target = edge.target_node_id
                if edge.target_handle_id:
                    target += f".{edge.target_handle_id}"
                edges_table.add_row(escape(edge.id), escape(source), escape(target))
            console.print(edges_table)
        else:
            console.print("[dim]No connections.[/dim]")

        starts, ends = start_and_end_nodes(graph)
        if starts or ends:
            console.print(f"Start: {', '.join(starts) or '-'}   End: {', '.join(ends) or '-'}")

        if is_fully_connected(graph):
            console.print("[green]Ready to save.[/green]")
        else:
            missing = ", ".join(disconnected_nodes(graph))
            console.print(f"[yellow]Warning:[/yellow] Not connected to the flow: {escape(missing)}")
    finally:
        session.close()


@app.command()
def add(message: Annotated[str, typer.Argument(help="Message text for the new node")]) -> None:
    """Create a message node."""
    session = _open_session()
    try:
        result = session.create_node(message)
        if isinstance(result, Rejection):
            _fail(result)
        else:
            console.print(f"[green]Created node[/green] {result.id}")
    finally:
        session.close()


@app.command()
def edit(
    node_id: Annotated[str, typer.Argument(help="Node to edit")],
    message: Annotated[str, typer.Argument(help="New message text")],
) -> None:
    """Replace a node's message."""
    session = _open_session()
    try:
        result = session.update_node(node_id, message)
        if isinstance(result, Rejection):
            _fail(result)
        else:
            console.print(f"[green]Updated node[/green] {node_id}")
    finally:
        session.close()


@app.command()
def delete(
    node_id: Annotated[str, typer.Argument(help="Node to delete")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt.")] = False,
) -> None:
    """Delete a node and every connection touching it."""
    session = _open_session()
    try:
        node = session.graph.get_node(node_id)
        if node is None:
            console.print(f"[dim]No node {node_id!r}; nothing deleted.[/dim]")
            return
        if not yes and not typer.confirm(f"Delete node {node_id} ({node.message!r})?"):
            raise typer.Exit(0)
        removed = session.delete_node(node_id) or []
        console.print(f"[green]Deleted node[/green] {node_id} ({len(removed)} connection(s))")
    finally:
        session.close()


@app.command()
def connect(
    source: Annotated[str, typer.Argument(help="Source node id")],
    target: Annotated[str, typer.Argument(help="Target node id")],
    source_handle: Annotated[
        str | None, typer.Option("--source-handle", help="Source handle id")
    ] = None,
    target_handle: Annotated[
        str | None, typer.Option("--target-handle", help="Target handle id")
    ] = None,
) -> None:
    """Connect two nodes."""
    session = _open_session()
    try:
        candidate = ConnectionCandidate(
            source_node_id=source,
            source_handle_id=source_handle,
            target_node_id=target,
            target_handle_id=target_handle,
        )
        result = session.connect(candidate)
        if isinstance(result, Rejection):
            _fail(result)
        else:
            console.print(f"[green]Connected[/green] {source} -> {target} ({result.id})")
    finally:
        session.close()


@app.command()
def disconnect(edge_id: Annotated[str, typer.Argument(help="Connection id")]) -> None:
    """Remove a connection."""
    session = _open_session()
    try:
        if session.disconnect_edge(edge_id) is None:
            console.print(f"[dim]No connection {edge_id!r}; nothing removed.[/dim]")
        else:
            console.print(f"[green]Removed connection[/green] {edge_id}")
    finally:
        session.close()


@app.command()
def save() -> None:
    """Save the flow if every node is connected."""
    session = _open_session()
    try:
        result = session.request_save()
        message = session.outcomes[-1].message
        if not result.ok:
            console.print(f"[red]{message}[/red]")
            raise typer.Exit(1)
        console.print(f"[green]{message}[/green]")
    finally:
        session.close()


@app.command()
def reset(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt.")] = False,
) -> None:
    """Clear all nodes and connections."""
    if not yes and not typer.confirm("Are you sure you want to clear all nodes and connections?"):
        raise typer.Exit(0)
    session = _open_session()
    try:
        session.reset_all()
        console.print("[green]Flow reset to the default node.[/green]")
    finally:
        session.close()


@app.command()
def check() -> None:
    """Audit the stored graph against its invariants."""
    config = _load_config()
    writer = create_writer(config)
    try:
        try:
            state = PersistedState.read_from(writer.adapter)
            if state.is_empty:
                console.print("[dim]Nothing stored yet.[/dim]")
                return
            graph = state.to_graph()
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            console.print(f"[red]Stored graph is unreadable:[/red] {escape(str(e))}")
            raise typer.Exit(1) from e

        try:
            assert_invariants(graph, context="check")
        except GraphCorruptionError as e:
            console.print(f"[red]{len(e.violations)} invariant violation(s):[/red]")
            for v in e.violations:
                console.print(f"  - {escape(v)}")
            raise typer.Exit(1) from e
        console.print(
            f"[green]OK[/green] {len(graph.nodes)} node(s), {len(graph.edges)} connection(s)"
        )
    finally:
        writer.close()
