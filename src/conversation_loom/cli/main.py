"""CLI entry point for conversation-loom.

Invoked as::

    loom [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m conversation_loom.cli.main

Commands
--------
- version   — show version information
- new       — create a graph with one root conversation
- list      — list stored graphs
- append    — append a message to a conversation
- show      — display a graph or a single conversation
- tree      — render the graph as a tree
- validate  — check graph integrity
- layout    — compute (and optionally apply) a tree layout
- branch    — fork a conversation at a message
- merge     — merge conversations into a synthesis node
- delete    — delete a conversation
- move      — set a conversation's canvas position
- export    — write a graph snapshot to a JSON or YAML file
- import    — load a snapshot file into the store

Node ids may be abbreviated to any unique prefix.
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from conversation_loom.config import GraphConfig, load_config
from conversation_loom.context.selector import validate_branch_data
from conversation_loom.context.summarizer import ExtractiveSummarizer, build_summary_request
from conversation_loom.context.tokens import estimate_tokens
from conversation_loom.errors import GraphIntegrityError, LoomError
from conversation_loom.graph.models import InheritanceMode, MessageRole, Position
from conversation_loom.graph.store import ConversationGraph
from conversation_loom.persistence.repository import GraphRepository
from conversation_loom.persistence.serializer import GraphSerializer
from conversation_loom.storage.base import StorageBackend
from conversation_loom.storage.filesystem import FilesystemBackend
from conversation_loom.storage.memory import InMemoryBackend
from conversation_loom.storage.sqlite import SQLiteBackend

console = Console()

_ROLE_STYLES = {"user": "green", "assistant": "blue", "system": "yellow"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_backend(
    storage: str,
    db_path: str | None,
    storage_dir: str | None,
) -> StorageBackend:
    """Instantiate the requested storage backend."""
    if storage == "memory":
        return InMemoryBackend()
    if storage == "sqlite":
        return SQLiteBackend(db_path=db_path)
    return FilesystemBackend(storage_dir=storage_dir)


def _fail(message: str) -> NoReturn:
    console.print(f"[red]Error:[/red] {message}")
    sys.exit(1)


def _repository(ctx: click.Context) -> GraphRepository:
    return ctx.obj["repository"]


def _load_graph(ctx: click.Context, graph_id: str) -> ConversationGraph:
    try:
        return _repository(ctx).load(graph_id)
    except LoomError as exc:
        _fail(str(exc))


def _resolve_node(graph: ConversationGraph, ref: str) -> str:
    """Return the node id matching ``ref`` exactly or by unique prefix."""
    if ref in graph:
        return ref
    matches = [node.id for node in graph.nodes() if node.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        _fail(f"No conversation matches {ref!r}.")
    _fail(f"{ref!r} is ambiguous: {', '.join(m[:8] for m in matches)}")


def _node_label(graph: ConversationGraph, node_id: str) -> str:
    node = graph.get_node(node_id)
    title = node.metadata.title or "(untitled)"
    marker = " [magenta]⧉ merge[/magenta]" if node.is_merge_node else ""
    return f"[bold]{title}[/bold] [dim]{node.id[:8]}[/dim] ({len(node.content)} msg){marker}"


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="conversation-loom")
@click.option(
    "--storage",
    default="filesystem",
    show_default=True,
    type=click.Choice(["memory", "filesystem", "sqlite"], case_sensitive=False),
    help="Storage backend to use.",
)
@click.option("--db-path", default=None, help="Path to SQLite database (sqlite backend).")
@click.option("--storage-dir", default=None, help="Directory for filesystem backend.")
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML file with graph configuration.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    storage: str,
    db_path: str | None,
    storage_dir: str | None,
    config_path: str | None,
) -> None:
    """Branch and merge AI conversations as a graph."""
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path) if config_path else GraphConfig()
    except ValueError as exc:
        _fail(f"Invalid config: {exc}")
    ctx.obj["config"] = config
    ctx.obj["repository"] = GraphRepository(
        _make_backend(storage.lower(), db_path, storage_dir), config=config
    )


@cli.command(name="version")
def version_command() -> None:
    """Show version information."""
    from conversation_loom import __version__

    console.print(f"[bold]conversation-loom[/bold] v{__version__}")


# ---------------------------------------------------------------------------
# new / list / append
# ---------------------------------------------------------------------------


@cli.command(name="new")
@click.option("--title", default="", help="Title of the root conversation.")
@click.option("--graph-id", default=None, help="Explicit graph id (default: random UUID).")
@click.option("--tag", "tags", multiple=True, help="Tag for the root conversation.")
@click.pass_context
def new_command(ctx: click.Context, title: str, graph_id: str | None, tags: tuple[str, ...]) -> None:
    """Create a graph with one empty root conversation and save it."""
    graph = ConversationGraph(config=ctx.obj["config"], graph_id=graph_id)
    root = graph.create_root(title=title, tags=tags)
    _repository(ctx).save(graph)
    console.print(f"[green]Graph created:[/green] {graph.graph_id}")
    console.print(f"  root: {root.id}")


@cli.command(name="list")
@click.pass_context
def list_command(ctx: click.Context) -> None:
    """List stored graphs."""
    entries = _repository(ctx).entries()
    if not entries:
        console.print("[yellow]No graphs found.[/yellow]")
        return
    table = Table(title="Graphs")
    table.add_column("Graph ID", style="cyan")
    table.add_column("Title")
    table.add_column("Nodes", justify="right")
    table.add_column("Merges", justify="right")
    table.add_column("Saved at")
    for entry in entries:
        table.add_row(
            entry.graph_id,
            entry.title or "-",
            str(entry.node_count),
            str(entry.merge_count),
            entry.saved_at.isoformat(timespec="seconds"),
        )
    console.print(table)


@cli.command(name="append")
@click.argument("graph_id")
@click.argument("node")
@click.argument("role", type=click.Choice([r.value for r in MessageRole]))
@click.argument("content")
@click.pass_context
def append_command(ctx: click.Context, graph_id: str, node: str, role: str, content: str) -> None:
    """Append a ROLE message with CONTENT to conversation NODE."""
    graph = _load_graph(ctx, graph_id)
    node_id = _resolve_node(graph, node)
    message = graph.append_message(node_id, role, content)
    _repository(ctx).save(graph)
    console.print(f"[green]Message appended:[/green] {message.id} -> {node_id[:8]}")


# ---------------------------------------------------------------------------
# show / tree / validate
# ---------------------------------------------------------------------------


@cli.command(name="show")
@click.argument("graph_id")
@click.option("--node", default=None, help="Show a single conversation in detail.")
@click.option("--json-output", is_flag=True, help="Output raw JSON instead of a formatted view.")
@click.pass_context
def show_command(ctx: click.Context, graph_id: str, node: str | None, json_output: bool) -> None:
    """Display GRAPH_ID, or one conversation with --node."""
    graph = _load_graph(ctx, graph_id)

    if node is None:
        if json_output:
            console.print_json(graph.snapshot().model_dump_json(indent=2))
            return
        table = Table(title=f"Graph {graph.graph_id[:8]}", show_lines=True)
        table.add_column("ID", style="bold cyan")
        table.add_column("Title")
        table.add_column("Kind")
        table.add_column("Parents")
        table.add_column("Messages", justify="right")
        table.add_column("Position")
        for item in graph.nodes():
            kind = "merge" if item.is_merge_node else ("root" if item.is_root else "branch")
            table.add_row(
                item.id[:8],
                item.metadata.title,
                kind,
                ", ".join(p[:8] for p in item.parent_card_ids) or "-",
                str(item.metadata.message_count),
                f"({item.position.x:.0f}, {item.position.y:.0f})",
            )
        console.print(table)
        return

    node_id = _resolve_node(graph, node)
    item = graph.get_node(node_id)
    if json_output:
        console.print_json(item.model_dump_json(indent=2))
        return

    table = Table(title=f"Conversation {item.id[:8]}", show_lines=True)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    table.add_row("id", item.id)
    table.add_row("title", item.metadata.title)
    table.add_row("merge node", str(item.is_merge_node))
    table.add_row("parents", ", ".join(item.parent_card_ids) or "-")
    if item.branch_point is not None:
        table.add_row("branch point", f"message {item.branch_point.message_index + 1}")
    table.add_row("messages", str(len(item.content)))
    table.add_row("tags", ", ".join(item.metadata.tags) or "-")
    table.add_row("updated_at", item.metadata.updated_at.isoformat())
    console.print(table)

    for parent_id, entry in item.inherited_context.items():
        console.print(
            f"\n[bold]Inherited from {parent_id[:8]}[/bold] "
            f"({entry.mode.value}, {len(entry.messages)} of {entry.total_parent_messages} "
            f"messages, ~{estimate_tokens(entry.messages)} tokens)"
        )
    if item.content:
        console.print("\n[bold]Messages:[/bold]")
        for message in item.content:
            style = _ROLE_STYLES.get(message.role.value, "white")
            header = f"[{style}]{message.role.value.upper()}[/{style}] | {message.id[:8]}"
            console.print(Panel(message.content, title=header, expand=False))


@cli.command(name="tree")
@click.argument("graph_id")
@click.pass_context
def tree_command(ctx: click.Context, graph_id: str) -> None:
    """Render GRAPH_ID as a tree.  Merge nodes appear under each parent."""
    graph = _load_graph(ctx, graph_id)
    root_tree = Tree(f"[bold]Graph {graph.graph_id[:8]}[/bold]")

    def _add(branch: Tree, node_id: str, trail: frozenset[str]) -> None:
        child_branch = branch.add(_node_label(graph, node_id))
        for child_id in graph.children_of(node_id):
            if child_id in trail:
                continue
            _add(child_branch, child_id, trail | {child_id})

    for root_id in graph.roots():
        _add(root_tree, root_id, frozenset({root_id}))
    console.print(root_tree)


@cli.command(name="validate")
@click.argument("graph_id")
@click.pass_context
def validate_command(ctx: click.Context, graph_id: str) -> None:
    """Check GRAPH_ID's node and edge invariants.  Exits 1 on problems."""
    try:
        snapshot = _repository(ctx).load_snapshot(graph_id)
    except (LoomError, ValueError) as exc:
        _fail(str(exc))
    try:
        graph = ConversationGraph.from_snapshot(snapshot, ctx.obj["config"])
    except GraphIntegrityError as exc:
        console.print(f"[red]Graph {snapshot.graph_id} is invalid:[/red]")
        for problem in exc.problems:
            console.print(f"  - {problem}")
        sys.exit(1)
    console.print(
        f"[green]Graph {graph.graph_id} is valid[/green] "
        f"({len(graph)} node(s), {len(graph.edges())} edge(s))."
    )


# ---------------------------------------------------------------------------
# layout
# ---------------------------------------------------------------------------


@cli.command(name="layout")
@click.argument("graph_id")
@click.option("--seed", default=None, type=int, help="Seed for horizontal jitter.")
@click.option("--apply", "apply_layout", is_flag=True, help="Move nodes and save the graph.")
@click.pass_context
def layout_command(ctx: click.Context, graph_id: str, seed: int | None, apply_layout: bool) -> None:
    """Compute a tree layout for GRAPH_ID."""
    graph = _load_graph(ctx, graph_id)
    positions = graph.compute_layout(seed=seed)

    table = Table(title=f"Layout for {graph.graph_id[:8]}")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("x", justify="right")
    table.add_column("y", justify="right")
    for node_id, position in positions.items():
        node = graph.get_node(node_id)
        table.add_row(node_id[:8], node.metadata.title, f"{position.x:.1f}", f"{position.y:.1f}")
    console.print(table)

    if apply_layout:
        graph.apply_layout(positions)
        _repository(ctx).save(graph)
        console.print(f"[green]Layout applied to {len(positions)} node(s).[/green]")


# ---------------------------------------------------------------------------
# branch / merge / delete
# ---------------------------------------------------------------------------


def _auto_summary(graph: ConversationGraph, node_id: str, message_index: int | None) -> str:
    request = build_summary_request(graph.get_node(node_id), message_index)
    return ExtractiveSummarizer().summarize(request).summary


@cli.command(name="branch")
@click.argument("graph_id")
@click.argument("node")
@click.argument("message_number", type=int)
@click.option(
    "--mode",
    default=InheritanceMode.FULL.value,
    show_default=True,
    type=click.Choice([m.value for m in InheritanceMode]),
    help="Inheritance mode.",
)
@click.option("--message-id", "message_ids", multiple=True, help="Selected message id (custom mode).")
@click.option("--reason", default="", help="Branch reason, used as the title.")
@click.option("--summary", default=None, help="Summary text (summary mode).  Generated when omitted.")
@click.pass_context
def branch_command(
    ctx: click.Context,
    graph_id: str,
    node: str,
    message_number: int,
    mode: str,
    message_ids: tuple[str, ...],
    reason: str,
    summary: str | None,
) -> None:
    """Fork NODE after MESSAGE_NUMBER (1-based) into a new conversation."""
    graph = _load_graph(ctx, graph_id)
    node_id = _resolve_node(graph, node)
    source = graph.get_node(node_id)
    inheritance_mode = InheritanceMode(mode)
    message_index = message_number - 1

    result = validate_branch_data(
        inheritance_mode,
        message_ids,
        source.content[: message_index + 1] if message_index >= 0 else [],
        [m for entry in source.inherited_context.values() for m in entry.messages],
        large_context_warning=ctx.obj["config"].large_context_warning,
        summary_truncation=ctx.obj["config"].summary_truncation,
    )
    if not result.valid:
        _fail(result.error or "Invalid branch request.")
    if result.warning:
        console.print(f"[yellow]Warning:[/yellow] {result.warning}")

    in_range = 0 <= message_index < len(source.content)
    if inheritance_mode == InheritanceMode.SUMMARY and not summary and in_range:
        summary = _auto_summary(graph, node_id, message_index)

    try:
        child = graph.create_branch(
            node_id,
            message_index,
            inheritance_mode=inheritance_mode,
            custom_message_ids=set(message_ids) or None,
            branch_reason=reason,
            summary_text=summary,
        )
    except LoomError as exc:
        _fail(str(exc))
    _repository(ctx).save(graph)
    console.print(f"[green]Branch created:[/green] {child.id}")
    console.print(f"  title: {child.metadata.title}")


@cli.command(name="merge")
@click.argument("graph_id")
@click.argument("nodes", nargs=-1, required=True)
@click.option("--prompt", default=None, help="Synthesis prompt (opening message and title).")
@click.option(
    "--summarize",
    "summarized",
    multiple=True,
    help="Inherit this source as a generated summary instead of in full.",
)
@click.pass_context
def merge_command(
    ctx: click.Context,
    graph_id: str,
    nodes: tuple[str, ...],
    prompt: str | None,
    summarized: tuple[str, ...],
) -> None:
    """Merge two or more NODES of GRAPH_ID into a synthesis conversation."""
    graph = _load_graph(ctx, graph_id)
    source_ids = [_resolve_node(graph, ref) for ref in nodes]
    summary_ids = {_resolve_node(graph, ref) for ref in summarized}
    stray = summary_ids - set(source_ids)
    if stray:
        _fail(f"--summarize names non-source node(s): {', '.join(sorted(stray))}")

    modes = {source_id: InheritanceMode.SUMMARY for source_id in summary_ids}
    texts = {source_id: _auto_summary(graph, source_id, None) for source_id in summary_ids}
    try:
        merged = graph.create_merge_node(
            source_ids,
            synthesis_prompt=prompt,
            inheritance_modes=modes,
            summary_texts=texts,
        )
    except LoomError as exc:
        _fail(str(exc))
    _repository(ctx).save(graph)
    console.print(f"[green]Merge node created:[/green] {merged.id}")
    console.print(f"  sources: {', '.join(s[:8] for s in merged.parent_card_ids)}")


@cli.command(name="delete")
@click.argument("graph_id")
@click.argument("node")
@click.pass_context
def delete_command(ctx: click.Context, graph_id: str, node: str) -> None:
    """Delete conversation NODE from GRAPH_ID."""
    graph = _load_graph(ctx, graph_id)
    node_id = _resolve_node(graph, node)
    dependents = graph.children_of(node_id)
    try:
        graph.delete_conversation(node_id)
    except LoomError as exc:
        _fail(str(exc))
    _repository(ctx).save(graph)
    console.print(f"[green]Deleted:[/green] {node_id}")
    if dependents:
        console.print(f"  pruned from {len(dependents)} dependent conversation(s)")


@cli.command(name="move")
@click.argument("graph_id")
@click.argument("node")
@click.argument("x", type=float)
@click.argument("y", type=float)
@click.pass_context
def move_command(ctx: click.Context, graph_id: str, node: str, x: float, y: float) -> None:
    """Move NODE to canvas position (X, Y)."""
    graph = _load_graph(ctx, graph_id)
    node_id = _resolve_node(graph, node)
    graph.move_node(node_id, Position(x=x, y=y))
    _repository(ctx).save(graph)
    console.print(f"[green]Moved:[/green] {node_id[:8]} -> ({x:.0f}, {y:.0f})")


# ---------------------------------------------------------------------------
# export / import
# ---------------------------------------------------------------------------


@cli.command(name="export")
@click.argument("graph_id")
@click.argument("output_file", type=click.Path(dir_okay=False))
@click.option(
    "--format",
    "fmt",
    default="json",
    show_default=True,
    type=click.Choice(["json", "yaml"]),
    help="Output format.",
)
@click.pass_context
def export_command(ctx: click.Context, graph_id: str, output_file: str, fmt: str) -> None:
    """Write GRAPH_ID to OUTPUT_FILE as a checksummed snapshot."""
    graph = _load_graph(ctx, graph_id)
    raw = GraphSerializer().serialize(graph.snapshot(), fmt)  # type: ignore[arg-type]
    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(raw, encoding="utf-8")
    console.print(f"[green]Exported ({fmt}):[/green] {output_file}")


@cli.command(name="import")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--format",
    "fmt",
    default=None,
    type=click.Choice(["json", "yaml"]),
    help="Input format (default: from the file extension).",
)
@click.pass_context
def import_command(ctx: click.Context, input_file: str, fmt: str | None) -> None:
    """Load a snapshot from INPUT_FILE into the store."""
    path = Path(input_file)
    if fmt is None:
        fmt = "yaml" if path.suffix.lower() in {".yaml", ".yml"} else "json"
    try:
        snapshot = GraphSerializer().deserialize(path.read_text(encoding="utf-8"), fmt)  # type: ignore[arg-type]
        graph = ConversationGraph.from_snapshot(snapshot, ctx.obj["config"])
    except (LoomError, ValueError) as exc:
        _fail(f"Import failed: {exc}")
    _repository(ctx).save(graph)
    console.print(f"[green]Imported:[/green] {graph.graph_id} ({len(graph)} node(s))")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    cli()
