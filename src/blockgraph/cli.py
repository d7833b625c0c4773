"""CLI interface for blockgraph."""

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from blockgraph.models import DependencyType, IssueNode, is_blocking_type
from blockgraph.service import GraphService, IssueNotFoundError
from blockgraph.storage import ConfigStorage, MarkdownStorage, StorageError

console = Console()

ROOT_DIR_NAME = ".blockgraph"


def find_blockgraph_root() -> Path | None:
    """Walk up from cwd to find .blockgraph directory."""
    path = Path.cwd()
    while path != path.parent:
        if (path / ROOT_DIR_NAME).is_dir():
            return path / ROOT_DIR_NAME
        path = path.parent
    return None


def get_service(ctx: click.Context) -> GraphService:
    """Get service from context."""
    return ctx.obj["service"]


@click.group(invoke_without_command=True)
@click.option("-v", "--verbose", is_flag=True, help="Log debug output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """blockgraph - Dependency graph and blocking analysis for issues."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    ctx.ensure_object(dict)
    root = find_blockgraph_root()
    if root is None and ctx.invoked_subcommand not in ("init", None):
        raise click.ClickException("Not in a blockgraph project. Run 'blockgraph init' first.")
    ctx.obj["service"] = (
        GraphService(MarkdownStorage(root), ConfigStorage(root)) if root else None
    )

    if ctx.invoked_subcommand is None:
        console.print(README_TEXT)


README_TEXT = """
[bold cyan]blockgraph[/bold cyan] - Dependency graph and blocking analysis for issues

[bold]Commands[/bold]
  blockgraph init                 Initialize .blockgraph/ in the current directory
  blockgraph graph                Show every node with its counts and flags
  blockgraph chain ID             Show upstream blockers and downstream blocked issues
  blockgraph ready                Show issues ready to work on
  blockgraph blockers             Show root blockers by how much they block
  blockgraph export [-o FILE]     Write nodes and edges as JSON for a layout engine

[bold]Graph Options[/bold]
  -t, --type TYPE         Only include this dependency type (repeatable)
  --no-types              Include no dependencies at all
  --orphans/--no-orphans  Keep dependencies on missing issues as ghost nodes

[bold]Issue Files[/bold]
  Issues live in .blockgraph/issues/<id>.md with YAML frontmatter:

    ---
    id: bg-a1b2
    title: Add login endpoint
    status: open
    priority: 1
    dependencies:
      - depends_on_id: bg-c3d4
        type: blocks
    ---

[bold]Configuration[/bold]
  .blockgraph/config.yml sets defaults for include_dependency_types,
  include_orphan_edges and max_depth.
""".strip()


def _dependency_types_option(func):
    func = click.option(
        "-t",
        "--type",
        "dep_types",
        multiple=True,
        help="Only include this dependency type (repeatable)",
    )(func)
    func = click.option(
        "--no-types", is_flag=True, help="Include no dependencies at all"
    )(func)
    func = click.option(
        "--orphans/--no-orphans",
        default=None,
        help="Keep dependencies on missing issues as ghost nodes",
    )(func)
    return func


def _resolve_types(dep_types: tuple[str, ...], no_types: bool) -> list[str] | None:
    if no_types:
        return []
    if dep_types:
        return list(dep_types)
    return None


@cli.command()
def readme() -> None:
    """Show a quick reference guide for using blockgraph."""
    console.print(README_TEXT)


@cli.command()
def init() -> None:
    """Initialize a new blockgraph project."""
    root = Path.cwd() / ROOT_DIR_NAME
    if root.exists():
        console.print("[yellow]blockgraph already initialized[/yellow]")
        return
    MarkdownStorage(root).ensure_initialized()
    ConfigStorage(root).ensure_initialized()
    console.print(f"Initialized blockgraph in {root}")


@cli.command()
@_dependency_types_option
@click.pass_context
def graph(
    ctx: click.Context,
    dep_types: tuple[str, ...],
    no_types: bool,
    orphans: bool | None,
) -> None:
    """Show the dependency graph as a table of nodes."""
    service = get_service(ctx)
    try:
        data = service.get_graph(
            include_dependency_types=_resolve_types(dep_types, no_types),
            include_orphan_edges=orphans,
        )
    except StorageError as e:
        raise click.ClickException(str(e))

    if not data.nodes:
        console.print("No issues found.")
        return
    _print_node_table(data.nodes)
    console.print(
        f"Dependencies: {data.total_dependencies}  "
        f"Blocking: {data.blocking_dependencies}  "
        f"Orphans: {data.orphan_edge_count}"
    )
    if data.missing_target_ids:
        console.print(f"[yellow]Missing: {', '.join(sorted(data.missing_target_ids))}[/yellow]")


@cli.command()
@click.argument("issue_id")
@click.pass_context
def chain(ctx: click.Context, issue_id: str) -> None:
    """Show what blocks ISSUE_ID and what ISSUE_ID blocks."""
    service = get_service(ctx)
    try:
        result = service.get_chain(issue_id)
    except IssueNotFoundError:
        raise click.ClickException(f"Issue {issue_id} not found")
    except StorageError as e:
        raise click.ClickException(str(e))

    console.print(f"[bold cyan]{issue_id}[/bold cyan]")
    if result.blockers:
        console.print(f"Blocked by: {', '.join(sorted(result.blockers))}")
    else:
        console.print("Blocked by: [dim]nothing[/dim]")
    if result.blocked_by:
        console.print(f"Blocks ({result.blocked_count}): {', '.join(sorted(result.blocked_by))}")
    else:
        console.print("Blocks: [dim]nothing[/dim]")
    if result.truncated:
        console.print("[yellow]Chain truncated at the configured max_depth[/yellow]")


@cli.command()
@click.option("-n", "--limit", type=int, help="Max number of issues to show")
@click.pass_context
def ready(ctx: click.Context, limit: int | None) -> None:
    """List issues ready to work on."""
    service = get_service(ctx)
    try:
        issues = service.get_ready_issues(limit=limit)
    except StorageError as e:
        raise click.ClickException(str(e))

    if not issues:
        console.print("No ready issues found.")
        return
    table = Table()
    table.add_column("ID", style="cyan")
    table.add_column("P", justify="center")
    table.add_column("Status")
    table.add_column("Title")
    for issue in issues:
        table.add_row(
            issue.id,
            str(issue.priority),
            issue.status.value if issue.status else "-",
            issue.title[:50],
        )
    console.print(table)


@cli.command()
@click.pass_context
def blockers(ctx: click.Context) -> None:
    """List root blockers, most impactful first."""
    service = get_service(ctx)
    try:
        nodes = service.get_root_blockers()
    except StorageError as e:
        raise click.ClickException(str(e))

    if not nodes:
        console.print("No root blockers found.")
        return
    _print_node_table(nodes)


@cli.command()
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(dir_okay=False),
    help="Write JSON to this file instead of stdout",
)
@_dependency_types_option
@click.pass_context
def export(
    ctx: click.Context,
    output_path: str | None,
    dep_types: tuple[str, ...],
    no_types: bool,
    orphans: bool | None,
) -> None:
    """Export nodes and edges as JSON for an external layout engine."""
    service = get_service(ctx)
    try:
        data = service.get_graph(
            include_dependency_types=_resolve_types(dep_types, no_types),
            include_orphan_edges=orphans,
        )
    except StorageError as e:
        raise click.ClickException(str(e))

    payload = json.dumps(data.to_dict(), indent=2)
    if output_path:
        Path(output_path).write_text(payload + "\n")
        console.print(f"Wrote {len(data.nodes)} nodes and {len(data.edges)} edges to {output_path}")
    else:
        click.echo(payload)


@cli.command("types")
def list_types() -> None:
    """List known dependency types and whether they block."""
    table = Table()
    table.add_column("Type", style="cyan")
    table.add_column("Blocking", justify="center")
    for dep_type in DependencyType:
        table.add_row(dep_type.value, "yes" if is_blocking_type(dep_type) else "no")
    console.print(table)


def _print_node_table(nodes: list[IssueNode]) -> None:
    """Print graph nodes as a formatted table."""
    table = Table()
    table.add_column("ID", style="cyan")
    table.add_column("P", justify="center")
    table.add_column("Status")
    table.add_column("Deps", justify="right")
    table.add_column("Dependents", justify="right")
    table.add_column("Blocks", justify="right")
    table.add_column("Flags")
    table.add_column("Title")

    for node in nodes:
        data = node.data
        flags = []
        if data.is_ghost_node:
            flags.append("ghost")
        if data.is_ready:
            flags.append("ready")
        if data.is_root_blocker:
            flags.append("root")
        if data.is_closed:
            flags.append("closed")
        table.add_row(
            node.id.removeprefix("node-"),
            str(data.priority),
            data.status.value if data.status else "-",
            str(data.dependency_count),
            str(data.dependent_count),
            str(data.blocked_count),
            ", ".join(flags),
            data.title[:50],
        )
    console.print(table)


if __name__ == "__main__":
    cli()
