"""Dependency graph construction for the issue board."""

import logging
from collections.abc import Collection, Iterable
from dataclasses import dataclass, field
from typing import Any

from blockgraph.chain import DEFAULT_MAX_DEPTH, compute_all_blocked_counts
from blockgraph.models import (
    LOWEST_PRIORITY,
    Dependency,
    DependencyEdge,
    DependencyType,
    EdgeData,
    Issue,
    IssueNode,
    IssueNodeData,
    Status,
    is_blocking_type,
)

logger = logging.getLogger(__name__)

# Size hints for the external layout engine.
NODE_WIDTH = 200
NODE_HEIGHT = 100

NON_READY_STATUSES = frozenset({Status.CLOSED, Status.DEFERRED})


@dataclass(frozen=True)
class GraphOptions:
    """Options for build_graph.

    ``include_dependency_types`` of None keeps every type; an empty
    collection keeps none.
    """

    include_dependency_types: frozenset[str] | None = None
    blocked_issue_ids: frozenset[str] | None = None
    include_orphan_edges: bool = False
    max_depth: int = DEFAULT_MAX_DEPTH

    def __post_init__(self) -> None:
        # Normalise to frozensets so options are hashable and order-free.
        types = self.include_dependency_types
        if types is not None:
            if isinstance(types, (str, DependencyType)):
                types = (types,)
            object.__setattr__(
                self, "include_dependency_types", frozenset(_type_value(t) for t in types)
            )
        blocked = self.blocked_issue_ids
        if blocked is not None:
            if isinstance(blocked, str):
                blocked = (blocked,)
            object.__setattr__(self, "blocked_issue_ids", frozenset(blocked))

    def cache_key(self) -> tuple:
        """Canonical hashable form; None and empty filters stay distinct."""
        types = (
            None
            if self.include_dependency_types is None
            else tuple(sorted(self.include_dependency_types))
        )
        blocked = (
            None if self.blocked_issue_ids is None else tuple(sorted(self.blocked_issue_ids))
        )
        return (types, blocked, self.include_orphan_edges, self.max_depth)


@dataclass
class GraphData:
    nodes: list[IssueNode] = field(default_factory=list)
    edges: list[DependencyEdge] = field(default_factory=list)
    issue_id_to_node_id: dict[str, str] = field(default_factory=dict)
    total_dependencies: int = 0
    blocking_dependencies: int = 0
    orphan_edge_count: int = 0
    missing_target_ids: set[str] = field(default_factory=set)

    def get_node(self, issue_id: str) -> IssueNode | None:
        node_id = self.issue_id_to_node_id.get(issue_id)
        if node_id is None:
            return None
        return next((n for n in self.nodes if n.id == node_id), None)

    def real_edges(self) -> list[DependencyEdge]:
        """Edges between real issues; ghost targets have unknown state."""
        return [
            e
            for e in self.edges
            if e.data is None or e.data.target_issue_id not in self.missing_target_ids
        ]

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the layout and rendering collaborators."""
        return {
            "nodes": [_node_to_dict(node) for node in self.nodes],
            "edges": [_edge_to_dict(edge) for edge in self.edges],
            "total_dependencies": self.total_dependencies,
            "blocking_dependencies": self.blocking_dependencies,
            "orphan_edge_count": self.orphan_edge_count,
            "missing_target_ids": sorted(self.missing_target_ids),
        }


def create_node_id(issue_id: str) -> str:
    """Create a node ID from an issue ID."""
    return f"node-{issue_id}"


def create_edge_id(source_issue_id: str, target_issue_id: str, dep_type: str) -> str:
    """Create an edge ID; the type keeps parallel dependencies distinct."""
    return f"edge-{source_issue_id}-{target_issue_id}-{dep_type}"


def compute_is_ready(
    issue_id: str,
    status: Status | None,
    blocked_issue_ids: Collection[str] | None,
) -> bool:
    """Check if an issue is workable.

    Closed and deferred issues are never ready. Without blocked-issue
    information every other issue counts as ready.
    """
    if status in NON_READY_STATUSES:
        return False
    if blocked_issue_ids is not None and issue_id in blocked_issue_ids:
        return False
    return True


def _type_value(dep_type: Any) -> str:
    return getattr(dep_type, "value", dep_type)


def _type_allowed(dep_type: str, include_types: frozenset[str] | None) -> bool:
    if include_types is None:
        return True
    return dep_type in include_types


def build_graph(issues: Iterable[Issue], options: GraphOptions | None = None) -> GraphData:
    """Build nodes, edges and counts from a flat issue collection.

    Recomputed from scratch on every call. Dependencies on issues outside
    the collection are dropped unless ``include_orphan_edges`` is set, in
    which case each missing target becomes a ghost node.
    """
    options = options or GraphOptions()
    issues = list(issues)
    if not issues:
        return GraphData()

    issue_ids = {issue.id for issue in issues}
    issue_id_to_node_id = {issue.id: create_node_id(issue.id) for issue in issues}
    outgoing = {issue.id: 0 for issue in issues}
    incoming: dict[str, int] = {issue.id: 0 for issue in issues}

    retained: list[Dependency] = []
    missing_targets: dict[str, None] = {}  # ordered set, first-seen order
    orphan_edge_count = 0

    for issue in issues:
        for dep in issue.dependencies:
            dep_type = _type_value(dep.type)
            if not _type_allowed(dep_type, options.include_dependency_types):
                continue
            if dep.depends_on_id not in issue_ids:
                if not options.include_orphan_edges:
                    logger.debug(
                        "Dropping orphan dependency %s -> %s", dep.issue_id, dep.depends_on_id
                    )
                    continue
                missing_targets[dep.depends_on_id] = None
                orphan_edge_count += 1

            retained.append(dep)
            outgoing[dep.issue_id] = outgoing.get(dep.issue_id, 0) + 1
            incoming[dep.depends_on_id] = incoming.get(dep.depends_on_id, 0) + 1

    edges: list[DependencyEdge] = []
    blocking_dependencies = 0
    for dep in retained:
        dep_type = _type_value(dep.type)
        is_blocking = is_blocking_type(dep_type)
        edges.append(
            DependencyEdge(
                id=create_edge_id(dep.issue_id, dep.depends_on_id, dep_type),
                source=create_node_id(dep.issue_id),
                target=create_node_id(dep.depends_on_id),
                data=EdgeData(
                    dependency_type=dep_type,
                    is_blocking=is_blocking,
                    source_issue_id=dep.issue_id,
                    target_issue_id=dep.depends_on_id,
                ),
            )
        )
        if is_blocking:
            blocking_dependencies += 1

    # Ghost targets carry no dependency data of their own, so they stay
    # out of the transitive analysis entirely.
    real_edges = [e for e in edges if e.data.target_issue_id not in missing_targets]
    blocked_counts = compute_all_blocked_counts(
        [issue.id for issue in issues], real_edges, options.max_depth
    )

    nodes: list[IssueNode] = []
    for issue in issues:
        blocked_count = blocked_counts.get(issue.id, 0)
        is_blocked = (
            options.blocked_issue_ids is not None and issue.id in options.blocked_issue_ids
        )
        nodes.append(
            IssueNode(
                id=issue_id_to_node_id[issue.id],
                data=IssueNodeData(
                    issue=issue,
                    title=issue.title,
                    status=issue.status,
                    priority=issue.priority,
                    issue_type=issue.issue_type,
                    dependency_count=outgoing.get(issue.id, 0),
                    dependent_count=incoming.get(issue.id, 0),
                    is_ready=compute_is_ready(issue.id, issue.status, options.blocked_issue_ids),
                    blocked_count=blocked_count,
                    is_root_blocker=blocked_count > 0 and not is_blocked,
                    is_closed=issue.status == Status.CLOSED,
                ),
            )
        )

    for missing_id in missing_targets:
        node_id = create_node_id(missing_id)
        issue_id_to_node_id[missing_id] = node_id
        nodes.append(
            IssueNode(
                id=node_id,
                data=IssueNodeData(
                    issue=None,
                    title=f"Missing: {missing_id}",
                    status=None,
                    priority=LOWEST_PRIORITY,
                    issue_type=None,
                    dependency_count=0,
                    dependent_count=incoming.get(missing_id, 0),
                    is_ready=False,
                    blocked_count=0,
                    is_root_blocker=False,
                    is_closed=False,
                    is_ghost_node=True,
                ),
            )
        )

    return GraphData(
        nodes=nodes,
        edges=edges,
        issue_id_to_node_id=issue_id_to_node_id,
        total_dependencies=len(edges),
        blocking_dependencies=blocking_dependencies,
        orphan_edge_count=orphan_edge_count,
        missing_target_ids=set(missing_targets),
    )


def _node_to_dict(node: IssueNode) -> dict[str, Any]:
    data = node.data
    return {
        "id": node.id,
        "type": node.type,
        "position": {"x": node.position[0], "y": node.position[1]},
        "width": NODE_WIDTH,
        "height": NODE_HEIGHT,
        "data": {
            "issue_id": data.issue.id if data.issue else node.id.removeprefix("node-"),
            "title": data.title,
            "status": data.status.value if data.status else None,
            "priority": data.priority,
            "issue_type": data.issue_type,
            "dependency_count": data.dependency_count,
            "dependent_count": data.dependent_count,
            "is_ready": data.is_ready,
            "blocked_count": data.blocked_count,
            "is_root_blocker": data.is_root_blocker,
            "is_closed": data.is_closed,
            "is_ghost_node": data.is_ghost_node,
        },
    }


def _edge_to_dict(edge: DependencyEdge) -> dict[str, Any]:
    data = edge.data
    return {
        "id": edge.id,
        "type": edge.type,
        "source": edge.source,
        "target": edge.target,
        "data": None
        if data is None
        else {
            "dependency_type": data.dependency_type,
            "is_blocking": data.is_blocking,
            "source_issue_id": data.source_issue_id,
            "target_issue_id": data.target_issue_id,
        },
    }
