"""Transitive blocking analysis over dependency edges."""

import logging
from collections import defaultdict, deque
from collections.abc import Iterable
from dataclasses import dataclass, field

from blockgraph.models import DependencyEdge

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 20


@dataclass
class BlockedChain:
    """Upstream and downstream blocking sets for one issue."""

    blockers: set[str] = field(default_factory=set)  # transitively blocking this issue
    blocked_by: set[str] = field(default_factory=set)  # transitively blocked by this issue
    blocked_count: int = 0
    truncated: bool = False  # depth bound cut off at least one branch


@dataclass
class BlockingIndex:
    """Adjacency over blocking edges only.

    Edge direction follows the dependency record: ``source_issue_id`` is
    the blocked issue, ``target_issue_id`` is its blocker.
    """

    blocked_by: dict[str, set[str]]  # issue_id -> IDs blocking it
    blocks: dict[str, set[str]]  # issue_id -> IDs it blocks

    @classmethod
    def build(cls, edges: Iterable[DependencyEdge]) -> "BlockingIndex":
        """Build the index, skipping non-blocking and malformed edges."""
        blocked_by: dict[str, set[str]] = defaultdict(set)
        blocks: dict[str, set[str]] = defaultdict(set)

        for edge in edges:
            data = edge.data
            if data is None or not data.is_blocking:
                continue
            if not data.source_issue_id or not data.target_issue_id:
                continue
            blocked_by[data.source_issue_id].add(data.target_issue_id)
            blocks[data.target_issue_id].add(data.source_issue_id)

        return cls(blocked_by=dict(blocked_by), blocks=dict(blocks))

    def get_chain(self, issue_id: str, max_depth: int = DEFAULT_MAX_DEPTH) -> BlockedChain:
        """Get all transitive blockers and all transitively blocked issues."""
        blockers, upstream_cut = _traverse(issue_id, self.blocked_by, max_depth)
        blocked, downstream_cut = _traverse(issue_id, self.blocks, max_depth)
        if upstream_cut or downstream_cut:
            logger.debug("Blocking chain of %s truncated at depth %d", issue_id, max_depth)
        return BlockedChain(
            blockers=blockers,
            blocked_by=blocked,
            blocked_count=len(blocked),
            truncated=upstream_cut or downstream_cut,
        )

    def get_chain_ids(self, issue_id: str, max_depth: int = DEFAULT_MAX_DEPTH) -> set[str]:
        """Get the issue plus everything upstream and downstream of it."""
        chain = self.get_chain(issue_id, max_depth)
        return {issue_id} | chain.blockers | chain.blocked_by

    def count_blocked(self, issue_id: str, max_depth: int = DEFAULT_MAX_DEPTH) -> int:
        """Count distinct issues transitively blocked by the given issue."""
        blocked, _ = _traverse(issue_id, self.blocks, max_depth)
        return len(blocked)


def _traverse(
    start: str, adjacency: dict[str, set[str]], max_depth: int
) -> tuple[set[str], bool]:
    """Breadth-first walk from start.

    Nodes up to max_depth hops away are expanded, so the deepest reached
    issue sits max_depth + 1 hops from start.

    Returns the reached IDs (start excluded) and whether the depth bound
    left any neighbour unexplored.
    """
    visited = {start}
    frontier: deque[tuple[str, int]] = deque([(start, 0)])
    cut_off: set[str] = set()

    while frontier:
        current, depth = frontier.popleft()
        neighbours = adjacency.get(current, ())
        if depth > max_depth:
            cut_off.update(neighbours)
            continue
        for neighbour in neighbours:
            if neighbour in visited:
                continue
            visited.add(neighbour)
            frontier.append((neighbour, depth + 1))

    visited.discard(start)
    truncated = any(n != start and n not in visited for n in cut_off)
    return visited, truncated


def compute_all_blocked_counts(
    node_ids: Iterable[str],
    edges: Iterable[DependencyEdge],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> dict[str, int]:
    """Map each node ID to the number of issues it transitively blocks."""
    index = BlockingIndex.build(edges)
    return {node_id: index.count_blocked(node_id, max_depth) for node_id in node_ids}


def get_blocked_chain(
    issue_id: str,
    edges: Iterable[DependencyEdge],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> BlockedChain:
    """Compute the full blocking chain for a single issue."""
    return BlockingIndex.build(edges).get_chain(issue_id, max_depth)
