"""Memoization for graph builds and blocking analysis.

The builder and analyzer are pure functions of their inputs, so a result
can be reused whenever the inputs are equal. Keys are derived from issue
content hashes, the canonical option tuple and the edges themselves; any
change to any input produces a different key. Cached results are shared
objects and must not be mutated by callers.
"""

import hashlib
import logging
from collections import OrderedDict
from collections.abc import Callable, Hashable, Iterable
from typing import Any

from blockgraph.chain import (
    DEFAULT_MAX_DEPTH,
    BlockedChain,
    compute_all_blocked_counts,
    get_blocked_chain,
)
from blockgraph.graph import GraphData, GraphOptions, build_graph
from blockgraph.models import DependencyEdge, Issue

logger = logging.getLogger(__name__)


def fingerprint_issues(issues: Iterable[Issue]) -> str:
    """Order-sensitive hash over every field of every issue."""
    digest = hashlib.sha256()
    for issue in issues:
        digest.update(issue.content_hash.encode())
        digest.update(b"\n")
    return digest.hexdigest()


def fingerprint_edges(edges: Iterable[DependencyEdge]) -> tuple[DependencyEdge, ...]:
    """Edges are frozen, so the tuple of them is its own key."""
    return tuple(edges)


class GraphCache:
    """Bounded LRU cache in front of build_graph and the analyzer."""

    def __init__(self, maxsize: int = 32):
        self.maxsize = maxsize
        self._entries: OrderedDict[Hashable, Any] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        """Drop all cached results."""
        self._entries.clear()

    def _get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        if key in self._entries:
            self._entries.move_to_end(key)
            self.hits += 1
            logger.debug("Cache hit for %s", key[0])
            return self._entries[key]

        self.misses += 1
        logger.debug("Cache miss for %s", key[0])
        value = compute()
        self._entries[key] = value
        if len(self._entries) > self.maxsize:
            self._entries.popitem(last=False)
        return value

    def build_graph(
        self, issues: Iterable[Issue], options: GraphOptions | None = None
    ) -> GraphData:
        issues = list(issues)
        options = options or GraphOptions()
        key = ("graph", fingerprint_issues(issues), options.cache_key())
        return self._get_or_compute(key, lambda: build_graph(issues, options))

    def blocked_counts(
        self,
        node_ids: Iterable[str],
        edges: Iterable[DependencyEdge],
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> dict[str, int]:
        node_ids = tuple(node_ids)
        edge_key = fingerprint_edges(edges)
        key = ("counts", node_ids, edge_key, max_depth)
        return self._get_or_compute(
            key, lambda: compute_all_blocked_counts(node_ids, edge_key, max_depth)
        )

    def blocked_chain(
        self,
        issue_id: str,
        edges: Iterable[DependencyEdge],
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> BlockedChain:
        edge_key = fingerprint_edges(edges)
        key = ("chain", issue_id, edge_key, max_depth)
        return self._get_or_compute(key, lambda: get_blocked_chain(issue_id, edge_key, max_depth))
