"""Query layer tying storage, config, blocked-set and graph cache together."""

from collections.abc import Iterable
from dataclasses import replace

from blockgraph.blocked import compute_blocked_issue_ids
from blockgraph.cache import GraphCache
from blockgraph.chain import BlockedChain
from blockgraph.graph import GraphData, GraphOptions
from blockgraph.models import Issue, IssueNode
from blockgraph.storage import ConfigStorage, MarkdownStorage


class IssueNotFoundError(Exception):
    """Raised when an issue is not found."""

    def __init__(self, issue_id: str):
        self.issue_id = issue_id
        super().__init__(f"Issue not found: {issue_id}")


class GraphService:
    """Answers graph, chain and readiness queries over stored issues.

    Issues are re-read on every query; the cache decides whether the
    graph actually needs rebuilding.
    """

    def __init__(
        self,
        storage: MarkdownStorage,
        config: ConfigStorage | None = None,
        cache: GraphCache | None = None,
    ):
        self.storage = storage
        self.config = config
        self.cache = cache if cache is not None else GraphCache()

    def load_issues(self) -> list[Issue]:
        """Read all issues from storage."""
        return self.storage.read_all_issues()

    def get_issue(self, issue_id: str) -> Issue:
        """Get an issue by ID."""
        issue = self.storage.read_issue(issue_id)
        if issue is None:
            raise IssueNotFoundError(issue_id)
        return issue

    def blocked_issue_ids(self, issues: list[Issue] | None = None) -> set[str]:
        """IDs of issues currently blocked by open blockers."""
        if issues is None:
            issues = self.load_issues()
        return compute_blocked_issue_ids(issues)

    def default_options(self) -> GraphOptions:
        """Options from config.yml, or defaults when there is none."""
        if self.config is None:
            return GraphOptions()
        return self.config.load()

    def get_graph(
        self,
        include_dependency_types: Iterable[str] | None = None,
        include_orphan_edges: bool | None = None,
    ) -> GraphData:
        """Build (or reuse) the graph with live readiness information.

        Arguments left as None fall back to the configured defaults.
        """
        issues = self.load_issues()
        options = replace(
            self.default_options(),
            blocked_issue_ids=frozenset(self.blocked_issue_ids(issues)),
        )
        if include_dependency_types is not None:
            options = replace(options, include_dependency_types=include_dependency_types)
        if include_orphan_edges is not None:
            options = replace(options, include_orphan_edges=include_orphan_edges)
        return self.cache.build_graph(issues, options)

    def get_chain(self, issue_id: str) -> BlockedChain:
        """Get the blocking chain of an issue over the current graph."""
        graph = self.get_graph()
        if issue_id not in graph.issue_id_to_node_id:
            raise IssueNotFoundError(issue_id)
        max_depth = self.default_options().max_depth
        return self.cache.blocked_chain(issue_id, graph.real_edges(), max_depth)

    def get_ready_issues(self, limit: int | None = None) -> list[Issue]:
        """Get ready issues sorted by priority, then creation date."""
        graph = self.get_graph()
        ready = [
            node.data.issue
            for node in graph.nodes
            if node.data.is_ready and node.data.issue is not None
        ]
        ready = sorted(ready, key=lambda i: (i.priority, i.created_at))
        if limit:
            ready = ready[:limit]
        return ready

    def get_root_blockers(self) -> list[IssueNode]:
        """Get root blockers, most impactful first."""
        graph = self.get_graph()
        roots = [node for node in graph.nodes if node.data.is_root_blocker]
        return sorted(roots, key=lambda n: (-n.data.blocked_count, n.data.priority, n.id))
