"""Tests for blockgraph.cache."""

from datetime import datetime

from blockgraph.cache import GraphCache, fingerprint_issues
from blockgraph.graph import GraphOptions, build_graph
from blockgraph.models import Dependency, Issue, Status


CREATED = datetime(2025, 1, 1)


def make_issue(id: str, depends_on: list[str] | None = None, **fields) -> Issue:
    deps = [Dependency(issue_id=id, depends_on_id=t) for t in depends_on or []]
    fields.setdefault("title", f"Issue {id}")
    return Issue(
        id=id, dependencies=deps, created_at=CREATED, updated_at=CREATED, **fields
    )


def sample_issues() -> list[Issue]:
    return [make_issue("A"), make_issue("B", ["A"]), make_issue("C", ["B"])]


class TestFingerprint:
    def test_equal_content_equal_fingerprint(self):
        assert fingerprint_issues(sample_issues()) == fingerprint_issues(sample_issues())

    def test_order_sensitive(self):
        issues = sample_issues()
        assert fingerprint_issues(issues) != fingerprint_issues(list(reversed(issues)))

    def test_status_change_changes_fingerprint(self):
        issues = sample_issues()
        before = fingerprint_issues(issues)
        issues[0].status = Status.CLOSED
        assert fingerprint_issues(issues) != before


class TestBuildGraphCache:
    def test_same_inputs_reuse_result(self):
        cache = GraphCache()
        first = cache.build_graph(sample_issues())
        second = cache.build_graph(sample_issues())

        assert second is first
        assert cache.hits == 1
        assert cache.misses == 1

    def test_cached_result_matches_direct_build(self):
        cache = GraphCache()
        issues = sample_issues()
        assert cache.build_graph(issues) == build_graph(issues)

    def test_issue_change_invalidates(self):
        cache = GraphCache()
        issues = sample_issues()
        first = cache.build_graph(issues)

        issues[2].dependencies.append(Dependency("C", "A", "related"))
        second = cache.build_graph(issues)

        assert second is not first
        assert len(second.edges) == 3
        assert cache.misses == 2

    def test_each_option_invalidates(self):
        cache = GraphCache()
        issues = sample_issues()
        variants = [
            GraphOptions(),
            GraphOptions(include_dependency_types=[]),
            GraphOptions(include_dependency_types=["blocks"]),
            GraphOptions(blocked_issue_ids={"B"}),
            GraphOptions(blocked_issue_ids=set()),
            GraphOptions(include_orphan_edges=True),
            GraphOptions(max_depth=1),
        ]
        results = [cache.build_graph(issues, options) for options in variants]

        assert cache.misses == len(variants)
        assert cache.hits == 0
        assert len({id(r) for r in results}) == len(variants)

    def test_equivalent_options_hit(self):
        cache = GraphCache()
        issues = sample_issues()
        cache.build_graph(issues, GraphOptions(include_dependency_types=["blocks", "related"]))
        cache.build_graph(issues, GraphOptions(include_dependency_types=("related", "blocks")))
        assert cache.hits == 1

    def test_lru_eviction(self):
        cache = GraphCache(maxsize=2)
        issues = sample_issues()
        cache.build_graph(issues, GraphOptions(max_depth=1))
        cache.build_graph(issues, GraphOptions(max_depth=2))
        cache.build_graph(issues, GraphOptions(max_depth=3))

        assert len(cache) == 2
        cache.build_graph(issues, GraphOptions(max_depth=1))
        assert cache.misses == 4

    def test_clear(self):
        cache = GraphCache()
        cache.build_graph(sample_issues())
        cache.clear()
        cache.build_graph(sample_issues())
        assert cache.misses == 2
        assert len(cache) == 1

    def test_separator_in_fields_does_not_collide(self):
        cache = GraphCache()
        cache.build_graph([make_issue("a|b", title="c")])
        graph = cache.build_graph([make_issue("a", title="b|c")])

        assert [n.id for n in graph.nodes] == ["node-a"]
        assert graph.nodes[0].data.title == "b|c"
        assert cache.hits == 0

    def test_non_graph_field_change_refreshes_issue(self):
        cache = GraphCache()
        cache.build_graph([make_issue("A", description="old", labels=["x"])])
        graph = cache.build_graph([make_issue("A", description="new", labels=["y"])])

        issue = graph.nodes[0].data.issue
        assert issue.description == "new"
        assert issue.labels == ["y"]
        assert cache.misses == 2

    def test_created_at_change_refreshes_issue(self):
        cache = GraphCache()
        cache.build_graph([make_issue("A")])
        issue = make_issue("A")
        issue.created_at = datetime(2024, 6, 1)
        graph = cache.build_graph([issue])

        assert graph.nodes[0].data.issue.created_at == datetime(2024, 6, 1)


class TestAnalyzerCache:
    def test_blocked_counts_reused(self):
        cache = GraphCache()
        graph = build_graph(sample_issues())

        first = cache.blocked_counts(["A", "B", "C"], graph.edges)
        second = cache.blocked_counts(["A", "B", "C"], list(graph.edges))

        assert first == {"A": 2, "B": 1, "C": 0}
        assert second is first

    def test_blocked_counts_edge_change_invalidates(self):
        cache = GraphCache()
        edges = build_graph(sample_issues()).edges
        cache.blocked_counts(["A"], edges)
        counts = cache.blocked_counts(["A"], edges[:1])

        assert counts == {"A": 1}
        assert cache.misses == 2

    def test_blocked_chain_reused(self):
        cache = GraphCache()
        edges = build_graph(sample_issues()).edges

        first = cache.blocked_chain("C", edges)
        second = cache.blocked_chain("C", edges)

        assert first.blockers == {"A", "B"}
        assert second is first

    def test_blocked_chain_keyed_by_issue(self):
        cache = GraphCache()
        edges = build_graph(sample_issues()).edges

        assert cache.blocked_chain("A", edges).blocked_by == {"B", "C"}
        assert cache.blocked_chain("C", edges).blocked_by == set()
        assert cache.misses == 2
