"""Tests for blockgraph.models."""

from datetime import datetime

import pytest

from blockgraph.models import (
    BLOCKING_TYPES,
    Dependency,
    DependencyType,
    Issue,
    Status,
    is_blocking_type,
)

CREATED = datetime(2025, 1, 1)


class TestStatus:
    def test_enum_values(self):
        assert Status.OPEN.value == "open"
        assert Status.IN_PROGRESS.value == "in_progress"
        assert Status.REVIEW.value == "review"
        assert Status.BLOCKED.value == "blocked"
        assert Status.CLOSED.value == "closed"
        assert Status.DEFERRED.value == "deferred"

    def test_from_string(self):
        assert Status("open") == Status.OPEN
        assert Status("deferred") == Status.DEFERRED


class TestIsBlockingType:
    @pytest.mark.parametrize(
        "dep_type", ["blocks", "parent-child", "conditional-blocks", "waits-for"]
    )
    def test_blocking_types(self, dep_type: str):
        assert is_blocking_type(dep_type) is True

    @pytest.mark.parametrize(
        "dep_type",
        [
            "related",
            "discovered-from",
            "replies-to",
            "relates-to",
            "duplicates",
            "supersedes",
        ],
    )
    def test_non_blocking_types(self, dep_type: str):
        assert is_blocking_type(dep_type) is False

    def test_unknown_type_does_not_block(self):
        assert is_blocking_type("my-custom-link") is False
        assert is_blocking_type("") is False
        assert is_blocking_type(None) is False

    def test_accepts_enum_members(self):
        assert is_blocking_type(DependencyType.WAITS_FOR) is True
        assert is_blocking_type(DependencyType.SUPERSEDES) is False

    def test_blocking_set_partitions_known_types(self):
        known = {t.value for t in DependencyType}
        assert BLOCKING_TYPES < known
        assert len(known - BLOCKING_TYPES) == 6


class TestDependency:
    def test_defaults_to_blocks(self):
        dep = Dependency(issue_id="bg-2", depends_on_id="bg-1")
        assert dep.type == "blocks"
        assert dep.is_blocking is True

    def test_non_blocking(self):
        dep = Dependency(issue_id="bg-2", depends_on_id="bg-1", type="related")
        assert dep.is_blocking is False


class TestIssue:
    def test_defaults(self):
        issue = Issue(id="bg-1234", title="Test issue")
        assert issue.status == Status.OPEN
        assert issue.priority == 2
        assert issue.issue_type is None
        assert issue.dependencies == []
        assert issue.close_reason == ""
        assert issue.closed_at is None

    def test_is_open(self):
        issue = Issue(id="bg-1234", title="Test")
        assert issue.is_open() is True

        issue.status = Status.DEFERRED
        assert issue.is_open() is True

        issue.status = None
        assert issue.is_open() is True

        issue.status = Status.CLOSED
        assert issue.is_open() is False

    def test_depends_on_appends_dependency(self):
        issue = Issue(id="bg-2", title="Child")
        dep = issue.depends_on("bg-1", "parent-child")

        assert dep == Dependency("bg-2", "bg-1", "parent-child")
        assert issue.dependencies == [dep]

    def test_content_hash_deterministic(self):
        issue1 = Issue(id="bg-1", title="Test", created_at=CREATED, updated_at=CREATED)
        issue2 = Issue(id="bg-1", title="Test", created_at=CREATED, updated_at=CREATED)
        assert issue1.content_hash == issue2.content_hash

    def test_content_hash_separators_do_not_collide(self):
        issue1 = Issue(id="a|b", title="c", created_at=CREATED, updated_at=CREATED)
        issue2 = Issue(id="a", title="b|c", created_at=CREATED, updated_at=CREATED)
        assert issue1.content_hash != issue2.content_hash

    def test_content_hash_tracks_every_field(self):
        def build(**changes) -> Issue:
            fields = {"id": "bg-1", "title": "Test", "created_at": CREATED, "updated_at": CREATED}
            fields.update(changes)
            return Issue(**fields)

        later = datetime(2025, 2, 1)
        variants = [
            build(),
            build(status=Status.CLOSED),
            build(status=None),
            build(priority=0),
            build(issue_type="epic"),
            build(description="new body"),
            build(labels=["backend"]),
            build(dependencies=[Dependency("bg-1", "bg-2")]),
            build(dependencies=[Dependency("bg-1", "bg-2", "related")]),
            build(close_reason="Merged"),
            build(created_at=later),
            build(updated_at=later),
            build(closed_at=later),
        ]
        assert len({issue.content_hash for issue in variants}) == len(variants)
