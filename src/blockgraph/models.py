"""Data models for the blockgraph dependency engine."""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

LOWEST_PRIORITY = 4


class Status(Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    BLOCKED = "blocked"
    CLOSED = "closed"
    DEFERRED = "deferred"


class DependencyType(Enum):
    BLOCKS = "blocks"
    PARENT_CHILD = "parent-child"
    CONDITIONAL_BLOCKS = "conditional-blocks"
    WAITS_FOR = "waits-for"
    RELATED = "related"
    DISCOVERED_FROM = "discovered-from"
    REPLIES_TO = "replies-to"
    RELATES_TO = "relates-to"
    DUPLICATES = "duplicates"
    SUPERSEDES = "supersedes"


BLOCKING_TYPES = frozenset(
    {
        DependencyType.BLOCKS.value,
        DependencyType.PARENT_CHILD.value,
        DependencyType.CONDITIONAL_BLOCKS.value,
        DependencyType.WAITS_FOR.value,
    }
)


def is_blocking_type(dep_type: "str | DependencyType | None") -> bool:
    """Check if a dependency type blocks its dependent.

    Unknown and custom tags never block.
    """
    if isinstance(dep_type, DependencyType):
        dep_type = dep_type.value
    return dep_type in BLOCKING_TYPES


# waits-for gates: block while any child is open, or until one child closes
GATE_ALL_CHILDREN = "all-children"
GATE_ANY_CHILDREN = "any-children"


@dataclass(frozen=True)
class Dependency:
    issue_id: str  # the dependent (blocked) side
    depends_on_id: str  # the blocker side
    type: str = DependencyType.BLOCKS.value
    gate: str | None = None  # waits-for only; None means all-children

    @property
    def is_blocking(self) -> bool:
        return is_blocking_type(self.type)


@dataclass
class Issue:
    id: str
    title: str
    status: Status | None = Status.OPEN
    priority: int = 2  # 0-4, lower = higher priority
    issue_type: str | None = None
    description: str = ""
    labels: list[str] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    close_reason: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    closed_at: datetime | None = None

    @property
    def content_hash(self) -> str:
        """SHA256 over every field.

        Fields are JSON-encoded as a list, so values containing separators
        cannot make two different issues hash alike.
        """
        content = json.dumps(
            [
                self.id,
                self.title,
                self.status.value if self.status else None,
                self.priority,
                self.issue_type,
                self.description,
                self.labels,
                [
                    [d.issue_id, d.depends_on_id, d.type, d.gate]
                    for d in self.dependencies
                ],
                self.close_reason,
                self.created_at.isoformat(),
                self.updated_at.isoformat(),
                self.closed_at.isoformat() if self.closed_at else None,
            ],
            default=str,
        )
        return hashlib.sha256(content.encode()).hexdigest()

    def is_open(self) -> bool:
        """Check if issue is in an open state (not closed)."""
        return self.status != Status.CLOSED

    def depends_on(self, depends_on_id: str, type: str = "blocks") -> Dependency:
        """Attach a dependency on another issue and return it."""
        dep = Dependency(issue_id=self.id, depends_on_id=depends_on_id, type=type)
        self.dependencies.append(dep)
        return dep


@dataclass(frozen=True)
class EdgeData:
    dependency_type: str
    is_blocking: bool
    source_issue_id: str  # blocked side
    target_issue_id: str  # blocker side


@dataclass(frozen=True)
class DependencyEdge:
    """Graph edge for one retained dependency.

    ``source``/``target`` are node ids. ``data`` may be missing on edges
    that did not come from the builder; such edges never block.
    """

    id: str
    source: str
    target: str
    data: EdgeData | None = None
    type: str = "dependency"


@dataclass
class IssueNodeData:
    issue: Issue | None
    title: str
    status: Status | None
    priority: int
    issue_type: str | None
    dependency_count: int  # outgoing: edges where this issue is the dependent
    dependent_count: int  # incoming: edges where this issue is depended upon
    is_ready: bool
    blocked_count: int
    is_root_blocker: bool
    is_closed: bool
    is_ghost_node: bool = False


@dataclass
class IssueNode:
    id: str
    data: IssueNodeData
    type: str = "issue"
    position: tuple[float, float] = (0.0, 0.0)
