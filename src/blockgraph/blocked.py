"""Live blocked-issue computation from current issue statuses.

An issue is blocked when:

- it has a ``blocks`` dependency on an active issue
- it has a ``conditional-blocks`` dependency on an issue that is active,
  or was closed without a failure reason (the dependent only runs if its
  blocker fails)
- it has a ``waits-for`` dependency on an issue whose ``parent-child``
  children are still pending: with the default ``all-children`` gate while
  any child is not closed, with ``any-children`` until some child closes
- its parent is blocked and it is attached via ``parent-child``

Active means open, in progress, in review, blocked or deferred. Issues
with no known status never block. Dependencies on issues outside the
collection are ignored since their status is unknown.
"""

from collections import defaultdict
from collections.abc import Iterable

from blockgraph.models import GATE_ANY_CHILDREN, DependencyType, Issue, Status

DEFAULT_PROPAGATION_DEPTH = 50

ACTIVE_STATUSES = frozenset(
    {Status.OPEN, Status.IN_PROGRESS, Status.REVIEW, Status.BLOCKED, Status.DEFERRED}
)

FAILURE_KEYWORDS = (
    "failed",
    "rejected",
    "wontfix",
    "won't fix",
    "cancelled",
    "canceled",
    "abandoned",
    "blocked",
    "error",
    "timeout",
    "aborted",
)


def is_active(issue: Issue) -> bool:
    """Check if an issue can still hold up its dependents."""
    return issue.status in ACTIVE_STATUSES


def is_failure_close(issue: Issue) -> bool:
    """Check if a closed issue was closed as a failure."""
    if issue.status != Status.CLOSED:
        return False
    reason = issue.close_reason.lower()
    return any(keyword in reason for keyword in FAILURE_KEYWORDS)


def compute_blocked_issue_ids(
    issues: Iterable[Issue], max_depth: int = DEFAULT_PROPAGATION_DEPTH
) -> set[str]:
    """Return IDs of issues currently blocked by active blockers."""
    issues = list(issues)
    by_id = {issue.id: issue for issue in issues}

    # parent id -> child ids, from parent-child dependencies
    children: dict[str, set[str]] = defaultdict(set)
    for issue in issues:
        for dep in issue.dependencies:
            if dep.type == DependencyType.PARENT_CHILD.value:
                children[dep.depends_on_id].add(dep.issue_id)

    blocked: set[str] = set()
    for issue in issues:
        for dep in issue.dependencies:
            blocker = by_id.get(dep.depends_on_id)
            if blocker is None:
                continue
            if dep.type == DependencyType.BLOCKS.value:
                if is_active(blocker):
                    blocked.add(dep.issue_id)
            elif dep.type == DependencyType.CONDITIONAL_BLOCKS.value:
                if is_active(blocker) or (
                    blocker.status == Status.CLOSED and not is_failure_close(blocker)
                ):
                    blocked.add(dep.issue_id)
            elif dep.type == DependencyType.WAITS_FOR.value:
                statuses = [
                    by_id[child_id].status
                    for child_id in children.get(blocker.id, ())
                    if child_id in by_id
                ]
                if dep.gate == GATE_ANY_CHILDREN:
                    waiting = Status.CLOSED not in statuses
                else:
                    waiting = any(status != Status.CLOSED for status in statuses)
                if waiting:
                    blocked.add(dep.issue_id)

    # Children of blocked parents inherit the blockage.
    frontier = list(blocked)
    depth = 0
    while frontier and depth < max_depth:
        next_frontier = []
        for parent_id in frontier:
            for child_id in children.get(parent_id, ()):
                if child_id not in blocked:
                    blocked.add(child_id)
                    next_frontier.append(child_id)
        frontier = next_frontier
        depth += 1

    return blocked
