"""Markdown file storage for issues and YAML graph configuration."""

from datetime import datetime
from pathlib import Path
from typing import Any

import frontmatter
import yaml

from blockgraph.chain import DEFAULT_MAX_DEPTH
from blockgraph.graph import GraphOptions
from blockgraph.models import Dependency, DependencyType, Issue, Status


class StorageError(Exception):
    """Raised when an issue or config file cannot be interpreted."""

    pass


class ConfigError(StorageError):
    """Raised when config.yml holds invalid values."""

    pass


class MarkdownStorage:
    """Read/write issues as markdown files with YAML frontmatter."""

    def __init__(self, root: Path):
        self.root = root
        self.issues_dir = root / "issues"
        self.index_path = root / "index.yml"

    def ensure_initialized(self) -> None:
        """Create .blockgraph/issues/ directory if not exists."""
        self.issues_dir.mkdir(parents=True, exist_ok=True)
        if not self.index_path.exists():
            self._save_index({"issues": {}})

    def issue_path(self, issue_id: str) -> Path:
        """Get the path to an issue's markdown file."""
        return self.issues_dir / f"{issue_id}.md"

    def read_issue(self, issue_id: str) -> Issue | None:
        """Read and parse a single issue file."""
        path = self.issue_path(issue_id)
        if not path.exists():
            return None
        post = frontmatter.load(path)
        try:
            return self._parse_issue(post)
        except (KeyError, ValueError, TypeError) as e:
            raise StorageError(f"Invalid issue file {path.name}: {e}") from e

    def write_issue(self, issue: Issue) -> None:
        """Write issue to markdown file and update index."""
        path = self.issue_path(issue.id)
        content = self._serialize_issue(issue)
        path.write_text(content)
        self._update_index(issue)

    def list_issue_ids(self) -> list[str]:
        """List all issue IDs from filenames, sorted."""
        if not self.issues_dir.exists():
            return []
        return sorted(p.stem for p in self.issues_dir.glob("*.md"))

    def read_all_issues(self) -> list[Issue]:
        """Read all issues from storage in ID order."""
        return [
            issue
            for issue_id in self.list_issue_ids()
            if (issue := self.read_issue(issue_id)) is not None
        ]

    def _load_index(self) -> dict:
        """Load index from index.yml."""
        if not self.index_path.exists():
            return {"issues": {}}
        with open(self.index_path) as f:
            return yaml.safe_load(f) or {"issues": {}}

    def _save_index(self, index: dict) -> None:
        """Save index to index.yml."""
        with open(self.index_path, "w") as f:
            yaml.dump(index, f, default_flow_style=False, sort_keys=False)

    def _update_index(self, issue: Issue) -> None:
        """Update index entry for an issue."""
        index = self._load_index()
        index.setdefault("issues", {})[issue.id] = {
            "title": issue.title,
            "status": issue.status.value if issue.status else None,
            "priority": issue.priority,
            "dependencies": len(issue.dependencies),
            "updated_at": issue.updated_at.isoformat(),
        }
        self._save_index(index)

    def _parse_issue(self, post: frontmatter.Post) -> Issue:
        """Parse frontmatter Post into Issue dataclass."""
        metadata = post.metadata
        issue_id = str(metadata["id"])

        status_value = metadata.get("status", Status.OPEN.value)
        status = Status(status_value) if status_value is not None else None

        return Issue(
            id=issue_id,
            title=metadata["title"],
            status=status,
            priority=int(metadata.get("priority", 2)),
            issue_type=metadata.get("type"),
            description=post.content.strip(),
            labels=metadata.get("labels", []) or [],
            dependencies=[
                self._parse_dependency(issue_id, entry)
                for entry in metadata.get("dependencies", []) or []
            ],
            close_reason=metadata.get("close_reason", "") or "",
            created_at=self._parse_datetime(metadata.get("created_at")),
            updated_at=self._parse_datetime(metadata.get("updated_at")),
            closed_at=self._parse_optional_datetime(metadata.get("closed_at")),
        )

    def _parse_dependency(self, issue_id: str, entry: str | dict) -> Dependency:
        """Parse one dependency entry; a bare ID means ``blocks``."""
        if isinstance(entry, str):
            return Dependency(issue_id=issue_id, depends_on_id=entry)
        return Dependency(
            issue_id=issue_id,
            depends_on_id=str(entry["depends_on_id"]),
            type=str(entry.get("type", DependencyType.BLOCKS.value)),
            gate=entry.get("gate"),
        )

    def _parse_datetime(self, value: str | datetime | None) -> datetime:
        """Parse datetime from string or return datetime directly."""
        if value is None:
            return datetime.now()
        if isinstance(value, datetime):
            return value
        return datetime.fromisoformat(value)

    def _parse_optional_datetime(self, value: str | datetime | None) -> datetime | None:
        if value is None:
            return None
        return self._parse_datetime(value)

    def _serialize_issue(self, issue: Issue) -> str:
        """Serialize Issue to markdown with YAML frontmatter."""
        metadata: dict[str, Any] = {
            "id": issue.id,
            "title": issue.title,
            "status": issue.status.value if issue.status else None,
            "priority": issue.priority,
            "labels": issue.labels,
            "dependencies": [self._serialize_dependency(dep) for dep in issue.dependencies],
            "created_at": issue.created_at.isoformat(),
            "updated_at": issue.updated_at.isoformat(),
        }
        if issue.issue_type:
            metadata["type"] = issue.issue_type
        if issue.close_reason:
            metadata["close_reason"] = issue.close_reason
        if issue.closed_at:
            metadata["closed_at"] = issue.closed_at.isoformat()

        post = frontmatter.Post(issue.description, **metadata)
        return frontmatter.dumps(post)

    def _serialize_dependency(self, dep: Dependency) -> dict[str, str]:
        entry = {"depends_on_id": dep.depends_on_id, "type": dep.type}
        if dep.gate:
            entry["gate"] = dep.gate
        return entry


class ConfigStorage:
    """Read/write graph options in config.yml."""

    def __init__(self, root: Path):
        self.root = root
        self.config_path = root / "config.yml"

    def ensure_initialized(self) -> None:
        """Write default config if none exists."""
        self.root.mkdir(parents=True, exist_ok=True)
        if not self.config_path.exists():
            self.save(GraphOptions())

    def load(self) -> GraphOptions:
        """Load options, falling back to defaults for absent keys."""
        if not self.config_path.exists():
            return GraphOptions()
        with open(self.config_path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{self.config_path.name} must contain a mapping")

        include_types = data.get("include_dependency_types")
        if include_types is not None and not isinstance(include_types, list):
            raise ConfigError("include_dependency_types must be a list")

        include_orphans = data.get("include_orphan_edges", False)
        if not isinstance(include_orphans, bool):
            raise ConfigError("include_orphan_edges must be true or false")

        max_depth = data.get("max_depth", DEFAULT_MAX_DEPTH)
        if not isinstance(max_depth, int) or isinstance(max_depth, bool) or max_depth < 1:
            raise ConfigError("max_depth must be a positive integer")

        return GraphOptions(
            include_dependency_types=(
                None if include_types is None else frozenset(str(t) for t in include_types)
            ),
            include_orphan_edges=include_orphans,
            max_depth=max_depth,
        )

    def save(self, options: GraphOptions) -> None:
        """Persist the configurable parts of the options."""
        types = options.include_dependency_types
        data = {
            "include_dependency_types": None if types is None else sorted(types),
            "include_orphan_edges": options.include_orphan_edges,
            "max_depth": options.max_depth,
        }
        with open(self.config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
