"""Data models for the context storage layer."""

from dataclasses import asdict, dataclass, field, fields
from typing import Any

PLAN_STATUSES = ("ACTIVE", "PAUSED", "PLANNED", "COMPLETE", "CANCELLED")

SEARCH_SCOPES = ("all", "plans", "sessions", "learned")

# Search scope -> SearchResult.type
SCOPE_TYPES = {
    "plans": "plan",
    "sessions": "session",
    "learned": "learned",
}


def _from_dict(cls, data: dict[str, Any]):
    """Build a dataclass from a dict, ignoring keys it does not know."""
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Plan:
    """An implementation plan (one PLAN_*.md file)."""

    id: str
    title: str
    status: str = "PLANNED"
    author: str = "unknown"
    created: str = ""
    updated: str = ""
    file: str = ""  # Relative to .aiknowsys/
    topics: list[str] = field(default_factory=list)
    description: str | None = None
    priority: str | None = None
    type: str | None = None
    content: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Plan":
        return _from_dict(cls, data)

    def to_dict(self, include_content: bool = False) -> dict[str, Any]:
        data = asdict(self)
        if not include_content:
            data.pop("content")
        return data


@dataclass
class Session:
    """A work session (one sessions/YYYY-MM-DD-session.md file)."""

    date: str
    topic: str
    file: str = ""
    plan: str | None = None
    phases: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    status: str | None = None
    duration: str | None = None
    created: str = ""
    updated: str = ""
    content: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        return _from_dict(cls, data)

    def to_dict(self, include_content: bool = False) -> dict[str, Any]:
        data = asdict(self)
        if not include_content:
            data.pop("content")
        return data


@dataclass
class LearnedPattern:
    """A learned pattern (one learned/<slug>.md file)."""

    id: str
    category: str
    title: str
    file: str = ""
    keywords: list[str] = field(default_factory=list)
    created: str = ""
    content: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LearnedPattern":
        return _from_dict(cls, data)

    def to_dict(self, include_content: bool = False) -> dict[str, Any]:
        data = asdict(self)
        if not include_content:
            data.pop("content")
        return data


@dataclass
class Project:
    """A repository scoping plans and sessions (SQLite only)."""

    id: str
    name: str
    path: str | None = None
    tech_stack: dict[str, Any] | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class SearchResult:
    """A single search hit. Not persisted."""

    file: str
    line: int
    context: str
    relevance: float
    type: str  # plan, session, learned

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PlanFilters:
    """Plan query filters. All set filters combine with AND."""

    status: str | None = None
    author: str | None = None
    topic: str | None = None
    updated_after: str | None = None
    updated_before: str | None = None
    # SQLite only
    priority: str | None = None
    id_prefix: str | None = None
    content_contains: str | None = None


@dataclass
class SessionFilters:
    """Session query filters. All set filters combine with AND."""

    date: str | None = None
    date_after: str | None = None
    date_before: str | None = None
    topic: str | None = None
    plan: str | None = None
    # SQLite only
    status: str | None = None
    content_contains: str | None = None


@dataclass
class RebuildResult:
    """Outcome of a full rescan of the markdown source layer."""

    plans_indexed: int = 0
    sessions_indexed: int = 0
    learned_indexed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.plans_indexed + self.sessions_indexed + self.learned_indexed


@dataclass
class DatabaseStats:
    """Row counts and on-disk size of a SQLite knowledge database."""

    db_path: str
    projects: int
    plans: int
    sessions: int
    patterns: int
    size_bytes: int
