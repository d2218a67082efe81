"""Query and search facade.

Every function here validates its arguments before any storage is touched,
resolves the target directory to an absolute path, opens exactly one
adapter and closes it on every exit path. Queries rescan the markdown
files first, so results always reflect the files on disk. Results are plain
dicts shaped ``{count, plans|sessions|results}``.
"""

import logging
import re
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

from aiknowsys.context import create_storage
from aiknowsys.context.models import PLAN_STATUSES, SEARCH_SCOPES, PlanFilters, SessionFilters
from aiknowsys.errors import ValidationError

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_date(value: str | None, field: str) -> str | None:
    """Check a YYYY-MM-DD date; None passes through."""
    if value is None:
        return None
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise ValidationError(f"Invalid {field}: {value!r}. Expected YYYY-MM-DD")
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError as e:
        raise ValidationError(f"Invalid {field}: {value!r}. {e}") from e
    return value


def validate_status(value: str | None) -> str | None:
    """Upper-case a plan status and check it against the enumeration."""
    if value is None:
        return None
    status = value.strip().upper()
    if status not in PLAN_STATUSES:
        raise ValidationError(f"Invalid status: {value}. Must be one of: {', '.join(PLAN_STATUSES)}")
    return status


def validate_scope(value: str) -> str:
    if value not in SEARCH_SCOPES:
        raise ValidationError(f"Invalid scope: {value}. Must be one of: {', '.join(SEARCH_SCOPES)}")
    return value


def validate_query(value: str | None) -> str:
    if value is None or not value.strip():
        raise ValidationError("Search query cannot be empty")
    return value.strip()


def validate_days(value: int | None) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"Invalid days: {value!r}. Must be a positive integer")
    return value


def effective_date_after(date_after: str | None, days: int | None, today: date | None = None) -> str | None:
    """
    Combine an explicit lower date bound with a "last N days" window.

    The explicit ``date_after`` wins when both are given.
    """
    if date_after:
        return date_after
    if days is None:
        return None
    today = today or date.today()
    return (today - timedelta(days=days)).isoformat()


def query_plans_core(
    target_dir: Path | str,
    status: str | None = None,
    author: str | None = None,
    topic: str | None = None,
    updated_after: str | None = None,
    updated_before: str | None = None,
    adapter: str | None = None,
) -> dict[str, Any]:
    """
    Query plans with AND-combined filters.

    Returns:
        ``{"count": n, "plans": [...]}``, newest update first

    Raises:
        ValidationError: On a bad status or date, before storage is opened
    """
    filters = PlanFilters(
        status=validate_status(status),
        author=author,
        topic=topic,
        updated_after=validate_date(updated_after, "updated_after"),
        updated_before=validate_date(updated_before, "updated_before"),
    )

    resolved_dir = Path(target_dir).resolve()
    storage = create_storage(resolved_dir, adapter, auto_rebuild=True)
    try:
        plans = storage.query_plans(filters)
    finally:
        storage.close()

    return {"count": len(plans), "plans": [p.to_dict() for p in plans]}


def query_sessions_core(
    target_dir: Path | str,
    date: str | None = None,
    date_after: str | None = None,
    date_before: str | None = None,
    topic: str | None = None,
    plan: str | None = None,
    days: int | None = None,
    adapter: str | None = None,
) -> dict[str, Any]:
    """
    Query sessions, newest first.

    ``days`` keeps sessions from the last N days; an explicit ``date_after``
    overrides it. Date bounds are inclusive.
    """
    filters = SessionFilters(
        date=validate_date(date, "date"),
        date_after=effective_date_after(validate_date(date_after, "date_after"), validate_days(days)),
        date_before=validate_date(date_before, "date_before"),
        topic=topic,
        plan=plan,
    )

    resolved_dir = Path(target_dir).resolve()
    storage = create_storage(resolved_dir, adapter, auto_rebuild=True)
    try:
        sessions = storage.query_sessions(filters)
    finally:
        storage.close()

    sessions.sort(key=lambda s: s.date, reverse=True)
    return {"count": len(sessions), "sessions": [s.to_dict() for s in sessions]}


def search_context_core(
    target_dir: Path | str,
    query: str,
    scope: str = "all",
    adapter: str | None = None,
) -> dict[str, Any]:
    """Literal search across plans, sessions and learned patterns."""
    query = validate_query(query)
    scope = validate_scope(scope)

    resolved_dir = Path(target_dir).resolve()
    storage = create_storage(resolved_dir, adapter, auto_rebuild=True)
    try:
        results = storage.search(query, scope)
    finally:
        storage.close()

    return {
        "query": query,
        "scope": scope,
        "count": len(results),
        "results": [r.to_dict() for r in results],
    }


def query_learned_core(
    target_dir: Path | str,
    category: str | None = None,
    keywords: list[str] | None = None,
    adapter: str | None = None,
) -> dict[str, Any]:
    resolved_dir = Path(target_dir).resolve()
    storage = create_storage(resolved_dir, adapter, auto_rebuild=True)
    try:
        patterns = storage.query_learned(category, keywords)
    finally:
        storage.close()

    return {"count": len(patterns), "patterns": [p.to_dict() for p in patterns]}


def rebuild_index_core(target_dir: Path | str, adapter: str | None = None) -> dict[str, Any]:
    """Rescan the markdown files and replace the derived index or database rows."""
    resolved_dir = Path(target_dir).resolve()
    storage = create_storage(resolved_dir, adapter)
    try:
        result = storage.rebuild_index()
    finally:
        storage.close()

    return {
        "plans_indexed": result.plans_indexed,
        "sessions_indexed": result.sessions_indexed,
        "learned_indexed": result.learned_indexed,
        "total": result.total,
        "errors": result.errors,
    }
