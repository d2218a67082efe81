"""SQLite-only query facade with metadata, full-content and section modes.

Metadata mode (the default) leaves out the ``content`` column, which keeps
responses small for token-constrained callers. ``mode="full"`` (or
``include_content=True``) returns whole documents, and ``mode="section"``
returns one markdown section of each document.
"""

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

from aiknowsys.context.models import PlanFilters, SessionFilters
from aiknowsys.context.snippets import extract_markdown_section
from aiknowsys.context.sqlite_storage import SqliteStorage
from aiknowsys.errors import ValidationError
from aiknowsys.queries import (
    effective_date_after,
    validate_date,
    validate_days,
    validate_query,
    validate_scope,
    validate_status,
)

logger = logging.getLogger(__name__)

QUERY_MODES = ("metadata", "full", "section")


def _resolve_mode(include_content: bool, mode: str | None, section: str | None) -> str:
    mode = mode or ("full" if include_content else "metadata")
    if mode not in QUERY_MODES:
        raise ValidationError(f"Invalid mode: {mode}. Must be one of: {', '.join(QUERY_MODES)}")
    if mode == "section" and not (section and section.strip()):
        raise ValidationError("mode='section' requires a section heading")
    return mode


def _render(item, mode: str, section: str | None) -> dict[str, Any]:
    data = item.to_dict(include_content=mode != "metadata")
    if mode == "section":
        data["content"] = extract_markdown_section(item.content or "", section)
    return data


def _open_storage(target_dir: Path | str, db_path: Path | str | None, project_id: str | None) -> SqliteStorage:
    storage = SqliteStorage(db_path=db_path, project_id=project_id, scope_to_project=project_id is not None)
    storage.init(Path(target_dir).resolve())
    return storage


def query_plans_sqlite(
    target_dir: Path | str,
    status: str | None = None,
    author: str | None = None,
    topic: str | None = None,
    updated_after: str | None = None,
    updated_before: str | None = None,
    priority: str | None = None,
    id_prefix: str | None = None,
    content_contains: str | None = None,
    include_content: bool = False,
    mode: str | None = None,
    section: str | None = None,
    db_path: Path | str | None = None,
    project_id: str | None = None,
) -> dict[str, Any]:
    """
    Query plans straight from the SQLite database.

    Args:
        target_dir: Project directory (used to locate the database)
        include_content: Shorthand for ``mode="full"``
        mode: metadata, full or section
        section: Heading to extract in section mode, e.g. "## Progress"
        db_path: Explicit database file; located from target_dir when omitted
        project_id: Only return this project's plans

    Returns:
        ``{"count": n, "plans": [...]}``
    """
    mode = _resolve_mode(include_content, mode, section)
    filters = PlanFilters(
        status=validate_status(status),
        author=author,
        topic=topic,
        updated_after=validate_date(updated_after, "updated_after"),
        updated_before=validate_date(updated_before, "updated_before"),
        priority=priority,
        id_prefix=id_prefix,
        content_contains=content_contains,
    )

    storage = _open_storage(target_dir, db_path, project_id)
    try:
        plans = storage.query_plans(filters, include_content=mode != "metadata")
    finally:
        storage.close()

    return {"count": len(plans), "plans": [_render(p, mode, section) for p in plans]}


def query_sessions_sqlite(
    target_dir: Path | str,
    date: str | None = None,
    date_after: str | None = None,
    date_before: str | None = None,
    topic: str | None = None,
    plan: str | None = None,
    status: str | None = None,
    content_contains: str | None = None,
    days: int | None = None,
    include_content: bool = False,
    mode: str | None = None,
    section: str | None = None,
    db_path: Path | str | None = None,
    project_id: str | None = None,
) -> dict[str, Any]:
    """Query sessions from the SQLite database, newest first."""
    mode = _resolve_mode(include_content, mode, section)
    filters = SessionFilters(
        date=validate_date(date, "date"),
        date_after=effective_date_after(validate_date(date_after, "date_after"), validate_days(days)),
        date_before=validate_date(date_before, "date_before"),
        topic=topic,
        plan=plan,
        status=status,
        content_contains=content_contains,
    )

    storage = _open_storage(target_dir, db_path, project_id)
    try:
        sessions = storage.query_sessions(filters, include_content=mode != "metadata")
    finally:
        storage.close()

    return {"count": len(sessions), "sessions": [_render(s, mode, section) for s in sessions]}


def query_learned_patterns_sqlite(
    target_dir: Path | str,
    category: str | None = None,
    keywords: list[str] | None = None,
    include_content: bool = False,
    db_path: Path | str | None = None,
    project_id: str | None = None,
) -> dict[str, Any]:
    storage = _open_storage(target_dir, db_path, project_id)
    try:
        patterns = storage.query_learned_patterns(category, keywords, include_content=include_content)
    finally:
        storage.close()

    return {
        "count": len(patterns),
        "patterns": [p.to_dict(include_content=include_content) for p in patterns],
    }


def search_context_sqlite(
    target_dir: Path | str,
    query: str,
    scope: str = "all",
    ranked: bool = False,
    limit: int = 20,
    db_path: Path | str | None = None,
    project_id: str | None = None,
) -> dict[str, Any]:
    """
    Search the database.

    With ``ranked`` the FTS5 index is used (BM25 order, highlighted
    snippets); otherwise a literal substring search ordered by match count.
    """
    query = validate_query(query)
    scope = validate_scope(scope)
    if limit < 1:
        raise ValidationError(f"Invalid limit: {limit}. Must be a positive integer")

    storage = _open_storage(target_dir, db_path, project_id)
    try:
        if ranked:
            results = storage.search_ranked(query, scope, limit=limit)
        else:
            results = storage.search(query, scope)[:limit]
    finally:
        storage.close()

    return {
        "query": query,
        "scope": scope,
        "count": len(results),
        "results": [r.to_dict() for r in results],
    }


def get_db_stats(target_dir: Path | str, db_path: Path | str | None = None) -> dict[str, Any]:
    """Row counts per table and the database file size."""
    storage = _open_storage(target_dir, db_path, None)
    try:
        stats = storage.get_stats()
    finally:
        storage.close()

    logger.debug("Stats for %s: %s", stats.db_path, stats)
    return asdict(stats)
