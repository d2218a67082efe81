"""MCP tools for the aiknowsys server.

This module defines the tools exposed by the MCP server:
- query_plans: List plans filtered by status, author, topic or date
- query_sessions: List sessions filtered by date range, topic or plan
- search_context: Literal search across plans, sessions and learned patterns
- rebuild_index: Rescan the markdown files into the index/database
- detect_patterns: Find recurring "Key Learning" observations
- create_learned_skill: Write a learned-skill file for a pattern
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

from fastmcp import FastMCP

from aiknowsys import queries
from aiknowsys.config import get_config
from aiknowsys.errors import ValidationError
from aiknowsys.learning.detector import detect_patterns as run_detection
from aiknowsys.learning.skills import SkillPattern
from aiknowsys.learning.skills import create_learned_skill as write_skill


def build_tools(target_dir: Path | str) -> dict[str, Callable[..., dict[str, Any]]]:
    """Build the tool functions bound to one project directory.

    Validation failures come back as ``{"error": message}`` results.

    Args:
        target_dir: Project root containing .aiknowsys/

    Returns:
        Mapping of tool name to function
    """
    root = Path(target_dir).resolve()

    def query_plans(
        status: str | None = None,
        author: str | None = None,
        topic: str | None = None,
        updated_after: str | None = None,
        updated_before: str | None = None,
    ) -> dict[str, Any]:
        """List implementation plans.

        Args:
            status: ACTIVE, PAUSED, PLANNED, COMPLETE or CANCELLED
            author: Exact author name
            topic: Substring of the title or a topic
            updated_after: Inclusive lower bound (YYYY-MM-DD)
            updated_before: Inclusive upper bound (YYYY-MM-DD)

        Returns:
            count and plans (metadata only), newest update first
        """
        try:
            return queries.query_plans_core(
                root,
                status=status,
                author=author,
                topic=topic,
                updated_after=updated_after,
                updated_before=updated_before,
            )
        except ValidationError as e:
            return {"error": str(e)}

    def query_sessions(
        date: str | None = None,
        date_after: str | None = None,
        date_before: str | None = None,
        topic: str | None = None,
        plan: str | None = None,
        days: int | None = None,
    ) -> dict[str, Any]:
        """List work sessions, newest first.

        Args:
            date: Exact session date (YYYY-MM-DD)
            date_after: Inclusive lower bound (YYYY-MM-DD); overrides days
            date_before: Inclusive upper bound (YYYY-MM-DD)
            topic: Substring of the session topic
            plan: Referenced plan id
            days: Only sessions from the last N days
        """
        try:
            return queries.query_sessions_core(
                root,
                date=date,
                date_after=date_after,
                date_before=date_before,
                topic=topic,
                plan=plan,
                days=days,
            )
        except ValidationError as e:
            return {"error": str(e)}

    def search_context(query: str, scope: str = "all") -> dict[str, Any]:
        """Case-insensitive literal search of the knowledge base.

        Args:
            query: Text to find
            scope: all, plans, sessions or learned

        Returns:
            count and results with file, line, context snippet, relevance, type
        """
        try:
            return queries.search_context_core(root, query, scope)
        except ValidationError as e:
            return {"error": str(e)}

    def rebuild_index() -> dict[str, Any]:
        """Rescan the markdown files and rebuild the index.

        Files that fail to parse are skipped and listed under errors.
        """
        return queries.rebuild_index_core(root)

    def detect_patterns(threshold: int | None = None, window_days: int | None = None) -> dict[str, Any]:
        """Find observations that recur across recent sessions.

        Args:
            threshold: Minimum occurrences (default from AIKNOWSYS_PATTERN_THRESHOLD)
            window_days: How far back to look (default from AIKNOWSYS_PATTERN_WINDOW_DAYS)
        """
        try:
            if threshold is None or window_days is None:
                config = get_config()
                threshold = threshold if threshold is not None else config.pattern_threshold
                window_days = window_days if window_days is not None else config.pattern_window_days
            clusters = run_detection(root, threshold=threshold, window_days=window_days)
        except ValueError as e:
            # ValidationError and bad AIKNOWSYS_* settings
            return {"error": str(e)}
        return {"count": len(clusters), "patterns": [c.to_dict() for c in clusters]}

    def create_learned_skill(
        error: str,
        resolution: str | None = None,
        keywords: list[str] | None = None,
        frequency: int = 1,
        shared: bool = True,
        username: str | None = None,
    ) -> dict[str, Any]:
        """Write a learned-skill file. Never overwrites an existing one.

        Args:
            error: The pattern text; also names the file
            resolution: How to resolve it (defaults to the pattern text)
            keywords: Trigger words
            frequency: How often the pattern was seen
            shared: Write to learned/ (True) or personal/<username>/ (False)
            username: Owner of a personal skill

        Returns:
            path (relative to the project), existed, created
        """
        pattern = SkillPattern(
            error=error,
            frequency=frequency,
            keywords=keywords or [],
            resolution=resolution,
        )
        try:
            result = write_skill(pattern, root, shared=shared, username=username)
        except ValidationError as e:
            return {"error": str(e)}
        return {
            "path": result.path.relative_to(root).as_posix(),
            "existed": result.existed,
            "created": result.created,
        }

    return {
        "query_plans": query_plans,
        "query_sessions": query_sessions,
        "search_context": search_context,
        "rebuild_index": rebuild_index,
        "detect_patterns": detect_patterns,
        "create_learned_skill": create_learned_skill,
    }


def register_tools(mcp: FastMCP, target_dir: Path | str) -> None:
    """Register all tools with the FastMCP server.

    Args:
        mcp: FastMCP server instance
        target_dir: Project root the tools operate on
    """
    for tool in build_tools(target_dir).values():
        mcp.tool()(tool)
