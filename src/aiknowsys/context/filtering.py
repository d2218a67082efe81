"""In-memory predicates shared by backends that filter Python objects."""

from aiknowsys.context.models import (
    SCOPE_TYPES,
    SEARCH_SCOPES,
    LearnedPattern,
    Plan,
    PlanFilters,
    Session,
    SessionFilters,
)
from aiknowsys.errors import ValidationError


def scope_types(scope: str) -> set[str]:
    """Result types a search scope admits."""
    if scope not in SEARCH_SCOPES:
        raise ValidationError(f"Invalid scope: {scope}. Must be one of: {', '.join(SEARCH_SCOPES)}")
    if scope == "all":
        return set(SCOPE_TYPES.values())
    return {SCOPE_TYPES[scope]}


def _contains(haystack: str | None, needle: str) -> bool:
    return haystack is not None and needle.lower() in haystack.lower()


def plan_matches(plan: Plan, filters: PlanFilters) -> bool:
    """AND-combination of every set plan filter.

    Dates compare as YYYY-MM-DD strings, bounds inclusive.
    """
    if filters.status and plan.status != filters.status:
        return False
    if filters.author and plan.author != filters.author:
        return False
    if filters.topic and not (
        _contains(plan.title, filters.topic)
        or any(_contains(t, filters.topic) for t in plan.topics)
    ):
        return False
    if filters.updated_after and plan.updated[:10] < filters.updated_after:
        return False
    if filters.updated_before and plan.updated[:10] > filters.updated_before:
        return False
    if filters.priority and plan.priority != filters.priority:
        return False
    if filters.id_prefix and not plan.id.startswith(filters.id_prefix):
        return False
    if filters.content_contains and not (
        _contains(plan.content, filters.content_contains)
        or _contains(plan.title, filters.content_contains)
    ):
        return False
    return True


def session_matches(session: Session, filters: SessionFilters) -> bool:
    """AND-combination of every set session filter.

    ``date_after`` and ``date_before`` are inclusive bounds.
    """
    if filters.date and session.date != filters.date:
        return False
    if filters.date_after and session.date < filters.date_after:
        return False
    if filters.date_before and session.date > filters.date_before:
        return False
    if filters.topic and not (
        _contains(session.topic, filters.topic)
        or any(_contains(t, filters.topic) for t in session.topics)
    ):
        return False
    if filters.plan and session.plan != filters.plan:
        return False
    if filters.status and session.status != filters.status:
        return False
    if filters.content_contains and not (
        _contains(session.content, filters.content_contains)
        or _contains(session.topic, filters.content_contains)
    ):
        return False
    return True


def learned_matches(
    pattern: LearnedPattern, category: str | None = None, keywords: list[str] | None = None
) -> bool:
    """Category is exact; any one keyword matching (substring) is enough."""
    if category and pattern.category != category:
        return False
    if keywords and not any(
        _contains(existing, wanted) for wanted in keywords for existing in pattern.keywords
    ):
        return False
    return True
