"""Storage adapter contract shared by the JSON and SQLite backends."""

from pathlib import Path

from aiknowsys.context.models import (
    LearnedPattern,
    Plan,
    PlanFilters,
    RebuildResult,
    SearchResult,
    Session,
    SessionFilters,
)
from aiknowsys.errors import AdapterNotImplementedError


class StorageAdapter:
    """
    Base storage adapter.

    Backends override every method below. A method left unoverridden raises
    AdapterNotImplementedError, so an incomplete backend fails loudly instead
    of returning empty results.

    Adapters are scoped to one logical operation: acquire, use, close. Use
    them as context managers to guarantee release on every exit path::

        with create_storage(target_dir) as storage:
            plans = storage.query_plans(PlanFilters(status="ACTIVE"))
    """

    def _not_implemented(self, method: str) -> AdapterNotImplementedError:
        return AdapterNotImplementedError(type(self).__name__, method)

    def init(self, target_dir: Path) -> None:
        """Open or create the backing store for ``target_dir``."""
        raise self._not_implemented("init")

    def query_plans(self, filters: PlanFilters | None = None) -> list[Plan]:
        """Return plans matching every set filter."""
        raise self._not_implemented("query_plans")

    def query_sessions(self, filters: SessionFilters | None = None) -> list[Session]:
        """Return sessions matching every set filter."""
        raise self._not_implemented("query_sessions")

    def query_learned(
        self, category: str | None = None, keywords: list[str] | None = None
    ) -> list[LearnedPattern]:
        """Return learned patterns in ``category`` matching any of ``keywords``."""
        raise self._not_implemented("query_learned")

    def search(self, query: str, scope: str = "all") -> list[SearchResult]:
        """Case-insensitive literal search, sorted by relevance descending.

        ``scope`` is one of all, plans, sessions, learned.
        """
        raise self._not_implemented("search")

    def rebuild_index(self) -> RebuildResult:
        """Rescan the markdown source layer and replace the derived data."""
        raise self._not_implemented("rebuild_index")

    def close(self) -> None:
        """Release any resources held by the adapter."""
        raise self._not_implemented("close")

    def __enter__(self) -> "StorageAdapter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
