"""JSON index backend: a flat, rebuildable cache in .aiknowsys/context-index.json."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from aiknowsys.context.adapter import StorageAdapter
from aiknowsys.context.filtering import learned_matches, plan_matches, scope_types, session_matches
from aiknowsys.context.models import (
    LearnedPattern,
    Plan,
    PlanFilters,
    RebuildResult,
    SearchResult,
    Session,
    SessionFilters,
)
from aiknowsys.context.scanner import aiknowsys_dir, load_source_layer, walk_source_layer
from aiknowsys.context.snippets import find_literal
from aiknowsys.errors import StorageNotInitializedError, StorageUnavailableError

logger = logging.getLogger(__name__)

INDEX_FILENAME = "context-index.json"
INDEX_VERSION = 1

# FileInfo.kind -> SearchResult.type
KIND_TYPES = {"plan": "plan", "session": "session", "learned": "learned"}


class JsonStorage(StorageAdapter):
    """
    Storage adapter backed by a JSON index file.

    The index only holds metadata. ``search`` reads the markdown files
    themselves, so it never returns stale content. There is no locking:
    concurrent rebuilds of the same index race and the last writer wins.
    """

    def __init__(self) -> None:
        self.target_dir: Path | None = None
        self._plans: list[Plan] = []
        self._sessions: list[Session] = []
        self._learned: list[LearnedPattern] = []
        self._updated: str = ""

    @property
    def index_path(self) -> Path:
        return aiknowsys_dir(self._require_target()) / INDEX_FILENAME

    def _require_target(self) -> Path:
        if self.target_dir is None:
            raise StorageNotInitializedError(
                "JsonStorage not initialized. Call init(target_dir) first."
            )
        return self.target_dir

    def init(self, target_dir: Path) -> None:
        self.target_dir = Path(target_dir).resolve()
        index_path = self.index_path

        try:
            index_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot create index directory {index_path.parent}: {e}") from e

        if not index_path.exists():
            logger.debug("No index at %s, creating an empty one", index_path)
            self._save()
            return

        try:
            raw = json.loads(index_path.read_text(encoding="utf-8"))
            self._load(raw)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read index {index_path}: {e}") from e
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            # The index is derived data; a corrupt one is stale, not fatal
            logger.warning("Corrupt index %s (%s), starting empty until rebuilt", index_path, e)
            self._plans, self._sessions, self._learned = [], [], []
            self._save()

    def _load(self, raw: dict[str, Any]) -> None:
        self._plans = [Plan.from_dict(p) for p in raw.get("plans", [])]
        self._sessions = [Session.from_dict(s) for s in raw.get("sessions", [])]
        self._learned = [LearnedPattern.from_dict(p) for p in raw.get("learned", [])]
        self._updated = raw.get("updated", "")

    def to_index(self) -> dict[str, Any]:
        """The index document as persisted (content excluded)."""
        return {
            "version": INDEX_VERSION,
            "updated": self._updated,
            "plans": [p.to_dict() for p in self._plans],
            "sessions": [s.to_dict() for s in self._sessions],
            "learned": [p.to_dict() for p in self._learned],
        }

    def _save(self) -> None:
        self._updated = datetime.now().isoformat(timespec="seconds")
        try:
            self.index_path.write_text(json.dumps(self.to_index(), indent=2), encoding="utf-8")
        except OSError as e:
            raise StorageUnavailableError(f"Cannot write index {self.index_path}: {e}") from e

    def rebuild_index(self) -> RebuildResult:
        target = self._require_target()
        logger.info("Rebuilding JSON index for %s", target)

        snapshot = load_source_layer(target)
        # Content stays in the markdown files
        for item in (*snapshot.plans, *snapshot.sessions, *snapshot.learned):
            item.content = None

        self._plans = snapshot.plans
        self._sessions = snapshot.sessions
        self._learned = snapshot.learned
        self._save()

        result = RebuildResult(
            plans_indexed=len(self._plans),
            sessions_indexed=len(self._sessions),
            learned_indexed=len(self._learned),
            errors=snapshot.errors,
        )
        logger.info(
            "Rebuild complete: %d plans, %d sessions, %d learned, %d errors",
            result.plans_indexed,
            result.sessions_indexed,
            result.learned_indexed,
            len(result.errors),
        )
        return result

    # Query methods

    def query_plans(self, filters: PlanFilters | None = None) -> list[Plan]:
        self._require_target()
        filters = filters or PlanFilters()
        plans = [p for p in self._plans if plan_matches(p, filters)]
        plans.sort(key=lambda p: p.id)
        plans.sort(key=lambda p: p.updated, reverse=True)
        return plans

    def query_sessions(self, filters: SessionFilters | None = None) -> list[Session]:
        self._require_target()
        filters = filters or SessionFilters()
        return [s for s in self._sessions if session_matches(s, filters)]

    def query_learned(
        self, category: str | None = None, keywords: list[str] | None = None
    ) -> list[LearnedPattern]:
        self._require_target()
        return [p for p in self._learned if learned_matches(p, category, keywords)]

    def search(self, query: str, scope: str = "all") -> list[SearchResult]:
        target = self._require_target()
        wanted_types = scope_types(scope)

        results: list[SearchResult] = []
        for info in walk_source_layer(target):
            result_type = KIND_TYPES.get(info.kind)
            if result_type not in wanted_types:
                continue
            try:
                content = info.path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Skipping unreadable file %s during search: %s", info.relative_path, e)
                continue

            match = find_literal(content, query)
            if match is None:
                continue
            results.append(
                SearchResult(
                    file=info.relative_path,
                    line=match.line,
                    context=match.context,
                    relevance=float(match.count),
                    type=result_type,
                )
            )

        results.sort(key=lambda r: r.file)
        results.sort(key=lambda r: r.relevance, reverse=True)
        return results

    def close(self) -> None:
        # Nothing to release
        pass
