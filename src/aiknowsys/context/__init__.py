"""Markdown source layer and the storage backends derived from it."""

import logging
from pathlib import Path

from aiknowsys.config import VALID_BACKENDS, db_path_from_env, storage_from_env
from aiknowsys.context.adapter import StorageAdapter
from aiknowsys.context.json_storage import JsonStorage
from aiknowsys.context.locator import DatabaseConfig, DatabaseLocator
from aiknowsys.context.models import (
    LearnedPattern,
    Plan,
    PlanFilters,
    Project,
    RebuildResult,
    SearchResult,
    Session,
    SessionFilters,
)
from aiknowsys.context.sqlite_storage import SqliteStorage
from aiknowsys.errors import ValidationError

logger = logging.getLogger(__name__)

__all__ = [
    "DatabaseConfig",
    "DatabaseLocator",
    "JsonStorage",
    "LearnedPattern",
    "Plan",
    "PlanFilters",
    "Project",
    "RebuildResult",
    "SearchResult",
    "Session",
    "SessionFilters",
    "SqliteStorage",
    "StorageAdapter",
    "create_storage",
    "select_adapter",
]


def select_adapter(target_dir: Path | str, adapter: str | None = None) -> str:
    """
    Decide which backend serves ``target_dir``.

    Order: explicit ``adapter`` argument, AIKNOWSYS_STORAGE, the
    ``storage`` key of .aiknowsys.config, then sqlite when a database path
    is configured (env or config file), else json.
    """
    if adapter is not None:
        name = adapter.strip().lower()
        if name not in VALID_BACKENDS:
            raise ValidationError(f"Unknown storage adapter: {adapter}. Must be one of: {', '.join(VALID_BACKENDS)}")
        return name

    storage = storage_from_env()
    if storage:
        return storage

    project_config = DatabaseLocator().read_config(Path(target_dir).resolve()) or {}
    configured = project_config.get("storage")
    if isinstance(configured, str) and configured.strip().lower() in VALID_BACKENDS:
        return configured.strip().lower()
    if configured is not None:
        logger.warning("Ignoring unknown storage %r in .aiknowsys.config", configured)

    if db_path_from_env() or project_config.get("databasePath"):
        return "sqlite"
    return "json"


def create_storage(
    target_dir: Path | str, adapter: str | None = None, auto_rebuild: bool = False
) -> StorageAdapter:
    """
    Build, initialize and (optionally) rebuild a storage adapter.

    The caller owns the returned adapter and must close it; it is a
    context manager for that purpose.

    Raises:
        ValidationError: If ``adapter`` names an unknown backend
        StorageUnavailableError: If the backing store cannot be opened
    """
    resolved_dir = Path(target_dir).resolve()
    name = select_adapter(resolved_dir, adapter)

    if name == "sqlite":
        located = DatabaseLocator().get_database_config(resolved_dir)
        storage: StorageAdapter = SqliteStorage(
            db_path=located.db_path,
            project_id=located.project_id,
            project_name=located.project_name,
            scope_to_project=True,
        )
    else:
        storage = JsonStorage()

    logger.debug("Using %s storage for %s", name, resolved_dir)
    storage.init(resolved_dir)
    if auto_rebuild:
        try:
            storage.rebuild_index()
        except Exception:
            storage.close()
            raise
    return storage
