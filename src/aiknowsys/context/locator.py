"""Database location and project identity resolution.

Priority for the database path (first match wins):

1. ``AIKNOWSYS_DB_PATH`` environment variable
2. ``databasePath`` in ``<project>/.aiknowsys.config`` (relative paths
   resolve against the project root)
3. ``~/.aiknowsys/knowledge.db``
"""

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from aiknowsys.config import DB_PATH_ENV
from aiknowsys.errors import StorageUnavailableError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".aiknowsys.config"
DEFAULT_DB_DIRNAME = ".aiknowsys"
DEFAULT_DB_FILENAME = "knowledge.db"

ORIGIN_SECTION_PATTERN = re.compile(
    r'^\s*\[remote\s+"origin"\]\s*$(.*?)(?=^\s*\[|\Z)', re.MULTILINE | re.DOTALL
)
URL_PATTERN = re.compile(r"^\s*url\s*=\s*(\S+)\s*$", re.MULTILINE)


@dataclass
class DatabaseConfig:
    """Where the database lives and which project is using it."""

    db_path: Path
    project_id: str
    project_name: str


def sanitize_project_id(raw_id: str) -> str:
    """Lowercase, collapse runs of non-alphanumerics to one hyphen, trim hyphens."""
    return re.sub(r"[^a-z0-9]+", "-", raw_id.lower()).strip("-")


def parse_remote_url(url: str) -> str | None:
    """
    Derive ``owner/repo`` from a git remote URL.

    Handles git@host:owner/repo.git, https://host/owner/repo(.git) and
    ssh://git@host/owner/repo.git.
    """
    cleaned = url.strip().rstrip("/")
    if cleaned.endswith(".git"):
        cleaned = cleaned[: -len(".git")]
    parts = [p for p in re.split(r"[/:]", cleaned) if p]
    if len(parts) < 2:
        return None
    owner = sanitize_project_id(parts[-2])
    repo = sanitize_project_id(parts[-1])
    if not owner or not repo:
        return None
    return f"{owner}/{repo}"


class DatabaseLocator:
    """Resolves the database path and project identity for a directory."""

    def get_database_config(self, target_dir: Path | str) -> DatabaseConfig:
        """
        Resolve database location and project identity.

        Side effect: creates the database's parent directory. A missing or
        malformed .aiknowsys.config degrades to the defaults.

        Raises:
            StorageUnavailableError: If the parent directory cannot be created
        """
        resolved_dir = Path(target_dir).resolve()
        config = self.read_config(resolved_dir) or {}

        env_path = os.getenv(DB_PATH_ENV, "").strip()
        config_path = config.get("databasePath")
        if env_path:
            db_path = Path(env_path).expanduser().resolve()
            source = "environment"
        elif isinstance(config_path, str) and config_path.strip():
            db_path = Path(config_path.strip()).expanduser()
            if not db_path.is_absolute():
                db_path = resolved_dir / db_path
            db_path = db_path.resolve()
            source = CONFIG_FILENAME
        else:
            db_path = Path.home() / DEFAULT_DB_DIRNAME / DEFAULT_DB_FILENAME
            source = "default"
        logger.debug("Database path %s (from %s)", db_path, source)

        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot create database directory {db_path.parent}: {e}") from e

        project_id = config.get("projectId")
        project_name = config.get("projectName")
        return DatabaseConfig(
            db_path=db_path,
            project_id=project_id if isinstance(project_id, str) and project_id else self.get_project_id(resolved_dir),
            project_name=(
                project_name if isinstance(project_name, str) and project_name else self.get_project_name(resolved_dir)
            ),
        )

    def get_project_id(self, target_dir: Path | str) -> str:
        """
        Project identifier: ``owner/repo`` from the origin remote, else the
        sanitized directory name. Never raises on missing or corrupt git
        metadata.
        """
        resolved_dir = Path(target_dir).resolve()
        remote_id = self._git_remote_id(resolved_dir)
        if remote_id:
            return remote_id
        return sanitize_project_id(resolved_dir.name) or "default"

    def get_project_name(self, target_dir: Path | str) -> str:
        resolved_dir = Path(target_dir).resolve()
        config = self.read_config(resolved_dir) or {}
        name = config.get("projectName")
        if isinstance(name, str) and name:
            return name
        return resolved_dir.name

    def read_config(self, target_dir: Path) -> dict[str, Any] | None:
        """Read .aiknowsys.config, or None when missing or invalid."""
        config_path = target_dir / CONFIG_FILENAME
        try:
            raw = json.loads(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, ValueError) as e:
            logger.warning("Ignoring unreadable %s: %s", config_path, e)
            return None
        if not isinstance(raw, dict):
            logger.warning("Ignoring %s: expected a JSON object", config_path)
            return None
        return raw

    def _git_remote_id(self, target_dir: Path) -> str | None:
        git_config = target_dir / ".git" / "config"
        try:
            text = git_config.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None

        section = ORIGIN_SECTION_PATTERN.search(text)
        if not section:
            return None
        url = URL_PATTERN.search(section.group(1))
        if not url:
            return None
        return parse_remote_url(url.group(1))


def get_database_config(target_dir: Path | str) -> DatabaseConfig:
    return DatabaseLocator().get_database_config(target_dir)


def get_project_id(target_dir: Path | str) -> str:
    return DatabaseLocator().get_project_id(target_dir)
