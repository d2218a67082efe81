"""Ledger of detected patterns in .aiknowsys/pattern-history.json."""

import json
import logging
import re
from datetime import date
from pathlib import Path
from typing import Any

from aiknowsys.context.scanner import aiknowsys_dir
from aiknowsys.errors import StorageUnavailableError

logger = logging.getLogger(__name__)

HISTORY_FILENAME = "pattern-history.json"

ID_PATTERN = re.compile(r"[^a-z0-9]+")


class PatternTracker:
    """
    Per-project record of how often each pattern was seen and whether it
    has been turned into a learned skill.

    Entries are keyed by exact error text. Each method reads and writes
    the ledger file, so separate instances on the same directory agree.
    """

    def __init__(self, target_dir: Path | str):
        self.target_dir = Path(target_dir).resolve()
        self.history_path = aiknowsys_dir(self.target_dir) / HISTORY_FILENAME

    def _load(self) -> dict[str, Any]:
        try:
            raw = json.loads(self.history_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {"patterns": []}
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise StorageUnavailableError(f"Cannot read pattern history {self.history_path}: {e}") from e
        if not isinstance(raw, dict) or not isinstance(raw.get("patterns"), list):
            raise StorageUnavailableError(f"Pattern history {self.history_path} has no patterns list")
        return raw

    def _save(self, history: dict[str, Any]) -> None:
        try:
            self.history_path.parent.mkdir(parents=True, exist_ok=True)
            self.history_path.write_text(json.dumps(history, indent=2), encoding="utf-8")
        except OSError as e:
            raise StorageUnavailableError(f"Cannot write pattern history {self.history_path}: {e}") from e

    def _find(self, history: dict[str, Any], error: str) -> dict[str, Any] | None:
        for entry in history["patterns"]:
            if entry.get("error") == error:
                return entry
        return None

    def init(self) -> None:
        """Create the ledger file if it does not exist."""
        self._save(self._load())

    def track_pattern(self, error: str, resolution: str | None = None, today: date | None = None) -> dict[str, Any]:
        """
        Record one occurrence of ``error``.

        An exact-text match increments the existing entry; anything else
        starts a new entry. Returns the updated entry.
        """
        seen = (today or date.today()).isoformat()
        history = self._load()
        entry = self._find(history, error)

        if entry is not None:
            entry["frequency"] = entry.get("frequency", 0) + 1
            entry["lastSeen"] = seen
            resolutions = entry.setdefault("resolutions", [])
            if resolution and resolution not in resolutions:
                resolutions.append(resolution)
        else:
            entry = {
                "id": ID_PATTERN.sub("-", error.lower()).strip("-"),
                "error": error,
                "frequency": 1,
                "firstSeen": seen,
                "lastSeen": seen,
                "documented": False,
                "resolutions": [resolution] if resolution else [],
            }
            history["patterns"].append(entry)
            logger.debug("Tracking new pattern %s", entry["id"])

        self._save(history)
        return entry

    def mark_pattern_documented(self, error: str) -> bool:
        """Flag ``error`` as documented. Returns False if it is not tracked."""
        history = self._load()
        entry = self._find(history, error)
        if entry is None:
            return False
        entry["documented"] = True
        self._save(history)
        return True

    def is_documented(self, error: str) -> bool:
        entry = self._find(self._load(), error)
        return bool(entry and entry.get("documented"))

    def get_patterns(self) -> list[dict[str, Any]]:
        return self._load()["patterns"]
