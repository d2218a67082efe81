"""Exception types shared by the storage, query and learning layers."""

import sqlite3
from pathlib import Path


class AiknowsysError(Exception):
    """Base class for aiknowsys errors."""

    pass


class ValidationError(AiknowsysError, ValueError):
    """Raised when caller-supplied filters or arguments are invalid.

    Always raised before any storage is opened.
    """

    pass


class StorageUnavailableError(AiknowsysError):
    """Raised when the index file or database cannot be created or opened."""

    pass


class StorageNotInitializedError(AiknowsysError, RuntimeError):
    """Raised when an adapter is used before init()."""

    pass


class AdapterNotImplementedError(AiknowsysError, NotImplementedError):
    """Raised by StorageAdapter methods a backend did not override."""

    def __init__(self, adapter: str, method: str):
        self.adapter = adapter
        self.method = method
        super().__init__(f"{adapter}.{method}() must be implemented by subclass")


# (message fragment, title, troubleshooting steps)
_DATABASE_ERROR_HINTS: list[tuple[tuple[str, ...], str, list[str]]] = [
    (
        ("not a database", "malformed"),
        "Database file is corrupted or invalid",
        [
            "Move the file aside: mv {path} {path}.backup",
            "Rebuild it from the markdown files (rebuild_index)",
        ],
    ),
    (
        ("unable to open",),
        "Cannot open database file",
        [
            "Check the parent directory exists and is writable",
            "Check disk space",
            "Check the file system is not mounted read-only",
        ],
    ),
    (
        ("database is locked", "database is busy"),
        "Database is locked by another process",
        [
            "Wait for the other writer to finish and retry",
            "Look for stale processes holding {path}",
        ],
    ),
    (
        ("readonly", "read-only"),
        "Database is read-only",
        [
            "Check file permissions on {path}",
        ],
    ),
    (
        ("disk is full", "disk i/o"),
        "Disk error while accessing database",
        [
            "Free disk space and retry",
        ],
    ),
]


def wrap_database_error(
    error: BaseException, operation: str, db_path: Path | str
) -> StorageUnavailableError:
    """Wrap a low-level database error with troubleshooting context.

    The caller is expected to ``raise ... from error`` so the original
    exception stays chained.
    """
    message = str(error)
    lowered = message.lower()
    title = "Database error"
    steps: list[str] = []

    if isinstance(error, (sqlite3.Error, OSError)):
        for fragments, hint_title, hint_steps in _DATABASE_ERROR_HINTS:
            if any(fragment in lowered for fragment in fragments):
                title = hint_title
                steps = hint_steps
                break

    lines = [
        title,
        "",
        f"Operation: {operation}",
        f"Database path: {db_path}",
        f"Original error: {message}",
    ]
    if steps:
        lines.append("")
        lines.append("Troubleshooting:")
        for i, step in enumerate(steps, start=1):
            lines.append(f"  {i}. {step.format(path=db_path)}")

    return StorageUnavailableError("\n".join(lines))
