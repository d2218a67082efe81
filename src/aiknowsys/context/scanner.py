"""Scanner for the markdown source layer under <target>/.aiknowsys/."""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from aiknowsys.context.models import LearnedPattern, Plan, Session
from aiknowsys.context.parser import (
    FrontmatterError,
    PlanPointer,
    parse_learned,
    parse_plan,
    parse_plan_pointer,
    parse_session,
)

logger = logging.getLogger(__name__)

AIKNOWSYS_DIRNAME = ".aiknowsys"


@dataclass
class FileInfo:
    """Information about a discovered source file."""

    path: Path  # Absolute path
    relative_path: str  # Relative to .aiknowsys/, POSIX separators
    kind: str  # plan, pointer, session, learned
    mtime: float

    @property
    def mtime_date(self) -> str:
        return datetime.fromtimestamp(self.mtime).date().isoformat()


@dataclass
class SourceSnapshot:
    """Everything a clean rescan of the source layer produced."""

    plans: list[Plan] = field(default_factory=list)
    sessions: list[Session] = field(default_factory=list)
    learned: list[LearnedPattern] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def aiknowsys_dir(target_dir: Path) -> Path:
    return target_dir / AIKNOWSYS_DIRNAME


def _markdown_files(directory: Path, recursive: bool = False) -> list[Path]:
    if not directory.is_dir():
        return []
    candidates = directory.rglob("*.md") if recursive else directory.glob("*.md")
    return sorted(
        p
        for p in candidates
        if p.is_file() and not any(part.startswith(".") for part in p.relative_to(directory).parts)
    )


def walk_source_layer(target_dir: Path) -> Iterator[FileInfo]:
    """
    Walk the .aiknowsys directory and yield FileInfo for each source file.

    Structure expected:
    <target>/.aiknowsys/
    ├── PLAN_auth.md
    ├── plans/
    │   └── active-alice.md
    ├── sessions/
    │   └── 2026-01-20-session.md
    └── learned/
        └── error_resolution/
            └── chalk-import.md
    """
    root = aiknowsys_dir(target_dir)
    if not root.is_dir():
        return

    layout = [
        ("plan", [p for p in _markdown_files(root) if p.name.startswith("PLAN_")]),
        ("pointer", [p for p in _markdown_files(root / "plans") if p.name.startswith("active-")]),
        ("session", _markdown_files(root / "sessions")),
        ("learned", _markdown_files(root / "learned", recursive=True)),
    ]
    for kind, paths in layout:
        for path in paths:
            try:
                mtime = path.stat().st_mtime
            except OSError as e:
                logger.warning("Cannot stat %s: %s", path, e)
                continue
            yield FileInfo(
                path=path,
                relative_path=path.relative_to(root).as_posix(),
                kind=kind,
                mtime=mtime,
            )


def load_source_layer(target_dir: Path) -> SourceSnapshot:
    """
    Read and parse every source file.

    Per-file read or parse failures are collected into ``errors`` and the
    file is skipped; they never abort the scan.
    """
    snapshot = SourceSnapshot()
    pointers: list[PlanPointer] = []
    learned_root = aiknowsys_dir(target_dir) / "learned"

    for info in walk_source_layer(target_dir):
        try:
            content = info.path.read_text(encoding="utf-8")
            if info.kind == "plan":
                snapshot.plans.append(parse_plan(content, info.relative_path, info.mtime_date))
            elif info.kind == "pointer":
                pointer = parse_plan_pointer(content, info.relative_path)
                if pointer is not None:
                    pointers.append(pointer)
            elif info.kind == "session":
                snapshot.sessions.append(parse_session(content, info.path.name, info.mtime_date))
            else:
                relative = info.path.relative_to(learned_root).as_posix()
                snapshot.learned.append(parse_learned(content, relative, info.mtime_date))
        except (OSError, UnicodeDecodeError, FrontmatterError) as e:
            message = f"{info.relative_path}: {e}"
            logger.warning("Skipping unparseable file %s", message)
            snapshot.errors.append(message)

    _apply_pointers(snapshot.plans, pointers)
    snapshot.plans = _drop_duplicates(snapshot.plans, lambda p: p.id, "plan id", snapshot.errors)
    snapshot.sessions = _drop_duplicates(snapshot.sessions, lambda s: s.date, "session date", snapshot.errors)
    snapshot.learned = _drop_duplicates(snapshot.learned, lambda p: p.id, "learned id", snapshot.errors)
    return snapshot


def _drop_duplicates(items: list, key, label: str, errors: list[str]) -> list:
    """Keep the first item per key; later ones are reported as errors."""
    seen: set[str] = set()
    kept = []
    for item in items:
        item_key = key(item)
        if item_key in seen:
            message = f"{item.file}: duplicate {label} {item_key!r}"
            logger.warning("Skipping %s", message)
            errors.append(message)
            continue
        seen.add(item_key)
        kept.append(item)
    return kept


def _apply_pointers(plans: list[Plan], pointers: list[PlanPointer]) -> None:
    """Merge active-<user>.md pointers into the plans they reference.

    A dangling pointer becomes a plan of its own with id ``<user>-plan``.
    """
    by_file = {plan.file: plan for plan in plans}
    for pointer in pointers:
        plan = by_file.get(pointer.target)
        if plan is not None:
            plan.author = pointer.author
            if pointer.status:
                plan.status = pointer.status
            continue

        logger.debug("Pointer for %s references missing %s", pointer.author, pointer.target)
        plans.append(
            Plan(
                id=f"{pointer.author}-plan",
                title=pointer.title,
                status=pointer.status or "ACTIVE",
                author=pointer.author,
                file=pointer.target,
            )
        )
