"""Parser for YAML frontmatter with fallback to markdown body conventions."""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import PurePosixPath
from typing import Any

import yaml

from aiknowsys.context.models import PLAN_STATUSES, LearnedPattern, Plan, Session

logger = logging.getLogger(__name__)


class FrontmatterError(ValueError):
    """Raised when a file's frontmatter or required metadata cannot be parsed."""

    pass


@dataclass
class PlanPointer:
    """A plans/active-<user>.md file pointing at the plan a user works on."""

    author: str
    title: str
    target: str  # Filename of the referenced plan, e.g. PLAN_auth.md
    status: str | None = None


FRONTMATTER_PATTERN = re.compile(r"\A---[ \t]*\n(.*?)^---[ \t]*(?:\n|\Z)", re.DOTALL | re.MULTILINE)

HEADING_PATTERN = re.compile(r"^#\s+(.+?)\s*$", re.MULTILINE)
SESSION_HEADING_PATTERN = re.compile(r"^#\s+Session:\s+(.+?)\s+\(", re.MULTILINE)
# Emoji or other symbol prefixes are tolerated before the status word
STATUS_PATTERN = re.compile(r"^\*\*Status:\*\*\s*(?:[^\w\s]+\s*)?(\w+)", re.MULTILINE)
CREATED_PATTERN = re.compile(r"^\*\*Created:\*\*\s+(\d{4}-\d{2}-\d{2})", re.MULTILINE)
UPDATED_PATTERN = re.compile(r"^\*\*Updated:\*\*\s+(\d{4}-\d{2}-\d{2})", re.MULTILINE)
PLAN_REF_PATTERN = re.compile(r"^\*\*Plan:\*\*\s+(.+?)\s*$", re.MULTILINE)
POINTER_PATTERN = re.compile(
    r"^\*\*(?:Plan|Currently Working On):\*\*\s+\[([^\]]+)\]\(([^)]+)\)", re.MULTILINE
)
LINK_PATTERN = re.compile(r"^\[([^\]]+)\]\(([^)]+)\)$")
PHASE_PATTERN = re.compile(r"^##\s+(Phase\b.*?)\s*$", re.MULTILINE)
TRIGGER_SECTION_PATTERN = re.compile(r"^##\s+Trigger Words\s*$(.*?)(?=^#{1,2}\s|\Z)", re.MULTILINE | re.DOTALL)
BULLET_PATTERN = re.compile(r"^\s*[-*]\s+(.+?)\s*$", re.MULTILINE)
DATE_PREFIX_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2})")
SESSION_FILENAME_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2}).*\.md$")
POINTER_FILENAME_PATTERN = re.compile(r"^active-(.+)\.md$")


def normalize_newlines(content: str) -> str:
    return content.replace("\r\n", "\n")


def parse_frontmatter(content: str, file_path: str) -> tuple[dict[str, Any], str]:
    """
    Parse YAML frontmatter from markdown content.

    Absent frontmatter is legal and yields an empty dict.

    Args:
        content: The full markdown content
        file_path: Path used in error messages

    Returns:
        Tuple of (frontmatter dict, content_without_frontmatter)

    Raises:
        FrontmatterError: If the YAML block is malformed or not a mapping
    """
    content = normalize_newlines(content)
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return {}, content

    body = content[match.end() :].lstrip("\n")
    raw_yaml = match.group(1)
    if not raw_yaml.strip():
        return {}, body

    try:
        raw = yaml.safe_load(raw_yaml)
    except yaml.YAMLError as e:
        raise FrontmatterError(f"Invalid YAML frontmatter in {file_path}: {e}") from e

    if raw is None:
        return {}, body
    if not isinstance(raw, dict):
        raise FrontmatterError(
            f"Frontmatter in {file_path} must be a mapping, got {type(raw).__name__}"
        )
    return raw, body


def strip_frontmatter(content: str) -> str:
    """Remove YAML frontmatter from content."""
    content = normalize_newlines(content)
    match = FRONTMATTER_PATTERN.match(content)
    if match:
        return content[match.end() :].lstrip("\n")
    return content


def as_date_string(value: Any) -> str | None:
    """Normalize a frontmatter date (date object or string) to YYYY-MM-DD."""
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()[:10]
    match = DATE_PREFIX_PATTERN.match(str(value).strip())
    return match.group(1) if match else None


def as_string_list(value: Any) -> list[str]:
    """Normalize a frontmatter list (YAML list or comma separated string)."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [part.strip() for part in str(value).split(",") if part.strip()]


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _first_heading(body: str) -> str | None:
    match = HEADING_PATTERN.search(body)
    return match.group(1) if match else None


def normalize_status(value: Any, file_path: str) -> str:
    """Upper-case a plan status and check it against the enumeration."""
    status = str(value).strip().upper()
    if status not in PLAN_STATUSES:
        raise FrontmatterError(
            f"Invalid plan status '{value}' in {file_path}. "
            f"Valid statuses: {', '.join(PLAN_STATUSES)}"
        )
    return status


def plan_id_from_filename(filename: str) -> str:
    """PLAN_auth_jwt.md -> auth_jwt"""
    stem = PurePosixPath(filename).name
    if stem.endswith(".md"):
        stem = stem[:-3]
    if stem.startswith("PLAN_"):
        stem = stem[len("PLAN_") :]
    return stem


def parse_plan(content: str, filename: str, fallback_date: str) -> Plan:
    """Parse a PLAN_<slug>.md file into a Plan.

    Frontmatter wins over body conventions; dates fall back to
    ``fallback_date`` (the file's mtime date) so rescans are stable.
    """
    meta, body = parse_frontmatter(content, filename)
    plan_id = plan_id_from_filename(filename)

    title = _optional_str(meta.get("title")) or _first_heading(body) or plan_id.replace("_", " ")

    status_value = meta.get("status")
    if status_value is None:
        match = STATUS_PATTERN.search(body)
        status_value = match.group(1) if match else "PLANNED"
    status = normalize_status(status_value, filename)

    created = as_date_string(meta.get("created"))
    if created is None:
        match = CREATED_PATTERN.search(body)
        created = match.group(1) if match else fallback_date
    updated = as_date_string(meta.get("updated"))
    if updated is None:
        match = UPDATED_PATTERN.search(body)
        updated = match.group(1) if match else created

    return Plan(
        id=plan_id,
        title=title,
        status=status,
        author=_optional_str(meta.get("author")) or "unknown",
        created=created,
        updated=updated,
        file=filename,
        topics=as_string_list(meta.get("topics", meta.get("tags"))),
        description=_optional_str(meta.get("description")),
        priority=_optional_str(meta.get("priority")),
        type=_optional_str(meta.get("type")),
        content=normalize_newlines(content),
    )


def parse_plan_pointer(content: str, filename: str) -> PlanPointer | None:
    """Parse a plans/active-<user>.md pointer.

    Returns None when the file names no plan (the user has nothing active).
    """
    name_match = POINTER_FILENAME_PATTERN.match(PurePosixPath(filename).name)
    if not name_match:
        return None

    _, body = parse_frontmatter(content, filename)
    link = POINTER_PATTERN.search(body)
    if not link:
        return None

    status_match = STATUS_PATTERN.search(body)
    status = normalize_status(status_match.group(1), filename) if status_match else None

    return PlanPointer(
        author=name_match.group(1),
        title=link.group(1).strip(),
        target=PurePosixPath(link.group(2).strip()).name,
        status=status,
    )


def _plan_reference(raw: str) -> str:
    """Reduce a **Plan:** value to a plan id where it is a link to a plan file."""
    link = LINK_PATTERN.match(raw.strip())
    if link:
        target = PurePosixPath(link.group(2)).name
        if target.startswith("PLAN_") and target.endswith(".md"):
            return plan_id_from_filename(target)
        return link.group(1).strip()
    return raw.strip()


def session_date_from_filename(filename: str) -> str | None:
    match = SESSION_FILENAME_PATTERN.match(PurePosixPath(filename).name)
    if not match:
        return None
    try:
        datetime.strptime(match.group(1), "%Y-%m-%d")
    except ValueError:
        return None
    return match.group(1)


def parse_session(content: str, filename: str, fallback_date: str) -> Session:
    """Parse a sessions/YYYY-MM-DD-session.md file into a Session."""
    session_date = session_date_from_filename(filename)
    if session_date is None:
        raise FrontmatterError(f"Session filename {filename} does not start with a valid YYYY-MM-DD date")

    meta, body = parse_frontmatter(content, filename)

    topic = _optional_str(meta.get("topic")) or _optional_str(meta.get("title"))
    if topic is None:
        match = SESSION_HEADING_PATTERN.search(body)
        if match:
            topic = match.group(1)
        else:
            heading = _first_heading(body)
            topic = heading.removeprefix("Session:").strip() if heading else "Session"

    plan = _optional_str(meta.get("plan"))
    if plan is None:
        match = PLAN_REF_PATTERN.search(body)
        plan = _plan_reference(match.group(1)) if match else None

    phases = as_string_list(meta.get("phases"))
    if not phases:
        phases = PHASE_PATTERN.findall(body)

    status = _optional_str(meta.get("status"))

    return Session(
        date=session_date,
        topic=topic,
        file=f"sessions/{PurePosixPath(filename).name}",
        plan=plan,
        phases=phases,
        topics=as_string_list(meta.get("topics", meta.get("tags"))),
        status=status.lower() if status else None,
        duration=_optional_str(meta.get("duration")),
        created=session_date,
        updated=as_date_string(meta.get("updated")) or fallback_date,
        content=normalize_newlines(content),
    )


def parse_learned(content: str, relative_path: str, fallback_date: str) -> LearnedPattern:
    """Parse a learned/<category>/<slug>.md file into a LearnedPattern.

    Args:
        relative_path: Path relative to the learned/ directory (POSIX)
    """
    meta, body = parse_frontmatter(content, relative_path)
    path = PurePosixPath(relative_path)
    pattern_id = str(path.with_suffix(""))

    category = _optional_str(meta.get("category"))
    if category is None:
        category = path.parts[0] if len(path.parts) > 1 else "general"

    title = _optional_str(meta.get("title")) or _first_heading(body) or path.stem

    keywords = as_string_list(meta.get("keywords", meta.get("triggers")))
    if not keywords:
        section = TRIGGER_SECTION_PATTERN.search(body)
        if section:
            keywords = [item.strip("`") for item in BULLET_PATTERN.findall(section.group(1))]

    return LearnedPattern(
        id=pattern_id,
        category=category,
        title=title,
        file=f"learned/{relative_path}",
        keywords=keywords,
        created=as_date_string(meta.get("created")) or fallback_date,
        content=normalize_newlines(content),
    )
