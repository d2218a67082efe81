"""Turn detected patterns into learned-skill markdown files.

Skill files are written once and never overwritten: a second request for
the same pattern reports the existing file instead.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from aiknowsys.context.scanner import aiknowsys_dir
from aiknowsys.errors import ValidationError
from aiknowsys.learning.detector import DEFAULT_THRESHOLD, DEFAULT_WINDOW_DAYS, PatternCluster, detect_patterns
from aiknowsys.learning.tracker import PatternTracker

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


@dataclass
class SkillExample:
    before: str
    after: str


@dataclass
class SkillPattern:
    """Input for create_learned_skill."""

    error: str
    frequency: int = 1
    keywords: list[str] = field(default_factory=list)
    resolution: str | None = None
    examples: list[SkillExample] = field(default_factory=list)
    related_skills: list[str] = field(default_factory=list)

    @classmethod
    def from_cluster(cls, cluster: PatternCluster) -> "SkillPattern":
        # Cluster examples are plain observations, not before/after pairs
        return cls(
            error=cluster.error,
            frequency=cluster.frequency,
            keywords=list(cluster.keywords),
            resolution=cluster.common_resolution,
        )


@dataclass
class SkillResult:
    path: Path
    existed: bool

    @property
    def created(self) -> bool:
        return not self.existed


@dataclass
class ExtractResult:
    """Outcome of extract_pattern. ``success`` is False when nothing matched."""

    success: bool
    skill_path: Path | None = None
    existed: bool = False
    created: bool = False
    message: str | None = None


@dataclass
class AutoCreateResult:
    created: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)


def slugify(text: str) -> str:
    """Lowercase, runs of non-alphanumerics to one hyphen, no edge hyphens."""
    return SLUG_PATTERN.sub("-", text.lower()).strip("-")


def generate_skill_template(
    name: str,
    description: str,
    trigger_words: list[str] | None = None,
    resolution: str = "",
    examples: list[SkillExample] | None = None,
    related_skills: list[str] | None = None,
) -> str:
    """Render the learned-skill markdown document."""
    triggers = "\n".join(f"- `{word}`" for word in trigger_words or [])
    template = (
        f"# Learned Skill: {name}\n"
        f"\n"
        f"**Description:** {description}\n"
        f"\n"
        f"## Trigger Words\n"
        f"\n"
        f"{triggers}\n"
        f"\n"
        f"## Resolution\n"
        f"\n"
        f"{resolution}\n"
    )

    if examples:
        template += "\n## Examples\n\n"
        for example in examples:
            template += f"**Before:**\n```\n{example.before}\n```\n\n"
            template += f"**After:**\n```\n{example.after}\n```\n\n"

    if related_skills:
        template += "\n## Related Skills\n\n"
        template += "\n".join(f"- {skill}" for skill in related_skills) + "\n"

    template += "\n---\n\n*Auto-generated learned skill. Edit as needed.*\n"
    return template


def skill_path(target_dir: Path | str, error: str, shared: bool = True, username: str | None = None) -> Path:
    """
    Where the skill for ``error`` lives.

    Shared skills go to learned/; personal ones to personal/<username>/.
    Without a username the skill is shared.
    """
    slug = slugify(error)
    if not slug:
        raise ValidationError(f"Cannot derive a file name from pattern text {error!r}")

    root = aiknowsys_dir(Path(target_dir).resolve())
    if shared or not username:
        skill_dir = root / "learned"
    else:
        safe_user = slugify(username)
        if not safe_user:
            raise ValidationError(f"Invalid username {username!r}")
        skill_dir = root / "personal" / safe_user
    return skill_dir / f"{slug}.md"


def create_learned_skill(
    pattern: SkillPattern,
    target_dir: Path | str,
    shared: bool = True,
    username: str | None = None,
) -> SkillResult:
    """
    Write a learned-skill file for ``pattern`` unless one already exists.

    Returns:
        SkillResult with ``existed=True`` (file untouched) or the new path
    """
    path = skill_path(target_dir, pattern.error, shared, username)
    path.parent.mkdir(parents=True, exist_ok=True)

    content = generate_skill_template(
        name=pattern.error,
        description=f"Pattern discovered from {pattern.frequency or 1} occurrences",
        trigger_words=pattern.keywords,
        resolution=pattern.resolution or pattern.error,
        examples=pattern.examples,
        related_skills=pattern.related_skills,
    )
    try:
        with open(path, "x", encoding="utf-8") as f:
            f.write(content)
    except FileExistsError:
        logger.debug("Skill already exists: %s", path)
        return SkillResult(path=path, existed=True)

    logger.info("Created learned skill %s", path)
    return SkillResult(path=path, existed=False)


def extract_pattern(
    target_dir: Path | str,
    search_term: str,
    tracker: PatternTracker,
    shared: bool = True,
    username: str | None = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> ExtractResult:
    """
    Create a skill for the first detected pattern matching ``search_term``.

    Any observation counts here (threshold 1). The term matches the
    pattern text or one of its keywords, case-insensitively.
    """
    term = search_term.strip().lower()
    if not term:
        raise ValidationError("Search term cannot be empty")

    for cluster in detect_patterns(target_dir, threshold=1, window_days=window_days):
        if term in cluster.error.lower() or any(term in k for k in cluster.keywords):
            break
    else:
        logger.info("No pattern found matching %r", search_term)
        return ExtractResult(success=False, message="Pattern not found")

    result = create_learned_skill(SkillPattern.from_cluster(cluster), target_dir, shared, username)
    tracker.track_pattern(cluster.error, cluster.common_resolution)
    tracker.mark_pattern_documented(cluster.error)
    return ExtractResult(success=True, skill_path=result.path, existed=result.existed, created=result.created)


def auto_create_skills(
    target_dir: Path | str,
    tracker: PatternTracker,
    threshold: int = DEFAULT_THRESHOLD,
    shared: bool = True,
    username: str | None = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
) -> AutoCreateResult:
    """
    Create skills for every pattern at or above ``threshold``.

    Each detected pattern is tracked. Patterns the ledger already marks as
    documented, and those whose skill file exists, are skipped.
    """
    result = AutoCreateResult()
    for cluster in detect_patterns(target_dir, threshold=threshold, window_days=window_days):
        tracker.track_pattern(cluster.error, cluster.common_resolution)
        if tracker.is_documented(cluster.error):
            result.skipped.append(skill_path(target_dir, cluster.error, shared, username))
            continue

        skill = create_learned_skill(SkillPattern.from_cluster(cluster), target_dir, shared, username)
        tracker.mark_pattern_documented(cluster.error)
        if skill.existed:
            result.skipped.append(skill.path)
        else:
            result.created.append(skill.path)

    logger.info("Auto-created %d skill(s), skipped %d", len(result.created), len(result.skipped))
    return result
