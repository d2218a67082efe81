"""Detect recurring "Key Learning" observations across session files.

Candidates are clustered by Jaccard similarity of their word sets. Two
candidates land in the same cluster when they are similar enough directly
or through a chain of similar candidates (single linkage), so the result
does not depend on the order the sessions were read in.
"""

import logging
import re
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any

from aiknowsys.context.parser import session_date_from_filename
from aiknowsys.context.scanner import aiknowsys_dir
from aiknowsys.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 30
DEFAULT_THRESHOLD = 3
DEFAULT_SIMILARITY = 0.4
MAX_KEYWORDS = 5
MIN_KEYWORD_LENGTH = 4

KEY_LEARNING_PATTERN = re.compile(r"\*\*Key Learning:?\*{0,2}:?\s*(.+)", re.IGNORECASE)
WORD_PATTERN = re.compile(r"[a-z0-9]+")

STOPWORDS = frozenset(
    """
    a an and are as at be been but by can could did do does for from had has
    have if in into is it its not of on or should so than that the their then
    there these they this to use used was we were what when where which will
    with would you your
    """.split()
)


@dataclass
class SessionFile:
    """A session file read for pattern detection."""

    filename: str
    date: str
    content: str


@dataclass
class Candidate:
    """One annotated observation pulled out of a session."""

    text: str
    date: str
    filename: str


@dataclass
class PatternCluster:
    """A group of near-duplicate observations."""

    error: str  # Representative text: the chronologically first member
    frequency: int
    keywords: list[str]
    first_seen: str
    last_seen: str
    examples: list[str] = field(default_factory=list)

    @property
    def common_resolution(self) -> str:
        """Latest wording that differs from ``error``; falls back to ``error``."""
        return next((text for text in reversed(self.examples) if text != self.error), self.error)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["common_resolution"] = self.common_resolution
        return data


def word_set(text: str) -> set[str]:
    """Lowercase words of ``text`` minus stopwords."""
    return {w for w in WORD_PATTERN.findall(text.lower()) if w not in STOPWORDS}


def jaccard_similarity(a: set[str], b: set[str]) -> float:
    """|a ∩ b| / |a ∪ b|; two empty sets have similarity 0."""
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def load_recent_sessions(
    target_dir: Path | str, window_days: int = DEFAULT_WINDOW_DAYS, today: date | None = None
) -> list[SessionFile]:
    """
    Read session files dated within the trailing ``window_days`` window.

    Files without a YYYY-MM-DD filename prefix are dated by their mtime.
    Unreadable files are logged and skipped. Returns sessions in
    chronological order (filename breaks ties).
    """
    sessions_dir = aiknowsys_dir(Path(target_dir).resolve()) / "sessions"
    if not sessions_dir.is_dir():
        return []

    today = today or date.today()
    cutoff = (today - timedelta(days=window_days)).isoformat()

    sessions = []
    for path in sorted(sessions_dir.glob("*.md")):
        try:
            session_date = session_date_from_filename(path.name)
            if session_date is None:
                session_date = datetime.fromtimestamp(path.stat().st_mtime).date().isoformat()
            if session_date < cutoff:
                continue
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Skipping unreadable session %s: %s", path.name, e)
            continue
        sessions.append(SessionFile(filename=path.name, date=session_date, content=content))

    sessions.sort(key=lambda s: (s.date, s.filename))
    return sessions


def extract_error_patterns(
    sessions: list[SessionFile], marker: re.Pattern = KEY_LEARNING_PATTERN
) -> list[Candidate]:
    """Pull every ``**Key Learning:** ...`` line out of the sessions, in order."""
    candidates = []
    for session in sessions:
        for match in marker.finditer(session.content):
            text = match.group(1).strip()
            if text:
                candidates.append(Candidate(text=text, date=session.date, filename=session.filename))
    return candidates


def _top_keywords(texts: list[str]) -> list[str]:
    counts: Counter[str] = Counter()
    for text in texts:
        counts.update(
            w for w in WORD_PATTERN.findall(text.lower()) if len(w) >= MIN_KEYWORD_LENGTH and w not in STOPWORDS
        )
    return [word for word, _ in counts.most_common(MAX_KEYWORDS)]


def cluster_candidates(
    candidates: list[Candidate], similarity: float = DEFAULT_SIMILARITY
) -> list[PatternCluster]:
    """
    Group candidates whose word sets reach ``similarity``.

    Candidates with no significant words are dropped. Clusters come back in
    order of their earliest member.
    """
    ordered = sorted(candidates, key=lambda c: (c.date, c.filename))
    items = [(c, word_set(c.text)) for c in ordered]
    items = [(c, words) for c, words in items if words]

    parent = list(range(len(items)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    for i in range(len(items)):
        for j in range(i + 1, len(items)):
            if jaccard_similarity(items[i][1], items[j][1]) >= similarity:
                root_i, root_j = find(i), find(j)
                if root_i != root_j:
                    # Lower index stays root so the representative is the earliest member
                    parent[max(root_i, root_j)] = min(root_i, root_j)

    groups: dict[int, list[Candidate]] = {}
    for i, (candidate, _) in enumerate(items):
        groups.setdefault(find(i), []).append(candidate)

    clusters = []
    for root in sorted(groups):
        members = groups[root]
        texts = [m.text for m in members]
        clusters.append(
            PatternCluster(
                error=members[0].text,
                frequency=len(members),
                keywords=_top_keywords(texts),
                first_seen=min(m.date for m in members),
                last_seen=max(m.date for m in members),
                examples=texts,
            )
        )
    return clusters


def detect_patterns(
    target_dir: Path | str,
    threshold: int = DEFAULT_THRESHOLD,
    window_days: int = DEFAULT_WINDOW_DAYS,
    similarity: float = DEFAULT_SIMILARITY,
    marker: re.Pattern = KEY_LEARNING_PATTERN,
    today: date | None = None,
) -> list[PatternCluster]:
    """
    Find observations recurring at least ``threshold`` times in the window.

    Returns clusters, most frequent first.
    """
    if threshold < 1:
        raise ValidationError(f"Invalid threshold: {threshold}. Must be at least 1")
    if window_days < 1:
        raise ValidationError(f"Invalid window_days: {window_days}. Must be at least 1")
    if not 0 < similarity <= 1:
        raise ValidationError(f"Invalid similarity: {similarity}. Must be in (0, 1]")

    sessions = load_recent_sessions(target_dir, window_days, today=today)
    candidates = extract_error_patterns(sessions, marker)
    clusters = cluster_candidates(candidates, similarity)

    frequent = [c for c in clusters if c.frequency >= threshold]
    frequent.sort(key=lambda c: c.frequency, reverse=True)
    logger.info(
        "Detected %d pattern(s) with frequency >= %d from %d observation(s) in %d session(s)",
        len(frequent),
        threshold,
        len(candidates),
        len(sessions),
    )
    return frequent
