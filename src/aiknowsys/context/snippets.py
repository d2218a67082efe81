"""Literal matching, snippet extraction and markdown section helpers."""

import re
from dataclasses import dataclass

# Context window around the first match
SNIPPET_BEFORE = 50
SNIPPET_AFTER = 100
SNIPPET_ELLIPSIS = "..."

HEADING_LINE_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)\s*$", re.MULTILINE)


@dataclass
class LiteralMatch:
    """Case-insensitive literal occurrences of a query in a text."""

    count: int
    first_offset: int
    line: int  # 1-indexed line of the first occurrence
    context: str


def find_literal(content: str, query: str) -> LiteralMatch | None:
    """Find every case-insensitive literal occurrence of ``query``.

    The query is never interpreted as a pattern. Returns None when there is
    no occurrence.
    """
    if not query:
        return None
    haystack = content.lower()
    needle = query.lower()

    first = haystack.find(needle)
    if first < 0:
        return None

    count = haystack.count(needle)
    return LiteralMatch(
        count=count,
        first_offset=first,
        line=content.count("\n", 0, first) + 1,
        context=make_snippet(content, first, len(query)),
    )


def make_snippet(
    content: str,
    offset: int,
    length: int = 0,
    before: int = SNIPPET_BEFORE,
    after: int = SNIPPET_AFTER,
) -> str:
    """Cut a single-line window of ``before``/``after`` characters around a match."""
    start = max(0, offset - before)
    end = min(len(content), offset + length + after)
    window = " ".join(content[start:end].split())
    if start > 0:
        window = SNIPPET_ELLIPSIS + window
    if end < len(content):
        window = window + SNIPPET_ELLIPSIS
    return window


def extract_markdown_section(content: str, section_heading: str) -> str | None:
    """
    Extract one markdown section, heading included.

    The section runs until the next heading of the same or a higher level.
    Heading text matches case-insensitively; the leading #'s of
    ``section_heading`` are optional ("## Progress" or "Progress").

    Returns None when the heading is not present.
    """
    wanted = section_heading.strip()
    wanted_level_match = re.match(r"^(#+)\s*", wanted)
    wanted_level = len(wanted_level_match.group(1)) if wanted_level_match else None
    wanted_text = re.sub(r"^#+\s*", "", wanted).strip().lower()

    headings = list(HEADING_LINE_PATTERN.finditer(content))
    for i, match in enumerate(headings):
        level = len(match.group(1))
        if match.group(2).strip().lower() != wanted_text:
            continue
        if wanted_level is not None and level != wanted_level:
            continue

        end = len(content)
        for following in headings[i + 1 :]:
            if len(following.group(1)) <= level:
                end = following.start()
                break
        return content[match.start() : end].strip()

    return None
