"""Tests for literal matching and markdown section extraction."""

from aiknowsys.context.snippets import extract_markdown_section, find_literal, make_snippet

SECTIONED = (
    "# Plan\n\n"
    "## Progress\n"
    "step 1\n"
    "### Detail\n"
    "more\n"
    "## Notes\n"
    "end\n"
)


class TestFindLiteral:
    def test_counts_case_insensitively(self):
        match = find_literal("Alpha\nbeta BETA\nbeta", "Beta")

        assert match is not None
        assert match.count == 3
        assert match.first_offset == 6
        assert match.line == 2

    def test_query_is_not_a_pattern(self):
        assert find_literal("price is $5 (approx)", "$5 (") is not None
        assert find_literal("abc", "a.c") is None

    def test_no_match(self):
        assert find_literal("nothing here", "missing") is None
        assert find_literal("anything", "") is None


class TestMakeSnippet:
    def test_window_with_ellipses(self):
        content = "x" * 200 + "NEEDLE" + "y" * 200
        snippet = make_snippet(content, 200, len("NEEDLE"))

        assert snippet.startswith("...")
        assert snippet.endswith("...")
        assert "NEEDLE" in snippet
        assert len(snippet) == 3 + 50 + 6 + 100 + 3

    def test_short_content_has_no_ellipses(self):
        assert make_snippet("find   me\n\nhere", 5, 2) == "find me here"


class TestExtractMarkdownSection:
    def test_extracts_until_same_level_heading(self):
        section = extract_markdown_section(SECTIONED, "## Progress")
        assert section == "## Progress\nstep 1\n### Detail\nmore"

    def test_heading_hashes_optional(self):
        assert extract_markdown_section(SECTIONED, "progress") == extract_markdown_section(SECTIONED, "## Progress")

    def test_level_must_match_when_given(self):
        assert extract_markdown_section(SECTIONED, "### Progress") is None

    def test_missing_section(self):
        assert extract_markdown_section(SECTIONED, "Risks") is None

    def test_last_section_runs_to_end(self):
        assert extract_markdown_section(SECTIONED, "## Notes") == "## Notes\nend"
