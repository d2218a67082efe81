"""Tests for the markdown/frontmatter parser."""

import datetime

import pytest

from aiknowsys.context.parser import (
    FrontmatterError,
    as_date_string,
    as_string_list,
    parse_frontmatter,
    parse_learned,
    parse_plan,
    parse_plan_pointer,
    parse_session,
    plan_id_from_filename,
    session_date_from_filename,
    strip_frontmatter,
)


class TestParseFrontmatter:
    def test_parses_mapping(self):
        content = "---\ntitle: Hello\ntopics: [a, b]\n---\n# Body\n"
        meta, body = parse_frontmatter(content, "x.md")
        assert meta == {"title": "Hello", "topics": ["a", "b"]}
        assert body == "# Body\n"

    def test_absent_frontmatter_is_empty(self):
        meta, body = parse_frontmatter("# Just a heading\n", "x.md")
        assert meta == {}
        assert body == "# Just a heading\n"

    def test_empty_block_is_empty(self):
        meta, body = parse_frontmatter("---\n---\nbody\n", "x.md")
        assert meta == {}
        assert body == "body\n"

    def test_windows_newlines(self):
        meta, _ = parse_frontmatter("---\r\ntitle: Win\r\n---\r\nbody\r\n", "x.md")
        assert meta == {"title": "Win"}

    def test_invalid_yaml_raises(self):
        with pytest.raises(FrontmatterError, match="Invalid YAML"):
            parse_frontmatter("---\ntitle: [unclosed\n---\nbody\n", "bad.md")

    def test_non_mapping_raises(self):
        with pytest.raises(FrontmatterError, match="must be a mapping"):
            parse_frontmatter("---\n- one\n- two\n---\nbody\n", "list.md")

    def test_strip_frontmatter(self):
        assert strip_frontmatter("---\na: 1\n---\n\nText") == "Text"
        assert strip_frontmatter("No frontmatter") == "No frontmatter"


class TestHelpers:
    def test_as_date_string(self):
        assert as_date_string(datetime.date(2026, 1, 5)) == "2026-01-05"
        assert as_date_string("2026-01-05T10:00:00Z") == "2026-01-05"
        assert as_date_string("yesterday") is None
        assert as_date_string(None) is None

    def test_as_string_list(self):
        assert as_string_list(["a", " b ", ""]) == ["a", "b"]
        assert as_string_list("auth, jwt") == ["auth", "jwt"]
        assert as_string_list(None) == []

    def test_plan_id_from_filename(self):
        assert plan_id_from_filename("PLAN_auth_jwt.md") == "auth_jwt"

    def test_session_date_from_filename(self):
        assert session_date_from_filename("2026-01-20-session.md") == "2026-01-20"
        assert session_date_from_filename("2026-02-30-session.md") is None
        assert session_date_from_filename("notes.md") is None


class TestParsePlan:
    def test_frontmatter_fields(self):
        content = (
            "---\n"
            "title: JWT Auth\n"
            "status: active\n"
            "author: alice\n"
            "created: 2026-01-10\n"
            "updated: 2026-01-12\n"
            "topics: [auth, jwt]\n"
            "priority: high\n"
            "---\n"
            "# Something else\n"
        )
        plan = parse_plan(content, "PLAN_auth.md", "2026-03-01")

        assert plan.id == "auth"
        assert plan.title == "JWT Auth"
        assert plan.status == "ACTIVE"
        assert plan.author == "alice"
        assert plan.created == "2026-01-10"
        assert plan.updated == "2026-01-12"
        assert plan.topics == ["auth", "jwt"]
        assert plan.priority == "high"
        assert plan.file == "PLAN_auth.md"
        assert plan.content == content

    def test_body_fallbacks(self):
        content = "# Plan: Search\n\n**Status:** 🎯 ACTIVE\n**Created:** 2026-01-05\n"
        plan = parse_plan(content, "PLAN_search.md", "2026-03-01")

        assert plan.title == "Plan: Search"
        assert plan.status == "ACTIVE"
        assert plan.created == "2026-01-05"
        assert plan.updated == "2026-01-05"
        assert plan.author == "unknown"

    def test_defaults_use_fallback_date(self):
        plan = parse_plan("Just text\n", "PLAN_misc_notes.md", "2026-03-01")

        assert plan.title == "misc notes"
        assert plan.status == "PLANNED"
        assert plan.created == "2026-03-01"
        assert plan.updated == "2026-03-01"

    def test_invalid_status_raises(self):
        with pytest.raises(FrontmatterError, match="Invalid plan status"):
            parse_plan("---\nstatus: WHENEVER\n---\n", "PLAN_x.md", "2026-03-01")


class TestParsePlanPointer:
    def test_pointer_with_status(self):
        content = (
            "# Alice's Active Plan\n\n"
            "**Currently Working On:** [JWT Auth](../PLAN_auth.md)\n"
            "**Status:** 🔄 PAUSED\n"
        )
        pointer = parse_plan_pointer(content, "plans/active-alice.md")

        assert pointer is not None
        assert pointer.author == "alice"
        assert pointer.title == "JWT Auth"
        assert pointer.target == "PLAN_auth.md"
        assert pointer.status == "PAUSED"

    def test_pointer_without_plan_link(self):
        assert parse_plan_pointer("# Nothing active\n", "plans/active-bob.md") is None

    def test_non_pointer_filename(self):
        assert parse_plan_pointer("**Plan:** [X](../PLAN_x.md)\n", "plans/readme.md") is None


class TestParseSession:
    def test_body_conventions(self):
        content = (
            "# Session: Auth work (Jan 20, 2026)\n\n"
            "**Plan:** [JWT Auth](../PLAN_auth.md)\n\n"
            "## Phase 1: Setup\n\ntext\n\n"
            "## Phase 2: Tokens\n"
        )
        session = parse_session(content, "2026-01-20-session.md", "2026-03-01")

        assert session.date == "2026-01-20"
        assert session.topic == "Auth work"
        assert session.plan == "auth"
        assert session.phases == ["Phase 1: Setup", "Phase 2: Tokens"]
        assert session.file == "sessions/2026-01-20-session.md"
        assert session.created == "2026-01-20"
        assert session.updated == "2026-03-01"

    def test_frontmatter_wins(self):
        content = "---\ntopic: Search tuning\nplan: search\nstatus: In-Progress\ntopics: perf\n---\n# Session: Other (x)\n"
        session = parse_session(content, "2026-01-21-session.md", "2026-03-01")

        assert session.topic == "Search tuning"
        assert session.plan == "search"
        assert session.status == "in-progress"
        assert session.topics == ["perf"]

    def test_plain_plan_reference(self):
        session = parse_session("**Plan:** billing\n", "2026-01-22-session.md", "2026-03-01")
        assert session.plan == "billing"
        assert session.topic == "Session"

    def test_filename_without_date_raises(self):
        with pytest.raises(FrontmatterError, match="YYYY-MM-DD"):
            parse_session("# Session: x (y)\n", "notes.md", "2026-03-01")


class TestParseLearned:
    def test_category_from_directory_and_trigger_words(self):
        content = (
            "# Chalk ESM import\n\n"
            "## Trigger Words\n\n"
            "- `chalk`\n"
            "- `ERR_REQUIRE_ESM`\n\n"
            "## Resolution\n\nUse a dynamic import.\n"
        )
        pattern = parse_learned(content, "error_resolution/chalk-import.md", "2026-03-01")

        assert pattern.id == "error_resolution/chalk-import"
        assert pattern.category == "error_resolution"
        assert pattern.title == "Chalk ESM import"
        assert pattern.keywords == ["chalk", "ERR_REQUIRE_ESM"]
        assert pattern.file == "learned/error_resolution/chalk-import.md"
        assert pattern.created == "2026-03-01"

    def test_frontmatter_category_and_keywords(self):
        content = "---\ncategory: testing\nkeywords: [pytest, fixtures]\ncreated: 2026-01-02\n---\n# Fixtures\n"
        pattern = parse_learned(content, "fixtures.md", "2026-03-01")

        assert pattern.id == "fixtures"
        assert pattern.category == "testing"
        assert pattern.keywords == ["pytest", "fixtures"]
        assert pattern.created == "2026-01-02"

    def test_top_level_file_is_general(self):
        pattern = parse_learned("no heading\n", "loose-note.md", "2026-03-01")
        assert pattern.category == "general"
        assert pattern.title == "loose-note"
