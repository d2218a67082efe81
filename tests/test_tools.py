"""Tests for MCP tools."""

import pytest
from fastmcp import FastMCP

from aiknowsys.tools import build_tools, register_tools


@pytest.fixture
def knowledge_base(project, write_file):
    """A project with plans, sessions and a recurring learning."""
    write_file(
        "PLAN_auth.md",
        "---\ntitle: JWT Auth\nstatus: ACTIVE\nauthor: alice\nupdated: 2026-01-12\n---\n# JWT Auth\n\nRefresh tokens.\n",
    )
    write_file("PLAN_docs.md", "---\nstatus: COMPLETE\nauthor: bob\nupdated: 2026-01-02\n---\n# Docs\n")
    for day in ("2026-01-20", "2026-01-25", "2026-01-30"):
        write_file(
            f"sessions/{day}-session.md",
            f"# Session: Auth ({day})\n\n**Plan:** auth\n\n**Key Learning:** Refresh tokens expire after rotation\n",
        )
    return project


@pytest.fixture
def tools(knowledge_base):
    tools = build_tools(knowledge_base)
    tools["rebuild_index"]()
    return tools


class TestRegistration:
    def test_all_tools_registered(self, knowledge_base):
        mcp = FastMCP()
        register_tools(mcp, knowledge_base)

        names = {tool.fn.__name__ for tool in mcp._tool_manager._tools.values()}

        assert names == {
            "query_plans",
            "query_sessions",
            "search_context",
            "rebuild_index",
            "detect_patterns",
            "create_learned_skill",
        }


class TestQueryTools:
    def test_rebuild_index(self, knowledge_base):
        result = build_tools(knowledge_base)["rebuild_index"]()

        assert result["plans_indexed"] == 2
        assert result["sessions_indexed"] == 3
        assert result["errors"] == []

    def test_query_plans(self, tools):
        result = tools["query_plans"](status="active")

        assert result["count"] == 1
        assert result["plans"][0]["title"] == "JWT Auth"

    def test_query_sessions(self, tools):
        result = tools["query_sessions"](date_after="2026-01-25")
        assert [s["date"] for s in result["sessions"]] == ["2026-01-30", "2026-01-25"]

    def test_search_context(self, tools):
        result = tools["search_context"]("refresh", scope="plans")

        assert result["count"] == 1
        assert result["results"][0]["file"] == "PLAN_auth.md"

    def test_validation_errors_are_results(self, tools):
        assert "error" in tools["query_plans"](status="DONE")
        assert "error" in tools["query_sessions"](date="last week")
        assert "error" in tools["search_context"]("")
        assert "error" in tools["search_context"]("x", scope="nowhere")


class TestLearningTools:
    def test_detect_patterns(self, tools):
        result = tools["detect_patterns"](threshold=3, window_days=36500)

        assert result["count"] == 1
        pattern = result["patterns"][0]
        assert pattern["error"] == "Refresh tokens expire after rotation"
        assert pattern["frequency"] == 3

    def test_detect_patterns_default_window(self, tools):
        # Fixture sessions are older than the default 30-day window
        assert tools["detect_patterns"]()["count"] == 0

    def test_detect_patterns_invalid(self, tools):
        assert "error" in tools["detect_patterns"](threshold=0)

    def test_create_learned_skill(self, tools, knowledge_base):
        first = tools["create_learned_skill"]("Refresh tokens expire", resolution="Re-read after rotate")
        second = tools["create_learned_skill"]("Refresh tokens expire")

        assert first == {"path": ".aiknowsys/learned/refresh-tokens-expire.md", "existed": False, "created": True}
        assert second["existed"] is True
        text = (knowledge_base / first["path"]).read_text()
        assert "Re-read after rotate" in text

    def test_create_learned_skill_invalid(self, tools):
        assert "error" in tools["create_learned_skill"]("???")


class TestUnrelatedBadSettings:
    def test_query_tools_ignore_bad_log_level(self, tools, monkeypatch):
        monkeypatch.setenv("AIKNOWSYS_LOG_LEVEL", "LOUD")

        assert tools["query_plans"](status="active")["count"] == 1
        assert tools["search_context"]("refresh")["count"] >= 1

    def test_bad_pattern_setting_is_an_error_result(self, tools, monkeypatch):
        monkeypatch.setenv("AIKNOWSYS_PATTERN_THRESHOLD", "many")

        result = tools["detect_patterns"]()

        assert "AIKNOWSYS_PATTERN_THRESHOLD" in result["error"]

    def test_explicit_arguments_skip_settings(self, tools, monkeypatch):
        monkeypatch.setenv("AIKNOWSYS_PATTERN_THRESHOLD", "many")

        assert tools["detect_patterns"](threshold=3, window_days=36500)["count"] == 1
