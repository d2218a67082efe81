"""Tests for walking and loading the .aiknowsys source layer."""

import os
from datetime import datetime

from aiknowsys.context.scanner import load_source_layer, walk_source_layer


class TestWalkSourceLayer:
    def test_missing_directory_yields_nothing(self, tmp_path):
        assert list(walk_source_layer(tmp_path / "nowhere")) == []

    def test_kinds_and_relative_paths(self, project, write_file):
        write_file("PLAN_auth.md", "# Auth\n")
        write_file("plans/active-alice.md", "**Plan:** [Auth](../PLAN_auth.md)\n")
        write_file("plans/notes.md", "not a pointer\n")
        write_file("sessions/2026-01-20-session.md", "# Session: x (y)\n")
        write_file("learned/error_resolution/chalk.md", "# Chalk\n")
        write_file("README.md", "ignored\n")

        found = {(f.kind, f.relative_path) for f in walk_source_layer(project)}

        assert found == {
            ("plan", "PLAN_auth.md"),
            ("pointer", "plans/active-alice.md"),
            ("session", "sessions/2026-01-20-session.md"),
            ("learned", "learned/error_resolution/chalk.md"),
        }

    def test_hidden_paths_are_skipped(self, project, write_file):
        write_file("learned/.drafts/secret.md", "# Draft\n")
        write_file("learned/visible.md", "# Visible\n")

        paths = [f.relative_path for f in walk_source_layer(project)]
        assert paths == ["learned/visible.md"]


class TestLoadSourceLayer:
    def test_counts_and_errors(self, project, write_file):
        write_file("PLAN_auth.md", "---\nstatus: ACTIVE\n---\n# Auth\n")
        write_file("PLAN_search.md", "# Search\n")
        write_file("PLAN_broken.md", "---\ntitle: [unclosed\n---\n")
        write_file("PLAN_weird.md", "---\nstatus: SOMEDAY\n---\n")
        write_file("sessions/2026-01-20-session.md", "# Session: One (a)\n")
        write_file("sessions/notes.md", "# No date\n")
        write_file("learned/chalk.md", "# Chalk\n")

        snapshot = load_source_layer(project)

        assert sorted(p.id for p in snapshot.plans) == ["auth", "search"]
        assert [s.date for s in snapshot.sessions] == ["2026-01-20"]
        assert [p.id for p in snapshot.learned] == ["chalk"]
        assert len(snapshot.errors) == 3
        assert any(e.startswith("PLAN_broken.md") for e in snapshot.errors)
        assert any(e.startswith("PLAN_weird.md") for e in snapshot.errors)
        assert any(e.startswith("sessions/notes.md") for e in snapshot.errors)

    def test_pointer_merges_into_existing_plan(self, project, write_file):
        write_file("PLAN_auth.md", "# Auth\n**Status:** PLANNED\n")
        write_file(
            "plans/active-alice.md",
            "**Currently Working On:** [Auth](../PLAN_auth.md)\n**Status:** ACTIVE\n",
        )

        snapshot = load_source_layer(project)

        assert len(snapshot.plans) == 1
        plan = snapshot.plans[0]
        assert plan.author == "alice"
        assert plan.status == "ACTIVE"

    def test_dangling_pointer_becomes_plan(self, project, write_file):
        write_file("plans/active-bob.md", "**Plan:** [Billing revamp](../PLAN_billing.md)\n")

        snapshot = load_source_layer(project)

        assert len(snapshot.plans) == 1
        plan = snapshot.plans[0]
        assert plan.id == "bob-plan"
        assert plan.title == "Billing revamp"
        assert plan.status == "ACTIVE"
        assert plan.author == "bob"

    def test_duplicate_session_dates_keep_first(self, project, write_file):
        write_file("sessions/2026-01-20-morning.md", "# Session: Morning (a)\n")
        write_file("sessions/2026-01-20-session.md", "# Session: Later (b)\n")

        snapshot = load_source_layer(project)

        assert [s.topic for s in snapshot.sessions] == ["Morning"]
        assert len(snapshot.errors) == 1
        assert "duplicate session date" in snapshot.errors[0]

    def test_missing_dates_fall_back_to_mtime(self, project, write_file):
        path = write_file("PLAN_old.md", "# Old\n")
        stamp = datetime(2025, 6, 1, 12, 0).timestamp()
        os.utime(path, (stamp, stamp))

        plan = load_source_layer(project).plans[0]
        assert plan.created == "2025-06-01"
        assert plan.updated == "2025-06-01"
