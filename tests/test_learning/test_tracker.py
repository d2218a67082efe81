"""Tests for the pattern history ledger."""

import json
from datetime import date

import pytest

from aiknowsys.errors import StorageUnavailableError
from aiknowsys.learning.tracker import PatternTracker

ERROR = "Cannot find module 'chalk'"


@pytest.fixture
def tracker(project):
    return PatternTracker(project)


class TestInit:
    def test_creates_empty_ledger(self, tracker, project):
        tracker.init()

        path = project / ".aiknowsys" / "pattern-history.json"
        assert tracker.history_path == path
        assert json.loads(path.read_text()) == {"patterns": []}

    def test_init_keeps_existing_entries(self, tracker):
        tracker.track_pattern(ERROR)
        tracker.init()
        assert len(tracker.get_patterns()) == 1

    def test_corrupt_ledger(self, tracker):
        tracker.history_path.write_text("{oops")
        with pytest.raises(StorageUnavailableError):
            tracker.get_patterns()


class TestTrackPattern:
    def test_new_entry(self, tracker):
        entry = tracker.track_pattern(ERROR, "Use dynamic import", today=date(2026, 1, 20))

        assert entry == {
            "id": "cannot-find-module-chalk",
            "error": ERROR,
            "frequency": 1,
            "firstSeen": "2026-01-20",
            "lastSeen": "2026-01-20",
            "documented": False,
            "resolutions": ["Use dynamic import"],
        }

    def test_exact_text_increments(self, tracker):
        tracker.track_pattern(ERROR, "Use dynamic import", today=date(2026, 1, 20))
        entry = tracker.track_pattern(ERROR, "Pin chalk 4", today=date(2026, 1, 25))

        assert entry["frequency"] == 2
        assert entry["firstSeen"] == "2026-01-20"
        assert entry["lastSeen"] == "2026-01-25"
        assert entry["resolutions"] == ["Use dynamic import", "Pin chalk 4"]

    def test_different_text_is_a_new_entry(self, tracker):
        tracker.track_pattern(ERROR)
        tracker.track_pattern(ERROR.upper())
        assert len(tracker.get_patterns()) == 2

    def test_instances_share_the_file(self, tracker, project):
        tracker.track_pattern(ERROR)
        assert PatternTracker(project).get_patterns()[0]["error"] == ERROR


class TestDocumented:
    def test_mark_documented(self, tracker):
        tracker.track_pattern(ERROR)

        assert tracker.mark_pattern_documented(ERROR) is True
        assert tracker.is_documented(ERROR)

    def test_unknown_pattern(self, tracker):
        assert tracker.mark_pattern_documented("never seen") is False
        assert not tracker.is_documented("never seen")
