"""Shared fixtures: isolated environment and a scratch project directory."""

from pathlib import Path

import pytest

from aiknowsys.config import reset_config

AIKNOWSYS_ENV_VARS = (
    "AIKNOWSYS_DB_PATH",
    "AIKNOWSYS_STORAGE",
    "AIKNOWSYS_LOG_LEVEL",
    "AIKNOWSYS_PATTERN_WINDOW_DAYS",
    "AIKNOWSYS_PATTERN_THRESHOLD",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep tests away from the real environment and home directory."""
    for name in AIKNOWSYS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    reset_config()
    yield home
    reset_config()


@pytest.fixture
def project(tmp_path) -> Path:
    """An empty project directory with a .aiknowsys/ folder."""
    root = tmp_path / "project"
    (root / ".aiknowsys").mkdir(parents=True)
    return root


@pytest.fixture
def write_file(project):
    """Write a file below <project>/.aiknowsys/, creating parent folders."""

    def _write(relative_path: str, content: str) -> Path:
        path = project / ".aiknowsys" / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
