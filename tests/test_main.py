"""Tests for main module."""

import logging
import sys

import pytest
from fastmcp import FastMCP

from aiknowsys import main as main_module
from aiknowsys.main import create_server


def test_create_server(project, caplog):
    """Test create_server registers the tools."""
    with caplog.at_level(logging.INFO):
        mcp = create_server(project)

    assert mcp.name == "aiknowsys"
    log_messages = [record.message for record in caplog.records]
    assert any("Registering tools" in msg for msg in log_messages)
    assert any("Server configured successfully" in msg for msg in log_messages)


def test_main_rebuilds_then_runs(project, write_file, monkeypatch):
    write_file("PLAN_auth.md", "# Auth\n")
    runs = []
    monkeypatch.setattr(FastMCP, "run", lambda self, **kwargs: runs.append(kwargs))
    monkeypatch.setattr(sys, "argv", ["aiknowsys-mcp", "--dir", str(project), "--rebuild"])

    main_module.main()

    assert runs == [{"transport": "stdio"}]
    assert (project / ".aiknowsys" / "context-index.json").exists()


def test_main_rejects_bad_config(project, monkeypatch, capsys):
    monkeypatch.setenv("AIKNOWSYS_STORAGE", "postgres")
    monkeypatch.setattr(sys, "argv", ["aiknowsys-mcp", "--dir", str(project)])

    with pytest.raises(SystemExit) as excinfo:
        main_module.main()

    assert excinfo.value.code == 2
    assert "Configuration error" in capsys.readouterr().err
