"""
Tests for settings loading and the CLI helper.
"""

import json
import subprocess
from unittest.mock import patch

from pulse_mcp.config import DEFAULT_SETTINGS, load_settings
from pulse_mcp.shell import run_cli


class TestLoadSettings:
    """Tests for load_settings."""

    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "missing.json")
        assert settings == DEFAULT_SETTINGS
        assert settings is not DEFAULT_SETTINGS

    def test_file_is_merged_over_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"server": {"transport": "http"}, "cli_timeout": 3}))

        settings = load_settings(path)

        assert settings["server"]["transport"] == "http"
        assert settings["server"]["port"] == 8000
        assert settings["cli_timeout"] == 3
        assert DEFAULT_SETTINGS["server"]["transport"] == "stdio"

    def test_broken_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert load_settings(path) == DEFAULT_SETTINGS

    def test_non_object_gives_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        assert load_settings(path) == DEFAULT_SETTINGS

    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "env.json"
        path.write_text(json.dumps({"log_level": "DEBUG"}))
        monkeypatch.setenv("PULSE_MCP_CONFIG", str(path))

        assert load_settings()["log_level"] == "DEBUG"


class TestRunCli:
    """Tests for run_cli."""

    def test_missing_binary(self):
        with patch("pulse_mcp.shell.subprocess.run", side_effect=FileNotFoundError()):
            assert run_cli(["gcloud", "info"]) == (False, "gcloud not found")

    def test_timeout(self):
        with patch("pulse_mcp.shell.subprocess.run", side_effect=subprocess.TimeoutExpired("gcloud", 5)):
            ok, output = run_cli(["gcloud", "info"], timeout=5)
        assert not ok
        assert "timed out" in output

    def test_failure_prefers_stderr(self):
        result = subprocess.CompletedProcess(["git"], 128, stdout="", stderr="fatal: bad\n")
        with patch("pulse_mcp.shell.subprocess.run", return_value=result):
            assert run_cli(["git", "status"]) == (False, "fatal: bad")

    def test_success_trims_output(self):
        result = subprocess.CompletedProcess(["gcloud"], 0, stdout="  my-project\n", stderr="")
        with patch("pulse_mcp.shell.subprocess.run", return_value=result):
            assert run_cli(["gcloud", "config", "get-value", "project"]) == (True, "my-project")
