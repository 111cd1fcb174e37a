"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent

CATALOG = "data/sample_catalog.json"
TELEMETRY = "data/sample_telemetry.json"
RESPONSES = "data/sample_responses.json"


def run_cli_command(command: str, timeout: int = 60) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        command: The command to run (after 'python -m personalization.cli.main')
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    full_command = f"{sys.executable} -m personalization.cli.main {command}"

    result = subprocess.run(
        full_command,
        shell=True,
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=timeout,
        env={**os.environ, "COLUMNS": "200"},
    )

    return result.returncode, result.stdout, result.stderr


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        """Main help should display without errors."""
        code, stdout, stderr = run_cli_command("--help")

        assert code == 0, f"Help failed: {stderr}"
        assert "personalize" in stdout.lower() or "personalization" in stdout.lower()
        assert "Commands" in stdout

    @pytest.mark.parametrize("command", ["recommend", "needs", "simulate", "serve"])
    def test_command_help(self, command):
        code, stdout, stderr = run_cli_command(f"{command} --help")

        assert code == 0, f"{command} help failed: {stderr}"

    def test_version(self):
        code, stdout, _ = run_cli_command("version")

        assert code == 0
        assert "adaptive-personalization-engine" in stdout


class TestRecommend:
    def test_table_output(self):
        code, stdout, stderr = run_cli_command(
            f"recommend -c {CATALOG} -t {TELEMETRY} -l learner-ana -s reading"
        )

        assert code == 0, f"recommend failed: {stderr}"
        assert "Recommendations for learner-ana" in stdout

    def test_json_output(self):
        code, stdout, stderr = run_cli_command(
            f"recommend -c {CATALOG} -t {TELEMETRY} -l learner-ben -s math --json -n 3"
        )

        assert code == 0, f"recommend --json failed: {stderr}"
        assert '"content_id": "math-' in stdout

    def test_no_content(self):
        code, stdout, _ = run_cli_command(f"recommend -c {CATALOG} -l learner-ana -s history")

        assert code == 0
        assert "No recommendation available" in stdout

    def test_missing_catalog(self):
        code, stdout, _ = run_cli_command("recommend -c does-not-exist.json -l learner-ana")

        assert code == 1
        assert "not found" in stdout


class TestNeeds:
    def test_detected_needs(self):
        code, stdout, stderr = run_cli_command(f"needs -c {CATALOG} -t {TELEMETRY} -l learner-ana")

        assert code == 0, f"needs failed: {stderr}"
        assert "DYSLEXIA" in stdout

    def test_no_needs(self):
        code, stdout, _ = run_cli_command(f"needs -c {CATALOG} -t {TELEMETRY} -l learner-cam")

        assert code == 0
        assert "No learning needs detected" in stdout


class TestSimulate:
    def test_replay(self):
        code, stdout, stderr = run_cli_command(f"simulate {RESPONSES} -c {CATALOG} --subject math")

        assert code == 0, f"simulate failed: {stderr}"
        assert "Results" in stdout
        assert "Score" in stdout

    def test_invalid_start(self):
        code, stdout, _ = run_cli_command(f"simulate {RESPONSES} -c {CATALOG} --start extreme")

        assert code == 1
        assert "starting difficulty" in stdout
