"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from learnloop.core import TermRecord
from learnloop.sync import SqliteRecordStore

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent


@pytest.fixture
def cli_env(tmp_path):
    """Environment pointing progress storage at a temporary database."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("LEARNLOOP_")}
    env["LEARNLOOP_RECORDS_DB_PATH"] = str(tmp_path / "records.db")
    env["LEARNLOOP_USER_ID"] = "smoke"
    return env


def run_cli_command(
    args: list[str], env: dict | None = None, stdin: str = "", timeout: int = 30
) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        args: Arguments after 'python -m learnloop.delivery'
        env: Environment for the subprocess
        stdin: Text fed to interactive prompts
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    result = subprocess.run(
        [sys.executable, "-m", "learnloop.delivery", *args],
        cwd=PROJECT_ROOT,
        env=env,
        input=stdin,
        capture_output=True,
        text=True,
        timeout=timeout,
    )

    return result.returncode, result.stdout, result.stderr


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self, cli_env):
        """Main help should list the commands."""
        code, stdout, stderr = run_cli_command(["--help"], cli_env)

        assert code == 0, f"Help failed: {stderr}"
        for command in ("learn", "progress", "reset"):
            assert command in stdout

    @pytest.mark.parametrize("command", ["learn", "progress", "reset"])
    def test_command_help(self, cli_env, command):
        code, stdout, stderr = run_cli_command([command, "--help"], cli_env)

        assert code == 0, f"{command} help failed: {stderr}"


class TestCLICommands:
    """Run commands against a temporary progress database."""

    def test_progress_for_new_set(self, cli_env, sample_set_file):
        code, stdout, stderr = run_cli_command(["progress", str(sample_set_file)], cli_env)

        assert code == 0, f"Progress failed: {stderr}"
        assert "ser" in stdout
        assert "unseen" in stdout

    def test_learn_quits_cleanly(self, cli_env, sample_set_file):
        code, stdout, stderr = run_cli_command(
            ["learn", str(sample_set_file)], cli_env, stdin="!quit\n"
        )

        assert code == 0, f"Learn failed: {stderr}"
        assert "Round 1" in stdout

    def test_progress_judges_by_written_threshold(self, cli_env, sample_set_file):
        store = SqliteRecordStore(Path(cli_env["LEARNLOOP_RECORDS_DB_PATH"]))
        store.upsert("smoke", TermRecord(term_id="t1", correctness=2, appeared_in_round=2))
        store.close()

        code, stdout, stderr = run_cli_command(["progress", str(sample_set_file)], cli_env)
        assert code == 0, f"Progress failed: {stderr}"
        assert "2/2" in stdout
        assert "mastered" in stdout

        code, stdout, stderr = run_cli_command(
            ["progress", str(sample_set_file), "--written"], cli_env
        )
        assert code == 0, f"Progress failed: {stderr}"
        assert "2/3" in stdout
        assert "mastered" not in stdout

        code, stdout, _ = run_cli_command(
            ["progress", str(sample_set_file), "--threshold", "5"], cli_env
        )
        assert "2/5" in stdout

    def test_reset(self, cli_env, sample_set_file):
        code, stdout, stderr = run_cli_command(["reset", str(sample_set_file), "--yes"], cli_env)

        assert code == 0, f"Reset failed: {stderr}"
        assert "Reset 0 term records" in stdout

    def test_missing_set_file(self, cli_env, tmp_path):
        code, stdout, _ = run_cli_command(["progress", str(tmp_path / "nope.json")], cli_env)

        assert code == 1
        assert "Could not load study set" in stdout

    def test_starred_without_stars_fails(self, cli_env, tmp_path, sample_set_data):
        sample_set_data["starred"] = []
        path = tmp_path / "plain.json"
        path.write_text(json.dumps(sample_set_data), encoding="utf-8")

        code, stdout, _ = run_cli_command(["learn", str(path), "--starred"], cli_env)

        assert code == 1
        assert "Cannot start Learn" in stdout
