"""Integration tests for CLI functionality."""

import json
import subprocess
import sys

import pytest

from aljabar_pkg.cli import dispatch, main_entry
from aljabar_pkg.session import get_session


def run_cli(*args, stdin=None):
    return subprocess.run(
        [sys.executable, "-m", "aljabar_pkg", *args],
        capture_output=True,
        text=True,
        input=stdin,
        timeout=30,
    )


def test_cli_version():
    """Test --version flag."""
    result = run_cli("--version")
    assert result.returncode == 0
    assert result.stdout.strip() != ""


def test_cli_eval_json():
    """Test CLI evaluation with JSON output."""
    result = run_cli("--eval", "2*x+3*x", "--format", "json")
    assert result.returncode == 0
    data = json.loads(result.stdout)
    assert data["ok"] is True
    assert data["result"] == "5*x"
    assert data["free_symbols"] == ["x"]


def test_cli_eval_human():
    """Test CLI evaluation with human output."""
    result = run_cli("--eval", "1/3", "--format", "human")
    assert result.returncode == 0
    lines = result.stdout.strip().splitlines()
    assert lines[0] == "1/3"
    assert lines[1].startswith("Decimal: 0.3333")


def test_cli_solve_equation():
    """Test CLI equation solving."""
    result = run_cli("--eval", "x+1=0 find x", "--format", "json")
    assert result.returncode == 0
    data = json.loads(result.stdout)
    assert data["type"] == "equation"
    assert data["exact"] == ["-1"]


def test_cli_invalid_input():
    """Test CLI with invalid input."""
    result = run_cli("--eval", "(2+", "--format", "json")
    assert result.returncode == 1
    data = json.loads(result.stdout)
    assert data["ok"] is False
    assert data["error_code"] == "PARITY_ERROR"


def test_cli_empty_input():
    result = run_cli("--eval", "   ")
    assert result.returncode == 1
    assert "Empty input" in result.stdout


@pytest.mark.slow
def test_cli_repl_quit():
    """Test the REPL reads lines until quit."""
    result = run_cli(stdin="a := 3\na^2\nquit\n")
    assert result.returncode == 0
    assert "a := 3" in result.stdout
    assert "9" in result.stdout


def test_cli_help():
    """Test --help flag."""
    result = run_cli("--help")
    assert result.returncode == 0
    assert "aljabar" in result.stdout.lower()


class TestDispatch:
    """Test routing of single input lines."""

    def test_expression(self):
        res = dispatch("diff(x^3, x)")
        assert res == {"ok": True, "result": "3*x^2", "free_symbols": ["x"], "type": "value"}

    def test_system(self):
        res = dispatch("x + y = 3, x - y = 1")
        assert res["type"] == "system"
        assert res["solutions"] == [{"x": "2", "y": "1"}]

    def test_system_find(self):
        res = dispatch("x + y = 3, x - y = 1, find y")
        assert res["exact"] == ["1"]

    def test_variable_definition(self):
        res = dispatch("k := 2*3")
        assert res == {"ok": True, "type": "definition", "name": "k", "result": "6"}
        assert dispatch("k + 1")["result"] == "7"

    def test_function_definition(self):
        res = dispatch("f(x, y) := x*y + 1")
        assert res["name"] == "f(x, y)"
        assert dispatch("f(2, 3)")["result"] == "7"

    def test_invalid_parameter(self):
        res = dispatch("f(1x) := x")
        assert res["ok"] is False


def test_main_entry_settings(capsys):
    """Test that command-line flags land in the session settings."""
    code = main_entry(["-e", "1/8", "-p", "3", "--no-numeric-fallback", "--format", "json"])
    assert code == 0
    settings = get_session().settings
    assert settings.output_precision == 3
    assert settings.numeric_fallback is False
    data = json.loads(capsys.readouterr().out)
    assert data["approx"] == "0.125"
