import os
import sys
from pathlib import Path
import pytest

# Ensure we can import modules from src/ before test modules are collected
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture()
def sandbox(tmp_path, monkeypatch):
    # Work in an isolated temp directory with its own history file
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("PATH", os.environ.get("PATH", "/usr/bin:/bin"))
    history_file = tmp_path / ".msh_history"
    monkeypatch.setenv("MSH_HISTORY", str(history_file))
    return tmp_path


@pytest.fixture()
def history_file(sandbox):
    return sandbox / ".msh_history"


@pytest.fixture()
def session(history_file):
    from main import ShellSession
    return ShellSession(history_path=history_file)
