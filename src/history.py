"""Command history storage.

History is kept as an append-only list of rendered command lines and
persisted to a single dotfile, one entry per line, oldest first.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, Optional

from errors import ExecutionError

logger = logging.getLogger(__name__)

HISTORY_FILENAME = ".msh_history"
HISTORY_ENV_VAR = "MSH_HISTORY"


def history_file_path() -> Path:
    """Resolve the history file: $MSH_HISTORY, then ~/.msh_history, then ./.msh_history."""
    override = os.environ.get(HISTORY_ENV_VAR)
    if override:
        return Path(override).expanduser()
    try:
        home = Path.home()
    except (KeyError, RuntimeError):
        home = Path(".")
    return home / HISTORY_FILENAME


class History:
    def __init__(self, entries: Optional[Iterable[str]] = None) -> None:
        self.entries: list[str] = list(entries) if entries is not None else []

    def __len__(self) -> int:
        return len(self.entries)

    def append(self, command: object) -> None:
        self.entries.append(str(command))

    def clear(self) -> None:
        self.entries.clear()

    def drain(self) -> Iterator[str]:
        """Yield entries newest first, popping each one off the end."""
        while self.entries:
            yield self.entries.pop()


def load_history(path: Optional[Path] = None) -> History:
    path = path or history_file_path()
    try:
        with open(path, "r", encoding="utf-8") as f:
            entries = [line.rstrip("\n") for line in f]
    except FileNotFoundError:
        logger.info("no history file at %s", path)
        return History()
    except UnicodeDecodeError as e:
        raise ExecutionError(f"history: {path}: not valid UTF-8 ({e.reason} at byte {e.start})") from e
    except OSError as e:
        raise ExecutionError(f"history: {path}: {e.strerror or e}") from e
    logger.info("loaded %d history entries from %s", len(entries), path)
    return History(entries)


def save_history(history: History, path: Optional[Path] = None) -> Path:
    path = path or history_file_path()
    try:
        with open(path, "w", encoding="utf-8") as f:
            for entry in history.entries:
                f.write(entry + "\n")
    except UnicodeEncodeError as e:
        raise ExecutionError(f"history: {path}: cannot encode entry ({e.reason})") from e
    except OSError as e:
        raise ExecutionError(f"history: {path}: {e.strerror or e}") from e
    logger.info("saved %d history entries to %s", len(history), path)
    return path
