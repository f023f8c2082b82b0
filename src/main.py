#!/usr/bin/env python3

# Entry of msh

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

try:
    import readline  # type: ignore
except Exception:  # pragma: no cover - fallback when readline unavailable
    readline = None

READLINE_ACTIVE = bool(readline)

PROMPT = "msh> "
EXIT_WORDS = ("exit", "quit")

from command import Command, HistoryCommand  # local modules in the same folder
from errors import ShellError
from history import HISTORY_ENV_VAR, History, history_file_path, load_history, save_history
from ops import execute, parse_line

logger = logging.getLogger("msh")


class ShellSession:
    """State shared between the read-eval loop and the SIGINT handler.

    Lifecycle of `running`: set when the session is created, cleared by the
    interrupt handler, checked once per loop iteration.
    """

    def __init__(self, history_path: Optional[Path] = None) -> None:
        self.history_path: Path = history_path or history_file_path()
        self.history = History()
        # Reentrant: the SIGINT handler runs on the main thread and may
        # interrupt a holder of this lock.
        self._lock = threading.RLock()
        self.running = threading.Event()
        self.running.set()

    def load(self) -> None:
        with self._lock:
            self.history = load_history(self.history_path)

    def record(self, cmd: Command) -> None:
        with self._lock:
            self.history.append(cmd)

    def clear(self) -> None:
        with self._lock:
            self.history.clear()

    def save(self) -> bool:
        with self._lock:
            try:
                path = save_history(self.history, self.history_path)
            except ShellError as e:
                print(f"Failed to save history: {e}", file=sys.stderr)
                return False
        print(f"History saved to {path}")
        return True

    def handle_interrupt(self, signum, frame) -> None:
        print("\nReceived Ctrl+C! Saving history and exiting...")
        self.running.clear()
        self.save()
        raise SystemExit(0)


def setup_readline(session: ShellSession) -> None:
    if not READLINE_ACTIVE:
        return
    try:
        readline.parse_and_bind("set editing-mode emacs")
        readline.parse_and_bind("Control-l: clear-screen")
        readline.clear_history()
        for entry in session.history.entries:
            readline.add_history(entry)
    except Exception:
        pass


def install_interrupt_handler(session: ShellSession) -> None:
    try:
        signal.signal(signal.SIGINT, session.handle_interrupt)
    except (ValueError, OSError) as e:
        # Not being able to persist history on Ctrl+C is fatal at startup
        raise SystemExit(f"msh: error setting Ctrl+C handler: {e}")


def run_line(line: str, session: ShellSession, record: bool = True) -> int:
    """Parse and run one line, reporting errors on stderr. Returns 0 or 1.

    With `record` false the session history is left untouched; `-c` mode
    never saves, so recording there would be lost anyway.
    """
    logger.debug("line: %r", line)
    try:
        cmd = parse_line(line)
    except ShellError as e:
        print(f"msh: {e}", file=sys.stderr)
        return 1

    status = 0
    try:
        execute(cmd)
    except ShellError as e:
        print(f"msh: {e}", file=sys.stderr)
        status = 1
    if not record:
        return status
    if isinstance(cmd, HistoryCommand) and cmd.clears() and status == 0:
        session.clear()
    session.record(cmd)
    return status


def repl(session: ShellSession) -> int:
    print(f"History will be saved to {session.history_path}")
    try:
        session.load()
    except ShellError as e:
        print(f"msh: {e}", file=sys.stderr)
    install_interrupt_handler(session)
    setup_readline(session)

    while session.running.is_set():
        try:
            line = input(PROMPT)
        except EOFError:
            # Ctrl-D behaves like `exit`
            print()
            line = "exit"

        trimmed = line.strip()
        if not trimmed:
            continue
        if trimmed in EXIT_WORDS:
            print("Goodbye!")
            session.save()
            return 0
        run_line(line, session)
    return 0


def parse_args(args=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="msh - a minimal interactive shell",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  msh                              # Interactive prompt
  msh -c "ls -l | grep py"         # Run one line and exit
  msh --history-file /tmp/hist     # Keep history somewhere else

The history file defaults to ~/.msh_history and can also be set with ${HISTORY_ENV_VAR}.
"""
    )

    parser.add_argument(
        "--history-file",
        metavar="PATH",
        help="Read and write command history at PATH",
    )
    parser.add_argument(
        "--command", "-c",
        metavar="LINE",
        help="Run LINE and exit with its status instead of starting the prompt",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log tokens, resolved commands and spawned processes to stderr",
    )

    return parser.parse_args(args)


def main(argv=None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(name)s: %(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    if args.history_file:
        # The history built-in resolves its file through the environment
        os.environ[HISTORY_ENV_VAR] = args.history_file

    session = ShellSession()
    if args.command is not None:
        sys.exit(run_line(args.command, session, record=False))
    sys.exit(repl(session))


if __name__ == "__main__":
    main()
