"""Exception types raised by the msh lexer/parser/executor pipeline."""
from __future__ import annotations

from typing import Optional


class ShellError(Exception):
    """Base class for every recoverable error reported at the prompt."""


class ParseError(ShellError, ValueError):
    """Raised when a token stream cannot be resolved into a command."""


class ExecutionError(ShellError, RuntimeError):
    """Raised when a resolved command fails while running.

    `returncode` is set when the failure comes from a subprocess exit status.
    """

    def __init__(self, message: str, returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.returncode = returncode
