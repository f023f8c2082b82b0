"""Lexical scanner for msh input lines.

A line is scanned left to right with one character of lookahead and turned
into a flat list of typed tokens. The scanner never fails: anything it does
not recognize becomes a best-effort word token. The list always ends with a
single EOF token whose lexeme is empty.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

WHITESPACE = " \t\r\n"
WORD_EXTRA = "_/."


class TokenKind(Enum):
    COMMAND = "command"
    ARGUMENT = "argument"
    SHORT_FLAG = "short_flag"
    LONG_FLAG = "long_flag"
    LONG_FLAG_WITH_VALUE = "long_flag_with_value"
    PIPE = "pipe"                   # |
    INPUT_REDIRECT = "input_redirect"    # <
    OUTPUT_REDIRECT = "output_redirect"  # >
    BACKGROUND = "background"       # &
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    lexeme: str


SINGLE_CHAR_TOKENS = {
    "|": TokenKind.PIPE,
    "<": TokenKind.INPUT_REDIRECT,
    ">": TokenKind.OUTPUT_REDIRECT,
    "&": TokenKind.BACKGROUND,
}


def _is_alnum(ch: str) -> bool:
    return ch.isascii() and ch.isalnum()


class Lexer:
    """Single-use scanner; call `scan_tokens()` once and read `tokens`."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.tokens: list[Token] = []
        self.start = 0
        self.current = 0
        # Reset on every pipe so each stage gets its own command name
        self._had_command = False

    def scan_tokens(self) -> list[Token]:
        while not self._at_end():
            self.start = self.current
            self._scan_token()
        self.tokens.append(Token(TokenKind.EOF, ""))
        return self.tokens

    # --- Character helpers ---

    def _at_end(self) -> bool:
        return self.current >= len(self.source)

    def _peek(self) -> Optional[str]:
        if self._at_end():
            return None
        return self.source[self.current]

    def _advance(self) -> str:
        ch = self.source[self.current]
        self.current += 1
        return ch

    def _match(self, expected: str) -> bool:
        if self._peek() == expected:
            self.current += 1
            return True
        return False

    def _add_token(self, kind: TokenKind) -> bool:
        text = self.source[self.start:self.current].strip()
        if not text:
            return False
        self.tokens.append(Token(kind, text))
        return True

    # --- Scanning rules ---

    def _scan_token(self) -> None:
        ch = self._advance()
        if ch in WHITESPACE:
            self._skip_whitespace()
        elif ch == "-":
            if self._match("-"):
                self._long_flag()
            else:
                self._short_flag()
        elif ch in SINGLE_CHAR_TOKENS:
            self._add_token(SINGLE_CHAR_TOKENS[ch])
            if ch == "|":
                self._had_command = False
        else:
            self._word()

    def _skip_whitespace(self) -> None:
        while (ch := self._peek()) is not None and ch in WHITESPACE:
            self._advance()

    def _long_flag(self) -> None:
        while (ch := self._peek()) is not None:
            if ch == "=":
                self._advance()
                self._flag_value()
                return
            if _is_alnum(ch) or ch == "-":
                self._advance()
            else:
                break
        self._add_token(TokenKind.LONG_FLAG)

    def _flag_value(self) -> None:
        value_start = self.current
        in_quotes = False
        while (ch := self._peek()) is not None:
            if ch == '"':
                in_quotes = not in_quotes
            elif ch == " " and not in_quotes:
                break
            self._advance()

        # value_start - 1 is the '=' sign
        name = self.source[self.start:value_start - 1].strip()
        value = self.source[value_start:self.current].strip().strip('"').strip()
        self.tokens.append(Token(TokenKind.LONG_FLAG_WITH_VALUE, f"{name}={value}"))

    def _short_flag(self) -> None:
        while (ch := self._peek()) is not None and _is_alnum(ch):
            self._advance()
        self._add_token(TokenKind.SHORT_FLAG)

    def _word(self) -> None:
        while (ch := self._peek()) is not None and (_is_alnum(ch) or ch in WORD_EXTRA):
            self._advance()
        if self._had_command:
            self._add_token(TokenKind.ARGUMENT)
        else:
            self._had_command = self._add_token(TokenKind.COMMAND)


# --- Public helpers ---

def scan(line: str) -> list[Token]:
    tokens = Lexer(line).scan_tokens()
    logger.debug("scanned %r into %s", line, format_tokens(tokens))
    return tokens


def format_tokens(tokens: Iterable[Token]) -> str:
    return " ".join(f"{t.kind.name}({t.lexeme!r})" for t in tokens)
