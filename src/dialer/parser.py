"""Tokenizer for the dialer's modem-style command lines.

Grammar::

    [<line 1-9>] <verb>[<argument>]   ; comment

``;`` starts a comment (``#`` is a DTMF digit). With a leading line number
the first character after optional whitespace is the verb and everything
after it is the raw argument. Without one the line is a global command.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from dialer.errors import DialerError, LineNumberError
from dialer.lines import LINE_NUMBERS

COMMENT_DELIMITER = ";"

SLEEP = "s"
SLEEP_MS = "ms"
QUIT = "q"
HANGUP_ALL = "k"

_DIGITS = re.compile(r"[0-9]+")
_ATOI = re.compile(r"\s*([+-]?[0-9]+)")


@dataclass(frozen=True, slots=True)
class Command:
    """A parsed command line; ``line`` is 0 for global commands."""

    line: int = 0
    verb: str = ""
    argument: str = ""
    error: type[DialerError] | None = None

    @property
    def is_global(self) -> bool:
        return self.line == 0

    @property
    def is_empty(self) -> bool:
        return self.error is None and self.is_global and not self.verb


def atoi(text: str) -> int:
    """Leading integer of ``text`` (after whitespace), or 0 if there is none."""

    match = _ATOI.match(text)
    return int(match.group(1)) if match else 0


def strip_comment(text: str) -> str:
    return text.split(COMMENT_DELIMITER, 1)[0]


def parse_command(text: str) -> Command:
    """Parse one command line. Never raises; bad input yields the error class in ``Command.error``."""

    text = strip_comment(text).lstrip()

    digits = _DIGITS.match(text)
    if digits:
        number = int(digits.group())
        if number not in LINE_NUMBERS:
            return Command(error=LineNumberError)
        rest = text[digits.end():].lstrip()
        return Command(line=number, verb=rest[:1].lower(), argument=rest[1:])

    token = text.rstrip()
    lowered = token.lower()
    if lowered.startswith(SLEEP_MS):
        return Command(verb=SLEEP_MS, argument=token[len(SLEEP_MS):])
    if lowered.startswith(SLEEP):
        return Command(verb=SLEEP, argument=token[len(SLEEP):])
    if lowered in (QUIT, HANGUP_ALL):
        return Command(verb=lowered)
    return Command(verb=token)
