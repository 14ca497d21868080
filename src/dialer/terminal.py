from __future__ import annotations

import asyncio
import logging
import os
import stat
import sys
import termios
from typing import Protocol

LOGGER = logging.getLogger(__name__)


class CharReader(Protocol):
    async def read_char(self) -> str:  # pragma: no cover - protocol stub
        """Return the next character, or ``""`` at end of input."""


class StdinReader:
    """Reads standard input one character at a time without blocking the loop.

    Regular files (a script redirected to stdin) and devices such as
    /dev/null cannot be registered with the event loop's selector; they
    are always readable and read directly.
    """

    def __init__(self, fd: int | None = None) -> None:
        self._fd = sys.stdin.fileno() if fd is None else fd
        self._pollable = not stat.S_ISREG(os.fstat(self._fd).st_mode)

    async def read_char(self) -> str:
        if self._pollable:
            await self._wait_readable()
        return os.read(self._fd, 1).decode("latin-1")

    async def _wait_readable(self) -> None:
        loop = asyncio.get_running_loop()
        ready: asyncio.Future[None] = loop.create_future()

        def _on_readable() -> None:
            if not ready.done():
                ready.set_result(None)

        try:
            loop.add_reader(self._fd, _on_readable)
        except OSError:
            LOGGER.debug("fd %d cannot be polled, reading it directly", self._fd)
            self._pollable = False
            return
        try:
            await ready
        finally:
            loop.remove_reader(self._fd)


class TerminalMode:
    """Turns canonical input off on a TTY so keystrokes arrive as typed."""

    def __init__(self, fd: int | None = None) -> None:
        self._fd = sys.stdin.fileno() if fd is None else fd
        self._saved: list | None = None

    def enter(self) -> None:
        if self._saved is not None or not os.isatty(self._fd):
            return
        try:
            saved = termios.tcgetattr(self._fd)
            attrs = termios.tcgetattr(self._fd)
            attrs[3] &= ~termios.ICANON
            termios.tcsetattr(self._fd, termios.TCSANOW, attrs)
        except termios.error:
            LOGGER.debug("Could not switch terminal to non-canonical mode", exc_info=True)
            return
        self._saved = saved

    def restore(self) -> None:
        if self._saved is None:
            return
        try:
            termios.tcsetattr(self._fd, termios.TCSANOW, self._saved)
        except termios.error:
            LOGGER.debug("Could not restore terminal settings", exc_info=True)
        self._saved = None
