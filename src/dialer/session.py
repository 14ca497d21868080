"""Interactive session: keystroke loop, help screen, cancellation and teardown."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from collections.abc import Awaitable
from typing import Protocol, TextIO, TypeVar

from config.settings import Settings
from dialer.interpreter import ActionClient, CommandInterpreter
from dialer.lines import LineRegistry
from dialer.terminal import CharReader, TerminalMode

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

BUFFER_SIZE = 64
# Room kept free in the buffer; input is rejected once it reaches BUFFER_SIZE - BUFFER_MARGIN chars.
BUFFER_MARGIN = 2
PROMPT = ">"

HELP_TEXT = """\
Usage: [<line #>] command [arguments]
-- Line Actions (lines 1-9) --
o     - Go off hook
dt    - Dial digits using DTMF
dp    - Dial digits using pulse dialing (not supported currently)
a     - Answer incoming call (not implemented yet)
f     - Hook flash
h     - Go on hook
-- General Actions --
k     - hang up all active lines
s     - sleep for N seconds
ms    - sleep for N milliseconds
q     - Quit
-- Examples --
1o             ; originate on line 1
2 o            ; originate on line 2 (whitespace is ignored)
1dt47          ; dial DTMF 47 on line 1
1f             ; hook flash on line 1
ms750          ; sleep for 750ms
"""


class ClosableClient(ActionClient, Protocol):  # pragma: no cover - protocol stub
    async def close(self) -> None: ...


class DialerSession:
    """Everything one dialer run owns: lines, client, terminal and teardown.

    Forced disconnects and interrupts only raise a flag; the loop notices it
    at its next wait and tears down on its own task. Teardown runs once.
    """

    def __init__(
        self,
        registry: LineRegistry,
        client: ClosableClient,
        settings: Settings,
        *,
        reader: CharReader,
        terminal: TerminalMode | None = None,
        out: TextIO | None = None,
        help_out: TextIO | None = None,
    ) -> None:
        self.registry = registry
        self._client = client
        self._reader = reader
        self._terminal = terminal
        self._out = out
        self._help_out = help_out
        self._cancelled = asyncio.Event()
        self._cancel_reason: str | None = None
        self._exit_code: int | None = None
        self.interpreter = CommandInterpreter(registry, client, settings, out=out, sleep=self._sleep)

    @property
    def cancel_reason(self) -> str | None:
        return self._cancel_reason

    @property
    def torn_down(self) -> bool:
        return self._exit_code is not None

    def report(self, message: str, *, end: str = "\n") -> None:
        print(message, end=end, file=self._out or sys.stderr, flush=True)

    def show_help(self) -> None:
        out = self._help_out or sys.stdout
        print("\r" + HELP_TEXT, file=out, flush=True)

    def cancel(self, reason: str) -> None:
        if self._cancel_reason is None:
            self._cancel_reason = reason
            LOGGER.info("Session cancelled: %s", reason)
        self._cancelled.set()

    def disconnected(self) -> None:
        """Forced-disconnect callback for the manager client."""

        self.report("\nAMI was forcibly disconnected...")
        self.cancel("disconnect")

    def interrupted(self) -> None:
        """SIGINT handler."""

        self.cancel("interrupt")

    async def run(self) -> int:
        """Run until quit, end of input or cancellation; return the exit status."""

        if self._terminal is not None:
            self._terminal.enter()
        try:
            await self._loop()
        finally:
            exit_code = await self.teardown()
        return exit_code

    async def _loop(self) -> None:
        buffer: list[str] = []
        self._prompt()
        while not self._cancelled.is_set():
            finished, char = await self._until_cancelled(self._reader.read_char())
            if not finished:
                return
            if not char:
                LOGGER.info("End of input")
                return

            if char == "\n":
                finished, quit_requested = await self._until_cancelled(self.interpreter.execute("".join(buffer)))
                if not finished or quit_requested:
                    return
                buffer.clear()
                self._prompt()
            elif char == "?":
                self.show_help()
                buffer.clear()
                self._prompt()
            else:
                buffer.append(char)
                if len(buffer) >= BUFFER_SIZE - BUFFER_MARGIN:
                    self.report("Command too long")
                    buffer.clear()
                    self._prompt()

    async def _until_cancelled(self, coro: Awaitable[T]) -> tuple[bool, T | None]:
        """Await ``coro`` unless the session is cancelled first.

        Returns ``(True, result)``, or ``(False, None)`` after cancelling ``coro``.
        An in-flight manager action is abandoned this way, so an interrupt
        does not wait for a pending origination to answer.
        """

        work = asyncio.ensure_future(coro)
        cancelled = asyncio.ensure_future(self._cancelled.wait())
        done, _ = await asyncio.wait({work, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        if cancelled not in done:
            cancelled.cancel()
            return True, work.result()

        work.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await work
        return False, None

    async def _sleep(self, seconds: float) -> None:
        # Sleeps end early when the session is cancelled.
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._cancelled.wait(), timeout=seconds)

    def _prompt(self) -> None:
        self.report(PROMPT, end="")

    async def teardown(self) -> int:
        """Restore the terminal, hang up active lines and close the client.

        Returns 0 after a normal exit and 1 after a disconnect or interrupt.
        Only the first call does any work.
        """

        if self._exit_code is not None:
            return self._exit_code
        self._exit_code = 1 if self._cancel_reason else 0

        if self._terminal is not None:
            self._terminal.restore()
        self.report("")

        try:
            await self.interpreter.hangup_all()
        finally:
            await self._client.close()

        if self._exit_code:
            self.report("\nAstMultiDialer exiting...")
        return self._exit_code
