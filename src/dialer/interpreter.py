"""Executes parsed dialer commands against the line registry and AMI."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Protocol, TextIO

from config.settings import Settings
from dialer.errors import (
    ActionFailedError,
    DialerError,
    LineOnHookError,
    NoResponseError,
    NotImplementedCommandError,
    UnknownCommandError,
    UnsupportedCommandError,
)
from dialer.lines import Line, LineRegistry
from dialer.parser import HANGUP_ALL, QUIT, SLEEP, SLEEP_MS, Command, atoi, parse_command
from dialer.resolver import ChannelResolver
from telephony.ami_client import AmiResponse

LOGGER = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class ActionClient(Protocol):  # pragma: no cover - protocol stubs
    async def originate(
        self, channel: str, context: str, exten: str, priority: int, *, answer_timeout: float = ...
    ) -> AmiResponse | None: ...

    async def hangup(self, channel: str, cause: int) -> AmiResponse | None: ...

    async def send_flash(self, channel: str) -> AmiResponse | None: ...

    async def play_dtmf(self, channel: str, digit: str) -> AmiResponse | None: ...

    async def core_show_channels(self) -> AmiResponse | None: ...


def _require_response(resp: AmiResponse | None) -> AmiResponse:
    if resp is None:
        raise NoResponseError()
    return resp


def _require_off_hook(line: Line) -> str:
    if not line.off_hook or not line.channel_id:
        raise LineOnHookError()
    return line.channel_id


class CommandInterpreter:
    """Runs one command line at a time.

    Every failure short of quitting is reported on ``out`` and swallowed
    here, so a bad command never ends the session.
    """

    def __init__(
        self,
        registry: LineRegistry,
        client: ActionClient,
        settings: Settings,
        *,
        resolver: ChannelResolver | None = None,
        out: TextIO | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._registry = registry
        self._client = client
        self._settings = settings
        self._resolver = resolver or ChannelResolver(client)
        self._out = out
        self._sleep = sleep
        self._line_handlers: dict[str, Callable[[Line, str], Awaitable[None]]] = {
            "o": self._originate,
            "h": self._hangup,
            "f": self._flash,
            "d": self._dial,
            "a": self._answer,
        }

    def report(self, message: str) -> None:
        print(message, file=self._out or sys.stderr, flush=True)

    async def execute(self, text: str) -> bool:
        """Run one command line. Returns True when the session should quit."""

        command = parse_command(text)
        try:
            return await self.dispatch(command)
        except DialerError as exc:
            self.report(exc.detail)
            return False

    async def dispatch(self, command: Command) -> bool:
        if command.error is not None:
            raise command.error()
        if command.is_global:
            return await self._run_global(command)

        line = self._registry[command.line]
        handler = self._line_handlers.get(command.verb)
        if handler is None:
            raise UnknownCommandError(f"Unknown line command '{command.verb}'")
        await handler(line, command.argument)
        return False

    async def _run_global(self, command: Command) -> bool:
        if command.is_empty:
            return False
        if command.verb == QUIT:
            return True
        if command.verb == SLEEP:
            await self._sleep(max(atoi(command.argument), 0))
        elif command.verb == SLEEP_MS:
            await self._sleep(max(atoi(command.argument), 0) / 1000)
        elif command.verb == HANGUP_ALL:
            await self.hangup_all()
        else:
            raise UnknownCommandError(f"Unknown global command '{command.verb}'")
        return False

    async def hangup_all(self) -> None:
        """Hang up every off-hook line, carrying on past individual failures."""

        for line in self._registry.off_hook_lines():
            resp = await self._client.hangup(line.channel_id, self._settings.hangup_cause)
            if resp is not None and resp.success:
                line.go_on_hook()
                self.report(f"Hung up line {line.index}")
            else:
                LOGGER.warning("Failed to hang up line %d (%s)", line.index, line.channel_id)

    async def _originate(self, line: Line, argument: str) -> None:
        resp = _require_response(
            await self._client.originate(
                line.dial_target,
                self._settings.dialplan_context,
                self._settings.dialplan_exten,
                self._settings.dialplan_priority,
                answer_timeout=self._settings.originate_timeout,
            )
        )
        if not resp.success:
            raise ActionFailedError(_with_reason(f"Failed to go off hook on line {line.index}", resp))

        # The line only counts as off hook once its channel is known.
        channel = await self._resolver.resolve(line)
        line.go_off_hook(channel)
        self.report("OK")

    async def _hangup(self, line: Line, argument: str) -> None:
        channel = _require_off_hook(line)
        resp = _require_response(await self._client.hangup(channel, self._settings.hangup_cause))
        if not resp.success:
            raise ActionFailedError(_with_reason(f"Failed to go on hook on line {line.index}", resp))
        line.go_on_hook()
        self.report("OK")

    async def _flash(self, line: Line, argument: str) -> None:
        channel = _require_off_hook(line)
        resp = _require_response(await self._client.send_flash(channel))
        if not resp.success:
            raise ActionFailedError(_with_reason(f"Failed to send flash on line {line.index}", resp))
        self.report("OK")

    async def _dial(self, line: Line, argument: str) -> None:
        channel = _require_off_hook(line)
        mode, digits = argument[:1].lower(), argument[1:]
        if mode == "p":
            raise UnsupportedCommandError("Dial pulse not yet supported")
        if mode != "t":
            raise UnknownCommandError(f"Invalid dial type '{mode}'")

        # PlayDTMF takes one digit per action; the channel queues them, so no pacing.
        for digit in digits:
            resp = await self._client.play_dtmf(channel, digit)
            if resp is None or not resp.success:
                LOGGER.warning("DTMF digit %r not accepted on line %d", digit, line.index)

    async def _answer(self, line: Line, argument: str) -> None:
        raise NotImplementedCommandError("Answer is not implemented yet")


def _with_reason(text: str, resp: AmiResponse) -> str:
    return f"{text}: {resp.message}" if resp.message else text
