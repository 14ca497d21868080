from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

import httpx

from config.settings import Settings

LOGGER = logging.getLogger(__name__)

Message = dict[str, str]


class AmiError(Exception):
    default_detail: str = "Manager interface error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class AmiConnectionError(AmiError):
    default_detail = "Failed to connect to the manager interface."


class AmiLoginError(AmiError):
    default_detail = "Manager login rejected."


@dataclass(slots=True)
class AmiResponse:
    """One manager response: the header block followed by any list events."""

    response: str
    message: str
    messages: list[Message] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.response.lower() == "success"

    @property
    def events(self) -> list[Message]:
        return self.messages[1:]


def parse_messages(body: str) -> list[Message]:
    """Split a rawman body into ``Key: Value`` blocks.

    Blocks are separated by blank lines. Lines without a colon (command
    output markers and the like) are ignored.
    """

    messages: list[Message] = []
    current: Message = {}
    for line in body.splitlines():
        if not line.strip():
            if current:
                messages.append(current)
                current = {}
            continue
        key, sep, value = line.partition(":")
        if not sep:
            continue
        current[key.strip()] = value.strip()
    if current:
        messages.append(current)
    return messages


def parse_response(body: str) -> AmiResponse:
    """Parse a rawman body into an :class:`AmiResponse`.

    Raises:
        ValueError: if the body does not start with a ``Response`` block.
    """

    messages = parse_messages(body)
    if not messages or "Response" not in messages[0]:
        raise ValueError("Manager reply does not start with a Response header")
    header = messages[0]
    return AmiResponse(
        response=header["Response"],
        message=header.get("Message", ""),
        messages=messages,
    )


class AmiClient:
    """Asterisk manager client speaking AMI over the HTTP server (``/rawman``).

    The manager session lives in the cookie jar of a single
    ``httpx.AsyncClient``. Actions never raise on transport problems: they
    log the failure and return ``None`` so callers can report "no response".
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        event_timeout: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._event_timeout = event_timeout
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._watcher: asyncio.Task | None = None
        self._closed = False

    @classmethod
    def from_settings(cls, settings: Settings, *, host: str | None = None) -> AmiClient:
        return cls(
            settings.manager_url(host),
            timeout=settings.ami_timeout,
            event_timeout=settings.ami_event_timeout,
        )

    @property
    def url(self) -> str:
        return self._url

    async def action(
        self,
        name: str,
        fields: Mapping[str, str | int] | None = None,
        *,
        timeout: float | None = None,
    ) -> AmiResponse | None:
        params: dict[str, str] = {"Action": name}
        params.update({key: str(value) for key, value in (fields or {}).items()})
        LOGGER.debug("-> %s %s", name, _redact(params))

        try:
            resp = await self._client.get(self._url, params=params, timeout=timeout or self._timeout)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.warning("Manager action %s failed: %s", name, exc)
            return None

        try:
            parsed = parse_response(resp.text)
        except ValueError:
            LOGGER.warning("Unparseable reply to manager action %s", name)
            return None

        LOGGER.debug("<- %s %s (%d messages)", parsed.response, parsed.message, len(parsed.messages))
        return parsed

    async def login(self, username: str, secret: str) -> None:
        resp = await self.action("Login", {"Username": username, "Secret": secret})
        if resp is None:
            raise AmiConnectionError(f"No response from {self._url}")
        if not resp.success:
            raise AmiLoginError(resp.message or None)
        LOGGER.info("Logged in to %s as %s", self._url, username)

    async def originate(
        self,
        channel: str,
        context: str,
        exten: str,
        priority: int,
        *,
        answer_timeout: float = 30.0,
    ) -> AmiResponse | None:
        # Synchronous origination: the reply arrives once the remote side answers or fails.
        fields = {
            "Channel": channel,
            "Context": context,
            "Exten": exten,
            "Priority": priority,
            "Timeout": int(answer_timeout * 1000),
        }
        return await self.action("Originate", fields, timeout=answer_timeout + self._timeout)

    async def hangup(self, channel: str, cause: int) -> AmiResponse | None:
        return await self.action("Hangup", {"Channel": channel, "Cause": cause})

    async def send_flash(self, channel: str) -> AmiResponse | None:
        return await self.action("SendFlash", {"Channel": channel})

    async def play_dtmf(self, channel: str, digit: str) -> AmiResponse | None:
        return await self.action("PlayDTMF", {"Channel": channel, "Digit": digit})

    async def core_show_channels(self) -> AmiResponse | None:
        """List active channels.

        The first message is the response header and the last one is the
        ``CoreShowChannelsComplete`` event; the entries in between carry
        one ``Channel`` each.
        """

        return await self.action("CoreShowChannels")

    def watch_events(self, on_disconnect: Callable[[], None]) -> None:
        """Start polling for unsolicited events in the background.

        Events are discarded. A ``Shutdown`` event or a failed poll calls
        ``on_disconnect`` once and stops the watcher.
        """

        if self._watcher is None:
            self._watcher = asyncio.create_task(self._watch(on_disconnect))

    async def _watch(self, on_disconnect: Callable[[], None]) -> None:
        params = {"Action": "WaitEvent", "Timeout": str(self._event_timeout)}
        while True:
            try:
                resp = await self._client.get(self._url, params=params, timeout=self._event_timeout + self._timeout)
                resp.raise_for_status()
            except httpx.HTTPError as exc:
                LOGGER.warning("Manager event poll failed: %s", exc)
                break

            try:
                parsed = parse_response(resp.text)
            except ValueError:
                continue

            if not parsed.success:
                LOGGER.warning("Manager event poll rejected: %s", parsed.message)
                break
            if any(event.get("Event") == "Shutdown" for event in parsed.events):
                LOGGER.warning("Asterisk is shutting down")
                break

        on_disconnect()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._watcher is not None and not self._watcher.done():
            self._watcher.cancel()
            try:
                await self._watcher
            except asyncio.CancelledError:
                pass

        await self.action("Logoff")
        await self._client.aclose()


def _redact(params: Mapping[str, str]) -> dict[str, str]:
    return {key: ("***" if key.lower() == "secret" else value) for key, value in params.items()}
