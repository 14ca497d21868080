from __future__ import annotations

import logging
from typing import Protocol

from dialer.errors import ActionFailedError, NoResponseError
from dialer.lines import Line
from telephony.ami_client import AmiResponse

LOGGER = logging.getLogger(__name__)


class ChannelLister(Protocol):
    async def core_show_channels(self) -> AmiResponse | None:  # pragma: no cover - protocol stub
        ...


class ChannelResolver:
    """Finds the call leg created for a line by an origination.

    ``Originate`` does not return the new channel name, so the active
    channels are listed and the first one named after the line's device
    is taken. Only one leg per device is assumed to be up at a time.
    """

    def __init__(self, client: ChannelLister) -> None:
        self._client = client

    async def resolve(self, line: Line) -> str:
        """Return the channel of ``line``.

        Raises:
            NoResponseError: if the channel list could not be fetched.
            ActionFailedError: if no active channel carries the device name.
        """

        resp = await self._client.core_show_channels()
        if resp is None or not resp.success:
            raise NoResponseError("Failed to show channels")

        # First message is the response header, last one the list-complete event.
        for entry in resp.messages[1:-1]:
            channel = entry.get("Channel", "")
            if channel.startswith(line.device_name):
                LOGGER.debug("Line %d resolved to %s", line.index, channel)
                return channel

        raise ActionFailedError(f"Failed to find channel for {line.device_name}")
