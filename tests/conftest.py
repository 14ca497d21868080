from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from config.settings import Settings  # noqa: E402
from dialer.lines import LineRegistry  # noqa: E402
from telephony.ami_client import AmiResponse  # noqa: E402


def ok(message: str = "") -> AmiResponse:
    return AmiResponse("Success", message, [{"Response": "Success", "Message": message}])


def error(message: str = "") -> AmiResponse:
    return AmiResponse("Error", message, [{"Response": "Error", "Message": message}])


def channel_list(channels: list[str]) -> AmiResponse:
    messages = [{"Response": "Success", "EventList": "start", "Message": "Channels will follow"}]
    messages += [{"Event": "CoreShowChannel", "Channel": channel} for channel in channels]
    messages.append({"Event": "CoreShowChannelsComplete", "EventList": "Complete", "ListItems": str(len(channels))})
    return AmiResponse("Success", "Channels will follow", messages)


class FakeAmiClient:
    """Records manager actions instead of talking to Asterisk.

    ``responses`` overrides the reply per action name; ``None`` simulates a
    transport failure.
    """

    def __init__(self, channels: list[str] | None = None) -> None:
        self.channels = list(channels or [])
        self.responses: dict[str, AmiResponse | None] = {}
        self.calls: list[tuple] = []
        self.closed = False

    def _reply(self, action: str) -> AmiResponse | None:
        return self.responses.get(action, ok())

    def actions(self, name: str | None = None) -> list[tuple]:
        return [call for call in self.calls if name is None or call[0] == name]

    async def originate(self, channel, context, exten, priority, *, answer_timeout=30.0):
        self.calls.append(("Originate", channel, context, exten, priority))
        return self._reply("Originate")

    async def hangup(self, channel, cause):
        self.calls.append(("Hangup", channel, cause))
        return self._reply("Hangup")

    async def send_flash(self, channel):
        self.calls.append(("SendFlash", channel))
        return self._reply("SendFlash")

    async def play_dtmf(self, channel, digit):
        self.calls.append(("PlayDTMF", channel, digit))
        return self._reply("PlayDTMF")

    async def core_show_channels(self):
        self.calls.append(("CoreShowChannels",))
        if "CoreShowChannels" in self.responses:
            return self.responses["CoreShowChannels"]
        return channel_list(self.channels)

    async def close(self) -> None:
        self.closed = True


class ScriptReader:
    """Feeds a fixed script character by character, then reports end of input."""

    def __init__(self, script: str) -> None:
        self._chars = list(script)

    async def read_char(self) -> str:
        await asyncio.sleep(0)
        return self._chars.pop(0) if self._chars else ""


class IdleReader:
    """Never produces input, like an operator who stopped typing."""

    async def read_char(self) -> str:
        await asyncio.Event().wait()
        return ""


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None, ami_username="tester", ami_password="secret")


@pytest.fixture()
def registry(settings: Settings) -> LineRegistry:
    return LineRegistry.from_settings(settings)


@pytest.fixture()
def ami() -> FakeAmiClient:
    return FakeAmiClient()
