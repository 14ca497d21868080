from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from config.settings import Settings
from dialer.errors import LineNumberError

MAX_LINES = 9
LINE_NUMBERS = range(1, MAX_LINES + 1)


class HookState(str, Enum):
    ON_HOOK = "on-hook"
    OFF_HOOK = "off-hook"


@dataclass(slots=True)
class Line:
    """One virtual telephone line.

    ``channel_id`` is bound exactly while the line is off hook.
    """

    index: int
    device_name: str
    dial_target: str
    channel_id: str | None = None
    hook_state: HookState = HookState.ON_HOOK

    @property
    def off_hook(self) -> bool:
        return self.hook_state is HookState.OFF_HOOK

    def go_off_hook(self, channel_id: str) -> None:
        if not channel_id:
            raise ValueError("an off-hook line needs a channel id")
        self.channel_id = channel_id
        self.hook_state = HookState.OFF_HOOK

    def go_on_hook(self) -> None:
        self.channel_id = None
        self.hook_state = HookState.ON_HOOK


class LineRegistry:
    """Lines 1-9, keyed by line number."""

    def __init__(self, *, technology: str = "PJSIP", peer_prefix: str = "autotest", plar_code: str = "01") -> None:
        self._technology = technology
        self._peer_prefix = peer_prefix
        self._plar_code = plar_code
        self._lines = {
            index: Line(index, self.device_name(index), self.dial_target(index)) for index in LINE_NUMBERS
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> LineRegistry:
        return cls(
            technology=settings.channel_technology,
            peer_prefix=settings.peer_prefix,
            plar_code=settings.plar_code,
        )

    def device_name(self, index: int) -> str:
        return f"{self._technology}/{self._peer_prefix}{index}"

    def dial_target(self, index: int) -> str:
        return f"{self._technology}/{self._plar_code}@{self._peer_prefix}{index}"

    def __getitem__(self, index: int) -> Line:
        try:
            return self._lines[index]
        except KeyError:
            raise LineNumberError() from None

    def __iter__(self) -> Iterator[Line]:
        return iter(self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)

    def off_hook_lines(self) -> list[Line]:
        return [line for line in self if line.off_hook]
