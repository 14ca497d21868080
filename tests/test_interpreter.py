from __future__ import annotations

import asyncio

import pytest

from config.settings import Settings
from conftest import FakeAmiClient, error
from dialer.errors import LineNumberError
from dialer.interpreter import CommandInterpreter
from dialer.lines import HookState, LineRegistry
from dialer.parser import parse_command


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _interpreter(registry, ami, settings, sleep=None) -> CommandInterpreter:
    return CommandInterpreter(registry, ami, settings, sleep=sleep or SleepRecorder())


def _run(interpreter: CommandInterpreter, *lines: str) -> list[bool]:
    async def _go() -> list[bool]:
        return [await interpreter.execute(line) for line in lines]

    return asyncio.run(_go())


def test_originate_binds_resolved_channel(registry: LineRegistry, settings: Settings, capsys) -> None:
    ami = FakeAmiClient(["PJSIP/autotest1-00000007"])

    assert _run(_interpreter(registry, ami, settings), "1o") == [False]

    line = registry[1]
    assert line.hook_state is HookState.OFF_HOOK
    assert line.channel_id == "PJSIP/autotest1-00000007"
    assert ami.actions("Originate") == [("Originate", "PJSIP/01@autotest1", "idle", "9999", 1)]
    assert "OK" in capsys.readouterr().err


@pytest.mark.parametrize("index", range(1, 10))
def test_originate_then_hangup_returns_line_on_hook(registry, settings, index: int) -> None:
    ami = FakeAmiClient([f"PJSIP/autotest{index}-0000000{index}"])

    _run(_interpreter(registry, ami, settings), f"{index}o", f"{index}h")

    line = registry[index]
    assert line.hook_state is HookState.ON_HOOK
    assert line.channel_id is None
    assert ami.actions("Hangup") == [("Hangup", f"PJSIP/autotest{index}-0000000{index}", 16)]


def test_hangup_on_idle_line_is_rejected(registry, ami, settings, capsys) -> None:
    _run(_interpreter(registry, ami, settings), "1h")

    assert ami.calls == []
    assert registry[1].hook_state is HookState.ON_HOOK
    assert "Can't do this action on on-hook line" in capsys.readouterr().err


@pytest.mark.parametrize("command", ["2f", "2dt123", "2dp5"])
def test_line_actions_need_off_hook(registry, ami, settings, command: str) -> None:
    _run(_interpreter(registry, ami, settings), command)

    assert ami.calls == []
    assert not registry[2].off_hook


def test_failed_origination_leaves_line_on_hook(registry, ami, settings, capsys) -> None:
    ami.responses["Originate"] = error("Originate failed")

    _run(_interpreter(registry, ami, settings), "4o")

    assert not registry[4].off_hook
    assert ami.actions("CoreShowChannels") == []
    assert "Failed to go off hook on line 4: Originate failed" in capsys.readouterr().err


def test_origination_without_response(registry, ami, settings, capsys) -> None:
    ami.responses["Originate"] = None

    _run(_interpreter(registry, ami, settings), "4o")

    assert not registry[4].off_hook
    assert "No response" in capsys.readouterr().err


def test_unresolved_channel_rolls_line_back(registry, settings, capsys) -> None:
    ami = FakeAmiClient(["PJSIP/autotest9-00000001"])

    _run(_interpreter(registry, ami, settings), "1o")

    assert registry[1].hook_state is HookState.ON_HOOK
    assert registry[1].channel_id is None
    err = capsys.readouterr().err
    assert "Failed to find channel for PJSIP/autotest1" in err
    assert "OK" not in err


def test_failed_hangup_keeps_line_off_hook(registry, ami, settings, capsys) -> None:
    registry[3].go_off_hook("PJSIP/autotest3-00000001")
    ami.responses["Hangup"] = error()

    _run(_interpreter(registry, ami, settings), "3h")

    assert registry[3].off_hook
    assert "Failed to go on hook on line 3" in capsys.readouterr().err


def test_flash(registry, ami, settings, capsys) -> None:
    registry[2].go_off_hook("PJSIP/autotest2-00000001")

    _run(_interpreter(registry, ami, settings), "2F")

    assert ami.calls == [("SendFlash", "PJSIP/autotest2-00000001")]
    assert registry[2].off_hook
    assert "OK" in capsys.readouterr().err


def test_dtmf_digits_are_sent_in_order(registry, ami, settings, capsys) -> None:
    registry[1].go_off_hook("PJSIP/autotest1-00000001")

    _run(_interpreter(registry, ami, settings), "1dt47")

    assert ami.calls == [
        ("PlayDTMF", "PJSIP/autotest1-00000001", "4"),
        ("PlayDTMF", "PJSIP/autotest1-00000001", "7"),
    ]
    assert capsys.readouterr().err == ""


def test_dtmf_failures_are_not_reported(registry, ami, settings, capsys) -> None:
    registry[1].go_off_hook("PJSIP/autotest1-00000001")
    ami.responses["PlayDTMF"] = None

    _run(_interpreter(registry, ami, settings), "1 dt*#")

    assert [call[2] for call in ami.calls] == ["*", "#"]
    err = capsys.readouterr().err
    assert "OK" not in err
    assert "Failed" not in err


@pytest.mark.parametrize(
    ("command", "message"),
    [
        ("1dp123", "Dial pulse not yet supported"),
        ("1dx1", "Invalid dial type 'x'"),
        ("1a", "Answer is not implemented yet"),
        ("1z", "Unknown line command 'z'"),
    ],
)
def test_rejected_line_commands(registry, ami, settings, capsys, command: str, message: str) -> None:
    registry[1].go_off_hook("PJSIP/autotest1-00000001")

    assert _run(_interpreter(registry, ami, settings), command) == [False]

    assert ami.calls == []
    assert message in capsys.readouterr().err


def test_zero_line_number_is_rejected(registry, ami, settings, capsys) -> None:
    _run(_interpreter(registry, ami, settings), "0o")

    assert ami.calls == []
    assert "Line number must be between 1 and 9" in capsys.readouterr().err


@pytest.mark.parametrize("text", ["0o", "12h"])
def test_dispatch_raises_line_number_error(registry, ami, settings, text: str) -> None:
    interpreter = _interpreter(registry, ami, settings)

    with pytest.raises(LineNumberError):
        asyncio.run(interpreter.dispatch(parse_command(text)))

    assert ami.calls == []


def test_sleep_commands(registry, ami, settings) -> None:
    sleep = SleepRecorder()

    _run(_interpreter(registry, ami, settings, sleep), "s2", "ms500", "ms", "s -4")

    assert sleep.calls == [2, 0.5, 0, 0]
    assert ami.calls == []


def test_quit_does_not_touch_lines(registry, ami, settings) -> None:
    registry[1].go_off_hook("PJSIP/autotest1-00000001")

    assert _run(_interpreter(registry, ami, settings), "q") == [True]

    assert ami.calls == []
    assert registry[1].off_hook


def test_hangup_all_only_touches_off_hook_lines(registry, ami, settings, capsys) -> None:
    registry[2].go_off_hook("PJSIP/autotest2-00000001")
    registry[7].go_off_hook("PJSIP/autotest7-00000001")

    _run(_interpreter(registry, ami, settings), "k")

    assert ami.calls == [
        ("Hangup", "PJSIP/autotest2-00000001", 16),
        ("Hangup", "PJSIP/autotest7-00000001", 16),
    ]
    assert registry.off_hook_lines() == []
    err = capsys.readouterr().err
    assert "Hung up line 2" in err
    assert "Hung up line 7" in err


def test_hangup_all_continues_past_failures(registry, ami, settings) -> None:
    registry[2].go_off_hook("PJSIP/autotest2-00000001")
    registry[3].go_off_hook("PJSIP/autotest3-00000001")
    ami.responses["Hangup"] = None

    _run(_interpreter(registry, ami, settings), "k")

    assert len(ami.actions("Hangup")) == 2
    assert [line.index for line in registry.off_hook_lines()] == [2, 3]


def test_unknown_global_and_blank_lines(registry, ami, settings, capsys) -> None:
    assert _run(_interpreter(registry, ami, settings), "xyz", "", "; note") == [False, False, False]

    assert capsys.readouterr().err.strip() == "Unknown global command 'xyz'"
