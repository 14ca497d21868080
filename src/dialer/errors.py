"""Operator-facing errors raised while executing a dialer command.

None of these end the session; the interpreter prints ``detail`` and
waits for the next command.
"""

from __future__ import annotations


class DialerError(Exception):
    default_detail: str = "Command failed"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class NoResponseError(DialerError):
    default_detail = "No response"


class ActionFailedError(DialerError):
    default_detail = "Action failed"


class LineOnHookError(DialerError):
    default_detail = "Can't do this action on on-hook line"


class LineNumberError(DialerError):
    default_detail = "Line number must be between 1 and 9"


class UnsupportedCommandError(DialerError):
    default_detail = "Not supported"


class NotImplementedCommandError(DialerError):
    default_detail = "Not implemented yet"


class UnknownCommandError(DialerError):
    default_detail = "Unknown command"
