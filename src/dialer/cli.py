"""Command line entry point: credentials, manager login and the interactive session."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from config.settings import Settings, get_settings
from dialer.lines import LineRegistry
from dialer.session import DialerSession
from dialer.terminal import StdinReader, TerminalMode
from telephony.ami_client import AmiClient, AmiConnectionError, AmiLoginError
from telephony.manager_conf import ManagerConfError, autodetect_password, is_local_host

LOGGER = logging.getLogger(__name__)

TERM_CLEAR = "\x1b[1;1H\x1b[2J"


class UsageError(Exception):
    pass


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="multidialer",
        description="AstMultiDialer: 9-line CLI dialer for Asterisk",
        epilog=(
            "You can use AstMultiDialer interactively, or you can feed it commands "
            "using a script file (just redirect the file to STDIN)."
        ),
    )
    parser.add_argument("-d", dest="debug", action="count", default=0, help="Enable AMI debug (repeat for more)")
    parser.add_argument("-l", dest="host", help="Asterisk AMI hostname. Default is localhost (127.0.0.1)")
    parser.add_argument(
        "-p",
        dest="password",
        help="Asterisk AMI password. By default, this will be autodetected for local connections if possible.",
    )
    parser.add_argument("-u", dest="username", help="Asterisk AMI username.")
    return parser.parse_args(argv)


def configure_logging(debug: int, settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    wire_level = logging.DEBUG if debug >= 2 else logging.WARNING
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(wire_level)


def resolve_credentials(args: argparse.Namespace, settings: Settings) -> tuple[str, str, str]:
    """Return ``(host, username, password)`` from flags, falling back to settings.

    Raises:
        UsageError: if no username is configured.
        ManagerConfError: if a local password cannot be autodetected.
    """

    host = args.host or settings.ami_host
    username = args.username or settings.ami_username
    password = args.password or settings.ami_password

    if not username:
        raise UsageError("No username provided (use -u flag)")
    if not password and is_local_host(host):
        password = autodetect_password(username, settings.manager_conf_path)
    return host, username, password or ""


async def _amain(args: argparse.Namespace, settings: Settings) -> int:
    try:
        host, username, password = resolve_credentials(args, settings)
    except (UsageError, ManagerConfError) as exc:
        print(exc, file=sys.stderr)
        return 1

    client = AmiClient.from_settings(settings, host=host)
    try:
        await client.login(username, password)
    except AmiConnectionError:
        await client.close()
        print(f"Failed to connect to AMI (host: {host}, user: {username})", file=sys.stderr)
        return 1
    except AmiLoginError as exc:
        await client.close()
        print(f"Failed to log in with username {username}: {exc.detail}", file=sys.stderr)
        return 1

    if sys.stdout.isatty():
        print(TERM_CLEAR, end="")
    print("*** AstMultiDialer ***")
    print("Press ? for help", flush=True)
    if args.debug:
        print(f"AMI debug level is {args.debug}", file=sys.stderr)

    session = DialerSession(
        LineRegistry.from_settings(settings),
        client,
        settings,
        reader=StdinReader(),
        terminal=TerminalMode(),
    )

    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, session.interrupted)
    client.watch_events(session.disconnected)
    try:
        return await session.run()
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    settings = get_settings()
    configure_logging(args.debug, settings)
    raise SystemExit(asyncio.run(_amain(args, settings)))


if __name__ == "__main__":
    main()
