"""Password autodiscovery from Asterisk's ``manager.conf``.

Running with read access to the Asterisk configuration avoids passing the
manager secret on the command line.
"""

from __future__ import annotations

import configparser
import logging
import re
from pathlib import Path

LOGGER = logging.getLogger(__name__)

LOCAL_HOSTS = frozenset({"127.0.0.1", "localhost", "::1"})


class ManagerConfError(Exception):
    def __init__(self, path: Path) -> None:
        super().__init__(f"No password specified, and failed to autodetect from {path}")
        self.path = path


def is_local_host(host: str) -> bool:
    return host.strip("[]").lower() in LOCAL_HOSTS


def autodetect_password(username: str, path: Path) -> str:
    """Return the ``secret`` configured for ``username`` in ``path``.

    Raises:
        ManagerConfError: if the file cannot be read or has no secret for the user.
    """

    parser = configparser.ConfigParser(
        delimiters=("=>", "="),
        comment_prefixes=(";", "#"),
        inline_comment_prefixes=(";",),
        interpolation=None,
        strict=False,
    )
    # Asterisk templates are written as "[user](template)"; the header regex ignores the suffix.
    parser.SECTCRE = re.compile(r"\[(?P<header>[^\]]+)\]")
    try:
        with path.open(encoding="utf-8") as handle:
            parser.read_file(handle)
    except (OSError, configparser.Error) as exc:
        LOGGER.debug("Cannot read %s: %s", path, exc)
        raise ManagerConfError(path) from exc

    secret = parser.get(username, "secret", fallback="").strip()
    if not secret:
        LOGGER.debug("No secret for %s in %s", username, path)
        raise ManagerConfError(path)
    return secret
