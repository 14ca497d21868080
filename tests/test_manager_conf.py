from __future__ import annotations

from pathlib import Path

import pytest

from telephony.manager_conf import ManagerConfError, autodetect_password, is_local_host

MANAGER_CONF = """\
;
; Asterisk Call Management support
;
[general]
enabled = yes
port = 5038
bindaddr = 0.0.0.0
#include "manager_custom.conf"

[dialer](!)
read = system,call
write = system,call,originate

[tester](dialer)
secret = s3cret ; change me
deny=0.0.0.0/0.0.0.0
permit=127.0.0.1/255.255.255.0
permit=10.0.0.0/255.0.0.0

[nosecret]
read = all
"""


@pytest.fixture()
def manager_conf(tmp_path: Path) -> Path:
    path = tmp_path / "manager.conf"
    path.write_text(MANAGER_CONF, encoding="utf-8")
    return path


def test_secret_for_templated_user(manager_conf: Path) -> None:
    assert autodetect_password("tester", manager_conf) == "s3cret"


@pytest.mark.parametrize("username", ["nosecret", "unknown"])
def test_missing_secret(manager_conf: Path, username: str) -> None:
    with pytest.raises(ManagerConfError, match="failed to autodetect"):
        autodetect_password(username, manager_conf)


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ManagerConfError):
        autodetect_password("tester", tmp_path / "absent.conf")


@pytest.mark.parametrize(("host", "local"), [("127.0.0.1", True), ("LocalHost", True), ("[::1]", True), ("10.1.2.3", False)])
def test_is_local_host(host: str, local: bool) -> None:
    assert is_local_host(host) is local
