# tests/conftest.py

from __future__ import annotations

import os
import re
import shlex
from pathlib import Path

import pytest

from mariadb_upgrader.config import UpgradeConfig

OS_RELEASE_UBUNTU_2204 = """\
PRETTY_NAME="Ubuntu 22.04.4 LTS"
NAME="Ubuntu"
VERSION_ID="22.04"
VERSION="22.04.4 LTS (Jammy Jellyfish)"
ID=ubuntu
ID_LIKE=debian
"""

GIB = 1024 ** 3


class FakeHost:
    """
    Mini-mock of the SSH/LocalShell API.
    Commands are answered by the first matching rule (regex searched against
    the command); everything else succeeds with empty output.
    """

    def __init__(self):
        self.commands: list[str] = []
        self.rules: list[tuple[re.Pattern, tuple[str, str, int]]] = []
        self.uploads: dict[str, bytes] = {}
        self.secrets: list[str] = []
        self.closed = False

    def on(self, pattern: str, stdout: str = "", stderr: str = "", rc: int = 0) -> "FakeHost":
        self.rules.insert(0, (re.compile(pattern), (stdout, stderr, rc)))
        return self

    def describe(self) -> str:
        return "fake"

    def add_secret(self, secret: str) -> None:
        if secret and secret not in self.secrets:
            self.secrets.append(secret)

    def handle(self, cmd: str) -> tuple[str, str, int] | None:
        """Hook for subclasses that emulate state; None falls through to rules."""
        return None

    def run_full(self, cmd: str, trace: bool = True) -> tuple[str, str, int]:
        self.commands.append(cmd)
        for rx, result in self.rules:
            if rx.search(cmd):
                return result
        emulated = self.handle(cmd)
        if emulated is not None:
            return emulated
        return "", "", 0

    def run_with_status(self, cmd: str, trace: bool = True) -> tuple[str, int]:
        out, _err, rc = self.run_full(cmd, trace=trace)
        return out.strip(), rc

    def run(self, cmd: str, check: bool = True, trace: bool = True) -> str:
        out, err, rc = self.run_full(cmd, trace=trace)
        if check and rc:
            raise RuntimeError(f"[{cmd}] failed (rc={rc}):\n{err}")
        return out.strip()

    def put_file(self, local_path: str, remote_path: str) -> None:
        self.uploads[remote_path] = Path(local_path).read_bytes()

    def close(self):
        self.closed = True

    def ran(self, prefix: str) -> list[str]:
        return [c for c in self.commands if c.startswith(prefix)]


class FakeCyberPanelHost(FakeHost):
    """
    A CyberPanel box with MariaDB installed: emulates id/os-release/markers,
    mysqldump into a real directory, systemd state, dpkg and the version
    switch that happens when the new packages are installed.
    """

    def __init__(
        self,
        databases=("a", "b", "c"),
        version: str = "10.3.39",
        new_version: str = "10.6.18",
        free_bytes: int = 10 * GIB,
        password: str = "s3cr3t pw",
    ):
        super().__init__()
        self.databases = list(databases)
        self.version = version
        self.new_version = new_version
        self.free_bytes = free_bytes
        self.password = password
        self.state = ("active", "running")
        self.packages = [
            "mariadb-server-10.3",
            "mariadb-client-10.3",
            "mariadb-common",
            "galera-3",
            "libmariadb3",
        ]
        self.failing_dumps: set[str] = set()
        self.start_fails = False
        self.residue: list[str] = []
        self.files = {
            "/etc/os-release": OS_RELEASE_UBUNTU_2204,
            "/usr/local/CyberCP/CyberCP/settings.py": "",
            "/etc/cyberpanel/mysqlPassword": password + "\n",
        }
        self.dirs: set[str] = {"/etc/mysql"}
        self.removed: list[str] = []
        self._mktemp_seq = 0

    def handle(self, cmd: str):
        argv = shlex.split(cmd)
        while argv and "=" in argv[0] and not argv[0].startswith("-"):
            argv = argv[1:]  # strip VAR=value prefixes
        if not argv:
            return None
        prog = argv[0]

        if prog == "id":
            return "0\n", "", 0
        if prog == "test":
            kind, path = argv[1], argv[2]
            if kind == "-d":
                return "", "", 0 if path in self.dirs else 1
            return "", "", 0 if path in self.files else 1
        if prog == "cat":
            path = argv[1]
            if path in self.files:
                return self.files[path], "", 0
            return "", f"cat: {path}: No such file or directory", 1
        if prog == "mariadb" and argv[1:] == ["--version"]:
            return f"mariadb  Ver 15.1 Distrib {self.version}-MariaDB, for debian-linux-gnu (x86_64)\n", "", 0
        if prog == "df":
            return f"    Avail\n{self.free_bytes}\n", "", 0
        if prog == "mysql" and "SHOW DATABASES" in cmd:
            listing = ["information_schema", *self.databases, "performance_schema"]
            return "\n".join(listing) + "\n", "", 0
        if prog == "grep":
            return "", "", 1
        if prog == "mktemp":
            self._mktemp_seq += 1
            return argv[-1].replace("XXXXXX", f"{self._mktemp_seq:06d}") + "\n", "", 0
        if prog == "rm":
            self.removed.append(argv[-1])
            return "", "", 0
        if prog == "mkdir":
            os.makedirs(argv[-1], exist_ok=True)
            return "", "", 0
        if prog == "mysqldump":
            gt = argv.index(">")
            db, target = argv[gt - 1], argv[gt + 1]
            if db in self.failing_dumps:
                return "", f"mysqldump: Got error: 1049: Unknown database '{db}'", 2
            Path(target).write_text(f"-- dump of {db}\n")
            return "", "", 0
        if prog == "mariadb":
            return "", "", 0
        if prog == "systemctl":
            action = argv[1]
            if action == "stop":
                self.state = ("inactive", "dead")
            elif action == "start":
                self.state = ("failed", "failed") if self.start_fails else ("active", "running")
            elif action == "show":
                return f"ActiveState={self.state[0]}\nSubState={self.state[1]}\n", "", 0
            return "", "", 0
        if prog == "dpkg-query":
            return "".join(f"{p}\tii \n" for p in self.packages), "", 0
        if prog == "apt-get":
            if argv[1] == "remove":
                self.packages = list(self.residue)
            elif argv[1] == "install":
                self.packages = ["mariadb-server", "mariadb-client", "libmariadb-dev"]
                self.version = self.new_version
            return "", "", 0
        return None


@pytest.fixture
def cyberpanel_host():
    return FakeCyberPanelHost()


@pytest.fixture
def config(tmp_path):
    return UpgradeConfig(
        backup_dir=str(tmp_path / "databases"),
        service_settle_seconds=0,
    )


class FakeResponse:
    def __init__(self, content: bytes = b"#!/bin/bash\necho repo\n", status_code: int = 200):
        self.content = content
        self.status_code = status_code


@pytest.fixture
def fake_repo_download(monkeypatch):
    """Stub requests.get used by repo_setup; records requested URLs."""
    import mariadb_upgrader.repo_setup as repo_setup

    calls: list[str] = []
    response = FakeResponse()

    def _get(url, timeout=None, **_kw):
        calls.append(url)
        return response

    monkeypatch.setattr(repo_setup.requests, "get", _get)
    return calls, response
