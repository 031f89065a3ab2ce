# tests/test_ssh_client.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from mariadb_upgrader import ssh_client
from mariadb_upgrader.ssh_client import SSH


class _Stream:
    def __init__(self, data: bytes, rc: int):
        self._data = data
        self.channel = SimpleNamespace(recv_exit_status=lambda: rc)

    def read(self) -> bytes:
        return self._data


class _FakeClient:
    """Stands in for paramiko.SSHClient; answers every command with one canned result."""

    result = (b"", b"", 0)

    def __init__(self):
        self.connect_kwargs = {}
        self.commands = []
        self.closed = False

    def set_missing_host_key_policy(self, policy):
        pass

    def connect(self, **kwargs):
        self.connect_kwargs = kwargs

    def exec_command(self, cmd):
        self.commands.append(cmd)
        out, err, rc = self.result
        return None, _Stream(out, rc), _Stream(err, rc)

    def close(self):
        self.closed = True


@pytest.fixture
def ssh(monkeypatch):
    monkeypatch.setattr(ssh_client.paramiko, "SSHClient", _FakeClient)
    return SSH("panel.example.com", "root", pw="pw", port=2222)


def test_password_login_skips_agent_and_key_lookup(ssh):
    kw = ssh.cli.connect_kwargs
    assert kw["hostname"] == "panel.example.com"
    assert kw["port"] == 2222
    assert kw["password"] == "pw"
    assert kw["allow_agent"] is False
    assert kw["look_for_keys"] is False
    assert ssh.describe() == "root@panel.example.com"


def test_run_returns_stripped_stdout(ssh):
    ssh.cli.result = (b"10.3.39\n", b"", 0)
    assert ssh.run("mariadb --version") == "10.3.39"
    assert ssh.run_with_status("true") == ("10.3.39", 0)


def test_run_error_masks_registered_secret(ssh):
    ssh.add_secret("s3cr3t pw")
    ssh.cli.result = (b"", b"Access denied for password s3cr3t pw", 1)
    with pytest.raises(RuntimeError) as exc:
        ssh.run("mariadb-upgrade -u root --password='s3cr3t pw'")
    msg = str(exc.value)
    assert "s3cr3t pw" not in msg
    assert "--password=***" in msg
    assert "rc=1" in msg


def test_close_closes_client(ssh):
    ssh.close()
    assert ssh.cli.closed
