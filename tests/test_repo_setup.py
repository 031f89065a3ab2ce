# tests/test_repo_setup.py

from __future__ import annotations

import hashlib

import pytest
import requests

from mariadb_upgrader import repo_setup
from mariadb_upgrader.errors import UpgradeError
from mariadb_upgrader.repo_setup import fetch_repo_setup, install_repo

URL = "https://r.mariadb.com/downloads/mariadb_repo_setup"


def test_fetch_verifies_pinned_digest(fake_repo_download):
    _calls, response = fake_repo_download
    digest = hashlib.sha256(response.content).hexdigest()
    assert fetch_repo_setup(URL, sha256=digest.upper()) == response.content


def test_fetch_rejects_digest_mismatch(fake_repo_download):
    with pytest.raises(UpgradeError, match="Checksum mismatch"):
        fetch_repo_setup(URL, sha256="0" * 64)


def test_fetch_rejects_http_error(fake_repo_download):
    _calls, response = fake_repo_download
    response.status_code = 404
    with pytest.raises(UpgradeError, match="HTTP 404"):
        fetch_repo_setup(URL)


def test_fetch_wraps_network_errors(monkeypatch):
    def _boom(url, timeout=None, **_kw):
        raise requests.ConnectionError("name resolution failed")

    monkeypatch.setattr(repo_setup.requests, "get", _boom)
    with pytest.raises(UpgradeError, match="name resolution failed"):
        fetch_repo_setup(URL)


def test_install_repo_uploads_and_runs_with_version_pin(cyberpanel_host, fake_repo_download):
    _calls, response = fake_repo_download
    install_repo(cyberpanel_host, "10.6", URL)
    (path, body), = cyberpanel_host.uploads.items()
    assert path == "/tmp/mariadb_repo_setup.000001"
    assert body == response.content
    assert f"bash {path} --mariadb-server-version=mariadb-10.6" in cyberpanel_host.commands
    assert cyberpanel_host.removed == [path]


def test_install_repo_uses_fresh_temp_path_each_run(cyberpanel_host, fake_repo_download):
    install_repo(cyberpanel_host, "10.6", URL)
    install_repo(cyberpanel_host, "10.6", URL)
    paths = list(cyberpanel_host.uploads)
    assert len(paths) == 2 and paths[0] != paths[1]
    assert cyberpanel_host.ran("mktemp /tmp/mariadb_repo_setup.XXXXXX")
    assert cyberpanel_host.removed == paths


def test_install_repo_upload_failure_is_labeled(cyberpanel_host, fake_repo_download, monkeypatch):
    def _fail(local_path, remote_path):
        raise RuntimeError(f"All upload methods failed for {local_path} -> {remote_path}")

    monkeypatch.setattr(cyberpanel_host, "put_file", _fail)
    with pytest.raises(UpgradeError) as exc:
        install_repo(cyberpanel_host, "10.6", URL)
    assert exc.value.stage == "install"
    assert "All upload methods failed" in str(exc.value)
    assert cyberpanel_host.removed == ["/tmp/mariadb_repo_setup.000001"]
    assert not cyberpanel_host.ran("bash ")


def test_install_repo_removes_script_when_it_fails(cyberpanel_host, fake_repo_download):
    cyberpanel_host.on(r"^bash /tmp/mariadb_repo_setup", stderr="unsupported distro", rc=1)
    with pytest.raises(UpgradeError, match="unsupported distro"):
        install_repo(cyberpanel_host, "10.6", URL)
    assert cyberpanel_host.removed == ["/tmp/mariadb_repo_setup.000001"]
