"""Vendor repository bootstrap (mariadb_repo_setup) download and execution."""

from __future__ import annotations

import hashlib
import os
import shlex
import tempfile

import requests

from .errors import UpgradeError
from .utils import get_logger

STAGE = "install"
HTTP_OK = 200
REMOTE_SCRIPT_TEMPLATE = "/tmp/mariadb_repo_setup.XXXXXX"


def fetch_repo_setup(url: str, sha256: str = "", timeout: int = 30) -> bytes:
    """Download the bootstrap script; verify it when a digest is pinned."""
    log = get_logger()
    try:
        res = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise UpgradeError(STAGE, f"Could not download {url}: {e}") from e
    if res.status_code != HTTP_OK:
        raise UpgradeError(STAGE, f"Could not download {url}: HTTP {res.status_code}")

    body = res.content
    if not body:
        raise UpgradeError(STAGE, f"Downloaded repository setup script from {url} is empty")

    digest = hashlib.sha256(body).hexdigest()
    if sha256:
        if digest.lower() != sha256.strip().lower():
            raise UpgradeError(
                STAGE,
                f"Checksum mismatch for {url}: expected {sha256}, got {digest}",
            )
        log.info(f"Repository setup script verified (sha256={digest})")
    else:
        log.warning(f"Repository setup script not pinned; running unverified (sha256={digest})")
    return body


def _upload_script(host, body: bytes) -> str:
    """Write *body* to a fresh mktemp file on *host*; return its path."""
    fd, local_path = tempfile.mkstemp(prefix="mariadb_repo_setup.")
    remote_path = ""
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(body)
        remote_path = host.run(f"mktemp {REMOTE_SCRIPT_TEMPLATE}")
        if not remote_path:
            raise RuntimeError("mktemp returned no path")
        host.put_file(local_path, remote_path)
    except (OSError, RuntimeError) as e:
        if remote_path:
            _remove(host, remote_path)
        raise UpgradeError(
            STAGE, f"Could not upload repository setup script to {host.describe()}: {e}"
        ) from e
    finally:
        os.unlink(local_path)
    return remote_path


def _remove(host, remote_path: str) -> None:
    _out, rc = host.run_with_status(f"rm -f {shlex.quote(remote_path)}")
    if rc != 0:
        get_logger().warning(f"Could not remove {remote_path} (rc={rc})")


def install_repo(host, version: str, url: str, sha256: str = "") -> None:
    """Upload the bootstrap script to *host* and configure the MariaDB <version> repository."""
    body = fetch_repo_setup(url, sha256)
    remote_path = _upload_script(host, body)
    try:
        cmd = (
            f"bash {shlex.quote(remote_path)} "
            f"--mariadb-server-version={shlex.quote('mariadb-' + version)}"
        )
        _out, stderr, rc = host.run_full(cmd)
    finally:
        _remove(host, remote_path)
    if rc != 0:
        raise UpgradeError(STAGE, f"Repository setup for MariaDB {version} failed (rc={rc}): {stderr.strip()}")
