from __future__ import annotations

import io
import os
import sys
from typing import List, Optional

import paramiko

from .config import UpgradeConfig, load_config
from .errors import UpgradeError
from .local_shell import LocalShell
from .ssh_client import SSH
from .upgrader import Upgrader
from .utils import get_logger, log_fail, log_info, log_ok
from .vars import (
    UPGRADE_HOST, SSH_USER, SSH_PASSWORD, SSH_PORT,
    SSH_KEY_FILE, SSH_KEY_PASSPHRASE,
)

USAGE = "Usage: python -m mariadb_upgrader [upgrade|check]"
COMMANDS = {"upgrade", "check"}

# Failures from these stages happen after the server was touched.
_STATEFUL_STAGES = {"credentials", "shutdown", "packages", "install", "restart", "schema"}


def _load_private_key_any(path_or_pem: str, passphrase: str) -> paramiko.PKey:
    """
    Load a private key either from a filesystem PATH or PEM content.
    Tries Ed25519 → ECDSA → RSA.
    """
    def _try_with(cls, src):
        if os.path.exists(src):
            return cls.from_private_key_file(src, password=passphrase or None)
        return cls.from_private_key(io.StringIO(src), password=passphrase or None)

    last_err: Optional[Exception] = None
    for key_cls in (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey):
        try:
            return _try_with(key_cls, path_or_pem)
        except FileNotFoundError as e:
            last_err = e
            break
        except paramiko.SSHException as e:
            last_err = e
    msg = str(last_err) if last_err else "unknown error"
    sys.exit(f"Unable to load SSH key: {msg}")


def connect_host():
    """Local shell by default; SSH when MARIADB_UPGRADE_HOST is set."""
    if not UPGRADE_HOST:
        return LocalShell()

    if not (SSH_PASSWORD or SSH_KEY_FILE):
        sys.exit(
            "No SSH credentials: set MARIADB_UPGRADE_SSH_PASSWORD or MARIADB_UPGRADE_SSH_KEY_FILE"
        )

    ssh_kwargs: dict = {"allow_agent": False, "look_for_keys": False, "port": SSH_PORT}
    if SSH_KEY_FILE:
        if os.path.exists(SSH_KEY_FILE) or SSH_KEY_FILE.strip().startswith("-----BEGIN"):
            ssh_kwargs["pkey"] = _load_private_key_any(SSH_KEY_FILE, SSH_KEY_PASSPHRASE)
        else:
            ssh_kwargs["key_filename"] = SSH_KEY_FILE

    try:
        return SSH(UPGRADE_HOST, SSH_USER, pw=SSH_PASSWORD or None, **ssh_kwargs)
    except (OSError, paramiko.SSHException) as e:
        sys.exit(f"SSH connection to {SSH_USER}@{UPGRADE_HOST} failed: {e}")


def run(cmd: str, host, config: UpgradeConfig) -> int:
    """Execute *cmd* against *host*; return the process exit code."""
    upgrader = Upgrader(host, config)
    try:
        if cmd == "check":
            version, databases = upgrader.check()
            log_ok(
                f"Host {host.describe()} is ready: MariaDB {version}, "
                f"{len(databases)} database(s). No changes were made."
            )
        else:
            report = upgrader.run()
            log_info(
                f"Upgraded {report.source_version} -> {report.final_version}; "
                f"{len(report.backups)} backup file(s) in {config.backup_dir}"
            )
        return 0
    except UpgradeError as e:
        log_fail(str(e))
        if e.stage in _STATEFUL_STAGES:
            log_fail(
                f"The server may be stopped or partially upgraded. "
                f"Database backups are preserved in {config.backup_dir}; restore manually if needed."
            )
        log_fail("Exiting...")
        return 1
    finally:
        host.close()


def main(argv: Optional[List[str]] = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    cmd = args[0] if args else "upgrade"
    if cmd not in COMMANDS or len(args) > 1:
        print(USAGE)
        sys.exit(1)

    get_logger()
    config = load_config()
    host = connect_host()
    log_info(f"Target host: {host.describe()}")
    sys.exit(run(cmd, host, config))


if __name__ == "__main__":
    main()
