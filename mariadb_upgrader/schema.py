from __future__ import annotations

import shlex
import time

from .errors import UpgradeError
from .mariadb_version import parse_version
from .utils import log_info, log_ok, log_step, log_warn

STAGE = "schema"


class SchemaMigrator:
    """Runs mariadb-upgrade twice (normal, then --force) and reports timing."""

    def __init__(self, host):
        self.host = host

    def _mariadb_upgrade(self, password: str, force: bool = False) -> None:
        cmd = f"mariadb-upgrade -u root --password={shlex.quote(password)}"
        if force:
            cmd += " --force"
        _out, stderr, rc = self.host.run_full(cmd)
        if rc != 0:
            label = "Forced upgrade" if force else "Upgrade"
            raise UpgradeError(
                STAGE,
                f"{label} encountered issues (rc={rc}). Please check the logs. {stderr.strip()}".strip(),
            )

    def upgrade(self, password: str) -> None:
        log_step("Running mariadb-upgrade...")
        self._mariadb_upgrade(password)
        log_ok("Upgrade completed successfully.")

    def force_upgrade(self, password: str) -> None:
        log_step("Forcing upgrade with mariadb-upgrade --force...")
        self._mariadb_upgrade(password, force=True)
        log_ok("Forced upgrade completed successfully.")

    def run(self, password: str) -> float:
        """Both passes; returns elapsed wall-clock seconds."""
        started = time.monotonic()
        self.upgrade(password)
        self.force_upgrade(password)
        return time.monotonic() - started

    def installed_version(self, target_series: str) -> str:
        log_step("Checking MariaDB version...")
        out, _rc = self.host.run_with_status("mariadb --version")
        log_info(out or "(no version output)")
        version = parse_version(out)
        if version is None:
            log_warn("Could not parse the installed MariaDB version; verify it manually.")
            return out
        if version.series != target_series:
            log_warn(f"Installed version {version} is not in the {target_series} series.")
        return str(version)
