from __future__ import annotations

import re
import shlex
import time
from typing import Dict, List, NamedTuple

from .config import UpgradeConfig
from .errors import UpgradeError
from .repo_setup import install_repo
from .utils import get_logger, log_info, log_ok, log_step, log_warn

_NONINTERACTIVE = "DEBIAN_FRONTEND=noninteractive"


class ServiceState(NamedTuple):
    active: str
    sub: str

    def __str__(self) -> str:
        return f"{self.active} ({self.sub})"


def parse_systemctl_show(text: str) -> ServiceState:
    """Parse `systemctl show -p ActiveState,SubState` output."""
    props: Dict[str, str] = {}
    for line in (text or "").splitlines():
        if "=" in line:
            k, v = line.split("=", 1)
            props[k.strip()] = v.strip()
    return ServiceState(props.get("ActiveState", "unknown"), props.get("SubState", "unknown"))


def parse_dpkg_listing(text: str, pattern: str) -> List[str]:
    """Return installed package names (status '?i') matching *pattern* (case-insensitive)."""
    rx = re.compile(pattern, re.IGNORECASE)
    names: List[str] = []
    for line in (text or "").splitlines():
        if "\t" not in line:
            continue
        name, status = line.split("\t", 1)
        status = status.strip()
        if len(status) >= 2 and status[1] == "i" and rx.search(name):
            names.append(name.strip())
    return names


class ServiceController:
    """Shutdown, package swap and restart of the MariaDB systemd unit."""

    def __init__(self, host, config: UpgradeConfig, poll_interval: float = 1.0):
        self.host = host
        self.config = config
        self.service = config.service_name
        self.poll_interval = poll_interval
        self.log = get_logger()

    # --------------------------- credential ---------------------------

    def read_root_password(self) -> str:
        log_step("Retrieving MariaDB root password...")
        path = self.config.password_file
        out, rc = self.host.run_with_status(f"cat {shlex.quote(path)}", trace=False)
        password = out.strip() if rc == 0 else ""
        if not password:
            raise UpgradeError("credentials", f"MariaDB root password not found in {path}.")
        self.host.add_secret(password)
        log_ok("Password retrieved.")
        return password

    # ---------------------------- shutdown ----------------------------

    def _sql(self, password: str, statement: str) -> str:
        cmd = (
            f"mariadb -u root --password={shlex.quote(password)} -N -B "
            f"-e {shlex.quote(statement)}"
        )
        out, stderr, rc = self.host.run_full(cmd)
        if rc != 0:
            raise UpgradeError("shutdown", f"'{statement}' failed (rc={rc}): {stderr.strip()}")
        return out.strip()

    def prepare_shutdown(self, password: str) -> None:
        log_step("Configuring MariaDB for proper shutdown...")
        self._sql(password, "SET GLOBAL innodb_fast_shutdown = 1;")
        pending = [ln for ln in self._sql(password, "XA RECOVER;").splitlines() if ln.strip()]
        if pending:
            log_warn(f"{len(pending)} prepared XA transaction(s) reported by XA RECOVER:")
            for row in pending:
                log_warn(f"   {row}")
        log_ok("MariaDB configured for shutdown.")

    def service_state(self) -> ServiceState:
        out, _rc = self.host.run_with_status(
            f"systemctl show {shlex.quote(self.service)} --property=ActiveState,SubState"
        )
        return parse_systemctl_show(out)

    def _wait_for(self, wanted, terminal=("failed",)) -> ServiceState:
        deadline = time.monotonic() + self.config.service_settle_seconds
        while True:
            state = self.service_state()
            if wanted(state) or state.active in terminal:
                return state
            if time.monotonic() >= deadline:
                return state
            time.sleep(self.poll_interval)

    def stop(self) -> None:
        log_step(f"Stopping {self.service} service...")
        _out, stderr, rc = self.host.run_full(f"systemctl stop {shlex.quote(self.service)}")
        if rc != 0:
            raise UpgradeError("shutdown", f"systemctl stop {self.service} failed: {stderr.strip()}")
        state = self._wait_for(lambda s: s.active == "inactive")
        if state.active != "inactive":
            raise UpgradeError("shutdown", f"Failed to stop MariaDB server (state: {state}).")
        log_ok("MariaDB server has been stopped successfully.")

    # -------------------------- package swap --------------------------

    def installed_packages(self) -> List[str]:
        out, rc = self.host.run_with_status(
            "dpkg-query -W -f='${binary:Package}\\t${db:Status-Abbrev}\\n'"
        )
        if rc != 0 and not out:
            raise UpgradeError("packages", "Could not list installed packages with dpkg-query.")
        return parse_dpkg_listing(out, self.config.package_pattern)

    def remove_packages(self) -> None:
        log_step("Removing old MariaDB packages...")
        before = self.installed_packages()
        for name in before:
            log_info(f"   installed: {name}")

        globs = " ".join(shlex.quote(g) for g in self.config.remove_globs)
        _out, stderr, rc = self.host.run_full(f"{_NONINTERACTIVE} apt-get remove -y {globs}")
        if rc != 0:
            raise UpgradeError("packages", f"apt-get remove failed (rc={rc}): {stderr.strip()}")

        leftover = self.installed_packages()
        if leftover:
            raise UpgradeError(
                "packages",
                "Some MariaDB packages are still present, manual intervention required: "
                + ", ".join(leftover),
            )
        log_ok("Old MariaDB packages removed successfully.")

    def install(self) -> None:
        version = self.config.target_series
        log_step(f"Installing MariaDB {version}...")
        install_repo(self.host, version, self.config.repo_setup_url, self.config.repo_setup_sha256)

        for cmd in (
            f"{_NONINTERACTIVE} apt-get update",
            f"{_NONINTERACTIVE} apt-get install -y "
            + " ".join(shlex.quote(p) for p in self.config.install_packages),
        ):
            _out, stderr, rc = self.host.run_full(cmd)
            if rc != 0:
                raise UpgradeError("install", f"'{cmd}' failed (rc={rc}): {stderr.strip()}")
        log_ok(f"MariaDB {version} installed.")

    # ----------------------------- restart ----------------------------

    def start(self) -> None:
        log_step(f"Starting {self.service} service...")
        for action in ("enable", "start"):
            _out, stderr, rc = self.host.run_full(f"systemctl {action} {shlex.quote(self.service)}")
            if rc != 0:
                raise UpgradeError("restart", f"systemctl {action} {self.service} failed: {stderr.strip()}")

        state = self._wait_for(lambda s: s.active == "active" and s.sub == "running")
        if (state.active, state.sub) != ("active", "running"):
            raise UpgradeError("restart", f"Failed to start MariaDB server (state: {state}).")
        log_ok("MariaDB server started successfully.")
