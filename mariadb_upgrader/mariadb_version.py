from __future__ import annotations

import re
import shlex
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

from .config import UpgradeConfig
from .errors import CheckResult, UpgradeError
from .utils import format_bytes, log_info, log_step

STAGE = "compatibility"

_VERSION_RE = re.compile(r"(\d+)\.(\d+)\.(\d+)")
GIB = 1024 ** 3

# Virtual schemas that mysqldump cannot round-trip.
SYSTEM_SCHEMAS = frozenset({"information_schema", "performance_schema", "sys"})


class MariaDBVersion(NamedTuple):
    major: int
    minor: int
    patch: int

    @property
    def series(self) -> str:
        return f"{self.major}.{self.minor}"

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


class DeprecatedHit(NamedTuple):
    path: str
    line: int
    text: str


def parse_version(text: str) -> Optional[MariaDBVersion]:
    """Extract the first dotted triplet, e.g. from
    'mariadb  Ver 15.1 Distrib 10.3.39-MariaDB, for debian-linux-gnu'."""
    # 'Ver 15.1' is the client protocol version; prefer the Distrib token.
    m = re.search(r"Distrib\s+(\d+)\.(\d+)\.(\d+)", text or "")
    if not m:
        m = _VERSION_RE.search(text or "")
    if not m:
        return None
    return MariaDBVersion(*(int(g) for g in m.groups()))


def detect_version(host) -> MariaDBVersion:
    """Ask the installed client binary for its version."""
    out, rc = host.run_with_status("mariadb --version")
    version = parse_version(out) if rc == 0 else None
    if version is None:
        raise UpgradeError(STAGE, "Could not determine the installed MariaDB version.")
    return version


def check_upgrade_path(version: MariaDBVersion, source_series: str, target_series: str) -> CheckResult:
    if version.series == source_series:
        return CheckResult.passed(
            "upgrade_path", f"Upgrade path from {version} to {target_series} is supported."
        )
    return CheckResult.failed(
        "upgrade_path",
        f"Upgrade path from {version} to {target_series} is not supported; "
        f"only {source_series}.x sources are accepted. Please check MariaDB documentation.",
    )


def available_space_bytes(host, path: str = "/") -> int:
    out, rc = host.run_with_status(f"df --output=avail -B1 {shlex.quote(path)}")
    if rc != 0:
        raise UpgradeError(STAGE, f"Could not read free disk space for {path}.")
    # first line is the 'Avail' header
    lines = [ln.strip() for ln in out.splitlines() if ln.strip()]
    try:
        return int(lines[-1])
    except (IndexError, ValueError):
        raise UpgradeError(STAGE, f"Unexpected df output for {path}: {out!r}") from None


def check_disk_space(available: int, required_gb: int) -> CheckResult:
    if available >= required_gb * GIB:
        return CheckResult.passed("disk", f"Sufficient disk space available: {format_bytes(available)}")
    return CheckResult.failed(
        "disk",
        f"Insufficient disk space: {format_bytes(available)} available, {required_gb} GB required.",
    )


def list_databases(host) -> List[str]:
    out, stderr, rc = host.run_full("mysql -N -B -e 'SHOW DATABASES'")
    if rc != 0:
        raise UpgradeError(STAGE, f"Could not list databases: {stderr.strip() or f'rc={rc}'}")
    names = [ln.strip() for ln in out.splitlines() if ln.strip()]
    return [n for n in names if n.lower() not in SYSTEM_SCHEMAS]


def check_databases_present(names: Sequence[str]) -> CheckResult:
    if not names:
        return CheckResult.failed("databases", "No databases found on the server; nothing to upgrade.")
    return CheckResult.passed("databases", f"Found {len(names)} database(s).")


def _option_pattern(options: Iterable[str]) -> str:
    alts = "|".join(re.escape(o).replace("_", "[-_]") for o in options)
    # non-comment line that sets (or merely names) the option, optionally loose-prefixed
    return rf"^[[:space:]]*(loose[-_])?({alts})([[:space:]]*=|[[:space:]]*$)"


def find_deprecated_options(
    host, options: Sequence[str], config_dirs: Sequence[str]
) -> List[DeprecatedHit]:
    if not options or not config_dirs:
        return []
    present = [d for d in config_dirs if host.run_with_status(f"test -d {shlex.quote(d)}")[1] == 0]
    if not present:
        raise UpgradeError(
            STAGE,
            f"No MariaDB configuration directory found in {', '.join(config_dirs)}; "
            "cannot check for deprecated options.",
        )
    pattern = shlex.quote(_option_pattern(options))
    dirs = " ".join(shlex.quote(d) for d in present)
    out, rc = host.run_with_status(f"grep -rIHnE {pattern} {dirs}")
    # grep: 0 = matches, 1 = none, 2 = error (e.g. unreadable file)
    if rc not in (0, 1) and not out:
        raise UpgradeError(
            STAGE, f"Could not scan {', '.join(present)} for deprecated options (rc={rc})."
        )
    hits: List[DeprecatedHit] = []
    for line in out.splitlines():
        parts = line.split(":", 2)
        if len(parts) != 3 or not parts[1].isdigit():
            continue
        hits.append(DeprecatedHit(parts[0], int(parts[1]), parts[2].strip()))
    return hits


def check_deprecated_options(hits: Sequence[DeprecatedHit]) -> CheckResult:
    if not hits:
        return CheckResult.passed("deprecated", "No deprecated configuration options found.")
    listing = "; ".join(f"{h.path}:{h.line}: {h.text}" for h in hits)
    return CheckResult.failed(
        "deprecated",
        f"Deprecated configuration options found, remove them before upgrading: {listing}",
    )


def run_compatibility(host, config: UpgradeConfig) -> Tuple[MariaDBVersion, List[str]]:
    """Version -> lane -> disk -> databases -> deprecated options."""
    log_step("Confirming current MariaDB version...")
    version = detect_version(host)
    log_info(f"Current MariaDB version: {version}")

    log_step(f"Checking if upgrade from {version} to {config.target_series} is supported...")
    check_upgrade_path(version, config.source_series, config.target_series).raise_for(STAGE)

    log_step("Checking for sufficient disk space...")
    check_disk_space(available_space_bytes(host, config.disk_path), config.min_free_gb).raise_for(STAGE)

    log_step("Checking for databases...")
    databases = list_databases(host)
    check_databases_present(databases).raise_for(STAGE)

    log_step("Checking configuration for deprecated options...")
    hits = find_deprecated_options(host, config.deprecated_options, config.config_dirs)
    check_deprecated_options(hits).raise_for(STAGE)

    return version, databases
