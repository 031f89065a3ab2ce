"""Environment validation: privileges, OS release, control-panel fingerprints."""

from __future__ import annotations

import shlex
from typing import Dict, Iterable, List, Tuple

from .config import UpgradeConfig
from .errors import CheckResult
from .utils import log_step

STAGE = "preflight"
OS_RELEASE_PATH = "/etc/os-release"


def _path_exists(host, path: str, kind: str = "-e") -> bool:
    _out, rc = host.run_with_status(f"test {kind} {shlex.quote(path)}", trace=False)
    return rc == 0


def check_root(host) -> CheckResult:
    """Effective user on the target must be uid 0."""
    out, rc = host.run_with_status("id -u")
    if rc != 0:
        return CheckResult.failed("root", "Could not determine effective user id.")
    if out.strip() != "0":
        return CheckResult.failed("root", "This tool must be run as root.")
    return CheckResult.passed("root", "Running as root.")


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse /etc/os-release style KEY=value lines (values may be quoted)."""
    data: Dict[str, str] = {}
    for line in (text or "").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        data[key.strip()] = value
    return data


def _version_number(version_id: str) -> int | None:
    """'20.04' -> 2004, the same dot-stripping comparison the panel docs use."""
    digits = version_id.replace(".", "")
    return int(digits) if digits.isdigit() else None


def check_os(host, name: str = "Ubuntu", min_version: str = "20.04") -> CheckResult:
    out, rc = host.run_with_status(f"cat {OS_RELEASE_PATH}", trace=False)
    if rc != 0 or not out:
        return CheckResult.failed("os", f"Cannot read {OS_RELEASE_PATH}.")

    release = parse_os_release(out)
    os_name = release.get("NAME", "")
    version_id = release.get("VERSION_ID", "")
    current = _version_number(version_id)
    required = _version_number(min_version)

    if os_name != name or current is None or required is None or current < required:
        return CheckResult.failed(
            "os",
            f"Detected {os_name or 'unknown OS'} {version_id}. "
            f"This tool is compatible only with {name} {min_version} or higher.",
        )
    return CheckResult.passed("os", f"OS is {os_name} {version_id}, compatible for upgrade.")


def check_panel(host, marker: str) -> CheckResult:
    if _path_exists(host, marker, "-f"):
        return CheckResult.passed("panel", "CyberPanel detected.")
    return CheckResult.failed(
        "panel",
        "CyberPanel not detected. This tool can only be run on servers with CyberPanel.",
    )


def detect_competing_panels(host, panels: Iterable[Tuple[str, str]]) -> List[str]:
    return [label for label, path in panels if _path_exists(host, path, "-d")]


def check_competing_panels(host, panels: Iterable[Tuple[str, str]]) -> CheckResult:
    found = detect_competing_panels(host, panels)
    if found:
        return CheckResult.failed(
            "competing_panels",
            f"Another control panel detected ({', '.join(found)}). "
            "This tool is only supported on CyberPanel.",
        )
    return CheckResult.passed("competing_panels", "No other control panel found.")


def run_preflight(host, config: UpgradeConfig) -> None:
    """Run every preflight check in order; raise UpgradeError on the first failure."""
    log_step("Checking for root privilege...")
    check_root(host).raise_for(STAGE)

    log_step("Checking OS version...")
    check_os(host, config.os_name, config.os_min_version).raise_for(STAGE)

    log_step("Checking for installed control panels...")
    check_panel(host, config.panel_marker).raise_for(STAGE)
    check_competing_panels(host, config.competing_panels).raise_for(STAGE)
