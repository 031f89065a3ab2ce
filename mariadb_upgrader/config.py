"""Immutable run configuration handed to every stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

# Panels whose presence means this host is not a plain CyberPanel box.
COMPETING_PANELS: Tuple[Tuple[str, str], ...] = (
    ("cPanel", "/usr/local/cpanel"),
    ("Plesk", "/usr/local/psa"),
    ("CloudPanel", "/opt/cloudpanel"),
)

CYBERPANEL_MARKER = "/usr/local/CyberCP/CyberCP/settings.py"

# Server options removed or deprecated between 10.3 and 10.6.
DEPRECATED_OPTIONS: Tuple[str, ...] = (
    "innodb_file_format",
    "innodb_large_prefix",
    "innodb_locks_unsafe_for_binlog",
    "innodb_support_xa",
    "innodb_use_trim",
    "innodb_use_mtflush",
    "innodb_mtflush_threads",
    "innodb_checksums",
    "innodb_stats_sample_pages",
    "innodb_undo_logs",
    "innodb_buffer_pool_instances",
    "innodb_page_cleaners",
    "innodb_log_files_in_group",
    "innodb_log_optimize_ddl",
    "innodb_thread_concurrency",
    "innodb_commit_concurrency",
    "innodb_concurrency_tickets",
    "innodb_replication_delay",
    "innodb_scrub_log",
    "innodb_background_scrub_data_compressed",
    "innodb_background_scrub_data_uncompressed",
    "innodb_background_scrub_data_interval",
    "innodb_background_scrub_data_check_interval",
)


@dataclass(frozen=True)
class UpgradeConfig:
    source_series: str = "10.3"
    target_series: str = "10.6"
    os_name: str = "Ubuntu"
    os_min_version: str = "20.04"
    min_free_gb: int = 5
    disk_path: str = "/"
    config_dirs: Tuple[str, ...] = ("/etc/mysql",)
    deprecated_options: Tuple[str, ...] = DEPRECATED_OPTIONS
    backup_dir: str = "/home/dbs/databases"
    service_name: str = "mariadb"
    service_settle_seconds: int = 30
    password_file: str = "/etc/cyberpanel/mysqlPassword"
    package_pattern: str = "mariadb|galera"
    remove_globs: Tuple[str, ...] = ("*mariadb*", "galera*")
    install_packages: Tuple[str, ...] = ("mariadb-server", "libmariadb-dev")
    repo_setup_url: str = "https://r.mariadb.com/downloads/mariadb_repo_setup"
    repo_setup_sha256: str = ""
    panel_marker: str = CYBERPANEL_MARKER
    competing_panels: Tuple[Tuple[str, str], ...] = field(default=COMPETING_PANELS)


def load_config() -> UpgradeConfig:
    """Build an UpgradeConfig from vars.py (environment / .env)."""
    from . import vars as v

    return UpgradeConfig(
        source_series=v.SOURCE_SERIES,
        target_series=v.TARGET_SERIES,
        min_free_gb=v.MIN_FREE_GB,
        config_dirs=tuple(v.CONFIG_DIRS),
        backup_dir=v.BACKUP_DIR,
        service_name=v.SERVICE_NAME,
        service_settle_seconds=v.SERVICE_SETTLE_SECONDS,
        password_file=v.PASSWORD_FILE,
        repo_setup_url=v.REPO_SETUP_URL,
        repo_setup_sha256=v.REPO_SETUP_SHA256,
    )
