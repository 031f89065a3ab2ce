from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .backup import BackupArtifact, BackupExecutor
from .config import UpgradeConfig
from .mariadb_version import MariaDBVersion, run_compatibility
from .preflight import run_preflight
from .schema import SchemaMigrator
from .service import ServiceController
from .utils import get_logger, log_step


@dataclass
class UpgradeReport:
    source_version: Optional[MariaDBVersion] = None
    databases: List[str] = field(default_factory=list)
    backups: List[BackupArtifact] = field(default_factory=list)
    final_version: str = ""
    elapsed_seconds: float = 0.0


class Upgrader:
    """Coordinates preflight, backup, package swap and schema migration.

    Preflight -> Compatibility -> Backup -> Shutdown -> PackageSwap ->
    Restart -> Upgrade -> ForceUpgrade -> Report. Each stage raises
    UpgradeError on failure and nothing after it runs.
    """

    def __init__(
        self,
        host,
        config: UpgradeConfig,
        backup: Optional[BackupExecutor] = None,
        service: Optional[ServiceController] = None,
        migrator: Optional[SchemaMigrator] = None,
    ):
        self.host = host
        self.config = config
        self.backup = backup or BackupExecutor(host, config.backup_dir)
        self.service = service or ServiceController(host, config)
        self.migrator = migrator or SchemaMigrator(host)
        self.log = get_logger()

    def check(self) -> Tuple[MariaDBVersion, List[str]]:
        """Read-only part of the run: preflight and compatibility."""
        run_preflight(self.host, self.config)
        return run_compatibility(self.host, self.config)

    def run(self) -> UpgradeReport:
        report = UpgradeReport()
        report.source_version, report.databases = self.check()

        report.backups = self.backup.run(report.databases)

        password = self.service.read_root_password()
        self.service.prepare_shutdown(password)
        self.service.stop()
        self.service.remove_packages()
        self.service.install()
        self.service.start()

        report.elapsed_seconds = self.migrator.run(password)
        report.final_version = self.migrator.installed_version(self.config.target_series)

        log_step(
            f"MariaDB upgrade process completed in {int(report.elapsed_seconds)} seconds. "
            "Please verify all databases are operational."
        )
        return report
