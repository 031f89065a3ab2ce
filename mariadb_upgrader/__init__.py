"""mariadb_upgrader – MariaDB 10.3 → 10.6 upgrader for CyberPanel hosts."""

from __future__ import annotations

# Re-exports for convenient imports at package level
from .cli import main
from .ssh_client import SSH
from .local_shell import LocalShell
from .config import UpgradeConfig, load_config
from .errors import CheckResult, UpgradeError
from .backup import BackupExecutor
from .service import ServiceController
from .schema import SchemaMigrator
from .upgrader import Upgrader, UpgradeReport

__all__ = [
    "main",
    "SSH",
    "LocalShell",
    "UpgradeConfig",
    "load_config",
    "CheckResult",
    "UpgradeError",
    "BackupExecutor",
    "ServiceController",
    "SchemaMigrator",
    "Upgrader",
    "UpgradeReport",
]

__version__ = "0.1.0"
