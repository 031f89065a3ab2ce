from __future__ import annotations

import posixpath
import shlex
from typing import List, NamedTuple, Sequence

from .errors import UpgradeError
from .utils import get_logger, log_ok, log_step

STAGE = "backup"

DUMP_FLAGS = ("--complete-insert", "--routines", "--triggers", "--single-transaction")


class BackupArtifact(NamedTuple):
    database: str
    path: str


class BackupExecutor:
    """Dumps every database to ``<backup_dir>/<name>.sql`` on the target host.

    Dumps are independent, but the first failure aborts the whole stage.
    Files already written are kept; nothing in this tool ever deletes them.
    """

    def __init__(self, host, backup_dir: str):
        self.host = host
        self.backup_dir = backup_dir.rstrip("/") or "/"
        self.log = get_logger()

    def artifact_path(self, database: str) -> str:
        return posixpath.join(self.backup_dir, f"{database}.sql")

    def ensure_dir(self) -> None:
        try:
            self.host.run(f"mkdir -p {shlex.quote(self.backup_dir)}")
        except RuntimeError as e:
            raise UpgradeError(STAGE, f"Cannot create backup directory {self.backup_dir}: {e}") from e

    def dump(self, database: str) -> BackupArtifact:
        path = self.artifact_path(database)
        cmd = " ".join(
            ["mysqldump", *DUMP_FLAGS, shlex.quote(database), ">", shlex.quote(path)]
        )
        _out, stderr, rc = self.host.run_full(cmd)
        if rc != 0:
            raise UpgradeError(
                STAGE,
                f"Backup of database '{database}' failed (rc={rc}): {stderr.strip()}",
            )
        return BackupArtifact(database, path)

    def run(self, databases: Sequence[str]) -> List[BackupArtifact]:
        log_step(f"Backing up all databases to {self.backup_dir}")
        self.ensure_dir()

        artifacts: List[BackupArtifact] = []
        for name in databases:
            self.log.info(f"Backing up {name}...")
            artifacts.append(self.dump(name))

        log_ok(f"Backup completed: {len(artifacts)} database(s) in {self.backup_dir}")
        return artifacts
