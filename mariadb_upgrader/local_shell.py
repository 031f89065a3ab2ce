from __future__ import annotations

import os
import shutil
import subprocess
import tempfile

from .utils import get_logger, preview, redact


class LocalShell:
    """Runs upgrade commands on this machine with the same API as ``SSH``."""

    def __init__(self, shell: str = "/bin/bash"):
        self.shell = shell
        self.secrets: list[str] = []
        self.log = get_logger()

    def describe(self) -> str:
        return "localhost"

    def add_secret(self, secret: str) -> None:
        if secret and secret not in self.secrets:
            self.secrets.append(secret)

    def run(self, cmd: str, check: bool = True, trace: bool = True) -> str:
        """Run *cmd* through the shell. Return stdout (stripped)."""
        stdout, stderr, rc = self.run_full(cmd, trace=trace)
        if check and rc:
            safe_cmd = redact(cmd, self.secrets)
            err_preview = redact(preview(stderr), self.secrets)
            raise RuntimeError(f"[{safe_cmd}] failed (rc={rc}):\n{err_preview}")
        return stdout.strip()

    def run_with_status(self, cmd: str, trace: bool = True) -> tuple[str, int]:
        """Run *cmd* and return (stdout, exit_status). Never raises."""
        stdout, _stderr, rc = self.run_full(cmd, trace=trace)
        return stdout.strip(), rc

    def run_full(self, cmd: str, trace: bool = True) -> tuple[str, str, int]:
        """Run *cmd* and return (stdout, stderr, exit_status) without raising."""
        proc = subprocess.run(
            cmd,
            shell=True,
            executable=self.shell,
            capture_output=True,
            text=True,
            errors="replace",
        )
        if trace:
            safe_cmd = redact(cmd, self.secrets)
            if proc.returncode == 0:
                self.log.debug(f"{safe_cmd} -> rc=0, out='{redact(preview(proc.stdout), self.secrets)}'")
            else:
                self.log.debug(f"{safe_cmd} -> rc={proc.returncode}, err='{redact(preview(proc.stderr), self.secrets)}'")
        return proc.stdout, proc.stderr, proc.returncode

    def put_file(self, local_path: str, remote_path: str) -> None:
        """Copy *local_path* to *remote_path*, creating parent directories."""
        parent = os.path.dirname(remote_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=parent or ".", prefix=".upload_")
        try:
            with os.fdopen(fd, "wb") as dst, open(local_path, "rb") as src:
                shutil.copyfileobj(src, dst)
            # replaces a symlink at remote_path instead of writing through it
            os.replace(tmp, remote_path)
        except OSError:
            os.unlink(tmp)
            raise
        self.log.debug(f"Copied {local_path} to {remote_path}")

    def close(self):
        pass
