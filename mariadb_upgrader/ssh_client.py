from __future__ import annotations
from errno import ENOENT

import base64
import posixpath
import paramiko
from .utils import get_logger, preview, redact


class SSH:
    """Thin wrapper around Paramiko for running the upgrade on a remote host."""

    def __init__(
        self,
        host: str,
        user: str,
        pw: str | None = None,
        *,
        key_filename: str | None = None,
        pkey: paramiko.PKey | None = None,
        allow_agent: bool = True,
        look_for_keys: bool = True,
        port: int = 22,
        timeout: int = 30,
    ):
        """
        :param timeout: socket timeout in seconds for the initial SSH handshake.
            Commands themselves run without a timeout; dumps and
            mariadb-upgrade may legitimately take hours.
        """
        self.cli = paramiko.SSHClient()
        self.cli.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        self.host = host
        self.user = user
        self.secrets: list[str] = []
        self.log = get_logger()

        # If password or explicit key provided, don't trawl local agent/known keys,
        # because Paramiko may crash on broken agent keys (public_blob AttributeError).
        auto_keys = look_for_keys
        auto_agent = allow_agent
        if pw or key_filename or pkey:
            auto_keys = False
            auto_agent = False

        connect_kwargs = dict(
            hostname=host,
            port=port,
            username=user,
            timeout=timeout,
            look_for_keys=auto_keys,
            allow_agent=auto_agent,
        )
        if key_filename:
            connect_kwargs["key_filename"] = key_filename
        if pkey is not None:
            connect_kwargs["pkey"] = pkey
        if pw:
            connect_kwargs["password"] = pw

        try:
            self.cli.connect(**connect_kwargs)
        except (paramiko.SSHException, AttributeError) as e:
            # Works around "AttributeError: public_blob" from broken agent keys.
            if "public_blob" in str(e) or isinstance(e, AttributeError):
                self.log.info("SSH: retrying without agent/auto-keys due to broken agent key (public_blob).")
                connect_kwargs["allow_agent"] = False
                connect_kwargs["look_for_keys"] = False
                self.cli.connect(**connect_kwargs)
            else:
                raise

    def describe(self) -> str:
        return f"{self.user}@{self.host}"

    def add_secret(self, secret: str) -> None:
        """Register a value that must never appear in logs or error messages."""
        if secret and secret not in self.secrets:
            self.secrets.append(secret)

    # ------------------------------- exec -------------------------------- #

    def run(self, cmd: str, check: bool = True, trace: bool = True) -> str:
        """Run *cmd* on the remote host. Return stdout (stripped)."""
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
        _stdin, out, err = self.cli.exec_command(cmd)
        stdout = out.read().decode(errors="replace")
        stderr = err.read().decode(errors="replace")
        rc = out.channel.recv_exit_status()
        if trace:
            safe_cmd = redact(cmd, self.secrets)
            if rc == 0:
                self.log.debug(f"{safe_cmd} -> rc=0, out='{redact(preview(stdout), self.secrets)}'")
            else:
                self.log.debug(f"{safe_cmd} -> rc={rc}, err='{redact(preview(stderr), self.secrets)}'")
        return stdout, stderr, rc

    # ------------------------------ transfer ----------------------------- #

    def put_file(self, local_path: str, remote_path: str) -> None:
        """
        Upload a file from local_path to remote_path.
        1) Try SFTP (fast path).
        2) Fallback: base64 stream via shell (handles binary safely).
        """
        remote_path = remote_path.replace("\\", "/")
        remote_dir = posixpath.dirname(remote_path)

        try:
            sftp = self.cli.open_sftp()
            try:
                if remote_dir and remote_dir != "/":
                    self._mkdir_p_sftp(sftp, remote_dir)
                sftp.put(local_path, remote_path)
                self.log.info(f"Uploaded {local_path} to {remote_path} via SFTP")
                return
            finally:
                sftp.close()
        except (OSError, paramiko.SSHException) as e:
            self.log.warning(f"SFTP upload failed: {e}. Falling back to base64 streaming…")

        try:
            if remote_dir and remote_dir != "/":
                self.run(f"mkdir -p '{remote_dir}'")

            with open(local_path, "rb") as f:
                data_b64 = base64.b64encode(f.read()).decode("ascii")

            tmp_remote = self.run("mktemp -p /tmp .upload_XXXXXX", check=True)
            script = f"""set -e
umask 022
base64 -d > '{tmp_remote}' <<'__B64__'
{data_b64}
__B64__
mv -f '{tmp_remote}' '{remote_path}'
"""
            self.run(script, trace=False)
            self.log.info(f"Uploaded {local_path} to {remote_path} via base64 stream")
        except (OSError, RuntimeError, paramiko.SSHException) as e:
            raise RuntimeError(
                f"All upload methods failed for {local_path} -> {remote_path}: {e}"
            ) from e

    @staticmethod
    def _mkdir_p_sftp(sftp: paramiko.SFTPClient, remote_path: str) -> None:
        """Create a directory recursively via SFTP (idempotent)."""
        remote_path = remote_path.rstrip("/") or "/"
        parts = []
        while remote_path not in ("/", ""):
            parts.append(remote_path)
            remote_path = posixpath.dirname(remote_path)

        for path in reversed(parts):
            try:
                sftp.stat(path)
            except (OSError, paramiko.SSHException) as e:
                if getattr(e, "errno", None) not in (ENOENT, 2):
                    raise
                try:
                    sftp.mkdir(path)
                except (OSError, paramiko.SSHException):
                    # race: it may exist now
                    sftp.stat(path)

    # ----------------------------- housekeeping -------------------------- #

    def close(self):
        self.cli.close()
