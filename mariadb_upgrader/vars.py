# vars.py – central runtime configuration
# All values are read from environment variables so that operators and
# automation (Ansible, cloud-init, CI jobs) can inject them without editing code.

from __future__ import annotations
import os
from pathlib import Path
from dotenv import load_dotenv

# ---------- .env loading ----------
script_dir = Path(__file__).parent

env_loaded = False
env_paths = [
    script_dir / '.env',           # Same directory as vars.py
    script_dir.parent / '.env',    # Parent directory
    Path.cwd() / '.env',           # Current working directory
]
for env_path in env_paths:
    if env_path.exists():
        load_dotenv(env_path)
        env_loaded = True
        break

def _env_bool(name: str, default: bool = False) -> bool:
    """Convert 0/1, false/true, yes/no to a real bool."""
    return os.getenv(name, str(default)).strip().lower() in {"1", "true", "yes", "y"}

def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default

def _env_list(name: str, default: str, sep: str = ":") -> list[str]:
    raw = os.getenv(name, default)
    return [p.strip() for p in raw.split(sep) if p.strip()]

# ---------- Target host (empty = this machine) ----------
UPGRADE_HOST        = os.getenv("MARIADB_UPGRADE_HOST", "")
SSH_USER            = os.getenv("MARIADB_UPGRADE_SSH_USER", "root")
SSH_PASSWORD        = os.getenv("MARIADB_UPGRADE_SSH_PASSWORD", "")
SSH_KEY_FILE        = os.getenv("MARIADB_UPGRADE_SSH_KEY_FILE", "")
SSH_KEY_PASSPHRASE  = os.getenv("MARIADB_UPGRADE_SSH_KEY_PASSPHRASE", "")
SSH_PORT            = _env_int("MARIADB_UPGRADE_SSH_PORT", 22)

# ---------- Upgrade lane ----------
SOURCE_SERIES       = os.getenv("MARIADB_SOURCE_SERIES", "10.3")
TARGET_SERIES       = os.getenv("MARIADB_TARGET_SERIES", "10.6")

# ---------- Pre-flight thresholds ----------
MIN_FREE_GB         = _env_int("MARIADB_MIN_FREE_GB", 5)
CONFIG_DIRS         = _env_list("MARIADB_CONFIG_DIRS", "/etc/mysql")

# ---------- Backup / service ----------
BACKUP_DIR          = os.getenv("MARIADB_BACKUP_DIR", "/home/dbs/databases")
SERVICE_NAME        = os.getenv("MARIADB_SERVICE_NAME", "mariadb")
SERVICE_SETTLE_SECONDS = _env_int("MARIADB_SERVICE_SETTLE_SECONDS", 30)
PASSWORD_FILE       = os.getenv("CYBERPANEL_PASSWORD_FILE", "/etc/cyberpanel/mysqlPassword")

# ---------- Vendor repository bootstrap ----------
REPO_SETUP_URL      = os.getenv(
    "MARIADB_REPO_SETUP_URL",
    "https://r.mariadb.com/downloads/mariadb_repo_setup",
)
REPO_SETUP_SHA256   = os.getenv("MARIADB_REPO_SETUP_SHA256", "")

# ---------- Logging (consumed by utils.get_logger) ----------
LOG_LEVEL           = os.getenv("LOG_LEVEL", "INFO")             # DEBUG/INFO/WARN/ERROR
LOG_PATH            = os.getenv("LOG_PATH", "")
LOG_JSON            = _env_bool("LOG_JSON", False)

# ---------- Debug print when executed directly ----------
if __name__ == "__main__":
    print("=== Environment Variables Debug ===")
    print(f"env file loaded: {env_loaded}")
    print(f"UPGRADE_HOST: '{UPGRADE_HOST or '(local)'}'")
    print(f"SSH_USER: '{SSH_USER}'")
    print(f"SSH_PASSWORD: {'*' * len(SSH_PASSWORD) if SSH_PASSWORD else '(empty)'}")
    print(f"SSH_KEY_FILE: '{SSH_KEY_FILE}'")
    print(f"SSH_PORT: {SSH_PORT}")
    print(f"SOURCE_SERIES: '{SOURCE_SERIES}'")
    print(f"TARGET_SERIES: '{TARGET_SERIES}'")
    print(f"MIN_FREE_GB: {MIN_FREE_GB}")
    print(f"CONFIG_DIRS: {CONFIG_DIRS}")
    print(f"BACKUP_DIR: '{BACKUP_DIR}'")
    print(f"SERVICE_NAME: '{SERVICE_NAME}'")
    print(f"SERVICE_SETTLE_SECONDS: {SERVICE_SETTLE_SECONDS}")
    print(f"PASSWORD_FILE: '{PASSWORD_FILE}'")
    print(f"REPO_SETUP_URL: '{REPO_SETUP_URL}'")
    print(f"REPO_SETUP_SHA256: '{REPO_SETUP_SHA256 or '(not pinned)'}'")
    print(f"LOG_LEVEL: '{LOG_LEVEL}'")
    print(f"LOG_PATH: '{LOG_PATH}'")
    print(f"LOG_JSON: {LOG_JSON}")

    if REPO_SETUP_URL and not REPO_SETUP_URL.startswith("https://"):
        print(f"❌ REPO_SETUP_URL should use https://: {REPO_SETUP_URL}")
