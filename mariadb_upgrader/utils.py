from __future__ import annotations

import json
import logging
import os
import shlex
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Iterable, Optional

# --------------------------------------------------------------------
# logging helpers
#   get_logger()  -> configured logger
#   log_step/ok/warn/fail/info -> routed to the logger
# --------------------------------------------------------------------

_LOGGER: Optional[logging.Logger] = None  # lazily configured

BANNER = "=" * 58


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def get_logger(name: str = "mariadb_upgrader") -> logging.Logger:
    """
    Create (once) and return a process-wide logger.
    Reads LOG_LEVEL, LOG_PATH, LOG_JSON from env or vars.py (if available).
    """
    global _LOGGER
    if _LOGGER is not None:
        return _LOGGER

    level_name = os.getenv("LOG_LEVEL", "INFO")
    log_path = os.getenv("LOG_PATH", "")
    json_mode = os.getenv("LOG_JSON", "0").lower() in {"1", "true", "yes", "y"}

    try:
        from . import vars as _vars  # type: ignore
        level_name = getattr(_vars, "LOG_LEVEL", level_name)
        log_path = getattr(_vars, "LOG_PATH", log_path)
        json_mode = getattr(_vars, "LOG_JSON", json_mode)
    except ImportError:
        pass

    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False  # don't duplicate to root

    # clear old handlers (idempotent)
    for h in list(logger.handlers):
        logger.removeHandler(h)

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)
    if json_mode:
        ch.setFormatter(_JsonFormatter())
    else:
        ch.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.addHandler(ch)

    if log_path:
        log_dir = os.path.dirname(log_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        fh = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
        fh.setLevel(level)
        if json_mode:
            fh.setFormatter(_JsonFormatter())
        else:
            fh.setFormatter(logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ))
        logger.addHandler(fh)

    _LOGGER = logger
    logger.debug("logger initialized")
    return logger


# -------- console helpers (log-only; honor LOG_LEVEL) --------

def _emit(kind: str, msg: str):
    logger = _LOGGER if _LOGGER is not None else get_logger()

    if kind == "warn":
        logger.warning(msg)
    elif kind == "fail":
        logger.error(msg)
    else:
        logger.info(msg)


def log_step(msg: str):
    """Stage banner between two rules."""
    _emit("info", BANNER)
    _emit("info", msg)
    _emit("info", BANNER)

def log_ok(msg: str):    _emit("ok", msg)
def log_warn(msg: str):  _emit("warn", msg)
def log_fail(msg: str):  _emit("fail", msg)
def log_info(msg: str):  _emit("info", msg)


# -------- small utilities --------

def redact(text: str, secrets: Iterable[str] | None = None) -> str:
    """
    Replace occurrences of secrets with '***' for safe logging.
    Both the raw and the shell-quoted spelling of each secret are masked.
    """
    if not text or not secrets:
        return text
    safe = text
    for s in secrets:
        if s:
            quoted = shlex.quote(s)
            if quoted != s:
                safe = safe.replace(quoted, "***")
            safe = safe.replace(s, "***")
    return safe


def preview(text: str, limit: int = 200) -> str:
    """Return a compact one-line preview for logs."""
    text = (text or "").replace("\n", "\\n")
    return (text[:limit] + "…") if len(text) > limit else text


def format_bytes(num: float) -> str:
    """Human readable size using 1024-based units (matches `df` arithmetic)."""
    for unit in ("B", "KB", "MB", "GB"):
        if abs(num) < 1024.0:
            return f"{num:.1f} {unit}"
        num /= 1024.0
    return f"{num:.1f} TB"
