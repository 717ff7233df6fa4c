"""
Logging helpers.

The unwrapper is usually driven from the CLI or embedded in a host tool, so
logs go to a stable file location by default. Numerical fallbacks (skipped
triangles, capped solver iterations) are recovered silently by the solver;
logging is how they stay visible.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from pathlib import Path
from typing import Optional

ENV_LOG_LEVEL = "LSCM_UNWRAP_LOG_LEVEL"
ENV_LOG_DIR = "LSCM_UNWRAP_LOG_DIR"

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s [%(name)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"

_CONSOLE_HANDLER_NAME = "lscm_unwrap.console"

_LOG_ONCE_KEYS: set[str] = set()
_LOG_ONCE_LOCK = threading.Lock()


def default_log_dir() -> Path:
    """로그 디렉터리 (환경 변수 > OS별 기본 위치)"""
    override = os.environ.get(ENV_LOG_DIR)
    if override:
        return Path(override)

    if os.name == "nt":
        base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA") or str(Path.home())
        return Path(base) / "LscmUnwrap" / "logs"

    state_home = os.environ.get("XDG_STATE_HOME")
    base_dir = Path(state_home) if state_home else Path.home() / ".local" / "state"
    return base_dir / "lscm-unwrap" / "logs"


def _parse_log_level(level: str | int) -> int:
    if isinstance(level, int):
        return int(level)
    value = str(level).strip().upper()
    if not value:
        return logging.INFO
    resolved = getattr(logging, value, None)
    return int(resolved) if isinstance(resolved, int) else logging.INFO


def current_log_path() -> Optional[Path]:
    """Path of the file handler attached to the root logger, if any."""
    for handler in logging.getLogger().handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)
    return None


def _attach_console(root: logging.Logger, level: int) -> None:
    for handler in root.handlers:
        if handler.get_name() == _CONSOLE_HANDLER_NAME:
            handler.setLevel(level)
            return
    console = logging.StreamHandler(sys.stderr)
    console.set_name(_CONSOLE_HANDLER_NAME)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)


def setup_logging(
    *,
    log_level: str | int = "INFO",
    log_dir: Optional[str | Path] = None,
    filename: str = "lscm_unwrap.log",
    console_level: Optional[str | int] = None,
) -> Optional[Path]:
    """
    Configure root logging to a UTF-8 file.

    Idempotent: an existing FileHandler is reused, and the optional stderr
    handler (``console_level``) is attached at most once.

    Returns:
        로그 파일 경로, 파일을 만들 수 없으면 None
    """
    root = logging.getLogger()

    if console_level is not None:
        _attach_console(root, _parse_log_level(console_level))

    existing = current_log_path()
    if existing is not None:
        return existing

    level = _parse_log_level(os.environ.get(ENV_LOG_LEVEL) or log_level)
    root.setLevel(level)

    log_path = (Path(log_dir) if log_dir is not None else default_log_dir()) / filename
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_path), encoding="utf-8")
    except OSError:
        return None

    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    root.info("Logging initialized: %s (level=%s)", log_path, logging.getLevelName(level))
    return log_path


def format_failure_message(message: str, *, log_path: Optional[Path]) -> str:
    if log_path is None:
        return message
    return f"{message} (log: {log_path})"


def log_once(
    logger: logging.Logger,
    key: str,
    level: int,
    msg: str,
    *args,
    exc_info: bool | BaseException | None = None,
) -> bool:
    """
    Logs at most once per process for the given key.

    Keeps per-island warnings from flooding the log on meshes with many
    islands while still recording the first occurrence.
    """
    k = str(key)
    with _LOG_ONCE_LOCK:
        if k in _LOG_ONCE_KEYS:
            return False
        _LOG_ONCE_KEYS.add(k)

    logger.log(level, msg, *args, exc_info=exc_info)
    return True
