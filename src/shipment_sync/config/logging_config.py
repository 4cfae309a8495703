from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union
import os
import sys

ROOT_LOGGER_NAME = "shipment_sync"

# timestamp | level | logger | message
_DEFAULT_FMT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}

# Chatty third-party loggers kept at WARNING unless we are debugging.
_NOISY = ("urllib3", "sqlalchemy.engine")


def _coerce_level(level: Optional[Union[int, str]]) -> int:
    """
    Accepts logging levels as int or str (e.g., 'INFO', 'debug').
    Falls back to LOG_LEVEL env, then INFO.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL") or None

    if isinstance(level, int):
        return level
    if isinstance(level, str):
        return _LEVELS.get(level.strip().upper(), logging.INFO)
    return logging.INFO


def get_logger(
    name: Optional[str] = ROOT_LOGGER_NAME,
    *,
    level: Optional[Union[int, str]] = None,
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    propagate: bool = False,
    fmt: str = _DEFAULT_FMT,
    datefmt: str = _DEFAULT_DATEFMT,
    max_bytes: int = 5_000_000,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Create/configure a logger. Safe to call multiple times:
    - Won't duplicate existing handlers
    - Will add missing targets (e.g., add file later)

    Child loggers (shipment_sync.api.shiprocket, ...) inherit these handlers.
    """
    logger = logging.getLogger(name)
    resolved = _coerce_level(level)
    logger.setLevel(resolved)
    logger.propagate = propagate

    for noisy in _NOISY:
        logging.getLogger(noisy).setLevel(
            logging.DEBUG if resolved <= logging.DEBUG else logging.WARNING)

    formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    def _has_console() -> bool:
        for h in logger.handlers:
            if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler):
                if getattr(h, "stream", None) in (sys.stderr, sys.stdout):
                    return True
        return False

    def _has_file(path: Path) -> bool:
        for h in logger.handlers:
            if isinstance(h, RotatingFileHandler):
                if Path(h.baseFilename) == path.resolve():
                    return True
        return False

    if console and not _has_console():
        sh = logging.StreamHandler(stream=sys.stderr)
        sh.setFormatter(formatter)
        sh.setLevel(resolved)
        logger.addHandler(sh)

    if log_file is not None:
        log_path = Path(log_file)
        if not _has_file(log_path):
            log_path.parent.mkdir(parents=True, exist_ok=True)
            fh = RotatingFileHandler(
                filename=str(log_path),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
                delay=True,
            )
            fh.setFormatter(formatter)
            fh.setLevel(resolved)
            logger.addHandler(fh)

    return logger


def truncate(text: Optional[str], limit: int = 4000) -> Optional[str]:
    """Clip long carrier bodies before they hit the log."""
    if text and len(text) > limit:
        return text[:limit] + "..."
    return text
