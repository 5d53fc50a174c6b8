"""Utilities shared by pdfimagex modules."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable
from zipfile import ZIP_DEFLATED, ZipFile

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
    return logger


def set_log_level(level: int) -> None:
    """Apply *level* to every ``pdfimagex`` logger created so far."""

    for name in list(logging.root.manager.loggerDict):
        if name == "pdfimagex" or name.startswith("pdfimagex."):
            logging.getLogger(name).setLevel(level)


def resolve_path(path: str | Path | None) -> Path:
    if path is None:
        raise ValueError("Path must not be None")
    return Path(path).expanduser().resolve()


def ensure_output_parent(path: str | Path) -> Path:
    resolved = resolve_path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return resolved


def zip_outputs(files: Iterable[Path], destination: str | Path) -> Path:
    """Create a zip archive containing ``files`` at ``destination``."""

    target = ensure_output_parent(destination)
    with ZipFile(target, "w", compression=ZIP_DEFLATED) as archive:
        for file_path in files:
            archive.write(file_path, arcname=Path(file_path).name)
    return target


def format_file_size(size_bytes: float) -> str:
    """
    Format file size in human-readable format.

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string (e.g., "1.5 MB", "500 KB")
    """
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} PB"


__all__ = [
    "get_logger",
    "set_log_level",
    "resolve_path",
    "ensure_output_parent",
    "zip_outputs",
    "format_file_size",
]
