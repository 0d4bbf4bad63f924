"""Root logger setup shared by the CLI and the API."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _level_from_name(level_name: str | int | None) -> int:
    if isinstance(level_name, int):
        return level_name
    if not level_name:
        return logging.INFO
    return getattr(logging, str(level_name).upper(), logging.INFO)


def _has_file_handler(root: logging.Logger, path: Path) -> bool:
    return any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(path.resolve())
        for handler in root.handlers
    )


def configure_logging(
    level: str | int = "INFO",
    log_file: Optional[str] = None,
    *,
    fmt: str = DEFAULT_FORMAT,
) -> None:
    """Set the root level and make sure console (and file) handlers exist.

    Safe to call more than once: existing handlers get the new level and no
    duplicate handlers are added.
    """

    numeric_level = _level_from_name(level)
    formatter = logging.Formatter(fmt)
    root = logging.getLogger()
    root.setLevel(numeric_level)
    for handler in root.handlers:
        handler.setLevel(numeric_level)

    if not root.handlers:
        console = logging.StreamHandler()
        console.setLevel(numeric_level)
        console.setFormatter(formatter)
        root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        if not _has_file_handler(root, path):
            file_handler = logging.FileHandler(path)
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)


__all__ = ["DEFAULT_FORMAT", "configure_logging"]
