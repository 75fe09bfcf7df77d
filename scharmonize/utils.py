"""Shared utilities for scharmonize workflows."""

from __future__ import annotations

import logging
import os
from pathlib import Path


def ensure_dir(path: str) -> None:
    """Create a directory (and parents) if it does not exist."""
    if path == "":
        return
    os.makedirs(path, exist_ok=True)


def oxford(*items: object, join: str = "and") -> str:
    """Join items into an English list, using the Oxford comma.

    Args:
        *items: Values to join; empty strings are dropped.
        join: Either "and" or "or".

    Returns:
        The joined list, e.g. ``"red, green, and blue"``.

    >>> oxford("red")
    'red'
    >>> oxford("red", "blue", join="or")
    'red or blue'
    >>> oxford("red", "green", "blue")
    'red, green, and blue'
    """
    if join not in ("and", "or"):
        raise ValueError(f"join must be 'and' or 'or', got '{join}'.")
    args = [str(x) for x in items if str(x) != ""]
    if len(args) <= 1:
        return "".join(args)
    if len(args) == 2:
        return f" {join} ".join(args)
    return f"{', '.join(args[:-1])}, {join} {args[-1]}"


def setup_logger(log_path: Path, logger_name: str) -> logging.Logger:
    ensure_dir(log_path.parent.as_posix())
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
    fh = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    fh.setFormatter(formatter)
    logger.addHandler(fh)
    sh = logging.StreamHandler()
    sh.setFormatter(formatter)
    logger.addHandler(sh)
    return logger
