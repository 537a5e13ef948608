"""
discovery — Find the batch: files in one directory with the active extension.

Sorted by name; this is the enumeration order every later stage uses.
"""
from __future__ import annotations
from pathlib import Path
from typing import List

import structlog

from .errors import NoMatchingFiles

log = structlog.get_logger()


def normalize_extension(ext: str) -> str:
    return ext.strip().lstrip(".").lower()


def find_media_files(root: Path, extension: str) -> List[Path]:
    """Non-recursive; hidden files (including our own temp files) are skipped."""
    suffix = "." + normalize_extension(extension)
    files = [
        p for p in Path(root).iterdir()
        if p.is_file() and not p.name.startswith(".") and p.suffix.lower() == suffix
    ]
    return sorted(files, key=lambda p: p.name)


def discover(root: Path, extension: str) -> List[Path]:
    files = find_media_files(root, extension)
    if not files:
        raise NoMatchingFiles(Path(root), normalize_extension(extension))
    log.info("discovered", root=str(root), extension=extension, files=len(files))
    return files
