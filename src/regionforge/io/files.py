"""File helpers shared by the readers.

- Forward-only text streams that transparently decompress ``.gz`` files
- Combining an explicit file list with a list file, without duplicates
- MD5 checksums for logging input identity
"""

from __future__ import annotations

import gzip
import hashlib
import io
import logging
import re
from pathlib import Path
from typing import IO, Iterable

logger = logging.getLogger(__name__)

_GZIP_SUFFIX = re.compile(r"\.[gG][zZ]$")

# Read size for checksums
_CHUNK_SIZE = 1 << 20


def is_gzipped(path: Path | str) -> bool:
    """Whether the file name marks it as gzip-compressed."""
    return bool(_GZIP_SUFFIX.search(str(path)))


def open_text(path: Path | str) -> IO[str]:
    """Open a text file for streaming, decompressing ``.gz`` files.

    Args:
        path: File to open.

    Returns:
        Text handle; use as a context manager.
    """
    if is_gzipped(path):
        return io.TextIOWrapper(gzip.open(path, "rb"), encoding="utf-8")
    return open(path, encoding="utf-8")


def md5sum(path: Path | str) -> str:
    """Hex MD5 digest of a file's bytes."""
    digest = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def lines_from_file(path: Path | str) -> list[str]:
    """Read stripped, non-empty lines from a small text file."""
    with open_text(path) as f:
        return [line.strip() for line in f if line.strip()]


def consolidate_file_list(
    list_file: Path | str | None,
    files: Iterable[Path | str],
    require_exists: bool = True,
) -> list[Path]:
    """Combine files named in a list file with explicitly given files.

    Order is preserved (list file first). Duplicates are dropped with a
    warning. When ``require_exists`` is set, missing files are dropped with
    a warning too.

    Args:
        list_file: Text file with one path per line, or None.
        files: Explicitly supplied paths.
        require_exists: Drop paths that do not exist.

    Returns:
        Unique paths in processing order.
    """
    candidates: list[str] = []
    if list_file is not None:
        candidates.extend(lines_from_file(list_file))
    candidates.extend(str(f) for f in files)

    seen: set[str] = set()
    result: list[Path] = []
    for name in candidates:
        if name in seen:
            logger.warning(f"Duplicate file specified: {name}")
            continue
        seen.add(name)
        path = Path(name)
        if require_exists and not path.exists():
            logger.warning(f"File not found, skipping: {name}")
            continue
        result.append(path)
    return result
