from __future__ import annotations

import gzip
import json
import logging
import zlib
from pathlib import Path
from typing import Any, Dict, Iterator, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class LineSourceError(Exception):
    """Raised when a dataset file cannot be opened or decompressed."""


def iter_lines(path: PathLike) -> Iterator[str]:
    """
    Stream the lines of a gzip-compressed text file, in file order.

    Each call opens the file again, so two scans of the same file within one
    request are fully independent. Errors are raised as LineSourceError
    (never a silently truncated stream).
    """
    p = Path(path)
    try:
        # Invalid UTF-8 decodes to U+FFFD; the line still reaches the JSON check
        with gzip.open(p, "rt", encoding="utf-8", errors="replace") as fh:
            for line in fh:
                yield line.rstrip("\r\n")
    except (OSError, EOFError, zlib.error) as exc:
        raise LineSourceError(f"Failed to read {p}: {exc}") from exc


def iter_records(path: PathLike) -> Iterator[Dict[str, Any]]:
    """
    Yield one dict per well-formed JSON line.

    Blank lines, lines that are not valid JSON and JSON values that are not
    objects are skipped.
    """
    skipped = 0
    for line in iter_lines(path):
        if not line.strip():
            continue
        try:
            row = json.loads(line)
        except (ValueError, RecursionError):
            skipped += 1
            continue
        if not isinstance(row, dict):
            skipped += 1
            continue
        yield row

    if skipped:
        logger.debug("Skipped %s malformed line(s) in %s", skipped, path)
