"""Reading bulk data files from disk."""

from __future__ import annotations

import logging
from pathlib import Path

from nasbulk.errors import BulkFileError

logger = logging.getLogger(__name__)


def read_lines(path: Path, encoding: str = "latin-1") -> list[str]:
    """Return the lines of ``path`` without line terminators."""
    try:
        with path.open("r", encoding=encoding) as handle:
            lines = handle.read().splitlines()
    except FileNotFoundError:
        raise BulkFileError(path, "file not found") from None
    except (OSError, UnicodeDecodeError) as exc:
        raise BulkFileError(path, str(exc)) from exc
    logger.debug("Read %d lines from %s", len(lines), path)
    return lines
