"""Crash-safe file writes for saved workflows."""

import json
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def atomic_write_text(file_path: Path, content: str, attempts: int = 3) -> None:
    """Replace ``file_path`` with ``content`` in a single rename.

    Readers see either the previous file or the new one, never a partial
    write. The temp file lives next to the target so the rename stays on one
    filesystem.

    Raises:
        OSError: If every attempt fails
    """
    file_path = Path(file_path)
    for attempt in range(1, attempts + 1):
        fd, tmp_name = tempfile.mkstemp(
            dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as tmp:
                tmp.write(content)
            os.replace(tmp_name, file_path)
            return
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            if attempt == attempts:
                logger.error(f"Giving up writing {file_path} after {attempts} attempts: {e}")
                raise
            logger.warning(f"Write to {file_path} failed (attempt {attempt}/{attempts}): {e}")


def atomic_write_json(file_path: Path, record: dict, indent: int = 2) -> None:
    """Write a plain record as JSON via ``atomic_write_text``."""
    atomic_write_text(file_path, json.dumps(record, indent=indent))
