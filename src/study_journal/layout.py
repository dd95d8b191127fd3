import datetime
import logging
import os
import re
from pathlib import Path

from .constants import (
    APP_NAME,
    DATE_DIR_FORMAT,
    GIT_DIR_NAME,
    RECORD_EXTENSION,
    TIME_FILE_FORMAT,
)
from .errors import DirectoryError, ErrorCode

logger = logging.getLogger(APP_NAME)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]")


def sanitize_topic(topic: str) -> str:
    """Replaces every non-alphanumeric character with an underscore.

    Args:
        topic (str): The free-text session topic.

    Returns:
        str: A filesystem-safe fragment of the same length.
    """
    return _UNSAFE_CHARS.sub("_", topic)


def new_record_path(base: Path, topic: str, when: datetime.datetime) -> Path:
    """Computes (and prepares) the on-disk location of a new record.

    The record lands in a per-day subdirectory, e.g.
    ``base/2026-10-19/14-03-07_Graphs.md``. Two sessions saved within the
    same second under the same sanitized topic resolve to the same path.

    Args:
        base (Path): The journal root directory.
        topic (str): The session topic.
        when (datetime.datetime): The session start time.

    Returns:
        Path: The absolute path the document should be written to.

    Raises:
        DirectoryError: If the day directory cannot be created.
    """
    day_dir = Path(base) / when.strftime(DATE_DIR_FORMAT)
    try:
        day_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryError(
            ErrorCode.NOT_ACCESSIBLE, f"Cannot create directory {day_dir}: {e}"
        ) from e

    filename = f"{when.strftime(TIME_FILE_FORMAT)}_{sanitize_topic(topic)}"
    return day_dir / f"{filename}{RECORD_EXTENSION}"


def list_all_records(base: Path) -> list[Path]:
    """Recursively lists every record document under `base`.

    The git metadata directory is never descended into. Order follows the
    filesystem traversal; callers sort.

    Args:
        base (Path): The journal root directory.

    Returns:
        list[Path]: Paths of all files ending in the record extension.

    Raises:
        DirectoryError: NOT_ACCESSIBLE if `base` is not a readable directory,
            READ_FAILED if the walk itself fails.
    """
    base = Path(base)
    try:
        readable = base.is_dir() and os.access(base, os.R_OK | os.X_OK)
    except OSError as e:
        raise DirectoryError(
            ErrorCode.NOT_ACCESSIBLE, f"Cannot read directory {base}: {e}"
        ) from e
    if not readable:
        raise DirectoryError(
            ErrorCode.NOT_ACCESSIBLE, f"Cannot read directory {base}"
        )

    def _on_error(e: OSError) -> None:
        raise DirectoryError(
            ErrorCode.READ_FAILED, f"Failed while reading {e.filename}: {e}"
        ) from e

    records = []
    for root, dirs, files in os.walk(base, onerror=_on_error):
        # Prune in place so os.walk skips the repository internals.
        dirs[:] = [d for d in dirs if d != GIT_DIR_NAME]
        for name in files:
            if name.endswith(RECORD_EXTENSION):
                records.append(Path(root) / name)
    return records
