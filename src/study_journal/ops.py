import datetime
import logging
from dataclasses import dataclass, field
from pathlib import Path

from . import codec, layout
from .codec import SessionRecord
from .config import ConfigStore
from .constants import APP_NAME
from .errors import DirectoryError, FatalSaveError, NotConfiguredError
from .sync import RepositorySynchronizer

logger = logging.getLogger(APP_NAME)


@dataclass
class SaveResult:
    """Outcome of a successful save.

    Attributes:
        path (Path): Where the document was written.
        warnings (list[str]): Non-fatal problems (e.g. a failed push).
    """

    path: Path
    warnings: list[str] = field(default_factory=list)


@dataclass
class HistorySummary:
    """One line of the session history.

    Attributes:
        id (str): The record path relative to the save directory.
        date (str): The raw date recorded in the document header.
        topic (str): The session topic.
        duration_minutes (int): Session length, 0 if unknown.
        acquisition (str): The "Acquisition" section.
    """

    id: str
    date: str
    topic: str
    duration_minutes: int
    acquisition: str

    def to_payload(self) -> dict[str, str | int]:
        return {
            "id": self.id,
            "date": self.date,
            "topic": self.topic,
            "duration": self.duration_minutes,
            "acquisition": self.acquisition,
        }


def save_session(record: SessionRecord, store: ConfigStore | None = None) -> SaveResult:
    """Writes a session document and commits it to the journal repository.

    Steps:
    1. Prepare the working copy (directory, repository, identity, branch, remote).
    2. Render and write the document into its day directory.
    3. Commit, then push if a remote is configured.

    Args:
        record (SessionRecord): The completed session.
        store (ConfigStore | None, optional): Config source. Defaults to the
            user's config file.

    Returns:
        SaveResult: The written path plus any non-fatal sync warnings.

    Raises:
        NotConfiguredError: If no save directory has been configured.
        FatalSaveError: If the directory, repository, write, or commit failed.
    """
    config = (store or ConfigStore()).load()
    if not config.is_configured:
        raise NotConfiguredError()

    synchronizer = RepositorySynchronizer.from_config(config)
    warnings: list[str] = []

    # 1. Working copy must be valid before anything is written.
    report = synchronizer.prepare()
    if fatal := report.fatal:
        raise FatalSaveError(fatal.message)

    # 2. Write the document.
    try:
        target = layout.new_record_path(
            synchronizer.path, record.topic, record.started_at
        )
    except DirectoryError as e:
        raise FatalSaveError(str(e)) from e

    if target.exists():
        msg = f"Overwrote existing record {target.name} (same second and topic)."
        logger.warning(f"COLLISION: {msg}")
        warnings.append(msg)

    try:
        target.write_text(codec.render(record), encoding="utf-8")
    except OSError as e:
        logger.error(f"WRITE ERROR {target}: {e}")
        raise FatalSaveError(f"Failed to write {target}: {e}") from e

    # 3. Commit and push.
    report.extend(synchronizer.record(record.commit_message))
    if fatal := report.fatal:
        raise FatalSaveError(fatal.message)

    warnings.extend(w.message for w in report.warnings)
    logger.info(f"SAVED: {target} ({len(warnings)} warning(s))")
    return SaveResult(path=target, warnings=warnings)


def _sort_key(summary: tuple[HistorySummary, datetime.datetime | None]) -> datetime.datetime:
    return summary[1] or datetime.datetime.min


def list_sessions(store: ConfigStore | None = None) -> list[HistorySummary]:
    """Lists every stored session, newest first.

    Never raises: an unconfigured or missing directory yields an empty list,
    and unreadable files are skipped.

    Args:
        store (ConfigStore | None, optional): Config source. Defaults to the
            user's config file.

    Returns:
        list[HistorySummary]: Summaries sorted by date, descending. Records
        without a parseable date sort last.
    """
    config = (store or ConfigStore()).load()
    if not config.is_configured:
        return []

    base = Path(config.save_path)
    try:
        if not base.exists():
            return []
    except OSError as e:
        logger.error(f"HISTORY ERROR: Cannot access {base}: {e}")
        return []

    try:
        paths = layout.list_all_records(base)
    except DirectoryError as e:
        logger.error(f"HISTORY ERROR: {e}")
        return []

    entries = []
    for path in paths:
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"Skipping unreadable record {path}: {e}")
            continue

        parsed = codec.parse(text)
        summary = HistorySummary(
            id=path.relative_to(base).as_posix(),
            date=parsed.date,
            topic=parsed.topic,
            duration_minutes=parsed.duration_minutes,
            acquisition=parsed.acquisition,
        )
        entries.append((summary, parsed.started_at))

    entries.sort(key=_sort_key, reverse=True)
    return [summary for summary, _ in entries]
