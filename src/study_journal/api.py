"""Request/response handlers consumed by the UI layer.

Each handler takes and returns plain JSON-compatible values and never raises
for expected failures; the outcome is carried in the response instead.
A response with ``success: True`` and an ``error`` string denotes a save that
succeeded locally but hit a non-fatal sync warning.
"""

import logging
from pathlib import Path
from typing import Any

from . import ops
from .codec import SessionRecord
from .config import ConfigStore, RepositoryConfig
from .constants import APP_NAME
from .errors import ConfigError, FatalSaveError, NotConfiguredError
from .sync import RepositorySynchronizer

logger = logging.getLogger(APP_NAME)


def get_config(store: ConfigStore | None = None) -> dict[str, str]:
    """Returns the persisted config as ``{savePath, gitRepoUrl}``."""
    return (store or ConfigStore()).load().to_payload()


def save_config(
    payload: dict[str, Any], store: ConfigStore | None = None
) -> dict[str, Any]:
    """Persists the config, then prepares the directory and probes the remote.

    The config counts as saved even when preparation or the probe fails;
    those problems are reported in ``error`` next to ``success: True``.
    """
    store = store or ConfigStore()
    try:
        config = store.save(RepositoryConfig.from_payload(payload))
    except ConfigError as e:
        return {"success": False, "error": str(e)}

    if not config.is_configured:
        return {"success": True}

    report = RepositorySynchronizer(
        Path(config.save_path), config.git_repo_url
    ).check_remote()

    problems = [w.message for w in report.warnings]
    if fatal := report.fatal:
        problems.append(fatal.message)
    if problems:
        return {"success": True, "error": "; ".join(problems)}
    return {"success": True}


def save_log(payload: dict[str, Any], store: ConfigStore | None = None) -> dict[str, Any]:
    """Saves a completed session from a record-like payload."""
    try:
        record = SessionRecord.from_payload(payload)
    except ValueError as e:
        return {"success": False, "error": str(e)}

    try:
        result = ops.save_session(record, store=store)
    except (NotConfiguredError, FatalSaveError) as e:
        return {"success": False, "error": str(e)}

    response: dict[str, Any] = {"success": True, "path": str(result.path)}
    if result.warnings:
        response["error"] = "; ".join(result.warnings)
    return response


def get_logs(store: ConfigStore | None = None) -> list[dict[str, Any]]:
    """Returns the session history, newest first."""
    return [entry.to_payload() for entry in ops.list_sessions(store=store)]
