"""Global constants and path definitions for Study Journal.

This module defines the filesystem layout (adhering to XDG standards where
applicable), the fixed commit identity, and the Git defaults applied to every
journal working copy.
"""

import os
from pathlib import Path

# --- Identity ---
APP_NAME = "study-journal"
"""str: The human-readable application name (also the logger name)."""

COMMIT_AUTHOR_NAME = "Study Journal"
"""str: The author name written into each working copy's local git config."""

COMMIT_AUTHOR_EMAIL = "study-journal@localhost"
"""str: The author email written into each working copy's local git config."""

# --- Paths ---
_XDG_STATE = os.environ.get("XDG_STATE_HOME")
_BASE_STATE = Path(_XDG_STATE) if _XDG_STATE else Path.home() / ".local/state"

STATE_DIR = _BASE_STATE / APP_NAME
"""Path: The directory for runtime state data (logs)."""

LOG_FILE = STATE_DIR / "journal.log"
"""Path: The file path for application logs."""

_XDG_CONFIG = os.environ.get("XDG_CONFIG_HOME")
_BASE_CONFIG = Path(_XDG_CONFIG) if _XDG_CONFIG else Path.home() / ".config"

CONFIG_DIR: Path = _BASE_CONFIG / APP_NAME
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = (
    Path(os.environ["STUDY_JOURNAL_CONFIG"])
    if os.environ.get("STUDY_JOURNAL_CONFIG")
    else CONFIG_DIR / "config.json"
)
"""Path: The JSON file holding the save directory and remote URL."""

# --- Records ---
RECORD_EXTENSION = ".md"
"""str: The file extension of session documents."""

DATE_DIR_FORMAT = "%Y-%m-%d"
"""str: strftime format of the per-day subdirectory."""

TIME_FILE_FORMAT = "%H-%M-%S"
"""str: strftime format of the time-of-day filename prefix."""

# --- Git ---
GIT_DIR_NAME = ".git"
"""str: The version-control metadata directory skipped during enumeration."""

PRIMARY_BRANCH = "main"
"""str: The canonical branch every working copy is normalized onto."""

REMOTE_NAME = "origin"
"""str: The remote the configured URL is registered under."""

# --- Limits ---
DEFAULT_NETWORK_TIMEOUT = 30
"""int: Seconds a fetch or push may run before it is abandoned."""

LOG_MAX_BYTES = 1024 * 1024
"""int: Max bytes for the log file before rotation."""

LOG_BACKUP_COUNT = 3
"""int: Number of rotated log files kept."""
