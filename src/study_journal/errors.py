"""Error taxonomy for journal persistence and synchronization."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(str, Enum):
    """Stable codes carried by every journal error."""

    WRITE_FAILED = "WRITE_FAILED"
    READ_FAILED = "READ_FAILED"
    NOT_ACCESSIBLE = "NOT_ACCESSIBLE"
    NOT_CONFIGURED = "NOT_CONFIGURED"
    SAVE_FAILED = "SAVE_FAILED"


@dataclass
class JournalError(Exception):
    """Base exception carrying a code and a human-readable message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return self.message


class ConfigError(JournalError):
    """The configuration resource could not be written."""


class DirectoryError(JournalError):
    """The save location could not be created, read, or walked."""


class NotConfiguredError(JournalError):
    """No save directory has been configured yet."""

    def __init__(self, message: str = "Save path is not configured.") -> None:
        super().__init__(ErrorCode.NOT_CONFIGURED, message)


class FatalSaveError(JournalError):
    """A required save step failed; nothing was committed."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.SAVE_FAILED, message)


@dataclass(frozen=True)
class SyncWarning:
    """A best-effort synchronization step that failed without aborting the save.

    Attributes:
        step (str): The name of the pipeline step that degraded.
        message (str): A human-readable description of the failure.
    """

    step: str
    message: str

    def __str__(self) -> str:
        return self.message
