import contextlib
import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .constants import APP_NAME, CONFIG_FILE, DEFAULT_NETWORK_TIMEOUT
from .errors import ConfigError, ErrorCode

logger = logging.getLogger(APP_NAME)

# JSON key -> dataclass attribute
_FIELDS = {
    "savePath": "save_path",
    "gitRepoUrl": "git_repo_url",
}


def parse_time(value: int | str) -> int:
    """Converts human-readable time strings (e.g., '45s', '2min') to seconds."""
    if isinstance(value, int):
        return value
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)?s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2) or "s"
    multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    return int(num * multiplier[unit])


def network_timeout() -> int:
    """Resolves the fetch/push timeout, honouring STUDY_JOURNAL_GIT_TIMEOUT."""
    raw = os.environ.get("STUDY_JOURNAL_GIT_TIMEOUT")
    if not raw:
        return DEFAULT_NETWORK_TIMEOUT
    try:
        seconds = parse_time(raw)
    except ValueError as e:
        logger.warning(
            f"Config error in STUDY_JOURNAL_GIT_TIMEOUT: {e}. Falling back to default."
        )
        return DEFAULT_NETWORK_TIMEOUT
    if seconds <= 0:
        logger.warning(
            "STUDY_JOURNAL_GIT_TIMEOUT must be positive. Falling back to default."
        )
        return DEFAULT_NETWORK_TIMEOUT
    return seconds


@dataclass
class RepositoryConfig:
    """Where session records are stored and where they are pushed.

    Attributes:
        save_path (str): Absolute directory of the journal working copy.
            Empty means "not configured yet".
        git_repo_url (str): Remote repository URL. Empty means "local only".
    """

    save_path: str = ""
    git_repo_url: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.save_path)

    def to_payload(self) -> dict[str, str]:
        """Renders the config using its persisted JSON keys."""
        return {key: getattr(self, attr) for key, attr in _FIELDS.items()}

    @classmethod
    def from_payload(cls, data: Any) -> "RepositoryConfig":
        """Builds a config from a JSON-like mapping, ignoring bad fields.

        Args:
            data (Any): The decoded JSON object.

        Returns:
            RepositoryConfig: A config with every invalid field left at default.
        """
        instance = cls()
        if not isinstance(data, dict):
            logger.warning(
                f"Config payload is a {type(data).__name__}, not an object. "
                "Using defaults."
            )
            return instance

        unknown = set(data.keys()) - set(_FIELDS)
        if unknown:
            logger.warning(
                f"Unknown config keys: {', '.join(sorted(map(str, unknown)))}. Ignoring."
            )

        for key, attr in _FIELDS.items():
            value = data.get(key, "")
            if value is None:
                continue
            if not isinstance(value, str):
                logger.warning(
                    f"Config error in {key}: expected a string. Falling back to default."
                )
                continue
            setattr(instance, attr, value.strip())
        return instance

    def normalized(self) -> "RepositoryConfig":
        """Returns a copy with the save path made absolute."""
        save_path = self.save_path.strip()
        if save_path:
            save_path = str(Path(save_path).expanduser().resolve())
        return RepositoryConfig(
            save_path=save_path, git_repo_url=self.git_repo_url.strip()
        )


class ConfigStore:
    """Loads and persists the process-wide RepositoryConfig.

    The file is re-read on every `load()`; nothing is cached, so callers
    always observe the latest saved value.

    Attributes:
        path (Path): The JSON configuration file.
    """

    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path is not None else CONFIG_FILE

    def load(self) -> RepositoryConfig:
        """Reads the persisted configuration.

        Returns:
            RepositoryConfig: The stored config, or defaults if the file is
            missing, unreadable, or malformed.
        """
        try:
            content = self.path.read_text(encoding="utf-8")
            if not content.strip():
                return RepositoryConfig()
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"Config syntax error in {self.path}: {e}")
            return RepositoryConfig()
        except FileNotFoundError:
            return RepositoryConfig()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to load config from {self.path}: {e}")
            return RepositoryConfig()

        return RepositoryConfig.from_payload(data)

    def save(self, config: RepositoryConfig) -> RepositoryConfig:
        """Persists the configuration to disk atomically.

        Args:
            config (RepositoryConfig): The configuration to store.

        Returns:
            RepositoryConfig: The normalized config that was written.

        Raises:
            ConfigError: If the file could not be written.
        """
        config = config.normalized()
        tmp_file = self.path.with_suffix(".tmp")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_file, "w", encoding="utf-8") as f:
                json.dump(config.to_payload(), f, indent=2)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())

            os.replace(tmp_file, self.path)
        except OSError as e:
            logger.error(f"CONFIG ERROR: Could not write {self.path}. {e}")
            with contextlib.suppress(OSError):
                tmp_file.unlink(missing_ok=True)
            raise ConfigError(
                ErrorCode.WRITE_FAILED, f"Failed to save configuration: {e}"
            ) from e

        logger.info(f"CONFIG: Saved (path={config.save_path or '-'}).")
        return config
