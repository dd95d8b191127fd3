"""Shared fixtures for the Study Journal test suite."""

from pathlib import Path
from typing import Any

import pytest

from study_journal.config import ConfigStore, RepositoryConfig


@pytest.fixture
def store(tmp_path: Path) -> ConfigStore:
    """A config store backed by a file inside the test's temp directory."""
    return ConfigStore(tmp_path / "config" / "config.json")


@pytest.fixture
def journal_dir(tmp_path: Path) -> Path:
    """The directory used as the journal save path."""
    return tmp_path / "study"


@pytest.fixture
def configured_store(store: ConfigStore, journal_dir: Path) -> ConfigStore:
    """A config store pointing at `journal_dir`, local only."""
    store.save(RepositoryConfig(save_path=str(journal_dir)))
    return store


@pytest.fixture
def isolated_git(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Any:
    """Shields real git invocations from the user's global/system config."""
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("STUDY_JOURNAL_GIT_TIMEOUT", "20")
    yield
