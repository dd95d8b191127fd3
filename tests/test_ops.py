"""Tests for saving and listing sessions (the Log Service)."""

import datetime
import json
import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from study_journal import ops
from study_journal.codec import SessionRecord
from study_journal.config import ConfigStore, RepositoryConfig
from study_journal.errors import FatalSaveError, NotConfiguredError
from study_journal.git_wrapper import GitRepo

requires_git = pytest.mark.skipif(
    shutil.which("git") is None, reason="git executable not available"
)

STARTED = datetime.datetime(2026, 10, 19, 14, 3, 7)


def make_record(**overrides: object) -> SessionRecord:
    fields: dict = {
        "topic": "Graphs",
        "started_at": STARTED,
        "duration_minutes": 25,
        "acquisition": "BFS",
        "debt": "",
        "next_action": "practice",
    }
    fields.update(overrides)
    return SessionRecord(**fields)


def git(cwd: Path, *args: str) -> str:
    return subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    ).stdout.strip()


def test_save_session_requires_configuration(store: ConfigStore) -> None:
    """Verifies the exact error for an unconfigured journal."""
    with pytest.raises(NotConfiguredError, match=r"^Save path is not configured\.$"):
        ops.save_session(make_record(), store=store)


def test_list_sessions_unconfigured_is_empty(store: ConfigStore) -> None:
    """Verifies that an unconfigured store lists nothing rather than failing."""
    assert ops.list_sessions(store=store) == []


def test_list_sessions_missing_directory_is_empty(
    configured_store: ConfigStore, journal_dir: Path
) -> None:
    """Verifies that a configured but not yet created directory lists nothing."""
    assert not journal_dir.exists()
    assert ops.list_sessions(store=configured_store) == []


def test_list_sessions_sorts_and_tolerates_bad_files(
    configured_store: ConfigStore, journal_dir: Path
) -> None:
    """Verifies newest-first ordering, relative ids, and partial records."""
    (journal_dir / "2026-10-18").mkdir(parents=True)
    (journal_dir / "2026-10-19").mkdir()
    (journal_dir / "2026-10-18" / "09-00-00_Old.md").write_text(
        '---\ndate: "2026-10-18T09:00:00"\ntopic: "Old"\nduration: "50"\n---\n'
    )
    (journal_dir / "2026-10-19" / "08-00-00_New.md").write_text(
        '---\ndate: "2026-10-19T08:00:00"\ntopic: "New"\nduration: "25"\n---\n'
        "\n## Acquisition\nheaps\n"
    )
    (journal_dir / "2026-10-19" / "garbage.md").write_text("\x00\x01 not a record")
    (journal_dir / "legacy.md").write_text(
        '---\ndate: "2025-01-05T09:30:00.000Z"\ntopic: "Legacy"\nduration: "25"\n---\n'
    )

    entries = ops.list_sessions(store=configured_store)

    assert [e.topic for e in entries] == ["New", "Old", "Legacy", ""]
    assert entries[0].id == "2026-10-19/08-00-00_New.md"
    assert entries[0].acquisition == "heaps"
    assert entries[0].to_payload() == {
        "id": "2026-10-19/08-00-00_New.md",
        "date": "2026-10-19T08:00:00",
        "topic": "New",
        "duration": 25,
        "acquisition": "heaps",
    }
    assert entries[-1].duration_minutes == 0


def test_list_sessions_skips_unreadable_files(
    configured_store: ConfigStore, journal_dir: Path, mocker: MagicMock
) -> None:
    """Verifies that one unreadable file does not hide the rest."""
    journal_dir.mkdir()
    good = journal_dir / "a.md"
    bad = journal_dir / "b.md"
    good.write_text('topic: "Good"')
    bad.write_text('topic: "Bad"')

    real_read_text = Path.read_text

    def flaky_read(self: Path, *args: object, **kwargs: object) -> str:
        if self.name == "b.md":
            raise PermissionError("denied")
        return real_read_text(self, *args, **kwargs)

    mocker.patch.object(Path, "read_text", flaky_read)

    entries = ops.list_sessions(store=configured_store)

    assert [e.topic for e in entries] == ["Good"]


def test_list_sessions_survives_out_of_range_dates(
    configured_store: ConfigStore, journal_dir: Path
) -> None:
    """Verifies that a date overflowing on local conversion sorts last, not crashes."""
    journal_dir.mkdir()
    (journal_dir / "odd.md").write_text(
        '---\ndate: "0001-01-01T00:00:00+14:00"\ntopic: "Odd"\nduration: "5"\n---\n'
    )
    (journal_dir / "ok.md").write_text(
        '---\ndate: "2026-10-19T08:00:00"\ntopic: "Ok"\nduration: "25"\n---\n'
    )

    entries = ops.list_sessions(store=configured_store)

    assert [e.topic for e in entries] == ["Ok", "Odd"]
    assert entries[1].date == "0001-01-01T00:00:00+14:00"


def test_list_sessions_inaccessible_save_path_is_empty(
    store: ConfigStore, tmp_path: Path
) -> None:
    """Verifies that a save path the OS refuses to stat lists nothing."""
    store.path.parent.mkdir(parents=True)
    store.path.write_text(
        json.dumps({"savePath": str(tmp_path / ("x" * 300) / "study"), "gitRepoUrl": ""})
    )

    assert ops.list_sessions(store=store) == []


def test_save_session_fatal_prepare_aborts(
    store: ConfigStore, tmp_path: Path
) -> None:
    """Verifies that an uncreatable save path is a fatal save error."""
    blocker = tmp_path / "file"
    blocker.write_text("x")
    store.save(RepositoryConfig(save_path=str(blocker / "journal")))

    with pytest.raises(FatalSaveError):
        ops.save_session(make_record(), store=store)


def test_save_session_write_failure_is_fatal(
    configured_store: ConfigStore, mocker: MagicMock
) -> None:
    """Verifies that a failed document write aborts before committing."""
    mock_sync = mocker.patch("study_journal.ops.RepositorySynchronizer")
    instance = mock_sync.from_config.return_value
    instance.prepare.return_value.fatal = None
    instance.path = Path(configured_store.load().save_path)
    mocker.patch.object(Path, "write_text", side_effect=OSError("disk full"))

    with pytest.raises(FatalSaveError, match="disk full"):
        ops.save_session(make_record(), store=configured_store)

    instance.record.assert_not_called()


@requires_git
def test_save_then_list_local_only(
    configured_store: ConfigStore, journal_dir: Path, isolated_git: None
) -> None:
    """Scenario: no remote, one save, one matching history entry and commit."""
    result = ops.save_session(make_record(), store=configured_store)

    assert result.warnings == []
    assert result.path == journal_dir / "2026-10-19" / "14-03-07_Graphs.md"
    assert result.path.read_text(encoding="utf-8").startswith("---\n")

    entries = ops.list_sessions(store=configured_store)
    assert len(entries) == 1
    assert entries[0].topic == "Graphs"
    assert entries[0].duration_minutes == 25
    assert entries[0].acquisition == "BFS"

    repo = GitRepo(journal_dir)
    assert repo.current_branch() == "main"
    assert repo.log_subjects() == ["[Study] Graphs (25min)"]
    assert git(journal_dir, "log", "-1", "--format=%an <%ae>") == (
        "Study Journal <study-journal@localhost>"
    )
    assert git(journal_dir, "status", "--porcelain") == ""


@requires_git
def test_two_saves_make_two_entries(
    configured_store: ConfigStore, isolated_git: None
) -> None:
    """Verifies that distinct timestamps give distinct history entries."""
    ops.save_session(make_record(), store=configured_store)
    ops.save_session(
        make_record(started_at=STARTED + datetime.timedelta(minutes=30)),
        store=configured_store,
    )

    entries = ops.list_sessions(store=configured_store)
    assert len(entries) == 2
    assert entries[0].date == "2026-10-19T14:33:07"


@requires_git
def test_same_second_same_topic_overwrites_with_warning(
    configured_store: ConfigStore, journal_dir: Path, isolated_git: None
) -> None:
    """Documents last-write-wins on filename collision, flagged as a warning."""
    ops.save_session(make_record(acquisition="first"), store=configured_store)
    result = ops.save_session(make_record(acquisition="second"), store=configured_store)

    assert any("Overwrote existing record" in w for w in result.warnings)
    entries = ops.list_sessions(store=configured_store)
    assert len(entries) == 1
    assert entries[0].acquisition == "second"
    assert len(GitRepo(journal_dir).log_subjects()) == 2


@requires_git
def test_identical_resave_tolerates_nothing_to_commit(
    configured_store: ConfigStore, journal_dir: Path, isolated_git: None
) -> None:
    """Verifies that re-saving identical content is not an error."""
    ops.save_session(make_record(), store=configured_store)
    result = ops.save_session(make_record(), store=configured_store)

    assert result.path.exists()
    assert len(GitRepo(journal_dir).log_subjects()) == 1


@requires_git
def test_unreachable_remote_still_saves(
    store: ConfigStore, journal_dir: Path, tmp_path: Path, isolated_git: None
) -> None:
    """Scenario: push fails, yet the record is on disk and committed locally."""
    store.save(
        RepositoryConfig(
            save_path=str(journal_dir),
            git_repo_url=str(tmp_path / "does-not-exist.git"),
        )
    )

    result = ops.save_session(make_record(), store=store)

    assert result.warnings
    assert "Could not push" in result.warnings[-1]
    assert result.path.exists()
    assert GitRepo(journal_dir).log_subjects() == ["[Study] Graphs (25min)"]
    assert len(ops.list_sessions(store=store)) == 1


@requires_git
def test_push_to_bare_remote(
    store: ConfigStore, journal_dir: Path, tmp_path: Path, isolated_git: None
) -> None:
    """Verifies a full round trip to a reachable remote with upstream tracking."""
    remote = tmp_path / "remote.git"
    remote.mkdir()
    git(remote, "init", "--bare")
    store.save(RepositoryConfig(save_path=str(journal_dir), git_repo_url=str(remote)))

    result = ops.save_session(make_record(), store=store)

    assert result.warnings == []
    assert git(remote, "log", "-1", "--format=%s", "main") == "[Study] Graphs (25min)"
    assert git(journal_dir, "rev-parse", "--abbrev-ref", "main@{upstream}") == (
        "origin/main"
    )


@requires_git
def test_drifted_remote_url_is_corrected(
    store: ConfigStore, journal_dir: Path, tmp_path: Path, isolated_git: None
) -> None:
    """Verifies that origin follows the configured URL after it changes."""
    first = tmp_path / "first.git"
    second = tmp_path / "second.git"
    for remote in (first, second):
        remote.mkdir()
        git(remote, "init", "--bare")

    store.save(RepositoryConfig(save_path=str(journal_dir), git_repo_url=str(first)))
    ops.save_session(make_record(), store=store)

    store.save(RepositoryConfig(save_path=str(journal_dir), git_repo_url=str(second)))
    ops.save_session(
        make_record(started_at=STARTED + datetime.timedelta(hours=1)), store=store
    )

    assert git(journal_dir, "remote", "get-url", "origin") == str(second)
    assert git(second, "rev-list", "--count", "main") == "2"


@requires_git
def test_existing_master_branch_is_normalized(
    configured_store: ConfigStore, journal_dir: Path, isolated_git: None
) -> None:
    """Verifies that a pre-existing repository on 'master' is moved to 'main'."""
    journal_dir.mkdir()
    git(journal_dir, "init")
    git(journal_dir, "symbolic-ref", "HEAD", "refs/heads/master")
    (journal_dir / "README.md").write_text("notes")
    git(journal_dir, "add", "-A")
    git(
        journal_dir,
        "-c",
        "user.name=Someone",
        "-c",
        "user.email=someone@example.com",
        "commit",
        "-m",
        "init",
    )

    ops.save_session(make_record(), store=configured_store)

    assert GitRepo(journal_dir).current_branch() == "main"
    # README.md is not a dated record but is still listed as a document.
    assert {e.id for e in ops.list_sessions(store=configured_store)} == {
        "README.md",
        "2026-10-19/14-03-07_Graphs.md",
    }
