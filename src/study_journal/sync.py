"""Working-copy synchronization as an ordered pipeline of classified steps.

Each step reports a StepResult instead of raising. Required steps report
FATAL on failure and stop the pipeline; best-effort steps report WARNING and
let it continue, so a network outage never costs the user a local commit.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

from .config import RepositoryConfig, network_timeout
from .constants import (
    APP_NAME,
    COMMIT_AUTHOR_EMAIL,
    COMMIT_AUTHOR_NAME,
    PRIMARY_BRANCH,
    REMOTE_NAME,
)
from .errors import SyncWarning
from .git_wrapper import GitError, GitErrorKind, GitRepo

logger = logging.getLogger(APP_NAME)


class SyncState(str, Enum):
    """Lifecycle of a journal working copy."""

    UNCONFIGURED = "unconfigured"
    INITIALIZED = "initialized"
    REMOTE_LINKED = "remote_linked"
    SYNCED = "synced"


class StepOutcome(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    FATAL = "fatal"


@dataclass(frozen=True)
class StepResult:
    """The outcome of a single pipeline step.

    Attributes:
        step (str): The step name (e.g. 'push').
        outcome (StepOutcome): Whether it succeeded, degraded, or failed hard.
        message (str): Detail for warnings and failures; empty on success.
    """

    step: str
    outcome: StepOutcome
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is not StepOutcome.FATAL


@dataclass
class SyncReport:
    """Accumulated step results of one or more pipeline runs."""

    results: list[StepResult] = field(default_factory=list)

    def add(self, result: StepResult) -> StepResult:
        self.results.append(result)
        return result

    def extend(self, other: "SyncReport") -> None:
        self.results.extend(other.results)

    @property
    def fatal(self) -> StepResult | None:
        return next(
            (r for r in self.results if r.outcome is StepOutcome.FATAL), None
        )

    @property
    def warnings(self) -> list[SyncWarning]:
        return [
            SyncWarning(r.step, r.message)
            for r in self.results
            if r.outcome is StepOutcome.WARNING
        ]

    @property
    def ok(self) -> bool:
        return self.fatal is None


def _success(step: str) -> StepResult:
    return StepResult(step, StepOutcome.SUCCESS)


def _warning(step: str, message: str) -> StepResult:
    logger.warning(f"{step.upper()} WARNING: {message}")
    return StepResult(step, StepOutcome.WARNING, message)


def _fatal(step: str, message: str) -> StepResult:
    logger.error(f"{step.upper()} FAILED: {message}")
    return StepResult(step, StepOutcome.FATAL, message)


class RepositorySynchronizer:
    """Drives a journal directory through init, identity, branch, remote,
    commit, and push.

    Attributes:
        path (Path): The working-copy root.
        remote_url (str): The configured remote; empty for local-only.
        timeout (float): Seconds allowed for each fetch or push.
        state (SyncState): The furthest state reached so far.
    """

    def __init__(
        self, path: Path, remote_url: str = "", timeout: float | None = None
    ):
        self.path = Path(path)
        self.remote_url = remote_url
        self.timeout = timeout if timeout is not None else network_timeout()
        self.state = SyncState.UNCONFIGURED
        self._repo: GitRepo | None = None

    @classmethod
    def from_config(cls, config: RepositoryConfig) -> "RepositorySynchronizer":
        return cls(Path(config.save_path), config.git_repo_url)

    @property
    def repo(self) -> GitRepo:
        if self._repo is None:
            self._repo = GitRepo(self.path)
        return self._repo

    # --- Steps ---

    def ensure_directory(self) -> StepResult:
        """Step 1 (required): create the save directory if missing."""
        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return _fatal("directory", f"Cannot create {self.path}: {e}")
        if not self.path.is_dir():
            return _fatal("directory", f"{self.path} is not a directory")
        return _success("directory")

    def ensure_repository(self) -> StepResult:
        """Step 2 (required): initialize a repository unless one exists."""
        try:
            if GitRepo.is_repository(self.path):
                self._repo = GitRepo(self.path)
            else:
                self._repo = GitRepo.init(self.path, PRIMARY_BRANCH)
                logger.info(f"INIT: Created repository in {self.path}")
        except (GitError, ValueError) as e:
            return _fatal("repository", f"Cannot initialize repository: {e}")
        if self.state is SyncState.UNCONFIGURED:
            self.state = SyncState.INITIALIZED
        return _success("repository")

    def ensure_identity(self) -> StepResult:
        """Step 3 (best-effort): pin the commit author for this working copy."""
        try:
            self.repo.set_config("user.name", COMMIT_AUTHOR_NAME)
            self.repo.set_config("user.email", COMMIT_AUTHOR_EMAIL)
        except (GitError, ValueError) as e:
            return _warning("identity", f"Could not set commit identity: {e}")
        return _success("identity")

    def ensure_branch(self) -> StepResult:
        """Step 4 (best-effort): normalize the current branch name."""
        try:
            if self.repo.has_commits():
                if self.repo.current_branch() != PRIMARY_BRANCH:
                    self.repo.rename_branch(PRIMARY_BRANCH)
            else:
                self.repo.set_head_branch(PRIMARY_BRANCH)
        except (GitError, ValueError) as e:
            return _warning("branch", f"Could not rename branch to {PRIMARY_BRANCH}: {e}")
        return _success("branch")

    def ensure_remote(self) -> StepResult:
        """Step 5 (best-effort): register or correct the origin URL."""
        if not self.remote_url:
            return _success("remote")
        try:
            current = self.repo.get_remote_url(REMOTE_NAME)
            if current is None:
                self.repo.add_remote(REMOTE_NAME, self.remote_url)
                logger.info(f"REMOTE: Added {REMOTE_NAME} -> {self.remote_url}")
            elif current != self.remote_url:
                self.repo.set_remote_url(REMOTE_NAME, self.remote_url)
                logger.info(f"REMOTE: Updated {REMOTE_NAME} -> {self.remote_url}")
        except (GitError, ValueError) as e:
            return _warning("remote", f"Could not configure remote: {e}")
        self.state = SyncState.REMOTE_LINKED
        return _success("remote")

    def probe_remote(self) -> StepResult:
        """Step 6 (best-effort): shallow-fetch the primary branch.

        A missing remote ref is the normal state of a freshly created empty
        remote and counts as success.
        """
        if not self.remote_url:
            return _success("probe")
        try:
            self.repo.fetch(
                REMOTE_NAME, PRIMARY_BRANCH, depth=1, timeout=self.timeout
            )
        except GitError as e:
            if e.kind is GitErrorKind.REMOTE_REF_MISSING:
                logger.info("PROBE: Remote is reachable and empty.")
                return _success("probe")
            return _warning("probe", _describe_network_failure("reach remote", e))
        except ValueError as e:
            return _warning("probe", f"Could not reach remote: {e}")
        logger.info("PROBE: Remote is reachable.")
        return _success("probe")

    def commit(self, message: str) -> StepResult:
        """Step 7 (required): stage everything and commit.

        An empty change set is tolerated and reported as success.
        """
        try:
            self.repo.add_all()
            if not self.repo.has_staged_changes():
                logger.info("COMMIT: Nothing to commit.")
                return _success("commit")
            self.repo.commit(message)
        except GitError as e:
            if e.kind is GitErrorKind.NOTHING_TO_COMMIT:
                logger.info("COMMIT: Nothing to commit.")
                return _success("commit")
            return _fatal("commit", f"Commit failed: {e}")
        except ValueError as e:
            return _fatal("commit", f"Commit failed: {e}")
        logger.info(f"COMMIT: {message}")
        return _success("commit")

    def push(self) -> StepResult:
        """Step 8 (best-effort): push the primary branch and track it."""
        if not self.remote_url:
            return _success("push")
        try:
            self.repo.push(
                REMOTE_NAME, PRIMARY_BRANCH, set_upstream=True, timeout=self.timeout
            )
        except GitError as e:
            return _warning("push", _describe_network_failure("push", e))
        except ValueError as e:
            return _warning("push", f"Push failed: {e}")
        self.state = SyncState.SYNCED
        logger.info(f"SUCCESS {self.path.name}: Pushed.")
        return _success("push")

    # --- Pipelines ---

    def _run_pipeline(self, steps: list[Callable[[], StepResult]]) -> SyncReport:
        report = SyncReport()
        for step in steps:
            if report.add(step()).outcome is StepOutcome.FATAL:
                break
        return report

    def prepare(self) -> SyncReport:
        """Runs steps 1-5 so the directory is a ready working copy."""
        return self._run_pipeline(
            [
                self.ensure_directory,
                self.ensure_repository,
                self.ensure_identity,
                self.ensure_branch,
                self.ensure_remote,
            ]
        )

    def check_remote(self) -> SyncReport:
        """Runs `prepare()` then the connectivity probe (config save)."""
        report = self.prepare()
        if report.ok:
            report.add(self.probe_remote())
        return report

    def record(self, message: str) -> SyncReport:
        """Runs steps 7-8: commit, then push if a remote is configured."""
        return self._run_pipeline([lambda: self.commit(message), self.push])


def _describe_network_failure(action: str, error: GitError) -> str:
    """Renders a GitError from a network step as a user-facing sentence."""
    reasons = {
        GitErrorKind.AUTH_FAILED: "authentication failed",
        GitErrorKind.NETWORK_UNREACHABLE: "remote is unreachable",
        GitErrorKind.REPOSITORY_NOT_FOUND: "remote repository not found",
        GitErrorKind.REJECTED: "remote rejected the update (history has diverged)",
        GitErrorKind.TIMEOUT: "timed out",
        GitErrorKind.REMOTE_REF_MISSING: f"branch '{PRIMARY_BRANCH}' not found on remote",
        GitErrorKind.GIT_MISSING: "git is not installed",
    }
    reason = reasons.get(error.kind)
    if reason:
        return f"Could not {action}: {reason}. ({error.detail})"
    return f"Could not {action}: {error.detail}"
