import logging
import os
import re
import subprocess
from enum import Enum
from pathlib import Path

from .constants import APP_NAME, GIT_DIR_NAME

logger = logging.getLogger(APP_NAME)


class GitErrorKind(str, Enum):
    """Structured classification of a failed git invocation."""

    REMOTE_REF_MISSING = "remote_ref_missing"
    AUTH_FAILED = "auth_failed"
    NETWORK_UNREACHABLE = "network_unreachable"
    REPOSITORY_NOT_FOUND = "repository_not_found"
    REJECTED = "rejected"
    TIMEOUT = "timeout"
    NOTHING_TO_COMMIT = "nothing_to_commit"
    GIT_MISSING = "git_missing"
    UNKNOWN = "unknown"


# Checked in order; git runs under LC_ALL=C so these phrases are stable.
_ERROR_PATTERNS: list[tuple[GitErrorKind, re.Pattern[str]]] = [
    (
        GitErrorKind.REMOTE_REF_MISSING,
        re.compile(r"couldn't find remote ref", re.IGNORECASE),
    ),
    (
        GitErrorKind.NOTHING_TO_COMMIT,
        re.compile(r"nothing (added )?to commit|no changes added to commit", re.I),
    ),
    (
        GitErrorKind.AUTH_FAILED,
        re.compile(
            r"authentication failed|permission denied|could not read (username|password)"
            r"|terminal prompts disabled|invalid username or password"
            r"|requested url returned error: 40[13]|host key verification failed",
            re.IGNORECASE,
        ),
    ),
    (
        GitErrorKind.REPOSITORY_NOT_FOUND,
        re.compile(
            r"repository .*not found|does not appear to be a git repository"
            r"|requested url returned error: 404",
            re.IGNORECASE,
        ),
    ),
    (
        GitErrorKind.NETWORK_UNREACHABLE,
        re.compile(
            r"could not resolve host|unable to access|connection refused"
            r"|connection timed out|network is unreachable|operation timed out"
            r"|could not read from remote repository|early eof",
            re.IGNORECASE,
        ),
    ),
    (
        GitErrorKind.REJECTED,
        re.compile(r"\[rejected\]|non-fast-forward|fetch first", re.IGNORECASE),
    ),
]


def classify_git_error(output: str) -> GitErrorKind:
    """Maps git's diagnostic output onto a GitErrorKind.

    Args:
        output (str): The combined stderr/stdout of the failed command.

    Returns:
        GitErrorKind: The first matching kind, or UNKNOWN.
    """
    for kind, pattern in _ERROR_PATTERNS:
        if pattern.search(output or ""):
            return kind
    return GitErrorKind.UNKNOWN


class GitError(RuntimeError):
    """A git command failed.

    Attributes:
        kind (GitErrorKind): The classified cause.
        detail (str): Git's own diagnostic text.
    """

    def __init__(self, kind: GitErrorKind, detail: str):
        self.kind = kind
        self.detail = detail.strip()
        super().__init__(f"Git error: {self.detail}")


def _base_env() -> dict[str, str]:
    env = os.environ.copy()
    env["LC_ALL"] = "C"
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def _network_env() -> dict[str, str]:
    env = _base_env()
    env["GIT_SSH_COMMAND"] = "ssh -o BatchMode=yes"
    return env


class GitRepo:
    """A wrapper around the Git command-line interface for one working copy.

    Every command runs non-interactively under the C locale. Failures are
    raised as GitError with a classified `kind`, so callers branch on the
    kind rather than on message text.

    Attributes:
        path (Path): The file system path to the repository root.
    """

    def __init__(self, path: Path):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.

        Raises:
            ValueError: If the specified path does not contain a .git directory.
        """
        self.path = Path(path)
        if not self.is_repository(self.path):
            raise ValueError(f"Not a git repository: {self.path}")

    @staticmethod
    def is_repository(path: Path) -> bool:
        """Checks whether `path` is itself the root of a working copy."""
        return (Path(path) / GIT_DIR_NAME).exists()

    @classmethod
    def init(cls, path: Path, initial_branch: str) -> "GitRepo":
        """Creates a new repository at `path` and returns its wrapper.

        Args:
            path (Path): The directory to initialize (must exist).
            initial_branch (str): The name HEAD should point at.

        Raises:
            GitError: If `git init` fails.
        """
        _execute(["init"], cwd=Path(path), env=_base_env())
        repo = cls(path)
        # `init -b` needs git >= 2.28; symbolic-ref works everywhere.
        repo.set_head_branch(initial_branch)
        return repo

    def _run(
        self,
        args: list[str],
        capture: bool = True,
        env: dict | None = None,
        timeout: float | None = None,
    ) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            capture (bool, optional): Whether to return stdout. Defaults to True.
            env (dict | None, optional): Environment for the subprocess.
                Defaults to a non-interactive C-locale environment.
            timeout (float | None, optional): Seconds before the command is
                killed. Defaults to no limit.

        Returns:
            str: The stripped stdout of the command if capture is True,
            otherwise an empty string.

        Raises:
            GitError: If the command fails, times out, or git is missing.
        """
        out = _execute(args, cwd=self.path, env=env or _base_env(), timeout=timeout)
        return out if capture else ""

    def has_commits(self) -> bool:
        """Returns True once HEAD resolves to a commit."""
        try:
            self._run(["rev-parse", "--verify", "--quiet", "HEAD"])
            return True
        except GitError:
            return False

    def current_branch(self) -> str:
        """Retrieves the name of the currently checked-out branch."""
        return self._run(["branch", "--show-current"])

    def set_config(self, key: str, value: str) -> None:
        """Sets a repository-local configuration value."""
        self._run(["config", "--local", key, value], capture=False)

    def rename_branch(self, name: str) -> None:
        """Force-renames the current branch (`git branch -M`)."""
        self._run(["branch", "-M", name], capture=False)

    def set_head_branch(self, name: str) -> None:
        """Points HEAD at `name`; valid even before the first commit."""
        self._run(["symbolic-ref", "HEAD", f"refs/heads/{name}"], capture=False)

    def get_remote_url(self, remote: str) -> str | None:
        """Returns the URL of `remote`, or None if it is not registered."""
        try:
            return self._run(["remote", "get-url", remote])
        except GitError:
            return None

    def add_remote(self, remote: str, url: str) -> None:
        self._run(["remote", "add", remote, url], capture=False)

    def set_remote_url(self, remote: str, url: str) -> None:
        self._run(["remote", "set-url", remote, url], capture=False)

    def fetch(
        self, remote: str, ref: str, depth: int | None = None, timeout: float | None = None
    ) -> None:
        """Fetches `ref` from `remote` without prompting for credentials."""
        cmd = ["fetch"]
        if depth:
            cmd.append(f"--depth={depth}")
        cmd.extend([remote, ref])
        self._run(cmd, env=_network_env(), timeout=timeout)

    def push(
        self,
        remote: str,
        branch: str,
        set_upstream: bool = False,
        timeout: float | None = None,
    ) -> None:
        """Pushes `branch` to `remote` without prompting for credentials."""
        cmd = ["push"]
        if set_upstream:
            cmd.append("-u")
        cmd.extend([remote, branch])
        self._run(cmd, env=_network_env(), timeout=timeout)

    def add_all(self) -> None:
        """Stages all changes (modified, deleted, and untracked files)."""
        self._run(["add", "-A"], capture=False)

    def has_staged_changes(self) -> bool:
        """Returns True if the index differs from HEAD (or HEAD is unborn)."""
        if not self.has_commits():
            return bool(self._run(["ls-files", "--cached"]))
        try:
            self._run(["diff", "--cached", "--quiet"])
            return False
        except GitError as e:
            # --quiet exits 1 with no output when differences exist.
            if e.kind is GitErrorKind.UNKNOWN and not e.detail:
                return True
            raise

    def commit(self, message: str) -> None:
        """Creates a new commit with the provided message."""
        self._run(["commit", "-m", message], capture=False)

    def log_subjects(self, limit: int = 10) -> list[str]:
        """Returns the subjects of the most recent commits, newest first."""
        if not self.has_commits():
            return []
        output = self._run(["log", f"-{limit}", "--format=%s"])
        return output.splitlines() if output else []


def _execute(
    args: list[str], cwd: Path, env: dict, timeout: float | None = None
) -> str:
    try:
        res = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
            env=env,
            timeout=timeout,
        )
        return res.stdout.strip()
    except subprocess.CalledProcessError as e:
        detail = "\n".join(part for part in (e.stderr, e.stdout) if part)
        raise GitError(classify_git_error(detail), detail) from e
    except subprocess.TimeoutExpired as e:
        raise GitError(
            GitErrorKind.TIMEOUT, f"'git {args[0]}' timed out after {timeout}s"
        ) from e
    except FileNotFoundError as e:
        raise GitError(GitErrorKind.GIT_MISSING, "git executable not found") from e
