"""Study Journal: timed study sessions recorded as Markdown in a git repository.

This package provides the command-line interface, the request/response
handlers consumed by a UI, and the persistence core that writes session notes,
commits them, and pushes them to a remote on a best-effort basis.
"""

from . import (
    api,
    cli,
    codec,
    config,
    constants,
    errors,
    git_wrapper,
    layout,
    ops,
    sync,
)

__all__ = [
    "api",
    "cli",
    "codec",
    "config",
    "constants",
    "errors",
    "git_wrapper",
    "layout",
    "ops",
    "sync",
]
