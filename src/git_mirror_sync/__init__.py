"""Git Mirror Sync: one-way mirroring of a git repository between HTTPS remotes.

This package provides the command-line interface, the sync runner, and the
git wrapper used to keep a destination repository's branches and tags in
step with a source repository, one locked pass at a time.
"""

from . import (
    auth,
    cli,
    config,
    constants,
    errors,
    git_wrapper,
    sync,
)

__all__ = [
    "auth",
    "cli",
    "config",
    "constants",
    "errors",
    "git_wrapper",
    "sync",
]
