from pathlib import Path

"""Global constants and filesystem layout definitions for Git Mirror Sync.

This module defines the application identifier, the layout of a sync working
directory, the environment variables that carry credentials, and the default
values used when no configuration file overrides them.
"""

# --- Identity ---
APP_NAME = "git-mirror-sync"
"""str: The human-readable application name, also used as the logger name."""

# --- Working Directory Layout ---
DEFAULT_WORKDIR = Path("/tmp/git-mirror")
"""Path: The working directory used when none is given on the command line."""

MIRROR_DIR_NAME = "repo-mirror"
"""str: Name of the bare mirror clone inside the working directory."""

LOG_FILE_NAME = "git-sync.log"
"""str: Name of the append-only sync log inside the working directory."""

LOCK_FILE_NAME = "git-sync.lock"
"""str: Name of the zero-byte lock control file inside the working directory."""

# --- Credentials ---
SOURCE_USER_VAR = "SOURCE_USER"
SOURCE_TOKEN_VAR = "SOURCE_PAT"
MIRROR_USER_VAR = "MIRROR_USER"
MIRROR_TOKEN_VAR = "MIRROR_PAT"

REQUIRED_ENV_VARS = [
    SOURCE_USER_VAR,
    SOURCE_TOKEN_VAR,
    MIRROR_USER_VAR,
    MIRROR_TOKEN_VAR,
]
"""list[str]: Environment variables that must be non-empty, checked in order."""

# --- Configuration Paths ---
CONFIG_DIR: Path = Path.home() / ".config/git-mirror-sync"
"""Path: The directory for user configuration files."""

CONFIG_FILE: Path = CONFIG_DIR / "config.toml"
"""Path: The global configuration file path."""

# --- Git / Logic Constants ---
REMOTE_NAME = "origin"
"""str: The remote re-pointed between source and destination during a run."""

HISTORY_COUNT = 5
"""int: Number of recent commits appended to the sync log after a push."""

REDACTED = "***"
"""str: Placeholder written in place of credentials in logs and errors."""

MIN_SECRET_LENGTH = 6
"""int: Shortest secret value masked wherever it appears in free text."""
