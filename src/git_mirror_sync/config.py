import logging
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .auth import inject_auth, strip_auth
from .constants import (
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_WORKDIR,
    HISTORY_COUNT,
    LOCK_FILE_NAME,
    LOG_FILE_NAME,
    MIRROR_DIR_NAME,
    MIRROR_TOKEN_VAR,
    MIRROR_USER_VAR,
    REMOTE_NAME,
    REQUIRED_ENV_VARS,
    SOURCE_TOKEN_VAR,
    SOURCE_USER_VAR,
)
from .errors import ConfigError

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class Credentials:
    """A username and personal access token pair for one remote.

    Attributes:
        user (str): The account name.
        token (str): The personal access token. Hidden from `repr`.
    """

    user: str
    token: str = field(repr=False)


@dataclass(frozen=True)
class SyncJob:
    """Everything a single sync run needs, resolved once at process start.

    Attributes:
        source_url (str): The plain HTTPS URL of the repository to mirror.
        mirror_url (str): The plain HTTPS URL of the destination repository.
        workdir (Path): Directory holding the mirror, sync log and lock file.
        source_auth (Credentials): Credentials for the source remote.
        mirror_auth (Credentials): Credentials for the destination remote.
    """

    source_url: str
    mirror_url: str
    workdir: Path
    source_auth: Credentials
    mirror_auth: Credentials

    @classmethod
    def from_env(
        cls,
        source_url: str,
        mirror_url: str,
        workdir: Path | None,
        environ: Mapping[str, str],
    ) -> "SyncJob":
        """Builds a job from positional arguments and credential variables.

        Args:
            source_url (str): The source repository URL.
            mirror_url (str): The destination repository URL.
            workdir (Path | None): The working directory, or None for the default.
            environ (Mapping[str, str]): The environment to read credentials from.

        Returns:
            SyncJob: The validated job.

        Raises:
            ConfigError: If any required variable is missing or empty.
        """
        for var in REQUIRED_ENV_VARS:
            if not environ.get(var):
                raise ConfigError(f"Missing required environment variable: {var}")

        return cls(
            source_url=source_url,
            mirror_url=mirror_url,
            workdir=Path(workdir) if workdir else DEFAULT_WORKDIR,
            source_auth=Credentials(
                environ[SOURCE_USER_VAR], environ[SOURCE_TOKEN_VAR]
            ),
            mirror_auth=Credentials(
                environ[MIRROR_USER_VAR], environ[MIRROR_TOKEN_VAR]
            ),
        )

    @property
    def repo_dir(self) -> Path:
        return self.workdir / MIRROR_DIR_NAME

    @property
    def log_file(self) -> Path:
        return self.workdir / LOG_FILE_NAME

    @property
    def lock_file(self) -> Path:
        return self.workdir / LOCK_FILE_NAME

    @property
    def auth_source_url(self) -> str:
        return inject_auth(
            self.source_url, self.source_auth.user, self.source_auth.token
        )

    @property
    def auth_mirror_url(self) -> str:
        return inject_auth(
            self.mirror_url, self.mirror_auth.user, self.mirror_auth.token
        )

    @property
    def public_source_url(self) -> str:
        """The source URL with any userinfo removed, safe to store on disk."""
        return strip_auth(self.source_url)

    @property
    def secrets(self) -> list[str]:
        """Token values that must never reach a log or error message."""
        return [self.source_auth.token, self.mirror_auth.token]


@dataclass
class CoreConfig:
    """Core application settings.

    Attributes:
        remote_name (str): The remote re-pointed between source and destination.
        default_workdir (str): Working directory used when none is given.
    """

    remote_name: str = REMOTE_NAME
    default_workdir: str = str(DEFAULT_WORKDIR)


@dataclass
class SyncConfig:
    """Settings for the sync pass itself.

    Attributes:
        history_count (int): Number of recent commits written to the sync log.
        push_tags (bool): Whether tags are pushed after branches.
        verify_mirror (bool): Whether an existing mirror directory is checked
            to be a bare repository before it is updated.
    """

    history_count: int = HISTORY_COUNT
    push_tags: bool = True
    verify_mirror: bool = True


@dataclass
class Settings:
    """Global configuration aggregator.

    Attributes:
        core (CoreConfig): Core settings.
        sync (SyncConfig): Sync pass settings.
    """

    core: CoreConfig = field(default_factory=CoreConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Loads settings from defaults, the global file and an explicit file.

        Args:
            path (Path | None): An extra TOML file that overrides the global one.

        Returns:
            Settings: The fully merged settings object.
        """
        instance = cls()
        if CONFIG_FILE.exists():
            instance._merge_from_file(CONFIG_FILE)
        if path:
            if path.exists():
                instance._merge_from_file(path)
            else:
                logger.warning(f"Config file not found: {path}")
        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if "core" in data:
                self.core = self._update_dataclass("core", self.core, data["core"])
            if "sync" in data:
                self.sync = self._update_dataclass("sync", self.sync, data["sync"])

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on unknown keys and mistyped values."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        # 1. Catch and warn about typos / unknown keys
        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: "
                f"{', '.join(sorted(invalid_keys))}. Ignoring."
            )

        # 2. Keep only values matching the default's type
        for k, v in updates.items():
            if k not in valid_keys:
                continue
            expected = type(getattr(instance, k))
            # bool is a subclass of int; reject it where a count is expected
            if not isinstance(v, expected) or (
                expected is int and isinstance(v, bool)
            ):
                logger.warning(
                    f"Config error in [{section_name}].{k}: expected "
                    f"{expected.__name__}, got {v!r}. Falling back to default."
                )
                continue
            if k == "history_count" and v < 0:
                logger.warning(
                    f"Config error in [{section_name}].{k}: must not be negative. "
                    "Falling back to default."
                )
                continue
            filtered_updates[k] = v

        return replace(instance, **filtered_updates)
