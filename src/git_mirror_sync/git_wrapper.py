import logging
import os
import subprocess
from collections.abc import Iterable
from pathlib import Path

from .auth import redact
from .constants import APP_NAME, REMOTE_NAME
from .errors import OperationError

logger = logging.getLogger(APP_NAME)


class MirrorRepo:
    """A wrapper around the Git command-line interface for a bare mirror clone.

    This class exposes the handful of operations a mirror sync needs (clone,
    pruning fetch, remote retargeting, pushes and a short history query) and
    maps every git failure to `OperationError`. Command lines and output are
    redacted before they reach an error message, since remote URLs may carry
    tokens.

    Attributes:
        path (Path): The file system path to the bare repository.
        remote (str): The name of the remote that is re-pointed during a run.
        secrets (tuple[str, ...]): Literal secret values masked in errors.
    """

    def __init__(
        self, path: Path, remote: str = REMOTE_NAME, secrets: Iterable[str] = ()
    ):
        """Initializes the MirrorRepo instance.

        The directory does not have to exist yet; `clone_mirror` creates it.

        Args:
            path (Path): The path of the bare mirror repository.
            remote (str, optional): Remote name. Defaults to "origin".
            secrets (Iterable[str], optional): Values to mask in error output.
        """
        self.path = path
        self.remote = remote
        self.secrets = tuple(secrets)

    def _run(self, args: list[str], cwd: Path | None = None) -> str:
        """Executes a Git command and returns its combined output.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            cwd (Path | None, optional): Directory to run in.
                                         Defaults to the repository path.

        Returns:
            str: The stripped stdout and stderr of the command, interleaved.

        Raises:
            OperationError: If git is missing or exits with a non-zero code.
        """
        env = os.environ.copy()
        # Fail instead of blocking on a credential prompt.
        env["GIT_TERMINAL_PROMPT"] = "0"
        command = redact(" ".join(["git", *args]), self.secrets)
        logger.debug(f"Running: {command}")
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=cwd or self.path,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=True,
                env=env,
            )
        except subprocess.CalledProcessError as e:
            output = redact((e.stdout or "").strip(), self.secrets)
            raise OperationError(
                f"Git error ({command}, exit {e.returncode}): {output or 'no output'}",
                output=output,
            ) from e
        except OSError as e:
            raise OperationError(f"Could not run git: {e}") from e
        return res.stdout.strip()

    def exists(self) -> bool:
        """Reports whether the mirror directory is present at all."""
        return self.path.is_dir()

    def is_mirror(self) -> bool:
        """Checks that the directory is a usable bare git repository.

        Returns:
            bool: True if git recognizes the path as a bare repository.
        """
        try:
            return self._run(["rev-parse", "--is-bare-repository"]) == "true"
        except OperationError as e:
            logger.debug(f"Mirror check failed for {self.path}: {e}")
            return False

    def clone_mirror(self, url: str) -> str:
        """Creates the mirror with `git clone --mirror`.

        Args:
            url (str): The (authenticated) source URL.

        Returns:
            str: The command output.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return self._run(
            ["clone", "--mirror", url, str(self.path)], cwd=self.path.parent
        )

    def fetch_prune(self) -> str:
        """Refreshes every ref from the configured remote, dropping deleted ones."""
        return self._run(["remote", "update", "--prune"])

    def get_remote_url(self) -> str:
        return self._run(["remote", "get-url", self.remote])

    def set_remote_url(self, url: str) -> None:
        """Points the remote at a new URL.

        Args:
            url (str): The new URL, authenticated or not.
        """
        self._run(["remote", "set-url", self.remote, url])

    def _push(self, *refs: str) -> str:
        # clone --mirror sets remote.<name>.mirror, which git refuses to
        # combine with --all or --tags.
        return self._run(
            [
                "-c",
                f"remote.{self.remote}.mirror=false",
                "push",
                "-v",
                "--force",
                self.remote,
                *refs,
            ]
        )

    def push_all(self) -> str:
        """Force-pushes all branches to the remote, verbosely.

        Returns:
            str: The push output, suitable for the sync log.
        """
        return self._push("--all")

    def push_tags(self) -> str:
        """Force-pushes all tags to the remote, verbosely.

        Returns:
            str: The push output, suitable for the sync log.
        """
        return self._push("--tags")

    def log_recent(self, count: int) -> list[str]:
        """Lists the most recent commits as `<short hash> <date> <subject>`.

        Args:
            count (int): How many commits to return.

        Returns:
            list[str]: One line per commit, newest first. Empty for an empty repo.
        """
        if count <= 0:
            return []
        try:
            output = self._run(
                [
                    "log",
                    f"-n{count}",
                    "--pretty=format:%h %ad %s",
                    "--date=short",
                ]
            )
        except OperationError as e:
            # An empty source has no HEAD to walk.
            if "does not have any commits" in e.output:
                return []
            raise
        return output.splitlines() if output else []
