import fcntl
import logging
import sys
from collections.abc import Callable
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .auth import RedactingFilter, strip_auth
from .config import Settings, SyncJob
from .constants import APP_NAME
from .errors import ConcurrencyError, OperationError, SyncError
from .git_wrapper import MirrorRepo

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)

LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(verbose: bool = False) -> logging.Handler:
    """Configures console logging for the application logger.

    Args:
        verbose (bool): If True, debug records (git command lines) are shown.

    Returns:
        logging.Handler: The stdout handler that was attached.
    """
    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    stream_handler.addFilter(RedactingFilter())
    logger.addHandler(stream_handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return stream_handler


@contextmanager
def sync_lock(lock_file: Path) -> Iterator[None]:
    """Holds an exclusive, non-blocking advisory lock for the duration of a run.

    The lock file itself stays on disk; only the `flock` on it matters. The
    lock is released when the block exits, on success and on error alike.

    Args:
        lock_file (Path): The lock control file.

    Raises:
        ConcurrencyError: If another process already holds the lock.
    """
    lock_file.parent.mkdir(parents=True, exist_ok=True)
    with open(lock_file, "a") as f:
        try:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            raise ConcurrencyError(
                f"Another sync is already in progress ({lock_file})."
            ) from e
        try:
            yield
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)


@contextmanager
def sync_log(job: SyncJob) -> Iterator[logging.Handler]:
    """Appends application log records to the job's sync log while active.

    A redacting filter carrying the job's tokens is installed on the logger
    as well, so console output produced during the run is scrubbed too.

    Args:
        job (SyncJob): The running job.

    Yields:
        logging.Handler: The file handler writing to the sync log.
    """
    secret_filter = RedactingFilter(job.secrets)
    file_handler = logging.FileHandler(job.log_file, mode="a", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
    file_handler.setLevel(logging.INFO)
    file_handler.addFilter(secret_filter)

    logger.addFilter(secret_filter)
    logger.addHandler(file_handler)
    try:
        yield file_handler
    finally:
        logger.removeHandler(file_handler)
        logger.removeFilter(secret_filter)
        file_handler.close()


def _log_output(output: str) -> None:
    for line in output.splitlines():
        if line.strip():
            logger.info(line)


def _clone_or_update(
    repo: MirrorRepo, job: SyncJob, settings: Settings, source_url: str
) -> None:
    """Creates the mirror on first run, otherwise refreshes it with pruning.

    Raises:
        OperationError: If an existing directory is not a bare repository
                        (when verification is enabled) or git fails.
    """
    if not repo.exists():
        logger.info(f"Cloning mirror of {job.public_source_url} into {repo.path}")
        output = repo.clone_mirror(source_url)
        logger.debug(output)
        return

    if settings.sync.verify_mirror and not repo.is_mirror():
        raise OperationError(
            f"{repo.path} exists but is not a bare mirror repository. "
            "Remove it to re-clone."
        )

    logger.info(f"Updating mirror in {repo.path}")
    # A previous run leaves the remote aimed at the destination.
    repo.set_remote_url(source_url)
    output = repo.fetch_prune()
    logger.debug(output)


def _scrub_remote(repo: MirrorRepo, job: SyncJob) -> None:
    """Resets the remote to the credential-free source URL."""
    try:
        repo.set_remote_url(job.public_source_url)
    except OperationError as e:
        logger.warning(f"Could not reset remote URL in {repo.path}: {e}")


def run_sync(
    job: SyncJob,
    settings: Settings | None = None,
    repo_factory: Callable[..., MirrorRepo] = MirrorRepo,
) -> None:
    """Runs one complete source to destination mirror pass.

    Steps:
    1. Builds the authenticated URLs (fails on non-HTTPS URLs).
    2. Creates the working directory and takes the lock.
    3. Clones the mirror, or re-points it at the source and fetches with prune.
    4. Re-points the remote at the destination and pushes branches and tags.
    5. Appends recent history to the sync log.

    Any failure aborts the run immediately. The remote URL is always reset to
    the plain source URL afterwards so no token stays in the mirror's config.

    Args:
        job (SyncJob): The job to run.
        settings (Settings | None, optional): Tool settings. Defaults to built-ins.
        repo_factory (Callable[..., MirrorRepo], optional): Builds the
            repository wrapper. Defaults to `MirrorRepo`.

    Raises:
        ConfigError: If a URL cannot carry credentials.
        ConcurrencyError: If another sync holds the lock.
        OperationError: If any git operation fails.
    """
    settings = settings or Settings()

    # Validate both URLs before anything touches the disk.
    auth_source_url = job.auth_source_url
    auth_mirror_url = job.auth_mirror_url

    job.workdir.mkdir(parents=True, exist_ok=True)

    with sync_lock(job.lock_file), sync_log(job):
        logger.info(
            f"Starting sync of {job.public_source_url} -> {strip_auth(job.mirror_url)}"
        )
        repo = repo_factory(
            job.repo_dir, remote=settings.core.remote_name, secrets=job.secrets
        )
        try:
            try:
                _clone_or_update(repo, job, settings, auth_source_url)

                repo.set_remote_url(auth_mirror_url)
                _log_output(repo.push_all())
                if settings.sync.push_tags:
                    _log_output(repo.push_tags())
                else:
                    logger.info("Tag push disabled; skipping.")

                for line in repo.log_recent(settings.sync.history_count):
                    logger.info(line)
            finally:
                if repo.exists() and repo.is_mirror():
                    _scrub_remote(repo, job)
        except SyncError as e:
            logger.error(f"Sync failed: {e}")
            raise

        logger.info("Sync complete")
