"""Exception hierarchy for sync failures.

Every error raised on purpose by the runner derives from `SyncError`, so the
CLI can turn any of them into a readable message and a non-zero exit.
"""


class SyncError(Exception):
    """Base class for all failures that abort a sync run."""

    exit_code = 1


class UsageError(SyncError):
    """The command line had the wrong number of arguments."""


class ConfigError(SyncError):
    """A required credential or setting is missing or unusable."""


class ConcurrencyError(SyncError):
    """Another sync already holds the lock for the working directory."""


class OperationError(SyncError, RuntimeError):
    """An underlying git operation (clone, fetch, push, log) failed.

    Attributes:
        output (str): The redacted output captured from the failing command.
    """

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output
