import argparse
import logging
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from .auth import strip_auth
from .config import Settings, SyncJob
from .constants import APP_NAME, REQUIRED_ENV_VARS
from .errors import SyncError, UsageError
from .sync import run_sync, setup_logging

logger = logging.getLogger(APP_NAME)
console = Console()
err_console = Console(stderr=True)

USAGE = (
    f"{' '.join(f'{var}=...' for var in REQUIRED_ENV_VARS)} "
    f"{APP_NAME} <source-repo-url> <mirror-repo-url> [work-dir]"
)


class MirrorArgumentParser(argparse.ArgumentParser):
    """Argument parser that reports bad input as `UsageError`.

    argparse normally exits with status 2 on its own; raising instead lets
    the CLI map every failure to the same exit code.
    """

    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = MirrorArgumentParser(
        prog=APP_NAME,
        usage=USAGE,
        description=(
            "Mirror every branch and tag of a source repository to a "
            "destination repository over token-authenticated HTTPS."
        ),
    )
    parser.add_argument(
        "urls",
        nargs="*",
        metavar="URL",
        help="Source URL, destination URL and optional working directory",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Extra TOML settings file (overrides the global config)",
    )
    parser.add_argument(
        "--no-tags",
        dest="push_tags",
        action="store_false",
        default=None,
        help="Push branches only",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show git command lines"
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parses the command line and checks the positional argument count.

    Args:
        argv (list[str] | None): Arguments without the program name.
                                 Defaults to `sys.argv[1:]`.

    Returns:
        argparse.Namespace: Parsed arguments with `source`, `mirror` and
                            `workdir` filled in.

    Raises:
        UsageError: If fewer than 2 or more than 3 positionals are given.
    """
    args = build_parser().parse_args(argv)
    if not 2 <= len(args.urls) <= 3:
        raise UsageError(f"Expected 2 or 3 arguments, got {len(args.urls)}.")
    args.source, args.mirror = args.urls[:2]
    args.workdir = Path(args.urls[2]) if len(args.urls) == 3 else None
    return args


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Git Mirror Sync CLI."""
    try:
        args = parse_args(argv)
    except UsageError as e:
        err_console.print(f"[bold red]ERROR:[/bold red] {escape(str(e))}")
        err_console.print(f"Usage: {USAGE}", markup=False)
        sys.exit(e.exit_code)

    handler = setup_logging(args.verbose)
    try:
        settings = Settings.load(args.config)
        if args.push_tags is not None:
            settings.sync.push_tags = args.push_tags

        job = SyncJob.from_env(
            args.source,
            args.mirror,
            args.workdir or Path(settings.core.default_workdir),
            os.environ,
        )
        run_sync(job, settings)
    except SyncError as e:
        err_console.print(f"[bold red]ERROR:[/bold red] {escape(str(e))}")
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        err_console.print("[yellow]Interrupted.[/yellow]")
        sys.exit(130)
    finally:
        logger.removeHandler(handler)

    destination = escape(strip_auth(job.mirror_url))
    console.print(
        f"[bold green]SUCCESS:[/bold green] Mirrored to {destination}. "
        f"Log: {escape(str(job.log_file))}"
    )


if __name__ == "__main__":
    main()
