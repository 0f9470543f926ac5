"""Command line entry point."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .core.config import BackupConfig, COPY_WORKER_COUNT
from .core.errors import InvalidRootError, ListingError, UsageError
from .core.models import ExitStatus
from .core.paths import canonicalize
from .core.protocols import ProgressReporter
from .logging.rich_logger import (
    QuietProgressReporter,
    RichProgressReporter,
    setup_logging,
    shutdown_logging,
)
from .services.orchestrator import BackupOrchestrator


logger = logging.getLogger(__name__)


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting with status 2.

    Status 2 means "extras found" for this tool.
    """

    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = _ArgumentParser(
        prog="sanity-backup",
        description=(
            "Copy files missing from DESTINATION, verify size and modification "
            "time of every file, and report corrupt files and extras."
        ),
    )
    parser.add_argument(
        "directories",
        nargs="*",
        type=Path,
        metavar="DIR",
        help="Source directory followed by destination directory",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug output on the console",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only show warnings and errors on the console",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for the per-run log file (default: current directory)",
    )
    return parser


def build_config(args: argparse.Namespace) -> BackupConfig:
    """Canonicalize both roots and build the run configuration.

    Raises:
        UsageError: if a root is unusable or the pair is invalid.
    """
    source_arg, destination_arg = args.directories
    try:
        source = canonicalize(source_arg)
        destination = canonicalize(destination_arg)
        return BackupConfig(
            source_root=source,
            destination_root=destination,
            log_dir=args.log_dir,
        )
    except (InvalidRootError, ValueError) as e:
        raise UsageError(str(e)) from e


def create_reporter(args: argparse.Namespace) -> ProgressReporter:
    if args.quiet:
        return QuietProgressReporter()
    return RichProgressReporter(verbose=args.verbose)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point. Returns the process exit status."""
    parser = create_parser()

    try:
        args = parser.parse_args(argv)
        if len(args.directories) != 2:
            raise UsageError("Incorrect number of arguments")
        config = build_config(args)
    except UsageError as e:
        print(f"sanity-backup: {e}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return int(ExitStatus.USAGE)

    reporter = create_reporter(args)
    try:
        log_file = setup_logging(
            config.resolved_log_dir,
            verbose=args.verbose,
            quiet=args.quiet,
            console=getattr(reporter, "console", None),
        )
    except OSError as e:
        shutdown_logging()
        print(f"sanity-backup: cannot write a log file in {config.resolved_log_dir}: {e}", file=sys.stderr)
        return int(ExitStatus.USAGE)
    reporter.info(f"Logging to {log_file}")

    try:
        reporter.print_header("Sanity Backup")
        reporter.print_config({
            "Source": str(config.source_root),
            "Destination": str(config.destination_root),
            "Copy Workers": COPY_WORKER_COUNT,
            "Log File": str(log_file),
        })

        orchestrator = BackupOrchestrator(config, reporter)
        report = orchestrator.run()

        reporter.print_summary(report.stats)

        status = report.exit_status
        if status == ExitStatus.OK:
            reporter.success("Destination matches source")
        elif status == ExitStatus.EXTRAS:
            reporter.warning(f"{len(report.extras)} extra files found in destination")
        else:
            reporter.error(f"{len(report.corrupt_records) // 2} corrupt file pairs found")
        return int(status)

    except ListingError as e:
        reporter.error(str(e))
        return int(ExitStatus.LISTING_FAILED)
    except KeyboardInterrupt:
        # Clean exit on Ctrl+C - no stack trace
        reporter.warning("Interrupted, no report produced")
        return int(ExitStatus.INTERRUPTED)
    except Exception:
        logger.exception("Fatal error")
        return 1
    finally:
        shutdown_logging()


if __name__ == "__main__":
    sys.exit(main())
