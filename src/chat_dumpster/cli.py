"""Command line entry point: ingest one chat export archive into a dumpster."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from chat_dumpster.common import ConfigLoader, ConfigurationError, DumpsterError, setup_logging
from chat_dumpster.config import DumpsterConfig
from chat_dumpster.errors import DumpsterExistsError, ValidationError
from chat_dumpster.pipeline import PipelineOrchestrator, PipelineResult, ProgressEvent

APP_NAME = "chat-dumpster"

logger = logging.getLogger(__name__)


def progress_callback(event: ProgressEvent) -> None:
    """Print stage transitions to stdout."""
    print(f"[{event.stage.value}] {event.progress}% - {event.message}")


def ingest_command(
    config: DumpsterConfig,
    archive: Path,
    name: str,
    overwrite: bool = False,
    verbose: bool = False,
    quiet: bool = False,
) -> int:
    """Run the pipeline for one archive.

    Returns:
        Exit code: 0 on success, 1 on pipeline failure, 2 for an archive
        rejected by validation, 3 when the dumpster already exists
    """
    if not archive.is_file():
        logger.error(f"Archive does not exist: {archive}")
        return 1

    orchestrator = PipelineOrchestrator(
        config=config,
        progress_callback=None if quiet else progress_callback,
    )

    try:
        result = orchestrator.run_sync(archive, name, overwrite=overwrite, verbose=verbose)
    except DumpsterExistsError as e:
        logger.error(e.message)
        return 3
    except ValidationError as e:
        logger.error(f"Archive rejected: {e.message}")
        return 2
    except DumpsterError as e:
        logger.error(f"Dumpster processing failed: {e.message}")
        return 1

    _print_summary(result)
    return 0


def _print_summary(result: PipelineResult) -> None:
    stats = result.stats
    print(f"Dumpster '{result.dumpster_name}' created at {result.dumpster_dir}")
    print(
        f"  chats: {stats.chats}  "
        f"(attempted {stats.processing_stats.attempted}, "
        f"written {stats.processing_stats.processed}, "
        f"errors {stats.processing_stats.errors})"
    )
    print(f"  indexed assets: {stats.assets}")
    print(f"  media files: {stats.media_files}")
    if stats.missing_assets:
        print(f"  unresolved asset references: {len(stats.missing_assets)}")
    for warning in result.warnings:
        print(f"  warning: {warning}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Ingest a chat export ZIP into a dumpster"
    )
    parser.add_argument(
        "archive",
        type=Path,
        help="Path to the export ZIP archive"
    )
    parser.add_argument(
        "name",
        help="Dumpster name (sanitized to lowercase letters, digits, '_' and '-')"
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace an existing dumpster with the same name"
    )
    parser.add_argument(
        "--dumpsters-dir",
        type=Path,
        help="Directory holding dumpsters (overrides config)"
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (defaults.toml)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log pipeline progress at INFO level"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Do not print progress lines"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the chat-dumpster command."""
    args = build_parser().parse_args(argv)

    loader = ConfigLoader(app_name=APP_NAME, config_class=DumpsterConfig)
    try:
        config = loader.load(defaults_path=args.config)
    except ConfigurationError as e:
        print(e.message, file=sys.stderr)
        return 1

    if args.dumpsters_dir:
        config.paths.dumpsters_dir = str(args.dumpsters_dir)

    setup_logging(
        level=config.logging.level,
        format=config.logging.format,
        log_file=config.logging.file,
        max_file_size_mb=config.logging.max_file_size_mb,
        backup_count=config.logging.backup_count,
    )

    return ingest_command(
        config=config,
        archive=args.archive,
        name=args.name,
        overwrite=args.overwrite,
        verbose=args.verbose,
        quiet=args.quiet,
    )


if __name__ == "__main__":
    sys.exit(main())
