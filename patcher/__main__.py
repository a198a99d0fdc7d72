"""Check the local client against the patch server and apply any updates."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from patcher.builder import build_update_engine
from patcher.config import load_patcher_config
from patcher.logging_config import LogVerbosity, ensure_app_logging, set_file_log_verbosity
from patcher.update.events import LoggingEventSink
from patcher.update.models import UpdateError

_LOGGER = logging.getLogger("patcher")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_FILES_FAILED = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="patcher", description=__doc__)
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON configuration file (defaults to the bundled patcher.json).",
    )
    parser.add_argument("--server-url", default=None, help="Patch server base URL.")
    parser.add_argument(
        "--client-dir",
        type=Path,
        default=None,
        help="Client installation directory.",
    )
    parser.add_argument(
        "--full-check",
        action="store_true",
        help="Verify every client file even when the version is current.",
    )
    parser.add_argument(
        "--check-only",
        action="store_true",
        help="Report whether an update is needed without applying it.",
    )
    parser.add_argument(
        "--verbosity",
        choices=[level.value for level in LogVerbosity],
        default=None,
        help="Minimum severity written to the log file.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    ensure_app_logging()
    if args.verbosity:
        set_file_log_verbosity(args.verbosity)

    config = load_patcher_config(args.config).with_overrides(
        patch_server_url=args.server_url,
        client_directory=args.client_dir,
    )
    engine = build_update_engine(config, events=LoggingEventSink(_LOGGER))

    try:
        plan = engine.check_for_updates(args.full_check)
        if args.check_only or not plan.update_available:
            _LOGGER.info(
                "Update available: %s (%s files)", plan.update_available, len(plan.files_to_update)
            )
            return EXIT_OK
        summary = engine.apply_updates(plan)
    except (UpdateError, OSError) as exc:
        _LOGGER.error("Critical error: %s", exc)
        return EXIT_FAILED

    if summary is not None and summary.fail_count:
        return EXIT_FILES_FAILED
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
