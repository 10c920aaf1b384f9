#!/usr/bin/env python3
"""
File Update Monitor Watch Script.

Watches a directory and logs each file once its content settles.
Requires Python 3.11+.

Usage:
    python scripts/watch_directory.py ./data --interval 200
"""

import argparse
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from monitor import Monitor, MonitorError
from utils.config import get_settings
from utils.logger import configure_logging, get_logger


def main() -> None:
    """Main entry point."""
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Report files under a directory whose content changed"
    )
    parser.add_argument(
        "path",
        type=Path,
        help="Directory to watch",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=settings.monitor.debounce_interval_ms,
        help="Quiet period in milliseconds before a change is reported",
    )
    parser.add_argument(
        "--no-recursive",
        action="store_true",
        default=False,
        help="Only watch the top-level directory",
    )
    parser.add_argument(
        "--error-policy",
        choices=["log", "stop"],
        default=settings.monitor.error_policy,
        help="Keep watching or stop when handling a change fails",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL (e.g. DEBUG)",
    )

    args = parser.parse_args()

    if args.interval < 0:
        print(f"Error: Interval must not be negative: {args.interval}")
        sys.exit(1)

    configure_logging(args.log_level)
    logger = get_logger("watch_directory")

    def on_change(path: str) -> None:
        logger.info("file_changed", path=path)

    monitor = Monitor(
        args.path,
        args.interval,
        on_change,
        recursive=not args.no_recursive,
        error_policy=args.error_policy,
    )

    try:
        monitor.run()
    except KeyboardInterrupt:
        print("\nStopped by user")
    except MonitorError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
