#!/usr/bin/env python3

import argparse
import dataclasses
import logging
import signal
import sys
from pathlib import Path

from cliptrail.config import AppConfig
from cliptrail.manager import HISTORY_CHANGED, PERMISSION_TIMEOUT, PERMISSIONS_GRANTED, ClipboardManager
from cliptrail.utils.scheduler import ThreadScheduler

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="ClipTrail - background clipboard history"
    )

    parser.add_argument(
        "-i", "--poll-interval",
        type=float,
        default=None,
        help="Clipboard polling interval in seconds (default: 0.5)"
    )

    parser.add_argument(
        "-m", "--max-items",
        type=int,
        default=None,
        help="Maximum number of history items for this session (not saved)"
    )

    parser.add_argument(
        "--home",
        type=Path,
        default=None,
        help="Directory holding settings.json (default: ~/.cliptrail)"
    )

    parser.add_argument(
        "--no-auto-request",
        action="store_true",
        help="Do not request hotkey permissions automatically at startup"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose debug logging"
    )

    args = parser.parse_args(argv)
    if args.max_items is not None and args.max_items < 1:
        parser.error("--max-items must be at least 1")
    return args


def build_config(args) -> AppConfig:
    config = AppConfig.from_env()
    overrides = {}
    if args.poll_interval is not None:
        overrides["poll_interval"] = args.poll_interval
    if args.home is not None:
        overrides["home"] = args.home.expanduser()
    if args.no_auto_request:
        overrides["auto_request_delay"] = -1.0
    if args.max_items is not None:
        overrides["max_items_override"] = args.max_items
    return dataclasses.replace(config, **overrides) if overrides else config


def _print_history_head(items) -> None:
    if items:
        logger.info(f"History ({len(items)}): {items[0].kind} | {items[0].preview!r}")
    else:
        logger.info("History is empty")


def main(argv=None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    config = build_config(args)
    scheduler = ThreadScheduler()
    try:
        manager = ClipboardManager.create_default(config=config, scheduler=scheduler)
    except NotImplementedError as e:
        logger.error(f"{e}")
        return 1

    manager.on(HISTORY_CHANGED, _print_history_head)
    manager.on(PERMISSIONS_GRANTED, lambda _: logger.info("Hotkeys are now active"))
    manager.on(PERMISSION_TIMEOUT, lambda _: logger.info(
        "Hotkeys stay disabled until permissions are granted"))

    def signal_handler(signum, frame):
        scheduler.stop()

    signal.signal(signal.SIGTERM, signal_handler)

    scheduler.call_soon(manager.start)
    print("ClipTrail running. Press Ctrl+C to stop")
    try:
        scheduler.run_forever()
    finally:
        manager.shutdown()
        print("ClipTrail stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
