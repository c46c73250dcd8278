"""CLI entry point for notiwatch."""

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from .config import DEFAULT_CONFIG_PATH, get_default_config_toml, load_config
from .core.monitor import NotificationMonitor
from .decoding.decoder import AppFormat
from .enrichment.discord import DiscordBridge
from .utils.logging import setup_logging
from .utils.signals import install_signal_handlers


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="notiwatch",
        description="Decode message notifications from the macOS notification database",
    )

    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to configuration file",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print notifications to stdout",
    )

    parser.add_argument(
        "--db",
        type=Path,
        help="Notification database to read instead of the auto-detected one",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single read pass and exit",
    )

    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Show default configuration and exit",
    )

    args = parser.parse_args()

    if args.show_config:
        print(get_default_config_toml())
        return 0

    config = load_config(args.config)
    if args.dry_run or args.once:
        config.ui = replace(config.ui, dry_run=True)

    setup_logging(verbose=args.verbose, log_file=config.log_file)

    shutdown_event = install_signal_handlers()

    bridges = {}
    if config.enrichment.enabled:
        bridges[AppFormat.GAMER_CHAT] = DiscordBridge(token_env=config.enrichment.discord_token_env)

    monitor = NotificationMonitor(
        config=config,
        shutdown_event=shutdown_event,
        bridges=bridges,
        db_path=args.db,
    )

    if args.once:
        if monitor.reader is None:
            print("Notification database not found.")
            return 1
        results = monitor.check_for_changes()
        monitor.stop()
        print(f"{len(results)} new notification(s)")
        return 0

    try:
        monitor.run()
    except KeyboardInterrupt:
        pass

    return 0


if __name__ == "__main__":
    sys.exit(main())
