"""Command-line interface for the ShowStart monitor."""
import argparse
import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

from showstart_monitor import __version__
from showstart_monitor.app import main as run_monitor
from showstart_monitor.config import load_config
from showstart_monitor.exceptions import ConfigError, StateError
from showstart_monitor.models import AppConfig

logger = logging.getLogger(__name__)


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: List of command line arguments. If None, uses sys.argv[1:].

    Returns:
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(
        description="Watch ShowStart for activities matching keywords and get notified when timed purchase opens.",
    )

    # Monitor configuration
    monitor_group = parser.add_argument_group('Monitor Configuration')
    monitor_group.add_argument(
        '--keyword',
        type=str,
        action='append',
        help='keyword to watch (can be specified multiple times; overrides MONITOR_KEYWORDS)',
    )
    monitor_group.add_argument(
        '--city-code',
        type=str,
        help='city code to search in (default: 99999, nationwide)',
    )
    monitor_group.add_argument(
        '--interval',
        type=int,
        help='seconds between checks (default: 180)',
    )
    monitor_group.add_argument(
        '--state-dir',
        type=str,
        help='directory holding deduplication state (default: monitor_state)',
    )
    monitor_group.add_argument(
        '--notify-new',
        action='store_true',
        default=None,
        help='also notify when a matching activity first appears',
    )
    monitor_group.add_argument(
        '--once',
        action='store_true',
        help='run a single check and exit (for cron or CI schedules)',
    )

    # Notification configuration
    notification_group = parser.add_argument_group('Notification Configuration')
    notification_group.add_argument(
        '--webhook-url',
        type=str,
        help='comma-separated notification webhooks',
    )
    notification_group.add_argument(
        '--alert-webhook-url',
        type=str,
        help='comma-separated operator alert webhooks',
    )

    # Logging configuration
    log_group = parser.add_argument_group('Logging')
    log_group.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level',
    )
    log_group.add_argument(
        '--verbose', '-v',
        action='store_const',
        const='DEBUG',
        dest='log_level',
        help='Enable verbose output (same as --log-level DEBUG)',
    )
    parser.add_argument(
        '--env-file',
        type=str,
        default='.env',
        help='dotenv file to load before reading the environment',
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}',
        help='show version and exit',
    )

    if args is None:
        args = sys.argv[1:]
    return parser.parse_args(args)


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Map explicitly given command line flags to settings overrides."""
    return {
        'MONITOR_KEYWORDS': args.keyword,
        'MONITOR_CITY_CODE': args.city_code,
        'MONITOR_INTERVAL_SECONDS': args.interval,
        'MONITOR_STATE_DIR': args.state_dir,
        'MONITOR_NOTIFY_NEW_EVENTS': args.notify_new,
        'MONITOR_WEBHOOK_URL': args.webhook_url,
        'MONITOR_ALERT_WEBHOOK_URL': args.alert_webhook_url,
        'LOG_LEVEL': args.log_level,
    }


def configure_logging(level: str = 'INFO') -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as a string (e.g., 'INFO', 'DEBUG').
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
        ]
    )

    # Request lines from httpx are too noisy at INFO
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)


def print_config(config: AppConfig) -> None:
    """Print the current configuration."""
    print("\n=== ShowStart Monitor ===")
    print("\nKeywords:")
    for keyword in config.monitor.keywords:
        print(f"  - {keyword}")

    print(f"\nCity Code: {config.monitor.city_code}")
    print(f"Check Interval: {config.monitor.interval:.0f} seconds")
    print(f"State Directory: {config.monitor.state_dir}")
    print(f"Notify New Activities: {'enabled' if config.monitor.notify_new_events else 'disabled'}")

    print("\nNotification Configuration:")
    print(f"  Webhooks: {len(config.notification.webhook_urls)}")
    if config.notification.alert_urls:
        print(f"  Alert Webhooks: {len(config.notification.alert_urls)}")
    else:
        print("  Alerts: Disabled (no alert webhook specified)")

    print(f"\nLog Level: {config.log_level}")
    print("=" * 25 + "\n")


async def async_main(args: Optional[List[str]] = None) -> int:
    """Async entry point for the CLI."""
    parsed = parse_args(args)

    try:
        config = load_config(env_file=parsed.env_file, **overrides_from_args(parsed))
    except ConfigError as e:
        configure_logging()
        logger.error(f"❌ {e}")
        return 1

    configure_logging(level=config.log_level)
    print_config(config)

    try:
        await run_monitor(config, once=parsed.once)
    except StateError as e:
        logger.critical(f"Cannot load monitor state: {e}")
        return 1
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        return 1

    return 0


def main() -> int:
    """Main entry point for CLI."""
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        print("\n👋 Operation cancelled by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
