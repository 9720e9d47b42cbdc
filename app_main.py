"""
Internet monitor – headless entry point.
- Runs the connectivity engine until SIGINT/SIGTERM (Ctrl+C on Windows)
- SIGUSR1 requests an immediate check (POSIX)
- --once runs a single check and exits 0 (online) or 1 (offline)
- --init-config writes the effective config.json for editing
"""
import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from inetmon.config import (
    ConfigurationError,
    MonitorConfig,
    config_to_dict,
    dict_to_config,
    get_config_path,
    load_config,
    save_config,
)
from inetmon.logging_setup import setup_logging
from inetmon.monitor import ConnectivityMonitor, format_status_line
from inetmon.notify import Event, Notification

logger = logging.getLogger("inetmon.app")


def build_config(args: argparse.Namespace) -> MonitorConfig:
    data = load_config(Path(args.config) if args.config else None)
    config = dict_to_config(data)
    if args.interval is not None:
        config = config.replace(update_interval=args.interval)
    return config


def _log_notification(n: Notification) -> None:
    if n.event is Event.ALERT and n.alert is not None:
        logger.warning("ALERT: %s - %s", n.alert.title, n.alert.message)


async def _serve(monitor: ConnectivityMonitor) -> None:
    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGTERM, monitor.stop)
        loop.add_signal_handler(signal.SIGUSR1, monitor.check_now)
    await monitor.run()


def run_headless(config: MonitorConfig) -> int:
    monitor = ConnectivityMonitor(config)
    monitor.notifier.add_listener(_log_notification)
    monitor.notifier.add_status_listener(
        lambda record: logger.info("Status: %s", format_status_line(record, config.show_details))
    )
    logger.info("Internet monitor started (headless)")
    try:
        asyncio.run(_serve(monitor))
    except KeyboardInterrupt:
        pass
    logger.info("Internet monitor stopped (headless)")
    return 0


def init_config(config: MonitorConfig, path: Path | None) -> int:
    """Write the effective config (defaults merged, CLI overrides applied) so it can be edited."""
    save_config(config_to_dict(config), path)
    print(f"Wrote {path or get_config_path()}")
    return 0


def run_once(config: MonitorConfig) -> int:
    monitor = ConnectivityMonitor(config)
    record = asyncio.run(monitor.run_once())
    print(format_status_line(record, show_details=True))
    return 0 if record.is_connected else 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Internet monitor – ping + HTTP connectivity check")
    parser.add_argument("--config", help="Path to config.json (default: user app data directory)")
    parser.add_argument("--interval", type=float, help="Override update interval in seconds")
    parser.add_argument("--once", action="store_true", help="Run a single check and exit")
    parser.add_argument("--init-config", action="store_true", help="Write the effective config file and exit")
    parser.add_argument("--verbose", action="store_true", help="Log debug output to the console")
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
        config.validate()
    except ConfigurationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    if args.init_config:
        return init_config(config, Path(args.config) if args.config else None)

    console_level = logging.DEBUG if args.verbose else logging.INFO
    if args.once:
        console_level = logging.DEBUG if args.verbose else logging.WARNING
    setup_logging(config.log_path or None, console_level=console_level)

    if args.once:
        return run_once(config)
    return run_headless(config)


if __name__ == "__main__":
    sys.exit(main())
