"""
Telegram Uploader - service entry point

Watches configured directories and uploads new files to Telegram chats.
Runs until SIGINT/SIGTERM/SIGQUIT; SIGHUP reloads the configuration file
without restarting the process.
"""

from __future__ import annotations

import argparse
import queue
import signal
import sys
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from domains.file_upload.uploader import Uploader
from service import __version__
from service.models.schemas import UploaderConfig
from service.utils.config import get_settings, load_config
from service.utils.errors import ConfigError

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)

STOP_SIGNALS = ("SIGINT", "SIGTERM", "SIGQUIT")
RELOAD_SIGNAL = "SIGHUP"


def configure_logging(level: str = "INFO"):
    """Send logs to stderr with the service's format."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level.upper())


class ServiceController:
    """Starts, reloads and stops the uploader of the current configuration."""

    def __init__(
        self,
        config_loader: Callable[[], UploaderConfig],
        build_uploader: Callable[[UploaderConfig], Uploader] = Uploader,
    ):
        """
        Initialize controller.

        Args:
            config_loader: Reads the current configuration, raising ConfigError
            build_uploader: Creates an uploader for a configuration
        """
        self._load_config = config_loader
        self._build_uploader = build_uploader
        self.uploader: Optional[Uploader] = None

    def _new_uploader(self) -> Uploader:
        return self._build_uploader(self._load_config())

    def start(self):
        """
        Build and start the first uploader.

        Raises:
            ConfigError: If the configuration can't be used
        """
        self.uploader = self._new_uploader()
        self.uploader.start()

    def reload(self) -> bool:
        """
        Replace the running uploader with one built from fresh configuration.

        The old uploader keeps running if the new configuration can't be used.
        Files completed between stopping the old uploader and starting the new
        one are not uploaded.

        Returns:
            True if the uploader was replaced
        """
        try:
            new_uploader = self._new_uploader()
        except ConfigError as e:
            logger.error(f"Reloaded config can't be used: {e}")
            return False

        if self.uploader is not None:
            self.uploader.stop()
        self.uploader = new_uploader
        self.uploader.start()
        logger.info("Config reloaded")
        return True

    def stop(self):
        """Stop the running uploader."""
        if self.uploader is not None:
            self.uploader.stop()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(
        prog="telegram-uploader",
        description="Watches for files and uploads them to Telegram.",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Config file (default: UPLOADER_CONFIG_FILE or /usr/local/etc/telegram-uploader-bot.cfg).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (TRACE, DEBUG, INFO, WARNING, ERROR).",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Display the version number and exit.",
    )

    return parser.parse_args(argv)


def _install_signal_handlers() -> queue.SimpleQueue:
    """Route stop and reload signals into a queue read by the control loop."""
    # The handler may interrupt signals.get() on the same thread; only
    # SimpleQueue.put is reentrant.
    signals: queue.SimpleQueue = queue.SimpleQueue()

    def _signal_handler(signum, frame):  # noqa: D401
        signals.put(signum)

    for name in STOP_SIGNALS + (RELOAD_SIGNAL,):
        signum = getattr(signal, name, None)
        if signum is not None:
            signal.signal(signum, _signal_handler)
    return signals


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the CLI."""

    args = parse_args(argv)
    if args.version:
        print(f"telegram-uploader {__version__}")
        return 0

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)
    config_file = args.config or settings.config_file

    controller = ServiceController(
        config_loader=lambda: load_config(config_file, settings),
        build_uploader=lambda config: Uploader(config, settings),
    )

    signals = _install_signal_handlers()

    logger.info("Starting telegram-uploader...")
    try:
        controller.start()
    except ConfigError as e:
        logger.error(f"Config couldn't be used: {e}, exiting...")
        return 1

    reload_signum = getattr(signal, RELOAD_SIGNAL, None)

    try:
        while True:
            try:
                signum = signals.get(timeout=1.0)
            except queue.Empty:
                continue
            if signum == reload_signum:
                logger.info(f"Received {RELOAD_SIGNAL} signal, reloading config")
                controller.reload()
                continue
            logger.info(f"Received {signal.Signals(signum).name} signal, shutting down.")
            break
    finally:
        controller.stop()

    logger.info("Telegram uploader stopped.")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI bridge
    sys.exit(main())
