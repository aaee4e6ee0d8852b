"""
File Configuration Provider Daemon

Runs a file provider and consumes its delivery channel, logging every
configuration snapshot it receives.
"""
# Module can be run with: python -m file_provider

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Callable, List, Optional

from watchdog.observers import Observer

from .channel import ConfigurationChannel
from .errors import ConfigError
from .models import Configuration, ProviderSettings
from .pool import TaskPool
from .provider import FileProvider

logger = logging.getLogger(__name__)


class ProviderDaemon:
    """Hosts a file provider and consumes its configuration messages."""

    def __init__(self, settings: ProviderSettings, observer_factory: Callable[[], Observer] = Observer):
        """
        Initialize provider daemon.

        Args:
            settings: File provider settings
            observer_factory: Builds the watchdog observer used when watching
        """
        self.settings = settings
        self.provider = FileProvider(settings, observer_factory=observer_factory)
        self.channel = ConfigurationChannel(settings.channel_capacity)
        self.pool = TaskPool()
        self.current: Optional[Configuration] = None
        self.received = 0
        self.running = False
        self._stopped = asyncio.Event()

    async def start(self):
        """Start the provider and consume until stopped."""
        logger.info("Starting file configuration provider")

        await self.provider.provide(self.channel, self.pool)
        self.running = True

        if not self.settings.watch:
            # Nothing will follow the initial message
            self.handle_message(await self.channel.receive())
            return

        await self._consume()

    async def stop(self):
        """Stop watching and consuming."""
        logger.info("Stopping daemon...")
        self.running = False
        await self.pool.stop()
        self._stopped.set()
        logger.info("Daemon stopped")

    async def _consume(self):
        """Consume messages until stop() is called."""
        stopped = asyncio.ensure_future(self._stopped.wait())
        try:
            while self.running:
                receive = asyncio.ensure_future(self.channel.receive())
                done, _ = await asyncio.wait({receive, stopped}, return_when=asyncio.FIRST_COMPLETED)

                if receive in done:
                    self.handle_message(receive.result())
                else:
                    receive.cancel()
                    break
        finally:
            stopped.cancel()

    def handle_message(self, message):
        """Record a received configuration message."""
        self.received += 1
        self.current = message.configuration
        logger.info(f"Received configuration #{self.received} from {message.provider_name}: "
                    f"{message.configuration.summary()}")


def build_settings(args: argparse.Namespace) -> ProviderSettings:
    """Merge a settings file with command-line overrides."""
    settings = ProviderSettings.from_toml(Path(args.settings)) if args.settings else ProviderSettings()

    overrides = {
        "directory": args.directory,
        "filename": args.filename,
        "fallback_file": args.fallback_file,
    }
    update = {key: value for key, value in overrides.items() if value is not None}
    if args.watch:
        update["watch"] = True
    if args.debug_template:
        update["debug_log_generated_template"] = True

    return ProviderSettings(**{**settings.model_dump(), **update})


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="file-provider",
        description="Load dynamic configuration from files and watch them for changes"
    )
    parser.add_argument("--directory", help="Load every .toml/.tmpl file below this directory")
    parser.add_argument("--filename", help="Load configuration from a single file")
    parser.add_argument("--fallback-file", help="Bootstrap file used when no directory or filename is given")
    parser.add_argument("--settings", help="TOML settings file")
    parser.add_argument("--watch", action="store_true", help="Watch for changes and reload")
    parser.add_argument("--debug-template", action="store_true", help="Log rendered templates")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        settings = build_settings(args)
    except (OSError, ValueError) as e:
        logger.error(f"Invalid settings: {e}")
        return 1

    daemon = ProviderDaemon(settings)

    # Setup signal handlers
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(daemon.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await daemon.start()
    except ConfigError as e:
        logger.error(f"Fatal error: {e}")
        return 1
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    return 0


def run():
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
