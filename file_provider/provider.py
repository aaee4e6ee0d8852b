"""
File configuration provider.

Builds the configuration from a directory tree, a single file or a
fallback bootstrap file, delivers it on a channel and, when watching,
redelivers it after every relevant change.
"""

import logging
from typing import Callable, Optional

from watchdog.observers import Observer

from .channel import ConfigurationChannel, send_configuration
from .config.aggregator import DirectoryAggregator
from .config.builder import SnapshotBuilder
from .config.file_watcher import ChangeWatcher, WatchSubscription
from .config.template import TemplateRenderer
from .errors import NoTargetError
from .models import Configuration, PROVIDER_NAME, ProviderSettings, ProviderTarget
from .pool import TaskPool

logger = logging.getLogger(__name__)


class FileProvider:
    """Provides configuration read from files."""

    name = PROVIDER_NAME

    def __init__(
        self,
        settings: ProviderSettings,
        renderer: Optional[TemplateRenderer] = None,
        observer_factory: Callable[[], Observer] = Observer
    ):
        """
        Initialize file provider.

        Args:
            settings: Target and watch settings
            renderer: Template renderer for .tmpl/.toml files
            observer_factory: Builds the watchdog observer used when watching
        """
        self.settings = settings
        self.builder = SnapshotBuilder(
            renderer=renderer,
            debug_log_generated_template=settings.debug_log_generated_template
        )
        self.aggregator = DirectoryAggregator(self.builder)
        self.observer_factory = observer_factory
        self.watcher: Optional[ChangeWatcher] = None

    @property
    def target(self) -> ProviderTarget:
        """
        Resolved target.

        Raises:
            NoTargetError: If no directory, filename or fallback file is set
        """
        target = self.settings.resolve_target()
        if target is None:
            raise NoTargetError()
        return target

    def build_configuration(self) -> Configuration:
        """
        Load the configuration from the target.

        Returns:
            Fresh snapshot

        Raises:
            NoTargetError: If nothing is configured
            DirectoryReadError: If a directory cannot be listed
            BuildError: If a file cannot be read, rendered or decoded
        """
        target = self.target

        if target.is_directory:
            return self.aggregator.build_from_directory(target.path)

        return self.builder.build(target.path, render_template=target.render_template)

    async def provide(self, channel: ConfigurationChannel, pool: TaskPool) -> None:
        """
        Deliver the initial configuration and start watching if enabled.

        Nothing is sent when the initial build or the watch setup fails.

        Raises:
            ConfigError: On any failure before the provider is started
        """
        configuration = self.build_configuration()

        if self.settings.watch:
            target = self.target
            subscription = WatchSubscription(
                target.watch_path,
                recursive=target.is_directory,
                observer_factory=self.observer_factory
            )
            self.watcher = ChangeWatcher(
                target=target,
                subscription=subscription,
                rebuild=self.build_configuration,
                channel=channel
            )
            self.watcher.start(pool)

        logger.info(
            f"Providing configuration from {self.target.path}: {configuration.summary()}",
            extra={"provider_name": PROVIDER_NAME}
        )
        await send_configuration(channel, configuration)
