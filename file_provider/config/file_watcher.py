"""
File watcher for provider configuration.

A watchdog observer thread feeds filesystem events (and handler errors)
onto asyncio queues. One background task drains them, filters the events
against the provider target and rebuilds the whole configuration on every
relevant change.

The errors queue only carries exceptions raised while dispatching an event
to the subscription's handler. watchdog gives no hook for failures inside
its own emitter threads, so those never reach the queue and the
subscription may simply go quiet.
"""

import asyncio
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from ..channel import ConfigurationChannel, send_configuration
from ..errors import WatchSetupError
from ..models import Configuration, PROVIDER_NAME, ProviderTarget
from ..pool import TaskPool

logger = logging.getLogger(__name__)

# Opened/closed notifications are excluded: the rebuild itself opens every
# watched file.
WATCHED_EVENT_TYPES = frozenset({
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
})


def is_relevant(event_path: Union[str, bytes, Path], target: ProviderTarget) -> bool:
    """
    Decide whether a change at event_path should trigger a rebuild.

    Every event under a directory target is relevant. For a file target only
    the filename is compared, so replacing the file through a rename from a
    temporary path still counts.
    """
    if target.is_directory:
        return True
    return Path(os.fsdecode(event_path)).name == target.path.name


class _QueueingHandler(FileSystemEventHandler):
    """Forwards watchdog events from the observer thread to the event loop."""

    def __init__(self, subscription: "WatchSubscription"):
        super().__init__()
        self.subscription = subscription

    def dispatch(self, event: FileSystemEvent) -> None:
        try:
            super().dispatch(event)
        except Exception as e:
            # Keeps the observer thread alive
            self.subscription.report_error(e)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in WATCHED_EVENT_TYPES:
            return
        self.subscription.post(self.subscription.events, event)


class WatchSubscription:
    """Filesystem notification subscription on one directory."""

    def __init__(
        self,
        path: Union[str, Path],
        recursive: bool = False,
        observer_factory: Callable[[], Observer] = Observer
    ):
        """
        Initialize subscription.

        Args:
            path: Directory to subscribe to
            recursive: Also report changes in subdirectories
            observer_factory: Builds the watchdog observer (e.g. PollingObserver)
        """
        self.path = Path(path)
        self.recursive = recursive
        self.observer_factory = observer_factory
        self.events: "asyncio.Queue[FileSystemEvent]" = asyncio.Queue()
        self.errors: "asyncio.Queue[Exception]" = asyncio.Queue()

        self.observer: Optional[Observer] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_open(self) -> bool:
        return self.observer is not None

    def open(self) -> None:
        """
        Start receiving notifications.

        Must be called from the event loop that consumes the queues.

        Raises:
            WatchSetupError: If the directory cannot be watched
        """
        if self.is_open:
            logger.warning(f"Subscription on {self.path} already open")
            return

        if not self.path.is_dir():
            raise WatchSetupError(str(self.path), "not a directory")

        self._loop = asyncio.get_running_loop()
        observer = self.observer_factory()

        try:
            observer.schedule(_QueueingHandler(self), str(self.path), recursive=self.recursive)
            observer.start()
        except OSError as e:
            raise WatchSetupError(str(self.path), str(e)) from e

        self.observer = observer
        logger.info(f"Watching {self.path} (recursive={self.recursive})")

    def close(self) -> None:
        """Stop the observer and release the OS watch handles."""
        if self.observer is None:
            return

        self.observer.stop()
        if self.observer.is_alive():
            self.observer.join(timeout=5.0)
        self.observer = None

        logger.info(f"Stopped watching {self.path}")

    def report_error(self, error: Exception) -> None:
        """Deliver a notification-subsystem error. Safe from any thread."""
        self.post(self.errors, error)

    def post(self, queue: asyncio.Queue, item) -> None:
        """Put an item on one of the queues from the observer thread."""
        if self._loop is None or self._loop.is_closed():
            logger.debug(f"Dropping watch notification, no event loop: {item}")
            return
        self._loop.call_soon_threadsafe(queue.put_nowait, item)


class WatcherState(str, Enum):
    """Change watcher lifecycle."""
    IDLE = "idle"
    WATCHING = "watching"
    STOPPED = "stopped"


class ChangeWatcher:
    """Rebuilds and redelivers configuration when the target changes."""

    def __init__(
        self,
        target: ProviderTarget,
        subscription: WatchSubscription,
        rebuild: Callable[[], Configuration],
        channel: ConfigurationChannel
    ):
        """
        Initialize change watcher.

        Args:
            target: Provider target the relevance filter applies to
            subscription: Notification subscription on target.watch_path
            rebuild: Builds a fresh snapshot from the target
            channel: Channel rebuilt snapshots are delivered to
        """
        self.target = target
        self.subscription = subscription
        self.rebuild = rebuild
        self.channel = channel
        self.state = WatcherState.IDLE
        self.rebuild_count = 0
        self.failed_rebuild_count = 0

    def start(self, pool: TaskPool) -> None:
        """
        Open the subscription and spawn the watch task.

        Raises:
            WatchSetupError: If the subscription cannot be opened
        """
        if self.state != WatcherState.IDLE:
            logger.warning(f"Change watcher already {self.state.value}")
            return

        self.subscription.open()
        pool.go(self.run, name=f"{PROVIDER_NAME}-watcher")
        self.state = WatcherState.WATCHING

    async def run(self, stop: asyncio.Event) -> None:
        """Watch loop; returns when stop is set."""
        waiters: Dict[str, asyncio.Task] = {}
        sources = {
            "stop": stop.wait,
            "error": self.subscription.errors.get,
            "event": self.subscription.events.get,
        }

        try:
            while True:
                for source, factory in sources.items():
                    if source not in waiters:
                        waiters[source] = asyncio.ensure_future(factory())

                await asyncio.wait(waiters.values(), return_when=asyncio.FIRST_COMPLETED)

                # Stop wins over pending notifications, errors over events
                source = next(s for s in sources if waiters[s].done())
                result = waiters.pop(source).result()

                if source == "stop":
                    return
                if source == "error":
                    logger.error(
                        f"Watcher event error: {result}",
                        extra={"provider_name": PROVIDER_NAME}
                    )
                    continue

                await self._on_event(result)
        finally:
            for waiter in waiters.values():
                waiter.cancel()
            self.subscription.close()
            self.state = WatcherState.STOPPED

    async def _on_event(self, event: FileSystemEvent) -> None:
        dest_path = getattr(event, "dest_path", "") or ""
        if not is_relevant(event.src_path, self.target) and not (
            dest_path and is_relevant(dest_path, self.target)
        ):
            logger.debug(f"Ignoring {event.event_type} event for {event.src_path}")
            return

        logger.debug(f"Configuration change detected: {event.event_type} {event.src_path}")

        if not self.target.path.exists():
            logger.error(
                f"Unable to watch {self.target.path}: no such file or directory",
                extra={"provider_name": PROVIDER_NAME}
            )
            return

        self.rebuild_count += 1
        try:
            configuration = await asyncio.to_thread(self.rebuild)
        except Exception as e:
            self.failed_rebuild_count += 1
            logger.error(
                f"Error occurred during watcher callback: {e}",
                extra={"provider_name": PROVIDER_NAME}
            )
            return

        await send_configuration(self.channel, configuration)
