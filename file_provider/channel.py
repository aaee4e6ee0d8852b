"""
Delivery channel between the provider and its consumer.

Written by the initial build and by every watch-triggered rebuild. A full
channel blocks the writer until the consumer catches up.
"""

import asyncio
import logging

from .models import Configuration, Message, PROVIDER_NAME

logger = logging.getLogger(__name__)


class ConfigurationChannel:
    """Bounded, append-only queue of delivery messages."""

    def __init__(self, capacity: int = 10):
        """
        Initialize delivery channel.

        Args:
            capacity: Messages buffered before send() blocks
        """
        if capacity <= 0:
            raise ValueError("Channel capacity must be positive")
        self.capacity = capacity
        self._queue: "asyncio.Queue[Message]" = asyncio.Queue(maxsize=capacity)

    async def send(self, message: Message) -> None:
        """Enqueue a message, waiting while the channel is full."""
        await self._queue.put(message)

    async def receive(self) -> Message:
        """Wait for the next message."""
        return await self._queue.get()

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()


async def send_configuration(channel: ConfigurationChannel, configuration: Configuration) -> None:
    """Wrap a snapshot in a message tagged with the provider name and send it."""
    logger.debug(
        f"Sending configuration: {configuration.summary()}",
        extra={"provider_name": PROVIDER_NAME}
    )
    await channel.send(Message(provider_name=PROVIDER_NAME, configuration=configuration))
