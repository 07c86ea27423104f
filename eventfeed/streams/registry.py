"""Channel-mode subscribers and their cancellation tokens."""

import asyncio
import logging
import threading

from anyio.streams.memory import MemoryObjectSendStream

from eventfeed.errors import SubscriptionError


class SubscriptionRegistry:
    """Maps each delivery channel to the cancellation token of its task.

    The lock only guards the dict; it is never held across an await.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribed: dict[MemoryObjectSendStream, asyncio.Event] = {}

    def __contains__(self, channel: MemoryObjectSendStream) -> bool:
        with self._lock:
            return channel in self._subscribed

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribed)

    def channels(self) -> list[MemoryObjectSendStream]:
        with self._lock:
            return list(self._subscribed)

    def register(self, channel: MemoryObjectSendStream) -> asyncio.Event:
        with self._lock:
            if channel in self._subscribed:
                raise SubscriptionError("channel is already subscribed")
            cancelled = asyncio.Event()
            self._subscribed[channel] = cancelled
            return cancelled

    def signal(self, channel: MemoryObjectSendStream) -> bool:
        """Request cancellation; returns False when nothing is registered."""
        with self._lock:
            cancelled = self._subscribed.get(channel)
            if cancelled is None:
                return False
            cancelled.set()
            return True

    def remove(self, channel: MemoryObjectSendStream) -> bool:
        """Drop the entry, closing its token and the delivery channel.

        Only the first call for a given entry does anything.
        """
        with self._lock:
            cancelled = self._subscribed.pop(channel, None)
            if cancelled is None:
                return False
            cancelled.set()
            channel.close()
        logging.debug("Removed channel subscription, %d left", len(self))
        return True
