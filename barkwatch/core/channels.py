"""
Single-slot channels for Barkwatch.

A SlotChannel is a mailbox that holds at most one item. Offering into an
occupied slot drops the new item instead of queueing it, so producers can
never be blocked and bursts never grow memory.

Producers may run on a foreign thread (the PortAudio capture callback);
the consumer is a single coroutine on the asyncio event loop.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_EMPTY: Any = object()


class ChannelClosed(Exception):
    """The producer side of a channel has terminated."""


class SlotEmpty(Exception):
    """A non-blocking take found no item in the slot."""


class SlotChannel(Generic[T]):
    """
    Single-slot mailbox with drop-when-full semantics.

    offer() never blocks and is safe to call from any thread.
    take() is a coroutine for exactly one consumer.
    """

    def __init__(self, name: str = "channel"):
        self._name = name
        self._lock = threading.Lock()
        self._item: Any = _EMPTY
        self._closed = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._waiter: asyncio.Future[None] | None = None

        # Statistics
        self.offered = 0
        self.dropped = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def pending(self) -> bool:
        """Whether an unconsumed item sits in the slot."""
        return self._item is not _EMPTY

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, item: T) -> bool:
        """
        Place item in the slot if it is empty.

        Safe to call from the audio callback thread. Every holder of the
        lock only reads or assigns a few attributes, so offer never waits
        on event loop work or I/O.

        Returns:
            True if the item was accepted, False if it was dropped
        """
        with self._lock:
            if self._closed or self._item is not _EMPTY:
                self.dropped += 1
                return False
            self._item = item
            self.offered += 1
            waiter = self._waiter
            loop = self._loop

        if waiter is not None and loop is not None:
            self._wake(loop, waiter)
        return True

    async def take(self) -> T:
        """
        Wait for an item and remove it from the slot.

        Raises:
            ChannelClosed: If the channel is closed and the slot is empty
        """
        loop = asyncio.get_running_loop()
        while True:
            waiter: asyncio.Future[None] = loop.create_future()
            with self._lock:
                if self._item is not _EMPTY:
                    item, self._item = self._item, _EMPTY
                    return item
                if self._closed:
                    raise ChannelClosed(self._name)

                self._loop = loop
                self._waiter = waiter

            try:
                await waiter
            finally:
                with self._lock:
                    if self._waiter is waiter:
                        self._waiter = None

    def try_take(self) -> T:
        """
        Remove the item from the slot without waiting.

        Raises:
            SlotEmpty: If there is nothing in the slot
            ChannelClosed: If the channel is closed and the slot is empty
        """
        with self._lock:
            if self._item is not _EMPTY:
                item, self._item = self._item, _EMPTY
                return item
            if self._closed:
                raise ChannelClosed(self._name)
        raise SlotEmpty(self._name)

    def close(self) -> None:
        """Mark the producer side as terminated and wake the consumer."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            waiter = self._waiter
            loop = self._loop

        if waiter is not None and loop is not None:
            self._wake(loop, waiter)

    def _wake(self, loop: asyncio.AbstractEventLoop, waiter: asyncio.Future[None]) -> None:
        """Resolve the consumer's waiter on its own loop."""
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            _resolve(waiter)
            return

        try:
            loop.call_soon_threadsafe(_resolve, waiter)
        except RuntimeError:
            pass  # Loop already closed during shutdown; nobody is waiting

    def __repr__(self) -> str:
        state = "closed" if self._closed else ("full" if self.pending else "empty")
        return f"<{type(self).__name__} {self._name!r} {state}>"


def _resolve(waiter: asyncio.Future[None]) -> None:
    if not waiter.done():
        waiter.set_result(None)


class EventCoalescer(SlotChannel[float]):
    """Single-slot buffer between the sample producer and the debounce worker."""

    def __init__(self, name: str = "samples"):
        super().__init__(name)


class EventSignal(SlotChannel[float]):
    """
    "An event occurred" flag from the debounce worker to the watchdog.

    Carries the timestamp of the event that set it; repeated signals
    before the watchdog looks collapse into one.
    """

    def __init__(self, name: str = "event-signal"):
        super().__init__(name)
