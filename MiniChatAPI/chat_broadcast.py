"""
Chat broadcast hub.

A single publish point fanning chat messages out to every open SSE
connection. Each connection owns a ``QueueSink``; the ``SubscriberRegistry``
only holds a reference to it for the lifetime of the connection.
"""

import asyncio
import itertools
import logging
import re
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

_CLOSED = object()


class SubscriberWriteError(Exception):
    """Raised when a message cannot be handed to a subscriber sink."""


@dataclass(frozen=True)
class SubscriberHandle:
    """Opaque token returned by ``SubscriberRegistry.add``."""
    id: int


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class QueueSink:
    """
    Write end of one streaming connection.

    Messages are put on a per-connection ``asyncio.Queue`` owned by the event
    loop serving the connection. ``write`` never blocks: calls made from
    another thread are handed to that loop with ``call_soon_threadsafe``.
    While such hand-offs are still in flight, writes made on the loop take the
    same path so messages keep the order they were written in.

    Attributes:
        closed (bool): True once the connection's lifetime has ended.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int = 0):
        self._loop = loop
        self._maxsize = maxsize
        self._queue: asyncio.Queue = asyncio.Queue()
        self._handoffs = 0
        self._handoff_lock = threading.Lock()
        self._sentinel_queued = False
        self.closed = False

    def write(self, message: str) -> None:
        """
        Queue a message for this connection without waiting.

        Args:
            message (str): The chat message.

        Raises:
            SubscriberWriteError: If the sink is closed, its loop is gone, or
                its queue is full.
        """
        if self.closed:
            raise SubscriberWriteError("subscriber is closed")
        if self._loop.is_closed():
            raise SubscriberWriteError("subscriber event loop is closed")
        with self._handoff_lock:
            if _running_loop() is self._loop and not self._handoffs:
                self._put(message)
                return
            self._handoffs += 1
        try:
            self._loop.call_soon_threadsafe(self._put_handed_off, message)
        except RuntimeError as exc:
            with self._handoff_lock:
                self._handoffs -= 1
            raise SubscriberWriteError(str(exc)) from exc

    def _put(self, message: str) -> None:
        if self._maxsize and self.pending >= self._maxsize:
            raise SubscriberWriteError(f"subscriber queue full ({self._maxsize} pending)")
        self._queue.put_nowait(message)

    def _put_handed_off(self, message: str) -> None:
        try:
            if not self.closed:
                self._put(message)
        except SubscriberWriteError as exc:
            logger.warning("Dropped message for subscriber: %s", exc)
        finally:
            with self._handoff_lock:
                self._handoffs -= 1

    def _put_sentinel(self) -> None:
        self._sentinel_queued = True
        self._queue.put_nowait(_CLOSED)

    def close(self) -> None:
        """Mark the sink closed and wake its reader."""
        if self.closed:
            return
        self.closed = True
        if self._loop.is_closed():
            return
        if _running_loop() is self._loop:
            self._put_sentinel()
        else:
            try:
                self._loop.call_soon_threadsafe(self._put_sentinel)
            except RuntimeError:
                pass

    @property
    def pending(self) -> int:
        """Messages waiting to be read, not counting the close marker."""
        return self._queue.qsize() - (1 if self._sentinel_queued else 0)

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        item = await self._queue.get()
        if item is _CLOSED:
            # keep the sentinel so further reads also stop
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item


class SubscriberRegistry:
    """
    The set of currently connected subscriber sinks.

    A lock guards the mapping and is only held for add, remove and snapshot.
    """

    def __init__(self):
        self._sinks: Dict[SubscriberHandle, QueueSink] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def add(self, sink: QueueSink) -> SubscriberHandle:
        """
        Register a sink.

        Args:
            sink (QueueSink): The connection's write sink.

        Returns:
            SubscriberHandle: Token to pass to ``remove``.
        """
        with self._lock:
            handle = SubscriberHandle(next(self._ids))
            self._sinks[handle] = sink
        return handle

    def remove(self, handle: SubscriberHandle) -> None:
        """
        Deregister a sink. Unknown or already removed handles are ignored.

        Args:
            handle (SubscriberHandle): Token returned by ``add``.
        """
        with self._lock:
            sink = self._sinks.pop(handle, None)
        if sink is None:
            logger.debug("Subscriber %s already removed", handle.id)

    def snapshot(self) -> Tuple[QueueSink, ...]:
        """Return the sinks registered at the moment of the call."""
        with self._lock:
            return tuple(self._sinks.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sinks)

    def __contains__(self, handle: SubscriberHandle) -> bool:
        with self._lock:
            return handle in self._sinks


class Broadcaster:
    """
    Fan-out hub for chat messages.

    Attributes:
        registry (SubscriberRegistry): Active subscriber sinks.
    """

    def __init__(self, queue_size: int = 0):
        self.registry = SubscriberRegistry()
        self.queue_size = queue_size
        self._publish_lock = threading.Lock()
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        return len(self.registry)

    @property
    def closed(self) -> bool:
        return self._closed

    @asynccontextmanager
    async def subscribe(self, maxsize: Optional[int] = None):
        """
        Register a sink for the current connection.

        The sink is deregistered and closed on every exit path, including
        cancellation when the client disconnects.

        Args:
            maxsize (int, optional): Queue bound for this sink. Defaults to
                the hub's ``queue_size``; 0 means unbounded.

        Yields:
            QueueSink: Async iterator over broadcast messages.
        """
        sink = QueueSink(
            asyncio.get_running_loop(),
            self.queue_size if maxsize is None else maxsize,
        )
        handle = self.registry.add(sink)
        if self._closed:
            sink.close()
        logger.info("Subscriber %s connected (%d active)", handle.id, self.subscriber_count)
        try:
            yield sink
        finally:
            self.registry.remove(handle)
            sink.close()
            logger.info("Subscriber %s disconnected (%d active)", handle.id, self.subscriber_count)

    def publish(self, message: str) -> int:
        """
        Publish a message to all subscribers without waiting.

        Empty or whitespace-only messages are dropped. A failing sink is
        logged and skipped; it is removed by its own connection cleanup.

        Args:
            message (str): The chat message.

        Returns:
            int: Number of sinks the message was handed to.
        """
        if not message or not message.strip():
            logger.debug("Ignoring empty chat message")
            return 0
        if self._closed:
            return 0

        delivered = 0
        with self._publish_lock:
            for sink in self.registry.snapshot():
                try:
                    sink.write(message)
                except SubscriberWriteError as exc:
                    logger.warning("Could not deliver message to subscriber: %s", exc)
                except Exception:
                    logger.exception("Unexpected error delivering message to subscriber")
                else:
                    delivered += 1
        return delivered

    def close(self) -> None:
        """Close every open sink so their streams end. Later publishes are ignored."""
        self._closed = True
        for sink in self.registry.snapshot():
            sink.close()


# SSE only treats CRLF, CR and LF as line breaks
_SSE_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def format_sse_frame(message: str) -> str:
    """
    Frame a message as a Server-Sent Events ``data`` event.

    Args:
        message (str): The message text.

    Returns:
        str: ``data: <line>`` for every line, followed by a blank line.
    """
    lines = _SSE_LINE_BREAK.split(message)
    return "".join(f"data: {line}\n" for line in lines) + "\n"


KEEP_ALIVE_FRAME = ": keep-alive\n\n"
