"""
Downstream event sinks.

A sink is the single event channel forwarded notifications are emitted on.
The host application wires a concrete sink at startup and may tear it down
at any time; `emit` must hand the event off without waiting for the
consumer.
"""

import logging
import queue
import threading
from typing import Any, Dict, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100


class EventSink(Protocol):
    """Channel that accepts named events without blocking the caller."""

    closed: bool

    def emit(self, event_name: str, payload: Dict[str, Any]) -> bool:
        """Hand the event off; False if the sink did not accept it."""
        ...


class QueueSink:
    """
    Bounded in-process event channel.

    The producer side never blocks: when the queue is full the event is
    dropped and logged. A consumer thread reads events with `get`.
    """

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE):
        self._queue: 'queue.Queue[Tuple[str, Dict[str, Any]]]' = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def emit(self, event_name: str, payload: Dict[str, Any]) -> bool:
        if self.closed:
            logger.debug(f"Queue sink closed, dropping {event_name}")
            return False
        try:
            self._queue.put_nowait((event_name, payload))
            return True
        except queue.Full:
            self.dropped += 1
            logger.warning(
                f"Queue sink full ({self._queue.maxsize}), dropping {event_name} "
                f"(dropped so far: {self.dropped})"
            )
            return False

    def get(self, timeout: Optional[float] = None) -> Optional[Tuple[str, Dict[str, Any]]]:
        """
        Take the next event.

        Args:
            timeout: Seconds to wait; None waits forever

        Returns:
            (event_name, payload), or None if nothing arrived in time
        """
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        """Mark the sink torn down; later events are dropped."""
        self._closed.set()
