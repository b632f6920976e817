"""
Event forwarding to the registered downstream sink.

Delivery is best effort: with no sink attached (host not started yet, or
already torn down) the event is dropped. There is no retry queue and no
buffering.
"""

import logging
import threading
import time
from typing import Callable, Optional

from .models import DecodedMessage, NotificationEvent
from .sinks import EventSink

logger = logging.getLogger(__name__)

# Event name consumers subscribe to
EVENT_NAME = 'sms_received'


def _now_millis() -> int:
    return int(time.time() * 1000)


class EventForwarder:
    """
    Hands NotificationEvents to a single sink slot.

    The slot may be attached and detached from another thread while
    forwarding is in progress; each forward reads it once under a lock.
    """

    def __init__(
        self,
        sink: Optional[EventSink] = None,
        event_name: str = EVENT_NAME,
        clock: Callable[[], int] = _now_millis
    ):
        self._lock = threading.Lock()
        self._sink = sink
        self.event_name = event_name
        self._clock = clock

    def attach(self, sink: EventSink) -> None:
        """Register the downstream sink, replacing any previous one."""
        with self._lock:
            self._sink = sink
        logger.info(f"Sink attached: {type(sink).__name__}")

    def detach(self) -> Optional[EventSink]:
        """
        Deregister the current sink.

        Returns:
            The sink that was attached, if any
        """
        with self._lock:
            sink, self._sink = self._sink, None
        if sink is not None:
            logger.info(f"Sink detached: {type(sink).__name__}")
        return sink

    @property
    def sink(self) -> Optional[EventSink]:
        with self._lock:
            return self._sink

    def forward(self, msg: DecodedMessage) -> bool:
        """
        Build a NotificationEvent and emit it to the current sink.

        Only call this for messages the classifier accepted.

        Args:
            msg: Classified-positive message

        Returns:
            True if the event was handed to a sink, False if it was dropped
        """
        sink = self.sink
        if sink is None or getattr(sink, 'closed', False):
            logger.debug(f"No active sink, dropping event from {msg.sender}")
            return False

        event = NotificationEvent.from_message(msg, fallback_millis=self._clock())

        try:
            accepted = sink.emit(self.event_name, event.to_payload())
        except Exception as e:
            logger.error(f"Sink {type(sink).__name__} failed to accept event: {e}", exc_info=True)
            return False

        if accepted is False:
            logger.warning(f"Sink {type(sink).__name__} dropped event from {event.address}")
            return False

        logger.info(f"Forwarded {self.event_name}: from={event.address}")
        return True
