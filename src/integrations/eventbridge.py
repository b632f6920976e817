"""
Amazon EventBridge event sink.

Publishes forwarded SMS notifications to an EventBridge bus so consuming
applications can subscribe with rules on the detail type.

Usage:
    from integrations import eventbridge

    sink = eventbridge.EventBridgeSink(
        client=eventbridge.initialize_events_client(),
        event_bus_name="mobile-money-events"
    )
    forwarder.attach(sink)
    ...
    sink.flush()
"""

import json
import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

DEFAULT_EVENT_SOURCE = 'mobile-money.sms'
DEFAULT_FLUSH_TIMEOUT_SECONDS = 10.0


class ConfigurationError(Exception):
    """Raised when sink configuration is invalid or missing."""
    pass


def initialize_events_client():
    """
    Initialize boto3 EventBridge client with timeout configuration.

    Returns:
        boto3.client: Configured EventBridge client
    """
    # One attempt, short timeouts: delivery is best effort
    client_config = Config(
        retries={
            'max_attempts': 1,
            'mode': 'standard'
        },
        connect_timeout=5,
        read_timeout=10
    )

    region = os.environ.get('AWS_REGION', os.environ.get('AWS_DEFAULT_REGION', 'us-west-2'))

    client = boto3.client('events', region_name=region, config=client_config)

    logger.info(
        f"EventBridge client initialized: region={region}, "
        f"connect_timeout=5s, read_timeout=10s, max_attempts=1"
    )
    return client


class EventBridgeSink:
    """
    Event sink that publishes each event as one EventBridge entry.

    `emit` only schedules the publish on a background worker and returns;
    call `flush` before the process may be frozen (end of a Lambda
    invocation) so scheduled publishes complete.
    """

    def __init__(
        self,
        client,
        event_bus_name: str,
        source: str = DEFAULT_EVENT_SOURCE,
        max_workers: int = 2
    ):
        """
        Initialize sink.

        Args:
            client: boto3 EventBridge client
            event_bus_name: Name or ARN of the target event bus
            source: EventBridge Source field for every entry
            max_workers: Background publisher threads

        Raises:
            ConfigurationError: If the bus name or source is empty
        """
        if not event_bus_name:
            raise ConfigurationError("event_bus_name is required for EventBridgeSink")
        if not source:
            raise ConfigurationError("source is required for EventBridgeSink")

        self._client = client
        self.event_bus_name = event_bus_name
        self.source = source
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='eventbridge-sink')
        self._pending: List[Future] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event_name: str, payload: Dict[str, Any]) -> bool:
        """Schedule an event for publishing; returns immediately."""
        with self._lock:
            if self._closed:
                logger.debug(f"EventBridge sink closed, dropping {event_name}")
                return False
            future = self._executor.submit(self._publish, event_name, payload)
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)
        return True

    def _publish(self, event_name: str, payload: Dict[str, Any]) -> bool:
        """
        Send one entry to EventBridge.

        Returns:
            True if EventBridge accepted the entry (errors are logged, not raised)
        """
        entry = {
            'Source': self.source,
            'DetailType': event_name,
            'Detail': json.dumps(payload),
            'EventBusName': self.event_bus_name,
        }

        try:
            response = self._client.put_events(Entries=[entry])
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            error_message = e.response.get('Error', {}).get('Message', str(e))
            logger.error(
                f"Failed to publish {event_name} to EventBridge: "
                f"bus={self.event_bus_name}, error_code={error_code}, "
                f"error_message={error_message}"
            )
            return False
        except BotoCoreError as e:
            logger.error(f"Failed to publish {event_name} to EventBridge: bus={self.event_bus_name}, error={e}")
            return False

        if response.get('FailedEntryCount', 0):
            failed = (response.get('Entries') or [{}])[0]
            logger.error(
                f"EventBridge rejected {event_name}: bus={self.event_bus_name}, "
                f"error_code={failed.get('ErrorCode')}, "
                f"error_message={failed.get('ErrorMessage')}"
            )
            return False

        event_id = (response.get('Entries') or [{}])[0].get('EventId')
        logger.info(f"Published {event_name} to EventBridge: bus={self.event_bus_name}, event_id={event_id}")
        return True

    def flush(self, timeout: Optional[float] = DEFAULT_FLUSH_TIMEOUT_SECONDS) -> int:
        """
        Wait for scheduled publishes to finish.

        Args:
            timeout: Seconds to wait; None waits forever

        Returns:
            Number of publishes still outstanding after the wait
        """
        with self._lock:
            pending = list(self._pending)

        if not pending:
            return 0

        _, not_done = wait(pending, timeout=timeout)
        if not_done:
            logger.warning(f"EventBridge flush timed out with {len(not_done)} publish(es) outstanding")

        with self._lock:
            self._pending = [f for f in self._pending if not f.done()]

        return len(not_done)

    def close(self, timeout: Optional[float] = DEFAULT_FLUSH_TIMEOUT_SECONDS) -> None:
        """Stop accepting events, drain scheduled publishes and stop the worker."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.flush(timeout)
        self._executor.shutdown(wait=False)
        logger.info(f"EventBridge sink closed: bus={self.event_bus_name}")
