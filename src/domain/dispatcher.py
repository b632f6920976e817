"""
Inbound dispatcher - entry point for each inbound transport event.

Sequencing per event:
1. Read every fragment and group the fragments of each logical message
2. Decode -> classify -> (if positive) forward, message by message
3. Contain any failure to the message it happened in

No exception propagates out of on_inbound_event; the transport calling it
may treat an unhandled error in its callback as fatal.
"""

import logging
import threading
from typing import Dict, Hashable, Iterable, List, Optional, Tuple

from . import decoder
from .classifier import DEFAULT_CLASSIFIER, MobileMoneyClassifier
from .forwarder import EventForwarder
from .models import DispatchResult, FragmentContent, RawFragment

logger = logging.getLogger(__name__)


def group_fragments(contents: Iterable[FragmentContent]) -> List[List[FragmentContent]]:
    """
    Group fragment contents into logical messages.

    - Concatenated parts group by (sender, reference, total)
    - Every other fragment is a complete message on its own

    Groups keep the order in which their first fragment arrived, and
    fragments keep transport order within a group.
    """
    groups: Dict[Hashable, List[FragmentContent]] = {}
    for index, content in enumerate(contents):
        if content.is_readable and content.concat_ref is not None:
            key: Tuple = ('concat', content.sender, content.concat_ref, content.concat_total)
        else:
            key = ('single', index)
        groups.setdefault(key, []).append(content)
    return list(groups.values())


class InboundDispatcher:
    """
    Runs the decode -> classify -> forward pipeline for inbound events.

    The dispatcher has two lifecycle states, inactive and active, driven by
    the host (e.g. once permission to read messages is granted). Events that
    arrive while inactive are ignored. No other state survives a call.
    """

    def __init__(
        self,
        forwarder: EventForwarder,
        classifier: Optional[MobileMoneyClassifier] = None
    ):
        """
        Initialize dispatcher.

        Args:
            forwarder: Forwarder holding the downstream sink slot
            classifier: Classifier to use (defaults to the standard signals)
        """
        self.forwarder = forwarder
        self.classifier = classifier or DEFAULT_CLASSIFIER
        self._active = threading.Event()

    @property
    def active(self) -> bool:
        return self._active.is_set()

    def activate(self) -> None:
        """Start accepting inbound events."""
        self._active.set()
        logger.info("Inbound dispatcher activated")

    def deactivate(self) -> None:
        """Stop accepting inbound events."""
        self._active.clear()
        logger.info("Inbound dispatcher deactivated")

    def on_inbound_event(self, fragments: Iterable[RawFragment]) -> List[DispatchResult]:
        """
        Process one inbound transport event.

        Args:
            fragments: Every fragment delivered together by the transport

        Returns:
            One DispatchResult per logical message (empty when inactive
            or when the event could not be read at all)
        """
        if not self.active:
            logger.debug("Inbound event ignored: dispatcher inactive")
            return []

        try:
            contents = [self._read(f) for f in fragments]
            groups = group_fragments(contents)
        except Exception as e:
            logger.error(f"Failed to read inbound event: {e}", exc_info=True)
            return []

        logger.info(f"Inbound event: {len(contents)} fragment(s), {len(groups)} message(s)")

        return [self._process_message(index, group) for index, group in enumerate(groups)]

    def _read(self, fragment: RawFragment) -> FragmentContent:
        """Read one fragment; a failure makes only that fragment unreadable."""
        try:
            return decoder.read_fragment(fragment)
        except Exception as e:
            logger.warning(f"Unreadable fragment: {e}", exc_info=True)
            return FragmentContent(error=str(e))

    def _process_message(self, index: int, group: List[FragmentContent]) -> DispatchResult:
        """
        Decode, classify and forward one logical message.

        Returns:
            DispatchResult with success=False if anything raised (error logged)
        """
        msg = None
        try:
            msg = decoder.assemble(group)

            signals = self.classifier.matched_signals(msg)
            if not signals:
                logger.debug(f"Message {index} not mobile-money: from={msg.sender}")
                return DispatchResult(success=True, message_index=index, message=msg)

            logger.info(
                f"Message {index} is mobile-money (signals={','.join(signals)}): "
                f"from={msg.sender}, body={msg.body_preview()}"
            )
            forwarded = self.forwarder.forward(msg)

            return DispatchResult(
                success=True,
                message_index=index,
                message=msg,
                classified=True,
                forwarded=forwarded,
            )

        except Exception as e:
            logger.error(f"Failed to process message {index}: {e}", exc_info=True)

            return DispatchResult(
                success=False,
                message_index=index,
                message=msg,
                error_message=str(e),
            )
