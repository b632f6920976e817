"""
Data models for the SMS classification domain.

These type-safe data structures define clear contracts between components.
Every instance is transient: created, consumed and discarded while one
inbound transport event is processed.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

FORMAT_3GPP = '3gpp'


@dataclass(frozen=True)
class RawFragment:
    """
    One unit of raw transport payload.

    Attributes:
        payload: SMS-DELIVER PDU bytes (None if the transport sent none)
        format: PDU format reported by the transport ("3gpp")
        metadata: Transport-decoded fields that take precedence over the PDU:
                  originating_address, message_body, timestamp_millis
    """
    payload: Optional[bytes] = None
    format: str = FORMAT_3GPP
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FragmentContent:
    """
    Fields read from a single fragment.

    Attributes:
        sender: Originating address (None if unreadable)
        text: Fragment text (None if unreadable)
        timestamp_millis: Service-centre timestamp (None if unreadable)
        concat_ref: Concatenation reference shared by the parts of one message
        concat_total: Number of parts in the concatenated message
        concat_seq: 1-based index of this part
        error: Why the payload could not be parsed (None on success)
    """
    sender: Optional[str] = None
    text: Optional[str] = None
    timestamp_millis: Optional[int] = None
    concat_ref: Optional[int] = None
    concat_total: Optional[int] = None
    concat_seq: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_readable(self) -> bool:
        """True if any field could be recovered from the fragment."""
        return any(v is not None for v in (self.sender, self.text, self.timestamp_millis))


@dataclass(frozen=True)
class DecodedMessage:
    """
    Logical message reconstructed from one or more fragments.

    Attributes:
        sender: Originating address (None if malformed)
        body: Concatenated message text (None if malformed)
        timestamp_millis: Epoch milliseconds of the first fragment (None if malformed)
        fragment_count: Number of fragments the message was built from
    """
    sender: Optional[str]
    body: Optional[str]
    timestamp_millis: Optional[int] = None
    fragment_count: int = 1

    def body_preview(self, limit: int = 80) -> str:
        """Shortened body for log lines."""
        if self.body is None:
            return '<no body>'
        return self.body[:limit] + ('...' if len(self.body) > limit else '')


@dataclass(frozen=True)
class NotificationEvent:
    """
    Structured record forwarded to the downstream sink.

    Attributes:
        address: Sender address
        body: Message text
        timestamp_millis: Epoch milliseconds, kept as a float so consumers
                          with reduced integer precision receive a safe number
    """
    address: Optional[str]
    body: Optional[str]
    timestamp_millis: float

    @classmethod
    def from_message(cls, msg: DecodedMessage, fallback_millis: int) -> 'NotificationEvent':
        """
        Build an event from a classified-positive message.

        Args:
            msg: Decoded message
            fallback_millis: Timestamp to use when the message has none
        """
        timestamp = msg.timestamp_millis if msg.timestamp_millis is not None else fallback_millis
        return cls(address=msg.sender, body=msg.body, timestamp_millis=float(timestamp))

    def to_payload(self) -> Dict[str, Any]:
        """
        Convert to the payload shape sinks receive.

        Returns:
            Dict with address, body and timestamp
        """
        return {
            'address': self.address,
            'body': self.body,
            'timestamp': self.timestamp_millis,
        }


@dataclass
class DispatchResult:
    """
    Outcome of processing one logical message of an inbound event.

    This explicit result type lets the host log each message without the
    dispatcher raising.

    Attributes:
        success: Whether the message went through the pipeline without error
        message_index: Position of the message within the inbound event
        message: Decoded message (if decoding got that far)
        classified: Whether the message is a mobile-money notification
        forwarded: Whether an event was handed to a sink
        error_message: Error description (if processing failed)
    """
    success: bool
    message_index: int
    message: Optional[DecodedMessage] = None
    classified: bool = False
    forwarded: bool = False
    error_message: Optional[str] = None

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        if self.success:
            return (
                f"DispatchResult(success=True, index={self.message_index}, "
                f"classified={self.classified}, forwarded={self.forwarded})"
            )
        return (
            f"DispatchResult(success=False, index={self.message_index}, "
            f"error={self.error_message})"
        )
