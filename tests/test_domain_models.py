"""
Tests for domain models (data structures).
"""

import pytest
import sys
import os
from dataclasses import FrozenInstanceError

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.models import (
    DecodedMessage,
    DispatchResult,
    FragmentContent,
    NotificationEvent,
    RawFragment,
)


class TestRawFragment:
    """Test RawFragment dataclass."""

    def test_defaults(self):
        """Test default format and metadata."""
        fragment = RawFragment(payload=b"\x00")
        assert fragment.format == '3gpp'
        assert fragment.metadata == {}

    def test_immutable(self):
        """Test fragments cannot be modified."""
        fragment = RawFragment(payload=b"\x00")
        with pytest.raises(FrozenInstanceError):
            fragment.payload = b"\x01"


class TestFragmentContent:
    """Test FragmentContent dataclass."""

    def test_readable_with_any_field(self):
        """Test a single recovered field makes the fragment readable."""
        assert FragmentContent(text="Ksh100").is_readable is True
        assert FragmentContent(timestamp_millis=1).is_readable is True

    def test_unreadable_when_empty(self):
        """Test error-only content is unreadable."""
        assert FragmentContent(error="PDU is empty").is_readable is False


class TestDecodedMessage:
    """Test DecodedMessage dataclass."""

    def test_creation(self):
        """Test creating DecodedMessage instance."""
        msg = DecodedMessage(sender="MPESA", body="Confirmed", timestamp_millis=1700000000000)

        assert msg.sender == "MPESA"
        assert msg.body == "Confirmed"
        assert msg.timestamp_millis == 1700000000000
        assert msg.fragment_count == 1

    def test_null_fields_allowed(self):
        """Test malformed messages carry None fields."""
        msg = DecodedMessage(sender=None, body=None)
        assert msg.timestamp_millis is None

    def test_immutable(self):
        """Test messages cannot be modified after construction."""
        msg = DecodedMessage(sender="MPESA", body="Confirmed")
        with pytest.raises(FrozenInstanceError):
            msg.sender = "OTHER"

    def test_body_preview_truncates(self):
        """Test long bodies are shortened for logs."""
        msg = DecodedMessage(sender="MPESA", body="x" * 200)
        preview = msg.body_preview(limit=10)
        assert preview == "x" * 10 + "..."

    def test_body_preview_without_body(self):
        """Test preview of a message with no body."""
        assert DecodedMessage(sender="MPESA", body=None).body_preview() == '<no body>'


class TestNotificationEvent:
    """Test NotificationEvent dataclass."""

    def test_from_message(self):
        """Test event fields copy the message."""
        msg = DecodedMessage(sender="MPESA", body="You have received Ksh500", timestamp_millis=1700000000123)
        event = NotificationEvent.from_message(msg, fallback_millis=0)

        assert event.address == "MPESA"
        assert event.body == "You have received Ksh500"
        assert event.timestamp_millis == 1700000000123.0
        assert isinstance(event.timestamp_millis, float)

    def test_from_message_uses_fallback_timestamp(self):
        """Test missing timestamp falls back to the supplied time."""
        msg = DecodedMessage(sender=None, body="M-PESA statement ready")
        event = NotificationEvent.from_message(msg, fallback_millis=42)
        assert event.timestamp_millis == 42.0
        assert event.address is None

    def test_to_payload(self):
        """Test payload shape sent to sinks."""
        event = NotificationEvent(address="MPESA", body="Confirmed", timestamp_millis=5.0)
        assert event.to_payload() == {
            'address': "MPESA",
            'body': "Confirmed",
            'timestamp': 5.0,
        }


class TestDispatchResult:
    """Test DispatchResult dataclass."""

    def test_success_defaults(self):
        """Test successful negative result."""
        result = DispatchResult(success=True, message_index=0)

        assert result.classified is False
        assert result.forwarded is False
        assert result.error_message is None

    def test_repr_success(self):
        """Test __repr__ for successful result."""
        result = DispatchResult(success=True, message_index=2, classified=True, forwarded=True)

        repr_str = repr(result)
        assert "success=True" in repr_str
        assert "index=2" in repr_str
        assert "forwarded=True" in repr_str

    def test_repr_failure(self):
        """Test __repr__ for failed result."""
        result = DispatchResult(success=False, message_index=1, error_message="Test error")

        repr_str = repr(result)
        assert "success=False" in repr_str
        assert "Test error" in repr_str


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
