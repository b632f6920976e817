"""
Tests for in-process event sinks.
"""

import pytest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.sinks import QueueSink


class TestQueueSink:
    """Test the bounded queue sink."""

    def test_emit_and_get(self):
        """Test events come out in the order they went in."""
        sink = QueueSink()
        assert sink.emit('sms_received', {'body': 'one'}) is True
        assert sink.emit('sms_received', {'body': 'two'}) is True

        assert sink.get(timeout=0) == ('sms_received', {'body': 'one'})
        assert sink.get(timeout=0) == ('sms_received', {'body': 'two'})

    def test_get_timeout_returns_none(self):
        """Test empty queue returns None after the timeout."""
        assert QueueSink().get(timeout=0.01) is None

    def test_full_queue_drops_without_blocking(self):
        """Test emit never blocks when the consumer falls behind."""
        sink = QueueSink(maxsize=1)
        sink.emit('sms_received', {'body': 'kept'})
        assert sink.emit('sms_received', {'body': 'dropped'}) is False

        assert sink.dropped == 1
        assert sink.pending() == 1
        assert sink.get(timeout=0)[1] == {'body': 'kept'}

    def test_close(self):
        """Test a closed sink drops new events."""
        sink = QueueSink()
        assert sink.closed is False

        sink.close()
        assert sink.emit('sms_received', {'body': 'late'}) is False

        assert sink.closed is True
        assert sink.pending() == 0


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
