"""
AWS Lambda handler for inbound SMS delivered through SQS.

Each SQS record is one inbound transport event: the batch of fragments the
handset received together. Thin orchestration layer that delegates to
InboundDispatcher.
Policy: Always delete messages (no retries). Errors logged to CloudWatch.

Record body formats:
    {"pdus": ["<hex>", ...], "format": "3gpp"}
    {"fragments": [{"pdu": "<hex>", "originatingAddress": "...",
                    "body": "...", "timestampMillis": 0}, ...]}
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from domain.classifier import DEFAULT_BODY_KEYWORDS, DEFAULT_SENDER_PATTERNS, MobileMoneyClassifier
from domain.decoder import META_ADDRESS, META_BODY, META_TIMESTAMP
from domain.dispatcher import InboundDispatcher
from domain.forwarder import EventForwarder
from domain.models import FORMAT_3GPP, RawFragment
from integrations import eventbridge

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO').upper())

# Add console handler for local testing (AWS Lambda provides handlers automatically)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    formatter = logging.Formatter('%(levelname)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

# Environment variables
ENVIRONMENT = os.environ.get('ENVIRONMENT', 'dev')
EVENT_BUS_NAME = os.environ.get('EVENT_BUS_NAME', '')
EVENT_SOURCE = os.environ.get('EVENT_SOURCE', eventbridge.DEFAULT_EVENT_SOURCE)
SMS_LISTENER_ENABLED = os.environ.get('SMS_LISTENER_ENABLED', 'true').lower() in ('1', 'true', 'yes')


def _read_list(name: str, default) -> List[str]:
    """Read a comma-separated list from the environment."""
    raw = os.environ.get(name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(',') if item.strip()]


def _build_classifier() -> MobileMoneyClassifier:
    """Build the classifier from environment configuration."""
    classifier = MobileMoneyClassifier(
        sender_patterns=_read_list('MOBILE_MONEY_SENDER_PATTERNS', DEFAULT_SENDER_PATTERNS),
        body_keywords=_read_list('MOBILE_MONEY_BODY_KEYWORDS', DEFAULT_BODY_KEYWORDS),
        case_sensitive_sender=os.environ.get('SENDER_MATCH_CASE_SENSITIVE', 'true').lower() != 'false',
    )
    logger.info(f"Classifier configured: {classifier!r}")
    return classifier


def _build_sink() -> Optional[eventbridge.EventBridgeSink]:
    """Build the EventBridge sink, or None when no bus is configured."""
    if not EVENT_BUS_NAME:
        logger.warning("EVENT_BUS_NAME not set: mobile-money events will be dropped")
        return None
    return eventbridge.EventBridgeSink(
        client=eventbridge.initialize_events_client(),
        event_bus_name=EVENT_BUS_NAME,
        source=EVENT_SOURCE,
    )


# Initialize pipeline once at module level (reused across invocations)
sink = _build_sink()
forwarder = EventForwarder(sink=sink)
dispatcher = InboundDispatcher(forwarder=forwarder, classifier=_build_classifier())
if SMS_LISTENER_ENABLED:
    dispatcher.activate()


def _decode_hex(value: Any) -> Optional[bytes]:
    """Decode a hex PDU string, returning None for anything unusable."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return bytes.fromhex(value)
    except ValueError:
        logger.warning(f"Invalid hex PDU: {value[:40]}")
        return None


def _fragments_from_record(record: Dict[str, Any]) -> List[RawFragment]:
    """
    Parse an SQS record body into raw fragments.

    Raises:
        json.JSONDecodeError: If the body is not JSON
        ValueError: If the body has neither pdus nor fragments
    """
    body = json.loads(record['body'])
    if not isinstance(body, dict):
        raise ValueError("SMS record body must be a JSON object")

    pdu_format = body.get('format', FORMAT_3GPP)

    if isinstance(body.get('pdus'), list):
        return [
            RawFragment(payload=_decode_hex(pdu), format=pdu_format)
            for pdu in body['pdus']
        ]

    if isinstance(body.get('fragments'), list):
        fragments = []
        for item in body['fragments']:
            if not isinstance(item, dict):
                fragments.append(RawFragment(format=pdu_format))
                continue
            metadata = {
                META_ADDRESS: item.get('originatingAddress'),
                META_BODY: item.get('body'),
                META_TIMESTAMP: item.get('timestampMillis'),
            }
            fragments.append(RawFragment(
                payload=_decode_hex(item.get('pdu')),
                format=item.get('format', pdu_format),
                metadata={k: v for k, v in metadata.items() if v is not None},
            ))
        return fragments

    raise ValueError("SMS record body has neither 'pdus' nor 'fragments'")


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Process inbound SMS events from SQS.

    Args:
        event: Lambda event with SQS records
        context: Lambda context

    Returns:
        Dict with batchItemFailures (always empty - no retries)
    """
    records = event.get('Records', [])
    logger.info(f"Processing batch of {len(records)} inbound SMS event(s) [{ENVIRONMENT}]")

    forwarded_count = 0
    error_count = 0
    for record in records:
        message_id = record.get('messageId', 'UNKNOWN')
        try:
            fragments = _fragments_from_record(record)
        except (KeyError, TypeError, ValueError) as e:
            error_count += 1
            logger.warning(f"⚠ Skipping unreadable SMS record {message_id}: {e}")
            continue

        results = dispatcher.on_inbound_event(fragments)
        for result in results:
            if not result.success:
                error_count += 1
                logger.warning(f"⚠ Record {message_id}: {result!r}")
            elif result.forwarded:
                forwarded_count += 1

    if sink is not None:
        sink.flush()

    logger.info(
        f"Batch complete: records={len(records)}, forwarded={forwarded_count}, "
        f"errors={error_count}"
    )

    return {"batchItemFailures": []}
