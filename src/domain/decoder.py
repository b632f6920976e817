"""
Message decoding - raw transport fragments to logical messages.

Decoding never fails: a fragment that cannot be parsed yields None fields
and decoding carries on with the remaining fragments.
"""

import logging
import math
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .models import FORMAT_3GPP, DecodedMessage, FragmentContent, RawFragment
from services import pdu as pdu_service

logger = logging.getLogger(__name__)

# Metadata keys a transport may fill in with values it already decoded
META_ADDRESS = 'originating_address'
META_BODY = 'message_body'
META_TIMESTAMP = 'timestamp_millis'


def _meta_str(metadata: Mapping[str, Any], key: str) -> Optional[str]:
    value = metadata.get(key)
    return value if isinstance(value, str) else None


def _meta_millis(metadata: Mapping[str, Any], key: str) -> Optional[int]:
    value = metadata.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return None


def read_fragment(fragment: RawFragment) -> FragmentContent:
    """
    Read sender, text, timestamp and concatenation info from one fragment.

    The PDU is parsed first; metadata values supplied by the transport
    override the parsed ones.

    Args:
        fragment: Raw fragment from the transport

    Returns:
        FragmentContent with None for every field that could not be read
    """
    sender = text = None
    timestamp_millis = None
    concat = None
    error = None

    try:
        if fragment.payload:
            if fragment.format != FORMAT_3GPP:
                raise pdu_service.PduError(f"Unsupported PDU format: {fragment.format}")
            parsed = pdu_service.parse_deliver_pdu(bytes(fragment.payload))
            sender = parsed.originating_address
            text = parsed.text
            timestamp_millis = parsed.timestamp_millis
            concat = parsed.concat
    except (ValueError, TypeError) as e:
        error = str(e)
        logger.warning(f"Malformed fragment payload: {e}")

    metadata = fragment.metadata if isinstance(fragment.metadata, Mapping) else {}
    meta_sender = _meta_str(metadata, META_ADDRESS)
    meta_text = _meta_str(metadata, META_BODY)
    meta_millis = _meta_millis(metadata, META_TIMESTAMP)

    return FragmentContent(
        sender=meta_sender if meta_sender is not None else sender,
        text=meta_text if meta_text is not None else text,
        timestamp_millis=meta_millis if meta_millis is not None else timestamp_millis,
        concat_ref=concat.reference if concat else None,
        concat_total=concat.total if concat else None,
        concat_seq=concat.sequence if concat else None,
        error=error,
    )


def assemble(contents: Sequence[FragmentContent]) -> DecodedMessage:
    """
    Build one logical message from the fragments that make it up.

    Texts are joined in the given order (the transport guarantees part
    order); sender and timestamp come from the first fragment.

    Args:
        contents: Fragment contents of a single logical message

    Returns:
        DecodedMessage (all fields None when nothing was readable)
    """
    if not contents:
        return DecodedMessage(sender=None, body=None, timestamp_millis=None, fragment_count=0)

    texts = [c.text for c in contents if c.text is not None]
    first = contents[0]

    return DecodedMessage(
        sender=first.sender,
        body=''.join(texts) if texts else None,
        timestamp_millis=first.timestamp_millis,
        fragment_count=len(contents),
    )


def decode(fragments: Iterable[RawFragment]) -> DecodedMessage:
    """
    Decode an ordered sequence of fragments into one logical message.

    Args:
        fragments: Fragments of one logical message, in transport order

    Returns:
        DecodedMessage; never raises for malformed input
    """
    contents: List[FragmentContent] = [read_fragment(f) for f in fragments]
    return assemble(contents)
