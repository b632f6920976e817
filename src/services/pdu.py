"""
SMS-DELIVER PDU parsing (3GPP TS 23.040).

This module turns the raw PDU bytes a handset receives into sender, text,
service-centre timestamp and concatenation information. Only the
SMS-DELIVER message type is supported; that is the only type a receiver
sees for incoming messages.

Usage:
    from services import pdu

    parsed = pdu.parse_deliver_pdu(bytes.fromhex("0791..."))
    print(parsed.originating_address, parsed.text)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from services import gsm7

logger = logging.getLogger(__name__)

# First octet
MTI_MASK = 0x03
MTI_DELIVER = 0x00
UDHI_FLAG = 0x40

# Type-of-number values (bits 4-6 of the type-of-address octet)
TON_INTERNATIONAL = 0x01
TON_ALPHANUMERIC = 0x05

# Data coding alphabets
ALPHABET_GSM7 = 'gsm7'
ALPHABET_8BIT = '8bit'
ALPHABET_UCS2 = 'ucs2'

# User data header information elements
IEI_CONCAT_8BIT = 0x00
IEI_CONCAT_16BIT = 0x08

SCTS_LENGTH = 7


class PduError(ValueError):
    """Raised when a PDU is truncated, malformed or not an SMS-DELIVER."""
    pass


@dataclass(frozen=True)
class ConcatInfo:
    """
    Concatenated-message information from the user data header.

    Attributes:
        reference: Reference number shared by all parts of one message
        total: Total number of parts
        sequence: 1-based index of this part
    """
    reference: int
    total: int
    sequence: int


@dataclass(frozen=True)
class DeliverPdu:
    """
    Decoded SMS-DELIVER PDU.

    Attributes:
        originating_address: Sender number or alphanumeric sender ID
        text: Decoded user data text (header stripped)
        timestamp_millis: Service-centre timestamp in epoch milliseconds
        alphabet: Data coding alphabet used for the text
        concat: Concatenation info when the message is one part of several
    """
    originating_address: str
    text: str
    timestamp_millis: int
    alphabet: str = ALPHABET_GSM7
    concat: Optional[ConcatInfo] = None


class _Reader:
    """Sequential reader over PDU bytes that fails loudly on truncation."""

    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    def byte(self) -> int:
        return self.take(1)[0]

    def take(self, count: int) -> bytes:
        if count < 0 or self._pos + count > len(self._data):
            raise PduError(
                f"PDU truncated: wanted {count} octet(s) at offset {self._pos}, "
                f"length is {len(self._data)}"
            )
        chunk = self._data[self._pos:self._pos + count]
        self._pos += count
        return chunk

    def rest(self) -> bytes:
        chunk = self._data[self._pos:]
        self._pos = len(self._data)
        return chunk


def _swapped_bcd(octet: int) -> int:
    """Decode one semi-octet swapped BCD value (e.g. 0x21 -> 12)."""
    low = octet & 0x0F
    high = (octet >> 4) & 0x0F
    if low > 9 or high > 9:
        raise PduError(f"Invalid BCD octet: 0x{octet:02X}")
    return low * 10 + high


def _decode_address(reader: _Reader) -> str:
    """
    Decode the originating address field.

    The length octet counts useful semi-octets, not octets. Alphanumeric
    addresses are GSM 7-bit packed.
    """
    digit_count = reader.byte()
    type_of_address = reader.byte()
    octets = reader.take((digit_count + 1) // 2)
    type_of_number = (type_of_address >> 4) & 0x07

    if type_of_number == TON_ALPHANUMERIC:
        return gsm7.decode_packed(octets, digit_count * 4 // 7)

    digits = []
    for octet in octets:
        for nibble in (octet & 0x0F, (octet >> 4) & 0x0F):
            if nibble == 0x0F:
                break
            digits.append('0123456789*#abc'[nibble])
    address = ''.join(digits[:digit_count])

    if type_of_number == TON_INTERNATIONAL and address:
        address = f"+{address}"
    return address


def _decode_timestamp(raw: bytes) -> int:
    """
    Convert a 7-octet service-centre timestamp to epoch milliseconds.

    The final octet is the zone offset in quarter hours; bit 3 carries the
    sign.
    """
    year, month, day, hour, minute, second = (_swapped_bcd(o) for o in raw[:6])
    year += 1900 if year >= 90 else 2000

    zone_octet = raw[6]
    quarters = (zone_octet & 0x07) * 10 + ((zone_octet >> 4) & 0x0F)
    if zone_octet & 0x08:
        quarters = -quarters

    try:
        local = datetime(
            year, month, day, hour, minute, second,
            tzinfo=timezone(timedelta(minutes=15 * quarters))
        )
    except ValueError as e:
        raise PduError(f"Invalid service-centre timestamp: {raw.hex()}") from e

    return int(local.timestamp() * 1000)


def _alphabet_for(dcs: int) -> str:
    """Resolve the user data alphabet from the data coding scheme octet."""
    group = dcs & 0xF0
    if dcs & 0x80 == 0x00:
        # General data coding, with or without automatic deletion (bits 2-3 select the alphabet)
        coding = (dcs >> 2) & 0x03
        if coding == 0x01:
            return ALPHABET_8BIT
        if coding == 0x02:
            return ALPHABET_UCS2
        return ALPHABET_GSM7
    if group == 0xF0:
        return ALPHABET_8BIT if dcs & 0x04 else ALPHABET_GSM7
    if group == 0xE0:
        return ALPHABET_UCS2
    if group in (0xC0, 0xD0):
        return ALPHABET_GSM7
    raise PduError(f"Unsupported data coding scheme: 0x{dcs:02X}")


def _parse_header(header: bytes) -> Optional[ConcatInfo]:
    """Walk user data header information elements, keeping concatenation info."""
    concat = None
    pos = 0
    while pos + 2 <= len(header):
        iei = header[pos]
        length = header[pos + 1]
        value = header[pos + 2:pos + 2 + length]
        if len(value) < length:
            raise PduError("User data header information element truncated")

        if iei == IEI_CONCAT_8BIT and length == 3:
            concat = ConcatInfo(reference=value[0], total=value[1], sequence=value[2])
        elif iei == IEI_CONCAT_16BIT and length == 4:
            concat = ConcatInfo(
                reference=(value[0] << 8) | value[1],
                total=value[2],
                sequence=value[3],
            )
        pos += 2 + length

    return concat


def _decode_user_data(
    user_data: bytes,
    length: int,
    alphabet: str,
    has_header: bool
) -> Tuple[str, Optional[ConcatInfo]]:
    """
    Decode the user data field into text and optional concatenation info.

    For GSM 7-bit data `length` counts septets (header included, padded to
    a septet boundary); otherwise it counts octets.
    """
    concat = None
    header_octets = 0

    if has_header:
        if not user_data:
            raise PduError("User data header indicated but user data is empty")
        header_length = user_data[0]
        header = user_data[1:1 + header_length]
        if len(header) < header_length:
            raise PduError("User data header truncated")
        concat = _parse_header(header)
        header_octets = header_length + 1

    if alphabet == ALPHABET_GSM7:
        skip = (header_octets * 8 + 6) // 7
        try:
            septets = gsm7.unpack_septets(user_data, length)
        except ValueError as e:
            raise PduError(str(e)) from e
        return gsm7.decode_septets(septets[skip:]), concat

    if length > len(user_data):
        raise PduError(
            f"User data truncated: length {length}, have {len(user_data)} octets"
        )
    body = user_data[header_octets:length]

    if alphabet == ALPHABET_UCS2:
        # Odd trailing octet cannot form a UTF-16 code unit
        return body.decode('utf-16-be', errors='replace'), concat

    return body.decode('latin-1'), concat


def parse_deliver_pdu(data: bytes, has_smsc: bool = True) -> DeliverPdu:
    """
    Parse an SMS-DELIVER PDU.

    Args:
        data: Raw PDU bytes
        has_smsc: Whether the PDU starts with the SMSC address field
                  (true for PDUs delivered by Android's "3gpp" format)

    Returns:
        DeliverPdu: Decoded sender, text, timestamp and concatenation info

    Raises:
        PduError: If the PDU is truncated, malformed or not an SMS-DELIVER

    Example:
        >>> parsed = parse_deliver_pdu(bytes.fromhex(
        ...     "07917283010010F5040BC87238880900F10000993092516195800AE8329BFD4697D9EC37"
        ... ))
        >>> parsed.text
        'hellohello'
    """
    if not data:
        raise PduError("PDU is empty")

    reader = _Reader(data)

    if has_smsc:
        smsc_length = reader.byte()
        reader.take(smsc_length)

    first_octet = reader.byte()
    if first_octet & MTI_MASK != MTI_DELIVER:
        raise PduError(
            f"Unsupported message type indicator: {first_octet & MTI_MASK} "
            f"(only SMS-DELIVER is supported)"
        )
    has_header = bool(first_octet & UDHI_FLAG)

    originating_address = _decode_address(reader)
    reader.byte()  # protocol identifier
    alphabet = _alphabet_for(reader.byte())
    timestamp_millis = _decode_timestamp(reader.take(SCTS_LENGTH))
    user_data_length = reader.byte()
    text, concat = _decode_user_data(reader.rest(), user_data_length, alphabet, has_header)

    logger.debug(
        f"Parsed SMS-DELIVER: from={originating_address}, alphabet={alphabet}, "
        f"text_length={len(text)}, concat={concat}"
    )

    return DeliverPdu(
        originating_address=originating_address,
        text=text,
        timestamp_millis=timestamp_millis,
        alphabet=alphabet,
        concat=concat,
    )
