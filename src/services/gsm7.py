"""
GSM 03.38 default alphabet utilities.

This module unpacks 7-bit septets from SMS user data and maps them to text
using the GSM default alphabet and its extension table.
"""

from typing import List, Sequence

ESCAPE = 0x1B

# GSM 03.38 default alphabet, indexed by septet value
DEFAULT_ALPHABET = (
    "@£$¥èéùìòÇ\nØø\rÅå"
    "Δ_ΦΓΛΩΠΨΣΘΞ\x1bÆæßÉ"
    " !\"#¤%&'()*+,-./"
    "0123456789:;<=>?"
    "¡ABCDEFGHIJKLMNO"
    "PQRSTUVWXYZÄÖÑÜ§"
    "¿abcdefghijklmno"
    "pqrstuvwxyzäöñüà"
)

# Characters reachable through the escape septet
EXTENSION_TABLE = {
    0x0A: '\f',
    0x14: '^',
    0x28: '{',
    0x29: '}',
    0x2F: '\\',
    0x3C: '[',
    0x3D: '~',
    0x3E: ']',
    0x40: '|',
    0x65: '€',
}


def unpack_septets(data: bytes, count: int) -> List[int]:
    """
    Unpack `count` septets from packed 7-bit data.

    Septets are packed LSB first, so the data is consumed as a little-endian
    bit stream.

    Args:
        data: Packed octets
        count: Number of septets to return

    Returns:
        List of septet values (0-127)

    Raises:
        ValueError: If data holds fewer than `count` septets
    """
    if count * 7 > len(data) * 8:
        raise ValueError(
            f"Packed data too short: need {count} septets, "
            f"have {len(data)} octets"
        )

    septets = []
    accumulator = 0
    bit_count = 0
    for octet in data:
        accumulator |= octet << bit_count
        bit_count += 8
        while bit_count >= 7 and len(septets) < count:
            septets.append(accumulator & 0x7F)
            accumulator >>= 7
            bit_count -= 7

    return septets


def decode_septets(septets: Sequence[int]) -> str:
    """
    Map septets to text using the default alphabet and extension table.

    Unknown escape sequences fall back to a space, as receivers are told to
    do by GSM 03.38.
    """
    chars = []
    escaped = False
    for septet in septets:
        if escaped:
            chars.append(EXTENSION_TABLE.get(septet, ' '))
            escaped = False
        elif septet == ESCAPE:
            escaped = True
        else:
            chars.append(DEFAULT_ALPHABET[septet])
    return ''.join(chars)


def decode_packed(data: bytes, count: int) -> str:
    """Unpack and decode `count` septets of packed GSM 7-bit text."""
    return decode_septets(unpack_septets(data, count))
