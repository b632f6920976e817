"""
Utility functions for SMS transport payloads.

This package contains reusable decoding functions for raw SMS PDUs and the
GSM 7-bit default alphabet.
"""

__all__ = ['gsm7', 'pdu']
