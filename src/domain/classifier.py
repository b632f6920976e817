"""
Mobile-money notification classifier.

A message is a mobile-money notification when any independent signal fires:

1. Sender signal: the sender contains one of the sender patterns
   ("MPESA", "M-PESA"). Matching is case-sensitive unless configured
   otherwise.
2. Content signal: the lowercased body contains one of the body keywords
   ("ksh", "m-pesa", "confirmed").

Signals are OR-ed: a missed transaction notification costs more than an
occasional false positive, which the consumer can filter out.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from .models import DecodedMessage

logger = logging.getLogger(__name__)

DEFAULT_SENDER_PATTERNS: Tuple[str, ...] = ('MPESA', 'M-PESA')
DEFAULT_BODY_KEYWORDS: Tuple[str, ...] = ('ksh', 'm-pesa', 'confirmed')

SIGNAL_SENDER = 'sender'
SIGNAL_BODY = 'body'


class MobileMoneyClassifier:
    """
    Decides whether a decoded message is a mobile-money notification.

    Pure and total: None fields simply fail to match.
    """

    def __init__(
        self,
        sender_patterns: Optional[Iterable[str]] = None,
        body_keywords: Optional[Iterable[str]] = None,
        case_sensitive_sender: bool = True
    ):
        """
        Initialize classifier.

        Args:
            sender_patterns: Substrings that mark a mobile-money sender
            body_keywords: Substrings that mark mobile-money content
                           (matched against the lowercased body)
            case_sensitive_sender: Match sender patterns with exact case
        """
        patterns = DEFAULT_SENDER_PATTERNS if sender_patterns is None else sender_patterns
        keywords = DEFAULT_BODY_KEYWORDS if body_keywords is None else body_keywords

        self.case_sensitive_sender = case_sensitive_sender
        self.sender_patterns = tuple(p for p in patterns if p)
        self.body_keywords = tuple(k.lower() for k in keywords if k)

    def sender_matches(self, sender: Optional[str]) -> bool:
        if sender is None:
            return False
        if self.case_sensitive_sender:
            return any(p in sender for p in self.sender_patterns)
        upper = sender.upper()
        return any(p.upper() in upper for p in self.sender_patterns)

    def body_matches(self, body: Optional[str]) -> bool:
        if body is None:
            return False
        lowered = body.lower()
        return any(k in lowered for k in self.body_keywords)

    def matched_signals(self, msg: DecodedMessage) -> List[str]:
        """
        Name the signals that fire for a message.

        Returns:
            Subset of ["sender", "body"], empty when the message is negative
        """
        signals = []
        if self.sender_matches(msg.sender):
            signals.append(SIGNAL_SENDER)
        if self.body_matches(msg.body):
            signals.append(SIGNAL_BODY)
        return signals

    def classify(self, msg: DecodedMessage) -> bool:
        """Return True if the message is a mobile-money notification."""
        return self.sender_matches(msg.sender) or self.body_matches(msg.body)

    def __repr__(self) -> str:
        return (
            f"MobileMoneyClassifier(sender_patterns={list(self.sender_patterns)}, "
            f"body_keywords={list(self.body_keywords)}, "
            f"case_sensitive_sender={self.case_sensitive_sender})"
        )


DEFAULT_CLASSIFIER = MobileMoneyClassifier()


def classify(msg: DecodedMessage) -> bool:
    """Classify a message with the default signals."""
    return DEFAULT_CLASSIFIER.classify(msg)
