"""
Callback phone-number collection.

After a high-risk crisis is confirmed the assistant may ask, at most
three times per session, for a number a professional could call. Any
later turn that contains a US phone number completes the collection.
"""

import logging
import re
from enum import Enum
from typing import Optional

from crisis_core.core.session.models import MAX_PHONE_REQUESTS, PhoneRequestState
from crisis_core.safety.models import HIGH_RISK_TYPES, CrisisType

logger = logging.getLogger(__name__)


class PhoneCollectionState(str, Enum):
    """Derived collection state for a session."""

    NOT_REQUESTED = "not_requested"
    REQUESTED = "requested"
    EXHAUSTED = "exhausted"  # asked three times, no number
    PROVIDED = "provided"


# Common US formats; digit guards keep longer numbers from matching
PHONE_PATTERNS: list[re.Pattern] = [
    re.compile(r"(?<!\d)1[-. ]?\(?\d{3}\)?[-. ]?\d{3}[-. ]?\d{4}(?!\d)"),  # 1-555-123-4567
    re.compile(r"\(\d{3}\)\s*\d{3}[-. ]?\d{4}(?!\d)"),  # (555) 123-4567
    re.compile(r"(?<!\d)\d{3}[-.]?\d{3}[-.]?\d{4}(?!\d)"),  # 555-123-4567, 5551234567
    re.compile(r"(?<!\d)\d{3}\s+\d{3}\s+\d{4}(?!\d)"),  # 555 123 4567
]

# Indexed by persistence level: gentle, direct, structured
PHONE_REQUESTS: list[str] = [
    (
        "I'm genuinely concerned about you right now, and I want to make sure you have the support you need. "
        "Would you be comfortable sharing a phone number where someone could reach you? "
        "I know it might feel like a big step, but having that connection available could be really important. "
        "It's completely up to you, and I understand if you're not ready for that."
    ),
    (
        "I've been thinking about what you've shared, and I'm still quite concerned. "
        "I'd rather be straightforward: having a way for a professional to reach you directly "
        "could make a real difference right now. Could you share a phone number? "
        "This is just about having that option available if things feel more overwhelming later."
    ),
    (
        "I want to be direct with you because I care about what happens to you. "
        "I've asked before about sharing a phone number, and I understand your hesitation. "
        "Would you consider sharing a number, not because you have to use any services right now, "
        "but because it gives you and the people who care about you more options if you need them?"
    ),
]

PHONE_ACKNOWLEDGMENT = (
    "Thank you for trusting me with your phone number. This information is being shared with "
    "a licensed professional who can provide the right kind of support. "
    "How are you feeling right now about having taken this step?"
)


def extract_phone_number(text: str) -> Optional[str]:
    """
    Find a US phone number anywhere in the text.

    Args:
        text: User message

    Returns:
        Ten digits with formatting removed, or None
    """
    if not isinstance(text, str) or not text:
        return None

    for pattern in PHONE_PATTERNS:
        match = pattern.search(text)
        if match:
            digits = re.sub(r"\D", "", match.group(0))
            if len(digits) == 11 and digits.startswith("1"):
                digits = digits[1:]
            return digits
    return None


def format_phone_number(phone_number: str) -> str:
    """Format ten digits as (555) 123-4567; anything else is returned unchanged."""
    digits = re.sub(r"\D", "", phone_number or "")
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return phone_number


def redact_phone_numbers(text: str) -> str:
    """Replace phone numbers in text before it is written to the event log."""
    for pattern in PHONE_PATTERNS:
        text = pattern.sub("[PHONE]", text)
    return text


class PhoneNumberCollector:
    """
    Phone-number collection state machine.

    NOT_REQUESTED -> REQUESTED (1..3) -> EXHAUSTED | PROVIDED.
    PROVIDED is reachable from any state and is terminal.

    Usage:
        collector = PhoneNumberCollector()
        if collector.should_request(CrisisType.SUICIDE, session.phone):
            text = collector.request(session.phone)
    """

    def state_of(self, phone: PhoneRequestState) -> PhoneCollectionState:
        if phone.has_provided_number:
            return PhoneCollectionState.PROVIDED
        if phone.request_count == 0:
            return PhoneCollectionState.NOT_REQUESTED
        if phone.request_count >= MAX_PHONE_REQUESTS:
            return PhoneCollectionState.EXHAUSTED
        return PhoneCollectionState.REQUESTED

    def should_request(
        self,
        crisis_type: Optional[CrisisType],
        phone: PhoneRequestState,
    ) -> bool:
        """Entry condition: high-risk category, no number yet, fewer than three asks."""
        return crisis_type in HIGH_RISK_TYPES and phone.can_request

    def request(self, phone: PhoneRequestState) -> str:
        """
        Record a request and return its phrasing.

        Raises:
            ValueError: If no further request is allowed
        """
        level = phone.record_request()
        logger.info(f"Phone number requested: count={phone.request_count}, level={level}")
        return PHONE_REQUESTS[level]

    def receive(self, text: str, phone: PhoneRequestState) -> Optional[str]:
        """
        Scan a turn for a phone number and complete collection on a match.

        Returns:
            The extracted number on the transition to PROVIDED, else None
        """
        if phone.has_provided_number:
            return None

        number = extract_phone_number(text)
        if number is None:
            return None

        phone.record_number(number)
        logger.warning(f"CRISIS PHONE NUMBER received after {phone.request_count} request(s)")
        return number
