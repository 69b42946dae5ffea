"""Callback phone-number collection after a confirmed crisis."""

from .collector import (
    PhoneCollectionState,
    PhoneNumberCollector,
    extract_phone_number,
    format_phone_number,
    redact_phone_numbers,
)

__all__ = [
    "PhoneCollectionState",
    "PhoneNumberCollector",
    "extract_phone_number",
    "format_phone_number",
    "redact_phone_numbers",
]
